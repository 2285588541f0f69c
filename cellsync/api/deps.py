"""FastAPI dependencies for authentication."""

import logging
from typing import Annotated, Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from cellsync.core.circuit_breaker import supabase_circuit_breaker
from cellsync.core.exceptions import AuthenticationError
from cellsync.db.supabase import SupabaseClient

logger = logging.getLogger(__name__)

# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> Any:
    """Extract and validate the current user from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing or rejected by Supabase.
    """
    if credentials is None:
        logger.warning("AUTH: No credentials provided in request")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = credentials.credentials
    try:
        client = SupabaseClient.get_client()
        response = await supabase_circuit_breaker.call_blocking(client.auth.get_user, token)

        if response is None or response.user is None:
            raise AuthenticationError("Invalid authentication token")

        return response.user

    except AuthenticationError as e:
        logger.warning("AUTH: %s", e.message)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
    except Exception as e:
        logger.exception("AUTH: Unexpected error during token validation")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


def org_id_of(user: Any) -> str | None:
    """Organization of a Supabase user, read from its app metadata."""
    metadata = getattr(user, "app_metadata", None) or {}
    org_id = metadata.get("org_id") if isinstance(metadata, dict) else None
    return str(org_id) if org_id else None


# Type alias for the common dependency pattern
CurrentUser = Annotated[Any, Depends(get_current_user)]
