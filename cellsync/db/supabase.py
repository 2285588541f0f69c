"""Supabase client module for database operations."""

import logging
from typing import Any, cast

from supabase import Client, create_client

from cellsync.contacts.domain import Cell
from cellsync.core.circuit_breaker import CircuitBreakerOpen, supabase_circuit_breaker
from cellsync.core.config import settings
from cellsync.core.exceptions import DatabaseError, NotFoundError

logger = logging.getLogger(__name__)


class SupabaseClient:
    """Singleton Supabase client for backend operations."""

    _client: Client | None = None

    @classmethod
    def get_client(cls) -> Client:
        """Get or create the Supabase client singleton.

        Returns:
            Initialized Supabase client.

        Raises:
            DatabaseError: If client initialization fails.
        """
        if cls._client is None:
            try:
                cls._client = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_ROLE_KEY.get_secret_value(),
                )
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                logger.exception("Failed to initialize Supabase client")
                raise DatabaseError(f"Failed to initialize database connection: {e}") from e
        return cls._client

    @classmethod
    def reset_client(cls) -> None:
        """Reset the client singleton (useful for testing)."""
        cls._client = None

    @classmethod
    async def get_cell_for_account(
        cls, cell_id: str, user_id: str, org_id: str | None = None
    ) -> Cell:
        """Fetch a cell the account is allowed to sync into.

        A cell belongs to the account when it is in the account's
        organization, or, without an organization, owned by the user.

        Raises:
            NotFoundError: If the cell does not exist or belongs to someone else.
            DatabaseError: If the query fails.
        """
        try:
            supabase_circuit_breaker.check()
            client = cls.get_client()
            query = client.table("cells").select("*").eq("id", cell_id)
            query = query.eq("org_id", org_id) if org_id else query.eq("user_id", user_id)
            response = query.maybe_single().execute()
            supabase_circuit_breaker.record_success()
        except CircuitBreakerOpen:
            raise
        except Exception as e:
            supabase_circuit_breaker.record_failure()
            logger.exception("Error fetching cell", extra={"cell_id": cell_id})
            raise DatabaseError(f"Failed to fetch cell: {e}") from e

        if response is None or not response.data:
            raise NotFoundError("Cell", cell_id)
        return Cell.from_dict(cast(dict[str, Any], response.data))

    @classmethod
    async def get_cells_for_account(cls, user_id: str, org_id: str | None = None) -> list[Cell]:
        """List every cell of an account, oldest first.

        Raises:
            DatabaseError: If the query fails.
        """
        try:
            supabase_circuit_breaker.check()
            client = cls.get_client()
            query = client.table("cells").select("*")
            query = query.eq("org_id", org_id) if org_id else query.eq("user_id", user_id)
            response = query.order("created_at").execute()
            supabase_circuit_breaker.record_success()
        except CircuitBreakerOpen:
            raise
        except Exception as e:
            supabase_circuit_breaker.record_failure()
            logger.exception("Error listing cells", extra={"user_id": user_id, "org_id": org_id})
            raise DatabaseError(f"Failed to list cells: {e}") from e

        return [Cell.from_dict(row) for row in response.data or []]
