"""Composio client integration using the Composio SDK.

Composio brokers the OAuth connections to every CRM and executes CRM
actions on our behalf. The SDK is synchronous, so each call runs in a
worker thread behind the Composio circuit breaker.
"""

import logging
from dataclasses import dataclass
from typing import Any

from composio import Composio

from cellsync.core.circuit_breaker import composio_circuit_breaker
from cellsync.core.config import settings

logger = logging.getLogger(__name__)

_ACTIVE_STATUSES = frozenset({"ACTIVE", "CONNECTED", "ENABLED", "LIVE", "READY"})
_INACTIVE_STATUSES = frozenset({
    "INACTIVE",
    "DISCONNECTED",
    "DISABLED",
    "EXPIRED",
    "FAILED",
    "REVOKED",
    "PENDING",
    "INITIATED",
})

_AUTH_ERROR_KEYWORDS = frozenset({
    "unauthorized",
    "forbidden",
    "expired",
    "invalid_grant",
    "invalid_token",
    "invalid token",
    "invalid credentials",
    "authentication failed",
    "401",
    "403",
})


def is_connection_status_active(status: str | None) -> bool:
    """Return True if a broker connection status means the connection works.

    Unknown statuses count as inactive.
    """
    if not status:
        return False
    normalized = str(status).strip().upper()
    if normalized in _INACTIVE_STATUSES:
        return False
    if normalized in _ACTIVE_STATUSES:
        return True
    logger.warning("Unknown Composio connection status: %r", status)
    return False


def is_auth_error(message: str | None, status_code: int | None = None) -> bool:
    """Return True if an upstream failure points at bad credentials.

    Auth failures need the user to reconnect; anything else is reported
    as a plain fetch failure.
    """
    if status_code == 401:
        return True
    if not message:
        return False
    haystack = message.lower()
    return any(keyword in haystack for keyword in _AUTH_ERROR_KEYWORDS)


@dataclass
class ComposioConnection:
    """A connected account at Composio."""

    id: str
    status: str
    toolkit: str

    def matches(self, toolkit_slug: str) -> bool:
        return toolkit_slug.lower() in self.toolkit.lower()


def _field(item: Any, name: str) -> Any:
    """Read ``name`` from an SDK model or a plain dict."""
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def _to_connection(item: Any) -> ComposioConnection | None:
    conn_id = _field(item, "id")
    if not conn_id:
        return None

    toolkit = _field(item, "toolkit")
    if toolkit is not None and not isinstance(toolkit, str):
        toolkit = _field(toolkit, "slug") or _field(toolkit, "name") or ""
    if not toolkit:
        toolkit = _field(item, "app_name") or _field(item, "appName") or ""

    status = _field(item, "status")
    if not status:
        status = _field(_field(item, "data") or {}, "status") or "unknown"

    return ComposioConnection(id=str(conn_id), status=str(status), toolkit=str(toolkit))


class ComposioClient:
    """Thin wrapper over the Composio SDK used by the CRM adapters."""

    _composio: Composio | None = None
    _auth_config_cache: dict[str, str] = {}

    @property
    def _client(self) -> Composio:
        """Lazy initialization of Composio SDK client."""
        if self._composio is None:
            api_key = (
                settings.COMPOSIO_API_KEY.get_secret_value()
                if settings.COMPOSIO_API_KEY is not None
                else ""
            )
            self._composio = Composio(api_key=api_key)
        return self._composio

    async def execute_action(
        self,
        connection_id: str,
        action: str,
        params: dict[str, Any],
        user_id: str | None = None,
    ) -> dict[str, Any]:
        """Execute a CRM action via Composio.

        Args:
            connection_id: The Composio connected account ID.
            action: The tool slug (e.g. 'HUBSPOT_LIST_CONTACTS').
            params: Arguments for the action.
            user_id: Optional user/entity ID for the action.

        Returns:
            Action result dict with 'successful', 'data' and 'error' keys.
        """

        def _execute() -> Any:
            return self._client.tools.execute(
                slug=action,
                connected_account_id=connection_id,
                user_id=user_id,
                arguments=params,
                dangerously_skip_version_check=True,
            )

        result = await composio_circuit_breaker.call_blocking(_execute)
        if isinstance(result, dict):
            return result
        if hasattr(result, "model_dump"):
            return dict(result.model_dump())
        return {"successful": False, "data": None, "error": f"Unexpected result: {result!s}"}

    async def list_connections(self, user_id: str) -> list[ComposioConnection]:
        """List every connected account of a user, across toolkits."""

        def _list() -> Any:
            return self._client.client.connected_accounts.list(user_ids=[user_id])

        result = await composio_circuit_breaker.call_blocking(_list)
        items = result if isinstance(result, list) else getattr(result, "items", None) or []

        connections = [conn for conn in (_to_connection(item) for item in items) if conn]
        logger.info(
            "Found %d Composio connections",
            len(connections),
            extra={"user_id": user_id},
        )
        return connections

    async def get_connection_status(self, connection_id: str) -> str:
        """Return the broker's status string for a connection."""

        def _retrieve() -> Any:
            return self._client.client.connected_accounts.retrieve(connection_id)

        result = await composio_circuit_breaker.call_blocking(_retrieve)
        return str(_field(result, "status") or "unknown")

    async def _resolve_auth_config_id(self, toolkit_slug: str) -> str:
        """Look up the auth config ID for a toolkit.

        Raises:
            ValueError: If no auth config exists for this toolkit.
        """
        toolkit_slug = toolkit_slug.lower()
        if toolkit_slug in self._auth_config_cache:
            return self._auth_config_cache[toolkit_slug]

        def _list_configs() -> Any:
            return self._client.client.auth_configs.list(toolkit_slug=toolkit_slug)

        result = await composio_circuit_breaker.call_blocking(_list_configs)

        # Composio returns every config when the slug matches nothing
        matching = [item for item in result.items if item.toolkit.slug == toolkit_slug]
        if not matching:
            raise ValueError(
                f"No auth config found for '{toolkit_slug}'. "
                "Create one in the Composio dashboard under Auth Configs."
            )

        auth_config_id: str = matching[0].id
        self._auth_config_cache[toolkit_slug] = auth_config_id
        return auth_config_id

    async def create_connect_link(
        self,
        user_id: str,
        toolkit_slug: str,
        redirect_uri: str,
    ) -> tuple[str, str]:
        """Start an OAuth connection for a CRM.

        Returns:
            Tuple of (redirect_url, connection_id).

        Raises:
            ValueError: If no auth config is found for the toolkit.
        """
        auth_config_id = await self._resolve_auth_config_id(toolkit_slug)

        def _create_link() -> Any:
            return self._client.client.link.create(
                auth_config_id=auth_config_id,
                user_id=user_id,
                callback_url=redirect_uri,
            )

        result = await composio_circuit_breaker.call_blocking(_create_link)
        logger.info(
            "OAuth link created via Composio",
            extra={
                "user_id": user_id,
                "toolkit": toolkit_slug,
                "connection_id": result.connected_account_id,
            },
        )
        return result.redirect_url, result.connected_account_id

    async def revoke_connection(self, connection_id: str) -> None:
        """Delete a connected account at Composio."""

        def _delete() -> Any:
            return self._client.client.connected_accounts.delete(connection_id)

        await composio_circuit_breaker.call_blocking(_delete)
        logger.info("Composio connection revoked", extra={"connection_id": connection_id})


# Singleton instance
_composio_client: ComposioClient | None = None


def get_composio_client() -> ComposioClient:
    """Get the singleton Composio client instance."""
    global _composio_client
    if _composio_client is None:
        _composio_client = ComposioClient()
    return _composio_client
