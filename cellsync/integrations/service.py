"""Service layer for CRM integration records and their Composio connections."""

import logging
from datetime import UTC, datetime
from typing import Any

from cellsync.core.circuit_breaker import CircuitBreakerOpen, supabase_circuit_breaker
from cellsync.core.exceptions import (
    DatabaseError,
    ExternalServiceError,
    IntegrationNotConnectedError,
    NotFoundError,
    ValidationError,
)
from cellsync.db.supabase import SupabaseClient
from cellsync.integrations.composio_client import (
    ComposioClient,
    get_composio_client,
    is_connection_status_active,
)
from cellsync.integrations.domain import CRM_CONFIGS, CRMType, Integration, IntegrationScope

logger = logging.getLogger(__name__)

INTEGRATIONS_TABLE = "integrations"


class IntegrationService:
    """Reads and writes the ``integrations`` table and links it to Composio."""

    def __init__(self, composio: ComposioClient | None = None) -> None:
        self.composio = composio or get_composio_client()

    async def _query(self, operation: str, build: Any) -> Any:
        try:
            client = SupabaseClient.get_client()
            return await supabase_circuit_breaker.call_blocking(lambda: build(client).execute())
        except (CircuitBreakerOpen, DatabaseError):
            raise
        except Exception as e:
            logger.exception("Integration query failed", extra={"operation": operation})
            raise DatabaseError(f"Failed to {operation}: {e}") from e

    @staticmethod
    def scoped_cell_id(crm_type: CRMType, cell_id: str | None) -> str | None:
        """Cell an integration row is keyed on: the cell for per-cell CRMs, else None.

        Raises:
            ValidationError: If a per-cell CRM is addressed without a cell.
        """
        config = CRM_CONFIGS[crm_type]
        if config.scope == IntegrationScope.GLOBAL:
            return None
        if not cell_id:
            raise ValidationError(f"cell_id is required for {config.display_name}", field="cell_id")
        return cell_id

    async def get_integration(
        self,
        crm_type: CRMType,
        user_id: str,
        org_id: str | None = None,
        cell_id: str | None = None,
    ) -> Integration | None:
        """Get the integration of an account (and cell, for per-cell CRMs).

        Returns:
            The Integration, or None if the account never connected this CRM.
        """
        scoped_cell = self.scoped_cell_id(crm_type, cell_id)

        def build(client: Any) -> Any:
            query = client.table(INTEGRATIONS_TABLE).select("*").eq("crm_type", crm_type.value)
            query = query.eq("org_id", org_id) if org_id else query.eq("user_id", user_id)
            if scoped_cell:
                query = query.eq("cell_id", scoped_cell)
            else:
                query = query.is_("cell_id", "null")
            return query.limit(1)

        response = await self._query("fetch integration", build)
        if not response.data:
            return None
        return Integration.from_dict(response.data[0])

    async def create_integration(
        self,
        crm_type: CRMType,
        user_id: str,
        composio_connection_id: str,
        org_id: str | None = None,
        cell_id: str | None = None,
    ) -> Integration:
        data = {
            "user_id": user_id,
            "org_id": org_id,
            "cell_id": self.scoped_cell_id(crm_type, cell_id),
            "crm_type": crm_type.value,
            "composio_connection_id": composio_connection_id,
            "synced_contacts_count": 0,
        }
        response = await self._query(
            "create integration",
            lambda c: c.table(INTEGRATIONS_TABLE).insert(data),
        )
        if not response.data:
            raise DatabaseError("Failed to create integration: no data returned")

        logger.info(
            "Integration created",
            extra={"user_id": user_id, "crm_type": crm_type.value, "connection_id": composio_connection_id},
        )
        return Integration.from_dict(response.data[0])

    async def update_sync_stats(self, integration_id: str, synced_contacts_count: int) -> None:
        """Record the outcome of a sync on the integration row."""
        now = datetime.now(UTC).isoformat()
        updates = {
            "last_synced_at": now,
            "synced_contacts_count": synced_contacts_count,
            "updated_at": now,
        }
        await self._query(
            "update integration sync stats",
            lambda c: c.table(INTEGRATIONS_TABLE).update(updates).eq("id", integration_id),
        )

    async def delete_integration(self, integration_id: str) -> None:
        await self._query(
            "delete integration",
            lambda c: c.table(INTEGRATIONS_TABLE).delete().eq("id", integration_id),
        )

    async def resolve_connection(
        self,
        crm_type: CRMType,
        user_id: str,
        org_id: str | None = None,
        cell_id: str | None = None,
    ) -> Integration:
        """Find the integration to sync with, auto-linking a Composio connection.

        When no integration row exists, the first Composio connection of
        the user whose toolkit matches the CRM is linked, provided it is
        active.

        Raises:
            IntegrationNotConnectedError: If nothing usable is connected.
        """
        config = CRM_CONFIGS[crm_type]
        integration = await self.get_integration(crm_type, user_id, org_id, cell_id)

        if integration is not None:
            if not integration.composio_connection_id:
                raise IntegrationNotConnectedError(
                    config.display_name,
                    "Legacy integration detected. Please reconnect using Composio.",
                )
            return integration

        connections = await self.composio.list_connections(user_id)
        match = next((c for c in connections if c.matches(config.toolkit_slug)), None)
        if match is None:
            raise IntegrationNotConnectedError(config.display_name)

        if not is_connection_status_active(match.status):
            raise IntegrationNotConnectedError(
                config.display_name,
                f"{config.display_name} connection found but status is: {match.status}. "
                "Please reconnect.",
            )

        logger.info(
            "Auto-linking Composio connection",
            extra={"user_id": user_id, "crm_type": crm_type.value, "connection_id": match.id},
        )
        return await self.create_integration(crm_type, user_id, match.id, org_id, cell_id)

    async def get_status(
        self,
        crm_type: CRMType,
        user_id: str,
        org_id: str | None = None,
        cell_id: str | None = None,
    ) -> dict[str, Any]:
        """Connection status of a CRM for an account."""
        integration = await self.get_integration(crm_type, user_id, org_id, cell_id)
        if integration is None or not integration.composio_connection_id:
            return {
                "connected": False,
                "connection_status": None,
                "last_synced_at": None,
                "synced_contacts_count": 0,
            }

        try:
            status = await self.composio.get_connection_status(integration.composio_connection_id)
        except Exception:
            logger.warning(
                "Could not read Composio connection status",
                exc_info=True,
                extra={"connection_id": integration.composio_connection_id},
            )
            status = "unknown"

        return {
            "connected": is_connection_status_active(status),
            "connection_status": status,
            "last_synced_at": integration.last_synced_at,
            "synced_contacts_count": integration.synced_contacts_count,
        }

    async def disconnect(
        self,
        crm_type: CRMType,
        user_id: str,
        org_id: str | None = None,
        cell_id: str | None = None,
    ) -> None:
        """Revoke the Composio connection and remove the integration row.

        Raises:
            NotFoundError: If the CRM is not connected.
        """
        integration = await self.get_integration(crm_type, user_id, org_id, cell_id)
        if integration is None:
            raise NotFoundError(f"{CRM_CONFIGS[crm_type].display_name} integration")

        if integration.composio_connection_id:
            try:
                await self.composio.revoke_connection(integration.composio_connection_id)
            except CircuitBreakerOpen:
                raise
            except Exception as e:
                logger.exception("Failed to revoke Composio connection")
                raise ExternalServiceError("Composio", f"Failed to revoke connection: {e}") from e

        await self.delete_integration(integration.id)
        logger.info(
            "Integration disconnected",
            extra={"user_id": user_id, "crm_type": crm_type.value},
        )

    async def create_connect_link(
        self, crm_type: CRMType, user_id: str, redirect_uri: str
    ) -> tuple[str, str]:
        """Start the OAuth flow for a CRM.

        Returns:
            Tuple of (redirect_url, connection_id).

        Raises:
            ExternalServiceError: If Composio cannot create the link.
        """
        config = CRM_CONFIGS[crm_type]
        try:
            return await self.composio.create_connect_link(user_id, config.toolkit_slug, redirect_uri)
        except CircuitBreakerOpen:
            raise
        except Exception as e:
            logger.exception("Failed to create connect link", extra={"crm_type": crm_type.value})
            raise ExternalServiceError("Composio", str(e)) from e


# Singleton instance
_integration_service: IntegrationService | None = None


def get_integration_service() -> IntegrationService:
    """Get or create integration service singleton.

    Returns:
        The shared IntegrationService instance
    """
    global _integration_service
    if _integration_service is None:
        _integration_service = IntegrationService()
    return _integration_service
