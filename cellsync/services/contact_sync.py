"""CRM contact synchronization service.

Pulls contacts from a connected CRM via Composio and merges them into the
contact lists of the account's cells, one cell at a time.
"""

import asyncio
import logging
from collections import Counter
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from typing import Any

from cellsync.contacts.domain import Cell, ContactCandidate, ReconcileResult
from cellsync.contacts.phone import default_country_for_cell
from cellsync.contacts.reconcile import ContactReconciler
from cellsync.core.circuit_breaker import CircuitBreakerOpen
from cellsync.core.config import settings
from cellsync.core.exceptions import (
    CellSyncException,
    CRMFetchError,
    CRMReauthRequiredError,
    CRMSyncError,
    IntegrationNotConnectedError,
    ValidationError,
)
from cellsync.db.contact_store import ContactStore, SupabaseContactStore
from cellsync.db.supabase import SupabaseClient
from cellsync.integrations.composio_client import ComposioClient, get_composio_client, is_auth_error
from cellsync.integrations.crm import CRMActionError, CRMAdapter, get_adapter
from cellsync.integrations.domain import CRM_CONFIGS, CRMConfig, CRMType, IntegrationScope
from cellsync.integrations.service import IntegrationService

logger = logging.getLogger(__name__)

# Single-flight per cell within this process. An entry lives only while
# some run holds or waits on it.
_cell_locks: dict[str, asyncio.Lock] = {}
_cell_lock_users: Counter[str] = Counter()


@asynccontextmanager
async def cell_lock(cell_id: str) -> AsyncIterator[None]:
    lock = _cell_locks.setdefault(cell_id, asyncio.Lock())
    _cell_lock_users[cell_id] += 1
    try:
        async with lock:
            yield
    finally:
        _cell_lock_users[cell_id] -= 1
        if _cell_lock_users[cell_id] <= 0:
            del _cell_lock_users[cell_id]
            del _cell_locks[cell_id]


@dataclass
class SyncSummary:
    """Outcome of one sync run, summed over its cells."""

    inserted_count: int
    merged_count: int
    total_contacts: int
    cells_synced: int
    message: str
    skipped_invalid: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def build_sync_message(display_name: str, inserted: int, merged: int, cells: int) -> str:
    message = f"Synced {inserted} new contacts"
    if merged:
        message += f" and updated {merged} existing contacts"
    message += f" from {display_name}"
    if cells > 1:
        message += f" across {cells} cells"
    return message


class ContactSyncService:
    """Runs CRM contact syncs.

    Collaborators are injectable so tests can swap Supabase and Composio
    for fakes.
    """

    def __init__(
        self,
        integrations: IntegrationService | None = None,
        store: ContactStore | None = None,
        composio: ComposioClient | None = None,
    ) -> None:
        self.composio = composio or get_composio_client()
        self.integrations = integrations or IntegrationService(self.composio)
        self.store = store or SupabaseContactStore()
        self.reconciler = ContactReconciler(self.store)

    async def run_sync(
        self,
        crm_type: CRMType,
        user_id: str,
        org_id: str | None = None,
        cell_id: str | None = None,
    ) -> SyncSummary:
        """Sync a CRM's contacts into the account's cells.

        Per-cell CRMs sync into ``cell_id`` only; global CRMs sync into
        every cell of the account.

        Args:
            crm_type: CRM to pull from.
            user_id: Requesting user.
            org_id: User's organization, when they belong to one.
            cell_id: Target cell for per-cell CRMs.

        Returns:
            SyncSummary with counters summed over the synced cells.

        Raises:
            IntegrationNotConnectedError: If the CRM is not connected.
            CRMReauthRequiredError: If the CRM rejected the credentials.
            CRMFetchError: If fetching from the CRM failed otherwise.
            NotFoundError: If the target cell is not the account's.
            CRMSyncError: If building or reconciling candidates fails
                for a reason other than storage.
            ValidationError: If the account has no cells.
            DatabaseError: If a storage call fails mid-run.
        """
        config = CRM_CONFIGS[crm_type]
        logger.info(
            "Starting %s contact sync",
            config.display_name,
            extra={"user_id": user_id, "org_id": org_id, "cell_id": cell_id, "crm_type": crm_type.value},
        )

        # Per-cell CRMs: ownership is checked before any integration row is touched
        owned_cell = await self._owned_cell(config, user_id, org_id, cell_id)

        integration = await self.integrations.resolve_connection(crm_type, user_id, org_id, cell_id)
        connection_id = integration.composio_connection_id
        if not connection_id:
            raise IntegrationNotConnectedError(config.display_name)

        adapter = get_adapter(crm_type, self.composio)
        records = await self._fetch(adapter, config, connection_id)

        if not records:
            await self.integrations.update_sync_stats(integration.id, 0)
            return SyncSummary(
                inserted_count=0,
                merged_count=0,
                total_contacts=0,
                cells_synced=0,
                message=f"No contacts with phone numbers found in {config.display_name}",
            )

        cells = [owned_cell] if owned_cell is not None else await self._account_cells(user_id, org_id)

        try:
            candidates = [c for record in records for c in adapter.candidates_for(record)]
            total = ReconcileResult()
            seen: set[tuple[str, str]] = set()
            for cell in cells:
                total += await self._sync_cell(cell, config, candidates, seen)
        except (CellSyncException, CircuitBreakerOpen):
            raise
        except Exception as e:
            logger.exception(
                "Failed to sync %s contacts",
                config.display_name,
                extra={"user_id": user_id, "crm_type": crm_type.value},
            )
            raise CRMSyncError(str(e), provider=config.display_name) from e

        await self.integrations.update_sync_stats(integration.id, total.inserted)

        summary = SyncSummary(
            inserted_count=total.inserted,
            merged_count=total.merged,
            total_contacts=len(records),
            cells_synced=len(cells),
            message=build_sync_message(config.display_name, total.inserted, total.merged, len(cells)),
            skipped_invalid=total.skipped_invalid,
        )
        logger.info(
            "Finished %s contact sync",
            config.display_name,
            extra={
                "user_id": user_id,
                "crm_type": crm_type.value,
                "inserted_count": summary.inserted_count,
                "merged_count": summary.merged_count,
                "cells_synced": summary.cells_synced,
            },
        )
        return summary

    async def _fetch(
        self, adapter: CRMAdapter, config: CRMConfig, connection_id: str
    ) -> list[dict[str, Any]]:
        """Fetch raw records within the configured timeout, mapping failures."""
        timeout = settings.CRM_FETCH_TIMEOUT_SECONDS
        try:
            return await asyncio.wait_for(adapter.fetch_raw_contacts(connection_id), timeout)
        except CircuitBreakerOpen:
            raise
        except TimeoutError as e:
            logger.error(
                "%s fetch timed out after %ss",
                config.display_name,
                timeout,
                extra={"connection_id": connection_id},
            )
            raise CRMFetchError(config.display_name, f"Timed out after {timeout}s") from e
        except CRMActionError as e:
            upstream = e.upstream_message
            if is_auth_error(upstream, e.status_code):
                raise CRMReauthRequiredError(config.display_name, upstream) from e
            raise CRMFetchError(config.display_name, upstream) from e
        except Exception as e:
            logger.exception(
                "Error fetching %s contacts",
                config.display_name,
                extra={"connection_id": connection_id},
            )
            if is_auth_error(str(e)):
                raise CRMReauthRequiredError(config.display_name, str(e)) from e
            raise CRMFetchError(config.display_name, str(e)) from e

    async def _owned_cell(
        self, config: CRMConfig, user_id: str, org_id: str | None, cell_id: str | None
    ) -> Cell | None:
        """The requested cell for per-cell CRMs, None for global ones.

        Raises:
            ValidationError: If a per-cell CRM is synced without a cell.
            NotFoundError: If the account does not own the cell.
        """
        if config.scope != IntegrationScope.CELL:
            return None
        if not cell_id:
            raise ValidationError(f"cell_id is required for {config.display_name}", field="cell_id")
        return await SupabaseClient.get_cell_for_account(cell_id, user_id, org_id)

    async def _account_cells(self, user_id: str, org_id: str | None) -> list[Cell]:
        cells = await SupabaseClient.get_cells_for_account(user_id, org_id)
        if not cells:
            raise ValidationError("No cells found. Please create a cell first.")
        return cells

    async def _sync_cell(
        self,
        cell: Cell,
        config: CRMConfig,
        candidates: list[ContactCandidate],
        seen: set[tuple[str, str]],
    ) -> ReconcileResult:
        async with cell_lock(cell.id):
            mappings = await self.store.list_mappings([cell.id])
            return await self.reconciler.reconcile(
                cell,
                config.side_table,
                mappings,
                candidates,
                default_country_for_cell(cell.phone_number),
                seen,
            )


_contact_sync_service: ContactSyncService | None = None


def get_contact_sync_service() -> ContactSyncService:
    """Get or create the contact sync service singleton."""
    global _contact_sync_service
    if _contact_sync_service is None:
        _contact_sync_service = ContactSyncService()
    return _contact_sync_service
