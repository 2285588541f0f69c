"""Services package."""

from cellsync.services.contact_sync import (
    ContactSyncService,
    SyncSummary,
    get_contact_sync_service,
)

__all__ = ["ContactSyncService", "SyncSummary", "get_contact_sync_service"]
