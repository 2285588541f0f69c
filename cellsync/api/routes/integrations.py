"""CRM integration API routes."""

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, Field

from cellsync.api.deps import CurrentUser, org_id_of
from cellsync.core.exceptions import ValidationError
from cellsync.integrations.domain import CRM_CONFIGS, CRMType
from cellsync.integrations.service import get_integration_service
from cellsync.services.contact_sync import get_contact_sync_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrations", tags=["integrations"])


# Request/Response Models
class SyncContactsRequest(BaseModel):
    """Request model for a contact sync."""

    cell_id: str | None = Field(None, max_length=100, description="Target cell (per-cell CRMs)")


class SyncContactsResponse(BaseModel):
    """Response model for a finished contact sync."""

    success: bool = True
    inserted_count: int
    merged_count: int
    total_contacts: int
    cells_synced: int
    skipped_invalid: int = 0
    message: str


class IntegrationStatusResponse(BaseModel):
    crm_type: str
    display_name: str
    connected: bool
    connection_status: str | None = None
    last_synced_at: datetime | None = None
    synced_contacts_count: int = 0


class ConnectRequest(BaseModel):
    """Request model for starting an OAuth connection."""

    redirect_uri: str = Field(..., min_length=10, max_length=500, description="OAuth callback URL")
    cell_id: str | None = Field(None, max_length=100)


class ConnectResponse(BaseModel):
    redirect_url: str
    connection_id: str


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str


def _parse_crm_type(crm_type: str) -> CRMType:
    try:
        return CRMType(crm_type.lower())
    except ValueError as e:
        raise ValidationError(f"Unsupported CRM: {crm_type}", field="crm_type") from e


@router.post("/{crm_type}/sync-contacts", response_model=SyncContactsResponse)
async def sync_contacts(
    crm_type: str,
    request: SyncContactsRequest,
    current_user: CurrentUser,
) -> dict[str, Any]:
    """Sync contacts from a CRM into the user's cells.

    Per-cell CRMs sync into ``request.cell_id``; global CRMs sync into
    every cell of the account.
    """
    crm = _parse_crm_type(crm_type)
    service = get_contact_sync_service()
    summary = await service.run_sync(
        crm,
        user_id=current_user.id,
        org_id=org_id_of(current_user),
        cell_id=request.cell_id,
    )
    return {"success": True, **summary.to_dict()}


@router.get("/{crm_type}/status", response_model=IntegrationStatusResponse)
async def get_integration_status(
    crm_type: str,
    current_user: CurrentUser,
    cell_id: str | None = None,
) -> dict[str, Any]:
    """Report whether a CRM is connected and when it last synced."""
    crm = _parse_crm_type(crm_type)
    service = get_integration_service()
    status_info = await service.get_status(
        crm, current_user.id, org_id_of(current_user), cell_id
    )
    return {
        "crm_type": crm.value,
        "display_name": CRM_CONFIGS[crm].display_name,
        **status_info,
    }


@router.post("/{crm_type}/connect", response_model=ConnectResponse)
async def connect_integration(
    crm_type: str,
    request: ConnectRequest,
    current_user: CurrentUser,
) -> dict[str, Any]:
    """Start the OAuth flow for a CRM through Composio.

    The integration row is created on the first sync, once the
    connection is active; ``cell_id`` is accepted for symmetry with the
    other routes and not stored here.
    """
    crm = _parse_crm_type(crm_type)
    service = get_integration_service()
    redirect_url, connection_id = await service.create_connect_link(
        crm, current_user.id, request.redirect_uri
    )
    logger.info(
        "Connect link created",
        extra={"user_id": current_user.id, "crm_type": crm.value, "connection_id": connection_id},
    )
    return {"redirect_url": redirect_url, "connection_id": connection_id}


@router.delete("/{crm_type}", response_model=MessageResponse)
async def disconnect_integration(
    crm_type: str,
    current_user: CurrentUser,
    cell_id: str | None = None,
) -> dict[str, Any]:
    """Disconnect a CRM and revoke its Composio connection."""
    crm = _parse_crm_type(crm_type)
    service = get_integration_service()
    await service.disconnect(crm, current_user.id, org_id_of(current_user), cell_id)
    return {"message": f"{CRM_CONFIGS[crm].display_name} disconnected successfully"}
