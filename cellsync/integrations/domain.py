"""Domain models for CRM integrations."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class CRMType(str, Enum):
    """Supported CRMs."""

    HUBSPOT = "hubspot"
    SALESFORCE = "salesforce"
    ZOHO = "zoho"
    ATTIO = "attio"
    ZENDESK = "zendesk"
    AGENCYZOOM = "agencyzoom"
    DYNAMICS365 = "dynamics365"


class IntegrationScope(str, Enum):
    """Whether one integration serves a single cell or every cell of an account."""

    CELL = "cell"
    GLOBAL = "global"


@dataclass(frozen=True)
class CRMConfig:
    """Static configuration for a CRM."""

    crm_type: CRMType
    display_name: str
    toolkit_slug: str  # Composio toolkit; matched case-insensitively
    scope: IntegrationScope
    side_table: str


@dataclass
class Integration:
    """Stored link between an account (or a cell) and a broker connection."""

    id: str
    user_id: str
    crm_type: CRMType
    composio_connection_id: str | None
    org_id: str | None = None
    cell_id: str | None = None
    last_synced_at: datetime | None = None
    synced_contacts_count: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Integration":
        last_synced = data.get("last_synced_at")
        if isinstance(last_synced, str):
            last_synced = datetime.fromisoformat(last_synced.replace("Z", "+00:00"))
        return cls(
            id=str(data["id"]),
            user_id=data["user_id"],
            crm_type=CRMType(data["crm_type"]),
            composio_connection_id=data.get("composio_connection_id") or None,
            org_id=data.get("org_id"),
            cell_id=data.get("cell_id"),
            last_synced_at=last_synced,
            synced_contacts_count=data.get("synced_contacts_count") or 0,
        )


CRM_CONFIGS: dict[CRMType, CRMConfig] = {
    CRMType.HUBSPOT: CRMConfig(
        crm_type=CRMType.HUBSPOT,
        display_name="HubSpot",
        toolkit_slug="hubspot",
        scope=IntegrationScope.CELL,
        side_table="hubspot_contacts",
    ),
    CRMType.SALESFORCE: CRMConfig(
        crm_type=CRMType.SALESFORCE,
        display_name="Salesforce",
        toolkit_slug="salesforce",
        scope=IntegrationScope.GLOBAL,
        side_table="salesforce_contacts",
    ),
    CRMType.ZOHO: CRMConfig(
        crm_type=CRMType.ZOHO,
        display_name="Zoho",
        toolkit_slug="zoho",
        scope=IntegrationScope.GLOBAL,
        side_table="zoho_contacts",
    ),
    CRMType.ATTIO: CRMConfig(
        crm_type=CRMType.ATTIO,
        display_name="Attio",
        toolkit_slug="attio",
        scope=IntegrationScope.GLOBAL,
        side_table="attio_contacts",
    ),
    CRMType.ZENDESK: CRMConfig(
        crm_type=CRMType.ZENDESK,
        display_name="Zendesk",
        toolkit_slug="zendesk",
        scope=IntegrationScope.GLOBAL,
        side_table="zendesk_contacts",
    ),
    CRMType.AGENCYZOOM: CRMConfig(
        crm_type=CRMType.AGENCYZOOM,
        display_name="AgencyZoom",
        toolkit_slug="agencyzoom",
        scope=IntegrationScope.GLOBAL,
        side_table="agencyzoom_contacts",
    ),
    CRMType.DYNAMICS365: CRMConfig(
        crm_type=CRMType.DYNAMICS365,
        display_name="Dynamics 365",
        toolkit_slug="dynamics365",
        scope=IntegrationScope.GLOBAL,
        side_table="dynamics365_contacts",
    ),
}
