"""CRM adapters, one per supported CRM."""

from cellsync.integrations.composio_client import ComposioClient
from cellsync.integrations.crm.agencyzoom import AgencyZoomAdapter
from cellsync.integrations.crm.attio import AttioAdapter
from cellsync.integrations.crm.base import CRMActionError, CRMAdapter
from cellsync.integrations.crm.dynamics365 import Dynamics365Adapter
from cellsync.integrations.crm.hubspot import HubSpotAdapter
from cellsync.integrations.crm.salesforce import SalesforceAdapter
from cellsync.integrations.crm.zendesk import ZendeskAdapter
from cellsync.integrations.crm.zoho import ZohoAdapter
from cellsync.integrations.domain import CRMType

ADAPTERS: dict[CRMType, type[CRMAdapter]] = {
    CRMType.HUBSPOT: HubSpotAdapter,
    CRMType.SALESFORCE: SalesforceAdapter,
    CRMType.ZOHO: ZohoAdapter,
    CRMType.ATTIO: AttioAdapter,
    CRMType.ZENDESK: ZendeskAdapter,
    CRMType.AGENCYZOOM: AgencyZoomAdapter,
    CRMType.DYNAMICS365: Dynamics365Adapter,
}


def get_adapter(crm_type: CRMType, composio: ComposioClient | None = None) -> CRMAdapter:
    """Instantiate the adapter for a CRM."""
    return ADAPTERS[crm_type](composio)


__all__ = [
    "ADAPTERS",
    "AgencyZoomAdapter",
    "AttioAdapter",
    "CRMActionError",
    "CRMAdapter",
    "Dynamics365Adapter",
    "HubSpotAdapter",
    "SalesforceAdapter",
    "ZendeskAdapter",
    "ZohoAdapter",
    "get_adapter",
]
