"""HubSpot contacts."""

from typing import Any

from cellsync.integrations.crm.base import CRMAdapter, text_or_none
from cellsync.integrations.domain import CRMType


class HubSpotAdapter(CRMAdapter):
    """HubSpot keeps every field under ``properties``."""

    crm_type = CRMType.HUBSPOT
    action = "HUBSPOT_LIST_CONTACTS"
    list_keys = ("results",)
    phone_fields = ("phone", "mobilephone")

    def fetch_params(self) -> dict[str, Any]:
        return {
            "properties": [
                "firstname",
                "lastname",
                "email",
                "phone",
                "mobilephone",
                "company",
                "associatedcompanyid",
            ],
            "limit": 100,  # API maximum
        }

    def raw_phones(self, record: dict[str, Any]) -> list[Any]:
        properties = record.get("properties") or {}
        return [properties.get(name) for name in self.phone_fields]

    def attributes(self, record: dict[str, Any]) -> dict[str, Any]:
        properties = record.get("properties") or {}
        return {
            "hubspot_id": text_or_none(record.get("id")),
            "first_name": properties.get("firstname"),
            "last_name": properties.get("lastname"),
            "email": properties.get("email"),
            "company_id": text_or_none(properties.get("associatedcompanyid")),
            "company_name": properties.get("company"),
        }
