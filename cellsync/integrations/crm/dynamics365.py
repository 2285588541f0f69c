"""Microsoft Dynamics 365 leads."""

from typing import Any

from cellsync.integrations.crm.base import CRMAdapter, text_or_none
from cellsync.integrations.domain import CRMType


class Dynamics365Adapter(CRMAdapter):
    crm_type = CRMType.DYNAMICS365
    action = "DYNAMICS365_DYNAMICSCRM_GET_ALL_LEADS"
    list_keys = ("value", "results")  # OData wraps collections in "value"
    record_id_key = "leadid"
    phone_fields = ("telephone1",)

    def fetch_params(self) -> dict[str, Any]:
        return {
            "select": "leadid,firstname,lastname,fullname,emailaddress1,telephone1,companyname",
            "top": 1000,
        }

    def attributes(self, record: dict[str, Any]) -> dict[str, Any]:
        return {
            "dynamics365_id": record.get("leadid"),
            "first_name": record.get("firstname"),
            "last_name": record.get("lastname"),
            "email": record.get("emailaddress1"),
            "company_name": record.get("companyname"),
        }

    def display_name(self, record: dict[str, Any]) -> str:
        return text_or_none(record.get("fullname")) or super().display_name(record)
