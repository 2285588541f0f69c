"""Zoho CRM contacts."""

from typing import Any

from cellsync.integrations.crm.base import CRMAdapter, text_or_none
from cellsync.integrations.domain import CRMType


class ZohoAdapter(CRMAdapter):
    crm_type = CRMType.ZOHO
    action = "ZOHO_GET_ZOHO_RECORDS"
    list_keys = ("data",)
    phone_fields = ("Phone", "Mobile")

    def fetch_params(self) -> dict[str, Any]:
        return {
            "module_api_name": "Contacts",
            "fields": "First_Name,Last_Name,Full_Name,Email,Phone,Mobile,Account_Name",
            "per_page": 200,
        }

    def attributes(self, record: dict[str, Any]) -> dict[str, Any]:
        # Account_Name is a lookup object; Company is a plain string on some layouts
        account = record.get("Account_Name")
        company = record.get("Company")
        if not company and isinstance(account, dict):
            company = account.get("name")
        return {
            "zoho_id": text_or_none(record.get("id")),
            "first_name": record.get("First_Name"),
            "last_name": record.get("Last_Name"),
            "email": record.get("Email"),
            "company_name": company,
        }
