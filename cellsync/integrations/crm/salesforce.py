"""Salesforce contacts, read with a SOQL query."""

from typing import Any

from cellsync.integrations.crm.base import CRMAdapter
from cellsync.integrations.domain import CRMType

CONTACTS_QUERY = (
    "SELECT Id, FirstName, LastName, Name, Phone, MobilePhone, Email, AccountId, Account.Name "
    "FROM Contact "
    "WHERE (Phone != null OR MobilePhone != null) "
    "ORDER BY LastModifiedDate DESC "
    "LIMIT 1000"
)


class SalesforceAdapter(CRMAdapter):
    crm_type = CRMType.SALESFORCE
    action = "SALESFORCE_QUERY"
    list_keys = ("records",)
    record_id_key = "Id"
    phone_fields = ("Phone", "MobilePhone")

    def fetch_params(self) -> dict[str, Any]:
        return {"q": CONTACTS_QUERY}

    def attributes(self, record: dict[str, Any]) -> dict[str, Any]:
        account = record.get("Account") or {}
        return {
            "salesforce_id": record.get("Id"),
            "first_name": record.get("FirstName"),
            "last_name": record.get("LastName"),
            "email": record.get("Email"),
            "account_id": record.get("AccountId"),
            "account_name": account.get("Name") if isinstance(account, dict) else None,
        }
