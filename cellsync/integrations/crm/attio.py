"""Attio people.

Attio stores attributes as lists of typed values under ``values``, and a
person may have any number of phone numbers.
"""

from typing import Any

from cellsync.integrations.crm.base import CRMAdapter, person_name, text_or_none
from cellsync.integrations.domain import CRMType


def _values(record: dict[str, Any], attribute: str) -> list[dict[str, Any]]:
    values = (record.get("values") or {}).get(attribute) or []
    return [value for value in values if isinstance(value, dict)]


def _first(record: dict[str, Any], attribute: str, key: str) -> Any:
    for value in _values(record, attribute):
        if value.get(key):
            return value[key]
    return None


class AttioAdapter(CRMAdapter):
    crm_type = CRMType.ATTIO
    action = "ATTIO_PEOPLE_LIST_PERSONS"
    list_keys = ("data",)

    def fetch_params(self) -> dict[str, Any]:
        return {"limit": 500}

    def raw_phones(self, record: dict[str, Any]) -> list[Any]:
        return [value.get("phone_number") for value in _values(record, "phone_numbers")]

    def external_id(self, record: dict[str, Any]) -> str:
        record_id = record.get("id")
        if isinstance(record_id, dict):
            return (
                text_or_none(record_id.get("record_id"))
                or text_or_none(record_id.get("object_id"))
                or "unknown"
            )
        return text_or_none(record_id) or "unknown"

    def attributes(self, record: dict[str, Any]) -> dict[str, Any]:
        return {
            "attio_id": self.external_id(record),
            "first_name": _first(record, "name", "first_name"),
            "last_name": _first(record, "name", "last_name"),
            "email": _first(record, "email_addresses", "email_address"),
            "job_title": _first(record, "job_title", "value"),
        }

    def display_name(self, record: dict[str, Any]) -> str:
        full_name = text_or_none(_first(record, "name", "full_name"))
        if full_name:
            return full_name
        attrs = self.attributes(record)
        return person_name(attrs["first_name"], attrs["last_name"], attrs["email"])
