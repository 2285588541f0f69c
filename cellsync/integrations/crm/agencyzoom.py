"""AgencyZoom customers and leads."""

import logging
from typing import Any

from cellsync.integrations.crm.base import CRMActionError, CRMAdapter, text_or_none
from cellsync.integrations.domain import CRMType

logger = logging.getLogger(__name__)

CUSTOMERS_ACTION = "AGENCYZOOM_SEARCH_CUSTOMERS"
LEADS_ACTION = "AGENCYZOOM_SEARCH_LEADS"

# Search that returned a record, stamped on it at fetch time
SOURCE_KEY = "_source_type"
_SOURCE_TYPES = {CUSTOMERS_ACTION: "customer", LEADS_ACTION: "lead"}


class AgencyZoomAdapter(CRMAdapter):
    """Merges customers and leads into one record stream.

    One of the two searches may fail; the sync goes on with the other.
    """

    crm_type = CRMType.AGENCYZOOM
    action = CUSTOMERS_ACTION
    list_keys = ("items", "data", "customers", "leads")
    phone_fields = ("phone", "secondaryPhone")

    async def fetch_raw_contacts(self, connection_id: str) -> list[dict[str, Any]]:
        records: list[dict[str, Any]] = []
        errors: list[CRMActionError] = []

        for action in (CUSTOMERS_ACTION, LEADS_ACTION):
            try:
                data = await self._execute(connection_id, action, {})
            except CRMActionError as e:
                logger.warning(
                    "AgencyZoom %s failed, continuing without it: %s",
                    action,
                    e.upstream_message,
                    extra={"connection_id": connection_id},
                )
                errors.append(e)
                continue
            source = _SOURCE_TYPES[action]
            records.extend({**record, SOURCE_KEY: source} for record in self._unwrap_records(data))

        if len(errors) == 2:
            raise CRMActionError(
                LEADS_ACTION,
                "; ".join(error.upstream_message for error in errors),
            )
        return self._with_phones(records)

    def _unwrap_records(self, data: Any) -> list[dict[str, Any]]:
        if isinstance(data, dict) and not any(key in data for key in self.list_keys):
            if "customerId" in data or "leadId" in data or "id" in data:
                return [data]
        return super()._unwrap_records(data)

    def external_id(self, record: dict[str, Any]) -> str:
        for key in ("customerId", "leadId", "id"):
            value = text_or_none(record.get(key))
            if value:
                return value
        return "unknown"

    def source_type(self, record: dict[str, Any]) -> str:
        """Whether the record is a customer or a lead, by the search that returned it.

        Records built outside ``fetch_raw_contacts`` carry no stamp and
        are classified by their lead-only fields.
        """
        stamped = record.get(SOURCE_KEY)
        if stamped:
            return stamped
        if record.get("leadId") is not None or record.get("isBusiness") is not None:
            return "lead"
        return "customer"

    def attributes(self, record: dict[str, Any]) -> dict[str, Any]:
        return {
            "agencyzoom_id": self.external_id(record),
            "first_name": record.get("firstname"),
            "last_name": record.get("lastname"),
            "email": record.get("email"),
            "company_name": record.get("name"),
            "source_type": self.source_type(record),
        }
