"""Zendesk users, fetched page by page."""

import logging
from typing import Any

from cellsync.core.config import settings
from cellsync.integrations.crm.base import CRMAdapter, text_or_none
from cellsync.integrations.domain import CRMType

logger = logging.getLogger(__name__)


class ZendeskAdapter(CRMAdapter):
    """Zendesk search results come in pages of at most ``ZENDESK_PAGE_SIZE`` users.

    A short page ends the scan; ``ZENDESK_MAX_PAGES`` bounds it.
    """

    crm_type = CRMType.ZENDESK
    action = "ZENDESK_SEARCH_ZENDESK_USERS"
    list_keys = ("users", "data")
    phone_fields = ("phone",)

    async def fetch_raw_contacts(self, connection_id: str) -> list[dict[str, Any]]:
        per_page = settings.ZENDESK_PAGE_SIZE
        users: list[dict[str, Any]] = []

        for page in range(1, settings.ZENDESK_MAX_PAGES + 1):
            data = await self._execute(
                connection_id, self.action, {"page": page, "per_page": per_page}
            )
            batch = self._unwrap_records(data)
            users.extend(batch)
            if len(batch) < per_page:
                break
        else:
            logger.warning(
                "Reached Zendesk page limit of %d, stopping pagination",
                settings.ZENDESK_MAX_PAGES,
                extra={"connection_id": connection_id},
            )

        return self._with_phones(users)

    def attributes(self, record: dict[str, Any]) -> dict[str, Any]:
        return {
            "zendesk_id": text_or_none(record.get("id")),
            "name": record.get("name"),
            "email": record.get("email"),
            "organization_id": text_or_none(record.get("organization_id")),
        }

    def display_name(self, record: dict[str, Any]) -> str:
        return (
            text_or_none(record.get("name"))
            or text_or_none(record.get("email"))
            or text_or_none(record.get("phone"))
            or f"Zendesk User {self.external_id(record)}"
        )
