"""Base class for CRM contact adapters.

An adapter knows how to pull raw contact records out of one CRM through
Composio and how to turn each record into phone candidates for the
reconciler. Everything CRM-specific lives in the subclasses; storage is
never touched here.
"""

import logging
from typing import Any, ClassVar

from cellsync.contacts.domain import ContactCandidate
from cellsync.integrations.composio_client import ComposioClient, get_composio_client
from cellsync.integrations.domain import CRM_CONFIGS, CRMConfig, CRMType

logger = logging.getLogger(__name__)


class CRMActionError(Exception):
    """A Composio action reported ``successful=False``."""

    def __init__(self, action: str, message: str | None, status_code: int | None = None) -> None:
        self.action = action
        self.status_code = status_code
        self.upstream_message = message or f"{action} failed"
        super().__init__(self.upstream_message)


def text_or_none(value: Any) -> str | None:
    """Stripped string form of a field, None when missing or blank."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class CRMAdapter:
    """Fetches raw records from a CRM and extracts phone candidates.

    Subclasses set ``crm_type``, ``action`` and ``list_keys`` and
    implement the record accessors. ``phone_fields`` lists the record
    fields holding numbers, primary first.
    """

    crm_type: ClassVar[CRMType]
    action: ClassVar[str]
    list_keys: ClassVar[tuple[str, ...]] = ("results", "records", "data", "items")
    record_id_key: ClassVar[str] = "id"
    phone_fields: ClassVar[tuple[str, ...]] = ()

    def __init__(self, composio: ComposioClient | None = None) -> None:
        self.composio = composio or get_composio_client()

    @property
    def config(self) -> CRMConfig:
        return CRM_CONFIGS[self.crm_type]

    def fetch_params(self) -> dict[str, Any]:
        return {}

    async def fetch_raw_contacts(self, connection_id: str) -> list[dict[str, Any]]:
        """Fetch every record of the CRM that carries at least one phone number.

        Raises:
            CRMActionError: If the CRM action fails.
            CircuitBreakerOpen: If Composio is marked unavailable.
        """
        data = await self._execute(connection_id, self.action, self.fetch_params())
        records = self._unwrap_records(data)
        return self._with_phones(records)

    async def _execute(self, connection_id: str, action: str, params: dict[str, Any]) -> Any:
        result = await self.composio.execute_action(connection_id, action, params)
        if not result.get("successful"):
            error = result.get("error")
            logger.error(
                "%s action %s failed: %s",
                self.config.display_name,
                action,
                error,
                extra={"connection_id": connection_id},
            )
            data = result.get("data")
            # Composio wraps provider errors: data["statusCode"]
            status_code = None
            if isinstance(data, dict):
                status_code = data.get("statusCode") or data.get("status_code")
            raise CRMActionError(action, str(error) if error else None, status_code)
        return result.get("data")

    def _unwrap_records(self, data: Any) -> list[dict[str, Any]]:
        """Pull the record list out of an action payload.

        Accepts a bare list, a dict holding the list under one of
        ``list_keys``, or a single record dict.
        """
        if isinstance(data, list):
            return [item for item in data if isinstance(item, dict)]
        if not isinstance(data, dict):
            return []
        for key in self.list_keys:
            value = data.get(key)
            if isinstance(value, list):
                return [item for item in value if isinstance(item, dict)]
        if self.record_id_key in data:
            return [data]
        logger.warning(
            "Unexpected %s response shape",
            self.config.display_name,
            extra={"keys": sorted(data.keys())},
        )
        return []

    def _with_phones(self, records: list[dict[str, Any]]) -> list[dict[str, Any]]:
        with_phones = [record for record in records if self.phones(record)]
        logger.info(
            "Filtered to %d %s records with phone numbers out of %d",
            len(with_phones),
            self.config.display_name,
            len(records),
        )
        return with_phones

    def raw_phones(self, record: dict[str, Any]) -> list[Any]:
        return [record.get(name) for name in self.phone_fields]

    def phones(self, record: dict[str, Any]) -> list[str]:
        """Non-blank phone strings of a record, without textual repeats."""
        phones: list[str] = []
        for value in self.raw_phones(record):
            text = text_or_none(value)
            if text and text not in phones:
                phones.append(text)
        return phones

    def external_id(self, record: dict[str, Any]) -> str:
        return text_or_none(record.get(self.record_id_key)) or "unknown"

    def attributes(self, record: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    def display_name(self, record: dict[str, Any]) -> str:
        attrs = self.attributes(record)
        return person_name(attrs.get("first_name"), attrs.get("last_name"), attrs.get("email"))

    def candidates_for(self, record: dict[str, Any]) -> list[ContactCandidate]:
        """One candidate per distinct phone of the record, primary first."""
        attributes = self.attributes(record)
        external_id = self.external_id(record)
        name = self.display_name(record)
        return [
            ContactCandidate(
                raw_phone=phone,
                attributes=attributes,
                external_id=external_id,
                display_name=name,
            )
            for phone in self.phones(record)
        ]


def person_name(first: Any, last: Any, email: Any = None) -> str:
    """Human-readable contact name for logs."""
    first, last = text_or_none(first), text_or_none(last)
    if first and last:
        return f"{first} {last}"
    return first or last or text_or_none(email) or "Unknown Contact"
