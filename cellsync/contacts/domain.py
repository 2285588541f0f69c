"""Domain models for the contact list and CRM side records."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


def _parse_timestamp(value: Any) -> datetime | None:
    """Parse a PostgREST timestamp (ISO string) into a datetime."""
    if value is None or isinstance(value, datetime):
        return value
    # PostgREST emits "Z" for UTC
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass
class Cell:
    """Tenant partition: one SMS agent and its contact list."""

    id: str
    user_id: str
    phone_number: str | None = None
    name: str | None = None
    org_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Cell":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            phone_number=data.get("phone_number"),
            name=data.get("name"),
            org_id=data.get("org_id"),
        )


@dataclass
class ContactMapping:
    """Row binding a phone number to a cell and its owner.

    ``phone_number`` should be E.164 but legacy rows may hold whatever
    string an older sync wrote.
    """

    id: str
    phone_number: str
    user_id: str
    cell_id: str
    created_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ContactMapping":
        return cls(
            id=str(data["id"]),
            phone_number=data["phone_number"],
            user_id=data["user_id"],
            cell_id=data["cell_id"],
            created_at=_parse_timestamp(data.get("created_at")),
        )


@dataclass
class CrmContactRecord:
    """CRM-specific attributes for one ``(phone_number, cell_id)`` pair.

    Lives in a per-CRM side table (``hubspot_contacts``,
    ``salesforce_contacts`` ...). ``attributes`` holds the CRM-specific
    columns.
    """

    id: str
    phone_number: str
    cell_id: str
    attributes: dict[str, Any] = field(default_factory=dict)
    updated_at: datetime | None = None

    _BASE_COLUMNS = frozenset({"id", "phone_number", "cell_id", "created_at", "updated_at"})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CrmContactRecord":
        return cls(
            id=str(data["id"]),
            phone_number=data["phone_number"],
            cell_id=data["cell_id"],
            attributes={k: v for k, v in data.items() if k not in cls._BASE_COLUMNS},
            updated_at=_parse_timestamp(data.get("updated_at")),
        )


@dataclass
class ContactCandidate:
    """One raw phone number pulled from a CRM record, with the record's data.

    A record with a primary and a mobile number yields two candidates
    sharing the same ``attributes``.
    """

    raw_phone: str
    attributes: dict[str, Any]
    external_id: str
    display_name: str


@dataclass
class ReconcileResult:
    """Counters for one reconciliation run."""

    inserted: int = 0
    merged: int = 0
    skipped_invalid: int = 0
    side_records_inserted: int = 0
    side_records_updated: int = 0

    def __add__(self, other: "ReconcileResult") -> "ReconcileResult":
        return ReconcileResult(
            inserted=self.inserted + other.inserted,
            merged=self.merged + other.merged,
            skipped_invalid=self.skipped_invalid + other.skipped_invalid,
            side_records_inserted=self.side_records_inserted + other.side_records_inserted,
            side_records_updated=self.side_records_updated + other.side_records_updated,
        )
