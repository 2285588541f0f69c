"""Shared test fixtures."""

import os

# Settings are read at import time
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("COMPOSIO_API_KEY", "test-composio-key")

import itertools  # noqa: E402
from datetime import UTC, datetime, timedelta  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402

from cellsync.contacts.domain import Cell, ContactMapping, CrmContactRecord  # noqa: E402

BASE_TIME = datetime(2025, 1, 1, tzinfo=UTC)


class InMemoryContactStore:
    """ContactStore kept in dicts, recording every write."""

    def __init__(self) -> None:
        self.mappings: dict[str, ContactMapping] = {}
        self.side_records: dict[str, dict[str, CrmContactRecord]] = {}
        self.writes: list[tuple[str, Any]] = []
        self._ids = itertools.count(1)
        self._clock = itertools.count(1000)

    def add_mapping(
        self, phone_number: str, cell_id: str, user_id: str = "user-1", minutes: int | None = None
    ) -> ContactMapping:
        """Seed a mapping; ``minutes`` sets created_at relative to BASE_TIME."""
        mapping_id = f"m{next(self._ids)}"
        offset = minutes if minutes is not None else next(self._clock)
        mapping = ContactMapping(
            id=mapping_id,
            phone_number=phone_number,
            user_id=user_id,
            cell_id=cell_id,
            created_at=BASE_TIME + timedelta(minutes=offset),
        )
        self.mappings[mapping_id] = mapping
        return mapping

    def phones(self, cell_id: str) -> list[str]:
        return sorted(m.phone_number for m in self.mappings.values() if m.cell_id == cell_id)

    async def list_mappings(self, cell_ids: list[str]) -> list[ContactMapping]:
        return [
            ContactMapping(**vars(m)) for m in self.mappings.values() if m.cell_id in cell_ids
        ]

    async def insert_mapping(self, phone_number: str, user_id: str, cell_id: str) -> ContactMapping:
        mapping = self.add_mapping(phone_number, cell_id, user_id)
        self.writes.append(("insert_mapping", phone_number))
        return mapping

    async def update_mapping_phone(self, mapping_id: str, phone_number: str) -> None:
        self.mappings[mapping_id].phone_number = phone_number
        self.writes.append(("update_mapping_phone", mapping_id))

    async def delete_mapping(self, mapping_id: str) -> None:
        del self.mappings[mapping_id]
        self.writes.append(("delete_mapping", mapping_id))

    async def get_side_record(
        self, table: str, phone_number: str, cell_id: str
    ) -> CrmContactRecord | None:
        for record in self.side_records.get(table, {}).values():
            if record.phone_number == phone_number and record.cell_id == cell_id:
                return record
        return None

    async def insert_side_record(
        self, table: str, phone_number: str, cell_id: str, attributes: dict[str, Any]
    ) -> CrmContactRecord:
        record = CrmContactRecord(
            id=f"s{next(self._ids)}",
            phone_number=phone_number,
            cell_id=cell_id,
            attributes=dict(attributes),
        )
        self.side_records.setdefault(table, {})[record.id] = record
        self.writes.append(("insert_side_record", phone_number))
        return record

    async def update_side_record(
        self, table: str, record_id: str, attributes: dict[str, Any]
    ) -> None:
        self.side_records[table][record_id].attributes.update(attributes)
        self.writes.append(("update_side_record", record_id))

    def mapping_writes(self) -> list[tuple[str, Any]]:
        return [w for w in self.writes if "mapping" in w[0]]


@pytest.fixture
def store() -> InMemoryContactStore:
    return InMemoryContactStore()


@pytest.fixture
def us_cell() -> Cell:
    return Cell(id="cell-us", user_id="user-1", phone_number="+14155550100", name="US cell")


@pytest.fixture
def fr_cell() -> Cell:
    return Cell(id="cell-fr", user_id="user-1", phone_number="+33142685300", name="FR cell")


@pytest.fixture(autouse=True)
def _close_shared_breakers():
    """Failures recorded by one test must not open the shared breakers for the next."""
    from cellsync.core.circuit_breaker import composio_circuit_breaker, supabase_circuit_breaker

    yield
    supabase_circuit_breaker.record_success()
    composio_circuit_breaker.record_success()
