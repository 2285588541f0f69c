"""Storage for contact mappings and CRM side records."""

import logging
from datetime import UTC, datetime
from typing import Any, Protocol

from cellsync.contacts.domain import ContactMapping, CrmContactRecord
from cellsync.core.circuit_breaker import CircuitBreakerOpen, supabase_circuit_breaker
from cellsync.core.exceptions import DatabaseError
from cellsync.db.supabase import SupabaseClient

logger = logging.getLogger(__name__)

MAPPINGS_TABLE = "phone_user_mappings"


class ContactStore(Protocol):
    """Storage operations the reconciliation engine needs."""

    async def list_mappings(self, cell_ids: list[str]) -> list[ContactMapping]: ...

    async def insert_mapping(self, phone_number: str, user_id: str, cell_id: str) -> ContactMapping: ...

    async def update_mapping_phone(self, mapping_id: str, phone_number: str) -> None: ...

    async def delete_mapping(self, mapping_id: str) -> None: ...

    async def get_side_record(
        self, table: str, phone_number: str, cell_id: str
    ) -> CrmContactRecord | None: ...

    async def insert_side_record(
        self, table: str, phone_number: str, cell_id: str, attributes: dict[str, Any]
    ) -> CrmContactRecord: ...

    async def update_side_record(
        self, table: str, record_id: str, attributes: dict[str, Any]
    ) -> None: ...


class SupabaseContactStore:
    """ContactStore backed by Supabase tables.

    Every call is a single PostgREST request; there is no transaction
    spanning several calls.
    """

    async def _run(self, operation: str, build: Any) -> Any:
        """Execute a query built by ``build(client)`` under the circuit breaker.

        Raises:
            CircuitBreakerOpen: If Supabase is marked unavailable.
            DatabaseError: If the request fails.
        """
        try:
            client = SupabaseClient.get_client()
            return await supabase_circuit_breaker.call_blocking(lambda: build(client).execute())
        except (CircuitBreakerOpen, DatabaseError):
            raise
        except Exception as e:
            logger.exception("Contact store operation failed", extra={"operation": operation})
            raise DatabaseError(f"Failed to {operation}: {e}") from e

    async def list_mappings(self, cell_ids: list[str]) -> list[ContactMapping]:
        """Read every mapping of the given cells, oldest first."""
        if not cell_ids:
            return []
        response = await self._run(
            "list contact mappings",
            lambda c: c.table(MAPPINGS_TABLE)
            .select("*")
            .in_("cell_id", cell_ids)
            .order("created_at"),
        )
        return [ContactMapping.from_dict(row) for row in response.data or []]

    async def insert_mapping(self, phone_number: str, user_id: str, cell_id: str) -> ContactMapping:
        data = {"phone_number": phone_number, "user_id": user_id, "cell_id": cell_id}
        response = await self._run(
            "insert contact mapping",
            lambda c: c.table(MAPPINGS_TABLE).insert(data),
        )
        if not response.data:
            raise DatabaseError("Failed to insert contact mapping: no data returned")
        return ContactMapping.from_dict(response.data[0])

    async def update_mapping_phone(self, mapping_id: str, phone_number: str) -> None:
        data = {"phone_number": phone_number, "updated_at": datetime.now(UTC).isoformat()}
        await self._run(
            "update contact mapping",
            lambda c: c.table(MAPPINGS_TABLE).update(data).eq("id", mapping_id),
        )

    async def delete_mapping(self, mapping_id: str) -> None:
        await self._run(
            "delete contact mapping",
            lambda c: c.table(MAPPINGS_TABLE).delete().eq("id", mapping_id),
        )

    async def get_side_record(
        self, table: str, phone_number: str, cell_id: str
    ) -> CrmContactRecord | None:
        response = await self._run(
            f"read {table} record",
            lambda c: c.table(table)
            .select("*")
            .eq("phone_number", phone_number)
            .eq("cell_id", cell_id)
            .limit(1),
        )
        if not response.data:
            return None
        return CrmContactRecord.from_dict(response.data[0])

    async def insert_side_record(
        self, table: str, phone_number: str, cell_id: str, attributes: dict[str, Any]
    ) -> CrmContactRecord:
        data = {**attributes, "phone_number": phone_number, "cell_id": cell_id}
        response = await self._run(
            f"insert {table} record",
            lambda c: c.table(table).insert(data),
        )
        if not response.data:
            raise DatabaseError(f"Failed to insert {table} record: no data returned")
        return CrmContactRecord.from_dict(response.data[0])

    async def update_side_record(
        self, table: str, record_id: str, attributes: dict[str, Any]
    ) -> None:
        data = {**attributes, "updated_at": datetime.now(UTC).isoformat()}
        await self._run(
            f"update {table} record",
            lambda c: c.table(table).update(data).eq("id", record_id),
        )
