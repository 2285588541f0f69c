"""Per-cell contact reconciliation.

Merges freshly fetched CRM contacts into a cell's contact list so that,
for every number a sync touches, the cell ends up with exactly one
``ContactMapping`` stored in E.164 form plus one CRM side record.

Rules, applied per canonical number in CRM fetch order:

* A ``(cell_id, canonical)`` pair is handled at most once per run; the
  first CRM record carrying the number wins for that run.
* Unknown number: insert a mapping, then upsert the side record.
* Known number with several legacy rows: keep the oldest, rewrite it to
  E.164 if needed, delete the rest. Every rewrite and delete counts as
  merged.
* Known number with one row: rewrite it to E.164 if it is not already.
* The side record is updated in place when present, inserted otherwise.

Running the same input twice produces no writes to the mapping table and
zero counters on the second run.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from cellsync.contacts.domain import Cell, ContactCandidate, ContactMapping, ReconcileResult
from cellsync.contacts.phone import normalize_phone

if TYPE_CHECKING:
    from cellsync.db.contact_store import ContactStore

logger = logging.getLogger(__name__)

_NO_TIMESTAMP = datetime.max.replace(tzinfo=UTC)


@dataclass
class MappingIndex:
    """Existing mappings of one cell grouped by canonical number.

    ``groups[key]`` lists every row that normalizes to ``key``, oldest
    first. Rows whose stored number does not normalize are grouped under
    the raw string, so they never collide with a canonical key.
    """

    groups: dict[str, list[ContactMapping]] = field(default_factory=dict)

    def first(self, key: str) -> ContactMapping | None:
        rows = self.groups.get(key)
        return rows[0] if rows else None

    def all(self, key: str) -> list[ContactMapping]:
        return self.groups.get(key, [])


def _created_sort_key(mapping: ContactMapping) -> datetime:
    created = mapping.created_at
    if created is None:
        return _NO_TIMESTAMP
    if created.tzinfo is None:
        return created.replace(tzinfo=UTC)
    return created


def build_mapping_index(mappings: list[ContactMapping], default_country: str) -> MappingIndex:
    """Group a cell's existing mappings by the canonical form of their number.

    Args:
        mappings: Rows of a single cell, in any order.
        default_country: Region hint for rows stored without a country code.

    Returns:
        A MappingIndex whose groups are ordered oldest first (stable for
        equal or missing timestamps).
    """
    index = MappingIndex()
    for mapping in sorted(mappings, key=_created_sort_key):
        key = normalize_phone(mapping.phone_number, default_country) or mapping.phone_number
        index.groups.setdefault(key, []).append(mapping)
    return index


class ContactReconciler:
    """Applies CRM candidates to a cell's contact list.

    Storage access goes through a ContactStore; the reconciler holds no
    state between runs.
    """

    def __init__(self, store: "ContactStore") -> None:
        self.store = store

    async def reconcile(
        self,
        cell: Cell,
        side_table: str,
        existing_mappings: list[ContactMapping],
        candidates: list[ContactCandidate],
        default_country: str,
        seen: set[tuple[str, str]] | None = None,
    ) -> ReconcileResult:
        """Reconcile one cell against a batch of CRM candidates.

        Args:
            cell: The cell being synced; new mappings belong to its owner.
            side_table: CRM side table receiving the record attributes.
            existing_mappings: Current mapping rows of this cell, freshly read.
            candidates: Raw phone candidates in CRM fetch order.
            default_country: Region hint for this cell.
            seen: Within-run set of handled ``(cell_id, canonical)`` pairs,
                shared when one run covers several cells.

        Returns:
            Counters for this cell.

        Raises:
            DatabaseError: If a storage write fails. Earlier writes of the
                run are kept.
        """
        if seen is None:
            seen = set()
        index = build_mapping_index(
            [m for m in existing_mappings if m.cell_id == cell.id], default_country
        )
        result = ReconcileResult()

        for candidate in candidates:
            canonical = normalize_phone(candidate.raw_phone, default_country)
            if canonical is None:
                result.skipped_invalid += 1
                logger.warning(
                    "Could not normalize phone number %r",
                    candidate.raw_phone,
                    extra={
                        "cell_id": cell.id,
                        "external_id": candidate.external_id,
                        "contact_name": candidate.display_name,
                    },
                )
                continue

            key = (cell.id, canonical)
            if key in seen:
                continue
            seen.add(key)

            rows = index.all(canonical)
            if not rows:
                await self.store.insert_mapping(canonical, cell.user_id, cell.id)
                result.inserted += 1
            else:
                result.merged += await self._collapse(rows, canonical)

            await self._upsert_side_record(side_table, canonical, cell.id, candidate, result)

        logger.info(
            "Reconciled cell %s: %d inserted, %d merged, %d invalid",
            cell.id,
            result.inserted,
            result.merged,
            result.skipped_invalid,
            extra={"cell_id": cell.id, "side_table": side_table},
        )
        return result

    async def _collapse(self, rows: list[ContactMapping], canonical: str) -> int:
        """Reduce the rows of one canonical number to the oldest, in E.164 form.

        Returns:
            Number of rows rewritten or deleted.
        """
        keep, duplicates = rows[0], rows[1:]
        touched = 0

        if keep.phone_number != canonical:
            await self.store.update_mapping_phone(keep.id, canonical)
            keep.phone_number = canonical
            touched += 1

        for duplicate in duplicates:
            await self.store.delete_mapping(duplicate.id)
            touched += 1

        if duplicates:
            logger.info(
                "Merged %d duplicate mappings into %s",
                len(duplicates),
                keep.id,
                extra={"cell_id": keep.cell_id, "phone_number": canonical},
            )
            del rows[1:]
        return touched

    async def _upsert_side_record(
        self,
        side_table: str,
        canonical: str,
        cell_id: str,
        candidate: ContactCandidate,
        result: ReconcileResult,
    ) -> None:
        existing = await self.store.get_side_record(side_table, canonical, cell_id)
        if existing is not None:
            await self.store.update_side_record(side_table, existing.id, candidate.attributes)
            result.side_records_updated += 1
        else:
            await self.store.insert_side_record(side_table, canonical, cell_id, candidate.attributes)
            result.side_records_inserted += 1
