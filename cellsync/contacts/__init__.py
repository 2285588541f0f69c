"""Phone normalization and per-cell contact reconciliation."""

from cellsync.contacts.domain import (
    Cell,
    ContactCandidate,
    ContactMapping,
    CrmContactRecord,
    ReconcileResult,
)
from cellsync.contacts.phone import default_country_for_cell, normalize_phone, region_of
from cellsync.contacts.reconcile import ContactReconciler, MappingIndex, build_mapping_index

__all__ = [
    "Cell",
    "ContactCandidate",
    "ContactMapping",
    "ContactReconciler",
    "CrmContactRecord",
    "MappingIndex",
    "ReconcileResult",
    "build_mapping_index",
    "default_country_for_cell",
    "normalize_phone",
    "region_of",
]
