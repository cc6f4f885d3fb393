"""
Snapshot Collection Mergers

Merges one collection of the remote snapshot with the same collection of the
local snapshot. Three flavours share one shape (remote records first and
untouched, then the local records that are genuinely new, in their original
order):

- merge_patients: content-keyed (name + date of birth). Local patients that
  duplicate a surviving patient are dropped and their ids recorded in the
  remap table.
- merge_inventory: content-keyed (drug name + batch number). Duplicates are
  simply dropped; nothing references inventory by foreign key.
- merge_dependents / merge_by_id: id-keyed. Dependent records are never
  re-created by hand, so only their patientId may need redirecting, which
  merge_dependents does with the remap table built by merge_patients.

Like reconciling two copies of a clinic's card index: the same person filed
twice under different numbers is one card, and every slip that referred to
the discarded number gets re-filed under the kept one.

None of these functions raise for data-shape reasons: a missing collection
on either side is an empty list.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Generic, Iterable, List, Mapping, Optional, Set, Tuple

from .content_keys import inventory_key_for, patient_key_for
from .records import DependentT, InventoryItem, Patient, RecordT
from .remap import RemapTable

logger = logging.getLogger(__name__)


@dataclass
class PatientMergeResult:
    """Outcome of merging the patient collection."""
    merged: List[Patient]
    new_count: int = 0
    duplicate_count: int = 0
    remap: RemapTable = field(default_factory=RemapTable)


@dataclass
class ContentMergeResult(Generic[RecordT]):
    """Outcome of a content-keyed merge that needs no remapping."""
    merged: List[RecordT]
    new_count: int = 0
    duplicate_count: int = 0


@dataclass
class DependentMergeResult(Generic[RecordT]):
    """
    Outcome of an id-keyed merge.

    accepted_count is every local record added to the output. new_count only
    counts records added next to existing remote records; a collection the
    remote never held takes the local records wholesale without reporting
    them as new.
    """
    merged: List[RecordT]
    new_count: int = 0
    remapped_count: int = 0
    accepted_count: int = 0


def _merge_by_content(
    remote: Optional[Iterable[RecordT]],
    local: Optional[Iterable[RecordT]],
    key_for: Callable[[RecordT], str],
    on_duplicate: Callable[[RecordT, str], None],
) -> Tuple[List[RecordT], int, int]:
    """
    Single-pass content merge shared by patients and inventory.

    The key lookup starts with every remote record and grows with each
    accepted local record, so duplicates inside the local batch collapse onto
    the first of them, not only onto remote records.

    Returns (merged, new_count, duplicate_count).
    """
    remote_records = list(remote or [])
    local_records = list(local or [])
    if not local_records:
        return remote_records, 0, 0

    surviving_by_key: Dict[str, str] = {}
    for record in remote_records:
        surviving_by_key[key_for(record)] = record.id
    surviving_ids: Set[str] = {record.id for record in remote_records}
    superseded_ids: Set[str] = set()

    accepted: List[RecordT] = []
    duplicate_count = 0

    for record in local_records:
        if record.id in surviving_ids or record.id in superseded_ids:
            # Same record already present or already collapsed; not a new duplicate.
            continue

        key = key_for(record)
        surviving_id = surviving_by_key.get(key)
        if surviving_id is not None:
            on_duplicate(record, surviving_id)
            superseded_ids.add(record.id)
            duplicate_count += 1
            continue

        accepted.append(record)
        surviving_by_key[key] = record.id
        surviving_ids.add(record.id)

    return remote_records + accepted, len(accepted), duplicate_count


def merge_patients(
    remote: Optional[Iterable[Patient]],
    local: Optional[Iterable[Patient]],
) -> PatientMergeResult:
    """
    Merge patient collections, deduplicating by name + date of birth.

    Args:
        remote: Patients from the remote snapshot (kept as-is, first in output)
        local: Patients from the local snapshot, in creation order

    Returns:
        PatientMergeResult whose remap maps every dropped local patient id to
        the id of the patient it duplicates
    """
    remap = RemapTable()

    def record_remap(patient: Patient, surviving_id: str) -> None:
        remap.record(patient.id, surviving_id)
        logger.info("Patient remap: %s -> %s", patient.id, surviving_id)

    merged, new_count, duplicate_count = _merge_by_content(remote, local, patient_key_for, record_remap)

    if new_count or duplicate_count:
        logger.info(
            "Patients merged: %d new, %d duplicates remapped, %d total",
            new_count, duplicate_count, len(merged)
        )
    return PatientMergeResult(merged=merged, new_count=new_count, duplicate_count=duplicate_count, remap=remap)


def merge_inventory(
    remote: Optional[Iterable[InventoryItem]],
    local: Optional[Iterable[InventoryItem]],
) -> ContentMergeResult[InventoryItem]:
    """Merge inventory collections, deduplicating by drug name + batch number."""

    def skip_duplicate(item: InventoryItem, surviving_id: str) -> None:
        logger.info("Skipping duplicate inventory batch %s (kept %s)", item.id, surviving_id)

    merged, new_count, duplicate_count = _merge_by_content(remote, local, inventory_key_for, skip_duplicate)
    return ContentMergeResult(merged=merged, new_count=new_count, duplicate_count=duplicate_count)


def apply_patient_id_remap(
    records: Iterable[DependentT],
    remap: Mapping[str, str],
) -> Tuple[List[DependentT], int]:
    """
    Redirect patientId of each record found in the remap table.

    Returns the (possibly copied) records and how many were redirected.
    """
    result: List[DependentT] = []
    remapped_count = 0
    for record in records:
        patient_id = record.patient_id
        if patient_id and patient_id in remap:
            record = record.model_copy(update={'patient_id': remap[patient_id]})
            remapped_count += 1
        result.append(record)
    return result, remapped_count


def _new_by_id(remote_records: List[RecordT], local_records: List[RecordT]) -> List[RecordT]:
    seen_ids = {record.id for record in remote_records}
    fresh: List[RecordT] = []
    for record in local_records:
        if record.id in seen_ids:
            continue
        seen_ids.add(record.id)
        fresh.append(record)
    return fresh


def merge_dependents(
    remote: Optional[Iterable[DependentT]],
    local: Optional[Iterable[DependentT]],
    remap: Mapping[str, str],
) -> DependentMergeResult[DependentT]:
    """
    Merge a patient-linked collection by id, redirecting stale patient ids.

    The remap table is required: dependent collections can only be merged
    after the patient merge has produced it. Remote records are assumed
    consistent and are never rewritten.
    """
    remote_records = list(remote or [])
    local_records = list(local or [])
    if not local_records:
        return DependentMergeResult(merged=remote_records)

    fresh = _new_by_id(remote_records, local_records)
    fresh, remapped_count = apply_patient_id_remap(fresh, remap)
    return DependentMergeResult(
        merged=remote_records + fresh,
        new_count=len(fresh) if remote_records else 0,
        remapped_count=remapped_count,
        accepted_count=len(fresh),
    )


def merge_by_id(
    remote: Optional[Iterable[RecordT]],
    local: Optional[Iterable[RecordT]],
) -> DependentMergeResult[RecordT]:
    """Merge a collection by id alone; for records with no patient link to fix."""
    remote_records = list(remote or [])
    local_records = list(local or [])
    if not local_records:
        return DependentMergeResult(merged=remote_records)

    fresh = _new_by_id(remote_records, local_records)
    return DependentMergeResult(
        merged=remote_records + fresh,
        new_count=len(fresh) if remote_records else 0,
        accepted_count=len(fresh),
    )
