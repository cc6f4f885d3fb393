"""
Snapshot inspection utilities.

Helpers for reading dataset files written by the offline client and for
sanity-checking a dataset before or after it is merged:
- Format detection (normal dataset, rescue dump, backup entry)
- Record counts used by the sync-safety gate
- Estimating how recent a snapshot is from the timestamps it contains
- Corruption checks (orphaned references, duplicate ids and identity keys)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone
from typing import Any, Dict, List, Optional, Tuple

from dateutil import parser as dateutil_parser
from pydantic import ValidationError

from .content_keys import inventory_key_for, patient_key_for
from .exceptions import SnapshotFormatError
from .records import COLLECTION_FIELDS, PATIENT_LINKED_COLLECTIONS, Dataset

logger = logging.getLogger(__name__)

FORMAT_NORMAL = 'normal'
FORMAT_RESCUE_DUMP = 'rescue_dump'
FORMAT_BACKUP_ENTRY = 'backup_entry'


def _looks_like_dataset(value: Any) -> bool:
    return isinstance(value, dict) and value.get('patients') is not None


def extract_dataset(parsed: Any, source: Optional[str] = None) -> Tuple[Dataset, str]:
    """
    Pull the dataset out of a parsed snapshot file.

    Three layouts are accepted, checked in this order:
    - rescue dump: {"latest": {...dataset...}, ...}
    - backup entry: {"data": {...dataset...}, ...}
    - the dataset itself, with a "patients" list

    Args:
        parsed: Decoded JSON content
        source: Where the content came from, for error messages

    Returns:
        (dataset, format name)

    Raises:
        SnapshotFormatError: If no dataset can be found or it fails validation
    """
    if not isinstance(parsed, dict):
        raise SnapshotFormatError("Snapshot is not a JSON object", source=source)

    if _looks_like_dataset(parsed.get('latest')):
        payload, layout = parsed['latest'], FORMAT_RESCUE_DUMP
    elif _looks_like_dataset(parsed.get('data')):
        payload, layout = parsed['data'], FORMAT_BACKUP_ENTRY
    elif isinstance(parsed.get('patients'), list):
        payload, layout = parsed, FORMAT_NORMAL
    else:
        raise SnapshotFormatError('Invalid data format: missing "patients" array', source=source)

    if layout != FORMAT_NORMAL:
        logger.info("Detected %s snapshot format%s", layout, f" in {source}" if source else "")

    try:
        return Dataset.from_json_dict(payload), layout
    except ValidationError as exc:
        raise SnapshotFormatError(
            f"Snapshot failed validation: {exc.error_count()} errors",
            source=source,
            details={'errors': exc.errors(include_url=False)[:10]}
        ) from exc


def validate_dataset_shape(parsed: Any) -> bool:
    """True when every collection of the dataset is present as a list."""
    if not isinstance(parsed, dict):
        return False
    probe = Dataset.empty().to_json_dict()
    return all(isinstance(parsed.get(key), list) for key in probe)


@dataclass
class DataStats:
    """Record counts compared by the sync-safety gate."""
    patient_count: int
    transaction_count: int
    inventory_count: int
    last_modified: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'patient_count': self.patient_count,
            'transaction_count': self.transaction_count,
            'inventory_count': self.inventory_count,
            'last_modified': self.last_modified.isoformat() if self.last_modified else None,
        }


def dataset_stats(dataset: Dataset, last_modified: Optional[datetime] = None) -> DataStats:
    return DataStats(
        patient_count=len(dataset.patients),
        transaction_count=len(dataset.transactions),
        inventory_count=len(dataset.inventory),
        last_modified=last_modified,
    )


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = dateutil_parser.isoparse(value)
    except (ValueError, OverflowError, TypeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt_timezone.utc)
    return parsed


def estimate_dataset_timestamp(dataset: Dataset) -> Optional[datetime]:
    """
    Newest timestamp found in the dataset, or None.

    Looks at patient creation, transaction creation and payment, SOAP note
    dates and stock movement dates. Unparseable values are ignored.
    """
    candidates: List[Optional[str]] = []
    candidates.extend(patient.created_at for patient in dataset.patients)
    for transaction in dataset.transactions:
        candidates.append(transaction.created_at)
        candidates.append(transaction.paid_at)
    candidates.extend(note.date for note in dataset.soap_notes)
    candidates.extend(movement.date for movement in dataset.inventory_transactions)

    timestamps = [ts for ts in map(_parse_timestamp, candidates) if ts is not None]
    return max(timestamps) if timestamps else None


@dataclass
class IntegrityReport:
    """Issues found by detect_corruption; empty means the dataset is consistent."""
    issues: List[str] = field(default_factory=list)

    @property
    def is_corrupted(self) -> bool:
        return bool(self.issues)


def _duplicates(values: List[str]) -> List[str]:
    seen, repeated = set(), []
    for value in values:
        if value in seen and value not in repeated:
            repeated.append(value)
        seen.add(value)
    return repeated


def detect_corruption(dataset: Dataset) -> IntegrityReport:
    """
    Check the invariants a merged dataset must satisfy.

    - no duplicate ids inside any collection
    - no two patients with the same name + date of birth key
    - no two inventory items with the same drug + batch key
    - every non-empty patientId of a patient-linked record resolves
    """
    report = IntegrityReport()

    for name in COLLECTION_FIELDS:
        repeated = _duplicates([record.id for record in dataset.collection(name)])
        if repeated:
            report.issues.append(f"Duplicate IDs in {name}: {len(repeated)}")

    if _duplicates([patient_key_for(patient) for patient in dataset.patients]):
        report.issues.append("Duplicate patient identities (name + date of birth)")
    if _duplicates([inventory_key_for(item) for item in dataset.inventory]):
        report.issues.append("Duplicate inventory batches (drug name + batch number)")

    patient_ids = {patient.id for patient in dataset.patients}
    for name in PATIENT_LINKED_COLLECTIONS:
        orphaned = [
            record for record in dataset.collection(name)
            if record.patient_id and record.patient_id not in patient_ids
        ]
        if orphaned:
            report.issues.append(f"{len(orphaned)} orphaned {name} (patient not found)")

    if report.is_corrupted:
        logger.warning("Snapshot integrity issues: %s", "; ".join(report.issues))
    return report
