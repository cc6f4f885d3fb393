"""
Content keys for identity-based deduplication.

Two records created independently (for example after the local store was
cleared and a patient was typed in again) get different ids but describe
the same real-world thing. These keys are how the mergers recognise them:

    patient:    lower(strip(name)) + "|" + date_of_birth
    inventory:  lower(strip(drug_name)) + "|" + batch_number

Only the name part is normalized; the date of birth and batch number are
compared exactly. Missing values count as empty strings, so two records
with no name and no date of birth share the key "|" and are treated as
duplicates of each other.
"""

from typing import Any, Optional

KEY_SEPARATOR = '|'


def _normalize(value: Optional[str]) -> str:
    return (value or '').strip().lower()


def patient_key(name: Optional[str] = None, dob: Optional[str] = None) -> str:
    """Identity key for a patient: normalized name plus date of birth."""
    return f"{_normalize(name)}{KEY_SEPARATOR}{dob or ''}"


def inventory_key(drug_name: Optional[str] = None, batch_number: Optional[str] = None) -> str:
    """Identity key for an inventory batch: normalized drug name plus batch number."""
    return f"{_normalize(drug_name)}{KEY_SEPARATOR}{batch_number or ''}"


def _field(record: Any, *names: str) -> Optional[str]:
    # Records may be snapshot models (unknown fields become attributes) or plain dicts.
    for name in names:
        if isinstance(record, dict):
            value = record.get(name)
        else:
            value = getattr(record, name, None)
        if value:
            return value
    return None


def patient_key_for(record: Any) -> str:
    """
    Patient key of a record.

    Accepts the current field names (name, dob) and the legacy spellings
    (fullName, dateOfBirth) still found in older data files.
    """
    return patient_key(
        _field(record, 'name', 'fullName', 'full_name'),
        _field(record, 'dob', 'dateOfBirth', 'date_of_birth'),
    )


def inventory_key_for(record: Any) -> str:
    """Inventory key of a record; falls back to genericName when drugName is missing."""
    return inventory_key(
        _field(record, 'drugName', 'drug_name', 'genericName', 'generic_name'),
        _field(record, 'batchNumber', 'batch_number'),
    )
