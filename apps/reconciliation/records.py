"""
Snapshot record models.

A snapshot is the whole clinic dataset as one JSON document: a set of
record collections plus a doctor profile. These pydantic models give the
mergers typed access to the few fields they care about (ids, the patient
foreign key, the content-key fields) while keeping everything else intact:

- extra='allow' keeps attributes the engine does not know about
- frozen=True makes snapshots immutable values
- camelCase aliases match the JSON written by the offline client

Serialize with Dataset.to_json_dict(), which dumps by alias and leaves out
fields that were never set, so a load/save cycle returns the input JSON.
"""

from typing import Any, Dict, List, Optional, Protocol, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator


class HasId(Protocol):
    """Anything with an id: the minimum a record needs to be merged."""

    @property
    def id(self) -> str: ...


class HasPatientId(HasId, Protocol):
    """A record that may point at a patient through patientId."""

    @property
    def patient_id(self) -> Optional[str]: ...


RecordT = TypeVar('RecordT', bound=HasId)
DependentT = TypeVar('DependentT', bound=HasPatientId)


class SnapshotRecord(BaseModel):
    """Base for every record stored in a snapshot collection."""

    model_config = ConfigDict(extra='allow', frozen=True, populate_by_name=True)

    id: str


class Patient(SnapshotRecord):
    """The hub entity; identity for merging is name + date of birth."""
    name: Optional[str] = None
    dob: Optional[str] = None
    created_at: Optional[str] = Field(default=None, alias='createdAt')


class InventoryItem(SnapshotRecord):
    """A stocked drug batch; identity for merging is drug name + batch number."""
    drug_name: Optional[str] = Field(default=None, alias='drugName')
    generic_name: Optional[str] = Field(default=None, alias='genericName')
    batch_number: Optional[str] = Field(default=None, alias='batchNumber')


class PatientLinkedRecord(SnapshotRecord):
    """A record that may reference a patient; merged by id only."""
    patient_id: Optional[str] = Field(default=None, alias='patientId')


class Transaction(PatientLinkedRecord):
    created_at: Optional[str] = Field(default=None, alias='createdAt')
    paid_at: Optional[str] = Field(default=None, alias='paidAt')


class SoapNote(PatientLinkedRecord):
    date: Optional[str] = None


class InformedConsent(PatientLinkedRecord):
    pass


class DeclinationLetter(PatientLinkedRecord):
    pass


class SickLeave(PatientLinkedRecord):
    pass


class ReferralLetter(PatientLinkedRecord):
    pass


class Prescription(PatientLinkedRecord):
    pass


class FitnessCertificate(PatientLinkedRecord):
    pass


class TriageEntry(PatientLinkedRecord):
    pass


class InventoryTransaction(SnapshotRecord):
    """Stock movement; merged by id only, its patientId is never remapped."""
    date: Optional[str] = None


# Collections whose records point at patients, in merge order.
PATIENT_LINKED_COLLECTIONS = (
    'transactions',
    'soap_notes',
    'informed_consents',
    'declination_letters',
    'sick_leaves',
    'referral_letters',
    'prescriptions',
    'fitness_certificates',
    'triage_queue',
)

# Collections with no foreign key taking part in patient remapping.
ID_ONLY_COLLECTIONS = (
    'inventory_transactions',
)

COLLECTION_FIELDS = ('patients', 'inventory') + PATIENT_LINKED_COLLECTIONS + ID_ONLY_COLLECTIONS


class Dataset(BaseModel):
    """
    One snapshot of the clinic data.

    Missing or null collections read as empty lists. The doctor profile is a
    singleton configuration object and is kept as a plain mapping.
    """

    model_config = ConfigDict(extra='allow', frozen=True, populate_by_name=True)

    patients: List[Patient] = Field(default_factory=list)
    transactions: List[Transaction] = Field(default_factory=list)
    soap_notes: List[SoapNote] = Field(default_factory=list, alias='soapNotes')
    inventory: List[InventoryItem] = Field(default_factory=list)
    inventory_transactions: List[InventoryTransaction] = Field(default_factory=list, alias='inventoryTransactions')
    informed_consents: List[InformedConsent] = Field(default_factory=list, alias='informedConsents')
    declination_letters: List[DeclinationLetter] = Field(default_factory=list, alias='declinationLetters')
    sick_leaves: List[SickLeave] = Field(default_factory=list, alias='sickLeaves')
    referral_letters: List[ReferralLetter] = Field(default_factory=list, alias='referralLetters')
    prescriptions: List[Prescription] = Field(default_factory=list)
    fitness_certificates: List[FitnessCertificate] = Field(default_factory=list, alias='fitnessCertificates')
    triage_queue: List[TriageEntry] = Field(default_factory=list, alias='triageQueue')
    doctor_profile: Optional[Dict[str, Any]] = Field(default=None, alias='doctorProfile')
    version: Optional[str] = None

    @field_validator(*COLLECTION_FIELDS, mode='before')
    @classmethod
    def _missing_collection_is_empty(cls, value):
        return [] if value is None else value

    @classmethod
    def empty(cls, version: Optional[str] = None) -> 'Dataset':
        """The empty dataset shape: every collection present and empty."""
        values: Dict[str, Any] = {name: [] for name in COLLECTION_FIELDS}
        if version is not None:
            values['version'] = version
        return cls(**values)

    @classmethod
    def from_json_dict(cls, data: Dict[str, Any]) -> 'Dataset':
        return cls.model_validate(data)

    def to_json_dict(self) -> Dict[str, Any]:
        """Plain JSON-ready dict using the client's field names."""
        return self.model_dump(mode='json', by_alias=True, exclude_unset=True)

    def collection(self, name: str) -> list:
        return getattr(self, name)

    def record_count(self) -> int:
        return sum(len(self.collection(name)) for name in COLLECTION_FIELDS)

    def is_empty(self) -> bool:
        return self.record_count() == 0
