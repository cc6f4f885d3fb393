"""
Reconciliation Orchestrator

Runs one full reconciliation of the local snapshot against the remote one:

    load local -> load remote -> patients (remap table) -> inventory
    -> patient-linked collections -> id-only collections
    -> write remote + trigger backup (only when something changed)

The merge itself is pure (merge_datasets); the orchestrator owns the I/O
boundary and its failure rules. A failed remote load or save aborts the run
and returns None, so a partial merge is never written. A remote that has no
snapshot yet is not a failure: the local snapshot, with its doctor profile
and unknown top-level keys, becomes the base of the upload and only its
collections are run through the mergers.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from .exceptions import RemoteSnapshotNotFound
from .mergers import merge_by_id, merge_dependents, merge_inventory, merge_patients
from .records import COLLECTION_FIELDS, ID_ONLY_COLLECTIONS, PATIENT_LINKED_COLLECTIONS, Dataset

logger = logging.getLogger(__name__)

LoadLocal = Callable[[], Dataset]
LoadRemote = Callable[[], Dataset]
SaveRemote = Callable[[Dataset], bool]
TriggerBackup = Callable[[Dataset], Any]


@dataclass
class CollectionReport:
    """Counts for a single collection."""
    new_count: int = 0
    duplicate_count: int = 0
    remapped_count: int = 0
    accepted_count: int = 0


def _plural(count: int, singular: str, plural: str) -> str:
    return f"{count} {singular if count == 1 else plural}"


@dataclass
class MergeReport:
    """
    What a reconciliation run did.

    new_items_count, skipped_duplicates and remapped_references are the
    totals a caller needs to tell the user what happened; collections holds
    the per-collection breakdown.
    """
    new_items_count: int = 0
    skipped_duplicates: int = 0
    remapped_references: int = 0
    collections: Dict[str, CollectionReport] = field(default_factory=dict)
    remap: Dict[str, str] = field(default_factory=dict)
    remote_was_missing: bool = False
    remote_written: bool = False

    def add(self, name: str, collection: CollectionReport) -> None:
        self.collections[name] = collection
        self.new_items_count += collection.new_count
        self.skipped_duplicates += collection.duplicate_count
        self.remapped_references += collection.remapped_count

    @property
    def accepted_records(self) -> int:
        return sum(c.accepted_count for c in self.collections.values())

    @property
    def has_changes(self) -> bool:
        """True when the merged dataset differs from the remote one."""
        return (self.new_items_count + self.remapped_references) > 0 or self.accepted_records > 0

    def summary(self) -> str:
        return ", ".join([
            _plural(self.new_items_count, "new record merged", "new records merged"),
            _plural(self.skipped_duplicates, "duplicate skipped", "duplicates skipped"),
            _plural(self.remapped_references, "record relinked", "records relinked"),
        ])

    def to_dict(self) -> Dict[str, Any]:
        return {
            'new_items_count': self.new_items_count,
            'skipped_duplicates': self.skipped_duplicates,
            'remapped_references': self.remapped_references,
            'remote_was_missing': self.remote_was_missing,
            'remote_written': self.remote_written,
            'collections': {
                name: vars(collection).copy() for name, collection in self.collections.items()
            },
        }


@dataclass
class ReconciliationOutcome:
    """The merged dataset and the report describing how it was produced."""
    merged: Dataset
    report: MergeReport


def merge_datasets(remote: Dataset, local: Dataset) -> Tuple[Dataset, MergeReport]:
    """
    Merge two snapshots without any I/O.

    Patients are merged first because every patient-linked collection needs
    the remap table they produce. The remote snapshot is the base of the
    result, so its doctor profile, version and unknown top-level keys are
    kept and the local doctor profile is ignored.
    """
    report = MergeReport()
    updates: Dict[str, Any] = {}

    patients = merge_patients(remote.patients, local.patients)
    updates['patients'] = patients.merged
    report.add('patients', CollectionReport(
        new_count=patients.new_count,
        duplicate_count=patients.duplicate_count,
        accepted_count=patients.new_count,
    ))
    remap = patients.remap.freeze()
    report.remap = dict(remap)

    inventory = merge_inventory(remote.inventory, local.inventory)
    updates['inventory'] = inventory.merged
    report.add('inventory', CollectionReport(
        new_count=inventory.new_count,
        duplicate_count=inventory.duplicate_count,
        accepted_count=inventory.new_count,
    ))

    for name in PATIENT_LINKED_COLLECTIONS:
        result = merge_dependents(remote.collection(name), local.collection(name), remap)
        updates[name] = result.merged
        report.add(name, CollectionReport(
            new_count=result.new_count,
            remapped_count=result.remapped_count,
            accepted_count=result.accepted_count,
        ))

    for name in ID_ONLY_COLLECTIONS:
        result = merge_by_id(remote.collection(name), local.collection(name))
        updates[name] = result.merged
        report.add(name, CollectionReport(new_count=result.new_count, accepted_count=result.accepted_count))

    if remote.version is None and local.version is not None:
        updates['version'] = local.version

    return remote.model_copy(update=updates), report


def _upload_base(local: Dataset) -> Dataset:
    """The local snapshot with every collection emptied."""
    return local.model_copy(update={name: [] for name in COLLECTION_FIELDS})


class ReconciliationOrchestrator:
    """
    Reconciles a local snapshot into the remote store.

    The four collaborators are plain callables so any store can be plugged
    in:
        load_local()          -> Dataset
        load_remote()         -> Dataset, or raises RemoteSnapshotNotFound
        save_remote(dataset)  -> bool
        trigger_backup(dataset), best effort
    """

    def __init__(
        self,
        load_local: LoadLocal,
        load_remote: LoadRemote,
        save_remote: SaveRemote,
        trigger_backup: Optional[TriggerBackup] = None,
    ):
        self.load_local = load_local
        self.load_remote = load_remote
        self.save_remote = save_remote
        self.trigger_backup = trigger_backup

    @classmethod
    def for_stores(cls, local_store, remote_store, session, trigger_backup: Optional[TriggerBackup] = None):
        """Wire an orchestrator to a LocalSnapshotStore and a SnapshotStore sharing one session."""
        return cls(
            load_local=local_store.load,
            load_remote=lambda: remote_store.load(session),
            save_remote=lambda dataset: remote_store.save(dataset, session),
            trigger_backup=trigger_backup,
        )

    def reconcile(self) -> Optional[ReconciliationOutcome]:
        """
        Run one reconciliation.

        Returns:
            ReconciliationOutcome, or None when loading or saving failed
        """
        try:
            local = self.load_local()
        except Exception:
            logger.exception("Failed to load local snapshot, reconciliation aborted")
            return None

        remote_was_missing = False
        try:
            remote = self.load_remote()
        except RemoteSnapshotNotFound as exc:
            logger.info("%s; local data will be uploaded", exc)
            remote = _upload_base(local)
            remote_was_missing = True
        except Exception:
            logger.exception("Failed to load remote snapshot, reconciliation aborted")
            return None

        merged, report = merge_datasets(remote, local)
        report.remote_was_missing = remote_was_missing

        if not (report.has_changes or remote_was_missing):
            logger.info("Reconciliation found nothing new; remote snapshot left untouched")
            return ReconciliationOutcome(merged=merged, report=report)

        logger.info(
            "Reconciliation merged %d new, skipped %d duplicates, remapped %d references",
            report.new_items_count, report.skipped_duplicates, report.remapped_references
        )

        try:
            saved = self.save_remote(merged)
        except Exception:
            logger.exception("Failed to save merged snapshot, reconciliation aborted")
            return None
        if not saved:
            logger.error("Remote store rejected the merged snapshot, reconciliation aborted")
            return None
        report.remote_written = True

        self._trigger_backup(merged)
        return ReconciliationOutcome(merged=merged, report=report)

    def _trigger_backup(self, merged: Dataset) -> None:
        if self.trigger_backup is None:
            return
        try:
            self.trigger_backup(merged)
        except Exception as exc:
            # Merge is already persisted at this point.
            logger.warning("Backup trigger failed after successful reconciliation: %s", exc, exc_info=True)


def reconcile(
    load_local: LoadLocal,
    load_remote: LoadRemote,
    save_remote: SaveRemote,
    trigger_backup: Optional[TriggerBackup] = None,
) -> Optional[ReconciliationOutcome]:
    """Run a single reconciliation with the given collaborators."""
    return ReconciliationOrchestrator(load_local, load_remote, save_remote, trigger_backup).reconcile()
