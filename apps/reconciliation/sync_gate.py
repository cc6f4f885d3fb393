"""
Sync-safety gate.

Guards the raw overwrite path (upload local, replace remote) against a
stale or partly wiped local copy. When local holds clearly less than the
remote store, the overwrite is refused and the caller is expected to run
the reconciliation orchestrator instead.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from . import conf
from .exceptions import RemoteSnapshotNotFound, RemoteStoreError, SnapshotFormatError
from .records import Dataset
from .snapshots import DataStats, dataset_stats
from .stores import RemoteSession, SnapshotStore

logger = logging.getLogger(__name__)


@dataclass
class SyncDecision:
    allow: bool
    local_stats: DataStats
    remote_stats: Optional[DataStats] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'allow': self.allow,
            'reason': self.reason,
            'local_stats': self.local_stats.to_dict(),
            'remote_stats': self.remote_stats.to_dict() if self.remote_stats else None,
        }


@dataclass
class LoadSuggestion:
    load_from_remote: bool
    remote_stats: Optional[DataStats] = None
    reason: Optional[str] = None


def _ratio(local_count: int, remote_count: int) -> float:
    return local_count / remote_count if remote_count > 0 else 1.0


def remote_stats(remote_store: SnapshotStore, session: RemoteSession) -> Optional[DataStats]:
    """
    Record counts of the remote snapshot, or None if it does not exist yet.

    Raises:
        RemoteStoreError: The remote store could not be read
    """
    try:
        remote = remote_store.load(session)
    except RemoteSnapshotNotFound:
        return None
    return dataset_stats(remote, last_modified=remote_store.last_modified(session))


def compare_stats(local_stats: DataStats, remote: Optional[DataStats], min_ratio: Optional[float] = None) -> SyncDecision:
    """Apply the ratio rule to already-collected counts."""
    if remote is None:
        return SyncDecision(allow=True, local_stats=local_stats)

    threshold = conf.sync_min_ratio() if min_ratio is None else min_ratio
    patient_ratio = _ratio(local_stats.patient_count, remote.patient_count)
    transaction_ratio = _ratio(local_stats.transaction_count, remote.transaction_count)

    if patient_ratio < threshold or transaction_ratio < threshold:
        reason = (
            "Local data looks incomplete. "
            f"Local: {local_stats.patient_count} patients, {local_stats.transaction_count} transactions. "
            f"Remote: {remote.patient_count} patients, {remote.transaction_count} transactions. "
            "Overwrite blocked to prevent data loss; reconcile instead."
        )
        logger.warning(
            "Sync blocked: local %d/%d vs remote %d/%d (patients/transactions)",
            local_stats.patient_count, local_stats.transaction_count,
            remote.patient_count, remote.transaction_count
        )
        return SyncDecision(allow=False, local_stats=local_stats, remote_stats=remote, reason=reason)

    return SyncDecision(allow=True, local_stats=local_stats, remote_stats=remote)


def should_allow_sync(local: Dataset, remote_store: SnapshotStore, session: RemoteSession) -> SyncDecision:
    """
    Decide whether local may overwrite the remote snapshot.

    Always allowed when the session is not connected or when the remote
    store holds no snapshot yet. A remote that cannot be read blocks the
    overwrite, since nothing can be compared.
    """
    local_stats = dataset_stats(local)

    if not session.is_connected():
        return SyncDecision(allow=True, local_stats=local_stats)

    try:
        remote = remote_stats(remote_store, session)
    except (RemoteStoreError, SnapshotFormatError) as exc:
        return SyncDecision(
            allow=False,
            local_stats=local_stats,
            reason=f"Remote snapshot could not be read ({exc.message}); overwrite blocked.",
        )

    return compare_stats(local_stats, remote)


def should_load_from_remote(local: Dataset, remote_store: SnapshotStore, session: RemoteSession) -> LoadSuggestion:
    """
    Suggest loading the remote copy when it holds clearly more data than local.

    A remote that cannot be read yields no suggestion.
    """
    if not session.is_connected():
        return LoadSuggestion(load_from_remote=False)

    try:
        remote = remote_stats(remote_store, session)
    except (RemoteStoreError, SnapshotFormatError) as exc:
        logger.warning("Could not read remote stats: %s", exc.message)
        return LoadSuggestion(load_from_remote=False, reason=f"Remote snapshot could not be read ({exc.message}).")
    if remote is None:
        return LoadSuggestion(load_from_remote=False)

    local_stats = dataset_stats(local)
    factor = conf.load_from_remote_ratio()
    if (remote.patient_count > local_stats.patient_count * factor
            or remote.transaction_count > local_stats.transaction_count * factor):
        return LoadSuggestion(
            load_from_remote=True,
            remote_stats=remote,
            reason=(
                f"Remote has more data ({remote.patient_count} patients vs "
                f"{local_stats.patient_count} local). Load from remote?"
            ),
        )
    return LoadSuggestion(load_from_remote=False, remote_stats=remote)
