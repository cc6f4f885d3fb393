"""
Celery tasks for snapshot backups.

The reconciliation orchestrator treats backups as fire-and-forget: it calls
enqueue_snapshot_backup(), which submits create_snapshot_backup to the
snapshot_backups queue and never raises. Retries of a failed backup belong
to the task, not to the reconciliation that triggered it.
"""

import logging
from typing import Any, Dict, List, Optional

from celery import shared_task

from . import conf
from .backup import SnapshotBackupScheduler
from .exceptions import RemoteStoreError
from .records import Dataset
from .stores import default_remote_store, default_session

logger = logging.getLogger(__name__)


@shared_task(bind=True, name="apps.reconciliation.tasks.create_snapshot_backup",
             autoretry_for=(RemoteStoreError,),
             retry_kwargs={'max_retries': 3, 'countdown': 60})
def create_snapshot_backup(self, payload: Dict[str, Any], remote_root: Optional[str] = None) -> List[str]:
    """
    Write the hourly/daily backups due for a merged dataset.

    Args:
        payload: The dataset as produced by Dataset.to_json_dict()
        remote_root: Remote store root; defaults to RECONCILIATION_REMOTE_ROOT

    Returns:
        Names of the backup files created
    """
    task_id = self.request.id
    dataset = Dataset.from_json_dict(payload)
    store = default_remote_store(remote_root)

    logger.info(f"[{task_id}] Running snapshot backup for {store.root}")
    created = SnapshotBackupScheduler(store, default_session()).run(dataset)

    if created:
        logger.info(f"[{task_id}] Snapshot backup created: {', '.join(b.name for b in created)}")
    else:
        logger.info(f"[{task_id}] No snapshot backup due")
    return [backup.name for backup in created]


def enqueue_snapshot_backup(dataset: Dataset, remote_root: Optional[str] = None) -> bool:
    """
    Submit a backup of dataset to the worker queue.

    Returns True when the task was submitted. Submission problems (broker
    down, serialization) are logged and reported as False.
    """
    if not conf.backup_enabled():
        logger.debug("Snapshot backups disabled, skipping")
        return False
    try:
        create_snapshot_backup.delay(dataset.to_json_dict(), str(remote_root) if remote_root else None)
    except Exception as exc:
        logger.error(f"Failed to enqueue snapshot backup: {exc}", exc_info=True)
        return False
    return True
