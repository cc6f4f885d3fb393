"""
Versioned snapshot backups.

Every successful reconciliation write hands the merged dataset to the
backup scheduler, which keeps at most one backup per hour and one per day:

    Backups/backup_hourly_2024-12-06_20.json
    Backups/backup_daily_2024-12-06.json

Labels use UTC. The last label written for each type is kept in the Django
cache, so the throttle survives across worker processes sharing a cache.
Old backups beyond the retention limit of their type are deleted, oldest
first.
"""

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from typing import Callable, List, Optional

from django.core.cache import cache
from django.utils import timezone

from . import conf
from .exceptions import BackupError, RemoteSnapshotNotFound
from .records import Dataset
from .stores import BackupStorage, RemoteSession, StoredFile

logger = logging.getLogger(__name__)

HOURLY = 'hourly'
DAILY = 'daily'
BACKUP_TYPES = (HOURLY, DAILY)


@dataclass
class BackupInfo:
    """One backup file, as shown to a user choosing what to restore."""
    id: str
    name: str
    type: str
    timestamp: datetime
    size: Optional[int] = None

    @classmethod
    def from_stored_file(cls, stored: StoredFile) -> 'BackupInfo':
        return cls(
            id=stored.id,
            name=stored.name,
            type=HOURLY if f'_{HOURLY}_' in stored.name else DAILY,
            timestamp=stored.modified,
            size=stored.size,
        )


def backup_label(backup_type: str, moment: datetime) -> str:
    """YYYY-MM-DD_HH for hourly backups, YYYY-MM-DD for daily ones (UTC)."""
    moment = moment.astimezone(dt_timezone.utc) if moment.tzinfo else moment
    if backup_type == HOURLY:
        return moment.strftime('%Y-%m-%d_%H')
    if backup_type == DAILY:
        return moment.strftime('%Y-%m-%d')
    raise BackupError(f"Unknown backup type: {backup_type}", backup_type=backup_type)


def backup_file_name(backup_type: str, moment: datetime) -> str:
    return f"backup_{backup_type}_{backup_label(backup_type, moment)}.json"


class SnapshotBackupScheduler:
    """
    Creates hourly and daily backups on demand, at most one per label.

    Attributes:
        storage: Where backup files live (usually the remote store itself)
        session: Session used for every storage call
    """

    STATE_PREFIX = "reconciliation_backup"

    def __init__(
        self,
        storage: BackupStorage,
        session: RemoteSession,
        clock: Callable[[], datetime] = timezone.now,
    ):
        self.storage = storage
        self.session = session
        self.clock = clock
        location = str(getattr(storage, 'root', type(storage).__name__))
        self._state_key_base = f"{self.STATE_PREFIX}:{hashlib.sha256(location.encode('utf-8')).hexdigest()[:16]}"

    def _state_key(self, backup_type: str) -> str:
        return f"{self._state_key_base}:last_{backup_type}"

    def last_label(self, backup_type: str) -> Optional[str]:
        return cache.get(self._state_key(backup_type))

    def run(self, dataset: Dataset) -> List[BackupInfo]:
        """
        Back up dataset for every type whose current label has not been written yet.

        Returns the backups created by this call (possibly none).

        Raises:
            RemoteStoreError: A backup file could not be written
        """
        now = self.clock()
        created = []
        for backup_type in BACKUP_TYPES:
            label = backup_label(backup_type, now)
            if self.last_label(backup_type) == label:
                logger.debug("Skipping %s backup, %s already written", backup_type, label)
                continue
            created.append(self.create_backup(dataset, backup_type, now))
            cache.set(self._state_key(backup_type), label, conf.backup_state_timeout())
        return created

    def create_backup(self, dataset: Dataset, backup_type: str, moment: Optional[datetime] = None) -> BackupInfo:
        name = backup_file_name(backup_type, moment or self.clock())
        stored = self.storage.write_backup(name, dataset, self.session)
        logger.info("Created %s backup %s (%d records)", backup_type, name, dataset.record_count())
        self.cleanup_old_backups(backup_type)
        return BackupInfo.from_stored_file(stored)

    def cleanup_old_backups(self, backup_type: str) -> List[str]:
        """Delete the oldest backups of a type beyond its retention limit."""
        keep = conf.max_backups(backup_type)
        prefix = f"backup_{backup_type}_"
        try:
            files = [f for f in self.storage.list_backup_files(self.session) if f.name.startswith(prefix)]
            if len(files) <= keep:
                return []
            files.sort(key=lambda f: (f.modified, f.name))
            expired = files[:len(files) - keep]
            for stored in expired:
                self.storage.delete_backup(stored.id, self.session)
        except Exception as exc:
            logger.error("Failed to clean up old %s backups: %s", backup_type, exc)
            return []

        logger.info("Removed %d expired %s backups", len(expired), backup_type)
        return [stored.id for stored in expired]


def list_backups(storage: BackupStorage, session: RemoteSession) -> List[BackupInfo]:
    """All backups, newest first."""
    backups = [BackupInfo.from_stored_file(f) for f in storage.list_backup_files(session)]
    backups.sort(key=lambda b: (b.timestamp, b.name), reverse=True)
    return backups


def restore_backup(storage: BackupStorage, backup_id: str, session: RemoteSession) -> Dataset:
    """
    Read the dataset held in a backup.

    Raises:
        BackupError: No backup with that id exists
    """
    try:
        dataset = storage.read_backup(backup_id, session)
    except RemoteSnapshotNotFound as exc:
        raise BackupError("Backup not found", backup_id=backup_id) from exc
    logger.info("Restored backup %s (%d patients)", backup_id, len(dataset.patients))
    return dataset
