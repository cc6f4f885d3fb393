"""
Snapshot stores.

The reconciliation engine only needs four capabilities from the outside
world: load the local snapshot, load the remote snapshot, save the remote
snapshot, and (for backups) keep versioned copies next to it. This module
defines those interfaces and the file-system implementations used by the
management commands and the backup task.

Remote access goes through an explicit RemoteSession instead of
process-wide token state: a store refuses to touch remote data unless the
session handed to it is connected.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from pathlib import Path
from typing import List, Optional

from . import conf
from .exceptions import RemoteSessionError, RemoteSnapshotNotFound, RemoteStoreError, SnapshotFormatError
from .records import Dataset
from .snapshots import extract_dataset

logger = logging.getLogger(__name__)


class RemoteSession:
    """
    Connection state for one remote account.

    Holds the credentials a transport needs and exposes an explicit
    connect / is_connected / disconnect lifecycle.
    """

    def __init__(self, access_token: Optional[str] = None, account: Optional[str] = None):
        self.access_token = access_token
        self.account = account
        self.connected_at: Optional[datetime] = datetime.now(dt_timezone.utc) if access_token else None

    def connect(self, access_token: str, account: Optional[str] = None) -> 'RemoteSession':
        if not access_token:
            raise RemoteSessionError("Cannot connect without an access token")
        self.access_token = access_token
        self.account = account or self.account
        self.connected_at = datetime.now(dt_timezone.utc)
        logger.info("Remote session connected%s", f" for {self.account}" if self.account else "")
        return self

    def is_connected(self) -> bool:
        return bool(self.access_token)

    def disconnect(self) -> None:
        self.access_token = None
        self.connected_at = None
        logger.info("Remote session disconnected")

    def require_connected(self) -> None:
        if not self.is_connected():
            raise RemoteSessionError()


@dataclass
class StoredFile:
    """A file held by a backup-capable store."""
    id: str
    name: str
    modified: datetime
    size: Optional[int] = None


def _decode_snapshot(raw: bytes, source: str) -> Dataset:
    try:
        text = raw.decode('utf-8')
    except UnicodeDecodeError as exc:
        raise SnapshotFormatError(f"Snapshot is not UTF-8 text: {exc.reason}", source=source) from exc
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SnapshotFormatError(f"Invalid JSON: {exc.msg}", source=source) from exc
    dataset, _layout = extract_dataset(parsed, source=source)
    return dataset


def _encode_snapshot(dataset: Dataset) -> str:
    return json.dumps(dataset.to_json_dict(), indent=2, ensure_ascii=False)


def _write_atomically(path: Path, content: str) -> None:
    # Write beside the target then rename, so readers never see half a file.
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix='.tmp')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as handle:
            handle.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class LocalSnapshotStore(ABC):
    """Where the offline client keeps its copy of the dataset."""

    @abstractmethod
    def load(self) -> Dataset:
        """Return the local dataset, or the empty dataset if nothing was saved yet."""

    @abstractmethod
    def save(self, dataset: Dataset) -> None:
        """Replace the local dataset."""


class SnapshotStore(ABC):
    """The shared remote copy of the dataset."""

    @abstractmethod
    def load(self, session: RemoteSession) -> Dataset:
        """
        Return the remote dataset.

        Raises:
            RemoteSnapshotNotFound: The store is reachable but holds no dataset yet
            RemoteStoreError: The store could not be read
        """

    @abstractmethod
    def save(self, dataset: Dataset, session: RemoteSession) -> bool:
        """Overwrite the remote dataset. Returns True on success."""

    def last_modified(self, session: RemoteSession) -> Optional[datetime]:
        return None


class BackupStorage(ABC):
    """Versioned copies kept next to the remote dataset."""

    @abstractmethod
    def write_backup(self, name: str, dataset: Dataset, session: RemoteSession) -> StoredFile:
        ...

    @abstractmethod
    def list_backup_files(self, session: RemoteSession) -> List[StoredFile]:
        ...

    @abstractmethod
    def read_backup(self, backup_id: str, session: RemoteSession) -> Dataset:
        ...

    @abstractmethod
    def delete_backup(self, backup_id: str, session: RemoteSession) -> None:
        ...


class JsonFileLocalStore(LocalSnapshotStore):
    """Local snapshot kept in a single JSON file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Dataset:
        if not self.path.exists():
            logger.info("No local snapshot at %s, starting from an empty dataset", self.path)
            return Dataset.empty()
        return _decode_snapshot(self.path.read_bytes(), str(self.path))

    def save(self, dataset: Dataset) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        _write_atomically(self.path, _encode_snapshot(dataset))
        logger.info("Local snapshot saved to %s", self.path)


class FileSystemSnapshotStore(SnapshotStore, BackupStorage):
    """
    Remote store backed by a folder (for example a synced drive mount).

    Layout:
        <root>/<filename>                 the shared dataset
        <root>/Backups/backup_*.json      versioned backups

    A missing root folder means the drive is unreachable and is reported as
    RemoteStoreError; a missing dataset file inside an existing root means
    nothing has been uploaded yet (RemoteSnapshotNotFound). Pass
    create_missing_root=True to create the root on first use instead.
    """

    def __init__(self, root: Path, filename: str = 'clinic_data.json', create_missing_root: bool = False):
        self.root = Path(root)
        self.filename = filename
        self.create_missing_root = create_missing_root

    @property
    def data_path(self) -> Path:
        return self.root / self.filename

    @property
    def backup_dir(self) -> Path:
        return self.root / conf.BACKUP_FOLDER_NAME

    def _check_reachable(self, session: RemoteSession, operation: str) -> None:
        session.require_connected()
        if self.create_missing_root:
            try:
                self.root.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise RemoteStoreError(
                    f"Cannot create remote root: {exc}", operation=operation, location=str(self.root)
                ) from exc
        if not self.root.is_dir():
            raise RemoteStoreError("Remote store is unreachable", operation=operation, location=str(self.root))

    def load(self, session: RemoteSession) -> Dataset:
        self._check_reachable(session, 'load')
        if not self.data_path.exists():
            raise RemoteSnapshotNotFound(str(self.data_path))
        try:
            raw = self.data_path.read_bytes()
        except OSError as exc:
            raise RemoteStoreError(
                f"Failed to read remote snapshot: {exc}", operation='load', location=str(self.data_path)
            ) from exc
        return _decode_snapshot(raw, str(self.data_path))

    def save(self, dataset: Dataset, session: RemoteSession) -> bool:
        self._check_reachable(session, 'save')
        try:
            _write_atomically(self.data_path, _encode_snapshot(dataset))
        except OSError as exc:
            raise RemoteStoreError(
                f"Failed to write remote snapshot: {exc}", operation='save', location=str(self.data_path)
            ) from exc
        logger.info("Remote snapshot saved to %s (%d records)", self.data_path, dataset.record_count())
        return True

    def last_modified(self, session: RemoteSession) -> Optional[datetime]:
        self._check_reachable(session, 'stat')
        if not self.data_path.exists():
            return None
        return datetime.fromtimestamp(self.data_path.stat().st_mtime, tz=dt_timezone.utc)

    def _backup_path(self, backup_id: str) -> Path:
        # Backup ids are bare file names; anything path-like is rejected.
        if Path(backup_id).name != backup_id or not backup_id.startswith('backup_'):
            raise RemoteStoreError(f"Invalid backup id: {backup_id!r}", operation='backup')
        return self.backup_dir / backup_id

    def _stored_file(self, path: Path) -> StoredFile:
        stat = path.stat()
        return StoredFile(
            id=path.name,
            name=path.name,
            modified=datetime.fromtimestamp(stat.st_mtime, tz=dt_timezone.utc),
            size=stat.st_size,
        )

    def write_backup(self, name: str, dataset: Dataset, session: RemoteSession) -> StoredFile:
        self._check_reachable(session, 'backup')
        path = self._backup_path(name)
        try:
            self.backup_dir.mkdir(exist_ok=True)
            _write_atomically(path, _encode_snapshot(dataset))
        except OSError as exc:
            raise RemoteStoreError(
                f"Failed to write backup: {exc}", operation='backup', location=str(path)
            ) from exc
        return self._stored_file(path)

    def list_backup_files(self, session: RemoteSession) -> List[StoredFile]:
        self._check_reachable(session, 'list_backups')
        if not self.backup_dir.is_dir():
            return []
        return [
            self._stored_file(path)
            for path in self.backup_dir.glob('backup_*.json')
            if path.is_file()
        ]

    def read_backup(self, backup_id: str, session: RemoteSession) -> Dataset:
        self._check_reachable(session, 'restore')
        path = self._backup_path(backup_id)
        try:
            raw = path.read_bytes()
        except FileNotFoundError as exc:
            raise RemoteSnapshotNotFound(str(path)) from exc
        except OSError as exc:
            raise RemoteStoreError(
                f"Failed to read backup: {exc}", operation='restore', location=str(path)
            ) from exc
        return _decode_snapshot(raw, str(path))

    def delete_backup(self, backup_id: str, session: RemoteSession) -> None:
        self._check_reachable(session, 'delete_backup')
        path = self._backup_path(backup_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise RemoteStoreError(
                f"Failed to delete backup: {exc}", operation='delete_backup', location=str(path)
            ) from exc


def default_session() -> RemoteSession:
    """Session built from the RECONCILIATION_REMOTE_* settings."""
    return RemoteSession(
        access_token=conf.remote_access_token() or None,
        account=conf.remote_account() or None,
    )


def default_remote_store(root: Optional[Path] = None, create_missing_root: bool = False) -> FileSystemSnapshotStore:
    return FileSystemSnapshotStore(
        root or conf.remote_root(),
        filename=conf.remote_filename(),
        create_missing_root=create_missing_root,
    )


def default_local_store(path: Optional[Path] = None) -> JsonFileLocalStore:
    return JsonFileLocalStore(path or conf.local_snapshot_path())
