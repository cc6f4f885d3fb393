"""
Reconciliation settings with their defaults.

Every value can be overridden in the Django settings module (and through
the environment via decouple in clinicsync.settings.base).
"""

from pathlib import Path

from django.conf import settings

DEFAULT_SYNC_MIN_RATIO = 0.8
DEFAULT_LOAD_FROM_REMOTE_RATIO = 1.2
DEFAULT_MAX_HOURLY_BACKUPS = 24
DEFAULT_MAX_DAILY_BACKUPS = 7
DEFAULT_REMOTE_FILENAME = 'clinic_data.json'
BACKUP_FOLDER_NAME = 'Backups'


def remote_root() -> Path:
    return Path(getattr(settings, 'RECONCILIATION_REMOTE_ROOT', Path.cwd() / 'remote_store'))


def remote_filename() -> str:
    return getattr(settings, 'RECONCILIATION_REMOTE_FILENAME', DEFAULT_REMOTE_FILENAME)


def local_snapshot_path() -> Path:
    return Path(getattr(settings, 'RECONCILIATION_LOCAL_SNAPSHOT', Path.cwd() / 'local_data.json'))


def sync_min_ratio() -> float:
    return float(getattr(settings, 'RECONCILIATION_SYNC_MIN_RATIO', DEFAULT_SYNC_MIN_RATIO))


def load_from_remote_ratio() -> float:
    return float(getattr(settings, 'RECONCILIATION_LOAD_FROM_REMOTE_RATIO', DEFAULT_LOAD_FROM_REMOTE_RATIO))


def backup_enabled() -> bool:
    return bool(getattr(settings, 'RECONCILIATION_BACKUP_ENABLED', True))


def max_backups(backup_type: str) -> int:
    if backup_type == 'hourly':
        return int(getattr(settings, 'RECONCILIATION_MAX_HOURLY_BACKUPS', DEFAULT_MAX_HOURLY_BACKUPS))
    return int(getattr(settings, 'RECONCILIATION_MAX_DAILY_BACKUPS', DEFAULT_MAX_DAILY_BACKUPS))


def backup_state_timeout() -> int:
    return int(getattr(settings, 'RECONCILIATION_BACKUP_STATE_TIMEOUT', 3600 * 48))


def remote_access_token() -> str:
    return getattr(settings, 'RECONCILIATION_REMOTE_ACCESS_TOKEN', 'filesystem')


def remote_account() -> str:
    return getattr(settings, 'RECONCILIATION_REMOTE_ACCOUNT', '')
