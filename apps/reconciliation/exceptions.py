"""
Custom Exception Classes for Snapshot Reconciliation

The exception hierarchy separates the failures the reconciliation engine
must tell apart:
- Remote store failures (unreachable, failed upload) that abort a merge
- Session misuse (remote operations without a connected session)
- Snapshot files that are not a dataset in any known format
- Backup failures, which are reported but never fail a reconciliation

A missing remote snapshot is not an error at all: it is signalled with
RemoteSnapshotNotFound, which deliberately sits outside this hierarchy so it
can never be caught and mistaken for a fetch failure.
"""

from typing import Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)


class ReconciliationError(Exception):
    """Base exception for all reconciliation errors."""

    def __init__(self, message: str, error_code: str = None, details: Dict[str, Any] = None):
        """
        Initialize a reconciliation error.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code for categorization
            details: Additional error context and metadata
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or 'RECONCILIATION_ERROR'
        self.details = details or {}

        logger.error(f"{self.__class__.__name__} [{self.error_code}]: {message}", extra={'details': self.details})

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'error_code': self.error_code,
            'details': self.details
        }


class RemoteStoreError(ReconciliationError):
    """Raised when the remote store cannot be read or written."""

    def __init__(self, message: str, operation: str = None, location: str = None, **kwargs):
        details = kwargs.get('details', {})
        if operation:
            details['operation'] = operation
        if location:
            details['location'] = location

        super().__init__(
            message=message,
            error_code=kwargs.get('error_code', 'REMOTE_STORE_ERROR'),
            details=details
        )


class RemoteSessionError(RemoteStoreError):
    """Raised when a remote operation is attempted without a connected session."""

    def __init__(self, message: str = "Remote session is not connected", **kwargs):
        kwargs.setdefault('error_code', 'REMOTE_SESSION_ERROR')
        super().__init__(message, **kwargs)


class SnapshotFormatError(ReconciliationError):
    """Raised when a snapshot file does not contain a recognizable dataset."""

    def __init__(self, message: str, source: Optional[str] = None, **kwargs):
        details = kwargs.get('details', {})
        if source:
            details['source'] = source

        super().__init__(
            message=message,
            error_code='SNAPSHOT_FORMAT_ERROR',
            details=details
        )


class BackupError(ReconciliationError):
    """Raised when a versioned backup cannot be written, listed or restored."""

    def __init__(self, message: str, backup_type: str = None, backup_id: str = None, **kwargs):
        details = kwargs.get('details', {})
        if backup_type:
            details['backup_type'] = backup_type
        if backup_id:
            details['backup_id'] = backup_id

        super().__init__(
            message=message,
            error_code='BACKUP_ERROR',
            details=details
        )


class RemoteSnapshotNotFound(LookupError):
    """The remote store is reachable but holds no dataset yet."""

    def __init__(self, location: str = None):
        self.location = location
        super().__init__(f"No remote snapshot at {location}" if location else "No remote snapshot")
