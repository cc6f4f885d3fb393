"""
Tests for the reconciliation exception hierarchy.
"""

from django.test import SimpleTestCase

from apps.reconciliation.exceptions import (
    BackupError,
    ReconciliationError,
    RemoteSessionError,
    RemoteSnapshotNotFound,
    RemoteStoreError,
    SnapshotFormatError,
)


class ExceptionHierarchyTests(SimpleTestCase):

    def test_remote_store_error_details(self):
        error = RemoteStoreError('Failed to write', operation='save', location='/mnt/drive/clinic_data.json')

        self.assertIsInstance(error, ReconciliationError)
        self.assertEqual(error.to_dict(), {
            'error_type': 'RemoteStoreError',
            'message': 'Failed to write',
            'error_code': 'REMOTE_STORE_ERROR',
            'details': {'operation': 'save', 'location': '/mnt/drive/clinic_data.json'},
        })

    def test_session_error_is_a_store_error(self):
        error = RemoteSessionError()
        self.assertIsInstance(error, RemoteStoreError)
        self.assertEqual(error.error_code, 'REMOTE_SESSION_ERROR')
        self.assertEqual(error.message, 'Remote session is not connected')

    def test_session_error_accepts_error_code(self):
        error = RemoteSessionError('Token expired', error_code='REMOTE_TOKEN_EXPIRED', operation='load')
        self.assertEqual(error.error_code, 'REMOTE_TOKEN_EXPIRED')
        self.assertEqual(error.details, {'operation': 'load'})

    def test_errors_are_logged_on_creation(self):
        with self.assertLogs('apps.reconciliation.exceptions', level='ERROR') as logs:
            BackupError('disk full', backup_type='hourly')
        self.assertIn('BACKUP_ERROR', logs.output[0])

    def test_format_error_source(self):
        error = SnapshotFormatError('bad', source='local.json')
        self.assertEqual(error.details, {'source': 'local.json'})

    def test_not_found_is_outside_the_hierarchy(self):
        self.assertFalse(issubclass(RemoteSnapshotNotFound, ReconciliationError))
        self.assertTrue(issubclass(RemoteSnapshotNotFound, LookupError))
        self.assertIn('clinic_data.json', str(RemoteSnapshotNotFound('/mnt/drive/clinic_data.json')))
