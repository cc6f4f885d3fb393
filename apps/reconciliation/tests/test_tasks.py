"""
Tests for the snapshot backup Celery task and its enqueue helper.

Celery runs eagerly under the test settings, so .delay() executes the task
in-process.
"""

import shutil
import tempfile
from pathlib import Path
from unittest.mock import patch

from django.core.cache import cache
from django.test import SimpleTestCase, override_settings

from apps.reconciliation.tasks import create_snapshot_backup, enqueue_snapshot_backup

from .fixtures import dataset


class SnapshotBackupTaskTests(SimpleTestCase):

    def setUp(self):
        cache.clear()
        self.tmpdir = Path(tempfile.mkdtemp(prefix='clinicsync-task-'))
        self.addCleanup(shutil.rmtree, self.tmpdir, ignore_errors=True)
        self.data = dataset(patients=[{'id': 'p1', 'name': 'Alice'}])

    def test_task_writes_backups(self):
        result = create_snapshot_backup.apply(args=[self.data.to_json_dict(), str(self.tmpdir)])

        self.assertTrue(result.successful())
        self.assertEqual(len(result.get()), 2)
        self.assertEqual(len(list((self.tmpdir / 'Backups').glob('backup_*.json'))), 2)

    def test_enqueue_runs_task(self):
        self.assertTrue(enqueue_snapshot_backup(self.data, self.tmpdir))
        self.assertTrue((self.tmpdir / 'Backups').is_dir())

    @override_settings(RECONCILIATION_BACKUP_ENABLED=False)
    def test_enqueue_respects_disabled_setting(self):
        with patch('apps.reconciliation.tasks.create_snapshot_backup.delay') as delay:
            self.assertFalse(enqueue_snapshot_backup(self.data, self.tmpdir))
        delay.assert_not_called()

    def test_enqueue_swallows_submission_errors(self):
        with patch('apps.reconciliation.tasks.create_snapshot_backup.delay', side_effect=ConnectionError('broker down')):
            with self.assertLogs('apps.reconciliation.tasks', level='ERROR'):
                self.assertFalse(enqueue_snapshot_backup(self.data, self.tmpdir))
