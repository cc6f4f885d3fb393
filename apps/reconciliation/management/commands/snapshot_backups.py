"""
Management command to inspect and restore snapshot backups.

Usage:
    python manage.py snapshot_backups list
    python manage.py snapshot_backups create
    python manage.py snapshot_backups restore <backup_id> [--output PATH]
"""

from django.core.management.base import BaseCommand, CommandError

from apps.reconciliation.backup import SnapshotBackupScheduler, list_backups, restore_backup
from apps.reconciliation.exceptions import ReconciliationError, RemoteSnapshotNotFound
from apps.reconciliation.stores import default_local_store, default_remote_store, default_session


class Command(BaseCommand):
    help = 'List, create or restore hourly/daily backups of the remote snapshot'

    def add_arguments(self, parser):
        parser.add_argument('action', choices=['list', 'create', 'restore'])
        parser.add_argument('backup_id', nargs='?', help='Backup to restore (see "list")')
        parser.add_argument('--remote-root', help='Remote store folder')
        parser.add_argument(
            '--output',
            help='File to write the restored dataset to (default: the local snapshot)',
        )

    def handle(self, *args, **options):
        store = default_remote_store(options.get('remote_root'))
        session = default_session()
        action = options['action']

        try:
            if action == 'list':
                self._list(store, session)
            elif action == 'create':
                self._create(store, session)
            else:
                self._restore(store, session, options.get('backup_id'), options.get('output'))
        except ReconciliationError as exc:
            raise CommandError(exc.message)

    def _list(self, store, session):
        backups = list_backups(store, session)
        if not backups:
            self.stdout.write('No backups found')
            return
        self.stdout.write(f'{len(backups)} backups (newest first):')
        for backup in backups:
            size = f'{backup.size} bytes' if backup.size is not None else 'size unknown'
            self.stdout.write(f'  {backup.id}  [{backup.type}]  {backup.timestamp:%Y-%m-%d %H:%M}  {size}')

    def _create(self, store, session):
        try:
            dataset = store.load(session)
        except RemoteSnapshotNotFound:
            raise CommandError('There is no remote snapshot to back up')
        created = SnapshotBackupScheduler(store, session).run(dataset)
        if not created:
            self.stdout.write('Backups for the current hour and day already exist')
        for backup in created:
            self.stdout.write(self.style.SUCCESS(f'Created {backup.name}'))

    def _restore(self, store, session, backup_id, output):
        if not backup_id:
            raise CommandError('restore needs a backup id')
        dataset = restore_backup(store, backup_id, session)
        target = default_local_store(output)
        target.save(dataset)
        self.stdout.write(self.style.SUCCESS(
            f'Restored {backup_id} to {target.path} '
            f'({len(dataset.patients)} patients, {len(dataset.transactions)} transactions)'
        ))
