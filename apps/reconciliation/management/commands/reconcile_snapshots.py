"""
Management command to reconcile the local snapshot into the remote store.

Runs the sync-safety gate, then the reconciliation orchestrator, and prints
the merge report.

Usage:
    python manage.py reconcile_snapshots [--local PATH] [--remote-root PATH]
                                         [--no-backup] [--check-only]
                                         [--write-local] [--create-remote]

Options:
    --local          Local snapshot file (default: RECONCILIATION_LOCAL_SNAPSHOT)
    --remote-root    Remote store folder (default: RECONCILIATION_REMOTE_ROOT)
    --no-backup      Do not enqueue a backup after writing the remote snapshot
    --check-only     Only report what the sync-safety gate decides
    --write-local    Save the merged dataset back to the local snapshot file
    --create-remote  Create the remote folder if it does not exist
"""

from django.core.management.base import BaseCommand, CommandError

from apps.reconciliation.exceptions import ReconciliationError
from apps.reconciliation.orchestrator import ReconciliationOrchestrator
from apps.reconciliation.snapshots import detect_corruption
from apps.reconciliation.stores import default_local_store, default_remote_store, default_session
from apps.reconciliation.sync_gate import should_allow_sync
from apps.reconciliation.tasks import enqueue_snapshot_backup


class Command(BaseCommand):
    help = 'Merge the local snapshot into the remote snapshot without losing or duplicating records'

    def add_arguments(self, parser):
        parser.add_argument('--local', help='Local snapshot file')
        parser.add_argument('--remote-root', help='Remote store folder')
        parser.add_argument(
            '--no-backup',
            action='store_true',
            help='Skip the backup after a remote write',
        )
        parser.add_argument(
            '--check-only',
            action='store_true',
            help='Only run the sync-safety gate',
        )
        parser.add_argument(
            '--write-local',
            action='store_true',
            help='Save the merged dataset back to the local snapshot',
        )
        parser.add_argument(
            '--create-remote',
            action='store_true',
            help='Create the remote folder if it is missing',
        )

    def handle(self, *args, **options):
        local_store = default_local_store(options.get('local'))
        remote_store = default_remote_store(
            options.get('remote_root'),
            create_missing_root=options.get('create_remote', False),
        )
        session = default_session()
        if not session.is_connected():
            raise CommandError('Remote session is not configured (RECONCILIATION_REMOTE_ACCESS_TOKEN is empty)')

        try:
            local = local_store.load()
        except ReconciliationError as exc:
            raise CommandError(f'Cannot read local snapshot: {exc.message}')

        self.stdout.write(f'Local snapshot: {local_store.path} ({local.record_count()} records)')
        self.stdout.write(f'Remote snapshot: {remote_store.data_path}')

        for issue in detect_corruption(local).issues:
            self.stdout.write(self.style.WARNING(f'  Local integrity: {issue}'))

        decision = should_allow_sync(local, remote_store, session)
        if decision.allow:
            self.stdout.write(self.style.SUCCESS('Sync gate: a plain overwrite would be allowed'))
        else:
            self.stdout.write(self.style.WARNING(f'Sync gate: {decision.reason}'))

        if options.get('check_only'):
            return

        trigger_backup = None
        if not options.get('no_backup'):
            def trigger_backup(dataset):
                enqueue_snapshot_backup(dataset, remote_store.root)

        orchestrator = ReconciliationOrchestrator(
            load_local=lambda: local,
            load_remote=lambda: remote_store.load(session),
            save_remote=lambda dataset: remote_store.save(dataset, session),
            trigger_backup=trigger_backup,
        )
        outcome = orchestrator.reconcile()
        if outcome is None:
            raise CommandError('Reconciliation failed; the remote snapshot was not changed')

        report = outcome.report
        self.stdout.write(self.style.SUCCESS(report.summary()))
        if report.remote_was_missing:
            self.stdout.write('No remote snapshot existed; local data was uploaded')
        if report.remote_written:
            self.stdout.write(self.style.SUCCESS('Remote snapshot updated'))
        else:
            self.stdout.write('Remote snapshot already up to date')

        for issue in detect_corruption(outcome.merged).issues:
            self.stdout.write(self.style.WARNING(f'  Merged integrity: {issue}'))

        if options.get('write_local'):
            local_store.save(outcome.merged)
            self.stdout.write(f'Merged dataset saved to {local_store.path}')
