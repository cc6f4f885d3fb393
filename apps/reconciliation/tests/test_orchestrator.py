"""
Tests for the reconciliation orchestrator.

The collaborators are mocks or small in-memory fakes so every I/O outcome
(missing remote, unreachable remote, rejected save, failing backup) can be
driven directly.
"""

from unittest.mock import Mock

from django.test import SimpleTestCase

from apps.reconciliation.exceptions import RemoteSnapshotNotFound, RemoteStoreError
from apps.reconciliation.orchestrator import (
    MergeReport,
    ReconciliationOrchestrator,
    merge_datasets,
    reconcile,
)
from apps.reconciliation.records import Dataset
from apps.reconciliation.snapshots import detect_corruption

from .fixtures import dataset


class InMemoryRemote:
    """Remote store fake that records every write."""

    def __init__(self, data=None):
        self.data = data
        self.saves = []

    def load(self):
        if self.data is None:
            raise RemoteSnapshotNotFound('memory://clinic_data.json')
        return self.data

    def save(self, data):
        self.saves.append(data)
        self.data = data
        return True


class ReconcileScenarioTests(SimpleTestCase):

    def run_reconcile(self, local, remote_store, trigger_backup=None):
        return reconcile(lambda: local, remote_store.load, remote_store.save, trigger_backup)

    def test_recreated_patient_relinks_transaction(self):
        remote = InMemoryRemote(dataset(patients=[{'id': 'cloud-1', 'name': 'Alice', 'dob': '1990-01-01'}]))
        local = dataset(
            patients=[{'id': 'local-1', 'name': 'Alice', 'dob': '1990-01-01'}],
            transactions=[{'id': 't1', 'patientId': 'local-1'}],
        )
        backup = Mock()

        outcome = self.run_reconcile(local, remote, backup)

        merged, report = outcome.merged, outcome.report
        self.assertEqual([p.id for p in merged.patients], ['cloud-1'])
        self.assertEqual(report.remap, {'local-1': 'cloud-1'})
        self.assertEqual(merged.transactions[0].patient_id, 'cloud-1')
        self.assertEqual(report.remapped_references, 1)
        self.assertEqual(report.skipped_duplicates, 1)
        self.assertEqual(report.new_items_count, 0)
        self.assertEqual(len(remote.saves), 1)
        self.assertTrue(report.remote_written)
        backup.assert_called_once_with(merged)
        self.assertFalse(detect_corruption(merged).is_corrupted)

    def test_intra_batch_duplicates_against_empty_remote(self):
        remote = InMemoryRemote(Dataset.empty())
        local = dataset(patients=[
            {'id': 'local-1', 'name': 'Budi', 'dob': '1988-08-08'},
            {'id': 'local-2', 'name': 'Budi', 'dob': '1988-08-08'},
        ])

        report = self.run_reconcile(local, remote).report

        self.assertEqual([p.id for p in remote.data.patients], ['local-1'])
        self.assertEqual(report.remap, {'local-2': 'local-1'})
        self.assertEqual(report.new_items_count, 1)
        self.assertEqual(report.skipped_duplicates, 1)

    def test_both_empty_writes_nothing(self):
        remote = InMemoryRemote(Dataset.empty())
        backup = Mock()

        outcome = self.run_reconcile(Dataset.empty(), remote, backup)

        self.assertEqual(outcome.merged.to_json_dict(), Dataset.empty().to_json_dict())
        self.assertEqual(
            (outcome.report.new_items_count, outcome.report.skipped_duplicates, outcome.report.remapped_references),
            (0, 0, 0),
        )
        self.assertEqual(remote.saves, [])
        self.assertFalse(outcome.report.remote_written)
        backup.assert_not_called()

    def test_unreachable_remote_aborts_without_saving(self):
        load_remote = Mock(side_effect=RemoteStoreError('network down', operation='load'))
        save_remote = Mock()

        with self.assertLogs('apps.reconciliation.orchestrator', level='ERROR'):
            outcome = reconcile(lambda: dataset(patients=[{'id': 'p1'}]), load_remote, save_remote, Mock())

        self.assertIsNone(outcome)
        save_remote.assert_not_called()

    def test_second_run_is_a_no_op(self):
        remote = InMemoryRemote(dataset(patients=[{'id': 'cloud-1', 'name': 'Alice', 'dob': '1990-01-01'}]))
        local = dataset(
            patients=[
                {'id': 'local-1', 'name': 'Alice', 'dob': '1990-01-01'},
                {'id': 'local-2', 'name': 'Citra', 'dob': '1995-05-05'},
            ],
            transactions=[{'id': 't1', 'patientId': 'local-1'}, {'id': 't2', 'patientId': 'local-2'}],
            inventory=[{'id': 'i1', 'drugName': 'Amoxicillin', 'batchNumber': 'A1'}],
        )

        first = self.run_reconcile(local, remote)
        snapshot_after_first = remote.data
        second = self.run_reconcile(local, remote)

        self.assertTrue(first.report.remote_written)
        self.assertEqual(second.report.new_items_count, 0)
        self.assertEqual(second.report.remapped_references, 0)
        self.assertFalse(second.report.remote_written)
        self.assertEqual(len(remote.saves), 1)
        self.assertIs(remote.data, snapshot_after_first)
        self.assertEqual(second.merged, snapshot_after_first)


class OrchestratorFailureTests(SimpleTestCase):

    def setUp(self):
        self.local = dataset(patients=[{'id': 'p1', 'name': 'Dewi', 'dob': '2000-02-02'}])

    def test_missing_remote_uploads_local(self):
        remote = InMemoryRemote()
        backup = Mock()

        outcome = reconcile(lambda: self.local, remote.load, remote.save, backup)

        self.assertTrue(outcome.report.remote_was_missing)
        self.assertTrue(outcome.report.remote_written)
        self.assertEqual([p.id for p in remote.data.patients], ['p1'])
        backup.assert_called_once()

    def test_missing_remote_keeps_local_profile_and_extra_keys(self):
        remote = InMemoryRemote()
        local = Dataset.from_json_dict({
            'patients': [{'id': 'p1', 'name': 'Dewi', 'dob': '2000-02-02'}],
            'doctorProfile': {'name': 'Dr. Local'},
            'clinicName': 'Local Clinic',
            'version': '3',
        })

        outcome = reconcile(lambda: local, remote.load, remote.save)

        uploaded = remote.data.to_json_dict()
        self.assertEqual(uploaded['doctorProfile'], {'name': 'Dr. Local'})
        self.assertEqual(uploaded['clinicName'], 'Local Clinic')
        self.assertEqual(uploaded['version'], '3')
        self.assertEqual([p['id'] for p in uploaded['patients']], ['p1'])
        self.assertEqual(outcome.merged.doctor_profile, {'name': 'Dr. Local'})

    def test_missing_remote_with_empty_local_still_creates_remote(self):
        remote = InMemoryRemote()
        outcome = reconcile(Dataset.empty, remote.load, remote.save)
        self.assertEqual(len(remote.saves), 1)
        self.assertTrue(outcome.merged.is_empty())

    def test_rejected_save_returns_none(self):
        backup = Mock()
        outcome = reconcile(lambda: self.local, lambda: Dataset.empty(), lambda data: False, backup)
        self.assertIsNone(outcome)
        backup.assert_not_called()

    def test_save_exception_returns_none(self):
        save_remote = Mock(side_effect=RemoteStoreError('quota exceeded', operation='save'))
        outcome = reconcile(lambda: self.local, lambda: Dataset.empty(), save_remote)
        self.assertIsNone(outcome)

    def test_local_load_failure_returns_none(self):
        load_remote = Mock()
        outcome = reconcile(Mock(side_effect=OSError('disk')), load_remote, Mock())
        self.assertIsNone(outcome)
        load_remote.assert_not_called()

    def test_backup_failure_does_not_fail_reconciliation(self):
        remote = InMemoryRemote(Dataset.empty())
        backup = Mock(side_effect=RuntimeError('broker unavailable'))

        with self.assertLogs('apps.reconciliation.orchestrator', level='WARNING'):
            outcome = reconcile(lambda: self.local, remote.load, remote.save, backup)

        self.assertIsNotNone(outcome)
        self.assertTrue(outcome.report.remote_written)

    def test_local_is_not_mutated(self):
        local = dataset(
            patients=[{'id': 'local-1', 'name': 'Alice', 'dob': '1990-01-01'}],
            transactions=[{'id': 't1', 'patientId': 'local-1'}],
        )
        before = local.to_json_dict()
        remote = InMemoryRemote(dataset(patients=[{'id': 'cloud-1', 'name': 'Alice', 'dob': '1990-01-01'}]))

        reconcile(lambda: local, remote.load, remote.save)

        self.assertEqual(local.to_json_dict(), before)

    def test_for_stores_passes_session(self):
        local_store = Mock()
        local_store.load.return_value = self.local
        remote_store = Mock()
        remote_store.load.return_value = Dataset.empty()
        remote_store.save.return_value = True
        session = object()

        outcome = ReconciliationOrchestrator.for_stores(local_store, remote_store, session).reconcile()

        self.assertTrue(outcome.report.remote_written)
        remote_store.load.assert_called_once_with(session)
        remote_store.save.assert_called_once_with(outcome.merged, session)


class MergeDatasetsTests(SimpleTestCase):

    def test_doctor_profile_comes_from_remote(self):
        remote = dataset(patients=[], doctorProfile={'name': 'Dr. Remote'})
        local = dataset(patients=[{'id': 'p1'}], doctorProfile={'name': 'Dr. Local'})

        merged, _ = merge_datasets(remote, local)

        self.assertEqual(merged.doctor_profile, {'name': 'Dr. Remote'})

    def test_local_doctor_profile_is_ignored_when_remote_has_none(self):
        merged, _ = merge_datasets(Dataset.empty(), dataset(patients=[], doctorProfile={'name': 'Dr. Local'}))
        self.assertIsNone(merged.doctor_profile)
        self.assertNotIn('doctorProfile', merged.to_json_dict())

    def test_all_patient_linked_collections_are_remapped(self):
        remote = dataset(patients=[{'id': 'cloud-1', 'name': 'Eka', 'dob': '1970-01-01'}])
        local = dataset(
            patients=[{'id': 'local-1', 'name': 'eka', 'dob': '1970-01-01'}],
            soapNotes=[{'id': 's1', 'patientId': 'local-1'}],
            informedConsents=[{'id': 'c1', 'patientId': 'local-1'}],
            declinationLetters=[{'id': 'd1', 'patientId': 'local-1'}],
            sickLeaves=[{'id': 'l1', 'patientId': 'local-1'}],
            referralLetters=[{'id': 'r1', 'patientId': 'local-1'}],
            prescriptions=[{'id': 'rx1', 'patientId': 'local-1'}],
            fitnessCertificates=[{'id': 'f1', 'patientId': 'local-1'}],
            triageQueue=[{'id': 'q1', 'patientId': 'local-1'}],
            inventoryTransactions=[{'id': 'm1', 'patientId': 'local-1'}],
        )

        merged, report = merge_datasets(remote, local)

        for name in ('soap_notes', 'informed_consents', 'declination_letters', 'sick_leaves',
                     'referral_letters', 'prescriptions', 'fitness_certificates', 'triage_queue'):
            self.assertEqual(merged.collection(name)[0].patient_id, 'cloud-1', name)
        self.assertEqual(merged.inventory_transactions[0].patientId, 'local-1')
        self.assertEqual(report.remapped_references, 8)

    def test_report_summary(self):
        report = MergeReport()
        report.new_items_count, report.skipped_duplicates, report.remapped_references = 3, 1, 2
        self.assertEqual(report.summary(), '3 new records merged, 1 duplicate skipped, 2 records relinked')
