"""
Shared builders for reconciliation tests.

Records are built from plain dicts in the client's JSON spelling, the same
way they arrive from a snapshot file.
"""

from apps.reconciliation.records import Dataset, InventoryItem, Patient, Transaction


def patient(patient_id, name='Alice', dob='1990-01-01', **extra):
    return Patient.model_validate({'id': patient_id, 'name': name, 'dob': dob, **extra})


def inventory_item(item_id, drug_name='Vitamin C', batch_number='B001', **extra):
    return InventoryItem.model_validate({'id': item_id, 'drugName': drug_name, 'batchNumber': batch_number, **extra})


def transaction(transaction_id, patient_id=None, **extra):
    data = {'id': transaction_id, **extra}
    if patient_id is not None:
        data['patientId'] = patient_id
    return Transaction.model_validate(data)


def dataset(**collections):
    """Dataset from JSON-style keyword arguments, e.g. dataset(patients=[{...}], soapNotes=[...])."""
    return Dataset.from_json_dict(collections)
