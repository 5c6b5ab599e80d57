"""
sample_data.py
Demonstration records for a fresh store.
"""
import click
from flask import current_app
from flask.cli import with_appcontext

from bloodbank.entities import ENTITIES_BY_COLLECTION

SAMPLE_BLOOD_TYPES = [
    {'blood_type_id': 'A+', 'name': 'A Positive'},
    {'blood_type_id': 'A-', 'name': 'A Negative'},
    {'blood_type_id': 'B+', 'name': 'B Positive'},
    {'blood_type_id': 'B-', 'name': 'B Negative'},
    {'blood_type_id': 'AB+', 'name': 'AB Positive'},
    {'blood_type_id': 'AB-', 'name': 'AB Negative'},
    {'blood_type_id': 'O+', 'name': 'O Positive'},
    {'blood_type_id': 'O-', 'name': 'O Negative'},
]

SAMPLE_HOSPITALS = [
    {'hospital_id': 'H001', 'name': 'City General Hospital', 'address': '12 Park Road', 'contact_number': '9876500001'},
    {'hospital_id': 'H002', 'name': 'St. Mary Medical Center', 'address': '45 Lake View', 'contact_number': '9876500002'},
]

SAMPLE_DONORS = [
    {'donor_id': 'D001', 'name': 'Rahul Sharma', 'contact_number': '9876543210', 'age': 28,
     'blood_type_id': 'O+', 'donor_card_id': 'CARD-1001'},
    {'donor_id': 'D002', 'name': 'Priya Patel', 'contact_number': '8765432109', 'age': 32,
     'blood_type_id': 'A+', 'donor_card_id': 'CARD-1002'},
    {'donor_id': 'D003', 'name': 'Amit Kumar', 'contact_number': '7654321098', 'age': 45,
     'blood_type_id': 'B-'},
    {'donor_id': 'D004', 'name': 'Sneha Reddy', 'contact_number': '6543210987', 'age': 26,
     'blood_type_id': 'O-'},
]

SAMPLE_RECIPIENTS = [
    {'recipient_id': 'R001', 'name': 'Vikram Singh', 'contact_number': '5432109876', 'blood_type_id': 'O+'},
    {'recipient_id': 'R002', 'name': 'Anita Desai', 'contact_number': '4321098765', 'blood_type_id': 'A+',
     'donor_id': 'D002'},
]

SAMPLE_DONOR_TRANSACTIONS = [
    {'donor_trans_id': 'DT001', 'donor_id': 'D001', 'hospital_id': 'H001', 'date': '2025-01-10'},
    {'donor_trans_id': 'DT002', 'donor_id': 'D001', 'hospital_id': 'H002', 'date': '2025-03-14'},
    {'donor_trans_id': 'DT003', 'donor_id': 'D002', 'hospital_id': 'H001', 'date': '2025-02-02'},
    {'donor_trans_id': 'DT004', 'donor_id': 'D003', 'hospital_id': 'H002', 'date': '2025-02-20'},
    {'donor_trans_id': 'DT005', 'donor_id': 'D004', 'hospital_id': 'H001', 'date': '2025-03-01'},
]

SAMPLE_RECIPIENT_TRANSACTIONS = [
    {'recipient_trans_id': 'RT001', 'recipient_id': 'R001', 'hospital_id': 'H001',
     'blood_type_id': 'O+', 'date': '2025-03-20'},
    {'recipient_trans_id': 'RT002', 'recipient_id': 'R002', 'hospital_id': 'H002',
     'blood_type_id': 'A+', 'date': '2025-03-22'},
]

SAMPLE_DATA = [
    ('bloodtypes', SAMPLE_BLOOD_TYPES),
    ('hospitals', SAMPLE_HOSPITALS),
    ('donors', SAMPLE_DONORS),
    ('recipients', SAMPLE_RECIPIENTS),
    ('donortransactions', SAMPLE_DONOR_TRANSACTIONS),
    ('recipienttransactions', SAMPLE_RECIPIENT_TRANSACTIONS),
]


def init_sample_data(store):
    """Insert the sample records - only if the store has no blood types yet.

    Returns the number of records inserted.
    """
    if store.scan('bloodtypes'):
        return 0
    count = 0
    for collection, items in SAMPLE_DATA:
        entity = ENTITIES_BY_COLLECTION[collection]
        for item in items:
            store.insert(collection, entity.clean(item))
            count += 1
    return count


@click.command('seed-data')
@with_appcontext
def seed_data_command():
    """Load sample records into an empty store."""
    count = init_sample_data(current_app.extensions['bloodbank_store'])
    if count:
        click.echo(f'Sample data initialized: {count} records')
    else:
        click.echo('Store already has data, nothing to do')
