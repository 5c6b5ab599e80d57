"""
inventory.py
Blood stock levels, derived on every read from the full transaction history.

There is no stored inventory counter. Each donor transaction adds one unit of
the donor's blood type, each recipient transaction removes one unit of the
blood type it names. Transactions that point at a donor or blood type missing
from the snapshot are ignored, not reported as errors.
"""
from collections import namedtuple

from bloodbank.entities import BLOOD_TYPE, DONOR, DONOR_TRANSACTION, RECIPIENT_TRANSACTION

CRITICAL = 'Critical'
LOW = 'Low'
ADEQUATE = 'Adequate'
HIGH = 'High'

STATUSES = (CRITICAL, LOW, ADEQUATE, HIGH)

LOW_MAX = 10
ADEQUATE_MAX = 49

InventorySnapshot = namedtuple(
    'InventorySnapshot',
    ['blood_types', 'donors', 'donor_transactions', 'recipient_transactions'],
)

SNAPSHOT_COLLECTIONS = (
    BLOOD_TYPE.collection,
    DONOR.collection,
    DONOR_TRANSACTION.collection,
    RECIPIENT_TRANSACTION.collection,
)


def stock_status(units):
    """Classify a unit count: <=0 Critical, 1-10 Low, 11-49 Adequate, >=50 High"""
    if units <= 0:
        return CRITICAL
    if units <= LOW_MAX:
        return LOW
    if units <= ADEQUATE_MAX:
        return ADEQUATE
    return HIGH


def load_snapshot(store):
    """
    Read the four collections the derivation needs into an immutable snapshot.
    A failed read raises StoreError; no partial snapshot is returned.
    """
    data = store.snapshot(SNAPSHOT_COLLECTIONS)
    return InventorySnapshot(*(tuple(data[name]) for name in SNAPSHOT_COLLECTIONS))


def derive_inventory(blood_types, donors, donor_transactions, recipient_transactions):
    """
    Compute one record per blood type, in blood type order:
    {blood_type_id, name, units_in_stock, status}
    """
    units = {bt['blood_type_id']: 0 for bt in blood_types}
    donor_blood_type = {d['donor_id']: d.get('blood_type_id') for d in donors}

    for trans in donor_transactions:
        blood_type_id = donor_blood_type.get(trans.get('donor_id'))
        if blood_type_id in units:
            units[blood_type_id] += 1

    for trans in recipient_transactions:
        blood_type_id = trans.get('blood_type_id')
        if blood_type_id in units:
            units[blood_type_id] -= 1

    return [
        {
            'blood_type_id': bt['blood_type_id'],
            'name': bt.get('name'),
            'units_in_stock': units[bt['blood_type_id']],
            'status': stock_status(units[bt['blood_type_id']]),
        }
        for bt in blood_types
    ]


def inventory_from_snapshot(snapshot):
    return derive_inventory(*snapshot)


def summarize_inventory(records):
    """Total units on hand and the blood types in Critical status"""
    return {
        'total_units': sum(max(r['units_in_stock'], 0) for r in records),
        'critical_groups': [r['blood_type_id'] for r in records if r['status'] == CRITICAL],
    }
