import json
import os
from decimal import Decimal
from types import SimpleNamespace

import pytest
from boto3.dynamodb.conditions import AttributeExists, AttributeNotExists
from botocore.exceptions import ClientError, NoCredentialsError

from bloodbank.store import (
    DuplicateKeyError, DynamoStore, JsonFileStore, StoreError, make_store, table_name,
)
from bloodbank.entities import BLOOD_TYPE, DONOR_TRANSACTION
from bloodbank.inventory import inventory_from_snapshot, load_snapshot


# ============== JSON FILE STORE ==============

def test_json_insert_and_read(store):
    store.insert('bloodtypes', {'blood_type_id': 'O+', 'name': 'O Positive'})
    assert store.scan('bloodtypes') == [{'blood_type_id': 'O+', 'name': 'O Positive'}]
    assert store.get('bloodtypes', 'O+') == {'blood_type_id': 'O+', 'name': 'O Positive'}
    assert store.get('bloodtypes', 'A+') is None


def test_json_missing_file_is_empty(store):
    assert store.scan('donors') == []


def test_json_persists_to_disk(tmp_path):
    data_dir = str(tmp_path / 'records')
    JsonFileStore(data_dir).insert('hospitals', {'hospital_id': 'H1', 'name': 'General', 'contact_number': '1'})
    with open(os.path.join(data_dir, 'hospitals.json'), encoding='utf-8') as f:
        assert json.load(f) == {'H1': {'hospital_id': 'H1', 'name': 'General', 'contact_number': '1'}}
    assert JsonFileStore(data_dir).get('hospitals', 'H1')['name'] == 'General'


def test_json_duplicate_id(store):
    store.insert('bloodtypes', {'blood_type_id': 'O+', 'name': 'O Positive'})
    with pytest.raises(DuplicateKeyError) as info:
        store.insert('bloodtypes', {'blood_type_id': 'O+', 'name': 'Other'})
    assert str(info.value) == "BloodType with ID 'O+' already exists."


def test_json_duplicate_unique_field(store):
    store.insert('bloodtypes', {'blood_type_id': 'O+', 'name': 'O Positive'})
    with pytest.raises(DuplicateKeyError) as info:
        store.insert('bloodtypes', {'blood_type_id': 'O-', 'name': 'O Positive'})
    assert info.value.field == 'name'


def test_json_update_merges_and_clears(store):
    store.insert('donors', {'donor_id': 'D1', 'name': 'Asha', 'contact_number': '555', 'age': 30})
    updated = store.update('donors', 'D1', {'age': 31, 'contact_number': None})
    assert updated == {'donor_id': 'D1', 'name': 'Asha', 'age': 31}
    assert store.get('donors', 'D1') == updated


def test_json_update_missing(store):
    assert store.update('donors', 'nobody', {'name': 'x'}) is None


def test_json_update_can_keep_own_unique_value(store):
    store.insert('bloodtypes', {'blood_type_id': 'O+', 'name': 'O Positive'})
    store.insert('bloodtypes', {'blood_type_id': 'A+', 'name': 'A Positive'})
    assert store.update('bloodtypes', 'O+', {'name': 'O Positive'})['name'] == 'O Positive'
    with pytest.raises(DuplicateKeyError):
        store.update('bloodtypes', 'O+', {'name': 'A Positive'})


def test_json_delete(store):
    store.insert('donors', {'donor_id': 'D1', 'name': 'Asha'})
    assert store.delete('donors', 'D1') == {'donor_id': 'D1', 'name': 'Asha'}
    assert store.delete('donors', 'D1') is None
    assert store.scan('donors') == []


def test_json_corrupt_file_raises(store):
    with open(os.path.join(store.data_dir, 'donors.json'), 'w', encoding='utf-8') as f:
        f.write('{not json')
    with pytest.raises(StoreError):
        store.scan('donors')


def test_json_non_mapping_file_raises(store):
    with open(os.path.join(store.data_dir, 'donors.json'), 'w', encoding='utf-8') as f:
        json.dump([{'donor_id': 'D1'}], f)
    with pytest.raises(StoreError, match='Malformed'):
        store.scan('donors')


def test_unknown_collection(store):
    with pytest.raises(StoreError, match='Unknown collection'):
        store.scan('patients')


def test_snapshot(store):
    store.insert('bloodtypes', {'blood_type_id': 'O+', 'name': 'O Positive'})
    data = store.snapshot(['bloodtypes', 'donors'])
    assert data == {'bloodtypes': [{'blood_type_id': 'O+', 'name': 'O Positive'}], 'donors': []}


def test_make_store(tmp_path):
    assert isinstance(make_store({'STORE_BACKEND': 'json', 'DATA_DIR': str(tmp_path)}), JsonFileStore)
    with pytest.raises(ValueError):
        make_store({'STORE_BACKEND': 'postgres', 'DATA_DIR': str(tmp_path)})


# ============== DYNAMODB STORE ==============

def _conditional_failure(op):
    return ClientError({'Error': {'Code': 'ConditionalCheckFailedException', 'Message': 'failed'}}, op)


class FakeTable:
    """Enough of a boto3 Table resource for the store, with 2-item scan pages"""

    def __init__(self, name, key):
        self.name = name
        self.key = key
        self.items = {}
        self.fail_with = None

    def _check(self):
        if self.fail_with:
            raise self.fail_with

    def scan(self, ExclusiveStartKey=None):
        self._check()
        keys = sorted(self.items)
        start = keys.index(ExclusiveStartKey[self.key]) + 1 if ExclusiveStartKey else 0
        page = keys[start:start + 2]
        resp = {'Items': [dict(self.items[k]) for k in page]}
        if start + 2 < len(keys):
            resp['LastEvaluatedKey'] = {self.key: page[-1]}
        return resp

    def get_item(self, Key):
        self._check()
        item = self.items.get(Key[self.key])
        return {'Item': dict(item)} if item is not None else {}

    def put_item(self, Item, ConditionExpression=None):
        self._check()
        exists = Item[self.key] in self.items
        if isinstance(ConditionExpression, AttributeNotExists) and exists:
            raise _conditional_failure('PutItem')
        if isinstance(ConditionExpression, AttributeExists) and not exists:
            raise _conditional_failure('PutItem')
        self.items[Item[self.key]] = dict(Item)
        return {}

    def delete_item(self, Key, ReturnValues='NONE'):
        self._check()
        old = self.items.pop(Key[self.key], None)
        return {'Attributes': old} if old is not None else {}


class FakeDynamoResource:
    def __init__(self):
        self.created = []
        self._tables = {}
        self.tables = SimpleNamespace(all=lambda: [SimpleNamespace(name=n) for n in self._tables])

    def Table(self, name):
        return self._tables.setdefault(name, FakeTable(name, None))

    def create_table(self, TableName, KeySchema, AttributeDefinitions, BillingMode):
        self.created.append((TableName, KeySchema[0]['AttributeName']))
        return SimpleNamespace(wait_until_exists=lambda: None)


@pytest.fixture
def dynamo():
    resource = FakeDynamoResource()
    store = DynamoStore(resource, prefix='test_')
    for collection, table in store.tables.items():
        table.key = store.entity(collection).id_field
    return resource, store


def test_table_names():
    assert table_name(BLOOD_TYPE) == 'BloodTypes'
    assert table_name(DONOR_TRANSACTION, 'dev_') == 'dev_DonorTransactions'


def test_dynamo_insert_get_scan(dynamo):
    _, store = dynamo
    for i in range(5):
        store.insert('donors', {'donor_id': f'D{i}', 'name': f'Donor {i}'})
    assert len(store.scan('donors')) == 5
    assert store.get('donors', 'D3') == {'donor_id': 'D3', 'name': 'Donor 3'}
    assert store.get('donors', 'D9') is None


def test_dynamo_converts_decimals(dynamo):
    resource, store = dynamo
    resource.Table('test_Donors').items['D1'] = {'donor_id': 'D1', 'name': 'Asha', 'age': Decimal('28')}
    assert store.get('donors', 'D1')['age'] == 28
    assert isinstance(store.scan('donors')[0]['age'], int)


def test_dynamo_duplicate_id(dynamo):
    _, store = dynamo
    store.insert('donors', {'donor_id': 'D1', 'name': 'Asha'})
    with pytest.raises(DuplicateKeyError, match="Donor with ID 'D1' already exists."):
        store.insert('donors', {'donor_id': 'D1', 'name': 'Other'})


def test_dynamo_duplicate_unique_field(dynamo):
    _, store = dynamo
    store.insert('bloodtypes', {'blood_type_id': 'O+', 'name': 'O Positive'})
    with pytest.raises(DuplicateKeyError):
        store.insert('bloodtypes', {'blood_type_id': 'O-', 'name': 'O Positive'})


def test_dynamo_update_and_delete(dynamo):
    _, store = dynamo
    store.insert('donors', {'donor_id': 'D1', 'name': 'Asha', 'contact_number': '555'})
    assert store.update('donors', 'D1', {'contact_number': None, 'age': 40}) == {
        'donor_id': 'D1', 'name': 'Asha', 'age': 40}
    assert store.update('donors', 'D2', {'age': 40}) is None
    assert store.delete('donors', 'D1')['name'] == 'Asha'
    assert store.delete('donors', 'D1') is None


@pytest.mark.parametrize('error', [
    ClientError({'Error': {'Code': 'ResourceNotFoundException', 'Message': 'no table'}}, 'Scan'),
    NoCredentialsError(),
])
def test_dynamo_failures_raise_store_error(dynamo, error):
    resource, store = dynamo
    resource.Table('test_BloodTypes').fail_with = error
    with pytest.raises(StoreError):
        store.scan('bloodtypes')
    with pytest.raises(StoreError):
        store.insert('bloodtypes', {'blood_type_id': 'O+', 'name': 'O Positive'})
    with pytest.raises(StoreError):
        store.delete('bloodtypes', 'O+')


def test_dynamo_create_tables_skips_existing(dynamo):
    resource, store = dynamo
    store.create_tables()
    assert resource.created == []

    fresh = FakeDynamoResource()
    new_store = DynamoStore(fresh, prefix='new_')
    fresh._tables.clear()
    new_store.create_tables()
    assert len(fresh.created) == 6
    assert ('new_BloodTypes', 'blood_type_id') in fresh.created



@pytest.mark.parametrize('contents', [
    {'O+': {'name': 'no id'}},
    {'O+': 'O Positive'},
    {'O+': {'blood_type_id': '', 'name': 'blank id'}},
])
def test_json_malformed_record_raises(store, contents):
    with open(os.path.join(store.data_dir, 'bloodtypes.json'), 'w', encoding='utf-8') as f:
        json.dump(contents, f)
    with pytest.raises(StoreError, match='Malformed record'):
        store.scan('bloodtypes')


def test_dynamo_malformed_record_raises(dynamo):
    resource, store = dynamo
    resource.Table('test_Donors').items['D1'] = {'name': 'no id'}
    with pytest.raises(StoreError, match='Malformed record in test_Donors'):
        store.scan('donors')


def test_dynamo_inventory_through_snapshot(dynamo):
    resource, store = dynamo
    store.insert('bloodtypes', {'blood_type_id': 'A+', 'name': 'A Positive'})
    store.insert('bloodtypes', {'blood_type_id': 'O-', 'name': 'O Negative'})
    store.insert('donors', {'donor_id': 'D1', 'name': 'Asha', 'blood_type_id': 'A+'})
    resource.Table('test_Donors').items['D1']['age'] = Decimal('31')
    # more than one scan page of donations
    for i in range(7):
        store.insert('donortransactions', {'donor_trans_id': f'T{i}', 'donor_id': 'D1'})
    store.insert('donortransactions', {'donor_trans_id': 'T9', 'donor_id': 'ghost'})
    store.insert('recipienttransactions', {'recipient_trans_id': 'R1', 'blood_type_id': 'A+'})
    store.insert('recipienttransactions', {'recipient_trans_id': 'R2', 'blood_type_id': 'Z+'})

    snapshot = load_snapshot(store)
    assert snapshot.donors[0]['age'] == 31
    by_id = {r['blood_type_id']: r for r in inventory_from_snapshot(snapshot)}
    assert by_id['A+']['units_in_stock'] == 6
    assert by_id['A+']['status'] == 'Low'
    assert by_id['O-'] == {'blood_type_id': 'O-', 'name': 'O Negative', 'units_in_stock': 0, 'status': 'Critical'}
