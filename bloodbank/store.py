"""
store.py
Document storage for the blood bank records.

Two backends share one interface:
- JsonFileStore keeps one JSON file per collection under a data directory,
  each file a dictionary keyed by the record identifier.
- DynamoStore keeps one DynamoDB table per collection, the identifier field
  being the table's partition key.

Backend failures are raised as StoreError; nothing falls back silently.
"""
import json
import logging
import os
import threading
from decimal import Decimal

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from bloodbank.entities import ENTITIES

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """The document store could not complete an operation"""


class DuplicateKeyError(StoreError):
    """An identifier or unique field value is already taken"""

    def __init__(self, entity, field, value):
        self.entity = entity
        self.field = field
        self.value = value
        super().__init__(f"{entity.name} with {field} '{value}' already exists.")


class Store:
    """Common behaviour; subclasses provide the collection access."""

    def __init__(self, entities=ENTITIES):
        self.entities = {e.collection: e for e in entities}

    def entity(self, collection):
        try:
            return self.entities[collection]
        except KeyError:
            raise StoreError(f'Unknown collection: {collection}')

    def snapshot(self, collections):
        """Read several collections; returns {collection: [records]}"""
        return {name: self.scan(name) for name in collections}

    def _check_records(self, entity, records, source):
        for record in records:
            if not isinstance(record, dict) or not record.get(entity.id_field):
                raise StoreError(f'Malformed record in {source}')

    def _check_unique(self, entity, item, existing):
        for field in entity.unique_fields:
            value = item.get(field)
            if value is None:
                continue
            for other in existing:
                if other.get(entity.id_field) == item[entity.id_field]:
                    continue
                if other.get(field) == value:
                    raise DuplicateKeyError(entity, field, value)

    @staticmethod
    def _merge(current, changes):
        merged = dict(current)
        for key, value in changes.items():
            if value is None:
                merged.pop(key, None)
            else:
                merged[key] = value
        return merged


# ============== JSON FILE STORE ==============

class JsonFileStore(Store):
    """Persistent JSON files, one per collection."""

    def __init__(self, data_dir, entities=ENTITIES):
        super().__init__(entities)
        self.data_dir = data_dir
        self._lock = threading.RLock()
        os.makedirs(data_dir, exist_ok=True)

    def _path(self, collection):
        return os.path.join(self.data_dir, f'{collection}.json')

    def _load(self, collection):
        entity = self.entity(collection)
        path = self._path(collection)
        if not os.path.exists(path):
            return {}
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StoreError(f'Cannot read {path}: {e}')
        if not isinstance(data, dict):
            raise StoreError(f'Malformed data file {path}')
        self._check_records(entity, data.values(), path)
        return data

    def _save(self, collection, data):
        path = self._path(collection)
        tmp_path = path + '.tmp'
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
        except OSError as e:
            raise StoreError(f'Cannot write {path}: {e}')

    def scan(self, collection):
        with self._lock:
            return [dict(item) for item in self._load(collection).values()]

    def get(self, collection, item_id):
        with self._lock:
            item = self._load(collection).get(item_id)
            return dict(item) if item is not None else None

    def insert(self, collection, item):
        entity = self.entity(collection)
        item_id = item[entity.id_field]
        with self._lock:
            data = self._load(collection)
            if item_id in data:
                raise DuplicateKeyError(entity, 'ID', item_id)
            self._check_unique(entity, item, data.values())
            data[item_id] = dict(item)
            self._save(collection, data)
        return dict(item)

    def update(self, collection, item_id, changes):
        entity = self.entity(collection)
        with self._lock:
            data = self._load(collection)
            if item_id not in data:
                return None
            merged = self._merge(data[item_id], changes)
            self._check_unique(entity, merged, data.values())
            data[item_id] = merged
            self._save(collection, data)
        return dict(merged)

    def delete(self, collection, item_id):
        with self._lock:
            data = self._load(collection)
            removed = data.pop(item_id, None)
            if removed is not None:
                self._save(collection, data)
        return removed

    def snapshot(self, collections):
        # one lock around all reads so the collections agree with each other
        with self._lock:
            return super().snapshot(collections)


# ============== DYNAMODB STORE ==============

def _to_dynamo(obj):
    # DynamoDB does not accept Python floats; convert floats to Decimal
    if isinstance(obj, dict):
        return {k: _to_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_to_dynamo(v) for v in obj]
    if isinstance(obj, float):
        return Decimal(str(obj))
    return obj


def _from_dynamo(obj):
    if isinstance(obj, dict):
        return {k: _from_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_from_dynamo(v) for v in obj]
    if isinstance(obj, Decimal):
        return int(obj) if obj == obj.to_integral_value() else float(obj)
    return obj


def table_name(entity, prefix=''):
    """BloodType -> BloodTypes, DonorTransaction -> DonorTransactions"""
    return f'{prefix}{entity.name}s'


class DynamoStore(Store):
    """One DynamoDB table per collection."""

    def __init__(self, dynamodb, entities=ENTITIES, prefix=''):
        super().__init__(entities)
        self.dynamodb = dynamodb
        self.prefix = prefix
        self.tables = {
            e.collection: dynamodb.Table(table_name(e, prefix)) for e in self.entities.values()
        }

    @classmethod
    def from_config(cls, config):
        dynamodb = boto3.resource(
            'dynamodb',
            region_name=config['AWS_REGION'],
            endpoint_url=config.get('DYNAMODB_ENDPOINT_URL'),
        )
        return cls(dynamodb, prefix=config.get('DYNAMODB_TABLE_PREFIX', ''))

    def _table(self, collection):
        self.entity(collection)
        return self.tables[collection]

    def create_tables(self):
        """Create any missing tables (local development / DynamoDB Local)"""
        try:
            existing = {t.name for t in self.dynamodb.tables.all()}
            for entity in self.entities.values():
                name = table_name(entity, self.prefix)
                if name in existing:
                    continue
                table = self.dynamodb.create_table(
                    TableName=name,
                    KeySchema=[{'AttributeName': entity.id_field, 'KeyType': 'HASH'}],
                    AttributeDefinitions=[{'AttributeName': entity.id_field, 'AttributeType': 'S'}],
                    BillingMode='PAY_PER_REQUEST',
                )
                table.wait_until_exists()
                logger.info('Created DynamoDB table %s', name)
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f'Cannot create tables: {e}')

    def scan(self, collection):
        table = self._table(collection)
        items = []
        kwargs = {}
        try:
            while True:
                resp = table.scan(**kwargs)
                items.extend(resp.get('Items', []))
                last_key = resp.get('LastEvaluatedKey')
                if not last_key:
                    break
                kwargs['ExclusiveStartKey'] = last_key
        except (ClientError, BotoCoreError) as e:
            raise StoreError(str(e))
        self._check_records(self.entity(collection), items, table.name)
        return [_from_dynamo(item) for item in items]

    def get(self, collection, item_id):
        entity = self.entity(collection)
        try:
            resp = self._table(collection).get_item(Key={entity.id_field: item_id})
        except (ClientError, BotoCoreError) as e:
            raise StoreError(str(e))
        item = resp.get('Item')
        return _from_dynamo(item) if item is not None else None

    def _put(self, entity, item, condition):
        try:
            self._table(entity.collection).put_item(
                Item=_to_dynamo(item), ConditionExpression=condition)
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') == 'ConditionalCheckFailedException':
                return False
            raise StoreError(str(e))
        except BotoCoreError as e:
            raise StoreError(str(e))
        return True

    def insert(self, collection, item):
        entity = self.entity(collection)
        if entity.unique_fields:
            # scan-based check; DynamoDB has no secondary unique constraint
            self._check_unique(entity, item, self.scan(collection))
        if not self._put(entity, item, Attr(entity.id_field).not_exists()):
            raise DuplicateKeyError(entity, 'ID', item[entity.id_field])
        return dict(item)

    def update(self, collection, item_id, changes):
        entity = self.entity(collection)
        current = self.get(collection, item_id)
        if current is None:
            return None
        merged = self._merge(current, changes)
        if entity.unique_fields:
            self._check_unique(entity, merged, self.scan(collection))
        if not self._put(entity, merged, Attr(entity.id_field).exists()):
            # deleted between the read and the write
            return None
        return merged

    def delete(self, collection, item_id):
        entity = self.entity(collection)
        try:
            resp = self._table(collection).delete_item(
                Key={entity.id_field: item_id}, ReturnValues='ALL_OLD')
        except (ClientError, BotoCoreError) as e:
            raise StoreError(str(e))
        removed = resp.get('Attributes')
        return _from_dynamo(removed) if removed else None


def make_store(config):
    """Build the store named by config['STORE_BACKEND']"""
    backend = (config.get('STORE_BACKEND') or 'json').lower()
    if backend == 'json':
        return JsonFileStore(config['DATA_DIR'])
    if backend == 'dynamodb':
        return DynamoStore.from_config(config)
    raise ValueError(f'Unknown store backend: {backend}')
