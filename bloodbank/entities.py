"""
entities.py
The six record types kept by the blood bank and the rules for turning a
request payload into a storable record.

Each entity is a plain dictionary in the store, keyed by a human-assigned
identifier string. Cross-entity references (a donor's blood_type_id, a
transaction's donor_id, ...) are NOT checked here; dangling references are
legal data and the inventory report simply ignores them.
"""
from collections import namedtuple
from datetime import datetime

# kind is one of 'str', 'int', 'date'
Field = namedtuple('Field', ['name', 'kind', 'required', 'unique'])


def _field(name, kind='str', required=False, unique=False):
    return Field(name, kind, required, unique)


class ValidationError(ValueError):
    """Raised when a payload cannot be turned into a valid record"""


class Entity:
    """Describes one collection: its name, endpoint, identifier and fields."""

    def __init__(self, name, collection, id_field, fields):
        self.name = name
        self.collection = collection
        self.id_field = id_field
        self.fields = (_field(id_field, required=True, unique=True),) + tuple(fields)

    @property
    def field_names(self):
        return [f.name for f in self.fields]

    @property
    def unique_fields(self):
        """Unique fields other than the identifier"""
        return [f.name for f in self.fields if f.unique and f.name != self.id_field]

    def clean(self, payload, partial=False):
        """
        Validate a request payload and return a normalised record.

        With partial=True (updates) only the fields present in the payload are
        returned; a field sent empty comes back as None so the caller can clear
        it. Unknown keys are dropped.
        """
        if not isinstance(payload, dict):
            raise ValidationError('Request body must be a JSON object.')

        record = {}
        for field in self.fields:
            if field.name not in payload:
                if field.required and not partial:
                    raise ValidationError(f'{field.name} is required.')
                continue
            value = _coerce(field, payload[field.name])
            if value is None:
                if field.required:
                    raise ValidationError(f'{field.name} is required.')
                if not partial:
                    continue
            record[field.name] = value
        return record

    def __repr__(self):
        return f'<Entity {self.name}>'


def _coerce(field, value):
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if value == '':
            return None

    if field.kind == 'int':
        if isinstance(value, bool):
            raise ValidationError(f'{field.name} must be a whole number.')
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValidationError(f'{field.name} must be a whole number.')
        if not number.is_integer():
            raise ValidationError(f'{field.name} must be a whole number.')
        return int(number)

    if field.kind == 'date':
        return parse_date(field.name, value)

    if isinstance(value, (dict, list)):
        raise ValidationError(f'{field.name} must be a string.')
    return str(value)


def parse_date(name, value):
    """Accept YYYY-MM-DD or an ISO datetime and return YYYY-MM-DD"""
    if not isinstance(value, str):
        raise ValidationError(f'{name} must be a date (YYYY-MM-DD).')
    text = value[:-1] + '+00:00' if value.endswith('Z') else value
    try:
        return datetime.fromisoformat(text).strftime('%Y-%m-%d')
    except ValueError:
        pass
    try:
        return datetime.strptime(value, '%Y-%m-%d').strftime('%Y-%m-%d')
    except ValueError:
        raise ValidationError(f'{name} must be a date (YYYY-MM-DD).')


# ============== ENTITY CATALOGUE ==============

BLOOD_TYPE = Entity('BloodType', 'bloodtypes', 'blood_type_id', [
    _field('name', required=True, unique=True),
])

HOSPITAL = Entity('Hospital', 'hospitals', 'hospital_id', [
    _field('name', required=True),
    _field('address'),
    _field('contact_number', required=True),
])

DONOR = Entity('Donor', 'donors', 'donor_id', [
    _field('name', required=True),
    _field('contact_number'),
    _field('age', 'int'),
    _field('blood_type_id'),
    _field('donor_card_id'),
])

RECIPIENT = Entity('Recipient', 'recipients', 'recipient_id', [
    _field('name', required=True),
    _field('contact_number'),
    _field('blood_type_id'),
    _field('donor_id'),
])

DONOR_TRANSACTION = Entity('DonorTransaction', 'donortransactions', 'donor_trans_id', [
    _field('donor_id'),
    _field('hospital_id'),
    _field('date', 'date'),
])

RECIPIENT_TRANSACTION = Entity('RecipientTransaction', 'recipienttransactions', 'recipient_trans_id', [
    _field('recipient_id'),
    _field('hospital_id'),
    _field('blood_type_id'),
    _field('date', 'date'),
])

ENTITIES = (BLOOD_TYPE, HOSPITAL, DONOR, RECIPIENT, DONOR_TRANSACTION, RECIPIENT_TRANSACTION)

ENTITIES_BY_COLLECTION = {e.collection: e for e in ENTITIES}
