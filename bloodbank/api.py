"""
api.py
JSON REST routes: generic CRUD for every entity, the derived inventory
report and dashboard statistics.
"""
from flask import Blueprint, current_app, jsonify, request

from bloodbank.entities import ENTITIES, ValidationError
from bloodbank.inventory import inventory_from_snapshot, load_snapshot, summarize_inventory
from bloodbank.store import DuplicateKeyError, StoreError

api_bp = Blueprint('api', __name__)


def get_store():
    return current_app.extensions['bloodbank_store']


def _message(text, status):
    return jsonify({'message': text}), status


def _store_failure(action, err):
    current_app.logger.exception(action)
    return _message(f'{action}: {err}', 500)


def _json_body():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object.')
    return payload


# ============== CRUD ROUTE BUILDER ==============

def register_crud_routes(bp, entity):
    """Add list/get/create/update/delete routes for one entity under /api/<collection>"""
    endpoint = f'/api/{entity.collection}'
    id_field = entity.id_field
    name = entity.name

    def list_items():
        try:
            items = get_store().scan(entity.collection)
        except StoreError as e:
            return _store_failure(f'Error fetching {name}s', e)
        items.sort(key=lambda x: x.get(id_field) or '')
        return jsonify(items), 200

    def get_item(item_id):
        try:
            item = get_store().get(entity.collection, item_id)
        except StoreError as e:
            return _store_failure(f'Error fetching {name}', e)
        if item is None:
            return _message(f'{name} not found.', 404)
        return jsonify(item), 200

    def create_item():
        try:
            payload = _json_body()
            if not payload.get(id_field):
                return _message(f'{id_field} is required.', 400)
            record = entity.clean(payload)
            get_store().insert(entity.collection, record)
        except ValidationError as e:
            return _message(f'Error creating {name}: {e}', 400)
        except DuplicateKeyError as e:
            return _message(str(e), 409)
        except StoreError as e:
            return _store_failure(f'Error creating {name}', e)
        current_app.logger.info('Created %s %s', name, record[id_field])
        return _message(f'{name} created successfully.', 201)

    def update_item(item_id):
        try:
            payload = _json_body()
            changes = entity.clean(payload, partial=True)
            if changes.pop(id_field, item_id) != item_id:
                raise ValidationError(f'{id_field} cannot be changed.')
            updated = get_store().update(entity.collection, item_id, changes)
        except ValidationError as e:
            return _message(f'Error updating {name}: {e}', 400)
        except DuplicateKeyError as e:
            return _message(str(e), 409)
        except StoreError as e:
            return _store_failure(f'Error updating {name}', e)
        if updated is None:
            return _message(f'{name} not found.', 404)
        current_app.logger.info('Updated %s %s', name, item_id)
        return _message(f'{name} updated successfully.', 200)

    def delete_item(item_id):
        try:
            removed = get_store().delete(entity.collection, item_id)
        except StoreError as e:
            return _store_failure(f'Error deleting {name}', e)
        if removed is None:
            return _message(f'{name} not found.', 404)
        current_app.logger.info('Deleted %s %s', name, item_id)
        return _message(f'{name} deleted successfully.', 200)

    prefix = entity.collection
    bp.add_url_rule(endpoint, f'list_{prefix}', list_items, methods=['GET'])
    bp.add_url_rule(endpoint, f'create_{prefix}', create_item, methods=['POST'])
    bp.add_url_rule(f'{endpoint}/<item_id>', f'get_{prefix}', get_item, methods=['GET'])
    bp.add_url_rule(f'{endpoint}/<item_id>', f'update_{prefix}', update_item, methods=['PUT'])
    bp.add_url_rule(f'{endpoint}/<item_id>', f'delete_{prefix}', delete_item, methods=['DELETE'])


for _entity in ENTITIES:
    register_crud_routes(api_bp, _entity)


# ============== DERIVED REPORTS ==============

@api_bp.route('/api/inventory')
def api_inventory():
    """Current stock per blood type, computed from the transaction history"""
    try:
        snapshot = load_snapshot(get_store())
    except StoreError as e:
        return _store_failure('Error fetching inventory', e)
    return jsonify(inventory_from_snapshot(snapshot)), 200


@api_bp.route('/api/statistics')
def api_statistics():
    """Record counts for the dashboard plus the inventory summary"""
    store = get_store()
    try:
        snapshot = load_snapshot(store)
        hospitals = store.scan('hospitals')
        recipients = store.scan('recipients')
    except StoreError as e:
        return _store_failure('Error fetching statistics', e)
    stats = {
        'total_blood_types': len(snapshot.blood_types),
        'total_hospitals': len(hospitals),
        'total_donors': len(snapshot.donors),
        'total_recipients': len(recipients),
        'total_donor_transactions': len(snapshot.donor_transactions),
        'total_recipient_transactions': len(snapshot.recipient_transactions),
    }
    stats.update(summarize_inventory(inventory_from_snapshot(snapshot)))
    return jsonify(stats), 200
