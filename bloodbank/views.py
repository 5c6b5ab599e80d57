"""
views.py
Server-rendered dashboard: counts, the inventory table and one table per
entity, with related ids shown as names. Each table has add, edit and delete
forms that go through the same validation and store as the JSON API.
"""
from flask import Blueprint, abort, flash, redirect, render_template, request, url_for

from bloodbank.api import get_store
from bloodbank.entities import ENTITIES, ENTITIES_BY_COLLECTION, ValidationError
from bloodbank.inventory import derive_inventory, summarize_inventory
from bloodbank.store import DuplicateKeyError

views_bp = Blueprint('views', __name__)

# (column, collection it points into, that collection's id field)
RELATIONS = {
    'blood_type_id': ('bloodtypes', 'blood_type_id'),
    'donor_id': ('donors', 'donor_id'),
    'hospital_id': ('hospitals', 'hospital_id'),
    'recipient_id': ('recipients', 'recipient_id'),
}

RELATED_COLLECTIONS = [collection for collection, _ in RELATIONS.values()]

INPUT_TYPES = {'str': 'text', 'int': 'number', 'date': 'date'}


def build_name_lookup(records):
    """{collection: {id: name}} built once per request"""
    lookup = {}
    for collection, id_field in RELATIONS.values():
        lookup[collection] = {r.get(id_field): r.get('name') for r in records[collection]}
    return lookup


def display_value(entity, column, item, names):
    """Text shown in a table cell"""
    value = item.get(column)
    if column != entity.id_field and column in RELATIONS:
        collection, _ = RELATIONS[column]
        return names[collection].get(value) or 'N/A'
    if value is None or value == '':
        return 'N/A'
    return value


def build_sections(records, names):
    sections = []
    for entity in ENTITIES:
        rows = sorted(records[entity.collection], key=lambda x: x.get(entity.id_field) or '')
        sections.append({
            'entity': entity,
            'columns': entity.field_names,
            'rows': [{
                'id': item.get(entity.id_field),
                'cells': [display_value(entity, c, item, names) for c in entity.field_names],
            } for item in rows],
        })
    return sections


def form_fields(entity, item, names, editing):
    """Describe the inputs of an add/edit form, related ids as dropdowns"""
    fields = []
    for field in entity.fields:
        value = item.get(field.name)
        widget = {
            'name': field.name,
            'value': '' if value is None else value,
            'required': field.required,
            'readonly': editing and field.name == entity.id_field,
            'type': INPUT_TYPES[field.kind],
            'options': None,
        }
        if field.name != entity.id_field and field.name in RELATIONS:
            collection, _ = RELATIONS[field.name]
            options = [(key, f'{name} ({key})') for key, name in sorted(names[collection].items())]
            if value and value not in names[collection]:
                options.append((value, f'N/A ({value})'))
            widget['options'] = options
        fields.append(widget)
    return fields


def _entity_or_404(collection):
    entity = ENTITIES_BY_COLLECTION.get(collection)
    if entity is None:
        abort(404)
    return entity


def _render_form(entity, item, editing, status=200):
    names = build_name_lookup(get_store().snapshot(RELATED_COLLECTIONS))
    item_id = item.get(entity.id_field) if editing else None
    return render_template('form.html', entity=entity, editing=editing, item_id=item_id,
                           fields=form_fields(entity, item, names, editing)), status


def _back_to(entity):
    return redirect(url_for('views.dashboard', _anchor=entity.collection))


# ============== DASHBOARD ==============

@views_bp.route('/')
def dashboard():
    records = get_store().snapshot([e.collection for e in ENTITIES])
    names = build_name_lookup(records)
    inventory = derive_inventory(
        records['bloodtypes'], records['donors'],
        records['donortransactions'], records['recipienttransactions'],
    )
    stats = {
        'total_donors': len(records['donors']),
        'total_recipients': len(records['recipients']),
        'total_hospitals': len(records['hospitals']),
        'total_blood_types': len(records['bloodtypes']),
    }
    stats.update(summarize_inventory(inventory))
    return render_template('index.html', stats=stats, inventory=inventory,
                           sections=build_sections(records, names))


# ============== RECORD FORMS ==============

@views_bp.route('/records/<collection>/new', methods=['GET', 'POST'])
def add_record(collection):
    entity = _entity_or_404(collection)
    if request.method == 'POST':
        form = request.form.to_dict()
        try:
            record = entity.clean(form)
            get_store().insert(entity.collection, record)
        except (ValidationError, DuplicateKeyError) as e:
            flash(str(e), 'error')
            return _render_form(entity, form, editing=False, status=400)
        flash(f'{entity.name} created successfully.', 'success')
        return _back_to(entity)
    return _render_form(entity, {}, editing=False)


@views_bp.route('/records/<collection>/<item_id>/edit', methods=['GET', 'POST'])
def edit_record(collection, item_id):
    entity = _entity_or_404(collection)
    store = get_store()
    if request.method == 'POST':
        form = request.form.to_dict()
        # the identifier input is read-only; the URL decides which record changes
        form.pop(entity.id_field, None)
        try:
            changes = entity.clean(form, partial=True)
            updated = store.update(entity.collection, item_id, changes)
        except (ValidationError, DuplicateKeyError) as e:
            flash(str(e), 'error')
            form[entity.id_field] = item_id
            return _render_form(entity, form, editing=True, status=400)
        if updated is None:
            flash(f'{entity.name} not found.', 'error')
        else:
            flash(f'{entity.name} updated successfully.', 'success')
        return _back_to(entity)

    item = store.get(entity.collection, item_id)
    if item is None:
        flash(f'{entity.name} not found.', 'error')
        return _back_to(entity)
    return _render_form(entity, item, editing=True)


@views_bp.route('/records/<collection>/<item_id>/delete', methods=['POST'])
def delete_record(collection, item_id):
    entity = _entity_or_404(collection)
    if get_store().delete(entity.collection, item_id) is None:
        flash(f'{entity.name} not found.', 'error')
    else:
        flash(f'{entity.name} deleted successfully.', 'success')
    return _back_to(entity)
