"""
Master data routes: components, suppliers, supplier links, BOM entries and
SKU mappings.

Components and suppliers are deactivated rather than deleted, since stock
history and purchase orders keep pointing at them.
"""
from flask import Blueprint, jsonify, request

from inventory_hub.db import run_in_transaction
from inventory_hub.exceptions import InventoryError, ValidationError
from inventory_hub.api.routes import (
    _int_arg, _json_body, handle_inventory_error, handle_unexpected_error
)
from inventory_hub.services.catalog_service import (
    COMPONENT_FIELDS, SUPPLIER_FIELDS, CatalogService
)

catalog_bp = Blueprint('catalog', __name__, url_prefix='/api/inventory')
catalog_bp.register_error_handler(InventoryError, handle_inventory_error)
catalog_bp.register_error_handler(Exception, handle_unexpected_error)

LINK_FIELDS = ('supplier_sku', 'unit_cost', 'lead_time_days', 'min_order_qty', 'priority', 'is_preferred')


def _body_int(data, name, required=True):
    value = data.get(name)
    if value is None and not required:
        return None
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer", details={name: value})
    return value


def _flag_arg(name):
    return request.args.get(name, '').lower() in ('1', 'true', 'yes')


def component_to_dict(component):
    data = {'id': component.id}
    data.update({field: getattr(component, field) for field in COMPONENT_FIELDS})
    return data


def supplier_to_dict(supplier):
    data = {'id': supplier.id}
    data.update({field: getattr(supplier, field) for field in SUPPLIER_FIELDS})
    return data


def link_to_dict(link):
    return {
        'id': link.id,
        'component_id': link.component_id,
        'supplier_id': link.supplier_id,
        'supplier_sku': link.supplier_sku,
        'unit_cost': float(link.unit_cost) if link.unit_cost is not None else None,
        'lead_time_days': link.lead_time_days,
        'min_order_qty': link.min_order_qty,
        'priority': link.priority,
        'is_preferred': link.is_preferred,
    }


def bom_entry_to_dict(entry):
    return {
        'id': entry.id,
        'product_sku': entry.product_sku,
        'component_id': entry.component_id,
        'quantity_per_unit': entry.quantity_per_unit,
        'brand_id': entry.brand_id,
        'notes': entry.notes,
    }


def sku_mapping_to_dict(mapping):
    return {
        'id': mapping.id,
        'old_sku': mapping.old_sku,
        'current_sku': mapping.current_sku,
        'brand_id': mapping.brand_id,
        'platform': mapping.platform,
        'notes': mapping.notes,
    }


# Components

@catalog_bp.route('/components', methods=['GET'])
def list_components():
    brand_id = _int_arg('brand_id')
    active_only = not _flag_arg('include_inactive')

    def work(session):
        components = CatalogService(session).get_components(brand_id=brand_id, active_only=active_only)
        return {
            'success': True,
            'components': [component_to_dict(c) for c in components],
            'count': len(components),
        }

    return jsonify(run_in_transaction(work))


@catalog_bp.route('/components', methods=['POST'])
def create_component():
    data = _json_body()

    def work(session):
        component = CatalogService(session).create_component(data)
        return {'success': True, 'component': component_to_dict(component)}

    return jsonify(run_in_transaction(work)), 201


@catalog_bp.route('/components/<int:component_id>', methods=['GET'])
def get_component(component_id):
    """One component with its supplier links."""
    def work(session):
        component = CatalogService(session).get_component(component_id)
        data = component_to_dict(component)
        data['suppliers'] = [link_to_dict(link) for link in component.supplier_links]
        return {'success': True, 'component': data}

    return jsonify(run_in_transaction(work))


@catalog_bp.route('/components/<int:component_id>', methods=['PATCH'])
def update_component(component_id):
    data = _json_body()

    def work(session):
        component = CatalogService(session).update_component(component_id, data)
        return {'success': True, 'component': component_to_dict(component)}

    return jsonify(run_in_transaction(work))


@catalog_bp.route('/components/<int:component_id>', methods=['DELETE'])
def deactivate_component(component_id):
    def work(session):
        component = CatalogService(session).deactivate_component(component_id)
        return {'success': True, 'message': f"Component {component.sku} deactivated"}

    return jsonify(run_in_transaction(work))


@catalog_bp.route('/components/<int:component_id>/suppliers', methods=['POST'])
def link_component_supplier(component_id):
    """Create or update the component's link to a supplier."""
    data = _json_body()
    supplier_id = _body_int(data, 'supplier_id')
    options = {field: data[field] for field in LINK_FIELDS if field in data}

    def work(session):
        link = CatalogService(session).link_supplier(component_id, supplier_id, **options)
        return {'success': True, 'link': link_to_dict(link)}

    return jsonify(run_in_transaction(work))


# Suppliers

@catalog_bp.route('/suppliers', methods=['GET'])
def list_suppliers():
    active_only = not _flag_arg('include_inactive')

    def work(session):
        suppliers = CatalogService(session).get_suppliers(active_only=active_only)
        return {'success': True, 'suppliers': [supplier_to_dict(s) for s in suppliers]}

    return jsonify(run_in_transaction(work))


@catalog_bp.route('/suppliers', methods=['POST'])
def create_supplier():
    data = _json_body()

    def work(session):
        supplier = CatalogService(session).create_supplier(data)
        return {'success': True, 'supplier': supplier_to_dict(supplier)}

    return jsonify(run_in_transaction(work)), 201


@catalog_bp.route('/suppliers/<int:supplier_id>', methods=['GET'])
def get_supplier(supplier_id):
    def work(session):
        supplier = CatalogService(session).get_supplier(supplier_id)
        return {'success': True, 'supplier': supplier_to_dict(supplier)}

    return jsonify(run_in_transaction(work))


@catalog_bp.route('/suppliers/<int:supplier_id>', methods=['PATCH'])
def update_supplier(supplier_id):
    data = _json_body()

    def work(session):
        supplier = CatalogService(session).update_supplier(supplier_id, data)
        return {'success': True, 'supplier': supplier_to_dict(supplier)}

    return jsonify(run_in_transaction(work))


@catalog_bp.route('/suppliers/<int:supplier_id>', methods=['DELETE'])
def deactivate_supplier(supplier_id):
    def work(session):
        supplier = CatalogService(session).deactivate_supplier(supplier_id)
        return {'success': True, 'message': f"Supplier {supplier.name} deactivated"}

    return jsonify(run_in_transaction(work))


# Bill of materials

@catalog_bp.route('/bom', methods=['GET'])
def list_bom_entries():
    product_sku = request.args.get('product_sku')
    component_id = _int_arg('component_id')

    def work(session):
        entries = CatalogService(session).get_bom_entries(product_sku=product_sku, component_id=component_id)
        return {'success': True, 'entries': [bom_entry_to_dict(e) for e in entries]}

    return jsonify(run_in_transaction(work))


@catalog_bp.route('/bom', methods=['POST'])
def set_bom_entry():
    """Insert or update one product/component quantity."""
    data = _json_body()
    component_id = _body_int(data, 'component_id')

    def work(session):
        entry = CatalogService(session).set_bom_entry(
            data.get('product_sku'),
            component_id,
            quantity_per_unit=data.get('quantity_per_unit', 1),
            brand_id=_body_int(data, 'brand_id', required=False),
            notes=data.get('notes'),
        )
        return {'success': True, 'entry': bom_entry_to_dict(entry)}

    return jsonify(run_in_transaction(work))


@catalog_bp.route('/bom', methods=['DELETE'])
def delete_bom_entry():
    product_sku = request.args.get('product_sku')
    component_id = _int_arg('component_id')
    if not product_sku or component_id is None:
        raise ValidationError("product_sku and component_id are required")

    def work(session):
        CatalogService(session).delete_bom_entry(product_sku, component_id)
        return {'success': True, 'message': f"Removed component {component_id} from {product_sku}"}

    return jsonify(run_in_transaction(work))


# SKU mappings

@catalog_bp.route('/sku-mapping', methods=['GET'])
def list_sku_mappings():
    brand_id = _int_arg('brand_id')

    def work(session):
        mappings = CatalogService(session).get_sku_mappings(brand_id=brand_id)
        return {'success': True, 'mappings': [sku_mapping_to_dict(m) for m in mappings]}

    return jsonify(run_in_transaction(work))


@catalog_bp.route('/sku-mapping', methods=['POST'])
def create_sku_mapping():
    data = _json_body()

    def work(session):
        mapping = CatalogService(session).create_sku_mapping(
            data.get('old_sku'),
            data.get('current_sku'),
            brand_id=_body_int(data, 'brand_id', required=False),
            platform=data.get('platform'),
            notes=data.get('notes'),
        )
        return {'success': True, 'mapping': sku_mapping_to_dict(mapping)}

    return jsonify(run_in_transaction(work)), 201


@catalog_bp.route('/sku-mapping/<string:old_sku>', methods=['DELETE'])
def delete_sku_mapping(old_sku):
    def work(session):
        CatalogService(session).delete_sku_mapping(old_sku)
        return {'success': True, 'message': f"Mapping for {old_sku.upper()} deleted"}

    return jsonify(run_in_transaction(work))


@catalog_bp.route('/sku-mapping/bulk', methods=['POST'])
def import_sku_mappings():
    """Bulk import; ``dry_run`` reports what would be inserted."""
    data = _json_body()
    if 'mappings' not in data:
        raise ValidationError("mappings array is required")

    def work(session):
        summary = CatalogService(session).import_sku_mappings(
            data['mappings'], dry_run=bool(data.get('dry_run'))
        )
        return {'success': not summary.get('errors'), 'dry_run': bool(data.get('dry_run')), 'summary': summary}

    return jsonify(run_in_transaction(work))
