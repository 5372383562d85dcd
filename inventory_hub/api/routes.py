"""
Routes for purchase orders, stock adjustments and stock forecasts.

Every request runs as one unit of work through ``run_in_transaction``; an
InventoryError anywhere in it rolls the whole request back and is rendered
as ``{"success": false, "error": {...}}`` with the error's status code.
"""
from flask import Blueprint, jsonify, request, current_app
from werkzeug.exceptions import HTTPException

from inventory_hub.config import config
from inventory_hub.db import run_in_transaction
from inventory_hub.exceptions import InventoryError, ValidationError
from inventory_hub.services.alert_service import LowStockAlertService
from inventory_hub.services.catalog_service import CatalogService
from inventory_hub.services.forecast_service import StockOverviewService
from inventory_hub.services.purchase_order_service import (
    PurchaseOrderService, purchase_order_to_dict
)
from inventory_hub.services.stock_service import StockService
from inventory_hub.services.velocity_service import VelocityService

inventory_bp = Blueprint('inventory', __name__, url_prefix='/api/inventory')


def _int_arg(name, default=None):
    value = request.args.get(name)
    if value is None or value == '' or value == 'all':
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer", details={name: value})


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _stock_level_to_dict(stock):
    if stock is None:
        return None
    return {
        'component_id': stock.component_id,
        'on_hand': stock.on_hand,
        'reserved': stock.reserved,
        'on_order': stock.on_order,
        'available': stock.available,
        'last_count_date': stock.last_count_date.isoformat() if stock.last_count_date else None,
        'last_movement_at': stock.last_movement_at.isoformat() if stock.last_movement_at else None,
    }


def _transaction_to_dict(transaction):
    return {
        'id': transaction.id,
        'component_id': transaction.component_id,
        'transaction_type': transaction.transaction_type.value,
        'quantity': transaction.quantity,
        'quantity_before': transaction.quantity_before,
        'quantity_after': transaction.quantity_after,
        'reference_type': transaction.reference_type.value if transaction.reference_type else None,
        'reference_id': transaction.reference_id,
        'notes': transaction.notes,
        'created_at': transaction.created_at.isoformat() if transaction.created_at else None,
    }


@inventory_bp.errorhandler(InventoryError)
def handle_inventory_error(e):
    if e.status_code >= 500:
        current_app.logger.error(f"Inventory request failed: {e}")
    return jsonify({'success': False, 'error': e.to_dict()}), e.status_code


@inventory_bp.errorhandler(Exception)
def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return e
    current_app.logger.error(f"Unexpected error in inventory request: {e}")
    return jsonify({
        'success': False,
        'error': {'error': 'InternalError', 'message': str(e)}
    }), 500


@inventory_bp.route('/po', methods=['GET'])
def list_purchase_orders():
    """List purchase orders with summary counts and the active suppliers."""
    status = request.args.get('status')
    supplier_id = _int_arg('supplier')
    limit = _int_arg('limit', config.get_int('API', 'default_list_limit', 50))

    def work(session):
        orders, summary = PurchaseOrderService(session).list_purchase_orders(
            status=status, supplier_id=supplier_id, limit=limit
        )
        suppliers = CatalogService(session).get_suppliers()
        return {
            'success': True,
            'purchase_orders': [purchase_order_to_dict(po) for po in orders],
            'summary': summary,
            'suppliers': [{'id': s.id, 'name': s.name, 'code': s.code} for s in suppliers],
        }

    return jsonify(run_in_transaction(work))


@inventory_bp.route('/po', methods=['POST'])
def create_purchase_order():
    """Create a purchase order (draft unless another status is given)."""
    data = _json_body()

    def work(session):
        po = PurchaseOrderService(session).create_purchase_order(data)
        return {
            'success': True,
            'purchase_order': purchase_order_to_dict(po),
            'po_number': po.po_number,
        }

    return jsonify(run_in_transaction(work)), 201


@inventory_bp.route('/po/<int:po_id>', methods=['GET'])
def get_purchase_order(po_id):
    def work(session):
        po = PurchaseOrderService(session).get_purchase_order(po_id)
        return {'success': True, 'purchase_order': purchase_order_to_dict(po)}

    return jsonify(run_in_transaction(work))


@inventory_bp.route('/po/<int:po_id>', methods=['PATCH'])
def update_purchase_order(po_id):
    """Change status, receive items, replace draft items or edit the header."""
    data = _json_body()

    def work(session):
        po = PurchaseOrderService(session).update_purchase_order(po_id, data)
        return {'success': True, 'purchase_order': purchase_order_to_dict(po)}

    return jsonify(run_in_transaction(work))


@inventory_bp.route('/po/<int:po_id>', methods=['DELETE'])
def delete_purchase_order(po_id):
    def work(session):
        po_number = PurchaseOrderService(session).delete_purchase_order(po_id)
        return {'success': True, 'message': f"Purchase order {po_number} deleted"}

    return jsonify(run_in_transaction(work))


@inventory_bp.route('/stock/adjust', methods=['POST'])
def adjust_stock():
    """Apply a count, add or remove adjustment to a component's stock."""
    data = _json_body()

    def work(session):
        service = StockService(session)
        result = service.adjust(
            data.get('component_id'),
            data.get('adjustment_type'),
            data.get('quantity'),
            data.get('notes'),
        )
        result['success'] = True
        result['stock'] = _stock_level_to_dict(service.get_stock_level(result['component_id']))
        return result

    return jsonify(run_in_transaction(work))


@inventory_bp.route('/stock/adjust', methods=['GET'])
def stock_history():
    """Stock movement history for one component, newest first."""
    component_id = _int_arg('component_id')
    limit = _int_arg('limit', config.get_int('API', 'default_list_limit', 50))

    def work(session):
        transactions = StockService(session).get_transactions(component_id, limit)
        return {
            'success': True,
            'transactions': [_transaction_to_dict(t) for t in transactions],
        }

    return jsonify(run_in_transaction(work))


@inventory_bp.route('/stock', methods=['GET'])
def stock_overview():
    """Stock, velocity and forecast for every active component."""
    brand_id = _int_arg('brand_id')
    status = request.args.get('status')
    days = _int_arg('days')

    def work(session):
        rows = StockOverviewService(session).stock_report(
            brand_id=brand_id, status=status, window_days=days
        )
        return {'success': True, 'components': rows, 'count': len(rows)}

    return jsonify(run_in_transaction(work))


@inventory_bp.route('/velocity', methods=['GET'])
def component_velocity():
    """Velocity for one or all active components over the last N days."""
    component_id = _int_arg('component_id')
    brand_id = _int_arg('brand_id')
    days = _int_arg('days')

    def work(session):
        report = VelocityService(session).velocity_report(
            window_days=days, brand_id=brand_id, component_id=component_id
        )
        report['success'] = True
        return report

    return jsonify(run_in_transaction(work))


@inventory_bp.route('/low-stock', methods=['GET'])
def low_stock_report():
    """Out of stock, critical and warning components, most urgent first."""
    brand_id = _int_arg('brand_id')
    days = _int_arg('days')

    def work(session):
        report = LowStockAlertService(session).build_report(brand_id=brand_id, window_days=days)
        data = report.to_dict()
        data['success'] = True
        return data

    return jsonify(run_in_transaction(work))
