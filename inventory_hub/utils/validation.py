# inventory_hub/utils/validation.py
from typing import Any, Dict, Mapping, Optional

from inventory_hub.exceptions import ValidationError
from inventory_hub.models import AdjustmentType, PurchaseOrderStatus


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    try:
        float(value)
    except (TypeError, ValueError):
        return False
    return True


def validate_adjustment(payload: Mapping[str, Any]) -> Dict[str, str]:
    """Validate a stock adjustment request.

    Args:
        payload: Mapping with component_id, adjustment_type, quantity, notes

    Returns:
        Dictionary with validation errors
    """
    errors = {}

    if not payload.get('component_id'):
        errors['component_id'] = 'Component ID is required'

    adjustment_type = payload.get('adjustment_type')
    valid_types = [t.value for t in AdjustmentType]
    if not adjustment_type:
        errors['adjustment_type'] = 'Adjustment type is required'
    elif str(adjustment_type) not in valid_types:
        errors['adjustment_type'] = f"Adjustment type must be one of: {', '.join(valid_types)}"

    quantity = payload.get('quantity')
    if quantity is None:
        errors['quantity'] = 'Quantity is required'
    elif not _is_int(quantity) or quantity < 0:
        errors['quantity'] = 'Quantity must be a non-negative integer'

    if str(adjustment_type) == AdjustmentType.COUNT.value and not (payload.get('notes') or '').strip():
        errors['notes'] = 'Notes are required for stock count adjustments'

    return errors


def validate_po_items(items: Any) -> Dict[str, str]:
    """Validate purchase order line items.

    Returns:
        Dictionary with validation errors
    """
    errors = {}

    if not items:
        errors['items'] = 'At least one item is required'
        return errors

    if not isinstance(items, (list, tuple)):
        errors['items'] = 'Items must be a list'
        return errors

    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            errors[f'items[{index}]'] = 'Item must be an object'
            continue
        if not item.get('component_id'):
            errors[f'items[{index}].component_id'] = 'Component ID is required'
        quantity = item.get('quantity')
        if not _is_int(quantity) or quantity <= 0:
            errors[f'items[{index}].quantity'] = 'Quantity must be a positive integer'
        unit_price = item.get('unit_price', 0)
        if not _is_number(unit_price) or float(unit_price) < 0:
            errors[f'items[{index}].unit_price'] = 'Unit price must be a non-negative number'

    return errors


def validate_purchase_order(payload: Mapping[str, Any]) -> Dict[str, str]:
    """Validate a purchase order creation request.

    Returns:
        Dictionary with validation errors
    """
    errors = {}

    if not payload.get('supplier_id'):
        errors['supplier_id'] = 'Supplier is required'

    errors.update(validate_po_items(payload.get('items')))

    status = payload.get('status')
    if status:
        try:
            PurchaseOrderStatus.from_string(status)
        except ValueError as e:
            errors['status'] = str(e)

    for field in ('shipping_cost', 'tax'):
        value = payload.get(field)
        if value is not None and (not _is_number(value) or float(value) < 0):
            errors[field] = f"{field.replace('_', ' ').capitalize()} must be a non-negative number"

    return errors


def validate_receipts(receipts: Any) -> Dict[str, str]:
    """Validate a batch of receipts: ``[{item_id, quantity_received}]``."""
    errors = {}

    if not receipts or not isinstance(receipts, (list, tuple)):
        errors['receive_items'] = 'At least one receipt is required'
        return errors

    for index, receipt in enumerate(receipts):
        if not isinstance(receipt, Mapping):
            errors[f'receive_items[{index}]'] = 'Receipt must be an object'
            continue
        if not receipt.get('item_id'):
            errors[f'receive_items[{index}].item_id'] = 'Item ID is required'
        quantity = receipt.get('quantity_received')
        if not _is_int(quantity) or quantity <= 0:
            errors[f'receive_items[{index}].quantity_received'] = 'Quantity received must be a positive integer'

    return errors


def raise_for_errors(errors: Dict[str, str], message: Optional[str] = None) -> None:
    """Raise ValidationError when ``errors`` is not empty."""
    if errors:
        message = message or '; '.join(errors.values())
        raise ValidationError(message, details={'fields': errors})
