from .date_utils import utcnow, today, add_days, convert_to_date, month_prefix
from .math_utils import ceil_units, floor_units, round_to_multiple, to_money
from .validation import (
    validate_adjustment, validate_purchase_order, validate_po_items,
    validate_receipts, raise_for_errors
)

__all__ = [
    'utcnow',
    'today',
    'convert_to_date',
    'add_days',
    'month_prefix',
    'ceil_units',
    'floor_units',
    'round_to_multiple',
    'to_money',
    'validate_adjustment',
    'validate_purchase_order',
    'validate_po_items',
    'validate_receipts',
    'raise_for_errors'
]
