from .sku_resolution import (
    normalize_sku, resolve_to_base_sku, resolve_to_display_group_base,
    is_variant, has_bundle_suffix, is_any_variant, are_sku_variants,
    are_in_same_display_group, resolve_legacy_sku
)
from .bom import BomIndex, BomLine
from .velocity import (
    OrderLineItem, ShopifyOrderPayload, EtsyReceiptPayload, NormalizedLineItems,
    parse_order_payload, compute_usage, compute_velocity, summarize_usage
)
from .forecast import (
    Forecast, forecast, forecast_batch, days_remaining, reorder_point,
    reorder_date, stock_status, suggested_order_quantity,
    format_days_remaining, format_velocity
)
from .po_state import (
    VALID_TRANSITIONS, parse_status, validate_transition, can_transition, derive_status,
    format_po_number, parse_po_sequence
)

__all__ = [
    'normalize_sku',
    'resolve_to_base_sku',
    'resolve_to_display_group_base',
    'is_variant',
    'has_bundle_suffix',
    'is_any_variant',
    'are_sku_variants',
    'are_in_same_display_group',
    'resolve_legacy_sku',
    'BomIndex',
    'BomLine',
    'OrderLineItem',
    'ShopifyOrderPayload',
    'EtsyReceiptPayload',
    'NormalizedLineItems',
    'parse_order_payload',
    'compute_usage',
    'compute_velocity',
    'summarize_usage',
    'Forecast',
    'forecast',
    'forecast_batch',
    'days_remaining',
    'reorder_point',
    'reorder_date',
    'stock_status',
    'suggested_order_quantity',
    'format_days_remaining',
    'format_velocity',
    'VALID_TRANSITIONS',
    'parse_status',
    'validate_transition',
    'can_transition',
    'derive_status',
    'format_po_number',
    'parse_po_sequence'
]
