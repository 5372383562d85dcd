# inventory_hub/core/velocity.py
"""Sales velocity: component units consumed per day from order history."""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import ClassVar, Dict, Iterable, List, Mapping, Optional, Set

from inventory_hub.core.bom import BomIndex, BomLine
from inventory_hub.core.sku_resolution import (
    is_variant, normalize_sku, resolve_legacy_sku, resolve_to_base_sku
)
from inventory_hub.exceptions import ValidationError


@dataclass(frozen=True)
class OrderLineItem:
    sku: Optional[str]
    quantity: int
    order_date: Optional[date] = None


def _quantity(value) -> int:
    # Platforms omit quantity on single-unit lines
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        return 1
    return quantity if quantity > 0 else 1


@dataclass(frozen=True)
class ShopifyOrderPayload:
    """Shopify GraphQL order: ``lineItems.edges[].node.{sku, quantity}``."""
    platform: ClassVar[str] = 'shopify'
    nodes: List[dict] = field(default_factory=list)

    @classmethod
    def from_raw(cls, raw: dict) -> 'ShopifyOrderPayload':
        edges = ((raw or {}).get('lineItems') or {}).get('edges') or []
        return cls([edge.get('node') or {} for edge in edges if isinstance(edge, dict)])

    def line_items(self, order_date=None) -> List[OrderLineItem]:
        return [
            OrderLineItem(node.get('sku'), _quantity(node.get('quantity')), order_date)
            for node in self.nodes if node.get('sku')
        ]


@dataclass(frozen=True)
class EtsyReceiptPayload:
    """Etsy receipt: ``transactions[].{sku, quantity}``."""
    platform: ClassVar[str] = 'etsy'
    transactions: List[dict] = field(default_factory=list)

    @classmethod
    def from_raw(cls, raw: dict) -> 'EtsyReceiptPayload':
        transactions = (raw or {}).get('transactions') or []
        return cls([t for t in transactions if isinstance(t, dict)])

    def line_items(self, order_date=None) -> List[OrderLineItem]:
        return [
            OrderLineItem(t.get('sku'), _quantity(t.get('quantity')), order_date)
            for t in self.transactions if t.get('sku')
        ]


@dataclass(frozen=True)
class NormalizedLineItems:
    """Line items already flattened by the sync job: ``[{sku, quantity}]``."""
    platform: ClassVar[str] = 'normalized'
    items: List[dict] = field(default_factory=list)

    @classmethod
    def from_raw(cls, raw) -> 'NormalizedLineItems':
        return cls([i for i in (raw or []) if isinstance(i, dict)])

    def line_items(self, order_date=None) -> List[OrderLineItem]:
        return [
            OrderLineItem(i.get('sku'), _quantity(i.get('quantity')), order_date)
            for i in self.items if i.get('sku')
        ]


PAYLOAD_TYPES = {
    ShopifyOrderPayload.platform: ShopifyOrderPayload,
    EtsyReceiptPayload.platform: EtsyReceiptPayload,
    NormalizedLineItems.platform: NormalizedLineItems,
}


def parse_order_payload(platform: str, raw):
    """Parse a raw platform payload into its typed variant.

    Raises:
        ValidationError for platforms without a known payload format
    """
    payload_type = PAYLOAD_TYPES.get((platform or '').lower())
    if payload_type is None:
        raise ValidationError(
            f"Unknown order payload platform: {platform}",
            details={'platform': platform, 'known': sorted(PAYLOAD_TYPES)}
        )
    return payload_type.from_raw(raw)


def _resolve_bom_lines(
    sku: str,
    bom_index: BomIndex,
    mapping_table: Mapping[str, str]
) -> List[BomLine]:
    resolved = resolve_legacy_sku(normalize_sku(sku), mapping_table)
    lines = bom_index.entries_for(resolved)
    if not lines and is_variant(resolved):
        # Personalized variants share the base product's BOM
        lines = bom_index.entries_for(resolve_to_base_sku(resolved))
    return lines


def _normalized_mapping(sku_mapping_table: Optional[Mapping[str, str]]) -> Dict[str, str]:
    return {
        normalize_sku(old): normalize_sku(current)
        for old, current in (sku_mapping_table or {}).items()
        if old and current
    }


def compute_usage(
    order_line_items: Iterable[OrderLineItem],
    bom_index: BomIndex,
    sku_mapping_table: Optional[Mapping[str, str]] = None
) -> Dict[int, float]:
    """Total component units consumed by the given line items."""
    mapping = _normalized_mapping(sku_mapping_table)
    usage: Dict[int, float] = defaultdict(float)

    for item in order_line_items:
        if not item.sku:
            continue
        for line in _resolve_bom_lines(item.sku, bom_index, mapping):
            usage[line.component_id] += item.quantity * line.quantity_per_unit

    return dict(usage)


def compute_velocity(
    order_line_items: Iterable[OrderLineItem],
    bom_index: BomIndex,
    sku_mapping_table: Optional[Mapping[str, str]],
    window_days: int
) -> Dict[int, float]:
    """Calculate daily consumption per component.

    Line items whose SKU resolves to no BOM contribute nothing. Components
    that never appear are absent from the result; callers treat them as 0.

    Args:
        order_line_items: Line items from the pre-filtered history window
        bom_index: Product SKU -> component lines
        sku_mapping_table: old_sku -> current_sku lookup
        window_days: Length of the history window in days (> 0)

    Returns:
        Dictionary of component_id -> units per day
    """
    if window_days is None or window_days <= 0:
        raise ValidationError(
            "window_days must be greater than 0",
            details={'window_days': window_days}
        )

    usage = compute_usage(order_line_items, bom_index, sku_mapping_table)
    return {component_id: total / window_days for component_id, total in usage.items()}


def summarize_usage(
    order_line_items: Iterable[OrderLineItem],
    bom_index: BomIndex,
    sku_mapping_table: Optional[Mapping[str, str]],
    window_days: int
) -> Dict[int, dict]:
    """Velocity plus the totals behind it, per component."""
    if window_days is None or window_days <= 0:
        raise ValidationError(
            "window_days must be greater than 0",
            details={'window_days': window_days}
        )

    mapping = _normalized_mapping(sku_mapping_table)
    totals: Dict[int, float] = defaultdict(float)
    order_dates: Dict[int, Set] = defaultdict(set)

    for item in order_line_items:
        if not item.sku:
            continue
        for line in _resolve_bom_lines(item.sku, bom_index, mapping):
            totals[line.component_id] += item.quantity * line.quantity_per_unit
            if item.order_date is not None:
                order_dates[line.component_id].add(item.order_date)

    return {
        component_id: {
            'units_per_day': total / window_days,
            'period_days': window_days,
            'total_units': total,
            'order_days': len(order_dates[component_id]),
        }
        for component_id, total in totals.items()
    }
