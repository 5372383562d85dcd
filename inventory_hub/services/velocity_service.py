# inventory_hub/services/velocity_service.py
from datetime import date, timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from inventory_hub.config import config
from inventory_hub.core.velocity import (
    NormalizedLineItems, OrderLineItem, compute_velocity, parse_order_payload,
    summarize_usage
)
from inventory_hub.exceptions import ValidationError
from inventory_hub.logging_setup import get_logger
from inventory_hub.models import Order
from inventory_hub.services.catalog_service import CatalogService
from inventory_hub.utils.date_utils import today

logger = get_logger('velocity')


class OrderHistoryProvider:
    """Read-only access to sales order line items for velocity."""

    def __init__(self, session: Session):
        self.session = session

    def line_items(
        self,
        start: date,
        end: date,
        brand_id: Optional[int] = None
    ) -> List[OrderLineItem]:
        """Get line items of non-excluded orders dated within [start, end].

        Orders carry either a normalized ``line_items`` list or only the
        platform payload in ``raw_data``; the normalized list wins.

        Args:
            start: First order date included
            end: Last order date included
            brand_id: Optional brand filter

        Returns:
            List of OrderLineItem
        """
        query = (
            self.session.query(Order)
            .filter(Order.excluded_at.is_(None))
            .filter(Order.order_date >= start, Order.order_date <= end)
        )
        if brand_id is not None:
            query = query.filter(Order.brand_id == brand_id)

        items = []
        skipped = 0
        for order in query.order_by(Order.order_date).all():
            if order.line_items:
                payload = NormalizedLineItems.from_raw(order.line_items)
            else:
                try:
                    payload = parse_order_payload(order.platform, order.raw_data)
                except ValidationError as e:
                    logger.warning(f"Skipping order {order.id}: {e.message}")
                    skipped += 1
                    continue
            items.extend(payload.line_items(order.order_date))

        if skipped:
            logger.warning(f"{skipped} orders skipped with unreadable payloads")

        logger.debug(f"Loaded {len(items)} line items for {start} to {end}")
        return items


class VelocityService:
    """Component velocity from the BOM, SKU mappings and order history."""

    def __init__(self, session: Session):
        """Initialize the velocity service.

        Args:
            session: Database session
        """
        self.session = session
        self.catalog = CatalogService(session)
        self.history = OrderHistoryProvider(session)

    def _inputs(self, window_days: Optional[int], brand_id: Optional[int], end: Optional[date]):
        if window_days is None:
            window_days = config.forecast_rules['velocity_window_days']
        if window_days <= 0:
            raise ValidationError(
                "window_days must be greater than 0",
                details={'window_days': window_days}
            )

        end = end or today()
        start = end - timedelta(days=window_days)

        return (
            self.history.line_items(start, end, brand_id),
            self.catalog.load_bom_index(),
            self.catalog.load_sku_mapping_table(),
            window_days,
            start,
            end,
        )

    def component_velocities(
        self,
        window_days: Optional[int] = None,
        brand_id: Optional[int] = None,
        end: Optional[date] = None
    ) -> Dict[int, float]:
        """Units per day for every component with sales in the window."""
        items, bom_index, mapping, window_days, _, _ = self._inputs(window_days, brand_id, end)
        return compute_velocity(items, bom_index, mapping, window_days)

    def velocity_report(
        self,
        window_days: Optional[int] = None,
        brand_id: Optional[int] = None,
        end: Optional[date] = None,
        component_id: Optional[int] = None
    ) -> Dict:
        """Velocity with totals per active component, plus the period used.

        Components without sales are reported with zero velocity.
        """
        items, bom_index, mapping, window_days, start, end = self._inputs(window_days, brand_id, end)
        usage = summarize_usage(items, bom_index, mapping, window_days)

        components = self.catalog.get_components(brand_id=brand_id)
        if component_id is not None:
            components = [c for c in components if c.id == component_id]

        empty = {'units_per_day': 0.0, 'period_days': window_days, 'total_units': 0, 'order_days': 0}
        velocities = {}
        for component in components:
            velocities[component.id] = dict(usage.get(component.id, empty), sku=component.sku)

        logger.info(
            f"Velocity for {len(velocities)} components over {window_days} days "
            f"({len(items)} line items)"
        )

        return {
            'velocities': velocities,
            'period': {
                'days': window_days,
                'start_date': start.isoformat(),
                'end_date': end.isoformat(),
            },
        }
