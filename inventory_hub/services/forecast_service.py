# inventory_hub/services/forecast_service.py
from typing import Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from inventory_hub.config import config
from inventory_hub.core.forecast import forecast_batch, suggested_order_quantity
from inventory_hub.exceptions import ValidationError
from inventory_hub.logging_setup import get_logger
from inventory_hub.models import Component, ComponentSupplier, StockLevel, StockStatus
from inventory_hub.services.velocity_service import VelocityService
from inventory_hub.utils.date_utils import today

logger = get_logger('forecast')


def _primary_link(component: Component) -> Optional[ComponentSupplier]:
    links = list(component.supplier_links or [])
    if not links:
        return None
    preferred = [link for link in links if link.is_preferred]
    candidates = preferred or links
    return min(candidates, key=lambda link: (link.priority or 1, link.id or 0))


def resolve_lead_time(component: Component, default: Optional[int] = None) -> int:
    """Lead time in days for a component.

    Component override, then the preferred supplier link, then that
    supplier's default, then the configured default.
    """
    if component.lead_time_days is not None:
        return component.lead_time_days

    link = _primary_link(component)
    if link is not None:
        if link.lead_time_days is not None:
            return link.lead_time_days
        if link.supplier is not None and link.supplier.default_lead_time_days is not None:
            return link.supplier.default_lead_time_days

    if default is None:
        default = config.forecast_rules['default_lead_time_days']
    return default


class StockOverviewService:
    """Stock figures, velocity and forecast for every active component."""

    def __init__(self, session: Session):
        """Initialize the stock overview service.

        Args:
            session: Database session
        """
        self.session = session
        self.velocity = VelocityService(session)

    def stock_report(
        self,
        brand_id: Optional[int] = None,
        status: Optional[str] = None,
        window_days: Optional[int] = None
    ) -> List[Dict]:
        """Build the stock overview.

        Args:
            brand_id: Optional brand filter
            status: Optional stock status filter (ok, warning, critical,
                    out_of_stock)
            window_days: Velocity window (defaults to config)

        Returns:
            One dictionary per component, ordered by SKU
        """
        status_filter = None
        if status and status != 'all':
            try:
                status_filter = StockStatus(status)
            except ValueError:
                valid = ', '.join(s.value for s in StockStatus)
                raise ValidationError(
                    f"Invalid stock status: {status}. Valid values are: {valid}",
                    details={'status': status}
                )

        rules = config.forecast_rules
        if window_days is None:
            window_days = rules['velocity_window_days']

        query = (
            self.session.query(Component)
            .options(
                joinedload(Component.stock_level),
                joinedload(Component.supplier_links).joinedload(ComponentSupplier.supplier),
            )
            .filter(Component.is_active.is_(True))
        )
        if brand_id is not None:
            query = query.filter(Component.brand_id == brand_id)
        components = query.order_by(Component.sku).all()

        velocities = self.velocity.component_velocities(window_days=window_days, brand_id=brand_id)

        stocks = [c.stock_level or StockLevel(on_hand=0, reserved=0, on_order=0) for c in components]
        lead_times = [resolve_lead_time(c, rules['default_lead_time_days']) for c in components]
        safety_days = [
            c.safety_days if c.safety_days is not None else rules['default_safety_days']
            for c in components
        ]
        available = [(s.on_hand or 0) - (s.reserved or 0) for s in stocks]
        velocity = [velocities.get(c.id, 0.0) for c in components]

        forecasts = forecast_batch(
            available, velocity, lead_times, safety_days,
            today=today(), warning_buffer_days=rules['warning_buffer_days']
        )

        rows = []
        for component, stock, lead_time, safety, avail, result in zip(
            components, stocks, lead_times, safety_days, available, forecasts
        ):
            if status_filter is not None and result.status != status_filter:
                continue

            row = {
                'component_id': component.id,
                'sku': component.sku,
                'name': component.name,
                'category': component.category or 'Uncategorized',
                'on_hand': stock.on_hand or 0,
                'reserved': stock.reserved or 0,
                'on_order': stock.on_order or 0,
                'available': avail,
                'lead_time_days': lead_time,
                'safety_days': safety,
                'suggested_order_qty': suggested_order_quantity(
                    result.velocity, avail, stock.on_order or 0,
                    component.minimum_order_quantity or 1,
                    rules['target_stock_days']
                ),
                'last_movement_at': (
                    stock.last_movement_at.isoformat() if stock.last_movement_at else None
                ),
            }
            row.update(result.to_dict())
            rows.append(row)

        logger.info(f"Stock report: {len(rows)} of {len(components)} components")
        return rows
