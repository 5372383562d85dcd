# inventory_hub/core/forecast.py
"""Stock forecast: days of cover, reorder point/date and stock status.

Status thresholds:
    OUT_OF_STOCK: available <= 0
    CRITICAL: days remaining <= lead time + safety days
    WARNING: days remaining <= lead time + safety days + 7
    OK: otherwise, or when there is no sales velocity to project from
"""
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Sequence, Tuple

import numpy as np

from inventory_hub.models import StockStatus
from inventory_hub.utils.date_utils import add_days, today as utc_today
from inventory_hub.utils.math_utils import ceil_units, floor_units, round_to_multiple

WARNING_BUFFER_DAYS = 7
DEFAULT_TARGET_DAYS = 60


@dataclass(frozen=True)
class Forecast:
    velocity: float
    days_remaining: Optional[int]
    reorder_point: int
    reorder_date: Optional[date]
    status: StockStatus
    status_reason: str

    def to_dict(self):
        return {
            'velocity': self.velocity,
            'days_remaining': self.days_remaining,
            'reorder_point': self.reorder_point,
            'reorder_date': self.reorder_date.isoformat() if self.reorder_date else None,
            'status': self.status.value,
            'status_reason': self.status_reason,
        }


def days_remaining(available: float, velocity: float) -> Optional[int]:
    """Calculate days of stock remaining.

    Args:
        available: Available stock units
        velocity: Daily velocity (units per day)

    Returns:
        Days remaining, or None if there is no velocity to project from
    """
    if velocity <= 0:
        return None
    if available <= 0:
        return 0
    return floor_units(available / velocity)


def reorder_point(velocity: float, lead_time_days: int, safety_stock_days: int) -> int:
    """Reorder point in units: (lead time + safety days) x daily velocity."""
    return ceil_units(velocity * (lead_time_days + safety_stock_days))


def reorder_date(
    remaining: Optional[int],
    lead_time_days: int,
    safety_stock_days: int,
    today: Optional[date] = None
) -> Optional[date]:
    """Date to place the order by.

    Returns today when the reorder threshold has already been reached and
    None when there is no velocity.
    """
    if remaining is None:
        return None

    today = today or utc_today()
    days_until_reorder = remaining - lead_time_days - safety_stock_days
    if days_until_reorder <= 0:
        return today
    return add_days(today, days_until_reorder)


def stock_status(
    available: float,
    remaining: Optional[int],
    lead_time_days: int,
    safety_stock_days: int,
    warning_buffer_days: int = WARNING_BUFFER_DAYS
) -> Tuple[StockStatus, str]:
    """Classify stock health.

    Returns:
        Tuple of (status, human readable reason)
    """
    if available <= 0:
        return StockStatus.OUT_OF_STOCK, 'No available inventory'

    if remaining is None:
        # Absence of a sales signal is not treated as risk
        return StockStatus.OK, 'No sales velocity data'

    critical_threshold = lead_time_days + safety_stock_days
    warning_threshold = critical_threshold + warning_buffer_days

    if remaining <= critical_threshold:
        return (
            StockStatus.CRITICAL,
            f"Only {remaining} days of stock remaining "
            f"(need {critical_threshold} for lead time + safety)"
        )

    if remaining <= warning_threshold:
        return (
            StockStatus.WARNING,
            f"{remaining} days of stock remaining (approaching reorder point)"
        )

    return StockStatus.OK, f"{remaining} days of stock remaining"


def forecast(
    available: float,
    velocity: float,
    lead_time_days: int,
    safety_stock_days: int,
    today: Optional[date] = None,
    warning_buffer_days: int = WARNING_BUFFER_DAYS
) -> Forecast:
    """Get the complete forecast for a component.

    Args:
        available: Available stock units (on hand minus reserved)
        velocity: Daily velocity (units per day)
        lead_time_days: Days to receive from supplier
        safety_stock_days: Buffer days to maintain
        today: Reference date for the reorder date (defaults to UTC today)
        warning_buffer_days: Extra days past the critical threshold that
                             still count as warning

    Returns:
        Forecast
    """
    remaining = days_remaining(available, velocity)
    status, reason = stock_status(
        available, remaining, lead_time_days, safety_stock_days, warning_buffer_days
    )

    return Forecast(
        velocity=velocity,
        days_remaining=remaining,
        reorder_point=reorder_point(velocity, lead_time_days, safety_stock_days),
        reorder_date=reorder_date(remaining, lead_time_days, safety_stock_days, today),
        status=status,
        status_reason=reason,
    )


def suggested_order_quantity(
    velocity: float,
    available: float,
    on_order: float,
    min_order_qty: int,
    target_days: int = DEFAULT_TARGET_DAYS
) -> int:
    """Calculate suggested reorder quantity.

    (target days x velocity) - available - on order, rounded up to the
    minimum order quantity.

    Args:
        velocity: Daily velocity (units per day)
        available: Currently available stock
        on_order: Stock already on order
        min_order_qty: Minimum order quantity
        target_days: Target days of stock to maintain

    Returns:
        Suggested order quantity (0 when cover is sufficient)
    """
    if velocity <= 0:
        return 0

    target_stock = ceil_units(velocity * target_days)
    needed = target_stock - (available + on_order)

    if needed <= 0:
        return 0

    return int(round_to_multiple(needed, max(1, min_order_qty or 1)))


def forecast_batch(
    available: Sequence[float],
    velocity: Sequence[float],
    lead_time_days: Sequence[int],
    safety_stock_days: Sequence[int],
    today: Optional[date] = None,
    warning_buffer_days: int = WARNING_BUFFER_DAYS
) -> List[Forecast]:
    """Forecast many components at once.

    Produces the same results as calling ``forecast`` per component; the
    arithmetic is done on numpy arrays.
    """
    available_arr = np.asarray(available, dtype=float)
    velocity_arr = np.asarray(velocity, dtype=float)
    lead_arr = np.asarray(lead_time_days, dtype=int)
    safety_arr = np.asarray(safety_stock_days, dtype=int)

    if not (available_arr.shape == velocity_arr.shape == lead_arr.shape == safety_arr.shape):
        raise ValueError("forecast_batch inputs must have the same length")

    today = today or utc_today()
    horizon = lead_arr + safety_arr

    has_velocity = velocity_arr > 0
    safe_velocity = np.where(has_velocity, velocity_arr, 1.0)
    cover = np.floor(np.round(available_arr / safe_velocity, 9))
    cover = np.where(available_arr <= 0, 0, cover)

    points = np.ceil(np.round(velocity_arr * horizon, 9)).astype(int)
    until_reorder = cover - horizon

    results = []
    for i in range(len(available_arr)):
        remaining = int(cover[i]) if has_velocity[i] else None
        status, reason = stock_status(
            available_arr[i], remaining, int(lead_arr[i]), int(safety_arr[i]), warning_buffer_days
        )
        if remaining is None:
            when = None
        elif until_reorder[i] <= 0:
            when = today
        else:
            when = add_days(today, int(until_reorder[i]))

        results.append(Forecast(
            velocity=float(velocity_arr[i]),
            days_remaining=remaining,
            reorder_point=int(points[i]),
            reorder_date=when,
            status=status,
            status_reason=reason,
        ))

    return results


def format_days_remaining(days: Optional[int]) -> str:
    """Format days remaining for display ('-', 'Out', '3 days', '2 weeks', ...)."""
    if days is None:
        return '-'
    if days == 0:
        return 'Out'
    if days == 1:
        return '1 day'
    if days < 7:
        return f"{days} days"
    if days < 30:
        weeks = days // 7
        return f"{weeks} week{'s' if weeks > 1 else ''}"
    months = days // 30
    return f"{months} month{'s' if months > 1 else ''}"


def format_velocity(velocity: float) -> str:
    """Format velocity per day, or per week when below one a day."""
    if velocity <= 0:
        return '-'
    if velocity < 1:
        return f"{velocity * 7:.1f}/week"
    return f"{velocity:.1f}/day"
