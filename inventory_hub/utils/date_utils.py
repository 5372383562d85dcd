# inventory_hub/utils/date_utils.py
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (how timestamps are stored)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today() -> date:
    return utcnow().date()


def add_days(start_date: date, days: int) -> date:
    """Add days to a date.

    Args:
        start_date: Start date
        days: Number of days to add

    Returns:
        New date
    """
    return start_date + timedelta(days=days)


def convert_to_date(value: Union[str, date, datetime, None],
                    format_string: str = "%Y-%m-%d") -> Optional[date]:
    """Convert a string (or datetime) to a date.

    Accepts plain dates and ISO timestamps such as ``2025-01-15T10:00:00Z``.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value[:10], format_string).date()
    except (TypeError, ValueError):
        raise ValueError(f"Invalid date: {value}")


def month_prefix(prefix: str, on_date: Optional[date] = None) -> str:
    """Prefix plus 4-digit year and 2-digit month, e.g. ``PO-202501``."""
    on_date = on_date or today()
    return f"{prefix}{on_date.year:04d}{on_date.month:02d}"
