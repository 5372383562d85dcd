# inventory_hub/services/alert_service.py
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

import pandas as pd
from sqlalchemy.orm import Session

from inventory_hub.logging_setup import get_logger
from inventory_hub.models import StockStatus
from inventory_hub.services.forecast_service import StockOverviewService
from inventory_hub.utils.date_utils import today

logger = get_logger('alerts')

ALERT_COLUMNS = [
    'status', 'component_id', 'sku', 'name', 'category', 'on_hand', 'available',
    'on_order', 'velocity', 'days_remaining', 'reorder_point', 'lead_time_days',
    'safety_days', 'suggested_order_qty', 'status_reason',
]


def sort_by_urgency(items: List[Dict]) -> List[Dict]:
    """Ascending days_remaining; items without a projection go last."""
    return sorted(
        items,
        key=lambda item: (item['days_remaining'] is None, item['days_remaining'] or 0)
    )


@dataclass
class LowStockReport:
    report_date: date
    out_of_stock: List[Dict] = field(default_factory=list)
    critical: List[Dict] = field(default_factory=list)
    warning: List[Dict] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.out_of_stock) + len(self.critical) + len(self.warning)

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    def counts(self) -> Dict[str, int]:
        return {
            'out_of_stock': len(self.out_of_stock),
            'critical': len(self.critical),
            'warning': len(self.warning),
            'total': self.total,
        }

    def to_dict(self) -> Dict:
        return {
            'date': self.report_date.isoformat(),
            'out_of_stock': self.out_of_stock,
            'critical': self.critical,
            'warning': self.warning,
            'counts': self.counts(),
        }

    def to_dataframe(self) -> pd.DataFrame:
        """All alert rows in one frame: out of stock, then critical, then warning."""
        rows = self.out_of_stock + self.critical + self.warning
        frame = pd.DataFrame(rows, columns=ALERT_COLUMNS)
        frame['days_remaining'] = frame['days_remaining'].astype('Int64')
        return frame

    def to_csv(self, path: Optional[str] = None) -> Optional[str]:
        """Write the report as CSV to ``path``, or return the CSV text."""
        return self.to_dataframe().to_csv(path, index=False)


class LowStockAlertService:
    """Components that need attention, grouped by stock status."""

    def __init__(self, session: Session):
        """Initialize the low stock alert service.

        Args:
            session: Database session
        """
        self.session = session
        self.overview = StockOverviewService(session)

    def build_report(
        self,
        brand_id: Optional[int] = None,
        window_days: Optional[int] = None
    ) -> LowStockReport:
        """Forecast every active component and keep the non-ok ones.

        Returns:
            LowStockReport with each category sorted most urgent first
        """
        rows = self.overview.stock_report(brand_id=brand_id, window_days=window_days)

        buckets = {
            StockStatus.OUT_OF_STOCK.value: [],
            StockStatus.CRITICAL.value: [],
            StockStatus.WARNING.value: [],
        }
        for row in rows:
            if row['status'] in buckets:
                buckets[row['status']].append({column: row.get(column) for column in ALERT_COLUMNS})

        report = LowStockReport(
            report_date=today(),
            out_of_stock=sort_by_urgency(buckets[StockStatus.OUT_OF_STOCK.value]),
            critical=sort_by_urgency(buckets[StockStatus.CRITICAL.value]),
            warning=sort_by_urgency(buckets[StockStatus.WARNING.value]),
        )

        counts = report.counts()
        logger.info(
            f"Low stock report: {counts['out_of_stock']} out of stock, "
            f"{counts['critical']} critical, {counts['warning']} warning"
        )
        return report
