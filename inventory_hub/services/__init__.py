from .stock_service import StockService
from .purchase_order_service import PurchaseOrderService
from .catalog_service import CatalogService
from .velocity_service import OrderHistoryProvider, VelocityService
from .forecast_service import StockOverviewService
from .alert_service import LowStockAlertService, LowStockReport

__all__ = [
    'StockService',
    'PurchaseOrderService',
    'CatalogService',
    'OrderHistoryProvider',
    'VelocityService',
    'StockOverviewService',
    'LowStockAlertService',
    'LowStockReport'
]
