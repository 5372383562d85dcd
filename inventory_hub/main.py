import argparse
import json
import sys

import pandas as pd

from inventory_hub.config import config
from inventory_hub.db import db, run_in_transaction
from inventory_hub.exceptions import InventoryError
from inventory_hub.logging_setup import logger, get_logger, log_exception

log = get_logger('cli')

REPORT_COLUMNS = ['sku', 'on_hand', 'on_order', 'velocity', 'days_remaining', 'status', 'suggested_order_qty']
REPORT_HEADERS = {'sku': 'SKU', 'on_hand': 'On hand', 'on_order': 'On order', 'velocity': 'Velocity',
                  'days_remaining': 'Cover', 'status': 'Status', 'suggested_order_qty': 'Suggest'}


def init_application(db_url=None):
    """Initialize application components."""
    db.initialize(db_url)

    app_log = logger.app_logger
    app_log.info("Inventory engine initialized")
    app_log.info(f"Using database: {db.engine.url.render_as_string(hide_password=True)}")

    return True


def init_db(args):
    """Create the schema (optionally dropping it first) and write default settings."""
    if args.drop:
        log.warning("Dropping all tables")
        db.drop_all_tables()
    db.create_all_tables()
    if args.write_config:
        config.write_default_config()
    print("Database tables created")
    return True


def stock_report(args):
    """Print the stock overview as a table."""
    from inventory_hub.core.forecast import format_days_remaining, format_velocity
    from inventory_hub.services.forecast_service import StockOverviewService

    rows = run_in_transaction(
        lambda session: StockOverviewService(session).stock_report(
            brand_id=args.brand_id, status=args.status, window_days=args.days
        )
    )

    if args.json:
        print(json.dumps(rows, indent=2, default=str))
        return rows

    if not rows:
        print("No components")
        return rows

    frame = pd.DataFrame(rows, columns=REPORT_COLUMNS)
    # From the raw rows: a None cover turns into NaN inside the frame
    frame['velocity'] = [format_velocity(row['velocity']) for row in rows]
    frame['days_remaining'] = [format_days_remaining(row['days_remaining']) for row in rows]
    print(frame.rename(columns=REPORT_HEADERS).to_string(index=False))
    print(f"{len(rows)} components")
    return rows


def low_stock(args):
    """Print or export the low stock alert report."""
    from inventory_hub.services.alert_service import LowStockAlertService

    report = run_in_transaction(
        lambda session: LowStockAlertService(session).build_report(
            brand_id=args.brand_id, window_days=args.days
        )
    )

    if args.csv:
        report.to_csv(args.csv)
        print(f"Wrote {report.total} rows to {args.csv}")
        return report

    if report.is_empty:
        print("No low stock items")
        return report

    frame = report.to_dataframe()
    print(frame[['status', 'sku', 'available', 'on_order', 'days_remaining',
                 'reorder_point', 'suggested_order_qty']].to_string(index=False))
    counts = report.counts()
    print(
        f"\n{counts['out_of_stock']} out of stock, {counts['critical']} critical, "
        f"{counts['warning']} warning"
    )
    return report


def velocity(args):
    """Print component velocity over the last N days."""
    from inventory_hub.services.velocity_service import VelocityService

    report = run_in_transaction(
        lambda session: VelocityService(session).velocity_report(
            window_days=args.days, brand_id=args.brand_id, component_id=args.component_id
        )
    )
    print(json.dumps(report, indent=2, default=str))
    return report


def adjust(args):
    """Apply a manual stock adjustment."""
    from inventory_hub.services.stock_service import StockService

    result = run_in_transaction(
        lambda session: StockService(session).adjust(
            args.component_id, args.type, args.quantity, args.notes
        )
    )
    print(
        f"Component {result['component_id']}: {result['previous_on_hand']} -> "
        f"{result['new_on_hand']} ({result['delta']:+d})"
    )
    return result


def po_status(args):
    """Move a purchase order to a new status."""
    from inventory_hub.services.purchase_order_service import PurchaseOrderService

    def work(session):
        service = PurchaseOrderService(session)
        po = service.transition(service.get_purchase_order(args.po_id), args.status)
        return po.po_number, po.status.value

    po_number, status = run_in_transaction(work)
    print(f"{po_number} is now {status}")
    return status


def po_receive(args):
    """Receive quantities against purchase order items (ITEM_ID=QTY pairs)."""
    from inventory_hub.services.purchase_order_service import PurchaseOrderService

    receipts = []
    for pair in args.receipts:
        item_id, _, quantity = pair.partition('=')
        try:
            receipts.append({'item_id': int(item_id), 'quantity_received': int(quantity)})
        except ValueError:
            raise argparse.ArgumentTypeError(f"Invalid receipt '{pair}', expected ITEM_ID=QTY")

    def work(session):
        service = PurchaseOrderService(session)
        po = service.receive_items(service.get_purchase_order(args.po_id), receipts)
        return po.po_number, po.status.value

    po_number, status = run_in_transaction(work)
    print(f"{po_number} received, status {status}")
    return status


COMMANDS = {
    'init-db': init_db,
    'stock-report': stock_report,
    'low-stock': low_stock,
    'velocity': velocity,
    'adjust': adjust,
    'po-status': po_status,
    'po-receive': po_receive,
}


def build_parser():
    parser = argparse.ArgumentParser(description='Component inventory and purchase order engine')
    parser.add_argument('--db-url', type=str, help='Database URL (overrides configuration)')
    parser.add_argument('--log-level', type=str, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Override the configured log level')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    init_parser = subparsers.add_parser('init-db', help='Create database tables')
    init_parser.add_argument('--drop', action='store_true', help='Drop existing tables first')
    init_parser.add_argument('--write-config', action='store_true',
                             help='Write config/settings.ini with the current settings')

    report_parser = subparsers.add_parser('stock-report', help='Stock overview with forecasts')
    report_parser.add_argument('--brand-id', type=int, help='Only components of this brand')
    report_parser.add_argument('--status', type=str,
                               choices=['ok', 'warning', 'critical', 'out_of_stock'],
                               help='Only components with this stock status')
    report_parser.add_argument('--days', type=int, help='Velocity window in days')
    report_parser.add_argument('--json', action='store_true', help='Print JSON instead of a table')

    low_parser = subparsers.add_parser('low-stock', help='Low stock alert report')
    low_parser.add_argument('--brand-id', type=int, help='Only components of this brand')
    low_parser.add_argument('--days', type=int, help='Velocity window in days')
    low_parser.add_argument('--csv', type=str, metavar='PATH', help='Write the report to a CSV file')

    velocity_parser = subparsers.add_parser('velocity', help='Component sales velocity')
    velocity_parser.add_argument('--component-id', type=int, help='Single component')
    velocity_parser.add_argument('--brand-id', type=int, help='Only orders and components of this brand')
    velocity_parser.add_argument('--days', type=int, help='Look-back window in days')

    adjust_parser = subparsers.add_parser('adjust', help='Manual stock adjustment')
    adjust_parser.add_argument('component_id', type=int, help='Component ID')
    adjust_parser.add_argument('type', choices=['count', 'add', 'remove'], help='Adjustment type')
    adjust_parser.add_argument('quantity', type=int, help='Exact count, or units to add/remove')
    adjust_parser.add_argument('--notes', type=str, help='Reason (required for count)')

    status_parser = subparsers.add_parser('po-status', help='Change purchase order status')
    status_parser.add_argument('po_id', type=int, help='Purchase order ID')
    status_parser.add_argument('status', type=str, help='Target status')

    receive_parser = subparsers.add_parser('po-receive', help='Receive purchase order items')
    receive_parser.add_argument('po_id', type=int, help='Purchase order ID')
    receive_parser.add_argument('receipts', nargs='+', metavar='ITEM_ID=QTY',
                                help='Quantities received per item')

    return parser


def main(argv=None):
    """Main application entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.log_level:
        logger.set_level(args.log_level)

    init_application(args.db_url)

    try:
        COMMANDS[args.command](args)
    except InventoryError as e:
        log.error(f"{args.command} failed: {e}")
        print(f"Error: {e.message}", file=sys.stderr)
        return 2
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))
    except Exception as e:
        log_exception('cli', e, f"{args.command} failed")
        raise

    return 0


if __name__ == "__main__":
    sys.exit(main())
