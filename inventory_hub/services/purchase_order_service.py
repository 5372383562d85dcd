# inventory_hub/services/purchase_order_service.py
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from inventory_hub.core.po_state import (
    PO_PREFIX, EDITABLE_ITEM_STATES, can_transition, commits_on_order, derive_status,
    format_po_number, is_deletable, is_receivable, parse_po_sequence, parse_status,
    releases_on_order, validate_transition
)
from inventory_hub.exceptions import NotFoundError, StateTransitionError, ValidationError
from inventory_hub.logging_setup import get_logger
from inventory_hub.models import (
    Component, PoSequence, PurchaseOrder, PurchaseOrderItem,
    PurchaseOrderStatus, Supplier
)
from inventory_hub.services.stock_service import StockService
from inventory_hub.utils.date_utils import convert_to_date, month_prefix, today
from inventory_hub.utils.math_utils import to_money
from inventory_hub.utils.validation import (
    raise_for_errors, validate_po_items, validate_purchase_order, validate_receipts
)

logger = get_logger('purchase_orders')

DEFAULT_LIST_LIMIT = 50

HEADER_DATE_FIELDS = ('ordered_date', 'expected_date', 'received_date')
HEADER_TEXT_FIELDS = ('shipping_address', 'notes')


class PurchaseOrderService:
    """Service for the purchase order lifecycle.

    Stock side effects go through StockService in the same session, so a
    PO change and its on_order/on_hand movements commit or roll back together.
    """

    def __init__(self, session: Session):
        """Initialize the purchase order service.

        Args:
            session: Database session
        """
        self.session = session
        self.stock = StockService(session)

    def get_purchase_order(self, po_id: int) -> PurchaseOrder:
        """Get a purchase order by ID.

        Raises:
            NotFoundError if the purchase order does not exist
        """
        po = self.session.get(PurchaseOrder, po_id)
        if po is None:
            raise NotFoundError(
                f"Purchase order with ID {po_id} not found",
                details={'purchase_order_id': po_id}
            )
        return po

    def list_purchase_orders(
        self,
        status: Optional[str] = None,
        supplier_id: Optional[int] = None,
        limit: int = DEFAULT_LIST_LIMIT
    ) -> Tuple[List[PurchaseOrder], Dict[str, Any]]:
        """Get purchase orders, newest first, with summary counts.

        Args:
            status: Optional status filter ('all' or None for every status)
            supplier_id: Optional supplier filter
            limit: Maximum number of purchase orders

        Returns:
            Tuple of (purchase orders, summary)
        """
        query = self.session.query(PurchaseOrder)

        if status and status != 'all':
            try:
                query = query.filter(PurchaseOrder.status == PurchaseOrderStatus.from_string(status))
            except ValueError as e:
                raise ValidationError(str(e), details={'status': status})

        if supplier_id is not None:
            query = query.filter(PurchaseOrder.supplier_id == supplier_id)

        orders = (
            query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc())
            .limit(max(1, limit))
            .all()
        )
        return orders, summarize_purchase_orders(orders)

    def generate_po_number(self, on_date: Optional[date] = None) -> str:
        """Allocate the next PO number for the month, e.g. ``PO-2025010007``.

        The per-month counter row is locked and versioned; two creators in
        the same month cannot both commit the same sequence.
        """
        prefix = month_prefix(PO_PREFIX, on_date)

        sequence = (
            self.session.query(PoSequence)
            .filter(PoSequence.prefix == prefix)
            .with_for_update()
            .one_or_none()
        )

        if sequence is None:
            sequence = PoSequence(prefix=prefix, last_value=self._highest_existing_sequence(prefix))
            self.session.add(sequence)

        sequence.last_value += 1
        self.session.flush()

        return format_po_number(prefix, sequence.last_value)

    def _highest_existing_sequence(self, prefix: str) -> int:
        # Seeds the counter from POs numbered before the counter row existed
        numbers = (
            self.session.query(PurchaseOrder.po_number)
            .filter(PurchaseOrder.po_number.like(f"{prefix}%"))
            .all()
        )
        sequences = [parse_po_sequence(number) for (number,) in numbers]
        return max((s for s in sequences if s is not None), default=0)

    def create_purchase_order(self, payload: Mapping[str, Any]) -> PurchaseOrder:
        """Create a purchase order with its line items.

        The PO is created as draft and then moved to ``payload['status']``
        when one is given, with the usual transition rules and side effects.

        Args:
            payload: supplier_id, items [{component_id, quantity, unit_price,
                     notes}], and optional brand_id, status, dates,
                     shipping_cost, tax, currency, shipping_address, notes

        Returns:
            The new PurchaseOrder
        """
        raise_for_errors(validate_purchase_order(payload))

        supplier_id = payload['supplier_id']
        if self.session.get(Supplier, supplier_id) is None:
            raise NotFoundError(
                f"Supplier with ID {supplier_id} not found",
                details={'supplier_id': supplier_id}
            )

        po = PurchaseOrder(
            supplier_id=supplier_id,
            brand_id=payload.get('brand_id'),
            po_number=self.generate_po_number(),
            status=PurchaseOrderStatus.DRAFT,
            ordered_date=self._date(payload, 'ordered_date'),
            expected_date=self._date(payload, 'expected_date'),
            shipping_cost=to_money(payload.get('shipping_cost')),
            tax=to_money(payload.get('tax')),
            currency=payload.get('currency') or 'GBP',
            shipping_address=payload.get('shipping_address'),
            notes=payload.get('notes'),
        )
        po.items = self._build_items(payload['items'])
        self._update_totals(po)

        self.session.add(po)
        self.session.flush()
        logger.info(f"Created purchase order {po.po_number} with {len(po.items)} items")

        initial_status = payload.get('status')
        if initial_status and parse_status(initial_status) != PurchaseOrderStatus.DRAFT:
            self.transition(po, initial_status)

        return po

    def _build_items(self, items: List[Mapping[str, Any]]) -> List[PurchaseOrderItem]:
        component_ids = {item['component_id'] for item in items}
        found = {
            component_id for (component_id,) in
            self.session.query(Component.id).filter(Component.id.in_(component_ids)).all()
        }
        missing = sorted(component_ids - found)
        if missing:
            raise NotFoundError(
                f"Components not found: {', '.join(str(m) for m in missing)}",
                details={'component_ids': missing}
            )

        return [
            PurchaseOrderItem(
                component_id=item['component_id'],
                quantity_ordered=item['quantity'],
                quantity_received=0,
                unit_price=to_money(item.get('unit_price', 0)),
                notes=item.get('notes'),
            )
            for item in items
        ]

    @staticmethod
    def _date(payload: Mapping[str, Any], field: str) -> Optional[date]:
        try:
            return convert_to_date(payload.get(field))
        except ValueError as e:
            raise ValidationError(str(e), details={'fields': {field: str(e)}})

    @staticmethod
    def _update_totals(po: PurchaseOrder) -> None:
        subtotal = sum(
            (to_money(item.unit_price) * item.quantity_ordered for item in po.items),
            Decimal('0.00')
        )
        po.subtotal = to_money(subtotal)
        po.total = to_money(po.subtotal + to_money(po.shipping_cost) + to_money(po.tax))

    def transition(self, po: PurchaseOrder, target) -> PurchaseOrder:
        """Move a PO to a new status and apply the stock side effects.

        Raises:
            StateTransitionError if the change is not allowed; the PO and
            stock levels are left untouched
        """
        current, target = validate_transition(po.status, target)

        if commits_on_order(current, target):
            for item in po.items:
                if item.outstanding > 0:
                    self.stock.apply_on_order_delta(item.component_id, item.outstanding)

        elif releases_on_order(current, target):
            for item in po.items:
                if item.outstanding > 0:
                    self.stock.apply_on_order_delta(item.component_id, -item.outstanding)

        po.status = target
        if target == PurchaseOrderStatus.RECEIVED and po.received_date is None:
            po.received_date = today()

        self.session.flush()
        logger.info(f"Purchase order {po.po_number}: {current.value} -> {target.value}")
        return po

    def receive_items(self, po: PurchaseOrder, receipts: List[Mapping[str, Any]]) -> PurchaseOrder:
        """Book a batch of receipts against a PO, then settle its status.

        Args:
            po: Purchase order in sent, confirmed or partial status
            receipts: [{item_id, quantity_received}]

        Returns:
            The updated PurchaseOrder
        """
        raise_for_errors(validate_receipts(receipts))

        if not is_receivable(po.status):
            raise StateTransitionError(
                po.status.value,
                PurchaseOrderStatus.RECEIVED.value,
                f"Cannot receive items on a {po.status.value} purchase order"
            )

        items_by_id = {item.id: item for item in po.items}
        for receipt in receipts:
            item = items_by_id.get(receipt['item_id'])
            if item is None:
                raise NotFoundError(
                    f"Item with ID {receipt['item_id']} not found in purchase order {po.po_number}",
                    details={'item_id': receipt['item_id'], 'purchase_order_id': po.id}
                )

            quantity = receipt['quantity_received']
            # Over-receipts go to on_hand but only release what this line committed
            release = min(quantity, item.outstanding)

            item.quantity_received = (item.quantity_received or 0) + quantity
            self.stock.receive_into_stock(
                item.component_id,
                quantity,
                on_order_release=release,
                reference_id=item.id,
                notes=f"Received from {po.po_number}",
            )

        new_status = derive_status(po.items, po.status)
        if new_status is not None:
            logger.info(f"Purchase order {po.po_number}: {po.status.value} -> {new_status.value} after receipt")
            po.status = new_status
            if new_status == PurchaseOrderStatus.RECEIVED:
                po.received_date = today()

        self.session.flush()
        return po

    def replace_items(self, po: PurchaseOrder, items: List[Mapping[str, Any]]) -> PurchaseOrder:
        """Replace all line items of a draft PO and recompute totals."""
        if po.status not in EDITABLE_ITEM_STATES:
            raise ValidationError(
                f"Items can only be changed on a draft purchase order (status is {po.status.value})",
                details={'status': po.status.value}
            )

        raise_for_errors(validate_po_items(items))

        po.items = self._build_items(items)
        self._update_totals(po)
        self.session.flush()
        logger.info(f"Replaced items on purchase order {po.po_number} ({len(po.items)} items)")
        return po

    def update_header(self, po: PurchaseOrder, payload: Mapping[str, Any]) -> PurchaseOrder:
        """Update dates, costs, address and notes; totals follow the costs."""
        for field in HEADER_DATE_FIELDS:
            if field in payload:
                setattr(po, field, self._date(payload, field))

        for field in HEADER_TEXT_FIELDS:
            if field in payload:
                setattr(po, field, payload[field])

        costs_changed = False
        for field in ('shipping_cost', 'tax'):
            if field in payload:
                value = payload[field]
                try:
                    amount = to_money(value)
                except (ArithmeticError, ValueError, TypeError):
                    amount = None
                if amount is None or amount < 0:
                    raise ValidationError(
                        f"{field} must be a non-negative number",
                        details={'fields': {field: str(value)}}
                    )
                setattr(po, field, amount)
                costs_changed = True

        if costs_changed:
            self._update_totals(po)

        self.session.flush()
        return po

    def update_purchase_order(self, po_id: int, payload: Mapping[str, Any]) -> PurchaseOrder:
        """Apply a PATCH-style update: status change, receipts, items, header.

        Receipts settle the status through derive_status; an explicit status
        the receipts made unreachable (e.g. partial after a full receipt) is
        dropped rather than failing the whole update.

        Args:
            po_id: Purchase order ID
            payload: Any of status, receive_items, items and header fields

        Returns:
            The updated PurchaseOrder
        """
        po = self.get_purchase_order(po_id)

        target = parse_status(payload['status']) if payload.get('status') else None
        items = payload.get('items')
        receipts = payload.get('receive_items')

        # The requested status goes first only when the rest of the body needs it
        # (e.g. draft -> sent plus receipts, cancelled -> draft plus new items)
        needs_status_first = (
            (receipts and not is_receivable(po.status))
            or (items is not None and po.status not in EDITABLE_ITEM_STATES)
        )
        if target is not None and needs_status_first:
            self.transition(po, target)
            target = None

        if items is not None:
            self.replace_items(po, items)

        if receipts:
            self.receive_items(po, receipts)

        if target is not None and target != po.status:
            if receipts and not can_transition(po.status, target):
                logger.info(
                    f"Purchase order {po.po_number}: keeping {po.status.value} from receipts, "
                    f"requested {target.value} ignored"
                )
            else:
                self.transition(po, target)

        self.update_header(po, payload)
        return po

    def delete_purchase_order(self, po_id: int) -> str:
        """Delete a draft or cancelled PO together with its items.

        Returns:
            The deleted PO number
        """
        po = self.get_purchase_order(po_id)

        if not is_deletable(po.status):
            raise ValidationError(
                "Can only delete draft or cancelled purchase orders",
                details={'status': po.status.value}
            )

        po_number = po.po_number
        self.session.delete(po)
        self.session.flush()
        logger.info(f"Deleted purchase order {po_number}")
        return po_number


def summarize_purchase_orders(orders: List[PurchaseOrder]) -> Dict[str, Any]:
    """Counts per status plus total and open value of a PO list."""
    def count(*statuses):
        return sum(1 for po in orders if po.status in statuses)

    S = PurchaseOrderStatus
    return {
        'total': len(orders),
        'draft': count(S.DRAFT),
        'pending': count(S.PENDING),
        'approved': count(S.APPROVED),
        'sent': count(S.SENT, S.CONFIRMED),
        'partial': count(S.PARTIAL),
        'received': count(S.RECEIVED),
        'cancelled': count(S.CANCELLED),
        'total_value': float(sum(
            (to_money(po.total) for po in orders if po.status != S.CANCELLED), Decimal('0')
        )),
        'open_value': float(sum(
            (to_money(po.total) for po in orders if po.status not in (S.RECEIVED, S.CANCELLED)),
            Decimal('0')
        )),
    }


def purchase_order_to_dict(po: PurchaseOrder, include_items: bool = True) -> Dict[str, Any]:
    data = {
        'id': po.id,
        'po_number': po.po_number,
        'supplier_id': po.supplier_id,
        'supplier_name': po.supplier.name if po.supplier else None,
        'brand_id': po.brand_id,
        'status': po.status.value,
        'ordered_date': po.ordered_date.isoformat() if po.ordered_date else None,
        'expected_date': po.expected_date.isoformat() if po.expected_date else None,
        'received_date': po.received_date.isoformat() if po.received_date else None,
        'subtotal': float(po.subtotal or 0),
        'shipping_cost': float(po.shipping_cost or 0),
        'tax': float(po.tax or 0),
        'total': float(po.total or 0),
        'currency': po.currency,
        'shipping_address': po.shipping_address,
        'notes': po.notes,
    }
    if include_items:
        data['items'] = [
            {
                'id': item.id,
                'component_id': item.component_id,
                'sku': item.component.sku if item.component else None,
                'quantity_ordered': item.quantity_ordered,
                'quantity_received': item.quantity_received,
                'unit_price': float(item.unit_price or 0),
                'line_total': float(item.line_total or 0),
                'is_complete': item.is_complete,
                'notes': item.notes,
            }
            for item in po.items
        ]
    return data
