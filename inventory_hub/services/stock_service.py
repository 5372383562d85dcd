# inventory_hub/services/stock_service.py
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from inventory_hub.exceptions import NegativeStockError, NotFoundError, ValidationError
from inventory_hub.logging_setup import get_logger
from inventory_hub.models import (
    AdjustmentType, Component, ReferenceType, StockLevel, StockTransaction,
    TransactionType
)
from inventory_hub.utils.date_utils import utcnow
from inventory_hub.utils.validation import raise_for_errors, validate_adjustment

logger = get_logger('stock')

DEFAULT_HISTORY_LIMIT = 50


class StockService:
    """Service for mutating and reading component stock levels.

    Every mutation works on a row loaded ``FOR UPDATE`` and versioned, and
    is flushed inside the caller's transaction; the caller commits.
    """

    def __init__(self, session: Session):
        """Initialize the stock service.

        Args:
            session: Database session
        """
        self.session = session

    def get_stock_level(self, component_id: int, for_update: bool = False) -> Optional[StockLevel]:
        """Get the stock level row for a component.

        Args:
            component_id: Component ID
            for_update: Lock the row for the rest of the transaction

        Returns:
            StockLevel or None if the component has no stock record yet
        """
        query = self.session.query(StockLevel).filter(StockLevel.component_id == component_id)
        if for_update:
            query = query.with_for_update()
        return query.one_or_none()

    def get_or_create_stock_level(self, component_id: int) -> StockLevel:
        """Get the locked stock level row, creating a zero baseline if needed.

        Raises:
            NotFoundError if the component does not exist
        """
        stock = self.get_stock_level(component_id, for_update=True)
        if stock is not None:
            return stock

        if self.session.get(Component, component_id) is None:
            raise NotFoundError(
                f"Component with ID {component_id} not found",
                details={'component_id': component_id}
            )

        # A concurrent creator makes the flush fail on the unique
        # component_id; the transaction runner retries against its row
        stock = StockLevel(component_id=component_id, on_hand=0, reserved=0, on_order=0)
        self.session.add(stock)
        self.session.flush()
        logger.info(f"Created stock level for component {component_id}")
        return stock

    def apply_on_order_delta(self, component_id: int, delta: int) -> Optional[StockLevel]:
        """Add ``delta`` to on_order, flooring the result at 0.

        A negative delta against a component with no stock record is a no-op.
        """
        if delta == 0:
            return self.get_stock_level(component_id)

        if delta < 0:
            stock = self.get_stock_level(component_id, for_update=True)
            if stock is None:
                return None
        else:
            stock = self.get_or_create_stock_level(component_id)

        previous = stock.on_order
        stock.on_order = max(0, previous + delta)
        self.session.flush()

        logger.debug(f"Component {component_id} on_order {previous} -> {stock.on_order}")
        return stock

    def adjust(
        self,
        component_id: int,
        adjustment_type,
        quantity: int,
        notes: Optional[str] = None
    ) -> Dict:
        """Apply a manual stock adjustment.

        Args:
            component_id: Component ID
            adjustment_type: 'count' sets on_hand, 'add'/'remove' apply a delta
            quantity: Exact value for count, delta for add/remove
            notes: Reason for the adjustment (mandatory for count)

        Returns:
            Dictionary with previous_on_hand, new_on_hand and delta
        """
        adjustment_type = str(adjustment_type) if adjustment_type is not None else None
        raise_for_errors(validate_adjustment({
            'component_id': component_id,
            'adjustment_type': adjustment_type,
            'quantity': quantity,
            'notes': notes,
        }))
        adjustment_type = AdjustmentType(adjustment_type)

        stock = self.get_or_create_stock_level(component_id)
        current = stock.on_hand

        if adjustment_type == AdjustmentType.COUNT:
            new_on_hand = quantity
            delta = quantity - current
            transaction_type = TransactionType.COUNT
        elif adjustment_type == AdjustmentType.ADD:
            new_on_hand = current + quantity
            delta = quantity
            transaction_type = TransactionType.ADJUST
        else:
            new_on_hand = current - quantity
            delta = -quantity
            transaction_type = TransactionType.ADJUST

        if new_on_hand < 0:
            raise NegativeStockError(current, quantity, component_id)

        now = utcnow()
        stock.on_hand = new_on_hand
        stock.last_movement_at = now
        if adjustment_type == AdjustmentType.COUNT:
            stock.last_count_date = now.date()

        self.session.add(StockTransaction(
            component_id=component_id,
            transaction_type=transaction_type,
            quantity=delta,
            quantity_before=current,
            quantity_after=new_on_hand,
            reference_type=ReferenceType.MANUAL,
            notes=notes or f"{adjustment_type.value} adjustment",
        ))
        self.session.flush()

        logger.info(
            f"Stock {adjustment_type.value} for component {component_id}: "
            f"{current} -> {new_on_hand} ({delta:+d})"
        )

        return {
            'component_id': component_id,
            'previous_on_hand': current,
            'new_on_hand': new_on_hand,
            'delta': delta,
        }

    def receive_into_stock(
        self,
        component_id: int,
        quantity: int,
        on_order_release: int,
        reference_id: Optional[int] = None,
        notes: Optional[str] = None
    ) -> StockTransaction:
        """Book received goods: on_hand up, on_order down, one receive transaction.

        Args:
            component_id: Component ID
            quantity: Units received (added to on_hand)
            on_order_release: Units to take off on_order (floored at 0)
            reference_id: Purchase order item ID
            notes: Transaction notes

        Returns:
            The StockTransaction written
        """
        if quantity <= 0:
            raise ValidationError(
                "Received quantity must be greater than 0",
                details={'component_id': component_id, 'quantity': quantity}
            )

        stock = self.get_or_create_stock_level(component_id)
        before = stock.on_hand

        stock.on_hand = before + quantity
        stock.on_order = max(0, stock.on_order - on_order_release)
        stock.last_movement_at = utcnow()

        transaction = StockTransaction(
            component_id=component_id,
            transaction_type=TransactionType.RECEIVE,
            quantity=quantity,
            quantity_before=before,
            quantity_after=stock.on_hand,
            reference_type=ReferenceType.PURCHASE_ORDER,
            reference_id=reference_id,
            notes=notes or 'Received from PO',
        )
        self.session.add(transaction)
        self.session.flush()

        logger.info(f"Received {quantity} of component {component_id}: on_hand {before} -> {stock.on_hand}")
        return transaction

    def get_transactions(self, component_id: int, limit: int = DEFAULT_HISTORY_LIMIT) -> List[StockTransaction]:
        """Get stock movement history for a component, newest first.

        Raises:
            ValidationError if component_id is missing
        """
        if not component_id:
            raise ValidationError("component_id is required", details={'component_id': component_id})

        return (
            self.session.query(StockTransaction)
            .filter(StockTransaction.component_id == component_id)
            .order_by(StockTransaction.created_at.desc(), StockTransaction.id.desc())
            .limit(max(1, limit))
            .all()
        )
