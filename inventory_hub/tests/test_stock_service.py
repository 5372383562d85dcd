"""
Tests for manual stock adjustments and the stock ledger.
"""
from inventory_hub.exceptions import NegativeStockError, NotFoundError, ValidationError
from inventory_hub.models import ReferenceType, StockTransaction, TransactionType
from inventory_hub.services.stock_service import StockService
from inventory_hub.tests.db_case import DatabaseTestCase
from inventory_hub.utils.date_utils import today


class TestStockAdjustments(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.component = self.make_component('VANTAGE-BOX')
        self.service = StockService(self.session)

    def _transactions(self):
        return (
            self.session.query(StockTransaction)
            .filter(StockTransaction.component_id == self.component.id)
            .all()
        )

    def test_first_adjustment_creates_stock_level(self):
        self.assertIsNone(self.service.get_stock_level(self.component.id))

        result = self.service.adjust(self.component.id, 'add', 5)

        self.assertEqual(result, {
            'component_id': self.component.id,
            'previous_on_hand': 0,
            'new_on_hand': 5,
            'delta': 5,
        })
        stock = self.service.get_stock_level(self.component.id)
        self.assertEqual(stock.on_hand, 5)
        self.assertEqual(stock.on_order, 0)
        self.assertIsNotNone(stock.last_movement_at)
        self.assertIsNone(stock.last_count_date)

    def test_each_adjustment_writes_one_transaction(self):
        self.service.adjust(self.component.id, 'add', 5)

        transactions = self._transactions()
        self.assertEqual(len(transactions), 1)
        transaction = transactions[0]
        self.assertEqual(transaction.transaction_type, TransactionType.ADJUST)
        self.assertEqual(transaction.reference_type, ReferenceType.MANUAL)
        self.assertEqual(transaction.quantity, 5)
        self.assertEqual(transaction.quantity_before, 0)
        self.assertEqual(transaction.quantity_after, 5)

    def test_count_sets_on_hand_and_count_date(self):
        self.service.adjust(self.component.id, 'add', 30)

        result = self.service.adjust(self.component.id, 'count', 42, 'Quarterly count')

        self.assertEqual(result['previous_on_hand'], 30)
        self.assertEqual(result['new_on_hand'], 42)
        self.assertEqual(result['delta'], 12)
        stock = self.service.get_stock_level(self.component.id)
        self.assertEqual(stock.last_count_date, today())

        latest = self.service.get_transactions(self.component.id, limit=1)[0]
        self.assertEqual(latest.transaction_type, TransactionType.COUNT)
        self.assertEqual(latest.notes, 'Quarterly count')

    def test_count_requires_notes(self):
        with self.assertRaises(ValidationError) as ctx:
            self.service.adjust(self.component.id, 'count', 10, '   ')

        self.assertIn('notes', ctx.exception.details['fields'])
        self.assertEqual(self._transactions(), [])

    def test_remove_below_zero_is_rejected(self):
        self.service.adjust(self.component.id, 'add', 3)

        with self.assertRaises(NegativeStockError) as ctx:
            self.service.adjust(self.component.id, 'remove', 5)

        self.assertEqual(ctx.exception.current, 3)
        self.assertEqual(ctx.exception.requested, 5)
        self.assertEqual(self.service.get_stock_level(self.component.id).on_hand, 3)
        self.assertEqual(len(self._transactions()), 1)

    def test_remove(self):
        self.service.adjust(self.component.id, 'add', 8)

        result = self.service.adjust(self.component.id, 'remove', 8, 'Damaged')

        self.assertEqual(result['new_on_hand'], 0)
        self.assertEqual(result['delta'], -8)

    def test_invalid_input(self):
        with self.assertRaises(ValidationError):
            self.service.adjust(self.component.id, 'add', -1)
        with self.assertRaises(ValidationError):
            self.service.adjust(self.component.id, 'transfer', 1)
        with self.assertRaises(ValidationError):
            self.service.adjust(None, 'add', 1)

    def test_unknown_component(self):
        with self.assertRaises(NotFoundError):
            self.service.adjust(9999, 'add', 1)

    def test_version_increments_on_update(self):
        self.service.adjust(self.component.id, 'add', 1)
        first = self.service.get_stock_level(self.component.id).version

        self.service.adjust(self.component.id, 'add', 1)

        self.assertGreater(self.service.get_stock_level(self.component.id).version, first)


class TestOnOrderAndHistory(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.component = self.make_component('VANTAGE-INSERT')
        self.service = StockService(self.session)

    def test_negative_delta_without_stock_row_is_a_noop(self):
        self.assertIsNone(self.service.apply_on_order_delta(self.component.id, -4))
        self.assertIsNone(self.service.get_stock_level(self.component.id))

    def test_on_order_floors_at_zero(self):
        self.service.apply_on_order_delta(self.component.id, 5)
        stock = self.service.apply_on_order_delta(self.component.id, -8)

        self.assertEqual(stock.on_order, 0)

    def test_receive_into_stock(self):
        self.service.apply_on_order_delta(self.component.id, 10)

        transaction = self.service.receive_into_stock(self.component.id, 4, on_order_release=4, reference_id=77)

        stock = self.service.get_stock_level(self.component.id)
        self.assertEqual((stock.on_hand, stock.on_order), (4, 6))
        self.assertEqual(transaction.transaction_type, TransactionType.RECEIVE)
        self.assertEqual(transaction.reference_type, ReferenceType.PURCHASE_ORDER)
        self.assertEqual(transaction.reference_id, 77)

    def test_history_newest_first(self):
        self.service.adjust(self.component.id, 'add', 1)
        self.service.adjust(self.component.id, 'add', 2)
        self.service.adjust(self.component.id, 'remove', 1)

        history = self.service.get_transactions(self.component.id)

        self.assertEqual([t.quantity for t in history], [-1, 2, 1])
        self.assertEqual(len(self.service.get_transactions(self.component.id, limit=2)), 2)

    def test_history_requires_component(self):
        with self.assertRaises(ValidationError):
            self.service.get_transactions(None)
