"""
Concurrent writers on a file-backed SQLite database.

Each test interleaves two sessions on separate connections: one reads a row,
the other commits a change to it, then the first tries to write.
"""
import os
import shutil
import tempfile
import unittest

from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from inventory_hub.core.po_state import PO_PREFIX
from inventory_hub.db import db, run_in_transaction
from inventory_hub.models import PoSequence, StockLevel, StockTransaction
from inventory_hub.services.catalog_service import CatalogService
from inventory_hub.services.purchase_order_service import PurchaseOrderService
from inventory_hub.services.stock_service import StockService
from inventory_hub.utils.date_utils import month_prefix


class ConcurrentSessionsTestCase(unittest.TestCase):
    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()
        db.initialize(f"sqlite:///{os.path.join(self.tmp_dir, 'inventory.db')}")
        db.create_all_tables()
        # Independent of the scoped registry, so it gets its own connection
        self.other_sessions = sessionmaker(bind=db.engine, autoflush=False)

        def seed(session):
            catalog = CatalogService(session)
            supplier = catalog.create_supplier({'name': 'Acme Packaging'})
            component = catalog.create_component({'sku': 'VANTAGE-BOX', 'name': 'Vantage box'})
            StockService(session).adjust(component.id, 'count', 10, 'Opening count')
            return supplier.id, component.id

        self.supplier_id, self.component_id = run_in_transaction(seed)

    def tearDown(self):
        db.dispose()
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def load_stock(self, session):
        return session.query(StockLevel).filter(StockLevel.component_id == self.component_id).one()

    def on_hand(self):
        return run_in_transaction(lambda session: self.load_stock(session).on_hand)


class TestStockLevelRace(ConcurrentSessionsTestCase):
    def test_second_writer_of_same_version_is_rejected(self):
        first = self.other_sessions()
        second = self.other_sessions()
        try:
            first_stock = self.load_stock(first)
            second_stock = self.load_stock(second)

            first_stock.on_hand -= 1
            first.commit()

            second_stock.on_hand += 5
            with self.assertRaises(StaleDataError):
                second.commit()
            second.rollback()
        finally:
            first.close()
            second.close()

        self.assertEqual(self.on_hand(), 9)

    def test_transaction_runner_retries_against_fresh_row(self):
        attempts = []

        def work(session):
            attempts.append(1)
            self.load_stock(session)
            if len(attempts) == 1:
                # Another writer commits between our read and our write
                with self.other_sessions() as other:
                    StockService(other).adjust(self.component_id, 'remove', 1, 'Damaged')
                    other.commit()
            return StockService(session).adjust(self.component_id, 'add', 2, 'Found')

        result = run_in_transaction(work, max_retries=3)

        self.assertEqual(len(attempts), 2)
        self.assertEqual(result['previous_on_hand'], 9)
        self.assertEqual(self.on_hand(), 11)

        ledger = run_in_transaction(
            lambda session: session.query(StockTransaction)
            .filter(StockTransaction.component_id == self.component_id)
            .count()
        )
        # Opening count, the competing removal and the retried add
        self.assertEqual(ledger, 3)


class TestPoSequenceRace(ConcurrentSessionsTestCase):
    def create_po(self, session):
        return PurchaseOrderService(session).create_purchase_order({
            'supplier_id': self.supplier_id,
            'items': [{'component_id': self.component_id, 'quantity': 5}],
        }).po_number

    def load_sequence(self, session):
        return session.query(PoSequence).filter(PoSequence.prefix == month_prefix(PO_PREFIX)).one()

    def test_second_allocation_of_same_version_is_rejected(self):
        run_in_transaction(self.create_po)

        first = self.other_sessions()
        second = self.other_sessions()
        try:
            first_sequence = self.load_sequence(first)
            second_sequence = self.load_sequence(second)

            first_sequence.last_value += 1
            first.commit()

            second_sequence.last_value += 1
            with self.assertRaises(StaleDataError):
                second.commit()
            second.rollback()
        finally:
            first.close()
            second.close()

        last_value = run_in_transaction(lambda session: self.load_sequence(session).last_value)
        self.assertEqual(last_value, 2)

    def test_interleaved_creators_get_distinct_numbers(self):
        numbers = [run_in_transaction(self.create_po)]
        attempts = []

        def work(session):
            attempts.append(1)
            self.load_sequence(session)
            if len(attempts) == 1:
                with self.other_sessions() as other:
                    numbers.append(self.create_po(other))
                    other.commit()
            return self.create_po(session)

        numbers.append(run_in_transaction(work, max_retries=3))

        prefix = month_prefix(PO_PREFIX)
        self.assertEqual(len(attempts), 2)
        self.assertEqual(numbers, [f"{prefix}0001", f"{prefix}0002", f"{prefix}0003"])
