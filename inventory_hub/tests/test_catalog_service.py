"""
Tests for components, suppliers, BOM entries, SKU mappings and lead times.
"""
import unittest
from unittest.mock import MagicMock

from inventory_hub.exceptions import NotFoundError, ValidationError
from inventory_hub.models import Component, ComponentSupplier, Supplier
from inventory_hub.services.forecast_service import resolve_lead_time
from inventory_hub.tests.db_case import DatabaseTestCase


class TestComponents(DatabaseTestCase):
    def test_create_uppercases_sku(self):
        component = self.make_component(' vantage-box ', name='Vantage box', safety_days=10)

        self.assertEqual(component.sku, 'VANTAGE-BOX')
        self.assertEqual(component.safety_days, 10)
        self.assertEqual(component.minimum_order_quantity, 1)
        self.assertTrue(component.is_active)

    def test_duplicate_sku(self):
        self.make_component('VANTAGE-BOX')

        with self.assertRaises(ValidationError):
            self.make_component('vantage-box')

    def test_invalid_numbers(self):
        with self.assertRaises(ValidationError) as ctx:
            self.make_component('RS-BOX', minimum_order_quantity=0, safety_days=-1)

        fields = ctx.exception.details['fields']
        self.assertIn('minimum_order_quantity', fields)
        self.assertIn('safety_days', fields)

    def test_update_and_deactivate(self):
        component = self.make_component('RS-BOX')

        self.catalog.update_component(component.id, {'name': 'RS box', 'unknown': 1, 'sku': 'rs-box-2'})
        self.catalog.deactivate_component(component.id)

        self.assertEqual(component.name, 'RS box')
        self.assertEqual(component.sku, 'RS-BOX-2')
        self.assertEqual(self.catalog.get_components(), [])
        self.assertEqual(len(self.catalog.get_components(active_only=False)), 1)

    def test_missing_component(self):
        with self.assertRaises(NotFoundError):
            self.catalog.get_component(321)


class TestSuppliers(DatabaseTestCase):
    def test_preferred_link_is_exclusive(self):
        component = self.make_component('VANTAGE-BOX')
        first = self.make_supplier('First Boxes')
        second = self.make_supplier('Second Boxes')

        link_a = self.catalog.link_supplier(component.id, first.id, lead_time_days=10, is_preferred=True)
        link_b = self.catalog.link_supplier(component.id, second.id, lead_time_days=5, is_preferred=True)

        self.assertFalse(link_a.is_preferred)
        self.assertTrue(link_b.is_preferred)

    def test_link_is_upserted(self):
        component = self.make_component('VANTAGE-BOX')
        supplier = self.make_supplier()

        self.catalog.link_supplier(component.id, supplier.id, unit_cost='1.2')
        link = self.catalog.link_supplier(component.id, supplier.id, unit_cost='1.5', priority=2)

        self.assertEqual(self.session.query(ComponentSupplier).count(), 1)
        self.assertEqual(link.priority, 2)
        self.assertEqual(str(link.unit_cost), '1.50')

    def test_update_supplier(self):
        supplier = self.make_supplier(default_lead_time_days=21)

        self.catalog.update_supplier(supplier.id, {'default_lead_time_days': 10, 'rating': 5})

        self.assertEqual(supplier.default_lead_time_days, 10)
        with self.assertRaises(ValidationError):
            self.catalog.update_supplier(supplier.id, {'min_order_qty': 0})

    def test_supplier_requires_name(self):
        with self.assertRaises(ValidationError):
            self.catalog.create_supplier({'code': 'ACME'})

    def test_deactivated_suppliers_are_hidden(self):
        supplier = self.make_supplier()
        self.catalog.deactivate_supplier(supplier.id)

        self.assertEqual(self.catalog.get_suppliers(), [])


class TestBom(DatabaseTestCase):
    def test_set_bom_entry_upserts(self):
        box = self.make_component('VANTAGE-BOX')

        self.catalog.set_bom_entry('vantage', box.id, 1)
        self.catalog.set_bom_entry('VANTAGE', box.id, 2)

        index = self.catalog.load_bom_index()
        self.assertEqual(len(index), 1)
        self.assertEqual(index.entries_for('VANTAGE')[0].quantity_per_unit, 2)

    def test_quantity_must_be_positive(self):
        box = self.make_component('VANTAGE-BOX')

        with self.assertRaises(ValidationError):
            self.catalog.set_bom_entry('VANTAGE', box.id, 0)

    def test_delete_bom_entry(self):
        box = self.make_component('VANTAGE-BOX')
        self.catalog.set_bom_entry('VANTAGE', box.id)

        self.catalog.delete_bom_entry('VANTAGE', box.id)

        self.assertEqual(len(self.catalog.load_bom_index()), 0)
        with self.assertRaises(NotFoundError):
            self.catalog.delete_bom_entry('VANTAGE', box.id)


class TestSkuMappings(DatabaseTestCase):
    def test_create_and_load(self):
        self.catalog.create_sku_mapping('oldvan', 'vantage')

        self.assertEqual(self.catalog.load_sku_mapping_table(), {'OLDVAN': 'VANTAGE'})

    def test_chains_are_rejected(self):
        self.catalog.create_sku_mapping('A', 'B')

        with self.assertRaises(ValidationError):
            self.catalog.create_sku_mapping('B', 'C')
        with self.assertRaises(ValidationError):
            self.catalog.create_sku_mapping('C', 'A')

    def test_duplicates_and_self_mapping_are_rejected(self):
        self.catalog.create_sku_mapping('A', 'B')

        with self.assertRaises(ValidationError):
            self.catalog.create_sku_mapping('a', 'D')
        with self.assertRaises(ValidationError):
            self.catalog.create_sku_mapping('X', 'x')

    def test_delete(self):
        self.catalog.create_sku_mapping('A', 'B')
        self.catalog.delete_sku_mapping('a')

        self.assertEqual(self.catalog.load_sku_mapping_table(), {})
        with self.assertRaises(NotFoundError):
            self.catalog.delete_sku_mapping('A')


class TestResolveLeadTime(unittest.TestCase):
    def _link(self, link_id, lead_time=None, priority=1, preferred=False, supplier_default=None):
        link = MagicMock(spec=ComponentSupplier)
        link.id = link_id
        link.lead_time_days = lead_time
        link.priority = priority
        link.is_preferred = preferred
        link.supplier = MagicMock(spec=Supplier)
        link.supplier.default_lead_time_days = supplier_default
        return link

    def _component(self, lead_time=None, links=()):
        component = MagicMock(spec=Component)
        component.lead_time_days = lead_time
        component.supplier_links = list(links)
        return component

    def test_component_override(self):
        component = self._component(3, [self._link(1, lead_time=10, preferred=True)])
        self.assertEqual(resolve_lead_time(component, 14), 3)

    def test_preferred_link(self):
        component = self._component(links=[
            self._link(1, lead_time=5, priority=1),
            self._link(2, lead_time=9, priority=2, preferred=True),
        ])
        self.assertEqual(resolve_lead_time(component, 14), 9)

    def test_lowest_priority_link_falls_back_to_supplier_default(self):
        component = self._component(links=[
            self._link(1, lead_time=5, priority=2),
            self._link(2, priority=1, supplier_default=21),
        ])
        self.assertEqual(resolve_lead_time(component, 14), 21)

    def test_configured_default(self):
        self.assertEqual(resolve_lead_time(self._component(), 14), 14)
        self.assertEqual(resolve_lead_time(self._component(links=[self._link(1)]), 30), 30)
