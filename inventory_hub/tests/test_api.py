"""
Tests for the inventory HTTP API.
"""
import unittest

from inventory_hub.api.app import create_app
from inventory_hub.db import db, run_in_transaction
from inventory_hub.services.catalog_service import CatalogService


class TestInventoryApi(unittest.TestCase):
    def setUp(self):
        """Set up test fixtures."""
        self.app = create_app('sqlite://', create_tables=True, testing=True)
        self.client = self.app.test_client()

        def seed(session):
            catalog = CatalogService(session)
            supplier = catalog.create_supplier({'name': 'Acme Packaging', 'code': 'ACME'})
            component = catalog.create_component({
                'sku': 'VANTAGE-BOX', 'name': 'Vantage box', 'lead_time_days': 7, 'safety_days': 7
            })
            return supplier.id, component.id

        self.supplier_id, self.component_id = run_in_transaction(seed)

    def tearDown(self):
        """Tear down test fixtures."""
        db.session.remove()
        db.drop_all_tables()

    def create_po(self, quantity=10, **extra):
        payload = {
            'supplier_id': self.supplier_id,
            'items': [{'component_id': self.component_id, 'quantity': quantity, 'unit_price': 2.5}],
        }
        payload.update(extra)
        return self.client.post('/api/inventory/po', json=payload)

    def test_create_and_get_purchase_order(self):
        response = self.create_po()

        self.assertEqual(response.status_code, 201)
        data = response.get_json()
        self.assertTrue(data['success'])
        self.assertTrue(data['po_number'].startswith('PO-'))
        po = data['purchase_order']
        self.assertEqual(po['status'], 'draft')
        self.assertEqual(po['total'], 25.0)

        response = self.client.get(f"/api/inventory/po/{po['id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['purchase_order']['po_number'], data['po_number'])

    def test_create_validation_error(self):
        response = self.client.post('/api/inventory/po', json={'supplier_id': self.supplier_id, 'items': []})

        self.assertEqual(response.status_code, 400)
        data = response.get_json()
        self.assertFalse(data['success'])
        self.assertEqual(data['error']['error'], 'ValidationError')
        self.assertIn('items', data['error']['details']['fields'])

    def test_body_must_be_json_object(self):
        response = self.client.post('/api/inventory/po', data='nope', content_type='text/plain')

        self.assertEqual(response.status_code, 400)

    def test_missing_purchase_order(self):
        response = self.client.get('/api/inventory/po/999')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()['error']['error'], 'NotFoundError')

    def test_lifecycle_over_http(self):
        po_id = self.create_po().get_json()['purchase_order']['id']

        response = self.client.patch(f"/api/inventory/po/{po_id}", json={'status': 'sent'})
        self.assertEqual(response.status_code, 200)
        item_id = response.get_json()['purchase_order']['items'][0]['id']

        stock = self.client.get('/api/inventory/stock').get_json()['components'][0]
        self.assertEqual(stock['on_order'], 10)

        response = self.client.patch(
            f"/api/inventory/po/{po_id}",
            json={'receive_items': [{'item_id': item_id, 'quantity_received': 10}]}
        )
        self.assertEqual(response.get_json()['purchase_order']['status'], 'received')

        stock = self.client.get('/api/inventory/stock').get_json()['components'][0]
        self.assertEqual((stock['on_hand'], stock['on_order']), (10, 0))

    def test_invalid_transition(self):
        po_id = self.create_po().get_json()['purchase_order']['id']

        response = self.client.patch(f"/api/inventory/po/{po_id}", json={'status': 'received'})

        self.assertEqual(response.status_code, 400)
        error = response.get_json()['error']
        self.assertEqual(error['code'], 'INVALID_TRANSITION')
        self.assertEqual(error['details'], {'from_status': 'draft', 'to_status': 'received'})

        po = self.client.get(f"/api/inventory/po/{po_id}").get_json()['purchase_order']
        self.assertEqual(po['status'], 'draft')

    def test_failed_request_rolls_back(self):
        """A bad receipt in the same PATCH undoes the status change."""
        po_id = self.create_po().get_json()['purchase_order']['id']

        response = self.client.patch(
            f"/api/inventory/po/{po_id}",
            json={'status': 'sent', 'receive_items': [{'item_id': 4040, 'quantity_received': 1}]}
        )

        self.assertEqual(response.status_code, 404)
        po = self.client.get(f"/api/inventory/po/{po_id}").get_json()['purchase_order']
        self.assertEqual(po['status'], 'draft')

    def test_delete(self):
        draft_id = self.create_po().get_json()['purchase_order']['id']
        sent_id = self.create_po(status='sent').get_json()['purchase_order']['id']

        self.assertEqual(self.client.delete(f"/api/inventory/po/{sent_id}").status_code, 400)
        response = self.client.delete(f"/api/inventory/po/{draft_id}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get(f"/api/inventory/po/{draft_id}").status_code, 404)

    def test_list_purchase_orders(self):
        self.create_po()
        self.create_po(status='sent')

        data = self.client.get('/api/inventory/po?status=all').get_json()

        self.assertEqual(len(data['purchase_orders']), 2)
        self.assertEqual(data['summary']['draft'], 1)
        self.assertEqual(data['summary']['sent'], 1)
        self.assertEqual(data['suppliers'][0]['code'], 'ACME')

        bad = self.client.get('/api/inventory/po?limit=ten')
        self.assertEqual(bad.status_code, 400)

    def test_stock_adjustments(self):
        response = self.client.post('/api/inventory/stock/adjust', json={
            'component_id': self.component_id, 'adjustment_type': 'count', 'quantity': 5
        })
        self.assertEqual(response.status_code, 400)
        self.assertIn('notes', response.get_json()['error']['details']['fields'])

        response = self.client.post('/api/inventory/stock/adjust', json={
            'component_id': self.component_id, 'adjustment_type': 'add', 'quantity': 5
        })
        data = response.get_json()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(data['new_on_hand'], 5)
        self.assertEqual(data['stock']['available'], 5)

        response = self.client.post('/api/inventory/stock/adjust', json={
            'component_id': self.component_id, 'adjustment_type': 'remove', 'quantity': 9
        })
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['error']['code'], 'NEGATIVE_STOCK')

        history = self.client.get(
            f"/api/inventory/stock/adjust?component_id={self.component_id}"
        ).get_json()['transactions']
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0]['transaction_type'], 'adjust')

    def test_velocity_and_low_stock(self):
        response = self.client.get('/api/inventory/velocity?days=0')
        self.assertEqual(response.status_code, 400)

        data = self.client.get('/api/inventory/velocity?days=30').get_json()
        self.assertEqual(data['period']['days'], 30)
        self.assertEqual(data['velocities'][str(self.component_id)]['units_per_day'], 0.0)

        report = self.client.get('/api/inventory/low-stock').get_json()
        self.assertTrue(report['success'])
        self.assertEqual(report['counts']['out_of_stock'], 1)
        self.assertEqual(report['out_of_stock'][0]['sku'], 'VANTAGE-BOX')

    def test_stock_status_filter(self):
        response = self.client.get('/api/inventory/stock?status=dire')
        self.assertEqual(response.status_code, 400)

        data = self.client.get('/api/inventory/stock?status=out_of_stock').get_json()
        self.assertEqual(data['count'], 1)

    def test_component_crud(self):
        response = self.client.post('/api/inventory/components', json={
            'sku': ' vantage-insert ', 'name': 'Vantage insert', 'safety_days': 10
        })
        self.assertEqual(response.status_code, 201)
        component = response.get_json()['component']
        self.assertEqual(component['sku'], 'VANTAGE-INSERT')

        duplicate = self.client.post('/api/inventory/components', json={'sku': 'VANTAGE-INSERT', 'name': 'x'})
        self.assertEqual(duplicate.status_code, 400)

        response = self.client.patch(
            f"/api/inventory/components/{component['id']}", json={'lead_time_days': 21}
        )
        self.assertEqual(response.get_json()['component']['lead_time_days'], 21)

        bad = self.client.patch(f"/api/inventory/components/{component['id']}", json={'safety_days': -1})
        self.assertEqual(bad.status_code, 400)

        response = self.client.delete(f"/api/inventory/components/{component['id']}")
        self.assertEqual(response.status_code, 200)

        active = self.client.get('/api/inventory/components').get_json()
        self.assertEqual([c['sku'] for c in active['components']], ['VANTAGE-BOX'])
        everything = self.client.get('/api/inventory/components?include_inactive=true').get_json()
        self.assertEqual(everything['count'], 2)

        self.assertEqual(self.client.get('/api/inventory/components/999').status_code, 404)

    def test_supplier_crud_and_link(self):
        response = self.client.post('/api/inventory/suppliers', json={'name': 'Boxco', 'default_lead_time_days': 10})
        self.assertEqual(response.status_code, 201)
        supplier_id = response.get_json()['supplier']['id']

        self.assertEqual(self.client.post('/api/inventory/suppliers', json={}).status_code, 400)

        response = self.client.patch(f"/api/inventory/suppliers/{supplier_id}", json={'payment_terms': '30 days'})
        self.assertEqual(response.get_json()['supplier']['payment_terms'], '30 days')

        response = self.client.post(f"/api/inventory/components/{self.component_id}/suppliers", json={
            'supplier_id': supplier_id, 'unit_cost': 1.2, 'is_preferred': True
        })
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.get_json()['link']['is_preferred'])

        component = self.client.get(f"/api/inventory/components/{self.component_id}").get_json()['component']
        self.assertEqual([link['supplier_id'] for link in component['suppliers']], [supplier_id])

        self.client.delete(f"/api/inventory/suppliers/{supplier_id}")
        names = [s['name'] for s in self.client.get('/api/inventory/suppliers').get_json()['suppliers']]
        self.assertEqual(names, ['Acme Packaging'])

    def test_bom_entries(self):
        response = self.client.post('/api/inventory/bom', json={
            'product_sku': 'vantage-kit', 'component_id': self.component_id, 'quantity_per_unit': 2
        })
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['entry']['product_sku'], 'VANTAGE-KIT')

        # Same product and component updates the quantity
        self.client.post('/api/inventory/bom', json={
            'product_sku': 'VANTAGE-KIT', 'component_id': self.component_id, 'quantity_per_unit': 3
        })
        entries = self.client.get('/api/inventory/bom?product_sku=VANTAGE-KIT').get_json()['entries']
        self.assertEqual([e['quantity_per_unit'] for e in entries], [3])

        bad = self.client.post('/api/inventory/bom', json={'product_sku': 'VANTAGE-KIT', 'component_id': 'box'})
        self.assertEqual(bad.status_code, 400)

        response = self.client.delete(
            f"/api/inventory/bom?product_sku=VANTAGE-KIT&component_id={self.component_id}"
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get('/api/inventory/bom').get_json()['entries'], [])

    def test_sku_mappings(self):
        response = self.client.post('/api/inventory/sku-mapping', json={
            'old_sku': 'vtg-box', 'current_sku': 'VANTAGE-BOX'
        })
        self.assertEqual(response.status_code, 201)

        chained = self.client.post('/api/inventory/sku-mapping', json={
            'old_sku': 'OLD-VTG', 'current_sku': 'VTG-BOX'
        })
        self.assertEqual(chained.status_code, 400)

        mappings = self.client.get('/api/inventory/sku-mapping').get_json()['mappings']
        self.assertEqual([(m['old_sku'], m['current_sku']) for m in mappings], [('VTG-BOX', 'VANTAGE-BOX')])

        self.assertEqual(self.client.delete('/api/inventory/sku-mapping/vtg-box').status_code, 200)
        self.assertEqual(self.client.delete('/api/inventory/sku-mapping/vtg-box').status_code, 404)

    def test_bulk_sku_mapping_import(self):
        self.client.post('/api/inventory/sku-mapping', json={'old_sku': 'A-1', 'current_sku': 'A-2'})
        mappings = [
            {'old_sku': 'A-1', 'current_sku': 'A-3'},
            {'old_sku': 'B-1', 'current_sku': 'B-2'},
            {'old_sku': 'C-1', 'current_sku': 'C-1'},
            {'old_sku': 'D-1'},
            {'old_sku': 'A-2', 'current_sku': 'A-9'},
        ]

        preview = self.client.post('/api/inventory/sku-mapping/bulk', json={'mappings': mappings, 'dry_run': True})
        summary = preview.get_json()['summary']
        self.assertEqual(summary['total'], 5)
        self.assertEqual(summary['valid'], 3)
        self.assertEqual(summary['skipped_existing'], 1)
        self.assertEqual(summary['to_insert'], 2)
        self.assertEqual(len(self.client.get('/api/inventory/sku-mapping').get_json()['mappings']), 1)

        response = self.client.post('/api/inventory/sku-mapping/bulk', json={'mappings': mappings})
        data = response.get_json()
        self.assertFalse(data['success'])
        self.assertEqual(data['summary']['inserted'], 1)
        self.assertEqual([e['old_sku'] for e in data['summary']['errors']], ['A-2'])

        old_skus = [m['old_sku'] for m in self.client.get('/api/inventory/sku-mapping').get_json()['mappings']]
        self.assertEqual(old_skus, ['A-1', 'B-1'])

        missing = self.client.post('/api/inventory/sku-mapping/bulk', json={})
        self.assertEqual(missing.status_code, 400)
