"""
End-to-end tests through the JSON API: storefront price, cart, checkout and backoffice.
"""

import pytest
from decimal import Decimal

from atelier.models import PriceMatrixRow, Order, ExpressStock, Coupon


@pytest.fixture
def ids(customer, staff, admin, product, fabric):
    """Plain ids; ORM instances are detached once a request tears down the session."""
    return {
        'customer': customer.id,
        'staff': staff.id,
        'admin': admin.id,
        'product': product.id,
        'fabric': fabric.id,
    }


def _price_query(ids, size_cm=200):
    return {'product_id': ids['product'], 'size_cm': size_cm, 'fabric_id': ids['fabric']}


def _add_to_cart(client, ids, quantity=2):
    return client.post('/api/cart/lines', json={**_price_query(ids), 'quantity': quantity})


class TestPriceEndpoint:
    """GET /api/price"""

    def test_price_with_row_discount(self, client, ids):
        response = client.get('/api/price', query_string=_price_query(ids))
        assert response.status_code == 200
        data = response.get_json()
        assert data['available'] is True
        assert data['price'] == 900.0
        assert data['original_price'] == 1000.0

    def test_featured_discount_wins(self, client, ids, site_config):
        site_config(featured_discounts={ids['product']: '15'})

        data = client.get('/api/price', query_string=_price_query(ids)).get_json()
        assert data['price'] == 850.0
        assert data['discount_percent'] == 15.0

    def test_unavailable_combination(self, client, ids):
        data = client.get('/api/price', query_string=_price_query(ids, size_cm=150)).get_json()
        assert data['available'] is False
        assert data['price'] is None

    def test_missing_parameters(self, client, ids):
        response = client.get('/api/price', query_string={'product_id': ids['product']})
        assert response.status_code == 422
        errors = response.get_json()['errors']
        assert 'size_cm' in errors
        assert 'fabric_id' in errors

    def test_price_summary(self, client, ids):
        response = client.get('/api/prices/summary', query_string={'product_ids': str(ids['product'])})
        data = response.get_json()
        assert data[str(ids['product'])]['min_price'] == 800.0

    def test_express_options(self, client, session, ids):
        session.add(ExpressStock(product_id=ids['product'], size_cm=200, fabric_id=ids['fabric'], quantity=1))
        session.commit()

        data = client.get(f"/api/products/{ids['product']}/express-options").get_json()
        assert data['options'] == [{
            'size_cm': 200,
            'fabric_id': ids['fabric'],
            'fabric_name': 'Linho Cru',
            'fabric_grade': 'G3000',
            'quantity': 1,
        }]

    def test_price_summary_rejects_garbage(self, client, ids):
        response = client.get('/api/prices/summary', query_string={'product_ids': '1,abc'})
        assert response.status_code == 422


class TestCartApi:
    """Cart endpoints for a logged-in customer."""

    def test_requires_login(self, client):
        assert client.get('/api/cart').status_code == 401

    def test_preview_then_discount_change_removes_line(self, client, session, ids, login, site_config):
        site_config(featured_discounts={ids['product']: '15'})
        login(ids['customer'])

        response = _add_to_cart(client, ids)
        assert response.status_code == 201
        assert response.get_json()['preview_unit_price'] == 850.0

        # Row discount 10% -> 20%: 850 -> 800 is a 5.88% drift
        session.query(PriceMatrixRow).filter_by(product_id=ids['product']).update(
            {PriceMatrixRow.discount_percent: Decimal('20')}, synchronize_session=False
        )
        session.commit()

        data = client.post('/api/cart/validate').get_json()
        assert data['removed_count'] == 1
        assert data['details'][0]['reason'] == 'PRICE_CHANGED'

        cart = client.get('/api/cart').get_json()
        assert cart['lines'] == []
        assert cart['total'] == 0.0

    def test_cart_view_prices_lines(self, client, ids, login):
        login(ids['customer'])
        _add_to_cart(client, ids, quantity=3)

        cart = client.get('/api/cart').get_json()
        assert len(cart['lines']) == 1
        assert cart['lines'][0]['current_price'] == 900.0
        assert cart['lines'][0]['line_total'] == 2700.0
        assert cart['total'] == 2700.0
        assert cart['message'] == 'Carrito validado con éxito.'

    def test_update_and_delete_line(self, client, ids, login):
        login(ids['customer'])
        line_id = _add_to_cart(client, ids).get_json()['id']

        response = client.put(f'/api/cart/lines/{line_id}', json={'quantity': 5})
        assert response.get_json()['quantity'] == 5

        assert client.put(f'/api/cart/lines/{line_id}', json={'quantity': 0}).status_code == 422

        assert client.delete(f'/api/cart/lines/{line_id}').status_code == 200
        assert client.get('/api/cart').get_json()['lines'] == []

    def test_unsellable_line_rejected(self, client, ids, login):
        login(ids['customer'])
        response = client.post('/api/cart/lines', json={**_price_query(ids, size_cm=150), 'quantity': 1})
        assert response.status_code == 422
        assert response.get_json()['reason'] == 'PRICE_ROW_NOT_FOUND'

    def test_unknown_coupon(self, client, ids, login):
        login(ids['customer'])
        assert client.post('/api/cart/coupon', json={'code': 'NADA'}).status_code == 404

    def test_coupon_on_empty_cart(self, client, session, ids, login):
        session.add(Coupon(code='BEMVINDO', active=True, minimum_value=Decimal('1000.00')))
        session.commit()
        login(ids['customer'])

        response = client.post('/api/cart/coupon', json={'code': 'bemvindo'})
        assert response.status_code == 422
        assert response.get_json()['message'] == 'El carrito está vacío.'

        _add_to_cart(client, ids)
        data = client.post('/api/cart/coupon', json={'code': 'bemvindo'}).get_json()
        assert data['code'] == 'BEMVINDO'
        assert data['minimum_value'] == 1000.0


class TestCheckoutApi:
    """POST /api/checkout"""

    def test_checkout_and_replay(self, client, session, ids, login):
        login(ids['customer'])
        _add_to_cart(client, ids)

        response = client.post('/api/checkout', headers={'Idempotency-Key': 'k-1'})
        assert response.status_code == 201
        created = response.get_json()
        assert created['total'] == 1800.0
        assert created['code'].startswith('PED-')

        replay = client.post('/api/checkout', headers={'Idempotency-Key': 'k-1'})
        assert replay.status_code == 200
        assert replay.get_json()['order_id'] == created['order_id']
        assert session.query(Order).count() == 1

    def test_empty_cart(self, client, ids, login):
        login(ids['customer'])
        response = client.post('/api/checkout')
        assert response.status_code == 400

    def test_empty_after_validation(self, client, session, ids, login):
        login(ids['customer'])
        _add_to_cart(client, ids)
        session.query(PriceMatrixRow).filter_by(product_id=ids['product']).update(
            {PriceMatrixRow.discount_percent: Decimal('50')}, synchronize_session=False
        )
        session.commit()

        response = client.post('/api/checkout')
        assert response.status_code == 400
        assert response.get_json()['removed_count'] == 1

    def test_idempotency_key_too_long(self, client, ids, login):
        login(ids['customer'])
        response = client.post('/api/checkout', headers={'Idempotency-Key': 'x' * 65})
        assert response.status_code == 422


class TestOrdersApi:
    """Customer and backoffice order endpoints."""

    @pytest.fixture
    def order_id(self, client, ids, login):
        login(ids['customer'])
        _add_to_cart(client, ids)
        return client.post('/api/checkout').get_json()['order_id']

    def test_customer_sees_own_orders(self, client, ids, order_id):
        data = client.get('/api/my-orders').get_json()
        assert [o['id'] for o in data['orders']] == [order_id]

        detail = client.get(f'/api/my-orders/{order_id}').get_json()
        assert detail['status'] == 'REQUESTED'
        assert len(detail['lines']) == 1
        assert [h['status'] for h in detail['history']] == ['REQUESTED']

    def test_other_customer_gets_404(self, client, ids, login, other_customer, order_id):
        login(other_customer.id)
        assert client.get(f'/api/my-orders/{order_id}').status_code == 404

    def test_customer_cannot_use_backoffice(self, client, ids, order_id):
        assert client.get('/api/admin/orders').status_code == 403
        response = client.post(f'/api/admin/orders/{order_id}/status', json={'new_status': 'APPROVED'})
        assert response.status_code == 403

    def test_staff_pipeline(self, client, ids, login, order_id):
        login(ids['staff'])

        listing = client.get('/api/admin/orders').get_json()
        assert listing['items'][0]['id'] == order_id
        assert listing['items'][0]['needs_attention'] is True

        assert client.post(f'/api/admin/orders/{order_id}/view').status_code == 200
        detail = client.get(f'/api/admin/orders/{order_id}').get_json()
        assert detail['needs_attention'] is False

        response = client.post(f'/api/admin/orders/{order_id}/status', json={'new_status': 'IN_PRODUCTION'})
        assert response.get_json() == {'updated': True, 'status': 'IN_PRODUCTION'}

        noop = client.post(f'/api/admin/orders/{order_id}/status', json={'new_status': 'IN_PRODUCTION'})
        assert noop.get_json()['updated'] is False

        backward = client.post(f'/api/admin/orders/{order_id}/status', json={'new_status': 'APPROVED'})
        assert backward.status_code == 409

        invalid = client.post(f'/api/admin/orders/{order_id}/status', json={'new_status': 'LOST'})
        assert invalid.status_code == 422

        login(ids['customer'])
        orders = client.get('/api/my-orders').get_json()['orders']
        assert orders[0]['has_unseen_updates'] is True

        client.post('/api/my-orders/view', json={'order_id': order_id})
        orders = client.get('/api/my-orders').get_json()['orders']
        assert orders[0]['has_unseen_updates'] is False

    def test_mark_viewed_validates_order_id(self, client, ids, order_id):
        assert client.post('/api/my-orders/view', json={'order_id': 'abc'}).status_code == 422
        assert client.post('/api/my-orders/view', json={'order_id': 0}).status_code == 422

        response = client.post('/api/my-orders/view', json={})
        assert response.status_code == 200
        assert response.get_json()['success'] is True

    def test_message_thread(self, client, ids, login, order_id):
        response = client.post(f'/api/my-orders/{order_id}/messages', json={'text': '¿Fecha de entrega?'})
        assert response.status_code == 201
        customer_message_id = response.get_json()['id']
        assert response.get_json()['role'] == 'CUSTOMER'

        login(ids['staff'])
        response = client.post(f'/api/admin/orders/{order_id}/messages', json={'text': 'En 30 días'})
        staff_message_id = response.get_json()['id']
        assert response.get_json()['role'] == 'STAFF'

        edited = client.put(f'/api/admin/orders/{order_id}/messages/{staff_message_id}',
                            json={'text': 'En 25 días'}).get_json()
        assert edited['edited'] is True
        assert edited['text'] == 'En 25 días'

        response = client.put(f'/api/admin/orders/{order_id}/messages/{customer_message_id}',
                              json={'text': 'otro'})
        assert response.status_code == 403

        assert client.delete(f'/api/admin/orders/{order_id}/messages/{staff_message_id}').status_code == 200
        detail = client.get(f'/api/admin/orders/{order_id}').get_json()
        deleted = [m for m in detail['messages'] if m['id'] == staff_message_id][0]
        assert deleted['deleted'] is True
        assert deleted['text'] is None


class TestSiteConfigApi:
    """Admin-only site configuration."""

    def test_staff_cannot_edit(self, client, ids, login):
        login(ids['staff'])
        assert client.put('/api/admin/site-config', json={'featured_discounts': {}}).status_code == 403

    def test_admin_sets_featured_discount(self, client, ids, login):
        login(ids['admin'])
        response = client.put('/api/admin/site-config',
                              json={'featured_discounts': {str(ids['product']): 15}})
        assert response.status_code == 200
        assert response.get_json()['featured_discounts'] == {str(ids['product']): '15.00'}

        data = client.get('/api/price', query_string=_price_query(ids)).get_json()
        assert data['price'] == 850.0

    def test_whitelist_hides_other_products(self, client, session, ids, login):
        login(ids['admin'])
        response = client.put('/api/admin/site-config', json={'active_product_ids': [ids['product']]})
        assert response.status_code == 200

        assert client.get('/api/price', query_string=_price_query(ids)).get_json()['available'] is True

        response = client.put('/api/admin/site-config', json={'active_product_ids': [ids['product'] + 50]})
        assert response.status_code == 422

    def test_invalid_percent(self, client, ids, login):
        login(ids['admin'])
        response = client.put('/api/admin/site-config',
                              json={'featured_discounts': {str(ids['product']): 100}})
        assert response.status_code == 422

    def test_unknown_key(self, client, ids, login):
        login(ids['admin'])
        assert client.put('/api/admin/site-config', json={'theme': 'dark'}).status_code == 422
