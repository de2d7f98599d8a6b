"""Sales, inventory and order endpoints through the HTTP API."""

from viba.models import InventoryUnit, Order
from viba.models.inventory import STATE_AVAILABLE
from viba.models.orders import ORDER_COMPLETED, ORDER_PENDING


class TestSalesApi:
    def test_sell_requires_full_session(self, client, db_session):
        resp = client.post('/api/vender', json={'productos': [{'producto': 'ribeye', 'cantidad': 1}]})
        assert resp.status_code == 401

    def test_sell(self, auth_client, seed_units):
        seed_units('ribeye', 10)

        resp = auth_client.post('/api/vender', json={'productos': [{'producto': 'ribeye', 'cantidad': 5}]})

        assert resp.status_code == 201
        body = resp.get_json()
        assert body['message'] == 'Venta realizada exitosamente.'
        assert body['total'] == 2250
        assert isinstance(body['id_venta'], int)

        inventory = auth_client.get('/api/inventario').get_json()
        assert inventory == [{'producto': 'ribeye', 'cantidad': 5}]

    def test_sell_unknown_product(self, auth_client, seed_units):
        seed_units('ribeye', 1)

        resp = auth_client.post('/api/vender', json={'productos': [{'producto': 'pollo', 'cantidad': 1}]})

        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Producto no reconocido: pollo'

    def test_sell_insufficient_inventory(self, auth_client, seed_units):
        seed_units('ribeye', 3)

        resp = auth_client.post('/api/vender', json={'productos': [{'producto': 'ribeye', 'cantidad': 5}]})

        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'No hay suficiente inventario para completar la venta.'
        assert auth_client.get('/api/inventario').get_json() == [{'producto': 'ribeye', 'cantidad': 3}]

    def test_sell_without_body(self, auth_client):
        resp = auth_client.post('/api/vender')
        assert resp.status_code == 400

    def test_list_update_delete(self, auth_client, seed_units):
        seed_units('tomahawk', 3)
        sale_id = auth_client.post(
            '/api/vender', json={'productos': [{'producto': 'tomahawk', 'cantidad': 2}]}
        ).get_json()['id_venta']

        sales = auth_client.get('/api/ventas').get_json()
        assert sales[0]['id'] == sale_id
        assert sales[0]['total'] == 1200
        assert len(sales[0]['productos']) == 2

        resp = auth_client.put(f'/api/ventas/{sale_id}', json={
            'productos': [{'nombre': 'tomahawk', 'cantidad': 2, 'costo_unitario': 550}],
        })
        assert resp.status_code == 200
        assert resp.get_json()['total'] == 1100

        resp = auth_client.put(f'/api/ventas/{sale_id}', json={
            'productos': [{'nombre': 'tomahawk', 'cantidad': 3, 'costo_unitario': 550}],
        })
        assert resp.status_code == 400

        assert auth_client.delete(f'/api/ventas/{sale_id}').status_code == 200
        assert auth_client.get('/api/ventas').get_json() == []
        # Default delete does not restock
        assert auth_client.get('/api/inventario').get_json() == [{'producto': 'tomahawk', 'cantidad': 1}]

    def test_delete_with_restock(self, auth_client, seed_units):
        seed_units('arrachera', 2)
        sale_id = auth_client.post(
            '/api/vender', json={'productos': [{'producto': 'arrachera', 'cantidad': 2}]}
        ).get_json()['id_venta']

        assert auth_client.delete(f'/api/ventas/{sale_id}?restock=true').status_code == 200
        assert auth_client.get('/api/inventario').get_json() == [{'producto': 'arrachera', 'cantidad': 2}]

    def test_unknown_sale(self, auth_client):
        assert auth_client.delete('/api/ventas/999').status_code == 404
        resp = auth_client.put('/api/ventas/999', json={
            'productos': [{'nombre': 'ribeye', 'cantidad': 1, 'costo_unitario': 450}],
        })
        assert resp.status_code == 404


class TestOrdersApi:
    def _order_body(self, requester, supplier):
        return {
            'correo_solicita': requester.email,
            'correo_provee': supplier.email,
            'fecha_emision': '2026-10-01T10:00:00Z',
            'productos': [
                {'producto': 'ribeye', 'cantidad': 3, 'precio': 380},
                {'producto': 'Diezmillo', 'cantidad': 2, 'precio': 210},
            ],
        }

    def test_create_and_complete_order(self, auth_client, enrolled_user, admin_user, db_session):
        resp = auth_client.post('/api/nuevaorden', json=self._order_body(enrolled_user, admin_user))
        assert resp.status_code == 201
        order_id = resp.get_json()['id_orden']

        order = db_session.get(Order, order_id)
        assert order.estado == ORDER_PENDING
        assert [line.producto for line in order.lines] == ['ribeye', 'diezmillo']

        resp = auth_client.post(f'/api/completarorden/{order_id}', json={})
        assert resp.status_code == 200
        assert resp.get_json()['unidades'] == 5

        db_session.expire_all()
        assert db_session.get(Order, order_id).estado == ORDER_COMPLETED
        units = db_session.query(InventoryUnit).filter_by(order_id=order_id).all()
        assert len(units) == 5
        assert all(u.estado == STATE_AVAILABLE for u in units)
        assert all(u.observaciones == f'Orden completada: #{order_id}' for u in units)

        assert auth_client.get('/api/inventario').get_json() == [
            {'producto': 'diezmillo', 'cantidad': 2},
            {'producto': 'ribeye', 'cantidad': 3},
        ]

    def test_completing_twice_is_refused(self, auth_client, enrolled_user, admin_user, db_session):
        order_id = auth_client.post(
            '/api/nuevaorden', json=self._order_body(enrolled_user, admin_user)
        ).get_json()['id_orden']

        assert auth_client.post(f'/api/completarorden/{order_id}').status_code == 200
        assert auth_client.post(f'/api/completarorden/{order_id}').status_code == 400
        assert db_session.query(InventoryUnit).count() == 5

    def test_missing_fields(self, auth_client):
        resp = auth_client.post('/api/nuevaorden', json={'correo_solicita': 'a@viba.test'})
        assert resp.status_code == 400

    def test_unknown_supplier(self, auth_client, enrolled_user):
        body = self._order_body(enrolled_user, enrolled_user)
        body['correo_provee'] = 'nadie@viba.test'

        assert auth_client.post('/api/nuevaorden', json=body).status_code == 404

    def test_unknown_order(self, auth_client):
        assert auth_client.post('/api/completarorden/999').status_code == 404


def test_health(client, db_session):
    resp = client.get('/health')

    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'ok'


def test_cors_headers_for_allowed_origin(app, client, db_session):
    origin = app.config['CORS_ALLOWED_ORIGINS'][0]
    resp = client.get('/api/check-auth', headers={'Origin': origin})

    assert resp.headers['Access-Control-Allow-Origin'] == origin
    assert resp.headers['Access-Control-Allow-Credentials'] == 'true'


class TestRequestBodies:
    def test_blank_sale_date_means_now(self, auth_client, seed_units):
        seed_units('ribeye', 1)

        resp = auth_client.post('/api/vender', json={
            'productos': [{'producto': 'ribeye', 'cantidad': 1}],
            'fecha_emision': '   ',
        })

        assert resp.status_code == 201
        assert auth_client.get('/api/ventas').get_json()[0]['fecha'].endswith('Z')

    def test_bad_sale_date(self, auth_client, seed_units):
        seed_units('ribeye', 1)

        resp = auth_client.post('/api/vender', json={
            'productos': [{'producto': 'ribeye', 'cantidad': 1}],
            'fecha_emision': 'ayer',
        })

        assert resp.status_code == 400

    def test_blank_order_date_is_required(self, auth_client, enrolled_user, admin_user, db_session):
        resp = auth_client.post('/api/nuevaorden', json={
            'correo_solicita': enrolled_user.email,
            'correo_provee': admin_user.email,
            'fecha_emision': '   ',
            'productos': [{'producto': 'ribeye', 'cantidad': 1, 'precio': 380}],
        })

        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'fecha_emision es obligatorio'
        assert db_session.query(Order).count() == 0

    def test_array_body_on_sell(self, auth_client, seed_units):
        seed_units('ribeye', 1)

        resp = auth_client.post('/api/vender', json=[{'producto': 'ribeye', 'cantidad': 1}])

        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Cuerpo JSON inválido'
        assert auth_client.get('/api/inventario').get_json() == [{'producto': 'ribeye', 'cantidad': 1}]

    def test_non_object_bodies_on_other_routes(self, auth_client):
        assert auth_client.put('/api/ventas/1', json=['x']).status_code == 400
        assert auth_client.post('/api/nuevaorden', json='texto').status_code == 400
        assert auth_client.post('/api/completarorden/1', json=[1]).status_code == 400
