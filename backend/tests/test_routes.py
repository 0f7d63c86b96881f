"""
HTTP API tests for the staff back office.

Verifies status codes and payload shapes for the session-authenticated
routes; ledger rules themselves are covered by the service tests.
"""

from decimal import Decimal

from backoffice.extensions import db
from backoffice.models import CashClosing, Customer, Expense, SessionToken

from conftest import auth_headers_for


class TestAuthRoutes:

    def test_protected_route_requires_token(self, client, db_session):
        assert client.get('/api/products').status_code == 401
        assert client.get('/api/products', headers={'Authorization': 'Bearer nope'}).status_code == 401

    def test_login_me_logout(self, client, user):
        headers = auth_headers_for(client, 'owner', 'Password123')

        me = client.get('/api/auth/me', headers=headers)
        assert me.status_code == 200
        assert me.json['user']['username'] == 'owner'

        assert client.post('/api/auth/logout', headers=headers).status_code == 200
        assert client.get('/api/auth/me', headers=headers).status_code == 401

    def test_login_by_email(self, client, user):
        response = client.post('/api/auth/login', json={'email': 'owner@shop.local', 'password': 'Password123'})
        assert response.status_code == 200
        assert response.json['token']

    def test_bad_credentials(self, client, user):
        response = client.post('/api/auth/login', json={'username': 'owner', 'password': 'wrong-pass1'})
        assert response.status_code == 401
        assert db.session.query(SessionToken).count() == 0

    def test_missing_credentials(self, client, db_session):
        assert client.post('/api/auth/login', json={'username': 'owner'}).status_code == 400


class TestProductRoutes:

    def test_create_and_get(self, client, auth_headers):
        response = client.post('/api/products', json={
            'name': 'Rice 1kg', 'sale_price': '3.20', 'current_stock': '12', 'barcode': '779555',
        }, headers=auth_headers)
        assert response.status_code == 201
        product = response.json
        assert product['sale_price'] == '3.20'
        assert product['current_stock'] == '12.000'

        fetched = client.get(f"/api/products/{product['id']}", headers=auth_headers)
        assert fetched.json['barcode'] == '779555'

        movements = client.get(f"/api/products/{product['id']}/movements", headers=auth_headers)
        assert movements.status_code == 200
        assert movements.json['items'][0]['quantity'] == '12.000'

    def test_unlisted_fields_are_rejected(self, client, auth_headers):
        response = client.post('/api/products', json={
            'name': 'Rice', 'sale_price': '3.20', 'version_id': 7,
        }, headers=auth_headers)
        assert response.status_code == 400

    def test_delete_is_soft(self, client, auth_headers, make_product):
        product = make_product()
        response = client.delete(f'/api/products/{product.id}', headers=auth_headers)
        assert response.status_code == 200
        assert response.json['is_active'] is False
        assert client.get('/api/products', headers=auth_headers).json['items'] == []

    def test_unknown_product_is_404(self, client, auth_headers):
        assert client.get('/api/products/999999', headers=auth_headers).status_code == 404

    def test_purchase_suggestions(self, client, auth_headers, make_product):
        make_product(name='Plenty', stock='40', min_stock='5')
        make_product(name='Oil', stock='0', min_stock='4')

        response = client.get('/api/products/purchase-suggestions', headers=auth_headers)

        assert response.status_code == 200
        [item] = response.json['items']
        assert item['product']['name'] == 'Oil'
        assert item['suggested_quantity'] == '8.000'
        assert item['priority'] == 'urgent'


class TestSaleRoutes:

    def test_create_sale(self, client, auth_headers, make_product, make_customer):
        product = make_product(sale_price='25.00', stock='10')
        customer = make_customer()

        response = client.post('/api/sales', json={
            'sale': {'payment_method': 'credit', 'customer_id': customer.id, 'sale_date': '2024-05-01'},
            'items': [{'product_id': product.id, 'quantity': 2}],
        }, headers=auth_headers)

        assert response.status_code == 201
        sale = response.json['sale']
        assert sale['total_amount'] == '50.00'
        assert sale['is_paid'] is False
        assert sale['entry_method'] == 'manual'
        assert sale['items'][0]['unit_price'] == '25.00'
        assert response.json['warnings'] == []
        assert db.session.get(Customer, customer.id).current_debt == Decimal('50.00')

    def test_insufficient_stock_is_409(self, client, auth_headers, make_product):
        product = make_product(name='Milk', stock='1')

        response = client.post('/api/sales', json={
            'sale': {'payment_method': 'cash'},
            'items': [{'product_id': product.id, 'quantity': 5}],
        }, headers=auth_headers)

        assert response.status_code == 409
        assert response.json['details']['product_name'] == 'Milk'

    def test_invalid_body_is_400(self, client, auth_headers):
        response = client.post('/api/sales', json={'sale': 'cash', 'items': []}, headers=auth_headers)
        assert response.status_code == 400

    def test_list_and_get(self, client, auth_headers, make_product):
        product = make_product()
        created = client.post('/api/sales', json={
            'sale': {'payment_method': 'cash', 'sale_date': '2024-05-01'},
            'items': [{'product_id': product.id, 'quantity': 1}],
        }, headers=auth_headers).json['sale']

        listed = client.get('/api/sales?start_date=2024-05-01&end_date=2024-05-01', headers=auth_headers)
        assert [s['id'] for s in listed.json['items']] == [created['id']]

        fetched = client.get(f"/api/sales/{created['id']}", headers=auth_headers)
        assert len(fetched.json['items']) == 1

        assert client.get('/api/sales?start_date=01-05-2024', headers=auth_headers).status_code == 400


class TestPaymentRoutes:

    def test_create_payment(self, client, auth_headers, make_customer):
        customer = make_customer(debt='300')

        response = client.post('/api/payments', json={
            'customer_id': customer.id, 'amount': '120.00', 'payment_method': 'transfer',
        }, headers=auth_headers)

        assert response.status_code == 201
        assert response.json['payment']['amount'] == '120.00'
        assert response.json['customer']['current_debt'] == '180.00'

    def test_overpayment_is_409(self, client, auth_headers, make_customer):
        customer = make_customer(debt='500')

        response = client.post('/api/payments', json={
            'customer_id': customer.id, 'amount': '600', 'payment_method': 'cash',
        }, headers=auth_headers)

        assert response.status_code == 409
        assert response.json['details']['current_debt'] == '500.00'

    def test_unknown_customer_is_404(self, client, auth_headers):
        response = client.post('/api/payments', json={
            'customer_id': 999999, 'amount': '10', 'payment_method': 'cash',
        }, headers=auth_headers)
        assert response.status_code == 404


class TestClosingRoutes:

    def test_closed_by_comes_from_session(self, client, auth_headers, user):
        response = client.post('/api/cash-closings', json={
            'closing_date': '2024-05-01',
            'actual_cash': '0',
            'actual_transfers': '0',
            'closed_by': 'someone-else',
            'expected_cash': '999',
        }, headers=auth_headers)

        assert response.status_code == 201
        assert response.json['closed_by_user_id'] == user.id
        assert response.json['expected_cash'] == '0.00'
        assert response.json['reconciliation_status'] == 'completed'

    def test_duplicate_date_is_409(self, client, auth_headers):
        body = {'closing_date': '2024-05-01', 'actual_cash': '0', 'actual_transfers': '0'}
        assert client.post('/api/cash-closings', json=body, headers=auth_headers).status_code == 201
        assert client.post('/api/cash-closings', json=body, headers=auth_headers).status_code == 409
        assert db.session.query(CashClosing).count() == 1

    def test_by_date_and_preview(self, client, auth_headers, make_product):
        assert client.get('/api/cash-closings/by-date/2024-05-01', headers=auth_headers).status_code == 404

        product = make_product(sale_price='10.00')
        client.post('/api/sales', json={
            'sale': {'payment_method': 'cash', 'sale_date': '2024-05-01'},
            'items': [{'product_id': product.id, 'quantity': 3}],
        }, headers=auth_headers)

        preview = client.get('/api/cash-closings/preview/2024-05-01', headers=auth_headers)
        assert preview.status_code == 200
        assert preview.json['totals']['expected_cash'] == '30.00'

        client.post('/api/cash-closings', json={
            'closing_date': '2024-05-01', 'actual_cash': '30', 'actual_transfers': '0',
        }, headers=auth_headers)
        found = client.get('/api/cash-closings/by-date/2024-05-01', headers=auth_headers)
        assert found.status_code == 200
        assert found.json['cash_variance'] == '0.00'

    def test_bad_path_date_is_400(self, client, auth_headers):
        assert client.get('/api/cash-closings/by-date/yesterday', headers=auth_headers).status_code == 400


class TestDashboardAndExpenses:

    def test_daily_summary(self, client, auth_headers, make_product, make_customer):
        product = make_product(sale_price='10.00', stock='5', min_stock='5')
        customer = make_customer()
        for method, extra in (('cash', {}), ('credit', {'customer_id': customer.id})):
            client.post('/api/sales', json={
                'sale': {'payment_method': method, 'sale_date': '2024-05-01', **extra},
                'items': [{'product_id': product.id, 'quantity': 1}],
            }, headers=auth_headers)
        client.post('/api/expenses', json={
            'description': 'Bags', 'amount': '2.50', 'payment_method': 'cash', 'expense_date': '2024-05-01',
        }, headers=auth_headers)

        summary = client.get('/api/dashboard/summary/2024-05-01', headers=auth_headers).json
        assert summary['total_sales'] == '10.00'
        assert summary['credit_given'] == '10.00'
        assert summary['total_expenses'] == '2.50'
        assert summary['low_stock_count'] == 1
        assert summary['total_outstanding_debt'] == '10.00'

    def test_expense_validation(self, client, auth_headers):
        response = client.post('/api/expenses', json={
            'description': 'Bags', 'amount': '2.50', 'payment_method': 'credit',
        }, headers=auth_headers)
        assert response.status_code == 400

        response = client.post('/api/expenses', json={
            'description': 'Bags', 'amount': '10.005', 'payment_method': 'cash',
        }, headers=auth_headers)
        assert response.status_code == 400
        assert db.session.query(Expense).count() == 0


class TestApiKeyRoutes:

    def test_create_list_revoke(self, client, auth_headers, user):
        created = client.post('/api/api-keys', json={
            'key_name': 'assistant', 'permissions': ['read_stock', 'create_sale'],
        }, headers=auth_headers)
        assert created.status_code == 201
        assert created.json['key'].startswith('bk_')
        assert created.json['api_key']['created_by_user_id'] == user.id
        key_id = created.json['api_key']['id']

        listed = client.get('/api/api-keys', headers=auth_headers).json['items']
        assert [k['id'] for k in listed] == [key_id]
        assert 'key_hash' not in listed[0]

        assert client.delete(f'/api/api-keys/{key_id}', headers=auth_headers).status_code == 200
        assert client.get('/api/api-keys', headers=auth_headers).json['items'] == []

    def test_unknown_scope_rejected(self, client, auth_headers):
        response = client.post('/api/api-keys', json={
            'key_name': 'assistant', 'permissions': ['delete_everything'],
        }, headers=auth_headers)
        assert response.status_code == 400


class TestHealth:

    def test_health(self, client, db_session):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.json['checks']['database']['status'] == 'healthy'
