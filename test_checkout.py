#!/usr/bin/env python3
"""
注文確定フローのテスト
Order placement through POST /checkout and the orders service
"""

import unittest
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from minishop import create_app, db
from minishop.errors import InsufficientStock, StorageFault
from minishop.models import Customer, Order, OrderItem, OrderStatus, Product
from minishop.services import orders
from minishop.services.customers import CustomerDetails
from minishop.services.orders import CheckoutItem, place_order

CUSTOMER = {'name': 'Jane Doe', 'email': 'jane@example.com', 'address': '1 Main St'}


class CheckoutTestCase(unittest.TestCase):
    def setUp(self):
        """テスト用のFlaskアプリケーションとデータベースを設定"""
        self.app = create_app({
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
            'CHECKOUT_RETRY_DELAY': 0,
        })
        self.app_context = self.app.app_context()
        self.app_context.push()
        db.create_all()

        db.session.add_all([
            Product(id=1, name='Laptop', price=Decimal('999.99'), stock=10),
            Product(id=2, name='Wireless Mouse', price=Decimal('19.99'), stock=50),
        ])
        db.session.commit()

        self.client = self.app.test_client()

    def tearDown(self):
        db.session.remove()
        db.drop_all()
        self.app_context.pop()

    def snapshot(self):
        db.session.expire_all()
        return {
            'orders': Order.query.count(),
            'order_items': OrderItem.query.count(),
            'customers': Customer.query.count(),
            'stock': {product.id: product.stock for product in Product.query.order_by(Product.id)},
        }

    def checkout(self, items, customer=None):
        return self.client.post('/checkout', json={'customer': customer or CUSTOMER, 'items': items})


class TestCheckoutApi(CheckoutTestCase):
    def test_successful_checkout(self):
        response = self.checkout([
            {'productId': 1, 'quantity': 2, 'price': 999.99},
            {'productId': 2, 'quantity': 1, 'price': 19.99},
        ])

        self.assertEqual(response.status_code, 201)
        data = response.get_json()
        self.assertEqual(data['message'], 'Order placed successfully')

        order = db.session.get(Order, data['orderId'])
        self.assertEqual(order.total_amount, Decimal('2019.97'))
        self.assertEqual(order.status, OrderStatus.PENDING)
        self.assertEqual(order.customer.email, 'jane@example.com')

        items = OrderItem.query.order_by(OrderItem.id).all()
        self.assertEqual(len(items), 2)
        self.assertTrue(all(item.order_id == order.id for item in items))
        self.assertEqual([(i.product_id, i.quantity, i.price) for i in items],
                         [(1, 2, Decimal('999.99')), (2, 1, Decimal('19.99'))])

        self.assertEqual(self.snapshot()['stock'], {1: 8, 2: 49})

    def test_order_items_keep_price_snapshot(self):
        response = self.checkout([{'productId': 2, 'quantity': 1, 'price': '19.99'}])
        order_id = response.get_json()['orderId']

        product = db.session.get(Product, 2)
        product.price = Decimal('25.00')
        db.session.commit()

        response = self.client.get(f'/orders/{order_id}')
        data = response.get_json()
        self.assertEqual(data['items'][0]['price'], 19.99)
        self.assertEqual(data['total_amount'], 19.99)

    def test_existing_customer_is_reused(self):
        self.checkout([{'productId': 2, 'quantity': 1, 'price': 19.99}])
        self.checkout([{'productId': 2, 'quantity': 1, 'price': 19.99}],
                      customer=dict(CUSTOMER, email='  JANE@example.com '))

        self.assertEqual(Customer.query.count(), 1)
        self.assertEqual(Order.query.count(), 2)

    def test_insufficient_stock_changes_nothing(self):
        before = self.snapshot()

        response = self.checkout([
            {'productId': 1, 'quantity': 11, 'price': 999.99},
            {'productId': 2, 'quantity': 1, 'price': 19.99},
        ])

        self.assertEqual(response.status_code, 409)
        data = response.get_json()
        self.assertEqual(data['productIds'], [1])
        self.assertIn('Laptop', data['message'])
        self.assertEqual(self.snapshot(), before)

    def test_insufficient_stock_names_every_offending_product(self):
        response = self.checkout([
            {'productId': 1, 'quantity': 11, 'price': 999.99},
            {'productId': 2, 'quantity': 51, 'price': 19.99},
        ])
        self.assertEqual(response.get_json()['productIds'], [1, 2])

    def test_repeated_products_share_stock_check(self):
        response = self.checkout([
            {'productId': 1, 'quantity': 6, 'price': 999.99},
            {'productId': 1, 'quantity': 6, 'price': 999.99},
        ])
        self.assertEqual(response.status_code, 409)

        response = self.checkout([
            {'productId': 1, 'quantity': 3, 'price': 999.99},
            {'productId': 1, 'quantity': 2, 'price': 999.99},
        ])
        self.assertEqual(response.status_code, 201)
        self.assertEqual(OrderItem.query.count(), 2)
        self.assertEqual(self.snapshot()['stock'][1], 5)

    def test_unknown_product(self):
        before = self.snapshot()
        response = self.checkout([{'productId': 99, 'quantity': 1, 'price': 1}])

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()['productIds'], [99])
        self.assertEqual(self.snapshot(), before)

    def test_validation_failures(self):
        cases = [
            ({'customer': dict(CUSTOMER, email=''), 'items': [{'productId': 1, 'quantity': 1, 'price': 1}]},
             'customer.email is required'),
            ({'customer': dict(CUSTOMER, email='not-an-email'), 'items': [{'productId': 1, 'quantity': 1, 'price': 1}]},
             'customer.email is not a valid email address'),
            ({'items': [{'productId': 1, 'quantity': 1, 'price': 1}]},
             'customer must be an object'),
            ({'customer': CUSTOMER, 'items': []},
             'items must be a non-empty list'),
            ({'customer': CUSTOMER, 'items': [{'productId': 1, 'quantity': 0, 'price': 1}]},
             'items[0].quantity must be a positive integer'),
            ({'customer': CUSTOMER, 'items': [{'productId': 1, 'quantity': 1, 'price': -1}]},
             'items[0].price must be a non-negative number'),
            ({'customer': CUSTOMER, 'items': [{'productId': '1', 'quantity': 1, 'price': 1}]},
             'items[0].productId must be an integer'),
            ({'customer': CUSTOMER, 'items': [{'productId': 1, 'quantity': 1, 'price': 'abc'}]},
             'items[0].price must be a number'),
            ({'customer': CUSTOMER, 'items': [{'productId': 1, 'quantity': 1, 'price': '1e30'}]},
             'items[0].price is out of range'),
            ({'customer': CUSTOMER, 'items': [{'productId': 1, 'quantity': 1, 'price': 1e30}]},
             'items[0].price is out of range'),
            ({'customer': CUSTOMER, 'items': [{'productId': 1, 'quantity': 1, 'price': '100000000'}]},
             'items[0].price is out of range'),
            ({'customer': CUSTOMER, 'items': [{'productId': 10 ** 20, 'quantity': 1, 'price': 1}]},
             'items[0].productId is out of range'),
            ({'customer': CUSTOMER, 'items': [{'productId': 1, 'quantity': 10 ** 20, 'price': 1}]},
             'items[0].quantity is out of range'),
            ({'customer': dict(CUSTOMER, user_id=10 ** 20), 'items': [{'productId': 1, 'quantity': 1, 'price': 1}]},
             'customer.user_id is out of range'),
        ]
        before = self.snapshot()
        for body, message in cases:
            response = self.client.post('/checkout', json=body)
            self.assertEqual(response.status_code, 400, msg=message)
            self.assertEqual(response.get_json()['message'], message)
        self.assertEqual(self.snapshot(), before)

    def test_non_json_body(self):
        response = self.client.post('/checkout', data='items=1')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['message'], 'Request body must be a JSON object')

    def test_storage_fault_is_generic_and_rolled_back(self):
        before = self.snapshot()

        with patch.object(orders, '_decrement_stock', side_effect=SQLAlchemyError('disk I/O error on /var/db')):
            response = self.checkout([{'productId': 1, 'quantity': 2, 'price': 999.99}])

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json(), {'message': 'Internal server error'})
        self.assertEqual(self.snapshot(), before)

    def test_order_detail(self):
        response = self.checkout([{'productId': 1, 'quantity': 1, 'price': 999.99}])
        order_id = response.get_json()['orderId']

        response = self.client.get(f'/orders/{order_id}')
        self.assertEqual(response.status_code, 200)
        data = response.get_json()
        self.assertEqual(data['status'], 'pending')
        self.assertEqual(data['items'][0]['product_name'], 'Laptop')

    def test_order_detail_not_found(self):
        response = self.client.get('/orders/12345')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()['message'], 'Order 12345 not found')


class TestPlaceOrderService(CheckoutTestCase):
    details = CustomerDetails(name='Jane Doe', email='jane@example.com', address='1 Main St')

    def test_stock_taken_after_validation_aborts_order(self):
        load_products = orders._load_products

        def load_then_sell_out(product_ids):
            products = load_products(product_ids)
            # Another buyer takes most of the stock after our read
            db.session.execute(
                update(Product).where(Product.id == 1).values(stock=1)
                .execution_options(synchronize_session=False)
            )
            return products

        with patch.object(orders, '_load_products', side_effect=load_then_sell_out):
            with self.assertRaises(InsufficientStock) as ctx:
                place_order(self.details, [CheckoutItem(1, 6, Decimal('999.99'))])

        self.assertEqual(ctx.exception.products, [(1, 'Laptop')])
        after = self.snapshot()
        self.assertEqual(after['orders'], 0)
        self.assertEqual(after['order_items'], 0)
        self.assertEqual(after['customers'], 0)

    def test_transient_errors_are_retried(self):
        from sqlalchemy.exc import OperationalError

        decrement = orders._decrement_stock
        calls = []

        def flaky(product, quantity):
            calls.append(product.id)
            if len(calls) == 1:
                raise OperationalError('UPDATE products', {}, Exception('database is locked'))
            return decrement(product, quantity)

        with patch.object(orders, '_decrement_stock', side_effect=flaky):
            order = place_order(self.details, [CheckoutItem(1, 2, Decimal('999.99'))])

        self.assertEqual(len(calls), 2)
        after = self.snapshot()
        self.assertEqual(after['orders'], 1)
        self.assertEqual(after['stock'][1], 8)
        self.assertEqual(order.total_amount, Decimal('1999.98'))

    def test_storage_fault_after_retries(self):
        from sqlalchemy.exc import OperationalError

        error = OperationalError('UPDATE products', {}, Exception('database is locked'))
        with patch.object(orders, '_decrement_stock', side_effect=error):
            with self.assertRaises(StorageFault):
                place_order(self.details, [CheckoutItem(1, 2, Decimal('999.99'))])

        self.assertEqual(self.snapshot()['orders'], 0)

    def test_order_total(self):
        total = orders.order_total([
            CheckoutItem(1, 2, Decimal('999.99')),
            CheckoutItem(2, 1, Decimal('19.99')),
        ])
        self.assertEqual(total, Decimal('2019.97'))


if __name__ == '__main__':
    unittest.main()
