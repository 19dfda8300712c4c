#!/usr/bin/env python3
"""
顧客APIのテスト
"""

import unittest

from minishop import create_app, db
from minishop.models import Customer, User


class TestCustomersApi(unittest.TestCase):
    def setUp(self):
        self.app = create_app({
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        })
        self.app_context = self.app.app_context()
        self.app_context.push()
        db.create_all()

        self.user = User(username='testuser', email='test@example.com')
        self.user.set_password('password123')
        db.session.add(self.user)
        db.session.commit()

        self.client = self.app.test_client()

    def tearDown(self):
        db.session.remove()
        db.drop_all()
        self.app_context.pop()

    def test_list_empty(self):
        response = self.client.get('/customers')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json(), [])

    def test_create_and_list(self):
        response = self.client.post('/customers', json={
            'name': 'Jane Doe', 'email': 'Jane@Example.com', 'address': '1 Main St'
        })
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.get_json()['message'], 'Customer created successfully')

        response = self.client.get('/customers')
        customers = response.get_json()
        self.assertEqual(len(customers), 1)
        self.assertEqual(customers[0]['email'], 'jane@example.com')
        self.assertIsNone(customers[0]['user_id'])

    def test_create_linked_to_user(self):
        response = self.client.post('/customers', json={
            'user_id': self.user.id, 'name': 'Test User', 'email': 'test@example.com', 'address': '2 Side St'
        })
        self.assertEqual(response.status_code, 201)
        customer = db.session.get(Customer, response.get_json()['customerId'])
        self.assertEqual(customer.user, self.user)

    def test_unknown_user(self):
        response = self.client.post('/customers', json={
            'user_id': 999, 'name': 'Ghost', 'email': 'ghost@example.com', 'address': 'Nowhere'
        })
        self.assertEqual(response.status_code, 404)
        self.assertEqual(Customer.query.count(), 0)

    def test_duplicate_email(self):
        payload = {'name': 'Jane Doe', 'email': 'jane@example.com', 'address': '1 Main St'}
        self.client.post('/customers', json=payload)
        response = self.client.post('/customers', json=dict(payload, email='JANE@example.com'))

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json(), {'message': 'Email already registered'})

    def test_missing_fields(self):
        response = self.client.post('/customers', json={'email': 'jane@example.com', 'address': 'x'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['message'], 'name is required')

        response = self.client.post('/customers', json={'name': 'Jane', 'email': 'jane@example.com',
                                                        'address': 'x', 'user_id': 'abc'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['message'], 'user_id must be an integer')

        response = self.client.post('/customers', json={'name': 'Jane', 'email': 'jane@example.com',
                                                        'address': 'x', 'user_id': 10 ** 20})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['message'], 'user_id is out of range')

    def test_user_password_helpers(self):
        self.assertTrue(self.user.check_password('password123'))
        self.assertFalse(self.user.check_password('wrong'))


if __name__ == '__main__':
    unittest.main()
