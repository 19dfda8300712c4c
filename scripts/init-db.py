#!/usr/bin/env python3
"""
Database initialization script
Creates categories, sample products and a test user for the shop
"""

import sys
import os

# Add parent directory to path to import minishop
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from minishop import create_app, db
from minishop.models import Category, Product, User

SAMPLE_CATALOG = {
    'Electronics': [
        {'name': 'Laptop', 'description': 'High-performance laptop for work and play.',
         'price': 999.99, 'rating': 4.5, 'stock': 10},
        {'name': 'Wireless Mouse', 'description': 'Comfortable wireless mouse.',
         'price': 19.99, 'rating': 4.1, 'stock': 50},
        {'name': 'Mechanical Keyboard', 'description': 'Tactile mechanical keyboard.',
         'price': 89.00, 'rating': 4.7, 'stock': 30},
        {'name': 'USB-C Hub', 'description': '7-in-1 USB-C hub with HDMI.',
         'price': 39.50, 'rating': 3.9, 'stock': 40},
        {'name': 'Noise Cancelling Earbuds', 'description': 'Wireless earbuds with ANC.',
         'price': 129.00, 'rating': 4.3, 'stock': 25},
    ],
    'Books': [
        {'name': 'Python Cookbook', 'description': 'Recipes for mastering Python.',
         'price': 45.00, 'rating': 4.8, 'stock': 15},
        {'name': 'SQL Basics', 'description': 'A gentle introduction to SQL.',
         'price': 24.99, 'rating': 4.0, 'stock': 20},
    ],
    'Home': [
        {'name': 'Desk Lamp', 'description': 'Dimmable LED desk lamp.',
         'price': 34.00, 'rating': 4.2, 'stock': 35},
        {'name': 'Monitor Arm', 'description': 'Dual monitor arm.',
         'price': 59.90, 'rating': 3.8, 'stock': 12},
        {'name': 'Water Bottle', 'description': 'Insulated steel bottle.',
         'price': 18.00, 'rating': 4.4, 'stock': 60},
    ],
}


def init_db():
    app = create_app()

    with app.app_context():
        # Create all tables
        print("Creating database tables...")
        db.create_all()

        # Check if products already exist
        if Product.query.first():
            print("Database already initialized.")
            return

        print("Creating categories and sample products...")
        product_count = 0
        for category_name, products in SAMPLE_CATALOG.items():
            category = Category(name=category_name)
            db.session.add(category)
            for product_data in products:
                db.session.add(Product(category=category, **product_data))
                product_count += 1

        # Create a test user
        print("Creating test user...")
        test_user = User(username='testuser', email='test@example.com')
        test_user.set_password('password123')
        db.session.add(test_user)

        db.session.commit()
        print(f"Successfully created {len(SAMPLE_CATALOG)} categories, {product_count} products and 1 test user")


if __name__ == '__main__':
    init_db()
