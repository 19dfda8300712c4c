#!/usr/bin/env python3
"""
Place an order through the shop HTTP API

Usage:
    place-order.py NAME EMAIL ADDRESS PRODUCT_ID:QUANTITY [PRODUCT_ID:QUANTITY ...]

The API base URL is read from SHOP_API_URL (default http://localhost:5000).
Unit prices are taken from the current catalog.
"""

import sys
import os

# Add parent directory to path to import minishop
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from minishop.services.api_client import ClientError, ShopClient


def parse_item(arg):
    product_id, _, quantity = arg.partition(':')
    return int(product_id), int(quantity or 1)


def main(argv):
    if len(argv) < 5:
        print(__doc__)
        return 2

    name, email, address = argv[1:4]
    try:
        requested = [parse_item(arg) for arg in argv[4:]]
    except ValueError:
        print("Items must look like PRODUCT_ID:QUANTITY")
        return 2

    client = ShopClient(os.getenv('SHOP_API_URL', 'http://localhost:5000'))

    try:
        items = []
        for product_id, quantity in requested:
            product = client.get_product(product_id)
            items.append({'productId': product_id, 'quantity': quantity, 'price': product['price']})
            print(f"  {product['name']} x{quantity} @ {product['price']:.2f}")

        order_id = client.checkout({"name": name, "email": email, "address": address}, items)
        order = client.get_order(order_id)
    except ClientError as e:
        print(f"❌ Checkout failed: {e.message}")
        return 1

    print(f"✅ Order {order_id} placed, total {order['total_amount']:.2f} ({order['status']})")
    return 0


if __name__ == '__main__':
    sys.exit(main(sys.argv))
