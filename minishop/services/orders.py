"""
Order placement: turns a cart snapshot and customer details into an Order

Steps run inside one session transaction. Stock is decremented with a
conditional UPDATE so two concurrent checkouts cannot oversell a product.
"""
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, List, Tuple

import newrelic.agent
from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from minishop import db
from minishop.errors import InsufficientStock, NotFound, ShopError, StorageFault, ValidationFailure
from minishop.models import Order, OrderItem, OrderStatus, Product
from minishop.services.catalog import MAX_ID
from minishop.services.customers import CustomerDetails, resolve_customer

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
# Largest value a Numeric(10, 2) column holds
MAX_PRICE = Decimal('99999999.99')


@dataclass
class CheckoutItem:
    product_id: int
    quantity: int
    price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    @classmethod
    def from_payload(cls, data, index=0):
        field = f'items[{index}]'
        if not isinstance(data, dict):
            raise ValidationFailure(f'{field} must be an object')

        product_id = data.get('productId')
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise ValidationFailure(f'{field}.productId must be an integer')
        if not 0 < product_id <= MAX_ID:
            raise ValidationFailure(f'{field}.productId is out of range')

        quantity = data.get('quantity')
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationFailure(f'{field}.quantity must be a positive integer')
        if quantity > MAX_ID:
            raise ValidationFailure(f'{field}.quantity is out of range')

        raw_price = data.get('price')
        if isinstance(raw_price, bool) or not isinstance(raw_price, (int, float, str)):
            raise ValidationFailure(f'{field}.price must be a number')
        try:
            price = Decimal(str(raw_price))
        except InvalidOperation:
            raise ValidationFailure(f'{field}.price must be a number')
        if not price.is_finite() or price < 0:
            raise ValidationFailure(f'{field}.price must be a non-negative number')
        if price > MAX_PRICE:
            raise ValidationFailure(f'{field}.price is out of range')
        try:
            price = price.quantize(CENT, ROUND_HALF_UP)
        except InvalidOperation:
            raise ValidationFailure(f'{field}.price is out of range')

        return cls(product_id=product_id, quantity=quantity, price=price)


def parse_checkout_payload(data) -> Tuple[CustomerDetails, List[CheckoutItem]]:
    """Validate a checkout request body"""
    if not isinstance(data, dict):
        raise ValidationFailure('Request body must be a JSON object')

    details = CustomerDetails.from_payload(data.get('customer'), prefix='customer.')

    raw_items = data.get('items')
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationFailure('items must be a non-empty list')
    items = [CheckoutItem.from_payload(item, index) for index, item in enumerate(raw_items)]

    return details, items


def order_total(items: List[CheckoutItem]) -> Decimal:
    return sum((item.line_total for item in items), Decimal('0')).quantize(CENT, ROUND_HALF_UP)


def _requested_quantities(items: List[CheckoutItem]) -> Dict[int, int]:
    # Repeated product ids share one stock check; ascending id fixes lock order
    requested = {}
    for item in items:
        requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity
    return OrderedDict(sorted(requested.items()))


def _load_products(product_ids) -> Dict[int, Product]:
    products = {product.id: product for product in Product.query.filter(Product.id.in_(product_ids)).all()}
    missing = [product_id for product_id in product_ids if product_id not in products]
    if missing:
        raise NotFound(
            f'Product(s) not found: {", ".join(str(product_id) for product_id in missing)}',
            payload={'productIds': missing}
        )
    return products


def _decrement_stock(product: Product, quantity: int):
    result = db.session.execute(
        update(Product)
        .where(Product.id == product.id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # Stock changed after validation
        raise InsufficientStock([(product.id, product.name)])
    db.session.expire(product, ['stock'])


def _place_order(details: CustomerDetails, items: List[CheckoutItem]) -> Order:
    customer = resolve_customer(details)

    requested = _requested_quantities(items)
    products = _load_products(list(requested))

    short = [
        (product_id, products[product_id].name)
        for product_id, quantity in requested.items()
        if quantity > (products[product_id].stock or 0)
    ]
    if short:
        raise InsufficientStock(short)

    order = Order(customer=customer, total_amount=order_total(items), status=OrderStatus.PENDING)
    db.session.add(order)
    for item in items:
        db.session.add(OrderItem(
            order=order,
            product_id=item.product_id,
            quantity=item.quantity,
            price=item.price
        ))
    db.session.flush()

    for product_id, quantity in requested.items():
        _decrement_stock(products[product_id], quantity)

    return order


@newrelic.agent.function_trace()
def place_order(details: CustomerDetails, items: List[CheckoutItem]) -> Order:
    """
    Persist an order for ``items`` on behalf of the customer in ``details``

    Either every row (customer, order, order items, stock decrements) is
    committed or none is. Transient database errors such as lock timeouts
    retry the whole transaction.

    Raises:
        ValidationFailure: no items
        NotFound: an item references an unknown product
        InsufficientStock: requested quantity exceeds stock
        StorageFault: the database failed
    """
    if not items:
        raise ValidationFailure('items must be a non-empty list')

    max_attempts = max(1, int(current_app.config.get('CHECKOUT_MAX_ATTEMPTS', 3)))
    base_delay = float(current_app.config.get('CHECKOUT_RETRY_DELAY', 0.05))

    logger.info(f'Checkout started for {details.email}', extra={
        'event_type': 'checkout_start',
        'item_count': len(items)
    })

    for attempt in range(max_attempts):
        try:
            order = _place_order(details, items)
            db.session.commit()
            break
        except ShopError as e:
            db.session.rollback()
            logger.info(f'Checkout rejected: {e.message}', extra={
                'event_type': 'checkout_rejected',
                'error_type': e.error_type
            })
            raise
        except OperationalError as e:
            db.session.rollback()
            if attempt < max_attempts - 1:
                delay = base_delay * (2 ** attempt)
                logger.warning(f'Transient database error during checkout, retry {attempt + 1}/{max_attempts} in {delay}s: {e}')
                time.sleep(delay)
                continue
            logger.exception('Checkout failed after retries', extra={'event_type': 'storage_fault'})
            raise StorageFault() from e
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception('Checkout failed', extra={'event_type': 'storage_fault'})
            raise StorageFault() from e

    newrelic.agent.add_custom_attribute('orderId', order.id)
    logger.info('Order placed successfully', extra={
        'event_type': 'order_success',
        'order_id': order.id,
        'customer_id': order.customer_id,
        'total_amount': float(order.total_amount)
    })
    return order


def get_order(order_id) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFound(f'Order {order_id} not found')
    return order
