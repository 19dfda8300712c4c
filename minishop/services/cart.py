"""
In-process shopping carts keyed by cart session id

Carts live only in process memory; they are lost on restart and are not
shared between worker processes.
"""
import logging
import threading
import uuid
from typing import Dict, Optional

from flask import has_request_context, request, session

from minishop.errors import ValidationFailure
from minishop.services.catalog import MAX_ID

logger = logging.getLogger(__name__)

CART_SESSION_HEADER = 'X-Cart-Session'
CART_SESSION_KEY = 'cart_id'


def parse_quantity(value, default=1) -> int:
    """Validate a requested quantity; only positive integers are accepted"""
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        raise ValidationFailure('quantity must be a positive integer')
    if isinstance(value, float) and not value.is_integer():
        raise ValidationFailure('quantity must be a positive integer')
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        raise ValidationFailure('quantity must be a positive integer')
    if quantity < 1:
        raise ValidationFailure('quantity must be a positive integer')
    if quantity > MAX_ID:
        raise ValidationFailure('quantity is out of range')
    return quantity


class CartStore:
    """Thread-safe mapping of session id -> {product id: quantity}"""

    def __init__(self):
        self._carts: Dict[str, Dict[int, int]] = {}
        self._lock = threading.Lock()

    def add(self, session_id: str, product_id: int, quantity: int) -> Dict[int, int]:
        quantity = parse_quantity(quantity)
        with self._lock:
            cart = self._carts.setdefault(session_id, {})
            cart[product_id] = cart.get(product_id, 0) + quantity
            return dict(cart)

    def remove(self, session_id: str, product_id: int) -> Dict[int, int]:
        with self._lock:
            cart = self._carts.get(session_id, {})
            cart.pop(product_id, None)
            if not cart:
                self._carts.pop(session_id, None)
            return dict(cart)

    def get(self, session_id: str) -> Dict[int, int]:
        with self._lock:
            return dict(self._carts.get(session_id, {}))

    def clear(self, session_id: str):
        with self._lock:
            self._carts.pop(session_id, None)

    def __len__(self):
        with self._lock:
            return len(self._carts)


# Process-wide store; every call is scoped by cart session id
cart_store = CartStore()


def current_cart_session(create=True) -> Optional[str]:
    """
    Resolve the cart session id for the current request

    The X-Cart-Session header wins; otherwise a random id is kept in the
    signed session cookie.
    """
    if not has_request_context():
        return None

    header_value = request.headers.get(CART_SESSION_HEADER, '').strip()
    if header_value:
        return header_value[:128]

    session_id = session.get(CART_SESSION_KEY)
    if session_id is None and create:
        session_id = uuid.uuid4().hex
        session[CART_SESSION_KEY] = session_id
        logger.debug(f'New cart session created: {session_id}')
    return session_id


def cart_to_json(cart: Dict[int, int]) -> Dict[str, int]:
    return {str(product_id): quantity for product_id, quantity in sorted(cart.items())}
