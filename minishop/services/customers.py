"""
Customer records: validation, lookup by email and creation
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from minishop import db
from minishop.errors import NotFound, ValidationFailure
from minishop.models import Customer, User
from minishop.services.catalog import MAX_ID

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _required_text(data, field, label=None):
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationFailure(f'{label or field} is required')
    return value.strip()


@dataclass
class CustomerDetails:
    name: str
    email: str
    address: str
    user_id: Optional[int] = None

    @classmethod
    def from_payload(cls, data, prefix=''):
        """Validate a customer JSON object; ``prefix`` qualifies field names in messages"""
        if not isinstance(data, dict):
            raise ValidationFailure(f'{prefix.rstrip(".") or "customer"} must be an object')

        name = _required_text(data, 'name', f'{prefix}name')
        email = _required_text(data, 'email', f'{prefix}email')
        address = _required_text(data, 'address', f'{prefix}address')
        if '@' not in email:
            raise ValidationFailure(f'{prefix}email is not a valid email address')

        user_id = data.get('user_id')
        if user_id is not None and (isinstance(user_id, bool) or not isinstance(user_id, int)):
            raise ValidationFailure(f'{prefix}user_id must be an integer')
        if user_id is not None and not 0 < user_id <= MAX_ID:
            raise ValidationFailure(f'{prefix}user_id is out of range')

        return cls(name=name, email=normalize_email(email), address=address, user_id=user_id)


def list_customers() -> List[Customer]:
    return Customer.query.order_by(Customer.id).all()


def find_customer_by_email(email: str) -> Optional[Customer]:
    return Customer.query.filter_by(email=normalize_email(email)).first()


def resolve_customer(details: CustomerDetails) -> Customer:
    """
    Return the customer registered under ``details.email`` or stage a new one

    The new customer is added to the current session but not committed.
    """
    customer = find_customer_by_email(details.email)
    if customer is not None:
        return customer

    if details.user_id is not None and db.session.get(User, details.user_id) is None:
        raise NotFound(f'User {details.user_id} not found')

    customer = Customer(
        user_id=details.user_id,
        name=details.name,
        email=details.email,
        address=details.address,
    )
    db.session.add(customer)
    db.session.flush()
    logger.info(f'Customer created during checkout: {customer.email}', extra={
        'event_type': 'customer_created',
        'customer_id': customer.id
    })
    return customer


def create_customer(details: CustomerDetails) -> Customer:
    if details.user_id is not None and db.session.get(User, details.user_id) is None:
        raise NotFound(f'User {details.user_id} not found')

    if find_customer_by_email(details.email) is not None:
        raise ValidationFailure('Email already registered')

    customer = Customer(
        user_id=details.user_id,
        name=details.name,
        email=details.email,
        address=details.address,
    )
    db.session.add(customer)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race with another registration for the same email
        db.session.rollback()
        raise ValidationFailure('Email already registered')

    logger.info(f'Customer registered: {customer.email}', extra={
        'event_type': 'customer_created',
        'customer_id': customer.id
    })
    return customer
