"""
Product catalog queries: filtered, paginated product lists and lookups
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from flask import current_app

from minishop import db
from minishop.errors import NotFound
from minishop.models import Category, Product

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

# Signed 64-bit range of an SQL BIGINT
MAX_SQL_INT = 2 ** 63 - 1
MIN_SQL_INT = -2 ** 63
# Largest value an INTEGER id or stock column holds
MAX_ID = 2 ** 31 - 1


def _parse_int(value) -> Optional[int]:
    if value is None or value == '':
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    if not MIN_SQL_INT <= number <= MAX_SQL_INT:
        return None
    return number


def _parse_decimal(value) -> Optional[Decimal]:
    if value is None or value == '':
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    # NaN and Infinity are not usable bounds
    if not number.is_finite():
        return None
    return number


def _escape_like(term: str) -> str:
    return term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


@dataclass
class ProductFilter:
    """Conjunctive product filter plus a page window"""
    category: Optional[int] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    min_rating: Optional[Decimal] = None
    search: Optional[str] = None
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE

    @property
    def offset(self) -> int:
        return min((self.page - 1) * self.limit, MAX_SQL_INT)

    @classmethod
    def from_args(cls, args, default_limit=DEFAULT_PAGE_SIZE, max_limit=MAX_PAGE_SIZE):
        """
        Build a filter from query-string style arguments

        Values that cannot be parsed are treated as absent.
        """
        page = _parse_int(args.get('page'))
        if page is None or page < 1:
            page = 1

        limit = _parse_int(args.get('limit'))
        if limit is None or limit < 1:
            limit = default_limit
        limit = min(limit, max_limit)

        category = _parse_int(args.get('category'))
        if category is not None and not 0 < category <= MAX_ID:
            category = None

        search = args.get('search')
        search = search.strip() if isinstance(search, str) else None

        return cls(
            category=category,
            min_price=_parse_decimal(args.get('minPrice')),
            max_price=_parse_decimal(args.get('maxPrice')),
            min_rating=_parse_decimal(args.get('minRating')),
            search=search or None,
            page=page,
            limit=limit,
        )

    def to_args(self, **overrides):
        """Query-string arguments that reproduce this filter"""
        args = {
            'category': self.category,
            'minPrice': self.min_price,
            'maxPrice': self.max_price,
            'minRating': self.min_rating,
            'search': self.search,
            'page': self.page,
            'limit': self.limit,
        }
        args.update(overrides)
        return {key: value for key, value in args.items() if value is not None}


def filter_from_request_args(args) -> ProductFilter:
    return ProductFilter.from_args(
        args,
        default_limit=current_app.config.get('CATALOG_PAGE_SIZE', DEFAULT_PAGE_SIZE),
        max_limit=current_app.config.get('CATALOG_MAX_PAGE_SIZE', MAX_PAGE_SIZE),
    )


def list_products(product_filter: ProductFilter) -> List[Product]:
    query = Product.query

    if product_filter.category is not None:
        query = query.filter(Product.category_id == product_filter.category)
    if product_filter.min_price is not None:
        query = query.filter(Product.price >= product_filter.min_price)
    if product_filter.max_price is not None:
        query = query.filter(Product.price <= product_filter.max_price)
    if product_filter.min_rating is not None:
        query = query.filter(Product.rating >= product_filter.min_rating)
    if product_filter.search:
        pattern = f'%{_escape_like(product_filter.search)}%'
        query = query.filter(Product.name.ilike(pattern, escape='\\'))

    products = (
        query.order_by(Product.id)
        .offset(product_filter.offset)
        .limit(product_filter.limit)
        .all()
    )

    logger.debug(f'Catalog query returned {len(products)} products for {product_filter}')
    return products


def find_product(product_id) -> Optional[Product]:
    if not 0 < product_id <= MAX_ID:
        return None
    return db.session.get(Product, product_id)


def get_product(product_id) -> Product:
    product = find_product(product_id)
    if product is None:
        raise NotFound(f'Product {product_id} not found')
    return product


def list_categories() -> List[Category]:
    return Category.query.order_by(Category.id).all()
