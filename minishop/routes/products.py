from flask import Blueprint, request, current_app, jsonify
from minishop.services import catalog

bp = Blueprint('products', __name__)


@bp.route('/products', methods=['GET'])
def list_products():
    product_filter = catalog.filter_from_request_args(request.args)

    current_app.logger.info('Products list requested', extra={
        'event_type': 'catalog_query',
        'page_number': product_filter.page,
        'limit': product_filter.limit,
        'category': product_filter.category or 'all'
    })

    products = catalog.list_products(product_filter)

    current_app.logger.info(f'Returning {len(products)} products for page {product_filter.page}', extra={
        'event_type': 'data_loaded',
        'product_count': len(products)
    })

    return jsonify([product.to_dict() for product in products])


@bp.route('/products/<int:product_id>', methods=['GET'])
def product_detail(product_id):
    product = catalog.get_product(product_id)

    current_app.logger.info(f'Product found: {product.name}', extra={
        'event_type': 'product_viewed',
        'product_id': product.id,
        'price': float(product.price),
        'stock': product.stock
    })

    return jsonify(product.to_dict())


@bp.route('/categories', methods=['GET'])
def list_categories():
    categories = catalog.list_categories()
    return jsonify([category.to_dict() for category in categories])
