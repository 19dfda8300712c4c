from flask import Blueprint, request, jsonify, current_app
from minishop.errors import ValidationFailure
from minishop.services import catalog
from minishop.services.cart import cart_store, cart_to_json, current_cart_session

bp = Blueprint('cart', __name__, url_prefix='/cart')


@bp.route('', methods=['POST'])
def add_to_cart():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationFailure('Request body must be a JSON object')

    product_id = data.get('productId')
    if isinstance(product_id, bool) or not isinstance(product_id, int):
        raise ValidationFailure('productId must be an integer')

    product = catalog.get_product(product_id)
    session_id = current_cart_session()
    cart = cart_store.add(session_id, product.id, data.get('quantity', 1))

    current_app.logger.info(f'Product {product.id} added to cart', extra={
        'event_type': 'cart_add',
        'product_id': product.id,
        'quantity': cart[product.id]
    })

    return jsonify({'message': 'Product added to cart', 'cart': cart_to_json(cart)})


@bp.route('', methods=['GET'])
def view_cart():
    cart = cart_store.get(current_cart_session())
    return jsonify({'cart': cart_to_json(cart)})


@bp.route('', methods=['DELETE'])
def clear_cart():
    cart_store.clear(current_cart_session())
    current_app.logger.info('Cart cleared', extra={'event_type': 'cart_clear'})
    return jsonify({'message': 'Cart cleared'})


@bp.route('/<int:product_id>', methods=['DELETE'])
def remove_from_cart(product_id):
    cart = cart_store.remove(current_cart_session(), product_id)
    current_app.logger.info(f'Product {product_id} removed from cart', extra={
        'event_type': 'cart_remove',
        'product_id': product_id
    })
    return jsonify({'message': 'Item removed from cart', 'cart': cart_to_json(cart)})
