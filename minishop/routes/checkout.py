from flask import Blueprint, request, jsonify
from minishop.services.orders import get_order, parse_checkout_payload, place_order

bp = Blueprint('checkout', __name__)


@bp.route('/checkout', methods=['POST'])
def checkout():
    details, items = parse_checkout_payload(request.get_json(silent=True))
    order = place_order(details, items)
    return jsonify({'message': 'Order placed successfully', 'orderId': order.id}), 201


@bp.route('/orders/<int:order_id>', methods=['GET'])
def order_detail(order_id):
    order = get_order(order_id)
    return jsonify(order.to_dict(include_items=True))
