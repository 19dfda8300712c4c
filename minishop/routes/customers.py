from flask import Blueprint, request, jsonify
from minishop.services.customers import CustomerDetails, create_customer, list_customers

bp = Blueprint('customers', __name__, url_prefix='/customers')


@bp.route('', methods=['GET'])
def index():
    return jsonify([customer.to_dict() for customer in list_customers()])


@bp.route('', methods=['POST'])
def register():
    details = CustomerDetails.from_payload(request.get_json(silent=True))
    customer = create_customer(details)
    return jsonify({'message': 'Customer created successfully', 'customerId': customer.id}), 201
