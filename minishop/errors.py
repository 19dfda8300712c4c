"""
Shop error taxonomy and the Flask error handlers that render it as JSON
"""
import logging
from datetime import datetime

import newrelic.agent
from flask import current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ShopError(Exception):
    """Base class for errors that are surfaced to the caller"""

    status_code = 400
    error_type = 'shop_error'

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload or {}

    def to_dict(self):
        data = dict(self.payload)
        data['message'] = self.message
        return data


class NotFound(ShopError):
    status_code = 404
    error_type = 'not_found'


class ValidationFailure(ShopError):
    status_code = 400
    error_type = 'validation_failure'


class InsufficientStock(ShopError):
    """Requested quantity exceeds available stock for one or more products"""

    status_code = 409
    error_type = 'insufficient_stock'

    def __init__(self, products):
        # products: list of (product_id, product_name) tuples
        self.products = list(products)
        names = ', '.join(f'{name} (id {product_id})' for product_id, name in self.products)
        super().__init__(
            f'Insufficient stock for: {names}',
            payload={'productIds': [product_id for product_id, _ in self.products]}
        )


class StorageFault(ShopError):
    """Persistence failure; the public message never carries driver details"""

    status_code = 500
    error_type = 'storage_fault'

    def __init__(self, message='Internal server error'):
        super().__init__(message)


def register_error_handlers(app):
    """
    Register JSON error handlers on the Flask application

    Args:
        app: Flask application instance
    """

    @app.errorhandler(ShopError)
    def handle_shop_error(error):
        level = logging.ERROR if error.status_code >= 500 else logging.INFO
        current_app.logger.log(level, f'{error.error_type}: {error.message}', extra={
            'event_type': error.error_type,
            'status_code': error.status_code
        })
        if error.status_code >= 500:
            newrelic.agent.notice_error()
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_sqlalchemy_error(error):
        from minishop import db

        db.session.rollback()
        current_app.logger.exception('Database error while handling request', extra={
            'event_type': 'storage_fault',
            'exception_type': type(error).__name__,
            'timestamp': datetime.utcnow().isoformat()
        })
        newrelic.agent.notice_error()
        return jsonify(StorageFault().to_dict()), 500

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        return jsonify({'message': error.description or error.name}), error.code

    @app.errorhandler(500)
    def handle_internal_server_error(error):
        original_error = getattr(error, 'original_exception', None) or error
        current_app.logger.error(f'Unhandled error: {type(original_error).__name__}', extra={
            'event_type': 'internal_error'
        })
        newrelic.agent.notice_error()
        return jsonify({'message': 'Internal server error'}), 500
