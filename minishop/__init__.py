from flask import Flask, g
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
import newrelic.agent
import os

db = SQLAlchemy()
migrate = Migrate()


def _int_env(name, default):
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def create_app(config=None):
    app = Flask(__name__)

    # Configuration
    app.config['SECRET_KEY'] = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv('DATABASE_URL', 'sqlite:///shop.db')
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')
    app.config['CATALOG_PAGE_SIZE'] = _int_env('CATALOG_PAGE_SIZE', 10)
    app.config['CATALOG_MAX_PAGE_SIZE'] = _int_env('CATALOG_MAX_PAGE_SIZE', 100)
    app.config['SHOP_API_URL'] = os.getenv('SHOP_API_URL', 'http://localhost:5000')

    if config:
        app.config.update(config)

    # Setup logging
    from minishop.logging_config import setup_logging
    setup_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Models must be imported before create_all / migrations see the metadata
    from minishop import models  # noqa: F401

    from minishop.errors import register_error_handlers
    register_error_handlers(app)

    # New Relic custom attributes for cart session tracking
    @app.before_request
    def add_newrelic_session_attributes():
        from minishop.services.cart import current_cart_session

        session_id = current_cart_session(create=False)
        g.cart_session = session_id
        if session_id:
            newrelic.agent.add_custom_attribute('cartSession', session_id)

    # Register blueprints
    from minishop.routes import main, products, cart, checkout, customers, storefront
    app.register_blueprint(main.bp)
    app.register_blueprint(products.bp)
    app.register_blueprint(cart.bp)
    app.register_blueprint(checkout.bp)
    app.register_blueprint(customers.bp)
    app.register_blueprint(storefront.bp)

    return app
