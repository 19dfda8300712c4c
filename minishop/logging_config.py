"""
Logging configuration with request context for New Relic Logs in Context
"""
import logging
import sys
from flask import g, has_request_context, request

CONSOLE_HANDLER_NAME = 'minishop-console'


class RequestFormatter(logging.Formatter):
    """Custom formatter that adds request context to logs"""

    def format(self, record):
        if has_request_context():
            record.url = request.url
            record.method = request.method
            record.remote_addr = request.remote_addr
            record.cart_session = g.get('cart_session') or '-'
        else:
            record.url = 'N/A'
            record.method = 'N/A'
            record.remote_addr = 'N/A'
            record.cart_session = '-'

        return super().format(record)


def setup_logging(app):
    """
    Setup logging configuration for the Flask app
    New Relic will automatically capture these logs when properly configured
    """
    formatter = RequestFormatter(
        '%(asctime)s - %(name)s - %(levelname)s - '
        '[%(method)s %(url)s] - '
        '[IP: %(remote_addr)s] - '
        '[cart: %(cart_session)s] - '
        '%(message)s'
    )

    level = logging.getLevelName(str(app.config.get('LOG_LEVEL', 'INFO')).upper())
    if not isinstance(level, int):
        level = logging.INFO

    # Console handler; the logger is shared by every app built in this process
    for handler in list(app.logger.handlers):
        if handler.get_name() == CONSOLE_HANDLER_NAME:
            app.logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.set_name(CONSOLE_HANDLER_NAME)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)

    app.logger.setLevel(level)
    app.logger.addHandler(console_handler)

    # Prevent duplicate logs
    app.logger.propagate = False

    app.logger.info('Application logging configured', extra={
        'event_type': 'app_startup',
        'testing': app.testing
    })

    return app.logger
