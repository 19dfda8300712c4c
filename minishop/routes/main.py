from flask import Blueprint, redirect, url_for, current_app
from sqlalchemy import text
from minishop import db

bp = Blueprint('main', __name__)


@bp.route('/')
def index():
    return redirect(url_for('storefront.catalog'))


@bp.route('/health')
def health():
    current_app.logger.debug('Health check endpoint called')
    db.session.execute(text('SELECT 1'))
    return {'status': 'healthy'}, 200
