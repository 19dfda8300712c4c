from decimal import Decimal

from flask import Blueprint, render_template, redirect, url_for, flash, request, current_app
from minishop.errors import ShopError
from minishop.presentation import ViewState
from minishop.services import catalog
from minishop.services.cart import cart_store, current_cart_session
from minishop.services.customers import CustomerDetails
from minishop.services.orders import CheckoutItem, get_order, place_order

bp = Blueprint('storefront', __name__, url_prefix='/shop')


def _cart_lines(cart):
    """Cart entries joined with their products at current catalog prices"""
    lines = []
    for product_id, quantity in sorted(cart.items()):
        product = catalog.find_product(product_id)
        if product is None:
            continue
        lines.append({
            'product': product,
            'quantity': quantity,
            'line_total': Decimal(product.price) * quantity
        })
    return {
        'lines': lines,
        'total': sum((line['line_total'] for line in lines), Decimal('0'))
    }


@bp.app_context_processor
def inject_cart_count():
    session_id = current_cart_session(create=False)
    cart = cart_store.get(session_id) if session_id else {}
    return {'cart_count': sum(cart.values())}


@bp.route('', endpoint='catalog')
def catalog_page():
    product_filter = catalog.filter_from_request_args(request.args)

    products = ViewState().load(lambda: catalog.list_products(product_filter))
    categories = ViewState().load(catalog.list_categories)

    current_app.logger.info('Storefront catalog rendered', extra={
        'event_type': 'page_view',
        'page': 'catalog',
        'page_number': product_filter.page,
        'status': products.status.value
    })

    has_next = products.is_loaded and len(products.data) == product_filter.limit
    return render_template(
        'catalog.html',
        products=products,
        categories=categories,
        product_filter=product_filter,
        has_next=has_next
    )


@bp.route('/cart/add/<int:product_id>', methods=['POST'])
def add_to_cart(product_id):
    try:
        product = catalog.get_product(product_id)
        cart_store.add(current_cart_session(), product.id, request.form.get('quantity', 1))
    except ShopError as e:
        flash(e.message, 'error')
        return redirect(request.referrer or url_for('storefront.catalog'))

    current_app.logger.info(f'Product {product_id} added to cart from storefront', extra={
        'event_type': 'cart_add',
        'product_id': product_id
    })
    flash(f'{product.name} added to cart!')
    return redirect(url_for('storefront.view_cart'))


@bp.route('/cart')
def view_cart():
    cart = ViewState().load(lambda: _cart_lines(cart_store.get(current_cart_session())))
    return render_template('cart.html', cart=cart)


@bp.route('/cart/remove/<int:product_id>', methods=['POST'])
def remove_from_cart(product_id):
    cart_store.remove(current_cart_session(), product_id)
    flash('Item removed from cart')
    return redirect(url_for('storefront.view_cart'))


@bp.route('/cart/clear', methods=['POST'])
def clear_cart():
    cart_store.clear(current_cart_session())
    flash('Cart cleared')
    return redirect(url_for('storefront.view_cart'))


@bp.route('/checkout', methods=['GET', 'POST'])
def checkout():
    session_id = current_cart_session()
    cart = ViewState().load(lambda: _cart_lines(cart_store.get(session_id)))
    form = {
        'name': request.form.get('name', ''),
        'email': request.form.get('email', ''),
        'address': request.form.get('address', ''),
    }

    if request.method == 'GET':
        return render_template('checkout.html', cart=cart, form=form, error=None)

    if not cart.is_loaded or not cart.data['lines']:
        return render_template('checkout.html', cart=cart, form=form, error='Cart is empty'), 400

    submission = ViewState()

    def submit():
        details = CustomerDetails.from_payload(form)
        items = [
            CheckoutItem(
                product_id=line['product'].id,
                quantity=line['quantity'],
                price=Decimal(line['product'].price)
            )
            for line in cart.data['lines']
        ]
        return place_order(details, items)

    submission.load(submit)
    if submission.is_errored:
        current_app.logger.warning(f'Storefront checkout failed: {submission.error}', extra={
            'event_type': 'checkout_error'
        })
        return render_template('checkout.html', cart=cart, form=form, error=submission.error), 400

    order = submission.data
    cart_store.clear(session_id)
    flash('Order placed successfully!')
    return redirect(url_for('storefront.order_confirmation', order_id=order.id))


@bp.route('/orders/<int:order_id>')
def order_confirmation(order_id):
    order = ViewState().load(lambda: get_order(order_id))
    status_code = 404 if order.is_errored else 200
    return render_template('order.html', order=order, order_id=order_id), status_code
