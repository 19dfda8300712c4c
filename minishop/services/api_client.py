"""
HTTP client for the shop JSON API
"""

import logging
import time
from typing import Any, Dict, List, Optional

import newrelic.agent
import requests

logger = logging.getLogger(__name__)

SERVER_UNAVAILABLE_MESSAGE = 'The shop server is unavailable. Please try again later.'


class ClientError(Exception):
    """API call failed; ``message`` is safe to show to a shopper"""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 response_data: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}


class ShopClient:
    """Client for the shop API that keeps one cart session across calls"""

    def __init__(self, base_url: str = None, timeout: int = 10, cart_session: Optional[str] = None):
        """
        Args:
            base_url (str): API base URL
            timeout (int): request timeout in seconds
            cart_session (Optional[str]): cart session id sent as X-Cart-Session
        """
        self.base_url = (base_url or 'http://localhost:5000').rstrip('/')
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            'Content-Type': 'application/json',
            'User-Agent': 'MiniShop-Client/1.0'
        })
        if cart_session:
            self.session.headers['X-Cart-Session'] = cart_session

        logger.info(f'ShopClient initialized: base_url={self.base_url}')

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f'{self.base_url}{path}'
        start_time = time.time()

        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as req_err:
            execution_time = time.time() - start_time
            logger.error(f'Request to {url} failed after {execution_time:.3f}s: {req_err}')
            newrelic.agent.add_custom_attribute('target_url', url)
            newrelic.agent.notice_error()
            raise ClientError(SERVER_UNAVAILABLE_MESSAGE) from req_err

        execution_time = time.time() - start_time

        try:
            data = response.json()
        except ValueError:
            data = None

        if not response.ok:
            message = data.get('message') if isinstance(data, dict) else None
            logger.warning(
                f'API call failed: {method} {path} status={response.status_code}, '
                f'execution_time={execution_time:.3f}s'
            )
            raise ClientError(
                message or f'Server error (HTTP {response.status_code})',
                status_code=response.status_code,
                response_data=data if isinstance(data, dict) else None
            )

        logger.debug(f'API call successful: {method} {path}, execution_time={execution_time:.3f}s')
        return data

    def list_products(self, **filters) -> List[Dict[str, Any]]:
        params = {key: value for key, value in filters.items() if value is not None}
        return self._request('GET', '/products', params=params)

    def get_product(self, product_id: int) -> Dict[str, Any]:
        return self._request('GET', f'/products/{product_id}')

    def list_categories(self) -> List[Dict[str, Any]]:
        return self._request('GET', '/categories')

    def add_to_cart(self, product_id: int, quantity: int = 1) -> Dict[str, int]:
        data = self._request('POST', '/cart', json={'productId': product_id, 'quantity': quantity})
        return data['cart']

    def get_cart(self) -> Dict[str, int]:
        return self._request('GET', '/cart')['cart']

    def remove_from_cart(self, product_id: int) -> Dict[str, int]:
        return self._request('DELETE', f'/cart/{product_id}')['cart']

    def clear_cart(self) -> str:
        return self._request('DELETE', '/cart')['message']

    @newrelic.agent.function_trace()
    def checkout(self, customer: Dict[str, str], items: List[Dict[str, Any]]) -> int:
        """Place an order; returns the new order id"""
        data = self._request('POST', '/checkout', json={'customer': customer, 'items': items})
        return data['orderId']

    def get_order(self, order_id: int) -> Dict[str, Any]:
        return self._request('GET', f'/orders/{order_id}')

    def list_customers(self) -> List[Dict[str, Any]]:
        return self._request('GET', '/customers')

    def create_customer(self, name: str, email: str, address: str, user_id: Optional[int] = None) -> str:
        payload = {'name': name, 'email': email, 'address': address}
        if user_id is not None:
            payload['user_id'] = user_id
        return self._request('POST', '/customers', json=payload)['message']
