"""
View state for data-fetching pages

Every page that fetches data moves IDLE -> LOADING -> (LOADED | ERRORED).
A new filter, page or cart change calls ``reset()`` to go back to LOADING.
"""
import logging
from enum import Enum
from typing import Any, Callable, Optional

from minishop.errors import ShopError
from minishop.services.api_client import ClientError

logger = logging.getLogger(__name__)


class ViewStatus(Enum):
    IDLE = 'idle'
    LOADING = 'loading'
    LOADED = 'loaded'
    ERRORED = 'errored'


class InvalidTransition(Exception):
    pass


class ViewState:
    def __init__(self):
        self.status = ViewStatus.IDLE
        self.data: Any = None
        self.error: Optional[str] = None

    @property
    def is_loading(self):
        return self.status is ViewStatus.LOADING

    @property
    def is_loaded(self):
        return self.status is ViewStatus.LOADED

    @property
    def is_errored(self):
        return self.status is ViewStatus.ERRORED

    def start(self):
        if self.status is ViewStatus.LOADING:
            raise InvalidTransition('already loading')
        self.status = ViewStatus.LOADING
        self.error = None

    def reset(self):
        """Retrigger: drop the previous result and return to LOADING"""
        self.status = ViewStatus.LOADING
        self.data = None
        self.error = None

    def succeed(self, data):
        if self.status is not ViewStatus.LOADING:
            raise InvalidTransition(f'cannot finish from {self.status.value}')
        self.status = ViewStatus.LOADED
        self.data = data

    def fail(self, message):
        if self.status is not ViewStatus.LOADING:
            raise InvalidTransition(f'cannot fail from {self.status.value}')
        self.status = ViewStatus.ERRORED
        self.data = None
        self.error = message or 'Something went wrong'

    def load(self, fetch: Callable[[], Any]) -> 'ViewState':
        """
        Run ``fetch`` and record its outcome

        Server errors and network failures end in ERRORED with the
        server-supplied message; anything else propagates.
        """
        if self.status is not ViewStatus.LOADING:
            self.start()
        try:
            data = fetch()
        except ShopError as e:
            logger.info(f'View load failed: {e.message}')
            self.fail(e.message)
        except ClientError as e:
            logger.warning(f'View load failed: {e.message} (status={e.status_code})')
            self.fail(e.message)
        else:
            self.succeed(data)
        return self

    def to_dict(self):
        return {'status': self.status.value, 'data': self.data, 'error': self.error}
