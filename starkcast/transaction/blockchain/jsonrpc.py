import threading
from contextlib import contextmanager
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from web3 import HTTPProvider

from starkcast.config import Config
from starkcast.errors.exceptions import NetworkError, RpcError
from starkcast.transaction.interface import StarknetNetworkInterface

RETRY_STATUS_CODES = (429, 500, 502, 503, 504)


def retry_strategy(config: Config) -> Retry:
    """Retry policy of the http transport: connection errors, read timeouts and the status codes above."""
    return Retry(
        total=config.rpc_max_retries,
        backoff_factor=config.rpc_retry_backoff,
        status_forcelist=RETRY_STATUS_CODES,
        # every JSON-RPC request is a POST
        allowed_methods=['POST'],
    )


def create_session(config: Config) -> requests.Session:
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=retry_strategy(config))
    session.mount('http://', adapter)
    session.mount('https://', adapter)
    return session


class _StarknetHTTPProvider(HTTPProvider):
    """HTTPProvider on a retrying session whose request timeout can be narrowed per request."""

    def __init__(self, endpoint_uri: str, timeout: float, session: requests.Session):
        super().__init__(endpoint_uri, request_kwargs={'timeout': timeout}, session=session)
        self.retry_session = session
        self._timeout: Optional[float] = None

    @contextmanager
    def request_timeout(self, timeout: float):
        old = self._timeout
        self._timeout = timeout
        try:
            yield
        finally:
            self._timeout = old

    def get_request_kwargs(self):
        kwargs = dict(super().get_request_kwargs())
        if self._timeout is not None:
            kwargs['timeout'] = self._timeout
        return kwargs


class RpcHttpNetwork(StarknetNetworkInterface):
    """Talks to a Starknet node over JSON-RPC via HTTP."""

    def __init__(self, config: Config, **kwargs) -> None:
        super().__init__(config, **kwargs)
        self._local = threading.local()

    @property
    def provider(self) -> _StarknetHTTPProvider:
        """Provider of the calling thread (web3 caches request sessions per thread)."""
        provider = getattr(self._local, 'provider', None)
        if provider is None:
            provider = _StarknetHTTPProvider(self.config.rpc_url, self.config.rpc_timeout, create_session(self.config))
            self._local.provider = provider
        return provider

    def _send(self, method: str, params: Any, timeout: float) -> Any:
        provider = self.provider
        attempts = self.config.rpc_max_retries + 1
        try:
            with provider.request_timeout(timeout):
                response = provider.make_request(method, params)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout,
                requests.exceptions.RetryError) as e:
            raise NetworkError(f'{method} failed after {attempts} attempts: {e}', cause=e, attempts=attempts) from e
        except requests.exceptions.HTTPError as e:
            raise NetworkError(f'{method}: {e}', cause=e) from e
        except ValueError as e:
            raise NetworkError(f'{method}: malformed response from {self.config.rpc_url}: {e}', cause=e) from e

        if 'error' in response:
            err = response['error']
            raise RpcError(err.get('code', 0), err.get('message', ''), err.get('data'))
        if 'result' not in response:
            raise NetworkError(f'{method}: response without result from {self.config.rpc_url}')
        return response['result']

    def __repr__(self):
        return f'RpcHttpNetwork({self.config.rpc_url})'
