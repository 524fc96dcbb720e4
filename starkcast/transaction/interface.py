"""
This module defines the network interface, the request/response boundary between the transaction
orchestration layer and a Starknet node.

Backends only implement :py:meth:`StarknetNetworkInterface._send`, which performs a single JSON-RPC
request. The request timeout and the typed convenience wrappers live in the base class so that all
backends behave identically.
"""
import time
from abc import ABCMeta, abstractmethod
from enum import IntEnum
from typing import Any, Dict, List, Optional, Callable

from starkcast import my_logging
from starkcast.config import Config
from starkcast.errors.exceptions import NetworkError, RpcError
from starkcast.transaction.types import FeeEstimate, Call


class StarknetErrorCode(IntEnum):
    FAILED_TO_RECEIVE_TXN = 1
    CONTRACT_NOT_FOUND = 20
    INVALID_MESSAGE_SELECTOR = 21
    BLOCK_NOT_FOUND = 24
    CLASS_HASH_NOT_FOUND = 28
    TXN_HASH_NOT_FOUND = 29
    CONTRACT_ERROR = 40
    CLASS_ALREADY_DECLARED = 51
    INVALID_TRANSACTION_NONCE = 52
    INSUFFICIENT_MAX_FEE = 53
    INSUFFICIENT_ACCOUNT_BALANCE = 54
    VALIDATION_FAILURE = 55
    COMPILATION_FAILED = 56
    DUPLICATE_TX = 59
    COMPILED_CLASS_HASH_MISMATCH = 60
    UNSUPPORTED_TX_VERSION = 61
    UNEXPECTED_ERROR = 63


class StarknetNetworkInterface(metaclass=ABCMeta):
    """
    API to interact with a Starknet node.

    All identifiers and numbers are passed as ints and serialized as 0x-prefixed hex strings.
    """

    def __init__(self, config: Config, sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.config = config
        self._sleep = sleep
        self._clock = clock
        self._chain_id: Optional[int] = None

    # PUBLIC API

    def request(self, method: str, params: Any, timeout: Optional[float] = None) -> Any:
        """
        Issue a JSON-RPC request.

        Transient failures are retried by the backend's transport (see config.rpc_max_retries).

        :param method: RPC method name
        :param params: RPC parameters (json serializable)
        :param timeout: remaining time budget of the caller, the request timeout never exceeds it
                        (None -> config.rpc_timeout)
        :raise RpcError: if the node answered with an error object (never retried)
        :raise NetworkError: if the node could not be reached
        :return: the 'result' member of the response
        """
        request_timeout = self.config.rpc_timeout
        if timeout is not None:
            request_timeout = min(request_timeout, timeout)
            if request_timeout <= 0:
                raise NetworkError(f'{method}: no time left for the request', attempts=0)
        my_logging.debug(f'RPC {method}')
        return self._send(method, params, request_timeout)

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = int(self.request('starknet_chainId', []), 16)
        return self._chain_id

    def get_nonce(self, address: int, block_id: str = 'pending') -> int:
        return int(self.request('starknet_getNonce', {'block_id': block_id, 'contract_address': hex(address)}), 16)

    def get_class(self, class_hash: int, block_id: str = 'pending') -> Dict[str, Any]:
        return self.request('starknet_getClass', {'block_id': block_id, 'class_hash': hex(class_hash)})

    def get_class_at(self, address: int, block_id: str = 'pending') -> Dict[str, Any]:
        return self.request('starknet_getClassAt', {'block_id': block_id, 'contract_address': hex(address)})

    def get_class_hash_at(self, address: int, block_id: str = 'pending') -> int:
        return int(self.request('starknet_getClassHashAt', {'block_id': block_id, 'contract_address': hex(address)}), 16)

    def class_exists(self, class_hash: int) -> bool:
        """Return whether a class with this hash was declared (pending state included)."""
        try:
            self.get_class(class_hash)
            return True
        except RpcError as e:
            if e.code == StarknetErrorCode.CLASS_HASH_NOT_FOUND:
                return False
            raise

    def estimate_fee(self, transactions: List[Dict[str, Any]], block_id: str = 'pending') -> List[FeeEstimate]:
        res = self.request('starknet_estimateFee', {'request': transactions, 'block_id': block_id})
        return [FeeEstimate(int(r['overall_fee'], 16), int(r.get('gas_consumed', '0x0'), 16), int(r.get('gas_price', '0x0'), 16))
                for r in res]

    def add_invoke_transaction(self, transaction: Dict[str, Any]) -> int:
        res = self.request('starknet_addInvokeTransaction', {'invoke_transaction': transaction})
        return int(res['transaction_hash'], 16)

    def add_declare_transaction(self, transaction: Dict[str, Any]) -> int:
        res = self.request('starknet_addDeclareTransaction', {'declare_transaction': transaction})
        return int(res['transaction_hash'], 16)

    def get_transaction_status(self, tx_hash: int, timeout: Optional[float] = None) -> Dict[str, Any]:
        return self.request('starknet_getTransactionStatus', {'transaction_hash': hex(tx_hash)}, timeout=timeout)

    def get_transaction_receipt(self, tx_hash: int, timeout: Optional[float] = None) -> Dict[str, Any]:
        return self.request('starknet_getTransactionReceipt', {'transaction_hash': hex(tx_hash)}, timeout=timeout)

    def call(self, call: Call, block_id: str = 'latest') -> List[int]:
        res = self.request('starknet_call', {
            'request': {
                'contract_address': hex(call.to_addr),
                'entry_point_selector': hex(call.selector),
                'calldata': [hex(c) for c in call.calldata],
            },
            'block_id': block_id,
        })
        return [int(v, 16) for v in res]

    def is_connected(self) -> bool:
        try:
            self.chain_id
            return True
        except NetworkError:
            return False

    @classmethod
    def is_debug_backend(cls) -> bool:
        return False

    def __repr__(self):
        return f'{type(self).__name__}()'

    # INTERNAL FUNCTIONALITY

    @abstractmethod
    def _send(self, method: str, params: Any, timeout: float) -> Any:
        """
        Perform a single JSON-RPC request.

        :param timeout: maximum number of seconds the request may take
        :raise NetworkError: if the node could not be reached
        :raise RpcError: if the response contains an error object
        :return: the 'result' member of the response
        """
        pass
