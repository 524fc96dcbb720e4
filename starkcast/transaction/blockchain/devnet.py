"""
In-process Starknet network for debugging and testing.

The devnet speaks the same JSON-RPC methods as a real node (it implements
:py:meth:`StarknetNetworkInterface._send`), so the complete encoding path is exercised. Contract logic is
provided by python classes deriving from :py:class:`NativeContract`, registered per class hash.

Transactions are admitted into a pending pool and executed in submission order once they are promoted to
ACCEPTED_ON_L2. Promotion is driven by status requests: a transaction is accepted after ``acceptance_delay``
status polls (and on L1 after further ``l1_delay`` polls), which makes eventual consistency reproducible.
Calls read the accepted state only. Requests are handled one at a time, so threads may share a devnet.
"""
import copy
import inspect
import json
import threading
from typing import Any, Callable, Dict, List, Optional, Type, Tuple

from starknet_py.hash.utils import compute_hash_on_elements, private_to_stark_key, verify_message_signature

from starkcast import my_logging
from starkcast.config import Config, cfg
from starkcast.errors.exceptions import CompilationError, RpcError
from starkcast.transaction import codec
from starkcast.transaction.interface import StarknetNetworkInterface, StarknetErrorCode

_FELT_TYPE = 'core::felt252'


class ContractRevert(Exception):
    """Raised by native contracts to revert the current transaction."""
    pass


def external(fct: Callable) -> Callable:
    """Mark a NativeContract method as state-changing entrypoint."""
    fct._entrypoint = 'external'
    return fct


def view(fct: Callable) -> Callable:
    """Mark a NativeContract method as read-only entrypoint."""
    fct._entrypoint = 'view'
    return fct


class NativeContract:
    """
    Python implementation of a contract class.

    Entrypoints are methods decorated with :py:func:`external` or :py:func:`view`, they receive felts and may
    return a list of felts (or a single felt, or None). ``constructor`` is called on deployment.
    """

    def __init__(self, address: int, storage: Dict[int, int], execution: '_Execution'):
        self.address = address
        self.storage = storage
        self.execution = execution

    @property
    def caller_address(self) -> int:
        return self.execution.caller_address

    def constructor(self):
        pass

    @classmethod
    def entrypoints(cls) -> Dict[int, Callable]:
        return {codec.get_selector_from_name(name): fct for name, fct in inspect.getmembers(cls, inspect.isfunction)
                if getattr(fct, '_entrypoint', None) is not None}

    @classmethod
    def _inputs(cls, fct: Callable) -> List[Dict[str, str]]:
        params = list(inspect.signature(fct).parameters.values())[1:]
        return [{'name': p.name, 'type': _FELT_TYPE} for p in params]

    @classmethod
    def abi(cls) -> List[Dict[str, Any]]:
        """ABI in cairo 1 format (all inputs are felts)."""
        entries = [{'type': 'constructor', 'name': 'constructor', 'inputs': cls._inputs(cls.constructor)}]
        for name, fct in inspect.getmembers(cls, inspect.isfunction):
            kind = getattr(fct, '_entrypoint', None)
            if kind is not None:
                entries.append({
                    'type': 'function', 'name': name, 'inputs': cls._inputs(fct),
                    'outputs': [], 'state_mutability': 'view' if kind == 'view' else 'external',
                })
        return entries

    @classmethod
    def contract_class(cls) -> Dict[str, Any]:
        """A stand-in sierra class carrying the generated abi."""
        return {
            'sierra_program': [],
            'contract_class_version': '0.1.0',
            'entry_points_by_type': {'EXTERNAL': [], 'L1_HANDLER': [], 'CONSTRUCTOR': []},
            'abi': json.dumps(cls.abi()),
        }

    @classmethod
    def class_hash(cls) -> int:
        """Class hash used when the class is predeclared natively (not content-addressed)."""
        return compute_hash_on_elements([codec.encode_short_string('NATIVE'),
                                               codec.starknet_keccak(f'{cls.__module__}.{cls.__qualname__}'.encode())])


class UniversalDeployer(NativeContract):
    @external
    def deployContract(self, class_hash, salt, unique, calldata_len, *calldata):
        if calldata_len != len(calldata):
            raise ContractRevert('Invalid constructor calldata length')
        address = codec.compute_udc_deployed_address(self.caller_address, class_hash, salt, bool(unique), calldata)
        self.execution.deploy(class_hash, address, list(calldata))
        return [address]


class DevnetAccount(NativeContract):
    """Account whose transactions are validated by the devnet itself (stark curve signature over the tx hash)."""

    @view
    def get_public_key(self):
        return [self.storage[0]]


class _Execution:
    """State and context of one transaction (or call) execution."""

    def __init__(self, devnet: 'DevnetNetwork', state: Dict[int, Dict[str, Any]], caller_address: int):
        self.devnet = devnet
        self.state = state
        self.caller_address = caller_address

    def call_contract(self, address: int, selector: int, calldata: List[int]) -> List[int]:
        if address not in self.state:
            raise RpcError(StarknetErrorCode.CONTRACT_NOT_FOUND, 'Contract not found')
        contract = self.state[address]
        impl = self.devnet.native_classes.get(contract['class_hash'], NativeContract)
        fct = impl.entrypoints().get(selector)
        if fct is None:
            raise ContractRevert(f'Entry point {hex(selector)} not found in contract.')
        instance = impl(address, contract['storage'], self)
        try:
            ret = fct(instance, *calldata)
        except TypeError as e:
            raise ContractRevert(f'Failed to deserialize param: {e}')
        if ret is None:
            return []
        return [ret] if isinstance(ret, int) else list(ret)

    def deploy(self, class_hash: int, address: int, calldata: List[int]):
        if class_hash not in self.devnet.classes:
            raise ContractRevert(f'Class with hash {hex(class_hash)} is not declared.')
        if address in self.state:
            raise ContractRevert(f'Requested contract address {hex(address)} is unavailable for deployment.')
        self.state[address] = {'class_hash': class_hash, 'storage': {}, 'nonce': 0}
        impl = self.devnet.native_classes.get(class_hash)
        if impl is None:
            return
        try:
            impl(address, self.state[address]['storage'], _Execution(self.devnet, self.state, self.caller_address)).constructor(*calldata)
        except TypeError as e:
            raise ContractRevert(f'Constructor failed: {e}')


class _Tx:
    def __init__(self, tx_hash: int, kind: str, sender: int, nonce: int, fee: int, payload: Any):
        self.tx_hash = tx_hash
        self.kind = kind
        self.sender = sender
        self.nonce = nonce
        self.fee = fee
        self.payload = payload
        self.polls = 0
        self.finality_status = 'RECEIVED'
        self.execution_status: Optional[str] = None
        self.revert_reason: Optional[str] = None
        self.l2_poll: Optional[int] = None


class DevnetNetwork(StarknetNetworkInterface):
    """In-memory Starknet network (debug backend)."""

    def __init__(self, config: Optional[Config] = None, acceptance_delay: int = 1, l1_delay: int = 2,
                 gas_price: int = 10 ** 9, account_count: int = 2, initial_balance: int = 10 ** 21, **kwargs):
        super().__init__(cfg.copy() if config is None else config, **kwargs)
        self.acceptance_delay = acceptance_delay
        self.l1_delay = l1_delay
        self.gas_price = gas_price
        self.initial_balance = initial_balance
        self.devnet_chain_id = codec.encode_short_string('SN_GOERLI')
        self._lock = threading.RLock()

        self.classes: Dict[int, Dict[str, Any]] = {}
        self.native_classes: Dict[int, Type[NativeContract]] = {}
        self.state: Dict[int, Dict[str, Any]] = {}
        self.balances: Dict[int, int] = {}
        self.transactions: Dict[int, _Tx] = {}
        self.pending: List[_Tx] = []
        self.predeployed_accounts: List[Tuple[int, int]] = []

        self.declare_native(UniversalDeployer)
        self._deploy_native(UniversalDeployer, self.config.udc_address)
        account_class = self.declare_native(DevnetAccount)
        for i in range(account_count):
            private_key = 0x5ce311283aa15aa3dc58d99fe122cdaa + i
            public_key = private_to_stark_key(private_key)
            address = codec.compute_contract_address(public_key, account_class, [public_key])
            self._deploy_native(DevnetAccount, address, {0: public_key})
            self.balances[address] = initial_balance
            self.predeployed_accounts.append((address, private_key))

    @classmethod
    def is_debug_backend(cls) -> bool:
        return True

    # Devnet administration

    def declare_native(self, impl: Type[NativeContract], class_hash: Optional[int] = None) -> int:
        """Make impl available as a declared class (without a declare transaction)."""
        class_hash = impl.class_hash() if class_hash is None else class_hash
        self.classes[class_hash] = impl.contract_class()
        self.native_classes[class_hash] = impl
        return class_hash

    def register_native_class(self, class_hash: int, impl: Type[NativeContract]):
        """Execute contracts of class_hash with impl once the class gets declared by a transaction."""
        self.native_classes[class_hash] = impl

    def _deploy_native(self, impl: Type[NativeContract], address: int, storage: Optional[Dict[int, int]] = None):
        self.state[address] = {'class_hash': impl.class_hash(), 'storage': dict(storage or {}), 'nonce': 0}

    def mine(self):
        """Accept all pending transactions."""
        while self.pending:
            self._accept(self.pending[0])

    def balance_of(self, address: int) -> int:
        return self.balances.get(address, 0)

    # Fees

    def _fee_of(self, kind: str, payload: Any) -> int:
        if kind == 'DECLARE':
            gas = 5000 + 10 * len(payload['contract_class'].get('sierra_program', []))
        else:
            gas = 1000 + 10 * len(payload)
        return gas * self.gas_price

    # Execution

    def _execute_invoke(self, state: Dict[int, Dict[str, Any]], sender: int, calldata: List[int]) -> List[int]:
        execution = _Execution(self, state, sender)
        ret = []
        for c in codec.decode_execute_calldata(calldata):
            ret += execution.call_contract(c.to_addr, c.selector, c.calldata)
        return ret

    def _accept(self, tx: _Tx):
        """Execute tx against the accepted state and include it in a block."""
        self.pending.remove(tx)
        if tx.kind == 'DECLARE':
            self.classes[tx.payload['class_hash']] = tx.payload['contract_class']
            tx.execution_status = 'SUCCEEDED'
        else:
            new_state = copy.deepcopy(self.state)
            try:
                self._execute_invoke(new_state, tx.sender, tx.payload)
                self.state = new_state
                tx.execution_status = 'SUCCEEDED'
            except ContractRevert as e:
                tx.execution_status = 'REVERTED'
                tx.revert_reason = str(e)
            except RpcError as e:
                tx.execution_status = 'REVERTED'
                tx.revert_reason = e.message
        self.state[tx.sender]['nonce'] += 1
        self.balances[tx.sender] -= tx.fee
        tx.finality_status = 'ACCEPTED_ON_L2'
        tx.l2_poll = tx.polls
        my_logging.debug(f'devnet: accepted {tx.kind.lower()} {hex(tx.tx_hash)} ({tx.execution_status})')

    def _advance(self, tx: _Tx):
        tx.polls += 1
        if tx.finality_status == 'RECEIVED' and tx.polls >= self.acceptance_delay:
            # include everything submitted before as well
            while tx.finality_status == 'RECEIVED':
                self._accept(self.pending[0])
        elif tx.finality_status == 'ACCEPTED_ON_L2' and tx.polls >= tx.l2_poll + self.l1_delay:
            tx.finality_status = 'ACCEPTED_ON_L1'

    # Admission

    def _pending_nonce(self, address: int) -> int:
        return self.state[address]['nonce'] + sum(1 for tx in self.pending if tx.sender == address)

    def _check_account_tx(self, tx: Dict[str, Any], expected_version: int, tx_hash: int, for_estimate: bool):
        sender = int(tx['sender_address'], 16)
        if sender not in self.state or self.state[sender]['class_hash'] not in self.native_classes \
                or self.native_classes[self.state[sender]['class_hash']] is not DevnetAccount:
            raise RpcError(StarknetErrorCode.VALIDATION_FAILURE, 'Account validation failed', 'sender is not an account')
        version = int(tx['version'], 16)
        allowed = expected_version + self.config.query_version_base if for_estimate else expected_version
        if version != allowed:
            raise RpcError(StarknetErrorCode.UNSUPPORTED_TX_VERSION, 'The transaction version is not supported')
        nonce = int(tx['nonce'], 16)
        if nonce != self._pending_nonce(sender):
            raise RpcError(StarknetErrorCode.INVALID_TRANSACTION_NONCE, 'Invalid transaction nonce',
                           f'expected {self._pending_nonce(sender)}, got {nonce}')
        public_key = self.state[sender]['storage'][0]
        signature = [int(s, 16) for s in tx['signature']]
        if len(signature) != 2 or not verify_message_signature(tx_hash, signature, public_key):
            raise RpcError(StarknetErrorCode.VALIDATION_FAILURE, 'Account validation failed', 'invalid signature')
        return sender, nonce

    def _check_fee(self, sender: int, max_fee: int, fee: int):
        if max_fee < fee:
            raise RpcError(StarknetErrorCode.INSUFFICIENT_MAX_FEE, 'Max fee is smaller than the minimal transaction cost')
        if self.balances.get(sender, 0) < max_fee:
            raise RpcError(StarknetErrorCode.INSUFFICIENT_ACCOUNT_BALANCE, 'Account balance is smaller than the transaction\'s max_fee')

    def _invoke_hash(self, tx: Dict[str, Any]) -> int:
        return codec.calculate_invoke_transaction_hash(
            int(tx['sender_address'], 16), [int(c, 16) for c in tx['calldata']], int(tx['max_fee'], 16),
            self.devnet_chain_id, int(tx['nonce'], 16), int(tx['version'], 16))

    def _declare_hash(self, tx: Dict[str, Any], class_hash: int) -> int:
        return codec.calculate_declare_transaction_hash(
            int(tx['sender_address'], 16), class_hash, int(tx['compiled_class_hash'], 16), int(tx['max_fee'], 16),
            self.devnet_chain_id, int(tx['nonce'], 16), int(tx['version'], 16))

    def _class_hash_of(self, contract_class: Dict[str, Any]) -> int:
        contract_class = dict(contract_class)
        try:
            if isinstance(contract_class.get('abi'), str):
                contract_class['abi'] = json.loads(contract_class['abi'])
            return codec.compute_sierra_class_hash_of(json.dumps(contract_class))
        except (CompilationError, ValueError) as e:
            raise RpcError(StarknetErrorCode.COMPILATION_FAILED, 'Compilation failed', str(e))

    # RPC handlers

    def starknet_chainId(self):
        return hex(self.devnet_chain_id)

    def starknet_getNonce(self, block_id, contract_address):
        address = int(contract_address, 16)
        if address not in self.state:
            raise RpcError(StarknetErrorCode.CONTRACT_NOT_FOUND, 'Contract not found')
        if block_id == 'pending':
            return hex(self._pending_nonce(address))
        return hex(self.state[address]['nonce'])

    def starknet_getClass(self, block_id, class_hash):
        class_hash = int(class_hash, 16)
        if class_hash not in self.classes:
            raise RpcError(StarknetErrorCode.CLASS_HASH_NOT_FOUND, 'Class hash not found')
        return self.classes[class_hash]

    def starknet_getClassHashAt(self, block_id, contract_address):
        address = int(contract_address, 16)
        if address not in self.state:
            raise RpcError(StarknetErrorCode.CONTRACT_NOT_FOUND, 'Contract not found')
        return hex(self.state[address]['class_hash'])

    def starknet_getClassAt(self, block_id, contract_address):
        return self.classes[int(self.starknet_getClassHashAt(block_id, contract_address), 16)]

    def starknet_estimateFee(self, request, block_id):
        out = []
        for tx in request:
            if tx['type'] == 'DECLARE':
                class_hash = self._class_hash_of(tx['contract_class'])
                sender, _ = self._check_account_tx(tx, self.config.declare_tx_version, self._declare_hash(tx, class_hash), True)
                if class_hash in self.classes:
                    raise RpcError(StarknetErrorCode.CLASS_ALREADY_DECLARED, 'Class already declared')
                fee = self._fee_of('DECLARE', tx)
            else:
                sender, _ = self._check_account_tx(tx, self.config.invoke_tx_version, self._invoke_hash(tx), True)
                calldata = [int(c, 16) for c in tx['calldata']]
                try:
                    self._execute_invoke(copy.deepcopy(self.state), sender, calldata)
                except ContractRevert as e:
                    raise RpcError(StarknetErrorCode.CONTRACT_ERROR, 'Contract error', {'revert_error': str(e)})
                fee = self._fee_of('INVOKE', calldata)
            out.append({'gas_consumed': hex(fee // self.gas_price), 'gas_price': hex(self.gas_price), 'overall_fee': hex(fee)})
        return out

    def starknet_addInvokeTransaction(self, invoke_transaction):
        tx = invoke_transaction
        tx_hash = self._invoke_hash(tx)
        if tx_hash in self.transactions:
            raise RpcError(StarknetErrorCode.DUPLICATE_TX, 'A transaction with the same hash already exists in the mempool')
        sender, nonce = self._check_account_tx(tx, self.config.invoke_tx_version, tx_hash, False)
        calldata = [int(c, 16) for c in tx['calldata']]
        fee = self._fee_of('INVOKE', calldata)
        self._check_fee(sender, int(tx['max_fee'], 16), fee)
        record = _Tx(tx_hash, 'INVOKE', sender, nonce, fee, calldata)
        self.transactions[tx_hash] = record
        self.pending.append(record)
        return {'transaction_hash': hex(tx_hash)}

    def starknet_addDeclareTransaction(self, declare_transaction):
        tx = declare_transaction
        class_hash = self._class_hash_of(tx['contract_class'])
        if class_hash in self.classes or any(p.kind == 'DECLARE' and p.payload['class_hash'] == class_hash for p in self.pending):
            raise RpcError(StarknetErrorCode.CLASS_ALREADY_DECLARED, 'Class already declared')
        tx_hash = self._declare_hash(tx, class_hash)
        sender, nonce = self._check_account_tx(tx, self.config.declare_tx_version, tx_hash, False)
        fee = self._fee_of('DECLARE', tx)
        self._check_fee(sender, int(tx['max_fee'], 16), fee)
        record = _Tx(tx_hash, 'DECLARE', sender, nonce, fee, {'class_hash': class_hash, 'contract_class': tx['contract_class']})
        self.transactions[tx_hash] = record
        self.pending.append(record)
        return {'transaction_hash': hex(tx_hash), 'class_hash': hex(class_hash)}

    def starknet_getTransactionStatus(self, transaction_hash):
        tx = self.transactions.get(int(transaction_hash, 16))
        if tx is None:
            raise RpcError(StarknetErrorCode.TXN_HASH_NOT_FOUND, 'Transaction hash not found')
        self._advance(tx)
        status = {'finality_status': tx.finality_status}
        if tx.execution_status is not None:
            status['execution_status'] = tx.execution_status
        return status

    def starknet_getTransactionReceipt(self, transaction_hash):
        tx = self.transactions.get(int(transaction_hash, 16))
        if tx is None or tx.finality_status == 'RECEIVED':
            raise RpcError(StarknetErrorCode.TXN_HASH_NOT_FOUND, 'Transaction hash not found')
        receipt = {
            'transaction_hash': hex(tx.tx_hash),
            'actual_fee': hex(tx.fee),
            'finality_status': tx.finality_status,
            'execution_status': tx.execution_status,
        }
        if tx.revert_reason is not None:
            receipt['revert_reason'] = tx.revert_reason
        return receipt

    def starknet_call(self, request, block_id):
        calldata = [int(c, 16) for c in request['calldata']]
        execution = _Execution(self, copy.deepcopy(self.state), 0)
        try:
            ret = execution.call_contract(int(request['contract_address'], 16), int(request['entry_point_selector'], 16), calldata)
        except ContractRevert as e:
            raise RpcError(StarknetErrorCode.CONTRACT_ERROR, 'Contract error', {'revert_error': str(e)})
        return [hex(v) for v in ret]

    _methods = ('starknet_chainId', 'starknet_getNonce', 'starknet_getClass', 'starknet_getClassHashAt',
                'starknet_getClassAt', 'starknet_estimateFee', 'starknet_addInvokeTransaction',
                'starknet_addDeclareTransaction', 'starknet_getTransactionStatus', 'starknet_getTransactionReceipt',
                'starknet_call')

    def _send(self, method: str, params: Any, timeout: float) -> Any:
        if method not in self._methods:
            raise RpcError(-32601, 'Method not found', method)
        handler = getattr(self, method)
        try:
            if isinstance(params, dict):
                bound = inspect.signature(handler).bind(**params)
            else:
                bound = inspect.signature(handler).bind(*params)
        except TypeError as e:
            raise RpcError(-32602, 'Invalid params', str(e))
        with self._lock:
            return handler(*bound.args, **bound.kwargs)
