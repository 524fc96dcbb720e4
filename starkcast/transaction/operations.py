"""
The public operations: declare, deploy, invoke, multicall, call and wait_for.

Every state-changing operation runs the same pipeline::

    build skeleton -> reserve nonce -> estimate fee -> sign & broadcast -> (optionally) wait for acceptance

The nonce reservation lasts from the fee estimate until the broadcast returned, so concurrent operations
of one context are submitted one after the other.

Whether the operations wait is controlled by config.wait_for_acceptance (default: wait for ACCEPTED_ON_L2)
and can be overridden per call with the ``wait`` argument. Calls never submit anything and read the
latest accepted block, so they observe exactly the transactions which reached ACCEPTED_ON_L2.
"""
from typing import Callable, Optional, Union, Sequence, Tuple

from starkcast import my_logging
from starkcast.config import sc_print
from starkcast.errors.exceptions import RpcError, ClassNotDeclaredError, ConstructorArityError, \
    EntrypointNotFoundError, ExecutionRevertedError, ContractNotFoundError, TransactionRejectedError, \
    TransactionRevertedError, ConfirmationTimeoutError
from starkcast.my_logging.log_context import log_context
from starkcast.transaction import codec
from starkcast.transaction.artifacts import Abi, ContractArtifact, resolve_artifact
from starkcast.transaction.context import ExecutionContext
from starkcast.transaction.interface import StarknetErrorCode
from starkcast.transaction.types import Call, CallArgs, CallResult, ClassHash, DeclareResult, DeployResult, \
    InvokeResult, SaltSpec, RANDOM_SALT, TransactionHash, TransactionOutcome, TransactionStatus
from starkcast.utils.timer import time_measure

Function = Union[str, int]


# Helpers

def _selector(function: Function) -> int:
    if isinstance(function, str):
        return codec.get_selector_from_name(function)
    return codec.encode_felt(function)


def _rpc_error_reason(e: RpcError) -> str:
    if isinstance(e.data, dict):
        for key in ('revert_error', 'execution_error', 'error'):
            if key in e.data:
                return str(e.data[key])
    if e.data is not None:
        return str(e.data)
    return e.message


def _is_entrypoint_not_found(e: RpcError) -> bool:
    if e.code == StarknetErrorCode.INVALID_MESSAGE_SELECTOR:
        return True
    reason = _rpc_error_reason(e)
    return 'ENTRYPOINT_NOT_FOUND' in reason or ('Entry point' in reason and 'not found' in reason)


def _translate_execution_error(e: RpcError, function: Function, address: int) -> Optional[Exception]:
    """Map an rpc error raised while executing or simulating a call to the typed starkcast error (None if there is none)."""
    if e.code == StarknetErrorCode.CONTRACT_NOT_FOUND:
        return ContractNotFoundError(address)
    if _is_entrypoint_not_found(e):
        return EntrypointNotFoundError(function if isinstance(function, str) else hex(function), address)
    if e.code in (StarknetErrorCode.CONTRACT_ERROR, 41):
        return ExecutionRevertedError(_rpc_error_reason(e))
    return None


def _contract_abi(ctx: ExecutionContext, address: int) -> Optional[Abi]:
    try:
        contract_class = ctx.network.get_class_at(address)
    except RpcError as e:
        if e.code == StarknetErrorCode.CONTRACT_NOT_FOUND:
            raise ContractNotFoundError(address) from e
        raise
    return Abi.from_raw(contract_class.get('abi'))


def _check_entrypoint(ctx: ExecutionContext, address: int, function: Function):
    """Reject unknown entrypoint names before building a transaction (only possible if the class has an abi)."""
    if not isinstance(function, str):
        return
    abi = _contract_abi(ctx, address)
    if abi is not None and not abi.has_function(function):
        raise EntrypointNotFoundError(function, address)


def _confirm(ctx: ExecutionContext, tx_hash: int, wait: Optional[bool]) -> Optional[TransactionOutcome]:
    wait = ctx.config.wait_for_acceptance if wait is None else wait
    if not wait:
        return None
    outcome = ctx.tracker.wait_for(tx_hash, require_l1=ctx.config.wait_for_l1)
    if outcome.status == TransactionStatus.REJECTED:
        # the nonce of a rejected transaction is not consumed
        ctx.nonces.invalidate()
        raise TransactionRejectedError(outcome)
    if outcome.status == TransactionStatus.REVERTED:
        raise TransactionRevertedError(outcome)
    if outcome.status == TransactionStatus.TIMED_OUT:
        raise ConfirmationTimeoutError(outcome)
    return outcome


def _submit(ctx: ExecutionContext, build_query: Callable[[int], dict], submit: Callable[[int, int], TransactionHash],
            max_fee: Optional[int]) -> TransactionHash:
    """
    Resolve the fee of the transaction build_query(nonce) creates and broadcast submit(max_fee, nonce),
    both under the same nonce reservation.

    If the node reports a nonce mismatch, another client used the account in the meantime. The local
    nonce counter is then reloaded and the submission repeated once.
    """
    for retry in (True, False):
        try:
            with ctx.nonces.reserve() as nonce:
                query_tx = None
                if max_fee is None or not ctx.config.skip_fee_check:
                    query_tx = build_query(nonce)
                fee = ctx.fee_estimator.resolve_max_fee(query_tx, max_fee)
                return submit(fee, nonce)
        except RpcError as e:
            if retry and e.code == StarknetErrorCode.INVALID_TRANSACTION_NONCE:
                my_logging.warning(f'Nonce of account {hex(ctx.account.address)} out of sync, reloading')
                continue
            raise


def _execute(ctx: ExecutionContext, calls: Sequence[Call], max_fee: Optional[int], wait: Optional[bool],
             function: Function = '__execute__') -> Tuple[TransactionHash, Optional[TransactionOutcome]]:
    submitter = ctx.submitter

    try:
        tx_hash = _submit(ctx, lambda nonce: submitter.build_invoke(calls, 0, nonce, query=True)[0],
                          lambda fee, nonce: submitter.submit_invoke(calls, fee, nonce), max_fee)
    except RpcError as e:
        err = _translate_execution_error(e, function, calls[0].to_addr)
        if err is None:
            raise
        raise err from e
    sc_print(f'Transaction hash: {hex(tx_hash)}')
    return tx_hash, _confirm(ctx, tx_hash, wait)


# Operations

def declare(ctx: ExecutionContext, contract: Union[str, ContractArtifact], *, max_fee: Optional[int] = None,
            wait: Optional[bool] = None) -> DeclareResult:
    """
    Declare a contract class (put-if-absent).

    :param contract: contract name (looked up in config.artifacts_dir), path to a *.contract_class.json file or artifact
    :param max_fee: fee ceiling, estimated if None
    :param wait: wait for acceptance (None -> config.wait_for_acceptance)
    :raise CompilationError: if the artifact is missing or invalid
    :raise FeeTooLowError: if max_fee is below the estimated fee
    :raise NetworkError: if the node is unreachable
    :return: the class hash and the hash of the declare transaction. If the class was already declared,
             no transaction is sent: already_declared is True and transaction_hash is None, so callers which
             need a transaction hash must check already_declared first
    """
    artifact = resolve_artifact(contract, ctx.config.artifacts_dir)
    with log_context(f'declare_{artifact.name}'):
        class_hash, compiled_class_hash = codec.compute_class_hashes(artifact.sierra_json, artifact.casm_json)
        my_logging.data('class_hash', class_hash)

        if ctx.network.class_exists(class_hash):
            sc_print(f'Class {artifact.name} already declared with hash {class_hash}')
            return DeclareResult(class_hash, None, already_declared=True)

        sc_print(f'Declaring {artifact.name} (class hash {class_hash})')
        submitter = ctx.submitter
        with time_measure('declare'):
            try:
                tx_hash = _submit(ctx,
                                  lambda nonce: submitter.build_declare(artifact, class_hash, compiled_class_hash, 0,
                                                                        nonce, query=True)[0],
                                  lambda fee, nonce: submitter.submit_declare(artifact, class_hash, compiled_class_hash,
                                                                              fee, nonce),
                                  max_fee)
            except RpcError as e:
                if e.code == StarknetErrorCode.CLASS_ALREADY_DECLARED:
                    # declared concurrently by someone else
                    return DeclareResult(class_hash, None, already_declared=True)
                raise
            sc_print(f'Transaction hash: {hex(tx_hash)}')
            outcome = _confirm(ctx, tx_hash, wait)
        return DeclareResult(class_hash, tx_hash, outcome)


def deploy(ctx: ExecutionContext, class_hash: Union[int, str], constructor_calldata: CallArgs = (), *,
           salt: SaltSpec = None, unique: bool = False, max_fee: Optional[int] = None,
           wait: Optional[bool] = None) -> DeployResult:
    """
    Deploy an instance of a declared class through the universal deployer contract.

    :param salt: explicit salt, RANDOM_SALT, or None (random if unique, else the fixed default salt)
    :param unique: if true, the deploying account is mixed into the salt, so other accounts can not occupy the address
    :raise ClassNotDeclaredError: if the class hash is unknown to the network
    :raise ConstructorArityError: if the calldata length does not match the constructor in the class abi
    :raise ArgumentEncodingError: if an argument is not a valid felt
    :return: address (known before submission) and transaction hash
    """
    class_hash = ClassHash(codec.encode_felt(class_hash))
    ctor = codec.encode_calldata(constructor_calldata)
    account = ctx.require_account()

    with log_context(f'deploy_{class_hash}'):
        try:
            contract_class = ctx.network.get_class(class_hash)
        except RpcError as e:
            if e.code == StarknetErrorCode.CLASS_HASH_NOT_FOUND:
                raise ClassNotDeclaredError(class_hash) from e
            raise
        abi = Abi.from_raw(contract_class.get('abi'))
        expected = None if abi is None else abi.constructor_calldata_length
        if expected is not None and expected != len(ctor):
            raise ConstructorArityError(expected, len(ctor))

        if salt is RANDOM_SALT or (salt is None and unique):
            salt = codec.draw_random_salt()
        elif salt is None:
            salt = ctx.config.default_salt
        else:
            salt = codec.encode_felt(salt)

        address = codec.compute_udc_deployed_address(account.address, class_hash, salt, unique, ctor)
        my_logging.data('contract_address', address)
        sc_print(f'Deploying class {class_hash} at {address}')

        with time_measure('deploy'):
            tx_hash, outcome = _execute(ctx, [codec.udc_deploy_call(class_hash, salt, unique, ctor)], max_fee, wait,
                                        function=ctx.config.udc_entrypoint_name)
        return DeployResult(address, tx_hash, salt, unique, outcome)


def invoke(ctx: ExecutionContext, contract_address: Union[int, str], function: Function, calldata: CallArgs = (), *,
           max_fee: Optional[int] = None, wait: Optional[bool] = None) -> InvokeResult:
    """
    Send a state-changing transaction calling function on a deployed contract.

    :param function: entrypoint name or selector
    :raise ContractNotFoundError: if no contract is deployed at contract_address
    :raise EntrypointNotFoundError: if the contract has no such entrypoint
    :raise ArgumentEncodingError: if an argument is not a valid felt
    :raise ExecutionRevertedError: if the fee simulation already reverts
    """
    address = codec.encode_felt(contract_address)
    data = codec.encode_calldata(calldata)
    with log_context(f'invoke_{function}'):
        _check_entrypoint(ctx, address, function)
        sc_print(f'Invoking {function} on {hex(address)}')
        with time_measure('invoke'):
            tx_hash, outcome = _execute(ctx, [Call(address, _selector(function), data)], max_fee, wait, function)
        return InvokeResult(tx_hash, outcome)


def multicall(ctx: ExecutionContext, calls: Sequence[Tuple[Union[int, str], Function, CallArgs]], *,
              max_fee: Optional[int] = None, wait: Optional[bool] = None) -> InvokeResult:
    """
    Execute several calls atomically in a single account transaction.

    :param calls: (contract address, entrypoint name or selector, calldata) triples
    """
    if not calls:
        raise ValueError('multicall requires at least one call')
    encoded = []
    with log_context('multicall'):
        for address, function, data in calls:
            address = codec.encode_felt(address)
            _check_entrypoint(ctx, address, function)
            encoded.append(Call(address, _selector(function), codec.encode_calldata(data)))
        with time_measure('multicall'):
            tx_hash, outcome = _execute(ctx, encoded, max_fee, wait)
        return InvokeResult(tx_hash, outcome)


def call(ctx: ExecutionContext, contract_address: Union[int, str], function: Function, calldata: CallArgs = (), *,
         block_id: str = 'latest') -> CallResult:
    """
    Execute a view call against the latest accepted state. No transaction is created.

    :raise ContractNotFoundError: if no contract is deployed at contract_address
    :raise EntrypointNotFoundError: if the contract has no such entrypoint
    :raise ExecutionRevertedError: if the contract execution failed (carries the revert reason)
    :raise NetworkError: if the node is unreachable
    """
    address = codec.encode_felt(contract_address)
    c = Call(address, _selector(function), codec.encode_calldata(calldata))
    with log_context(f'call_{function}'):
        try:
            result = CallResult(ctx.network.call(c, block_id))
        except RpcError as e:
            err = _translate_execution_error(e, function, address)
            if err is None:
                raise
            raise err from e
    sc_print(f'Call {function} returned {[hex(v) for v in result]}', verbosity_level=2)
    return result


def wait_for(ctx: ExecutionContext, transaction_hash: Union[int, str], *, timeout: Optional[float] = None,
             require_l1: Optional[bool] = None) -> TransactionOutcome:
    """
    Block until the transaction reached a terminal state (or timeout).

    Never raises for rejected, reverted or timed out transactions, the outcome tells which state was observed.
    """
    require_l1 = ctx.config.wait_for_l1 if require_l1 is None else require_l1
    outcome = ctx.tracker.wait_for(codec.encode_felt(transaction_hash), timeout=timeout, require_l1=require_l1)
    if outcome.status == TransactionStatus.REJECTED and ctx.account is not None:
        ctx.nonces.invalidate()
    return outcome


def get_nonce(ctx: ExecutionContext, address: Optional[Union[int, str]] = None) -> int:
    address = ctx.require_account().address if address is None else codec.encode_felt(address)
    return ctx.network.get_nonce(address)


def get_class_hash_at(ctx: ExecutionContext, contract_address: Union[int, str]) -> ClassHash:
    address = codec.encode_felt(contract_address)
    try:
        return ClassHash(ctx.network.get_class_hash_at(address))
    except RpcError as e:
        if e.code == StarknetErrorCode.CONTRACT_NOT_FOUND:
            raise ContractNotFoundError(address) from e
        raise
