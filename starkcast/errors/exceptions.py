"""
This module contains the definitions of all exceptions which may be publicly raised by starkcast

Every failure kind has its own class so callers can dispatch on the type instead of inspecting messages.
"""
from typing import Optional, Any


class StarkcastError(Exception):
    """
    Root of all starkcast errors
    """
    pass


class BuildError(StarkcastError):
    """
    A transaction could not be built from the given inputs.

    Raised before anything is sent to the network, never retried.
    """
    pass


class CompilationError(BuildError):
    """
    A contract artifact is missing or invalid
    """
    pass


class ClassNotDeclaredError(BuildError):
    """
    The class hash is not known to the network
    """
    def __init__(self, class_hash: int):
        super().__init__(f'Class with hash {hex(class_hash)} is not declared')
        self.class_hash = class_hash


class ConstructorArityError(BuildError):
    """
    Number of constructor arguments does not match the constructor of the class
    """
    def __init__(self, expected: int, actual: int):
        super().__init__(f'Constructor expects {expected} calldata entries, got {actual}')
        self.expected = expected
        self.actual = actual


class EntrypointNotFoundError(BuildError):
    """
    The target contract has no entrypoint with the given name or selector
    """
    def __init__(self, entrypoint: str, contract_address: Optional[int] = None):
        where = '' if contract_address is None else f' in contract {hex(contract_address)}'
        super().__init__(f'Entrypoint "{entrypoint}" not found{where}')
        self.entrypoint = entrypoint
        self.contract_address = contract_address


class ContractNotFoundError(BuildError):
    """
    No contract is deployed at the given address
    """
    def __init__(self, contract_address: int):
        super().__init__(f'No contract deployed at address {hex(contract_address)}')
        self.contract_address = contract_address


class ArgumentEncodingError(BuildError):
    """
    A call argument cannot be encoded as a field element
    """
    def __init__(self, value: Any, reason: str):
        super().__init__(f'Cannot encode argument {value!r}: {reason}')
        self.value = value


class FeeTooLowError(BuildError):
    """
    The explicit fee ceiling is below the estimated execution cost
    """
    def __init__(self, max_fee: int, estimated_fee: int):
        super().__init__(f'max_fee {max_fee} is lower than the estimated fee {estimated_fee}')
        self.max_fee = max_fee
        self.estimated_fee = estimated_fee


class NetworkError(StarkcastError):
    """
    The node could not be reached (after all retries)
    """
    def __init__(self, message: str, cause: Optional[BaseException] = None, attempts: int = 1):
        super().__init__(message)
        self.cause = cause
        self.attempts = attempts


class RpcError(StarkcastError):
    """
    The node answered a request with a JSON-RPC error object
    """
    def __init__(self, code: int, message: str, data: Any = None):
        details = '' if data is None else f' ({data})'
        super().__init__(f'RPC error {code}: {message}{details}')
        self.code = code
        self.message = message
        self.data = data


class ExecutionRevertedError(StarkcastError):
    """
    A read-only call failed inside the contract
    """
    def __init__(self, reason: str):
        super().__init__(f'Call reverted: {reason}')
        self.reason = reason


class TransactionFailedError(StarkcastError):
    """
    A submitted transaction did not reach an accepted state
    """
    def __init__(self, outcome: 'TransactionOutcome'):
        super().__init__(str(outcome))
        self.outcome = outcome

    @property
    def transaction_hash(self) -> int:
        return self.outcome.transaction_hash

    @property
    def reason(self) -> Optional[str]:
        return self.outcome.reason


class TransactionRejectedError(TransactionFailedError):
    """
    The node refused to admit the transaction (bad nonce, insufficient fee, invalid signature, ...)
    """
    pass


class TransactionRevertedError(TransactionFailedError):
    """
    The transaction was included but its execution reverted
    """
    pass


class ConfirmationTimeoutError(TransactionFailedError):
    """
    No terminal state was observed before the deadline, the transaction may still be accepted later
    """
    pass
