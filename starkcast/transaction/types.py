from enum import Enum
from fractions import Fraction
from typing import Optional, Collection, List, Union, Tuple

from starkcast.config import cfg


class Felt(int):
    """Field element, printed as hex."""

    def __new__(cls, val: Union[int, str, bytes]):
        if isinstance(val, bytes):
            val = int.from_bytes(val, byteorder='big')
        elif isinstance(val, str):
            val = int(val, 16) if val.lower().startswith('0x') else int(val)
        if not 0 <= val < cfg.field_prime:
            raise ValueError(f'{val} is not a valid field element')
        return super(Felt, cls).__new__(cls, val)

    def __str__(self):
        return hex(self)

    def __repr__(self):
        return f'{type(self).__name__}({hex(self)})'


class ClassHash(Felt):
    pass


class ContractAddress(Felt):
    def __new__(cls, val: Union[int, str, bytes]):
        ret = super(ContractAddress, cls).__new__(cls, val)
        if ret >= cfg.l2_address_upper_bound:
            raise ValueError(f'{hex(ret)} is not a valid contract address')
        return ret


class TransactionHash(Felt):
    pass


class _RandomSalt:
    """Marker requesting a freshly drawn salt."""

    def __repr__(self):
        return 'RANDOM_SALT'


RANDOM_SALT = _RandomSalt()
SaltSpec = Union[None, int, _RandomSalt]


class Call:
    """A single contract call: target, entrypoint selector and encoded calldata."""

    def __init__(self, to_addr: int, selector: int, calldata: Collection[int] = ()):
        self.to_addr = to_addr
        self.selector = selector
        self.calldata = list(calldata)

    def __eq__(self, other):
        return isinstance(other, Call) and (self.to_addr, self.selector, self.calldata) == \
               (other.to_addr, other.selector, other.calldata)

    def __repr__(self):
        return f'Call(to={hex(self.to_addr)}, selector={hex(self.selector)}, calldata={[hex(c) for c in self.calldata]})'


class TransactionStatus(Enum):
    PENDING = 'PENDING'
    ACCEPTED_ON_L2 = 'ACCEPTED_ON_L2'
    ACCEPTED_ON_L1 = 'ACCEPTED_ON_L1'
    REJECTED = 'REJECTED'
    REVERTED = 'REVERTED'
    TIMED_OUT = 'TIMED_OUT'


class TransactionOutcome:
    """Tagged state of a submitted transaction as observed by the confirmation tracker."""

    def __init__(self, status: TransactionStatus, transaction_hash: int, reason: Optional[str] = None):
        self.__status = status
        self.__transaction_hash = transaction_hash
        self.__reason = reason

    @property
    def status(self) -> TransactionStatus:
        return self.__status

    @property
    def transaction_hash(self) -> int:
        return self.__transaction_hash

    @property
    def reason(self) -> Optional[str]:
        """Rejection or revert reason reported by the network (None for the other states)."""
        return self.__reason

    @property
    def is_terminal(self) -> bool:
        """True for network states which will not change anymore (TIMED_OUT is a client-side state and not terminal)."""
        return self.__status in (TransactionStatus.ACCEPTED_ON_L2, TransactionStatus.ACCEPTED_ON_L1,
                                 TransactionStatus.REJECTED, TransactionStatus.REVERTED)

    @property
    def is_success(self) -> bool:
        return self.__status in (TransactionStatus.ACCEPTED_ON_L2, TransactionStatus.ACCEPTED_ON_L1)

    @property
    def is_failure(self) -> bool:
        return self.__status in (TransactionStatus.REJECTED, TransactionStatus.REVERTED)

    def __eq__(self, other):
        return isinstance(other, TransactionOutcome) and \
               (self.status, self.transaction_hash, self.reason) == (other.status, other.transaction_hash, other.reason)

    def __str__(self):
        reason = '' if self.__reason is None else f': {self.__reason}'
        return f'{self.__status.value} ({hex(self.__transaction_hash)}){reason}'

    def __repr__(self):
        return f'TransactionOutcome({self})'


class DeclareResult:
    def __init__(self, class_hash: ClassHash, transaction_hash: Optional[TransactionHash],
                 outcome: Optional[TransactionOutcome] = None, already_declared: bool = False):
        self.class_hash = class_hash
        self.transaction_hash = transaction_hash
        self.outcome = outcome
        self.already_declared = already_declared

    def to_dict(self) -> dict:
        return {'class_hash': self.class_hash, 'transaction_hash': self.transaction_hash}

    def __repr__(self):
        return f'DeclareResult(class_hash={self.class_hash}, transaction_hash={self.transaction_hash})'


class DeployResult:
    def __init__(self, contract_address: ContractAddress, transaction_hash: TransactionHash, salt: int, unique: bool,
                 outcome: Optional[TransactionOutcome] = None):
        self.contract_address = contract_address
        self.transaction_hash = transaction_hash
        self.salt = salt
        self.unique = unique
        self.outcome = outcome

    def to_dict(self) -> dict:
        return {'contract_address': self.contract_address, 'transaction_hash': self.transaction_hash}

    def __repr__(self):
        return f'DeployResult(contract_address={self.contract_address}, transaction_hash={self.transaction_hash})'


class InvokeResult:
    def __init__(self, transaction_hash: TransactionHash, outcome: Optional[TransactionOutcome] = None):
        self.transaction_hash = transaction_hash
        self.outcome = outcome

    def to_dict(self) -> dict:
        return {'transaction_hash': self.transaction_hash}

    def __repr__(self):
        return f'InvokeResult(transaction_hash={self.transaction_hash})'


class CallResult(tuple):
    """Ordered raw output values of a read-only call."""

    def __new__(cls, data: Collection[int]):
        return super(CallResult, cls).__new__(cls, [Felt(d) for d in data])

    @property
    def data(self) -> List[int]:
        return list(self)

    def to_dict(self) -> dict:
        return {'response': list(self)}

    def __repr__(self):
        return f'CallResult([{", ".join(hex(d) for d in self)}])'


class FeeEstimate:
    def __init__(self, overall_fee: int, gas_consumed: int = 0, gas_price: int = 0):
        self.overall_fee = overall_fee
        self.gas_consumed = gas_consumed
        self.gas_price = gas_price

    def max_fee(self, multiplier: float) -> int:
        # integer arithmetic, fees exceed the float mantissa
        factor = Fraction(str(multiplier))
        return self.overall_fee * factor.numerator // factor.denominator

    def __repr__(self):
        return f'FeeEstimate(overall_fee={self.overall_fee}, gas_consumed={self.gas_consumed}, gas_price={self.gas_price})'


ResultType = Union[DeclareResult, DeployResult, InvokeResult, CallResult]
CallArg = Union[int, str]
CallArgs = Union[List[CallArg], Tuple[CallArg, ...]]
