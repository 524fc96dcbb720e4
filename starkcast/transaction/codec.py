"""
Pure encoding and hashing functions.

Everything in here must match the node's encoding bit for bit, otherwise computed addresses and
transaction hashes do not verify. No function in this module performs I/O.
"""
import secrets
from typing import Sequence, List, Tuple, Union, Iterable

from starknet_py.cairo.felt import decode_shortstring, encode_shortstring
from starknet_py.common import create_sierra_compiled_contract, create_casm_class
from starknet_py.hash.address import compute_address
from starknet_py.hash.casm_class_hash import compute_casm_class_hash
from starknet_py.hash.selector import get_selector_from_name as _selector_from_name
from starknet_py.hash.sierra_class_hash import compute_sierra_class_hash
from starknet_py.hash.utils import compute_hash_on_elements, pedersen_hash
from web3 import Web3

from starkcast.config import cfg
from starkcast.errors.exceptions import ArgumentEncodingError, CompilationError
from starkcast.transaction.types import Call, CallArg, ClassHash, ContractAddress, TransactionHash

_MASK_250 = 2 ** 250 - 1


def encode_short_string(text: str) -> int:
    """Encode an ascii string of at most 31 characters as a single felt (cairo short string)."""
    try:
        return encode_shortstring(text)
    except ValueError as e:
        raise ArgumentEncodingError(text, str(e)) from e


def decode_short_string(val: int) -> str:
    return decode_shortstring(val)


TRANSACTION_PREFIX_INVOKE = encode_short_string('invoke')
TRANSACTION_PREFIX_DECLARE = encode_short_string('declare')


def starknet_keccak(data: bytes) -> int:
    """Keccak256 truncated to 250 bits."""
    return int.from_bytes(Web3.keccak(data), byteorder='big') & _MASK_250


def get_selector_from_name(name: str) -> int:
    """Entry point selector, 0 for the default entry points."""
    return _selector_from_name(name)


def encode_felt(value: CallArg) -> int:
    """
    Convert a single call argument to a field element.

    Accepted are non-negative ints below the field prime, decimal or 0x-prefixed hex strings and
    single-quoted short strings (e.g. "'hello'").

    :raise ArgumentEncodingError: if the value is not representable
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, str):
        s = value.strip()
        if len(s) >= 2 and s[0] == s[-1] == "'":
            return encode_short_string(s[1:-1])
        try:
            value = int(s, 16) if s.lower().startswith('0x') else int(s, 10)
        except ValueError:
            raise ArgumentEncodingError(value, 'not a number')
    if not isinstance(value, int):
        raise ArgumentEncodingError(value, f'unsupported type {type(value).__name__}')
    if value < 0:
        raise ArgumentEncodingError(value, 'negative values must be encoded by the caller')
    if value >= cfg.field_prime:
        raise ArgumentEncodingError(value, 'value exceeds the field prime')
    return value


def encode_calldata(args: Iterable[CallArg]) -> List[int]:
    return [encode_felt(arg) for arg in args]


def draw_random_salt() -> int:
    return secrets.randbelow(cfg.field_prime)


def compute_contract_address(salt: int, class_hash: int, constructor_calldata: Sequence[int], deployer_address: int = 0) -> ContractAddress:
    """Address of a contract deployed by deployer_address (0 for deploy_syscall with deploy_from_zero)."""
    return ContractAddress(compute_address(salt=salt, class_hash=class_hash,
                                           constructor_calldata=list(constructor_calldata),
                                           deployer_address=deployer_address))


def udc_salt_and_deployer(account_address: int, salt: int, unique: bool) -> Tuple[int, int]:
    """Return the (salt, deployer) pair the universal deployer passes to deploy_syscall."""
    if unique:
        return pedersen_hash(account_address, salt), cfg.udc_address
    return salt, 0


def compute_udc_deployed_address(account_address: int, class_hash: int, salt: int, unique: bool,
                                 constructor_calldata: Sequence[int]) -> ContractAddress:
    effective_salt, deployer = udc_salt_and_deployer(account_address, salt, unique)
    return compute_contract_address(effective_salt, class_hash, constructor_calldata, deployer)


def udc_deploy_call(class_hash: int, salt: int, unique: bool, constructor_calldata: Sequence[int]) -> Call:
    calldata = [class_hash, salt, int(unique), len(constructor_calldata), *constructor_calldata]
    return Call(cfg.udc_address, get_selector_from_name(cfg.udc_entrypoint_name), calldata)


def encode_execute_calldata(calls: Sequence[Call], cairo_version: int = 1) -> List[int]:
    """Calldata of the account's __execute__ entrypoint for a batch of calls."""
    if cairo_version == 1:
        out = [len(calls)]
        for c in calls:
            out += [c.to_addr, c.selector, len(c.calldata), *c.calldata]
        return out
    elif cairo_version == 0:
        call_array, data = [], []
        for c in calls:
            call_array += [c.to_addr, c.selector, len(data), len(c.calldata)]
            data += c.calldata
        return [len(calls), *call_array, len(data), *data]
    else:
        raise ValueError(f'Unsupported account cairo version {cairo_version}')


def decode_execute_calldata(calldata: Sequence[int], cairo_version: int = 1) -> List[Call]:
    """Inverse of encode_execute_calldata."""
    calls = []
    if cairo_version == 1:
        idx, n = 1, calldata[0]
        for _ in range(n):
            to, selector, length = calldata[idx:idx + 3]
            calls.append(Call(to, selector, calldata[idx + 3:idx + 3 + length]))
            idx += 3 + length
    else:
        n = calldata[0]
        data_start = 1 + 4 * n + 1
        for i in range(n):
            to, selector, offset, length = calldata[1 + 4 * i:5 + 4 * i]
            calls.append(Call(to, selector, calldata[data_start + offset:data_start + offset + length]))
    return calls


def transaction_version(version: int, query: bool) -> int:
    return version + cfg.query_version_base if query else version


def calculate_invoke_transaction_hash(sender_address: int, calldata: Sequence[int], max_fee: int, chain_id: int,
                                      nonce: int, version: int) -> TransactionHash:
    return TransactionHash(compute_hash_on_elements([
        TRANSACTION_PREFIX_INVOKE,
        version,
        sender_address,
        0,  # entry_point_selector, always __execute__
        compute_hash_on_elements(list(calldata)),
        max_fee,
        chain_id,
        nonce,
    ]))


def calculate_declare_transaction_hash(sender_address: int, class_hash: int, compiled_class_hash: int, max_fee: int,
                                       chain_id: int, nonce: int, version: int) -> TransactionHash:
    return TransactionHash(compute_hash_on_elements([
        TRANSACTION_PREFIX_DECLARE,
        version,
        sender_address,
        0,
        compute_hash_on_elements([class_hash]),
        max_fee,
        chain_id,
        nonce,
        compiled_class_hash,
    ]))


def compute_sierra_class_hash_of(sierra_json: str) -> ClassHash:
    """:raise CompilationError: if sierra_json is not a sierra contract class"""
    try:
        sierra = create_sierra_compiled_contract(compiled_contract=sierra_json)
        return ClassHash(compute_sierra_class_hash(sierra))
    except Exception as e:
        raise CompilationError(f'Invalid sierra contract class: {e}') from e


def compute_compiled_class_hash_of(casm_json: str) -> int:
    """:raise CompilationError: if casm_json is not a casm contract class"""
    try:
        return compute_casm_class_hash(create_casm_class(casm_json))
    except Exception as e:
        raise CompilationError(f'Invalid casm contract class: {e}') from e


def compute_class_hashes(sierra_json: str, casm_json: str) -> Tuple[ClassHash, int]:
    """
    Compute the content address of a compiled class.

    :param sierra_json: contents of the *.contract_class.json artifact
    :param casm_json: contents of the *.compiled_contract_class.json artifact
    :raise CompilationError: if either artifact cannot be parsed
    :return: (class hash of the sierra class, compiled class hash of the casm class)
    """
    return compute_sierra_class_hash_of(sierra_json), compute_compiled_class_hash_of(casm_json)


def to_hex(val: Union[int, Sequence[int]]):
    if isinstance(val, int):
        return hex(val)
    return [hex(v) for v in val]
