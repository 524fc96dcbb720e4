"""
Loading of compiled contract artifacts and inspection of their ABI.

Scarb writes two files per contract into target/<profile>:

* ``<package>_<Contract>.contract_class.json`` (sierra class, what gets declared)
* ``<package>_<Contract>.compiled_contract_class.json`` (casm class, needed for the compiled class hash)
"""
import json
import os
from typing import Dict, List, Optional, Union, Any

from starkcast.errors.exceptions import CompilationError
from starkcast.utils.helpers import read_file

SIERRA_SUFFIX = '.contract_class.json'
CASM_SUFFIX = '.compiled_contract_class.json'

# Number of felts a value of the given cairo type occupies in calldata
_FELT_SIZES = {
    'core::felt252': 1,
    'core::bool': 1,
    'core::integer::u8': 1,
    'core::integer::u16': 1,
    'core::integer::u32': 1,
    'core::integer::u64': 1,
    'core::integer::u128': 1,
    'core::integer::i8': 1,
    'core::integer::i16': 1,
    'core::integer::i32': 1,
    'core::integer::i64': 1,
    'core::integer::i128': 1,
    'core::integer::u256': 2,
    'core::starknet::contract_address::ContractAddress': 1,
    'core::starknet::class_hash::ClassHash': 1,
    'core::starknet::eth_address::EthAddress': 1,
    'felt': 1,
}


class Abi:
    """Lookup of functions and the constructor in a (cairo 0 or cairo 1) contract ABI."""

    def __init__(self, entries: List[Dict[str, Any]]):
        self.functions: Dict[str, List[Dict]] = {}
        self.constructor: Optional[List[Dict]] = None
        self._collect(entries)

    def _collect(self, entries: List[Dict[str, Any]]):
        for entry in entries:
            kind = entry.get('type')
            if kind in ('function', 'l1_handler'):
                self.functions[entry['name']] = entry.get('inputs', [])
            elif kind == 'constructor':
                self.constructor = entry.get('inputs', [])
            elif kind == 'interface':
                self._collect(entry.get('items', []))

    @staticmethod
    def from_raw(abi: Union[None, str, List]) -> Optional['Abi']:
        """Parse an ABI as stored in a contract class (json string or list). Returns None if there is none."""
        if abi is None or abi == '':
            return None
        if isinstance(abi, str):
            try:
                abi = json.loads(abi)
            except ValueError:
                return None
        if not isinstance(abi, list):
            return None
        return Abi(abi)

    def has_function(self, name: str) -> bool:
        return name in self.functions

    @staticmethod
    def calldata_length(inputs: List[Dict]) -> Optional[int]:
        """Number of felts the inputs occupy, None if any input type has a size which is not statically known."""
        total = 0
        for inp in inputs:
            size = _FELT_SIZES.get(inp.get('type'))
            if size is None:
                return None
            total += size
        return total

    @property
    def constructor_calldata_length(self) -> Optional[int]:
        if self.constructor is None:
            return 0
        return self.calldata_length(self.constructor)


class ContractArtifact:
    """The sierra and casm artifacts of one contract."""

    def __init__(self, name: str, sierra_json: str, casm_json: str, path: Optional[str] = None):
        self.name = name
        self.sierra_json = sierra_json
        self.casm_json = casm_json
        self.path = path
        try:
            self._sierra = json.loads(sierra_json)
            json.loads(casm_json)
        except ValueError as e:
            raise CompilationError(f'Artifact of contract "{name}" is not valid json: {e}') from e
        for key in ('sierra_program', 'entry_points_by_type'):
            if key not in self._sierra:
                raise CompilationError(f'Artifact of contract "{name}" is not a sierra contract class (missing "{key}")')

    @property
    def abi(self) -> Optional[Abi]:
        return Abi.from_raw(self._sierra.get('abi'))

    def rpc_contract_class(self) -> Dict[str, Any]:
        """The contract class in the format expected by starknet_addDeclareTransaction."""
        abi = self._sierra.get('abi', '')
        return {
            'sierra_program': self._sierra['sierra_program'],
            'contract_class_version': self._sierra.get('contract_class_version', '0.1.0'),
            'entry_points_by_type': self._sierra['entry_points_by_type'],
            'abi': abi if isinstance(abi, str) else json.dumps(abi),
        }

    def __repr__(self):
        return f'ContractArtifact({self.name})'


def load_artifact_files(sierra_path: str, casm_path: Optional[str] = None, name: Optional[str] = None) -> ContractArtifact:
    if casm_path is None:
        if not sierra_path.endswith(SIERRA_SUFFIX):
            raise CompilationError(f'Cannot derive casm artifact path from "{sierra_path}"')
        casm_path = sierra_path[:-len(SIERRA_SUFFIX)] + CASM_SUFFIX
    for p in (sierra_path, casm_path):
        if not os.path.isfile(p):
            raise CompilationError(f'Artifact file "{p}" does not exist')
    if name is None:
        name = os.path.basename(sierra_path)[:-len(SIERRA_SUFFIX)]
    return ContractArtifact(name, read_file(sierra_path), read_file(casm_path), path=sierra_path)


def find_artifact(contract_name: str, artifacts_dir: str) -> ContractArtifact:
    """
    Locate the artifacts of contract_name inside artifacts_dir.

    Both "<Contract>.contract_class.json" and "<package>_<Contract>.contract_class.json" are accepted.

    :raise CompilationError: if no or more than one matching artifact exists
    """
    if not os.path.isdir(artifacts_dir):
        raise CompilationError(f'Artifacts directory "{artifacts_dir}" does not exist, was the project built?')
    candidates = sorted(f for f in os.listdir(artifacts_dir)
                        if f == f'{contract_name}{SIERRA_SUFFIX}' or f.endswith(f'_{contract_name}{SIERRA_SUFFIX}'))
    if not candidates:
        raise CompilationError(f'No artifacts found for contract "{contract_name}" in "{artifacts_dir}"')
    if len(candidates) > 1:
        raise CompilationError(f'Contract name "{contract_name}" is ambiguous: {", ".join(candidates)}')
    return load_artifact_files(os.path.join(artifacts_dir, candidates[0]), name=contract_name)


def resolve_artifact(contract: Union[str, ContractArtifact], artifacts_dir: str) -> ContractArtifact:
    """Accept a loaded artifact, a path to a sierra artifact or a contract name."""
    if isinstance(contract, ContractArtifact):
        return contract
    if contract.endswith(SIERRA_SUFFIX):
        return load_artifact_files(contract)
    return find_artifact(contract, artifacts_dir)
