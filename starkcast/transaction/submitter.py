from typing import Any, Dict, Sequence, Tuple

from starkcast import my_logging
from starkcast.config import cfg
from starkcast.errors.exceptions import RpcError, TransactionRejectedError
from starkcast.transaction import codec
from starkcast.transaction.account import Account
from starkcast.transaction.artifacts import ContractArtifact
from starkcast.transaction.interface import StarknetNetworkInterface, StarknetErrorCode
from starkcast.transaction.types import Call, TransactionHash, TransactionOutcome, TransactionStatus

# Errors with which a node refuses to admit a transaction into its pool
REJECTION_CODES = frozenset({
    StarknetErrorCode.FAILED_TO_RECEIVE_TXN,
    StarknetErrorCode.INVALID_TRANSACTION_NONCE,
    StarknetErrorCode.INSUFFICIENT_MAX_FEE,
    StarknetErrorCode.INSUFFICIENT_ACCOUNT_BALANCE,
    StarknetErrorCode.VALIDATION_FAILURE,
    StarknetErrorCode.COMPILATION_FAILED,
    StarknetErrorCode.DUPLICATE_TX,
    StarknetErrorCode.COMPILED_CLASS_HASH_MISMATCH,
    StarknetErrorCode.UNSUPPORTED_TX_VERSION,
})


class TransactionSubmitter:
    """Builds, signs and broadcasts account transactions. Returns as soon as the node admitted them."""

    def __init__(self, network: StarknetNetworkInterface, account: Account):
        self.network = network
        self.account = account

    # Building

    def build_invoke(self, calls: Sequence[Call], max_fee: int, nonce: int, query: bool = False) -> Tuple[Dict[str, Any], TransactionHash]:
        """
        Build a signed invoke transaction executing calls through the account.

        :param query: if true, build a query version transaction which can only be used for fee estimation
        :return: (transaction in rpc format, transaction hash)
        """
        calldata = codec.encode_execute_calldata(calls, self.account.cairo_version)
        version = codec.transaction_version(cfg.invoke_tx_version, query)
        tx_hash = codec.calculate_invoke_transaction_hash(self.account.address, calldata, max_fee,
                                                          self.network.chain_id, nonce, version)
        tx = {
            'type': 'INVOKE',
            'sender_address': hex(self.account.address),
            'calldata': codec.to_hex(calldata),
            'max_fee': hex(max_fee),
            'version': hex(version),
            'signature': codec.to_hex(self.account.sign(tx_hash)),
            'nonce': hex(nonce),
        }
        return tx, tx_hash

    def build_declare(self, artifact: ContractArtifact, class_hash: int, compiled_class_hash: int, max_fee: int,
                      nonce: int, query: bool = False) -> Tuple[Dict[str, Any], TransactionHash]:
        version = codec.transaction_version(cfg.declare_tx_version, query)
        tx_hash = codec.calculate_declare_transaction_hash(self.account.address, class_hash, compiled_class_hash,
                                                           max_fee, self.network.chain_id, nonce, version)
        tx = {
            'type': 'DECLARE',
            'sender_address': hex(self.account.address),
            'compiled_class_hash': hex(compiled_class_hash),
            'max_fee': hex(max_fee),
            'version': hex(version),
            'signature': codec.to_hex(self.account.sign(tx_hash)),
            'nonce': hex(nonce),
            'contract_class': artifact.rpc_contract_class(),
        }
        return tx, tx_hash

    # Broadcasting

    def submit_invoke(self, calls: Sequence[Call], max_fee: int, nonce: int) -> TransactionHash:
        tx, tx_hash = self.build_invoke(calls, max_fee, nonce)
        return self._broadcast(self.network.add_invoke_transaction, tx, tx_hash)

    def submit_declare(self, artifact: ContractArtifact, class_hash: int, compiled_class_hash: int, max_fee: int,
                       nonce: int) -> TransactionHash:
        tx, tx_hash = self.build_declare(artifact, class_hash, compiled_class_hash, max_fee, nonce)
        return self._broadcast(self.network.add_declare_transaction, tx, tx_hash)

    def _broadcast(self, add_transaction, tx: Dict[str, Any], expected_hash: TransactionHash) -> TransactionHash:
        try:
            returned = add_transaction(tx)
        except RpcError as e:
            if e.code in REJECTION_CODES:
                reason = e.message if e.data is None else f'{e.message}: {e.data}'
                raise TransactionRejectedError(TransactionOutcome(TransactionStatus.REJECTED, expected_hash, reason)) from e
            raise
        if returned != expected_hash:
            my_logging.warning(f'Node reported transaction hash {hex(returned)}, locally computed {hex(expected_hash)}')
        my_logging.info(f'Submitted {tx["type"].lower()} transaction {hex(returned)} (nonce {tx["nonce"]})')
        my_logging.data('tx_hash', returned)
        return TransactionHash(returned)
