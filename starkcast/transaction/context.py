from typing import Optional

from starkcast.config import Config
from starkcast.transaction.account import Account
from starkcast.transaction.fee import FeeEstimator
from starkcast.transaction.interface import StarknetNetworkInterface
from starkcast.transaction.nonce import NonceSequencer
from starkcast.transaction.submitter import TransactionSubmitter
from starkcast.transaction.tracker import ConfirmationTracker


class ExecutionContext:
    """
    Everything an operation needs: the network, the acting account and the configuration.

    Each context owns the nonce sequencer of its account, so all operations of one account should go
    through the same context. Contexts do not share state and may be used side by side.
    """

    def __init__(self, network: StarknetNetworkInterface, account: Optional[Account] = None,
                 config: Optional[Config] = None):
        self.network = network
        self.account = account
        self.config = config if config is not None else network.config
        self.fee_estimator = FeeEstimator(network, self.config)
        self.tracker = ConfirmationTracker(network, self.config)
        self._nonces: Optional[NonceSequencer] = None
        self._submitter: Optional[TransactionSubmitter] = None

    def require_account(self) -> Account:
        if self.account is None:
            raise ValueError('This operation requires an account, but the execution context has none')
        return self.account

    @property
    def nonces(self) -> NonceSequencer:
        if self._nonces is None:
            self._nonces = NonceSequencer(self.network, self.require_account().address)
        return self._nonces

    @property
    def submitter(self) -> TransactionSubmitter:
        if self._submitter is None:
            self._submitter = TransactionSubmitter(self.network, self.require_account())
        return self._submitter

    def __repr__(self):
        return f'ExecutionContext({self.network!r}, {self.account!r})'
