from typing import Any, Dict, Optional

from starkcast import my_logging
from starkcast.config import Config, sc_print
from starkcast.errors.exceptions import FeeTooLowError
from starkcast.transaction.interface import StarknetNetworkInterface
from starkcast.transaction.types import FeeEstimate


class FeeEstimator:
    """Determines the fee ceiling (max_fee) of a transaction from a simulated execution."""

    def __init__(self, network: StarknetNetworkInterface, config: Config):
        self.network = network
        self.config = config

    def estimate(self, query_transaction: Dict[str, Any]) -> FeeEstimate:
        """
        Ask the node for the execution cost of a transaction.

        :param query_transaction: signed transaction with a query version (it can never be executed)
        :raise RpcError: if the simulation fails (e.g. the call reverts)
        """
        estimate = self.network.estimate_fee([query_transaction])[0]
        my_logging.data('estimated_fee', estimate.overall_fee)
        return estimate

    def resolve_max_fee(self, query_transaction: Optional[Dict[str, Any]], max_fee: Optional[int]) -> int:
        """
        Return the fee ceiling to use.

        :param query_transaction: transaction to simulate, may be None only if max_fee is given and fee checks are disabled
        :param max_fee: explicit fee ceiling (None -> estimate * fee_multiplier)
        :raise FeeTooLowError: if max_fee is below the estimated cost (checked before anything is broadcast)
        """
        if max_fee is not None and max_fee < 0:
            raise ValueError('max_fee must not be negative')
        if max_fee is not None and self.config.skip_fee_check:
            return max_fee

        estimate = self.estimate(query_transaction)
        if max_fee is None:
            max_fee = estimate.max_fee(self.config.fee_multiplier)
            sc_print(f'Estimated fee {estimate.overall_fee}, using max_fee {max_fee}', verbosity_level=2)
        elif max_fee < estimate.overall_fee:
            raise FeeTooLowError(max_fee, estimate.overall_fee)
        my_logging.data('max_fee', max_fee)
        return max_fee
