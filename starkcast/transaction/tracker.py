"""
Confirmation tracking.

A submitted transaction moves through the network states

    RECEIVED (pending) -> ACCEPTED_ON_L2 -> ACCEPTED_ON_L1
                       \\-> REJECTED
                       \\-> REVERTED (included, execution failed)

:py:class:`ConfirmationTracker` polls the node with exponential backoff until the awaited state or a
failure is observed. If the deadline passes first, the client-side outcome TIMED_OUT is returned; the
transaction may still be accepted afterwards.
"""
from typing import Optional, Callable

from starkcast import my_logging
from starkcast.config import Config, sc_print
from starkcast.errors.exceptions import NetworkError, RpcError
from starkcast.my_logging.log_context import log_context
from starkcast.transaction.interface import StarknetNetworkInterface, StarknetErrorCode
from starkcast.transaction.types import TransactionOutcome, TransactionStatus


class ConfirmationTracker:
    def __init__(self, network: StarknetNetworkInterface, config: Config,
                 sleep: Optional[Callable[[float], None]] = None, clock: Optional[Callable[[], float]] = None):
        self.network = network
        self.config = config
        self._sleep = network._sleep if sleep is None else sleep
        self._clock = network._clock if clock is None else clock

    def poll_once(self, tx_hash: int, timeout: Optional[float] = None) -> TransactionOutcome:
        """
        Query the current state of a transaction once.

        An unknown transaction hash is reported as PENDING, since nodes may not have indexed a freshly
        submitted transaction yet.
        """
        try:
            status = self.network.get_transaction_status(tx_hash, timeout=timeout)
        except RpcError as e:
            if e.code == StarknetErrorCode.TXN_HASH_NOT_FOUND:
                return TransactionOutcome(TransactionStatus.PENDING, tx_hash)
            raise

        finality = status.get('finality_status')
        if finality == 'REJECTED':
            reason = status.get('failure_reason') or 'Transaction rejected by the sequencer'
            return TransactionOutcome(TransactionStatus.REJECTED, tx_hash, reason)
        if finality in ('ACCEPTED_ON_L2', 'ACCEPTED_ON_L1'):
            if status.get('execution_status') == 'REVERTED':
                return TransactionOutcome(TransactionStatus.REVERTED, tx_hash, self._revert_reason(tx_hash, timeout))
            return TransactionOutcome(TransactionStatus(finality), tx_hash)
        return TransactionOutcome(TransactionStatus.PENDING, tx_hash)

    def _revert_reason(self, tx_hash: int, timeout: Optional[float]) -> str:
        receipt = self.network.get_transaction_receipt(tx_hash, timeout=timeout)
        return receipt.get('revert_reason') or 'Transaction reverted'

    @staticmethod
    def is_done(outcome: TransactionOutcome, require_l1: bool) -> bool:
        """Whether polling can stop: a failure, or the awaited acceptance level was reached."""
        if outcome.is_failure:
            return True
        if require_l1:
            return outcome.status == TransactionStatus.ACCEPTED_ON_L1
        return outcome.is_success

    def wait_for(self, tx_hash: int, timeout: Optional[float] = None, require_l1: bool = False) -> TransactionOutcome:
        """
        Poll until the transaction is accepted (on L2, or on L1 if require_l1), failed, or timeout seconds passed.

        The delay between polls starts at config.poll_interval and grows by config.poll_backoff_factor up to
        config.max_poll_interval. Neither sleeps nor requests extend past the deadline.

        :param timeout: seconds to wait (None -> config.confirmation_timeout)
        :raise NetworkError: if the node became unreachable (after retries) before the deadline
        :return: the last observed outcome, TIMED_OUT if the awaited state was not reached in time
        """
        timeout = self.config.confirmation_timeout if timeout is None else timeout
        deadline = self._clock() + timeout
        interval = self.config.poll_interval
        outcome = TransactionOutcome(TransactionStatus.PENDING, tx_hash)
        polls = 0

        with log_context(f'wait_{hex(tx_hash)}'):
            while True:
                remaining = deadline - self._clock()
                if remaining <= 0:
                    return self._timed_out(outcome, timeout, polls)

                try:
                    new_outcome = self.poll_once(tx_hash, timeout=remaining)
                except NetworkError:
                    if self._clock() >= deadline:
                        return self._timed_out(outcome, timeout, polls)
                    raise
                polls += 1

                if new_outcome.status != outcome.status:
                    my_logging.info(f'Transaction {hex(tx_hash)}: {outcome.status.value} -> {new_outcome.status.value}')
                outcome = new_outcome

                if self.is_done(outcome, require_l1):
                    my_logging.data('confirmation_polls', polls)
                    sc_print(f'Transaction {hex(tx_hash)}: {outcome}', verbosity_level=2)
                    return outcome

                self._sleep(max(0.0, min(interval, deadline - self._clock())))
                interval = min(interval * self.config.poll_backoff_factor, self.config.max_poll_interval)

    def _timed_out(self, last: TransactionOutcome, timeout: float, polls: int) -> TransactionOutcome:
        my_logging.warning(f'Transaction {hex(last.transaction_hash)} still {last.status.value} after {timeout}s ({polls} polls)')
        reason = f'Last observed state {last.status.value} after {timeout}s'
        return TransactionOutcome(TransactionStatus.TIMED_OUT, last.transaction_hash, reason)
