from typing import Any

from starkcast.config import cfg
from starkcast.errors.exceptions import RpcError, NetworkError
from starkcast.tests.starkcast_unit_test import StarkcastTestCase
from starkcast.transaction.interface import StarknetNetworkInterface, StarknetErrorCode
from starkcast.transaction.tracker import ConfirmationTracker
from starkcast.transaction.types import TransactionStatus


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


class ScriptedNetwork(StarknetNetworkInterface):
    """Answers status requests from a list, the last entry repeats forever."""

    def __init__(self, config, statuses, receipt=None, clock=None):
        clock = FakeClock() if clock is None else clock
        super().__init__(config, sleep=clock.sleep, clock=clock)
        self.clock = clock
        self.statuses = list(statuses)
        self.receipt = receipt
        self.status_requests = 0
        self.timeouts = []

    def _send(self, method: str, params: Any, timeout: float) -> Any:
        if method == 'starknet_getTransactionReceipt':
            return self.receipt
        assert method == 'starknet_getTransactionStatus'
        self.status_requests += 1
        self.timeouts.append(timeout)
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if callable(status):
            status = status()
        if isinstance(status, Exception):
            raise status
        return status


RECEIVED = {'finality_status': 'RECEIVED'}
ACCEPTED = {'finality_status': 'ACCEPTED_ON_L2', 'execution_status': 'SUCCEEDED'}
ON_L1 = {'finality_status': 'ACCEPTED_ON_L1', 'execution_status': 'SUCCEEDED'}
NOT_FOUND = RpcError(StarknetErrorCode.TXN_HASH_NOT_FOUND, 'Transaction hash not found')


class TestConfirmationTracker(StarkcastTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.config = cfg.copy()
        self.config.poll_interval = 1.0
        self.config.poll_backoff_factor = 2.0
        self.config.max_poll_interval = 5.0
        self.config.confirmation_timeout = 60.0

    def tracker(self, statuses, receipt=None):
        network = ScriptedNetwork(self.config, statuses, receipt)
        return network, ConfirmationTracker(network, self.config)

    def test_accepted(self):
        network, tracker = self.tracker([NOT_FOUND, RECEIVED, RECEIVED, ACCEPTED])
        outcome = tracker.wait_for(0xabc)
        self.assertEqual(outcome.status, TransactionStatus.ACCEPTED_ON_L2)
        self.assertEqual(outcome.transaction_hash, 0xabc)
        self.assertEqual(network.status_requests, 4)

    def test_backoff_is_capped(self):
        network, tracker = self.tracker([RECEIVED] * 6 + [ACCEPTED])
        tracker.wait_for(0x1)
        self.assertEqual(network.clock.sleeps, [1.0, 2.0, 4.0, 5.0, 5.0, 5.0])

    def test_wait_for_l1(self):
        network, tracker = self.tracker([ACCEPTED, ACCEPTED, ON_L1])
        self.assertEqual(tracker.wait_for(0x1, require_l1=True).status, TransactionStatus.ACCEPTED_ON_L1)
        self.assertEqual(network.status_requests, 3)

    def test_rejected(self):
        _, tracker = self.tracker([RECEIVED, {'finality_status': 'REJECTED', 'failure_reason': 'Invalid nonce'}])
        outcome = tracker.wait_for(0x1)
        self.assertEqual(outcome.status, TransactionStatus.REJECTED)
        self.assertEqual(outcome.reason, 'Invalid nonce')

    def test_reverted(self):
        reverted = {'finality_status': 'ACCEPTED_ON_L2', 'execution_status': 'REVERTED'}
        _, tracker = self.tracker([reverted], receipt={'revert_reason': 'Error in the called contract'})
        outcome = tracker.wait_for(0x1)
        self.assertEqual(outcome.status, TransactionStatus.REVERTED)
        self.assertEqual(outcome.reason, 'Error in the called contract')

    def test_timeout(self):
        network, tracker = self.tracker([RECEIVED])
        outcome = tracker.wait_for(0x1, timeout=10.0)
        self.assertEqual(outcome.status, TransactionStatus.TIMED_OUT)
        self.assertIn('PENDING', outcome.reason)
        self.assertEqual(network.clock.now, 10.0)

    def test_request_timeout_follows_deadline(self):
        network, tracker = self.tracker([RECEIVED, ACCEPTED])
        tracker.wait_for(0x1, timeout=10.0)
        self.assertEqual(network.timeouts, [10.0, 9.0])

    def test_unreachable_node(self):
        network, tracker = self.tracker([NetworkError('connection refused', attempts=3)])
        with self.assertRaises(NetworkError) as e:
            tracker.wait_for(0x1)
        self.assertEqual(e.exception.attempts, 3)
        self.assertEqual(network.status_requests, 1)

    def test_unreachable_node_after_deadline(self):
        network, tracker = self.tracker([RECEIVED, None])

        def slow_failure():
            # the transport retried until the deadline passed
            network.clock.now += 20.0
            raise NetworkError('connection refused', attempts=3)

        network.statuses[-1] = slow_failure
        self.assertEqual(tracker.wait_for(0x1, timeout=10.0).status, TransactionStatus.TIMED_OUT)
