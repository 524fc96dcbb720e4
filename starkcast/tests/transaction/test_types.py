from parameterized import parameterized

from starkcast.config import cfg
from starkcast.tests.starkcast_unit_test import StarkcastTestCase
from starkcast.transaction.types import Felt, ContractAddress, TransactionHash, TransactionOutcome, TransactionStatus, \
    CallResult, FeeEstimate, DeployResult


class TestFelt(StarkcastTestCase):
    def test_construction(self):
        self.assertEqual(Felt('0x10'), 16)
        self.assertEqual(Felt('16'), 16)
        self.assertEqual(Felt(b'\x01\x00'), 256)
        self.assertEqual(str(TransactionHash(255)), '0xff')

    def test_range(self):
        with self.assertRaises(ValueError):
            Felt(-1)
        with self.assertRaises(ValueError):
            Felt(cfg.field_prime)
        with self.assertRaises(ValueError):
            ContractAddress(cfg.l2_address_upper_bound)


class TestTransactionOutcome(StarkcastTestCase):
    @parameterized.expand([
        (TransactionStatus.PENDING, False, False, False),
        (TransactionStatus.ACCEPTED_ON_L2, True, True, False),
        (TransactionStatus.ACCEPTED_ON_L1, True, True, False),
        (TransactionStatus.REJECTED, True, False, True),
        (TransactionStatus.REVERTED, True, False, True),
        (TransactionStatus.TIMED_OUT, False, False, False),
    ])
    def test_classification(self, status, terminal, success, failure):
        outcome = TransactionOutcome(status, 0x1)
        self.assertEqual(outcome.is_terminal, terminal)
        self.assertEqual(outcome.is_success, success)
        self.assertEqual(outcome.is_failure, failure)

    def test_str(self):
        outcome = TransactionOutcome(TransactionStatus.REVERTED, 0xab, 'out of gas')
        self.assertEqual(str(outcome), 'REVERTED (0xab): out of gas')


class TestResults(StarkcastTestCase):
    def test_call_result(self):
        result = CallResult([1, 2])
        self.assertEqual(result.data, [1, 2])
        self.assertEqual(result.to_dict(), {'response': [1, 2]})

    def test_deploy_result(self):
        result = DeployResult(ContractAddress(0x5), TransactionHash(0x6), 0, False)
        self.assertEqual(result.to_dict(), {'contract_address': 0x5, 'transaction_hash': 0x6})

    def test_fee_estimate(self):
        self.assertEqual(FeeEstimate(1000).max_fee(1.5), 1500)

    def test_fee_estimate_large_fee(self):
        fee = 2 ** 70 + 1
        self.assertEqual(FeeEstimate(fee).max_fee(1.5), fee * 3 // 2)
        self.assertEqual(FeeEstimate(fee).max_fee(1.1), fee * 11 // 10)
        self.assertEqual(FeeEstimate(fee).max_fee(2), 2 * fee)
