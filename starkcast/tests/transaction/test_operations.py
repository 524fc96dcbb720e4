import itertools
import threading
import time
from unittest import mock

from starkcast.errors.exceptions import ClassNotDeclaredError, ConstructorArityError, EntrypointNotFoundError, \
    ExecutionRevertedError, FeeTooLowError, ContractNotFoundError, ArgumentEncodingError, TransactionRevertedError, \
    ConfirmationTimeoutError, TransactionRejectedError
from starkcast.tests.devnet_test_case import DevnetTestCase
from starkcast.transaction import codec
from starkcast.transaction.context import ExecutionContext
from starkcast.transaction.operations import declare, deploy, invoke, multicall, call, wait_for, get_nonce, \
    get_class_hash_at
from starkcast.transaction.types import TransactionOutcome, TransactionStatus, RANDOM_SALT


class TestMapaScenario(DevnetTestCase):
    def test_declare_deploy_invoke_call(self):
        declared = declare(self.ctx, self.mapa)
        self.assertEqual(declared.class_hash, self.mapa_class_hash)
        self.assertNotEqual(declared.transaction_hash, 0)
        self.assertEqual(declared.outcome.status, TransactionStatus.ACCEPTED_ON_L2)

        deployed = deploy(self.ctx, declared.class_hash)
        self.assertNotEqual(deployed.transaction_hash, 0)
        self.assertEqual(get_class_hash_at(self.ctx, deployed.contract_address), declared.class_hash)

        invoked = invoke(self.ctx, deployed.contract_address, 'put', [0x1, 0x2])
        self.assertNotEqual(invoked.transaction_hash, 0)
        self.assertTrue(invoked.outcome.is_success)

        result = call(self.ctx, deployed.contract_address, 'get', [0x1])
        self.assertEqual(result.data, [0x2])
        self.assertEqual(call(self.ctx, deployed.contract_address, 'get', [0x3]).data, [0x0])

    def test_declare_is_idempotent(self):
        first = declare(self.ctx, self.mapa)
        nonce = get_nonce(self.ctx)
        second = declare(self.ctx, self.mapa)
        self.assertEqual(first.class_hash, second.class_hash)
        self.assertTrue(second.already_declared)
        self.assertIsNone(second.transaction_hash)
        self.assertEqual(get_nonce(self.ctx), nonce)

    def test_constructor_calldata(self):
        declared = declare(self.ctx, self.counter)
        deployed = deploy(self.ctx, declared.class_hash, [5])
        invoke(self.ctx, deployed.contract_address, 'increase', ['0x3'])
        self.assertEqual(call(self.ctx, deployed.contract_address, 'get_value').data, [8])

    def test_multicall_is_atomic(self):
        address = deploy(self.ctx, declare(self.ctx, self.mapa).class_hash).contract_address
        multicall(self.ctx, [(address, 'put', [1, 10]), (address, 'put', [2, 20])])
        self.assertEqual(call(self.ctx, address, 'get', [1]).data, [10])
        self.assertEqual(call(self.ctx, address, 'get', [2]).data, [20])

        with self.assertRaises(ExecutionRevertedError):
            multicall(self.ctx, [(address, 'put', [1, 11]), (address, 'put_nonzero', [2, 0])])
        self.assertEqual(call(self.ctx, address, 'get', [1]).data, [10])

    def test_nonces_are_consecutive(self):
        address = deploy(self.ctx, declare(self.ctx, self.mapa).class_hash).contract_address
        start = get_nonce(self.ctx)
        hashes = [invoke(self.ctx, address, 'put', [i, i + 1], wait=False).transaction_hash for i in range(3)]
        self.assertEqual(len(set(hashes)), 3)
        for tx_hash in hashes:
            self.assertTrue(wait_for(self.ctx, tx_hash).is_success)
        self.assertEqual(get_nonce(self.ctx), start + 3)
        self.assertEqual(call(self.ctx, address, 'get', [2]).data, [3])


class TestDeploy(DevnetTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.class_hash = declare(self.ctx, self.mapa).class_hash

    def test_unique_deployments_get_distinct_addresses(self):
        first = deploy(self.ctx, self.class_hash, unique=True)
        second = deploy(self.ctx, self.class_hash, unique=True)
        self.assertNotEqual(first.contract_address, second.contract_address)
        self.assertNotEqual(first.salt, second.salt)

    def test_unique_salt_depends_on_account(self):
        mine = deploy(self.ctx, self.class_hash, salt=7, unique=True)
        theirs = deploy(self.other_context(), self.class_hash, salt=7, unique=True)
        self.assertNotEqual(mine.contract_address, theirs.contract_address)

    def test_non_unique_address_is_deterministic(self):
        deployed = deploy(self.ctx, self.class_hash, salt=7)
        other_account = self.other_context().account.address
        self.assertEqual(deployed.contract_address,
                         codec.compute_udc_deployed_address(other_account, self.class_hash, 7, False, []))
        self.assertEqual(deployed.contract_address, codec.compute_contract_address(7, self.class_hash, []))

        # the address is taken now, for every account
        with self.assertRaises(ExecutionRevertedError):
            deploy(self.other_context(), self.class_hash, salt=7)

    def test_random_salt(self):
        deployed = deploy(self.ctx, self.class_hash, salt=RANDOM_SALT)
        self.assertFalse(deployed.unique)
        self.assertEqual(deployed.contract_address, codec.compute_contract_address(deployed.salt, self.class_hash, []))

    def test_undeclared_class(self):
        with self.assertRaises(ClassNotDeclaredError) as e:
            deploy(self.ctx, 0x1234)
        self.assertEqual(e.exception.class_hash, 0x1234)

    def test_constructor_arity(self):
        with self.assertRaises(ConstructorArityError) as e:
            deploy(self.ctx, self.class_hash, [1])
        self.assertEqual((e.exception.expected, e.exception.actual), (0, 1))

    def test_invalid_argument(self):
        with self.assertRaises(ArgumentEncodingError):
            deploy(self.ctx, self.class_hash, salt=-1)


class TestFailures(DevnetTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.address = deploy(self.ctx, declare(self.ctx, self.mapa).class_hash).contract_address

    def test_fee_too_low_is_raised_before_broadcast(self):
        nonce = get_nonce(self.ctx)
        with mock.patch.object(self.devnet, 'add_invoke_transaction') as add:
            with self.assertRaises(FeeTooLowError) as e:
                invoke(self.ctx, self.address, 'put', [1, 2], max_fee=1)
            add.assert_not_called()
        self.assertGreater(e.exception.estimated_fee, 1)
        self.assertEqual(get_nonce(self.ctx), nonce)

    def test_unknown_entrypoint(self):
        with self.assertRaises(EntrypointNotFoundError):
            invoke(self.ctx, self.address, 'delete', [1])
        with self.assertRaises(EntrypointNotFoundError):
            call(self.ctx, self.address, 'size')

    def test_unknown_contract(self):
        with self.assertRaises(ContractNotFoundError):
            invoke(self.ctx, 0x1234, 'put', [1, 2])
        with self.assertRaises(ContractNotFoundError):
            call(self.ctx, 0x1234, 'get', [1])

    def test_revert_during_estimation(self):
        with self.assertRaises(ExecutionRevertedError) as e:
            invoke(self.ctx, self.address, 'put_nonzero', [1, 0])
        self.assertIn('value must not be zero', e.exception.reason)

    def test_revert_after_inclusion(self):
        self.ctx.config.skip_fee_check = True
        nonce = get_nonce(self.ctx)
        with self.assertRaises(TransactionRevertedError) as e:
            invoke(self.ctx, self.address, 'put_nonzero', [1, 0], max_fee=10 ** 16)
        self.assertEqual(e.exception.outcome.status, TransactionStatus.REVERTED)
        self.assertIn('value must not be zero', e.exception.reason)
        # reverted transactions consume their nonce
        self.assertEqual(get_nonce(self.ctx), nonce + 1)

    def test_nonce_resync_after_foreign_transaction(self):
        # a second sequencer for the same account (e.g. another process) advances the nonce behind our back
        other = self.other_context(0)
        invoke(other, self.address, 'put', [1, 1])
        invoke(self.ctx, self.address, 'put', [2, 2])
        self.assertEqual(call(self.ctx, self.address, 'get', [2]).data, [2])

    def test_rejected_transaction_releases_its_nonce(self):
        nonce = get_nonce(self.ctx)
        dropped = TransactionOutcome(TransactionStatus.REJECTED, 0x1234, 'Transaction dropped by the sequencer')
        with mock.patch.object(self.devnet, 'add_invoke_transaction', return_value=0x1234), \
                mock.patch.object(self.ctx.tracker, 'wait_for', return_value=dropped):
            with self.assertRaises(TransactionRejectedError):
                invoke(self.ctx, self.address, 'put', [1, 1])
        self.assertEqual(get_nonce(self.ctx), nonce)

        # without a fee estimate nothing else would notice a stale nonce
        self.ctx.config.skip_fee_check = True
        invoke(self.ctx, self.address, 'put', [1, 2], max_fee=10 ** 16)
        self.assertEqual(get_nonce(self.ctx), nonce + 1)
        self.assertEqual(call(self.ctx, self.address, 'get', [1]).data, [2])

    def test_context_without_account(self):
        ctx = ExecutionContext(self.devnet, None, self.config)
        with self.assertRaises(ValueError):
            get_nonce(ctx)
        with self.assertRaises(ValueError):
            invoke(ctx, self.address, 'put', [1, 2])
        self.assertEqual(call(ctx, self.address, 'get', [1]).data, [0])


class TestConcurrentSubmissions(DevnetTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.address = deploy(self.ctx, declare(self.ctx, self.mapa).class_hash).contract_address

    def test_concurrent_invokes_from_one_context(self):
        start = get_nonce(self.ctx)
        add_invoke = self.devnet.add_invoke_transaction
        broadcast_nonces, hashes, errors, threads = [], [], [], []

        def worker(key):
            try:
                hashes.append(invoke(self.ctx, self.address, 'put', [key, key + 10], wait=False).transaction_hash)
            except Exception as e:
                errors.append(e)

        def slow_add_invoke(tx):
            broadcast_nonces.append(int(tx['nonce'], 16))
            if len(broadcast_nonces) == 1:
                # the second invoke starts while the first one is being broadcast
                second = threading.Thread(target=worker, args=(2,))
                threads.append(second)
                second.start()
                time.sleep(0.05)
            return add_invoke(tx)

        with mock.patch.object(self.devnet, 'add_invoke_transaction', side_effect=slow_add_invoke):
            first = threading.Thread(target=worker, args=(1,))
            first.start()
            first.join()
            for t in threads:
                t.join()

        self.assertEqual(errors, [])
        self.assertEqual(broadcast_nonces, [start, start + 1])
        for tx_hash in hashes:
            self.assertTrue(wait_for(self.ctx, tx_hash).is_success)
        self.assertEqual(get_nonce(self.ctx), start + 2)
        self.assertEqual(call(self.ctx, self.address, 'get', [1]).data, [11])
        self.assertEqual(call(self.ctx, self.address, 'get', [2]).data, [12])


class TestWaitPolicy(DevnetTestCase):
    acceptance_delay = 3

    def test_no_wait_returns_pending(self):
        declared = declare(self.ctx, self.mapa, wait=False)
        self.assertIsNone(declared.outcome)
        outcome = wait_for(self.ctx, declared.transaction_hash)
        self.assertEqual(outcome.status, TransactionStatus.ACCEPTED_ON_L2)

    def test_wait_for_l1(self):
        declared = declare(self.ctx, self.mapa, wait=False)
        outcome = wait_for(self.ctx, declared.transaction_hash, require_l1=True)
        self.assertEqual(outcome.status, TransactionStatus.ACCEPTED_ON_L1)

    def test_default_from_config(self):
        self.ctx.config.wait_for_acceptance = False
        self.assertIsNone(declare(self.ctx, self.mapa).outcome)

    def test_confirmation_timeout(self):
        # every clock reading advances one second
        self.ctx.tracker._clock = itertools.count().__next__
        self.ctx.config.confirmation_timeout = 2.0
        with self.assertRaises(ConfirmationTimeoutError) as e:
            declare(self.ctx, self.mapa)
        self.assertEqual(e.exception.outcome.status, TransactionStatus.TIMED_OUT)
        # the transaction is still accepted later on
        self.assertTrue(wait_for(self.ctx, e.exception.transaction_hash, timeout=5.0).is_success)
