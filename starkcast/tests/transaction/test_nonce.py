import threading
from unittest import mock

from starkcast.tests.starkcast_unit_test import StarkcastTestCase
from starkcast.transaction.nonce import NonceSequencer


class TestNonceSequencer(StarkcastTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.network = mock.Mock()
        self.network.get_nonce.return_value = 7
        self.sequencer = NonceSequencer(self.network, 0x1)

    def test_lazy_load(self):
        self.network.get_nonce.assert_not_called()
        self.assertEqual(self.sequencer.peek(), 7)
        self.assertEqual(self.sequencer.peek(), 7)
        self.network.get_nonce.assert_called_once_with(0x1)

    def test_consecutive(self):
        reserved = []
        for _ in range(3):
            with self.sequencer.reserve() as nonce:
                reserved.append(nonce)
        self.assertEqual(reserved, [7, 8, 9])
        self.assertEqual(self.sequencer.peek(), 10)
        self.network.get_nonce.assert_called_once()

    def test_failed_submission_resyncs(self):
        with self.assertRaises(RuntimeError):
            with self.sequencer.reserve():
                raise RuntimeError('broadcast failed')
        self.network.get_nonce.return_value = 8
        with self.sequencer.reserve() as nonce:
            self.assertEqual(nonce, 8)
        self.assertEqual(self.network.get_nonce.call_count, 2)

    def test_concurrent_reservations_are_distinct(self):
        reserved = []
        lock = threading.Lock()

        def worker():
            for _ in range(50):
                with self.sequencer.reserve() as nonce:
                    with lock:
                        reserved.append(nonce)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(sorted(reserved), list(range(7, 7 + 400)))

    def test_reservation_is_held_until_submitted(self):
        inside = threading.Event()
        release = threading.Event()
        second = []

        def submit_slowly():
            with self.sequencer.reserve():
                inside.set()
                release.wait(5)

        def resync_and_submit():
            self.sequencer.invalidate()
            with self.sequencer.reserve() as nonce:
                second.append(nonce)

        first = threading.Thread(target=submit_slowly)
        first.start()
        self.assertTrue(inside.wait(5))
        other = threading.Thread(target=resync_and_submit)
        other.start()
        other.join(0.1)
        self.assertEqual(second, [])

        # the node admitted the first transaction in the meantime
        self.network.get_nonce.return_value = 8
        release.set()
        first.join()
        other.join()
        self.assertEqual(second, [8])

    def test_failure_inside_reservation_reloads(self):
        with self.assertRaises(RuntimeError):
            with self.sequencer.reserve() as nonce:
                self.assertEqual(self.sequencer.peek(), nonce)
                raise RuntimeError('estimate failed')
        self.assertEqual(self.network.get_nonce.call_count, 1)
        with self.sequencer.reserve() as nonce:
            self.assertEqual(nonce, 7)
        self.assertEqual(self.network.get_nonce.call_count, 2)
