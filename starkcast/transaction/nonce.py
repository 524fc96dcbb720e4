import threading
from contextlib import contextmanager
from typing import Optional, Iterator

from starkcast import my_logging
from starkcast.transaction.interface import StarknetNetworkInterface


class NonceSequencer:
    """
    Hands out consecutive nonces for one account.

    The counter is loaded lazily from the pending state of the network and afterwards advanced locally.
    A reservation holds the sequencer until the submission using it returned, so concurrent submissions
    from the same account are serialized and neither reuse nor skip a nonce. Whenever a reserved nonce may
    not have reached the node (the submission raised), the counter is dropped and reloaded on the next
    reservation.
    """

    def __init__(self, network: StarknetNetworkInterface, account_address: int):
        self.network = network
        self.account_address = account_address
        self._lock = threading.RLock()
        self._next: Optional[int] = None

    def _load(self) -> int:
        if self._next is None:
            self._next = self.network.get_nonce(self.account_address)
            my_logging.debug(f'Loaded nonce {self._next} of account {hex(self.account_address)}')
        return self._next

    def peek(self) -> int:
        """Return the nonce the next reservation will receive (without reserving it)."""
        with self._lock:
            return self._load()

    @contextmanager
    def reserve(self) -> Iterator[int]:
        """
        Reserve the next nonce for the duration of a submission.

        Usage::

            with sequencer.reserve() as nonce:
                submit(tx_with(nonce))

        Other threads block in reserve(), peek() and invalidate() until the body returned. The nonce is
        consumed when the body returns normally. If the body raises, the reservation may or may not have
        been consumed by the node, therefore the sequencer resynchronizes from the network before handing
        out the next nonce.
        """
        with self._lock:
            nonce = self._load()
            my_logging.debug(f'Reserved nonce {nonce} for account {hex(self.account_address)}')
            try:
                yield nonce
            except BaseException:
                self._next = None
                raise
            self._next = nonce + 1

    def invalidate(self):
        """Forget the local counter, the next reservation reads the nonce from the network again."""
        with self._lock:
            self._next = None
