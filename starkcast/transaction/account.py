from typing import List

from starknet_py.hash.utils import message_signature, private_to_stark_key


class Account:
    """An account contract together with the private key which controls it."""

    def __init__(self, address: int, private_key: int, cairo_version: int = 1):
        if cairo_version not in (0, 1):
            raise ValueError(f'Unsupported account cairo version {cairo_version}')
        self.address = address
        self.cairo_version = cairo_version
        self.__private_key = private_key
        self.public_key = private_to_stark_key(private_key)

    def sign(self, msg_hash: int) -> List[int]:
        r, s = message_signature(msg_hash, self.__private_key)
        return [r, s]

    def __repr__(self):
        return f'Account({hex(self.address)})'
