import json

from parameterized import parameterized

from starkcast.tests.starkcast_unit_test import StarkcastTestCase
from starkcast.transaction.types import TransactionHash, ContractAddress
from starkcast.utils.helpers import format_value, format_result


class TestFormatting(StarkcastTestCase):
    @parameterized.expand([
        ('default_plain_int', 10, 'default', 10),
        ('default_hash', TransactionHash(10), 'default', '0xa'),
        ('hex', 10, 'hex', '0xa'),
        ('int', TransactionHash(10), 'int', 10),
        ('none', None, 'hex', None),
        ('bool', True, 'hex', True),
        ('nested', {'a': [ContractAddress(1), 2]}, 'default', {'a': ['0x1', 2]}),
    ])
    def test_format_value(self, _, value, value_format, expected):
        self.assertEqual(format_value(value, value_format), expected)

    def test_format_result_text(self):
        out = format_result('invoke', {'transaction_hash': TransactionHash(0xab)})
        self.assertEqual(out, 'command: invoke\ntransaction_hash: 0xab')

    def test_format_result_json(self):
        out = format_result('call', [1, 2], 'hex', as_json=True)
        self.assertEqual(json.loads(out), {'command': 'call', 'response': ['0x1', '0x2']})
