import contextlib
import copy
import io
import json
import os
import tempfile

from starknet_py.hash.utils import private_to_stark_key

from starkcast.__main__ import main, parse_arguments, MULTICALL_TEMPLATE
from starkcast.config import cfg
from starkcast.tests.starkcast_unit_test import StarkcastTestCase
from starkcast.transaction.blockchain.devnet import DevnetNetwork
from starkcast.utils.helpers import read_file, save_to_file

NO_CONFIG = ['--config-file', 'nonexistent_starkcast_config.json']


class TestCommandLine(StarkcastTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.saved_cfg = copy.deepcopy(cfg.__dict__)

    def tearDown(self) -> None:
        cfg.__dict__.update(self.saved_cfg)
        super().tearDown()

    def run_main(self, args):
        out = io.StringIO()
        code = 0
        with contextlib.redirect_stdout(out):
            try:
                main(NO_CONFIG + args)
            except SystemExit as e:
                code = e.code
        return code, out.getvalue()

    def test_parse_config_options(self):
        a = parse_arguments(['invoke', '0x1', 'put', '1', '2', '--url', 'http://node:9545', '--no-wait',
                             '--max-fee', '0x10', '--fee-multiplier', '2.0'])
        self.assertEqual((a.contract_address, a.function, a.calldata), ('0x1', 'put', ['1', '2']))
        self.assertEqual(a.rpc_url, 'http://node:9545')
        self.assertFalse(a.wait_for_acceptance)
        self.assertEqual(a.max_fee, 16)
        self.assertEqual(a.fee_multiplier, 2.0)

    def test_show_config(self):
        code, out = self.run_main(['show-config', '--network-backend', 'devnet', '--rpc-timeout', '5'])
        self.assertEqual(code, 0)
        settings = json.loads(out)
        self.assertEqual(settings['network_backend'], 'devnet')
        self.assertEqual(settings['rpc_timeout'], 5.0)

    def test_call_on_devnet(self):
        address, private_key = DevnetNetwork(cfg.copy()).predeployed_accounts[0]
        code, out = self.run_main(['call', hex(address), 'get_public_key', '--network-backend', 'devnet', '--json'])
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out.strip().splitlines()[-1]),
                         {'command': 'call', 'response': [hex(private_to_stark_key(private_key))]})

    def test_build_error_exit_code(self):
        code, _ = self.run_main(['deploy', '0x1234', '--network-backend', 'devnet'])
        self.assertEqual(code, 3)

    def test_invalid_config_value(self):
        code, _ = self.run_main(['show-config', '--network-backend', 'nonexistent'])
        self.assertNotEqual(code, 0)

    def test_multicall_new_prints_template(self):
        code, out = self.run_main(['multicall', 'new'])
        self.assertEqual(code, 0)
        self.assertEqual(out, MULTICALL_TEMPLATE)

    def test_multicall_new_writes_template(self):
        with tempfile.TemporaryDirectory() as d:
            path = os.path.join(d, 'calls.json')
            code, out = self.run_main(['multicall', 'new', path, '--json'])
            self.assertEqual(code, 0)
            self.assertEqual(json.loads(out.strip().splitlines()[-1])['path'], path)
            calls = json.loads(read_file(path))
            self.assertEqual(set(calls[0]), {'contract_address', 'function', 'calldata'})

            code, _ = self.run_main(['multicall', 'new', path])
            self.assertEqual(code, 11)
            save_to_file(None, path, '[]')
            code, _ = self.run_main(['multicall', 'new', path, '--overwrite'])
            self.assertEqual(code, 0)
            self.assertEqual(read_file(path), MULTICALL_TEMPLATE)
