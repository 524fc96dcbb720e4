import tempfile

from starkcast.scripting import run_script, ScriptApi
from starkcast.tests.devnet_test_case import DevnetTestCase
from starkcast.utils.helpers import save_to_file

MAPA_SCRIPT = '''
declared = declare('Mapa')
deployed = deploy(declared.class_hash)
invoked = invoke(deployed.contract_address, 'put', [0x1, 0x2])
result = call(deployed.contract_address, 'get', [0x1])
assert result.data == [0x2]
'''


class TestScripting(DevnetTestCase):
    def test_mapa_script(self):
        with tempfile.TemporaryDirectory() as d:
            save_to_file(d, 'Mapa.contract_class.json', self.mapa.sierra_json)
            save_to_file(d, 'Mapa.compiled_contract_class.json', self.mapa.casm_json)
            self.ctx.config.artifacts_dir = d
            script_globals = run_script(self.ctx, save_to_file(d, 'deploy_mapa.py', MAPA_SCRIPT))

        self.assertEqual(script_globals['result'].data, [0x2])
        self.assertEqual(script_globals['declared'].class_hash, self.mapa_class_hash)
        for name in ('declared', 'deployed', 'invoked'):
            self.assertNotEqual(script_globals[name].transaction_hash, 0)

    def test_scope(self):
        scope = ScriptApi(self.ctx).scope()
        for name in ('declare', 'deploy', 'invoke', 'multicall', 'call', 'wait_for', 'RANDOM_SALT', 'account'):
            self.assertIn(name, scope)
        self.assertIs(scope['account'], self.ctx.account)
