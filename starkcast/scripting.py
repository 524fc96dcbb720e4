"""
Deployment scripts.

A script is a plain python file which is executed with the names of :py:class:`ScriptApi` in its global
scope, e.g.::

    declared = declare('Mapa')
    deployed = deploy(declared.class_hash)
    invoke(deployed.contract_address, 'put', [0x1, 0x2])
    assert call(deployed.contract_address, 'get', [0x1]).data == [0x2]
"""
import runpy
from typing import Any, Dict

from starkcast.transaction import operations
from starkcast.transaction.context import ExecutionContext
from starkcast.transaction.types import RANDOM_SALT


class ScriptApi:
    """The operations of starkcast.transaction.operations, bound to one execution context."""

    def __init__(self, ctx: ExecutionContext):
        self.ctx = ctx

    def declare(self, contract, **kwargs):
        return operations.declare(self.ctx, contract, **kwargs)

    def deploy(self, class_hash, constructor_calldata=(), **kwargs):
        return operations.deploy(self.ctx, class_hash, constructor_calldata, **kwargs)

    def invoke(self, contract_address, function, calldata=(), **kwargs):
        return operations.invoke(self.ctx, contract_address, function, calldata, **kwargs)

    def multicall(self, calls, **kwargs):
        return operations.multicall(self.ctx, calls, **kwargs)

    def call(self, contract_address, function, calldata=(), **kwargs):
        return operations.call(self.ctx, contract_address, function, calldata, **kwargs)

    def wait_for(self, transaction_hash, **kwargs):
        return operations.wait_for(self.ctx, transaction_hash, **kwargs)

    def get_nonce(self, address=None):
        return operations.get_nonce(self.ctx, address)

    def scope(self) -> Dict[str, Any]:
        """Global names available to scripts."""
        names = ('declare', 'deploy', 'invoke', 'multicall', 'call', 'wait_for', 'get_nonce')
        scope = {name: getattr(self, name) for name in names}
        scope['RANDOM_SALT'] = RANDOM_SALT
        scope['ctx'] = self.ctx
        scope['account'] = self.ctx.account
        return scope


def run_script(ctx: ExecutionContext, script_path: str) -> Dict[str, Any]:
    """Execute the script at script_path against ctx and return its resulting globals."""
    return runpy.run_path(script_path, init_globals=ScriptApi(ctx).scope(), run_name='__starkcast_script__')
