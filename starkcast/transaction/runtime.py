from typing import Optional

from starkcast.config import Config, cfg
from starkcast.transaction.account import Account
from starkcast.transaction.blockchain import RpcHttpNetwork, DevnetNetwork
from starkcast.transaction.context import ExecutionContext
from starkcast.transaction.interface import StarknetNetworkInterface

_network_classes = {
    'rpc-http': RpcHttpNetwork,
    'devnet': DevnetNetwork,
}


def create_network(config: Optional[Config] = None) -> StarknetNetworkInterface:
    """Instantiate the network backend selected by config.network_backend."""
    config = cfg.copy() if config is None else config
    return _network_classes[config.network_backend](config)


def create_context(config: Optional[Config] = None, account: Optional[Account] = None,
                   network: Optional[StarknetNetworkInterface] = None) -> ExecutionContext:
    """
    Create an execution context.

    If no account is given and the network is a devnet, its first predeployed account is used.
    """
    config = cfg.copy() if config is None else config
    network = create_network(config) if network is None else network
    if account is None and isinstance(network, DevnetNetwork):
        address, private_key = network.predeployed_accounts[0]
        account = Account(address, private_key)
    return ExecutionContext(network, account, config)
