"""
This package contains the network backends

==========
Submodules
==========
* :py:mod:`.jsonrpc`: Backend for starknet nodes reachable via JSON-RPC over HTTP.
* :py:mod:`.devnet`: In-process network with python contract implementations (debug backend).
"""

from .jsonrpc import RpcHttpNetwork
from .devnet import DevnetNetwork, NativeContract, ContractRevert, external, view
