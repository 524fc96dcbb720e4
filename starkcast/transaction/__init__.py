"""
This package contains the transaction orchestration layer.

==========
Submodules
==========
* :py:mod:`.account`: Account address and signing key
* :py:mod:`.artifacts`: Loading of compiled (sierra/casm) contract artifacts and abi inspection
* :py:mod:`.codec`: Felt, selector, address and transaction hash encoding
* :py:mod:`.context`: Execution context (network, account and configuration of a session)
* :py:mod:`.fee`: Fee estimation
* :py:mod:`.interface`: Network interface (JSON-RPC request boundary, retries)
* :py:mod:`.nonce`: Per-account nonce sequencing
* :py:mod:`.operations`: The public declare/deploy/invoke/multicall/call/wait_for operations
* :py:mod:`.runtime`: Construction of networks and contexts from the configuration
* :py:mod:`.submitter`: Signing and broadcasting of transactions
* :py:mod:`.tracker`: Confirmation tracking
* :py:mod:`.types`: Felt wrapper types and operation results

===========
Subpackages
===========
* :py:mod:`.blockchain`: Network backends
"""
