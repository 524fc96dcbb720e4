"""
The main starkcast package.

==========
Submodules
==========
* :py:mod:`.__main__`: Starkcast command line interface
* :py:mod:`.config`: Global starkcast configuration (user-configuration and internal constants)
* :py:mod:`.scripting`: Bound declare/deploy/invoke/call functions for deployment scripts

===========
Subpackages
===========
* :py:mod:`.errors`: Defines exceptions which may be publicly raised by starkcast
* :py:mod:`.my_logging`: Logging facilities
* :py:mod:`.transaction`: Transaction orchestration (encoding, fees, nonces, submission, confirmation)
* :py:mod:`.utils`: Internal helper functionality
"""
