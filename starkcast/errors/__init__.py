"""
This package defines the exceptions which may be raised by public starkcast interfaces.

==========
Submodules
==========
* :py:mod:`.exceptions`: Exception hierarchy
"""
