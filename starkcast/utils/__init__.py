"""
This package contains internal helper functionality.

==========
Submodules
==========
* :py:mod:`.helpers`: File and formatting helpers
* :py:mod:`.progress_printer`: Colored and stepwise console output
* :py:mod:`.timer`: Context manager and decorator which log elapsed time
"""
