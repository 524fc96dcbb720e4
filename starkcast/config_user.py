"""
This module defines the starkcast options which are configurable by the user via command line arguments.

The argument parser in :py:mod:`.__main__` uses the docstrings, type hints and _values for the help
 strings and the _values fields for autocompletion

WARNING: This is one of the only starkcast modules that is imported before argcomplete.autocomplete is called. \
For performance reasons it should thus not have any import side-effects or perform any expensive operations during import.
"""
from typing import Any, Optional

from appdirs import AppDirs


def _check_is_one_of(val: str, legal_vals):
    if val not in legal_vals:
        raise ValueError(f'Invalid config value {val}, must be one of {legal_vals}')


def _type_check(val: Any, t):
    if not isinstance(val, t):
        raise ValueError(f'Value {val} has wrong type (expected {t})')


def _check_positive(val, name: str):
    if val <= 0:
        raise ValueError(f'{name} must be positive, was {val}')


class UserConfig:
    def __init__(self):
        self._appdirs = AppDirs('starkcast', appauthor=False, version=None, roaming=True)

        # User configuration
        # Each attribute must have a type hint and a docstring for correct help strings in the commandline interface.
        # If 'Available Options: [...]' is specified, the options are used for autocomplete suggestions.

        self._network_backend: str = 'rpc-http'
        self._network_backend_values = ['rpc-http', 'devnet']

        self._rpc_url: str = 'http://127.0.0.1:5050/rpc'
        self._rpc_timeout: float = 30.0
        self._rpc_max_retries: int = 3
        self._rpc_retry_backoff: float = 0.5

        self._poll_interval: float = 1.0
        self._max_poll_interval: float = 10.0
        self._poll_backoff_factor: float = 1.5
        self._confirmation_timeout: float = 300.0

        self._wait_for_acceptance: bool = True
        self._wait_for_l1: bool = False

        self._fee_multiplier: float = 1.5
        self._skip_fee_check: bool = False

        self._artifacts_dir: str = 'target/dev'
        self._log_dir: str = self._appdirs.user_log_dir
        self._verbosity: int = 1

    @property
    def network_backend(self) -> str:
        """
        Network backend to use.

        Available Options: [rpc-http, devnet]
        """
        return self._network_backend

    @network_backend.setter
    def network_backend(self, val: str):
        _check_is_one_of(val, self._network_backend_values)
        self._network_backend = val

    @property
    def rpc_url(self) -> str:
        """Url of the Starknet JSON-RPC endpoint (only used by the rpc-http backend)."""
        return self._rpc_url

    @rpc_url.setter
    def rpc_url(self, val: str):
        _type_check(val, str)
        self._rpc_url = val

    @property
    def rpc_timeout(self) -> float:
        """Timeout in seconds for a single JSON-RPC request."""
        return self._rpc_timeout

    @rpc_timeout.setter
    def rpc_timeout(self, val: float):
        _type_check(val, (int, float))
        _check_positive(val, 'rpc_timeout')
        self._rpc_timeout = float(val)

    @property
    def rpc_max_retries(self) -> int:
        """How many times a request which failed with a transient error (connection, read timeout, 429, 5xx) is retried."""
        return self._rpc_max_retries

    @rpc_max_retries.setter
    def rpc_max_retries(self, val: int):
        _type_check(val, int)
        if val < 0:
            raise ValueError(f'rpc_max_retries must not be negative, was {val}')
        self._rpc_max_retries = val

    @property
    def rpc_retry_backoff(self) -> float:
        """Backoff factor of the exponential delay between retries, as urllib3 Retry applies it."""
        return self._rpc_retry_backoff

    @rpc_retry_backoff.setter
    def rpc_retry_backoff(self, val: float):
        _type_check(val, (int, float))
        if val < 0:
            raise ValueError(f'rpc_retry_backoff must not be negative, was {val}')
        self._rpc_retry_backoff = float(val)

    @property
    def poll_interval(self) -> float:
        """Initial delay in seconds between two transaction status requests."""
        return self._poll_interval

    @poll_interval.setter
    def poll_interval(self, val: float):
        _type_check(val, (int, float))
        _check_positive(val, 'poll_interval')
        self._poll_interval = float(val)

    @property
    def max_poll_interval(self) -> float:
        """Upper bound in seconds for the delay between two transaction status requests."""
        return self._max_poll_interval

    @max_poll_interval.setter
    def max_poll_interval(self, val: float):
        _type_check(val, (int, float))
        _check_positive(val, 'max_poll_interval')
        self._max_poll_interval = float(val)

    @property
    def poll_backoff_factor(self) -> float:
        """Factor by which the polling delay grows after every status request which did not observe a terminal state."""
        return self._poll_backoff_factor

    @poll_backoff_factor.setter
    def poll_backoff_factor(self, val: float):
        _type_check(val, (int, float))
        if val < 1:
            raise ValueError(f'poll_backoff_factor must be at least 1, was {val}')
        self._poll_backoff_factor = float(val)

    @property
    def confirmation_timeout(self) -> float:
        """Seconds to wait for a transaction to reach a terminal state before giving up."""
        return self._confirmation_timeout

    @confirmation_timeout.setter
    def confirmation_timeout(self, val: float):
        _type_check(val, (int, float))
        _check_positive(val, 'confirmation_timeout')
        self._confirmation_timeout = float(val)

    @property
    def wait_for_acceptance(self) -> bool:
        """
        If true, declare, deploy and invoke only return once the transaction was accepted on L2.

        Disable this to return right after the transaction was admitted to the pool.
        """
        return self._wait_for_acceptance

    @wait_for_acceptance.setter
    def wait_for_acceptance(self, val: bool):
        _type_check(val, bool)
        self._wait_for_acceptance = val

    @property
    def wait_for_l1(self) -> bool:
        """If true (and waiting is enabled), wait until transactions are accepted on L1 instead of L2."""
        return self._wait_for_l1

    @wait_for_l1.setter
    def wait_for_l1(self, val: bool):
        _type_check(val, bool)
        self._wait_for_l1 = val

    @property
    def fee_multiplier(self) -> float:
        """Factor applied to the estimated fee to obtain max_fee when no explicit fee ceiling is given."""
        return self._fee_multiplier

    @fee_multiplier.setter
    def fee_multiplier(self, val: float):
        _type_check(val, (int, float))
        if val < 1:
            raise ValueError(f'fee_multiplier must be at least 1, was {val}')
        self._fee_multiplier = float(val)

    @property
    def skip_fee_check(self) -> bool:
        """If true, an explicit max_fee is used without comparing it against a fee estimate."""
        return self._skip_fee_check

    @skip_fee_check.setter
    def skip_fee_check(self, val: bool):
        _type_check(val, bool)
        self._skip_fee_check = val

    @property
    def artifacts_dir(self) -> str:
        """Directory in which compiled contract artifacts (*.contract_class.json) are looked up by contract name."""
        return self._artifacts_dir

    @artifacts_dir.setter
    def artifacts_dir(self, val: str):
        _type_check(val, str)
        self._artifacts_dir = val

    @property
    def log_dir(self) -> str:
        """Path to the directory where log files should be stored."""
        return self._log_dir

    @log_dir.setter
    def log_dir(self, val: Optional[str]):
        _type_check(val, str)
        self._log_dir = val

    @property
    def verbosity(self) -> int:
        """
        If 0, no output
        If 1, normal output
        If 2, verbose output

        This includes both normal print output and output of spawned requests.
        """
        return self._verbosity

    @verbosity.setter
    def verbosity(self, val: int):
        _type_check(val, int)
        self._verbosity = val
