import copy
import json
import os
from typing import Dict, Any

from starkcast.config_user import UserConfig


def sc_print(*args, verbosity_level=1, **kwargs):
    if (verbosity_level <= cfg.verbosity) and not cfg.is_unit_test:
        print(*args, **kwargs)


def _read_version() -> str:
    with open(os.path.join(os.path.dirname(os.path.realpath(__file__)), 'VERSION')) as f:
        return f.read().strip()


class Config(UserConfig):
    def __init__(self):
        super().__init__()

        # Internal values
        self._is_unit_test = False

    def _load_cfg_file_if_exists(self, filename):
        if os.path.exists(filename):
            with open(filename) as conf:
                try:
                    self.override_defaults(json.load(conf))
                except ValueError as e:
                    raise ValueError(f'{e} (in file "{filename}")')

    def load_configuration_from_disk(self, local_cfg_file: str):
        # Load user configuration file
        user_config_dir = self._appdirs.user_config_dir
        user_cfg_file = os.path.join(user_config_dir, 'config.json')
        self._load_cfg_file_if_exists(user_cfg_file)

        # Load local configuration file
        self._load_cfg_file_if_exists(local_cfg_file)

    def override_defaults(self, overrides: Dict[str, Any]):
        for arg, val in overrides.items():
            if not hasattr(self, arg):
                raise ValueError(f'Tried to override non-existing config value {arg}')
            try:
                setattr(self, arg, val)
            except ValueError as e:
                raise ValueError(f'{e} (for entry "{arg}")')

    def copy(self) -> 'Config':
        """Return an independent copy, used to give every execution context its own settings."""
        return copy.deepcopy(self)

    def export_settings(self) -> Dict[str, Any]:
        """Return all user-configurable values (used by show-config)."""
        return {name: getattr(self, name) for name, prop in vars(UserConfig).items()
                if not name.startswith('_') and isinstance(prop, property)}

    @property
    def starkcast_version(self) -> str:
        """starkcast version number"""
        return _read_version()

    @property
    def field_prime(self) -> int:
        """Order of the field in which all felts live."""
        return 2 ** 251 + 17 * 2 ** 192 + 1

    @property
    def l2_address_upper_bound(self) -> int:
        return 2 ** 251 - 256

    @property
    def udc_address(self) -> int:
        """Address of the universal deployer contract, identical on all public networks."""
        return 0x041a78e741e5af2fec34b695679bc6891742439f7afb8484ecd7766661ad02bf

    @property
    def udc_entrypoint_name(self) -> str:
        return 'deployContract'

    @property
    def default_salt(self) -> int:
        """Salt used for deployments which neither specify a salt nor request a unique address."""
        return 0

    @property
    def query_version_base(self) -> int:
        """Added to the transaction version of fee estimation requests so they can never be executed."""
        return 2 ** 128

    @property
    def invoke_tx_version(self) -> int:
        return 1

    @property
    def declare_tx_version(self) -> int:
        return 2

    @property
    def is_unit_test(self) -> bool:
        return self._is_unit_test

    @is_unit_test.setter
    def is_unit_test(self, val: bool):
        self._is_unit_test = val


cfg = Config()
