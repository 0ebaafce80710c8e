"""
File: Crash Blamer Configuration Options

Copyright (C) Microsoft Corporation
SPDX-License-Identifier: MIT
"""
from __future__ import annotations

import os
from typing import List, Dict, IO, Any, Literal

import yaml

from .arch.x86 import config as x86_config

StopPolicy = Literal["first_blame", "empty_taint"]


# ==================================================================================================
# Helper classes
# ==================================================================================================
class IncludeLoader(yaml.SafeLoader):
    """
    Helper class to enable `!include` statements in configuration and crash trace files
    """
    visited: List[str] = []

    def __init__(self, stream: IO, include_dir: str = "") -> None:
        self._search_paths = [os.path.split(stream.name)[0]]
        if include_dir:
            self._search_paths.append(include_dir)
        self.visited.append(os.path.abspath(stream.name))
        super().__init__(stream)

    def __del__(self) -> None:
        if self.visited:
            self.visited.pop()

    def include(self, node: yaml.Node) -> Any:
        """
        Include another YAML file
        """
        # find the included file
        for root in self._search_paths:
            filename = os.path.join(root, self.construct_scalar(node))  # type: ignore
            if os.path.exists(filename):
                break
        else:
            raise ConfigException(f"Included file {filename} does not exist")

        # check for cycles
        if os.path.abspath(filename) in self.visited:
            raise ConfigException(f"Circular include detected in {filename}")

        with open(filename, 'r') as f:
            return yaml.load(f, IncludeLoader)


IncludeLoader.add_constructor('!include', IncludeLoader.include)


class ConfigException(SystemExit):
    """ Exception raised when the configuration is invalid """

    def __init__(self, message: str) -> None:
        super().__init__("\nCONFIG ERROR: " + message + "\n")


# ==================================================================================================
# Main configuration class
# ==================================================================================================
class Conf:
    """
    Global configuration of the analysis.
    Implements the Borg pattern so that all modules observe the same values.
    """
    # ==============================================================================================
    # Target
    instruction_set: str = "x86-64"
    """ instruction_set: ISA of the crashed program """

    # ==============================================================================================
    # Taint Analysis
    stop_policy: str = "first_blame"
    """ stop_policy: when the analysis is considered complete.
     - first_blame: stop the whole analysis as soon as the first blame instruction is found
     - empty_taint: record the blame but keep scanning (in the same and in the outer frames)
       until the taint list is empty or the frames are exhausted """
    skip_startup_frames: bool = True
    """ skip_startup_frames: if True, skip the leading frames that belong to the process
    startup code (e.g., _start, __libc_start_main) """
    startup_frame_prefix: str = "_"
    """ startup_frame_prefix: name prefix that identifies process startup frames """

    # ==============================================================================================
    # Output
    logging_modes: List[str] = ["info"]
    """ logging_modes: """
    color: bool = False
    """ color: if True, use ANSI colors in the output """

    # ==============================================================================================
    # Alternatives for config options (also extended by ISA-specific config.py)
    _option_values: Dict[str, List] = {
        "instruction_set": ["x86-64"],
        "stop_policy": ["first_blame", "empty_taint"],
        "logging_modes": [
            "info",
            "stat",
            "dbg_taint",
            "dbg_frames",
        ],
    }

    # ==============================================================================================
    # Internal
    _borg_shared_state: Dict = {}
    _config_path: str = ""

    def __init__(self) -> None:
        # implementation of Borg pattern
        setattr(self, '__dict__', self._borg_shared_state)

    def load(self, config_path: str, include_dir: str = "") -> None:
        """ Load the configuration from a YAML file and validate it """
        self._config_path = config_path
        config_update: Dict = {}
        with open(config_path, "r") as f:
            loader = IncludeLoader(f, include_dir)
            try:
                config_update = loader.get_single_data()
            finally:
                loader.dispose()
        if config_update is None:
            return
        if not isinstance(config_update, dict):
            raise ConfigException(f"Configuration file {config_path} must contain a mapping")
        self._load_from_dict(config_update)
        self._value_sanity_check()

    def _load_from_dict(self, config_update: Dict) -> None:
        # make sure to set the architecture-dependent defaults first
        if 'instruction_set' in config_update:
            self._check_options('instruction_set', config_update['instruction_set'])
            self.instruction_set = config_update['instruction_set']
            self.set_to_arch_defaults()
            config_update.pop('instruction_set')

        # recursively parse the included file; keys of the including file take precedence
        if 'file' in config_update:
            included = config_update.pop('file')
            if not isinstance(included, dict):
                raise ConfigException("Included configuration (key 'file') must be a mapping")
            self._load_from_dict(included)

        for var, value in config_update.items():
            self.safe_set(var, value)

    def safe_set(self, name: str, value: Any) -> None:
        """ Set a configuration variable after checking its name, type, and value """
        assert name not in ["instruction_set"]

        # sanity checks
        if name[0] == "_":
            raise ConfigException(f"Attempting to set an internal configuration variable {name}.")
        if getattr(self, name, None) is None:
            raise ConfigException(f"Unknown configuration variable {name}.\n"
                                  f"It's likely a typo in the configuration file.")
        if type(self.__getattribute__(name)) != type(value):  # pylint: disable=c0123
            raise ConfigException(f"Wrong type of the configuration variable {name}.\n"
                                  f"It's likely a typo in the configuration file.")

        self._check_options(name, value)
        setattr(self, name, value)

    def _check_options(self, name: str, value: Any) -> None:
        if name not in self._option_values:
            return
        options = self._option_values[name]

        invalid_value = None
        if isinstance(value, str):
            invalid_value = value if value not in options else None
        elif isinstance(value, list):
            for v in value:
                if v not in options:
                    invalid_value = v
                    break
        else:
            raise ConfigException(f"Unexpected type of config variable {name}")

        if invalid_value:
            raise ConfigException(f"Unknown value '{invalid_value}' of config variable '{name}'\n"
                                  f"Possible options: {options}")

    def _value_sanity_check(self) -> None:
        """
        Check if the configuration values make sense
        """
        if self.skip_startup_frames and not self.startup_frame_prefix:
            raise ConfigException("startup_frame_prefix must not be empty "
                                  "when skip_startup_frames is enabled")

    def set_to_arch_defaults(self) -> None:
        """ Set config options according to the architecture-specific defaults """

        if self.instruction_set == "x86-64":
            config = x86_config
        else:
            raise ConfigException(f"Unknown architecture {self.instruction_set}")

        config_defaults = {}
        for c in dir(config):
            if c.startswith("__"):
                continue
            values = getattr(config, c)
            if type(values) not in [bool, int, float, str, dict, list]:
                continue
            config_defaults[c] = values

        if "_option_values" not in config_defaults:
            raise ConfigException("ISA-specific config.py must define _option_values")

        for name, value in config_defaults.items():
            if name == "_option_values":
                for k, v in value.items():
                    self._option_values[k] = v
                continue
            setattr(self, name, value)

    def get_stop_policy(self) -> StopPolicy:
        """ Get the validated stop policy """
        assert self.stop_policy in ("first_blame", "empty_taint"), \
            f"Invalid stop_policy {self.stop_policy}"
        return self.stop_policy  # type: ignore


CONF = Conf()
CONF.set_to_arch_defaults()
