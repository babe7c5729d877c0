"""
Command-line defaults read from staticbuild.yml, staticbuild.yaml or
staticbuild.json in the working directory.
"""

import os
import json
import yaml
from typing import Dict, Any, Optional

from .errors import ConfigError

SAMPLE_YAML = """# static-build settings

# Rebuild when the source changes
watch: false
# Delete an existing destination without asking
force: false

# Live reload server
port: 5678
reload_delay_ms: 300

# Quiet period before a burst of file changes triggers a rebuild
debounce_ms: 300

# Directory for debug log files (disabled when empty)
log_dir:
"""


class StaticBuildSettings:
    """Settings file lookup and merging with command-line arguments."""

    DEFAULT_SETTINGS = {
        'watch': False,
        'force': False,
        'port': 5678,
        'debounce_ms': 300,
        'reload_delay_ms': 300,
        'log_dir': None,
    }

    # First match wins
    CONFIG_FILES = ['staticbuild.yml', 'staticbuild.yaml', 'staticbuild.json']

    def __init__(self, config_dir: str = None):
        self.config_dir = config_dir or os.getcwd()
        self.settings = self.DEFAULT_SETTINGS.copy()
        self.config_file_path = None

    def load_settings(self) -> Dict[str, Any]:
        """
        Apply the settings file, if there is one, over the defaults.

        Raises:
            ConfigError: If the file cannot be parsed or has unknown keys.
        """
        self.config_file_path = self.find_config_file()
        if not self.config_file_path:
            return self.settings.copy()

        loaded = self._read(self.config_file_path)
        unknown = set(loaded) - set(self.DEFAULT_SETTINGS)
        if unknown:
            raise ConfigError(
                f"Unknown settings in {self.config_file_path}: {', '.join(sorted(unknown))}"
            )

        self.settings.update(loaded)
        return self.settings.copy()

    def find_config_file(self) -> Optional[str]:
        for filename in self.CONFIG_FILES:
            config_path = os.path.join(self.config_dir, filename)
            if os.path.exists(config_path):
                return config_path
        return None

    def _read(self, config_path: str) -> Dict[str, Any]:
        is_json = config_path.lower().endswith('.json')

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = json.load(f) if is_json else yaml.safe_load(f)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            kind = 'JSON' if is_json else 'YAML'
            raise ConfigError(f"Invalid {kind} in configuration file {config_path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Error reading configuration file {config_path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration file {config_path} must contain a mapping")
        return data

    def create_sample_config(self, file_format: str = 'yml') -> str:
        """Write a settings file holding the defaults and return its path."""
        if file_format not in ('yml', 'yaml', 'json'):
            raise ConfigError(f"Unsupported config file format: {file_format}")

        config_path = os.path.join(self.config_dir, f'staticbuild.{file_format}')
        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                if file_format == 'json':
                    json.dump(self.DEFAULT_SETTINGS, f, indent=2)
                else:
                    f.write(SAMPLE_YAML)
        except OSError as e:
            raise ConfigError(f"Error writing configuration file {config_path}: {e}") from e

        return config_path

    def merge_with_args(self, args_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Overlay command-line values on the loaded settings.

        None and False are skipped: flags only switch behaviour on, so an
        absent flag never overrides the file.
        """
        merged = self.settings.copy()
        merged.update({
            key: value for key, value in args_dict.items()
            if value is not None and value is not False
        })
        return merged
