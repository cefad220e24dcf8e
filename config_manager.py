#!/usr/bin/env python3
"""
Configuration Manager for flac-cue-split
Handles loading and saving configuration settings
"""

import copy
import os
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional

from cue_encoding import TextEncoding, resolve_encoding
from split_errors import ConfigError
from track_planner import PlanOptions, PregapPolicy, parse_compression_level

DEFAULT_CONFIG = {
    'cue': {
        'encoding': None,  # None means autodetect (UTF-8, else windows-1251)
        'enforce_filename_match': False,
    },
    'output': {
        'compression_level': 5,
        'overwrite': False,
        'directory': None,  # None writes next to the source FLAC
        'title_fallback': None,  # e.g. "Track {number:02d}"
        'pregap': 'next',
    },
    'picture': {
        'auto_detect': True,
        'path': None,
    },
    'logging': {
        'level': 'INFO',
    },
}


class ConfigManager:
    """Manages application configuration"""

    def __init__(self, config_file: Optional[Path] = None):
        self.logger = logging.getLogger(__name__)
        default_dir = Path.home() / '.config' / 'flac-cue-split'
        self.config_dir = Path(os.getenv('CONFIG_DIR', default_dir))
        self.config_file = Path(config_file) if config_file else self.config_dir / 'config.yaml'

    def load_config(self) -> Dict[str, Any]:
        """Load configuration from file and environment variables"""
        config = {}
        if self.config_file.exists():
            try:
                with open(self.config_file, 'r') as f:
                    config = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigError(f"failed to read configuration {self.config_file}: {e}") from None
            if not isinstance(config, dict):
                raise ConfigError(f"configuration {self.config_file} must be a mapping")
            self.logger.debug(f"Loaded configuration from {self.config_file}")
        else:
            self.logger.debug(f"No configuration at {self.config_file}, using defaults")

        config = self._validate_config(config)
        return self._apply_environment_overrides(config)

    def save_config(self, config: Dict[str, Any]) -> None:
        """Save configuration to file"""
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, 'w') as f:
                yaml.dump(config, f, default_flow_style=False, indent=2)
        except OSError as e:
            raise ConfigError(f"failed to save configuration {self.config_file}: {e}") from None
        self.logger.info(f"Saved configuration to {self.config_file}")

    def _load_default_config(self) -> Dict[str, Any]:
        """Load default configuration"""
        return copy.deepcopy(DEFAULT_CONFIG)

    def _validate_config(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Validate and fill missing configuration values"""
        default_config = self._load_default_config()

        def merge_configs(default: Dict, user: Dict, prefix: str = '') -> Dict:
            """Recursively merge user config with defaults"""
            result = default.copy()
            for key, value in user.items():
                if key in result and isinstance(result[key], dict):
                    # an empty section keeps its defaults
                    if value is None:
                        continue
                    if not isinstance(value, dict):
                        raise ConfigError(
                            f"configuration section '{prefix}{key}' must be a mapping, got {value!r}"
                        )
                    result[key] = merge_configs(result[key], value, f"{prefix}{key}.")
                else:
                    result[key] = value
            return result

        return merge_configs(default_config, config)

    def _apply_environment_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration"""
        env_mappings = {
            # Cue settings
            'CUE_ENCODING': ('cue', 'encoding'),

            # Output settings
            'COMPRESSION_LEVEL': ('output', 'compression_level'),
            'OVERWRITE': ('output', 'overwrite', self._str_to_bool),
            'OUTPUT_DIR': ('output', 'directory'),
            'TITLE_FALLBACK': ('output', 'title_fallback'),
            'PREGAP_POLICY': ('output', 'pregap'),

            # Picture settings
            'PICTURE_AUTO_DETECT': ('picture', 'auto_detect', self._str_to_bool),
            'PICTURE_PATH': ('picture', 'path'),

            # Logging settings
            'LOG_LEVEL': ('logging', 'level'),
        }

        for env_var, mapping in env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                section = mapping[0]
                key = mapping[1]
                converter = mapping[2] if len(mapping) > 2 else str

                # Ensure section exists
                if section not in config:
                    config[section] = {}

                config[section][key] = converter(env_value)
                self.logger.debug(f"Applied environment override: {env_var}={env_value}")

        return config

    def _str_to_bool(self, value: str) -> bool:
        """Convert string to boolean"""
        return value.lower() in ('true', '1', 'yes', 'on', 'enabled')

    def dump_defaults(self) -> None:
        """Write the default configuration to the configuration file"""
        self.save_config(self._load_default_config())


def get_plan_options(config: Dict[str, Any]) -> PlanOptions:
    """Build validated planning options from the output section"""
    output = config['output']
    directory = output.get('directory')
    return PlanOptions(
        compression_level=parse_compression_level(output.get('compression_level', 5)),
        overwrite=bool(output.get('overwrite', False)),
        pregap_policy=PregapPolicy.from_value(output.get('pregap', 'next')),
        title_fallback=output.get('title_fallback') or None,
        output_dir=Path(directory).expanduser() if directory else None,
    )


def get_cue_encoding(config: Dict[str, Any]) -> Optional[TextEncoding]:
    """Forced cue encoding, or None to autodetect"""
    label = config['cue'].get('encoding')
    if not label:
        return None
    return resolve_encoding(str(label))
