"""
Settings for shapeguard, loaded from files, dictionaries and the environment.

Settings are checked with shapeguard's own schemas; text read from the
environment is coerced with the string matcher.
"""
import os
import json
import yaml
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
from copy import deepcopy
from shapeguard.utils.logging_config import get_logger, LoggerFactory
from shapeguard.utils.exceptions import ConfigurationError
from shapeguard.validation import Bool, Maybe, OneOf, OptionalKey, Str, error_val
from shapeguard.validation.registry import ValidationFlag, get_validation_flag
from shapeguard.coercion import build_coercer, string_coercion_matcher

ENV_PREFIX = "SHAPEGUARD_"

LOG_LEVELS = OneOf('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')

SETTINGS_SCHEMA = {
    OptionalKey('fn_validation'): Bool,
    OptionalKey('logging'): {
        OptionalKey('level'): LOG_LEVELS,
        OptionalKey('structured'): Bool,
        OptionalKey('console'): Bool,
        OptionalKey('log_dir'): Maybe(Str),
    },
}

DEFAULT_SETTINGS: Dict[str, Any] = {
    'fn_validation': False,
    'logging': {
        'level': 'WARNING',
        'structured': False,
        'console': True,
        'log_dir': None,
    },
}


class Config:
    """Nested settings addressed by dotted paths such as ``logging.level``."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self._data = data or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Value at a dotted path, or ``default`` when any segment is absent."""
        try:
            value = self._data
            for k in key.split('.'):
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any):
        """Set a dotted path, creating intermediate dicts."""
        keys = key.split('.')
        data = self._data
        for k in keys[:-1]:
            data = data.setdefault(k, {})
        data[keys[-1]] = value

    def to_dict(self) -> Dict[str, Any]:
        return deepcopy(self._data)

    def update(self, other: Dict[str, Any]):
        """Merge ``other`` in, recursing into nested dicts."""
        self._deep_update(self._data, other)

    @staticmethod
    def _deep_update(base: Dict, update: Dict):
        for key, value in update.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                Config._deep_update(base[key], value)
            else:
                base[key] = value


class ConfigManager:
    """
    Loads, validates and applies shapeguard settings.

    Recognised settings: ``fn_validation`` (bool) and ``logging.level``,
    ``logging.structured``, ``logging.console``, ``logging.log_dir``.
    """

    def __init__(self, env_prefix: str = ENV_PREFIX, flag: Optional[ValidationFlag] = None):
        self.env_prefix = env_prefix
        self.flag = flag if flag is not None else get_validation_flag()
        self._config = Config(deepcopy(DEFAULT_SETTINGS))
        self._coerce = build_coercer(SETTINGS_SCHEMA, string_coercion_matcher)
        self.logger = get_logger(self.__class__.__name__)

    def load_from_file(self, filepath: str):
        """
        Load settings from a YAML or JSON file.

        Args:
            filepath: Path to a .yaml, .yml or .json file
        """
        path = Path(filepath)

        if not path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {filepath}",
                details={'filepath': str(path)}
            )

        try:
            with open(path, 'r') as f:
                if path.suffix in ['.yaml', '.yml']:
                    data = yaml.safe_load(f)
                elif path.suffix == '.json':
                    data = json.load(f)
                else:
                    raise ConfigurationError(
                        f"Unsupported file format: {path.suffix}",
                        details={'filepath': str(path)}
                    )
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Failed to load configuration from {filepath}: {e}",
                details={'filepath': str(path), 'error': str(e)}
            ) from e

        self.load_from_dict(data or {}, source=str(path))

    def load_from_env(self, environ: Optional[Mapping[str, str]] = None):
        """
        Load settings from environment variables.

        ``SHAPEGUARD_FN_VALIDATION=true`` sets ``fn_validation``; a double
        underscore nests, so ``SHAPEGUARD_LOGGING__LEVEL=DEBUG`` sets
        ``logging.level``.

        Args:
            environ: Mapping to read instead of ``os.environ``
        """
        environ = os.environ if environ is None else environ
        env_config = Config()

        for key, value in environ.items():
            if key.startswith(self.env_prefix):
                config_key = key[len(self.env_prefix):].lower().replace('__', '.')
                env_config.set(config_key, value)

        self.load_from_dict(env_config.to_dict(), source="environment")
        self.logger.info(f"Loaded configuration from environment ({len(env_config.to_dict())} keys)")

    def load_from_dict(self, data: Dict[str, Any], source: str = "dict"):
        """
        Validate, coerce and merge a settings dictionary.

        Raises:
            ConfigurationError: If the settings do not match the settings schema
        """
        result = self._coerce(data)
        error = error_val(result)
        if error is not None:
            raise ConfigurationError(
                f"Invalid settings from {source}: {error!r}",
                details={'source': source, 'error': repr(error)}
            )

        self._config.update(result)
        self.logger.debug(f"Loaded configuration from {source}")

    def get(self, key: str, default: Any = None) -> Any:
        return self._config.get(key, default)

    def get_config(self) -> Config:
        return self._config

    def apply(self):
        """Apply the current settings to the validation flag and to logging."""
        LoggerFactory.configure(
            log_dir=self.get('logging.log_dir'),
            log_level=self.get('logging.level'),
            enable_console=self.get('logging.console'),
            enable_structured=self.get('logging.structured'),
            force=True
        )
        self.flag.set(self.get('fn_validation'))
        self.logger.info("Applied configuration")

    def clear(self):
        """Reset all settings to their defaults."""
        self._config = Config(deepcopy(DEFAULT_SETTINGS))
        self.logger.info("Cleared all configuration")


# Global configuration manager instance
_global_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get the global configuration manager instance."""
    global _global_config_manager
    if _global_config_manager is None:
        _global_config_manager = ConfigManager()
    return _global_config_manager


def load_config(filepath: Optional[str] = None, use_env: bool = True) -> ConfigManager:
    """Load settings into the global manager from a file and/or the environment, then apply them."""
    manager = get_config_manager()
    if filepath is not None:
        manager.load_from_file(filepath)
    if use_env:
        manager.load_from_env()
    manager.apply()
    return manager
