"""
Configuration management for shapeguard.
"""
from .config_manager import (
    Config,
    ConfigManager,
    SETTINGS_SCHEMA,
    DEFAULT_SETTINGS,
    get_config_manager,
    load_config
)

__all__ = [
    'Config',
    'ConfigManager',
    'SETTINGS_SCHEMA',
    'DEFAULT_SETTINGS',
    'get_config_manager',
    'load_config',
]
