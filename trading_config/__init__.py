"""
Trading Configuration Management Module

YAML config file handling for the grid engine.
"""

from .config_yaml import (
    build_grid_strategy_config,
    dump_grid_strategy_config,
    load_config_from_yaml,
    merge_configs,
    save_config_to_yaml,
    validate_config_file,
)

__all__ = [
    'build_grid_strategy_config',
    'dump_grid_strategy_config',
    'load_config_from_yaml',
    'merge_configs',
    'save_config_to_yaml',
    'validate_config_file',
]
