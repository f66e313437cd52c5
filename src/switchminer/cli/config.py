"""
Configuration file support for the SwitchMiner CLI.

Supports YAML and JSON config files with CLI argument override. The schema
itself lives in ``switchminer.config``.
"""

import json
from argparse import Namespace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from switchminer.config import (
    PATH_KEYS,
    SECTION_TYPES,
    PipelineConfig,
    validate_config,
)

__all__ = [
    'ARG_TO_CONFIG',
    'PipelineConfig',
    'config_from_args',
    'load_config',
    'merge_config_with_args',
    'validate_config',
]

# CLI argument name -> (config section, config key)
ARG_TO_CONFIG = {
    'method': ('correlation', 'method'),
    'correction': ('correlation', 'correction'),
    'n_jobs': ('correlation', 'n_jobs'),
    'rho_cutoff': ('threshold', 'rho_cutoff'),
    'p_adj_cutoff': ('threshold', 'p_adj_cutoff'),
    'quantile': ('threshold', 'quantile'),
    'sweep_min': ('threshold', 'sweep_min'),
    'sweep_max': ('threshold', 'sweep_max'),
    'sweep_step': ('threshold', 'sweep_step'),
    'cluster_method': ('clustering', 'method'),
    'k': ('clustering', 'k'),
    'k_max': ('clustering', 'k_max'),
    'seed': ('clustering', 'seed'),
    'degree_cutoff': ('cartography', 'degree_cutoff'),
    'apcc_cutoff': ('cartography', 'apcc_cutoff'),
    'condition_column': ('conditions', 'column'),
    'condition_a': ('conditions', 'condition_a'),
    'condition_b': ('conditions', 'condition_b'),
}


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file.

    Parameters:
        config_path: Path to config file (.yaml, .yml, or .json)

    Returns:
        Dictionary with configuration values

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If file format is unsupported or invalid

    Examples:
        >>> config = load_config(Path("switchminer.yaml"))
        >>> print(config['correlation']['method'])
        spearman
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()

    try:
        with open(config_path, 'r') as f:
            if suffix in ('.yaml', '.yml'):
                config = yaml.safe_load(f)
            elif suffix == '.json':
                config = json.load(f)
            else:
                raise ValueError(
                    f"Unsupported config format: {suffix}. "
                    f"Use .yaml, .yml, or .json"
                )
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}")

    if config is None:
        return {}

    if not isinstance(config, dict):
        raise ValueError("Config file must contain a dictionary/mapping at top level")

    return config


def _merge_value(cli_value: Any, config_value: Any, was_explicitly_set: bool) -> Any:
    """
    Merge a single config value with CLI argument.

    Rules:
    - CLI args ALWAYS override config if explicitly set
    - If CLI arg not set, use config value
    - If neither set, keep CLI default
    """
    if was_explicitly_set:
        return cli_value
    if config_value is not None:
        return config_value
    return cli_value


def _explicit_args(cli_args: Optional[List[str]]) -> set:
    """Names of the arguments given explicitly on the command line."""
    explicit = set()
    short_to_long = {'i': 'input', 'o': 'output', 'a': 'annotation', 'g': 'gene_set'}
    for arg in cli_args or []:
        if arg.startswith('--'):
            explicit.add(arg[2:].split('=', 1)[0].replace('-', '_'))
        elif arg.startswith('-') and len(arg) == 2 and arg[1] in short_to_long:
            explicit.add(short_to_long[arg[1]])
    return explicit


def merge_config_with_args(
    config: Dict[str, Any], args: Namespace, cli_args: Optional[List[str]] = None
) -> Namespace:
    """
    Merge config file values with CLI arguments.

    Priority (highest to lowest):
    1. Explicitly provided CLI arguments
    2. Config file values
    3. CLI argument defaults

    Parameters:
        config: Configuration dictionary from load_config()
        args: Parsed CLI arguments (argparse.Namespace)
        cli_args: Raw CLI arguments list (for detecting explicit values).
                  If None, assumes all args are defaults

    Returns:
        Updated Namespace with merged values
    """
    explicit = _explicit_args(cli_args)
    merged = Namespace(**vars(args))

    for key in PATH_KEYS:
        if key in config and hasattr(merged, key):
            value = Path(config[key]) if config[key] is not None else None
            setattr(merged, key, _merge_value(getattr(merged, key), value, key in explicit))

    for arg_name, (section, key) in ARG_TO_CONFIG.items():
        if not hasattr(merged, arg_name):
            continue
        section_values = config.get(section) or {}
        if key in section_values:
            setattr(merged, arg_name, _merge_value(
                getattr(merged, arg_name), section_values[key], arg_name in explicit
            ))

    return merged


def config_from_args(args: Namespace) -> PipelineConfig:
    """Build a validated PipelineConfig from (merged) CLI arguments."""
    config: Dict[str, Any] = {section: {} for section in SECTION_TYPES}
    for key in PATH_KEYS:
        value = getattr(args, key, None)
        config[key] = str(value) if value is not None else None
    for arg_name, (section, key) in ARG_TO_CONFIG.items():
        if hasattr(args, arg_name):
            config[section][key] = getattr(args, arg_name)
    return PipelineConfig.from_dict(config)

