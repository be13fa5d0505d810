"""Configuration management for the geotag correction pipeline.

This module handles loading user-specific configuration from YAML files,
using platformdirs for cross-platform compatibility. Configuration is optional;
sensible defaults are provided for quick-start usage.

Design Principles:
    - Local-first: config.yaml is gitignored, keeping personal paths private
    - Cross-platform: Uses platformdirs for XDG/macOS/Windows compatibility
    - Optional configuration: Works out-of-the-box with sensible defaults
    - Flexible: Supports partial configs that merge with defaults

Architecture:
    - config.yaml: User-specific paths and thresholds (gitignored)
    - config.example.yaml: Public template for customization
    - platformdirs: Platform-appropriate default directories
    - Validation: Clear error messages for configuration issues
"""

from pathlib import Path
from typing import Any

import yaml
from platformdirs import user_config_dir, user_data_dir

APP_NAME = "geotag"

DEFAULT_SETTINGS = {
    "correction": {
        "precision_threshold": 6,
        "target_precision": 8,
        "max_corrections": 10,
        "apply_threshold": 0.5,
        "high_confidence_threshold": 0.7,
    },
    "extraction": {
        "min_exif_bytes": 1024,
    },
    "fetch": {
        "timeout": 30.0,
    },
    "migration": {
        "max_upgrades": 15,
    },
}


def get_default_config_path() -> Path:
    """Get platform-appropriate config file location.

    Returns default config file path using platformdirs:
    - Linux: ~/.config/geotag/config.yaml
    - macOS: ~/Library/Application Support/geotag/config.yaml
    - Windows: %APPDATA%/geotag/config.yaml

    Returns:
        Path: Platform-specific config file location.
    """
    config_dir = Path(user_config_dir(APP_NAME, appauthor=False))
    return config_dir / "config.yaml"


def get_default_paths() -> dict[str, Path]:
    """Get platform-appropriate default paths for data storage.

    Returns:
        Dict[str, Path]: Dictionary with keys:
            - database: App data dir for the SQLite marker store

    Example:
        >>> defaults = get_default_paths()
        >>> defaults['database']
        PosixPath('/home/user/.local/share/geotag/markers.db')
    """
    data_dir = Path(user_data_dir(APP_NAME, appauthor=False))

    return {
        "database": data_dir / "markers.db",
    }


def load_config(config_path: str | None = None) -> dict[str, Any]:
    """Load configuration from YAML file with path expansion and defaults.

    Args:
        config_path (Optional[str]): Path to YAML config file. If None, attempts:
            1. ./config.yaml (current directory)
            2. Platform-specific config directory via platformdirs
            If not found, uses platform-appropriate defaults.

    Returns:
        Dict[str, Any]: Configuration dictionary with structure:
            {
                'paths': {'database': Path},
                'correction': {
                    'precision_threshold': int,
                    'target_precision': int,
                    'max_corrections': int,
                    'apply_threshold': float,
                    'high_confidence_threshold': float
                },
                'extraction': {'min_exif_bytes': int},
                'fetch': {'timeout': float},
                'migration': {'max_upgrades': int}
            }

    Raises:
        FileNotFoundError: If an explicit config_path does not exist.
        yaml.YAMLError: If config file is malformed.

    Notes:
        Config precedence:
        1. Explicit config_path argument
        2. ./config.yaml (current directory)
        3. ~/.config/geotag/config.yaml (Linux/platformdirs)
        4. Built-in defaults (no file required)
    """
    if config_path:
        config_file = Path(config_path).expanduser()
        if not config_file.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {config_path}\n"
                f"Specified config path does not exist."
            )
    else:
        local_config = Path("config.yaml")
        system_config = get_default_config_path()

        if local_config.exists():
            config_file = local_config
        elif system_config.exists():
            config_file = system_config
        else:
            config_file = None

    if config_file:
        try:
            with open(config_file) as f:
                config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise yaml.YAMLError(
                f"Error parsing config file {config_file}:\n{e}\n\n"
                f"Check YAML syntax - common issues:\n"
                f"- Incorrect indentation (use 2 spaces)\n"
                f"- Missing colons after keys\n"
                f"- Unquoted special characters"
            ) from e
    else:
        config = {}

    if "paths" not in config or config["paths"] is None:
        config["paths"] = {}

    # Merge with defaults (user config takes precedence)
    for key, default_value in get_default_paths().items():
        if key not in config["paths"] or config["paths"][key] is None:
            config["paths"][key] = default_value
        else:
            config["paths"][key] = Path(config["paths"][key]).expanduser()

    for section, defaults in DEFAULT_SETTINGS.items():
        if config.get(section) is None:
            config[section] = {}
        for key, value in defaults.items():
            config[section].setdefault(key, value)

    return config


def get_path(config: dict[str, Any], path_key: str) -> Path:
    """Get a specific path from config with validation.

    Args:
        config (Dict[str, Any]): Configuration dictionary from load_config().
        path_key (str): Key name in config['paths'] dict, e.g. 'database'.

    Returns:
        Path: Expanded Path object for requested key.

    Raises:
        KeyError: If path_key doesn't exist in config['paths'].
    """
    if path_key not in config.get("paths", {}):
        available_keys = list(config.get("paths", {}).keys())
        raise KeyError(
            f"Path key '{path_key}' not found in config.\n"
            f"Available path keys: {available_keys}\n\n"
            f"Check your config.yaml has:\n"
            f"  paths:\n"
            f"    {path_key}: /your/path/here"
        )

    return config["paths"][path_key]


def get_setting(config: dict[str, Any], section: str, key: str) -> Any:
    """Get a single setting, e.g. get_setting(config, 'correction', 'target_precision').

    Raises:
        KeyError: If the section or key is missing.
    """
    values = config.get(section) or {}
    if key not in values:
        raise KeyError(
            f"Setting '{section}.{key}' not found in config.\n"
            f"Available keys in '{section}': {list(values.keys())}"
        )
    return values[key]
