# PATH: config/__init__.py
"""
Configuration loading utilities for CycleScan.
"""

from pathlib import Path
from typing import Any, Dict

import yaml

from core.exceptions import ConfigError


CONFIG_DIR = Path(__file__).parent
DEFAULT_CONFIG_FILE = "scanner.yaml"


def load_yaml(filename: str) -> Dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        filename: Name of file in config directory, or an absolute/relative path

    Returns:
        Parsed YAML as dict

    Raises:
        ConfigError: file missing, unparseable, or not a mapping
    """
    filepath = Path(filename)
    if not filepath.is_absolute() and not filepath.exists():
        filepath = CONFIG_DIR / filename
    if not filepath.exists():
        raise ConfigError(f"Config file not found: {filepath}", details={"path": str(filepath)})

    try:
        with open(filepath, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file is not valid YAML: {filepath}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {filepath}")
    return data
