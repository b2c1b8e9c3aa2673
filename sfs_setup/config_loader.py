# sfs_setup/config_loader.py
# -*- coding: utf-8 -*-
"""
Configuration loader for the installer.

Handles loading settings from Pydantic model defaults, environment variables,
a YAML file and the command line, applying this order of precedence:
1. Pydantic Model Defaults
2. Environment Variables (``SFS_...``, nested groups with ``__``)
3. YAML Configuration File
4. Command-Line Arguments
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError
from pydantic_settings import SettingsError

from .config_models import AppSettings

module_logger = logging.getLogger(__name__)

CONFIG_FILE_DEFAULT = "config.yaml"
CONFIG_FILE_ENV_VAR = "SFS_CONFIG_FILE"


def _deep_update(
    source: Dict[str, Any], overrides: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Recursively updates `source` with the values from `overrides`. Nested
    dictionaries are merged key by key; other values replace the existing ones.
    None values never replace an existing value.

    Returns:
        Dict[str, Any]: The updated `source`.
    """
    for key, value in overrides.items():
        if (
            isinstance(value, dict)
            and key in source
            and isinstance(source[key], dict)
        ):
            source[key] = _deep_update(source[key], value)
        elif value is not None:
            source[key] = value
    return source


def resolve_config_file_path(config_file_path: Optional[str] = None) -> Path:
    """Explicit path, else $SFS_CONFIG_FILE, else config.yaml in the working directory."""
    if config_file_path:
        return Path(config_file_path)
    return Path(os.environ.get(CONFIG_FILE_ENV_VAR) or CONFIG_FILE_DEFAULT)


def load_yaml_config(
    yaml_config_path: Path, current_logger: Optional[logging.Logger] = None
) -> Dict[str, Any]:
    """
    Reads a YAML mapping. A missing file yields an empty mapping.

    Raises:
        SystemExit: The file exists but is unreadable, is not valid YAML or is
            not a mapping.
    """
    logger_to_use = current_logger if current_logger else module_logger

    if not yaml_config_path.is_file():
        logger_to_use.info(
            f"Configuration file '{yaml_config_path}' not found. Using defaults, environment variables, and CLI args."
        )
        return {}

    try:
        with open(yaml_config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger_to_use.error(
            f"Could not parse YAML config file '{yaml_config_path}': {e}"
        )
        raise SystemExit(f"Configuration error: {e}") from e
    except IOError as e:
        logger_to_use.error(
            f"Could not read config file '{yaml_config_path}': {e}"
        )
        raise SystemExit(f"Configuration error: {e}") from e

    if yaml_data is None:
        return {}
    if not isinstance(yaml_data, dict):
        logger_to_use.error(
            f"Config file '{yaml_config_path}' does not contain a YAML dictionary."
        )
        raise SystemExit(
            f"Configuration error: '{yaml_config_path}' must contain a mapping."
        )
    logger_to_use.info(f"Loaded configuration from {yaml_config_path}")
    return yaml_data


def load_app_settings(
    domain: Optional[str] = None,
    config_file_path: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
) -> AppSettings:
    """
    Builds the immutable settings object for the run.

    Environment variables are read by pydantic-settings itself. Values passed
    to the model's constructor (YAML, then CLI) take precedence over them and
    nested groups are merged key by key, so ``SFS_PG__DATABASE`` survives a
    YAML file that only sets ``pg.db_user``.

    Args:
        domain: The ``--domain`` value from the command line.
        config_file_path: YAML file to read; see resolve_config_file_path.
        current_logger: Optional logger to use instead of the module logger.

    Raises:
        SystemExit: The configuration is invalid.
    """
    logger_to_use = current_logger if current_logger else module_logger

    current_values_dict = load_yaml_config(
        resolve_config_file_path(config_file_path), logger_to_use
    )
    current_values_dict = _deep_update(current_values_dict, {"domain": domain})

    try:
        final_settings = AppSettings(**current_values_dict)
    except (ValidationError, SettingsError) as e:
        logger_to_use.error(f"Configuration validation failed: {e}")
        raise SystemExit(f"Configuration error: {e}") from e

    logger_to_use.debug(
        "Successfully loaded and validated application settings"
    )
    return final_settings
