# common/system_utils.py
# -*- coding: utf-8 -*-
"""
System-level utility functions for the installer.

This module includes the privilege check, service restarts and determining
the distribution codename.
"""

import logging
import os
import subprocess
from typing import Optional

from common.command_utils import (
    get_symbols,
    log_setup_message,
    run_command,
    run_elevated_command,
)
from sfs_setup.config_models import AppSettings

module_logger = logging.getLogger(__name__)


def is_running_as_root() -> bool:
    return os.geteuid() == 0


def ensure_root_privileges() -> None:
    """
    Raises:
        PermissionError: The process is not running with root privileges.
    """
    if not is_running_as_root():
        raise PermissionError("This script must be run with sudo.")


def restart_service(
    service_name: str,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """Restarts a systemd service. Raises CalledProcessError on failure."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    log_setup_message(
        f"{symbols.get('gear', '⚙️')} Restarting {service_name} service...",
        "info",
        logger_to_use,
        app_settings,
    )
    run_elevated_command(
        ["systemctl", "restart", service_name],
        app_settings,
        current_logger=logger_to_use,
    )


def get_debian_codename(
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> Optional[str]:
    """
    Get the distribution codename (e.g., 'noble', 'bookworm').

    Returns None when lsb_release is missing or fails.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols_to_use = get_symbols(app_settings)

    try:
        result: subprocess.CompletedProcess = run_command(
            ["lsb_release", "-cs"],
            app_settings,
            capture_output=True,
            check=True,
            current_logger=logger_to_use,
        )
        stdout_val: Optional[str] = result.stdout
        if stdout_val is not None and stdout_val.strip():
            return stdout_val.strip()
        return None
    except FileNotFoundError:
        log_setup_message(
            f"{symbols_to_use.get('warning', '!')} lsb_release command not found. Cannot determine distribution codename.",
            "warning",
            logger_to_use,
            app_settings,
        )
        return None
    except subprocess.CalledProcessError:
        # Already logged by run_command.
        return None
