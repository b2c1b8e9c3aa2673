# configure/ufw_configurator.py
# -*- coding: utf-8 -*-
"""
Handles the UFW (Uncomplicated Firewall) rule that opens the web ports.
"""
import logging
from typing import Optional

from common.command_utils import log_setup_message, run_elevated_command
from sfs_setup.config_models import AppSettings

module_logger = logging.getLogger(__name__)


def allow_nginx_traffic(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """Allows HTTP and HTTPS through the nginx UFW application profile."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    profile = app_settings.nginx.ufw_profile

    log_setup_message(
        f"{symbols.get('info', 'ℹ️')} Allowing '{profile}' via UFW...",
        "info",
        logger_to_use,
        app_settings,
    )
    run_elevated_command(
        ["ufw", "allow", profile],
        app_settings,
        current_logger=logger_to_use,
    )
    log_setup_message(
        f"{symbols.get('success', '✅')} UFW now allows '{profile}'.",
        "success",
        logger_to_use,
        app_settings,
    )
