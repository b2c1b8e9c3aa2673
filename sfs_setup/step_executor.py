# sfs_setup/step_executor.py
# -*- coding: utf-8 -*-
"""
Provides functionality to execute individual setup steps.

A step is a function taking the settings and a logger. It fails by raising
(or by returning False); the executor logs the failure and reports it to the
caller, which stops the run.
"""

import logging
from typing import Any, Callable, Optional

from common.command_utils import log_setup_message
from sfs_setup.config_models import AppSettings

module_logger = logging.getLogger(__name__)

StepFunction = Callable[[AppSettings, Optional[logging.Logger]], Any]


def execute_step(
    step_tag: str,
    step_description: str,
    step_function: StepFunction,
    app_settings: AppSettings,
    current_logger_instance: Optional[logging.Logger],
) -> bool:
    """
    Execute a single setup step.

    Args:
        step_tag: A unique string identifier for the step.
        step_description: A human-readable description of the step.
        step_function: The function to call to execute the step.
                       Should return False or raise to indicate failure. Any
                       other return value (including None) is considered success.
        app_settings: The application settings object.
        current_logger_instance: The logger instance to use.

    Returns:
        True if the step was successfully executed, False if it failed.
    """
    logger_to_use = (
        current_logger_instance if current_logger_instance else module_logger
    )
    symbols = app_settings.symbols

    log_setup_message(
        f"--- {symbols.get('step', '➡️')} Executing: {step_description} ({step_tag}) ---",
        "info",
        logger_to_use,
        app_settings,
    )
    try:
        step_result = step_function(app_settings, logger_to_use)
    except Exception as e:
        log_setup_message(
            f"{symbols.get('error', '❌')} FAILED: {step_description} ({step_tag})",
            "error",
            logger_to_use,
            app_settings,
        )
        log_setup_message(
            f"   Error details: {str(e)}",
            "error",
            logger_to_use,
            app_settings,
            exc_info=logger_to_use.isEnabledFor(logging.DEBUG),
        )
        return False

    if step_result is False:
        log_setup_message(
            f"{symbols.get('error', '❌')} Step function returned False: {step_description} ({step_tag})",
            "error",
            logger_to_use,
            app_settings,
        )
        return False

    log_setup_message(
        f"--- {symbols.get('success', '✅')} Successfully completed: {step_description} ({step_tag}) ---",
        "success",
        logger_to_use,
        app_settings,
    )
    return True
