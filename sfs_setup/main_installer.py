# sfs_setup/main_installer.py
# -*- coding: utf-8 -*-
"""
Main entry point for the session-file-server setup.

Runs the setup stages in order and stops at the first failure. Nothing is
rolled back; every stage checks what already exists, so the run can be
repeated once the cause of a failure has been fixed.
"""

import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from common.command_utils import log_setup_message
from common.core_utils import setup_logging
from common.file_utils import ensure_secure_file
from common.network_utils import check_domain
from common.system_utils import ensure_root_privileges
from configure.fileserver_configurator import configure_fileserver
from configure.nginx_configurator import configure_nginx
from configure.postgres_configurator import provision_database
from configure.uwsgi_configurator import configure_uwsgi
from installer.prerequisites_installer import install_dependencies
from sfs_setup import __version__
from sfs_setup.cli_handler import display_banner, parse_domain_argument
from sfs_setup.config_loader import load_app_settings
from sfs_setup.config_models import AppSettings
from sfs_setup.exceptions import UsageError
from sfs_setup.step_executor import StepFunction, execute_step

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
BANNER_PATH = PROJECT_ROOT / "art.txt"


def verify_domain_dns(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """Fails unless the domain resolves to this machine's public IP."""
    logger_to_use = current_logger if current_logger else logger
    machine_ip = check_domain(app_settings.domain, app_settings, logger_to_use)
    log_setup_message(
        f"{app_settings.symbols.get('success', '✅')} {app_settings.domain} resolves to this machine ({machine_ip}).",
        "success",
        logger_to_use,
        app_settings,
    )


SETUP_STAGES: List[Tuple[str, str, StepFunction]] = [
    ("DEPENDENCIES", "Install system dependencies", install_dependencies),
    ("DATABASE", "Set up PostgreSQL database", provision_database),
    ("FILESERVER", "Configure session-file-server", configure_fileserver),
    ("UWSGI", "Configure uWSGI", configure_uwsgi),
    ("NGINX", "Configure Nginx", configure_nginx),
]


def get_log_level() -> int:
    level_str = os.environ.get("LOGLEVEL", "INFO").upper()
    level = getattr(logging, level_str, None)
    if not isinstance(level, int):
        print(
            f"Warning: Invalid LOGLEVEL string '{level_str}'. Defaulting to INFO.",
            file=sys.stderr,
        )
        return logging.INFO
    return level


def get_setup_stages(app_settings: AppSettings) -> List[Tuple[str, str, StepFunction]]:
    stages = list(SETUP_STAGES)
    if app_settings.check_domain_dns:
        stages.insert(
            0, ("DOMAIN_DNS", "Check domain DNS", verify_domain_dns)
        )
    return stages


def run_setup_stages(app_settings: AppSettings) -> bool:
    """Runs every stage in order. Returns False at the first failure."""
    for step_tag, step_description, step_function in get_setup_stages(
        app_settings
    ):
        if not execute_step(
            step_tag, step_description, step_function, app_settings, logger
        ):
            log_setup_message(
                f"{app_settings.symbols.get('critical', '🔥')} Setup aborted at step '{step_description}'. "
                "Fix the cause and re-run the installer.",
                "critical",
                logger,
                app_settings,
            )
            return False
    return True


def main(argv: Optional[List[str]] = None) -> int:
    """
    Runs the installer.

    Args:
        argv: Command-line arguments without the program name. Defaults to
            sys.argv[1:].

    Returns:
        int: 0 on success, 1 on any failure.
    """
    log_level = get_log_level()
    setup_logging(log_level=log_level)
    display_banner(BANNER_PATH, logger)

    try:
        domain = parse_domain_argument(argv)
    except UsageError as e:
        log_setup_message(f"❌ {e}", "error", logger)
        return 1

    try:
        ensure_root_privileges()
    except PermissionError as e:
        log_setup_message(f"❌ {e}", "error", logger)
        return 1

    try:
        app_settings = load_app_settings(domain, current_logger=logger)
    except SystemExit as e:
        log_setup_message(f"❌ {e.code}", "error", logger)
        return 1

    symbols = app_settings.symbols
    try:
        ensure_secure_file(app_settings.log_file, app_settings, current_logger=logger)
        setup_logging(
            log_level=log_level,
            log_file=app_settings.log_file,
            syslog_tag=app_settings.syslog_tag,
        )
    except Exception as e:
        log_setup_message(
            f"{symbols.get('error', '❌')} Failed to set up log file {app_settings.log_file}: {e}",
            "error",
            logger,
            app_settings,
        )
        return 1

    log_setup_message(
        f"{symbols.get('sparkles', '✨')} Starting session-file-server setup (version {__version__}) for {app_settings.domain}...",
        "info",
        logger,
        app_settings,
    )
    log_setup_message(
        f"{symbols.get('info', 'ℹ️')} Database user: {app_settings.pg.db_user}. Install directory: {app_settings.fileserver.install_dir}.",
        "info",
        logger,
        app_settings,
    )

    if not run_setup_stages(app_settings):
        return 1

    log_setup_message(
        f"{symbols.get('rocket', '🚀')} Session-file-server setup completed successfully. "
        f"It is served at http://{app_settings.domain}/",
        "success",
        logger,
        app_settings,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
