# configure/uwsgi_configurator.py
# -*- coding: utf-8 -*-
"""
Handles configuration of the uWSGI emperor vassal that runs session-file-server.
"""

import logging
from typing import Optional

from common.command_utils import log_setup_message, run_elevated_command
from common.file_utils import write_file_elevated
from sfs_setup.config_models import AppSettings

module_logger = logging.getLogger(__name__)


def render_vassal_config(app_settings: AppSettings) -> str:
    """Renders the vassal ini from the configured template."""
    fs_cfg = app_settings.fileserver
    uwsgi_cfg = app_settings.uwsgi
    return uwsgi_cfg.vassal_template.format(
        install_dir=fs_cfg.install_dir,
        venv_dir=fs_cfg.venv_dir,
        socket_path=fs_cfg.socket_path,
        chmod_socket=uwsgi_cfg.chmod_socket,
        processes=uwsgi_cfg.processes,
        log_path=fs_cfg.app_log_path,
    )


def configure_uwsgi(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """
    Writes the vassal file and hands it to `<db_user>:<web_group>` so the
    emperor runs the application as the invoking user with the web server's group.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    vassal_file = app_settings.uwsgi.vassal_file

    log_setup_message(
        f"{symbols.get('step', '➡️')} Configuring uWSGI...",
        "info",
        logger_to_use,
        app_settings,
    )
    try:
        vassal_content = render_vassal_config(app_settings)
    except KeyError as e_key:
        log_setup_message(
            f"{symbols.get('error', '❌')} Missing placeholder key '{e_key}' for uWSGI vassal template. Check config.yaml.",
            "error",
            logger_to_use,
            app_settings,
        )
        raise

    write_file_elevated(vassal_file, vassal_content, app_settings, logger_to_use)
    owner = f"{app_settings.pg.db_user}:{app_settings.nginx.web_group}"
    run_elevated_command(
        ["chown", owner, vassal_file],
        app_settings,
        current_logger=logger_to_use,
    )
    log_setup_message(
        f"{symbols.get('success', '✅')} uWSGI vassal written to {vassal_file} (owner {owner}).",
        "success",
        logger_to_use,
        app_settings,
    )
