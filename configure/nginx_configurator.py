# configure/nginx_configurator.py
# -*- coding: utf-8 -*-
"""
Handles configuration of Nginx as the reverse proxy in front of the uWSGI
socket, plus the file permissions and firewall rule it depends on.
"""

import logging
import os
import subprocess
from typing import Optional

from common.command_utils import log_setup_message, run_elevated_command
from common.file_utils import ensure_symlink, write_file_elevated
from common.system_utils import restart_service
from configure.ufw_configurator import allow_nginx_traffic
from sfs_setup.config_models import AppSettings

module_logger = logging.getLogger(__name__)


def render_site_config(app_settings: AppSettings) -> str:
    nginx_cfg = app_settings.nginx
    return nginx_cfg.site_template.format(
        domain=app_settings.domain,
        client_max_body_size=nginx_cfg.client_max_body_size,
        socket_path=app_settings.fileserver.socket_path,
    )


def create_nginx_site_config(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> str:
    """
    Writes the site file into sites-available.

    Returns:
        str: Path of the written site file.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    nginx_cfg = app_settings.nginx
    site_path = os.path.join(nginx_cfg.sites_available_dir, nginx_cfg.site_name)

    log_setup_message(
        f"{symbols.get('step', '➡️')} Creating Nginx site configuration: {site_path}...",
        "info",
        logger_to_use,
        app_settings,
    )
    try:
        site_content = render_site_config(app_settings)
    except KeyError as e_key:
        log_setup_message(
            f"{symbols.get('error', '❌')} Missing placeholder key '{e_key}' for Nginx site template. Check config.yaml.",
            "error",
            logger_to_use,
            app_settings,
        )
        raise

    write_file_elevated(site_path, site_content, app_settings, logger_to_use)
    log_setup_message(
        f"{symbols.get('success', '✅')} Created Nginx site configuration: {site_path}",
        "success",
        logger_to_use,
        app_settings,
    )
    return site_path


def enable_nginx_site(
    site_path: str,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """Links the site into sites-enabled; an existing link is replaced."""
    logger_to_use = current_logger if current_logger else module_logger
    nginx_cfg = app_settings.nginx
    link_path = os.path.join(nginx_cfg.sites_enabled_dir, nginx_cfg.site_name)
    ensure_symlink(site_path, link_path, app_settings, logger_to_use)
    log_setup_message(
        f"{app_settings.symbols.get('success', '✅')} Enabled Nginx site '{nginx_cfg.site_name}'.",
        "success",
        logger_to_use,
        app_settings,
    )


def check_nginx_configuration(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """Runs `nginx -t`; a failing test raises CalledProcessError."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    log_setup_message(
        f"{symbols.get('info', 'ℹ️')} Testing Nginx configuration...",
        "info",
        logger_to_use,
        app_settings,
    )
    try:
        run_elevated_command(
            ["nginx", "-t"],
            app_settings,
            capture_output=True,
            current_logger=logger_to_use,
        )
    except subprocess.CalledProcessError:
        log_setup_message(
            f"{symbols.get('error', '❌')} Nginx configuration test failed. Not restarting Nginx.",
            "error",
            logger_to_use,
            app_settings,
        )
        raise
    log_setup_message(
        f"{symbols.get('success', '✅')} Nginx configuration test passed.",
        "success",
        logger_to_use,
        app_settings,
    )


def grant_web_server_access(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """
    Lets the web server reach the application: the directory holding the
    checkout (the invoking user's home by default) becomes traversable and the
    checkout is handed to the web server user.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    nginx_cfg = app_settings.nginx
    install_dir = app_settings.fileserver.install_dir
    user_home = install_dir.parent

    log_setup_message(
        f"{symbols.get('gear', '⚙️')} Setting permissions for Nginx access...",
        "info",
        logger_to_use,
        app_settings,
    )
    run_elevated_command(
        ["chmod", "o+x", str(user_home)],
        app_settings,
        current_logger=logger_to_use,
    )
    run_elevated_command(
        [
            "chown",
            "-R",
            f"{nginx_cfg.web_user}:{nginx_cfg.web_group}",
            str(install_dir),
        ],
        app_settings,
        current_logger=logger_to_use,
    )


def configure_nginx(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """
    Publishes the application through Nginx: site file, enable link, config
    test, Nginx restart, permissions, uWSGI restart and the firewall rule.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols

    log_setup_message(
        f"{symbols.get('step', '➡️')} Configuring Nginx...",
        "info",
        logger_to_use,
        app_settings,
    )
    site_path = create_nginx_site_config(app_settings, logger_to_use)
    enable_nginx_site(site_path, app_settings, logger_to_use)
    check_nginx_configuration(app_settings, logger_to_use)
    restart_service(app_settings.nginx.service_name, app_settings, logger_to_use)

    grant_web_server_access(app_settings, logger_to_use)
    restart_service(app_settings.uwsgi.service_name, app_settings, logger_to_use)
    allow_nginx_traffic(app_settings, logger_to_use)

    log_setup_message(
        f"{symbols.get('success', '✅')} Nginx configured for {app_settings.domain}.",
        "success",
        logger_to_use,
        app_settings,
    )
