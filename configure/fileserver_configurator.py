# configure/fileserver_configurator.py
# -*- coding: utf-8 -*-
"""
Fetches and configures the session-file-server application: source checkout,
Python virtual environment, config.py and the source fixes it needs to run
under uWSGI.
"""

import logging
import subprocess
from pathlib import Path
from typing import Optional

from common.command_utils import log_setup_message, run_command
from common.file_utils import replace_literal_in_file
from sfs_setup.config_models import AppSettings

module_logger = logging.getLogger(__name__)

DB_NAME_CONFIG_PATTERN = '"dbname": "{database}"'
DB_USER_CONFIG_INSERT = '"dbname": "{database}",\n    "user": "{db_user}"'


def clone_fileserver_repository(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """Clones the application repository unless its directory already exists."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    install_dir = app_settings.fileserver.install_dir

    log_setup_message(
        f"{symbols.get('step', '➡️')} Cloning session-file-server repository...",
        "info",
        logger_to_use,
        app_settings,
    )
    if install_dir.is_dir():
        log_setup_message(
            f"{symbols.get('info', 'ℹ️')} {install_dir} already exists. Skipping clone.",
            "info",
            logger_to_use,
            app_settings,
        )
        return

    run_command(
        ["git", "clone", app_settings.fileserver.git_repo_url, str(install_dir)],
        app_settings,
        current_logger=logger_to_use,
    )
    log_setup_message(
        f"{symbols.get('success', '✅')} Cloned {app_settings.fileserver.git_repo_url} into {install_dir}.",
        "success",
        logger_to_use,
        app_settings,
    )


def create_virtualenv(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """
    Creates the application's virtual environment with access to the system
    site-packages (python3-session-util and friends come from apt), then
    installs the extra libraries into it.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    venv_dir = app_settings.fileserver.venv_dir

    if (venv_dir / "pyvenv.cfg").is_file():
        log_setup_message(
            f"{symbols.get('info', 'ℹ️')} Virtual environment {venv_dir} already exists. Reusing it.",
            "info",
            logger_to_use,
            app_settings,
        )
    else:
        log_setup_message(
            f"{symbols.get('gear', '⚙️')} Creating Python virtual environment for session-file-server...",
            "info",
            logger_to_use,
            app_settings,
        )
        run_command(
            ["python3", "-m", "venv", "--system-site-packages", str(venv_dir)],
            app_settings,
            current_logger=logger_to_use,
        )

    log_setup_message(
        f"{symbols.get('package', '📦')} Installing Python dependencies in virtual environment...",
        "info",
        logger_to_use,
        app_settings,
    )
    run_command(
        [str(venv_dir / "bin" / "pip3"), "install"]
        + list(app_settings.fileserver.venv_packages),
        app_settings,
        current_logger=logger_to_use,
    )


def write_fileserver_config(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> Path:
    """
    Copies config.py.sample to config.py (replacing any existing config.py) and
    adds the database user after the database name.

    Returns:
        Path: The written config.py.

    Raises:
        FileNotFoundError: The sample config is missing.
        PatchPatternNotFoundError: The sample has no `"dbname": "<database>"`
            entry and strict patching is on.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    fs_cfg = app_settings.fileserver
    sample = fs_cfg.install_dir / fs_cfg.config_sample
    target = fs_cfg.install_dir / fs_cfg.config_target

    log_setup_message(
        f"{symbols.get('gear', '⚙️')} Copying example configuration file for session-file-server...",
        "info",
        logger_to_use,
        app_settings,
    )
    if not sample.is_file():
        raise FileNotFoundError(f"Sample configuration {sample} not found.")
    run_command(
        ["cp", str(sample), str(target)],
        app_settings,
        current_logger=logger_to_use,
    )

    log_setup_message(
        f"{symbols.get('gear', '⚙️')} Updating configuration file with database credentials...",
        "info",
        logger_to_use,
        app_settings,
    )
    database = app_settings.pg.database
    replace_literal_in_file(
        target,
        DB_NAME_CONFIG_PATTERN.format(database=database),
        DB_USER_CONFIG_INSERT.format(
            database=database, db_user=app_settings.pg.db_user
        ),
        app_settings,
        strict=fs_cfg.strict_patching,
        current_logger=logger_to_use,
    )
    return target


def apply_source_patches(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """Applies the configured literal patches to the application sources."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    fs_cfg = app_settings.fileserver

    log_setup_message(
        f"{symbols.get('gear', '⚙️')} Applying necessary code modifications to session-file-server...",
        "info",
        logger_to_use,
        app_settings,
    )
    for patch in fs_cfg.source_patches:
        replace_literal_in_file(
            fs_cfg.install_dir / patch.file,
            patch.pattern,
            patch.replacement,
            app_settings,
            strict=fs_cfg.strict_patching,
            current_logger=logger_to_use,
        )


def configure_fileserver(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """
    Prepares the checked-out application to run: virtual environment,
    config.py and source patches.

    Raises:
        subprocess.CalledProcessError: venv creation or pip install failed.
        FileNotFoundError: The checkout, sample config or a patched file is missing.
        PatchPatternNotFoundError: A patch did not match (strict patching).
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    install_dir = app_settings.fileserver.install_dir

    log_setup_message(
        f"{symbols.get('step', '➡️')} Setting up session-file-server in {install_dir}...",
        "info",
        logger_to_use,
        app_settings,
    )
    if not install_dir.is_dir():
        raise FileNotFoundError(
            f"Application checkout {install_dir} not found. The database stage clones it."
        )

    try:
        create_virtualenv(app_settings, logger_to_use)
    except subprocess.CalledProcessError:
        log_setup_message(
            f"{symbols.get('error', '❌')} Failed to prepare the virtual environment.",
            "error",
            logger_to_use,
            app_settings,
        )
        raise
    write_fileserver_config(app_settings, logger_to_use)
    apply_source_patches(app_settings, logger_to_use)

    log_setup_message(
        f"{symbols.get('success', '✅')} Session-file-server setup complete.",
        "success",
        logger_to_use,
        app_settings,
    )
