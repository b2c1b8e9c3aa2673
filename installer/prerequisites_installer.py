# installer/prerequisites_installer.py
# -*- coding: utf-8 -*-
"""
Installs the system packages the file server needs.

Refreshes the package index, registers the Oxen apt repository (which ships
python3-session-util) with its signing key, refreshes again and installs the
configured package list. Package names may use a single brace group, e.g.
``python3-{pip,flask}``, to name several related packages.
"""

import logging
import re
from typing import List, Optional

from common.command_utils import log_setup_message
from common.debian.apt_manager import AptManager
from common.system_utils import get_debian_codename
from sfs_setup.config_models import AppSettings

module_logger = logging.getLogger(__name__)

BRACE_GROUP_REGEX = re.compile(r"^(?P<prefix>[^{}]*)\{(?P<items>[^{}]+)\}(?P<suffix>[^{}]*)$")


def expand_package_groups(packages: List[str]) -> List[str]:
    """
    Expands brace groups in package names, keeping order and dropping duplicates.

    >>> expand_package_groups(["ufw", "uwsgi-{emperor,plugin-python3}"])
    ['ufw', 'uwsgi-emperor', 'uwsgi-plugin-python3']

    Raises:
        ValueError: An entry has unbalanced or nested braces, or an empty item.
    """
    expanded: List[str] = []
    for entry in packages:
        entry = entry.strip()
        if "{" not in entry and "}" not in entry:
            names = [entry]
        else:
            match = BRACE_GROUP_REGEX.match(entry)
            if not match:
                raise ValueError(f"Malformed package group: '{entry}'")
            items = [item.strip() for item in match.group("items").split(",")]
            if not all(items):
                raise ValueError(f"Empty item in package group: '{entry}'")
            names = [
                f"{match.group('prefix')}{item}{match.group('suffix')}"
                for item in items
            ]
        for name in names:
            if name and name not in expanded:
                expanded.append(name)
    return expanded


def install_dependencies(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """
    Installs system packages, adding the third-party repository first.

    Raises:
        RuntimeError: A step failed; the message names the step.
        FileNotFoundError: apt-get is not available.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    apt_cfg = app_settings.apt
    apt_manager = AptManager(logger=logger_to_use)

    log_setup_message(
        f"{symbols.get('step', '➡️')} Installing dependencies...",
        "info",
        logger_to_use,
        app_settings,
    )

    log_setup_message(
        "Updating package lists...", "info", logger_to_use, app_settings
    )
    if not apt_manager.update_and_upgrade(app_settings):
        raise RuntimeError("Failed to update and upgrade packages.")

    log_setup_message(
        f"{symbols.get('package', '📦')} Now obtaining {apt_cfg.repo_name} packages list...",
        "info",
        logger_to_use,
        app_settings,
    )
    if not apt_manager.add_gpg_key_from_url(
        apt_cfg.key_url, apt_cfg.keyring_path, app_settings
    ):
        raise RuntimeError(
            f"Failed to download {apt_cfg.repo_name} GPG key from {apt_cfg.key_url}."
        )

    codename = get_debian_codename(app_settings, current_logger=logger_to_use)
    if not codename:
        raise RuntimeError(
            "Could not determine the distribution codename (lsb_release -cs)."
        )
    repo_line = f"deb {apt_cfg.repo_url} {codename} {apt_cfg.repo_component}"
    if not apt_manager.add_list_repository(
        apt_cfg.repo_name, repo_line, app_settings
    ):
        raise RuntimeError(f"Failed to add {apt_cfg.repo_name} repository.")

    if not apt_manager.update_and_upgrade(app_settings):
        raise RuntimeError(
            f"Failed to update and upgrade packages after adding {apt_cfg.repo_name} repository."
        )

    packages = expand_package_groups(apt_cfg.packages)
    log_setup_message(
        f"Installing required packages: {' '.join(packages)}",
        "info",
        logger_to_use,
        app_settings,
    )
    if not apt_manager.install(packages, app_settings, update_first=False):
        raise RuntimeError("Failed to install dependencies.")

    log_setup_message(
        f"{symbols.get('success', '✅')} Dependencies installed successfully.",
        "success",
        logger_to_use,
        app_settings,
    )
