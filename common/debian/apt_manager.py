# common/debian/apt_manager.py
# -*- coding: utf-8 -*-
import logging
import os
import subprocess
from typing import List, Optional, Union

from common.command_utils import (
    command_exists,
    run_command,
    run_elevated_command,
)
from sfs_setup.config_models import AppSettings

APT_SOURCES_DIR = "/etc/apt/sources.list.d"
APT_NONINTERACTIVE_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


class AptManager:
    """
    A small manager for Debian/Ubuntu apt packages built on the command-line
    tools. Methods return True on success and False on failure; the failure is
    logged.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Args:
            logger: An optional logging object.

        Raises:
            FileNotFoundError: apt-get is not available.
        """
        self.logger = logger or logging.getLogger(__name__)
        if not command_exists("apt-get"):
            self.logger.critical(
                "'apt-get' command not found. This manager cannot function."
            )
            raise FileNotFoundError(
                "'apt-get' not found. Is this a Debian-based system?"
            )

    def _env(self) -> dict:
        env = dict(os.environ)
        env.update(APT_NONINTERACTIVE_ENV)
        return env

    def update(self, app_settings: AppSettings) -> bool:
        """Updates the list of available packages using 'apt-get update'."""
        self.logger.info("Updating apt package lists via 'apt-get update'...")
        try:
            run_elevated_command(
                ["apt-get", "update", "-yq"],
                app_settings,
                current_logger=self.logger,
                env=self._env(),
            )
            self.logger.info("Apt package lists updated successfully.")
            return True
        except (subprocess.CalledProcessError, FileNotFoundError) as e:
            self.logger.error(f"Failed to update apt cache: {e}")
            return False

    def upgrade(self, app_settings: AppSettings) -> bool:
        """Upgrades installed packages using 'apt-get upgrade'."""
        self.logger.info("Upgrading installed packages via 'apt-get upgrade'...")
        try:
            run_elevated_command(
                ["apt-get", "upgrade", "-yq"],
                app_settings,
                current_logger=self.logger,
                env=self._env(),
            )
            self.logger.info("Installed packages upgraded successfully.")
            return True
        except (subprocess.CalledProcessError, FileNotFoundError) as e:
            self.logger.error(f"Failed to upgrade packages: {e}")
            return False

    def update_and_upgrade(self, app_settings: AppSettings) -> bool:
        return self.update(app_settings) and self.upgrade(app_settings)

    def is_installed(self, pkg_name: str, app_settings: AppSettings) -> bool:
        """Asks dpkg whether `pkg_name` is installed."""
        try:
            result = run_command(
                ["dpkg-query", "-W", "-f=${db:Status-Status}", pkg_name],
                app_settings,
                capture_output=True,
                check=True,
                current_logger=self.logger,
            )
        except subprocess.CalledProcessError:
            return False
        return result.stdout.strip() == "installed"

    def install(
        self,
        packages: Union[List[str], str],
        app_settings: AppSettings,
        update_first: bool = True,
    ) -> bool:
        """
        Installs one or more packages using 'apt-get install'. Packages dpkg
        already reports as installed are skipped.

        Args:
            packages: A single package name or a list of package names.
            app_settings: The application settings.
            update_first: Whether to update the package lists before installing.
        """
        if not isinstance(packages, list):
            packages = [packages]

        if update_first:
            if not self.update(app_settings):
                return False

        packages_to_install = []
        for pkg_name in packages:
            if self.is_installed(pkg_name, app_settings):
                self.logger.info(
                    f"Package '{pkg_name}' is already installed. Skipping."
                )
            else:
                self.logger.info(
                    f"Marking package for installation: {pkg_name}"
                )
                packages_to_install.append(pkg_name)

        if not packages_to_install:
            self.logger.info("All requested packages are already installed.")
            return True

        self.logger.info(
            f"Committing installation for: {', '.join(packages_to_install)}"
        )
        try:
            cmd = ["apt-get", "install", "-yq"] + packages_to_install
            run_elevated_command(
                cmd, app_settings, current_logger=self.logger, env=self._env()
            )
            self.logger.info("Packages installed successfully.")
            return True
        except (subprocess.CalledProcessError, FileNotFoundError) as e:
            self.logger.error(f"Failed to install packages: {e}")
            return False

    def add_list_repository(
        self,
        repo_name: str,
        repo_line: str,
        app_settings: AppSettings,
    ) -> bool:
        """
        Adds a one-line style apt source as /etc/apt/sources.list.d/<repo_name>.list.
        An existing file of that name is overwritten.

        Args:
            repo_name: Base name of the .list file.
            repo_line: The source line, e.g. "deb https://deb.example.org noble main".
            app_settings: The application settings.
        """
        repo_file_path = os.path.join(APT_SOURCES_DIR, f"{repo_name}.list")
        self.logger.info(f"Adding repository: {repo_line}")
        try:
            run_elevated_command(
                ["tee", repo_file_path],
                app_settings,
                cmd_input=f"{repo_line}\n",
                capture_output=True,
                current_logger=self.logger,
            )
            run_elevated_command(
                ["chmod", "644", repo_file_path],
                app_settings,
                current_logger=self.logger,
            )
            self.logger.info(
                f"Successfully created repository file: {repo_file_path}"
            )
        except (subprocess.CalledProcessError, FileNotFoundError) as e:
            self.logger.error(
                f"Failed to create repository file '{repo_file_path}': {e}"
            )
            return False
        return True

    def add_gpg_key_from_url(
        self, key_url: str, keyring_path: str, app_settings: AppSettings
    ) -> bool:
        """
        Downloads a GPG key from a URL and saves it to a specified keyring.

        Args:
            key_url: The URL of the GPG key.
            keyring_path: The path to save the keyring file.
            app_settings: The application settings.
        """
        self.logger.info(f"Adding GPG key from {key_url} to {keyring_path}")

        if not command_exists("curl") and not self.install(
            ["ca-certificates", "curl"], app_settings, update_first=True
        ):
            self.logger.error(
                "Failed to install required tools for GPG key download."
            )
            return False

        keyring_dir = os.path.dirname(keyring_path)
        try:
            run_elevated_command(
                ["install", "-m", "0755", "-d", keyring_dir],
                app_settings,
                current_logger=self.logger,
            )
            run_elevated_command(
                ["curl", "-fsSL", key_url, "-o", keyring_path],
                app_settings,
                current_logger=self.logger,
            )
            run_elevated_command(
                ["chmod", "a+r", keyring_path],
                app_settings,
                current_logger=self.logger,
            )
            self.logger.info("GPG key added and permissions set.")
            return True
        except (subprocess.CalledProcessError, FileNotFoundError) as e:
            self.logger.error(f"Failed to add GPG key: {e}")
            return False
