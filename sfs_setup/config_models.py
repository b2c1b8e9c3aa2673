# sfs_setup/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for the installer configuration.

This module defines the structured settings for a session-file-server
deployment, including defaults, type annotations, and descriptions.
All models are frozen: the settings object is built once at startup and
handed to every setup stage unchanged.
"""

import os
import pwd
import re
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Default Static Values (can be overridden by config file/env/cli) ---
LOG_FILE_DEFAULT: str = "/var/log/session_fileserver_setup.log"
SYSLOG_TAG_DEFAULT: str = "session_fileserver_setup"

PG_CONF_ROOT_DEFAULT: str = "/etc/postgresql"
PG_DATABASE_DEFAULT: str = "sessionfiles"
PG_SERVICE_NAME_DEFAULT: str = "postgresql"
PG_SCHEMA_MARKER_TABLE_DEFAULT: str = "files"
PG_SCHEMA_FILE_DEFAULT: str = "schema.pgsql"

GIT_REPO_URL_DEFAULT: str = (
    "https://github.com/session-foundation/session-file-server.git"
)
FILESERVER_DIR_NAME: str = "session-file-server"
FILESERVER_VENV_PACKAGES_DEFAULT: List[str] = [
    "coloredlogs",
    "psycopg",
    "psycopg_pool",
    "pynacl",
    "requests",
]

UWSGI_VASSAL_FILE_DEFAULT: str = "/etc/uwsgi-emperor/vassals/sfs.ini"
UWSGI_SERVICE_NAME_DEFAULT: str = "uwsgi-emperor"

NGINX_SITES_AVAILABLE_DIR_DEFAULT: str = "/etc/nginx/sites-available"
NGINX_SITES_ENABLED_DIR_DEFAULT: str = "/etc/nginx/sites-enabled"
NGINX_SITE_NAME_DEFAULT: str = "session-file-server"
NGINX_SERVICE_NAME_DEFAULT: str = "nginx"
UFW_PROFILE_DEFAULT: str = "Nginx Full"
WEB_USER_DEFAULT: str = "www-data"
WEB_GROUP_DEFAULT: str = "www-data"

APT_REPO_NAME_DEFAULT: str = "oxen"
APT_REPO_URL_DEFAULT: str = "https://deb.oxen.io"
APT_REPO_KEY_URL_DEFAULT: str = "https://deb.oxen.io/pub.gpg"
APT_REPO_KEYRING_DEFAULT: str = "/etc/apt/trusted.gpg.d/oxen.gpg"
APT_REPO_COMPONENT_DEFAULT: str = "main"

# Brace groups are expanded by installer.prerequisites_installer.
SYSTEM_PACKAGES_DEFAULT: List[str] = [
    "ufw",
    "git",
    "openssl",
    "python3",
    "python3-{pip,systemd,flask,uwsgidecorators,coloredlogs,session-util}",
    "python3.12-venv",
    "postgresql",
    "postgresql-client",
    "nginx",
    "uwsgi-{emperor,plugin-python3}",
]

UWSGI_VASSAL_TEMPLATE_DEFAULT: str = """\
[uwsgi]
# Path to the project directory
chdir = {install_dir}

# WSGI settings
virtualenv = {venv_dir}
socket = {socket_path}
chmod-socket = {chmod_socket}
plugins = python3
processes = {processes}
manage-script-name = true
mount = /=fileserver.web:app

# Logging
logto = {log_path}
"""

NGINX_SITE_TEMPLATE_DEFAULT: str = """\
server {{
    listen 80;
    server_name {domain};

    client_max_body_size {client_max_body_size};

    location / {{
        include uwsgi_params;
        uwsgi_pass unix:{socket_path};
    }}
}}
"""

SYMBOLS_DEFAULT: Dict[str, str] = {
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "info": "ℹ️",
    "step": "➡️",
    "gear": "⚙️",
    "package": "📦",
    "rocket": "🚀",
    "sparkles": "✨",
    "critical": "🔥",
    "debug": "🐛",
}

DOMAIN_NAME_REGEX = re.compile(
    r"^(?=.{1,253}$)(?!-)[A-Za-z0-9-]{1,63}(?<!-)"
    r"(\.(?!-)[A-Za-z0-9-]{1,63}(?<!-))*\.?$"
)
# Same rule as useradd's default NAME_REGEX.
USER_NAME_REGEX = re.compile(r"^[a-z_][a-z0-9_-]*\$?$")


def get_invoking_user() -> str:
    """Returns the non-root user who invoked the installer (via sudo if present)."""
    return os.environ.get("SUDO_USER") or os.environ.get("USER") or "root"


def get_user_home(user_name: str) -> Path:
    """Home directory of `user_name`, falling back to /home/<user_name>."""
    try:
        return Path(pwd.getpwnam(user_name).pw_dir)
    except KeyError:
        return Path("/home") / user_name


def is_valid_domain_name(domain: str) -> bool:
    return bool(domain) and bool(DOMAIN_NAME_REGEX.match(domain))


class SourcePatch(BaseModel):
    """A literal find-and-replace applied to a file of the fetched application."""

    model_config = ConfigDict(frozen=True)

    file: str = Field(description="Path relative to the install directory.")
    pattern: str = Field(description="Exact literal text to find.")
    replacement: str = Field(description="Literal text to put in its place.")


SOURCE_PATCHES_DEFAULT: List[SourcePatch] = [
    SourcePatch(
        file="fileserver/subrequest.py",
        pattern='"CONTENT_LENGTH": content_length,',
        replacement='"CONTENT_LENGTH": str(content_length),',
    ),
    SourcePatch(
        file="fileserver/routes.py",
        pattern=(
            "to_verify = ts_str.encode() + request.method.encode()"
            " + request.path.encode()"
        ),
        replacement=(
            "to_verify = str(ts_str).encode() + request.method.encode()"
            " + request.path.encode()"
        ),
    ),
]


class PostgresSettings(BaseModel):
    """PostgreSQL provisioning settings."""

    model_config = ConfigDict(frozen=True)

    db_user: str = Field(
        default_factory=get_invoking_user,
        validate_default=True,
        description="Database role to create; defaults to the invoking user.",
    )
    database: str = Field(
        default=PG_DATABASE_DEFAULT, description="Database to create."
    )
    conf_root: str = Field(
        default=PG_CONF_ROOT_DEFAULT,
        description="Directory searched for pg_hba.conf.",
    )
    version: Optional[str] = Field(
        default=None,
        description="Major PostgreSQL version. When set, pg_hba.conf is taken from "
        "<conf_root>/<version>/main instead of being searched for.",
    )
    service_name: str = Field(default=PG_SERVICE_NAME_DEFAULT)
    schema_marker_table: str = Field(
        default=PG_SCHEMA_MARKER_TABLE_DEFAULT,
        description="Table whose presence means the schema is already loaded.",
    )
    schema_file: str = Field(
        default=PG_SCHEMA_FILE_DEFAULT,
        description="Schema file, relative to the fileserver install directory.",
    )

    @field_validator("db_user")
    @classmethod
    def _check_db_user(cls, value: str) -> str:
        if not USER_NAME_REGEX.match(value):
            raise ValueError(
                f"'{value}' is not a valid user name for a database role."
            )
        if value == "root":
            raise ValueError(
                "Database user resolved to 'root'. Run the installer with sudo "
                "from a regular account, or set SFS_PG__DB_USER."
            )
        return value


class FileserverSettings(BaseModel):
    """Where and how the session-file-server application is installed."""

    model_config = ConfigDict(frozen=True)

    git_repo_url: str = Field(default=GIT_REPO_URL_DEFAULT)
    install_dir: Path = Field(
        default_factory=lambda: get_user_home(get_invoking_user())
        / FILESERVER_DIR_NAME,
        description="Checkout directory of the application.",
    )
    venv_packages: List[str] = Field(
        default_factory=lambda: list(FILESERVER_VENV_PACKAGES_DEFAULT)
    )
    config_sample: str = Field(default="fileserver/config.py.sample")
    config_target: str = Field(default="fileserver/config.py")
    strict_patching: bool = Field(
        default=True,
        description="Fail when a source patch pattern is not found. When false a "
        "missing pattern is only logged as a warning.",
    )
    source_patches: List[SourcePatch] = Field(
        default_factory=lambda: list(SOURCE_PATCHES_DEFAULT)
    )

    @property
    def venv_dir(self) -> Path:
        return self.install_dir / "venv"

    @property
    def socket_path(self) -> Path:
        return self.install_dir / "sfs.wsgi"

    @property
    def app_log_path(self) -> Path:
        return self.install_dir / "sfs.log"


class UwsgiSettings(BaseModel):
    """uWSGI emperor vassal settings."""

    model_config = ConfigDict(frozen=True)

    vassal_file: str = Field(default=UWSGI_VASSAL_FILE_DEFAULT)
    service_name: str = Field(default=UWSGI_SERVICE_NAME_DEFAULT)
    processes: int = Field(default=4, ge=1)
    chmod_socket: str = Field(default="660")
    vassal_template: str = Field(
        default=UWSGI_VASSAL_TEMPLATE_DEFAULT,
        description="Template for the vassal ini file. Supports placeholders "
        "{install_dir}, {venv_dir}, {socket_path}, {chmod_socket}, {processes}, {log_path}.",
    )


class NginxSettings(BaseModel):
    """Nginx reverse proxy settings."""

    model_config = ConfigDict(frozen=True)

    sites_available_dir: str = Field(default=NGINX_SITES_AVAILABLE_DIR_DEFAULT)
    sites_enabled_dir: str = Field(default=NGINX_SITES_ENABLED_DIR_DEFAULT)
    site_name: str = Field(default=NGINX_SITE_NAME_DEFAULT)
    service_name: str = Field(default=NGINX_SERVICE_NAME_DEFAULT)
    client_max_body_size: str = Field(default="10M")
    web_user: str = Field(default=WEB_USER_DEFAULT)
    web_group: str = Field(default=WEB_GROUP_DEFAULT)
    ufw_profile: str = Field(default=UFW_PROFILE_DEFAULT)
    site_template: str = Field(
        default=NGINX_SITE_TEMPLATE_DEFAULT,
        description="Template for the site file. Supports placeholders "
        "{domain}, {client_max_body_size}, {socket_path}.",
    )


class AptSettings(BaseModel):
    """System packages and the third-party apt repository."""

    model_config = ConfigDict(frozen=True)

    packages: List[str] = Field(
        default_factory=lambda: list(SYSTEM_PACKAGES_DEFAULT)
    )
    repo_name: str = Field(default=APT_REPO_NAME_DEFAULT)
    repo_url: str = Field(default=APT_REPO_URL_DEFAULT)
    repo_component: str = Field(default=APT_REPO_COMPONENT_DEFAULT)
    key_url: str = Field(default=APT_REPO_KEY_URL_DEFAULT)
    keyring_path: str = Field(default=APT_REPO_KEYRING_DEFAULT)


class AppSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="SFS_",
        env_nested_delimiter="__",
        extra="ignore",
        frozen=True,
    )

    domain: str = Field(description="Public domain name served by nginx.")
    log_file: str = Field(default=LOG_FILE_DEFAULT)
    syslog_tag: str = Field(default=SYSLOG_TAG_DEFAULT)
    check_domain_dns: bool = Field(
        default=False,
        description="Verify that the domain resolves to this machine's public IP "
        "before changing anything.",
    )
    public_ip_url: str = Field(default="https://ipinfo.io/ip")

    pg: PostgresSettings = Field(default_factory=PostgresSettings)
    fileserver: FileserverSettings = Field(default_factory=FileserverSettings)
    uwsgi: UwsgiSettings = Field(default_factory=UwsgiSettings)
    nginx: NginxSettings = Field(default_factory=NginxSettings)
    apt: AptSettings = Field(default_factory=AptSettings)

    symbols: Dict[str, str] = Field(
        default_factory=lambda: dict(SYMBOLS_DEFAULT)
    )

    @field_validator("domain")
    @classmethod
    def _check_domain(cls, value: str) -> str:
        value = value.strip()
        if not is_valid_domain_name(value):
            raise ValueError(f"'{value}' is not a valid domain name.")
        return value
