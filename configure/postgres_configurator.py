# configure/postgres_configurator.py
# -*- coding: utf-8 -*-
"""
Handles provisioning of the session-file-server PostgreSQL database: local
authentication, the application role and database, the schema and the
privileges the application needs.
"""

import logging
import re
from pathlib import Path
from typing import List, Optional, Tuple

from psycopg import sql

from common.command_utils import log_setup_message
from common.db_utils import (
    POSTGRES_SOCKET_DIR,
    database_exists,
    get_db_connection,
    role_exists,
    run_psql,
    table_exists,
)
from common.file_utils import backup_file, write_file_elevated
from common.system_utils import restart_service
from configure.fileserver_configurator import clone_fileserver_repository
from sfs_setup.config_models import AppSettings
from sfs_setup.exceptions import ProvisioningError, ResourceExistsError

module_logger = logging.getLogger(__name__)

PG_HBA_FILE_NAME = "pg_hba.conf"
PG_HBA_VERSIONED_PATH_TEMPLATE = "{conf_root}/{version}/main/pg_hba.conf"
LOCAL_PEER_AUTH_REGEX = re.compile(
    r"^(local\s+all\s+all\s+)peer\b", re.MULTILINE
)

CREATE_ROLE_SQL = 'CREATE ROLE :"role_name" LOGIN;'
CREATE_DATABASE_SQL = 'CREATE DATABASE :"db_name" OWNER :"role_name";'
GRANT_STATEMENTS: List[Tuple[str, str]] = [
    (
        "all privileges on database",
        'GRANT ALL PRIVILEGES ON DATABASE :"db_name" TO :"role_name";',
    ),
    (
        "all privileges on all tables in schema public",
        'GRANT ALL ON ALL TABLES IN SCHEMA public TO :"role_name";',
    ),
    (
        "all privileges on all sequences in schema public",
        'GRANT ALL ON ALL SEQUENCES IN SCHEMA public TO :"role_name";',
    ),
]


def _version_sort_key(path: Path) -> Tuple[int, ...]:
    """Sort key from the version directory of /etc/postgresql/<version>/main/pg_hba.conf."""
    try:
        version_dir = path.parent.parent.name
        return tuple(int(part) for part in version_dir.split("."))
    except ValueError:
        return (0,)


def find_pg_hba_conf(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> Path:
    """
    Locates pg_hba.conf. Uses the configured PostgreSQL version when set,
    otherwise searches the configuration root and picks the newest version.

    Raises:
        FileNotFoundError: No pg_hba.conf was found.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    pg_cfg = app_settings.pg

    log_setup_message(
        f"{symbols.get('info', 'ℹ️')} Locating {PG_HBA_FILE_NAME} file...",
        "info",
        logger_to_use,
        app_settings,
    )
    if pg_cfg.version:
        candidate = Path(
            PG_HBA_VERSIONED_PATH_TEMPLATE.format(
                conf_root=pg_cfg.conf_root, version=pg_cfg.version
            )
        )
        if not candidate.is_file():
            raise FileNotFoundError(
                f"Could not find {candidate}. Is PostgreSQL v{pg_cfg.version} installed?"
            )
        return candidate

    conf_root = Path(pg_cfg.conf_root)
    candidates = (
        sorted(conf_root.rglob(PG_HBA_FILE_NAME), key=_version_sort_key)
        if conf_root.is_dir()
        else []
    )
    if not candidates:
        raise FileNotFoundError(
            f"Could not find {PG_HBA_FILE_NAME} file under {conf_root}."
        )
    if len(candidates) > 1:
        log_setup_message(
            f"{symbols.get('warning', '⚠️')} Found several {PG_HBA_FILE_NAME} files "
            f"({', '.join(str(c) for c in candidates)}). Using {candidates[-1]}.",
            "warning",
            logger_to_use,
            app_settings,
        )
    return candidates[-1]


def set_local_auth_to_trust(
    pg_hba_path: Path,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Switches the `local all all` rule from peer to trust authentication.

    Returns:
        bool: True if the file was changed, False if no peer rule was left.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols

    log_setup_message(
        f"{symbols.get('gear', '⚙️')} Updating {pg_hba_path} for local connections...",
        "info",
        logger_to_use,
        app_settings,
    )
    content = pg_hba_path.read_text(encoding="utf-8")
    new_content, count = LOCAL_PEER_AUTH_REGEX.subn(r"\1trust", content)
    if count == 0:
        log_setup_message(
            f"{symbols.get('info', 'ℹ️')} No 'local all all peer' rule in {pg_hba_path}. Leaving it unchanged.",
            "info",
            logger_to_use,
            app_settings,
        )
        return False

    if not backup_file(str(pg_hba_path), app_settings, logger_to_use):
        raise ProvisioningError(f"Failed to back up {pg_hba_path}.")
    write_file_elevated(
        str(pg_hba_path), new_content, app_settings, logger_to_use
    )
    log_setup_message(
        f"{symbols.get('success', '✅')} Local connections in {pg_hba_path} now use trust authentication.",
        "success",
        logger_to_use,
        app_settings,
    )
    return True


def create_role_and_database(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """
    Creates the application role and its database.

    Raises:
        ResourceExistsError: The role or the database already exists. Nothing
            is reused; the operator has to remove it first.
        subprocess.CalledProcessError: psql failed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    db_user = app_settings.pg.db_user
    database = app_settings.pg.database

    if role_exists(db_user, app_settings, logger_to_use):
        raise ResourceExistsError(
            "Database user",
            db_user,
            "Please remove the existing user or choose a different username.",
        )
    log_setup_message(
        f"{symbols.get('gear', '⚙️')} Creating database user '{db_user}'...",
        "info",
        logger_to_use,
        app_settings,
    )
    run_psql(
        CREATE_ROLE_SQL,
        app_settings,
        variables={"role_name": db_user},
        current_logger=logger_to_use,
    )

    if database_exists(database, app_settings, logger_to_use):
        raise ResourceExistsError(
            "Database",
            database,
            "Please remove the existing database or choose a different name.",
        )
    log_setup_message(
        f"{symbols.get('gear', '⚙️')} Creating database '{database}' with owner '{db_user}'...",
        "info",
        logger_to_use,
        app_settings,
    )
    run_psql(
        CREATE_DATABASE_SQL,
        app_settings,
        variables={"db_name": database, "role_name": db_user},
        current_logger=logger_to_use,
    )


def load_schema_and_grant(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> bool:
    """
    Loads the application schema and grants the application role access to it,
    unless the schema marker table already exists.

    Returns:
        bool: True if the schema was loaded, False if it was already present.

    Raises:
        FileNotFoundError: The schema file is missing from the checkout.
        subprocess.CalledProcessError: Loading or a grant failed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    pg_cfg = app_settings.pg

    if table_exists(
        pg_cfg.database,
        pg_cfg.schema_marker_table,
        app_settings,
        current_logger=logger_to_use,
    ):
        log_setup_message(
            f"{symbols.get('info', 'ℹ️')} Schema already loaded.",
            "info",
            logger_to_use,
            app_settings,
        )
        return False

    schema_path = app_settings.fileserver.install_dir / pg_cfg.schema_file
    if not schema_path.is_file():
        raise FileNotFoundError(f"Schema file {schema_path} not found.")

    log_setup_message(
        f"{symbols.get('gear', '⚙️')} Loading database schema from {schema_path}...",
        "info",
        logger_to_use,
        app_settings,
    )
    run_psql(
        schema_path.read_text(encoding="utf-8"),
        app_settings,
        database=pg_cfg.database,
        current_logger=logger_to_use,
    )

    for description, statement in GRANT_STATEMENTS:
        log_setup_message(
            f"{symbols.get('gear', '⚙️')} Granting {description} to user '{pg_cfg.db_user}'...",
            "info",
            logger_to_use,
            app_settings,
        )
        run_psql(
            statement,
            app_settings,
            database=pg_cfg.database,
            variables={
                "db_name": pg_cfg.database,
                "role_name": pg_cfg.db_user,
            },
            current_logger=logger_to_use,
        )
    return True


def verify_database_access(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> int:
    """
    Connects as the application role over the local socket, the way the file
    server will, and reads the schema marker table.

    Returns:
        int: Number of rows in the marker table.

    Raises:
        ProvisioningError: The connection or the query failed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    pg_cfg = app_settings.pg

    conn = get_db_connection(
        {
            "dbname": pg_cfg.database,
            "user": pg_cfg.db_user,
            "host": POSTGRES_SOCKET_DIR,
        }
    )
    if conn is None:
        raise ProvisioningError(
            f"User '{pg_cfg.db_user}' cannot connect to database '{pg_cfg.database}'."
        )
    try:
        with conn.cursor() as cur:
            cur.execute(
                sql.SQL("SELECT count(*) FROM {}").format(
                    sql.Identifier(pg_cfg.schema_marker_table)
                )
            )
            row = cur.fetchone()
    except Exception as e:
        raise ProvisioningError(
            f"User '{pg_cfg.db_user}' cannot read table '{pg_cfg.schema_marker_table}': {e}"
        ) from e
    finally:
        conn.close()

    row_count = int(row[0]) if row else 0
    log_setup_message(
        f"{symbols.get('success', '✅')} User '{pg_cfg.db_user}' can read "
        f"'{pg_cfg.schema_marker_table}' ({row_count} rows).",
        "success",
        logger_to_use,
        app_settings,
    )
    return row_count


def provision_database(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """
    Sets up session-file-server's PostgreSQL database.

    Order: trust local connections and restart PostgreSQL, create the role and
    database, fetch the application sources (they carry the schema), load the
    schema with grants, then check the application role can use it.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols

    log_setup_message(
        f"{symbols.get('step', '➡️')} Setting up session-file-server's PostgreSQL database...",
        "info",
        logger_to_use,
        app_settings,
    )

    pg_hba_path = find_pg_hba_conf(app_settings, logger_to_use)
    set_local_auth_to_trust(pg_hba_path, app_settings, logger_to_use)
    restart_service(app_settings.pg.service_name, app_settings, logger_to_use)

    create_role_and_database(app_settings, logger_to_use)
    clone_fileserver_repository(app_settings, logger_to_use)
    load_schema_and_grant(app_settings, logger_to_use)
    verify_database_access(app_settings, logger_to_use)

    log_setup_message(
        f"{symbols.get('success', '✅')} Database setup complete.",
        "success",
        logger_to_use,
        app_settings,
    )
