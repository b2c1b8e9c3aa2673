# common/db_utils.py
# -*- coding: utf-8 -*-
"""
PostgreSQL helpers.

Administrative statements and catalog lookups run through ``psql`` as the
``postgres`` OS user, with every value passed as a psql variable rather than
spliced into the SQL text. Catalog lookups return plain booleans.
Connections made by the application role itself use Psycopg 3.
"""

import logging
import subprocess
from typing import Dict, Optional

import psycopg

from sfs_setup.config_models import AppSettings

from .command_utils import run_as_user

module_logger = logging.getLogger(__name__)

POSTGRES_OS_USER = "postgres"
POSTGRES_SOCKET_DIR = "/var/run/postgresql"
PSQL_BASE_COMMAND = ["psql", "-X", "-q", "-t", "-A", "-v", "ON_ERROR_STOP=1"]

ROLE_EXISTS_SQL = (
    "SELECT EXISTS (SELECT 1 FROM pg_roles WHERE rolname = :'role_name');"
)
DATABASE_EXISTS_SQL = (
    "SELECT EXISTS (SELECT 1 FROM pg_database WHERE datname = :'db_name');"
)
TABLE_EXISTS_SQL = (
    "SELECT EXISTS (SELECT 1 FROM information_schema.tables "
    "WHERE table_schema = :'schema_name' AND table_name = :'table_name');"
)


def run_psql(
    sql: str,
    app_settings: Optional[AppSettings],
    database: Optional[str] = None,
    variables: Optional[Dict[str, str]] = None,
    current_logger: Optional[logging.Logger] = None,
) -> subprocess.CompletedProcess:
    """
    Feeds `sql` to psql on stdin as the postgres OS user.

    Args:
        sql: Statements to run. Reference variables as :'name' (literal) or
            :"name" (identifier).
        app_settings: Settings of the current run.
        database: Database to connect to; psql's default when None.
        variables: psql variables made available to the statements.
        current_logger: Logger to use.

    Raises:
        subprocess.CalledProcessError: psql reported an error.
    """
    command = list(PSQL_BASE_COMMAND)
    for name, value in (variables or {}).items():
        command += ["-v", f"{name}={value}"]
    if database:
        command += ["-d", database]
    return run_as_user(
        POSTGRES_OS_USER,
        command,
        app_settings,
        capture_output=True,
        cmd_input=sql,
        current_logger=current_logger,
    )


def query_bool(
    sql: str,
    app_settings: Optional[AppSettings],
    database: Optional[str] = None,
    variables: Optional[Dict[str, str]] = None,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Runs a single-value boolean query and returns its result.

    Raises:
        ValueError: psql printed something other than 't' or 'f'.
    """
    result = run_psql(
        sql,
        app_settings,
        database=database,
        variables=variables,
        current_logger=current_logger,
    )
    value = (result.stdout or "").strip()
    if value == "t":
        return True
    if value == "f":
        return False
    raise ValueError(f"Unexpected psql output for boolean query: {value!r}")


def role_exists(
    role_name: str,
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    return query_bool(
        ROLE_EXISTS_SQL,
        app_settings,
        variables={"role_name": role_name},
        current_logger=current_logger,
    )


def database_exists(
    db_name: str,
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    return query_bool(
        DATABASE_EXISTS_SQL,
        app_settings,
        variables={"db_name": db_name},
        current_logger=current_logger,
    )


def table_exists(
    db_name: str,
    table_name: str,
    app_settings: Optional[AppSettings],
    schema_name: str = "public",
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """True if `schema_name`.`table_name` exists in database `db_name`."""
    return query_bool(
        TABLE_EXISTS_SQL,
        app_settings,
        database=db_name,
        variables={"schema_name": schema_name, "table_name": table_name},
        current_logger=current_logger,
    )


def get_db_connection(
    db_params: Dict[str, str],
) -> Optional[psycopg.Connection]:
    """
    Attempts to connect to PostgreSQL with Psycopg 3.

    Args:
        db_params (Dict[str, str]): Connection parameters such as dbname, user,
            password, host and port. None values are dropped.

    Returns:
        Optional[psycopg.Connection]: The connection, or None if it failed. The
        failure is logged.
    """
    conn_kwargs_filtered = {
        k: v for k, v in db_params.items() if v is not None
    }
    log_db_details = {
        k: v for k, v in conn_kwargs_filtered.items() if k != "password"
    }

    try:
        module_logger.debug(
            f"Attempting to connect to database with parameters: {log_db_details}"
        )
        conn = psycopg.connect(**conn_kwargs_filtered)
        module_logger.info(
            f"Connected to database {log_db_details.get('dbname', 'N/A')} as "
            f"{log_db_details.get('user', 'N/A')} via {log_db_details.get('host', 'default host')}."
        )
        return conn
    except psycopg.OperationalError as e:
        module_logger.error(
            f"Database connection failed (OperationalError): {e}"
        )
    except psycopg.Error as e:
        module_logger.error(f"Database connection failed: {e}")
    return None
