import subprocess
from unittest.mock import MagicMock

import psycopg
import pytest
from pytest_mock import MockerFixture

from common.db_utils import (
    PSQL_BASE_COMMAND,
    database_exists,
    get_db_connection,
    query_bool,
    role_exists,
    run_psql,
    table_exists,
)


def _psql_result(stdout: str) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=["psql"], returncode=0, stdout=stdout, stderr="")


def test_run_psql_passes_values_as_variables(mocker: MockerFixture, app_settings):
    mock_run_as_user = mocker.patch("common.db_utils.run_as_user")

    run_psql(
        'CREATE ROLE :"role_name" LOGIN;',
        app_settings,
        database="sessionfiles",
        variables={"role_name": "alice"},
    )

    user, command, settings = mock_run_as_user.call_args.args
    assert user == "postgres"
    assert command == PSQL_BASE_COMMAND + ["-v", "role_name=alice", "-d", "sessionfiles"]
    assert settings is app_settings
    assert mock_run_as_user.call_args.kwargs["cmd_input"] == 'CREATE ROLE :"role_name" LOGIN;'
    assert mock_run_as_user.call_args.kwargs["capture_output"] is True


@pytest.mark.parametrize("stdout, expected", [("t\n", True), ("f\n", False)])
def test_query_bool(mocker: MockerFixture, app_settings, stdout, expected):
    mocker.patch("common.db_utils.run_as_user", return_value=_psql_result(stdout))

    assert query_bool("SELECT true;", app_settings) is expected


def test_query_bool_rejects_unexpected_output(mocker: MockerFixture, app_settings):
    mocker.patch("common.db_utils.run_as_user", return_value=_psql_result("1\n"))

    with pytest.raises(ValueError):
        query_bool("SELECT 1;", app_settings)


def test_role_exists_never_splices_name_into_sql(mocker: MockerFixture, app_settings):
    mock_run_as_user = mocker.patch(
        "common.db_utils.run_as_user", return_value=_psql_result("t")
    )

    assert role_exists("alice", app_settings) is True

    assert "alice" not in mock_run_as_user.call_args.kwargs["cmd_input"]
    assert "role_name=alice" in mock_run_as_user.call_args.args[1]


def test_database_exists_false(mocker: MockerFixture, app_settings):
    mocker.patch("common.db_utils.run_as_user", return_value=_psql_result("f"))

    assert database_exists("sessionfiles", app_settings) is False


def test_table_exists_queries_target_database(mocker: MockerFixture, app_settings):
    mock_run_as_user = mocker.patch(
        "common.db_utils.run_as_user", return_value=_psql_result("t")
    )

    assert table_exists("sessionfiles", "files", app_settings) is True

    command = mock_run_as_user.call_args.args[1]
    assert command[-2:] == ["-d", "sessionfiles"]
    assert "table_name=files" in command
    assert "schema_name=public" in command


def test_get_db_connection_success(mocker: MockerFixture):
    mock_conn = MagicMock()
    mock_connect = mocker.patch("common.db_utils.psycopg.connect", return_value=mock_conn)

    conn = get_db_connection({"dbname": "sessionfiles", "user": "alice", "password": None})

    assert conn is mock_conn
    mock_connect.assert_called_once_with(dbname="sessionfiles", user="alice")


def test_get_db_connection_failure_returns_none(mocker: MockerFixture):
    mocker.patch(
        "common.db_utils.psycopg.connect",
        side_effect=psycopg.OperationalError("connection refused"),
    )

    assert get_db_connection({"dbname": "sessionfiles", "user": "alice"}) is None
