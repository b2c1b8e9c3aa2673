from unittest.mock import MagicMock

import pytest
from pytest_mock import MockerFixture

from sfs_setup import main_installer
from sfs_setup.config_models import AppSettings


@pytest.fixture
def patched_main(mocker: MockerFixture, tmp_path, monkeypatch):
    """Patches everything main() touches outside the process."""
    monkeypatch.chdir(tmp_path)
    return {
        "setup_logging": mocker.patch("sfs_setup.main_installer.setup_logging"),
        "display_banner": mocker.patch("sfs_setup.main_installer.display_banner"),
        "ensure_root_privileges": mocker.patch(
            "sfs_setup.main_installer.ensure_root_privileges"
        ),
        "ensure_secure_file": mocker.patch(
            "sfs_setup.main_installer.ensure_secure_file"
        ),
        "run_setup_stages": mocker.patch(
            "sfs_setup.main_installer.run_setup_stages", return_value=True
        ),
    }


def test_main_success(patched_main):
    assert main_installer.main(["--domain", "files.example.org"]) == 0

    patched_main["display_banner"].assert_called_once()
    patched_main["ensure_secure_file"].assert_called_once()
    assert patched_main["ensure_secure_file"].call_args.args[0] == (
        "/var/log/session_fileserver_setup.log"
    )
    file_logging_call = patched_main["setup_logging"].call_args_list[-1]
    assert file_logging_call.kwargs["log_file"] == "/var/log/session_fileserver_setup.log"
    assert file_logging_call.kwargs["syslog_tag"] == "session_fileserver_setup"
    settings = patched_main["run_setup_stages"].call_args.args[0]
    assert settings.domain == "files.example.org"


@pytest.mark.parametrize(
    "argv",
    [
        [],
        ["--domain", "bad domain"],
        ["--domain", "files.example.org", "--yes"],
    ],
)
def test_main_usage_errors_change_nothing(patched_main, argv):
    assert main_installer.main(argv) == 1

    patched_main["ensure_root_privileges"].assert_not_called()
    patched_main["ensure_secure_file"].assert_not_called()
    patched_main["run_setup_stages"].assert_not_called()


def test_main_requires_root(patched_main):
    patched_main["ensure_root_privileges"].side_effect = PermissionError(
        "This installer must be run as root."
    )

    assert main_installer.main(["-d", "files.example.org"]) == 1

    patched_main["ensure_secure_file"].assert_not_called()
    patched_main["run_setup_stages"].assert_not_called()


def test_main_invalid_configuration(patched_main, tmp_path):
    (tmp_path / "config.yaml").write_text("pg: [broken\n", encoding="utf-8")

    assert main_installer.main(["-d", "files.example.org"]) == 1

    patched_main["ensure_secure_file"].assert_not_called()
    patched_main["run_setup_stages"].assert_not_called()


def test_main_unparsable_environment_value(patched_main, monkeypatch, mocker: MockerFixture):
    monkeypatch.setenv("SFS_APT__PACKAGES", "ufw nginx")
    mock_log_setup_message = mocker.patch("sfs_setup.main_installer.log_setup_message")

    assert main_installer.main(["-d", "files.example.org"]) == 1

    assert mock_log_setup_message.call_args.args[1] == "error"
    assert "Configuration error" in mock_log_setup_message.call_args.args[0]
    patched_main["ensure_secure_file"].assert_not_called()
    patched_main["run_setup_stages"].assert_not_called()


def test_main_log_file_failure(patched_main):
    patched_main["ensure_secure_file"].side_effect = PermissionError("read-only")

    assert main_installer.main(["-d", "files.example.org"]) == 1

    patched_main["run_setup_stages"].assert_not_called()


def test_main_stage_failure(patched_main):
    patched_main["run_setup_stages"].return_value = False

    assert main_installer.main(["-d", "files.example.org"]) == 1


def test_run_setup_stages_stops_at_first_failure(mocker: MockerFixture, app_settings):
    mock_execute_step = mocker.patch(
        "sfs_setup.main_installer.execute_step", side_effect=[True, False]
    )

    assert main_installer.run_setup_stages(app_settings) is False

    assert [c.args[0] for c in mock_execute_step.call_args_list] == [
        "DEPENDENCIES",
        "DATABASE",
    ]


def test_run_setup_stages_runs_all_in_order(mocker: MockerFixture, app_settings):
    mock_execute_step = mocker.patch(
        "sfs_setup.main_installer.execute_step", return_value=True
    )

    assert main_installer.run_setup_stages(app_settings) is True

    assert [c.args[0] for c in mock_execute_step.call_args_list] == [
        "DEPENDENCIES",
        "DATABASE",
        "FILESERVER",
        "UWSGI",
        "NGINX",
    ]


def test_domain_dns_stage_is_optional(install_dir):
    settings = AppSettings(
        domain="files.example.org",
        check_domain_dns=True,
        fileserver={"install_dir": install_dir},
    )

    tags = [tag for tag, _, _ in main_installer.get_setup_stages(settings)]

    assert tags[0] == "DOMAIN_DNS"
    assert len(tags) == 6


def test_verify_domain_dns(mocker: MockerFixture, app_settings):
    mock_check_domain = mocker.patch(
        "sfs_setup.main_installer.check_domain", return_value="203.0.113.7"
    )
    mock_logger = MagicMock()

    main_installer.verify_domain_dns(app_settings, mock_logger)

    mock_check_domain.assert_called_once_with(
        "files.example.org", app_settings, mock_logger
    )
    assert "203.0.113.7" in mock_logger.info.call_args.args[0]


@pytest.mark.parametrize(
    "value, expected", [(None, 20), ("debug", 10), ("nonsense", 20)]
)
def test_get_log_level(monkeypatch, value, expected):
    if value is None:
        monkeypatch.delenv("LOGLEVEL", raising=False)
    else:
        monkeypatch.setenv("LOGLEVEL", value)

    assert main_installer.get_log_level() == expected
