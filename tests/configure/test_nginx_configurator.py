import subprocess
from unittest.mock import MagicMock

import pytest
from pytest_mock import MockerFixture

from configure.nginx_configurator import (
    check_nginx_configuration,
    configure_nginx,
    create_nginx_site_config,
    enable_nginx_site,
    grant_web_server_access,
    render_site_config,
)
from sfs_setup.config_models import AppSettings

MODULE = "configure.nginx_configurator"


def test_render_site_config(app_settings, install_dir):
    site = render_site_config(app_settings)

    assert "server_name files.example.org;" in site
    assert "client_max_body_size 10M;" in site
    assert f"uwsgi_pass unix:{install_dir / 'sfs.wsgi'};" in site
    assert site.startswith("server {\n")


def test_create_nginx_site_config(mocker: MockerFixture, app_settings):
    mock_write = mocker.patch(f"{MODULE}.write_file_elevated")

    site_path = create_nginx_site_config(app_settings)

    assert site_path == "/etc/nginx/sites-available/session-file-server"
    assert mock_write.call_args.args[0] == site_path


def test_enable_nginx_site(mocker: MockerFixture, app_settings):
    mock_symlink = mocker.patch(f"{MODULE}.ensure_symlink")

    enable_nginx_site("/etc/nginx/sites-available/session-file-server", app_settings)

    assert mock_symlink.call_args.args[:2] == (
        "/etc/nginx/sites-available/session-file-server",
        "/etc/nginx/sites-enabled/session-file-server",
    )


def test_check_nginx_configuration_failure(mocker: MockerFixture, app_settings, mock_logger):
    mocker.patch(
        f"{MODULE}.run_elevated_command",
        side_effect=subprocess.CalledProcessError(1, ["nginx", "-t"]),
    )

    with pytest.raises(subprocess.CalledProcessError):
        check_nginx_configuration(app_settings, mock_logger)
    mock_logger.error.assert_called_once()


def test_grant_web_server_access(mocker: MockerFixture, app_settings, install_dir):
    mock_run_elevated_command = mocker.patch(f"{MODULE}.run_elevated_command")

    grant_web_server_access(app_settings)

    commands = [c.args[0] for c in mock_run_elevated_command.call_args_list]
    assert commands == [
        ["chmod", "o+x", str(install_dir.parent)],
        ["chown", "-R", "www-data:www-data", str(install_dir)],
    ]


def test_grant_web_server_access_follows_checkout_not_db_user(mocker: MockerFixture):
    pwd_entries = {
        "alice": MagicMock(pw_dir="/home/alice"),
        "svc_files": MagicMock(pw_dir="/var/lib/svc_files"),
    }
    mocker.patch(
        "sfs_setup.config_models.pwd.getpwnam", side_effect=pwd_entries.__getitem__
    )
    mock_run_elevated_command = mocker.patch(f"{MODULE}.run_elevated_command")
    settings = AppSettings(domain="files.example.org", pg={"db_user": "svc_files"})

    grant_web_server_access(settings)

    commands = [c.args[0] for c in mock_run_elevated_command.call_args_list]
    assert commands == [
        ["chmod", "o+x", "/home/alice"],
        ["chown", "-R", "www-data:www-data", "/home/alice/session-file-server"],
    ]


def test_configure_nginx_order(mocker: MockerFixture, app_settings):
    manager = MagicMock()
    for name in (
        "create_nginx_site_config",
        "enable_nginx_site",
        "check_nginx_configuration",
        "restart_service",
        "grant_web_server_access",
        "allow_nginx_traffic",
    ):
        manager.attach_mock(mocker.patch(f"{MODULE}.{name}"), name)
    manager.create_nginx_site_config.return_value = "/etc/nginx/sites-available/session-file-server"

    configure_nginx(app_settings)

    assert [c[0] for c in manager.mock_calls] == [
        "create_nginx_site_config",
        "enable_nginx_site",
        "check_nginx_configuration",
        "restart_service",
        "grant_web_server_access",
        "restart_service",
        "allow_nginx_traffic",
    ]
    restarted = [c.args[0] for c in manager.restart_service.call_args_list]
    assert restarted == ["nginx", "uwsgi-emperor"]


def test_configure_nginx_failed_test_does_not_restart(mocker: MockerFixture, app_settings):
    mocker.patch(f"{MODULE}.create_nginx_site_config", return_value="/etc/nginx/sites-available/x")
    mocker.patch(f"{MODULE}.enable_nginx_site")
    mocker.patch(
        f"{MODULE}.check_nginx_configuration",
        side_effect=subprocess.CalledProcessError(1, ["nginx", "-t"]),
    )
    mock_restart = mocker.patch(f"{MODULE}.restart_service")
    mock_ufw = mocker.patch(f"{MODULE}.allow_nginx_traffic")

    with pytest.raises(subprocess.CalledProcessError):
        configure_nginx(app_settings)

    mock_restart.assert_not_called()
    mock_ufw.assert_not_called()
