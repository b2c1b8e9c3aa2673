import pytest
from pytest_mock import MockerFixture

from configure.uwsgi_configurator import configure_uwsgi, render_vassal_config
from sfs_setup.config_models import AppSettings

MODULE = "configure.uwsgi_configurator"


def test_render_vassal_config(app_settings, install_dir):
    vassal = render_vassal_config(app_settings)

    assert f"chdir = {install_dir}\n" in vassal
    assert f"virtualenv = {install_dir / 'venv'}\n" in vassal
    assert f"socket = {install_dir / 'sfs.wsgi'}\n" in vassal
    assert "chmod-socket = 660\n" in vassal
    assert "processes = 4\n" in vassal
    assert "mount = /=fileserver.web:app\n" in vassal
    assert f"logto = {install_dir / 'sfs.log'}\n" in vassal


def test_configure_uwsgi(mocker: MockerFixture, app_settings):
    mock_write = mocker.patch(f"{MODULE}.write_file_elevated")
    mock_run_elevated_command = mocker.patch(f"{MODULE}.run_elevated_command")

    configure_uwsgi(app_settings)

    assert mock_write.call_args.args[0] == "/etc/uwsgi-emperor/vassals/sfs.ini"
    assert mock_write.call_args.args[1].startswith("[uwsgi]\n")
    assert mock_run_elevated_command.call_args.args[0] == [
        "chown",
        "alice:www-data",
        "/etc/uwsgi-emperor/vassals/sfs.ini",
    ]


def test_configure_uwsgi_unknown_placeholder(mocker: MockerFixture, install_dir, mock_logger):
    settings = AppSettings(
        domain="files.example.org",
        pg={"db_user": "alice"},
        fileserver={"install_dir": install_dir},
        uwsgi={"vassal_template": "[uwsgi]\nharakiri = {harakiri}\n"},
    )
    mock_write = mocker.patch(f"{MODULE}.write_file_elevated")

    with pytest.raises(KeyError):
        configure_uwsgi(settings, mock_logger)

    mock_write.assert_not_called()
    assert "harakiri" in mock_logger.error.call_args.args[0]
