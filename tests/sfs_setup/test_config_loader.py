import pytest

from sfs_setup.config_loader import (
    _deep_update,
    load_app_settings,
    resolve_config_file_path,
)


@pytest.fixture(autouse=True)
def work_in_tmp_path(tmp_path, monkeypatch):
    """No config.yaml from the developer's checkout leaks into these tests."""
    monkeypatch.chdir(tmp_path)


def test_deep_update_merges_nested_and_ignores_none():
    source = {"pg": {"database": "a", "db_user": "alice"}, "domain": "x.org"}

    result = _deep_update(source, {"pg": {"database": "b"}, "domain": None})

    assert result == {"pg": {"database": "b", "db_user": "alice"}, "domain": "x.org"}


def test_resolve_config_file_path(monkeypatch):
    assert str(resolve_config_file_path()) == "config.yaml"
    monkeypatch.setenv("SFS_CONFIG_FILE", "/etc/sfs/setup.yaml")
    assert str(resolve_config_file_path()) == "/etc/sfs/setup.yaml"
    assert str(resolve_config_file_path("other.yaml")) == "other.yaml"


def test_load_without_config_file_uses_defaults():
    settings = load_app_settings("files.example.org")

    assert settings.domain == "files.example.org"
    assert settings.pg.database == "sessionfiles"
    assert settings.log_file == "/var/log/session_fileserver_setup.log"


def test_yaml_overrides_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("SFS_PG__DATABASE", "from_env")
    monkeypatch.setenv("SFS_NGINX__CLIENT_MAX_BODY_SIZE", "20M")
    (tmp_path / "config.yaml").write_text(
        "pg:\n  database: from_yaml\nuwsgi:\n  processes: 2\n", encoding="utf-8"
    )

    settings = load_app_settings("files.example.org")

    assert settings.pg.database == "from_yaml"
    assert settings.uwsgi.processes == 2
    assert settings.nginx.client_max_body_size == "20M"


def test_yaml_and_environment_merge_within_a_group(tmp_path, monkeypatch):
    monkeypatch.setenv("SFS_PG__DB_USER", "bob")
    (tmp_path / "config.yaml").write_text("pg:\n  database: files\n", encoding="utf-8")

    settings = load_app_settings("files.example.org")

    assert settings.pg.db_user == "bob"
    assert settings.pg.database == "files"


def test_cli_domain_overrides_yaml(tmp_path):
    (tmp_path / "config.yaml").write_text("domain: yaml.example.org\n", encoding="utf-8")

    settings = load_app_settings("cli.example.org")

    assert settings.domain == "cli.example.org"


def test_explicit_config_file(tmp_path):
    config_file = tmp_path / "custom.yaml"
    config_file.write_text("check_domain_dns: true\n", encoding="utf-8")

    settings = load_app_settings("files.example.org", config_file_path=str(config_file))

    assert settings.check_domain_dns is True


def test_invalid_yaml_is_fatal(tmp_path):
    (tmp_path / "config.yaml").write_text("pg: [unclosed\n", encoding="utf-8")

    with pytest.raises(SystemExit):
        load_app_settings("files.example.org")


def test_non_mapping_yaml_is_fatal(tmp_path):
    (tmp_path / "config.yaml").write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(SystemExit):
        load_app_settings("files.example.org")


def test_invalid_values_are_fatal(tmp_path):
    (tmp_path / "config.yaml").write_text("uwsgi:\n  processes: 0\n", encoding="utf-8")

    with pytest.raises(SystemExit, match="Configuration error"):
        load_app_settings("files.example.org")


def test_missing_domain_is_fatal():
    with pytest.raises(SystemExit):
        load_app_settings(None)


def test_unparsable_environment_value_is_fatal(monkeypatch):
    monkeypatch.setenv("SFS_APT__PACKAGES", "ufw nginx")

    with pytest.raises(SystemExit, match="Configuration error"):
        load_app_settings("files.example.org")
