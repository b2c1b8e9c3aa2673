# tests/conftest.py
import logging
import os
from unittest.mock import MagicMock

import pytest

from sfs_setup.config_models import AppSettings


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keeps the developer's SFS_* variables and sudo context out of the tests."""
    for name in list(os.environ):
        if name.startswith("SFS_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SUDO_USER", "alice")
    monkeypatch.setenv("USER", "root")


@pytest.fixture
def install_dir(tmp_path):
    return tmp_path / "session-file-server"


@pytest.fixture
def app_settings(install_dir):
    """Settings for a run by 'alice' with the checkout under tmp_path."""
    return AppSettings(
        domain="files.example.org",
        pg={"db_user": "alice"},
        fileserver={"install_dir": install_dir},
    )


@pytest.fixture
def mock_logger():
    """Fixture to create a mock logger for testing."""
    return MagicMock(spec=logging.Logger)
