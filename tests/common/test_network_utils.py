import socket
from unittest.mock import MagicMock

import pytest
import requests
from pytest_mock import MockerFixture

from common.network_utils import check_domain, get_public_ip, resolve_domain
from sfs_setup.exceptions import DomainCheckError


def _addrinfo(address):
    return (socket.AF_INET, socket.SOCK_STREAM, 6, "", (address, 0))


def test_resolve_domain_deduplicates(mocker: MockerFixture):
    mocker.patch(
        "common.network_utils.socket.getaddrinfo",
        return_value=[_addrinfo("203.0.113.5"), _addrinfo("203.0.113.5"), _addrinfo("203.0.113.6")],
    )

    assert resolve_domain("files.example.org") == ["203.0.113.5", "203.0.113.6"]


def test_resolve_domain_unknown_name(mocker: MockerFixture):
    mocker.patch(
        "common.network_utils.socket.getaddrinfo",
        side_effect=socket.gaierror(-2, "Name or service not known"),
    )

    assert resolve_domain("nope.invalid") == []


def test_get_public_ip(mocker: MockerFixture, app_settings):
    mock_get = mocker.patch(
        "common.network_utils.requests.get",
        return_value=MagicMock(text="203.0.113.5\n"),
    )

    assert get_public_ip(app_settings) == "203.0.113.5"
    mock_get.assert_called_once_with("https://ipinfo.io/ip", timeout=10)


def test_get_public_ip_request_error(mocker: MockerFixture, app_settings, mock_logger):
    mocker.patch(
        "common.network_utils.requests.get",
        side_effect=requests.ConnectionError("offline"),
    )

    assert get_public_ip(app_settings, mock_logger) is None
    mock_logger.warning.assert_called_once()


def test_check_domain_match(mocker: MockerFixture, app_settings):
    mocker.patch("common.network_utils.resolve_domain", return_value=["203.0.113.5"])
    mocker.patch("common.network_utils.get_public_ip", return_value="203.0.113.5")

    assert check_domain("files.example.org", app_settings) == "203.0.113.5"


def test_check_domain_mismatch(mocker: MockerFixture, app_settings):
    mocker.patch("common.network_utils.resolve_domain", return_value=["198.51.100.7"])
    mocker.patch("common.network_utils.get_public_ip", return_value="203.0.113.5")

    with pytest.raises(DomainCheckError, match="but machine IP is 203.0.113.5"):
        check_domain("files.example.org", app_settings)


def test_check_domain_unresolved(mocker: MockerFixture, app_settings):
    mocker.patch("common.network_utils.resolve_domain", return_value=[])
    mock_ip = mocker.patch("common.network_utils.get_public_ip")

    with pytest.raises(DomainCheckError, match="Failed to resolve domain"):
        check_domain("files.example.org", app_settings)
    mock_ip.assert_not_called()


def test_check_domain_without_public_ip(mocker: MockerFixture, app_settings):
    mocker.patch("common.network_utils.resolve_domain", return_value=["203.0.113.5"])
    mocker.patch("common.network_utils.get_public_ip", return_value=None)

    with pytest.raises(DomainCheckError, match="Failed to retrieve machine IP"):
        check_domain("files.example.org", app_settings)
