# common/network_utils.py
# -*- coding: utf-8 -*-
"""
Network-related utility functions.
"""
import logging
import socket
from typing import List, Optional

import requests

from sfs_setup.config_models import AppSettings
from sfs_setup.exceptions import DomainCheckError

from .command_utils import log_setup_message

module_logger = logging.getLogger(__name__)

PUBLIC_IP_TIMEOUT_SECONDS = 10


def resolve_domain(domain: str) -> List[str]:
    """
    Returns the IPv4 addresses `domain` resolves to, in resolver order and
    without duplicates. An unresolvable name gives an empty list.
    """
    try:
        infos = socket.getaddrinfo(
            domain, None, socket.AF_INET, socket.SOCK_STREAM
        )
    except (socket.gaierror, UnicodeError):
        return []
    addresses: List[str] = []
    for info in infos:
        address = str(info[4][0])
        if address not in addresses:
            addresses.append(address)
    return addresses


def get_public_ip(
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> Optional[str]:
    """
    Asks an external service for this machine's public IP address.

    Returns:
        The address as a string, or None if the lookup failed or was empty.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    try:
        response = requests.get(
            app_settings.public_ip_url, timeout=PUBLIC_IP_TIMEOUT_SECONDS
        )
        response.raise_for_status()
    except requests.RequestException as e:
        log_setup_message(
            f"{symbols.get('warning', '!')} Public IP lookup via {app_settings.public_ip_url} failed: {e}",
            "warning",
            logger_to_use,
            app_settings,
        )
        return None
    address = response.text.strip()
    return address or None


def check_domain(
    domain: str,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> str:
    """
    Verifies that `domain` points at this machine.

    Resolves the domain, looks up the machine's public IP and compares them.

    Returns:
        str: The machine's public IP address.

    Raises:
        DomainCheckError: The domain does not resolve, the public IP cannot be
            determined, or the domain resolves elsewhere.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    log_setup_message(
        f"{symbols.get('step', '➡️')} Checking domain resolution for {domain}",
        "info",
        logger_to_use,
        app_settings,
    )

    resolved = resolve_domain(domain)
    if not resolved:
        raise DomainCheckError(f"Failed to resolve domain {domain}")

    machine_ip = get_public_ip(app_settings, current_logger=logger_to_use)
    if not machine_ip:
        raise DomainCheckError("Failed to retrieve machine IP")

    if machine_ip not in resolved:
        raise DomainCheckError(
            f"The domain {domain} resolves to {', '.join(resolved)}, "
            f"but machine IP is {machine_ip}"
        )

    log_setup_message(
        f"{symbols.get('success', '✅')} Domain {domain} resolves correctly to {machine_ip}",
        "success",
        logger_to_use,
        app_settings,
    )
    return machine_ip
