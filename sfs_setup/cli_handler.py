# sfs_setup/cli_handler.py
# -*- coding: utf-8 -*-
"""
Handles Command Line Interface (CLI) interactions for the file server setup.
"""

import argparse
import logging
from pathlib import Path
from typing import List, NoReturn, Optional

from common.command_utils import get_symbols, log_setup_message
from sfs_setup.config_models import is_valid_domain_name
from sfs_setup.exceptions import UsageError

module_logger = logging.getLogger(__name__)

PROG_NAME = "install.py"
USAGE = f"{PROG_NAME} --domain <domain_name>"


class StrictArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises UsageError instead of printing and exiting with 2."""

    def error(self, message: str) -> NoReturn:
        raise UsageError(message)


def build_arg_parser() -> StrictArgumentParser:
    parser = StrictArgumentParser(
        prog=PROG_NAME,
        usage=USAGE,
        description="Provision a session-file-server behind uWSGI and Nginx.",
        add_help=False,
        allow_abbrev=False,
    )
    parser.add_argument(
        "-d",
        "--domain",
        dest="domain",
        default=None,
        help="Public domain name the file server is reached under.",
    )
    return parser


def parse_domain_argument(argv: Optional[List[str]] = None) -> str:
    """
    Parses the command line and returns the validated domain.

    Raises:
        UsageError: Unknown argument, missing or malformed domain.
    """
    parser = build_arg_parser()
    parsed_args, unknown = parser.parse_known_args(argv)
    if unknown:
        raise UsageError(f"Unknown argument: {unknown[0]}")
    if not parsed_args.domain:
        raise UsageError(f"Domain name is required. Usage: {USAGE}")
    domain = parsed_args.domain.strip()
    if not is_valid_domain_name(domain):
        raise UsageError(f"Invalid domain name: '{parsed_args.domain}'")
    return domain


def display_banner(
    banner_path: Path, current_logger: Optional[logging.Logger] = None
) -> bool:
    """
    Prints the ASCII art banner if present.

    Returns:
        bool: True if the banner was shown.
    """
    logger_to_use = current_logger if current_logger else module_logger
    if not banner_path.is_file():
        log_setup_message(
            f"{get_symbols(None).get('warning', '⚠️')} {banner_path.name} not found, skipping ASCII art display.",
            "warning",
            logger_to_use,
        )
        return False
    print(banner_path.read_text(encoding="utf-8"))
    return True
