#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Logging setup for the installer.

Every record is written as ``[YYYY-mm-dd HH:MM:SS] [LEVEL] message`` to the
console and, once the run is known to be privileged, to a persistent log file.
Records are also forwarded to the system logger under a fixed tag.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import List, Optional

module_logger = logging.getLogger(__name__)

LOG_RECORD_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
SYSLOG_RECORD_FORMAT = "{tag}: [%(levelname)s] %(message)s"
SYSLOG_ADDRESS_DEFAULT = "/dev/log"


def build_syslog_handler(
    tag: str, address: str = SYSLOG_ADDRESS_DEFAULT
) -> Optional[logging.Handler]:
    """
    Creates a handler forwarding records to the local syslog socket.

    Returns None when no syslog socket is available (e.g. inside a container).
    """
    if not os.path.exists(address):
        return None
    try:
        handler = logging.handlers.SysLogHandler(address=address)
    except OSError:
        return None
    handler.setFormatter(
        logging.Formatter(SYSLOG_RECORD_FORMAT.format(tag=tag))
    )
    return handler


def setup_logging(
    log_level: int = logging.INFO,
    log_file: Optional[str] = None,
    log_to_console: bool = True,
    syslog_tag: Optional[str] = None,
    syslog_address: str = SYSLOG_ADDRESS_DEFAULT,
) -> None:
    """
    Configures the root logger for an installer run.

    Existing root handlers are replaced, so this can be called once with console
    output only (before arguments are parsed) and again with the log file and
    syslog once the run is known to be privileged.

    Parameters:
    log_level: int
        The logging level to configure. Defaults to logging.INFO.
    log_file: Optional[str]
        Log file to append to. The file must already exist with the intended
        permissions (see common.file_utils.ensure_secure_file).
    log_to_console: bool
        Whether to log to stdout.
    syslog_tag: Optional[str]
        When given, records are also sent to syslog with this tag.
    syslog_address: str
        Path of the syslog socket.

    Raises:
    OSError
        If the log file cannot be opened for appending.
    """
    formatter = logging.Formatter(
        fmt=LOG_RECORD_FORMAT, datefmt=LOG_DATE_FORMAT
    )
    handlers: List[logging.Handler] = []

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    if log_file:
        file_handler = logging.FileHandler(Path(log_file), mode="a")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    syslog_missing = False
    if syslog_tag:
        syslog_handler = build_syslog_handler(syslog_tag, syslog_address)
        if syslog_handler is None:
            syslog_missing = True
        else:
            handlers.append(syslog_handler)

    if not handlers:  # pragma: no cover
        handlers.append(logging.StreamHandler(sys.stdout))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    for handler in handlers:
        root_logger.addHandler(handler)

    if syslog_missing:
        module_logger.warning(
            f"Syslog socket {syslog_address} not available. Logging to file and console only."
        )
    module_logger.debug(
        f"Logging configured. Level: {logging.getLevelName(log_level)}. "
        f"File: {log_file or 'none'}. Syslog tag: {syslog_tag or 'none'}."
    )
