# common/file_utils.py
# -*- coding: utf-8 -*-
"""
File system utility functions: backups, privileged writes, symlinks and
verified literal patches.
"""

import datetime
import logging
import subprocess
from pathlib import Path
from typing import Optional, Union

from sfs_setup.config_models import AppSettings
from sfs_setup.exceptions import PatchPatternNotFoundError

from .command_utils import get_symbols, log_setup_message, run_elevated_command

module_logger = logging.getLogger(__name__)

PATCH_APPLIED = "applied"
PATCH_ALREADY_APPLIED = "already_applied"
PATCH_NOT_FOUND = "not_found"


def backup_file(
    file_path: str,
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Backup a specified file to a timestamped copy next to it.

    Parameters:
        file_path (str): The path of the file to be backed up.
        app_settings (Optional[AppSettings]): Settings of the current run.
        current_logger (Optional[logging.Logger]): Logger to use.

    Returns:
        bool: True if the backup was made or no backup was needed (the file does
            not exist). False if an error occurred during the backup.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    try:
        run_elevated_command(
            ["test", "-f", file_path],
            app_settings,
            check=True,
            capture_output=True,
            current_logger=logger_to_use,
        )
    except subprocess.CalledProcessError:
        log_setup_message(
            f"{symbols.get('info', 'ℹ️')} File {file_path} does not exist or is not a regular file. No backup needed.",
            "info",
            logger_to_use,
            app_settings,
        )
        return True
    except Exception as e:
        log_setup_message(
            f"{symbols.get('error', '❌')} Error pre-checking file existence for backup of {file_path}: {e}",
            "error",
            logger_to_use,
            app_settings,
        )
        return False

    timestamp = datetime.datetime.now().strftime("%Y%m%d-%H%M%S")
    backup_path = f"{file_path}.bak.{timestamp}"
    try:
        run_elevated_command(
            ["cp", "-a", file_path, backup_path],
            app_settings,
            current_logger=logger_to_use,
        )
        log_setup_message(
            f"{symbols.get('success', '✅')} Backed up {file_path} to {backup_path}",
            "success",
            logger_to_use,
            app_settings,
        )
        return True
    except Exception as e:
        log_setup_message(
            f"{symbols.get('error', '❌')} Failed to backup {file_path} to {backup_path}: {e}",
            "error",
            logger_to_use,
            app_settings,
        )
        return False


def ensure_secure_file(
    file_path: str,
    app_settings: Optional[AppSettings],
    mode: str = "600",
    owner: str = "root:root",
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Creates `file_path` if missing and restricts its permissions and ownership.

    Raises:
        subprocess.CalledProcessError: If touch, chmod or chown fails.
    """
    logger_to_use = current_logger if current_logger else module_logger
    for command in (
        ["touch", file_path],
        ["chmod", mode, file_path],
        ["chown", owner, file_path],
    ):
        run_elevated_command(
            command, app_settings, current_logger=logger_to_use
        )


def write_file_elevated(
    file_path: str,
    content: str,
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """Overwrites `file_path` with `content` using a privileged `tee`."""
    logger_to_use = current_logger if current_logger else module_logger
    run_elevated_command(
        ["tee", file_path],
        app_settings,
        cmd_input=content,
        capture_output=True,
        log_output=False,
        current_logger=logger_to_use,
    )


def ensure_symlink(
    target_path: str,
    link_path: str,
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Points `link_path` at `target_path`. Replaces an existing link, so running it
    twice is harmless.
    """
    logger_to_use = current_logger if current_logger else module_logger
    run_elevated_command(
        ["ln", "-sfn", target_path, link_path],
        app_settings,
        current_logger=logger_to_use,
    )


def replace_literal_in_file(
    file_path: Union[str, Path],
    pattern: str,
    replacement: str,
    app_settings: Optional[AppSettings],
    strict: bool = True,
    current_logger: Optional[logging.Logger] = None,
) -> str:
    """
    Replaces every occurrence of the literal `pattern` in a text file.

    The file is only rewritten when the pattern is found outside text that is
    already patched. When only patched text is left the patch is considered
    applied and nothing is written, so a patch can be re-run safely.

    Args:
        file_path: File to patch.
        pattern: Exact text to look for. No regular expressions.
        replacement: Text that replaces each occurrence.
        app_settings: Settings of the current run.
        strict: Raise when neither pattern nor replacement is present. When False
            the miss is logged as a warning and the file is left untouched.
        current_logger: Logger to use.

    Returns:
        str: PATCH_APPLIED, PATCH_ALREADY_APPLIED or (non-strict only)
            PATCH_NOT_FOUND.

    Raises:
        FileNotFoundError: The file does not exist.
        PatchPatternNotFoundError: Strict mode and the pattern was not found.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    path = Path(file_path)

    with open(path, "r", encoding="utf-8", newline="") as f:
        content = f.read()

    # Pattern occurrences inside already-patched text are not counted.
    unpatched_segments = content.split(replacement) if replacement else [content]
    occurrences = sum(segment.count(pattern) for segment in unpatched_segments)

    if not occurrences:
        if len(unpatched_segments) > 1:
            log_setup_message(
                f"{symbols.get('info', 'ℹ️')} {path} already contains the patched text. Skipping.",
                "info",
                logger_to_use,
                app_settings,
            )
            return PATCH_ALREADY_APPLIED
        if strict:
            log_setup_message(
                f"{symbols.get('error', '❌')} Pattern not found in {path}: {pattern!r}",
                "error",
                logger_to_use,
                app_settings,
            )
            raise PatchPatternNotFoundError(str(path), pattern)
        log_setup_message(
            f"{symbols.get('warning', '⚠️')} Pattern not found in {path}: {pattern!r}. File left unchanged.",
            "warning",
            logger_to_use,
            app_settings,
        )
        return PATCH_NOT_FOUND

    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(
            replacement.join(
                segment.replace(pattern, replacement)
                for segment in unpatched_segments
            )
        )
    log_setup_message(
        f"{symbols.get('success', '✅')} Patched {path} ({occurrences} occurrence(s)).",
        "success",
        logger_to_use,
        app_settings,
    )
    return PATCH_APPLIED
