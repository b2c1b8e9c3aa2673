# sfs_setup/exceptions.py
# -*- coding: utf-8 -*-
"""Exceptions raised by the setup stages."""


class ProvisioningError(Exception):
    """Base class for setup failures that are not plain command failures."""


class ResourceExistsError(ProvisioningError):
    """A database role or database that must be created already exists."""

    def __init__(self, kind: str, name: str, hint: str = ""):
        self.kind = kind
        self.name = name
        message = f"{kind} '{name}' already exists."
        if hint:
            message = f"{message} {hint}"
        super().__init__(message)


class PatchPatternNotFoundError(ProvisioningError):
    """A literal source patch found neither its pattern nor its replacement."""

    def __init__(self, file_path: str, pattern: str):
        self.file_path = file_path
        self.pattern = pattern
        super().__init__(f"Pattern not found in {file_path}: {pattern!r}")


class DomainCheckError(ProvisioningError):
    """The domain does not resolve to this machine's public address."""


class UsageError(ProvisioningError):
    """The command line is invalid."""
