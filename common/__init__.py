"""Shared helpers: command execution, logging, files, database and network checks."""
