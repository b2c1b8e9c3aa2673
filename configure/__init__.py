"""Configurators for the services behind session-file-server."""
