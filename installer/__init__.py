"""System package installation for session-file-server."""
