"""Command-line interface for mcp-pm.

Provides commands for running the API server, checking configuration, and
maintaining the session store.
"""

from .main import cli, main

__all__ = ["cli", "main"]
