"""mcp-pm: GitHub App session and credential service for MCP project creation."""

__version__ = "0.1.0"
