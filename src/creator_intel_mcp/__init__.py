"""Creator content intelligence and quality gate MCP server."""

__version__ = "0.1.0"
