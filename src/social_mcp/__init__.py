"""Social MCP -- OAuth 2.1 protected MCP server with social login hand-off."""

__version__ = "1.0.0"
