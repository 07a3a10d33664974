"""planflow - structured, versioned plans exposed over MCP and REST."""

__version__ = "0.1.0"
