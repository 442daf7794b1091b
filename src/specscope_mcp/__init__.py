"""SpecScope MCP - client-side style specification search and comparison."""

__version__ = "0.3.0"
