"""AI video generation → adaptive HLS pipeline, served over MCP."""

__version__ = "0.1.0"
