"""MCP gateway exposing CRM tasks, leads and contacts to AI agents."""

__version__ = "1.0.0"
