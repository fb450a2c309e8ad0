"""MCP server exposing the MoySklad JSON API 1.2 as agent tools."""

__version__ = "0.1.0"
