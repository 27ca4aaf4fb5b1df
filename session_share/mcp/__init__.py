"""MCP server entry point for session_share."""

from __future__ import annotations

from session_share.mcp.server import main, server

__all__ = ['main', 'server']
