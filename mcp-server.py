#!/usr/bin/env -S uv run
"""
Session Share MCP Server launcher.

Setup:
    Register with an MCP client as a stdio server:
        uv run "$REPO_ROOT/mcp-server.py"
"""

from __future__ import annotations

from session_share.mcp.server import main

if __name__ == '__main__':
    main()
