"""Command-line interface for session_share."""

from __future__ import annotations

from session_share.cli.main import app, main

__all__ = ['app', 'main']
