"""Configuration for session_share entry points."""

from __future__ import annotations

from session_share.config.base import ShareSettings, get_settings, lazy_settings

__all__ = ['ShareSettings', 'get_settings', 'lazy_settings', 'settings']

# Module-level singleton (lazy-loaded). Only entry points (CLI, MCP server)
# read this; services receive a ShareSettings instance explicitly.
settings = lazy_settings(ShareSettings)
