"""Repository layer - typed access to the opencode storage tree."""

from __future__ import annotations

from session_share.repositories.record_store import RecordStore, StoredSession

__all__ = ['RecordStore', 'StoredSession']
