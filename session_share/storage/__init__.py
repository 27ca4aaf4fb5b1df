"""Storage for archive files."""

from session_share.storage.local import LocalArchiveStorage

__all__ = ['LocalArchiveStorage']
