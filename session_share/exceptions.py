"""
Shared exceptions for session_share.

Domain-specific exceptions used across services. Lookup failures carry the
identifiers that *do* exist so callers can show them to the user.

Exception Hierarchy:
    SessionShareError (base)
    ├── SessionNotFoundError (session id absent from the record store)
    ├── ArchiveNotFoundError (archive id/path does not exist)
    ├── ShareNotFoundError (private share id/path does not exist)
    ├── ArchiveInvalidError (malformed or structurally incomplete archive)
    │   └── ArchiveExtractionError (codec failed to decompress)
    ├── ArchiveCreationError (codec failed to compress)
    ├── InvalidRemapTargetError (remap target is not a repository)
    ├── AmbiguousRepositoryError (several same-named repositories found)
    ├── RecordIOError (unexpected filesystem failure while copying)
    └── RecordCorruptError (record document that does not parse)
"""

from __future__ import annotations

from collections.abc import Sequence


def format_listing(heading: str, items: Sequence[str], limit: int = 10) -> str:
    """Render a bulleted listing for error messages (empty string for no items)."""
    if not items:
        return ''
    lines = '\n'.join(f'  - {item}' for item in items[:limit])
    if len(items) > limit:
        lines += f'\n  ... and {len(items) - limit} more'
    return f'\n\n{heading}:\n{lines}'


class SessionShareError(Exception):
    """Base exception for all session_share errors."""


class SessionNotFoundError(SessionShareError):
    """Raised when no session document with the given id exists."""

    def __init__(self, session_id: str, available: Sequence[str] = ()) -> None:
        self.session_id = session_id
        self.available = list(available)
        super().__init__(
            f'Session file not found for session ID: {session_id}'
            + format_listing('Available sessions', self.available)
        )


class ArchiveNotFoundError(SessionShareError):
    """Raised when an archive id or path does not resolve to a file."""

    def __init__(self, archive_ref: str, available: Sequence[str] = ()) -> None:
        self.archive_ref = archive_ref
        self.available = list(available)
        super().__init__(f'Archive not found: {archive_ref}' + format_listing('Available archives', self.available))


class ShareNotFoundError(SessionShareError):
    """Raised when a private share id or path does not resolve to a file."""

    def __init__(self, share_ref: str, available: Sequence[str] = ()) -> None:
        self.share_ref = share_ref
        self.available = list(available)
        super().__init__(f'Private share not found: {share_ref}' + format_listing('Available shares', self.available))


class ArchiveInvalidError(SessionShareError):
    """Raised when an archive is malformed or missing required records."""


class ArchiveExtractionError(ArchiveInvalidError):
    """Raised when the archive codec fails to decompress an archive."""

    def __init__(self, archive_path: str, output: str) -> None:
        self.archive_path = archive_path
        self.output = output
        super().__init__(f'Failed to extract archive {archive_path}: {output.strip() or "no diagnostic output"}')


class ArchiveCreationError(SessionShareError):
    """Raised when the archive codec fails to compress a staging directory."""

    def __init__(self, archive_path: str, output: str) -> None:
        self.archive_path = archive_path
        self.output = output
        super().__init__(f'Failed to create archive {archive_path}: {output.strip() or "no diagnostic output"}')


class InvalidRemapTargetError(SessionShareError):
    """Raised when a remap target is not an existing version-controlled directory."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f'Invalid remap path "{path}": {reason}')


class AmbiguousRepositoryError(SessionShareError):
    """Raised when several repositories share the project name and none was chosen."""

    def __init__(self, project_name: str, candidates: Sequence[str]) -> None:
        self.project_name = project_name
        self.candidates = list(candidates)
        super().__init__(
            f'Multiple possible locations for "{project_name}" were found.'
            + format_listing('Candidates', self.candidates)
            + '\n\nPass an explicit project path to choose one.'
        )


class RecordIOError(SessionShareError):
    """Raised when a record file cannot be read, copied or written."""

    def __init__(self, path: str, cause: OSError) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f'I/O error on {path}: {cause.strerror or cause}')


class RecordCorruptError(SessionShareError):
    """Raised when a record document in the store is not valid JSON or fails validation."""

    def __init__(self, path: str, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f'Corrupt record {path}: {detail}')
