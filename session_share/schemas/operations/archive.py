"""
Archive operation schemas.

Models for session file collection, archive creation and archive listing.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from session_share.base_model import StrictModel
from session_share.schemas.operations.resolve import PathResolution
from session_share.types import ArchiveFormat, RecordKind

# ==============================================================================
# Collection
# ==============================================================================


class SessionFile(StrictModel):
    """One file belonging to a session, addressed relative to the data dir."""

    relative_path: str  # POSIX-style, e.g. 'storage/message/ses_1/msg_1.json'
    absolute_path: Path
    kind: RecordKind


class CollectedSession(StrictModel):
    """Everything FileCollector found for a session."""

    session_id: str
    project_id: str
    title: str
    directory: str
    files: Sequence[SessionFile]

    def count(self, kind: RecordKind) -> int:
        """Number of collected files of one kind."""
        return sum(1 for f in self.files if f.kind == kind)

    @property
    def message_count(self) -> int:
        return self.count('message')

    @property
    def part_count(self) -> int:
        return self.count('part')

    @property
    def snapshot_count(self) -> int:
        return self.count('snapshot')


# ==============================================================================
# Archive Metadata (CLI / MCP Tool Response)
# ==============================================================================


class ArchiveMetadata(StrictModel):
    """
    Metadata about a created archive.

    Returned by create_session_archive MCP tool and the archive CLI command.
    """

    archive_id: str
    archive_path: str
    session_id: str
    title: str
    format: ArchiveFormat
    size_mb: float  # Size in megabytes, rounded to 2 decimal places
    archived_at: datetime
    file_count: int
    message_count: int
    part_count: int
    snapshot_count: int


class ArchiveSummary(StrictModel):
    """One entry of the archive-storage directory listing."""

    archive_id: str
    archive_path: str
    format: ArchiveFormat
    created: datetime  # File modification time
    size_mb: float


class ArchiveAnalysis(StrictModel):
    """What restoring an archive on this machine would need."""

    archive_id: str
    session_id: str
    title: str
    original_path: str
    project_name: str
    path_resolution: PathResolution
