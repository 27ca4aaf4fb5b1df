"""Operation result schemas (returned by services, rendered by CLI and MCP)."""

from __future__ import annotations

from session_share.schemas.operations.archive import (
    ArchiveAnalysis,
    ArchiveMetadata,
    ArchiveSummary,
    CollectedSession,
    SessionFile,
)
from session_share.schemas.operations.resolve import PathResolution, RepoSearchResult, RepoValidation
from session_share.schemas.operations.restore import ExtractResult, IngestOutcome
from session_share.schemas.operations.share import (
    ShareAnalysis,
    ShareIngestOutcome,
    ShareIngestResult,
    ShareMetadata,
    ShareSummary,
)

__all__ = [
    'ArchiveAnalysis',
    'ArchiveMetadata',
    'ArchiveSummary',
    'CollectedSession',
    'ExtractResult',
    'IngestOutcome',
    'PathResolution',
    'RepoSearchResult',
    'RepoValidation',
    'SessionFile',
    'ShareAnalysis',
    'ShareIngestOutcome',
    'ShareIngestResult',
    'ShareMetadata',
    'ShareSummary',
]
