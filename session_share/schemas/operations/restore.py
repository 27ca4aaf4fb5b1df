"""
Restore operation schemas.

Models for archive extraction results.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Literal

from session_share.base_model import StrictModel
from session_share.schemas.operations.archive import ArchiveAnalysis


class ExtractResult(StrictModel):
    """Result of merging an archive into the record store.

    ``file_count`` counts every file of the archive, whether it was newly
    written or already present at the destination. ``new_file_count`` is the
    subset that was actually written.
    """

    session_id: str
    session_title: str
    file_count: int
    new_file_count: int
    path_remapped: bool
    original_path: str | None = None
    new_path: str | None = None


class IngestOutcome(StrictModel):
    """Result of the interactive ingest flow.

    Either the archive was extracted (``status='ingested'``, ``result`` set)
    or more input is needed (``status='needs_input'``, ``message`` explains
    what to provide and ``candidates`` lists repositories to choose from).
    """

    status: Literal['ingested', 'needs_input']
    analysis: ArchiveAnalysis
    result: ExtractResult | None = None
    candidates: Sequence[str] = ()
    message: str
