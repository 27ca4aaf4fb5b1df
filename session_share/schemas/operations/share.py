"""
Private share schemas.

A private share is a single JSON document holding a session's records in
the same shape the host uses for its public share sync:

    {"id": ..., "sessionID": ..., "createdAt": <ms>,
     "data": [{"type": "session", "data": {...}},
              {"type": "message", "data": {...}},
              {"type": "part", "data": {...}},
              {"type": "session_diff", "data": [...]},
              {"type": "model", "data": [...]}]}
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Annotated, Any, Literal

import pydantic

from session_share.base_model import RecordModel, StrictModel
from session_share.schemas.operations.resolve import PathResolution

# ==============================================================================
# Document
# ==============================================================================


class ModelInfo(RecordModel):
    id: str
    provider_id: str = pydantic.Field(alias='providerID')
    name: str


class SessionEntry(RecordModel):
    type: Literal['session']
    data: dict[str, Any]


class MessageEntry(RecordModel):
    type: Literal['message']
    data: dict[str, Any]


class PartEntry(RecordModel):
    type: Literal['part']
    data: dict[str, Any]


class SessionDiffEntry(RecordModel):
    type: Literal['session_diff']
    data: list[dict[str, Any]]


class ModelEntry(RecordModel):
    type: Literal['model']
    data: list[ModelInfo]


ShareData = Annotated[
    SessionEntry | MessageEntry | PartEntry | SessionDiffEntry | ModelEntry,
    pydantic.Field(discriminator='type'),
]


class PrivateShareDocument(RecordModel):
    id: str
    session_id: str = pydantic.Field(alias='sessionID')
    created_at: int = pydantic.Field(alias='createdAt')
    data: list[ShareData]

    @property
    def session(self) -> SessionEntry | None:
        return next((e for e in self.data if isinstance(e, SessionEntry)), None)

    @property
    def messages(self) -> list[MessageEntry]:
        return [e for e in self.data if isinstance(e, MessageEntry)]

    @property
    def parts(self) -> list[PartEntry]:
        return [e for e in self.data if isinstance(e, PartEntry)]

    @property
    def session_diff(self) -> SessionDiffEntry | None:
        return next((e for e in self.data if isinstance(e, SessionDiffEntry)), None)


# ==============================================================================
# Results
# ==============================================================================


class ShareMetadata(StrictModel):
    share_id: str
    file_path: str
    session_id: str
    title: str
    message_count: int
    part_count: int
    diff_count: int


class ShareSummary(StrictModel):
    share_id: str
    title: str
    created: datetime | None  # None when the document could not be read
    message_count: int


class ShareAnalysis(StrictModel):
    share_id: str
    title: str
    original_path: str
    project_name: str
    path_resolution: PathResolution


class ShareIngestResult(StrictModel):
    session_id: str
    session_title: str
    message_count: int
    part_count: int
    diff_count: int
    path_remapped: bool
    original_path: str | None = None
    new_path: str | None = None


class ShareIngestOutcome(StrictModel):
    """Result of the interactive share ingest flow.

    Mirrors the archive IngestOutcome: ``status='ingested'`` with ``result``
    set, or ``status='needs_input'`` with nothing written to the store.
    """

    status: Literal['ingested', 'needs_input']
    analysis: ShareAnalysis
    result: ShareIngestResult | None = None
    candidates: Sequence[str] = ()
    message: str
