"""
Record schemas for the opencode storage tree.

Each record is one JSON document addressed by {kind, owner id, record id}:

    storage/project/<projectID>.json
    storage/session/<projectID>/<sessionID>.json
    storage/message/<sessionID>/<messageID>.json
    storage/part/<messageID>/<partID>.json
    storage/session_diff/<sessionID>.json       (a JSON list)
    snapshot/<projectID>/...                    (opaque, not JSON)

Only the fields the migration code reads are typed. Everything else is kept
as extra data so records round-trip unchanged.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Literal

import pydantic

from session_share.base_model import RecordModel


class Timestamps(RecordModel):
    """Epoch-millisecond timestamps."""

    created: int
    updated: int | None = None
    completed: int | None = None


class ProjectRecord(RecordModel):
    """A working directory known to the host."""

    id: str
    worktree: str
    vcs: str | None = None
    time: Timestamps | None = None


class SessionSummaryStats(RecordModel):
    additions: int = 0
    deletions: int = 0
    files: int = 0


class SessionRecord(RecordModel):
    """Root session document. ``directory`` is the path subject to remapping."""

    id: str
    project_id: str = pydantic.Field(alias='projectID')
    directory: str = ''
    title: str = ''
    version: str | None = None
    time: Timestamps | None = None
    summary: SessionSummaryStats | None = None


class ModelRef(RecordModel):
    provider_id: str = pydantic.Field(alias='providerID')
    model_id: str = pydantic.Field(alias='modelID')


class MessageRecord(RecordModel):
    id: str
    session_id: str = pydantic.Field(alias='sessionID')
    role: Literal['user', 'assistant']
    time: Timestamps | None = None
    model: ModelRef | None = None
    model_id: str | None = pydantic.Field(default=None, alias='modelID')
    provider_id: str | None = pydantic.Field(default=None, alias='providerID')
    cost: float | None = None

    @property
    def created(self) -> int:
        return self.time.created if self.time else 0


class PartRecord(RecordModel):
    id: str
    message_id: str = pydantic.Field(alias='messageID')
    session_id: str = pydantic.Field(alias='sessionID')
    type: str


class DiffEntry(RecordModel):
    """One file changed during the session."""

    file: str
    before: str = ''
    after: str = ''
    additions: int = 0
    deletions: int = 0


# A session_diff document is a bare JSON list
DiffSet = pydantic.TypeAdapter(list[DiffEntry])


def dump_record(record: RecordModel) -> dict[str, object]:
    """Serialize a record with the host's field names, keeping unknown fields."""
    return record.model_dump(mode='json', by_alias=True, exclude_unset=True)


def dump_diff_set(entries: Sequence[DiffEntry]) -> list[dict[str, object]]:
    return [dump_record(entry) for entry in entries]
