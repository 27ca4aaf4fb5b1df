"""Record store - typed access to opencode's on-disk JSON records.

The store is a directory (the opencode data dir, or a staging directory
that mirrors it) holding individually addressed JSON documents:

    storage/project/<projectID>.json
    storage/session/<projectID>/<sessionID>.json
    storage/message/<sessionID>/<messageID>.json
    storage/part/<messageID>/<partID>.json
    storage/session_diff/<sessionID>.json
    snapshot/<projectID>/**                      (opaque files)

This layout is the contract with the host's own reader/writer. The collector
and the extractor both go through this class so they agree on it.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import pydantic

from session_share.exceptions import RecordCorruptError
from session_share.schemas.records import (
    DiffEntry,
    MessageRecord,
    ProjectRecord,
    SessionRecord,
    dump_diff_set,
    dump_record,
)
from session_share.types import JsonValue

STORAGE = 'storage'
SNAPSHOT = 'snapshot'

RecordT = TypeVar('RecordT', bound=pydantic.BaseModel)


@dataclass(frozen=True)
class StoredSession:
    """A session document found in the store (for listings)."""

    session_id: str
    project_id: str
    title: str
    directory: str
    updated: int | None
    path: Path


class RecordStore:
    """Reads and writes records under one data directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def __repr__(self) -> str:
        return f'RecordStore({str(self.root)!r})'

    # ==========================================================================
    # Layout
    # ==========================================================================

    @property
    def storage_dir(self) -> Path:
        return self.root / STORAGE

    @property
    def session_index_dir(self) -> Path:
        return self.storage_dir / 'session'

    @property
    def snapshot_root(self) -> Path:
        return self.root / SNAPSHOT

    def session_path(self, project_id: str, session_id: str) -> Path:
        return self.session_index_dir / project_id / f'{session_id}.json'

    def message_dir(self, session_id: str) -> Path:
        return self.storage_dir / 'message' / session_id

    def part_dir(self, message_id: str) -> Path:
        return self.storage_dir / 'part' / message_id

    def session_diff_path(self, session_id: str) -> Path:
        return self.storage_dir / 'session_diff' / f'{session_id}.json'

    def project_path(self, project_id: str) -> Path:
        return self.storage_dir / 'project' / f'{project_id}.json'

    def snapshot_dir(self, project_id: str) -> Path:
        return self.snapshot_root / project_id

    def relative(self, path: Path) -> str:
        """Store-relative POSIX path, used verbatim for staging and merging."""
        return path.relative_to(self.root).as_posix()

    def resolve(self, relative_path: str) -> Path:
        """Inverse of relative()."""
        return self.root.joinpath(*relative_path.split('/'))

    # ==========================================================================
    # Discovery
    # ==========================================================================

    def find_session_file(self, session_id: str) -> tuple[Path, str] | None:
        """
        Find a session document by id across all project directories.

        The project id is not known up front, so each project directory of the
        session index is checked for ``<session_id>.json``.

        Returns:
            (path, project_id) or None if no project holds the session
        """
        if not self.session_index_dir.is_dir():
            return None

        for project_dir in sorted(self.session_index_dir.iterdir()):
            candidate = project_dir / f'{session_id}.json'
            if candidate.is_file():
                return candidate, project_dir.name
        return None

    def iter_session_files(self) -> Iterator[Path]:
        """Every ``storage/session/<projectID>/*.json`` file, in name order."""
        if not self.session_index_dir.is_dir():
            return
        for project_dir in sorted(self.session_index_dir.iterdir()):
            if not project_dir.is_dir():
                continue
            yield from sorted(p for p in project_dir.glob('*.json') if p.is_file())

    def json_files(self, directory: Path) -> list[Path]:
        """``*.json`` files directly inside ``directory`` (empty if it doesn't exist)."""
        if not directory.is_dir():
            return []
        return sorted(p for p in directory.glob('*.json') if p.is_file())

    def iter_files(self, directory: Path) -> Iterator[Path]:
        """Every regular file below ``directory``, recursively, in a stable order."""
        if not directory.is_dir():
            return
        for path in sorted(directory.rglob('*')):
            if path.is_file():
                yield path

    # ==========================================================================
    # Reading
    # ==========================================================================

    def read_json(self, path: Path) -> JsonValue:
        """
        Parse one JSON document.

        Raises:
            RecordCorruptError: If the file is not valid UTF-8 JSON
        """
        try:
            with open(path, encoding='utf-8') as f:
                return json.load(f)
        except ValueError as e:
            raise RecordCorruptError(self._display(path), str(e)) from e

    def read_session(self, path: Path) -> SessionRecord:
        return self._validate(SessionRecord, path)

    def read_message(self, path: Path) -> MessageRecord:
        return self._validate(MessageRecord, path)

    def read_project(self, project_id: str) -> ProjectRecord | None:
        path = self.project_path(project_id)
        if not path.is_file():
            return None
        return self._validate(ProjectRecord, path)

    def list_sessions(self) -> list[StoredSession]:
        """
        All session documents in the store, most recently updated first.

        Unreadable documents are listed with an 'Unknown' title rather than
        hiding them, since this listing is shown to help pick a session id.
        """
        sessions = []
        for path in self.iter_session_files():
            try:
                record = self.read_session(path)
            except (OSError, RecordCorruptError):
                sessions.append(StoredSession(path.stem, path.parent.name, 'Unknown', '', None, path))
                continue
            updated = record.time.updated if record.time else None
            sessions.append(
                StoredSession(record.id, record.project_id, record.title, record.directory, updated, path)
            )
        return sorted(sessions, key=lambda s: s.updated or 0, reverse=True)

    def _validate(self, model: type[RecordT], path: Path) -> RecordT:
        try:
            return model.model_validate(self.read_json(path))
        except pydantic.ValidationError as e:
            raise RecordCorruptError(self._display(path), str(e)) from e

    def _display(self, path: Path) -> str:
        return self.relative(path) if path.is_relative_to(self.root) else str(path)

    # ==========================================================================
    # Writing
    # ==========================================================================

    def write_json(self, path: Path, data: Any) -> None:
        """Write a JSON document (2-space indent, like the host), creating parents."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    def write_project_if_absent(self, project: ProjectRecord) -> bool:
        """Write a project document unless one exists. Returns True if written."""
        path = self.project_path(project.id)
        if path.exists():
            return False
        self.write_json(path, dump_record(project))
        return True

    def write_session(self, session: SessionRecord) -> Path:
        path = self.session_path(session.project_id, session.id)
        self.write_json(path, dump_record(session))
        return path

    def write_message(self, session_id: str, message_id: str, data: dict[str, Any]) -> Path:
        path = self.message_dir(session_id) / f'{message_id}.json'
        self.write_json(path, data)
        return path

    def write_part(self, message_id: str, part_id: str, data: dict[str, Any]) -> Path:
        path = self.part_dir(message_id) / f'{part_id}.json'
        self.write_json(path, data)
        return path

    def write_session_diff(self, session_id: str, entries: Sequence[DiffEntry]) -> Path:
        path = self.session_diff_path(session_id)
        self.write_json(path, dump_diff_set(entries))
        return path
