"""
Shared fixtures: a seeded record store, archive storage and an in-process codec.

Two machines are simulated inside one temporary directory. Machine A's store
lives under the fake home's data directory; machine B's store is a separate
root, so restores start from an empty destination.
"""

from __future__ import annotations

import base64
import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from session_share.exceptions import ArchiveExtractionError
from session_share.repositories.record_store import RecordStore
from session_share.services.archive import SessionArchiveService
from session_share.services.repo_resolver import RepoResolver
from session_share.services.restore import SessionRestoreService
from session_share.services.share import SessionShareService
from session_share.storage.local import LocalArchiveStorage
from session_share.types import ArchiveFormat

SESSION_ID = 'ses_abc'
PROJECT_ID = 'prj_1'
ORIGINAL_DIR = '/Users/alice/projects/repo'
FIXED_NOW = datetime(2025, 1, 15, 9, 30, tzinfo=timezone.utc)
CREATED_MS = 1736899200000  # 2025-01-15T00:00:00Z


class BundleCodec:
    """In-process codec: a JSON object of relative path -> base64 content."""

    format: ArchiveFormat = 'tar.zst'
    extension = '.tar.zst'

    def compress(self, source_dir: Path, archive_path: Path) -> None:
        bundle = {
            path.relative_to(source_dir).as_posix(): base64.b64encode(path.read_bytes()).decode('ascii')
            for path in sorted(source_dir.rglob('*'))
            if path.is_file()
        }
        archive_path.write_text(json.dumps(bundle))

    def decompress(self, archive_path: Path, target_dir: Path) -> None:
        try:
            bundle = json.loads(archive_path.read_text())
        except ValueError as e:
            raise ArchiveExtractionError(str(archive_path), str(e)) from e
        for relative, content in bundle.items():
            destination = target_dir.joinpath(*relative.split('/'))
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(base64.b64decode(content))


class RecordingLogger:
    """LoggerProtocol implementation that keeps every message for assertions."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    async def info(self, message: str) -> None:
        self.messages.append(('info', message))

    async def warning(self, message: str) -> None:
        self.messages.append(('warning', message))

    async def error(self, message: str) -> None:
        self.messages.append(('error', message))

    @property
    def warnings(self) -> list[str]:
        return [m for level, m in self.messages if level == 'warning']


def seed_session(
    store: RecordStore,
    *,
    session_id: str = SESSION_ID,
    project_id: str = PROJECT_ID,
    title: str = 'Fix bug',
    directory: str = ORIGINAL_DIR,
    messages: int = 2,
    parts_per_message: int = 2,
    with_diff: bool = True,
    with_project: bool = True,
    snapshot_files: tuple[str, ...] = ('objects/ab/cdef01', 'info/exclude'),
    updated: int = CREATED_MS + 60_000,
) -> None:
    """Write one session with all its records into ``store``."""
    store.write_json(
        store.session_path(project_id, session_id),
        {
            'id': session_id,
            'projectID': project_id,
            'directory': directory,
            'title': title,
            'version': '0.15.0',
            'time': {'created': CREATED_MS, 'updated': updated},
        },
    )

    for i in range(messages):
        message_id = f'msg_{i}'
        message: dict[str, object] = {
            'id': message_id,
            'sessionID': session_id,
            'time': {'created': CREATED_MS + i},
            'path': {'cwd': directory, 'root': directory},
        }
        if i % 2 == 0:
            message.update(role='user', model={'providerID': 'openai', 'modelID': 'gpt-5'})
        else:
            message.update(role='assistant', providerID='openai', modelID='gpt-5', cost=0.01)
        store.write_message(session_id, message_id, message)

        for j in range(parts_per_message):
            part_id = f'prt_{i}_{j}'
            store.write_part(
                message_id,
                part_id,
                {
                    'id': part_id,
                    'messageID': message_id,
                    'sessionID': session_id,
                    'type': 'text',
                    'text': f'edited {directory}/src/app.ts',
                },
            )

    if with_diff:
        store.write_json(
            store.session_diff_path(session_id),
            [{'file': f'{directory}/src/app.ts', 'before': 'a', 'after': 'b', 'additions': 1, 'deletions': 1}],
        )

    if with_project:
        store.write_json(
            store.project_path(project_id),
            {'id': project_id, 'worktree': directory, 'vcs': 'git', 'time': {'created': CREATED_MS}},
        )

    for name in snapshot_files:
        path = store.snapshot_dir(project_id).joinpath(*name.split('/'))
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b'\x00\x01snapshot ' + name.encode())


def make_repo(base: Path, relative: str) -> Path:
    """Create a directory with a .git marker."""
    repo = base.joinpath(*relative.split('/'))
    (repo / '.git').mkdir(parents=True)
    return repo


@pytest.fixture
def home(tmp_path: Path) -> Path:
    home = tmp_path / 'home'
    home.mkdir()
    return home


@pytest.fixture
def store(home: Path) -> RecordStore:
    return RecordStore(home / '.local' / 'share' / 'opencode')


@pytest.fixture
def seeded_store(store: RecordStore) -> RecordStore:
    seed_session(store)
    return store


@pytest.fixture
def dest_store(tmp_path: Path) -> RecordStore:
    return RecordStore(tmp_path / 'machine-b' / 'opencode')


@pytest.fixture
def archives(home: Path) -> LocalArchiveStorage:
    return LocalArchiveStorage(home / '.opencode' / 'session-archives')


@pytest.fixture
def resolver(home: Path) -> RepoResolver:
    return RepoResolver.for_home(home)


@pytest.fixture
def archive_service(seeded_store: RecordStore, archives: LocalArchiveStorage) -> SessionArchiveService:
    return SessionArchiveService(seeded_store, archives, BundleCodec(), clock=lambda: FIXED_NOW)


@pytest.fixture
def restore_service(
    dest_store: RecordStore, archives: LocalArchiveStorage, resolver: RepoResolver
) -> SessionRestoreService:
    return SessionRestoreService(dest_store, archives, {'tar.zst': BundleCodec()}, resolver)


@pytest.fixture
def share_service(seeded_store: RecordStore, home: Path, resolver: RepoResolver) -> SessionShareService:
    return SessionShareService(seeded_store, home / '.opencode' / 'private-shares', resolver, clock=lambda: FIXED_NOW)
