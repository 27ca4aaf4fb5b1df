"""Tests for private shares."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest
from conftest import ORIGINAL_DIR, PROJECT_ID, SESSION_ID, make_repo

from session_share.exceptions import InvalidRemapTargetError, SessionShareError, ShareNotFoundError
from session_share.repositories.record_store import RecordStore
from session_share.schemas.records import ProjectRecord
from session_share.services.repo_resolver import RepoResolver
from session_share.services.share import SessionShareService

SHARE_ID = '2025-01-15-fix-bug'


@pytest.fixture
def importer(
    dest_store: RecordStore, share_service: SessionShareService, resolver: RepoResolver
) -> SessionShareService:
    """Share service for machine B, reading the same shares directory."""
    return SessionShareService(dest_store, share_service.shares_dir, resolver)


def test_create_share(share_service: SessionShareService) -> None:
    metadata = asyncio.run(share_service.create_share(SESSION_ID))

    assert metadata.share_id == SHARE_ID
    assert metadata.session_id == SESSION_ID
    assert metadata.title == 'Fix bug'
    assert metadata.message_count == 2
    assert metadata.part_count == 4
    assert metadata.diff_count == 1

    document = json.loads(Path(metadata.file_path).read_text())
    assert document['id'] == SHARE_ID
    assert document['sessionID'] == SESSION_ID
    assert [entry['type'] for entry in document['data']] == (
        ['session', 'message', 'message'] + ['part'] * 4 + ['session_diff', 'model']
    )
    assert [entry['data']['id'] for entry in document['data'][1:3]] == ['msg_0', 'msg_1']
    assert document['data'][-1]['data'] == [{'id': 'gpt-5', 'providerID': 'openai', 'name': 'gpt-5'}]


def test_list_shares(share_service: SessionShareService) -> None:
    asyncio.run(share_service.create_share(SESSION_ID))
    (share_service.shares_dir / 'broken.json').write_text('{')

    shares = share_service.list_shares()

    assert [(s.share_id, s.title) for s in shares] == [(SHARE_ID, 'Fix bug'), ('broken', 'Unknown')]
    assert shares[0].message_count == 2
    assert shares[1].created is None


def test_resolve_unknown_share_lists_available(share_service: SessionShareService) -> None:
    asyncio.run(share_service.create_share(SESSION_ID))

    with pytest.raises(ShareNotFoundError) as exc_info:
        share_service.resolve_share('nope')

    assert exc_info.value.available == [f'{SHARE_ID}: Fix bug']


def test_analyze_share(home: Path, share_service: SessionShareService) -> None:
    repo = str(make_repo(home, 'projects/repo'))
    asyncio.run(share_service.create_share(SESSION_ID))

    analysis = asyncio.run(share_service.analyze_share(SHARE_ID))

    assert analysis.original_path == ORIGINAL_DIR
    assert analysis.project_name == 'repo'
    assert analysis.path_resolution.new_path == repo


def test_ingest_share_with_remap(
    home: Path,
    share_service: SessionShareService,
    importer: SessionShareService,
    dest_store: RecordStore,
) -> None:
    repo = str(make_repo(home, 'projects/repo'))
    asyncio.run(share_service.create_share(SESSION_ID))

    result = asyncio.run(importer.ingest_share(SHARE_ID, remap_to_path=repo))

    assert result.session_title == '[IMPORTED] Fix bug'
    assert result.message_count == 2
    assert result.part_count == 4
    assert result.diff_count == 1
    assert result.path_remapped
    assert result.new_path == repo

    session = json.loads(dest_store.session_path(PROJECT_ID, SESSION_ID).read_text())
    assert session['directory'] == repo
    assert session['title'] == '[IMPORTED] Fix bug'
    project = dest_store.read_project(PROJECT_ID)
    assert project is not None
    assert project.worktree == repo
    assert project.vcs == 'git'
    assert len(dest_store.json_files(dest_store.message_dir(SESSION_ID))) == 2
    assert len(dest_store.json_files(dest_store.part_dir('msg_1'))) == 2
    diff = json.loads(dest_store.session_diff_path(SESSION_ID).read_text())
    assert diff[0]['file'] == f'{repo}/src/app.ts'


def test_ingest_share_twice_marks_title_once(
    share_service: SessionShareService, importer: SessionShareService, dest_store: RecordStore
) -> None:
    asyncio.run(share_service.create_share(SESSION_ID))
    dest_store.write_project_if_absent(ProjectRecord(id=PROJECT_ID, worktree='/keep/me'))

    asyncio.run(importer.ingest_share(SHARE_ID))
    result = asyncio.run(importer.ingest_share(SHARE_ID))

    assert result.session_title == '[IMPORTED] Fix bug'
    assert not result.path_remapped
    project = dest_store.read_project(PROJECT_ID)
    assert project is not None
    assert project.worktree == '/keep/me'


def test_ingest_share_invalid_remap_target(
    tmp_path: Path, share_service: SessionShareService, importer: SessionShareService, dest_store: RecordStore
) -> None:
    asyncio.run(share_service.create_share(SESSION_ID))

    with pytest.raises(InvalidRemapTargetError):
        asyncio.run(importer.ingest_share(SHARE_ID, remap_to_path=str(tmp_path / 'missing')))

    assert not dest_store.root.exists()


def test_ingest_share_without_session(share_service: SessionShareService) -> None:
    share_service.shares_dir.mkdir(parents=True)
    (share_service.shares_dir / 'empty.json').write_text(
        json.dumps({'id': 'empty', 'sessionID': 'ses_x', 'createdAt': 1, 'data': []})
    )

    with pytest.raises(SessionShareError, match='does not contain session data'):
        asyncio.run(share_service.ingest_share('empty'))


# ==============================================================================
# Ingest flow
# ==============================================================================


def test_ingest_adopts_single_candidate(
    home: Path, share_service: SessionShareService, importer: SessionShareService, dest_store: RecordStore
) -> None:
    repo = str(make_repo(home, 'projects/repo'))
    asyncio.run(share_service.create_share(SESSION_ID))

    outcome = asyncio.run(importer.ingest(SHARE_ID))

    assert outcome.status == 'ingested'
    assert outcome.result is not None
    assert outcome.result.path_remapped
    assert outcome.result.new_path == repo
    session = json.loads(dest_store.session_path(PROJECT_ID, SESSION_ID).read_text())
    assert session['directory'] == repo


def test_ingest_needs_input_when_ambiguous(
    home: Path, share_service: SessionShareService, importer: SessionShareService, dest_store: RecordStore
) -> None:
    first = str(make_repo(home, 'projects/repo'))
    second = str(make_repo(home, 'code/repo'))
    asyncio.run(share_service.create_share(SESSION_ID))

    outcome = asyncio.run(importer.ingest(SHARE_ID))

    assert outcome.status == 'needs_input'
    assert outcome.result is None
    assert sorted(outcome.candidates) == sorted([first, second])
    assert 'Multiple possible locations' in outcome.message
    assert f'share_id="{SHARE_ID}"' in outcome.message
    assert not dest_store.root.exists()


def test_ingest_needs_input_when_not_found(
    share_service: SessionShareService, importer: SessionShareService, dest_store: RecordStore
) -> None:
    asyncio.run(share_service.create_share(SESSION_ID))

    outcome = asyncio.run(importer.ingest(SHARE_ID))

    assert outcome.status == 'needs_input'
    assert list(outcome.candidates) == []
    assert 'could not be found' in outcome.message
    assert not dest_store.root.exists()


def test_ingest_with_project_path_skips_repository_search(
    home: Path,
    monkeypatch: pytest.MonkeyPatch,
    share_service: SessionShareService,
    importer: SessionShareService,
    resolver: RepoResolver,
) -> None:
    make_repo(home, 'projects/repo')
    chosen = str(make_repo(home, 'code/repo'))
    asyncio.run(share_service.create_share(SESSION_ID))

    def no_search(project_name: str) -> None:
        raise AssertionError(f'searched for {project_name}')

    monkeypatch.setattr(resolver, 'find_repository_by_name', no_search)

    outcome = asyncio.run(importer.ingest(SHARE_ID, project_path=chosen))

    assert outcome.status == 'ingested'
    assert outcome.result is not None
    assert outcome.result.new_path == chosen


def test_ingest_rejects_invalid_project_path(
    tmp_path: Path, share_service: SessionShareService, importer: SessionShareService, dest_store: RecordStore
) -> None:
    asyncio.run(share_service.create_share(SESSION_ID))

    with pytest.raises(InvalidRemapTargetError):
        asyncio.run(importer.ingest(SHARE_ID, project_path=str(tmp_path)))

    assert not dest_store.root.exists()
