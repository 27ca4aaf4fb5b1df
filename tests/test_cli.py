"""Tests for the session-share command line."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from conftest import make_repo
from typer.testing import CliRunner

from session_share.cli.main import app
from session_share.repositories.record_store import RecordStore

runner = CliRunner()


@pytest.fixture(autouse=True)
def environment(home: Path, store: RecordStore, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv('LOAD_ENV_FILE', raising=False)
    monkeypatch.setenv('HOME_DIR', str(home))
    monkeypatch.setenv('DATA_DIR', str(store.root))
    monkeypatch.setenv('ARCHIVES_DIR', str(home / '.opencode' / 'session-archives'))
    monkeypatch.setenv('SHARES_DIR', str(home / '.opencode' / 'private-shares'))


def test_sessions(seeded_store: RecordStore) -> None:
    result = runner.invoke(app, ['sessions'])

    assert result.exit_code == 0
    assert 'ses_abc  Fix bug' in result.output


def test_collect_unknown_session(seeded_store: RecordStore) -> None:
    result = runner.invoke(app, ['collect', 'ses_missing'])

    assert result.exit_code == 1


def test_archive_then_list(seeded_store: RecordStore) -> None:
    archived = runner.invoke(app, ['archive', 'ses_abc'])
    listed = runner.invoke(app, ['archives'])

    assert archived.exit_code == 0
    assert 'Archive created successfully' in archived.output
    assert listed.exit_code == 0
    assert '-fix-bug  (tar.zst' in listed.output


def test_extract_requires_project_when_repository_is_missing(seeded_store: RecordStore, home: Path) -> None:
    runner.invoke(app, ['archive', 'ses_abc'])
    archive_path = next((home / '.opencode' / 'session-archives').iterdir())

    result = runner.invoke(app, ['extract', str(archive_path)])

    assert result.exit_code == 1


def test_extract_with_project(seeded_store: RecordStore, home: Path) -> None:
    repo = make_repo(home, 'elsewhere/repo')
    runner.invoke(app, ['archive', 'ses_abc'])
    archive_path = next((home / '.opencode' / 'session-archives').iterdir())

    result = runner.invoke(app, ['extract', str(archive_path), '--project', str(repo)])

    assert result.exit_code == 0
    assert 'Session restored successfully' in result.output


def test_share_and_list(seeded_store: RecordStore) -> None:
    shared = runner.invoke(app, ['share', 'ses_abc'])
    listed = runner.invoke(app, ['shares'])

    assert shared.exit_code == 0
    assert listed.exit_code == 0
    assert 'Fix bug (2 messages' in listed.output


def test_resolve(home: Path) -> None:
    repo = make_repo(home, 'projects/repo')

    result = runner.invoke(app, ['resolve', '/Users/alice/projects/repo'])

    assert result.exit_code == 0
    resolution = json.loads(result.output)
    assert resolution['resolved'] is True
    assert resolution['new_path'] == str(repo)


def test_ingest_share_stops_when_repository_is_ambiguous(seeded_store: RecordStore, home: Path) -> None:
    make_repo(home, 'projects/repo')
    make_repo(home, 'code/repo')
    runner.invoke(app, ['share', 'ses_abc'])

    result = runner.invoke(app, ['ingest-share', '2025-01-15-fix-bug'])

    assert result.exit_code == 1
    assert 'Share imported' not in result.output
    session = json.loads(seeded_store.session_path('prj_1', 'ses_abc').read_text())
    assert session['title'] == 'Fix bug'
