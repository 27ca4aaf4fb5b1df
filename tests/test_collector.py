"""Tests for collecting a session's files from the record store."""

from __future__ import annotations

import asyncio
import json

import pytest
from conftest import PROJECT_ID, SESSION_ID, seed_session

from session_share.exceptions import RecordCorruptError, SessionNotFoundError
from session_share.repositories.record_store import RecordStore
from session_share.services.collector import SessionFileCollector


def test_collect_full_session(seeded_store: RecordStore) -> None:
    collected = asyncio.run(SessionFileCollector(seeded_store).collect(SESSION_ID))

    assert collected.session_id == SESSION_ID
    assert collected.project_id == PROJECT_ID
    assert collected.title == 'Fix bug'
    assert collected.message_count == 2
    assert collected.part_count == 4
    assert collected.snapshot_count == 2
    # session + 2 messages + 4 parts + diff + project + 2 snapshot files
    assert len(collected.files) == 11

    relative = [f.relative_path for f in collected.files]
    assert relative[0] == f'storage/session/{PROJECT_ID}/{SESSION_ID}.json'
    assert 'storage/part/msg_1/prt_1_0.json' in relative
    assert f'storage/session_diff/{SESSION_ID}.json' in relative
    assert f'storage/project/{PROJECT_ID}.json' in relative
    assert f'snapshot/{PROJECT_ID}/objects/ab/cdef01' in relative


def test_collect_session_without_messages(store: RecordStore) -> None:
    seed_session(store, messages=0, with_diff=False, snapshot_files=())

    collected = asyncio.run(SessionFileCollector(store).collect(SESSION_ID))

    assert collected.message_count == 0
    assert collected.part_count == 0
    assert [f.kind for f in collected.files] == ['session', 'project']


def test_collect_without_project_document(store: RecordStore) -> None:
    seed_session(store, with_project=False)

    collected = asyncio.run(SessionFileCollector(store).collect(SESSION_ID))

    assert collected.count('project') == 0
    assert collected.message_count == 2


def test_collect_unknown_session_lists_available(seeded_store: RecordStore) -> None:
    with pytest.raises(SessionNotFoundError) as exc_info:
        asyncio.run(SessionFileCollector(seeded_store).collect('ses_missing'))

    assert exc_info.value.available == [SESSION_ID]
    assert SESSION_ID in str(exc_info.value)


def test_collect_empty_store(store: RecordStore) -> None:
    with pytest.raises(SessionNotFoundError) as exc_info:
        asyncio.run(SessionFileCollector(store).collect(SESSION_ID))

    assert exc_info.value.available == []


def test_collect_malformed_message(seeded_store: RecordStore) -> None:
    message_path = seeded_store.message_dir(SESSION_ID) / 'msg_1.json'
    message_path.write_text(json.dumps({'sessionID': SESSION_ID, 'role': 'assistant'}))

    with pytest.raises(RecordCorruptError) as exc_info:
        asyncio.run(SessionFileCollector(seeded_store).collect(SESSION_ID))

    assert exc_info.value.path == f'storage/message/{SESSION_ID}/msg_1.json'
    assert 'id' in exc_info.value.detail


def test_collect_truncated_session_document(seeded_store: RecordStore) -> None:
    seeded_store.session_path(PROJECT_ID, SESSION_ID).write_text('{"id": "ses_abc", "title"')

    with pytest.raises(RecordCorruptError, match=f'storage/session/{PROJECT_ID}/{SESSION_ID}.json'):
        asyncio.run(SessionFileCollector(seeded_store).collect(SESSION_ID))
