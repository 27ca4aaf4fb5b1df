"""
Session file collector - finds every file that belongs to a session.

There is no manifest tying a session's records together; the collector
follows the store's directory index instead:

    session  -> storage/session/<projectID>/<sessionID>.json
    messages -> storage/message/<sessionID>/*.json
    parts    -> storage/part/<messageID>/*.json   (for each message)
    diff     -> storage/session_diff/<sessionID>.json
    project  -> storage/project/<projectID>.json
    snapshot -> snapshot/<projectID>/**            (opaque)
"""

from __future__ import annotations

from pathlib import Path

from session_share.exceptions import SessionNotFoundError
from session_share.protocols import LoggerProtocol, NullLogger
from session_share.repositories.record_store import RecordStore
from session_share.schemas.operations.archive import CollectedSession, SessionFile
from session_share.types import RecordKind


class SessionFileCollector:
    """Read-only walk of a RecordStore for one session's files."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    async def collect(self, session_id: str, logger: LoggerProtocol | None = None) -> CollectedSession:
        """
        Collect all files related to a session.

        Args:
            session_id: Session to collect
            logger: Optional logger instance

        Returns:
            CollectedSession with every file and the session's metadata

        Raises:
            SessionNotFoundError: If no project directory holds the session
        """
        logger = logger or NullLogger()

        found = self.store.find_session_file(session_id)
        if found is None:
            available = [s.session_id for s in self.store.list_sessions()]
            raise SessionNotFoundError(session_id, available)

        session_path, project_id = found
        session = self.store.read_session(session_path)
        await logger.info(f'Found session {session_id} in project {project_id}: {session.title!r}')

        files = [self._file(session_path, 'session')]

        message_paths = self.store.json_files(self.store.message_dir(session_id))
        for message_path in message_paths:
            files.append(self._file(message_path, 'message'))

        # Parts are keyed by the id inside the message document, not the file name
        part_count = 0
        for message_path in message_paths:
            message = self.store.read_message(message_path)
            for part_path in self.store.json_files(self.store.part_dir(message.id)):
                files.append(self._file(part_path, 'part'))
                part_count += 1

        diff_path = self.store.session_diff_path(session_id)
        if diff_path.is_file():
            files.append(self._file(diff_path, 'session_diff'))

        project_path = self.store.project_path(project_id)
        if project_path.is_file():
            files.append(self._file(project_path, 'project'))
        else:
            await logger.warning(f'Project document missing for {project_id}')

        snapshot_count = 0
        for snapshot_path in self.store.iter_files(self.store.snapshot_dir(project_id)):
            files.append(self._file(snapshot_path, 'snapshot'))
            snapshot_count += 1

        await logger.info(
            f'Collected {len(files)} files: {len(message_paths)} messages, {part_count} parts, '
            f'{snapshot_count} snapshot files'
        )

        return CollectedSession(
            session_id=session_id,
            project_id=project_id,
            title=session.title,
            directory=session.directory,
            files=files,
        )

    def _file(self, path: Path, kind: RecordKind) -> SessionFile:
        return SessionFile(relative_path=self.store.relative(path), absolute_path=path, kind=kind)
