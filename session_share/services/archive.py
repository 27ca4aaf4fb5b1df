"""
Session archive service - framework-agnostic domain logic.

Pure service layer with no MCP/CLI dependencies. Collects a session's files,
stages them in a temporary directory at their store-relative paths and
compresses that directory into one archive named after the date and the
session title.
"""

from __future__ import annotations

import re
import shutil
import tempfile
from collections.abc import Callable
from datetime import date, datetime, timezone
from pathlib import Path

from session_share.config.base import ShareSettings
from session_share.exceptions import RecordIOError
from session_share.protocols import LoggerProtocol, NullLogger
from session_share.repositories.record_store import RecordStore
from session_share.schemas.operations.archive import ArchiveMetadata, CollectedSession
from session_share.services.codec import ArchiveCodec, codec_for_format
from session_share.services.collector import SessionFileCollector
from session_share.storage.local import LocalArchiveStorage

_NON_ALNUM = re.compile(r'[^a-z0-9]+')


def slugify(title: str) -> str:
    """
    Convert a title to kebab-case.

    Examples:
        >>> slugify('Fix bug')
        'fix-bug'

        >>> slugify('  Refactor: API / DB!! ')
        'refactor-api-db'
    """
    return _NON_ALNUM.sub('-', title.lower()).strip('-')


def make_archive_id(title: str, on: date) -> str:
    """Archive id: ISO date plus slugged title ('untitled' when the slug is empty)."""
    return f'{on.isoformat()}-{slugify(title) or "untitled"}'


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionArchiveService:
    """
    Service for creating session archives.

    Archive ids are not de-duplicated: a second archive of a session with the
    same title on the same day replaces the first.
    """

    def __init__(
        self,
        store: RecordStore,
        storage: LocalArchiveStorage,
        codec: ArchiveCodec,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize archive service.

        Args:
            store: Record store to read the session from
            storage: Archive-storage directory to write into
            codec: Compression capability
            clock: Source of the current time (archive id date, archived_at)
        """
        self.store = store
        self.storage = storage
        self.codec = codec
        self.clock = clock
        self.collector = SessionFileCollector(store)

    @classmethod
    def from_settings(cls, settings: ShareSettings) -> SessionArchiveService:
        return cls(
            store=RecordStore(settings.DATA_DIR),
            storage=LocalArchiveStorage(settings.ARCHIVES_DIR),
            codec=codec_for_format(settings.DEFAULT_FORMAT, settings.COMPRESSION_LEVEL),
        )

    async def create_archive(self, session_id: str, logger: LoggerProtocol | None = None) -> ArchiveMetadata:
        """
        Create an archive of a session.

        Args:
            session_id: Session to archive
            logger: Optional logger instance

        Returns:
            Archive metadata

        Raises:
            SessionNotFoundError: If the session is not in the store
            RecordIOError: If a collected file can't be copied into staging
            ArchiveCreationError: If the codec fails
        """
        logger = logger or NullLogger()
        await logger.info(f'Creating archive for session {session_id}')

        collected = await self.collector.collect(session_id, logger)

        now = self.clock()
        archive_id = make_archive_id(collected.title, now.date())
        archive_path = self.storage.path_for(archive_id, self.codec.extension)
        if archive_path.exists():
            await logger.warning(f'Replacing existing archive {archive_path.name}')

        with tempfile.TemporaryDirectory(prefix='session-share-archive-') as tmp:
            staging_dir = Path(tmp)
            await self._stage(collected, staging_dir, logger)

            await logger.info(f'Compressing {len(collected.files)} files ({self.codec.format})')
            self.codec.compress(staging_dir, archive_path)

        size_bytes = archive_path.stat().st_size
        await logger.info(f'Archive saved: {archive_path} ({size_bytes:,} bytes)')

        return ArchiveMetadata(
            archive_id=archive_id,
            archive_path=str(archive_path.absolute()),
            session_id=collected.session_id,
            title=collected.title,
            format=self.codec.format,
            size_mb=round(size_bytes / (1024 * 1024), 2),
            archived_at=now,
            file_count=len(collected.files),
            message_count=collected.message_count,
            part_count=collected.part_count,
            snapshot_count=collected.snapshot_count,
        )

    async def _stage(self, collected: CollectedSession, staging_dir: Path, logger: LoggerProtocol) -> None:
        """Copy every collected file to the same relative path under ``staging_dir``."""
        for session_file in collected.files:
            destination = staging_dir.joinpath(*session_file.relative_path.split('/'))
            try:
                destination.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(session_file.absolute_path, destination)
            except OSError as e:
                raise RecordIOError(str(session_file.absolute_path), e) from e

        await logger.info(f'Staged {len(collected.files)} files in {staging_dir}')
