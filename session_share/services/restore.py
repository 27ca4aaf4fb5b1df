"""
Session restore service - merges an archive back into the record store.

The archive is expanded into a temporary directory that mirrors the data
directory, optionally path-remapped there, and then merged file by file.
A destination file that already exists is never overwritten: snapshot
objects are content-addressed, so an existing path already has the right
content, and re-running an interrupted or repeated restore is harmless.
"""

from __future__ import annotations

import contextlib
import itertools
import shutil
import tempfile
from collections.abc import Iterator, Mapping, Sequence
from pathlib import Path

from session_share.config.base import ShareSettings
from session_share.exceptions import (
    AmbiguousRepositoryError,
    ArchiveInvalidError,
    InvalidRemapTargetError,
    RecordCorruptError,
    RecordIOError,
    format_listing,
)
from session_share.paths import project_name
from session_share.protocols import LoggerProtocol, NullLogger
from session_share.repositories.record_store import RecordStore
from session_share.schemas.operations.archive import ArchiveAnalysis
from session_share.schemas.operations.resolve import RepoValidation
from session_share.schemas.operations.restore import ExtractResult, IngestOutcome
from session_share.schemas.records import SessionRecord
from session_share.services.codec import ArchiveCodec, FormatDetector, ZipCommandCodec, ZstdTarCodec
from session_share.services.remap import remap_json_tree
from session_share.services.repo_resolver import RepoResolver
from session_share.storage.local import LocalArchiveStorage
from session_share.types import ArchiveFormat


def mark_imported(title: str, prefix: str) -> str:
    """Prefix a title with the import marker, once."""
    if not title or title.startswith(prefix):
        return title
    return f'{prefix} {title}'


def missing_repo_message(original_path: str, name: str, argument: str) -> str:
    """Ask for a project path when no same-named repository was found. ``argument`` is e.g. 'archive="x"'."""
    return (
        f'The session was created at:\n  {original_path}\n\n'
        f'This path does not exist on this machine, and the repository "{name}" could not be found.\n\n'
        f'Provide the local path where the "{name}" repository is located.\n\n'
        f'Example: {argument} project_path="/path/to/{name}"'
    )


def choose_candidate_message(original_path: str, name: str, candidates: Sequence[str], argument: str) -> str:
    """Ask the caller to pick one of several same-named repositories."""
    listing = '\n'.join(f'  - {c}' for c in candidates)
    return (
        f'The session was created at:\n  {original_path}\n\n'
        f'This path does not exist on this machine. Multiple possible locations for '
        f'"{name}" were found:\n\n{listing}\n\n'
        f'Provide the correct location as the project path.\n\n'
        f'Example: {argument} project_path="{candidates[0]}"'
    )


class SessionRestoreService:
    """
    Service for analyzing and extracting session archives.

    Handles path resolution (via RepoResolver) and path remapping for
    archives created on a different machine.
    """

    def __init__(
        self,
        store: RecordStore,
        storage: LocalArchiveStorage,
        codecs: Mapping[ArchiveFormat, ArchiveCodec],
        resolver: RepoResolver,
        imported_prefix: str = '[IMPORTED]',
    ) -> None:
        """
        Initialize restore service.

        Args:
            store: Destination record store
            storage: Archive-storage directory (for resolving archive ids)
            codecs: Codec per archive format
            resolver: Repository resolver for remap targets
            imported_prefix: Marker prepended to the restored session title
        """
        self.store = store
        self.storage = storage
        self.codecs = codecs
        self.resolver = resolver
        self.imported_prefix = imported_prefix

    @classmethod
    def from_settings(cls, settings: ShareSettings) -> SessionRestoreService:
        return cls(
            store=RecordStore(settings.DATA_DIR),
            storage=LocalArchiveStorage(settings.ARCHIVES_DIR),
            codecs={
                'tar.zst': ZstdTarCodec(level=settings.COMPRESSION_LEVEL),
                'zip': ZipCommandCodec(),
            },
            resolver=RepoResolver.for_home(
                settings.HOME_DIR,
                max_depth=settings.SEARCH_MAX_DEPTH,
                vcs_marker=settings.VCS_MARKER,
            ),
            imported_prefix=settings.IMPORTED_PREFIX,
        )

    # ==========================================================================
    # Public operations
    # ==========================================================================

    def validate_remap_path(self, path: str) -> RepoValidation:
        """Validate a user-provided remap target."""
        return self.resolver.verify_repo_path(path)

    async def analyze(
        self,
        archive_ref: str,
        search_for_repo: bool = True,
        logger: LoggerProtocol | None = None,
    ) -> ArchiveAnalysis:
        """
        Work out whether restoring an archive here needs a path remap.

        Args:
            archive_ref: Archive id or path
            search_for_repo: Search common folders when the original path is missing
            logger: Optional logger instance

        Raises:
            ArchiveNotFoundError: If the archive doesn't exist
            ArchiveInvalidError: If the archive has no session document
        """
        logger = logger or NullLogger()
        archive_path = self.storage.resolve(archive_ref)

        with self._unpacked(archive_path) as staged:
            _, session = self._locate_session(staged)

        name = project_name(session.directory)
        if search_for_repo:
            resolution = self.resolver.resolve(session.directory, name)
        else:
            resolution = self.resolver.resolve_without_search(session.directory)

        await logger.info(
            f'Archive {archive_path.name}: session {session.id} from {session.directory} '
            f'(resolved={resolution.resolved}, candidates={len(resolution.candidates)})'
        )
        return ArchiveAnalysis(
            archive_id=FormatDetector.strip_extension(archive_path),
            session_id=session.id,
            title=session.title,
            original_path=session.directory,
            project_name=name,
            path_resolution=resolution,
        )

    async def extract(
        self,
        archive_ref: str,
        remap_to_path: str | None = None,
        logger: LoggerProtocol | None = None,
    ) -> ExtractResult:
        """
        Extract an archive into the record store.

        Args:
            archive_ref: Archive id or path
            remap_to_path: If given, rewrite the session's original directory
                to this path in every JSON record before merging
            logger: Optional logger instance

        Returns:
            ExtractResult with file counts and remap details

        Raises:
            ArchiveNotFoundError: If the archive doesn't exist
            ArchiveInvalidError: If the archive can't be expanded or has no session
            InvalidRemapTargetError: If remap_to_path is not a repository (nothing written)
            RecordIOError: If a file can't be written to the store
            RecordCorruptError: If the destination session document does not parse (nothing written)
        """
        logger = logger or NullLogger()
        archive_path = self.storage.resolve(archive_ref)
        await logger.info(f'Extracting archive: {archive_path}')

        with self._unpacked(archive_path) as staged:
            session_path, session = self._locate_session(staged)
            original_path = session.directory

            path_remapped = False
            if remap_to_path and original_path:
                validation = self.resolver.verify_repo_path(remap_to_path)
                if not validation.valid:
                    raise InvalidRemapTargetError(remap_to_path, validation.error or 'Path is not a valid repository')
                await logger.info(f'Path translation: {original_path} -> {remap_to_path}')
                await remap_json_tree(staged.storage_dir, original_path, remap_to_path, logger)
                path_remapped = True

            destination = self.store.session_path(session.project_id, session.id)
            if destination.is_file():
                # Fails on a corrupt destination document before anything is merged
                self.store.read_session(destination)

            file_count, new_file_count = await self._merge(staged, staged.relative(session_path), logger)

        final_title = session.title
        if destination.is_file():
            final_title = self.store.read_session(destination).title

        await logger.info(f'Merged {file_count} files ({new_file_count} new) for session {session.id}')
        return ExtractResult(
            session_id=session.id,
            session_title=final_title,
            file_count=file_count,
            new_file_count=new_file_count,
            path_remapped=path_remapped,
            original_path=original_path or None,
            new_path=remap_to_path if path_remapped else None,
        )

    async def ingest(
        self,
        archive_ref: str,
        project_path: str | None = None,
        search_for_repo: bool = True,
        fail_on_ambiguity: bool = False,
        logger: LoggerProtocol | None = None,
    ) -> IngestOutcome:
        """
        Restore an archive, resolving the project location first.

        An explicit ``project_path`` is validated and used as the remap
        target. Otherwise the archive is analyzed: if the original path
        exists nothing is remapped, a single same-named repository is adopted
        automatically, and anything else returns ``needs_input``.

        Raises:
            ArchiveNotFoundError / ArchiveInvalidError: Listing known archives
            InvalidRemapTargetError: If project_path is not a repository
            AmbiguousRepositoryError: If fail_on_ambiguity and several candidates exist
        """
        logger = logger or NullLogger()

        try:
            analysis = await self.analyze(
                archive_ref, search_for_repo=search_for_repo and not project_path, logger=logger
            )
        except ArchiveInvalidError as e:
            known = [a.archive_id for a in self.storage.list_archives()]
            # Same exception, so an ArchiveExtractionError keeps its type and codec output
            e.args = (f'Failed to analyze archive: {e}' + format_listing('Available archives', known),)
            raise

        remap_to_path: str | None = None
        resolution = analysis.path_resolution

        if project_path:
            validation = self.validate_remap_path(project_path)
            if not validation.valid:
                raise InvalidRemapTargetError(project_path, validation.error or 'Path is not a valid repository')
            remap_to_path = project_path
        elif not resolution.resolved:
            if len(resolution.candidates) > 1:
                if fail_on_ambiguity:
                    raise AmbiguousRepositoryError(analysis.project_name, resolution.candidates)
                return IngestOutcome(
                    status='needs_input',
                    analysis=analysis,
                    candidates=list(resolution.candidates),
                    message=choose_candidate_message(
                        analysis.original_path, analysis.project_name, resolution.candidates, f'archive="{archive_ref}"'
                    ),
                )
            return IngestOutcome(
                status='needs_input',
                analysis=analysis,
                message=missing_repo_message(analysis.original_path, analysis.project_name, f'archive="{archive_ref}"'),
            )
        elif resolution.new_path and resolution.new_path != analysis.original_path:
            await logger.info(f'Found {analysis.project_name} at {resolution.new_path}')
            remap_to_path = resolution.new_path

        result = await self.extract(archive_ref, remap_to_path=remap_to_path, logger=logger)
        return IngestOutcome(
            status='ingested',
            analysis=analysis,
            result=result,
            message=f'Session "{result.session_title}" imported ({result.file_count} files).',
        )

    # ==========================================================================
    # Internals
    # ==========================================================================

    @contextlib.contextmanager
    def _unpacked(self, archive_path: Path) -> Iterator[RecordStore]:
        """Expand an archive into a temporary directory, removed on exit."""
        archive_format = FormatDetector.detect_format(archive_path)
        if archive_format is None or archive_format not in self.codecs:
            raise ArchiveInvalidError(f'Unsupported archive format: {archive_path.name}')

        with tempfile.TemporaryDirectory(prefix='session-share-extract-') as tmp:
            self.codecs[archive_format].decompress(archive_path, Path(tmp))
            yield RecordStore(Path(tmp))

    def _locate_session(self, staged: RecordStore) -> tuple[Path, SessionRecord]:
        """Find the archive's (single) session document, the same way the collector does."""
        if not staged.session_index_dir.is_dir():
            raise ArchiveInvalidError('Invalid archive: missing storage/session directory')

        session_path = next(staged.iter_session_files(), None)
        if session_path is None:
            raise ArchiveInvalidError('Invalid archive: no session files found')

        try:
            return session_path, staged.read_session(session_path)
        except RecordCorruptError as e:
            raise ArchiveInvalidError(f'Invalid archive: unreadable session document {e.path}: {e.detail}') from e

    async def _merge(self, staged: RecordStore, session_relative: str, logger: LoggerProtocol) -> tuple[int, int]:
        """
        Copy the staged storage/ and snapshot/ trees into the store.

        Existing files are never overwritten and any other file in the archive
        is skipped. The session document is the one exception to the first
        rule: its title gets the import marker, whether it is written now or
        was already there.

        Returns:
            (files processed, files newly written)
        """
        processed = 0
        written = 0

        for stray in staged.iter_files(staged.root):
            if not (stray.is_relative_to(staged.storage_dir) or stray.is_relative_to(staged.snapshot_root)):
                await logger.warning(f'Ignoring file outside storage/ and snapshot/: {staged.relative(stray)}')

        sources = itertools.chain(staged.iter_files(staged.storage_dir), staged.iter_files(staged.snapshot_root))
        for source in sources:
            relative = staged.relative(source)
            destination = self.store.resolve(relative)
            is_session = relative == session_relative

            try:
                if destination.exists():
                    if is_session:
                        self._mark_existing_session(destination)
                    processed += 1
                    continue

                destination.parent.mkdir(parents=True, exist_ok=True)
                if is_session:
                    data = staged.read_json(source)
                    data['title'] = mark_imported(data.get('title') or '', self.imported_prefix)
                    self.store.write_json(destination, data)
                else:
                    shutil.copyfile(source, destination)
            except OSError as e:
                raise RecordIOError(str(destination), e) from e

            processed += 1
            written += 1

        await logger.info(f'{processed - written} files already present, {written} written')
        return processed, written

    def _mark_existing_session(self, destination: Path) -> None:
        data = self.store.read_json(destination)
        title = data.get('title') or ''
        marked = mark_imported(title, self.imported_prefix)
        if marked != title:
            data['title'] = marked
            self.store.write_json(destination, data)
