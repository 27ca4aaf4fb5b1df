"""
Private share service - single-file JSON snapshots of a session.

A private share holds one session's records in the host's share-sync shape
(see schemas/operations/share.py). Unlike an archive it carries no snapshot
objects, and ingesting it writes each record into the store directly.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pydantic

from session_share.config.base import ShareSettings
from session_share.exceptions import InvalidRemapTargetError, SessionShareError, ShareNotFoundError
from session_share.paths import extract_original_path, project_name
from session_share.protocols import LoggerProtocol, NullLogger
from session_share.repositories.record_store import RecordStore
from session_share.schemas.operations.share import (
    ModelInfo,
    PrivateShareDocument,
    ShareAnalysis,
    ShareIngestOutcome,
    ShareIngestResult,
    ShareMetadata,
    ShareSummary,
)
from session_share.schemas.records import (
    DiffEntry,
    DiffSet,
    MessageRecord,
    PartRecord,
    ProjectRecord,
    SessionRecord,
    Timestamps,
    dump_record,
)
from session_share.services.archive import make_archive_id, utc_now
from session_share.services.collector import SessionFileCollector
from session_share.services.remap import remap_paths
from session_share.services.repo_resolver import RepoResolver
from session_share.services.restore import choose_candidate_message, mark_imported, missing_repo_message


class SessionShareService:
    """Create, list, analyze and ingest private shares."""

    def __init__(
        self,
        store: RecordStore,
        shares_dir: Path,
        resolver: RepoResolver,
        imported_prefix: str = '[IMPORTED]',
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.shares_dir = shares_dir
        self.resolver = resolver
        self.imported_prefix = imported_prefix
        self.clock = clock
        self.collector = SessionFileCollector(store)

    @classmethod
    def from_settings(cls, settings: ShareSettings) -> SessionShareService:
        return cls(
            store=RecordStore(settings.DATA_DIR),
            shares_dir=settings.SHARES_DIR,
            resolver=RepoResolver.for_home(
                settings.HOME_DIR,
                max_depth=settings.SEARCH_MAX_DEPTH,
                vcs_marker=settings.VCS_MARKER,
            ),
            imported_prefix=settings.IMPORTED_PREFIX,
        )

    # ==========================================================================
    # Create
    # ==========================================================================

    async def create_share(self, session_id: str, logger: LoggerProtocol | None = None) -> ShareMetadata:
        """
        Write a private share of a session from the record store.

        The share id is the session's creation date plus its slugged title.

        Raises:
            SessionNotFoundError: If the session is not in the store
        """
        logger = logger or NullLogger()
        collected = await self.collector.collect(session_id, logger)
        files_by_kind: dict[str, list[Path]] = {}
        for f in collected.files:
            files_by_kind.setdefault(f.kind, []).append(f.absolute_path)

        session_data = self.store.read_json(files_by_kind['session'][0])
        session = SessionRecord.model_validate(session_data)

        messages = [(self.store.read_message(p), self.store.read_json(p)) for p in files_by_kind.get('message', [])]
        messages.sort(key=lambda pair: (pair[0].created, pair[0].id))

        data: list[dict[str, Any]] = [{'type': 'session', 'data': session_data}]
        data.extend({'type': 'message', 'data': raw} for _, raw in messages)

        part_count = 0
        for message, _ in messages:
            for part_path in self.store.json_files(self.store.part_dir(message.id)):
                data.append({'type': 'part', 'data': self.store.read_json(part_path)})
                part_count += 1

        diff_paths = files_by_kind.get('session_diff', [])
        diffs = self.store.read_json(diff_paths[0]) if diff_paths else []
        data.append({'type': 'session_diff', 'data': diffs})
        data.append({'type': 'model', 'data': self._models_used(m for m, _ in messages)})

        created = session.time.created if session.time else int(self.clock().timestamp() * 1000)
        share_id = make_archive_id(session.title, datetime.fromtimestamp(created / 1000, tz=timezone.utc).date())
        document = {
            'id': share_id,
            'sessionID': session.id,
            'createdAt': int(self.clock().timestamp() * 1000),
            'data': data,
        }

        self.shares_dir.mkdir(parents=True, exist_ok=True)
        file_path = self.shares_dir / f'{share_id}.json'
        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(document, f, indent=2, ensure_ascii=False)
        await logger.info(f'Private share saved: {file_path}')

        return ShareMetadata(
            share_id=share_id,
            file_path=str(file_path.absolute()),
            session_id=session.id,
            title=session.title,
            message_count=len(messages),
            part_count=part_count,
            diff_count=len(diffs) if isinstance(diffs, list) else 0,
        )

    def _models_used(self, messages: Iterable[MessageRecord]) -> list[dict[str, Any]]:
        """Distinct models referenced by user messages, in first-seen order."""
        models: dict[tuple[str, str], ModelInfo] = {}
        for message in messages:
            if message.role != 'user' or message.model is None:
                continue
            key = (message.model.provider_id, message.model.model_id)
            if key not in models:
                # No display name in the records; the model id stands in for it
                models[key] = ModelInfo(id=key[1], providerID=key[0], name=key[1])
        return [dump_record(m) for m in models.values()]

    # ==========================================================================
    # List / resolve / analyze
    # ==========================================================================

    def list_shares(self) -> list[ShareSummary]:
        """All shares in the shares directory. Unreadable files are listed as 'Unknown'."""
        if not self.shares_dir.is_dir():
            return []

        shares = []
        for path in sorted(self.shares_dir.glob('*.json')):
            try:
                document = self._load(path)
            except (OSError, ValueError, pydantic.ValidationError, SessionShareError):
                shares.append(ShareSummary(share_id=path.stem, title='Unknown', created=None, message_count=0))
                continue
            session = document.session
            shares.append(
                ShareSummary(
                    share_id=path.stem,
                    title=str(session.data.get('title', 'Unknown')) if session else 'Unknown',
                    created=datetime.fromtimestamp(document.created_at / 1000, tz=timezone.utc),
                    message_count=len(document.messages),
                )
            )
        return shares

    def resolve_share(self, share_ref: str) -> Path:
        """
        Resolve a share id or path to a file.

        Raises:
            ShareNotFoundError: Listing the known shares
        """
        if '/' in share_ref or share_ref.endswith('.json'):
            path = Path(share_ref).expanduser()
        else:
            path = self.shares_dir / f'{share_ref}.json'

        if not path.is_file():
            raise ShareNotFoundError(share_ref, [f'{s.share_id}: {s.title}' for s in self.list_shares()])
        return path

    async def analyze_share(
        self,
        share_ref: str,
        search_for_repo: bool = True,
        logger: LoggerProtocol | None = None,
    ) -> ShareAnalysis:
        """Determine whether ingesting a share here needs a path remap."""
        logger = logger or NullLogger()
        path = self.resolve_share(share_ref)
        raw = self._read_raw(path)

        original_path = extract_original_path(raw)
        if not original_path:
            raise SessionShareError('Could not determine original project path from session')

        document = self._validate(raw, path)
        title = str(document.session.data.get('title', 'Unknown')) if document.session else 'Unknown'
        name = project_name(original_path)
        if search_for_repo:
            resolution = self.resolver.resolve(original_path, name)
        else:
            resolution = self.resolver.resolve_without_search(original_path)
        await logger.info(f'Share {path.stem}: original path {original_path} (resolved={resolution.resolved})')

        return ShareAnalysis(
            share_id=path.stem,
            title=title,
            original_path=original_path,
            project_name=name,
            path_resolution=resolution,
        )

    # ==========================================================================
    # Ingest
    # ==========================================================================

    async def ingest(
        self,
        share_ref: str,
        project_path: str | None = None,
        search_for_repo: bool = True,
        logger: LoggerProtocol | None = None,
    ) -> ShareIngestOutcome:
        """
        Import a share, resolving the project location first.

        Same policy as archive ingest: an explicit ``project_path`` is
        validated and used, an existing original path is kept, a single
        same-named repository is adopted, and anything else returns
        ``needs_input`` without touching the store.

        Raises:
            ShareNotFoundError: Listing known shares
            InvalidRemapTargetError: If project_path is not a repository
        """
        logger = logger or NullLogger()
        analysis = await self.analyze_share(
            share_ref, search_for_repo=search_for_repo and not project_path, logger=logger
        )
        resolution = analysis.path_resolution
        argument = f'share_id="{analysis.share_id}"'

        remap_to_path: str | None = None
        if project_path:
            validation = self.resolver.verify_repo_path(project_path)
            if not validation.valid:
                raise InvalidRemapTargetError(project_path, validation.error or 'Path is not a valid repository')
            remap_to_path = project_path
        elif not resolution.resolved:
            if len(resolution.candidates) > 1:
                message = choose_candidate_message(
                    analysis.original_path, analysis.project_name, resolution.candidates, argument
                )
            else:
                message = missing_repo_message(analysis.original_path, analysis.project_name, argument)
            return ShareIngestOutcome(
                status='needs_input',
                analysis=analysis,
                candidates=list(resolution.candidates),
                message=message,
            )
        elif resolution.new_path and resolution.new_path != analysis.original_path:
            await logger.info(f'Found {analysis.project_name} at {resolution.new_path}')
            remap_to_path = resolution.new_path

        result = await self.ingest_share(share_ref, remap_to_path=remap_to_path, logger=logger)
        return ShareIngestOutcome(
            status='ingested',
            analysis=analysis,
            result=result,
            message=f'Session "{result.session_title}" imported ({result.message_count} messages).',
        )

    async def ingest_share(
        self,
        share_ref: str,
        remap_to_path: str | None = None,
        logger: LoggerProtocol | None = None,
    ) -> ShareIngestResult:
        """
        Write a share's records into the store.

        The project document is only written if absent. Session, messages,
        parts and the diff set are written as-is (after optional remapping).

        Raises:
            ShareNotFoundError: If the share doesn't exist
            InvalidRemapTargetError: If remap_to_path is not a repository
            SessionShareError: If the share has no session entry
        """
        logger = logger or NullLogger()
        path = self.resolve_share(share_ref)
        raw = self._read_raw(path)

        original_path = extract_original_path(raw)
        path_remapped = False
        if remap_to_path and original_path:
            validation = self.resolver.verify_repo_path(remap_to_path)
            if not validation.valid:
                raise InvalidRemapTargetError(remap_to_path, validation.error or 'Path is not a valid repository')
            raw = remap_paths(raw, original_path, remap_to_path)
            path_remapped = True
            await logger.info(f'Path translation: {original_path} -> {remap_to_path}')

        document = self._validate(raw, path)
        if document.session is None:
            raise SessionShareError(f'Share {path.name} does not contain session data')

        session = SessionRecord.model_validate(document.session.data)
        session = session.model_copy(update={'title': mark_imported(session.title, self.imported_prefix)})
        times = session.time or Timestamps(created=0, updated=0)

        project = ProjectRecord(
            id=session.project_id,
            worktree=session.directory,
            vcs='git',
            time=Timestamps(created=times.created, updated=times.updated or times.created),
        )
        if self.store.write_project_if_absent(project):
            await logger.info(f'Created project {project.id} for {project.worktree}')
        self.store.write_session(session)

        for entry in document.messages:
            message = MessageRecord.model_validate(entry.data)
            self.store.write_message(message.session_id, message.id, entry.data)

        for entry in document.parts:
            part = PartRecord.model_validate(entry.data)
            self.store.write_part(part.message_id, part.id, entry.data)

        diffs: list[DiffEntry] = DiffSet.validate_python(document.session_diff.data) if document.session_diff else []
        self.store.write_session_diff(session.id, diffs)

        await logger.info(
            f'Ingested session {session.id}: {len(document.messages)} messages, {len(document.parts)} parts'
        )
        return ShareIngestResult(
            session_id=session.id,
            session_title=session.title,
            message_count=len(document.messages),
            part_count=len(document.parts),
            diff_count=len(diffs),
            path_remapped=path_remapped,
            original_path=original_path,
            new_path=remap_to_path if path_remapped else None,
        )

    # ==========================================================================
    # Loading
    # ==========================================================================

    def _read_raw(self, path: Path) -> dict[str, Any]:
        try:
            with open(path, encoding='utf-8') as f:
                raw = json.load(f)
        except ValueError as e:
            raise SessionShareError(f'Share {path.name} is not valid JSON: {e}') from e
        if not isinstance(raw, dict):
            raise SessionShareError(f'Share {path.name} is not a JSON object')
        return raw

    def _validate(self, raw: Any, path: Path) -> PrivateShareDocument:
        try:
            return PrivateShareDocument.model_validate(raw)
        except pydantic.ValidationError as e:
            raise SessionShareError(f'Share {path.name} is malformed: {e}') from e

    def _load(self, path: Path) -> PrivateShareDocument:
        return PrivateShareDocument.model_validate(self._read_raw(path))
