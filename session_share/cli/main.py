#!/usr/bin/env python3
"""
Command-line interface for session_share.

Provides commands to archive, share and restore opencode sessions.
"""

from __future__ import annotations

import asyncio
import traceback
from pathlib import Path

import typer

from session_share.cli.logger import CLILogger
from session_share.config import ShareSettings, get_settings
from session_share.exceptions import SessionShareError
from session_share.paths import project_name
from session_share.repositories.record_store import RecordStore
from session_share.schemas.operations.archive import ArchiveMetadata
from session_share.schemas.operations.restore import IngestOutcome
from session_share.schemas.operations.share import ShareIngestOutcome, ShareMetadata
from session_share.services.archive import SessionArchiveService
from session_share.services.collector import SessionFileCollector
from session_share.services.repo_resolver import RepoResolver
from session_share.services.restore import SessionRestoreService
from session_share.services.share import SessionShareService
from session_share.storage.local import LocalArchiveStorage

app = typer.Typer(
    name='session-share',
    help='Archive, share and restore opencode sessions',
    add_completion=False,
)


def _load_settings() -> ShareSettings:
    return get_settings(ShareSettings)


def _fail(message: str) -> typer.Exit:
    typer.secho(f'Error: {message}', fg=typer.colors.RED, err=True)
    return typer.Exit(1)


def _absolute(path: str | None) -> str | None:
    """Expand a user-supplied project path; remap targets must be absolute."""
    return str(Path(path).expanduser().resolve()) if path else None


async def _report_unexpected(logger: CLILogger, action: str, e: Exception, verbose: bool) -> typer.Exit:
    await logger.error(f'Failed to {action}: {e}')
    if verbose:
        traceback.print_exc()
    return typer.Exit(1)


# ==============================================================================
# Sessions
# ==============================================================================


@app.command()
def sessions() -> None:
    """List sessions in the local record store, most recently updated first."""
    store = RecordStore(_load_settings().DATA_DIR)
    stored = store.list_sessions()
    if not stored:
        typer.echo(f'No sessions found in {store.session_index_dir}')
        return

    for session in stored:
        typer.echo(f'{session.session_id}  {session.title}')
        typer.echo(f'    {session.directory or "(no directory)"}')


@app.command()
def collect(
    session_id: str = typer.Argument(..., help='Session ID to inspect'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='List every file'),
) -> None:
    """Show which files an archive of a session would contain."""
    asyncio.run(_collect_async(session_id, verbose))


async def _collect_async(session_id: str, verbose: bool) -> None:
    logger = CLILogger(verbose=verbose)
    collector = SessionFileCollector(RecordStore(_load_settings().DATA_DIR))

    try:
        collected = await collector.collect(session_id, logger)
    except SessionShareError as e:
        raise _fail(str(e))

    typer.echo(f'Session: {collected.session_id}')
    typer.echo(f'Title: {collected.title or "(untitled)"}')
    typer.echo(f'Directory: {collected.directory}')
    typer.echo()
    typer.echo(f'  Files: {len(collected.files)}')
    typer.echo(f'  Messages: {collected.message_count}')
    typer.echo(f'  Parts: {collected.part_count}')
    typer.echo(f'  Snapshot files: {collected.snapshot_count}')
    if verbose:
        typer.echo()
        for f in collected.files:
            typer.echo(f'    - {f.relative_path}')


# ==============================================================================
# Archives
# ==============================================================================


@app.command()
def archive(
    session_id: str = typer.Argument(..., help='Session ID to archive'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Archive a session into the archive-storage directory."""
    asyncio.run(_archive_async(session_id, verbose))


async def _archive_async(session_id: str, verbose: bool) -> None:
    """Async implementation of archive command."""
    logger = CLILogger(verbose=verbose)
    service = SessionArchiveService.from_settings(_load_settings())

    metadata: ArchiveMetadata
    try:
        metadata = await service.create_archive(session_id, logger)
    except SessionShareError as e:
        raise _fail(str(e))
    except Exception as e:
        raise await _report_unexpected(logger, 'create archive', e, verbose)

    typer.secho('✓ Archive created successfully!', fg=typer.colors.GREEN)
    typer.echo(f'  ID: {metadata.archive_id}')
    typer.echo(f'  Path: {metadata.archive_path}')
    typer.echo(f'  Format: {metadata.format}')
    typer.echo(f'  Size: {metadata.size_mb} MB')
    typer.echo(f'  Files: {metadata.file_count}')
    typer.echo(f'  Messages: {metadata.message_count}')
    typer.echo()
    typer.echo('To restore on another machine, run:')
    typer.secho(f'  session-share extract {metadata.archive_id}', fg=typer.colors.CYAN)


@app.command()
def archives() -> None:
    """List archives in the archive-storage directory."""
    settings = _load_settings()
    summaries = LocalArchiveStorage(settings.ARCHIVES_DIR).list_archives()
    if not summaries:
        typer.echo(f'No archives found in {settings.ARCHIVES_DIR}')
        return

    for summary in summaries:
        created = summary.created.strftime('%Y-%m-%d %H:%M')
        typer.echo(f'{summary.archive_id}  ({summary.format}, {summary.size_mb} MB, {created})')


@app.command()
def analyze(
    archive_ref: str = typer.Argument(..., metavar='ARCHIVE', help='Archive ID or path'),
    no_search: bool = typer.Option(False, '--no-search', help="Don't search for the repository by name"),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Show where an archive's session came from and whether it needs remapping."""
    asyncio.run(_analyze_async(archive_ref, not no_search, verbose))


async def _analyze_async(archive_ref: str, search_for_repo: bool, verbose: bool) -> None:
    logger = CLILogger(verbose=verbose)
    service = SessionRestoreService.from_settings(_load_settings())

    try:
        analysis = await service.analyze(archive_ref, search_for_repo=search_for_repo, logger=logger)
    except SessionShareError as e:
        raise _fail(str(e))

    resolution = analysis.path_resolution
    typer.echo(f'Archive: {analysis.archive_id}')
    typer.echo(f'Session: {analysis.session_id}')
    typer.echo(f'Title: {analysis.title}')
    typer.echo(f'Original path: {analysis.original_path}')
    typer.echo(f'Project: {analysis.project_name}')
    typer.echo()
    if resolution.resolved:
        typer.secho(f'Resolved: {resolution.new_path}', fg=typer.colors.GREEN)
    else:
        typer.secho('Unresolved: a project path is required', fg=typer.colors.YELLOW)
        if resolution.error:
            typer.echo(f'  {resolution.error}')
        for candidate in resolution.candidates:
            typer.echo(f'  - {candidate}')


@app.command()
def extract(
    archive_ref: str = typer.Argument(..., metavar='ARCHIVE', help='Archive ID or path'),
    project: str | None = typer.Option(None, '--project', '-p', help='Local repository to remap the session to'),
    no_search: bool = typer.Option(False, '--no-search', help="Don't search for the repository by name"),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Restore an archive into the local record store.

    Without --project the session's original directory is used if it exists,
    otherwise a single same-named repository under the usual project folders.
    """
    asyncio.run(_extract_async(archive_ref, _absolute(project), not no_search, verbose))


async def _extract_async(archive_ref: str, project: str | None, search_for_repo: bool, verbose: bool) -> None:
    """Async implementation of extract command."""
    logger = CLILogger(verbose=verbose)
    service = SessionRestoreService.from_settings(_load_settings())

    outcome: IngestOutcome
    try:
        outcome = await service.ingest(
            archive_ref,
            project_path=project,
            search_for_repo=search_for_repo,
            fail_on_ambiguity=True,
            logger=logger,
        )
    except SessionShareError as e:
        raise _fail(str(e))
    except Exception as e:
        raise await _report_unexpected(logger, 'extract archive', e, verbose)

    if outcome.result is None:
        typer.secho(outcome.message, fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(1)

    result = outcome.result
    typer.secho('✓ Session restored successfully!', fg=typer.colors.GREEN)
    typer.echo(f'  Session: {result.session_id}')
    typer.echo(f'  Title: {result.session_title}')
    typer.echo(f'  Files: {result.file_count} ({result.new_file_count} new)')
    if result.path_remapped:
        typer.echo(f'  Paths remapped: {result.original_path} -> {result.new_path}')


# ==============================================================================
# Private shares
# ==============================================================================


@app.command()
def share(
    session_id: str = typer.Argument(..., help='Session ID to share'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Write a private share (single JSON file) of a session."""
    asyncio.run(_share_async(session_id, verbose))


async def _share_async(session_id: str, verbose: bool) -> None:
    logger = CLILogger(verbose=verbose)
    service = SessionShareService.from_settings(_load_settings())

    metadata: ShareMetadata
    try:
        metadata = await service.create_share(session_id, logger)
    except SessionShareError as e:
        raise _fail(str(e))
    except Exception as e:
        raise await _report_unexpected(logger, 'create share', e, verbose)

    typer.secho('✓ Private share created!', fg=typer.colors.GREEN)
    typer.echo(f'  ID: {metadata.share_id}')
    typer.echo(f'  Path: {metadata.file_path}')
    typer.echo(f'  Messages: {metadata.message_count}')
    typer.echo(f'  Parts: {metadata.part_count}')


@app.command()
def shares() -> None:
    """List private shares."""
    settings = _load_settings()
    summaries = SessionShareService.from_settings(settings).list_shares()
    if not summaries:
        typer.echo(f'No private shares found in {settings.SHARES_DIR}')
        return

    for summary in summaries:
        created = summary.created.strftime('%Y-%m-%d %H:%M') if summary.created else 'unknown date'
        typer.echo(f'{summary.share_id}  {summary.title} ({summary.message_count} messages, {created})')


@app.command('ingest-share')
def ingest_share(
    share_ref: str = typer.Argument(..., metavar='SHARE', help='Share ID or path to a share JSON file'),
    project: str | None = typer.Option(None, '--project', '-p', help='Local repository to remap the session to'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Import a private share into the local record store."""
    asyncio.run(_ingest_share_async(share_ref, _absolute(project), verbose))


async def _ingest_share_async(share_ref: str, project: str | None, verbose: bool) -> None:
    logger = CLILogger(verbose=verbose)
    service = SessionShareService.from_settings(_load_settings())

    outcome: ShareIngestOutcome
    try:
        outcome = await service.ingest(share_ref, project_path=project, logger=logger)
    except SessionShareError as e:
        raise _fail(str(e))
    except Exception as e:
        raise await _report_unexpected(logger, 'ingest share', e, verbose)

    if outcome.result is None:
        typer.secho(outcome.message, fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(1)

    result = outcome.result
    typer.secho('✓ Share imported successfully!', fg=typer.colors.GREEN)
    typer.echo(f'  Session: {result.session_id}')
    typer.echo(f'  Title: {result.session_title}')
    typer.echo(f'  Messages: {result.message_count}')
    typer.echo(f'  Parts: {result.part_count}')
    if result.path_remapped:
        typer.echo(f'  Paths remapped: {result.original_path} -> {result.new_path}')


# ==============================================================================
# Repository resolution
# ==============================================================================


@app.command()
def resolve(
    original_path: str = typer.Argument(..., help='Directory a session was recorded in'),
) -> None:
    """Show how a session directory would be resolved on this machine."""
    settings = _load_settings()
    resolver = RepoResolver.for_home(
        settings.HOME_DIR, max_depth=settings.SEARCH_MAX_DEPTH, vcs_marker=settings.VCS_MARKER
    )
    resolution = resolver.resolve(original_path, project_name(original_path))
    typer.echo(resolution.model_dump_json(indent=2))


def main() -> None:
    """Entry point for CLI."""
    app()


if __name__ == '__main__':
    main()
