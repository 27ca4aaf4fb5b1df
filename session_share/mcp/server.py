"""
Session Share MCP Server.

Exposes archive and private-share operations on the local opencode record
store as MCP tools.

Setup:
    session-share-mcp   (stdio transport)

Example:
    # Archive a session, then restore it on another machine
    create_session_archive(session_id='ses_abc123')
    ingest_session_archive(archive_id='2025-01-15-fix-bug')
"""

from __future__ import annotations

import contextlib
import sys
from collections.abc import AsyncIterator
from typing import Any

import attrs
from mcp.server.fastmcp import Context, FastMCP

from session_share.config import ShareSettings, settings
from session_share.mcp.utils import DualLogger
from session_share.schemas.operations.archive import ArchiveMetadata, ArchiveSummary
from session_share.schemas.operations.restore import IngestOutcome
from session_share.schemas.operations.share import ShareIngestOutcome, ShareMetadata
from session_share.services.archive import SessionArchiveService
from session_share.services.restore import SessionRestoreService
from session_share.services.share import SessionShareService

# ==============================================================================
# Server State (immutable)
# ==============================================================================


@attrs.define(frozen=True)
class ServerState:
    """
    Immutable server state initialized at startup.

    Contains the settings and all services needed for tool execution.
    """

    settings: ShareSettings
    archive_service: SessionArchiveService
    restore_service: SessionRestoreService
    share_service: SessionShareService

    @classmethod
    def from_settings(cls, settings: ShareSettings) -> ServerState:
        return cls(
            settings=settings,
            archive_service=SessionArchiveService.from_settings(settings),
            restore_service=SessionRestoreService.from_settings(settings),
            share_service=SessionShareService.from_settings(settings),
        )


# ==============================================================================
# Lifespan
# ==============================================================================


@contextlib.asynccontextmanager
async def lifespan(mcp_server: FastMCP) -> AsyncIterator[None]:
    """
    Manage server lifecycle and state initialization.

    Settings are read once here; a misconfigured environment fails startup.
    """
    state = ServerState.from_settings(settings)

    # Register tools with closure over state
    register_tools(state)

    print(f'[MCP Server] Data dir: {state.settings.DATA_DIR}', file=sys.stderr)
    print(f'[MCP Server] Archives: {state.settings.ARCHIVES_DIR}', file=sys.stderr)

    yield


# ==============================================================================
# Server Setup
# ==============================================================================

server = FastMCP('session-share', lifespan=lifespan)


# ==============================================================================
# Tool Registration (Closure Pattern)
# ==============================================================================


def register_tools(state: ServerState) -> None:
    """
    Register MCP tools with closure over server state.

    Args:
        state: Server state containing services
    """

    @server.tool()
    async def create_session_archive(
        session_id: str,
        ctx: Context[Any, Any, Any] | None = None,
    ) -> ArchiveMetadata:
        """
        Archive a session from the local record store.

        The archive holds the session, its messages, parts, diff, project
        record and snapshot files. It is written to the archive-storage
        directory as <date>-<title-slug> with the configured format.

        Args:
            session_id: Session to archive (e.g. 'ses_abc123')

        Returns:
            Archive metadata with id, path, size and file counts
        """
        if ctx is None:
            raise RuntimeError('Context is required - must be called via FastMCP')
        logger = DualLogger(ctx)

        return await state.archive_service.create_archive(session_id, logger)

    @server.tool()
    async def list_session_archives() -> list[ArchiveSummary]:
        """List archives available for ingestion."""
        return state.restore_service.storage.list_archives()

    @server.tool()
    async def ingest_session_archive(
        archive_id: str,
        project_path: str | None = None,
        search_for_repo: bool = True,
        ctx: Context[Any, Any, Any] | None = None,
    ) -> IngestOutcome:
        """
        Restore an archived session into the local record store.

        If the session's original directory doesn't exist on this machine,
        common project folders are searched for a repository with the same
        name. One match is used automatically; otherwise the result has
        status 'needs_input' and a message explaining what to pass as
        project_path. Call again with project_path set.

        Args:
            archive_id: Archive id (from list_session_archives) or archive path
            project_path: Local repository to remap the session's paths to
            search_for_repo: Search for the repository by name (default: True)

        Returns:
            IngestOutcome with status 'ingested' (and the extract result) or 'needs_input'
        """
        if ctx is None:
            raise RuntimeError('Context is required - must be called via FastMCP')
        logger = DualLogger(ctx)

        outcome = await state.restore_service.ingest(
            archive_id,
            project_path=project_path,
            search_for_repo=search_for_repo,
            logger=logger,
        )
        if outcome.status == 'needs_input':
            await logger.warning(outcome.message)
        return outcome

    @server.tool()
    async def create_private_share(
        session_id: str,
        ctx: Context[Any, Any, Any] | None = None,
    ) -> ShareMetadata:
        """
        Write a private share (one JSON file) of a session.

        Args:
            session_id: Session to share

        Returns:
            Share metadata with id, file path and record counts
        """
        if ctx is None:
            raise RuntimeError('Context is required - must be called via FastMCP')
        logger = DualLogger(ctx)

        return await state.share_service.create_share(session_id, logger)

    @server.tool()
    async def ingest_private_share(
        share_id: str,
        project_path: str | None = None,
        search_for_repo: bool = True,
        ctx: Context[Any, Any, Any] | None = None,
    ) -> ShareIngestOutcome:
        """
        Import a private share into the local record store.

        Resolves the project location the same way as ingest_session_archive.
        When the original directory is missing and zero or several same-named
        repositories are found, nothing is imported and the result has status
        'needs_input' with a message explaining what to pass as project_path.

        Args:
            share_id: Share id or path to a share JSON file
            project_path: Local repository to remap the session's paths to
            search_for_repo: Search common project folders for the repository

        Returns:
            ShareIngestOutcome with the analysis and, once ingested, record counts
        """
        if ctx is None:
            raise RuntimeError('Context is required - must be called via FastMCP')
        logger = DualLogger(ctx)

        return await state.share_service.ingest(
            share_id, project_path=project_path, search_for_repo=search_for_repo, logger=logger
        )


def main() -> None:
    """Run the MCP server."""
    server.run()


if __name__ == '__main__':
    main()
