"""
Local filesystem storage for session archives.

Archives live in one directory and are addressed by id (the file name
without its extension) or by an explicit path.
"""

from __future__ import annotations

import pathlib
from datetime import datetime, timezone

from session_share.exceptions import ArchiveNotFoundError
from session_share.schemas.operations.archive import ArchiveSummary
from session_share.services.codec import FormatDetector


class LocalArchiveStorage:
    """Archive-storage directory (default ``~/.opencode/session-archives``)."""

    def __init__(self, base_path: pathlib.Path) -> None:
        """
        Initialize local archive storage.

        Args:
            base_path: Directory holding archives (created on first save)
        """
        if base_path.exists() and not base_path.is_dir():
            raise ValueError(f'Storage path is not a directory: {base_path}')

        self.base_path = base_path

    def path_for(self, archive_id: str, extension: str) -> pathlib.Path:
        """Destination for a new archive, creating the directory if needed."""
        self.base_path.mkdir(parents=True, exist_ok=True)
        return self.base_path / f'{archive_id}{extension}'

    def exists(self, archive_id: str) -> bool:
        return any((self.base_path / f'{archive_id}{ext}').is_file() for ext in FormatDetector.EXTENSION_MAP)

    def resolve(self, archive_ref: str) -> pathlib.Path:
        """
        Resolve an archive id or path to an existing archive file.

        Anything containing a path separator or ending in a known archive
        extension is treated as a path; anything else is an id looked up in
        the storage directory.

        Raises:
            ArchiveNotFoundError: If nothing matches (lists the known archives)
        """
        ref_path = pathlib.Path(archive_ref).expanduser()
        looks_like_path = '/' in archive_ref or FormatDetector.detect_format(ref_path) is not None

        if looks_like_path:
            if ref_path.is_file():
                return ref_path
        else:
            for ext in FormatDetector.EXTENSION_MAP:
                candidate = self.base_path / f'{archive_ref}{ext}'
                if candidate.is_file():
                    return candidate

        raise ArchiveNotFoundError(archive_ref, [a.archive_id for a in self.list_archives()])

    def list_archives(self) -> list[ArchiveSummary]:
        """All archives in the storage directory, sorted by id."""
        if not self.base_path.is_dir():
            return []

        archives = []
        for path in sorted(self.base_path.iterdir()):
            archive_format = FormatDetector.detect_format(path)
            if archive_format is None or not path.is_file():
                continue
            stat = path.stat()
            archives.append(
                ArchiveSummary(
                    archive_id=FormatDetector.strip_extension(path),
                    archive_path=str(path.absolute()),
                    format=archive_format,
                    created=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                    size_mb=round(stat.st_size / (1024 * 1024), 2),
                )
            )
        return archives
