"""
Archive codecs - turn a staging directory into one file and back.

The archive and restore services only see the ArchiveCodec protocol, so they
can be tested with an in-process codec. Two real codecs are provided:

- ZstdTarCodec: tar stream compressed with zstandard ('.tar.zst', default)
- ZipCommandCodec: the system ``zip``/``unzip`` executables ('.zip'), which
  reads and writes the archives produced by the opencode private-share plugin
"""

from __future__ import annotations

import os
import shutil
import subprocess
import tarfile
from pathlib import Path
from typing import Protocol, runtime_checkable

import zstandard

from session_share.exceptions import ArchiveCreationError, ArchiveExtractionError
from session_share.types import ArchiveFormat


@runtime_checkable
class ArchiveCodec(Protocol):
    """Compress a directory into an archive file, or expand one into a directory."""

    format: ArchiveFormat
    extension: str

    def compress(self, source_dir: Path, archive_path: Path) -> None:
        """
        Write every file below ``source_dir`` into ``archive_path``.

        Member names are relative to ``source_dir``.

        Raises:
            ArchiveCreationError: If the archive cannot be written
        """
        ...

    def decompress(self, archive_path: Path, target_dir: Path) -> None:
        """
        Expand ``archive_path`` into the existing directory ``target_dir``.

        Raises:
            ArchiveExtractionError: If the archive is unreadable or unsafe
        """
        ...


# ==============================================================================
# zstandard + tar
# ==============================================================================


class ZstdTarCodec:
    """Tar archive compressed with zstandard."""

    format: ArchiveFormat = 'tar.zst'
    extension = '.tar.zst'

    def __init__(self, level: int = 3) -> None:
        self.level = level

    def compress(self, source_dir: Path, archive_path: Path) -> None:
        compressor = zstandard.ZstdCompressor(level=self.level)
        try:
            with open(archive_path, 'wb') as raw, compressor.stream_writer(raw) as writer:
                with tarfile.open(fileobj=writer, mode='w|') as tar:
                    for path in sorted(source_dir.rglob('*')):
                        if path.is_file():
                            tar.add(path, arcname=path.relative_to(source_dir).as_posix(), recursive=False)
        except (OSError, tarfile.TarError, zstandard.ZstdError) as e:
            archive_path.unlink(missing_ok=True)
            raise ArchiveCreationError(str(archive_path), str(e)) from e

    def decompress(self, archive_path: Path, target_dir: Path) -> None:
        decompressor = zstandard.ZstdDecompressor()
        try:
            with open(archive_path, 'rb') as raw, decompressor.stream_reader(raw) as reader:
                with tarfile.open(fileobj=reader, mode='r|') as tar:
                    # 'data' filter rejects absolute paths, '..' members and links leaving target_dir
                    tar.extractall(target_dir, filter='data')
        except (OSError, tarfile.TarError, zstandard.ZstdError) as e:
            raise ArchiveExtractionError(str(archive_path), str(e)) from e


# ==============================================================================
# zip / unzip executables
# ==============================================================================


class ZipCommandCodec:
    """Zip archives via the ``zip``/``unzip`` command-line tools."""

    format: ArchiveFormat = 'zip'
    extension = '.zip'

    def compress(self, source_dir: Path, archive_path: Path) -> None:
        self._require('zip', archive_path, ArchiveCreationError)
        # zip appends to an existing archive; same-day re-archives must replace it
        archive_path.unlink(missing_ok=True)
        result = subprocess.run(
            ['zip', '-r', '-q', str(archive_path.resolve()), '.'],
            cwd=source_dir,
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            raise ArchiveCreationError(str(archive_path), result.stderr or result.stdout)

    def decompress(self, archive_path: Path, target_dir: Path) -> None:
        self._require('unzip', archive_path, ArchiveExtractionError)
        result = subprocess.run(
            ['unzip', '-q', '-o', str(archive_path), '-d', str(target_dir)],
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            raise ArchiveExtractionError(str(archive_path), result.stderr or result.stdout)

        # unzip strips leading '/' and '../' itself; symlinks are still worth refusing
        for dirpath, dirnames, filenames in os.walk(target_dir):
            for name in dirnames + filenames:
                if os.path.islink(os.path.join(dirpath, name)):
                    raise ArchiveExtractionError(str(archive_path), f'archive contains a symbolic link: {name}')

    @staticmethod
    def _require(
        command: str,
        archive_path: Path,
        error: type[ArchiveCreationError] | type[ArchiveExtractionError],
    ) -> None:
        if shutil.which(command) is None:
            raise error(str(archive_path), f'{command} executable not found in PATH')


# ==============================================================================
# Format detection
# ==============================================================================


class FormatDetector:
    """Maps archive file names to codecs."""

    # Longest extensions first so '.tar.zst' wins over a bare '.zst'
    EXTENSION_MAP: dict[str, ArchiveFormat] = {
        '.tar.zst': 'tar.zst',
        '.zip': 'zip',
    }

    @classmethod
    def detect_format(cls, path: Path) -> ArchiveFormat | None:
        name = path.name.lower()
        for ext, fmt in cls.EXTENSION_MAP.items():
            if name.endswith(ext):
                return fmt
        return None

    @classmethod
    def strip_extension(cls, path: Path) -> str:
        """Archive id for an archive file name ('2025-01-15-fix-bug.tar.zst' -> '2025-01-15-fix-bug')."""
        name = path.name
        for ext in cls.EXTENSION_MAP:
            if name.lower().endswith(ext):
                return name[: -len(ext)]
        return path.stem


def codec_for_format(archive_format: ArchiveFormat, compression_level: int = 3) -> ArchiveCodec:
    """Instantiate the codec for a format."""
    match archive_format:
        case 'tar.zst':
            return ZstdTarCodec(level=compression_level)
        case 'zip':
            return ZipCommandCodec()
        case _:
            raise ValueError(f'Unsupported archive format: {archive_format!r}')
