"""
Path helpers shared by the resolver, the shares service and the CLI.

A session records the absolute directory it was started in. On another
machine that directory usually does not exist, so these helpers derive the
project name to search for and the conventional places to search.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Any

__all__ = [
    'default_search_roots',
    'extract_original_path',
    'is_absolute_path',
    'project_name',
]

_WINDOWS_DRIVE = re.compile(r'^[A-Za-z]:[/\\]')

# Folders (relative to home) where people usually keep checkouts, in search order
SEARCH_SUBDIRS = (
    'Documents/Projects',
    'Projects',
    'projects',
    'repos',
    'Repos',
    'code',
    'Code',
    'src',
    'dev',
    'Development',
    'workspace',
    'Workspace',
    'git',
    'GitHub',
    'gitlab',
)


def project_name(project_path: str) -> str:
    """
    Extract the project name from a path.

    Examples:
        >>> project_name('/Users/alice/projects/my-repo')
        'my-repo'

        >>> project_name('C:\\\\code\\\\my-repo')
        'my-repo'
    """
    if _WINDOWS_DRIVE.match(project_path):
        return PureWindowsPath(project_path).name
    return PurePosixPath(project_path.rstrip('/')).name


def is_absolute_path(path: str) -> bool:
    """Return True for POSIX absolute paths and drive-letter Windows paths."""
    return path.startswith('/') or bool(_WINDOWS_DRIVE.match(path))


def default_search_roots(home: Path) -> list[Path]:
    """Conventional project folders under ``home``, followed by ``home`` itself."""
    return [home / subdir for subdir in SEARCH_SUBDIRS] + [home]


def extract_original_path(share_document: Mapping[str, Any]) -> str | None:
    """
    Extract the original project directory from a private-share document.

    Looks for the ``session`` entry in the document's ``data`` list and
    returns its ``directory`` field.
    """
    entries = share_document.get('data')
    if not isinstance(entries, list):
        return None

    for entry in entries:
        if isinstance(entry, Mapping) and entry.get('type') == 'session':
            data = entry.get('data')
            if isinstance(data, Mapping) and isinstance(data.get('directory'), str):
                return data['directory']
            return None
    return None
