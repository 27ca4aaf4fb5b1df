"""
Path remapping for sessions restored on another machine.

A session records the absolute directory it was started in, and that prefix
shows up all over its records (session.directory, project.worktree,
message.path.cwd, tool inputs and outputs...). Rather than maintaining a
list of path-bearing fields, every string value that starts with the old
project path is rewritten, so the pass can run over any JSON document.
"""

from __future__ import annotations

import json
from pathlib import Path

from session_share.protocols import LoggerProtocol, NullLogger
from session_share.types import JsonValue

_SEPARATORS = ('/', '\\')


def remap_string(value: str, old_path: str, new_path: str) -> str:
    """
    Replace a leading ``old_path`` in ``value`` with ``new_path``.

    The prefix only matches at a path boundary, so '/A/B/repo2' is not
    touched when remapping '/A/B/repo'.

    Examples:
        >>> remap_string('/A/B/repo/src/x.ts', '/A/B/repo', '/C/repo')
        '/C/repo/src/x.ts'

        >>> remap_string('/A/B/repo2', '/A/B/repo', '/C/repo')
        '/A/B/repo2'
    """
    if not old_path or not value.startswith(old_path):
        return value

    rest = value[len(old_path) :]
    if rest and not (rest.startswith(_SEPARATORS) or old_path.endswith(_SEPARATORS)):
        return value
    return new_path + rest


def remap_paths(value: JsonValue, old_path: str, new_path: str) -> JsonValue:
    """Recursively remap every string in a JSON value. Keys are left alone."""
    match value:
        case str():
            return remap_string(value, old_path, new_path)
        case list():
            return [remap_paths(item, old_path, new_path) for item in value]
        case dict():
            return {key: remap_paths(item, old_path, new_path) for key, item in value.items()}
        case _:
            return value


async def remap_json_tree(
    root: Path,
    old_path: str,
    new_path: str,
    logger: LoggerProtocol | None = None,
) -> int:
    """
    Remap paths in every ``*.json`` file below ``root``, in place.

    Restore passes the staged storage/ tree, so snapshot files are never
    opened. A ``.json`` file that does not parse is left untouched and
    reported as a warning.

    Returns:
        Number of files rewritten
    """
    logger = logger or NullLogger()
    rewritten = 0

    for path in sorted(root.rglob('*.json')):
        if not path.is_file():
            continue
        try:
            with open(path, encoding='utf-8') as f:
                data = json.load(f)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            await logger.warning(f'Skipping unparseable JSON file {path.relative_to(root)}: {e}')
            continue

        remapped = remap_paths(data, old_path, new_path)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(remapped, f, indent=2, ensure_ascii=False)
        rewritten += 1

    await logger.info(f'Remapped {old_path} -> {new_path} in {rewritten} JSON files')
    return rewritten
