"""
Shared type definitions for the session_share package.

Centralizes common type annotations used across multiple modules.
"""

from __future__ import annotations

from typing import Literal, TypeAlias

# Untyped view of a parsed JSON document, used by the path remap pass
JsonScalar: TypeAlias = str | int | float | bool | None
JsonValue: TypeAlias = JsonScalar | list['JsonValue'] | dict[str, 'JsonValue']

# Closed set of record kinds found in a session's storage subtree
RecordKind = Literal['session', 'message', 'part', 'session_diff', 'project', 'snapshot']

# Archive container formats
ArchiveFormat = Literal['tar.zst', 'zip']
