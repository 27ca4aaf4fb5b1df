"""
Repository resolution schemas.

Results of looking for a session's project on the local machine.
"""

from __future__ import annotations

from collections.abc import Sequence

from session_share.base_model import StrictModel


class RepoValidation(StrictModel):
    """Whether an explicit path can be used as a remap target."""

    valid: bool
    error: str | None = None


class RepoSearchResult(StrictModel):
    """Raw result of searching the search roots for a project name."""

    found: bool
    path: str | None  # Set only when exactly one candidate was found
    candidates: Sequence[str]


class PathResolution(StrictModel):
    """
    Outcome of resolving a session's original directory on this machine.

    ``resolved`` with ``new_path`` means the session can be restored without
    asking anything. Otherwise ``requires_user_input`` is set and
    ``candidates`` lists what was found (possibly nothing).
    """

    resolved: bool
    new_path: str | None
    requires_user_input: bool
    candidates: Sequence[str]
    error: str | None = None
