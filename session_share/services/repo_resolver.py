"""
Repository resolver - locates a session's project on the local machine.

When an archive comes from another machine its recorded directory usually
doesn't exist here. The resolver looks for a checkout with the same name in
the usual project folders and only adopts it when the match is unique.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from pathlib import Path

from session_share.paths import default_search_roots, is_absolute_path
from session_share.schemas.operations.resolve import PathResolution, RepoSearchResult, RepoValidation

DEFAULT_MAX_DEPTH = 3


class RepoResolver:
    """
    Finds directories named like a project that contain a VCS marker.

    Search roots and depth come from the caller (normally ShareSettings), so
    tests can point the resolver at a temporary home directory.
    """

    def __init__(
        self,
        search_roots: Sequence[Path],
        max_depth: int = DEFAULT_MAX_DEPTH,
        vcs_marker: str = '.git',
    ) -> None:
        self.search_roots = list(search_roots)
        self.max_depth = max_depth
        self.vcs_marker = vcs_marker

    @classmethod
    def for_home(cls, home: Path, max_depth: int = DEFAULT_MAX_DEPTH, vcs_marker: str = '.git') -> RepoResolver:
        return cls(default_search_roots(home), max_depth=max_depth, vcs_marker=vcs_marker)

    def is_repo(self, path: Path) -> bool:
        """True if ``path`` holds the VCS marker directory."""
        return (path / self.vcs_marker).is_dir()

    def find_repository_by_name(self, project_name: str) -> RepoSearchResult:
        """
        Search every root for directories literally named ``project_name``.

        Results are de-duplicated across roots (home is searched last and
        overlaps the other roots) while keeping discovery order.
        """
        candidates: list[str] = []
        seen: set[str] = set()

        for root in self.search_roots:
            if not root.is_dir():
                continue
            for match in self._search(root, project_name, depth=0):
                key = os.path.realpath(match)
                if key not in seen:
                    seen.add(key)
                    candidates.append(str(match))

        return RepoSearchResult(
            found=bool(candidates),
            path=candidates[0] if len(candidates) == 1 else None,
            candidates=candidates,
        )

    def _search(self, base: Path, project_name: str, depth: int) -> list[Path]:
        if depth > self.max_depth:
            return []

        try:
            entries = sorted(os.scandir(base), key=lambda e: e.name)
        except OSError:
            return []  # Unreadable directory (permissions, vanished)

        results: list[Path] = []
        for entry in entries:
            # Hidden directories (including the marker itself) are never descended into
            if entry.name.startswith('.'):
                continue
            try:
                if not entry.is_dir(follow_symlinks=False):
                    continue
            except OSError:
                continue

            full_path = Path(entry.path)
            if entry.name == project_name and self.is_repo(full_path):
                results.append(full_path)

            if depth < self.max_depth:
                results.extend(self._search(full_path, project_name, depth + 1))

        return results

    def verify_repo_path(self, path: str) -> RepoValidation:
        """Check that an explicit path is absolute, exists, is a directory and is a repository."""
        if not is_absolute_path(path):
            return RepoValidation(valid=False, error=f'Path must be absolute: {path}')
        candidate = Path(path)
        if not candidate.exists():
            return RepoValidation(valid=False, error=f'Path does not exist or is not accessible: {path}')
        if not candidate.is_dir():
            return RepoValidation(valid=False, error='Path is not a directory')
        if not self.is_repo(candidate):
            return RepoValidation(valid=False, error=f'Path is not a repository (no {self.vcs_marker} directory)')
        return RepoValidation(valid=True)

    def resolve(self, original_path: str, project_name: str) -> PathResolution:
        """
        Decide where a session rooted at ``original_path`` should live here.

        Policy:
            1. original path exists -> use it, no search
            2. search roots for ``project_name``
            3. no candidate -> caller must supply a path
            4. one candidate -> adopt it
            5. several candidates -> caller must choose; never guess
        """
        if original_path and Path(original_path).exists():
            return PathResolution(
                resolved=True,
                new_path=original_path,
                requires_user_input=False,
                candidates=[original_path],
            )

        search = self.find_repository_by_name(project_name)

        if not search.found:
            return PathResolution(
                resolved=False,
                new_path=None,
                requires_user_input=True,
                candidates=[],
                error=f'Could not find repository "{project_name}" on this machine',
            )

        if search.path:
            return PathResolution(
                resolved=True,
                new_path=search.path,
                requires_user_input=False,
                candidates=list(search.candidates),
            )

        return PathResolution(
            resolved=False,
            new_path=None,
            requires_user_input=True,
            candidates=list(search.candidates),
        )

    def resolve_without_search(self, original_path: str) -> PathResolution:
        """Step 1 of resolve() only: the original path exists or the caller must supply one."""
        if original_path and Path(original_path).exists():
            return PathResolution(
                resolved=True, new_path=original_path, requires_user_input=False, candidates=[original_path]
            )
        return PathResolution(
            resolved=False,
            new_path=None,
            requires_user_input=True,
            candidates=[],
            error=f'Repository search disabled and {original_path} does not exist',
        )
