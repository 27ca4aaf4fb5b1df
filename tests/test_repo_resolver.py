"""Tests for locating a session's repository on the local machine."""

from __future__ import annotations

from pathlib import Path

from conftest import make_repo

from session_share.paths import default_search_roots, extract_original_path, project_name
from session_share.services.repo_resolver import RepoResolver


def test_project_name() -> None:
    assert project_name('/Users/alice/projects/my-repo') == 'my-repo'
    assert project_name('/Users/alice/projects/my-repo/') == 'my-repo'
    assert project_name('C:\\code\\my-repo') == 'my-repo'


def test_default_search_roots_end_with_home(tmp_path: Path) -> None:
    roots = default_search_roots(tmp_path)
    assert roots[-1] == tmp_path
    assert tmp_path / 'projects' in roots


def test_extract_original_path() -> None:
    document = {'data': [{'type': 'message', 'data': {}}, {'type': 'session', 'data': {'directory': '/x/repo'}}]}
    assert extract_original_path(document) == '/x/repo'
    assert extract_original_path({'data': []}) is None
    assert extract_original_path({}) is None


def test_resolve_existing_original_path_skips_search(home: Path, resolver: RepoResolver) -> None:
    existing = home / 'somewhere' / 'repo'
    existing.mkdir(parents=True)
    make_repo(home, 'projects/repo')

    resolution = resolver.resolve(str(existing), 'repo')

    assert resolution.resolved
    assert resolution.new_path == str(existing)
    assert list(resolution.candidates) == [str(existing)]
    assert not resolution.requires_user_input


def test_resolve_no_candidates(resolver: RepoResolver) -> None:
    resolution = resolver.resolve('/Users/alice/projects/repo', 'repo')

    assert not resolution.resolved
    assert resolution.requires_user_input
    assert resolution.new_path is None
    assert list(resolution.candidates) == []
    assert resolution.error is not None


def test_resolve_single_candidate(home: Path, resolver: RepoResolver) -> None:
    repo = make_repo(home, 'projects/repo')

    resolution = resolver.resolve('/Users/alice/projects/repo', 'repo')

    assert resolution.resolved
    assert resolution.new_path == str(repo)
    assert not resolution.requires_user_input


def test_resolve_several_candidates_never_guesses(home: Path, resolver: RepoResolver) -> None:
    first = make_repo(home, 'projects/repo')
    second = make_repo(home, 'code/work/repo')

    resolution = resolver.resolve('/Users/alice/projects/repo', 'repo')

    assert not resolution.resolved
    assert resolution.requires_user_input
    assert resolution.new_path is None
    assert sorted(resolution.candidates) == sorted([str(first), str(second)])


def test_search_ignores_directories_without_marker(home: Path, resolver: RepoResolver) -> None:
    (home / 'projects' / 'repo').mkdir(parents=True)

    result = resolver.find_repository_by_name('repo')

    assert not result.found
    assert result.path is None


def test_search_skips_hidden_directories(home: Path, resolver: RepoResolver) -> None:
    make_repo(home, '.cache/repo')

    assert not resolver.find_repository_by_name('repo').found


def test_search_depth_is_bounded(tmp_path: Path) -> None:
    repo = make_repo(tmp_path, 'a/b/repo')

    assert not RepoResolver([tmp_path], max_depth=1).find_repository_by_name('repo').found
    assert RepoResolver([tmp_path], max_depth=2).find_repository_by_name('repo').path == str(repo)


def test_search_deduplicates_overlapping_roots(home: Path, resolver: RepoResolver) -> None:
    # Found both from home/projects and from home itself
    repo = make_repo(home, 'projects/repo')

    result = resolver.find_repository_by_name('repo')

    assert list(result.candidates) == [str(repo)]
    assert result.path == str(repo)


def test_verify_repo_path(tmp_path: Path) -> None:
    resolver = RepoResolver([tmp_path])
    plain_dir = tmp_path / 'plain'
    plain_dir.mkdir()
    a_file = tmp_path / 'file.txt'
    a_file.write_text('x')
    repo = make_repo(tmp_path, 'repo')

    assert not resolver.verify_repo_path(str(tmp_path / 'missing')).valid
    assert resolver.verify_repo_path(str(a_file)).error == 'Path is not a directory'
    assert not resolver.verify_repo_path(str(plain_dir)).valid
    assert resolver.verify_repo_path(str(repo)).valid


def test_verify_repo_path_requires_absolute_path(tmp_path: Path) -> None:
    make_repo(tmp_path, 'repo')

    validation = RepoResolver([tmp_path]).verify_repo_path('repo')

    assert not validation.valid
    assert validation.error == 'Path must be absolute: repo'
