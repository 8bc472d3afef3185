# AGPL-3.0 License

"""
Glob matching of changed file paths against include/exclude patterns.
"""

from functools import lru_cache
from typing import Iterable, Optional

import pathspec


def _is_top_level(pattern: str) -> bool:
    return "/" not in pattern and not pattern.startswith("**")


def _spec(patterns: list[str]) -> Optional[pathspec.GitIgnoreSpec]:
    return pathspec.GitIgnoreSpec.from_lines(patterns) if patterns else None


@lru_cache(maxsize=256)
def _compile(patterns: tuple[str, ...]) -> tuple[Optional[pathspec.GitIgnoreSpec], Optional[pathspec.GitIgnoreSpec]]:
    """Compile ``patterns`` into a spec for slash-less patterns and one for the rest."""
    return (
        _spec([p for p in patterns if _is_top_level(p)]),
        _spec([p for p in patterns if not _is_top_level(p)]),
    )


def _spec_matches(specs, file_path: str) -> bool:
    top_level, nested = specs
    # gitignore lets "*.sql" match at any depth; here it only matches top-level paths
    if top_level is not None and "/" not in file_path and top_level.match_file(file_path):
        return True
    return nested is not None and nested.match_file(file_path)


class FileMatcher:
    """
    Include/exclude glob filter.

    A path is included when it matches at least one include pattern and no
    exclude pattern. A pattern without a slash (``*.sql``) matches top-level
    paths only; ``**/*.sql`` matches at any depth. Dotfiles and dot-directories
    (``.github/**``) are matched like any other path.
    """

    def __init__(self, include: Iterable[str], exclude: Optional[Iterable[str]] = None):
        self.include = tuple(include)
        self.exclude = tuple(exclude or ())

        # Compile path specs for efficient matching
        self._include_specs = _compile(self.include)
        self._exclude_specs = _compile(self.exclude) if self.exclude else None

    def matches(self, file_path: str) -> bool:
        if not _spec_matches(self._include_specs, file_path):
            return False

        if self._exclude_specs and _spec_matches(self._exclude_specs, file_path):
            return False

        return True

    def filter(self, files: Iterable[str]) -> list[str]:
        """Return the matching subset of ``files``, preserving order."""
        return [file_path for file_path in files if self.matches(file_path)]

    def any_match(self, files: Iterable[str]) -> bool:
        return any(self.matches(file_path) for file_path in files)


def match_files(files: Iterable[str], include: Iterable[str], exclude: Optional[Iterable[str]] = None) -> list[str]:
    return FileMatcher(include, exclude).filter(files)


def has_matching_files(files: Iterable[str], include: Iterable[str], exclude: Optional[Iterable[str]] = None) -> bool:
    return FileMatcher(include, exclude).any_match(files)
