"""Glob resolution against workspace roots and file reading."""

from __future__ import annotations

import asyncio
import logging
import os
import re
from functools import lru_cache
from pathlib import Path

import pathspec

from ..models import split_lines

logger = logging.getLogger(__name__)

SKIP_DIRS: frozenset[str] = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        "node_modules",
        "__pycache__",
    }
)

_BRACES = re.compile(r"\{([^{}]*)\}")


def expand_braces(pattern: str) -> list[str]:
    """Expand `{a,b}` alternatives, innermost first: `*.{md,txt}` -> `*.md`, `*.txt`."""
    match = _BRACES.search(pattern)
    if match is None:
        return [pattern]

    head, tail = pattern[: match.start()], pattern[match.end() :]
    expanded: list[str] = []
    for alternative in match.group(1).split(","):
        expanded.extend(expand_braces(head + alternative + tail))
    return list(dict.fromkeys(expanded))


def _anchor(pattern: str) -> str:
    # Globs are relative to a workspace root; gitignore patterns without a
    # leading slash would otherwise match at any depth.
    if pattern.startswith("./"):
        pattern = pattern[2:]
    return pattern if pattern.startswith("/") else "/" + pattern


@lru_cache(maxsize=256)
def compile_glob(pattern: str) -> pathspec.PathSpec:
    """Compile a root-relative glob. Raises ValueError for an invalid pattern."""
    return pathspec.PathSpec.from_lines("gitignore", [_anchor(p) for p in expand_braces(pattern)])


def read_lines(path: Path) -> list[str]:
    """Read a UTF-8 file and split it on universal newlines."""
    return split_lines(path.read_text(encoding="utf-8"))


class FileScanner:
    """Resolves globs against a fixed list of workspace roots."""

    def __init__(self, roots: list[Path] | None = None, skip_dirs: frozenset[str] = SKIP_DIRS):
        self.roots = [Path(r).resolve() for r in roots or []]
        self.skip_dirs = skip_dirs

    def relative_path(self, path: Path) -> tuple[Path, Path] | None:
        """Return (root, path relative to it) for the first root containing path."""
        path = Path(path).resolve()
        for root in self.roots:
            try:
                return root, path.relative_to(root)
            except ValueError:
                continue
        return None

    def display_path(self, path: Path) -> str:
        """Root-relative POSIX path for messages; absolute outside all roots."""
        found = self.relative_path(path)
        if found is None:
            return str(path)
        return found[1].as_posix()

    def is_file_match_glob(self, path: Path, glob: str) -> bool:
        """Check whether path lies under a workspace root and matches glob there."""
        try:
            spec = compile_glob(glob)
        except ValueError as e:
            logger.warning("Invalid glob pattern %r: %s", glob, e)
            return False

        path = Path(path).resolve()
        for root in self.roots:
            try:
                rel = path.relative_to(root)
            except ValueError:
                continue
            if spec.match_file(rel.as_posix()):
                return True
        return False

    def find_files(self, glob: str) -> list[Path]:
        """
        Resolve glob against every root.

        Returns absolute file paths, sorted per root, without duplicates when
        roots are nested. Raises ValueError for an invalid glob.
        """
        spec = compile_glob(glob)
        found: dict[Path, None] = {}

        for root in self.roots:
            if not root.is_dir():
                logger.warning("Workspace root %s is not a directory", root)
                continue

            matches: list[Path] = []
            for dirpath, dirnames, filenames in os.walk(root, onerror=self._walk_error):
                dirnames[:] = sorted(d for d in dirnames if d not in self.skip_dirs)
                rel_dir = Path(dirpath).relative_to(root)
                for fname in filenames:
                    rel = rel_dir / fname
                    if spec.match_file(rel.as_posix()):
                        matches.append(Path(dirpath) / fname)

            for path in sorted(matches):
                found.setdefault(path, None)

        return list(found)

    async def find_files_async(self, glob: str) -> list[Path]:
        return await asyncio.to_thread(self.find_files, glob)

    @staticmethod
    def _walk_error(error: OSError) -> None:
        logger.warning("Cannot enumerate %s: %s", error.filename, error)
