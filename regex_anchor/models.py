"""Core value types shared by the indexer, resolver and protocol layers."""

from __future__ import annotations

import re
from bisect import bisect_right
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path

from .rules.schema import PreviewConfig

_NEWLINE = re.compile(r"\r\n|\r|\n")


def split_lines(text: str) -> list[str]:
    """Split text on universal newlines, keeping a trailing empty line."""
    return _NEWLINE.split(text)


@dataclass(frozen=True, order=True)
class Position:
    """Zero-based line and character offset."""

    line: int
    character: int


@dataclass(frozen=True)
class Range:
    start: Position
    end: Position

    @classmethod
    def on_line(cls, line: int, start: int, end: int) -> Range:
        return cls(Position(line, start), Position(line, end))

    def contains(self, position: Position) -> bool:
        """Inclusive at both ends, so a cursor right after a match still hits it."""
        return self.start <= position <= self.end


@dataclass(frozen=True)
class Location:
    """A span in a file on disk."""

    path: Path
    range: Range

    @property
    def line(self) -> int:
        return self.range.start.line


@dataclass(frozen=True)
class Document:
    """Snapshot of a text document (an editor buffer or a file read from disk)."""

    path: Path
    text: str
    uri: str | None = None

    @property
    def document_uri(self) -> str:
        return self.uri or self.path.as_uri()

    @cached_property
    def lines(self) -> list[str]:
        return split_lines(self.text)

    @cached_property
    def _line_offsets(self) -> list[int]:
        return [0] + [m.end() for m in _NEWLINE.finditer(self.text)]

    def position_at(self, offset: int) -> Position:
        offsets = self._line_offsets
        line = bisect_right(offsets, offset) - 1
        return Position(line, offset - offsets[line])

    @classmethod
    def from_file(cls, path: Path) -> Document:
        return cls(path=path, text=path.read_text(encoding="utf-8"))


@dataclass(frozen=True)
class Match:
    """One source-pattern occurrence and the key it carries."""

    range: Range
    link_text: str


@dataclass(frozen=True)
class ResolvedLink:
    """A source match classified against the index.

    `destinations` keeps every location for the key in index order; an empty
    tuple marks a broken link.
    """

    source: Match
    destinations: tuple[Location, ...] = ()
    preview: PreviewConfig | None = None

    @property
    def destination(self) -> Location | None:
        return self.destinations[0] if self.destinations else None

    @property
    def is_broken(self) -> bool:
        return not self.destinations


@dataclass(frozen=True)
class DestinationContent:
    """Clipped window of destination lines around a target line."""

    path: Path
    target_line: int
    start_line: int
    lines: list[str]
    language: str = "plaintext"

    @property
    def end_line(self) -> int:
        return self.start_line + len(self.lines) - 1

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


@dataclass(frozen=True)
class InlineAnnotation:
    range: Range
    text: str


@dataclass
class DocumentDecorations:
    """Resolved, broken and inline decoration sets for one document."""

    resolved: list[ResolvedLink] = field(default_factory=list)
    broken: list[ResolvedLink] = field(default_factory=list)
    inline: list[InlineAnnotation] = field(default_factory=list)
