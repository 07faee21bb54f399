"""
Source-pattern resolution against the destination index.

Results are computed fresh on every call; nothing here caches across
requests, so staleness is bounded by the last index rebuild only.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Callable, Iterable, Iterator

from ..models import (
    DestinationContent,
    Document,
    DocumentDecorations,
    InlineAnnotation,
    Location,
    Match,
    Position,
    Range,
    ResolvedLink,
)
from ..rules.schema import DEFAULT_PREVIEW, PreviewConfig, Rule, SourceDescriptor
from .indexer import LinkIndexer
from .patterns import compile_pattern, extract_key
from .scanner import FileScanner, read_lines

logger = logging.getLogger(__name__)

LineReader = Callable[[Path], list[str]]

# Markdown code fence languages for hover previews.
_FENCE_LANGUAGES = {
    ".c": "c",
    ".cpp": "cpp",
    ".cs": "csharp",
    ".css": "css",
    ".go": "go",
    ".h": "c",
    ".html": "html",
    ".java": "java",
    ".js": "javascript",
    ".json": "json",
    ".md": "markdown",
    ".py": "python",
    ".rs": "rust",
    ".sh": "shellscript",
    ".sql": "sql",
    ".toml": "toml",
    ".ts": "typescript",
    ".txt": "plaintext",
    ".xml": "xml",
    ".yaml": "yaml",
    ".yml": "yaml",
}


def language_for_path(path: Path) -> str:
    return _FENCE_LANGUAGES.get(path.suffix.lower(), "plaintext")


def extract_inline_text(excerpt: str, editor_pattern: str) -> str | None:
    """Apply a preview `editor` regex (multiline) to an excerpt."""
    pattern = compile_pattern(editor_pattern, re.MULTILINE)
    if pattern is None:
        return None
    match = pattern.search(excerpt)
    if match is None:
        return None
    return extract_key(match) or None


class LinkResolver:
    """Matches source patterns in documents and looks their keys up in the index."""

    def __init__(
        self,
        indexer: LinkIndexer,
        rules: Iterable[Rule] = (),
        reader: LineReader = read_lines,
    ):
        self.indexer = indexer
        self.rules: list[Rule] = list(rules)
        self.reader = reader

    @property
    def scanner(self) -> FileScanner:
        return self.indexer.scanner

    def set_rules(self, rules: Iterable[Rule]) -> None:
        self.rules = list(rules)

    def applicable_sources(self, document: Document) -> Iterator[tuple[Rule, SourceDescriptor]]:
        """(rule, source) pairs whose glob matches the document, in configured order."""
        for rule in self.rules:
            if not rule.is_active:
                continue
            for source in rule.sources:
                if self.scanner.is_file_match_glob(document.path, source.includes):
                    yield rule, source

    def find_link_matches(self, document: Document, pattern: str, line: int | None = None) -> list[Match]:
        """
        Find every non-overlapping match of pattern.

        With `line`, only that line is scanned; otherwise the whole text is
        scanned in one pass, so matches may span lines. Empty matches are
        skipped. An invalid pattern yields no matches.
        """
        regex = compile_pattern(pattern)
        if regex is None:
            return []

        matches: list[Match] = []
        if line is not None:
            if not 0 <= line < len(document.lines):
                return []
            for m in regex.finditer(document.lines[line]):
                if not m.group(0):
                    continue
                matches.append(Match(range=Range.on_line(line, m.start(), m.end()), link_text=extract_key(m)))
            return matches

        for m in regex.finditer(document.text):
            if not m.group(0):
                continue
            span = Range(document.position_at(m.start()), document.position_at(m.end()))
            matches.append(Match(range=span, link_text=extract_key(m)))
        return matches

    def preview_for(self, location: Location, rule: Rule) -> PreviewConfig:
        """Preview of the first destination descriptor in rule whose glob matches location."""
        for dest in rule.destinations:
            if self.scanner.is_file_match_glob(location.path, dest.includes):
                return dest.preview or DEFAULT_PREVIEW
        return DEFAULT_PREVIEW

    def resolve(self, match: Match, rule: Rule) -> ResolvedLink:
        destinations = tuple(self.indexer.get_destinations(match.link_text)) if match.link_text else ()
        if not destinations:
            return ResolvedLink(source=match)
        return ResolvedLink(
            source=match,
            destinations=destinations,
            preview=self.preview_for(destinations[0], rule),
        )

    def find_matching_link_at_position(self, document: Document, position: Position) -> ResolvedLink | None:
        """Resolve the match under position; the first rule (in configured order) that has one wins."""
        for rule, source in self.applicable_sources(document):
            for match in self.find_link_matches(document, source.patterns, line=position.line):
                if match.range.contains(position):
                    return self.resolve(match, rule)
        return None

    def find_all_link_matches(self, document: Document) -> list[ResolvedLink]:
        """Resolve every match of every applicable source descriptor."""
        results: list[ResolvedLink] = []
        for rule, source in self.applicable_sources(document):
            for match in self.find_link_matches(document, source.patterns):
                results.append(self.resolve(match, rule))
        return results

    def get_destination_content(
        self,
        location: Location,
        preview: PreviewConfig = DEFAULT_PREVIEW,
    ) -> DestinationContent | None:
        """Read the clipped preview window around a destination; None if unreadable."""
        try:
            lines = self.reader(location.path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Cannot read destination %s: %s", location.path, e)
            return None

        last = len(lines) - 1
        start = max(0, min(location.line - preview.lines_before, last))
        end = max(start, min(last, location.line + preview.lines_after))

        return DestinationContent(
            path=location.path,
            target_line=location.line,
            start_line=start,
            lines=lines[start : end + 1],
            language=language_for_path(location.path),
        )

    def inline_text(self, link: ResolvedLink) -> str | None:
        """Inline annotation for a resolved link whose preview defines `editor`."""
        if link.destination is None or link.preview is None or not link.preview.editor:
            return None
        content = self.get_destination_content(link.destination, link.preview)
        if content is None:
            return None
        return extract_inline_text(content.text, link.preview.editor)

    def decorate(self, document: Document) -> DocumentDecorations:
        """
        Split a document's links into resolved, broken and inline sets.

        A span resolved under any rule is never also reported as broken.
        """
        decorations = DocumentDecorations()
        links = self.find_all_link_matches(document)

        resolved_ranges: set[Range] = set()
        for link in links:
            if link.is_broken or link.source.range in resolved_ranges:
                continue
            resolved_ranges.add(link.source.range)
            decorations.resolved.append(link)
            text = self.inline_text(link)
            if text:
                decorations.inline.append(InlineAnnotation(range=link.source.range, text=text))

        broken_ranges: set[Range] = set()
        for link in links:
            span = link.source.range
            if not link.is_broken or span in resolved_ranges or span in broken_ranges:
                continue
            broken_ranges.add(span)
            decorations.broken.append(link)

        return decorations
