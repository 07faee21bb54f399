"""
Convert document decorations to LSP payloads.

Broken links become diagnostics, resolved links become document links and
inline annotations become inlay hints.

Ranges are built in code points. Callers pass `encode` to convert them to
the client's negotiated position encoding (UTF-16 unless agreed otherwise).
"""

from __future__ import annotations

from typing import Callable

from lsprotocol import types as lsp

from ..links.scanner import FileScanner
from ..models import DocumentDecorations, Location, Position, Range

SOURCE = "regex-anchor"
BROKEN_LINK_CODE = "broken-link"

RangeEncoder = Callable[[lsp.Range], lsp.Range]


def _unchanged(span: lsp.Range) -> lsp.Range:
    return span


def to_lsp_position(position: Position) -> lsp.Position:
    return lsp.Position(line=position.line, character=position.character)


def to_lsp_range(span: Range) -> lsp.Range:
    return lsp.Range(start=to_lsp_position(span.start), end=to_lsp_position(span.end))


def to_lsp_location(location: Location, encode: RangeEncoder = _unchanged) -> lsp.Location:
    return lsp.Location(uri=location.path.as_uri(), range=encode(to_lsp_range(location.range)))


def link_target(location: Location) -> str:
    """File URI with a 1-based `#L<line>` fragment."""
    return f"{location.path.as_uri()}#L{location.line + 1}"


def link_tooltip(location: Location, scanner: FileScanner) -> str:
    return f"Follow link to {scanner.display_path(location.path)}:{location.line + 1}"


def broken_link_diagnostics(
    decorations: DocumentDecorations,
    encode: RangeEncoder = _unchanged,
) -> list[lsp.Diagnostic]:
    diagnostics = []
    for link in decorations.broken:
        diagnostics.append(
            lsp.Diagnostic(
                range=encode(to_lsp_range(link.source.range)),
                message=f"Broken link: `{link.source.link_text}` (destination not found)",
                severity=lsp.DiagnosticSeverity.Warning,
                source=SOURCE,
                code=BROKEN_LINK_CODE,
                data={"key": link.source.link_text},
            )
        )
    return diagnostics


def document_links(
    decorations: DocumentDecorations,
    scanner: FileScanner,
    encode: RangeEncoder = _unchanged,
) -> list[lsp.DocumentLink]:
    links = []
    for link in decorations.resolved:
        destination = link.destination
        if destination is None:
            continue
        links.append(
            lsp.DocumentLink(
                range=encode(to_lsp_range(link.source.range)),
                target=link_target(destination),
                tooltip=link_tooltip(destination, scanner),
            )
        )
    return links


def inlay_hints(
    decorations: DocumentDecorations,
    within: lsp.Range | None = None,
    encode: RangeEncoder = _unchanged,
) -> list[lsp.InlayHint]:
    """Inlay hints placed right after each annotated match, optionally limited to a line range."""
    hints = []
    for annotation in decorations.inline:
        end = annotation.range.end
        if within is not None and not within.start.line <= end.line <= within.end.line:
            continue
        position = encode(to_lsp_range(Range(end, end))).end
        hints.append(
            lsp.InlayHint(
                position=position,
                label=annotation.text,
                padding_left=True,
            )
        )
    return hints
