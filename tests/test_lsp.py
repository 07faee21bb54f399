"""Conversions from decorations to LSP payloads, and hover text."""

from pathlib import Path

import pytest

pytest.importorskip("pygls")
lsp = pytest.importorskip("lsprotocol.types")

from regex_anchor.links.indexer import LinkIndexer  # noqa: E402
from regex_anchor.links.resolver import LinkResolver  # noqa: E402
from regex_anchor.lsp.diagnostics import (  # noqa: E402
    BROKEN_LINK_CODE,
    SOURCE,
    broken_link_diagnostics,
    document_links,
    inlay_hints,
    link_target,
)
from regex_anchor.lsp.hover import format_broken_hover, get_hover_info  # noqa: E402
from regex_anchor.models import Document, Position  # noqa: E402
from regex_anchor.rules.schema import PreviewConfig  # noqa: E402

from conftest import MISSING_UUID, UUID, make_rule, rebuild  # noqa: E402


def _resolver(indexer: LinkIndexer, preview: PreviewConfig | None = None) -> LinkResolver:
    rule = make_rule(preview=preview)
    rebuild(indexer, [rule])
    return LinkResolver(indexer, [rule])


def test_broken_links_become_warnings(resolver: LinkResolver, todo_path: Path) -> None:
    decorations = resolver.decorate(Document.from_file(todo_path))

    (diagnostic,) = broken_link_diagnostics(decorations)

    assert diagnostic.severity == lsp.DiagnosticSeverity.Warning
    assert diagnostic.source == SOURCE
    assert diagnostic.code == BROKEN_LINK_CODE
    assert MISSING_UUID in diagnostic.message
    assert diagnostic.range.start == lsp.Position(line=1, character=4)


def test_document_links_target_the_line(resolver: LinkResolver, todo_path: Path, design_path: Path) -> None:
    decorations = resolver.decorate(Document.from_file(todo_path))

    (link,) = document_links(decorations, resolver.scanner)

    assert link.target == f"{design_path.as_uri()}#L3"
    assert link.tooltip == "Follow link to specs/design.md:3"
    assert link.range.start == lsp.Position(line=0, character=10)


def test_inlay_hints_follow_the_match(indexer: LinkIndexer, todo_path: Path) -> None:
    resolver = _resolver(indexer, PreviewConfig(editor=r"^Summary: (.*)$"))
    decorations = resolver.decorate(Document.from_file(todo_path))

    (hint,) = inlay_hints(decorations)
    assert hint.label == "Login flow"
    assert hint.position == lsp.Position(line=0, character=46)

    elsewhere = lsp.Range(start=lsp.Position(line=5, character=0), end=lsp.Position(line=9, character=0))
    assert inlay_hints(decorations, within=elsewhere) == []


def test_hover_shows_preview_window(resolver: LinkResolver, todo_path: Path, design_path: Path) -> None:
    link = resolver.find_matching_link_at_position(Document.from_file(todo_path), Position(0, 20))

    text = get_hover_info(resolver, link)

    assert text.startswith("**Link Target:**")
    assert f"[specs/design.md:3]({link_target(link.destination)})" in text
    assert "```markdown" in text
    assert f"3> id: {UUID}" in text
    assert "4: Summary: Login flow" in text
    assert "more destination" not in text


def test_hover_counts_extra_destinations(indexer: LinkIndexer, workspace: Path, todo_path: Path) -> None:
    (workspace / "specs" / "copy.md").write_text(f"id: {UUID}\n", encoding="utf-8")
    resolver = _resolver(indexer)
    link = resolver.find_matching_link_at_position(Document.from_file(todo_path), Position(0, 20))

    assert "*(+1 more destination)*" in get_hover_info(resolver, link)


def test_hover_for_broken_link(resolver: LinkResolver, todo_path: Path) -> None:
    link = resolver.find_matching_link_at_position(Document.from_file(todo_path), Position(1, 10))

    assert get_hover_info(resolver, link) == format_broken_hover(MISSING_UUID)
    assert format_broken_hover("k") == "**Broken Link:** `k` (Destination not found)"


def test_hover_can_be_disabled(indexer: LinkIndexer, todo_path: Path) -> None:
    resolver = _resolver(indexer, PreviewConfig(hover=False))
    link = resolver.find_matching_link_at_position(Document.from_file(todo_path), Position(0, 20))

    assert get_hover_info(resolver, link) is None


def test_server_wiring() -> None:
    from regex_anchor.lsp.server import REFRESH_COMMAND, create_server, uri_to_path

    server = create_server()

    assert server.controller.indexer is server.indexer
    assert server.resolver.indexer is server.indexer
    assert REFRESH_COMMAND == "regexAnchor.refresh"
    assert uri_to_path("file:///tmp/a%20b.md") == Path("/tmp/a b.md")
