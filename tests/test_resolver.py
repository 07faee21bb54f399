from pathlib import Path

from regex_anchor.links.indexer import LinkIndexer
from regex_anchor.links.resolver import LinkResolver, extract_inline_text, language_for_path
from regex_anchor.models import Document, Location, Position, Range
from regex_anchor.rules.schema import DEFAULT_PREVIEW, DestinationDescriptor, PreviewConfig, Rule, SourceDescriptor

from conftest import MISSING_UUID, UUID, UUID_PATTERN, make_rule, rebuild

UUID_SPAN = Range.on_line(0, len("Implement "), len("Implement ") + len(UUID))


def test_resolved_and_broken_links(resolver: LinkResolver, todo_path: Path, design_path: Path) -> None:
    links = resolver.find_all_link_matches(Document.from_file(todo_path))

    assert [link.source.link_text for link in links] == [UUID, MISSING_UUID]
    resolved, broken = links
    assert resolved.source.range == UUID_SPAN
    assert resolved.destination.path == design_path
    assert resolved.destination.line == 2
    assert resolved.preview == DEFAULT_PREVIEW
    assert broken.is_broken
    assert broken.destinations == ()
    assert broken.preview is None


def test_link_at_position(resolver: LinkResolver, todo_path: Path) -> None:
    doc = Document.from_file(todo_path)

    hit = resolver.find_matching_link_at_position(doc, Position(0, 12))
    assert hit is not None
    assert hit.source.link_text == UUID
    assert not hit.is_broken

    # Range end is inclusive.
    assert resolver.find_matching_link_at_position(doc, UUID_SPAN.end) is not None
    assert resolver.find_matching_link_at_position(doc, Position(0, 2)) is None
    assert resolver.find_matching_link_at_position(doc, Position(1, 5)).is_broken


def test_sources_outside_glob_are_ignored(resolver: LinkResolver, design_path: Path) -> None:
    assert resolver.find_all_link_matches(Document.from_file(design_path)) == []


def test_find_link_matches_single_line(resolver: LinkResolver) -> None:
    doc = Document(path=Path("/x.md"), text=f"{UUID} and {UUID}\nnext {UUID}")

    matches = resolver.find_link_matches(doc, UUID_PATTERN, line=0)

    assert [m.range for m in matches] == [
        Range.on_line(0, 0, 36),
        Range.on_line(0, 41, 77),
    ]
    assert resolver.find_link_matches(doc, UUID_PATTERN, line=5) == []


def test_find_link_matches_spanning_lines(resolver: LinkResolver) -> None:
    doc = Document(path=Path("/x.md"), text="intro\nBEGIN\n  token")

    (match,) = resolver.find_link_matches(doc, r"BEGIN\s+(\w+)")

    assert match.link_text == "token"
    assert match.range == Range(Position(1, 0), Position(2, 7))


def test_empty_and_invalid_patterns_yield_nothing(resolver: LinkResolver) -> None:
    doc = Document(path=Path("/x.md"), text="abc")

    assert resolver.find_link_matches(doc, r"x*") == []
    assert resolver.find_link_matches(doc, r"([a-") == []


def test_first_rule_wins_at_position(indexer: LinkIndexer, todo_path: Path) -> None:
    first = make_rule(preview=PreviewConfig(lines_before=0, lines_after=0))
    second = make_rule(preview=PreviewConfig(lines_before=5, lines_after=5))
    rebuild(indexer, [first, second])
    resolver = LinkResolver(indexer, [first, second])
    doc = Document.from_file(todo_path)

    hit = resolver.find_matching_link_at_position(doc, Position(0, 12))

    assert hit.preview == PreviewConfig(lines_before=0, lines_after=0)
    # Every applicable rule contributes to the full scan.
    assert len(resolver.find_all_link_matches(doc)) == 4


def test_preview_for_picks_matching_descriptor(resolver: LinkResolver, design_path: Path) -> None:
    narrow = PreviewConfig(lines_before=0, lines_after=1)
    wide = PreviewConfig(lines_before=4, lines_after=4)
    rule = Rule(
        sources=(SourceDescriptor(includes="notes/*.md", patterns=UUID_PATTERN),),
        destinations=(
            DestinationDescriptor(includes="docs/*.md", patterns="x", preview=narrow),
            DestinationDescriptor(includes="specs/*.md", patterns="x", preview=wide),
        ),
    )
    location = Location(path=design_path, range=Range.on_line(2, 0, 40))

    assert resolver.preview_for(location, rule) == wide
    elsewhere = Location(path=design_path.parent.parent / "notes" / "todo.md", range=location.range)
    assert resolver.preview_for(elsewhere, rule) == DEFAULT_PREVIEW


def test_destination_content_window(resolver: LinkResolver, design_path: Path) -> None:
    location = Location(path=design_path, range=Range.on_line(2, 0, 40))

    content = resolver.get_destination_content(location)

    assert content.start_line == 0
    assert content.end_line == 4
    assert content.lines == ["# Design", "", f"id: {UUID}", "Summary: Login flow", ""]
    assert content.language == "markdown"


def test_destination_content_is_clipped(resolver: LinkResolver, design_path: Path) -> None:
    top = Location(path=design_path, range=Range.on_line(0, 0, 8))
    content = resolver.get_destination_content(top, PreviewConfig(lines_before=3, lines_after=0))
    assert (content.start_line, content.end_line) == (0, 0)

    bottom = Location(path=design_path, range=Range.on_line(5, 0, 40))
    content = resolver.get_destination_content(bottom, PreviewConfig(lines_before=0, lines_after=10))
    assert (content.start_line, content.end_line) == (5, 6)


def test_destination_content_unreadable(resolver: LinkResolver, workspace: Path) -> None:
    missing = Location(path=workspace / "specs" / "gone.md", range=Range.on_line(0, 0, 0))

    assert resolver.get_destination_content(missing) is None


def test_inline_text_from_editor_pattern(indexer: LinkIndexer, todo_path: Path) -> None:
    rule = make_rule(preview=PreviewConfig(editor=r"^Summary: (.*)$"))
    rebuild(indexer, [rule])
    resolver = LinkResolver(indexer, [rule])

    decorations = resolver.decorate(Document.from_file(todo_path))

    assert len(decorations.inline) == 1
    assert decorations.inline[0].text == "Login flow"
    assert decorations.inline[0].range == UUID_SPAN


def test_inline_text_without_match(indexer: LinkIndexer, todo_path: Path) -> None:
    rule = make_rule(preview=PreviewConfig(editor=r"^Owner: (.*)$"))
    rebuild(indexer, [rule])
    resolver = LinkResolver(indexer, [rule])

    assert resolver.decorate(Document.from_file(todo_path)).inline == []


def test_extract_inline_text_is_multiline() -> None:
    assert extract_inline_text("title: x\nname:  Alice \n", r"^name:(.*)$") == "Alice"
    assert extract_inline_text("nothing", r"^name:(.*)$") is None
    assert extract_inline_text("name: x", r"(unclosed") is None


def test_decorate_sets_are_disjoint(indexer: LinkIndexer, todo_path: Path) -> None:
    # The second rule keys the same spans by their first UUID segment, which
    # never resolves; a span resolved under the first rule stays resolved.
    first = make_rule()
    second = make_rule(source_pattern=r"([0-9a-f]{8})-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}")
    rebuild(indexer, [first, second])
    resolver = LinkResolver(indexer, [second, first])

    decorations = resolver.decorate(Document.from_file(todo_path))

    assert [link.source.range for link in decorations.resolved] == [UUID_SPAN]
    assert [link.source.range for link in decorations.broken] == [Range.on_line(1, 4, 40)]


def test_language_for_path() -> None:
    assert language_for_path(Path("a.PY")) == "python"
    assert language_for_path(Path("a.unknown")) == "plaintext"
