"""Pytest configuration and fixtures."""

import asyncio
from pathlib import Path

import pytest

from regex_anchor.links.indexer import LinkIndexer
from regex_anchor.links.resolver import LinkResolver
from regex_anchor.links.scanner import FileScanner
from regex_anchor.rules.schema import DestinationDescriptor, PreviewConfig, Rule, SourceDescriptor

UUID = "550e8400-e29b-41d4-a716-446655440000"
OTHER_UUID = "6ba7b810-9dad-11d1-80b4-00c04fd430c8"
MISSING_UUID = "00000000-0000-0000-0000-000000000000"

UUID_PATTERN = r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"
ID_PATTERN = r"id: ([0-9a-f-]{36})"


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def make_rule(
    source_glob: str = "notes/**/*.md",
    source_pattern: str = UUID_PATTERN,
    dest_glob: str = "specs/**/*.md",
    dest_pattern: str = ID_PATTERN,
    preview: PreviewConfig | None = None,
) -> Rule:
    return Rule(
        sources=(SourceDescriptor(includes=source_glob, patterns=source_pattern),),
        destinations=(DestinationDescriptor(includes=dest_glob, patterns=dest_pattern, preview=preview),),
    )


def rebuild(indexer: LinkIndexer, rules: list[Rule]) -> None:
    asyncio.run(indexer.rebuild(rules))


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A workspace with one destination file and one source file."""
    root = tmp_path / "ws"
    write(
        root / "specs" / "design.md",
        "\n".join(
            [
                "# Design",
                "",
                f"id: {UUID}",
                "Summary: Login flow",
                "",
                f"id: {OTHER_UUID}",
                "",
            ]
        ),
    )
    write(
        root / "notes" / "todo.md",
        "\n".join(
            [
                f"Implement {UUID} today",
                f"See {MISSING_UUID} too",
                "",
            ]
        ),
    )
    return root.resolve()


@pytest.fixture
def design_path(workspace: Path) -> Path:
    return workspace / "specs" / "design.md"


@pytest.fixture
def todo_path(workspace: Path) -> Path:
    return workspace / "notes" / "todo.md"


@pytest.fixture
def scanner(workspace: Path) -> FileScanner:
    return FileScanner([workspace])


@pytest.fixture
def indexer(scanner: FileScanner) -> LinkIndexer:
    return LinkIndexer(scanner)


@pytest.fixture
def uuid_rule() -> Rule:
    return make_rule()


@pytest.fixture
def resolver(indexer: LinkIndexer, uuid_rule: Rule) -> LinkResolver:
    rebuild(indexer, [uuid_rule])
    return LinkResolver(indexer, [uuid_rule])
