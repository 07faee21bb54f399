"""Shared setup for CLI commands: rules, engine wiring and source discovery."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import click

from ..controller import RebuildController
from ..links.indexer import LinkIndexer
from ..links.resolver import LinkResolver
from ..links.scanner import FileScanner
from ..rules import ConfigError, Rule, load_rules_file, load_workspace_rules

logger = logging.getLogger(__name__)


def load_rules(roots: list[Path], config_path: Path | None) -> list[Rule]:
    """Load rules from --config, or from the workspace config files."""
    try:
        if config_path is not None:
            return load_rules_file(config_path)
        return load_workspace_rules(roots)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e


def build_controller(roots: list[Path], rules: list[Rule]) -> RebuildController:
    scanner = FileScanner(roots)
    indexer = LinkIndexer(scanner)
    controller = RebuildController(indexer, LinkResolver(indexer))
    controller.set_rules(rules)
    return controller


def rebuild(controller: RebuildController) -> None:
    asyncio.run(controller.rebuild())


def source_files(controller: RebuildController) -> list[Path]:
    """Every file matching the `includes` glob of any source descriptor."""
    scanner = controller.indexer.scanner
    found: dict[Path, None] = {}
    for rule in controller.rules:
        for source in rule.sources:
            try:
                files = scanner.find_files(source.includes)
            except (OSError, ValueError) as e:
                logger.warning("Error finding files for pattern %s: %s", source.includes, e)
                continue
            for path in files:
                found.setdefault(path, None)
    return sorted(found)
