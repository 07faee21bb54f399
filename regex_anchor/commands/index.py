"""Index and resolve command implementations."""

import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..controller import RebuildController
from ..models import Location
from ..rules.schema import DEFAULT_PREVIEW, PreviewConfig
from .engine import build_controller, load_rules, rebuild


def run_index(
    roots: list[Path],
    config_path: Path | None = None,
    output_json: bool = False,
) -> int:
    """
    Rebuild the link index and print every key with its destinations.

    Returns the number of indexed keys.
    """
    console = Console(stderr=True)

    rules = load_rules(roots, config_path)
    controller = build_controller(roots, rules)
    rebuild(controller)

    indexer = controller.indexer
    scanner = indexer.scanner

    if output_json:
        output = {
            key: [
                {"file": scanner.display_path(loc.path), "line": loc.line + 1}
                for loc in indexer.get_destinations(key)
            ]
            for key in sorted(indexer.keys())
        }
        print(json.dumps(output, indent=2))
        return len(indexer)

    if not len(indexer):
        console.print("[dim]No destinations indexed.[/dim]")
        return 0

    table = Table(title="Link index")
    table.add_column("Key", style="bold")
    table.add_column("Destinations", justify="right")
    table.add_column("First destination")

    for key in sorted(indexer.keys()):
        locations = indexer.get_destinations(key)
        first = locations[0]
        table.add_row(key, str(len(locations)), f"{scanner.display_path(first.path)}:{first.line + 1}")

    Console().print(table)
    console.print(f"Link index has been refreshed: {len(indexer)} key(s)", style="bold green")

    return len(indexer)


def run_resolve(
    roots: list[Path],
    key: str,
    config_path: Path | None = None,
) -> int:
    """
    Print every destination of a key with its preview window.

    Returns the number of destinations found.
    """
    console = Console()

    rules = load_rules(roots, config_path)
    controller = build_controller(roots, rules)
    rebuild(controller)

    key = key.strip()
    locations = controller.indexer.get_destinations(key)
    if not locations:
        console.print(f"[red]Broken link:[/red] `{key}` (Destination not found)", highlight=False)
        return 0

    scanner = controller.indexer.scanner
    resolver = controller.resolver

    for location in locations:
        preview = _preview_for(controller, location)
        content = resolver.get_destination_content(location, preview)
        console.print(f"[bold]{scanner.display_path(location.path)}:{location.line + 1}[/bold]", highlight=False)
        if content is None:
            console.print("[dim](unreadable)[/dim]")
            continue
        for offset, text in enumerate(content.lines):
            line_no = content.start_line + offset
            style = "bold" if line_no == content.target_line else "dim"
            console.print(f"{line_no + 1:>5} {text}", style=style, highlight=False, markup=False)
        console.print()

    return len(locations)


def _preview_for(controller: RebuildController, location: Location) -> PreviewConfig:
    # First rule with a destination descriptor matching the file decides.
    for rule in controller.rules:
        preview = controller.resolver.preview_for(location, rule)
        if preview is not DEFAULT_PREVIEW:
            return preview
    return DEFAULT_PREVIEW
