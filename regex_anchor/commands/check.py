"""Check command implementation."""

import json
from dataclasses import dataclass, field
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..controller import RebuildController
from ..models import Document, ResolvedLink
from .engine import build_controller, load_rules, rebuild, source_files


@dataclass
class FileReport:
    path: Path
    resolved: list[ResolvedLink] = field(default_factory=list)
    broken: list[ResolvedLink] = field(default_factory=list)


def collect_reports(controller: RebuildController, console: Console) -> list[FileReport]:
    """Resolve every source file against the current index."""
    reports = []
    for path in source_files(controller):
        try:
            document = Document.from_file(path)
        except (OSError, UnicodeDecodeError) as e:
            console.print(f"[yellow]Skipping {path}: {e}[/yellow]", highlight=False)
            continue
        decorations = controller.refresh(document)
        reports.append(FileReport(path=path, resolved=decorations.resolved, broken=decorations.broken))
    return reports


def run_check(
    roots: list[Path],
    config_path: Path | None = None,
    output_json: bool = False,
    show_resolved: bool = False,
    fail_on_broken: bool = False,
) -> int:
    """Resolve every source match in the workspace and report broken links.

    Args:
        roots: Workspace roots
        config_path: Rules file (defaults to workspace discovery)
        output_json: Output results as JSON instead of a table
        show_resolved: Also list resolved links
        fail_on_broken: Exit with 1 when any broken link is found

    Returns:
        Exit code (0 = success, 1 = broken links found with fail_on_broken)
    """
    console = Console(stderr=True)

    rules = load_rules(roots, config_path)
    if not rules:
        console.print("No link rules configured.", style="yellow")
        return 0

    controller = build_controller(roots, rules)
    console.print(f"Indexing destinations in {', '.join(str(r) for r in roots)}...", style="dim")
    rebuild(controller)

    reports = collect_reports(controller, console)
    broken_count = sum(len(r.broken) for r in reports)
    resolved_count = sum(len(r.resolved) for r in reports)

    if output_json:
        _output_json(reports, controller, show_resolved)
    else:
        out = Console()
        _print_table(out, reports, controller, show_resolved)
        status_style = "bold red" if broken_count else "bold green"
        status = "✗" if broken_count else "✓"
        out.print(
            f"{status} {resolved_count} resolved, {broken_count} broken link(s) "
            f"in {len(reports)} file(s); {len(controller.indexer)} indexed key(s)",
            style=status_style,
        )

    return 1 if broken_count and fail_on_broken else 0


def _link_to_dict(link: ResolvedLink, controller: RebuildController) -> dict:
    scanner = controller.indexer.scanner
    span = link.source.range
    return {
        "key": link.source.link_text,
        "line": span.start.line + 1,
        "column": span.start.character + 1,
        "destinations": [
            {"file": scanner.display_path(loc.path), "line": loc.line + 1} for loc in link.destinations
        ],
    }


def _output_json(reports: list[FileReport], controller: RebuildController, show_resolved: bool) -> None:
    scanner = controller.indexer.scanner
    files = []
    for report in reports:
        entry = {
            "file": scanner.display_path(report.path),
            "broken": [_link_to_dict(link, controller) for link in report.broken],
        }
        if show_resolved:
            entry["resolved"] = [_link_to_dict(link, controller) for link in report.resolved]
        files.append(entry)

    output = {
        "files": files,
        "summary": {
            "files": len(reports),
            "indexed_keys": len(controller.indexer),
            "resolved": sum(len(r.resolved) for r in reports),
            "broken": sum(len(r.broken) for r in reports),
        },
    }
    print(json.dumps(output, indent=2, default=str))


def _print_table(console: Console, reports: list[FileReport], controller: RebuildController, show_resolved: bool) -> None:
    scanner = controller.indexer.scanner

    table = Table(title="Broken links" if not show_resolved else "Links")
    table.add_column("Location", style="bold")
    table.add_column("Key")
    table.add_column("Destination")

    rows = 0
    for report in reports:
        links = list(report.broken)
        if show_resolved:
            links = sorted(links + list(report.resolved), key=lambda l: (l.source.range.start.line, l.source.range.start.character))
        for link in links:
            span = link.source.range
            where = f"{scanner.display_path(report.path)}:{span.start.line + 1}:{span.start.character + 1}"
            if link.is_broken:
                destination = "[red]not found[/red]"
            else:
                first = link.destinations[0]
                destination = escape(f"{scanner.display_path(first.path)}:{first.line + 1}")
                if len(link.destinations) > 1:
                    destination += f" [dim](+{len(link.destinations) - 1})[/dim]"
            table.add_row(escape(where), escape(link.source.link_text), destination)
            rows += 1

    if rows:
        console.print(table)
