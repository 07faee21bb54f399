"""Watch command - rebuild the index when destination files change."""

from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from ..controller import Trigger
from ..watcher import run_watch_loop
from .check import collect_reports
from .engine import build_controller, load_rules


def run_watch(
    roots: list[Path],
    config_path: Path | None = None,
) -> None:
    """
    Watch workspace roots and re-check links after destination changes.

    This is a blocking command that runs until interrupted (Ctrl+C).
    """
    console = Console(stderr=True)

    rules = load_rules(roots, config_path)
    controller = build_controller(roots, rules)

    def check() -> None:
        reports = collect_reports(controller, console)
        timestamp = datetime.now().strftime("%H:%M:%S")
        broken = [(report.path, link) for report in reports for link in report.broken]
        resolved = sum(len(report.resolved) for report in reports)
        style = "red" if broken else "green"
        console.print(
            f"[dim]{timestamp}[/dim] [{style}]{resolved} resolved, {len(broken)} broken[/{style}]"
            f" ({len(controller.indexer)} indexed keys)"
        )
        scanner = controller.indexer.scanner
        for path, link in broken:
            span = link.source.range
            console.print(
                "  [red]-[/red] " + escape(f"{scanner.display_path(path)}:{span.start.line + 1}: `{link.source.link_text}`"),
                highlight=False,
            )

    rebuild_count = 0

    def on_change(paths: list[Path]) -> None:
        nonlocal rebuild_count
        rebuild_count += 1
        scanner = controller.indexer.scanner
        console.print(f"[bold]Changed:[/bold] {', '.join(scanner.display_path(p) for p in paths)}")
        asyncio.run(controller.handle(Trigger.DESTINATION_SAVED))
        check()

    console.print(f"[bold]Watching[/bold] {', '.join(str(r) for r in roots)}")
    console.print(f"  Rules: {len(rules)}")
    console.print()
    console.print("[dim]Press Ctrl+C to stop watching[/dim]")
    console.print()

    asyncio.run(controller.rebuild())
    check()

    run_watch_loop(
        roots=controller.indexer.scanner.roots,
        is_relevant=lambda path: controller.indexer.is_destination_file(path, controller.rules),
        on_change=on_change,
    )

    console.print()
    console.print(f"[bold]Stopped.[/bold] Rebuilt the index {rebuild_count} time(s).")
