"""CLI entrypoint for regex-anchor."""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from . import __version__


def _configure_logging(verbose: bool, log_file: Path | None) -> None:
    """Send logs to stderr (or a file) so stdout stays free for LSP traffic and JSON."""
    level = logging.DEBUG if verbose else logging.WARNING
    if log_file is not None:
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    else:
        handler = RichHandler(console=Console(stderr=True), show_path=False)
    logging.basicConfig(level=level, handlers=[handler], force=True)


@click.group()
@click.version_option(__version__, prog_name="regex-anchor")
@click.option(
    "--workspace",
    "-w",
    "workspaces",
    multiple=True,
    type=click.Path(exists=False, file_okay=False, dir_okay=True, path_type=Path),
    help="Workspace root (repeatable; defaults to the current directory)",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Rules file (defaults to .regex-anchor.toml or [tool.regex-anchor] in pyproject.toml)",
)
@click.option("--verbose", is_flag=True, help="Log debug output to stderr")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write logs to this file instead of stderr",
)
@click.pass_context
def cli(
    ctx: click.Context,
    workspaces: tuple[Path, ...],
    config_path: Path | None,
    verbose: bool,
    log_file: Path | None,
) -> None:
    """regex-anchor - cross-file links from regular expression matches.

    Occurrences of a source pattern become links to the lines where a
    destination pattern captured the same text.
    """
    ctx.ensure_object(dict)
    _configure_logging(verbose, log_file)

    roots = list(workspaces) or [Path.cwd()]
    for root in roots:
        if not root.exists() or not root.is_dir():
            raise click.BadParameter(f"Directory '{root}' does not exist.", param_hint="--workspace / -w")

    ctx.obj["roots"] = [root.resolve() for root in roots]
    ctx.obj["config"] = config_path


@cli.command()
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.option("--resolved", "show_resolved", is_flag=True, help="Also list resolved links")
@click.option(
    "--fail-on-broken",
    is_flag=True,
    help="Exit with error if any broken link is found",
)
@click.pass_context
def check(ctx: click.Context, output_json: bool, show_resolved: bool, fail_on_broken: bool) -> None:
    """Resolve every source match and report broken links.

    Examples:

        regex-anchor check

        regex-anchor -w docs -w specs check --fail-on-broken
    """
    from .commands.check import run_check

    exit_code = run_check(
        ctx.obj["roots"],
        config_path=ctx.obj["config"],
        output_json=output_json,
        show_resolved=show_resolved,
        fail_on_broken=fail_on_broken,
    )
    sys.exit(exit_code)


@cli.command()
@click.option("--json", "output_json", is_flag=True, help="Output the index as JSON")
@click.pass_context
def index(ctx: click.Context, output_json: bool) -> None:
    """Rebuild the link index and list every key."""
    from .commands.index import run_index

    run_index(ctx.obj["roots"], config_path=ctx.obj["config"], output_json=output_json)


@cli.command()
@click.argument("key")
@click.pass_context
def resolve(ctx: click.Context, key: str) -> None:
    """Show every destination of KEY with its preview lines.

    Exits with status 1 when KEY is a broken link.
    """
    from .commands.index import run_resolve

    found = run_resolve(ctx.obj["roots"], key, config_path=ctx.obj["config"])
    sys.exit(0 if found else 1)


@cli.command()
@click.pass_context
def watch(ctx: click.Context) -> None:
    """Re-check links whenever a destination file changes.

    Runs until interrupted (Ctrl+C).
    """
    from .commands.watch_cmd import run_watch

    run_watch(ctx.obj["roots"], config_path=ctx.obj["config"])


@cli.command()
@click.option(
    "--transport",
    type=click.Choice(["stdio", "tcp"]),
    default="stdio",
    help="Transport method (stdio for editors, tcp for debugging)",
)
@click.option("--host", default="localhost", show_default=True, help="TCP host")
@click.option("--port", default=2087, show_default=True, type=int, help="TCP port")
@click.pass_context
def lsp(ctx: click.Context, transport: str, host: str, port: int) -> None:
    """Start the LSP server.

    The LSP server provides:

    \b
    - Document links and go-to-definition for resolved matches
    - Broken-link diagnostics
    - Hover previews of destination lines
    - Inlay hints extracted with a preview `editor` pattern

    Workspace roots come from the client. Rules come from the client's
    `regexAnchor` settings, falling back to --config or the workspace
    config file.

    Examples:

        regex-anchor lsp

        regex-anchor --log-file anchor.log lsp --transport tcp
    """
    from .lsp import start_server

    start_server(config_path=ctx.obj["config"], transport=transport, host=host, port=port)


def main() -> None:
    """Main entrypoint."""
    cli()


if __name__ == "__main__":
    main()
