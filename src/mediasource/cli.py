"""
mediasource CLI - Main entry point using Typer.

This module configures the main Typer application, registers all command groups,
and defines global options like --version and --verbose. The CLI plays the
host: it owns the session context of each run and renders canonical records.
"""

import typer
from rich.console import Console
from rich.traceback import install

from .commands import browse, config, lookup
from .core.logging_util import setup_logging

# Install a rich traceback handler for readable exceptions
install(show_locals=False)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="msrc",
    help="Browse Jamendo, Archive.org, Pluto TV and Suno through one canonical media schema.",
    epilog="Use `msrc [COMMAND] --help` for more info on a specific command.",
    no_args_is_help=True,
    pretty_exceptions_enable=False,  # Disable Typer's default handler to use Rich's
)

app.add_typer(browse.app, name="browse", help="📺 Home feeds, searches and live streams.")
app.add_typer(lookup.app, name="lookup", help="🔎 Channels, playlists and content details.")
app.add_typer(config.app, name="config", help="🔐 Settings and stored tokens.")


@app.command("sources")
def sources():
    """List the available sources."""
    from .plugins.registry import PLUGINS

    for name, plugin_class in sorted(PLUGINS.items()):
        console.print(f"{name:<12} {plugin_class.platform}")


def _print_version(value: bool):
    if value:
        from . import __version__

        console.print(f"mediasource v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show the application version and exit.",
        callback=_print_version,
        is_eager=True,  # Runs before the group checks for a command
    ),
    verbose: bool = typer.Option(None, "--verbose", help="Enable DEBUG-level logging."),
    quiet: bool = typer.Option(None, "--quiet", help="Reduce logging to warnings and errors."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON lines to stderr."),
):
    """
    mediasource CLI - canonical records from free media APIs.
    """
    # Configure logging once, early
    setup_logging(json_logs=json_logs, verbose=bool(verbose), quiet=bool(quiet))
    if verbose:
        err_console.print("[yellow]Verbose logging enabled.[/yellow]")


def cli():
    """Main entry point for the console script defined in pyproject.toml."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 Operation cancelled by user.[/yellow]")
        raise typer.Exit()


if __name__ == "__main__":
    cli()
