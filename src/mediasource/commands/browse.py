"""
Listing commands (`msrc browse`).

Each command runs one listing operation against a source and prints the
resulting page. Listings never fail hard: a degraded page is printed with
its message.
"""

from typing import Optional

import typer

from ..core.errors import MediaSourceError
from .render import echo_json, print_page, run_operation

app = typer.Typer(no_args_is_help=True, help="Browse home feeds and search results.")

PAGE = typer.Option(1, "--page", min=1, help="Page number (1-based).")
STATE = typer.Option(None, "--state", help="Saved session state (JSON) from a previous --json run.")
JSON = typer.Option(False, "--json", help="Output JSON")


def _browse(source: str, operation, page: int, state: Optional[str], json_output: bool) -> None:
    result, saved = run_operation(source, operation, page=page, state=state)
    if json_output:
        echo_json(result, saved)
    else:
        print_page(result)


@app.command("home")
def home(
    source: str = typer.Argument(..., help="Source name, e.g. jamendo"),
    page: int = PAGE,
    state: Optional[str] = STATE,
    json_output: bool = JSON,
):
    """Show the home feed of a source."""
    _browse(source, lambda p, ctx: p.get_home(ctx), page, state, json_output)


@app.command("search")
def search(
    source: str = typer.Argument(..., help="Source name"),
    query: str = typer.Argument(..., help="Search text"),
    page: int = PAGE,
    state: Optional[str] = STATE,
    json_output: bool = JSON,
):
    """Search playable content."""
    _browse(source, lambda p, ctx: p.search(query, ctx), page, state, json_output)


@app.command("channels")
def channels(
    source: str = typer.Argument(..., help="Source name"),
    query: str = typer.Argument(..., help="Search text"),
    page: int = PAGE,
    state: Optional[str] = STATE,
    json_output: bool = JSON,
):
    """Search channels (artists, users)."""
    _browse(source, lambda p, ctx: p.search_channels(query, ctx), page, state, json_output)


@app.command("playlists")
def playlists(
    source: str = typer.Argument(..., help="Source name"),
    query: str = typer.Argument(..., help="Search text"),
    page: int = PAGE,
    state: Optional[str] = STATE,
    json_output: bool = JSON,
):
    """Search playlists (albums, collections)."""
    _browse(source, lambda p, ctx: p.search_playlists(query, ctx), page, state, json_output)


@app.command("live")
def live(
    source: str = typer.Argument("plutotv", help="Source name"),
    state: Optional[str] = STATE,
    json_output: bool = JSON,
):
    """List live streams (sources with live channels only)."""

    async def _live(plugin, ctx):
        if not hasattr(plugin, "get_live_streams"):
            raise MediaSourceError(f"{plugin.platform} has no live streams")
        return await plugin.get_live_streams(ctx)

    _browse(source, _live, 1, state, json_output)

