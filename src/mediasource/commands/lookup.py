"""
Lookup commands (`msrc lookup`).

Unlike listings, lookups fail loudly: an unknown id, a bad URL or an
exhausted retry budget prints the error and exits with status 1.
"""

from typing import Optional

import typer

from .render import echo_json, print_record, run_operation

app = typer.Typer(no_args_is_help=True, help="Resolve channels, playlists and content details.")

PAGE = typer.Option(1, "--page", min=1, help="Page of embedded items (1-based).")
STATE = typer.Option(None, "--state", help="Saved session state (JSON) from a previous --json run.")
JSON = typer.Option(False, "--json", help="Output JSON")


def _lookup(source: str, operation, page: int, state: Optional[str], json_output: bool) -> None:
    result, saved = run_operation(source, operation, page=page, state=state)
    if json_output:
        echo_json(result, saved)
    else:
        print_record(result)


@app.command("channel")
def channel(
    source: str = typer.Argument(..., help="Source name"),
    channel_id: str = typer.Argument(..., help="Channel id or URL"),
    page: int = PAGE,
    state: Optional[str] = STATE,
    json_output: bool = JSON,
):
    """Show a channel with its first page of content."""
    _lookup(source, lambda p, ctx: p.get_channel(channel_id, ctx), page, state, json_output)


@app.command("playlist")
def playlist(
    source: str = typer.Argument(..., help="Source name"),
    playlist_id: str = typer.Argument(..., help="Playlist or album id"),
    page: int = PAGE,
    state: Optional[str] = STATE,
    json_output: bool = JSON,
):
    """Show a playlist and its items."""
    _lookup(source, lambda p, ctx: p.get_playlist(playlist_id, ctx), page, state, json_output)


@app.command("details")
def details(
    source: str = typer.Argument(..., help="Source name"),
    url: str = typer.Argument(..., help="Content URL or id"),
    state: Optional[str] = STATE,
    json_output: bool = JSON,
):
    """Resolve one item with its playable streams."""
    _lookup(source, lambda p, ctx: p.get_content_details(url, ctx), 1, state, json_output)
