"""
Shared plumbing for the command groups: run one plugin operation inside a
session and render its canonical records.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable, Optional

import typer
from pydantic import BaseModel
from rich.console import Console
from rich.table import Table

from ..core.context import SourceContext
from ..core.errors import MediaSourceError
from ..core.models import ChannelRecord, CollectionRecord, MediaRecord, ResultPage
from ..plugins.base import BasePlugin
from ..plugins.registry import get_plugin_class

console = Console()

Operation = Callable[[BasePlugin, SourceContext], Awaitable[Any]]


def run_operation(source: str, operation: Operation, *, page: int = 1, state: Optional[str] = None):
    """Open a session on ``source``, run ``operation`` and return (result, saved state).

    `MediaSourceError`s are printed and turned into exit code 1.
    """

    async def _run():
        plugin_class = get_plugin_class(source)
        async with plugin_class() as plugin:
            context = plugin.enable(state)
            context.page = page
            result = await operation(plugin, context)
            return result, plugin.save_state(context)

    try:
        return asyncio.run(_run())
    except MediaSourceError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def _duration(ms: int) -> str:
    if not ms:
        return ""
    seconds = ms // 1000
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours}:{minutes:02d}:{secs:02d}" if hours else f"{minutes}:{secs:02d}"


def _row(item: BaseModel) -> list[str]:
    if isinstance(item, MediaRecord):
        kind = "live" if item.is_live else "media"
        return [kind, item.id, item.name, item.author.name, _duration(item.duration_ms), str(item.view_count)]
    if isinstance(item, ChannelRecord):
        subs = str(item.subscribers) if item.subscribers > 0 else ""
        return ["channel", item.id, item.name, "", "", subs]
    if isinstance(item, CollectionRecord):
        return ["collection", item.id, item.name, item.author.name, "", f"{item.item_count} items"]
    return [type(item).__name__, "", "", "", "", ""]


def print_items(items: list, title: Optional[str] = None) -> None:
    table = Table(show_header=True, header_style="bold", title=title)
    for col in ("type", "id", "name", "author", "duration", "views"):
        table.add_column(col)
    for item in items:
        table.add_row(*_row(item))
    console.print(table)


def print_page(page: ResultPage) -> None:
    if page.error:
        console.print(f"[yellow]{page.error}[/yellow]")
    print_items(page.items, page.title)
    if page.has_more:
        console.print(f"More results: --page {page.next_page}")


def print_record(record: BaseModel) -> None:
    if isinstance(record, MediaRecord):
        console.print(f"[bold]{record.name}[/bold]  [dim]{record.url}[/dim]")
        console.print(f"Author: {record.author.name}")
        if record.duration_ms:
            console.print(f"Duration: {_duration(record.duration_ms)}")
        if record.description:
            console.print(record.description)
        if record.streams:
            table = Table(show_header=True, header_style="bold", title="Streams")
            for col in ("name", "kind", "container", "codec", "url"):
                table.add_column(col)
            for s in record.streams:
                table.add_row(s.name, s.kind, s.container, s.codec, s.url)
            console.print(table)
        else:
            console.print("[yellow]No playable streams.[/yellow]")
    elif isinstance(record, ChannelRecord):
        console.print(f"[bold]{record.name}[/bold]  [dim]{record.url}[/dim]")
        if record.description:
            console.print(record.description)
        for label, link in record.links.items():
            console.print(f"{label}: {link}")
        if record.videos is not None:
            print_page(record.videos)
    elif isinstance(record, CollectionRecord):
        console.print(f"[bold]{record.name}[/bold] by {record.author.name}  [dim]{record.url}[/dim]")
        if record.description:
            console.print(record.description)
        print_items(record.items)
        if record.has_more:
            console.print(f"More results: --page {record.next_page}")


def echo_json(result: BaseModel, state: str) -> None:
    typer.echo(json.dumps({"result": result.model_dump(mode="json"), "state": json.loads(state)}))
