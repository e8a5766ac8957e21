"""
Configuration commands (`msrc config`).

- Viewing the effective settings and stored token status
- Changing a setting
- Storing and clearing opaque bearer tokens
"""

import json

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.prompt import Confirm

from ..core.auth import SERVICE_KEYS, clear_credentials, get_credentials, store_credentials
from ..core.config import MediaSourceSettings, get_settings, save_settings

console = Console()
app = typer.Typer(no_args_is_help=True, help="View settings and manage stored tokens.")


def _token_status() -> dict:
    return {
        service: {key: bool(get_credentials(service, key)) for key in keys}
        for service, keys in SERVICE_KEYS.items()
    }


@app.command("show")
def config_show(
    json_output: bool = typer.Option(False, "--json", help="Output raw JSON to stdout"),
):
    """
    Display the effective configuration and stored token status.

    Tokens are never printed, only whether one is present.
    """
    settings = get_settings()
    data = {"settings": settings.model_dump(mode="json"), "tokens": _token_status()}

    if json_output:
        typer.echo(json.dumps(data))
        return

    console.print("[bold]Current Configuration[/bold]")
    for key, value in data["settings"].items():
        console.print(f"  {key}: [blue]{value}[/blue]")
    console.print("\n[bold]Tokens:[/bold]")
    for service, keys in data["tokens"].items():
        for key, present in keys.items():
            status = "[green]Set[/green]" if present else "[yellow]Not Set[/yellow]"
            console.print(f"  {service}.{key}: {status}")


@app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Setting name, e.g. page_size"),
    value: str = typer.Argument(..., help="New value; lists are comma-separated"),
):
    """Change one setting and persist it."""
    key = key.lower()
    if key not in MediaSourceSettings.model_fields:
        console.print(f"[red]Error:[/red] Unknown setting '{key}'.")
        raise typer.Exit(1)

    data = get_settings().model_dump()
    if key == "jamendo_client_ids":
        data[key] = [v.strip() for v in value.split(",") if v.strip()]
    else:
        data[key] = value
    try:
        new_settings = MediaSourceSettings(**data)
    except ValidationError as e:
        console.print(f"[red]Invalid value for {key}:[/red]\n{e}")
        raise typer.Exit(1)

    target = save_settings(new_settings)
    console.print(f"[green]✅ {key} saved[/green] to [blue]{target}[/blue]")


@app.command("set-token")
def config_set_token(
    service: str = typer.Argument(..., help="Service the token belongs to (e.g., 'plutotv')."),
    token: str = typer.Argument(..., help="Bearer token, stored as-is."),
):
    """Store a bearer token in the system keyring."""
    service = service.lower()
    if service not in SERVICE_KEYS:
        console.print(
            f"[red]Error:[/red] Invalid service '{service}'. Must be one of: {', '.join(SERVICE_KEYS)}."
        )
        raise typer.Exit(1)
    store_credentials(service, SERVICE_KEYS[service][0], token)
    console.print(f"[green]✅ Token for {service} stored.[/green]")


@app.command("clear-token")
def config_clear_token(
    service: str = typer.Argument(..., help="Service to clear the token for."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
):
    """
    Permanently delete the stored token of a service.
    """
    service = service.lower()
    if service not in SERVICE_KEYS:
        console.print(
            f"[red]Error:[/red] Invalid service '{service}'. Must be one of: {', '.join(SERVICE_KEYS)}."
        )
        raise typer.Exit(1)

    if yes or Confirm.ask(f"[bold red]Delete the stored token for {service}?[/bold red]", default=False):
        clear_credentials(service)
        console.print(f"[green]✅ Token for {service} cleared.[/green]")
    else:
        console.print("Operation cancelled.")
