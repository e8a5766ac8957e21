"""
Configuration management using Dynaconf and Pydantic.

Dynaconf loads settings from files (``settings.toml``, ``.secrets.toml``,
project-local then user-scoped) and ``MSRC_*`` environment variables.
Pydantic validates the merged data into a typed `MediaSourceSettings`.

`get_settings` returns a process-wide instance; `reset_settings` drops it so
tests can re-read the environment.
"""

import json
import os
from pathlib import Path
from typing import Literal, Optional

import toml
from dynaconf import Dynaconf
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from rich.console import Console

console = Console()

# Determine a user-scoped config directory (XDG-style)
USER_CONFIG_DIR = Path.home() / ".config" / "mediasource"
USER_SETTINGS_FILE = USER_CONFIG_DIR / "settings.toml"
USER_SECRETS_FILE = USER_CONFIG_DIR / ".secrets.toml"

LOCAL_SETTINGS_FILE = Path("settings.toml")
LOCAL_SECRETS_FILE = Path(".secrets.toml")

settings_loader = Dynaconf(
    envvar_prefix="MSRC",
    # Later files override earlier ones
    settings_files=[
        str(USER_SETTINGS_FILE),
        str(USER_SECRETS_FILE),
        "settings.toml",
        ".secrets.toml",
    ],
    load_dotenv=True,
)

# Public Jamendo client ids, rotated when one gets rate limited
DEFAULT_JAMENDO_CLIENT_IDS = ["0ed7affd", "c6b1f8c4", "2c9bb9a5"]


class MediaSourceSettings(BaseModel):
    """A Pydantic model that defines and validates all application settings."""

    page_size: int = Field(default=20, ge=1, le=200)

    # Resilient caller
    max_attempts: int = Field(default=3, ge=1)
    retry_delay: float = Field(default=1.0, ge=0)
    backoff_cap: float = Field(default=8.0, ge=0)
    requests_per_second: Optional[int] = None
    http_timeout: float = 20.0

    # Field mapping
    missing_timestamp: Literal["now", "epoch"] = "now"
    image_proxy_template: str = "https://imgproxy.ra.co/_/quality:75/plain/{token}"

    # Service settings
    jamendo_client_ids: list[str] = Field(default_factory=lambda: list(DEFAULT_JAMENDO_CLIENT_IDS))
    plutotv_region: str = "us"
    plutotv_content: Literal["live", "ondemand", "both"] = "both"

    model_config = ConfigDict(validate_assignment=True, extra="ignore")


_settings_instance: Optional[MediaSourceSettings] = None


def _loader_dict() -> dict:
    settings_loader.reload()
    return {str(k).lower(): v for k, v in (settings_loader.as_dict() or {}).items()}


def get_settings() -> MediaSourceSettings:
    """Get the application settings as a singleton Pydantic model.

    Honors MSRC_SETTINGS_PATH when set: a JSON file layered under the
    Dynaconf sources, used for persistence in tests.
    """
    global _settings_instance
    if _settings_instance is None:
        config_dict: dict = {}

        env_settings_path = os.getenv("MSRC_SETTINGS_PATH")
        if env_settings_path:
            p = Path(env_settings_path)
            if p.exists():
                try:
                    config_dict.update(json.loads(p.read_text(encoding="utf-8")) or {})
                except ValueError:
                    console.print(f"[yellow]Ignoring malformed settings file:[/yellow] {p}")

        config_dict.update(_loader_dict())

        try:
            _settings_instance = MediaSourceSettings(**config_dict)
        except ValidationError as e:
            console.print(f"[red]Configuration error:[/red]\n{e}")
            raise

    return _settings_instance


def save_settings(new_settings: MediaSourceSettings) -> Path:
    """Persist settings and make them current.

    Writes JSON to MSRC_SETTINGS_PATH when set (tests), otherwise TOML to the
    user-scoped settings file. Returns the path written.
    """
    global _settings_instance
    data = new_settings.model_dump(mode="json")

    env_settings_path = os.getenv("MSRC_SETTINGS_PATH")
    if env_settings_path:
        target = Path(env_settings_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(data, indent=2), encoding="utf-8")
    else:
        target = USER_SETTINGS_FILE
        USER_CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        target.write_text(toml.dumps({k: v for k, v in data.items() if v is not None}), encoding="utf-8")

    _settings_instance = new_settings
    return target


def reset_settings():
    """Reset in-memory settings (do not delete on-disk settings)."""
    global _settings_instance
    _settings_instance = None
