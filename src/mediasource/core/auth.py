"""
Opaque credential storage for plugins that accept a token.

Tokens are never interpreted here, only stored and handed back. Primary
store is `keyring` (macOS Keychain, Windows Credential Locker, Secret
Service, ...), with pragmatic fallbacks:

- Opt-out via `MSRC_DISABLE_KEYRING=1` to bypass keyring completely
- Environment variable overrides (e.g., `MSRC_PLUTOTV_BEARER_TOKEN`)
- File fallback in `.secrets.toml` (user or project-local)

Keyring entries live under the service name "mediasource"; keys use the
format `{service.lower()}_{key}`.
"""

import logging
import os
from pathlib import Path

import keyring
import keyring.errors
import toml
from rich.console import Console

from .config import LOCAL_SECRETS_FILE, USER_SECRETS_FILE

console = Console()
logger = logging.getLogger(__name__)

KEYRING_SERVICE = "mediasource"

SERVICE_KEYS = {
    "plutotv": ["bearer_token"],
}

_ENV_OVERRIDES = {
    ("plutotv", "bearer_token"): ["MSRC_PLUTOTV_BEARER_TOKEN", "PLUTOTV_BEARER_TOKEN"],
}


def _keyring_disabled() -> bool:
    return os.getenv("MSRC_DISABLE_KEYRING") == "1"


def _load_secrets() -> dict:
    """Load combined secrets from project-local and user-scoped .secrets.toml."""
    data: dict = {}
    for p in (USER_SECRETS_FILE, LOCAL_SECRETS_FILE):
        path = Path(p)
        if not path.exists():
            continue
        try:
            d = toml.loads(path.read_text(encoding="utf-8")) or {}
        except (OSError, toml.TomlDecodeError) as e:
            logger.warning("auth.secrets_unreadable", extra={"path": str(path), "error": str(e)})
            continue
        if isinstance(d, dict):
            data.update(d)
    return data


def _secrets_key(service: str, key: str) -> str:
    return f"{service.lower()}_{key}"


def _write_secret_file(service: str, key: str, value: str | None) -> None:
    data = _load_secrets()
    if value is None:
        data.pop(_secrets_key(service, key), None)
    else:
        data[_secrets_key(service, key)] = value
    USER_SECRETS_FILE.parent.mkdir(parents=True, exist_ok=True)
    USER_SECRETS_FILE.write_text(toml.dumps(data), encoding="utf-8")


def store_credentials(service: str, key: str, value: str) -> None:
    """Store a credential, preferring the system keyring.

    Args:
        service: The name of the service (e.g., 'plutotv').
        key: The name of the credential to store (e.g., 'bearer_token').
        value: The secret value to store.
    """
    if _keyring_disabled():
        _write_secret_file(service, key, value)
        return

    try:
        keyring.set_password(KEYRING_SERVICE, _secrets_key(service, key), value)
    except keyring.errors.KeyringError as e:
        # Backend unavailable; still persist to the secrets file
        _write_secret_file(service, key, value)
        console.print(f"[yellow]Warning:[/yellow] Could not store {service}.{key} in keyring ({e}).")


def get_credentials(service: str, key: str) -> str | None:
    """Retrieve a stored credential.

    Returns:
        The stored secret value, or None if not found anywhere.
    """
    if not _keyring_disabled():
        try:
            v = keyring.get_password(KEYRING_SERVICE, _secrets_key(service, key))
            if v:
                return v
        except keyring.errors.KeyringError as e:
            logger.debug("auth.keyring_unavailable", extra={"service": service, "error": str(e)})

    for env in _ENV_OVERRIDES.get((service.lower(), key), []):
        v = os.getenv(env)
        if v:
            return v

    v = _load_secrets().get(_secrets_key(service, key))
    return str(v) if v else None


def clear_credentials(service: str) -> None:
    """Clear all stored credentials for a given service.

    Args:
        service: The name of the service whose credentials should be cleared.
    """
    service = service.lower()
    keys_to_delete = SERVICE_KEYS.get(service, [])

    if not keys_to_delete:
        console.print(
            f"[yellow]Warning: No keys defined for service '{service}'. Nothing to clear.[/yellow]"
        )
        return

    for key in keys_to_delete:
        if _load_secrets().get(_secrets_key(service, key)) is not None:
            _write_secret_file(service, key, None)
        if _keyring_disabled():
            continue
        full_key_name = _secrets_key(service, key)
        try:
            # Check existence first to avoid backend-specific exceptions when missing
            if keyring.get_password(KEYRING_SERVICE, full_key_name) is None:
                continue
            keyring.delete_password(KEYRING_SERVICE, full_key_name)
        except keyring.errors.PasswordDeleteError as e:
            console.print(f"[red]  - Failed to delete '{key}': {e}[/red]")
        except keyring.errors.KeyringError as e:
            console.print(f"[red]  - Keyring error while deleting '{key}': {e}[/red]")
