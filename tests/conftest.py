import json

import pytest

from mediasource.core import auth as auth_mod
from mediasource.core import config as config_mod
from mediasource.core.config import MediaSourceSettings, reset_settings
from mediasource.core.http import HttpResponse


def ok(body) -> HttpResponse:
    return HttpResponse(200, "OK", json.dumps(body))


def html(body: str) -> HttpResponse:
    return HttpResponse(200, "OK", body)


def status(code: int, text: str = "") -> HttpResponse:
    return HttpResponse(code, text, "")


class FakeHttp:
    """Scripted stand-in for `HttpClient`.

    Responses are registered per URL substring; each call pops the next one
    for the first matching route, the last one repeating. An exception in the
    script is raised instead of returned.
    """

    def __init__(self):
        self.routes: list[tuple[str, list]] = []
        self.calls: list[dict] = []

    def add(self, match: str, *responses) -> "FakeHttp":
        self.routes.append((match, list(responses)))
        return self

    async def get(self, url, params=None, headers=None):
        self.calls.append({"url": url, "params": dict(params or {}), "headers": dict(headers or {})})
        for match, script in self.routes:
            if match in url:
                item = script.pop(0) if len(script) > 1 else script[0]
                if isinstance(item, BaseException):
                    raise item
                return item
        raise AssertionError(f"unexpected request: {url}")

    # lets the fake replace AiohttpClient in plugin sessions
    async def __aenter__(self):
        return self

    async def close(self):
        pass

    def calls_to(self, match: str) -> list[dict]:
        return [c for c in self.calls if match in c["url"]]


@pytest.fixture
def fake_http():
    return FakeHttp()


@pytest.fixture
def settings():
    return MediaSourceSettings(retry_delay=0, backoff_cap=0, page_size=20)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep tests away from the real keyring, home directory and settings."""
    monkeypatch.setenv("MSRC_SETTINGS_PATH", str(tmp_path / "settings.json"))
    monkeypatch.setenv("MSRC_DISABLE_KEYRING", "1")
    for name in ("MSRC_PLUTOTV_BEARER_TOKEN", "PLUTOTV_BEARER_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(auth_mod, "USER_SECRETS_FILE", tmp_path / "user" / ".secrets.toml")
    monkeypatch.setattr(auth_mod, "LOCAL_SECRETS_FILE", tmp_path / ".secrets.toml")
    monkeypatch.setattr(config_mod, "USER_CONFIG_DIR", tmp_path / "user")
    monkeypatch.setattr(config_mod, "USER_SETTINGS_FILE", tmp_path / "user" / "settings.toml")
    reset_settings()
    yield
    reset_settings()
