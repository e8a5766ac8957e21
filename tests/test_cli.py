import json
import logging

import pytest
from typer.testing import CliRunner

import mediasource.plugins.base as base_mod
from conftest import FakeHttp, ok, status
from mediasource.cli import app

runner = CliRunner()


def last_json(output: str) -> dict:
    # logs may share the captured stream; the JSON document is the last line
    return json.loads(output.strip().splitlines()[-1])


@pytest.fixture(autouse=True)
def restore_logging():
    # the CLI callback reconfigures the root logger onto the runner's streams
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def cli_http(monkeypatch):
    http = FakeHttp()
    monkeypatch.setattr(base_mod, "AiohttpClient", lambda **kwargs: http)
    monkeypatch.setenv("MSRC_RETRY_DELAY", "0")
    return http


@pytest.mark.parametrize("flag", ["--version", "-v"])
def test_version_without_a_command(flag):
    res = runner.invoke(app, [flag])
    assert res.exit_code == 0, res.output
    assert "mediasource v0.1.0" in res.output


def test_sources_lists_plugins():
    res = runner.invoke(app, ["sources"])
    assert res.exit_code == 0, res.output
    for name in ("jamendo", "archiveorg", "plutotv", "suno"):
        assert name in res.output


def test_browse_search_json(cli_http):
    cli_http.add(
        "/tracks",
        ok({"headers": {"status": "success", "results_count": 1}, "results": [{"id": "1", "name": "Blue"}]}),
    )

    res = runner.invoke(app, ["--quiet", "browse", "search", "jamendo", "jazz", "--json"])

    assert res.exit_code == 0, res.output
    data = last_json(res.output)
    assert data["result"]["items"][0]["name"] == "Blue"
    assert data["result"]["has_more"] is False
    assert data["state"] == {"credential_index": 0}


def test_browse_home_table(cli_http):
    cli_http.add("/advancedsearch.php", ok({"response": {"docs": [{"identifier": "duck", "title": "Duck"}]}}))

    res = runner.invoke(app, ["--quiet", "browse", "home", "archiveorg"])

    assert res.exit_code == 0, res.output
    assert "Duck" in res.output


def test_browse_state_is_restored(cli_http):
    cli_http.add("/tracks", ok({"headers": {"results_count": 0}, "results": []}))

    res = runner.invoke(
        app, ["--quiet", "browse", "home", "jamendo", "--state", '{"credential_index": 1}', "--json"]
    )

    assert res.exit_code == 0, res.output
    assert cli_http.calls[0]["params"]["client_id"] == "c6b1f8c4"


def test_browse_unknown_source_fails():
    res = runner.invoke(app, ["--quiet", "browse", "home", "youtube"])
    assert res.exit_code == 1
    assert "Unknown source" in res.output


def test_browse_live_not_supported(cli_http):
    res = runner.invoke(app, ["--quiet", "browse", "live", "jamendo"])
    assert res.exit_code == 1
    assert "no live streams" in res.output


def test_lookup_details_not_found_exits_1(cli_http):
    cli_http.add("/metadata/", ok({}))

    res = runner.invoke(app, ["--quiet", "lookup", "details", "archiveorg", "https://archive.org/details/nope"])

    assert res.exit_code == 1
    assert "not found" in res.output


def test_lookup_details_json(cli_http):
    cli_http.add(
        "/api/clips/",
        ok({"id": "abc", "title": "Song", "audio_url": "https://cdn1.suno.ai/abc.mp3"}),
    )

    res = runner.invoke(app, ["--quiet", "lookup", "details", "suno", "https://suno.com/song/abc", "--json"])

    assert res.exit_code == 0, res.output
    data = last_json(res.output)
    assert data["result"]["streams"][0]["url"] == "https://cdn1.suno.ai/abc.mp3"


def test_lookup_playlist_degraded_upstream(cli_http):
    cli_http.add("/albums", status(500, "Internal Server Error"))

    res = runner.invoke(app, ["--quiet", "lookup", "playlist", "jamendo", "7"])

    assert res.exit_code == 1
    assert "API request failed: 500" in res.output


def test_config_show_json():
    res = runner.invoke(app, ["config", "show", "--json"])
    assert res.exit_code == 0, res.output
    data = last_json(res.output)
    assert data["settings"]["page_size"] == 20
    assert data["tokens"] == {"plutotv": {"bearer_token": False}}


def test_config_set_and_tokens():
    res = runner.invoke(app, ["config", "set", "plutotv_region", "uk"])
    assert res.exit_code == 0, res.output

    res = runner.invoke(app, ["config", "set-token", "plutotv", "tok"])
    assert res.exit_code == 0, res.output

    data = last_json(runner.invoke(app, ["config", "show", "--json"]).output)
    assert data["settings"]["plutotv_region"] == "uk"
    assert data["tokens"]["plutotv"]["bearer_token"] is True

    res = runner.invoke(app, ["config", "clear-token", "plutotv", "--yes"])
    assert res.exit_code == 0, res.output
    data = last_json(runner.invoke(app, ["config", "show", "--json"]).output)
    assert data["tokens"]["plutotv"]["bearer_token"] is False


def test_config_set_rejects_bad_values():
    res = runner.invoke(app, ["config", "set", "missing_timestamp", "later"])
    assert res.exit_code == 1

    res = runner.invoke(app, ["config", "set", "no_such_key", "1"])
    assert res.exit_code == 1
