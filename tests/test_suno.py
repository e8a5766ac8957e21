import pytest

from conftest import FakeHttp, ok, status
from mediasource.core.context import SourceContext
from mediasource.core.errors import InvalidUrlError, NotFoundError
from mediasource.core.models import ChannelRecord, CollectionRecord, MediaRecord
from mediasource.plugins.suno import SEARCH_LIMIT, SunoPlugin, clip_id_from_url

CLIP_ID = "3f2a6c1e-8d7b-4a1f-9c0e-1234567890ab"


def clip(clip_id=CLIP_ID, **fields):
    data = {
        "id": clip_id,
        "title": "Neon Rain",
        "audio_url": f"https://cdn1.suno.ai/{clip_id}.mp3",
        "play_count": 120,
        "upvote_count": 8,
        "created_at": "2024-05-01T12:00:00.000Z",
        "metadata": {"prompt": "synthwave about rain", "duration": 184.5},
        "user": {"id": "u1", "handle": "nightdrive", "display_name": "Night Drive"},
    }
    data.update(fields)
    return data


async def open_plugin(http, settings):
    plugin = SunoPlugin(http=http, settings=settings)
    await plugin.__aenter__()
    return plugin


def test_clip_id_from_url():
    assert clip_id_from_url(f"https://suno.com/song/{CLIP_ID}") == CLIP_ID
    assert clip_id_from_url(CLIP_ID) == CLIP_ID
    with pytest.raises(InvalidUrlError):
        clip_id_from_url("https://suno.com/@someone?tab=songs")


@pytest.mark.asyncio
async def test_search_songs(settings):
    http = FakeHttp().add("/api/search/", ok({"clips": [clip(), {"title": "no id"}], "users": []}))
    plugin = await open_plugin(http, settings)

    page = await plugin.search("rain", SourceContext())

    params = http.calls[0]["params"]
    assert params == {"q": "rain", "limit": SEARCH_LIMIT, "offset": 0}
    assert len(page.items) == 1
    song = page.items[0]
    assert song.name == "Neon Rain"
    assert song.url == f"https://suno.com/song/{CLIP_ID}"
    assert song.duration_ms == 184000
    assert song.view_count == 120
    assert song.likes == 8
    assert song.description == "synthwave about rain"
    assert song.author.url == "https://suno.com/@nightdrive"
    assert song.thumbnails[0].url == f"https://cdn2.suno.ai/image_{CLIP_ID}.jpeg?width=360"
    assert page.has_more is False


@pytest.mark.asyncio
async def test_search_merges_songs_users_and_playlists(settings):
    body = {
        "clips": [clip()],
        "users": [{"id": "u1", "handle": "nightdrive"}],
        "playlists": [{"id": "p1", "name": "Late", "clip_count": 3}],
    }
    http = FakeHttp().add("/api/search/", ok(body))
    plugin = await open_plugin(http, settings)

    page = await plugin.search("night", SourceContext())

    assert [type(r) for r in page.items] == [MediaRecord, ChannelRecord, CollectionRecord]
    assert [r.id for r in page.items] == [CLIP_ID, "u1", "p1"]
    assert page.has_more is False


@pytest.mark.asyncio
async def test_full_page_with_dropped_clip_still_has_more(settings):
    clips = [clip(f"c{i}") for i in range(SEARCH_LIMIT - 1)] + [{"title": "no id"}]
    http = FakeHttp().add("/api/search/", ok({"clips": clips}))
    plugin = await open_plugin(http, settings)

    page = await plugin.search("rain", SourceContext())
    pager = plugin.search_pager("rain", SourceContext())
    first = await pager.get_results()

    assert len(page.items) == SEARCH_LIMIT - 1
    assert page.has_more is True
    assert len(first) == SEARCH_LIMIT - 1
    assert pager.has_more()


@pytest.mark.asyncio
async def test_search_users_and_playlists(settings):
    body = {
        "users": [{"id": "u1", "handle": "nightdrive", "bio": "Synths."}],
        "playlists": [{"id": "p1", "name": "Late", "clip_count": 12, "user": {"display_name": "Night Drive"}}],
    }
    http = FakeHttp().add("/api/search/", ok(body))
    plugin = await open_plugin(http, settings)

    users = await plugin.search_channels("night", SourceContext())
    playlists = await plugin.search_playlists("late", SourceContext())

    assert isinstance(users.items[0], ChannelRecord)
    assert users.items[0].name == "nightdrive"
    assert users.items[0].subscribers == -1
    assert isinstance(playlists.items[0], CollectionRecord)
    assert playlists.items[0].item_count == 12
    assert [c["params"]["type"] for c in http.calls] == ["user", "playlist"]


@pytest.mark.asyncio
async def test_search_pager_advances_offset(settings):
    full = {"clips": [clip(f"c{i}") for i in range(SEARCH_LIMIT)]}
    short = {"clips": [clip("last")]}
    http = FakeHttp().add("/api/search/", ok(full), ok(short))
    plugin = await open_plugin(http, settings)

    pager = plugin.search_pager("rain", SourceContext())
    first = await pager.get_results()
    assert len(first) == SEARCH_LIMIT
    assert pager.has_more()

    second = await pager.next_page()
    assert [r.id for r in second] == ["last"]
    assert not pager.has_more()
    assert [c["params"]["offset"] for c in http.calls] == [0, SEARCH_LIMIT]


@pytest.mark.asyncio
async def test_home_is_a_popular_collection(settings):
    http = FakeHttp().add("/api/search/", ok({"clips": [clip("a"), clip("b")]}))
    plugin = await open_plugin(http, settings)

    page = await plugin.get_home(SourceContext())
    pager = plugin.home_pager(SourceContext())

    popular = page.items[0]
    assert isinstance(popular, CollectionRecord)
    assert popular.name == "Popular Songs"
    assert popular.item_count == 2
    assert http.calls[0]["params"]["q"] == ""
    assert not pager.has_more()
    assert (await pager.get_results())[0].id == "popular_songs"


@pytest.mark.asyncio
async def test_home_pager_swallows_upstream_failure(settings):
    http = FakeHttp().add("/api/search/", status(500, "Internal Server Error"))
    plugin = await open_plugin(http, settings)

    pager = plugin.home_pager(SourceContext())

    assert await pager.get_results() == []
    assert not pager.has_more()


@pytest.mark.asyncio
async def test_get_playlist(settings):
    body = {
        "id": "p1",
        "name": "Late",
        "description": "After hours.",
        "image_url": "https://cdn2.suno.ai/p1.jpeg",
        "user": {"id": "u1", "handle": "nightdrive", "display_name": "Night Drive"},
        "clips": [clip("a"), clip("b")],
    }
    http = FakeHttp().add("/api/playlists/p1/", ok(body))
    plugin = await open_plugin(http, settings)

    playlist = await plugin.get_playlist("p1", SourceContext())
    items = await plugin.playlist_pager("p1", SourceContext()).get_results()

    assert playlist.name == "Late"
    assert playlist.author.name == "Night Drive"
    assert playlist.item_count == 2
    assert [i.id for i in items] == ["a", "b"]


@pytest.mark.asyncio
async def test_playlist_pager_swallows_missing_playlist(settings):
    http = FakeHttp().add("/api/playlists/", status(404, "Not Found"))
    plugin = await open_plugin(http, settings)

    with pytest.raises(NotFoundError):
        await plugin.get_playlist("gone", SourceContext())
    assert await plugin.playlist_pager("gone", SourceContext()).get_results() == []


@pytest.mark.asyncio
async def test_get_channel_recent_clips(settings):
    http = FakeHttp().add("/profiles/nightdrive/recent_clips", ok([clip("a"), clip("b")]))
    plugin = await open_plugin(http, settings)

    channel = await plugin.get_channel("nightdrive", SourceContext())
    pager = plugin.channel_pager("nightdrive", SourceContext())

    assert channel.url == "https://suno.com/@nightdrive"
    assert channel.subscribers == -1
    assert len(channel.videos.items) == 2
    assert len(await pager.get_results()) == 2
    assert await pager.next_page() == []


@pytest.mark.asyncio
async def test_content_details_audio_stream(settings):
    http = FakeHttp().add(f"/api/clips/{CLIP_ID}/", ok(clip(image_url="https://cdn2.suno.ai/own.jpeg")))
    plugin = await open_plugin(http, settings)

    record = await plugin.get_content_details(f"https://suno.com/song/{CLIP_ID}", SourceContext())

    assert record.thumbnails[0].url == "https://cdn2.suno.ai/own.jpeg"
    assert record.streams[0].kind == "audio"
    assert record.streams[0].url == f"https://cdn1.suno.ai/{CLIP_ID}.mp3"


@pytest.mark.asyncio
async def test_content_details_without_id(settings):
    http = FakeHttp().add("/api/clips/", ok({"detail": "Not found."}))
    plugin = await open_plugin(http, settings)

    with pytest.raises(NotFoundError):
        await plugin.get_content_details(CLIP_ID, SourceContext())
