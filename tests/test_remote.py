"""Tests for the Web API client against a local aiohttp server."""

import asyncio

import aiohttp
import pytest
from aiohttp import test_utils, web

from spotty.auth import StaticToken
from spotty.models import Device, SearchType
from spotty.remote import (
    NoActiveDeviceError,
    SpotifyClient,
    SpotifyError,
    pick_device,
)

TRACK = {
    "id": "t1",
    "name": "Bohemian Rhapsody",
    "artists": [{"name": "Queen"}],
    "album": {"name": "A Night at the Opera", "release_date": "1975-11-21"},
    "duration_ms": 354_000,
    "uri": "spotify:track:t1",
    "popularity": 90,
}


def run_with_client(app, check):
    """Serve `app` locally and run `check(client, server)` against it."""

    async def scenario():
        async with test_utils.TestServer(app) as server, aiohttp.ClientSession() as session:
            client = SpotifyClient(session, StaticToken("tok"), base_url=str(server.make_url("/v1")))
            return await check(client, server)

    return asyncio.run(scenario())


def error_body(status, message, reason=None):
    error = {"status": status, "message": message}
    if reason:
        error["reason"] = reason
    return web.json_response({"error": error}, status=status)


class TestEndpoints:
    """Request shapes and response parsing."""

    def test_search_tracks(self):
        seen = {}

        async def search(request):
            seen.update(request.query)
            seen["auth"] = request.headers["Authorization"]
            return web.json_response({"tracks": {"items": [TRACK, None]}})

        app = web.Application()
        app.router.add_get("/v1/search", search)

        async def check(client, server):
            return await client.search("bohemian artist:queen", SearchType.TRACK, 3)

        results = run_with_client(app, check)
        assert seen["q"] == "bohemian artist:queen"
        assert seen["type"] == "track"
        assert seen["limit"] == "3"
        assert seen["auth"] == "Bearer tok"
        assert len(results.tracks) == 1
        track = results.tracks[0]
        assert track.name == "Bohemian Rhapsody"
        assert track.artist_names == "Queen"
        assert track.release_date == "1975-11-21"
        assert track.link == "https://open.spotify.com/track/t1"

    def test_play_sends_device_and_body(self):
        seen = {}

        async def play(request):
            seen["query"] = dict(request.query)
            seen["body"] = await request.json()
            return web.Response(status=204)

        app = web.Application()
        app.router.add_put("/v1/me/player/play", play)

        async def check(client, server):
            return await client.play("dev1", ["spotify:track:t1"], 42_000)

        assert run_with_client(app, check) is None
        assert seen["query"] == {"device_id": "dev1"}
        assert seen["body"] == {"uris": ["spotify:track:t1"], "position_ms": 42_000}

    def test_list_devices(self):
        async def devices(request):
            return web.json_response(
                {
                    "devices": [
                        {"id": "d1", "name": "Phone", "is_active": False, "type": "Smartphone"},
                        {"id": "d2", "name": "Desk", "is_active": True, "type": "Computer"},
                    ]
                }
            )

        app = web.Application()
        app.router.add_get("/v1/me/player/devices", devices)

        async def check(client, server):
            return await client.list_devices()

        found = run_with_client(app, check)
        assert [d.id for d in found] == ["d1", "d2"]
        assert pick_device(found).name == "Desk"

    def test_album_tracks_follow_next_links(self):
        async def tracks(request):
            if request.query.get("offset") == "2":
                return web.json_response(
                    {"items": [{"id": "c", "name": "C", "duration_ms": 3, "track_number": 3}], "next": None}
                )
            next_url = str(request.url.with_query({"offset": "2", "limit": "2"}))
            return web.json_response(
                {
                    "items": [
                        {"id": "a", "name": "A", "duration_ms": 1, "track_number": 1},
                        {"id": "b", "name": "B", "duration_ms": 2, "track_number": 2},
                    ],
                    "next": next_url,
                }
            )

        app = web.Application()
        app.router.add_get("/v1/albums/al1/tracks", tracks)

        async def check(client, server):
            return await client.get_album_tracks("al1")

        refs = run_with_client(app, check)
        assert [r.id for r in refs] == ["a", "b", "c"]
        assert refs[2].uri == "spotify:track:c"

    def test_playlist_items_skip_unplayable(self):
        episode = {"id": "e1", "name": "Episode", "type": "episode", "duration_ms": 5}

        async def items(request):
            return web.json_response(
                {
                    "items": [
                        {"track": TRACK, "is_local": False},
                        {"track": None},
                        {"track": {**TRACK, "id": None}, "is_local": True},
                        {"track": episode, "is_local": False},
                    ],
                    "next": None,
                }
            )

        app = web.Application()
        app.router.add_get("/v1/playlists/p1/tracks", items)

        async def check(client, server):
            return await client.get_playlist_items("p1")

        tracks = run_with_client(app, check)
        assert [t.id for t in tracks] == ["t1"]

    def test_user_profile(self):
        async def user(request):
            return web.json_response(
                {
                    "id": "alice",
                    "display_name": "Alice",
                    "uri": "spotify:user:alice",
                    "href": "https://api.spotify.com/v1/users/alice",
                    "followers": {"total": 12},
                }
            )

        app = web.Application()
        app.router.add_get("/v1/users/alice", user)

        async def check(client, server):
            return await client.get_user_profile("alice")

        profile = run_with_client(app, check)
        assert profile.display_name == "Alice"
        assert profile.followers == 12
        assert profile.endpoint.endswith("/users/alice")


class TestErrors:
    """Mapping of failed requests to SpotifyError."""

    def test_no_active_device(self):
        async def play(request):
            return error_body(404, "Player command failed: No active device found", "NO_ACTIVE_DEVICE")

        app = web.Application()
        app.router.add_put("/v1/me/player/play", play)

        async def check(client, server):
            await client.play(None, ["spotify:track:t1"])

        with pytest.raises(NoActiveDeviceError) as exc_info:
            run_with_client(app, check)
        assert "open Spotify on any device" in str(exc_info.value)

    def test_rate_limited(self):
        async def pause(request):
            return web.Response(status=429, headers={"Retry-After": "3"})

        app = web.Application()
        app.router.add_put("/v1/me/player/pause", pause)

        async def check(client, server):
            await client.pause()

        with pytest.raises(SpotifyError) as exc_info:
            run_with_client(app, check)
        assert exc_info.value.status == 429
        assert "retry after 3s" in str(exc_info.value)

    def test_api_error_message(self):
        async def track(request):
            return error_body(502, "Bad gateway")

        app = web.Application()
        app.router.add_get("/v1/tracks/t1", track)

        async def check(client, server):
            await client.get_track("t1")

        with pytest.raises(SpotifyError) as exc_info:
            run_with_client(app, check)
        assert str(exc_info.value) == "Bad gateway (HTTP 502)"
        assert exc_info.value.status == 502

    def test_network_error(self):
        async def scenario():
            server = test_utils.TestServer(web.Application())
            await server.start_server()
            base_url = str(server.make_url("/v1"))
            await server.close()
            async with aiohttp.ClientSession() as session:
                client = SpotifyClient(session, StaticToken("tok"), base_url=base_url)
                await client.list_devices()

        with pytest.raises(SpotifyError) as exc_info:
            asyncio.run(scenario())
        assert str(exc_info.value).startswith("network error")

    def test_pick_device_requires_one(self):
        with pytest.raises(NoActiveDeviceError):
            pick_device([])
        assert pick_device([Device("a"), Device("b")]).id == "a"
