"""Shared fakes for the spotty tests."""

import asyncio

import pytest

from spotty.models import Device, PlayableItem, SearchResults, TrackRef
from spotty.remote import SpotifyError


def make_item(item_id, duration_ms=180_000, name=None, album="Album"):
    return PlayableItem(
        id=item_id,
        name=name or f"Song {item_id}",
        artists=("Artist",),
        album=album,
        duration_ms=duration_ms,
        uri=f"spotify:track:{item_id}",
        release_date="2020-01-01",
    )


def make_ref(item, number=1):
    return TrackRef(item.id, item.name, item.duration_ms, item.uri, number)


class FakeTime:
    """Manually advanced monotonic clock."""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class RecordingView:
    """Records every update the controller sends."""

    def __init__(self):
        self.tracks = []
        self.progress = []
        self.states = []
        self.keep_playing = []
        self.statuses = []
        self.highlights = []

    def set_track(self, item, mode, position):
        self.tracks.append((item, mode, position))

    def set_progress(self, elapsed_ms, duration_ms):
        self.progress.append((elapsed_ms, duration_ms))

    def set_player_state(self, state):
        self.states.append(state)

    def set_keep_playing(self, keep_playing):
        self.keep_playing.append(keep_playing)

    def set_status(self, message, *, error=False):
        self.statuses.append((message, error))

    def highlight_shortcut(self, shortcut):
        self.highlights.append(shortcut)

    @property
    def errors(self):
        return [message for message, error in self.statuses if error]


class FakeSpotify:
    """In-memory stand-in for SpotifyClient."""

    def __init__(self, items=()):
        self.devices = [Device("desk", "Desk", True, "Computer")]
        self.tracks = {item.id: item for item in items}
        self.missing = set()
        self.calls = []
        self.play_error = None
        self.pause_error = None
        self.play_gate = None
        self.search_results = SearchResults()
        self.album_tracks = {}
        self.playlist_items = {}

    async def list_devices(self):
        self.calls.append(("devices",))
        return list(self.devices)

    async def play(self, device_id, uris, position_ms=None):
        self.calls.append(("play", device_id, tuple(uris), position_ms))
        if self.play_gate is not None:
            await self.play_gate.wait()
        if self.play_error is not None:
            raise self.play_error

    async def pause(self, device_id=None):
        self.calls.append(("pause", device_id))
        if self.pause_error is not None:
            raise self.pause_error

    async def seek(self, position_ms):
        self.calls.append(("seek", position_ms))

    async def get_track(self, track_id):
        self.calls.append(("get_track", track_id))
        await asyncio.sleep(0)
        if track_id in self.missing:
            raise SpotifyError("track not found (HTTP 404)", status=404)
        return self.tracks[track_id]

    async def search(self, query, search_type, limit=5):
        self.calls.append(("search", query, search_type, limit))
        return self.search_results

    async def get_album_tracks(self, album_id, limit=None):
        self.calls.append(("album_tracks", album_id))
        return self.album_tracks.get(album_id, [])

    async def get_playlist_items(self, playlist_id, limit=None):
        self.calls.append(("playlist_items", playlist_id))
        return self.playlist_items.get(playlist_id, [])

    def played_uris(self):
        return [call[2] for call in self.calls if call[0] == "play"]


@pytest.fixture
def song_a():
    return make_item("a", 180_000, "Song A")


@pytest.fixture
def song_b():
    return make_item("b", 240_000, "Song B")


@pytest.fixture
def spotify(song_a, song_b):
    return FakeSpotify([song_a, song_b])


@pytest.fixture
def view():
    return RecordingView()


@pytest.fixture
def fake_time():
    return FakeTime()
