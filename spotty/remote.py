"""Async client for the Spotify Web API."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol

import aiohttp
from aiohttp import ClientError

from spotty.models import (
    Device,
    PlayableItem,
    SearchResults,
    SearchType,
    TrackRef,
    UserProfile,
)

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.spotify.com/v1"

# Per-request timeout for API calls
REQUEST_TIMEOUT = 10.0

# Upper bound on pages followed when listing album or playlist tracks
MAX_PAGES = 20

NO_ACTIVE_DEVICE_MESSAGE = (
    "No active Spotify devices found. Please open Spotify on any device first."
)


class SpotifyError(Exception):
    """A Spotify API call failed (network error, rate limit or API error)."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        """Initialize the error with an optional HTTP status."""
        super().__init__(message)
        self.status = status


class NoActiveDeviceError(SpotifyError):
    """The account has no device that could play."""

    def __init__(self, message: str = NO_ACTIVE_DEVICE_MESSAGE) -> None:
        """Initialize the error."""
        super().__init__(message, status=404)


class TokenProvider(Protocol):
    """Anything that can hand out a bearer token."""

    async def get_access_token(self) -> str:
        """Return a valid access token."""
        ...


def pick_device(devices: Sequence[Device]) -> Device:
    """Pick the device to play on: the active one, else the first one."""
    if not devices:
        raise NoActiveDeviceError
    for device in devices:
        if device.is_active:
            return device
    return devices[0]


class SpotifyClient:
    """Thin async wrapper around the Web API endpoints the player uses.

    The client holds no per-call state, so one instance can be shared by
    every player and menu for the lifetime of the session.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        tokens: TokenProvider,
        *,
        base_url: str = API_BASE_URL,
    ) -> None:
        """Initialize the client.

        Args:
            session: HTTP session used for every request.
            tokens: Source of bearer tokens.
            base_url: API root, overridable for tests.
        """
        self._session = session
        self._tokens = tokens
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=REQUEST_TIMEOUT)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Perform a request and return the decoded JSON body (or None)."""
        url = path if path.startswith("http") else f"{self._base_url}{path}"
        token = await self._tokens.get_access_token()
        headers = {"Authorization": f"Bearer {token}"}
        try:
            async with self._session.request(
                method,
                url,
                params=params,
                json=json,
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                if resp.status >= 400:
                    await self._raise_for_status(resp)
                if resp.status in (202, 204) or resp.content_length == 0:
                    return None
                text = await resp.text()
                if not text:
                    return None
                return await resp.json(content_type=None)
        except (TimeoutError, OSError, ClientError) as e:
            logger.debug("%s %s failed (%s)", method, path, type(e).__name__)
            raise SpotifyError(f"network error: {e or type(e).__name__}") from e
        except ValueError as e:
            raise SpotifyError(f"invalid response from Spotify: {e}") from e

    async def _raise_for_status(self, resp: aiohttp.ClientResponse) -> None:
        message = resp.reason or "request failed"
        reason = None
        try:
            body = await resp.json(content_type=None)
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            message = body["error"].get("message") or message
            reason = body["error"].get("reason")

        if resp.status == 429:
            retry_after = resp.headers.get("Retry-After", "?")
            raise SpotifyError(
                f"rate limited by Spotify, retry after {retry_after}s", status=429
            )
        if reason == "NO_ACTIVE_DEVICE":
            raise NoActiveDeviceError
        raise SpotifyError(f"{message} (HTTP {resp.status})", status=resp.status)

    async def _paged_items(
        self, path: str, params: dict[str, Any], limit: int | None
    ) -> list[dict[str, Any]]:
        """Collect items from a paging object, following `next` links."""
        items: list[dict[str, Any]] = []
        url: str | None = path
        query: dict[str, Any] | None = params
        for _ in range(MAX_PAGES):
            if url is None:
                break
            data = await self._request("GET", url, params=query) or {}
            items.extend(data.get("items") or [])
            if limit is not None and len(items) >= limit:
                return items[:limit]
            url = data.get("next")
            # `next` already carries the query string
            query = None
        return items

    async def search(
        self, query: str, search_type: SearchType, limit: int = 5
    ) -> SearchResults:
        """Search the catalog for one object type."""
        data = await self._request(
            "GET",
            "/search",
            params={"q": query, "type": search_type.value, "limit": limit},
        )
        return SearchResults.from_api(data or {})

    async def list_devices(self) -> list[Device]:
        """List the user's available Connect devices."""
        data = await self._request("GET", "/me/player/devices") or {}
        return [Device.from_api(d) for d in data.get("devices") or []]

    async def play(
        self,
        device_id: str | None,
        uris: Sequence[str],
        position_ms: int | None = None,
    ) -> None:
        """Start playing `uris` on a device, optionally from a position."""
        body: dict[str, Any] = {"uris": list(uris)}
        if position_ms:
            body["position_ms"] = int(position_ms)
        params = {"device_id": device_id} if device_id else None
        await self._request("PUT", "/me/player/play", params=params, json=body)

    async def pause(self, device_id: str | None = None) -> None:
        """Pause playback."""
        params = {"device_id": device_id} if device_id else None
        await self._request("PUT", "/me/player/pause", params=params)

    async def seek(self, position_ms: int) -> None:
        """Seek the current item to an absolute position."""
        await self._request(
            "PUT", "/me/player/seek", params={"position_ms": max(0, int(position_ms))}
        )

    async def get_track(self, track_id: str) -> PlayableItem:
        """Fetch a full track."""
        data = await self._request("GET", f"/tracks/{track_id}")
        if not data:
            raise SpotifyError(f"track {track_id} not found", status=404)
        return PlayableItem.from_api(data)

    async def get_album_tracks(
        self, album_id: str, limit: int | None = None
    ) -> list[TrackRef]:
        """List an album's tracks as references."""
        page = min(limit or 50, 50)
        items = await self._paged_items(f"/albums/{album_id}/tracks", {"limit": page}, limit)
        return [TrackRef.from_api(i) for i in items if i and i.get("id")]

    async def get_playlist_items(
        self, playlist_id: str, limit: int | None = None
    ) -> list[PlayableItem]:
        """List the playable tracks of a playlist.

        Episodes, local files and removed tracks are skipped.
        """
        page = min(limit or 100, 100)
        items = await self._paged_items(
            f"/playlists/{playlist_id}/tracks", {"limit": page}, limit
        )
        tracks: list[PlayableItem] = []
        for item in items:
            track = (item or {}).get("track")
            if not track or item.get("is_local") or not track.get("id"):
                continue
            if track.get("type", "track") != "track":
                continue
            tracks.append(PlayableItem.from_api(track))
        return tracks

    async def get_user_profile(self, user_id: str) -> UserProfile:
        """Fetch a user's public profile."""
        data = await self._request("GET", f"/users/{user_id}") or {}
        return UserProfile.from_api(data)
