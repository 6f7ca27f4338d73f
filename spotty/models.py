"""Data types returned by the Spotify Web API client."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

OPEN_SPOTIFY_URL = "https://open.spotify.com"


class SearchType(Enum):
    """Catalog object type to search for."""

    TRACK = "track"
    ALBUM = "album"
    PLAYLIST = "playlist"


def _artist_names(data: dict[str, Any]) -> tuple[str, ...]:
    return tuple(a["name"] for a in data.get("artists") or [] if a.get("name"))


def spotify_link(kind: str, item_id: str) -> str:
    """Return the open.spotify.com link for a catalog object."""
    return f"{OPEN_SPOTIFY_URL}/{kind}/{item_id}"


@dataclass(frozen=True)
class PlayableItem:
    """A fully described track that can be handed to the player."""

    id: str
    name: str
    artists: tuple[str, ...]
    album: str
    duration_ms: int
    uri: str
    release_date: str = ""
    popularity: int = 0

    def __post_init__(self) -> None:
        if self.duration_ms < 0:
            raise ValueError(f"duration_ms must be non-negative, got {self.duration_ms}")

    @property
    def artist_names(self) -> str:
        """Artists joined for display."""
        return ", ".join(self.artists)

    @property
    def link(self) -> str:
        return spotify_link("track", self.id)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> PlayableItem:
        """Build an item from a full track object."""
        album = data.get("album") or {}
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            artists=_artist_names(data),
            album=album.get("name", ""),
            duration_ms=int(data.get("duration_ms") or 0),
            uri=data.get("uri") or f"spotify:track:{data['id']}",
            release_date=album.get("release_date", ""),
            popularity=int(data.get("popularity") or 0),
        )


@dataclass(frozen=True)
class TrackRef:
    """A simplified album track that still needs a lookup to be played."""

    id: str
    name: str
    duration_ms: int
    uri: str
    track_number: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> TrackRef:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            duration_ms=int(data.get("duration_ms") or 0),
            uri=data.get("uri") or f"spotify:track:{data['id']}",
            track_number=int(data.get("track_number") or 0),
        )


@dataclass(frozen=True)
class Device:
    """A Spotify Connect device."""

    id: str
    name: str = ""
    is_active: bool = False
    type: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Device:
        return cls(
            id=data.get("id") or "",
            name=data.get("name", ""),
            is_active=bool(data.get("is_active")),
            type=data.get("type", ""),
        )


@dataclass(frozen=True)
class AlbumSummary:
    """An album as listed in search results."""

    id: str
    name: str
    artists: tuple[str, ...]
    release_date: str
    total_tracks: int
    uri: str

    @property
    def artist_names(self) -> str:
        return ", ".join(self.artists)

    @property
    def link(self) -> str:
        return spotify_link("album", self.id)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> AlbumSummary:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            artists=_artist_names(data),
            release_date=data.get("release_date", ""),
            total_tracks=int(data.get("total_tracks") or 0),
            uri=data.get("uri", ""),
        )


@dataclass(frozen=True)
class PlaylistSummary:
    """A playlist as listed in search results."""

    id: str
    name: str
    owner: str
    total_tracks: int
    uri: str
    description: str = ""

    @property
    def link(self) -> str:
        return spotify_link("playlist", self.id)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> PlaylistSummary:
        owner = data.get("owner") or {}
        tracks = data.get("tracks") or {}
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            owner=owner.get("display_name") or owner.get("id", ""),
            total_tracks=int(tracks.get("total") or 0),
            uri=data.get("uri", ""),
            description=data.get("description") or "",
        )


@dataclass
class SearchResults:
    """Results of a catalog search, one list per requested type."""

    tracks: list[PlayableItem] = field(default_factory=list)
    albums: list[AlbumSummary] = field(default_factory=list)
    playlists: list[PlaylistSummary] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> SearchResults:
        # Search pages may contain null entries for unavailable objects
        def items(key: str) -> list[dict[str, Any]]:
            return [i for i in (data.get(key) or {}).get("items") or [] if i]

        return cls(
            tracks=[PlayableItem.from_api(i) for i in items("tracks")],
            albums=[AlbumSummary.from_api(i) for i in items("albums")],
            playlists=[PlaylistSummary.from_api(i) for i in items("playlists")],
        )


@dataclass(frozen=True)
class UserProfile:
    """Public profile of a Spotify user."""

    id: str
    display_name: str
    uri: str
    endpoint: str
    followers: int

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> UserProfile:
        return cls(
            id=data.get("id", ""),
            display_name=data.get("display_name") or "",
            uri=data.get("uri", ""),
            endpoint=data.get("href", ""),
            followers=int((data.get("followers") or {}).get("total") or 0),
        )
