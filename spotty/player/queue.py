"""Play queue with a cursor, in one of four sourcing modes."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Generic, TypeVar

from spotty.models import PlayableItem, TrackRef
from spotty.remote import SpotifyError

if TYPE_CHECKING:
    from spotty.remote import SpotifyClient

logger = logging.getLogger(__name__)

# Cursor value used only while wrapping from the last entry back to the first
WRAP_SENTINEL = -1

_E = TypeVar("_E", PlayableItem, TrackRef)


class QueueMode(Enum):
    """Where the queue's entries came from."""

    SINGLE = "single"
    PLAYLIST = "playlist"
    ALBUM = "album"
    SEARCH_RESULTS = "search"

    @property
    def label(self) -> str:
        """Human-friendly name used in progress lines."""
        return {
            QueueMode.SINGLE: "Track",
            QueueMode.PLAYLIST: "Playlist",
            QueueMode.ALBUM: "Album",
            QueueMode.SEARCH_RESULTS: "Search Results",
        }[self]


class QueueError(IndexError):
    """The queue cursor no longer points at an entry."""


class ResolutionError(SpotifyError):
    """A queue entry could not be turned into a playable item."""


@dataclass(frozen=True)
class QueueRef(Generic[_E]):
    """An entry together with the cursor position it lives at."""

    index: int
    entry: _E


class Queue(ABC, Generic[_E]):
    """Ordered entries plus a cursor.

    Subclasses decide how an entry becomes a PlayableItem; the cursor
    arithmetic is shared.
    """

    mode: QueueMode

    def __init__(self, entries: Sequence[_E], *, start_id: str | None = None) -> None:
        """Initialize the queue, placing the cursor on `start_id` if present."""
        if not entries:
            raise ValueError("a queue needs at least one entry")
        self._entries: list[_E] = list(entries)
        self._index = 0
        if start_id is not None:
            for i, entry in enumerate(self._entries):
                if entry.id == start_id:
                    self._index = i
                    break

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def index(self) -> int:
        """Current cursor position."""
        return self._index

    @property
    def current(self) -> QueueRef[_E]:
        """The entry under the cursor."""
        if not 0 <= self._index < len(self._entries):
            raise QueueError(f"cursor {self._index} outside queue of {len(self._entries)}")
        return QueueRef(self._index, self._entries[self._index])

    @property
    def position(self) -> tuple[int, int]:
        """One-based position and queue length, for display."""
        return self._index + 1, len(self._entries)

    def peek_next(self, wrap: bool) -> QueueRef[_E] | None:
        """Return the entry `advance` would move to, without moving."""
        index = self._index
        if index >= len(self._entries) - 1:
            if not wrap:
                return None
            index = WRAP_SENTINEL
        index += 1
        return QueueRef(index, self._entries[index])

    def peek_previous(self, wrap: bool) -> QueueRef[_E] | None:
        """Return the entry `retreat` would move to, without moving."""
        index = self._index
        if index <= 0:
            if not wrap:
                return None
            index = len(self._entries)
        index -= 1
        return QueueRef(index, self._entries[index])

    def commit(self, ref: QueueRef[_E]) -> None:
        """Move the cursor onto a previously peeked entry."""
        if not 0 <= ref.index < len(self._entries):
            raise QueueError(f"cannot move cursor to {ref.index}")
        self._index = ref.index

    def advance(self, wrap: bool) -> _E | None:
        """Step forward, looping to the start only when `wrap` is set."""
        ref = self.peek_next(wrap)
        if ref is None:
            return None
        self.commit(ref)
        return ref.entry

    def retreat(self, wrap: bool) -> _E | None:
        """Step backward, looping to the end only when `wrap` is set."""
        ref = self.peek_previous(wrap)
        if ref is None:
            return None
        self.commit(ref)
        return ref.entry

    @abstractmethod
    async def resolve(self, ref: QueueRef[_E]) -> PlayableItem:
        """Turn an entry into a playable item."""


class TrackQueue(Queue[PlayableItem]):
    """Queue whose entries are already complete tracks."""

    def __init__(
        self,
        mode: QueueMode,
        items: Sequence[PlayableItem],
        *,
        start_id: str | None = None,
    ) -> None:
        """Initialize a single, playlist or search-results queue."""
        if mode is QueueMode.ALBUM:
            raise ValueError("album queues hold track references, use AlbumQueue")
        super().__init__(items, start_id=start_id)
        self.mode = mode

    @classmethod
    def single(cls, item: PlayableItem) -> TrackQueue:
        return cls(QueueMode.SINGLE, [item])

    @classmethod
    def playlist(cls, items: Sequence[PlayableItem], start: PlayableItem) -> TrackQueue:
        return cls(QueueMode.PLAYLIST, items, start_id=start.id)

    @classmethod
    def search_results(
        cls, items: Sequence[PlayableItem], start: PlayableItem
    ) -> TrackQueue:
        return cls(QueueMode.SEARCH_RESULTS, items, start_id=start.id)

    async def resolve(self, ref: QueueRef[PlayableItem]) -> PlayableItem:
        return ref.entry


class AlbumQueue(Queue[TrackRef]):
    """Queue over an album's track list; each step costs a track lookup."""

    mode = QueueMode.ALBUM

    def __init__(
        self,
        client: SpotifyClient,
        tracks: Sequence[TrackRef],
        *,
        start_id: str | None = None,
    ) -> None:
        """Initialize the queue with the client used for lookups."""
        super().__init__(tracks, start_id=start_id)
        self._client = client

    async def resolve(self, ref: QueueRef[TrackRef]) -> PlayableItem:
        """Fetch the full track; failures leave the cursor untouched."""
        try:
            return await self._client.get_track(ref.entry.id)
        except SpotifyError as e:
            logger.debug("Lookup of album track %s failed: %s", ref.entry.id, e)
            raise ResolutionError(str(e), status=e.status) from e
