"""Playback controller: turns user commands into queue moves and API calls.

The controller applies every command to its local model straight away
and sends the matching Web API request from a background task, so the
terminal stays responsive during slow round trips. Completions come back
through a queue that only `run()` consumes. When a request fails and no
newer command has been issued since, the local model is put back the way
it was before the command.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from spotty.models import PlayableItem
from spotty.player.clock import ClockState, PlaybackClock
from spotty.player.queue import Queue, QueueError, QueueMode, QueueRef, ResolutionError
from spotty.remote import SpotifyError, pick_device
from spotty.utils import create_task

if TYPE_CHECKING:
    from spotty.remote import SpotifyClient

logger = logging.getLogger(__name__)

# Seconds the single-shot autoplay waits for the play request
AUTOPLAY_TIMEOUT = 10.0

# Seconds to let in-flight requests (like the final pause) finish on exit
EXIT_TIMEOUT = 5.0

# Seek step for the arrow keys
SEEK_STEP_MS = 10_000


class PlayerState(Enum):
    """Controller state."""

    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"


class AutoplayResult(Enum):
    """Outcome of a single-shot play."""

    STARTED = "started"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class PlaybackView(Protocol):
    """What the controller needs from the presentation surface."""

    def set_track(
        self, item: PlayableItem, mode: QueueMode, position: tuple[int, int]
    ) -> None: ...

    def set_progress(self, elapsed_ms: int, duration_ms: int) -> None: ...

    def set_player_state(self, state: PlayerState) -> None: ...

    def set_keep_playing(self, keep_playing: bool) -> None: ...

    def set_status(self, message: str, *, error: bool = False) -> None: ...


class NullView:
    """View that discards every update."""

    def set_track(
        self, item: PlayableItem, mode: QueueMode, position: tuple[int, int]
    ) -> None:
        pass

    def set_progress(self, elapsed_ms: int, duration_ms: int) -> None:
        pass

    def set_player_state(self, state: PlayerState) -> None:
        pass

    def set_keep_playing(self, keep_playing: bool) -> None:
        pass

    def set_status(self, message: str, *, error: bool = False) -> None:
        pass


@dataclass
class PlaybackSession:
    """Mutable playback state owned by one controller."""

    item: PlayableItem
    is_playing: bool = False
    paused_offset_ms: int = 0
    keep_playing: bool = False


@dataclass(frozen=True)
class _Snapshot:
    ref: QueueRef
    session: PlaybackSession
    state: PlayerState
    clock: ClockState


@dataclass(frozen=True)
class RemoteResult:
    """Completion message posted by a background request."""

    seq: int
    action: str
    error: SpotifyError | None = None
    snapshot: _Snapshot | None = None


_ACTION_VERBS = {
    "play": "starting playback",
    "pause": "pausing playback",
    "seek": "seeking",
    "stop": "stopping playback",
}


class PlaybackController:
    """Owns a queue, a clock and a session, and drives remote playback."""

    def __init__(
        self,
        client: SpotifyClient,
        queue: Queue,
        item: PlayableItem,
        view: PlaybackView,
        *,
        keep_playing: bool = False,
        on_exit: Callable[[], None] | None = None,
        clock: PlaybackClock | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            client: Web API client, shared with other controllers.
            queue: Queue positioned on `item`.
            item: Resolved item under the queue cursor.
            view: Presentation surface to keep up to date.
            keep_playing: Keep playing on exit and loop at the queue end.
            on_exit: Hand-off to the parent menu, invoked on exit.
            clock: Clock to use; a 1 s ticking clock by default.
        """
        self._client = client
        self._queue = queue
        self._view = view
        self._on_exit = on_exit
        self._session = PlaybackSession(item=item, keep_playing=keep_playing)
        self._state = PlayerState.IDLE
        self._clock = clock or PlaybackClock()
        self._clock.reset(item.duration_ms)
        self._clock.set_tick_callback(self._handle_tick)
        self._results: asyncio.Queue[RemoteResult] = asyncio.Queue()
        self._pending: set[asyncio.Task[None]] = set()
        self._completion: asyncio.Task[None] | None = None
        self._seq = 0
        self._navigating = False
        self._closed = asyncio.Event()
        self._exited = False

    @property
    def state(self) -> PlayerState:
        return self._state

    @property
    def session(self) -> PlaybackSession:
        return self._session

    @property
    def queue(self) -> Queue:
        return self._queue

    @property
    def clock(self) -> PlaybackClock:
        return self._clock

    @property
    def exited(self) -> bool:
        return self._exited

    # Local model

    def _snapshot(self) -> _Snapshot:
        return _Snapshot(
            ref=self._queue.current,
            session=replace(self._session),
            state=self._state,
            clock=self._clock.snapshot(),
        )

    def _restore(self, snapshot: _Snapshot) -> None:
        self._queue.commit(snapshot.ref)
        # The keep-playing toggle is not part of any request
        self._session = replace(snapshot.session, keep_playing=self._session.keep_playing)
        self._clock.restore(snapshot.clock)
        self._state = snapshot.state
        self._session.is_playing = self._state is PlayerState.PLAYING
        self._render_all()

    def _set_state(self, state: PlayerState) -> None:
        self._state = state
        self._session.is_playing = state is PlayerState.PLAYING
        self._view.set_player_state(state)

    def _render_all(self) -> None:
        self._view.set_track(self._session.item, self._queue.mode, self._queue.position)
        self._view.set_keep_playing(self._session.keep_playing)
        self._view.set_player_state(self._state)
        self._view.set_progress(self._clock.elapsed_ms(), self._clock.duration_ms)

    def _load(self, ref: QueueRef, item: PlayableItem) -> None:
        """Move the cursor onto `ref` and make `item` current, from zero."""
        self._queue.commit(ref)
        self._session.item = item
        self._session.paused_offset_ms = 0
        self._clock.reset(item.duration_ms)
        self._view.set_track(item, self._queue.mode, self._queue.position)
        self._view.set_progress(0, item.duration_ms)

    # Background requests

    def _dispatch(
        self,
        action: str,
        request: Callable[[], Awaitable[None]],
        snapshot: _Snapshot | None,
    ) -> None:
        """Run `request` in the background and post its outcome."""
        self._seq += 1
        seq = self._seq

        async def runner() -> None:
            try:
                await request()
            except SpotifyError as e:
                self._results.put_nowait(RemoteResult(seq, action, e, snapshot))
            else:
                self._results.put_nowait(RemoteResult(seq, action))

        task = create_task(runner(), name=f"spotify-{action}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _start_remote(self, item: PlayableItem, position_ms: int) -> None:
        device = pick_device(await self._client.list_devices())
        await self._client.play(device.id, [item.uri], position_ms or None)

    def apply_result(self, result: RemoteResult) -> None:
        """Apply a completed request to the local model and the view."""
        if result.error is None:
            if result.seq == self._seq and result.action == "play":
                self._view.set_status(f"Playing {self._session.item.name}")
            return

        logger.debug("%s failed: %s", result.action, result.error)
        self._view.set_status(
            f"Error {_ACTION_VERBS[result.action]}: {result.error}", error=True
        )
        if result.seq != self._seq:
            # A newer command owns the local state now
            return
        if result.snapshot is not None and not self._exited:
            self._restore(result.snapshot)

    async def drain(self) -> None:
        """Wait for in-flight requests and apply their results."""
        while self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        while not self._results.empty():
            self.apply_result(self._results.get_nowait())

    # Commands

    async def play(self) -> None:
        """Start or resume the current item."""
        if self._exited or self._state is PlayerState.PLAYING:
            return
        snapshot = self._snapshot()
        item = self._session.item
        offset = self._session.paused_offset_ms
        self._clock.start(offset)
        self._set_state(PlayerState.PLAYING)
        self._dispatch("play", lambda: self._start_remote(item, offset), snapshot)

    async def pause(self) -> None:
        """Pause the current item, remembering where it was."""
        if self._exited or self._state is not PlayerState.PLAYING:
            return
        snapshot = self._snapshot()
        self._session.paused_offset_ms = self._clock.pause()
        self._set_state(PlayerState.PAUSED)
        self._view.set_progress(self._session.paused_offset_ms, self._clock.duration_ms)
        self._dispatch("pause", self._client.pause, snapshot)

    async def toggle(self) -> None:
        """Play/pause toggle."""
        if self._state is PlayerState.PLAYING:
            await self.pause()
        else:
            await self.play()

    async def next(self) -> bool:
        """Play the next entry; False when there is none."""
        return await self._navigate(self._queue.peek_next, "next")

    async def previous(self) -> bool:
        """Play the previous entry; False when there is none."""
        return await self._navigate(self._queue.peek_previous, "previous")

    async def _navigate(
        self, peek: Callable[[bool], QueueRef | None], direction: str
    ) -> bool:
        if self._exited or self._navigating:
            return False
        ref = peek(self._session.keep_playing)
        if ref is None:
            return False
        self._navigating = True
        try:
            item = await self._queue.resolve(ref)
        except ResolutionError as e:
            self._view.set_status(f"Error getting {direction} track: {e}", error=True)
            return False
        finally:
            self._navigating = False
        if self._exited:
            return False

        snapshot = self._snapshot()
        self._load(ref, item)
        self._clock.start(0)
        self._set_state(PlayerState.PLAYING)
        self._dispatch("play", lambda: self._start_remote(item, 0), snapshot)
        return True

    async def seek(self, delta_ms: int) -> None:
        """Seek by `delta_ms` within the current item."""
        if self._exited or self._state is not PlayerState.PLAYING:
            return
        snapshot = self._snapshot()
        position = self._clock.seek(delta_ms)
        self._view.set_progress(position, self._clock.duration_ms)
        self._dispatch("seek", lambda: self._client.seek(position), snapshot)

    async def toggle_keep_playing(self) -> None:
        self._session.keep_playing = not self._session.keep_playing
        self._view.set_keep_playing(self._session.keep_playing)

    async def exit(self) -> None:
        """Leave the player, stopping playback unless keep-playing is on."""
        if self._exited:
            return
        self._exited = True
        completion = self._completion
        if completion is not None and completion is not asyncio.current_task():
            completion.cancel()
        # An idle player already sent its stop when the queue ran out
        if not self._session.keep_playing and self._state is not PlayerState.IDLE:
            self._dispatch("stop", self._client.pause, None)
        if self._state is PlayerState.PLAYING:
            self._session.paused_offset_ms = self._clock.pause()
        await self._clock.aclose()
        self._set_state(PlayerState.IDLE)
        self._closed.set()
        if self._on_exit is not None:
            self._on_exit()

    # Track completion

    def _handle_tick(self, elapsed_ms: int) -> None:
        self._view.set_progress(elapsed_ms, self._clock.duration_ms)
        if self._clock.is_finished and self._state is PlayerState.PLAYING:
            self._clock.stop()
            if self._completion is None or self._completion.done():
                task = create_task(
                    self._run_completion(), name="track-complete", eager_start=False
                )
                self._completion = task
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)

    async def _run_completion(self) -> None:
        try:
            await self._complete_track()
        except QueueError:
            logger.exception("Player queue is inconsistent, closing player")
            await self.exit()

    async def _complete_track(self) -> None:
        """Move on after the current item ran out."""
        if self._exited or self._state is not PlayerState.PLAYING:
            return
        if self._queue.peek_next(self._session.keep_playing) is not None:
            # A failed lookup or play request leaves the finished item paused
            self._session.paused_offset_ms = self._clock.pause()
            self._set_state(PlayerState.PAUSED)
            await self.next()
            return

        duration = self._session.item.duration_ms
        self._session.paused_offset_ms = 0
        self._clock.reset(duration)
        self._set_state(PlayerState.IDLE)
        self._view.set_progress(duration, duration)
        self._view.set_status("Reached the end of the queue")
        self._dispatch("stop", self._client.pause, None)

    # Lifecycle

    async def run(self) -> None:
        """Start playing and process request completions until exit."""
        self._render_all()
        consumer = create_task(self._consume_results(), name="player-results")
        try:
            await self.play()
            await self._closed.wait()
        except asyncio.CancelledError:
            await self.exit()
            raise
        finally:
            consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await consumer
            await self._wait_pending()

    async def _consume_results(self) -> None:
        while True:
            result = await self._results.get()
            try:
                self.apply_result(result)
            except QueueError:
                logger.exception("Player queue is inconsistent, closing player")
                await self.exit()
                return

    async def _wait_pending(self) -> None:
        if self._pending:
            _, pending = await asyncio.wait(set(self._pending), timeout=EXIT_TIMEOUT)
            if pending:
                logger.warning("%d Spotify request(s) still running at exit", len(pending))
                for task in pending:
                    task.cancel()
        while not self._results.empty():
            result = self._results.get_nowait()
            if result.error is not None:
                logger.debug("%s failed during exit: %s", result.action, result.error)

    async def play_once(
        self, timeout: float = AUTOPLAY_TIMEOUT
    ) -> tuple[AutoplayResult, SpotifyError | None]:
        """Issue a single play request and wait a bounded time for it.

        No clock and no queue navigation: the caller prints the outcome
        and exits while the music keeps going.
        """
        try:
            await asyncio.wait_for(self._start_remote(self._session.item, 0), timeout)
        except TimeoutError:
            return AutoplayResult.TIMED_OUT, None
        except SpotifyError as e:
            return AutoplayResult.FAILED, e
        self._set_state(PlayerState.PLAYING)
        return AutoplayResult.STARTED, None
