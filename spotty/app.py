"""Core application logic for the spotty CLI."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

import aiohttp
import readchar

from spotty.auth import AuthError, SpotifyAuth, StaticToken
from spotty.models import PlayableItem, SearchType
from spotty.player.controller import AutoplayResult, NullView, PlaybackController
from spotty.player.queue import AlbumQueue, Queue, QueueError, TrackQueue
from spotty.remote import SpotifyClient, SpotifyError, pick_device
from spotty.settings import get_token_store
from spotty.tui.keyboard import keyboard_loop
from spotty.tui.menu import DEFAULT_LIMIT, Menu, MenuAction, SearchRequest
from spotty.tui.ui import PlayerUI
from spotty.utils import build_track_query, create_task

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


@dataclass
class AppConfig:
    """Configuration for the spotty application."""

    client_id: str
    client_secret: str
    search_type: SearchType = SearchType.TRACK
    query: str = ""
    artist: str = ""
    limit: int = DEFAULT_LIMIT
    details: bool = False
    interactive: bool = False
    return_to_menu: bool = False
    keep_playing: bool = False
    auto_play: bool = False
    stop: bool = False
    user: str | None = None
    config_dir: Path | None = None

    @property
    def needs_terminal(self) -> bool:
        """Whether this run shows the menu, a results picker or the player."""
        if self.interactive or self.return_to_menu:
            return True
        return not (self.user or self.stop or self.auto_play)

    def search_request(self) -> SearchRequest:
        return SearchRequest(
            search_type=self.search_type,
            query=self.query,
            artist=self.artist,
            limit=self.limit,
            details=self.details,
            auto_play=self.auto_play,
        )


class SpottyApp:
    """Main spotty application."""

    def __init__(
        self,
        config: AppConfig,
        *,
        menu: Menu | None = None,
        ui_factory: Callable[[], PlayerUI] = PlayerUI,
        read_key: Callable[[], str] = readchar.readkey,
    ) -> None:
        """Initialize the application.

        Args:
            config: Run configuration built from the command line.
            menu: Prompt and table surface; a fresh rich console by default.
            ui_factory: Builds the player screen for each player session.
            read_key: Blocking single-key reader for the player screen.
        """
        self._config = config
        self._menu = menu or Menu()
        self._ui_factory = ui_factory
        self._read_key = read_key

    async def run(self) -> int:
        """Run the application."""
        config = self._config

        # The menu and the player require an interactive terminal
        if config.needs_terminal and not sys.stdin.isatty():
            print(  # noqa: T201
                "Error: interactive mode requires an interactive terminal.\n"
                "Use --auto-play to start playback without the terminal UI.",
                file=sys.stderr,
            )
            return 1

        async with aiohttp.ClientSession() as session:
            auth = SpotifyAuth(
                session,
                get_token_store(config.config_dir),
                config.client_id,
                config.client_secret,
            )
            try:
                if config.user:
                    await self._show_profile(session, auth, config.user)
                    return 0

                # Authorize up front so the player never has to
                await auth.get_access_token()
                client = SpotifyClient(session, auth)

                if config.stop:
                    await self._stop(client)
                elif config.interactive:
                    await self._menu_loop(client)
                else:
                    await self._search(client, config.search_request())
                    if config.return_to_menu:
                        await self._menu_loop(client)
            except AuthError as e:
                print(f"Authorization failed: {e}", file=sys.stderr)  # noqa: T201
                return 1
        return 0

    async def _ask(self, prompt: Callable[..., _T], *args: object) -> _T:
        """Run a blocking menu prompt without blocking the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, prompt, *args)

    # One-shot commands

    async def _show_profile(
        self, session: aiohttp.ClientSession, auth: SpotifyAuth, user_id: str
    ) -> None:
        token = await auth.client_credentials_token()
        client = SpotifyClient(session, StaticToken(token))
        try:
            profile = await client.get_user_profile(user_id)
        except SpotifyError as e:
            print(f"Error getting user profile: {e}", file=sys.stderr)  # noqa: T201
            return
        print(f"User ID: {profile.id}")  # noqa: T201
        print(f"Display Name: {profile.display_name}")  # noqa: T201
        print(f"URI: {profile.uri}")  # noqa: T201
        print(f"Endpoint: {profile.endpoint}")  # noqa: T201
        print(f"Followers: {profile.followers}")  # noqa: T201

    async def _stop(self, client: SpotifyClient) -> None:
        try:
            device = pick_device(await client.list_devices())
            await client.pause(device.id)
        except SpotifyError as e:
            print(f"Error stopping playback: {e}", file=sys.stderr)  # noqa: T201
            return
        print("Playback stopped successfully.")  # noqa: T201

    # Menu

    async def _menu_loop(self, client: SpotifyClient) -> None:
        """Show the interactive menu until the user quits."""
        while True:
            action = await self._ask(self._menu.ask_action)
            if action is MenuAction.QUIT:
                return
            if action is MenuAction.SEARCH:
                request = await self._ask(self._menu.ask_search)
                if request is not None:
                    await self._search(client, request)
            else:
                request = await self._ask(self._menu.ask_play)
                if request is not None:
                    await self._play_single(client, request)

    # Search flows

    async def _search(self, client: SpotifyClient, request: SearchRequest) -> None:
        """Search, then let the user pick a result (or auto-play the first)."""
        try:
            if request.search_type is SearchType.TRACK:
                await self._search_tracks(client, request)
            elif request.search_type is SearchType.ALBUM:
                await self._search_albums(client, request)
            else:
                await self._search_playlists(client, request)
        except AuthError:
            raise
        except SpotifyError as e:
            self._menu.error(f"Error searching for {request.search_type.value}s: {e}")

    async def _search_tracks(self, client: SpotifyClient, request: SearchRequest) -> None:
        query = build_track_query(request.query, request.artist)
        tracks = (await client.search(query, SearchType.TRACK, request.limit)).tracks
        if not tracks:
            self._menu.info("No tracks found matching your query.")
            return
        self._menu.info(f"Found {len(tracks)} tracks matching your query.")

        if request.auto_play:
            first = tracks[0]
            self._menu.info(f"Auto-playing the first track: {first.name} by {first.artist_names}")
            await self._autoplay(client, TrackQueue.search_results(tracks, first), first)
            return

        self._menu.show_tracks(tracks, details=request.details)
        index = await self._ask(
            self._menu.choose, len(tracks), "track", [t.link for t in tracks]
        )
        if index is None:
            return
        track = tracks[index]
        await self._play(client, TrackQueue.search_results(tracks, track), track)

    async def _search_albums(self, client: SpotifyClient, request: SearchRequest) -> None:
        albums = (await client.search(request.query, SearchType.ALBUM, request.limit)).albums
        if not albums:
            self._menu.info("No albums found matching your query.")
            return
        self._menu.info(f"Found {len(albums)} albums matching your query.")

        if request.auto_play:
            album = albums[0]
            self._menu.info(f"Selected the first album: {album.name} by {album.artist_names}")
        else:
            self._menu.show_albums(albums, details=request.details)
            index = await self._ask(
                self._menu.choose, len(albums), "album", [a.link for a in albums]
            )
            if index is None:
                return
            album = albums[index]

        tracks = await client.get_album_tracks(album.id)
        if not tracks:
            self._menu.info("No tracks found in the selected album.")
            return

        if request.auto_play:
            queue = AlbumQueue(client, tracks)
        else:
            self._menu.show_album_tracks(album, tracks)
            index = await self._ask(self._menu.choose, len(tracks), "track")
            if index is None:
                return
            queue = AlbumQueue(client, tracks, start_id=tracks[index].id)

        try:
            item = await queue.resolve(queue.current)
        except SpotifyError as e:
            self._menu.error(f"Error getting full track info: {e}")
            return

        if request.auto_play:
            self._menu.info(f"Auto-playing the first track: {item.name}")
            await self._autoplay(client, queue, item)
        else:
            await self._play(client, queue, item)

    async def _search_playlists(self, client: SpotifyClient, request: SearchRequest) -> None:
        playlists = (
            await client.search(request.query, SearchType.PLAYLIST, request.limit)
        ).playlists
        if not playlists:
            self._menu.info("No playlists found matching your query.")
            return
        self._menu.info(f"Found {len(playlists)} playlists matching your query.")

        if request.auto_play:
            playlist = playlists[0]
            self._menu.info(f"Selected the first playlist: {playlist.name} by {playlist.owner}")
        else:
            self._menu.show_playlists(playlists, details=request.details)
            index = await self._ask(
                self._menu.choose, len(playlists), "playlist", [p.link for p in playlists]
            )
            if index is None:
                return
            playlist = playlists[index]

        items = await client.get_playlist_items(playlist.id)
        if not items:
            self._menu.info("No playable tracks found in the selected playlist.")
            return

        if request.auto_play:
            first = items[0]
            self._menu.info(f"Auto-playing the first track: {first.name} by {first.artist_names}")
            await self._autoplay(client, TrackQueue.playlist(items, first), first)
            return

        self._menu.show_tracks(items, details=request.details, title=playlist.name)
        index = await self._ask(
            self._menu.choose, len(items), "track", [i.link for i in items]
        )
        if index is None:
            return
        await self._play(client, TrackQueue.playlist(items, items[index]), items[index])

    async def _play_single(self, client: SpotifyClient, request: SearchRequest) -> None:
        """Menu "play": pick one track from a short search and play only it."""
        query = build_track_query(request.query, request.artist)
        try:
            tracks = (await client.search(query, SearchType.TRACK, request.limit)).tracks
        except AuthError:
            raise
        except SpotifyError as e:
            self._menu.error(f"Error searching for tracks: {e}")
            return
        if not tracks:
            self._menu.info("No tracks found matching your query.")
            return
        self._menu.show_tracks(tracks, title="Select a Track to Play")
        index = await self._ask(self._menu.choose, len(tracks), "track")
        if index is None:
            return
        await self._play(client, TrackQueue.single(tracks[index]), tracks[index])

    # Playback

    async def _autoplay(self, client: SpotifyClient, queue: Queue, item: PlayableItem) -> None:
        controller = PlaybackController(client, queue, item, NullView())
        self._menu.info(
            f"Now playing: {item.name} by {item.artist_names} from the album {item.album}"
        )
        self._menu.info("Waiting for playback to start...")
        result, error = await controller.play_once()
        if result is AutoplayResult.STARTED:
            self._menu.info(
                "Playback started. The application will exit but music will continue playing."
            )
        elif result is AutoplayResult.TIMED_OUT:
            self._menu.info(
                "Timed out waiting for playback to start. "
                "The Spotify client may still begin playback shortly."
            )
        else:
            self._menu.error(f"Error: {error}")

    async def _play(self, client: SpotifyClient, queue: Queue, item: PlayableItem) -> None:
        """Run the player screen for one queue until the user leaves it."""
        ui = self._ui_factory()
        controller = PlaybackController(
            client, queue, item, ui, keep_playing=self._config.keep_playing
        )
        await self._run_player(controller, ui)

    async def _run_player(self, controller: PlaybackController, ui: PlayerUI) -> None:
        # While the full-screen UI runs, suppress logs to avoid interfering with display
        # Only show WARNING and above unless explicitly set to DEBUG
        root = logging.getLogger()
        previous_level = root.level
        if previous_level != logging.DEBUG:
            root.setLevel(logging.WARNING)

        ui.start()
        keyboard = create_task(keyboard_loop(controller, ui, self._read_key), name="keyboard")
        try:
            await controller.run()
        except QueueError:
            logger.exception("Player stopped on an inconsistent queue")
        finally:
            keyboard.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await keyboard
            ui.stop()
            root.setLevel(previous_level)
