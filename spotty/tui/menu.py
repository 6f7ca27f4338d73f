"""Line-based menu: result tables and prompts.

Everything here blocks on terminal input, so the app runs these calls in
an executor while the event loop keeps serving HTTP requests.
"""

from __future__ import annotations

import webbrowser
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, TextIO

from rich.console import Console
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table
from rich.text import Text

from spotty.models import SearchType
from spotty.utils import format_duration

if TYPE_CHECKING:
    from spotty.models import AlbumSummary, PlayableItem, PlaylistSummary, TrackRef

DEFAULT_LIMIT = 5
MAX_LIMIT = 50

# Results offered by the menu's quick "play" action
PLAY_SEARCH_LIMIT = 10


class MenuAction(Enum):
    """Top-level menu actions."""

    SEARCH = "search"
    PLAY = "play"
    QUIT = "quit"


@dataclass
class SearchRequest:
    """A search as entered in the menu or on the command line."""

    search_type: SearchType
    query: str
    artist: str = ""
    limit: int = DEFAULT_LIMIT
    details: bool = False
    auto_play: bool = False


class Menu:
    """Prompts and tables on a rich console."""

    def __init__(
        self,
        console: Console | None = None,
        stream: TextIO | None = None,
        *,
        open_browser: Callable[[str], bool] = webbrowser.open,
    ) -> None:
        """Initialize the menu.

        Args:
            console: Console to draw on.
            stream: Input stream for prompts; standard input by default.
            open_browser: Opens a result's Spotify link.
        """
        self._console = console or Console()
        self._stream = stream
        self._open_browser = open_browser

    @property
    def console(self) -> Console:
        return self._console

    def error(self, message: str) -> None:
        self._console.print(Text(message, style="bold red"))

    def info(self, message: str) -> None:
        self._console.print(Text(message))

    # Prompts

    def ask_action(self) -> MenuAction:
        """Ask what to do next."""
        self._console.rule("Spotify Search")
        choice = Prompt.ask(
            "Action",
            choices=[a.value for a in MenuAction],
            default=MenuAction.SEARCH.value,
            console=self._console,
            stream=self._stream,
        )
        return MenuAction(choice)

    def ask_search(self) -> SearchRequest | None:
        """Ask for the search form fields; None when the query is left empty."""
        search_type = Prompt.ask(
            "Search type",
            choices=[t.value for t in SearchType],
            default=SearchType.TRACK.value,
            console=self._console,
            stream=self._stream,
        )
        query = self._ask_text("Search query")
        if not query:
            self.error("Please enter a search query")
            return None

        artist = ""
        if search_type == SearchType.TRACK.value:
            artist = self._ask_text("Artist name (optional)")

        limit = self._ask_int("Number of results (1-50)", 1, MAX_LIMIT, DEFAULT_LIMIT)
        details = Confirm.ask(
            "Show detailed results",
            default=False,
            console=self._console,
            stream=self._stream,
        )
        return SearchRequest(SearchType(search_type), query, artist, limit, details)

    def ask_play(self) -> SearchRequest | None:
        """Ask for a track to play right away."""
        name = self._ask_text("Track name")
        if not name:
            self.error("Please enter a track name")
            return None
        artist = self._ask_text("Artist name (optional)")
        return SearchRequest(SearchType.TRACK, name, artist, PLAY_SEARCH_LIMIT)

    def _ask_text(self, prompt: str) -> str:
        answer = Prompt.ask(
            prompt,
            default="",
            show_default=False,
            console=self._console,
            stream=self._stream,
        )
        return answer.strip()

    def _ask_int(self, prompt: str, low: int, high: int, default: int) -> int:
        while True:
            value = IntPrompt.ask(
                prompt, default=default, console=self._console, stream=self._stream
            )
            if low <= value <= high:
                return value
            self.error(f"Please enter a number between {low} and {high}")

    def choose(
        self, count: int, what: str = "item", links: Sequence[str] | None = None
    ) -> int | None:
        """Ask for a row number; None means go back.

        With `links`, answering `o<n>` opens row n's Spotify link in the
        browser and asks again.
        """
        if count == 0:
            return None
        if not links:
            number = self._ask_int(f"Select a {what} (1-{count}, 0 to go back)", 0, count, 1)
            return None if number == 0 else number - 1

        prompt = f"Select a {what} (1-{count}, o<n> opens its link, 0 to go back)"
        while True:
            answer = self._ask_text(prompt).lower() or "1"
            if answer.startswith("o"):
                self._open_link(links, answer[1:].strip())
                continue
            if answer.isdigit() and 0 <= int(answer) <= count:
                number = int(answer)
                return None if number == 0 else number - 1
            self.error(f"Please enter a number between 0 and {count}")

    def _open_link(self, links: Sequence[str], answer: str) -> None:
        if not answer.isdigit() or not 1 <= int(answer) <= len(links):
            self.error(f"Please enter o followed by a number between 1 and {len(links)}")
            return
        url = links[int(answer) - 1]
        if self._open_browser(url):
            self.info(f"Opened {url}")
        else:
            self.info(f"Open this link in your browser: {url}")

    # Tables

    def _table(self, title: str, columns: Sequence[str]) -> Table:
        table = Table(title=title, header_style="bold", title_style="bold blue")
        table.add_column("#", style="dim", justify="right")
        for column in columns:
            table.add_column(column)
        return table

    def show_tracks(
        self,
        tracks: Sequence[PlayableItem],
        *,
        details: bool = False,
        title: str = "Track Search Results",
    ) -> None:
        """Print track search results."""
        columns = ["Track Name", "Artist", "Album", "Duration"]
        if details:
            columns += ["Popularity", "Spotify Link", "URI"]
        table = self._table(title, columns)
        for i, track in enumerate(tracks, start=1):
            row: list[str | Text] = [
                track.name,
                track.artist_names,
                track.album,
                format_duration(track.duration_ms),
            ]
            if details:
                row += [str(track.popularity), Text(track.link, style="blue"), track.uri]
            table.add_row(str(i), *row)
        self._console.print(table)

    def show_albums(self, albums: Sequence[AlbumSummary], *, details: bool = False) -> None:
        """Print album search results."""
        columns = ["Album Name", "Artist", "Release Date", "Total Tracks"]
        if details:
            columns += ["Spotify Link", "URI"]
        table = self._table("Album Search Results", columns)
        for i, album in enumerate(albums, start=1):
            row: list[str | Text] = [
                album.name,
                album.artist_names,
                album.release_date,
                str(album.total_tracks),
            ]
            if details:
                row += [Text(album.link, style="blue"), album.uri]
            table.add_row(str(i), *row)
        self._console.print(table)

    def show_playlists(
        self, playlists: Sequence[PlaylistSummary], *, details: bool = False
    ) -> None:
        """Print playlist search results."""
        columns = ["Playlist Name", "Owner", "Total Tracks"]
        if details:
            columns += ["Spotify Link", "URI"]
        table = self._table("Playlist Search Results", columns)
        for i, playlist in enumerate(playlists, start=1):
            row: list[str | Text] = [playlist.name, playlist.owner, str(playlist.total_tracks)]
            if details:
                row += [Text(playlist.link, style="blue"), playlist.uri]
            table.add_row(str(i), *row)
        self._console.print(table)

    def show_album_tracks(self, album: AlbumSummary, tracks: Sequence[TrackRef]) -> None:
        """Print the track list of an album."""
        table = self._table(f"{album.name} by {album.artist_names}", ["Track Name", "Duration"])
        for i, track in enumerate(tracks, start=1):
            table.add_row(str(i), track.name, format_duration(track.duration_ms))
        self._console.print(table)
