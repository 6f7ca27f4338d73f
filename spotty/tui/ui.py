"""Rich-based player screen for the spotty CLI."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Self

from rich.console import Console, ConsoleOptions, RenderResult
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from spotty.player.controller import PlayerState
from spotty.utils import format_clock

if TYPE_CHECKING:
    from spotty.models import PlayableItem
    from spotty.player.queue import QueueMode


class _RefreshableLayout:
    """A renderable that rebuilds on each render cycle."""

    def __init__(self, ui: PlayerUI) -> None:
        self._ui = ui

    def __rich_console__(self, console: Console, options: ConsoleOptions) -> RenderResult:
        """Rebuild and yield the layout on each render."""
        yield self._ui._build_layout()  # noqa: SLF001


# Duration in seconds to highlight a pressed shortcut
SHORTCUT_HIGHLIGHT_DURATION = 0.15


@dataclass
class UIState:
    """Holds state for the player display."""

    # Track
    title: str | None = None
    artist: str | None = None
    album: str | None = None
    release_date: str | None = None
    mode_label: str = "Track"
    queue_position: int = 0
    queue_length: int = 0

    # Playback
    player_state: PlayerState = PlayerState.IDLE
    progress_ms: int = 0
    duration_ms: int = 0
    keep_playing: bool = False

    # Status line
    status_message: str = "Starting playback..."
    status_is_error: bool = False

    # Shortcut highlight
    highlighted_shortcut: str | None = None
    highlight_time: float = 0.0


class PlayerUI:
    """Full-screen player: now playing, progress and a status line."""

    def __init__(self, console: Console | None = None) -> None:
        """Initialize the UI."""
        self._console = console or Console()
        self._state = UIState()
        self._live: Live | None = None

    @property
    def state(self) -> UIState:
        """Get the UI state for external updates."""
        return self._state

    def _is_highlighted(self, shortcut: str) -> bool:
        """Check if a shortcut should be highlighted."""
        if self._state.highlighted_shortcut != shortcut:
            return False
        elapsed = time.monotonic() - self._state.highlight_time
        return elapsed < SHORTCUT_HIGHLIGHT_DURATION

    def _shortcut_style(self, shortcut: str) -> str:
        """Get the style for a shortcut key."""
        return "bold yellow reverse" if self._is_highlighted(shortcut) else "bold cyan"

    def highlight_shortcut(self, shortcut: str) -> None:
        """Highlight a shortcut temporarily."""
        self._state.highlighted_shortcut = shortcut
        self._state.highlight_time = time.monotonic()
        self.refresh()

    def _build_now_playing_panel(self) -> Panel:
        """Build the now playing panel."""
        info = Table.grid(padding=(0, 1))
        info.add_column(style="dim", width=9)
        info.add_column()

        info.add_row("Title:", Text(self._state.title or "", style="bold white"))
        info.add_row("Artist:", Text(self._state.artist or "Unknown artist", style="cyan"))
        info.add_row("Album:", Text(self._state.album or "Unknown album", style="dim"))
        info.add_row("Released:", Text(self._state.release_date or "Unknown", style="dim"))

        progress = Text()
        progress.append(f"{self._state.mode_label} Progress: ", style="dim")
        progress.append(
            f"{self._state.queue_position}/{self._state.queue_length}", style="bold cyan"
        )
        progress.append(" tracks", style="dim")

        content = Table.grid()
        content.add_column()
        content.add_row(info)
        content.add_row("")
        content.add_row(progress)

        state = self._state.player_state
        if state is PlayerState.PLAYING:
            title = "Now Playing"
        elif state is PlayerState.PAUSED:
            title = "Paused"
        else:
            title = "Stopped"
        return Panel(content, title=title, border_style="blue", expand=True)

    def _build_progress_bar(self) -> Panel:
        """Build the progress bar panel."""
        progress_ms = self._state.progress_ms
        duration_ms = self._state.duration_ms
        percentage = min(100, progress_ms / duration_ms * 100) if duration_ms > 0 else 0

        # Time text (fixed width)
        time_str = f"{format_clock(progress_ms)} / {format_clock(duration_ms)}"

        # Calculate bar width: terminal - panel borders (4) - time text - spacing
        bar_width = max(10, self._console.width - 4 - len(time_str) - 5)
        filled = int(bar_width * percentage / 100)
        empty = bar_width - filled

        bar = Text()
        bar.append("[", style="dim")
        bar.append("=" * filled, style="green bold")
        if filled < bar_width:
            bar.append(">", style="green bold")
            bar.append("-" * max(0, empty - 1), style="dim")
        bar.append("] ", style="dim")

        time_text_styled = Text()
        time_text_styled.append(format_clock(progress_ms), style="cyan")
        time_text_styled.append(" / ", style="dim")
        time_text_styled.append(format_clock(duration_ms), style="cyan")

        # Use grid to keep bar and time on same line
        content = Table.grid(expand=True, padding=0)
        content.add_column()
        content.add_column(justify="right", no_wrap=True)
        content.add_row(bar, time_text_styled)

        return Panel(content, title="Progress", border_style="green", expand=True)

    def _build_shortcuts(self) -> Text:
        space_label = "pause" if self._state.player_state is PlayerState.PLAYING else "play"
        keep = "ON" if self._state.keep_playing else "OFF"

        shortcuts = Text()
        shortcuts.append("<space>", style=self._shortcut_style("space"))
        shortcuts.append(f" {space_label}  ", style="dim")
        shortcuts.append("p", style=self._shortcut_style("prev"))
        shortcuts.append("/", style="dim")
        shortcuts.append("n", style=self._shortcut_style("next"))
        shortcuts.append(" prev/next  ", style="dim")
        shortcuts.append("←", style=self._shortcut_style("seek-"))
        shortcuts.append("/", style="dim")
        shortcuts.append("→", style=self._shortcut_style("seek+"))
        shortcuts.append(" seek  ", style="dim")
        shortcuts.append("k", style=self._shortcut_style("keep"))
        shortcuts.append(" keep playing: ", style="dim")
        shortcuts.append(keep, style="green" if self._state.keep_playing else "dim")
        shortcuts.append("  ", style="dim")
        shortcuts.append("esc", style=self._shortcut_style("quit"))
        shortcuts.append("/", style="dim")
        shortcuts.append("q", style=self._shortcut_style("quit"))
        shortcuts.append(" back", style="dim")
        return shortcuts

    def _build_status_line(self) -> Table:
        """Build the status line at the bottom."""
        left = Text()
        left.append("  ")  # Align with panel content
        style = "bold red" if self._state.status_is_error else "dim"
        left.append(self._state.status_message, style=style)

        # Use grid for left/right alignment with padding column
        line = Table.grid(expand=True)
        line.add_column(ratio=1)
        line.add_column(justify="right")
        line.add_column(width=2)  # Right padding to align with panel interior
        line.add_row(left, self._build_shortcuts(), "")
        return line

    def _build_layout(self) -> Table:
        """Build the complete UI layout."""
        # Get terminal width and leave 1 char margin to prevent wrapping
        width = self._console.width - 1

        layout = Table.grid(expand=False)
        layout.add_column(width=width)
        layout.add_row(self._build_now_playing_panel())
        layout.add_row(self._build_progress_bar())
        layout.add_row(self._build_status_line())
        return layout

    def refresh(self) -> None:
        """Request a UI refresh."""
        if self._live is not None:
            self._live.refresh()

    def set_track(
        self, item: PlayableItem, mode: QueueMode, position: tuple[int, int]
    ) -> None:
        """Show a new current track."""
        self._state.title = item.name
        self._state.artist = item.artist_names
        self._state.album = item.album
        self._state.release_date = item.release_date
        self._state.mode_label = mode.label
        self._state.queue_position, self._state.queue_length = position
        self.refresh()

    def set_progress(self, elapsed_ms: int, duration_ms: int) -> None:
        """Update track progress."""
        self._state.progress_ms = elapsed_ms
        self._state.duration_ms = duration_ms
        self.refresh()

    def set_player_state(self, state: PlayerState) -> None:
        """Update playback state."""
        self._state.player_state = state
        self.refresh()

    def set_keep_playing(self, keep_playing: bool) -> None:
        """Update the keep-playing indicator."""
        self._state.keep_playing = keep_playing
        self.refresh()

    def set_status(self, message: str, *, error: bool = False) -> None:
        """Show a message in the status line."""
        self._state.status_message = message
        self._state.status_is_error = error
        self.refresh()

    def start(self) -> None:
        """Start the live display."""
        self._console.clear()
        self._live = Live(
            _RefreshableLayout(self),
            console=self._console,
            refresh_per_second=4,
            screen=True,
        )
        self._live.start()

    def stop(self) -> None:
        """Stop the live display."""
        if self._live is not None:
            self._live.stop()
            self._live = None

    def __enter__(self) -> Self:
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *_: object) -> None:
        """Context manager exit."""
        self.stop()
