"""Utility functions for the spotty CLI."""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Coroutine
from typing import TypeVar

_T = TypeVar("_T")

# Check if eager_start is supported (Python 3.12+)
_SUPPORTS_EAGER_START = sys.version_info >= (3, 12)


def create_task(
    coro: Coroutine[None, None, _T],
    *,
    loop: asyncio.AbstractEventLoop | None = None,
    name: str | None = None,
    eager_start: bool = True,
) -> asyncio.Task[_T]:
    """Create an asyncio task with eager_start=True by default.

    Eager tasks run up to their first suspension point right away, so a
    request dispatched from a key handler is on the wire before the
    handler returns (when supported by the Python version).

    Args:
        coro: The coroutine to run as a task.
        loop: Optional event loop to use. If None, uses the running loop.
        name: Optional name for the task (for debugging).
        eager_start: Whether to start the task eagerly (default: True).
                     Only used if Python version supports it.

    Returns:
        The created asyncio Task.
    """
    if loop is None:
        loop = asyncio.get_running_loop()

    if _SUPPORTS_EAGER_START and eager_start:
        return asyncio.Task(coro, loop=loop, name=name, eager_start=True)

    return loop.create_task(coro, name=name)


def format_duration(ms: int | None) -> str:
    """Format milliseconds as M:SS."""
    if ms is None:
        return "-:--"
    seconds = max(0, ms) // 1000
    return f"{seconds // 60}:{seconds % 60:02d}"


def format_clock(ms: int | None) -> str:
    """Format milliseconds as MM:SS for the progress bar."""
    if ms is None:
        return "--:--"
    seconds = max(0, ms) // 1000
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def build_track_query(query: str, artist: str | None = None) -> str:
    """Combine a query with an optional artist filter."""
    if artist:
        return f"{query} artist:{artist}"
    return query
