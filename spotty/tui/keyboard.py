"""Keyboard input handling for the player screen."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import readchar

from spotty.player.controller import SEEK_STEP_MS
from spotty.player.queue import QueueError

if TYPE_CHECKING:
    from spotty.player.controller import PlaybackController
    from spotty.tui.ui import PlayerUI

logger = logging.getLogger(__name__)

# Keys that leave the player. readchar reports a lone ESC together with
# the key that follows it, so a double ESC arrives as one sequence.
QUIT_KEYS = ("q", "Q", readchar.key.ESC, readchar.key.ESC * 2, readchar.key.CTRL_C)

KeyReader = Callable[[], str]


async def keyboard_loop(
    controller: PlaybackController,
    ui: PlayerUI,
    read_key: KeyReader = readchar.readkey,
) -> None:
    """Run the keyboard input loop until the player is left.

    Args:
        controller: Player to send commands to.
        ui: UI instance, used to highlight pressed shortcuts.
        read_key: Blocking single-key reader.
    """
    # Key dispatch table: key -> (highlight_name | None, async action)
    # For keys that need case-insensitive matching, use lowercase
    shortcuts: dict[str, tuple[str | None, Callable[[], Awaitable[object]]]] = {
        " ": ("space", controller.toggle),
        "n": ("next", controller.next),
        "p": ("prev", controller.previous),
        "k": ("keep", controller.toggle_keep_playing),
        # Arrow keys
        readchar.key.LEFT: ("seek-", lambda: controller.seek(-SEEK_STEP_MS)),
        readchar.key.RIGHT: ("seek+", lambda: controller.seek(SEEK_STEP_MS)),
    }

    loop = asyncio.get_running_loop()

    while not controller.exited:
        try:
            # Run blocking readkey in executor to not block the event loop
            key = await loop.run_in_executor(None, read_key)
        except (asyncio.CancelledError, KeyboardInterrupt):
            await controller.exit()
            break

        if key in QUIT_KEYS:
            ui.highlight_shortcut("quit")
            await controller.exit()
            break

        # Handle shortcuts via dispatch table (case-insensitive for letter keys)
        action = shortcuts.get(key) or shortcuts.get(key.lower())
        if action:
            highlight_name, action_handler = action
            if highlight_name:
                ui.highlight_shortcut(highlight_name)
            try:
                await action_handler()
            except QueueError:
                logger.exception("Player queue is inconsistent, closing player")
                await controller.exit()
                break
            continue

        # Ignore unhandled escape sequences
        if key.startswith("\x1b"):
            continue
