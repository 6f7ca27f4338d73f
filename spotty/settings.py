"""Token persistence for the spotty CLI.

The OAuth token record is kept in a JSON file readable only by the
current user. Writes go through a temporary file and a rename so a crash
mid-write never leaves a truncated token behind.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

TOKEN_FILE_NAME = "token.json"

# Owner read/write only
TOKEN_FILE_MODE = 0o600

# Treat tokens this close to expiry as already expired
EXPIRY_MARGIN = timedelta(seconds=30)


@dataclass
class TokenInfo:
    """An OAuth token as issued by the Spotify accounts service."""

    access_token: str = ""
    refresh_token: str = ""
    token_type: str = "Bearer"
    expiry: datetime | None = None

    def is_valid(self, now: datetime | None = None) -> bool:
        """Check whether the access token can still be used."""
        if not self.access_token or self.expiry is None:
            return False
        now = now or datetime.now(UTC)
        return now + EXPIRY_MARGIN < self.expiry

    def to_dict(self) -> dict[str, Any]:
        """Convert the token to a dictionary for serialization."""
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expiry": self.expiry.isoformat() if self.expiry else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenInfo:
        """Create a token from a dictionary."""
        expiry = data.get("expiry")
        return cls(
            access_token=data.get("access_token", ""),
            refresh_token=data.get("refresh_token", ""),
            token_type=data.get("token_type", "Bearer"),
            expiry=datetime.fromisoformat(expiry) if expiry else None,
        )

    @classmethod
    def from_response(
        cls, data: dict[str, Any], previous_refresh_token: str = ""
    ) -> TokenInfo:
        """Create a token from a token-endpoint response."""
        expires_in = int(data.get("expires_in", 3600))
        return cls(
            access_token=data["access_token"],
            # Refresh responses only include a refresh token when it rotates
            refresh_token=data.get("refresh_token") or previous_refresh_token,
            token_type=data.get("token_type", "Bearer"),
            expiry=datetime.now(UTC) + timedelta(seconds=expires_in),
        )


class TokenStore:
    """Loads and saves the token record."""

    def __init__(self, token_file: Path) -> None:
        """Initialize the token store.

        Args:
            token_file: Path to the token file.
        """
        self._token_file = token_file

    @property
    def path(self) -> Path:
        return self._token_file

    async def load(self) -> TokenInfo | None:
        """Load the token from disk, or None if there is none."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._load)

    async def save(self, token: TokenInfo) -> None:
        """Save the token to disk."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._save, token)

    def _load(self) -> TokenInfo | None:
        """Load the token file (blocking I/O)."""
        if not self._token_file.exists():
            logger.debug("Token file does not exist: %s", self._token_file)
            return None

        try:
            data = json.loads(self._token_file.read_text())
            token = TokenInfo.from_dict(data)
        except (json.JSONDecodeError, OSError, ValueError, AttributeError) as e:
            logger.warning("Failed to load token from %s: %s", self._token_file, e)
            return None
        logger.debug("Loaded token from %s (expires %s)", self._token_file, token.expiry)
        return token

    def _save(self, token: TokenInfo) -> None:
        """Write the token file atomically with owner-only permissions (blocking I/O)."""
        directory = self._token_file.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(token.to_dict(), f, indent=2)
                f.write("\n")
            os.chmod(tmp, TOKEN_FILE_MODE)
            os.replace(tmp, self._token_file)
        except OSError:
            with contextlib.suppress(OSError):
                os.unlink(tmp)
            raise
        logger.info("Token saved to %s", self._token_file)


def default_config_dir() -> Path:
    """Directory holding spotty's state, ~/.config/spotty."""
    return Path.home() / ".config" / "spotty"


def get_token_store(config_dir: Path | str | None = None) -> TokenStore:
    """Create the token store for a config directory.

    This should only be called once at startup. Pass the returned instance
    to components that need it.

    Args:
        config_dir: Optional directory to store the token. Defaults to ~/.config/spotty.
    """
    if config_dir is None:
        config_dir = default_config_dir()
    elif isinstance(config_dir, str):
        config_dir = Path(config_dir)
    return TokenStore(config_dir / TOKEN_FILE_NAME)
