"""Tests for token persistence."""

import asyncio
import os
import stat
from datetime import UTC, datetime, timedelta

from spotty.settings import TOKEN_FILE_NAME, TokenInfo, TokenStore, get_token_store


def sample_token(**overrides):
    values = {
        "access_token": "access",
        "refresh_token": "refresh",
        "expiry": datetime(2030, 1, 1, tzinfo=UTC),
    }
    values.update(overrides)
    return TokenInfo(**values)


class TestTokenInfo:
    """Validity and (de)serialization."""

    def test_is_valid_until_margin(self):
        now = datetime(2030, 1, 1, tzinfo=UTC)
        assert sample_token(expiry=now + timedelta(minutes=5)).is_valid(now)
        assert not sample_token(expiry=now + timedelta(seconds=10)).is_valid(now)
        assert not sample_token(expiry=None).is_valid(now)
        assert not sample_token(access_token="").is_valid(now)

    def test_dict_round_trip(self):
        token = sample_token()
        assert TokenInfo.from_dict(token.to_dict()) == token

    def test_from_response_keeps_refresh_token(self):
        """Refresh responses without a new refresh token keep the old one."""
        token = TokenInfo.from_response(
            {"access_token": "new", "expires_in": 3600}, previous_refresh_token="old"
        )
        assert token.access_token == "new"
        assert token.refresh_token == "old"
        assert token.is_valid()

    def test_from_response_rotated_refresh_token(self):
        token = TokenInfo.from_response(
            {"access_token": "new", "refresh_token": "rotated", "expires_in": 60},
            previous_refresh_token="old",
        )
        assert token.refresh_token == "rotated"


class TestTokenStore:
    """Reading and writing the token file."""

    def test_save_and_load(self, tmp_path):
        store = get_token_store(tmp_path / "cfg")
        assert store.path == tmp_path / "cfg" / TOKEN_FILE_NAME

        async def scenario():
            await store.save(sample_token())
            return await store.load()

        assert asyncio.run(scenario()) == sample_token()

    def test_file_is_owner_only(self, tmp_path):
        store = TokenStore(tmp_path / TOKEN_FILE_NAME)
        asyncio.run(store.save(sample_token()))
        mode = stat.S_IMODE(os.stat(store.path).st_mode)
        assert mode == 0o600
        assert not list(tmp_path.glob("*.tmp"))

    def test_missing_file(self, tmp_path):
        store = TokenStore(tmp_path / TOKEN_FILE_NAME)
        assert asyncio.run(store.load()) is None

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / TOKEN_FILE_NAME
        path.write_text("{not json")
        assert asyncio.run(TokenStore(path).load()) is None

    def test_overwrite_replaces_token(self, tmp_path):
        store = TokenStore(tmp_path / TOKEN_FILE_NAME)

        async def scenario():
            await store.save(sample_token())
            await store.save(sample_token(access_token="second"))
            return await store.load()

        assert asyncio.run(scenario()).access_token == "second"
