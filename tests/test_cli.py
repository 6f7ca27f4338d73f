"""Tests for argument parsing and CLI exit codes."""

from pathlib import Path

import pytest

from spotty import cli
from spotty.app import AppConfig
from spotty.models import SearchType


@pytest.fixture
def credentials(monkeypatch):
    monkeypatch.setenv("SPOTIFY_ID", "id")
    monkeypatch.setenv("SPOTIFY_SECRET", "secret")


@pytest.fixture
def started(monkeypatch):
    """Replace the application with one that records its config."""
    configs = []

    class FakeApp:
        def __init__(self, config):
            configs.append(config)

        async def run(self):
            return 0

    monkeypatch.setattr(cli, "SpottyApp", FakeApp)
    return configs


class TestParseArgs:
    """Flag parsing."""

    def test_defaults(self):
        args = cli.parse_args([])
        assert args.type == "track"
        assert args.query == ""
        assert args.limit == 5
        assert not args.details
        assert not args.keep_playing
        assert args.user is None
        assert args.config_dir is None
        assert args.log_level == "WARNING"

    def test_short_flags(self):
        args = cli.parse_args(
            ["-t", "album", "-q", "news", "-a", "queen", "-l", "7", "-d", "-r", "-k", "-p", "--config-dir", "/tmp/x"]
        )
        assert args.type == "album"
        assert args.query == "news"
        assert args.artist == "queen"
        assert args.limit == 7
        assert args.details and args.return_to_menu and args.keep_playing and args.auto_play
        assert args.config_dir == Path("/tmp/x")


class TestValidateArgs:
    """Rejected flag combinations."""

    @pytest.mark.parametrize(
        ("argv", "message"),
        [
            (["-t", "artist", "-q", "x"], "Invalid search type: artist"),
            ([], "A search query is required"),
            (["-q", "x", "-l", "0"], "Limit must be a number between 1 and 50"),
            (["-q", "x", "-l", "51"], "Limit must be a number between 1 and 50"),
        ],
    )
    def test_errors(self, argv, message):
        assert message in cli.validate_args(cli.parse_args(argv))

    @pytest.mark.parametrize("argv", [["-u", "alice"], ["-s"], ["-i"], ["-q", "x", "-l", "50"]])
    def test_accepted(self, argv):
        assert cli.validate_args(cli.parse_args(argv)) is None


class TestMain:
    """Exit codes of the entry point."""

    def test_missing_credentials(self, monkeypatch, capsys, started):
        monkeypatch.delenv("SPOTIFY_ID", raising=False)
        monkeypatch.delenv("SPOTIFY_SECRET", raising=False)
        assert cli.main(["-q", "x"]) == 1
        err = capsys.readouterr().err
        assert "SPOTIFY_ID, SPOTIFY_SECRET not set" in err
        assert "developer.spotify.com" in err
        assert started == []

    def test_invalid_arguments(self, credentials, capsys, started):
        assert cli.main(["-t", "artist", "-q", "x"]) == 1
        assert "Error: Invalid search type: artist" in capsys.readouterr().err
        assert started == []

    def test_runs_app_with_config(self, credentials, started):
        assert cli.main(["-q", "bohemian", "-a", "queen", "-k", "-l", "3"]) == 0
        (config,) = started
        assert config.client_id == "id"
        assert config.client_secret == "secret"
        assert config.search_type is SearchType.TRACK
        assert config.query == "bohemian"
        assert config.artist == "queen"
        assert config.limit == 3
        assert config.keep_playing

    def test_stop_needs_no_query(self, credentials, started):
        assert cli.main(["-s"]) == 0
        assert started[0].stop


class TestAppConfig:
    """Derived configuration values."""

    def test_build_config_playlist(self):
        args = cli.parse_args(["-t", "playlist", "-q", "chill", "-p"])
        config = cli.build_config(args, {"SPOTIFY_ID": "a", "SPOTIFY_SECRET": "b"})
        assert config.search_type is SearchType.PLAYLIST
        request = config.search_request()
        assert request.query == "chill"
        assert request.auto_play

    @pytest.mark.parametrize(
        ("overrides", "expected"),
        [
            ({}, True),
            ({"auto_play": True}, False),
            ({"stop": True}, False),
            ({"user": "alice"}, False),
            ({"interactive": True}, True),
            ({"auto_play": True, "return_to_menu": True}, True),
        ],
    )
    def test_needs_terminal(self, overrides, expected):
        config = AppConfig(client_id="a", client_secret="b", **overrides)
        assert config.needs_terminal is expected
