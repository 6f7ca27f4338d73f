"""Command-line interface for the spotty Spotify client."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path

from spotty.app import AppConfig, SpottyApp
from spotty.auth import CREDENTIALS_HELP, missing_credentials
from spotty.models import SearchType
from spotty.tui.menu import DEFAULT_LIMIT, MAX_LIMIT


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for spotty."""
    parser = argparse.ArgumentParser(
        prog="spotty",
        description="Search Spotify and control playback from the terminal",
    )
    parser.add_argument(
        "-t",
        "--type",
        default=SearchType.TRACK.value,
        help="Type of search: track, album, or playlist",
    )
    parser.add_argument("-q", "--query", default="", help="Search query")
    parser.add_argument(
        "-a",
        "--artist",
        default="",
        help="Artist name to filter track searches",
    )
    parser.add_argument(
        "-l",
        "--limit",
        type=int,
        default=DEFAULT_LIMIT,
        help=f"Number of results to return (1-{MAX_LIMIT})",
    )
    parser.add_argument(
        "-d",
        "--details",
        action="store_true",
        help="Show detailed result columns (popularity, link, URI)",
    )
    parser.add_argument(
        "-i",
        "--interactive",
        action="store_true",
        help="Start the interactive menu",
    )
    parser.add_argument(
        "-r",
        "--return-to-menu",
        action="store_true",
        help="Return to the interactive menu after leaving results or the player",
    )
    parser.add_argument(
        "-k",
        "--keep-playing",
        action="store_true",
        help="Keep music playing after leaving the player and loop at the end of the queue",
    )
    parser.add_argument(
        "-p",
        "--auto-play",
        action="store_true",
        help="Play the first result and exit",
    )
    parser.add_argument(
        "-s",
        "--stop",
        action="store_true",
        help="Stop playback on the active device and exit",
    )
    parser.add_argument(
        "-u",
        "--user",
        default=None,
        help="Show the public profile of a Spotify user ID and exit",
    )
    parser.add_argument(
        "--config-dir",
        type=Path,
        default=None,
        help="Directory for the saved token (defaults to ~/.config/spotty)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level to use",
    )
    return parser.parse_args(argv)


def validate_args(args: argparse.Namespace) -> str | None:
    """Return an error message when the flag combination cannot run."""
    if args.user or args.stop or args.interactive:
        return None
    if args.type not in {t.value for t in SearchType}:
        return f"Invalid search type: {args.type}. Use track, album, or playlist"
    if not args.query:
        return "A search query is required (use -q/--query), or use -i for the interactive menu"
    if not 1 <= args.limit <= MAX_LIMIT:
        return f"Limit must be a number between 1 and {MAX_LIMIT}"
    return None


def build_config(
    args: argparse.Namespace, env: Mapping[str, str]
) -> AppConfig:
    """Create the app configuration from parsed flags and the environment."""
    search_type = (
        SearchType(args.type)
        if args.type in {t.value for t in SearchType}
        else SearchType.TRACK
    )
    return AppConfig(
        client_id=env.get("SPOTIFY_ID", ""),
        client_secret=env.get("SPOTIFY_SECRET", ""),
        search_type=search_type,
        query=args.query,
        artist=args.artist,
        limit=args.limit,
        details=args.details,
        interactive=args.interactive,
        return_to_menu=args.return_to_menu,
        keep_playing=args.keep_playing,
        auto_play=args.auto_play,
        stop=args.stop,
        user=args.user,
        config_dir=args.config_dir,
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI client."""
    args = parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(level=getattr(logging, args.log_level))

    missing = missing_credentials(os.environ.get("SPOTIFY_ID"), os.environ.get("SPOTIFY_SECRET"))
    if missing:
        print(  # noqa: T201
            f"Error: Spotify credentials not found ({', '.join(missing)} not set).\n\n"
            f"{CREDENTIALS_HELP}",
            file=sys.stderr,
        )
        return 1

    if error := validate_args(args):
        print(f"Error: {error}", file=sys.stderr)  # noqa: T201
        return 1

    config = build_config(args, os.environ)

    # Run the application
    app = SpottyApp(config)
    try:
        return asyncio.run(app.run())
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
