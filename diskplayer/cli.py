"""CLI entrypoint and command dispatch."""

import argparse
import logging
import sys
from pathlib import Path

import requests
from spotipy.exceptions import SpotifyException

from .config import DEFAULT_ENV_FILE, DEFAULT_RECORD_PATH, RECORD_PATH_ENV
from .env import get_env_path, load_env_file
from .errors import DiskplayerError
from .playback import pause, play, play_path, play_uri
from .record import write_record
from .spotify_client import configure_spotipy_logging

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse global options and the chosen subcommand."""
    parser = argparse.ArgumentParser(
        prog="diskplayer",
        description="Play or pause Spotify on a designated Spotify Connect device",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=DEFAULT_ENV_FILE,
        help="Path of a KEY=VALUE file loaded into the environment (default: .env).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug output, including Spotipy's.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    play_parser = subparsers.add_parser("play", help="Start playback on the configured device.")
    source = play_parser.add_mutually_exclusive_group()
    source.add_argument("--path", type=Path, help="Record file to read the URI from.")
    source.add_argument("--uri", help="Spotify URI to play directly.")

    subparsers.add_parser("pause", help="Pause playback if the configured device is active.")

    record_parser = subparsers.add_parser("record", help="Store a Spotify URI in a record file.")
    record_parser.add_argument("uri", help="Spotify album, playlist or track URI.")
    record_parser.add_argument(
        "--path",
        type=Path,
        default=None,
        help="Record file to write (default: $DISKPLAYER_RECORD_PATH or record.txt).",
    )
    return parser.parse_args(argv)


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if verbose:
        configure_spotipy_logging(logging.DEBUG)


def run_command(args: argparse.Namespace) -> None:
    if args.command == "record":
        path = args.path or get_env_path(RECORD_PATH_ENV, DEFAULT_RECORD_PATH)
        written = write_record(args.uri, path)
        print(f"Recorded {args.uri.strip()} to {written}")
        return

    # Each operation loads settings itself, after validating its own arguments.
    if args.command == "pause":
        pause()
    elif args.uri is not None:
        play_uri(args.uri)
    elif args.path is not None:
        play_path(args.path)
    else:
        play()


def main(argv: list[str] | None = None) -> int:
    """Run one command and return the process exit code."""
    args = parse_args(argv)
    configure_logging(args.verbose)
    load_env_file(args.env_file)

    try:
        run_command(args)
    except KeyboardInterrupt:
        print("Aborted.", file=sys.stderr)
        return 130
    except (DiskplayerError, SpotifyException, requests.RequestException, OSError) as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


def run() -> None:
    sys.exit(main())
