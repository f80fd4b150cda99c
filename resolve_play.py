#!/usr/bin/env python3

"""Recording Resolver command line entry point.

Resolves one play given on the command line, or every play in a JSON file,
against the configured MusicBrainz hosts and prints the enriched plays as JSON.

Usage:
    python resolve_play.py --artist "Artist" --title "Track" [--album "Album"]
    python resolve_play.py --plays plays.json [--stage '{"score": 95}']
"""

import argparse
import asyncio
import json
import os
import sys
import time

from typing import Any

from rich.console import Console

from services.dependencies_service import DependencyContainer
from utils.config import load_config
from utils.errors import ConfigError
from utils.logger import get_loggers
from utils.models import Play

SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
CONFIG_PATH = os.path.join(SCRIPT_DIR, "my-config.yaml")


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments using argparse."""
    parser = argparse.ArgumentParser(description="Resolve plays against MusicBrainz recordings")
    parser.add_argument("--config", default=CONFIG_PATH, help="Path to the YAML configuration.")
    parser.add_argument("--plays", help="JSON file with a list of plays.")
    parser.add_argument("--artist", action="append", default=[], help="Artist name (repeatable).")
    parser.add_argument("--title", help="Track title.")
    parser.add_argument("--album", help="Album title.")
    parser.add_argument("--isrc", help="ISRC code.")
    parser.add_argument("--duration", type=float, help="Duration in seconds.")
    parser.add_argument("--stage", help="Stage options as a JSON object, merged over the configured defaults.")
    parser.add_argument(
        "--fail-on-fetch",
        action="store_true",
        help="Exit with an error when the search hosts fail instead of keeping the play unchanged.",
    )
    return parser.parse_args(argv)


def load_plays(args: argparse.Namespace) -> list[Play]:
    if args.plays:
        with open(args.plays, encoding="utf-8") as f:
            data = json.load(f)
        items = data if isinstance(data, list) else [data]
        return [Play.from_dict(item) for item in items]
    return [
        Play.from_dict(
            {
                "track": args.title,
                "artists": args.artist,
                "album": args.album,
                "isrc": args.isrc,
                "duration": args.duration,
            }
        )
    ]


async def main_async(
    deps: DependencyContainer,
    plays: list[Play],
    stage_data: dict[str, Any] | None,
    fail_on_fetch: bool = False,
) -> list[dict[str, Any]]:
    try:
        await deps.initialize()
        results = []
        for play in plays:
            enriched = await deps.resolver.enrich(play, stage_data, fail_on_fetch=fail_on_fetch)
            results.append(enriched.to_dict())
        return results
    finally:
        await deps.close()


def main(argv: list[str] | None = None) -> None:
    start_all = time.time()
    args = parse_arguments(argv)

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ConfigError) as e:
        print(f"FATAL ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    console_logger, error_logger, listener = get_loggers(config)
    deps = None
    try:
        plays = load_plays(args)
        stage_data = json.loads(args.stage) if args.stage else None
        deps = DependencyContainer(config, console_logger, error_logger, listener)
        results = asyncio.run(main_async(deps, plays, stage_data, args.fail_on_fetch))
    except KeyboardInterrupt:
        console_logger.info("Interrupted by user.")
        sys.exit(130)
    except Exception as e:
        error_logger.critical(f"A critical error occurred: {e}", exc_info=True)
        console_logger.error(f"A critical error occurred: {e}")
        # the container stops the listener once it has been created
        if deps is None and listener is not None:
            listener.stop()
        sys.exit(1)

    Console().print_json(json.dumps(results, ensure_ascii=False))
    console_logger.info(f"Total execution time: {time.time() - start_all:.2f} seconds")


if __name__ == "__main__":
    main()
