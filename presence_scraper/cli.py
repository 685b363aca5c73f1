# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
CLI Interface for the Social Presence Scraper

Runs one scrape and prints the result as JSON on stdout. Logs go to stderr
so the output can be piped.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

import yaml

from .core.config import SettingsFile, load_config, write_config_template
from .engine import ScraperEngine

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stderr)],
    )


async def run_scrape(args: argparse.Namespace, settings: SettingsFile) -> int:
    """Run a single scrape, returning the process exit code."""
    engine = ScraperEngine(settings)
    platform = None if args.platform == "auto" else args.platform

    try:
        result = await engine.run(
            platform,
            args.identifier,
            max_posts=args.max_posts,
            include_comments=args.include_comments or None,
        )
    except ValueError as e:
        logger.error(str(e))
        return 2
    finally:
        await engine.close()

    json.dump(result.to_dict(), sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")

    for warning in result.warnings:
        logger.info(f"Warning: {warning}")
    if not result.success:
        logger.error(f"Scrape failed: {result.error}")
        return 1
    return 0


def create_config(args: argparse.Namespace) -> int:
    try:
        path = write_config_template(args.path)
    except FileExistsError as e:
        logger.error(str(e))
        return 1
    print(f"Configuration template created: {path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="presence-scraper",
        description="Social Presence Scraper - Facebook page and Instagram profile extraction"
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (defaults to the config file's log_level)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    scrape_parser = subparsers.add_parser("scrape", parents=[common],
                                          help="Scrape one page or profile")
    scrape_parser.add_argument("platform", choices=["facebook", "instagram", "auto"],
                               help="Platform, or 'auto' to detect it from a URL")
    scrape_parser.add_argument("identifier", help="Page handle, numeric ID, username or URL")
    scrape_parser.add_argument("--max-posts", "-n", type=int, default=None,
                               help="Maximum number of posts to return")
    scrape_parser.add_argument("--include-comments", action="store_true",
                               help="Fetch comments where the platform supports it")
    scrape_parser.add_argument("--config", "-c", help="YAML configuration file path")

    config_parser = subparsers.add_parser("init-config", parents=[common],
                                          help="Create configuration template")
    config_parser.add_argument("path", help="Output file path")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "scrape":
        if args.max_posts is not None and args.max_posts < 1:
            parser.error("--max-posts must be at least 1")
        try:
            settings = load_config(args.config)
        except (OSError, ValueError, yaml.YAMLError) as e:
            parser.error(f"Cannot load config: {e}")
        setup_logging(args.log_level or settings.log_level)
        sys.exit(asyncio.run(run_scrape(args, settings)))
    elif args.command == "init-config":
        setup_logging(args.log_level or "INFO")
        sys.exit(create_config(args))
    else:
        parser.print_help()
        sys.exit(2)


if __name__ == "__main__":
    main()
