#!/usr/bin/env python3
"""
Grid Keeper - Config-driven launcher.

Usage:
    python runbot.py --config configs/example_grid.yml [--env-file .env] [--once]
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

import dotenv

from keeper_bot import DEFAULT_POLL_INTERVAL, GridKeeperBot


def parse_arguments(argv=None):
    """Parse command line arguments (config-only workflow)."""
    parser = argparse.ArgumentParser(
        description="Run the grid engine keeper using a YAML configuration."
    )

    parser.add_argument(
        "--config",
        "-c",
        type=str,
        required=True,
        help="Path to the YAML grid configuration.",
    )

    parser.add_argument(
        "--env-file",
        type=str,
        default=".env",
        help="Environment file with GRID_OWNER/GRID_ACCOUNT and alert credentials (default: .env). "
             "Skipped if it does not exist.",
    )

    parser.add_argument(
        "--log-level",
        "-l",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO). Use DEBUG to see detailed logs.",
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single check/perform cycle and exit.",
    )

    parser.add_argument(
        "--poll-interval",
        type=float,
        default=DEFAULT_POLL_INTERVAL,
        help=f"Seconds between upkeep checks (default: {DEFAULT_POLL_INTERVAL}).",
    )

    return parser.parse_args(argv)


async def main(argv=None) -> int:
    """Main entry point."""
    args = parse_arguments(argv)

    # LOG_LEVEL must be set before the first logger is created
    os.environ['LOG_LEVEL'] = args.log_level

    env_path = Path(args.env_file)
    if env_path.exists():
        dotenv.load_dotenv(env_path)

    from trading_config.config_yaml import build_grid_strategy_config, load_config_from_yaml

    config_path = Path(args.config)
    try:
        loaded = load_config_from_yaml(config_path)
        if loaded["strategy"] != "grid":
            raise ValueError(f"Unsupported strategy: {loaded['strategy']}")
        strategy_config = build_grid_strategy_config(loaded["config"], loaded["venue"])
    except (OSError, ValueError) as e:
        print(f"Error: Invalid config file {config_path}: {e}")
        return 1

    print(f"\n✓ Loaded configuration from: {config_path}")
    print(f"  Strategy: {loaded['strategy']}")
    print(f"  Created: {loaded['metadata'].get('created_at') or 'unknown'}\n")

    print("=" * 70)
    print("  Starting Grid Keeper")
    print("=" * 70)
    print(f"  Venue:    {strategy_config.venue}")
    print(f"  Pair:     {strategy_config.pair}")
    print(f"  Account:  {strategy_config.account}")
    print("=" * 70 + "\n")

    bot = GridKeeperBot(
        strategy_config,
        loaded["venue"],
        poll_interval=args.poll_interval,
    )
    try:
        await bot.run(once=args.once)
    except Exception as e:
        print(f"Keeper execution failed: {e}")
        return 1
    return 0


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
