"""
punlock CLI — entry point.

Usage:
    punlock                          # materialize secrets from the default config
    punlock --config ./config.toml   # explicit configuration file
    punlock --backend api            # use the vault HTTP API instead of `bw`
    punlock --no-volatile            # plain directory instead of tmpfs
    punlock --version
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from punlock.config import Backend, RuntimeContext


def _configure_logging(verbose: bool) -> None:
    level_name = "DEBUG" if verbose else os.environ.get("PUNLOCK_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # httpx logs every request URL at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="punlock",
        description="punlock — PasswordUNLOCKer: materialize vault secrets onto volatile storage.",
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit")
    parser.add_argument("-c", "--config", type=Path, help="Configuration file (TOML)")
    parser.add_argument(
        "--backend",
        choices=[b.value for b in Backend],
        help="Vault backend: 'cli' shells out to bw, 'api' uses the HTTP API "
        "(default: $PUNLOCK_BACKEND or cli)",
    )
    parser.add_argument(
        "--no-volatile",
        action="store_true",
        help="Write secrets to a plain directory instead of mounting tmpfs",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)

    if args.version:
        from punlock import __version__

        print(f"punlock {__version__}")
        return 0

    _configure_logging(args.verbose)

    try:
        ctx = RuntimeContext.from_env()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    overrides: dict[str, object] = {}
    if args.backend:
        overrides["backend"] = Backend(args.backend)
    if args.no_volatile:
        overrides["volatile"] = False
    if overrides:
        ctx = ctx.with_overrides(**overrides)

    from punlock.app import run

    try:
        return asyncio.run(run(ctx, config_path=args.config))
    except KeyboardInterrupt:
        print(file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
