"""Entry point for the command-line interface."""

from __future__ import annotations

import argparse
import sys

from itempager.core.errors import ItemPagerError
from itempager.log import configure_logging, logger
from itempager.settings import AppSettings, load_app_settings

from .commands import COMMANDS


def build_parser() -> argparse.ArgumentParser:
    """Construct argument parser for CLI commands."""
    parser = argparse.ArgumentParser(prog="itempager", description="ItemPager CLI")
    parser.add_argument("--settings", help="path to JSON/TOML settings")
    parser.add_argument("--base-url", help="server address used by client commands")
    sub = parser.add_subparsers(dest="command", required=True)
    for name, cmd in COMMANDS.items():
        p = sub.add_parser(name, help=cmd.help)
        cmd.add_arguments(p)
        p.set_defaults(func=cmd.func)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = AppSettings()
    if args.settings:
        settings = load_app_settings(args.settings)
    configure_logging(log_dir=settings.server.log_dir)
    args.app_settings = settings
    try:
        args.func(args)
    except ItemPagerError as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        sys.stderr.write(f"error: {exc}\n")
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
