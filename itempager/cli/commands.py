"""Command implementations for the CLI interface."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import dataclass
from typing import Any, Callable

from itempager.client.api import ItemsApiClient
from itempager.core.model import page_to_dict, state_to_dict
from itempager.settings import AppSettings


@dataclass
class Command:
    """Describe a CLI command and its argument handler."""

    func: Callable[[argparse.Namespace], None]
    help: str
    add_arguments: Callable[[argparse.ArgumentParser], None]


def _settings(args: argparse.Namespace) -> AppSettings:
    return getattr(args, "app_settings", None) or AppSettings()


def _client(args: argparse.Namespace) -> ItemsApiClient:
    settings = _settings(args).client
    base_url = getattr(args, "base_url", None)
    if base_url:
        settings = settings.model_copy(update={"base_url": base_url.rstrip("/")})
    return ItemsApiClient(settings)


def _write_json(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, ensure_ascii=False, indent=2) + "\n")


def cmd_serve(args: argparse.Namespace) -> None:
    """Run the HTTP server in the foreground."""
    from itempager.server.app import serve

    server = _settings(args).server
    updates: dict[str, Any] = {}
    if args.host:
        updates["host"] = args.host
    if args.port is not None:
        updates["port"] = args.port
    if args.size is not None:
        updates["collection_size"] = args.size
    if updates:
        server = server.model_copy(update=updates)
    serve(server)


def add_serve_arguments(p: argparse.ArgumentParser) -> None:
    """Configure parser for the ``serve`` command."""
    p.add_argument("--host", help="interface to bind")
    p.add_argument("--port", type=int, help="TCP port to listen on")
    p.add_argument("--size", type=int, help="number of items in the collection")


def cmd_items(args: argparse.Namespace) -> None:
    """Print one page of items as JSON."""
    result = _client(args).get_items(args.page, args.limit, args.search)
    _write_json(page_to_dict(result))


def add_items_arguments(p: argparse.ArgumentParser) -> None:
    """Configure parser for the ``items`` command."""
    p.add_argument("--page", type=int, default=1, help="1-based page number")
    p.add_argument("--limit", type=int, help="page size")
    p.add_argument("--search", default="", help="substring the item value must contain")


def cmd_state(args: argparse.Namespace) -> None:
    """Print the current order override and selection."""
    _write_json(state_to_dict(_client(args).get_state()))


def add_state_arguments(p: argparse.ArgumentParser) -> None:
    """The ``state`` command takes no arguments."""


def cmd_set_order(args: argparse.Namespace) -> None:
    """Replace the order override with ``ids``."""
    version = _client(args).save_order(args.ids, version=args.expect_version)
    _write_json({"version": version})


def cmd_select(args: argparse.Namespace) -> None:
    """Replace the server selection with ``ids``."""
    version = _client(args).save_selected(args.ids, version=args.expect_version)
    _write_json({"version": version})


def add_ids_arguments(p: argparse.ArgumentParser) -> None:
    """Configure parser for commands writing an id list."""
    p.add_argument("ids", nargs="*", type=int, help="item ids")
    p.add_argument(
        "--expect-version",
        type=int,
        help="reject the write unless the server state is at this version",
    )


def cmd_check(args: argparse.Namespace) -> None:
    """Probe the server health endpoint."""
    ready = _client(args).check_ready()
    _write_json({"ready": ready})
    if not ready:
        raise SystemExit(1)


def add_check_arguments(p: argparse.ArgumentParser) -> None:
    """The ``check`` command takes no arguments."""


COMMANDS: dict[str, Command] = {
    "serve": Command(cmd_serve, "run the HTTP server", add_serve_arguments),
    "items": Command(cmd_items, "print one page of items", add_items_arguments),
    "state": Command(cmd_state, "print order override and selection", add_state_arguments),
    "set-order": Command(cmd_set_order, "replace the order override", add_ids_arguments),
    "select": Command(cmd_select, "replace the selection", add_ids_arguments),
    "check": Command(cmd_check, "check that the server is reachable", add_check_arguments),
}
