"""Graphical entry point for ItemPager."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

import wx

from itempager.client.api import ItemsApiClient
from itempager.client.local_state import LocalStateStore
from itempager.client.model import ItemListModel
from itempager.log import configure_logging, install_exception_hooks, logger
from itempager.server.app import start_server, stop_server
from itempager.settings import AppSettings, load_app_settings
from itempager.ui.list_panel import ItemListFrame

APP_NAME = "ItemPager"


class ItemPagerApp(wx.App):
    """Custom wx.App that logs unhandled GUI exceptions."""

    def OnExceptionInMainLoop(self) -> None:  # pragma: no cover - GUI path
        exc_info = sys.exc_info()
        try:
            logger.exception("Unhandled exception in GUI main loop", exc_info=exc_info)
        finally:
            super().OnExceptionInMainLoop()


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="itempager-gui")
    parser.add_argument("--settings", help="path to settings file (TOML or JSON)")
    parser.add_argument(
        "--embedded-server",
        action="store_true",
        help="start the HTTP server in-process before opening the window",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    """Run wx application with the item list frame."""
    args = _parse_args(argv)
    settings = load_app_settings(args.settings) if args.settings else AppSettings()
    configure_logging(log_dir=settings.server.log_dir)
    install_exception_hooks()
    if args.embedded_server:
        start_server(settings.server)
    app = ItemPagerApp()
    api = ItemsApiClient(settings.client)
    model = ItemListModel(
        api,
        settings.client,
        local_state=LocalStateStore(settings.client.state_path),
    )
    frame = ItemListFrame(None, model)
    frame.Show()
    try:
        app.MainLoop()
    finally:
        if args.embedded_server:
            stop_server()


if __name__ == "__main__":  # pragma: no cover
    main()
