"""Pytest configuration for the ItemPager test suite."""

from __future__ import annotations

import contextlib
import socket
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from types import MethodType, ModuleType
from typing import TYPE_CHECKING

import pytest

from itempager.log import LOG_DIR_ENV

if TYPE_CHECKING:  # pragma: no cover - typing hints for wx fixtures
    import wx


@pytest.fixture(autouse=True, scope="session")
def _isolated_log_dir(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """Keep log files produced by tests out of the user's home directory."""

    log_dir = tmp_path_factory.mktemp("itempager-logs")
    with pytest.MonkeyPatch.context() as mp:
        mp.setenv(LOG_DIR_ENV, str(log_dir))
        yield log_dir


def _normalise_marker_name(name: str) -> str:
    return name.replace("-", "_")


def _normalise_prefix(value: str) -> str:
    value = value.replace("\\", "/").strip()
    return value.rstrip("/")


def _path_matches_prefixes(path: str, prefixes: Sequence[str]) -> bool:
    return any(path == prefix or path.startswith(f"{prefix}/") for prefix in prefixes)


_SUITE_STASH_KEY = object()
DEFAULT_SUITE = "core"


@dataclass(frozen=True)
class SuiteDefinition:
    """Describe how a logical test suite should filter collected tests."""

    name: str
    include_any: Sequence[str] = ()
    exclude_any: Sequence[str] = ()
    include_by_default: bool = True
    include_paths: Sequence[str] = ()
    exclude_paths: Sequence[str] = ()
    description: str = ""
    runtime_hint: str = ""

    def should_run(self, item: pytest.Item) -> bool:
        markers = {_normalise_marker_name(marker.name) for marker in item.iter_markers()}
        include = {_normalise_marker_name(name) for name in self.include_any}
        exclude = {_normalise_marker_name(name) for name in self.exclude_any}
        include_paths = tuple(_normalise_prefix(path) for path in self.include_paths)
        exclude_paths = tuple(_normalise_prefix(path) for path in self.exclude_paths)
        path = item.nodeid.split("::", 1)[0].replace("\\", "/")

        if include and markers & include:
            return True
        if include_paths and _path_matches_prefixes(path, include_paths):
            return True

        if not self.include_by_default:
            return False

        return not (
            markers & exclude
            or (exclude_paths and _path_matches_prefixes(path, exclude_paths))
        )


SUITES: Mapping[str, SuiteDefinition] = {
    "core": SuiteDefinition(
        name="core",
        exclude_any=("gui", "gui_smoke", "slow"),
        exclude_paths=("tests/gui",),
        description="Default fast checks (unit tests and in-process HTTP tests)",
        runtime_hint="~20 s",
    ),
    "service": SuiteDefinition(
        name="service",
        exclude_any=("gui", "gui_smoke"),
        exclude_paths=("tests/gui",),
        description="Core suite plus real uvicorn server and CLI flows",
        runtime_hint="~1 min",
    ),
    "gui": SuiteDefinition(
        name="gui",
        include_any=("gui", "gui_smoke"),
        include_by_default=False,
        include_paths=("tests/gui",),
        description="wxPython list panel checks (needs wxPython and Xvfb)",
        runtime_hint="~20 s",
    ),
}


def _format_suite_table() -> str:
    headers = ("Suite", "Runtime", "Description")
    rows = [
        (suite.name, suite.runtime_hint or "n/a", suite.description or "")
        for suite in SUITES.values()
    ]
    widths = [
        max(len(str(value)) for value in column)
        for column in zip(headers, *rows, strict=True)
    ]
    fmt = "  ".join(f"{{:<{width}}}" for width in widths)
    lines = [fmt.format(*headers), fmt.format(*("-" * width for width in widths))]
    lines.extend(fmt.format(*row) for row in rows)
    return "\n".join(lines)


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--suite",
        action="store",
        choices=sorted(SUITES),
        default=DEFAULT_SUITE,
        help="Select the logical test suite to run",
    )
    parser.addoption(
        "--list-suites",
        action="store_true",
        help="List available ItemPager suites and exit",
    )


def pytest_configure(config: pytest.Config) -> None:
    if config.getoption("--list-suites"):
        print(_format_suite_table())
        pytest.exit("suite listing requested", returncode=0)
    suite_name = config.getoption("--suite")
    config.stash[_SUITE_STASH_KEY] = SUITES[suite_name]
    config.pluginmanager.register(_SuiteReporter(suite_name), name="itempager-suite-reporter")


class _SuiteReporter:
    def __init__(self, suite_name: str) -> None:
        self._suite_name = suite_name

    def pytest_report_header(self, config: pytest.Config) -> list[str]:  # pragma: no cover - UI detail
        return [f"ItemPager test suite: {self._suite_name}"]


@pytest.hookimpl(trylast=True)
def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    suite = config.stash.get(_SUITE_STASH_KEY, None)
    if suite is None:
        return

    selected: list[pytest.Item] = []
    deselected: list[pytest.Item] = []
    for item in items:
        if suite.should_run(item):
            item.add_marker(pytest.mark.suite_selected(suite.name))
            selected.append(item)
        else:
            deselected.append(item)

    if deselected:
        config.hook.pytest_deselected(items=deselected)
        items[:] = selected


def _destroy_top_windows(wx: ModuleType) -> None:
    """Hide and destroy any lingering top-level windows."""

    for window in list(wx.GetTopLevelWindows()):
        if not window:
            continue
        with contextlib.suppress(Exception):
            window.Hide()
            window.Destroy()


def _install_safe_yield(app: wx.App) -> None:
    """Replace ``wx.App.Yield`` with a crash-resistant event pump."""

    if not hasattr(app, "HasPendingEvents") or not hasattr(app, "ProcessPendingEvents"):
        return

    def _safe_yield(self: wx.App, *args, **kwargs) -> None:
        for _ in range(5):
            had_events = False
            while self.HasPendingEvents():
                had_events = True
                self.ProcessPendingEvents()
            if not had_events:
                break

    app.Yield = MethodType(_safe_yield, app)


@pytest.fixture(scope="session")
def _wx_session_app(request: pytest.FixtureRequest, xvfb: None) -> tuple[ModuleType, wx.App]:
    """Create a shared ``wx.App`` guarded by the xvfb fixture."""

    wx = pytest.importorskip("wx")
    app = wx.App()
    _install_safe_yield(app)

    def _finalise() -> None:
        _destroy_top_windows(wx)
        with contextlib.suppress(Exception):
            app.Destroy()

    request.addfinalizer(_finalise)
    return wx, app


@pytest.fixture
def wx_app(_wx_session_app: tuple[ModuleType, wx.App]) -> wx.App:
    """Return the shared ``wx.App`` with top-level windows cleaned up around each test."""

    wx, app = _wx_session_app
    _destroy_top_windows(wx)
    yield app
    _destroy_top_windows(wx)


@pytest.fixture
def free_tcp_port() -> int:
    """Return a TCP port that was free on the loopback interface a moment ago."""

    with contextlib.closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
