# tui.py
"""
Nebulous TUI — two-pane terminal browser for DynamoDB tables.

Left pane lists the tables in the account/endpoint, right pane shows up to
200 scanned items of the selected table. Drawing is a pure function of the
state machine's View snapshot; all state lives in app_state.DashboardState.

Keys:
  q      quit (Ctrl-C also works)
  j / k  move down / up in the active pane
  Enter  load the highlighted table
  Tab    switch panes

Requirements:
  rich
  boto3
"""
from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import os
import sys
import termios
import threading
import tty
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from rich import box
from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table as RichTable
from rich.text import Text

from app_state import ActiveView, DashboardState, Event, NebulousError, View, run_event_loop
from dynamo import SCAN_LIMIT, DynamoClient, Fetcher
from input_source import DEFAULT_TICK_RATE, InputSource, KeyReader, TerminalKeyReader

logger = logging.getLogger(__name__)

console = Console()

CELL_WIDTH = 24
ACTIVE_BORDER = "cyan"
INACTIVE_BORDER = "dim"
FOOTER = " q quit · j/k move · Enter load table · Tab switch pane"


class TerminalError(NebulousError):
    """The terminal could not be put into (or taken out of) dashboard mode."""


@dataclass
class DashboardConfig:
    endpoint: Optional[str] = None
    region: Optional[str] = None
    tick_rate: float = DEFAULT_TICK_RATE
    scan_limit: int = SCAN_LIMIT


# --------------------
# Rendering
# --------------------

def _truncate_label(label: str, max_width: int) -> str:
    """Truncate label to fit within max_width, appending '..' when needed."""
    if len(label) <= max_width:
        return label
    if max_width <= 2:
        return label[:max_width]
    return label[: max_width - 2] + ".."


def visible_window(cursor: Optional[int], total: int, height: int) -> Tuple[int, int]:
    """Return the [start, end) slice of a list that keeps the cursor on screen."""
    height = max(1, height)
    if total <= height:
        return 0, total
    pos = cursor or 0
    start = min(max(0, pos - height // 2), total - height)
    return start, start + height


def _border(view: View, pane: ActiveView) -> str:
    return ACTIVE_BORDER if view.active is pane else INACTIVE_BORDER


def build_table_list(view: View, height: int) -> Panel:
    start, end = visible_window(view.list_cursor, len(view.table_names), height)
    lines: List[Text] = []
    for idx in range(start, end):
        name = view.table_names[idx]
        if idx == view.list_cursor:
            lines.append(Text(f"> {name}", style="bold"))
        else:
            lines.append(Text(f"  {name}"))
    body = Text("\n").join(lines)
    return Panel(body, title="Dynamo Tables", border_style=_border(view, ActiveView.TABLE_LIST))


def build_items_table(view: View, height: int) -> Panel:
    headers = view.table.headers
    rows = view.table.rows

    tbl = RichTable(box=box.SIMPLE_HEAVY, padding=(0, 1), expand=True, show_edge=False)
    tbl.add_column("", width=2, no_wrap=True)
    for h in headers:
        tbl.add_column(Text(h, style="red"), max_width=CELL_WIDTH, no_wrap=True)

    if headers:
        # header row + rule take two lines
        start, end = visible_window(view.row_cursor, len(rows), height - 2)
        for idx in range(start, end):
            row = rows[idx]
            selected = idx == view.row_cursor
            cells = [Text(">>" if selected else "")]
            for h in headers:
                value = row.get(h)
                text = "" if value is None else value.to_text()
                cells.append(Text(_truncate_label(text.replace("\n", " "), CELL_WIDTH)))
            tbl.add_row(*cells, style="bold underline" if selected else None)

    return Panel(tbl, title="Table", border_style=_border(view, ActiveView.TABLE_DATA))


def render(view: View, height: int = 24) -> Layout:
    """Map a View snapshot to a frame; no side effects."""
    # panel borders and the footer line
    pane_height = max(1, height - 3)

    layout = Layout()
    layout.split_column(Layout(name="body"), Layout(name="footer", size=1))
    layout["body"].split_row(
        Layout(build_table_list(view, pane_height), name="tables", ratio=1),
        Layout(build_items_table(view, pane_height), name="items", ratio=4),
    )
    layout["footer"].update(Text(FOOTER, style="dim"))
    return layout


# --------------------
# Terminal handling
# --------------------

class TerminalSession:
    """Puts the controlling tty into cbreak mode and always puts it back."""

    def __init__(self, stream=None):
        self.stream = stream if stream is not None else sys.stdin
        self.fd: Optional[int] = None
        self._saved = None

    def __enter__(self) -> "TerminalSession":
        try:
            self.fd = self.stream.fileno()
            if not os.isatty(self.fd):
                raise TerminalError("stdin is not a terminal")
            self._saved = termios.tcgetattr(self.fd)
            tty.setcbreak(self.fd)
        except (OSError, ValueError, termios.error) as e:
            raise TerminalError(f"cannot initialise terminal: {e}") from e
        return self

    def restore(self) -> None:
        if self._saved is None:
            return
        saved, self._saved = self._saved, None
        try:
            termios.tcsetattr(self.fd, termios.TCSADRAIN, saved)
        except termios.error as e:
            raise TerminalError(f"cannot restore terminal: {e}") from e

    def __exit__(self, exc_type, exc, tb) -> None:
        self.restore()


def install_panic_hook(restore: Callable[[], None]) -> Callable[[], None]:
    """Restore the terminal before any unhandled exception is reported.

    Covers the main thread (sys.excepthook) and fetch threads
    (threading.excepthook). Returns a function that puts the previous hooks back.
    """
    previous = sys.excepthook
    previous_thread = threading.excepthook

    def _restore():
        try:
            restore()
        except Exception as e:
            print(f"Failed to restore terminal: {e}", file=sys.stderr)

    def _hook(exc_type, exc, tb):
        _restore()
        previous(exc_type, exc, tb)

    def _thread_hook(args):
        _restore()
        previous_thread(args)

    sys.excepthook = _hook
    threading.excepthook = _thread_hook

    def uninstall() -> None:
        sys.excepthook = previous
        threading.excepthook = previous_thread

    return uninstall


# --------------------
# Main loop
# --------------------

def channel_poster(channel: "asyncio.Queue[Event]", loop: asyncio.AbstractEventLoop) -> Callable[[Event], None]:
    """Build a thread-safe post() that blocks the calling thread until the event is queued."""
    def post(event: Event) -> None:
        coro = channel.put(event)
        try:
            fut = asyncio.run_coroutine_threadsafe(coro, loop)
        except RuntimeError:
            # loop already closed; dashboard is gone
            coro.close()
            return
        try:
            fut.result()
        except concurrent.futures.CancelledError:
            logger.debug("dropped %s during shutdown", type(event).__name__)
    return post


async def run_dashboard(
    config: DashboardConfig,
    client: DynamoClient,
    reader: KeyReader,
    draw: Callable[[View], None],
) -> None:
    loop = asyncio.get_running_loop()
    channel: "asyncio.Queue[Event]" = asyncio.Queue(maxsize=1)

    fetcher = Fetcher(client, channel_poster(channel, loop), scan_limit=config.scan_limit)
    state = DashboardState(requests=fetcher)
    source = InputSource(reader, channel, tick_rate=config.tick_rate)

    input_task = asyncio.create_task(source.run())
    fetcher.refresh_table_list()
    try:
        await run_event_loop(state, channel, draw)
    finally:
        # in-flight fetches are abandoned, not joined
        fetcher.close()
        input_task.cancel()


def run_ui(config: DashboardConfig, client: Optional[DynamoClient] = None) -> None:
    if client is None:
        client = DynamoClient(config.endpoint, config.region)

    with TerminalSession() as session:
        # stays installed if the dashboard dies, so the crash report restores first
        uninstall_panic_hook = install_panic_hook(session.restore)
        with Live(console=console, screen=True, auto_refresh=False) as live:
            def draw(view: View) -> None:
                live.update(render(view, console.size.height), refresh=True)

            asyncio.run(run_dashboard(config, client, TerminalKeyReader(session.fd), draw))
        uninstall_panic_hook()
