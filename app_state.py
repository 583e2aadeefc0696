# app_state.py
"""
Dashboard state machine.

Every producer (key polling, tick timer, table fetches) sends immutable events
into a single asyncio.Queue(maxsize=1). run_event_loop() is the only consumer
and DashboardState.apply() is the only code that mutates dashboard state, so
no locking is needed anywhere.

Keys:
  q        quit
  j / k    move down / up in the active pane
  Enter    load the highlighted table
  Tab      switch between the table list and the table data pane
"""
from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol, Tuple, Union

from item_values import Table

logger = logging.getLogger(__name__)

# Down-wrap target for the row cursor. The list cursor wraps to 0; the row
# cursor has always wrapped to 1 and is kept that way until decided otherwise.
ROW_WRAP_INDEX = 1


class NebulousError(Exception):
    pass


class InputError(NebulousError):
    """Terminal input can no longer be read."""


# --------------------
# Events
# --------------------

@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class Key:
    code: str


@dataclass(frozen=True)
class InputFailed:
    error: BaseException


@dataclass(frozen=True)
class TableListLoaded:
    names: Tuple[str, ...]


@dataclass(frozen=True)
class TableLoaded:
    table: Table


Event = Union[Tick, Key, InputFailed, TableListLoaded, TableLoaded]


class Action(enum.Enum):
    QUIT = "quit"
    DOWN = "down"
    UP = "up"
    SELECT = "select"
    TOGGLE = "toggle"


KEYMAP = {
    "q": Action.QUIT,
    "\x03": Action.QUIT,  # ctrl-c when it arrives as a character
    "j": Action.DOWN,
    "\x1b[B": Action.DOWN,
    "k": Action.UP,
    "\x1b[A": Action.UP,
    "\r": Action.SELECT,
    "\n": Action.SELECT,
    "\t": Action.TOGGLE,
}


class ActiveView(enum.Enum):
    NONE = "none"
    TABLE_LIST = "table_list"
    TABLE_DATA = "table_data"


class TableRequests(Protocol):
    def load_table(self, name: str) -> None: ...


# --------------------
# Cursor helpers
# --------------------

def cursor_down(cursor: Optional[int], length: int, wrap_to: int = 0) -> Optional[int]:
    if cursor is None or length == 0:
        return cursor
    if cursor >= length - 1:
        return min(wrap_to, length - 1)
    return cursor + 1


def cursor_up(cursor: Optional[int], length: int) -> Optional[int]:
    if cursor is None or length == 0:
        return cursor
    if cursor == 0 or cursor >= length:
        return length - 1
    return cursor - 1


def _in_range(cursor: Optional[int], length: int) -> Optional[int]:
    if cursor is None or not 0 <= cursor < length:
        return None
    return cursor


# --------------------
# State
# --------------------

@dataclass(frozen=True)
class View:
    """Snapshot handed to the renderer."""
    active: ActiveView
    table_names: Tuple[str, ...]
    list_cursor: Optional[int]
    table: Table
    row_cursor: Optional[int]


@dataclass
class DashboardState:
    requests: Optional[TableRequests] = field(default=None, compare=False, repr=False)
    active: ActiveView = ActiveView.TABLE_LIST
    table_names: Tuple[str, ...] = ()
    list_cursor: Optional[int] = 0
    table: Table = field(default_factory=Table)
    row_cursor: Optional[int] = None

    def apply(self, event: Event) -> bool:
        """Apply one event. Returns False once the dashboard should quit."""
        if isinstance(event, Tick):
            return True
        if isinstance(event, Key):
            return self.handle_key(event.code)
        if isinstance(event, TableListLoaded):
            self.load_tables(event.names)
            return True
        if isinstance(event, TableLoaded):
            self.select_table(event.table)
            return True
        if isinstance(event, InputFailed):
            raise InputError(f"terminal input failed: {event.error}") from event.error
        logger.warning("ignoring unknown event %r", event)
        return True

    def handle_key(self, code: str) -> bool:
        action = KEYMAP.get(code)
        if action is Action.QUIT:
            return False
        if action is Action.DOWN:
            self.move_down()
        elif action is Action.UP:
            self.move_up()
        elif action is Action.SELECT:
            self.table_selected()
        elif action is Action.TOGGLE:
            self.toggle_active_pane()
        return True

    def load_tables(self, names) -> None:
        # cursor is left alone; an out-of-range cursor is fixed on the next move
        self.table_names = tuple(names)

    def select_table(self, table: Table) -> None:
        self.table = table

    def move_down(self) -> None:
        if self.active is ActiveView.TABLE_LIST:
            self.list_cursor = cursor_down(self.list_cursor, len(self.table_names))
        elif self.active is ActiveView.TABLE_DATA:
            self.row_cursor = cursor_down(self.row_cursor, len(self.table.rows), ROW_WRAP_INDEX)

    def move_up(self) -> None:
        if self.active is ActiveView.TABLE_LIST:
            self.list_cursor = cursor_up(self.list_cursor, len(self.table_names))
        elif self.active is ActiveView.TABLE_DATA:
            self.row_cursor = cursor_up(self.row_cursor, len(self.table.rows))

    def table_selected(self) -> None:
        if self.active is not ActiveView.TABLE_LIST:
            return
        idx = _in_range(self.list_cursor, len(self.table_names))
        if idx is None:
            return
        if self.requests is not None:
            self.requests.load_table(self.table_names[idx])

    def toggle_active_pane(self) -> None:
        if self.active is ActiveView.TABLE_LIST:
            self.active = ActiveView.TABLE_DATA
            if self.row_cursor is None:
                self.row_cursor = 0
        else:
            self.active = ActiveView.TABLE_LIST

    def view(self) -> View:
        return View(
            active=self.active,
            table_names=self.table_names,
            list_cursor=_in_range(self.list_cursor, len(self.table_names)),
            table=self.table,
            row_cursor=_in_range(self.row_cursor, len(self.table.rows)),
        )


# --------------------
# Main loop
# --------------------

async def run_event_loop(
    state: DashboardState,
    channel: "asyncio.Queue[Event]",
    draw: Callable[[View], None],
) -> None:
    """Draw, wait for the next event, apply it; until a quit key arrives."""
    while True:
        draw(state.view())
        event = await channel.get()
        if not state.apply(event):
            logger.debug("quit requested")
            return
