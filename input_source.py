# input_source.py
"""
Key + tick event source for the dashboard.

Merges terminal keypresses and a fixed-rate Tick into the dashboard's event
channel. Ticks are scheduled against a monotonic deadline that keypresses do
not reset, so a held-down key cannot starve the tick.
"""
from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Callable, List, Optional, Protocol

from app_state import Event, InputError, InputFailed, Key, Tick

logger = logging.getLogger(__name__)

DEFAULT_TICK_RATE = 0.2  # seconds
READ_CHUNK = 64


class KeyReader(Protocol):
    async def read(self, timeout: float) -> Optional[str]: ...


# --------------------
# Terminal reader
# --------------------

class TerminalKeyReader:
    """Reads raw key bytes from a tty file descriptor without blocking the event loop."""

    def __init__(self, fd: int):
        self.fd = fd

    async def read(self, timeout: float) -> Optional[str]:
        loop = asyncio.get_running_loop()
        ready = loop.create_future()

        def _on_ready():
            if not ready.done():
                ready.set_result(None)

        loop.add_reader(self.fd, _on_ready)
        try:
            await asyncio.wait_for(ready, timeout=max(0.0, timeout))
        except asyncio.TimeoutError:
            return None
        finally:
            loop.remove_reader(self.fd)

        try:
            data = os.read(self.fd, READ_CHUNK)
        except OSError as e:
            raise InputError(f"cannot read terminal input: {e}") from e
        if not data:
            raise InputError("terminal input closed")
        return data.decode("utf-8", errors="replace")


def split_keys(raw: str) -> List[str]:
    """Split a burst of input into key codes; escape sequences stay whole."""
    keys: List[str] = []
    i = 0
    while i < len(raw):
        ch = raw[i]
        if ch == "\x1b" and i + 2 < len(raw) and raw[i + 1] in "[O":
            keys.append(raw[i:i + 3])
            i += 3
            continue
        keys.append(ch)
        i += 1
    return keys


# --------------------
# Event source
# --------------------

class InputSource:
    def __init__(
        self,
        reader: KeyReader,
        channel: "asyncio.Queue[Event]",
        tick_rate: float = DEFAULT_TICK_RATE,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.reader = reader
        self.channel = channel
        self.tick_rate = tick_rate
        self.clock = clock

    async def run(self) -> None:
        """Emit Key/Tick events until cancelled; a read failure is forwarded as InputFailed."""
        try:
            await self._pump()
        except Exception as e:
            logger.error("input source stopped: %s", e)
            await self.channel.put(InputFailed(e))

    async def _pump(self) -> None:
        last_tick = self.clock()
        while True:
            timeout = max(0.0, self.tick_rate - (self.clock() - last_tick))
            raw = await self.reader.read(timeout)
            if raw:
                for code in split_keys(raw):
                    await self.channel.put(Key(code))

            if self.clock() - last_tick >= self.tick_rate:
                await self.channel.put(Tick())
                last_tick = self.clock()
