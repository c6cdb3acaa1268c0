"""
Progress — shared counter + event channel + terminal observer.

The counter is the only state every worker mutates.  Each increment
happens under a lock and publishes a ProgressEvent on a queue while
still holding it, so the observer sees values strictly in order and the
bar can never move backwards.  The observer runs on its own thread,
only reads from the channel, and can be closed at any moment.
"""

from __future__ import annotations

import sys
import queue
import logging
import threading
from dataclasses import dataclass
from typing import Optional, TextIO

logger = logging.getLogger(__name__)

_HIDE_CURSOR = "\x1b[?25l"
_SHOW_CURSOR = "\x1b[?25h"


@dataclass(frozen=True)
class ProgressEvent:
    value: int
    total: int
    path: str = ""
    category: str = ""

    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 100.0
        return min(100.0, self.value * 100.0 / self.total)


class ProgressCounter:
    """Monotonic counter bounded by `total`, safe for concurrent increments."""

    def __init__(self, total: int, channel: Optional[queue.Queue] = None):
        self.total = total
        self._value = 0
        self._lock = threading.Lock()
        self._channel = channel

    @property
    def value(self) -> int:
        return self._value

    @property
    def done(self) -> bool:
        return self._value >= self.total

    def increment(self, path: str = "", category: str = "") -> int:
        with self._lock:
            if self._value >= self.total:
                raise RuntimeError(
                    f"Progress counter overflow: {self._value + 1} > {self.total}")
            self._value += 1
            value = self._value
            if self._channel is not None:
                self._channel.put(ProgressEvent(value, self.total, path, category))
        return value


class ProgressObserver:
    """Renders ProgressEvents from a channel as a single-line progress bar."""

    _CLOSE = object()

    def __init__(
        self,
        channel: queue.Queue,
        total: int,
        stream: Optional[TextIO] = None,
        width: int = 30,
    ):
        self._channel = channel
        self.total = total
        self._stream = stream or sys.stdout
        self._width = width
        self._thread: Optional[threading.Thread] = None
        self._last_len = 0
        self._rendered = False
        self._cursor_hidden = False
        self._closed = False
        self.last_value = 0

    def start(self):
        if self._stream.isatty():
            self._stream.write(_HIDE_CURSOR)
            self._cursor_hidden = True
        self._render(ProgressEvent(0, self.total))
        self._thread = threading.Thread(target=self._run, name="progress", daemon=True)
        self._thread.start()

    def _run(self):
        while True:
            ev = self._channel.get()
            if ev is self._CLOSE:
                break
            if ev.value < self.last_value:
                continue
            self.last_value = ev.value
            self._render(ev)
            if ev.value >= self.total:
                break

    def _render(self, ev: ProgressEvent):
        pct = ev.percent
        filled = int(self._width * pct / 100)
        bar = "█" * filled + "░" * (self._width - filled)
        line = f"\r  [{bar}] {pct:5.1f}%  {ev.value}/{ev.total}"
        pad = max(0, self._last_len - len(line))
        self._stream.write(line + " " * pad)
        self._stream.flush()
        self._last_len = len(line)
        self._rendered = True

    def close(self, timeout: float = 5.0):
        """Stop rendering and restore the terminal. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        if self._thread is not None and self._thread.is_alive():
            self._channel.put(self._CLOSE)
            self._thread.join(timeout=timeout)
        if self._cursor_hidden:
            self._stream.write(_SHOW_CURSOR)
            self._cursor_hidden = False
        if self._rendered:
            self._stream.write("\n")
        self._stream.flush()
