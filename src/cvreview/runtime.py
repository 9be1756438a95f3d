"""Run-time primitives shared by sources and the pipeline."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Callable, Iterator

from .errors import RunCancelled

ProgressListener = Callable[[int, int, str], None]
"""Observer receiving ``(current, total, message)`` triples.

Delivery is at-least-once and may happen on any thread. Within one
reporter the ``current / total`` ratio never decreases.
"""


class CancellationToken:
    """Caller-owned cancellation signal."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelled("run cancelled")

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True if cancelled meanwhile."""
        if seconds <= 0:
            return self._event.is_set()
        return self._event.wait(seconds)

    def sleep(self, seconds: float) -> None:
        """Sleep up to ``seconds`` and raise ``RunCancelled`` if cancelled."""
        if self.wait(seconds):
            raise RunCancelled("run cancelled")


class ProgressReporter:
    """Percent-based progress emitter that never regresses."""

    def __init__(self, listener: ProgressListener | None = None) -> None:
        self._listener = listener
        self._last = 0
        self._lock = threading.Lock()

    def report(self, percent: int, message: str) -> None:
        with self._lock:
            percent = max(self._last, min(100, int(percent)))
            self._last = percent
        if self._listener is not None:
            self._listener(percent, 100, message)

    def span(self, start: int, end: int) -> ProgressListener:
        """Return a listener mapping child progress into ``[start, end]``."""

        def _forward(current: int, total: int, message: str) -> None:
            fraction = current / total if total > 0 else 0.0
            fraction = min(max(fraction, 0.0), 1.0)
            self.report(start + int((end - start) * fraction), message)

        return _forward


class ReadWriteLock:
    """Many concurrent readers or one exclusive writer.

    A waiting writer blocks new readers.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


__all__ = [
    "CancellationToken",
    "ProgressListener",
    "ProgressReporter",
    "ReadWriteLock",
]
