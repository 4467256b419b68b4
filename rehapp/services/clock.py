from __future__ import annotations

import logging
import threading
import time
from datetime import date, datetime
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class Clock(Protocol):
    def monotonic(self) -> float: ...

    def now(self) -> datetime: ...

    def today(self) -> date: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...

    @property
    def active(self) -> bool: ...


class Scheduler(Protocol):
    def call_every(self, interval_s: float, callback: Callable[[], None]) -> TimerHandle: ...


class SystemClock:
    """Local wall clock. Day comparisons use the patient's local calendar, not UTC."""

    def monotonic(self) -> float:
        return time.monotonic()

    def now(self) -> datetime:
        return datetime.now()

    def today(self) -> date:
        return self.now().date()


class RepeatingTimer:
    """Calls `callback` every `interval_s` seconds on a daemon thread until cancelled."""

    def __init__(self, interval_s: float, callback: Callable[[], None], name: str = "rehapp-tick"):
        self.interval_s = float(interval_s)
        self.callback = callback
        self._stop = threading.Event()
        self._thr = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> "RepeatingTimer":
        self._thr.start()
        return self

    def _run(self) -> None:
        while not self._stop.wait(self.interval_s):
            try:
                self.callback()
            except Exception:
                logger.exception("Tick callback failed; timer keeps running")

    def cancel(self) -> None:
        self._stop.set()

    @property
    def active(self) -> bool:
        return not self._stop.is_set()


class ThreadScheduler:
    def call_every(self, interval_s: float, callback: Callable[[], None]) -> RepeatingTimer:
        return RepeatingTimer(interval_s, callback).start()


system_clock = SystemClock()
thread_scheduler = ThreadScheduler()
