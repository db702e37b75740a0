"""
CONTRACT: inline (source: src/timecontext/plugins/utc.md)
ROLE: Built-in UTC time system and local wall clock.

INPUTS:
  - Topic: n/a  Type: n/a
OUTPUTS:
  - Clock tick  Type: int (UTC epoch milliseconds)

CONFIG KEYS:
  - clocks.local.period_ms: tick period

PERF / TIMING:
  - ticks every period_ms on a daemon thread; subscribers run on that thread

FAILURE MODES:
  - tick subscriber raises -> log tick_failed -> keep ticking

LOG EVENTS:
  - module=plugins.utc, event=tick_failed, payload keys=clock, error
  - module=plugins.utc, event=clock_started, payload keys=clock, period_ms

TESTS:
  - tests/test_bootstrap.py

CONTRACT DETAILS (inline from src/timecontext/plugins/utc.md):
# UTC plugin

- Time system "utc": integer milliseconds since the Unix epoch.
- Clock "local": before the first tick current_value() is the construction time.
"""

from __future__ import annotations

import threading
from typing import Any, Dict

from timecontext.contracts.messages import Clock, TimeSystem
from timecontext.core.clock import now_ms
from timecontext.core.config import get_path


UTC_TIME_SYSTEM = TimeSystem(
    key="utc",
    name="UTC",
    time_format="utc",
    duration_format="duration",
    is_utc_based=True,
)


def utc_time_system() -> TimeSystem:
    return UTC_TIME_SYSTEM


class LocalClock(Clock):
    """Wall clock ticking UTC milliseconds."""

    def __init__(self, period_ms: float = 100) -> None:
        super().__init__(
            "local",
            "Local Clock",
            "Provides UTC timestamps from the local system clock.",
            default_value=now_ms(),
        )
        self.period_ms = float(period_ms)

    def tick_now(self) -> int:
        value = now_ms()
        self.tick(value)
        return value


def start_local_clock(
    clock: LocalClock,
    config: Dict[str, Any],
    logger: Any,
    stop_event: threading.Event,
) -> threading.Thread:
    period_ms = float(get_path(config, "clocks.local.period_ms", clock.period_ms))
    period_s = max(period_ms, 1.0) / 1000.0

    def _run() -> None:
        logger.emit("info", "plugins.utc", "clock_started", {"clock": clock.key, "period_ms": period_ms})
        while not stop_event.wait(period_s):
            try:
                clock.tick_now()
            except Exception as exc:  # noqa: BLE001
                logger.emit("warning", "plugins.utc", "tick_failed", {"clock": clock.key, "error": repr(exc)})

    thread = threading.Thread(target=_run, name=f"clock-{clock.key}", daemon=True)
    thread.start()
    return thread
