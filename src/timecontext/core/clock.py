"""
CONTRACT: inline (source: src/timecontext/core/clock.md)
ROLE: Wall-clock timestamps for log records and the local clock.

INPUTS:
  - Topic: n/a  Type: n/a
OUTPUTS:
  - Topic: n/a  Type: n/a

CONFIG KEYS:
  - n/a

PERF / TIMING:
  - now_ns() for log records, now_ms() for UTC epoch-millisecond ticks

FAILURE MODES:
  - n/a

LOG EVENTS:
  - n/a

TESTS:
  - n/a

CONTRACT DETAILS (inline from src/timecontext/core/clock.md):
# Clock and timestamps

- UTC time system values are integer milliseconds since the Unix epoch.
- Log records carry t_ns in wall-clock nanoseconds.
"""

from __future__ import annotations

import time


def now_ns() -> int:
    return time.time_ns()


def now_ms() -> int:
    return time.time_ns() // 1_000_000
