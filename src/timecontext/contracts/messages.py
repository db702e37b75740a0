"""
CONTRACT: inline (source: src/timecontext/contracts/messages.md)
ROLE: Typed models for time systems, clocks, bounds, offsets and modes.

INPUTS:
  - Topic: n/a  Type: n/a
OUTPUTS:
  - Topic: n/a  Type: n/a

CONFIG KEYS:
  - n/a

PERF / TIMING:
  - n/a

FAILURE MODES:
  - start > end -> raise InvalidBounds
  - offsets outside (start <= 0 <= end) -> raise InvalidOffsets

LOG EVENTS:
  - n/a

TESTS:
  - tests/test_time_context.py must cover bounds and offsets validation

CONTRACT DETAILS (inline from src/timecontext/contracts/messages.md):
# Messages contract

- All timestamps are plain numbers in the units of the active time system.
- Bounds and offsets are immutable values; contexts replace, never mutate.
- A clock publishes "tick" with its new value and exposes current_value().
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from timecontext.contracts.errors import InvalidBounds, InvalidOffsets
from timecontext.core.bus import EventEmitter


Number = Union[int, float]


class Mode(str, Enum):
    FIXED = "fixed"
    REALTIME = "realtime"


def is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


def _pair(value: Any, error: type) -> tuple:
    if isinstance(value, Mapping):
        if "start" not in value or "end" not in value:
            raise error(f"Expected 'start' and 'end' keys, got {sorted(value)}")
        return value["start"], value["end"]
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)) and len(value) == 2:
        return value[0], value[1]
    start = getattr(value, "start", None)
    end = getattr(value, "end", None)
    if start is None or end is None:
        raise error(f"Cannot interpret {value!r} as a (start, end) pair")
    return start, end


@dataclass(frozen=True)
class TimeSystem:
    """Units and semantics of timestamp values."""

    key: str
    name: str
    time_format: str
    duration_format: Optional[str] = None
    is_utc_based: bool = False


@dataclass(frozen=True)
class Bounds:
    start: Number
    end: Number

    def __post_init__(self) -> None:
        if not is_number(self.start) or not is_number(self.end):
            raise InvalidBounds(f"Bounds must be numeric, got start={self.start!r} end={self.end!r}")
        if self.start > self.end:
            raise InvalidBounds(f"Bounds start {self.start} is after end {self.end}")

    @classmethod
    def from_value(cls, value: Any) -> "Bounds":
        if isinstance(value, Bounds):
            return value
        start, end = _pair(value, InvalidBounds)
        return cls(start, end)

    def to_dict(self) -> dict:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class ClockOffsets:
    """Sliding window relative to a clock tick: (tick + start, tick + end)."""

    start: Number
    end: Number

    def __post_init__(self) -> None:
        if not is_number(self.start) or not is_number(self.end):
            raise InvalidOffsets(f"Offsets must be numeric, got start={self.start!r} end={self.end!r}")
        if self.start > 0:
            raise InvalidOffsets(f"Start offset must be <= 0, got {self.start}")
        if self.end < 0:
            raise InvalidOffsets(f"End offset must be >= 0, got {self.end}")
        if self.start >= self.end:
            raise InvalidOffsets(f"Start offset {self.start} must be before end offset {self.end}")

    @classmethod
    def from_value(cls, value: Any) -> "ClockOffsets":
        if isinstance(value, ClockOffsets):
            return value
        start, end = _pair(value, InvalidOffsets)
        return cls(start, end)

    def apply(self, tick_value: Number) -> Bounds:
        return Bounds(tick_value + self.start, tick_value + self.end)

    def to_dict(self) -> dict:
        return {"start": self.start, "end": self.end}


TickHandler = Callable[[Number], None]


class Clock:
    """Pluggable tick source.

    Subclasses call ``tick(value)`` whenever a new value is produced; contexts
    subscribe with ``on("tick", handler)``.
    """

    def __init__(self, key: str, name: str, description: str = "", default_value: Number = 0) -> None:
        self.key = key
        self.name = name
        self.description = description
        self._last_tick: Number = default_value
        self._events = EventEmitter()

    def current_value(self) -> Number:
        """Return the last ticked value, or the default before any tick."""
        return self._last_tick

    def tick(self, value: Number) -> None:
        self._last_tick = value
        self._events.emit("tick", value)

    def on(self, event: str, handler: TickHandler) -> None:
        self._events.on(event, handler)

    def off(self, event: str, handler: TickHandler) -> None:
        self._events.off(event, handler)

    def listener_count(self, event: str = "tick") -> int:
        return self._events.listener_count(event)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(key={self.key!r})"


class ManualClock(Clock):
    """Clock that only ticks when told to; used for replay and tests."""

    def __init__(self, key: str = "manual", name: str = "Manual Clock", default_value: Number = 0) -> None:
        super().__init__(key, name, "Ticks only when tick() is called explicitly.", default_value)
