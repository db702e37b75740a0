"""
CONTRACT: inline (source: src/timecontext/time/context.md)
ROLE: Time context state machine: mode, time system, clock, offsets, bounds.

INPUTS:
  - Clock tick  Type: number (units of the active time system)
OUTPUTS:
  - Event: timeSystemChanged  Args: TimeSystem
  - Event: boundsChanged  Args: Bounds, is_tick
  - Event: modeChanged  Args: Mode
  - Event: clockChanged  Args: Clock | None
  - Event: clockOffsetsChanged  Args: ClockOffsets
  - Event: tick  Args: number

CONFIG KEYS:
  - n/a

PERF / TIMING:
  - synchronous; every event fires after its mutation is applied
  - per-context ordering follows mutation order

FAILURE MODES:
  - unregistered time system / clock key -> raise UnknownIdentifier, no state change
  - malformed bounds / offsets -> raise InvalidArgument, no state change
  - clock current_value() raises -> log clock_read_failed -> treated as no value
  - tick value cannot form bounds -> log tick_rejected -> no publish
  - listener raises -> log listener_failed -> remaining listeners still run

LOG EVENTS:
  - module=time.context, event=clock_read_failed, payload keys=clock, error
  - module=time.context, event=tick_rejected, payload keys=clock, value, error
  - module=time.context, event=tick_dispatch_failed, payload keys=clock, error
  - module=time.context, event=listener_failed, payload keys=event, handler, error

TESTS:
  - tests/test_time_context.py

CONTRACT DETAILS (inline from src/timecontext/time/context.md):
# Time context

- set_time_system emits timeSystemChanged then boundsChanged.
- set_clock attaches the clock, switches to REALTIME and seeds bounds from
  the clock's current value plus offsets.
- Ticks recompute bounds only in REALTIME mode with offsets present.
- stop_clock detaches the clock and leaves mode and bounds alone.
- A listener that raises is logged and skipped; the rest of the dispatch runs.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Optional, Union

from timecontext.contracts.errors import InvalidArgument, InvalidBounds
from timecontext.contracts.messages import Bounds, Clock, ClockOffsets, Mode, Number, TimeSystem, is_number
from timecontext.core.bus import EventEmitter
from timecontext.core.clock import now_ms
from timecontext.core.logging import NullLogger
from timecontext.time.registry import Registry


TIME_SYSTEM_CHANGED = "timeSystemChanged"
BOUNDS_CHANGED = "boundsChanged"
MODE_CHANGED = "modeChanged"
CLOCK_CHANGED = "clockChanged"
CLOCK_OFFSETS_CHANGED = "clockOffsetsChanged"
TICK = "tick"
REFRESH_CONTEXT = "refreshContext"
REMOVE_OWN_CONTEXT = "removeOwnContext"

# Events describing a context's own state; an independent context forwards these.
STATE_EVENTS = (
    TIME_SYSTEM_CHANGED,
    BOUNDS_CHANGED,
    MODE_CHANGED,
    CLOCK_CHANGED,
    CLOCK_OFFSETS_CHANGED,
    TICK,
)


@dataclass
class ContextState:
    mode: Mode = Mode.FIXED
    time_system: Optional[TimeSystem] = None
    clock: Optional[Clock] = None
    bounds: Optional[Bounds] = None
    offsets: Optional[ClockOffsets] = None
    last_tick: Optional[Number] = None

    def copy(self, **changes: Any) -> "ContextState":
        return replace(self, **changes)


def parse_mode(mode: Union[Mode, str]) -> Mode:
    try:
        return Mode(str(mode.value if isinstance(mode, Mode) else mode).lower())
    except ValueError:
        raise InvalidArgument(f"Unknown mode {mode!r}; expected 'fixed' or 'realtime'") from None


class TimeContext:
    """Temporal state for one scope, with change events.

    Listeners are registered with ``on(event, handler)``. Bounds listeners
    receive ``(bounds, is_tick)`` so that views can skip expensive work for
    tick-driven updates.
    """

    module = "time.context"

    def __init__(
        self,
        time_systems: Registry[TimeSystem],
        clocks: Registry[Clock],
        logger: Optional[Any] = None,
    ) -> None:
        self.time_systems = time_systems
        self.clocks = clocks
        self._logger = logger or NullLogger()
        # A failing view must not stop dispatch to the views registered after it.
        self._events = EventEmitter(on_error=self._on_listener_error)
        self._local = ContextState()

    @property
    def _state(self) -> ContextState:
        """State that mutations apply to."""
        return self._local

    def _read_state(self) -> ContextState:
        """State that reads observe."""
        return self._local

    # -- subscription -------------------------------------------------------

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        self._events.on(event, handler)

    def off(self, event: str, handler: Callable[..., Any]) -> None:
        self._events.off(event, handler)

    def once(self, event: str, handler: Callable[..., Any]) -> Callable[..., Any]:
        return self._events.once(event, handler)

    def emit(self, event: str, *args: Any) -> None:
        self._events.emit(event, *args)

    def listener_count(self, event: str) -> int:
        return self._events.listener_count(event)

    def _on_listener_error(self, event: str, handler: Callable[..., Any], exc: BaseException) -> None:
        name = getattr(handler, "__qualname__", repr(handler))
        self._logger.emit("error", self.module, "listener_failed", {"event": event, "handler": name, "error": repr(exc)})

    # -- reads --------------------------------------------------------------

    def get_mode(self) -> Mode:
        return self._read_state().mode

    def get_time_system(self) -> Optional[TimeSystem]:
        return self._read_state().time_system

    def get_clock(self) -> Optional[Clock]:
        return self._read_state().clock

    def get_bounds(self) -> Optional[Bounds]:
        return self._read_state().bounds

    def get_clock_offsets(self) -> Optional[ClockOffsets]:
        return self._read_state().offsets

    def is_realtime(self) -> bool:
        return self.get_mode() is Mode.REALTIME

    def is_fixed(self) -> bool:
        return self.get_mode() is Mode.FIXED

    def now(self) -> Number:
        """Latest known clock value, falling back to wall-clock milliseconds."""
        state = self._read_state()
        if state.last_tick is not None:
            return state.last_tick
        if state.clock is not None:
            value = self._read_clock(state.clock)
            if value is not None:
                return value
        return now_ms()

    # -- mutations ----------------------------------------------------------

    def set_time_system(self, time_system: Union[str, TimeSystem], bounds: Any) -> TimeSystem:
        key = time_system.key if isinstance(time_system, TimeSystem) else time_system
        resolved = self.time_systems.require(key)
        new_bounds = Bounds.from_value(bounds)
        state = self._state
        state.time_system = resolved
        state.bounds = new_bounds
        self._events.emit(TIME_SYSTEM_CHANGED, resolved)
        self._events.emit(BOUNDS_CHANGED, new_bounds, False)
        return resolved

    def set_bounds(self, bounds: Any, is_tick: bool = False) -> Bounds:
        new_bounds = Bounds.from_value(bounds)
        self._state.bounds = new_bounds
        self._events.emit(BOUNDS_CHANGED, new_bounds, bool(is_tick))
        return new_bounds

    def set_clock(self, clock: Union[str, Clock], offsets: Any = None) -> Clock:
        key = clock.key if isinstance(clock, Clock) else clock
        resolved = self.clocks.require(key)
        new_offsets = ClockOffsets.from_value(offsets) if offsets is not None else None

        state = self._state
        if state.clock is not None:
            state.clock.off(TICK, self._on_tick)
        state.clock = resolved
        state.last_tick = None
        resolved.on(TICK, self._on_tick)
        self._events.emit(CLOCK_CHANGED, resolved)

        if state.mode is not Mode.REALTIME:
            state.mode = Mode.REALTIME
            self._events.emit(MODE_CHANGED, Mode.REALTIME)

        if new_offsets is not None:
            self.set_clock_offsets(new_offsets)
        elif state.offsets is not None:
            self._recompute_bounds(state)
        return resolved

    def stop_clock(self) -> None:
        state = self._state
        if state.clock is None:
            return
        state.clock.off(TICK, self._on_tick)
        state.clock = None
        state.last_tick = None
        self._events.emit(CLOCK_CHANGED, None)

    def set_mode(self, mode: Union[Mode, str], offsets_or_bounds: Any = None) -> Mode:
        """Switch mode; optionally apply offsets (REALTIME) or bounds (FIXED)."""
        new_mode = parse_mode(mode)
        state = self._state
        if state.mode is not new_mode:
            state.mode = new_mode
            self._events.emit(MODE_CHANGED, new_mode)
        if offsets_or_bounds is not None:
            if new_mode is Mode.REALTIME:
                self.set_clock_offsets(offsets_or_bounds)
            else:
                self.set_bounds(offsets_or_bounds)
        return new_mode

    def set_clock_offsets(self, offsets: Any) -> ClockOffsets:
        """Store offsets; in REALTIME mode recompute bounds from the latest tick."""
        new_offsets = ClockOffsets.from_value(offsets)
        state = self._state
        state.offsets = new_offsets
        self._events.emit(CLOCK_OFFSETS_CHANGED, new_offsets)
        if state.mode is Mode.REALTIME:
            self._recompute_bounds(state)
        return new_offsets

    # -- ticking ------------------------------------------------------------

    def _recompute_bounds(self, state: ContextState) -> None:
        if state.clock is None or state.offsets is None:
            return
        value = state.last_tick
        if value is None:
            value = self._read_clock(state.clock)
            if value is None:
                return
            state.last_tick = value
        try:
            bounds = state.offsets.apply(value)
        except InvalidBounds as exc:
            self._logger.emit("warning", self.module, "tick_rejected", {"clock": state.clock.key, "value": value, "error": str(exc)})
            return
        self.set_bounds(bounds)

    def _read_clock(self, clock: Clock) -> Optional[Number]:
        try:
            value = clock.current_value()
        except Exception as exc:  # noqa: BLE001
            self._logger.emit("warning", self.module, "clock_read_failed", {"clock": clock.key, "error": str(exc)})
            return None
        if not is_number(value):
            self._logger.emit("warning", self.module, "clock_read_failed", {"clock": clock.key, "error": f"non-numeric value {value!r}"})
            return None
        return value

    def _on_tick(self, value: Number) -> None:
        state = self._state
        clock_key = state.clock.key if state.clock is not None else None
        if not is_number(value):
            self._logger.emit("warning", self.module, "tick_rejected", {"clock": clock_key, "value": repr(value), "error": "non-numeric tick"})
            return
        state.last_tick = value
        try:
            self._events.emit(TICK, value)
            if state.mode is Mode.REALTIME and state.offsets is not None:
                self.set_bounds(state.offsets.apply(value), is_tick=True)
        except InvalidBounds as exc:
            self._logger.emit("warning", self.module, "tick_rejected", {"clock": clock_key, "value": value, "error": str(exc)})
        except Exception as exc:  # noqa: BLE001
            # Other contexts share this clock; a failure here must not reach them.
            self._logger.emit("error", self.module, "tick_dispatch_failed", {"clock": clock_key, "error": repr(exc)})

    def _detach_clock(self, state: ContextState) -> None:
        if state.clock is not None:
            state.clock.off(TICK, self._on_tick)

    def snapshot(self) -> ContextState:
        """Copy of the visible state (no clock subscription is implied)."""
        return self._read_state().copy()
