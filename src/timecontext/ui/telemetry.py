"""
CONTRACT: inline (source: src/timecontext/ui/telemetry.md)
ROLE: Bridge time-context state to bus topics for consumers on other threads.

INPUTS:
  - Context events: timeSystemChanged, boundsChanged, modeChanged, clockChanged, clockOffsetsChanged
OUTPUTS:
  - Topic: time.time_system  Type: dict
  - Topic: time.bounds  Type: dict (start, end, is_tick)
  - Topic: time.mode  Type: dict
  - Topic: time.clock  Type: dict
  - Topic: time.clock_offsets  Type: dict
  - Topic: ui.time  Type: TimeSnapshot

CONFIG KEYS:
  - ui.telemetry_hz: snapshot rate (0 disables the snapshot thread)

PERF / TIMING:
  - stable snapshot rate; bridged events are published as they happen

FAILURE MODES:
  - snapshot build failure -> log telemetry_failed -> keep running

LOG EVENTS:
  - module=ui.telemetry, event=telemetry_failed, payload keys=error

TESTS:
  - tests/test_bootstrap.py

CONTRACT DETAILS (inline from src/timecontext/ui/telemetry.md):
# Telemetry contract

- Compact view of one context for views that poll instead of subscribing.
- Every message carries t_ns and seq.
"""

from __future__ import annotations

import itertools
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

from timecontext.contracts.messages import Bounds, Clock, ClockOffsets, Mode, TimeSystem
from timecontext.core.clock import now_ns
from timecontext.core.config import get_path
from timecontext.time.context import (
    BOUNDS_CHANGED,
    CLOCK_CHANGED,
    CLOCK_OFFSETS_CHANGED,
    MODE_CHANGED,
    TIME_SYSTEM_CHANGED,
    TimeContext,
)


def _time_system_payload(time_system: Optional[TimeSystem]) -> Optional[Dict[str, Any]]:
    if time_system is None:
        return None
    return {
        "key": time_system.key,
        "name": time_system.name,
        "time_format": time_system.time_format,
        "duration_format": time_system.duration_format,
    }


def _clock_payload(clock: Optional[Clock]) -> Optional[Dict[str, Any]]:
    if clock is None:
        return None
    return {"key": clock.key, "name": clock.name, "description": clock.description}


def _pair_payload(value: Optional[Any]) -> Optional[Dict[str, Any]]:
    return value.to_dict() if value is not None else None


def build_snapshot(context: TimeContext, seq: int = 0) -> Dict[str, Any]:
    return {
        "t_ns": now_ns(),
        "seq": seq,
        "mode": context.get_mode().value,
        "time_system": _time_system_payload(context.get_time_system()),
        "clock": _clock_payload(context.get_clock()),
        "bounds": _pair_payload(context.get_bounds()),
        "clock_offsets": _pair_payload(context.get_clock_offsets()),
    }


def bridge_context_events(context: TimeContext, bus: Any, prefix: str = "time") -> Callable[[], None]:
    """Publish context events to ``<prefix>.*`` topics; returns an unsubscribe callable."""
    seq = itertools.count(1)

    def _publish(topic: str, payload: Dict[str, Any]) -> None:
        payload.update({"t_ns": now_ns(), "seq": next(seq)})
        bus.publish(f"{prefix}.{topic}", payload)

    def _on_time_system(time_system: TimeSystem) -> None:
        _publish("time_system", {"time_system": _time_system_payload(time_system)})

    def _on_bounds(bounds: Bounds, is_tick: bool) -> None:
        _publish("bounds", {"start": bounds.start, "end": bounds.end, "is_tick": bool(is_tick)})

    def _on_mode(mode: Mode) -> None:
        _publish("mode", {"mode": mode.value})

    def _on_clock(clock: Optional[Clock]) -> None:
        _publish("clock", {"clock": _clock_payload(clock)})

    def _on_offsets(offsets: ClockOffsets) -> None:
        _publish("clock_offsets", {"clock_offsets": offsets.to_dict()})

    handlers: List[Tuple[str, Callable[..., None]]] = [
        (TIME_SYSTEM_CHANGED, _on_time_system),
        (BOUNDS_CHANGED, _on_bounds),
        (MODE_CHANGED, _on_mode),
        (CLOCK_CHANGED, _on_clock),
        (CLOCK_OFFSETS_CHANGED, _on_offsets),
    ]
    for event, handler in handlers:
        context.on(event, handler)

    def _unsubscribe() -> None:
        for event, handler in handlers:
            context.off(event, handler)

    return _unsubscribe


def start_telemetry(
    bus: Any,
    context: TimeContext,
    config: Dict[str, Any],
    logger: Any,
    stop_event: threading.Event,
) -> Optional[threading.Thread]:
    telemetry_hz = float(get_path(config, "ui.telemetry_hz", 4.0) or 0.0)
    if telemetry_hz <= 0:
        return None
    period = 1.0 / telemetry_hz

    def _run() -> None:
        seq = 0
        while not stop_event.wait(period):
            seq += 1
            try:
                snapshot = build_snapshot(context, seq)
            except Exception as exc:  # noqa: BLE001
                logger.emit("warning", "ui.telemetry", "telemetry_failed", {"error": repr(exc)})
                continue
            bus.publish("ui.time", snapshot)

    thread = threading.Thread(target=_run, name="ui-telemetry", daemon=True)
    thread.start()
    return thread
