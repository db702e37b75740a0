"""
CONTRACT: docs/contract_index.md
ROLE: Bootstrap the time API and run the local clock until interrupted.

INPUTS:
  - Topic: n/a  Type: n/a
OUTPUTS:
  - Topic: log.events  Type: LogEvent
  - Topic: time.*  Type: dict (bridged global context events)
  - Topic: ui.time  Type: TimeSnapshot

CONFIG KEYS:
  - time.time_system, time.bounds, time.mode, time.clock, time.clock_offsets
  - clocks.local.period_ms
  - logging.level, bus.max_queue_depth

PERF / TIMING:
  - registries are populated before any context state is applied

FAILURE MODES:
  - unknown time system / clock in config -> log bootstrap_failed -> exit 1

LOG EVENTS:
  - module=main.run, event=bootstrap_failed, payload keys=error
  - module=main.run, event=started, payload keys=time_system, mode, clock
  - module=main.run, event=shutdown, payload keys=n/a

TESTS:
  - tests/test_bootstrap.py must cover fixed and realtime startup
"""

from __future__ import annotations

import argparse
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from timecontext.contracts.errors import TimeContextError
from timecontext.contracts.messages import Mode
from timecontext.core.bus import Bus
from timecontext.core.config import get_path, load_config
from timecontext.core.log_sink import start_log_sink
from timecontext.core.logging import LogEmitter
from timecontext.plugins.utc import LocalClock, start_local_clock, utc_time_system
from timecontext.time.api import TimeAPI
from timecontext.time.context import parse_mode
from timecontext.ui.telemetry import bridge_context_events, start_telemetry


def _initial_bounds(config: Dict[str, Any], now: float) -> Dict[str, float]:
    bounds = get_path(config, "time.bounds") or {}
    if isinstance(bounds, dict) and "start" in bounds and "end" in bounds:
        return {"start": bounds["start"], "end": bounds["end"]}
    start_offset = float(get_path(config, "time.clock_offsets.start", -15 * 60 * 1000))
    return {"start": now + start_offset, "end": now}


def bootstrap(config: Dict[str, Any], logger: Optional[Any] = None) -> Tuple[TimeAPI, LocalClock]:
    """Create the time API, register built-ins, apply the configured state."""
    api = TimeAPI(logger=logger)
    local_clock = LocalClock(period_ms=float(get_path(config, "clocks.local.period_ms", 100)))
    api.add_time_system(utc_time_system())
    api.add_clock(local_clock)

    time_system = str(get_path(config, "time.time_system", "utc"))
    api.set_time_system(time_system, _initial_bounds(config, local_clock.current_value()))

    mode = parse_mode(get_path(config, "time.mode", "realtime"))
    clock_key = str(get_path(config, "time.clock", "") or "")
    if mode is Mode.REALTIME and clock_key:
        api.set_clock(clock_key, get_path(config, "time.clock_offsets"))
    else:
        api.set_mode(Mode.FIXED)
    return api, local_clock


def _shutdown(
    api: TimeAPI,
    stop_event: threading.Event,
    threads: List[threading.Thread],
    unbridge: Callable[[], None],
) -> None:
    # Worker threads (the clock included) are joined before the clock is detached.
    stop_event.set()
    for thread in threads:
        thread.join(timeout=1.0)
    api.stop_clock()
    unbridge()


def main() -> None:
    parser = argparse.ArgumentParser(description="Time context runner")
    parser.add_argument("--config", default="configs/default.yaml", help="Path to YAML config")
    args = parser.parse_args()

    config = load_config(args.config)
    bus = Bus(max_queue_depth=int(get_path(config, "bus.max_queue_depth", 8)))
    logger = LogEmitter(
        bus,
        min_level=str(get_path(config, "logging.level", "info")),
        run_id=str(get_path(config, "runtime.run_id", "") or ""),
    )
    stop_event = threading.Event()

    def _on_drop(topic: str, depth: int) -> None:
        if topic == "log.events":
            return
        logger.emit("warning", "core.bus", "queue_full", {"topic": topic, "depth": depth})

    bus.set_drop_handler(_on_drop)

    try:
        api, local_clock = bootstrap(config, logger)
    except TimeContextError as exc:
        logger.emit("error", "main.run", "bootstrap_failed", {"error": str(exc)})
        raise SystemExit(1) from exc

    threads: List[threading.Thread] = []
    log_thread = start_log_sink(bus, config, logger, stop_event)
    if log_thread is not None:
        threads.append(log_thread)
    unbridge = bridge_context_events(api, bus)
    telemetry_thread = start_telemetry(bus, api, config, logger, stop_event)
    if telemetry_thread is not None:
        threads.append(telemetry_thread)
    threads.append(start_local_clock(local_clock, config, logger, stop_event))

    clock = api.get_clock()
    time_system = api.get_time_system()
    logger.emit(
        "info",
        "main.run",
        "started",
        {
            "time_system": time_system.key if time_system is not None else None,
            "mode": api.get_mode().value,
            "clock": clock.key if clock is not None else None,
        },
    )
    try:
        while not stop_event.is_set():
            time.sleep(0.2)
    except KeyboardInterrupt:
        logger.emit("info", "main.run", "shutdown", {})
    finally:
        _shutdown(api, stop_event, threads, unbridge)


if __name__ == "__main__":
    main()
