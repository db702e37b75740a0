"""
CONTRACT: inline (source: src/timecontext/core/logging.md)
ROLE: Structured logging to the bus + console.

INPUTS:
  - n/a
OUTPUTS:
  - Topic: log.events  Type: LogEvent

CONFIG KEYS:
  - logging.level: minimum console level
  - runtime.run_id: stamped on every record

PERF / TIMING:
  - synchronous; disk writes happen in core.log_sink

FAILURE MODES:
  - n/a

LOG EVENTS:
  - n/a

TESTS:
  - tests/test_config_and_logging.py

CONTRACT DETAILS (inline from src/timecontext/core/logging.md):
# Logging contract

- Structured LogEvent with module, severity, and context.
- Every record is published to log.events; console output is level-filtered.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from timecontext.core.clock import now_ns


LEVELS = {"debug": 10, "info": 20, "warning": 30, "error": 40}


class LogEmitter:
    """Emit structured LogEvents to the bus and stdout."""

    def __init__(self, bus: Optional[Any], min_level: str = "info", run_id: str = "") -> None:
        self._bus = bus
        self._min_level = LEVELS.get(min_level, 20)
        self._run_id = run_id

    def emit(self, level: str, module: str, event: str, payload: Optional[Dict[str, Any]] = None) -> None:
        record = {
            "t_ns": now_ns(),
            "level": level,
            "message": event,
            "run_id": self._run_id,
            "context": {
                "module": module,
                "event": event,
                "details": payload or {},
            },
        }
        if self._bus is not None:
            self._bus.publish("log.events", record)
        if LEVELS.get(level, 0) >= self._min_level:
            print(json.dumps(record, sort_keys=True, default=str))


class NullLogger:
    """Logger that drops everything; the default when none is injected."""

    def emit(self, level: str, module: str, event: str, payload: Optional[Dict[str, Any]] = None) -> None:
        return None
