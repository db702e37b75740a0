"""
CONTRACT: inline (source: src/timecontext/core/config.md)
ROLE: Load YAML config, validate, and expose typed accessors.

INPUTS:
  - Topic: n/a  Type: n/a
OUTPUTS:
  - Topic: n/a  Type: n/a

CONFIG KEYS:
  - config_path: path to YAML file
  - runtime.enable_validation: enable validation on load (bool)

PERF / TIMING:
  - load once at startup

FAILURE MODES:
  - missing/invalid key -> raise error -> log validation_failed

LOG EVENTS:
  - module=core.config, event=validation_failed, payload keys=path, errors

TESTS:
  - tests/test_config_and_logging.py must cover config validation

CONTRACT DETAILS (inline from src/timecontext/core/config.md):
# Config contract

- Config files select the startup time system, bounds, clock and offsets.
- Validation rejects unknown modes, inverted bounds and offsets that do not
  straddle the tick (start <= 0 <= end).
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List

import yaml


def load_config(path: str) -> Dict[str, Any]:
    """Load YAML config and apply defaults."""
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config root must be a mapping: {path}")
    merged = _merge_dicts(default_config(), data)
    if bool(get_path(merged, "runtime.enable_validation", False)):
        errors = validate_config(merged)
        if errors:
            joined = "\n".join(f"- {e}" for e in errors)
            raise ValueError(f"Config validation failed for {path}:\n{joined}")
    return merged


def get_path(config: Dict[str, Any], dotted_path: str, default: Any = None) -> Any:
    """Get a nested config value by dotted path."""
    node: Any = config
    for key in dotted_path.split("."):
        if not isinstance(node, dict) or key not in node:
            return default
        node = node[key]
    return node


def default_config() -> Dict[str, Any]:
    return {
        "runtime": {
            "run_id": "",
            "enable_validation": True,
        },
        "time": {
            "time_system": "utc",
            # Empty bounds mean "the last fifteen minutes" at bootstrap.
            "bounds": {},
            "mode": "realtime",
            "clock": "local",
            "clock_offsets": {
                "start": -15 * 60 * 1000,
                "end": 0,
            },
        },
        "clocks": {
            "local": {
                "period_ms": 100,
            },
        },
        "ui": {
            "telemetry_hz": 4,
        },
        "bus": {
            "max_queue_depth": 8,
        },
        "logging": {
            "level": "info",
            "file": {
                "enabled": False,
                "path": "logs/events.jsonl",
                "flush_interval_ms": 200,
            },
        },
    }


def _merge_dicts(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge_dicts(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def merge_config(override: Dict[str, Any]) -> Dict[str, Any]:
    """Return the defaults with override merged on top."""
    return _merge_dicts(default_config(), override)


def validate_config(config: Dict[str, Any]) -> List[str]:
    """Return a list of validation errors for the merged config."""
    errors: List[str] = []

    time_cfg = config.get("time", {})
    if not isinstance(time_cfg, dict):
        return ["time must be a mapping"]

    if not str(time_cfg.get("time_system", "") or ""):
        errors.append("time.time_system must be set")

    mode = str(time_cfg.get("mode", "") or "").lower()
    if mode not in {"fixed", "realtime"}:
        errors.append(f"time.mode must be 'fixed' or 'realtime', got {mode!r}")

    bounds = time_cfg.get("bounds") or {}
    if not isinstance(bounds, dict):
        errors.append("time.bounds must be a mapping with start and end")
    elif bounds:
        start, end = bounds.get("start"), bounds.get("end")
        if not _is_number(start) or not _is_number(end):
            errors.append("time.bounds.start and time.bounds.end must be numbers")
        elif start > end:
            errors.append(f"time.bounds.start={start} is after time.bounds.end={end}")
    elif mode == "fixed":
        errors.append("time.mode=fixed requires time.bounds")

    if mode == "realtime":
        if not str(time_cfg.get("clock", "") or ""):
            errors.append("time.mode=realtime requires time.clock")
        offsets = time_cfg.get("clock_offsets") or {}
        if not isinstance(offsets, dict):
            errors.append("time.clock_offsets must be a mapping with start and end")
        else:
            start, end = offsets.get("start"), offsets.get("end")
            if not _is_number(start) or not _is_number(end):
                errors.append("time.clock_offsets.start and time.clock_offsets.end must be numbers")
            elif not (start <= 0 <= end) or start >= end:
                errors.append(f"time.clock_offsets must satisfy start <= 0 <= end, got start={start} end={end}")

    period_ms = get_path(config, "clocks.local.period_ms", 100)
    if not _is_number(period_ms) or period_ms <= 0:
        errors.append("clocks.local.period_ms must be > 0")

    telemetry_hz = get_path(config, "ui.telemetry_hz", 0)
    if not _is_number(telemetry_hz) or telemetry_hz < 0:
        errors.append("ui.telemetry_hz must be >= 0")

    depth = get_path(config, "bus.max_queue_depth", 8)
    if not isinstance(depth, int) or depth <= 0:
        errors.append("bus.max_queue_depth must be a positive integer")

    return errors


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
