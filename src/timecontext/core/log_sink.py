"""timecontext.core.log_sink

CONTRACT: docs/contract_index.md
ROLE: Persist structured LogEvent messages to disk as JSONL.

INPUTS:
  - Topic: log.events  Type: LogEvent
OUTPUTS:
  - <logging.file.path> (JSONL, one record per line)

CONFIG KEYS:
  - logging.file.enabled: enable file logging
  - logging.file.path: target file
  - logging.file.flush_interval_ms: flush interval
"""

from __future__ import annotations

import json
import queue
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional

from timecontext.core.config import get_path


def start_log_sink(
    bus: Any,
    config: Dict[str, Any],
    logger: Any,
    stop_event: threading.Event,
) -> Optional[threading.Thread]:
    if not bool(get_path(config, "logging.file.enabled", False)):
        return None
    target = str(get_path(config, "logging.file.path", "") or "")
    if not target:
        return None
    flush_s = float(get_path(config, "logging.file.flush_interval_ms", 200.0)) / 1000.0

    path = Path(target)
    path.parent.mkdir(parents=True, exist_ok=True)
    q = bus.subscribe("log.events")

    def _write(fh: Any, event: Dict[str, Any]) -> None:
        fh.write(json.dumps(event, sort_keys=True, default=str) + "\n")

    def _run() -> None:
        try:
            with open(path, "a", encoding="utf-8") as fh:
                next_flush = time.time() + flush_s
                while not stop_event.is_set():
                    try:
                        _write(fh, q.get(timeout=0.05))
                    except queue.Empty:
                        pass
                    if time.time() >= next_flush:
                        fh.flush()
                        next_flush = time.time() + flush_s
                # Drain whatever arrived before the stop request.
                while True:
                    try:
                        _write(fh, q.get_nowait())
                    except queue.Empty:
                        break
        except OSError as exc:
            logger.emit("warning", "core.log_sink", "log_write_failed", {"path": str(path), "error": str(exc)})
        finally:
            bus.unsubscribe("log.events", q)

    thread = threading.Thread(target=_run, name="log-sink", daemon=True)
    thread.start()
    return thread
