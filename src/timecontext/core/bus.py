"""
CONTRACT: inline (source: src/timecontext/core/bus.md)
ROLE: In-process pub/sub: synchronous named events and bounded topic queues.

INPUTS:
  - Topic: n/a  Type: n/a
OUTPUTS:
  - Topic: n/a  Type: n/a

CONFIG KEYS:
  - bus.max_queue_depth: per-topic queue depth

PERF / TIMING:
  - preserve per-event and per-topic ordering
  - listener dispatch is synchronous on the emitting thread

FAILURE MODES:
  - queue full -> drop oldest -> log queue_full
  - handler raises -> propagate (or report via on_error when configured)

LOG EVENTS:
  - module=core.bus, event=queue_full, payload keys=topic, depth

TESTS:
  - tests/test_bus.py must cover re-entrant subscribe/unsubscribe and backpressure

CONTRACT DETAILS (inline from src/timecontext/core/bus.md):
# Bus contract

- EventEmitter is composed into every time context and clock.
- Listeners are snapshotted before dispatch, so a handler may add or remove
  listeners (including itself) without corrupting the dispatch in progress.
- Bus carries messages to consumers on other threads via bounded queues.
"""

from __future__ import annotations

import queue
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional


DropHandler = Callable[[str, int], None]
Handler = Callable[..., Any]
ErrorHandler = Callable[[str, Handler, BaseException], None]


class EventEmitter:
    """Named-event listener registry with snapshot dispatch."""

    def __init__(self, on_error: Optional[ErrorHandler] = None) -> None:
        self._lock = threading.Lock()
        self._listeners: Dict[str, List[Handler]] = defaultdict(list)
        self._on_error = on_error

    def on(self, event: str, handler: Handler) -> None:
        with self._lock:
            self._listeners[event].append(handler)

    def off(self, event: str, handler: Handler) -> None:
        """Remove one registration of handler; unknown handlers are ignored."""
        with self._lock:
            handlers = self._listeners.get(event)
            if not handlers:
                return
            try:
                handlers.remove(handler)
            except ValueError:
                return
            if not handlers:
                del self._listeners[event]

    def once(self, event: str, handler: Handler) -> Handler:
        def _wrapper(*args: Any) -> None:
            self.off(event, _wrapper)
            handler(*args)

        self.on(event, _wrapper)
        return _wrapper

    def emit(self, event: str, *args: Any) -> None:
        with self._lock:
            handlers = list(self._listeners.get(event, []))
        for handler in handlers:
            if self._on_error is None:
                handler(*args)
                continue
            try:
                handler(*args)
            except Exception as exc:  # noqa: BLE001
                self._on_error(event, handler, exc)

    def listener_count(self, event: str) -> int:
        with self._lock:
            return len(self._listeners.get(event, []))

    def remove_all_listeners(self, event: Optional[str] = None) -> None:
        with self._lock:
            if event is None:
                self._listeners.clear()
            else:
                self._listeners.pop(event, None)


class Bus:
    """Simple in-process pub/sub bus with bounded queues."""

    def __init__(self, max_queue_depth: int = 8, on_drop: Optional[DropHandler] = None) -> None:
        self._max_queue_depth = max_queue_depth
        self._on_drop = on_drop
        self._lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._subscribers: Dict[str, List[queue.Queue[Any]]] = defaultdict(list)
        self._drop_counts: Dict[str, int] = defaultdict(int)

    def set_drop_handler(self, on_drop: Optional[DropHandler]) -> None:
        self._on_drop = on_drop

    def get_drop_counts(self) -> Dict[str, int]:
        with self._stats_lock:
            return dict(self._drop_counts)

    def subscribe(self, topic: str) -> queue.Queue[Any]:
        """Subscribe to a topic and return a queue of messages."""
        q: queue.Queue[Any] = queue.Queue(maxsize=self._max_queue_depth)
        with self._lock:
            self._subscribers[topic].append(q)
        return q

    def unsubscribe(self, topic: str, q: queue.Queue[Any]) -> None:
        with self._lock:
            subscribers = self._subscribers.get(topic, [])
            if q in subscribers:
                subscribers.remove(q)

    def publish(self, topic: str, msg: Any) -> None:
        """Publish a message to all subscribers without blocking."""
        with self._lock:
            subscribers = list(self._subscribers.get(topic, []))
        for q in subscribers:
            dropped = self._put_with_drop_oldest(q, msg)
            if dropped:
                with self._stats_lock:
                    self._drop_counts[topic] += 1
                if self._on_drop:
                    self._on_drop(topic, q.maxsize)

    @staticmethod
    def _put_with_drop_oldest(q: queue.Queue[Any], msg: Any) -> bool:
        """Enqueue, dropping the oldest item on overflow.

        Returns True when a drop occurred (even if enqueue succeeds).
        """
        try:
            q.put_nowait(msg)
            return False
        except queue.Full:
            try:
                q.get_nowait()
            except queue.Empty:
                pass
            try:
                q.put_nowait(msg)
                return True
            except queue.Full:
                return True
