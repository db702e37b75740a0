"""
CONTRACT: inline (source: src/timecontext/time/independent.md)
ROLE: Per-object time context that follows an upstream context or overrides it.

INPUTS:
  - Global event: refreshContext  Args: object key
  - Global event: removeOwnContext  Args: object key
  - Upstream events while following (see time.context STATE_EVENTS)
OUTPUTS:
  - Events: same names as time.context

CONFIG KEYS:
  - n/a

PERF / TIMING:
  - synchronous; reverting to following happens inside the removeOwnContext dispatch

FAILURE MODES:
  - see time.context

LOG EVENTS:
  - module=time.independent, event=override_removed, payload keys=key, removed
  - module=time.independent, event=upstream_changed, payload keys=key, upstream

TESTS:
  - tests/test_independent_context.py

CONTRACT DETAILS (inline from src/timecontext/time/independent.md):
# Independent time context

- Exactly one relationship at a time: Following(upstream) or Overriding(state).
- Following: reads proxy to the upstream context and every upstream state
  event is re-emitted unchanged.
- The upstream is the nearest object further out on the object path that has
  its own override, else the global context.
- reset_context() drops following listeners and the local clock listener
  before any new state is applied.
- Writing to a following context first detaches it into an override seeded
  with the upstream's current state, so the upstream is never modified.
- removeOwnContext(key) for this object or any object further out on its
  path drops this override and re-follows the nearest remaining upstream.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence, Union

from timecontext.time.context import (
    BOUNDS_CHANGED,
    CLOCK_CHANGED,
    CLOCK_OFFSETS_CHANGED,
    MODE_CHANGED,
    REFRESH_CONTEXT,
    REMOVE_OWN_CONTEXT,
    STATE_EVENTS,
    TICK,
    TIME_SYSTEM_CHANGED,
    ContextState,
    TimeContext,
)

if TYPE_CHECKING:
    from timecontext.time.api import TimeAPI


@dataclass(frozen=True)
class Following:
    upstream: TimeContext


@dataclass(frozen=True)
class Overriding:
    state: ContextState


Relationship = Union[Following, Overriding]


class IndependentTimeContext(TimeContext):
    module = "time.independent"

    def __init__(
        self,
        global_context: "TimeAPI",
        key: str,
        object_path: Optional[Sequence[Any]] = None,
        logger: Optional[Any] = None,
    ) -> None:
        super().__init__(global_context.time_systems, global_context.clocks, logger=logger)
        self.global_context = global_context
        self.key = key
        self.object_path: Optional[List[Any]] = list(object_path) if object_path is not None else None
        self._disposed = False
        self._forwarders: Dict[str, Callable[..., None]] = {name: self._forwarder(name) for name in STATE_EVENTS}
        self._relationship: Relationship = self._follow(self.get_upstream_context())
        global_context.on(REFRESH_CONTEXT, self.refresh_context)
        global_context.on(REMOVE_OWN_CONTEXT, self.remove_own_context)

    # -- relationship -------------------------------------------------------

    @property
    def relationship(self) -> Relationship:
        return self._relationship

    @property
    def _state(self) -> ContextState:
        relationship = self._relationship
        if isinstance(relationship, Following):
            relationship = self._override(relationship.upstream.snapshot())
        return relationship.state

    def _read_state(self) -> ContextState:
        relationship = self._relationship
        if isinstance(relationship, Following):
            return relationship.upstream._read_state()
        return relationship.state

    def has_own_context(self) -> bool:
        return isinstance(self._relationship, Overriding)

    def get_upstream_context(self) -> TimeContext:
        """Nearest overriding context further out on the path, else global."""
        for key in self._outer_keys():
            if not key or key == self.key:
                continue
            candidate = self.global_context.get_independent_context(key)
            if candidate is not None and candidate is not self and candidate.has_own_context():
                return candidate
        return self.global_context

    def follow_time_context(self) -> None:
        """Drop any override and follow the current upstream context."""
        before = self.snapshot()
        self._release()
        self._relationship = self._follow(self.get_upstream_context())
        self._emit_differences(before, self.snapshot())

    def stop_following_time_context(self) -> None:
        """Stop following and keep ticking on a private copy of the upstream state."""
        relationship = self._relationship
        if isinstance(relationship, Following):
            self._override(relationship.upstream.snapshot())

    def reset_context(self) -> None:
        """Tear down following and local clock listeners; keep the visible values.

        The result is an override without a clock, ready for new state.
        """
        seed = self.snapshot().copy(clock=None, last_tick=None)
        self._release()
        self._relationship = Overriding(seed)

    def bind_path(self, object_path: Sequence[Any]) -> None:
        self.object_path = list(object_path)
        relationship = self._relationship
        if isinstance(relationship, Following) and self.get_upstream_context() is not relationship.upstream:
            self.follow_time_context()

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._release()
        self.global_context.off(REFRESH_CONTEXT, self.refresh_context)
        self.global_context.off(REMOVE_OWN_CONTEXT, self.remove_own_context)

    @property
    def disposed(self) -> bool:
        return self._disposed

    # -- global notifications -----------------------------------------------

    def refresh_context(self, key: str) -> None:
        if self._disposed or key == self.key:
            return
        relationship = self._relationship
        if not isinstance(relationship, Following) or key not in self._outer_keys():
            return
        upstream = self.get_upstream_context()
        if upstream is relationship.upstream:
            return
        self._logger.emit("debug", self.module, "upstream_changed", {"key": self.key, "upstream": getattr(upstream, "key", "global")})
        self.follow_time_context()

    def remove_own_context(self, key: str) -> None:
        if self._disposed:
            return
        if key != self.key and key not in self._outer_keys():
            return
        if self.has_own_context():
            self._logger.emit("info", self.module, "override_removed", {"key": self.key, "removed": key})
            self.follow_time_context()
            return
        self.refresh_context(key)

    # -- internals ----------------------------------------------------------

    def _outer_keys(self) -> List[Optional[str]]:
        if not self.object_path:
            return []
        return self.global_context.objects.path_keys(self.object_path[1:])

    def _forwarder(self, event: str) -> Callable[..., None]:
        def _forward(*args: Any) -> None:
            self._events.emit(event, *args)

        return _forward

    def _follow(self, upstream: TimeContext) -> Following:
        for event, handler in self._forwarders.items():
            upstream.on(event, handler)
        return Following(upstream)

    def _override(self, seed: ContextState) -> Overriding:
        self._release()
        if seed.clock is not None:
            seed.clock.on(TICK, self._on_tick)
        self._relationship = Overriding(seed)
        return self._relationship

    def _release(self) -> None:
        relationship = self._relationship
        if isinstance(relationship, Following):
            for event, handler in self._forwarders.items():
                relationship.upstream.off(event, handler)
        else:
            self._detach_clock(relationship.state)

    def _emit_differences(self, before: ContextState, after: ContextState) -> None:
        if after.time_system != before.time_system and after.time_system is not None:
            self._events.emit(TIME_SYSTEM_CHANGED, after.time_system)
        if after.mode is not before.mode:
            self._events.emit(MODE_CHANGED, after.mode)
        if after.clock is not before.clock:
            self._events.emit(CLOCK_CHANGED, after.clock)
        if after.offsets != before.offsets and after.offsets is not None:
            self._events.emit(CLOCK_OFFSETS_CHANGED, after.offsets)
        if after.bounds != before.bounds and after.bounds is not None:
            self._events.emit(BOUNDS_CHANGED, after.bounds, False)
