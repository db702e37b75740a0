"""
CONTRACT: inline (source: src/timecontext/time/api.md)
ROLE: Public time API: global context + independent-context registry + resolver.

INPUTS:
  - get_context_for_view(object_path)
  - add_independent_context(key, bounds | offsets, clock_key)
OUTPUTS:
  - Event: refreshContext  Args: object key
  - Event: removeOwnContext  Args: object key

CONFIG KEYS:
  - n/a

PERF / TIMING:
  - resolving an unchanged path returns the cached context (no reconstruction)

FAILURE MODES:
  - object path empty or not a list/tuple -> raise InvalidArgument
  - unknown clock key -> raise UnknownIdentifier before any state change

LOG EVENTS:
  - module=time.api, event=independent_context_created, payload keys=key, path
  - module=time.api, event=independent_context_replaced, payload keys=key, old_path, new_path
  - module=time.api, event=independent_context_added, payload keys=key, mode

TESTS:
  - tests/test_resolver.py

CONTRACT DETAILS (inline from src/timecontext/time/api.md):
# Time API

- One registry entry per object key: (context, path fingerprint).
- The fingerprint is the relative path string, recomputed on every resolve;
  object identity is never compared.
- A changed fingerprint disposes the stale context and installs a new one.
- The release callable returned by add_independent_context only emits
  removeOwnContext; the affected context reverts to following during that
  emit, before release returns. The registry entry stays in place.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from timecontext.contracts.errors import InvalidArgument
from timecontext.contracts.messages import Bounds, ClockOffsets, Mode
from timecontext.time.context import REFRESH_CONTEXT, REMOVE_OWN_CONTEXT, TimeContext
from timecontext.time.global_context import GlobalTimeContext
from timecontext.time.independent import IndependentTimeContext
from timecontext.time.objects import ObjectKeys, identifier_of


@dataclass
class IndependentContextEntry:
    context: IndependentTimeContext
    # None until the context is first resolved with an object path.
    path_key: Optional[str]


class TimeAPI(GlobalTimeContext):
    """Global time context plus per-object overrides.

    Views call ``get_context_for_view(object_path)`` once, keep the result
    and subscribe to its events. Objects with an override get their own
    context; everything else follows the global one.
    """

    module = "time.api"

    def __init__(self, objects: Optional[ObjectKeys] = None, logger: Optional[Any] = None) -> None:
        super().__init__(logger=logger)
        self.objects = objects or ObjectKeys()
        self._independent: Dict[str, IndependentContextEntry] = {}

    def get_independent_context(self, key: str) -> Optional[IndependentTimeContext]:
        entry = self._independent.get(key)
        return entry.context if entry is not None else None

    def get_independent_keys(self) -> List[str]:
        return list(self._independent.keys())

    def add_independent_context(self, key: Any, value: Any, clock_key: Optional[str] = None) -> Callable[[], None]:
        """Give the object ``key`` its own bounds (FIXED) or clock + offsets (REALTIME).

        Returns a release callable. Calling it emits ``removeOwnContext`` so
        the override reverts to following its upstream context; it does not
        remove the registry entry.
        """
        view_key = key if isinstance(key, str) else self.objects.make_key_string(key)
        if not view_key:
            raise InvalidArgument(f"Cannot derive an object key from {key!r}")

        # Validate everything before the reset so failures leave no trace.
        if clock_key:
            clock = self.clocks.require(clock_key)
            offsets = ClockOffsets.from_value(value)
        else:
            bounds = Bounds.from_value(value)

        context = self.get_independent_context(view_key)
        if context is None:
            context = self._create_independent_context(view_key, None)

        context.reset_context()
        if clock_key:
            context.set_mode(Mode.REALTIME)
            context.set_clock(clock, offsets)
        else:
            context.set_mode(Mode.FIXED)
            context.set_bounds(bounds)

        self._logger.emit("debug", self.module, "independent_context_added", {"key": view_key, "mode": context.get_mode().value})
        self.emit(REFRESH_CONTEXT, view_key)

        def _release() -> None:
            self.emit(REMOVE_OWN_CONTEXT, view_key)

        return _release

    def discard_independent_context(self, key: str) -> bool:
        """Dispose and forget the context for ``key``; views fall back to resolving anew."""
        entry = self._independent.pop(key, None)
        if entry is None:
            return False
        entry.context.dispose()
        self.emit(REFRESH_CONTEXT, key)
        return True

    def get_context_for_view(self, object_path: Sequence[Any]) -> TimeContext:
        """Return the context a view of ``object_path[0]`` should subscribe to.

        Any keyable object gets an ``IndependentTimeContext``, even without an
        override; it follows the global context (or an overriding parent) until
        one is added. Only a path whose first object has no key returns this API.
        """
        if not isinstance(object_path, (list, tuple)) or not object_path:
            raise InvalidArgument("No object path provided")

        view_key = self.objects.make_key_string(identifier_of(object_path[0]))
        if not view_key:
            return self

        path_key = self.objects.get_relative_path(object_path)
        entry = self._independent.get(view_key)
        if entry is None:
            return self._create_independent_context(view_key, object_path)

        if entry.path_key is None:
            entry.path_key = path_key
            entry.context.bind_path(object_path)
            return entry.context

        if entry.path_key != path_key:
            self._logger.emit(
                "info",
                self.module,
                "independent_context_replaced",
                {"key": view_key, "old_path": entry.path_key, "new_path": path_key},
            )
            entry.context.dispose()
            del self._independent[view_key]
            context = self._create_independent_context(view_key, object_path)
            # Contexts that followed the stale one pick a new upstream.
            self.emit(REFRESH_CONTEXT, view_key)
            return context

        return entry.context

    def _create_independent_context(self, key: str, object_path: Optional[Sequence[Any]]) -> IndependentTimeContext:
        context = IndependentTimeContext(self, key, object_path, logger=self._logger)
        path_key = self.objects.get_relative_path(object_path) if object_path is not None else None
        self._independent[key] = IndependentContextEntry(context, path_key)
        self._logger.emit("debug", self.module, "independent_context_created", {"key": key, "path": path_key})
        return context
