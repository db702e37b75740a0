"""timecontext.time.registry

CONTRACT: inline (source: src/timecontext/time/registry.md)
ROLE: Keyed, registration-ordered store of time systems or clocks.

FAILURE MODES:
  - key already registered -> raise DuplicateRegistration -> log duplicate_registration
  - lookup of unknown key via require() -> raise UnknownIdentifier

LOG EVENTS:
  - module=time.registry, event=duplicate_registration, payload keys=kind, key
"""

from __future__ import annotations

from typing import Any, Dict, Generic, List, Optional, TypeVar

from timecontext.contracts.errors import DuplicateRegistration, UnknownIdentifier
from timecontext.core.logging import NullLogger


T = TypeVar("T")


class Registry(Generic[T]):
    """Descriptors keyed by their ``key`` attribute.

    Duplicate keys are rejected rather than overwritten; the first
    registration wins and the caller gets DuplicateRegistration.
    """

    def __init__(self, kind: str, logger: Optional[Any] = None) -> None:
        self.kind = kind
        self._logger = logger or NullLogger()
        self._items: Dict[str, T] = {}

    def register(self, descriptor: T) -> T:
        key = getattr(descriptor, "key", None)
        if not isinstance(key, str) or not key:
            raise ValueError(f"{self.kind} descriptor must have a non-empty string key, got {key!r}")
        if key in self._items:
            self._logger.emit("warning", "time.registry", "duplicate_registration", {"kind": self.kind, "key": key})
            raise DuplicateRegistration(self.kind, key)
        self._items[key] = descriptor
        return descriptor

    def get(self, key: str) -> Optional[T]:
        return self._items.get(key)

    def require(self, key: str) -> T:
        try:
            return self._items[key]
        except (KeyError, TypeError):
            raise UnknownIdentifier(self.kind, key) from None

    def get_all(self) -> List[T]:
        return list(self._items.values())

    def keys(self) -> List[str]:
        return list(self._items.keys())

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)
