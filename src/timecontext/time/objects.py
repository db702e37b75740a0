"""timecontext.time.objects

CONTRACT: inline (source: src/timecontext/time/objects.md)
ROLE: Turn object identifiers and object paths into stable key strings.

Identifiers are either plain strings or mappings with ``namespace`` and
``key``; namespaced identifiers render as ``namespace:key`` with literal
colons escaped. An object path is rendered outermost-first, joined by ``/``.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence


def identifier_of(domain_object: Any) -> Any:
    if isinstance(domain_object, Mapping):
        return domain_object.get("identifier")
    return getattr(domain_object, "identifier", None)


class ObjectKeys:
    """Default identifier service; swap in an application-specific one if needed."""

    def make_key_string(self, identifier: Any) -> Optional[str]:
        if identifier is None:
            return None
        if isinstance(identifier, str):
            return identifier or None
        if isinstance(identifier, Mapping):
            namespace = identifier.get("namespace") or ""
            key = identifier.get("key")
        else:
            namespace = getattr(identifier, "namespace", "") or ""
            key = getattr(identifier, "key", None)
        if not key:
            return None
        key = str(key)
        if not namespace:
            return key
        return f"{_escape(str(namespace))}:{_escape(key)}"

    def get_relative_path(self, object_path: Sequence[Any]) -> str:
        keys = [self.make_key_string(identifier_of(obj)) or "" for obj in object_path]
        return "/".join(reversed(keys))

    def path_keys(self, object_path: Sequence[Any]) -> list:
        return [self.make_key_string(identifier_of(obj)) for obj in object_path]


def _escape(part: str) -> str:
    return part.replace(":", "\\:")
