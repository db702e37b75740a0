"""timecontext.contracts.errors

CONTRACT: docs/contract_index.md
ROLE: Error taxonomy surfaced by registries, contexts and the resolver.

FAILURE MODES:
  - unknown time system / clock key -> UnknownIdentifier
  - malformed object path, bounds or offsets -> InvalidArgument
  - key registered twice -> DuplicateRegistration
"""

from __future__ import annotations


class TimeContextError(Exception):
    """Base class for all timecontext errors."""


class UnknownIdentifier(TimeContextError, KeyError):
    """Raised when a time system or clock key is not registered."""

    def __init__(self, kind: str, key: str) -> None:
        super().__init__(f"Unknown {kind}: {key!r}")
        self.kind = kind
        self.key = key

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message.
        return str(self.args[0])


class InvalidArgument(TimeContextError, ValueError):
    """Raised when an argument is structurally invalid."""


class InvalidBounds(InvalidArgument):
    pass


class InvalidOffsets(InvalidArgument):
    pass


class DuplicateRegistration(TimeContextError, ValueError):
    """Raised when a descriptor key is registered twice."""

    def __init__(self, kind: str, key: str) -> None:
        super().__init__(f"Duplicate {kind} registration: {key!r}")
        self.kind = kind
        self.key = key
