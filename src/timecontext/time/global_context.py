"""timecontext.time.global_context

CONTRACT: inline (source: src/timecontext/time/global_context.md)
ROLE: Application-wide time context; owns the time system and clock registries.

INPUTS:
  - plugin bootstrap: add_time_system(TimeSystem), add_clock(Clock)
OUTPUTS:
  - Events: see time.context

FAILURE MODES:
  - duplicate key -> raise DuplicateRegistration -> log duplicate_registration

LOG EVENTS:
  - module=time.global_context, event=time_system_registered, payload keys=key
  - module=time.global_context, event=clock_registered, payload keys=key
"""

from __future__ import annotations

from typing import Any, List, Optional

from timecontext.contracts.messages import Clock, TimeSystem
from timecontext.time.context import TimeContext
from timecontext.time.registry import Registry


class GlobalTimeContext(TimeContext):
    """The root context. Registries are created here and nowhere else."""

    module = "time.global_context"

    def __init__(self, logger: Optional[Any] = None) -> None:
        super().__init__(
            time_systems=Registry("time system", logger=logger),
            clocks=Registry("clock", logger=logger),
            logger=logger,
        )

    def add_time_system(self, time_system: TimeSystem) -> TimeSystem:
        self.time_systems.register(time_system)
        self._logger.emit("debug", self.module, "time_system_registered", {"key": time_system.key})
        return time_system

    def get_all_time_systems(self) -> List[TimeSystem]:
        return self.time_systems.get_all()

    def add_clock(self, clock: Clock) -> Clock:
        self.clocks.register(clock)
        self._logger.emit("debug", self.module, "clock_registered", {"key": clock.key})
        return clock

    def get_all_clocks(self) -> List[Clock]:
        return self.clocks.get_all()
