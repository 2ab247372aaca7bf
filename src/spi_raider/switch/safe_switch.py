"""Idle-gated selection switches: host arbiter and target multiplexer."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Generic, TypeVar

from ..bus.signals import IDLE_LEVEL, Pins
from ..config.registers import Host, Mode, RouteConfig, Target

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SafeSwitch(Generic[T]):
    """A selection that only changes while its bus is idle.

    ``requested`` follows the configuration every step. ``committed`` is
    the value in effect; it takes the requested value at an idle instant.
    A request made while busy sets ``pending`` until it can be applied.
    """

    def __init__(self, name: str, initial: T) -> None:
        self.name = name
        self._initial = initial
        self.committed: T = initial
        self.requested: T = initial
        self.pending: bool = False

    def reset(self) -> None:
        self.committed = self._initial
        self.requested = self._initial
        self.pending = False

    def describe(self, value: T) -> str:
        return str(value)

    def update(self, requested: T, idle: bool) -> bool:
        """Track a new request; commit it if the bus is idle.

        Returns:
            True if the committed value changed this step.
        """
        self.requested = requested
        if requested == self.committed:
            self.pending = False
            return False
        if idle:
            logger.debug(
                "%s: %s -> %s", self.name, self.describe(self.committed), self.describe(requested)
            )
            self.committed = requested
            self.pending = False
            return True
        if not self.pending:
            logger.info(
                "%s: switch to %s deferred until idle", self.name, self.describe(requested)
            )
        self.pending = True
        return False


class HostArbiter(SafeSwitch[Host]):
    """Forwards the active host's pins onto the shared downstream bus.

    Switching requires both hosts idle. Simultaneous chip-select from both
    hosts is reported as contention and otherwise ignored.
    """

    def __init__(self) -> None:
        super().__init__("host", Host.HOST_A)
        self.contention: bool = False
        self.contention_seen: bool = False

    def reset(self) -> None:
        super().reset()
        self.contention = False
        self.contention_seen = False

    def forward(self, host_a: Pins, host_b: Pins) -> Pins:
        """Pins of the committed host; also latches the contention flags."""
        both = host_a.selected and host_b.selected
        if both and not self.contention:
            logger.warning("host contention: both chip-selects asserted")
        self.contention = both
        self.contention_seen = self.contention_seen or both
        return host_a if self.committed == Host.HOST_A else host_b

    def arbitrate(self, requested: Host, host_a: Pins, host_b: Pins) -> bool:
        idle = not host_a.selected and not host_b.selected
        return self.update(requested, idle)

    def miso(self, host: Host, shared_miso: int) -> int:
        """MISO level seen by ``host``: live data only for the active one."""
        return shared_miso if host == self.committed else IDLE_LEVEL


# Targets whose chip-select is driven in each mode. Reserved falls back
# to the resolver's default target.
_GATING: dict[Mode, frozenset[Target]] = {
    Mode.MAIN: frozenset({Target.MAIN}),
    Mode.SECONDARY: frozenset({Target.SECONDARY}),
    Mode.SHARE: frozenset({Target.MAIN, Target.SECONDARY}),
    Mode.RESERVED: frozenset({Target.MAIN}),
}


class TargetMux(SafeSwitch[RouteConfig]):
    """Gates the shared bus to one or both targets according to mode.

    The whole routing snapshot (mode and both ranges) is committed at
    once, at an idle instant; the resolver reads only ``committed``. The
    host bit is owned by the arbiter and excluded from the comparison.
    """

    def __init__(self) -> None:
        super().__init__("target", RouteConfig())

    @property
    def mode(self) -> Mode:
        return self.committed.control.mode

    def describe(self, value: RouteConfig) -> str:
        return f"{value.control.mode.name} (CONTROL 0x{value.control.to_byte():02X})"

    def gate(self, requested: RouteConfig, shared: Pins) -> bool:
        control = replace(requested.control, active_host=Host.HOST_A)
        return self.update(replace(requested, control=control), not shared.selected)

    def enabled(self, target: Target) -> bool:
        return target in _GATING[self.mode]
