"""Configuration register file: range bytes, control byte, status byte."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import IntEnum

logger = logging.getLogger(__name__)

ADDR_MASK = 0xFFFFFF  # 24-bit bus address space

# One step for an update to cross from the register domain into routing
PROPAGATION_STEPS = 1

# Register addresses. Each range boundary is three bytes, high byte first.
REG_R0_START = 0x00
REG_R0_END = 0x03
REG_R1_START = 0x06
REG_R1_END = 0x09
REG_CONTROL = 0x0C
REG_STATUS = 0x0D
NUM_REGS = 14

RANGE_RESET = 0xFF
CONTROL_RESET = 0x00
STATUS_RESET = 0x00
UNDEFINED_READ = 0xFF

REG_NAMES: list[str] = [
    "R0_START_HI", "R0_START_MID", "R0_START_LO",
    "R0_END_HI", "R0_END_MID", "R0_END_LO",
    "R1_START_HI", "R1_START_MID", "R1_START_LO",
    "R1_END_HI", "R1_END_MID", "R1_END_LO",
    "CONTROL", "STATUS",
]

# Control register fields
_CTRL_MODE_MASK = 0x03
_CTRL_R0_EN = 1 << 2
_CTRL_R1_EN = 1 << 3
_CTRL_R0_TARGET = 1 << 4
_CTRL_R1_TARGET = 1 << 5
_CTRL_HOST = 1 << 6

# Status register fields
STATUS_HOST_PENDING = 1 << 0
STATUS_TARGET_PENDING = 1 << 1
STATUS_CONTENTION = 1 << 2
STATUS_CONTENTION_SEEN = 1 << 3
STATUS_ACTIVE_HOST = 1 << 4


class Mode(IntEnum):
    """Global routing policy, encoded in CONTROL bits[1:0]."""

    MAIN = 0
    SECONDARY = 1
    SHARE = 2
    RESERVED = 3


class Target(IntEnum):
    """Downstream storage target."""

    MAIN = 0
    SECONDARY = 1


class Host(IntEnum):
    """Upstream bus master."""

    HOST_A = 0
    HOST_B = 1


@dataclass(frozen=True)
class RangeConfig:
    """One inclusive address range mapped to a target.

    A range whose start is above its end is legal and never matches.
    """

    start: int = ADDR_MASK
    end: int = ADDR_MASK
    enabled: bool = False
    target: Target = Target.MAIN

    def contains(self, addr: int) -> bool:
        """True if the range is enabled and addr lies in [start, end]."""
        return self.enabled and self.start <= addr <= self.end


@dataclass(frozen=True)
class ControlState:
    """Decoded CONTROL register."""

    mode: Mode = Mode.MAIN
    range0_enabled: bool = False
    range1_enabled: bool = False
    range0_target: Target = Target.MAIN
    range1_target: Target = Target.MAIN
    active_host: Host = Host.HOST_A

    @classmethod
    def from_byte(cls, value: int) -> ControlState:
        """Decode a CONTROL byte. Bit 7 is reserved and ignored."""
        return cls(
            mode=Mode(value & _CTRL_MODE_MASK),
            range0_enabled=bool(value & _CTRL_R0_EN),
            range1_enabled=bool(value & _CTRL_R1_EN),
            range0_target=Target(1 if value & _CTRL_R0_TARGET else 0),
            range1_target=Target(1 if value & _CTRL_R1_TARGET else 0),
            active_host=Host(1 if value & _CTRL_HOST else 0),
        )

    def to_byte(self) -> int:
        """Encode back into a CONTROL byte (reserved bit clear)."""
        value = int(self.mode)
        if self.range0_enabled:
            value |= _CTRL_R0_EN
        if self.range1_enabled:
            value |= _CTRL_R1_EN
        if self.range0_target == Target.SECONDARY:
            value |= _CTRL_R0_TARGET
        if self.range1_target == Target.SECONDARY:
            value |= _CTRL_R1_TARGET
        if self.active_host == Host.HOST_B:
            value |= _CTRL_HOST
        return value


@dataclass(frozen=True)
class RouteConfig:
    """Immutable snapshot of everything the routing domain consumes."""

    control: ControlState = field(default_factory=ControlState)
    range0: RangeConfig = field(default_factory=RangeConfig)
    range1: RangeConfig = field(default_factory=RangeConfig)

    @classmethod
    def from_registers(cls, regs: bytes | bytearray | list[int]) -> RouteConfig:
        """Build a snapshot from the 12 range bytes and the CONTROL byte."""
        control = ControlState.from_byte(regs[REG_CONTROL])
        range0 = RangeConfig(
            start=_read24(regs, REG_R0_START),
            end=_read24(regs, REG_R0_END),
            enabled=control.range0_enabled,
            target=control.range0_target,
        )
        range1 = RangeConfig(
            start=_read24(regs, REG_R1_START),
            end=_read24(regs, REG_R1_END),
            enabled=control.range1_enabled,
            target=control.range1_target,
        )
        return cls(control=control, range0=range0, range1=range1)


def _read24(regs: bytes | bytearray | list[int], base: int) -> int:
    """Assemble a big-endian 24-bit value from three register bytes."""
    return (regs[base] << 16) | (regs[base + 1] << 8) | regs[base + 2]


def _reset_values() -> list[int]:
    values = [RANGE_RESET] * 12
    values.append(CONTROL_RESET)
    values.append(STATUS_RESET)
    return values


class RegisterFile:
    """The router's 14 one-byte configuration registers.

    Writes land in the management domain immediately. The routing domain
    reads ``visible``, a RouteConfig snapshot that trails the committed
    registers by PROPAGATION_STEPS calls to ``tick()``. Every step pushes
    exactly one snapshot, so consecutive commits become visible in order
    and are never merged.
    """

    def __init__(self) -> None:
        self._regs: list[int] = _reset_values()
        self._pipeline: deque[RouteConfig] = deque()
        self._latest: RouteConfig | None = None
        self.visible = RouteConfig()
        self.reset()

    def reset(self) -> None:
        """Restore documented defaults in both domains at once."""
        self._regs = _reset_values()
        snapshot = RouteConfig.from_registers(self._regs)
        self._latest = snapshot
        self._pipeline = deque([snapshot] * PROPAGATION_STEPS)
        self.visible = snapshot

    def read(self, addr: int) -> int:
        """Read a register. Undefined addresses return 0xFF."""
        if not 0 <= addr <= 0xFF:
            raise ValueError(f"Register address out of range: 0x{addr:X}")
        if addr >= NUM_REGS:
            return UNDEFINED_READ
        return self._regs[addr]

    def write(self, addr: int, value: int) -> bool:
        """Commit a full byte to a register.

        Writes to STATUS and to undefined addresses are dropped.

        Returns:
            True if the write was applied.
        """
        if not 0 <= addr <= 0xFF:
            raise ValueError(f"Register address out of range: 0x{addr:X}")
        if not 0 <= value <= 0xFF:
            raise ValueError(f"Register value out of range: 0x{value:X}")
        if addr >= REG_STATUS:
            logger.debug("dropped write 0x%02X to register 0x%02X", value, addr)
            return False
        self._regs[addr] = value
        self._latest = None
        logger.debug("%s <= 0x%02X", REG_NAMES[addr], value)
        return True

    def set_status(self, value: int) -> None:
        """Refresh the read-only STATUS byte from the router's flags."""
        self._regs[REG_STATUS] = value & 0xFF

    @property
    def control(self) -> ControlState:
        """CONTROL as committed in the management domain."""
        return ControlState.from_byte(self._regs[REG_CONTROL])

    def snapshot(self) -> list[int]:
        """Copy of all 14 register bytes."""
        return list(self._regs)

    def tick(self) -> RouteConfig:
        """Advance the propagation pipeline by one step.

        The snapshot taken now becomes ``visible`` PROPAGATION_STEPS
        ticks later.

        Returns:
            The RouteConfig visible to the routing domain for this step.
        """
        if self._latest is None:
            self._latest = RouteConfig.from_registers(self._regs)
        self._pipeline.append(self._latest)
        self.visible = self._pipeline.popleft()
        return self.visible
