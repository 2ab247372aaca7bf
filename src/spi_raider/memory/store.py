"""Backing stores: sparse byte-addressable flash models for both targets."""

from __future__ import annotations

from ..config.registers import ADDR_MASK, Target


def default_byte(target: Target, addr: int) -> int:
    """Value of a never-written byte.

    Main reads back the low address byte, Secondary its complement, so a
    golden model can tell the two stores apart without preloading them.
    """
    if target == Target.SECONDARY:
        return ~addr & 0xFF
    return addr & 0xFF


class FlashStore:
    """One target's 24-bit byte-addressable store.

    Only written bytes are kept; everything else reads as the
    deterministic default fill.
    """

    def __init__(self, target: Target) -> None:
        self.target = target
        self._data: dict[int, int] = {}

    def _check(self, addr: int) -> int:
        if not 0 <= addr <= ADDR_MASK:
            raise MemoryError(f"Access out of bounds: 0x{addr:X}")
        return addr

    def read8(self, addr: int) -> int:
        """Read an unsigned byte."""
        addr = self._check(addr)
        return self._data.get(addr, default_byte(self.target, addr))

    def write8(self, addr: int, value: int) -> None:
        """Write a byte."""
        addr = self._check(addr)
        self._data[addr] = value & 0xFF


class TargetStores:
    """The two backing stores addressed by Target."""

    def __init__(self) -> None:
        self._stores: dict[Target, FlashStore] = {
            Target.MAIN: FlashStore(Target.MAIN),
            Target.SECONDARY: FlashStore(Target.SECONDARY),
        }

    def get(self, target: Target, addr: int) -> int:
        return self._stores[target].read8(addr)

    def set(self, target: Target, addr: int, value: int) -> None:
        self._stores[target].write8(addr, value)
