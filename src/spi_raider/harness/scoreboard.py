"""Golden-model scoreboard: predicts routing and data for observed traffic."""

from __future__ import annotations

import logging

from ..bus.transaction import OP_WRITE, READ_OPCODES, TargetAccess, Transaction, opcode_name
from ..config.registers import ADDR_MASK, Target

logger = logging.getLogger(__name__)

# Shadow register layout: two ranges of six bytes (start then end, each
# 24-bit big-endian), then CONTROL.
_RANGE0_BASE = 0
_RANGE1_BASE = 6
_CONTROL = 12
_RESET_REGS = [0xFF] * _CONTROL + [0x00]

# CONTROL fields
_MODE_MASK = 0x3
_MODE_SECONDARY = 1
_MODE_SHARE = 2
# (range base, enable bit, target bit), highest priority first
_RANGES = ((_RANGE0_BASE, 2, 4), (_RANGE1_BASE, 3, 5))


class Scoreboard:
    """Reference model of the router, fed by the bench and the router.

    Keeps its own copy of the writable registers (from completed
    management writes) and of both stores (from completed host writes),
    and checks every TargetAccess against them. It shares no code with
    the router's resolver or stores. With ``checking`` off, accesses only
    update the model at the target actually observed.
    """

    def __init__(self) -> None:
        self.regs: list[int] = list(_RESET_REGS)
        self.memory: dict[tuple[Target, int], int] = {}
        self.transactions: list[Transaction] = []
        self.accesses: list[TargetAccess] = []
        self.errors: list[str] = []
        self.checking = True

    @property
    def passed(self) -> bool:
        return not self.errors

    def reset_config(self) -> None:
        self.regs = list(_RESET_REGS)

    def on_reg_write(self, addr: int, value: int) -> None:
        if addr < len(self.regs):
            self.regs[addr] = value & 0xFF

    def _range(self, base: int) -> tuple[int, int]:
        r = self.regs
        start = (r[base] << 16) | (r[base + 1] << 8) | r[base + 2]
        end = (r[base + 3] << 16) | (r[base + 4] << 8) | r[base + 5]
        return start, end

    def predict_target(self, is_read: bool, addr: int) -> Target:
        ctrl = self.regs[_CONTROL]
        mode = ctrl & _MODE_MASK
        fallback = Target.SECONDARY if mode == _MODE_SECONDARY else Target.MAIN
        if mode != _MODE_SHARE or not is_read:
            return fallback
        for base, en_bit, tgt_bit in _RANGES:
            start, end = self._range(base)
            if ctrl >> en_bit & 1 and start <= addr <= end:
                return Target(ctrl >> tgt_bit & 1)
        return fallback

    def expected_byte(self, target: Target, addr: int) -> int:
        if (target, addr) in self.memory:
            return self.memory[(target, addr)]
        if target == Target.SECONDARY:
            return ~addr & 0xFF
        return addr & 0xFF

    def expected_read(self, target: Target, addr: int, length: int) -> list[int]:
        return [self.expected_byte(target, (addr + i) & ADDR_MASK) for i in range(length)]

    def on_transaction(self, txn: Transaction) -> None:
        self.transactions.append(txn)

    def on_target_access(self, access: TargetAccess) -> None:
        self.accesses.append(access)
        is_read = access.opcode in READ_OPCODES
        target = access.target
        if self.checking:
            expected = self.predict_target(is_read, access.address)
            if access.target != expected:
                self._error(
                    f"{opcode_name(access.opcode)} @ 0x{access.address:06X} routed to "
                    f"{access.target.name}, expected {expected.name}"
                )
                target = expected
            if is_read:
                want = self.expected_read(target, access.address, len(access.payload))
                if list(access.payload) != want:
                    self._error(
                        f"{opcode_name(access.opcode)} @ 0x{access.address:06X} returned "
                        f"{_hex(access.payload)}, expected {_hex(want)}"
                    )
        if access.opcode == OP_WRITE:
            for i, value in enumerate(access.payload):
                self.memory[(target, (access.address + i) & ADDR_MASK)] = value

    def _error(self, message: str) -> None:
        logger.error("scoreboard: %s", message)
        self.errors.append(message)


def _hex(values: tuple[int, ...] | list[int]) -> str:
    return " ".join(f"{v:02X}" for v in values)
