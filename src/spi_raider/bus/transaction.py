"""Transaction records and the optional observer interface."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from ..config.registers import Host, Target

# Host-facing opcodes
OP_WRITE = 0x02
OP_READ = 0x03
OP_FAST_READ = 0x0B

READ_OPCODES = frozenset({OP_READ, OP_FAST_READ})

OPCODE_NAMES: dict[int, str] = {
    OP_WRITE: "WRITE",
    OP_READ: "READ",
    OP_FAST_READ: "FAST_READ",
}


def opcode_name(opcode: int | None) -> str:
    """Mnemonic for an opcode, or a hex literal for unknown ones."""
    if opcode is None:
        return "-"
    return OPCODE_NAMES.get(opcode, f"0x{opcode:02X}")


@dataclass
class Transaction:
    """One chip-select-framed host transaction as reconstructed by the decoder.

    Fields stay None until the corresponding bytes have been clocked in.
    ``payload`` holds complete data bytes only: bytes returned to the host
    for reads, bytes received from the host otherwise.
    """

    host: Host
    opened_at: int
    opcode: int | None = None
    address: int | None = None
    payload: list[int] = field(default_factory=list)
    target: Target | None = None
    closed_at: int | None = None

    @property
    def is_read(self) -> bool:
        return self.opcode in READ_OPCODES


@dataclass(frozen=True)
class TargetAccess:
    """What one target saw of a routed transaction."""

    target: Target
    opcode: int
    address: int
    payload: tuple[int, ...]


class Observer(Protocol):
    """Consumer of reconstructed traffic, e.g. a scoreboard or a logger."""

    def on_transaction(self, txn: Transaction) -> None:
        ...

    def on_target_access(self, access: TargetAccess) -> None:
        ...
