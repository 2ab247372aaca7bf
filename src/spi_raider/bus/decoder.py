"""Bit-level transaction decoder for the shared host bus."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum

from ..config.registers import ADDR_MASK, Host, Target
from .shifter import ByteShifter
from .signals import EdgeDetector, Pins
from .transaction import OP_FAST_READ, OP_WRITE, Transaction, opcode_name

logger = logging.getLogger(__name__)

ADDR_BYTES = 3

RouteFn = Callable[[bool, int], Target]
FetchFn = Callable[[int], int]
CommitFn = Callable[[int, int], None]


class DecoderState(Enum):
    IDLE = "idle"
    CMD = "cmd"
    ADDR = "addr"
    DUMMY = "dummy"
    DATA = "data"


class TransactionDecoder:
    """Reconstructs host transactions from settled bus pins.

    Walks ``IDLE -> CMD -> ADDR -> (DUMMY) -> DATA`` one byte at a time.
    The route callback runs exactly once per transaction, as soon as the
    third address byte is in; its answer is stored on the Transaction and
    never re-evaluated. Dropping chip-select returns to IDLE at once:
    bytes already committed stay committed and a partial byte is lost.

    Args:
        route: Called with (is_read, address); returns the frozen target.
        fetch: Reads one response byte from the frozen target.
        commit: Writes one payload byte to the frozen target.
    """

    def __init__(self, route: RouteFn, fetch: FetchFn, commit: CommitFn) -> None:
        self._route = route
        self._fetch = fetch
        self._commit = commit
        self._edges = EdgeDetector()
        self._shifter = ByteShifter()
        self.state = DecoderState.IDLE
        self.txn: Transaction | None = None
        self._addr = 0
        self._addr_count = 0
        self._cursor = 0
        self._tx_byte = 0

    def reset(self) -> None:
        self._edges.reset()
        self._shifter.clear()
        self.state = DecoderState.IDLE
        self.txn = None

    @property
    def miso(self) -> int:
        return self._shifter.miso

    def step(self, pins: Pins, host: Host, now: int) -> Transaction | None:
        """Advance one step on settled pins.

        Args:
            pins: Settled pins of the shared bus.
            host: Host currently driving the shared bus.
            now: Global step counter, used for timestamps.

        Returns:
            The finished Transaction on the step chip-select drops,
            otherwise None.
        """
        edges = self._edges.update(pins)
        if not pins.selected:
            if self.state != DecoderState.IDLE:
                return self._close(now)
            return None

        txn = self.txn
        if txn is None:
            txn = self._open(host, now)
        if edges.falling:
            self._on_falling(txn)
        if edges.rising:
            value = self._shifter.shift_in(pins.mosi)
            if value is not None:
                self._on_byte(txn, value)
        return None

    def _open(self, host: Host, now: int) -> Transaction:
        txn = Transaction(host=host, opened_at=now)
        self.txn = txn
        self.state = DecoderState.CMD
        self._shifter.clear()
        self._addr = 0
        self._addr_count = 0
        logger.debug("%s: transaction opened at step %d", host.name, now)
        return txn

    def _close(self, now: int) -> Transaction | None:
        txn = self.txn
        self.state = DecoderState.IDLE
        self._shifter.clear()
        self.txn = None
        if txn is not None:
            txn.closed_at = now
            logger.debug(
                "%s: %s @ 0x%06X -> %s, %d bytes, closed at step %d",
                txn.host.name, opcode_name(txn.opcode),
                txn.address if txn.address is not None else 0,
                txn.target.name if txn.target is not None else "-",
                len(txn.payload), now,
            )
        return txn

    def _on_byte(self, txn: Transaction, value: int) -> None:
        if self.state == DecoderState.CMD:
            txn.opcode = value
            self.state = DecoderState.ADDR
        elif self.state == DecoderState.ADDR:
            self._addr = (self._addr << 8) | value
            self._addr_count += 1
            if self._addr_count == ADDR_BYTES:
                txn.address = self._addr
                self._cursor = self._addr
                txn.target = self._route(txn.is_read, self._addr)
                if txn.opcode == OP_FAST_READ:
                    self.state = DecoderState.DUMMY
                else:
                    self.state = DecoderState.DATA
        elif self.state == DecoderState.DUMMY:
            self.state = DecoderState.DATA
        elif self.state == DecoderState.DATA:
            if txn.is_read:
                txn.payload.append(self._tx_byte)
            else:
                txn.payload.append(value)
                if txn.opcode == OP_WRITE:
                    self._commit(self._cursor, value)
                self._cursor = (self._cursor + 1) & ADDR_MASK

    def _on_falling(self, txn: Transaction) -> None:
        if self.state != DecoderState.DATA or not txn.is_read:
            return
        if self._shifter.tx_empty:
            self._tx_byte = self._fetch(self._cursor)
            self._cursor = (self._cursor + 1) & ADDR_MASK
            self._shifter.load(self._tx_byte)
        self._shifter.shift_out()
