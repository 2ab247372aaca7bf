"""Management channel: the register file's own serial byte protocol."""

from __future__ import annotations

import logging
from enum import Enum

from ..bus.shifter import ByteShifter
from ..bus.signals import EdgeDetector, Pins
from .registers import RegisterFile

logger = logging.getLogger(__name__)

# Management opcodes
MGMT_WRITE = 0x02
MGMT_READ = 0x03


class _Phase(Enum):
    IDLE = "idle"
    CMD = "cmd"
    ADDR = "addr"
    DATA = "data"
    DONE = "done"


class ManagementPort:
    """Slave side of the management channel.

    Write: ``0x02, addr, data``. Read: ``0x03, addr, dummy``; the register
    value is shifted out MSB-first while the dummy byte is clocked in.
    Any other opcode, and any byte after the last one a command defines,
    is ignored. There is no acknowledgement on the wire.
    """

    def __init__(self, registers: RegisterFile) -> None:
        self._registers = registers
        self._edges = EdgeDetector()
        self._shifter = ByteShifter()
        self._phase = _Phase.IDLE
        self._opcode = 0
        self._reg_addr = 0
        self._loaded = False

    def reset(self) -> None:
        self._edges.reset()
        self._shifter.clear()
        self._phase = _Phase.IDLE

    @property
    def miso(self) -> int:
        return self._shifter.miso

    def step(self, pins: Pins) -> None:
        """Advance one step on the settled management pins."""
        edges = self._edges.update(pins)
        if not pins.selected:
            if self._phase != _Phase.IDLE:
                self._phase = _Phase.IDLE
                self._shifter.clear()
            return

        if self._phase == _Phase.IDLE:
            self._phase = _Phase.CMD
            self._shifter.clear()
            self._loaded = False
        if edges.falling:
            self._on_falling()
        if edges.rising:
            value = self._shifter.shift_in(pins.mosi)
            if value is not None:
                self._on_byte(value)

    def _on_byte(self, value: int) -> None:
        if self._phase == _Phase.CMD:
            self._opcode = value
            if value in (MGMT_WRITE, MGMT_READ):
                self._phase = _Phase.ADDR
            else:
                logger.debug("management opcode 0x%02X ignored", value)
                self._phase = _Phase.DONE
        elif self._phase == _Phase.ADDR:
            self._reg_addr = value
            self._phase = _Phase.DATA
        elif self._phase == _Phase.DATA:
            if self._opcode == MGMT_WRITE:
                self._registers.write(self._reg_addr, value)
            self._phase = _Phase.DONE

    def _on_falling(self) -> None:
        if self._phase == _Phase.DATA and self._opcode == MGMT_READ:
            if not self._loaded:
                self._shifter.load(self._registers.read(self._reg_addr))
                self._loaded = True
            self._shifter.shift_out()
        elif self._phase == _Phase.DONE:
            self._shifter.idle()
