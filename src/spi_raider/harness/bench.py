"""Stimulus bench: bit-banging serial masters driving a Router step by step."""

from __future__ import annotations

from collections.abc import Callable, Generator, Sequence
from enum import Enum
from typing import Any

from ..bus.signals import IDLE_PINS, Pins
from ..bus.transaction import OP_FAST_READ, OP_READ, OP_WRITE
from ..config.management import MGMT_READ, MGMT_WRITE
from ..config.registers import ADDR_MASK, Host
from ..router import Router, RouterOutputs

# Steps each clock phase is held for
HALF_PERIOD = 2

# Upper bound on steps for one Bench.run() call
MAX_STEPS = 1_000_000

Proc = Generator[None, None, Any]


class Port(Enum):
    HOST_A = "host_a"
    HOST_B = "host_b"
    MGMT = "mgmt"


def _addr_bytes(addr: int) -> list[int]:
    if not 0 <= addr <= ADDR_MASK:
        raise ValueError(f"Address does not fit in 24 bits: 0x{addr:X}")
    return [(addr >> 16) & 0xFF, (addr >> 8) & 0xFF, addr & 0xFF]


def wait(steps: int) -> Proc:
    """Process that does nothing for ``steps`` steps."""
    for _ in range(steps):
        yield


class Bench:
    """Owns a Router and the pin levels every master currently drives.

    Masters are generators: each one sets its pins and yields once per
    step. ``run()`` advances every live generator by one yield, then ticks
    the router, until all of them have returned.
    """

    def __init__(self, router: Router | None = None, half_period: int = HALF_PERIOD) -> None:
        if half_period < 1:
            raise ValueError(f"half_period must be at least 1, got {half_period}")
        self.router = router if router is not None else Router()
        self.half_period = half_period
        self.pins: dict[Port, Pins] = {port: IDLE_PINS for port in Port}
        self.outputs = RouterOutputs()
        self.reg_listeners: list[Callable[[int, int], None]] = []
        self.reset_listeners: list[Callable[[], None]] = []

    def master(self, port: Port | Host) -> SpiMaster:
        if isinstance(port, Host):
            port = Port.HOST_A if port == Host.HOST_A else Port.HOST_B
        return SpiMaster(self, port)

    def tick(self) -> RouterOutputs:
        self.outputs = self.router.step(
            self.pins[Port.HOST_A], self.pins[Port.HOST_B], self.pins[Port.MGMT]
        )
        return self.outputs

    def miso(self, port: Port) -> int:
        if port == Port.MGMT:
            return self.outputs.mgmt_miso
        if port == Port.HOST_A:
            return self.outputs.miso_a
        return self.outputs.miso_b

    def run(self, *procs: Proc, max_steps: int = MAX_STEPS) -> list[Any]:
        """Run processes concurrently until every one has finished.

        Returns:
            Each process's return value, in argument order.

        Raises:
            RuntimeError: If the processes are still running after
                ``max_steps`` steps.
        """
        results: list[Any] = [None] * len(procs)
        live = dict(enumerate(procs))
        steps = 0
        while live:
            for index, proc in list(live.items()):
                try:
                    next(proc)
                except StopIteration as stop:
                    results[index] = stop.value
                    del live[index]
            if not live:
                break
            self.tick()
            steps += 1
            if steps > max_steps:
                raise RuntimeError(f"Bench did not finish within {max_steps} steps")
        return results

    def do(self, proc: Proc) -> Any:
        """Run a single process and return its result."""
        return self.run(proc)[0]

    def idle(self, steps: int) -> None:
        self.run(wait(steps))

    def reset(self) -> None:
        """Reset the router and return every port to idle."""
        self.router.reset()
        self.pins = {port: IDLE_PINS for port in Port}
        self.outputs = RouterOutputs()
        for listener in self.reset_listeners:
            listener()


class SpiMaster:
    """Mode-0 serial master on one bench port.

    MOSI changes while the clock is low; MISO is sampled at the end of
    each high phase. Every method returns a process for ``Bench.run``.
    """

    def __init__(self, bench: Bench, port: Port) -> None:
        self.bench = bench
        self.port = port

    def _drive(self, cs_n: int, sclk: int, mosi: int) -> Proc:
        self.bench.pins[self.port] = Pins(cs_n=cs_n, sclk=sclk, mosi=mosi)
        for _ in range(self.bench.half_period):
            yield

    def _clock_bit(self, bit: int) -> Generator[None, None, int]:
        yield from self._drive(0, 0, bit)
        yield from self._drive(0, 1, bit)
        return self.bench.miso(self.port)

    def transfer(
        self,
        data: Sequence[int],
        partial_bits: int = 0,
        hold: int = 0,
    ) -> Generator[None, None, list[int]]:
        """Frame ``data`` under one chip-select and return the bytes read back.

        Args:
            data: Bytes to send, MSB first.
            partial_bits: Extra 1-bits clocked after ``data`` and abandoned
                by releasing chip-select mid-byte.
            hold: Extra steps to keep chip-select asserted before release.
        """
        received: list[int] = []
        yield from self._drive(0, 0, 0)
        for value in data:
            if not 0 <= value <= 0xFF:
                raise ValueError(f"Byte out of range: {value}")
            rx = 0
            for shift in range(7, -1, -1):
                bit = yield from self._clock_bit((value >> shift) & 1)
                rx = (rx << 1) | bit
            received.append(rx)
        for _ in range(partial_bits):
            yield from self._clock_bit(1)
        yield from self._drive(0, 0, 0)
        yield from wait(hold)
        yield from self._drive(1, 0, 0)
        self.bench.pins[self.port] = IDLE_PINS
        return received

    # Host-port commands

    def read(self, addr: int, length: int) -> Generator[None, None, list[int]]:
        frame = [OP_READ, *_addr_bytes(addr)] + [0] * length
        received = yield from self.transfer(frame)
        return received[4:]

    def fast_read(self, addr: int, length: int) -> Generator[None, None, list[int]]:
        frame = [OP_FAST_READ, *_addr_bytes(addr), 0] + [0] * length
        received = yield from self.transfer(frame)
        return received[5:]

    def write(self, addr: int, payload: Sequence[int]) -> Generator[None, None, list[int]]:
        received = yield from self.transfer([OP_WRITE, *_addr_bytes(addr), *payload])
        return received

    def command(
        self, opcode: int, addr: int, payload: Sequence[int] = ()
    ) -> Generator[None, None, list[int]]:
        received = yield from self.transfer([opcode, *_addr_bytes(addr), *payload])
        return received[4:]

    # Management-port commands

    def write_reg(self, addr: int, value: int) -> Generator[None, None, None]:
        yield from self.transfer([MGMT_WRITE, addr, value])
        for listener in self.bench.reg_listeners:
            listener(addr, value)

    def read_reg(self, addr: int) -> Generator[None, None, int]:
        received = yield from self.transfer([MGMT_READ, addr, 0])
        return received[2]
