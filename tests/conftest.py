"""Shared fixtures: benches, configuration helpers and scripted pin sequences."""

import pytest

from spi_raider.bus.signals import Pins
from spi_raider.harness.bench import Bench, Port
from spi_raider.router import Router


@pytest.fixture
def make_bench():
    """Factory fixture: returns a function that creates a fresh Bench."""
    def _make(half_period: int = 2, router: Router | None = None) -> Bench:
        return Bench(router=router, half_period=half_period)
    return _make


@pytest.fixture
def bench(make_bench) -> Bench:
    return make_bench()


@pytest.fixture
def configure():
    """Write range registers and CONTROL over the management port, then settle."""
    def _configure(bench: Bench, control: int, regs: dict[int, int] | None = None) -> None:
        mgmt = bench.master(Port.MGMT)
        for addr, value in (regs or {}).items():
            bench.do(mgmt.write_reg(addr, value))
        bench.do(mgmt.write_reg(0x0C, control))
        bench.idle(8)
    return _configure


@pytest.fixture
def frame_pins():
    """Settled-pin sequence for one chip-select frame, one step per clock phase."""
    def _frame(data: list[int]) -> list[Pins]:
        pins = [Pins(cs_n=0, sclk=0, mosi=0)]
        for value in data:
            for shift in range(7, -1, -1):
                bit = (value >> shift) & 1
                pins.append(Pins(cs_n=0, sclk=0, mosi=bit))
                pins.append(Pins(cs_n=0, sclk=1, mosi=bit))
        pins.append(Pins(cs_n=0, sclk=0, mosi=0))
        pins.append(Pins(cs_n=1, sclk=0, mosi=0))
        return pins
    return _frame
