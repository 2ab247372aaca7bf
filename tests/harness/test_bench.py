"""Tests for the stimulus bench and its serial masters."""

import pytest

from spi_raider.bus.signals import IDLE_PINS
from spi_raider.config.registers import Host
from spi_raider.harness.bench import Bench, Port, wait


class TestBenchRun:
    """Cooperative scheduling of master processes."""

    def test_idle_advances_clock(self, bench) -> None:
        bench.idle(5)
        assert bench.router.now == 5

    def test_results_in_argument_order(self, bench) -> None:
        def answer(value, steps):
            yield from wait(steps)
            return value

        assert bench.run(answer("slow", 6), answer("fast", 1)) == ["slow", "fast"]

    def test_steps_follow_longest_process(self, bench) -> None:
        bench.run(wait(3), wait(7))
        assert bench.router.now == 7

    def test_max_steps(self, bench) -> None:
        with pytest.raises(RuntimeError):
            bench.run(wait(10), max_steps=3)

    def test_bad_half_period(self) -> None:
        with pytest.raises(ValueError):
            Bench(half_period=0)


class TestSpiMaster:
    """Bit-banged frames as seen through the router."""

    def test_master_for_host(self, bench) -> None:
        assert bench.master(Host.HOST_B).port == Port.HOST_B
        assert bench.master(Port.MGMT).port == Port.MGMT

    def test_read_default_fill(self, bench) -> None:
        assert bench.do(bench.master(Port.HOST_A).read(0x000123, 4)) == [0x23, 0x24, 0x25, 0x26]

    def test_pins_return_to_idle(self, bench) -> None:
        bench.do(bench.master(Port.HOST_A).read(0x10, 1))
        assert bench.pins[Port.HOST_A] == IDLE_PINS

    def test_address_too_wide(self, bench) -> None:
        with pytest.raises(ValueError):
            bench.do(bench.master(Port.HOST_A).read(0x1000000, 1))

    def test_byte_out_of_range(self, bench) -> None:
        with pytest.raises(ValueError):
            bench.do(bench.master(Port.HOST_A).transfer([0x100]))

    def test_concurrent_host_and_management(self, bench) -> None:
        host = bench.master(Port.HOST_A)
        mgmt = bench.master(Port.MGMT)
        data, control = bench.run(host.read(0x000200, 2), mgmt.read_reg(0x0C))
        assert data == [0x00, 0x01]
        assert control == 0x00

    def test_reg_listeners(self, bench) -> None:
        seen = []
        bench.reg_listeners.append(lambda addr, value: seen.append((addr, value)))
        bench.do(bench.master(Port.MGMT).write_reg(0x00, 0x12))
        assert seen == [(0x00, 0x12)]


class TestBenchReset:
    def test_reset_restores_registers_and_notifies(self, bench) -> None:
        calls = []
        bench.reset_listeners.append(lambda: calls.append(True))
        mgmt = bench.master(Port.MGMT)
        bench.do(mgmt.write_reg(0x0C, 0x02))
        bench.reset()
        assert calls == [True]
        assert bench.pins[Port.MGMT] == IDLE_PINS
        assert bench.do(mgmt.read_reg(0x0C)) == 0x00
