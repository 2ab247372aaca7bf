"""End-to-end tests for the router driven through the bench."""

from spi_raider.bus.signals import IDLE_PINS, Pins
from spi_raider.bus.transaction import OP_WRITE
from spi_raider.config.registers import (
    REG_CONTROL,
    REG_STATUS,
    STATUS_CONTENTION,
    STATUS_CONTENTION_SEEN,
    STATUS_TARGET_PENDING,
    Host,
    Mode,
    Target,
)
from spi_raider.harness.bench import Port, wait
from spi_raider.router import Router

SELECTED = Pins(cs_n=0)

# Range0 = 0x000000-0x000FFF
RANGE0_LOW = {0x00: 0x00, 0x01: 0x00, 0x02: 0x00, 0x03: 0x00, 0x04: 0x0F, 0x05: 0xFF}


class Recorder:
    """Observer that keeps everything it is handed."""

    def __init__(self) -> None:
        self.transactions = []
        self.accesses = []

    def on_transaction(self, txn) -> None:
        self.transactions.append(txn)

    def on_target_access(self, access) -> None:
        self.accesses.append(access)


class TestModes:
    """Routing by global mode."""

    def test_main_mode_default_fill(self, bench) -> None:
        host = bench.master(Port.HOST_A)
        assert bench.do(host.read(0x000123, 4)) == [0x23, 0x24, 0x25, 0x26]

    def test_secondary_mode(self, bench, configure) -> None:
        configure(bench, 0x01)
        host = bench.master(Port.HOST_A)
        assert bench.do(host.read(0x000123, 4)) == [0xDC, 0xDB, 0xDA, 0xD9]

    def test_reserved_mode_uses_main(self, bench, configure) -> None:
        configure(bench, 0x03)
        host = bench.master(Port.HOST_A)
        assert bench.do(host.read(0x000010, 2)) == [0x10, 0x11]
        assert bench.router.target_mux.mode == Mode.RESERVED
        assert bench.router.target_mux.enabled(Target.MAIN)
        assert not bench.router.target_mux.enabled(Target.SECONDARY)

    def test_share_range_routing(self, bench, configure) -> None:
        # Share, range0 enabled, range0 -> Secondary
        configure(bench, 0x16, RANGE0_LOW)
        host = bench.master(Port.HOST_A)
        assert bench.do(host.read(0x000100, 2)) == [0xFF, 0xFE]
        assert bench.do(host.read(0x002000, 2)) == [0x00, 0x01]

    def test_share_write_goes_to_default(self, bench, configure) -> None:
        configure(bench, 0x16, RANGE0_LOW)
        host = bench.master(Port.HOST_A)
        bench.do(host.write(0x000010, [0xAA]))
        stores = bench.router.stores
        assert stores.get(Target.MAIN, 0x10) == 0xAA
        assert stores.get(Target.SECONDARY, 0x10) == 0xEF


class TestDataPath:
    def test_write_read_round_trip(self, bench) -> None:
        host = bench.master(Port.HOST_A)
        bench.do(host.write(0x001234, [1, 2, 3]))
        assert bench.do(host.read(0x001234, 3)) == [1, 2, 3]

    def test_fast_read(self, bench) -> None:
        host = bench.master(Port.HOST_A)
        assert bench.do(host.fast_read(0x000040, 2)) == [0x40, 0x41]

    def test_abort_keeps_committed_bytes(self, bench) -> None:
        host = bench.master(Port.HOST_A)
        bench.do(host.transfer([OP_WRITE, 0x00, 0x00, 0x50, 0x11, 0x22], partial_bits=3))
        stores = bench.router.stores
        assert [stores.get(Target.MAIN, 0x50 + i) for i in range(3)] == [0x11, 0x22, 0x52]

    def test_unknown_opcode_commits_nothing(self, bench) -> None:
        host = bench.master(Port.HOST_A)
        bench.do(host.command(0x9F, 0x000030, [0x77]))
        assert bench.router.stores.get(Target.MAIN, 0x30) == 0x30

    def test_reset_leaves_stores(self, bench) -> None:
        host = bench.master(Port.HOST_A)
        bench.do(host.write(0x000020, [0x99]))
        bench.reset()
        assert bench.do(host.read(0x000020, 1)) == [0x99]


class TestObservers:
    def test_records_transactions_and_accesses(self, bench) -> None:
        recorder = Recorder()
        bench.router.attach(recorder)
        bench.do(bench.master(Port.HOST_A).read(0x000400, 2))
        assert len(recorder.transactions) == 1
        txn = recorder.transactions[0]
        assert txn.host == Host.HOST_A
        assert txn.address == 0x000400
        assert txn.target == Target.MAIN
        assert txn.closed_at > txn.opened_at
        assert recorder.accesses[0].payload == (0x00, 0x01)

    def test_management_traffic_not_observed(self, bench) -> None:
        recorder = Recorder()
        bench.router.attach(recorder)
        bench.do(bench.master(Port.MGMT).write_reg(0x00, 0x12))
        assert recorder.transactions == []

    def test_aborted_address_has_no_access(self, bench) -> None:
        recorder = Recorder()
        bench.router.attach(recorder)
        bench.do(bench.master(Port.HOST_A).transfer([0x03, 0x00], partial_bits=3))
        assert len(recorder.transactions) == 1
        assert recorder.accesses == []


class TestHostSelection:
    def test_host_b_selected(self, bench, configure) -> None:
        configure(bench, 0x40)
        recorder = Recorder()
        bench.router.attach(recorder)
        assert bench.do(bench.master(Port.HOST_A).read(0x10, 2)) == [0xFF, 0xFF]
        assert bench.do(bench.master(Port.HOST_B).read(0x10, 2)) == [0x10, 0x11]
        assert [t.host for t in recorder.transactions] == [Host.HOST_B]

    def test_contention_status(self) -> None:
        router = Router()
        router.step(SELECTED, SELECTED)
        router.step(SELECTED, SELECTED)
        assert router.status() & STATUS_CONTENTION
        assert router.registers.read(REG_STATUS) & STATUS_CONTENTION
        router.step(IDLE_PINS, IDLE_PINS)
        router.step(IDLE_PINS, IDLE_PINS)
        assert not router.status() & STATUS_CONTENTION
        assert router.status() & STATUS_CONTENTION_SEEN


class TestTargetSwitch:
    def test_mode_change_waits_for_idle_bus(self) -> None:
        router = Router()
        router.step(SELECTED)
        router.registers.write(REG_CONTROL, int(Mode.SECONDARY))
        for _ in range(4):
            router.step(SELECTED)
        assert router.target_mux.mode == Mode.MAIN
        assert router.status() & STATUS_TARGET_PENDING
        for _ in range(3):
            router.step(IDLE_PINS)
        assert router.target_mux.mode == Mode.SECONDARY
        assert not router.status() & STATUS_TARGET_PENDING

    def test_config_visible_after_two_steps(self) -> None:
        router = Router()
        router.registers.write(REG_CONTROL, int(Mode.SHARE))
        router.step()
        assert router.registers.visible.control.mode == Mode.MAIN
        router.step()
        assert router.registers.visible.control.mode == Mode.SHARE


def _after(steps: int, proc):
    yield from wait(steps)
    return (yield from proc)


class TestMidTransactionConfig:
    """CONTROL written after chip-select but before the address completes."""

    def _read_during_rewrite(self, bench, control: int) -> tuple:
        recorder = Recorder()
        bench.router.attach(recorder)
        host = bench.master(Port.HOST_A)
        mgmt = bench.master(Port.MGMT)
        data, _ = bench.run(host.read(0x000100, 1), _after(4, mgmt.write_reg(REG_CONTROL, control)))
        assert recorder.transactions[0].address == 0x000100
        return recorder.accesses[0].target, data

    def test_route_never_mixes_old_and_new_control(self, bench, configure) -> None:
        # Share, range0 -> Main; then Main mode with range0 -> Secondary.
        # Both route 0x000100 to Main.
        configure(bench, 0x06, RANGE0_LOW)
        target, data = self._read_during_rewrite(bench, 0x14)
        assert target == Target.MAIN
        assert data == [0x00]

    def test_open_transaction_keeps_old_snapshot(self, bench, configure) -> None:
        # Share, range0 -> Secondary; then Main mode.
        configure(bench, 0x16, RANGE0_LOW)
        target, data = self._read_during_rewrite(bench, 0x04)
        assert target == Target.SECONDARY
        assert data == [0xFF]

        bench.idle(8)
        assert bench.router.target_mux.mode == Mode.MAIN
        assert bench.do(bench.master(Port.HOST_A).read(0x000100, 1)) == [0x00]


class TestGating:
    def test_ungated_target_unreachable(self) -> None:
        router = Router()
        router.return_path.select(Target.SECONDARY)
        assert router.return_path.fetch(0x10) is None
        assert not router.return_path.commit(0x10, 0xAA)
        assert router.stores.get(Target.SECONDARY, 0x10) == 0xEF
