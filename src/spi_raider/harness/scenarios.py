"""Named regression scenarios run against a bench and scoreboard."""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from ..bus.transaction import OP_FAST_READ, OP_READ, OP_WRITE
from ..config.registers import (
    ADDR_MASK,
    REG_CONTROL,
    REG_R0_START,
    REG_R1_START,
    REG_STATUS,
    STATUS_ACTIVE_HOST,
    STATUS_CONTENTION,
    STATUS_CONTENTION_SEEN,
    STATUS_HOST_PENDING,
    ControlState,
    Host,
    Mode,
    RouteConfig,
    Target,
)
from .bench import HALF_PERIOD, Bench, Port, SpiMaster, wait
from .scoreboard import Scoreboard

logger = logging.getLogger(__name__)

# Idle steps after a configuration write before traffic relies on it
SETTLE_IDLE = 8

# Random transactions per iteration in the constrained-random scenarios
RANDOM_BATCH = 16

Span = tuple[int, int, Target]


@dataclass
class ScenarioResult:
    """Outcome of one scenario run."""

    name: str
    seed: int
    errors: list[str] = field(default_factory=list)
    transactions: int = 0
    steps: int = 0

    @property
    def passed(self) -> bool:
        return not self.errors


class ScenarioContext:
    """Bench, scoreboard and check helpers for one scenario run."""

    def __init__(self, seed: int, iterations: int = 1, half_period: int = HALF_PERIOD) -> None:
        self.seed = seed
        self.iterations = iterations
        self.rng = random.Random(seed)
        self.bench = Bench(half_period=half_period)
        self.router = self.bench.router
        self.scoreboard = Scoreboard()
        self.router.attach(self.scoreboard)
        self.bench.reg_listeners.append(self.scoreboard.on_reg_write)
        self.bench.reset_listeners.append(self.scoreboard.reset_config)
        self.host_a = self.bench.master(Port.HOST_A)
        self.host_b = self.bench.master(Port.HOST_B)
        self.mgmt = self.bench.master(Port.MGMT)
        self.errors: list[str] = []

    def check(self, condition: bool, message: str) -> bool:
        if not condition:
            logger.error("check failed: %s", message)
            self.errors.append(message)
        return condition

    def expect_equal(self, actual: object, expected: object, what: str) -> bool:
        return self.check(actual == expected, f"{what}: got {actual!r}, expected {expected!r}")

    def host(self, host: Host) -> SpiMaster:
        return self.host_a if host == Host.HOST_A else self.host_b

    # Management helpers

    def write_reg(self, addr: int, value: int) -> None:
        self.bench.do(self.mgmt.write_reg(addr, value))

    def read_reg(self, addr: int) -> int:
        return self.bench.do(self.mgmt.read_reg(addr))

    def write_range(self, index: int, start: int, end: int) -> None:
        base = REG_R0_START if index == 0 else REG_R1_START
        for offset, value in enumerate((start >> 16, start >> 8, start, end >> 16, end >> 8, end)):
            self.write_reg(base + offset, value & 0xFF)

    def settle(self) -> None:
        self.bench.idle(SETTLE_IDLE)

    def configure(
        self,
        mode: Mode,
        range0: Span | None = None,
        range1: Span | None = None,
        host: Host = Host.HOST_A,
    ) -> None:
        """Program ranges and CONTROL over the management channel."""
        if range0 is not None:
            self.write_range(0, range0[0], range0[1])
        if range1 is not None:
            self.write_range(1, range1[0], range1[1])
        control = ControlState(
            mode=mode,
            range0_enabled=range0 is not None,
            range1_enabled=range1 is not None,
            range0_target=range0[2] if range0 is not None else Target.MAIN,
            range1_target=range1[2] if range1 is not None else Target.MAIN,
            active_host=host,
        )
        self.write_reg(REG_CONTROL, control.to_byte())
        self.settle()

    # Host helpers

    def read(self, addr: int, length: int, host: Host = Host.HOST_A) -> list[int]:
        return self.bench.do(self.host(host).read(addr, length))

    def fast_read(self, addr: int, length: int, host: Host = Host.HOST_A) -> list[int]:
        return self.bench.do(self.host(host).fast_read(addr, length))

    def write(self, addr: int, payload: Sequence[int], host: Host = Host.HOST_A) -> None:
        self.bench.do(self.host(host).write(addr, payload))

    def expect_route(self, target: Target, what: str) -> None:
        accesses = self.scoreboard.accesses
        if self.check(bool(accesses), f"{what}: no target access observed"):
            self.expect_equal(accesses[-1].target, target, f"{what} target")

    def expect_read(self, addr: int, length: int, target: Target, what: str) -> list[int]:
        data = self.read(addr, length)
        self.expect_route(target, what)
        self.expect_equal(data, self.scoreboard.expected_read(target, addr, length), f"{what} data")
        return data


SCENARIOS: dict[str, Callable[[ScenarioContext], None]] = {}


def scenario(name: str) -> Callable[[Callable[[ScenarioContext], None]], Callable[[ScenarioContext], None]]:
    def register(fn: Callable[[ScenarioContext], None]) -> Callable[[ScenarioContext], None]:
        SCENARIOS[name] = fn
        return fn
    return register


def run_scenario(
    name: str, seed: int = 1234, iterations: int = 1, half_period: int = HALF_PERIOD,
) -> ScenarioResult:
    """Run one named scenario on a fresh bench.

    Raises:
        KeyError: If no scenario has that name.
    """
    if name not in SCENARIOS:
        raise KeyError(f"Unknown scenario: {name}")
    ctx = ScenarioContext(seed, iterations=iterations, half_period=half_period)
    logger.info("running %s (seed %d)", name, seed)
    SCENARIOS[name](ctx)
    return ScenarioResult(
        name=name,
        seed=seed,
        errors=ctx.errors + ctx.scoreboard.errors,
        transactions=len(ctx.scoreboard.transactions),
        steps=ctx.router.now,
    )


def _check_defaults(ctx: ScenarioContext, when: str) -> None:
    for addr in range(12):
        ctx.expect_equal(ctx.read_reg(addr), 0xFF, f"{when}: range byte 0x{addr:02X}")
    ctx.expect_equal(ctx.read_reg(REG_CONTROL), 0x00, f"{when}: CONTROL")
    ctx.expect_equal(ctx.read_reg(REG_STATUS), 0x00, f"{when}: STATUS")


@scenario("reset")
def _reset(ctx: ScenarioContext) -> None:
    _check_defaults(ctx, "power-on")
    ctx.expect_equal(ctx.read_reg(0x0E), 0xFF, "undefined register")
    ctx.write_reg(REG_R0_START, 0x12)
    ctx.write_reg(REG_CONTROL, 0x56)
    ctx.settle()
    ctx.bench.reset()
    ctx.expect_equal(ctx.router.registers.visible, RouteConfig(), "visible config after reset")
    _check_defaults(ctx, "after reset")


@scenario("reg_rw")
def _reg_rw(ctx: ScenarioContext) -> None:
    values = [ctx.rng.randrange(256) for _ in range(12)]
    for addr, value in enumerate(values):
        ctx.write_reg(addr, value)
    control = ctx.rng.randrange(256) & 0x3F
    ctx.write_reg(REG_CONTROL, control)
    for addr, value in enumerate(values):
        ctx.expect_equal(ctx.read_reg(addr), value, f"range byte 0x{addr:02X}")
    ctx.expect_equal(ctx.read_reg(REG_CONTROL), control, "CONTROL")

    ctx.settle()
    before = ctx.read_reg(REG_STATUS)
    ctx.write_reg(REG_STATUS, before ^ 0xFF)
    ctx.expect_equal(ctx.read_reg(REG_STATUS), before, "STATUS after write")
    ctx.write_reg(0x20, 0x5A)
    ctx.expect_equal(ctx.read_reg(0x20), 0xFF, "undefined register after write")

    ctx.write_reg(REG_CONTROL, control)
    first = ctx.router.registers.control
    ctx.write_reg(REG_CONTROL, control)
    ctx.expect_equal(ctx.router.registers.control, first, "repeated CONTROL write")


def _mode_roundtrip(ctx: ScenarioContext, mode: Mode, target: Target) -> None:
    ctx.configure(mode)
    addr = ctx.rng.randrange(0x1000, 0xF00000)
    ctx.expect_read(addr, 4, target, f"{mode.name} read")
    payload = [ctx.rng.randrange(256) for _ in range(4)]
    ctx.write(addr, payload)
    ctx.expect_route(target, f"{mode.name} write")
    ctx.expect_equal(ctx.read(addr, 4), payload, f"{mode.name} read-back")
    other = Target.MAIN if target == Target.SECONDARY else Target.SECONDARY
    ctx.expect_equal(
        [ctx.router.stores.get(other, addr + i) for i in range(4)],
        ctx.scoreboard.expected_read(other, addr, 4),
        f"{mode.name} other target untouched",
    )


@scenario("main_mode")
def _main_mode(ctx: ScenarioContext) -> None:
    _mode_roundtrip(ctx, Mode.MAIN, Target.MAIN)


@scenario("secondary_mode")
def _secondary_mode(ctx: ScenarioContext) -> None:
    _mode_roundtrip(ctx, Mode.SECONDARY, Target.SECONDARY)


@scenario("share_default")
def _share_default(ctx: ScenarioContext) -> None:
    ctx.configure(Mode.SHARE)
    ctx.expect_read(ctx.rng.randrange(ADDR_MASK - 8), 4, Target.MAIN, "share read")


@scenario("share_range0_main")
def _share_range0_main(ctx: ScenarioContext) -> None:
    ctx.configure(Mode.SHARE, range0=(0x000000, 0x000FFF, Target.MAIN))
    data = ctx.expect_read(0x000123, 4, Target.MAIN, "range0 hit")
    ctx.expect_equal(data, [0x23, 0x24, 0x25, 0x26], "range0 hit bytes")
    ctx.configure(Mode.SHARE, range0=(0x000000, 0x000FFF, Target.SECONDARY))
    ctx.expect_read(0x000123, 4, Target.SECONDARY, "range0 retargeted")


@scenario("share_range1_secondary")
def _share_range1_secondary(ctx: ScenarioContext) -> None:
    ctx.configure(Mode.SHARE, range1=(0x002000, 0x002FFF, Target.SECONDARY))
    data = ctx.expect_read(0x002100, 4, Target.SECONDARY, "range1 hit")
    ctx.expect_equal(data, [0xFF, 0xFE, 0xFD, 0xFC], "range1 hit bytes")
    ctx.expect_read(0x003000, 2, Target.MAIN, "past range1 end")


@scenario("share_default_select")
def _share_default_select(ctx: ScenarioContext) -> None:
    ctx.configure(
        Mode.SHARE,
        range0=(0x000000, 0x000FFF, Target.SECONDARY),
        range1=(0x001000, 0x001FFF, Target.SECONDARY),
    )
    ctx.expect_read(0x005000, 4, Target.MAIN, "miss both ranges")
    ctx.configure(Mode.MAIN, range0=(0x000000, 0x000FFF, Target.SECONDARY))
    ctx.expect_read(0x000100, 4, Target.MAIN, "ranges ignored in Main mode")


@scenario("share_write_safety")
def _share_write_safety(ctx: ScenarioContext) -> None:
    ctx.configure(
        Mode.SHARE,
        range0=(0x000000, 0x00FFFF, Target.SECONDARY),
        range1=(0x000000, ADDR_MASK, Target.SECONDARY),
    )
    ctx.write(0x001000, [0xCA, 0xFE])
    ctx.expect_route(Target.MAIN, "share write")
    stores = ctx.router.stores
    ctx.expect_equal([stores.get(Target.MAIN, 0x1000), stores.get(Target.MAIN, 0x1001)],
                     [0xCA, 0xFE], "main store after write")
    ctx.expect_equal([stores.get(Target.SECONDARY, 0x1000), stores.get(Target.SECONDARY, 0x1001)],
                     [0xFF, 0xFE], "secondary store after write")
    ctx.expect_read(0x001000, 2, Target.SECONDARY, "range-routed read")
    ctx.configure(Mode.MAIN)
    ctx.expect_equal(ctx.read(0x001000, 2), [0xCA, 0xFE], "main read-back")


@scenario("host_switch")
def _host_switch(ctx: ScenarioContext) -> None:
    ctx.configure(Mode.MAIN)
    router = ctx.router
    to_b = ControlState(mode=Mode.MAIN, active_host=Host.HOST_B).to_byte()

    def observe():
        yield from wait(40)
        yield from ctx.mgmt.write_reg(REG_CONTROL, to_b)
        yield from wait(SETTLE_IDLE)
        committed, pending = router.arbiter.committed, router.arbiter.pending
        status = yield from ctx.mgmt.read_reg(REG_STATUS)
        return committed, pending, status

    data, (committed, pending, status) = ctx.bench.run(ctx.host_a.read(0x000400, 24), observe())
    ctx.expect_equal(committed, Host.HOST_A, "active host during HostA transaction")
    ctx.check(pending, "switch should be pending during HostA transaction")
    ctx.check(bool(status & STATUS_HOST_PENDING), "STATUS pending bit during transaction")
    ctx.expect_equal(data, ctx.scoreboard.expected_read(Target.MAIN, 0x000400, 24), "HostA data")

    ctx.settle()
    ctx.expect_equal(router.arbiter.committed, Host.HOST_B, "active host after release")
    ctx.check(not router.arbiter.pending, "pending flag should clear after switch")
    status = ctx.read_reg(REG_STATUS)
    ctx.check(bool(status & STATUS_ACTIVE_HOST), "STATUS active-host bit")
    ctx.check(not status & STATUS_HOST_PENDING, "STATUS pending bit after switch")

    ctx.expect_equal(ctx.read(0x000400, 4, host=Host.HOST_A), [0xFF] * 4, "inactive HostA")
    ctx.expect_equal(ctx.read(0x000400, 4, host=Host.HOST_B), [0x00, 0x01, 0x02, 0x03],
                     "HostB after switch")


@scenario("illegal_opcode")
def _illegal_opcode(ctx: ScenarioContext) -> None:
    ctx.configure(Mode.SHARE, range0=(0x000000, ADDR_MASK, Target.SECONDARY))
    ctx.bench.do(ctx.host_a.command(0x9F, 0x000400, [0x11, 0x22]))
    ctx.expect_route(Target.MAIN, "illegal opcode")
    txn = ctx.scoreboard.transactions[-1]
    ctx.check(not txn.is_read, "illegal opcode must decode as non-read")
    ctx.expect_equal(txn.payload, [0x11, 0x22], "illegal opcode payload")
    ctx.expect_equal(ctx.router.stores.get(Target.MAIN, 0x000400), 0x00, "main store untouched")
    ctx.expect_read(0x000400, 2, Target.SECONDARY, "read after illegal opcode")


@scenario("host_contention")
def _host_contention(ctx: ScenarioContext) -> None:
    ctx.configure(Mode.MAIN)

    def observe():
        yield from wait(60)
        status = yield from ctx.mgmt.read_reg(REG_STATUS)
        return status

    before = len(ctx.scoreboard.accesses)
    data_a, data_b, status = ctx.bench.run(
        ctx.host_a.read(0x000100, 16), ctx.host_b.read(0x000200, 16), observe(),
    )
    ctx.check(bool(status & STATUS_CONTENTION), "STATUS contention bit while both selected")
    ctx.expect_equal(data_a, ctx.scoreboard.expected_read(Target.MAIN, 0x000100, 16), "HostA data")
    ctx.expect_equal(data_b, [0xFF] * 16, "HostB data")
    accesses = ctx.scoreboard.accesses[before:]
    ctx.expect_equal([a.address for a in accesses], [0x000100], "served transactions")
    status = ctx.read_reg(REG_STATUS)
    ctx.check(not status & STATUS_CONTENTION, "contention bit clears when released")
    ctx.check(bool(status & STATUS_CONTENTION_SEEN), "sticky contention bit")


@scenario("bad_range")
def _bad_range(ctx: ScenarioContext) -> None:
    ctx.configure(Mode.SHARE, range0=(0x10FF00, 0x000010, Target.SECONDARY))
    ctx.expect_read(0x000020, 2, Target.MAIN, "inverted range0")
    ctx.configure(
        Mode.SHARE,
        range0=(0x10FF00, 0x000010, Target.MAIN),
        range1=(0x000000, 0x0000FF, Target.SECONDARY),
    )
    ctx.expect_read(0x000020, 2, Target.SECONDARY, "inverted range0 falls to range1")


@scenario("overlap_range")
def _overlap_range(ctx: ScenarioContext) -> None:
    ctx.configure(
        Mode.SHARE,
        range0=(0x001000, 0x001FFF, Target.MAIN),
        range1=(0x000000, 0x002FFF, Target.SECONDARY),
    )
    ctx.expect_read(0x001800, 4, Target.MAIN, "overlap goes to range0")
    ctx.expect_read(0x002800, 4, Target.SECONDARY, "range1 only")
    ctx.expect_read(0x003800, 4, Target.MAIN, "outside both")


@scenario("addr_low")
def _addr_low(ctx: ScenarioContext) -> None:
    ctx.configure(Mode.SECONDARY)
    ctx.expect_read(0x000000, 2, Target.SECONDARY, "lowest address")
    ctx.configure(Mode.MAIN)
    ctx.write(0x000000, [0xA5, 0x5A])
    ctx.expect_equal(ctx.read(0x000000, 2), [0xA5, 0x5A], "lowest address read-back")


@scenario("addr_high")
def _addr_high(ctx: ScenarioContext) -> None:
    ctx.configure(Mode.MAIN)
    data = ctx.expect_read(0xFFFFFE, 4, Target.MAIN, "highest address")
    ctx.expect_equal(data, [0xFE, 0xFF, 0x00, 0x01], "address wrap")
    ctx.write(ADDR_MASK, [0x11, 0x22, 0x33])
    ctx.expect_equal(ctx.read(ADDR_MASK, 3), [0x11, 0x22, 0x33], "wrapped write read-back")
    ctx.expect_equal(ctx.router.stores.get(Target.MAIN, 0x000001), 0x33, "wrapped byte")


@scenario("runtime_cfg")
def _runtime_cfg(ctx: ScenarioContext) -> None:
    ctx.configure(Mode.SHARE, range0=(0x004000, 0x004FFF, Target.SECONDARY))
    router = ctx.router
    retarget = ControlState(mode=Mode.SHARE, range0_enabled=True).to_byte()
    to_main = ControlState(mode=Mode.MAIN, range0_enabled=True).to_byte()

    def observe():
        yield from wait(200)
        yield from ctx.mgmt.write_reg(REG_CONTROL, retarget)
        yield from ctx.mgmt.write_reg(REG_CONTROL, to_main)
        yield from wait(SETTLE_IDLE)
        return router.target_mux.mode, router.target_mux.pending

    ctx.scoreboard.checking = False
    data, (mode, pending) = ctx.bench.run(ctx.host_a.read(0x004010, 24), observe())
    ctx.scoreboard.checking = True
    ctx.expect_equal(data, [~(0x4010 + i) & 0xFF for i in range(24)], "frozen route data")
    ctx.expect_route(Target.SECONDARY, "in-flight read")
    ctx.expect_equal(mode, Mode.SHARE, "mode during transaction")
    ctx.check(pending, "mode switch should be pending during transaction")

    ctx.settle()
    ctx.expect_equal(router.target_mux.mode, Mode.MAIN, "mode after release")
    ctx.check(not router.target_mux.pending, "target pending flag should clear")
    ctx.expect_read(0x004010, 4, Target.MAIN, "read after reconfiguration")


def _random_config(ctx: ScenarioContext, modes: Sequence[Mode]) -> None:
    rng = ctx.rng
    spans: list[Span | None] = []
    for _ in range(2):
        if rng.random() < 0.6:
            start = rng.randrange(0x10000)
            end = start + rng.randrange(-0x100, 0x4000)
            spans.append((start, max(end, 0), rng.choice(list(Target))))
        else:
            spans.append(None)
    ctx.configure(rng.choice(list(modes)), range0=spans[0], range1=spans[1])


def _random_op(ctx: ScenarioContext, host: Host = Host.HOST_A) -> None:
    rng = ctx.rng
    addr = rng.randrange(0x14000)
    kind = rng.choice((OP_READ, OP_FAST_READ, OP_WRITE))
    master = ctx.host(host)
    if kind == OP_WRITE:
        payload = [rng.randrange(256) for _ in range(rng.randrange(1, 7))]
        ctx.bench.do(master.write(addr, payload))
        target = ctx.scoreboard.predict_target(False, addr)
        if ctx.scoreboard.predict_target(True, addr) == target:
            ctx.expect_equal(ctx.read(addr, len(payload), host), payload, "write/read round trip")
    elif kind == OP_FAST_READ:
        ctx.bench.do(master.fast_read(addr, rng.randrange(1, 7)))
    else:
        ctx.bench.do(master.read(addr, rng.randrange(1, 7)))


@scenario("random_rw")
def _random_rw(ctx: ScenarioContext) -> None:
    for _ in range(ctx.iterations):
        _random_config(ctx, (Mode.MAIN, Mode.SECONDARY, Mode.SHARE))
        for _ in range(RANDOM_BATCH):
            _random_op(ctx)


@scenario("random_host_mode")
def _random_host_mode(ctx: ScenarioContext) -> None:
    rng = ctx.rng
    for _ in range(ctx.iterations * 4):
        host = rng.choice(list(Host))
        ctx.configure(rng.choice((Mode.MAIN, Mode.SECONDARY, Mode.SHARE)), host=host)
        ctx.expect_equal(ctx.router.arbiter.committed, host, "committed host")
        for _ in range(RANDOM_BATCH // 4):
            _random_op(ctx, host)
        idle_host = Host.HOST_B if host == Host.HOST_A else Host.HOST_A
        before = len(ctx.scoreboard.accesses)
        ctx.expect_equal(ctx.read(0x000010, 2, idle_host), [0xFF, 0xFF], "inactive host data")
        ctx.expect_equal(len(ctx.scoreboard.accesses), before, "inactive host reached a target")


@scenario("stress")
def _stress(ctx: ScenarioContext) -> None:
    rng = ctx.rng
    for _ in range(ctx.iterations * 2):
        _random_config(ctx, list(Mode))
        for _ in range(RANDOM_BATCH):
            roll = rng.random()
            if roll < 0.1:
                ctx.bench.do(ctx.host_a.command(rng.choice((0x05, 0x9F, 0xFF)), rng.randrange(0x14000), [0x5A]))
            elif roll < 0.2:
                frame = [OP_WRITE, 0x00, rng.randrange(0x100), rng.randrange(0x100), 0xA5, 0x5A]
                ctx.bench.do(ctx.host_a.transfer(frame, partial_bits=rng.randrange(1, 8)))
            elif roll < 0.25:
                ctx.bench.do(ctx.host_a.transfer([OP_READ, 0x00], partial_bits=3))
            else:
                _random_op(ctx)
