"""Tests for the configuration register file and CONTROL encoding."""

import pytest

from spi_raider.config.registers import (
    NUM_REGS,
    REG_CONTROL,
    REG_R0_START,
    REG_R1_END,
    REG_STATUS,
    ControlState,
    Host,
    Mode,
    RangeConfig,
    RegisterFile,
    RouteConfig,
    Target,
)


class TestControlState:
    """Tests for CONTROL field decoding."""

    def test_zero_is_default(self) -> None:
        assert ControlState.from_byte(0x00) == ControlState()

    def test_mode_bits(self) -> None:
        assert ControlState.from_byte(0x00).mode == Mode.MAIN
        assert ControlState.from_byte(0x01).mode == Mode.SECONDARY
        assert ControlState.from_byte(0x02).mode == Mode.SHARE
        assert ControlState.from_byte(0x03).mode == Mode.RESERVED

    def test_field_layout(self) -> None:
        """bit2/3 enable ranges, bit4/5 pick targets, bit6 picks the host."""
        ctrl = ControlState.from_byte(0b0111_1110)
        assert ctrl.mode == Mode.SHARE
        assert ctrl.range0_enabled
        assert ctrl.range1_enabled
        assert ctrl.range0_target == Target.SECONDARY
        assert ctrl.range1_target == Target.SECONDARY
        assert ctrl.active_host == Host.HOST_B

    def test_reserved_bit_ignored(self) -> None:
        assert ControlState.from_byte(0x80) == ControlState()

    def test_encode_roundtrip(self) -> None:
        for value in range(0x80):
            assert ControlState.from_byte(value).to_byte() == value


class TestRangeConfig:
    """Tests for inclusive range matching."""

    def test_inclusive_bounds(self) -> None:
        rng = RangeConfig(start=0x100, end=0x1FF, enabled=True)
        assert rng.contains(0x100)
        assert rng.contains(0x1FF)
        assert not rng.contains(0x0FF)
        assert not rng.contains(0x200)

    def test_disabled_never_matches(self) -> None:
        rng = RangeConfig(start=0x000000, end=0xFFFFFF, enabled=False)
        assert not rng.contains(0x123456)

    def test_inverted_never_matches(self) -> None:
        rng = RangeConfig(start=0x10FF00, end=0x000010, enabled=True)
        for addr in (0x000000, 0x000010, 0x000020, 0x10FF00, 0xFFFFFF):
            assert not rng.contains(addr)


class TestRegisterFileReset:
    """Tests for documented reset values."""

    def test_range_bytes_reset_to_ff(self) -> None:
        regs = RegisterFile()
        for addr in range(12):
            assert regs.read(addr) == 0xFF

    def test_control_and_status_reset_to_zero(self) -> None:
        regs = RegisterFile()
        assert regs.read(REG_CONTROL) == 0x00
        assert regs.read(REG_STATUS) == 0x00

    def test_reset_restores_both_domains(self) -> None:
        regs = RegisterFile()
        regs.write(REG_CONTROL, 0x5E)
        regs.write(REG_R0_START, 0x00)
        regs.tick()
        regs.tick()
        regs.reset()
        assert regs.snapshot() == [0xFF] * 12 + [0x00, 0x00]
        assert regs.visible == RouteConfig()

    def test_snapshot_length(self) -> None:
        assert len(RegisterFile().snapshot()) == NUM_REGS


class TestRegisterFileAccess:
    """Tests for register reads and writes."""

    def test_write_then_read(self) -> None:
        regs = RegisterFile()
        assert regs.write(REG_R1_END, 0x42)
        assert regs.read(REG_R1_END) == 0x42

    def test_undefined_read_returns_ff(self) -> None:
        regs = RegisterFile()
        assert regs.read(0x0E) == 0xFF
        assert regs.read(0xFF) == 0xFF

    def test_status_write_dropped(self) -> None:
        regs = RegisterFile()
        assert not regs.write(REG_STATUS, 0xAA)
        assert regs.read(REG_STATUS) == 0x00

    def test_undefined_write_dropped(self) -> None:
        regs = RegisterFile()
        before = regs.snapshot()
        assert not regs.write(0x40, 0x12)
        assert regs.snapshot() == before

    def test_status_refreshed_by_router(self) -> None:
        regs = RegisterFile()
        regs.set_status(0x11)
        assert regs.read(REG_STATUS) == 0x11

    def test_bad_address_raises(self) -> None:
        regs = RegisterFile()
        with pytest.raises(ValueError):
            regs.read(0x100)
        with pytest.raises(ValueError):
            regs.write(-1, 0)

    def test_bad_value_raises(self) -> None:
        with pytest.raises(ValueError):
            RegisterFile().write(REG_CONTROL, 0x100)

    def test_repeated_control_write_idempotent(self) -> None:
        regs = RegisterFile()
        regs.write(REG_CONTROL, 0x36)
        first = regs.control
        regs.write(REG_CONTROL, 0x36)
        assert regs.control == first


class TestPropagation:
    """Tests for the delayed, ordered visibility of committed registers."""

    def test_not_visible_before_delay(self) -> None:
        regs = RegisterFile()
        regs.write(REG_CONTROL, int(Mode.SHARE))
        assert regs.visible.control.mode == Mode.MAIN
        regs.tick()
        assert regs.visible.control.mode == Mode.MAIN

    def test_visible_after_delay(self) -> None:
        regs = RegisterFile()
        regs.write(REG_CONTROL, int(Mode.SHARE))
        regs.tick()
        assert regs.tick().control.mode == Mode.SHARE

    def test_commits_seen_in_order_without_coalescing(self) -> None:
        regs = RegisterFile()
        seen = []
        regs.write(REG_CONTROL, int(Mode.SECONDARY))
        seen.append(regs.tick().control.mode)
        regs.write(REG_CONTROL, int(Mode.SHARE))
        seen.append(regs.tick().control.mode)
        seen.append(regs.tick().control.mode)
        assert seen == [Mode.MAIN, Mode.SECONDARY, Mode.SHARE]

    def test_range_bytes_big_endian(self) -> None:
        regs = RegisterFile()
        for offset, value in enumerate((0x12, 0x34, 0x56, 0x12, 0x40, 0x00)):
            regs.write(REG_R0_START + offset, value)
        regs.write(REG_CONTROL, 0b0001_0110)
        regs.tick()
        range0 = regs.tick().range0
        assert range0 == RangeConfig(start=0x123456, end=0x124000,
                                     enabled=True, target=Target.SECONDARY)
