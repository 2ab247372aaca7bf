"""Pin levels, input synchronizer and clock edge detection."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass

# Steps an external pin needs to settle before the engine samples it
SETTLE_STEPS = 1

# Level driven on MISO by a port that is not returning data
IDLE_LEVEL = 1


@dataclass(frozen=True)
class Pins:
    """Levels of one serial port's master-driven pins.

    Chip-select is active low.
    """

    cs_n: int = 1
    sclk: int = 0
    mosi: int = 0

    @property
    def selected(self) -> bool:
        return self.cs_n == 0


IDLE_PINS = Pins()


class Synchronizer:
    """Delays a port's pins by SETTLE_STEPS before the engine sees them.

    Models the two-flop metastability guard as a fixed, deterministic
    settle delay.
    """

    def __init__(self) -> None:
        self._stages: deque[Pins] = deque([IDLE_PINS] * SETTLE_STEPS)

    def reset(self) -> None:
        self._stages = deque([IDLE_PINS] * SETTLE_STEPS)

    def sample(self, raw: Pins) -> Pins:
        """Capture this step's raw pins; return the settled value."""
        self._stages.append(raw)
        return self._stages.popleft()


@dataclass(frozen=True)
class Edges:
    """Clock edges seen on one settled sample."""

    rising: bool = False
    falling: bool = False


class EdgeDetector:
    """Compares the settled clock against the previous step's value."""

    def __init__(self) -> None:
        self._prev_sclk = 0

    def reset(self) -> None:
        self._prev_sclk = 0

    def update(self, pins: Pins) -> Edges:
        prev = self._prev_sclk
        self._prev_sclk = pins.sclk
        return Edges(rising=prev == 0 and pins.sclk == 1,
                     falling=prev == 1 and pins.sclk == 0)
