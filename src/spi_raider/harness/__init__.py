"""Stimulus bench, golden-model scoreboard and regression scenarios."""

from .bench import Bench, Port, SpiMaster, wait
from .scenarios import SCENARIOS, ScenarioResult, run_scenario
from .scoreboard import Scoreboard

__all__ = [
    "Bench", "Port", "SCENARIOS", "ScenarioResult", "Scoreboard",
    "SpiMaster", "run_scenario", "wait",
]
