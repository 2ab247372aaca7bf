"""Idle-gated host and target selection."""

from .return_path import ReturnPathSelector
from .safe_switch import HostArbiter, SafeSwitch, TargetMux

__all__ = ["HostArbiter", "ReturnPathSelector", "SafeSwitch", "TargetMux"]
