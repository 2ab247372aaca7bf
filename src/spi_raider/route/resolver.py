"""Route resolver: picks the target for a transaction from its address."""

from __future__ import annotations

from ..config.registers import Mode, RouteConfig, Target


def default_target(mode: Mode) -> Target:
    """Mode-derived default. Only Secondary mode defaults to Secondary."""
    return Target.SECONDARY if mode == Mode.SECONDARY else Target.MAIN


def resolve_target(is_read: bool, addr: int, config: RouteConfig) -> Target:
    """Resolve which target a transaction reaches.

    Ranges are only consulted for reads in Share mode, range0 before
    range1. Writes always go to the default target so the two stores
    never diverge through range routing.

    Args:
        is_read: True for standard and fast reads.
        addr: 24-bit start address of the transaction.
        config: The routing-domain configuration snapshot.

    Returns:
        The selected Target.
    """
    mode = config.control.mode
    fallback = default_target(mode)
    if mode != Mode.SHARE or not is_read:
        return fallback
    if config.range0.contains(addr):
        return config.range0.target
    if config.range1.contains(addr):
        return config.range1.target
    return fallback
