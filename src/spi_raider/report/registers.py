"""Register map display: all 14 registers plus the decoded routing view."""

from __future__ import annotations

from ..config.registers import NUM_REGS, REG_NAMES, RouteConfig


def format_register_map(values: list[int], prev_values: list[int] | None = None) -> str:
    """Format the register file as an address/name/value listing.

    Registers whose value differs from ``prev_values`` are highlighted
    with Rich markup ``[bold yellow]...[/bold yellow]``.

    Args:
        values: The 14 register bytes, e.g. from ``RegisterFile.snapshot()``.
        prev_values: Optional earlier snapshot for change highlighting.

    Returns:
        A string with Rich markup suitable for display in a Rich Panel.
    """
    lines: list[str] = []
    for addr in range(NUM_REGS):
        entry = f"0x{addr:02X} {REG_NAMES[addr]:<13s} 0x{values[addr]:02X}"
        if prev_values is not None and values[addr] != prev_values[addr]:
            entry = f"[bold yellow]{entry}[/bold yellow]"
        lines.append(entry)
    return "\n".join(lines)


def format_route_config(config: RouteConfig) -> str:
    """Describe a routing snapshot in one line per field."""
    ctrl = config.control
    lines = [f"mode    {ctrl.mode.name}", f"host    {ctrl.active_host.name}"]
    for label, rng in (("range0", config.range0), ("range1", config.range1)):
        state = "on " if rng.enabled else "off"
        note = "  (inverted, never matches)" if rng.start > rng.end else ""
        lines.append(
            f"{label}  {state} 0x{rng.start:06X}-0x{rng.end:06X} -> {rng.target.name}{note}"
        )
    return "\n".join(lines)
