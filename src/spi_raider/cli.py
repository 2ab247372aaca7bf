"""Command-line interface for the SPI router model."""

import argparse
import logging
import sys

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from .config.registers import RegisterFile
from .harness.bench import HALF_PERIOD
from .harness.scenarios import SCENARIOS, ScenarioResult, run_scenario
from .report.registers import format_register_map, format_route_config
from .report.results import format_results, summarize

DEFAULT_SEEDS = [1234, 5678]

# Scenarios that draw random traffic; they honour --iterations
RANDOM_SCENARIOS = {"random_rw", "random_host_mode", "stress"}


def _setup_logging(verbosity: int) -> None:
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def main() -> None:
    """Entry point for the router CLI."""
    parser = argparse.ArgumentParser(description="SPI router model")
    parser.add_argument(
        "-v", "--verbose", action="count", default=0,
        help="Log switch decisions (-v) or every transaction (-vv)",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("list", help="List regression scenarios")
    sub.add_parser("regs", help="Show the register map after reset")

    run_parser = sub.add_parser("run", help="Run regression scenarios")
    run_parser.add_argument(
        "names", nargs="*", metavar="SCENARIO",
        help="Scenarios to run (default: all)",
    )
    run_parser.add_argument(
        "--seed", action="append", type=int, default=None,
        help=f"Random seed (repeatable, default: {' '.join(map(str, DEFAULT_SEEDS))})",
    )
    run_parser.add_argument(
        "--iterations", type=int, default=2,
        help="Iterations for the random scenarios",
    )
    run_parser.add_argument(
        "--half-period", type=int, default=HALF_PERIOD,
        help="Steps per serial clock phase",
    )

    args = parser.parse_args()
    _setup_logging(args.verbose)
    console = Console()

    if args.command == "list":
        for name in SCENARIOS:
            console.print(name)
    elif args.command == "regs":
        show_registers(console)
    elif args.command == "run":
        ok = run_scenarios(
            console, args.names, args.seed or DEFAULT_SEEDS,
            args.iterations, args.half_period,
        )
        sys.exit(0 if ok else 1)
    else:
        parser.print_help()
        sys.exit(1)


def show_registers(console: Console) -> None:
    """Print the reset register map and the routing view it decodes to."""
    registers = RegisterFile()
    console.print(Panel(format_register_map(registers.snapshot()), title="Registers"))
    console.print(Panel(format_route_config(registers.visible), title="Routing"))


def run_scenarios(
    console: Console,
    names: list[str],
    seeds: list[int],
    iterations: int,
    half_period: int,
) -> bool:
    """Run every requested scenario for every seed and print the results.

    Returns:
        True if all runs passed.
    """
    unknown = [name for name in names if name not in SCENARIOS]
    if unknown:
        print(f"Error: unknown scenario(s): {', '.join(unknown)}", file=sys.stderr)
        sys.exit(1)
    if half_period < 1:
        print("Error: --half-period must be at least 1", file=sys.stderr)
        sys.exit(1)

    results: list[ScenarioResult] = []
    for name in names or list(SCENARIOS):
        count = iterations if name in RANDOM_SCENARIOS else 1
        for seed in seeds:
            results.append(run_scenario(name, seed, iterations=count, half_period=half_period))

    console.print(format_results(results))
    console.print(summarize(results))
    return all(r.passed for r in results)
