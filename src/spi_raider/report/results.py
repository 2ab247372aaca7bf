"""Scenario result table."""

from __future__ import annotations

from collections.abc import Sequence

from rich.table import Table

from ..harness.scenarios import ScenarioResult


def format_results(results: Sequence[ScenarioResult]) -> Table:
    """Build a Rich table with one row per scenario run.

    The first error of a failing run is shown inline; the rest are
    counted.
    """
    table = Table(title="Scenario results")
    table.add_column("Scenario")
    table.add_column("Seed", justify="right")
    table.add_column("Result")
    table.add_column("Txns", justify="right")
    table.add_column("Steps", justify="right")
    table.add_column("Detail")

    for result in results:
        if result.passed:
            verdict = "[bold green]PASS[/bold green]"
            detail = ""
        else:
            verdict = "[bold red]FAIL[/bold red]"
            detail = result.errors[0]
            if len(result.errors) > 1:
                detail += f" (+{len(result.errors) - 1} more)"
        table.add_row(
            result.name, str(result.seed), verdict,
            str(result.transactions), str(result.steps), detail,
        )
    return table


def summarize(results: Sequence[ScenarioResult]) -> str:
    passed = sum(1 for r in results if r.passed)
    failed = len(results) - passed
    return f"Passed: {passed}  Failed: {failed}"
