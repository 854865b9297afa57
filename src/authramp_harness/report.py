"""
Console rendering of harness results.

One coloured ``Success:`` / ``Error:`` line per checked condition,
followed by a summary line.
"""

from __future__ import annotations

import click

from authramp_harness.core.types import RunReport, ScenarioResult

RULE = "------ "


def success(message: str) -> None:
    click.secho(f"Success: {message}", fg="green")


def error(message: str) -> None:
    click.secho(f"Error: {message}", fg="red")


def render_result(result: ScenarioResult, verbose: bool = False) -> None:
    """Print the lines for one scenario."""
    click.echo(RULE)
    click.echo(f"{result.name}: \n")
    if verbose and result.outcome is not None:
        outcome = result.outcome
        click.echo(f"  phase={outcome.phase_reached.name} status={outcome.status_name}")
        for message in outcome.messages:
            click.secho(f"  {message}", dim=True)
    for check in result.checks:
        if check.passed:
            success(f"{result.name}: {check.label}")
        else:
            detail = f" ({check.detail})" if check.detail else ""
            error(f"{result.name}: {check.label}{detail}")
    for message in result.errors:
        error(f"{result.name}: {message}")


def render_report(report: RunReport, verbose: bool = False) -> None:
    """Print every scenario and the run summary."""
    for result in report.results:
        render_result(result, verbose=verbose)
    click.echo(RULE)
    total = len(report.results)
    summary = f"{total - report.failed_count}/{total} scenarios passed"
    click.secho(summary, fg="green" if report.passed else "red", bold=True)
