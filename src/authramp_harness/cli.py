"""
AuthRamp Harness command line.

Commands:
    run    - Run the scenario suite, exit non-zero on any failure
    list   - List available scenarios
    reset  - Remove one user's tally file
"""

from __future__ import annotations

import sys
import tempfile
from contextlib import ExitStack
from typing import Optional, Tuple

import click
from returns.result import Failure

from authramp_harness import __version__
from authramp_harness.core.exceptions import BackendUnavailable
from authramp_harness.core.log import configure_logging
from authramp_harness.core.settings import Backend, HarnessSettings
from authramp_harness.pam.service import create_service
from authramp_harness.report import error, render_report, success
from authramp_harness.scenarios.builtin import BUILTIN_SCENARIOS, scenario_names
from authramp_harness.scenarios.runner import ScenarioRunner
from authramp_harness.state.inspector import StateInspector

BACKENDS = [b.value for b in Backend]


@click.group()
@click.version_option(__version__, prog_name="authramp-harness")
def main() -> None:
    """Integration harness for the AuthRamp PAM module."""


@main.command()
@click.option("--backend", type=click.Choice(BACKENDS), default=None, help="Authentication service backend.")
@click.option(
    "--root",
    type=click.Path(file_okay=False, writable=True),
    default=None,
    help="Scratch root for service files, tallies and authramp.conf. Simulated backend only.",
)
@click.option("--scenario", "scenarios", multiple=True, type=click.Choice(scenario_names()), help="Run only these.")
@click.option("--json", "as_json", is_flag=True, help="Print a JSON report instead of coloured lines.")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging and per-scenario details.")
def run(
    backend: Optional[str],
    root: Optional[str],
    scenarios: Tuple[str, ...],
    as_json: bool,
    verbose: bool,
) -> None:
    """Run the scenario suite."""
    configure_logging(verbose=verbose, json=as_json)

    with ExitStack() as stack:
        settings = HarnessSettings.from_env(backend=backend)
        if root is not None and settings.backend is not Backend.SIMULATED:
            # libpam reads service files from the system directory only
            raise click.UsageError("--root requires the simulated backend")
        if settings.backend is Backend.SIMULATED:
            if root is None:
                root = stack.enter_context(tempfile.TemporaryDirectory(prefix="authramp-"))
            settings = HarnessSettings.from_env(
                backend=backend,
                service_dir=f"{root}/pam.d",
                tally_dir=f"{root}/authramp",
                module_config=f"{root}/authramp.conf",
                user_password=settings.user_password or "authramp-test",
            )
            settings.service_dir.mkdir(parents=True, exist_ok=True)

        try:
            service = create_service(settings)
        except BackendUnavailable as e:
            error(e.message)
            sys.exit(2)

        runner = ScenarioRunner(settings=settings, service=service)
        report = runner.run(only=scenarios or None)

    if as_json:
        click.echo(report.to_json())
    else:
        render_report(report, verbose=verbose)
    sys.exit(report.exit_code)


@main.command(name="list")
def list_scenarios() -> None:
    """List available scenarios."""
    for cls in BUILTIN_SCENARIOS:
        click.echo(f"{cls.name:32} {cls.description}")


@main.command()
@click.argument("user")
def reset(user: str) -> None:
    """Remove the tally file of USER from the module's tally directory."""
    inspector = StateInspector(HarnessSettings.from_env().aligned_with_module())
    result = inspector.reset_user(user)
    if isinstance(result, Failure):
        error(result.failure().message)
        sys.exit(1)
    if result.unwrap():
        success(f"tally reset for user: '{click.style(user, fg='yellow')}'")
    else:
        click.echo(f"No tally found for user: '{click.style(user, fg='yellow')}'")


if __name__ == "__main__":
    main()
