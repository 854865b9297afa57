"""
AuthRamp Harness - Integration Harness for a Rate-Limiting PAM Module

Drives the AuthRamp PAM module through a real (or simulated) PAM stack
and verifies its on-disk tally side effects.

Components:
- fixtures: Service file writer and policy catalogue
- state: Tally directory inspector
- pam: Authentication service backends and the single-attempt driver
- scenarios: Hermetic scenarios and the sequential runner

Example Usage:
    from authramp_harness import HarnessSettings, ScenarioRunner, create_service

    settings = HarnessSettings.from_env()
    runner = ScenarioRunner(settings, create_service(settings))
    report = runner.run()
    for result in report.results:
        print(result.name, result.verdict.name)
"""

__version__ = "0.1.0"

from authramp_harness.core.settings import Backend, HarnessSettings
from authramp_harness.core.types import AuthOutcome, PhaseReached, RunReport, ScenarioResult
from authramp_harness.fixtures.writer import FixtureWriter
from authramp_harness.pam.driver import AuthenticationDriver
from authramp_harness.pam.service import create_service
from authramp_harness.scenarios.runner import ScenarioRunner
from authramp_harness.state.inspector import StateInspector

__all__ = [
    # Main API
    "HarnessSettings",
    "Backend",
    "ScenarioRunner",
    "create_service",
    # Components
    "FixtureWriter",
    "StateInspector",
    "AuthenticationDriver",
    # Types
    "AuthOutcome",
    "PhaseReached",
    "RunReport",
    "ScenarioResult",
    # Metadata
    "__version__",
]
