"""
AuthRamp Harness Scenario Runner

Composes fixture writer, authentication driver and state inspector into
hermetic scenarios:

    write policy -> authenticate (once or in a loop) -> inspect tally
    -> assert -> remove policy -> clear tally directory

Cleanup runs on every exit path. Scenarios run strictly one after the
other because they share one service file and one tally directory.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, ClassVar, Iterable, Iterator, List, Optional, Sequence

import attrs
import structlog
from returns.result import Failure

from authramp_harness.core.exceptions import ScenarioError
from authramp_harness.core.settings import HarnessSettings
from authramp_harness.core.types import (
    AuthOutcome,
    Check,
    Expectation,
    PolicyConfiguration,
    RunReport,
    ScenarioResult,
)
from authramp_harness.fixtures.writer import FixtureWriter
from authramp_harness.pam.conversation import FixedConversation
from authramp_harness.pam.driver import AuthenticationDriver
from authramp_harness.pam.service import AuthService
from authramp_harness.state.inspector import StateInspector

logger = structlog.get_logger()


# =============================================================================
# CONTEXT
# =============================================================================


@attrs.define
class ScenarioContext:
    """Everything a scenario may touch, passed explicitly."""

    settings: HarnessSettings
    writer: FixtureWriter
    inspector: StateInspector
    driver: AuthenticationDriver

    @property
    def user(self) -> str:
        return self.settings.user_name

    def authenticate(self, valid: bool = True) -> AuthOutcome:
        """One attempt with the correct or the invalid password."""
        password = self.settings.user_password if valid else self.settings.invalid_password
        conversation = FixedConversation(user=self.user, password=password)
        return self.driver.run_authentication(self.settings.service_name, self.user, conversation)

    def expectation_checks(self, outcome: AuthOutcome, expectation: Expectation) -> List[Check]:
        """Compare an outcome and the tally state against an expectation."""
        if expectation.expect_success:
            checks = [
                Check(
                    "authentication succeeded",
                    outcome.success,
                    f"{outcome.phase_reached.name} ({outcome.status_name})",
                )
            ]
        else:
            checks = [
                Check(
                    "authentication rejected",
                    not outcome.success,
                    f"{outcome.phase_reached.name} ({outcome.status_name})",
                )
            ]

        if expectation.expect_tally is not None:
            exists = self.inspector.tally_exists(self.user)
            if expectation.expect_tally:
                checks.append(Check("tally file created", exists, str(self.inspector.tally_path(self.user))))
            else:
                checks.append(Check("no tally file", not exists, str(self.inspector.tally_path(self.user))))
        return checks


# =============================================================================
# SCENARIO BASE
# =============================================================================


class Scenario(ABC):
    """
    One hermetic test case.

    Subclasses name the policy they need and exercise it; the runner
    handles fixture setup, cleanup, timing and error capture.
    """

    name: ClassVar[str] = ""
    description: ClassVar[str] = ""

    @abstractmethod
    def policy(self, settings: HarnessSettings) -> PolicyConfiguration:
        ...

    @abstractmethod
    def exercise(self, ctx: ScenarioContext) -> ScenarioResult:
        ...


@contextmanager
def scenario_fixture(ctx: ScenarioContext, policy: PolicyConfiguration, errors: List[str]) -> Iterator[bool]:
    """
    Write ``policy`` and guarantee cleanup.

    Yields True when the policy is on disk. Write and cleanup failures
    are appended to ``errors``; an already-absent service file is not
    an error.
    """
    written = ctx.writer.write_policy(policy)
    if isinstance(written, Failure):
        errors.append(f"ConfigIOError: {written.failure().message}")
    try:
        yield not isinstance(written, Failure)
    finally:
        removed = ctx.writer.remove_configuration(policy.name)
        if isinstance(removed, Failure) and not removed.failure().missing:
            errors.append(f"ConfigIOError: {removed.failure().message}")
        cleared = ctx.inspector.clear_tally_directory()
        if isinstance(cleared, Failure):
            errors.append(f"StateIOError: {cleared.failure().message}")


# =============================================================================
# RUNNER
# =============================================================================


@attrs.define
class ScenarioRunner:
    """
    Sequential scenario runner.

    Settings are aligned with the module config file on construction, so
    tally lookups and the lock threshold follow what the module reads.

    Example:
        runner = ScenarioRunner(settings, create_service(settings))
        report = runner.run()
        sys.exit(report.exit_code)
    """

    settings: HarnessSettings = attrs.field(converter=HarnessSettings.aligned_with_module)
    service: AuthService
    writer: FixtureWriter = attrs.field(
        default=attrs.Factory(lambda self: FixtureWriter(self.settings), takes_self=True)
    )
    inspector: StateInspector = attrs.field(
        default=attrs.Factory(lambda self: StateInspector(self.settings), takes_self=True)
    )
    driver: AuthenticationDriver = attrs.field(
        default=attrs.Factory(lambda self: AuthenticationDriver(self.service), takes_self=True)
    )
    _logger: Any = attrs.Factory(lambda: structlog.get_logger())

    def context(self) -> ScenarioContext:
        return ScenarioContext(
            settings=self.settings,
            writer=self.writer,
            inspector=self.inspector,
            driver=self.driver,
        )

    def run(
        self,
        scenarios: Optional[Sequence[Scenario]] = None,
        only: Optional[Iterable[str]] = None,
    ) -> RunReport:
        """
        Run scenarios in order.

        Args:
            scenarios: Scenarios to run (default: the built-in suite)
            only: Restrict to these scenario names

        Raises:
            ValueError: ``only`` names an unknown scenario
        """
        if scenarios is None:
            from authramp_harness.scenarios.builtin import default_suite

            scenarios = default_suite()

        if only is not None:
            wanted = list(only)
            known = {s.name for s in scenarios}
            unknown = [n for n in wanted if n not in known]
            if unknown:
                raise ValueError(f"Unknown scenario(s): {', '.join(unknown)}")
            scenarios = [s for s in scenarios if s.name in wanted]

        results = [self.run_scenario(s) for s in scenarios]
        report = RunReport(results=tuple(results))
        self._logger.info("run_finished", total=len(results), failed=report.failed_count)
        return report

    def run_scenario(self, scenario: Scenario) -> ScenarioResult:
        """Run one scenario with guaranteed cleanup; never raises."""
        ctx = self.context()
        log = self._logger.bind(scenario=scenario.name)
        errors: List[str] = []
        result = ScenarioResult(name=scenario.name)
        policy_name = self.settings.service_name
        started = time.monotonic()

        log.info("scenario_started")
        try:
            policy = scenario.policy(self.settings)
            policy_name = policy.name
            with scenario_fixture(ctx, policy, errors) as ready:
                if ready:
                    result = scenario.exercise(ctx)
        except Exception as e:  # noqa: BLE001
            error = ScenarioError(scenario.name, f"{type(e).__name__}: {e}")
            log.error("scenario_raised", error=error.message)
            errors.append(error.message)

        result = result.with_errors(*errors).with_checks(*self._post_cleanup_checks(policy_name))
        result = attrs.evolve(result, duration=time.monotonic() - started)

        log.info("scenario_finished", verdict=result.verdict.name, checks=len(result.checks))
        return result

    def _post_cleanup_checks(self, policy_name: str) -> List[Check]:
        return [
            Check(
                "service file removed",
                not self.writer.exists(policy_name),
                str(self.settings.service_dir / policy_name),
            ),
            Check(
                "tally cleared",
                not self.inspector.tally_exists(self.settings.user_name),
                str(self.inspector.tally_path(self.settings.user_name)),
            ),
        ]
