"""
Built-in scenarios for the module under test.

- ValidAuth: no lockout directive, correct password -> success, no tally
- InvalidAuth: lockout directive, wrong password -> rejected, tally exists
- BounceAuth: trip the lockout, then a correct password is still rejected
- ConsecutiveInvalidAddsTally: N failures -> tally count N
- ValidAuthClearsTally: failure then success -> tally count 0
"""

from __future__ import annotations

from typing import List, Optional, Tuple, Type

from returns.result import Failure

from authramp_harness.core.settings import HarnessSettings
from authramp_harness.core.types import Check, Expectation, PolicyConfiguration, ScenarioResult
from authramp_harness.fixtures.policies import lockout_policy, valid_auth_policy
from authramp_harness.scenarios.runner import Scenario, ScenarioContext

LOCK_NOTICE = "Account locked!"


def _tally_count_check(ctx: ScenarioContext, expected: int) -> Check:
    label = f"tally count is {expected}"
    record = ctx.inspector.read_tally(ctx.user)
    if isinstance(record, Failure):
        return Check(label, False, record.failure().message)
    count = record.unwrap().failures_count
    return Check(label, count == expected, f"count={count}")


class ValidAuth(Scenario):
    name = "valid_auth"
    description = "Correct credentials without a lockout directive succeed and leave no tally"
    expectation = Expectation(expect_success=True, expect_tally=False)

    def policy(self, settings: HarnessSettings) -> PolicyConfiguration:
        return valid_auth_policy(settings)

    def exercise(self, ctx: ScenarioContext) -> ScenarioResult:
        outcome = ctx.authenticate(valid=True)
        return ScenarioResult(
            name=self.name,
            outcome=outcome,
            checks=ctx.expectation_checks(outcome, self.expectation),
        )


class InvalidAuth(Scenario):
    name = "invalid_auth"
    description = "Wrong credentials under a lockout directive are rejected and create a tally"
    expectation = Expectation(expect_success=False, expect_tally=True)

    def policy(self, settings: HarnessSettings) -> PolicyConfiguration:
        return lockout_policy(settings)

    def exercise(self, ctx: ScenarioContext) -> ScenarioResult:
        outcome = ctx.authenticate(valid=False)
        return ScenarioResult(
            name=self.name,
            outcome=outcome,
            checks=ctx.expectation_checks(outcome, self.expectation),
        )


class BounceAuth(Scenario):
    """
    Exceed the free tries, then authenticate correctly.

    The module locks once the failure count exceeds ``free_tries``, so
    ``free_tries + 1`` failures trip it. The runner takes ``free_tries``
    from the module config file when one exists.
    """

    name = "bounce_auth"
    description = "Once locked, correct credentials are still rejected"

    def __init__(self, attempts: Optional[int] = None) -> None:
        self.attempts = attempts

    def policy(self, settings: HarnessSettings) -> PolicyConfiguration:
        return lockout_policy(settings)

    def exercise(self, ctx: ScenarioContext) -> ScenarioResult:
        attempts = self.attempts if self.attempts is not None else ctx.settings.free_tries + 1

        rejected = 0
        for _ in range(attempts):
            if not ctx.authenticate(valid=False).success:
                rejected += 1

        checks = [
            Check("invalid attempts rejected", rejected == attempts, f"{rejected}/{attempts}"),
            Check("tally file created", ctx.inspector.tally_exists(ctx.user), str(ctx.inspector.tally_path(ctx.user))),
        ]

        outcome = ctx.authenticate(valid=True)
        checks.append(
            Check(
                "locked account rejects valid credentials",
                not outcome.success,
                f"{outcome.phase_reached.name} ({outcome.status_name})",
            )
        )
        notices = [m for m in outcome.messages if LOCK_NOTICE in m]
        checks.append(Check("lockout notice sent", bool(notices), notices[0] if notices else "no notice"))

        return ScenarioResult(name=self.name, outcome=outcome, checks=checks)


class ConsecutiveInvalidAddsTally(Scenario):
    name = "consecutive_invalid_adds_tally"
    description = "Each failed attempt increments the tally count"

    def __init__(self, attempts: int = 2) -> None:
        self.attempts = attempts

    def policy(self, settings: HarnessSettings) -> PolicyConfiguration:
        return lockout_policy(settings)

    def exercise(self, ctx: ScenarioContext) -> ScenarioResult:
        outcome = None
        checks: List[Check] = []
        for attempt in range(1, self.attempts + 1):
            outcome = ctx.authenticate(valid=False)
            checks.append(Check(f"attempt {attempt} rejected", not outcome.success, outcome.status_name))
        checks.append(_tally_count_check(ctx, self.attempts))
        return ScenarioResult(name=self.name, outcome=outcome, checks=checks)


class ValidAuthClearsTally(Scenario):
    name = "valid_auth_clears_tally"
    description = "A successful login resets the tally count"

    def policy(self, settings: HarnessSettings) -> PolicyConfiguration:
        return lockout_policy(settings)

    def exercise(self, ctx: ScenarioContext) -> ScenarioResult:
        failed = ctx.authenticate(valid=False)
        checks = [
            Check("invalid attempt rejected", not failed.success, failed.status_name),
            _tally_count_check(ctx, 1),
        ]
        outcome = ctx.authenticate(valid=True)
        checks.append(
            Check("authentication succeeded", outcome.success, f"{outcome.phase_reached.name} ({outcome.status_name})")
        )
        checks.append(_tally_count_check(ctx, 0))
        return ScenarioResult(name=self.name, outcome=outcome, checks=checks)


BUILTIN_SCENARIOS: Tuple[Type[Scenario], ...] = (
    ValidAuth,
    InvalidAuth,
    BounceAuth,
    ConsecutiveInvalidAddsTally,
    ValidAuthClearsTally,
)


def default_suite() -> List[Scenario]:
    return [cls() for cls in BUILTIN_SCENARIOS]


def scenario_names() -> List[str]:
    return [cls.name for cls in BUILTIN_SCENARIOS]
