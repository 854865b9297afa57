"""
AuthRamp Harness Scenarios

Hermetic scenarios and the sequential runner that executes them.
"""

from authramp_harness.scenarios.runner import (
    Scenario,
    ScenarioContext,
    ScenarioRunner,
    scenario_fixture,
)
from authramp_harness.scenarios.builtin import (
    BUILTIN_SCENARIOS,
    BounceAuth,
    ConsecutiveInvalidAddsTally,
    InvalidAuth,
    ValidAuth,
    ValidAuthClearsTally,
    default_suite,
    scenario_names,
)

__all__ = [
    "Scenario",
    "ScenarioContext",
    "ScenarioRunner",
    "scenario_fixture",
    "BUILTIN_SCENARIOS",
    "BounceAuth",
    "ConsecutiveInvalidAddsTally",
    "InvalidAuth",
    "ValidAuth",
    "ValidAuthClearsTally",
    "default_suite",
    "scenario_names",
]
