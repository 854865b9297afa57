"""
AuthRamp Harness Core Module

Foundational types, settings and errors shared by every component.

Components:
- types: Policy, outcome, tally and report records
- settings: Fixed paths and credentials for one harness process
- exceptions: Error taxonomy
- log: structlog configuration
"""

from authramp_harness.core.types import (
    AuthOutcome,
    Check,
    Control,
    Directive,
    Expectation,
    PamStatus,
    Phase,
    PhaseReached,
    PolicyConfiguration,
    RunReport,
    ScenarioResult,
    TallyRecord,
    Verdict,
)
from authramp_harness.core.settings import HarnessSettings, ModuleSettings
from authramp_harness.core.exceptions import (
    AuthPhaseError,
    BackendUnavailable,
    ConfigIOError,
    HarnessError,
    PathTooLongError,
    ScenarioError,
    SessionCloseError,
    StateIOError,
)

__all__ = [
    # Types
    "AuthOutcome",
    "Check",
    "Control",
    "Directive",
    "Expectation",
    "PamStatus",
    "Phase",
    "PhaseReached",
    "PolicyConfiguration",
    "RunReport",
    "ScenarioResult",
    "TallyRecord",
    "Verdict",
    # Settings
    "HarnessSettings",
    "ModuleSettings",
    # Exceptions
    "AuthPhaseError",
    "BackendUnavailable",
    "ConfigIOError",
    "HarnessError",
    "PathTooLongError",
    "ScenarioError",
    "SessionCloseError",
    "StateIOError",
]
