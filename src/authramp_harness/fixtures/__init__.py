"""
AuthRamp Harness Fixtures

Service file materialization and the policy catalogue used by scenarios.
"""

from authramp_harness.fixtures.writer import FixtureWriter
from authramp_harness.fixtures.policies import lockout_policy, valid_auth_policy

__all__ = [
    "FixtureWriter",
    "lockout_policy",
    "valid_auth_policy",
]
