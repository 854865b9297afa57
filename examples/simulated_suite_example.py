#!/usr/bin/env python3
"""
Simulated Lockout Walkthrough

Drives the lockout policy through the in-process PAM stack step by
step, printing the tally file after each attempt.

Features:
1. Writing a policy with the fixture writer
2. Single attempts through the authentication driver
3. Reading the tally the module leaves behind
4. Running the built-in suite and printing the JSON report
"""

import tempfile

from returns.result import Failure

from authramp_harness import (
    AuthenticationDriver,
    FixtureWriter,
    HarnessSettings,
    ScenarioRunner,
    StateInspector,
)
from authramp_harness.fixtures.policies import lockout_policy
from authramp_harness.pam.conversation import FixedConversation
from authramp_harness.pam.simulated import SimulatedPamService


def main():
    """Walk through a lockout against the simulated stack."""

    print("=" * 70)
    print("AuthRamp Harness - Simulated Lockout")
    print("=" * 70)
    print()

    with tempfile.TemporaryDirectory(prefix="authramp-") as root:
        settings = HarnessSettings.for_directory(root, user_password="correct-horse", free_tries=2)
        settings.service_dir.mkdir(parents=True)

        writer = FixtureWriter(settings)
        inspector = StateInspector(settings)
        service = SimulatedPamService(settings=settings)
        driver = AuthenticationDriver(service)

        # ======================================================================
        # STEP 1: Write the policy
        # ======================================================================
        print("1. Write the lockout policy")
        print("-" * 40)

        policy = lockout_policy(settings)
        written = writer.write_policy(policy)
        if isinstance(written, Failure):
            print(f"   Error: {written.failure().message}")
            return
        print(f"   {written.unwrap()}")
        for line in policy.render().splitlines():
            print(f"   | {line}")
        print()

        # ======================================================================
        # STEP 2: Fail until locked
        # ======================================================================
        print("2. Invalid attempts")
        print("-" * 40)

        for attempt in range(1, settings.free_tries + 2):
            outcome = driver.run_authentication(
                settings.service_name,
                settings.user_name,
                FixedConversation(settings.user_name, settings.invalid_password),
            )
            record = inspector.read_tally(settings.user_name).unwrap()
            print(f"   attempt {attempt}: {outcome.status_name}, count={record.failures_count}")
            for message in outcome.messages:
                print(f"      {message}")
        print()

        # ======================================================================
        # STEP 3: Correct password while locked
        # ======================================================================
        print("3. Correct password while locked")
        print("-" * 40)

        outcome = driver.run_authentication(
            settings.service_name,
            settings.user_name,
            FixedConversation(settings.user_name, settings.user_password),
        )
        print(f"   phase={outcome.phase_reached.name} status={outcome.status_name}")
        print()

        writer.remove_configuration(policy.name)
        inspector.clear_tally_directory()

        # ======================================================================
        # STEP 4: Built-in suite
        # ======================================================================
        print("4. Built-in suite")
        print("-" * 40)

        report = ScenarioRunner(settings=settings, service=service).run()
        print(report.to_json())


if __name__ == "__main__":
    main()
