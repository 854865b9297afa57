"""
AuthRamp Harness Test Suite

Test organization:
- unit/: Unit tests for individual components
- property/: Property-based tests using Hypothesis
- integration/: Runs against the system PAM library (requires root and
  an installed module)
"""
