"""
AuthRamp Harness State Module

Inspection and cleanup of the tally directory kept by the module under test.
"""

from authramp_harness.state.inspector import StateInspector
from authramp_harness.state.tally import format_instant, parse_instant, read_tally_file

__all__ = [
    "StateInspector",
    "format_instant",
    "parse_instant",
    "read_tally_file",
]
