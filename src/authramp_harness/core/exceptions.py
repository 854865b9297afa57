"""
AuthRamp Harness Exception Types

Error taxonomy for fixture, state and authentication faults.

Component boundaries hand these back inside ``returns`` Failure
containers; only unrecoverable conditions are raised.
"""

from typing import Optional, Tuple


class HarnessError(Exception):
    """Base exception for all harness errors."""

    def __init__(self, message: str, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class ConfigIOError(HarnessError):
    """
    Service configuration could not be written or removed.

    ``missing`` is set when removal found no file; callers treat that as
    an idempotent no-op rather than a scenario failure.
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        missing: bool = False,
        code: Optional[int] = None,
    ) -> None:
        super().__init__(message, code)
        self.path = path
        self.missing = missing


class PathTooLongError(ConfigIOError):
    """Service file path exceeds the fixed path budget."""

    def __init__(self, path: str, limit: int) -> None:
        super().__init__(
            f"Service file path is {len(path)} characters, limit is {limit}: {path}",
            path=path,
        )
        self.limit = limit


class StateIOError(HarnessError):
    """
    Tally directory could not be inspected or cleared.

    ``failures`` lists every (entry, reason) pair that could not be handled.
    """

    def __init__(
        self,
        message: str,
        failures: Tuple[Tuple[str, str], ...] = (),
        code: Optional[int] = None,
    ) -> None:
        super().__init__(message, code)
        self.failures = tuple(failures)


class AuthPhaseError(HarnessError):
    """
    An authentication phase returned non-success.

    Often the expected outcome of a negative scenario; compare against the
    scenario's expectation before treating it as a defect.
    """

    def __init__(self, message: str, phase_reached: object, status: int) -> None:
        super().__init__(message, code=status)
        self.phase_reached = phase_reached
        self.status = status


class SessionCloseError(HarnessError):
    """Closing a session failed. Logged only."""

    pass


class BackendUnavailable(HarnessError):
    """The requested authentication service backend cannot be loaded."""

    pass


class ScenarioError(HarnessError):
    """A scenario raised unexpectedly while executing."""

    def __init__(self, scenario: str, message: str) -> None:
        super().__init__(f"{scenario}: {message}")
        self.scenario = scenario
