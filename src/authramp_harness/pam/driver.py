"""
AuthRamp Harness Authentication Driver

Runs exactly one authentication attempt through the service:

    open -> authenticate -> check_account -> close

Each phase runs only if the previous one succeeded. The session is
closed on every path; a failed close is logged and recorded on the
outcome but never changes the phase outcome. The driver never retries:
retry counting is what the module under test observes.
"""

from __future__ import annotations

from typing import Any, Optional

import attrs
import structlog
from returns.result import Failure

from authramp_harness.core.exceptions import AuthPhaseError, HarnessError, SessionCloseError
from authramp_harness.core.types import AuthOutcome, PamStatus, PhaseReached
from authramp_harness.pam.conversation import Conversation
from authramp_harness.pam.service import AuthService, SessionHandle

logger = structlog.get_logger()


@attrs.define
class AuthenticationDriver:
    """
    Single-attempt authentication driver.

    Only one session may be open at a time; the driver refuses to start
    a second one while a handle is live.

    Example:
        driver = AuthenticationDriver(service)
        outcome = driver.run_authentication("test-authramp", "user", conversation)
        if outcome.phase_reached is PhaseReached.SUCCESS:
            ...
    """

    service: AuthService
    flags: int = 0
    _active: Optional[SessionHandle] = None
    _logger: Any = attrs.Factory(lambda: structlog.get_logger())

    @property
    def session_open(self) -> bool:
        return self._active is not None

    def run_authentication(self, config_name: str, user: str, conversation: Conversation) -> AuthOutcome:
        """
        Perform one attempt.

        Args:
            config_name: Service configuration to open
            user: User identity
            conversation: Answers prompts from the stack

        Returns:
            AuthOutcome with the furthest phase reached and its raw status
        """
        if self._active is not None:
            raise HarnessError(f"Session for {self._active.user!r} is still open")

        conversation.reset()
        log = self._logger.bind(service=config_name, user=user)

        opened = self.service.open(config_name, user, conversation)
        if isinstance(opened, Failure):
            status = int(opened.failure())
            log.warning("session_open_failed", status=PamStatus.describe(status))
            return AuthOutcome(
                phase_reached=PhaseReached.OPEN_FAILED,
                status_code=status,
                user=user,
                config_name=config_name,
                messages=conversation.notices,
            )

        handle = opened.unwrap()
        self._active = handle
        phase = PhaseReached.AUTH_FAILED
        status = int(PamStatus.SYSTEM_ERR)
        close_status: Optional[int] = None
        try:
            # Are the credentials correct?
            status = int(self.service.authenticate(handle, self.flags))
            if status == PamStatus.SUCCESS:
                log.debug("credentials_accepted")
                # Can the account be used at this time?
                phase = PhaseReached.ACCT_CHECK_FAILED
                status = int(self.service.check_account(handle, self.flags))
                if status == PamStatus.SUCCESS:
                    phase = PhaseReached.SUCCESS
        finally:
            close_status = self._close(handle, status)

        outcome = AuthOutcome(
            phase_reached=phase,
            status_code=status,
            user=user,
            config_name=config_name,
            close_status=close_status,
            messages=conversation.notices,
        )
        log.info(
            "authentication_finished",
            phase=phase.name,
            status=outcome.status_name,
            close_status=close_status,
        )
        return outcome

    def _close(self, handle: SessionHandle, last_status: int) -> Optional[int]:
        """Close the session; failures are logged, never raised."""
        try:
            close_status = int(self.service.close(handle, last_status))
        except Exception as e:  # noqa: BLE001
            error = SessionCloseError(f"Failed to release authenticator: {e}")
            self._logger.error("session_close_failed", user=handle.user, error=error.message)
            return None
        finally:
            self._active = None

        if close_status != PamStatus.SUCCESS:
            error = SessionCloseError(
                f"Failed to release authenticator: {PamStatus.describe(close_status)}",
                code=close_status,
            )
            self._logger.error("session_close_failed", user=handle.user, error=error.message)
        return close_status


def require_success(outcome: AuthOutcome) -> AuthOutcome:
    """
    Raise AuthPhaseError unless the outcome succeeded.

    For callers that treat any non-success as exceptional.
    """
    if not outcome.success:
        raise AuthPhaseError(
            f"{outcome.phase_reached.name}: {outcome.status_name}",
            phase_reached=outcome.phase_reached,
            status=outcome.status_code,
        )
    return outcome
