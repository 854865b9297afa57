"""
Authentication service interface.

The system authentication framework is consumed as a black box with
four calls: open, authenticate, check_account and close. Backends
return raw integer status codes so nothing is lost for diagnostics.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

import attrs
from returns.result import Result

from authramp_harness.core.exceptions import BackendUnavailable
from authramp_harness.core.settings import Backend, HarnessSettings
from authramp_harness.pam.conversation import Conversation


@attrs.define(eq=False)
class SessionHandle:
    """
    Opaque handle for one open session.

    Bound to one configuration, one user and one conversation. Backends
    keep their own state in ``backend_state``.
    """

    config_name: str
    user: str
    conversation: Conversation
    backend_state: Any = None
    closed: bool = False


class AuthService(ABC):
    """Black-box authentication service."""

    @abstractmethod
    def open(self, config_name: str, user: str, conversation: Conversation) -> Result[SessionHandle, int]:
        """
        Start a session against the named configuration.

        Returns:
            Success(SessionHandle) or Failure(raw_status)
        """
        ...

    @abstractmethod
    def authenticate(self, handle: SessionHandle, flags: int = 0) -> int:
        """Run the ``auth`` stack; returns the raw status."""
        ...

    @abstractmethod
    def check_account(self, handle: SessionHandle, flags: int = 0) -> int:
        """Run the ``account`` stack; returns the raw status."""
        ...

    @abstractmethod
    def close(self, handle: SessionHandle, last_status: int) -> int:
        """End the session; returns the raw status of the close call."""
        ...


def create_service(settings: HarnessSettings, backend: Optional[Backend] = None, **kwargs) -> AuthService:
    """
    Build the authentication service for a backend.

    Args:
        settings: Harness settings
        backend: Override settings.backend
        **kwargs: Passed to the backend constructor

    Raises:
        BackendUnavailable: libpam requested but python-pam or libpam is missing
    """
    backend = backend or settings.backend
    if backend is Backend.SIMULATED:
        from authramp_harness.pam.simulated import SimulatedPamService

        return SimulatedPamService(settings=settings, **kwargs)

    from authramp_harness.pam.libpam import LibPamService, libpam_available

    available, info = libpam_available()
    if not available:
        raise BackendUnavailable(f"libpam backend unavailable: {info}")
    return LibPamService(**kwargs)
