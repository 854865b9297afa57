"""
AuthRamp Harness PAM Module

Authentication service backends, conversation strategies and the
single-attempt authentication driver.

Backends:
- LibPamService: system Linux-PAM via python-pam
- SimulatedPamService: in-process stack emulator for hermetic runs
"""

from authramp_harness.pam.conversation import (
    Conversation,
    ConversationMessage,
    FixedConversation,
    InteractiveConversation,
    MessageStyle,
)
from authramp_harness.pam.service import AuthService, SessionHandle, create_service
from authramp_harness.pam.driver import AuthenticationDriver, require_success
from authramp_harness.pam.simulated import SimulatedPamService

__all__ = [
    # Conversation
    "Conversation",
    "ConversationMessage",
    "FixedConversation",
    "InteractiveConversation",
    "MessageStyle",
    # Service
    "AuthService",
    "SessionHandle",
    "create_service",
    "SimulatedPamService",
    # Driver
    "AuthenticationDriver",
    "require_success",
]
