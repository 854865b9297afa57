"""
Linux-PAM backend.

Drives the system PAM library through python-pam. python-pam's
one-shot ``authenticate()`` merges every phase into a single call, so
this backend uses the libpam entry points and ctypes structures the
package binds (pam_start, pam_authenticate, pam_acct_mgmt, pam_end) to
keep each phase separately observable.

Requirements:
- python-pam package (pip install python-pam)
- libpam shared library
- Privileges to read the service file and write the tally directory
"""

from __future__ import annotations

from ctypes import CDLL, POINTER, byref, c_char_p, c_size_t, c_void_p, cast, sizeof
from ctypes.util import find_library
from typing import Any, Optional, Tuple

import attrs
import structlog
from returns.result import Failure, Result, Success

from authramp_harness.core.types import PamStatus
from authramp_harness.pam.conversation import Conversation, ConversationMessage, MessageStyle
from authramp_harness.pam.service import AuthService, SessionHandle

logger = structlog.get_logger()

# Check if python-pam is available
try:
    import pam as python_pam
    from pam.__internals import PamConv, PamHandle, PamResponse, conv_func
    _pam_available = True
    _pam_error = None
except ImportError as e:
    python_pam = None  # type: ignore
    PamConv = PamHandle = PamResponse = conv_func = None  # type: ignore
    _pam_available = False
    _pam_error = str(e)
    logger.debug("python_pam_not_available", message="Install python-pam for the libpam backend")


def libpam_available() -> Tuple[bool, str]:
    """
    Check whether the libpam backend can run.

    Returns:
        (available, info) where info names the library or the problem
    """
    if not _pam_available:
        return False, f"python-pam not importable: {_pam_error}"
    library = find_library("pam")
    if library is None:
        return False, "libpam shared library not found"
    return True, library


@attrs.define
class _LibPamSession:
    """ctypes objects that must stay alive until pam_end."""

    pamh: Any
    conv: Any
    callback: Any


@attrs.define
class LibPamService(AuthService):
    """
    System PAM service.

    Example:
        service = LibPamService()
        handle = service.open("test-authramp", "user", FixedConversation("user", "pw")).unwrap()
        status = service.authenticate(handle)
        service.close(handle, status)
    """

    _authenticator: Any = None
    _calloc: Any = None
    _strdup: Any = None
    _logger: Any = attrs.Factory(lambda: structlog.get_logger())

    def _library(self) -> Any:
        """Load libpam (through python-pam) and the libc allocators once."""
        if self._authenticator is None:
            if not _pam_available:
                raise OSError(f"python-pam not importable: {_pam_error}")
            self._authenticator = python_pam.pam()
            libc = CDLL(None)
            self._calloc = libc.calloc
            self._calloc.restype = c_void_p
            self._calloc.argtypes = [c_size_t, c_size_t]
            self._strdup = libc.strdup
            self._strdup.restype = c_void_p
            self._strdup.argtypes = [c_char_p]
        return self._authenticator

    def _conversation_callback(self, conversation: Conversation) -> Any:
        """Wrap a Conversation in a libpam conversation function."""

        def _conv(n_messages, messages, p_response, app_data):
            responses = cast(self._calloc(n_messages, sizeof(PamResponse)), POINTER(PamResponse))
            p_response[0] = responses
            for i in range(n_messages):
                raw = messages[i].contents
                text = raw.msg.decode("utf-8", "replace") if raw.msg else ""
                try:
                    style = MessageStyle(raw.msg_style)
                except ValueError:
                    continue
                answer = conversation.respond(ConversationMessage(style, text))
                if answer is not None:
                    responses[i].resp = cast(self._strdup(answer.encode("utf-8")), c_char_p)
                    responses[i].resp_retcode = 0
            return int(PamStatus.SUCCESS)

        return conv_func(_conv)

    def open(self, config_name: str, user: str, conversation: Conversation) -> Result[SessionHandle, int]:
        try:
            authenticator = self._library()
        except OSError as e:
            self._logger.error("libpam_load_failed", error=str(e))
            return Failure(int(PamStatus.SYSTEM_ERR))

        callback = self._conversation_callback(conversation)
        conv = PamConv(callback, 0)
        pamh = PamHandle()
        retval = authenticator.pam_start(
            config_name.encode("utf-8"), user.encode("utf-8"), byref(conv), byref(pamh)
        )
        if retval != PamStatus.SUCCESS:
            self._logger.warning("pam_start_failed", service=config_name, status=PamStatus.describe(retval))
            return Failure(int(retval))

        return Success(
            SessionHandle(
                config_name=config_name,
                user=user,
                conversation=conversation,
                backend_state=_LibPamSession(pamh=pamh, conv=conv, callback=callback),
            )
        )

    def _session(self, handle: SessionHandle) -> Optional[_LibPamSession]:
        state = handle.backend_state
        if handle.closed or not isinstance(state, _LibPamSession):
            return None
        return state

    def authenticate(self, handle: SessionHandle, flags: int = 0) -> int:
        state = self._session(handle)
        if state is None:
            return int(PamStatus.SYSTEM_ERR)
        return int(self._authenticator.pam_authenticate(state.pamh, flags))

    def check_account(self, handle: SessionHandle, flags: int = 0) -> int:
        state = self._session(handle)
        if state is None:
            return int(PamStatus.SYSTEM_ERR)
        return int(self._authenticator.pam_acct_mgmt(state.pamh, flags))

    def close(self, handle: SessionHandle, last_status: int) -> int:
        state = self._session(handle)
        if state is None:
            return int(PamStatus.SYSTEM_ERR)
        retval = int(self._authenticator.pam_end(state.pamh, last_status))
        handle.closed = True
        handle.backend_state = None
        return retval
