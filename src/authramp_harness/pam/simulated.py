"""
Simulated PAM stack.

In-process stand-in for Linux-PAM used for hermetic harness runs. It
loads the service file the fixture writer produced, evaluates directive
controls with Linux-PAM stack semantics and emulates a small set of
modules:

- pam_unix.so: password table lookup through the conversation
- pam_permit.so / pam_deny.so
- the module under test: ``preauth`` / ``authfail`` in the auth stack,
  tally reset in the account stack, TOML tally files in the tally dir

Lockout follows the module's ramp: once ``count > free_tries`` the
account is locked until

    failure_instant + ramp_multiplier * (n - free) * ln(n - free) + base_delay

capped at 24 hours.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import attrs
import structlog
from returns.result import Failure, Result, Success

from authramp_harness.core.settings import HarnessSettings, ModuleSettings
from authramp_harness.core.types import RETURN_VALUE_NAMES, Directive, PamStatus, Phase, PolicyConfiguration
from authramp_harness.pam.conversation import ConversationMessage, MessageStyle
from authramp_harness.pam.service import AuthService, SessionHandle
from authramp_harness.state.tally import read_tally_file, render_tally

logger = structlog.get_logger()

MAX_LOCK = timedelta(hours=24)

ModuleHook = Callable[[SessionHandle, Phase, Directive], int]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _status_key(status: int) -> str:
    """Control value name Linux-PAM matches a module return against."""
    if 0 <= status < len(RETURN_VALUE_NAMES):
        return RETURN_VALUE_NAMES[status]
    return "default"


def lock_delay(failures: int, settings: ModuleSettings) -> timedelta:
    """Lock duration after ``failures`` consecutive failures (zero while free)."""
    excess = failures - settings.free_tries
    if excess <= 0:
        return timedelta(0)
    seconds = settings.ramp_multiplier * excess * math.log(excess) + settings.base_delay_seconds
    return min(timedelta(seconds=int(seconds)), MAX_LOCK)


def format_remaining(remaining: timedelta) -> str:
    """
    Render remaining lock time as the module does.

    Zero components are left out and every kept one carries a trailing
    space: ``"1 hour 2 minutes 1 second "``. Hours are always "hour".
    """
    total = int(remaining.total_seconds())
    parts = (
        (total // 3600, "hour"),
        ((total // 60) % 60, "minute" if (total // 60) % 60 == 1 else "minutes"),
        (total % 60, "second" if total % 60 == 1 else "seconds"),
    )
    return "".join(f"{value} {unit} " for value, unit in parts if value > 0)


@attrs.define
class SimulatedPamService(AuthService):
    """
    Linux-PAM stack emulator.

    Example:
        service = SimulatedPamService(settings, users={"user": "secret"})
        handle = service.open("test-authramp", "user", conversation).unwrap()
        status = service.authenticate(handle)
        service.close(handle, status)
    """

    settings: HarnessSettings
    users: Dict[str, str] = attrs.field(
        default=attrs.Factory(lambda self: {self.settings.user_name: self.settings.user_password}, takes_self=True)
    )
    module_settings: ModuleSettings = attrs.field(
        default=attrs.Factory(lambda self: ModuleSettings.from_harness(self.settings), takes_self=True)
    )
    clock: Callable[[], datetime] = _utcnow
    _modules: Dict[str, ModuleHook] = attrs.Factory(dict)
    _logger: Any = attrs.Factory(lambda: structlog.get_logger())

    def __attrs_post_init__(self) -> None:
        self._modules.update(
            {
                "pam_unix.so": self._pam_unix,
                "pam_permit.so": lambda handle, phase, directive: PamStatus.SUCCESS,
                "pam_deny.so": lambda handle, phase, directive: PamStatus.AUTH_ERR,
                self.settings.module_path: self._authramp,
            }
        )

    # -------------------------------------------------------------------------
    # AuthService
    # -------------------------------------------------------------------------

    def open(self, config_name, user, conversation) -> Result[SessionHandle, int]:
        path = self.settings.service_dir / config_name
        try:
            policy = PolicyConfiguration.parse(config_name, path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            self._logger.warning("sim_service_missing", path=str(path))
            return Failure(int(PamStatus.SYSTEM_ERR))
        except (OSError, UnicodeDecodeError, ValueError) as e:
            self._logger.warning("sim_service_unreadable", path=str(path), error=str(e))
            return Failure(int(PamStatus.SYSTEM_ERR))

        if not user:
            return Failure(int(PamStatus.SYSTEM_ERR))

        self._logger.debug("sim_session_opened", service=config_name, user=user)
        return Success(SessionHandle(config_name=config_name, user=user, conversation=conversation, backend_state=policy))

    def authenticate(self, handle: SessionHandle, flags: int = 0) -> int:
        return self._run_stack(handle, Phase.AUTH)

    def check_account(self, handle: SessionHandle, flags: int = 0) -> int:
        return self._run_stack(handle, Phase.ACCOUNT)

    def close(self, handle: SessionHandle, last_status: int) -> int:
        if handle.closed:
            return int(PamStatus.SYSTEM_ERR)
        handle.closed = True
        handle.backend_state = None
        self._logger.debug("sim_session_closed", service=handle.config_name, last_status=last_status)
        return int(PamStatus.SUCCESS)

    def register_module(self, name: str, hook: ModuleHook) -> None:
        """Add or replace an emulated module."""
        self._modules[name] = hook

    # -------------------------------------------------------------------------
    # Stack evaluation (libpam/pam_dispatch.c semantics)
    # -------------------------------------------------------------------------

    def _run_stack(self, handle: SessionHandle, phase: Phase) -> int:
        if handle.closed or not isinstance(handle.backend_state, PolicyConfiguration):
            return int(PamStatus.SYSTEM_ERR)

        directives = handle.backend_state.for_phase(phase)
        impression: Optional[bool] = None
        status = int(PamStatus.PERM_DENIED)
        skip = 0

        for directive in directives:
            if skip:
                skip -= 1
                continue

            retval = int(self._invoke(handle, phase, directive))
            actions = directive.control.actions()
            action = actions.get(_status_key(retval), actions.get("default", "bad"))

            self._logger.debug(
                "sim_module_returned",
                module=directive.module,
                args=" ".join(directive.args),
                status=PamStatus.describe(retval),
                action=action,
            )

            if action == "ignore":
                continue
            if action == "reset":
                impression, status = None, int(PamStatus.PERM_DENIED)
                continue
            if action in ("ok", "done"):
                if impression is None or (impression and status == PamStatus.SUCCESS):
                    if retval != PamStatus.IGNORE:
                        impression, status = True, retval
                if action == "done" and impression is not False:
                    break
                continue
            if action in ("bad", "die"):
                if impression is not False:
                    impression, status = False, retval
                if action == "die":
                    break
                continue
            skip = int(action)

        if status == PamStatus.SUCCESS and impression is not True:
            status = int(PamStatus.PERM_DENIED)
        return status

    def _invoke(self, handle: SessionHandle, phase: Phase, directive: Directive) -> int:
        hook = self._modules.get(directive.module) or self._modules.get(Path(directive.module).name)
        if hook is None:
            self._logger.warning("sim_module_unknown", module=directive.module)
            return int(PamStatus.MODULE_UNKNOWN)
        return hook(handle, phase, directive)

    # -------------------------------------------------------------------------
    # Emulated modules
    # -------------------------------------------------------------------------

    def _pam_unix(self, handle: SessionHandle, phase: Phase, directive: Directive) -> int:
        if handle.user not in self.users:
            return int(PamStatus.USER_UNKNOWN)
        if phase is not Phase.AUTH:
            return int(PamStatus.SUCCESS)

        expected = self.users[handle.user]
        if not expected and "nullok" not in directive.args:
            return int(PamStatus.AUTH_ERR)

        answer = handle.conversation.respond(ConversationMessage(MessageStyle.PROMPT_ECHO_OFF, "Password: "))
        if answer is None:
            return int(PamStatus.CONV_ERR)
        return int(PamStatus.SUCCESS if answer == expected else PamStatus.AUTH_ERR)

    def _authramp(self, handle: SessionHandle, phase: Phase, directive: Directive) -> int:
        if handle.user not in self.users:
            return int(PamStatus.USER_UNKNOWN)

        tally_file = self.module_settings.tally_dir / handle.user
        count, unlock = 0, None
        if tally_file.exists():
            record = read_tally_file(tally_file, user=handle.user)
            if isinstance(record, Failure):
                self._logger.error("sim_tally_unreadable", error=record.failure().message)
                return int(PamStatus.SYSTEM_ERR)
            count = record.unwrap().failures_count
            unlock = record.unwrap().unlock_instant

        if phase is Phase.ACCOUNT:
            if tally_file.exists():
                if not self._write_tally(tally_file, 0):
                    return int(PamStatus.SYSTEM_ERR)
                if count > 0:
                    self._logger.info("sim_tally_cleared", user=handle.user, failures=count)
            return int(PamStatus.SUCCESS)

        if phase is not Phase.AUTH:
            return int(PamStatus.IGNORE)

        if "preauth" in directive.args:
            if count > self.module_settings.free_tries and self._bounce(handle, unlock):
                return int(PamStatus.AUTH_ERR)
            return int(PamStatus.SUCCESS)

        if "authfail" in directive.args:
            count += 1
            now = self.clock()
            unlock = now + lock_delay(count, self.module_settings)
            if not self._write_tally(tally_file, count, now, unlock):
                return int(PamStatus.SYSTEM_ERR)
            if count > self.module_settings.free_tries:
                self._logger.info("sim_account_locked", user=handle.user, failures=count, until=unlock.isoformat())
                self._bounce(handle, unlock)
            return int(PamStatus.AUTH_ERR)

        return int(PamStatus.AUTH_ERR)

    def _bounce(self, handle: SessionHandle, unlock: Optional[datetime]) -> bool:
        """Send the lockout notice; True while the account is still locked."""
        if handle.user == "root" and not self.module_settings.even_deny_root:
            return False
        now = self.clock()
        if unlock is None or now >= unlock:
            return False
        remaining = min(unlock - now, MAX_LOCK)
        handle.conversation.respond(
            ConversationMessage(MessageStyle.ERROR_MSG, f"Account locked! Unlocking in {format_remaining(remaining)}.")
        )
        return True

    def _write_tally(
        self,
        path: Path,
        count: int,
        instant: Optional[datetime] = None,
        unlock: Optional[datetime] = None,
    ) -> bool:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(render_tally(count, instant, unlock), encoding="utf-8")
        except OSError as e:
            self._logger.error("sim_tally_write_failed", path=str(path), error=str(e))
            return False
        return True
