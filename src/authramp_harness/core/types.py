"""
AuthRamp Harness Core Types

Data model shared by the fixture writer, state inspector, authentication
driver and scenario runner.

Design Principles:
- Immutable: All records use frozen attrs
- Validated: Constraints enforced at construction
- Raw codes preserved: PAM status codes outside the known set survive as ints
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum, IntEnum, auto
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import attrs
from attrs import field, validators


# =============================================================================
# ENUMS
# =============================================================================


class PamStatus(IntEnum):
    """
    Linux-PAM result codes (security/_pam_types.h).

    The driver keeps the raw integer returned by the service; this enum
    only gives names to the well-known values.
    """

    SUCCESS = 0
    OPEN_ERR = 1
    SYMBOL_ERR = 2
    SERVICE_ERR = 3
    SYSTEM_ERR = 4
    BUF_ERR = 5
    PERM_DENIED = 6
    AUTH_ERR = 7
    CRED_INSUFFICIENT = 8
    AUTHINFO_UNAVAIL = 9
    USER_UNKNOWN = 10
    MAXTRIES = 11
    NEW_AUTHTOK_REQD = 12
    ACCT_EXPIRED = 13
    SESSION_ERR = 14
    CRED_UNAVAIL = 15
    CRED_EXPIRED = 16
    CRED_ERR = 17
    NO_MODULE_DATA = 18
    CONV_ERR = 19
    AUTHTOK_ERR = 20
    AUTHTOK_RECOVERY_ERR = 21
    AUTHTOK_LOCK_BUSY = 22
    AUTHTOK_DISABLE_AGING = 23
    TRY_AGAIN = 24
    IGNORE = 25
    ABORT = 26
    AUTHTOK_EXPIRED = 27
    MODULE_UNKNOWN = 28
    BAD_ITEM = 29
    CONV_AGAIN = 30
    INCOMPLETE = 31

    @classmethod
    def describe(cls, code: int) -> str:
        """Return the symbolic name for a raw code, e.g. ``PAM_AUTH_ERR``."""
        try:
            return f"PAM_{cls(code).name}"
        except ValueError:
            return f"PAM_UNKNOWN({code})"


class Phase(Enum):
    """PAM management group a directive belongs to."""

    AUTH = "auth"
    ACCOUNT = "account"
    PASSWORD = "password"
    SESSION = "session"


class PhaseReached(Enum):
    """How far a single authentication attempt got."""

    OPEN_FAILED = auto()
    AUTH_FAILED = auto()
    ACCT_CHECK_FAILED = auto()
    SUCCESS = auto()


class Verdict(Enum):
    """Scenario verdict."""

    PASSED = auto()
    FAILED = auto()


# =============================================================================
# POLICY CONFIGURATION
# =============================================================================

# Linux-PAM expansions of the simple control keywords (man pam.conf)
_CONTROL_KEYWORDS: Dict[str, Dict[str, str]] = {
    "required": {"success": "ok", "new_authtok_reqd": "ok", "ignore": "ignore", "default": "bad"},
    "requisite": {"success": "ok", "new_authtok_reqd": "ok", "ignore": "ignore", "default": "die"},
    "sufficient": {"success": "done", "new_authtok_reqd": "done", "default": "ignore"},
    "optional": {"success": "ok", "new_authtok_reqd": "ok", "default": "ignore"},
}

_CONTROL_ACTIONS = frozenset({"ok", "done", "die", "bad", "ignore", "reset"})

# Value names accepted left of "=" in a bracketed control, indexed by
# return code (libpam/pam_handlers.c _pam_token_returns). They differ
# from the PamStatus names in places, e.g. authtok_recover_err.
RETURN_VALUE_NAMES: Tuple[str, ...] = (
    "success",
    "open_err",
    "symbol_err",
    "service_err",
    "system_err",
    "buf_err",
    "perm_denied",
    "auth_err",
    "cred_insufficient",
    "authinfo_unavail",
    "user_unknown",
    "maxtries",
    "new_authtok_reqd",
    "acct_expired",
    "session_err",
    "cred_unavail",
    "cred_expired",
    "cred_err",
    "no_module_data",
    "conv_err",
    "authtok_err",
    "authtok_recover_err",
    "authtok_lock_busy",
    "authtok_disable_aging",
    "try_again",
    "ignore",
    "abort",
    "authtok_expired",
    "module_unknown",
    "bad_item",
    "conv_again",
    "incomplete",
)

# Column widths used by the module's shipped examples
PHASE_COLUMN = 12
CONTROL_COLUMN = 45


@attrs.define(frozen=True, slots=True)
class Control:
    """
    Directive control token.

    Either a keyword (``required``, ``requisite``, ``sufficient``,
    ``optional``) or the bracketed ``[value=action ...]`` syntax. Actions
    may also be a positive integer (jump over that many directives).
    """

    token: str = field(validator=[validators.instance_of(str), validators.min_len(1)])

    def __attrs_post_init__(self) -> None:
        # Raises on malformed tokens
        self.actions()

    @classmethod
    def required(cls) -> Control:
        return cls("required")

    @classmethod
    def requisite(cls) -> Control:
        return cls("requisite")

    @classmethod
    def sufficient(cls) -> Control:
        return cls("sufficient")

    @classmethod
    def optional(cls) -> Control:
        return cls("optional")

    @classmethod
    def die_on_failure(cls) -> Control:
        """Terminate the stack on any non-success: ``[default=die]``."""
        return cls("[default=die]")

    @property
    def is_bracketed(self) -> bool:
        return self.token.startswith("[")

    def actions(self) -> Dict[str, str]:
        """Return the return-value -> action mapping for this control."""
        if not self.is_bracketed:
            try:
                return dict(_CONTROL_KEYWORDS[self.token])
            except KeyError:
                raise ValueError(f"Unknown control keyword: {self.token}") from None

        if not self.token.endswith("]"):
            raise ValueError(f"Unterminated control: {self.token}")

        mapping: Dict[str, str] = {}
        for pair in self.token[1:-1].split():
            name, sep, action = pair.partition("=")
            if not sep or not name or not action:
                raise ValueError(f"Malformed control entry {pair!r} in {self.token}")
            if action not in _CONTROL_ACTIONS and not action.isdigit():
                raise ValueError(f"Unknown control action {action!r} in {self.token}")
            mapping[name.lower()] = action
        if not mapping:
            raise ValueError(f"Empty control: {self.token}")
        return mapping

    def __str__(self) -> str:
        return self.token


@attrs.define(frozen=True, slots=True)
class Directive:
    """
    One line of a PAM service file.

    Format: ``<phase> <control> <module-path> [args]``
    """

    phase: Phase = field(validator=validators.instance_of(Phase))
    control: Control = field(validator=validators.instance_of(Control))
    module: str = field(validator=[validators.instance_of(str), validators.min_len(1)])
    args: Tuple[str, ...] = field(default=(), converter=tuple)

    def render(self) -> str:
        """Render as an aligned service-file line."""
        line = (
            f"{self.phase.value.ljust(PHASE_COLUMN)}"
            f"{self.control.token.ljust(CONTROL_COLUMN)}"
            f"{self.module}"
        )
        if self.args:
            line += " " + " ".join(self.args)
        return line

    @classmethod
    def parse(cls, line: str) -> Directive:
        """
        Parse a service-file line.

        Bracketed controls may contain spaces, so the control token runs
        to the matching ``]``.
        """
        parts = line.split(None, 1)
        if len(parts) < 2:
            raise ValueError(f"Incomplete directive: {line!r}")
        phase_token, rest = parts
        phase_token = phase_token.lstrip("-")
        try:
            phase = Phase(phase_token.lower())
        except ValueError:
            raise ValueError(f"Unknown phase {phase_token!r} in {line!r}") from None

        rest = rest.lstrip()
        if rest.startswith("["):
            end = rest.find("]")
            if end == -1:
                raise ValueError(f"Unterminated control in {line!r}")
            control_token = " ".join(rest[: end + 1].split())
            rest = rest[end + 1 :]
        else:
            pieces = rest.split(None, 1)
            control_token = pieces[0]
            rest = pieces[1] if len(pieces) > 1 else ""

        tokens = rest.split()
        if not tokens:
            raise ValueError(f"Missing module path in {line!r}")
        return cls(
            phase=phase,
            control=Control(control_token),
            module=tokens[0],
            args=tuple(tokens[1:]),
        )


@attrs.define(frozen=True, slots=True)
class PolicyConfiguration:
    """
    Named, ordered list of directives materialized as one service file.

    INVARIANT: name is a single path component
    """

    name: str = field(validator=[validators.instance_of(str), validators.min_len(1)])
    directives: Tuple[Directive, ...] = field(converter=tuple)

    @name.validator
    def _check_name(self, attribute: attrs.Attribute, value: str) -> None:
        if "/" in value or value in (".", ".."):
            raise ValueError(f"Configuration name must be a plain file name: {value!r}")

    @directives.validator
    def _check_directives(self, attribute: attrs.Attribute, value: Tuple[Directive, ...]) -> None:
        if not value:
            raise ValueError("A policy configuration needs at least one directive")

    def render(self) -> str:
        """Render file content; lines joined by newline, nothing appended."""
        return "\n".join(d.render() for d in self.directives)

    @classmethod
    def parse(cls, name: str, content: str) -> PolicyConfiguration:
        """Parse service-file content, skipping blank lines and comments."""
        directives = []
        for raw in content.splitlines():
            line = raw.split("#", 1)[0].strip()
            if line:
                directives.append(Directive.parse(line))
        return cls(name=name, directives=tuple(directives))

    def for_phase(self, phase: Phase) -> Tuple[Directive, ...]:
        return tuple(d for d in self.directives if d.phase is phase)

    def has_lockout(self, module: Optional[str] = None) -> bool:
        """True if some directive invokes the module with ``authfail``."""
        return any(
            "authfail" in d.args and (module is None or d.module == module)
            for d in self.directives
        )


# =============================================================================
# AUTHENTICATION RESULTS
# =============================================================================


@attrs.define(frozen=True, slots=True)
class AuthOutcome:
    """
    Result of one pass through open -> authenticate -> account -> close.

    Attributes:
        phase_reached: Furthest phase reached
        status_code: Raw status of the last phase that ran
        user: User identity the session was bound to
        config_name: Service configuration used
        close_status: Raw status returned when closing (None if never opened)
        messages: Conversation messages the stack sent during the session
    """

    phase_reached: PhaseReached
    status_code: int
    user: str = ""
    config_name: str = ""
    close_status: Optional[int] = None
    messages: Tuple[str, ...] = ()

    def __attrs_post_init__(self) -> None:
        if self.phase_reached is PhaseReached.SUCCESS and self.status_code != PamStatus.SUCCESS:
            raise ValueError("Successful outcome must carry PAM_SUCCESS")

    @property
    def success(self) -> bool:
        return self.phase_reached is PhaseReached.SUCCESS

    @property
    def status_name(self) -> str:
        return PamStatus.describe(self.status_code)

    @property
    def closed_cleanly(self) -> bool:
        return self.close_status is None or self.close_status == PamStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase_reached": self.phase_reached.name,
            "status_code": self.status_code,
            "status": self.status_name,
            "user": self.user,
            "config_name": self.config_name,
            "close_status": self.close_status,
            "messages": list(self.messages),
        }


# =============================================================================
# TALLY RECORDS
# =============================================================================


@attrs.define(frozen=True, slots=True)
class TallyRecord:
    """
    Parsed view of a per-user tally file.

    The file belongs to the module under test; the harness reads it but
    never writes it.
    """

    user: str
    path: Path
    failures_count: int = 0
    failure_instant: Optional[datetime] = None
    unlock_instant: Optional[datetime] = None

    def is_locked(self, now: Optional[datetime] = None) -> bool:
        """True while the unlock instant lies in the future."""
        if self.unlock_instant is None:
            return False
        if now is None:
            now = datetime.now(timezone.utc)
        return now < self.unlock_instant


# =============================================================================
# SCENARIO RESULTS
# =============================================================================


@attrs.define(frozen=True, slots=True)
class Expectation:
    """Declared before/after condition of a scenario."""

    expect_success: bool
    expect_tally: Optional[bool] = None


@attrs.define(frozen=True, slots=True)
class Check:
    """One labelled checked condition."""

    label: str
    passed: bool
    detail: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "passed": self.passed, "detail": self.detail}


@attrs.define(frozen=True, slots=True)
class ScenarioResult:
    """
    Outcome of one scenario.

    The verdict is derived: a scenario passes only if every check passed
    and no harness error was recorded.
    """

    name: str
    outcome: Optional[AuthOutcome] = None
    checks: Tuple[Check, ...] = field(default=(), converter=tuple)
    errors: Tuple[str, ...] = field(default=(), converter=tuple)
    duration: float = 0.0

    @property
    def verdict(self) -> Verdict:
        if self.errors or not self.checks or not all(c.passed for c in self.checks):
            return Verdict.FAILED
        return Verdict.PASSED

    @property
    def passed(self) -> bool:
        return self.verdict is Verdict.PASSED

    def with_checks(self, *checks: Check) -> ScenarioResult:
        return attrs.evolve(self, checks=self.checks + checks)

    def with_errors(self, *errors: str) -> ScenarioResult:
        return attrs.evolve(self, errors=self.errors + errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "verdict": self.verdict.name,
            "duration": round(self.duration, 6),
            "outcome": self.outcome.to_dict() if self.outcome else None,
            "checks": [c.to_dict() for c in self.checks],
            "errors": list(self.errors),
        }


@attrs.define(frozen=True, slots=True)
class RunReport:
    """Ordered results of a harness run."""

    results: Tuple[ScenarioResult, ...] = field(default=(), converter=tuple)
    started: datetime = field(factory=lambda: datetime.now(timezone.utc))

    @property
    def passed(self) -> bool:
        return all(r.passed for r in self.results)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if not r.passed)

    @property
    def exit_code(self) -> int:
        return 0 if self.passed else 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started": self.started.isoformat(),
            "passed": self.passed,
            "total": len(self.results),
            "failed": self.failed_count,
            "results": [r.to_dict() for r in self.results],
        }

    def to_json(self, indent: Union[int, None] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)
