"""
Unit tests for core types.
"""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from authramp_harness.core.types import (
    AuthOutcome,
    Check,
    Control,
    Directive,
    PamStatus,
    Phase,
    PhaseReached,
    PolicyConfiguration,
    RunReport,
    ScenarioResult,
    TallyRecord,
    Verdict,
)


class TestPamStatus:
    """Tests for status code naming."""

    def test_known_code(self):
        assert PamStatus.describe(7) == "PAM_AUTH_ERR"
        assert PamStatus.describe(0) == "PAM_SUCCESS"

    def test_unknown_code_is_preserved(self):
        assert PamStatus.describe(99) == "PAM_UNKNOWN(99)"


class TestControl:
    """Tests for directive controls."""

    def test_keyword_expansion(self):
        assert Control.required().actions()["default"] == "bad"
        assert Control.requisite().actions()["default"] == "die"
        assert Control.sufficient().actions()["success"] == "done"
        assert Control.optional().actions()["default"] == "ignore"

    def test_bracketed(self):
        control = Control("[success=ok default=die]")
        assert control.is_bracketed
        assert control.actions() == {"success": "ok", "default": "die"}

    def test_jump_action(self):
        assert Control("[success=2 default=ignore]").actions()["success"] == "2"

    def test_unknown_keyword_rejected(self):
        with pytest.raises(ValueError):
            Control("mandatory")

    def test_unknown_action_rejected(self):
        with pytest.raises(ValueError):
            Control("[default=explode]")

    def test_unterminated_rejected(self):
        with pytest.raises(ValueError):
            Control("[default=die")


class TestDirective:
    """Tests for service-file lines."""

    def test_render_columns(self):
        directive = Directive(Phase.AUTH, Control.required(), "libpam_authramp.so", ("preauth",))
        line = directive.render()

        assert line.startswith("auth        required")
        assert line.index("libpam_authramp.so") == 12 + 45
        assert line.endswith("libpam_authramp.so preauth")

    def test_render_without_args(self):
        directive = Directive(Phase.ACCOUNT, Control.required(), "libpam_authramp.so")
        assert directive.render().endswith("libpam_authramp.so")
        assert not directive.render().endswith(" ")

    def test_parse_bracketed_control_with_spaces(self):
        directive = Directive.parse("auth [success=1   default=die] libpam_authramp.so authfail")

        assert directive.phase is Phase.AUTH
        assert directive.control.token == "[success=1 default=die]"
        assert directive.module == "libpam_authramp.so"
        assert directive.args == ("authfail",)

    def test_parse_optional_dash_prefix(self):
        assert Directive.parse("-session optional pam_permit.so").phase is Phase.SESSION

    def test_parse_rejects_unknown_phase(self):
        with pytest.raises(ValueError):
            Directive.parse("login required pam_unix.so")

    def test_parse_rejects_missing_module(self):
        with pytest.raises(ValueError):
            Directive.parse("auth required")


class TestPolicyConfiguration:
    """Tests for policy configurations."""

    def _directives(self):
        return (
            Directive(Phase.AUTH, Control.required(), "libpam_authramp.so", ("preauth",)),
            Directive(Phase.AUTH, Control.die_on_failure(), "libpam_authramp.so", ("authfail",)),
            Directive(Phase.ACCOUNT, Control.required(), "libpam_authramp.so"),
        )

    def test_render_has_no_trailing_newline(self):
        policy = PolicyConfiguration("test-authramp", self._directives())
        content = policy.render()

        assert content.count("\n") == 2
        assert not content.endswith("\n")

    def test_parse_skips_comments(self):
        content = "# comment\n\n" + PolicyConfiguration("x", self._directives()).render() + "  # trailing\n"
        policy = PolicyConfiguration.parse("x", content)

        assert policy.directives == self._directives()

    def test_name_must_be_file_name(self):
        with pytest.raises(ValueError):
            PolicyConfiguration("../etc/passwd", self._directives())
        with pytest.raises(ValueError):
            PolicyConfiguration("..", self._directives())

    def test_needs_directives(self):
        with pytest.raises(ValueError):
            PolicyConfiguration("empty", ())

    def test_for_phase(self):
        policy = PolicyConfiguration("x", self._directives())
        assert len(policy.for_phase(Phase.AUTH)) == 2
        assert len(policy.for_phase(Phase.SESSION)) == 0

    def test_has_lockout(self):
        policy = PolicyConfiguration("x", self._directives())
        assert policy.has_lockout()
        assert policy.has_lockout("libpam_authramp.so")
        assert not policy.has_lockout("pam_unix.so")
        assert not PolicyConfiguration("y", self._directives()[:1]).has_lockout()


class TestAuthOutcome:
    """Tests for authentication outcomes."""

    def test_success_requires_success_status(self):
        with pytest.raises(ValueError):
            AuthOutcome(PhaseReached.SUCCESS, int(PamStatus.AUTH_ERR))

    def test_failure_outcome(self):
        outcome = AuthOutcome(PhaseReached.AUTH_FAILED, 7, user="user", close_status=0)

        assert not outcome.success
        assert outcome.status_name == "PAM_AUTH_ERR"
        assert outcome.closed_cleanly

    def test_unclean_close(self):
        outcome = AuthOutcome(PhaseReached.SUCCESS, 0, close_status=int(PamStatus.SYSTEM_ERR))
        assert outcome.success
        assert not outcome.closed_cleanly

    def test_to_dict(self):
        data = AuthOutcome(PhaseReached.OPEN_FAILED, 4, messages=("hello",)).to_dict()
        assert data["phase_reached"] == "OPEN_FAILED"
        assert data["status"] == "PAM_SYSTEM_ERR"
        assert data["messages"] == ["hello"]


class TestTallyRecord:
    """Tests for tally records."""

    def test_lock_window(self):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        record = TallyRecord("user", Path("/tmp/user"), 7, now, now + timedelta(seconds=30))

        assert record.is_locked(now)
        assert not record.is_locked(now + timedelta(seconds=31))

    def test_no_unlock_instant_is_unlocked(self):
        assert not TallyRecord("user", Path("/tmp/user")).is_locked()


class TestScenarioResult:
    """Tests for verdict derivation."""

    def test_all_checks_pass(self):
        result = ScenarioResult("s", checks=(Check("a", True), Check("b", True)))
        assert result.verdict is Verdict.PASSED

    def test_any_failed_check_fails(self):
        result = ScenarioResult("s", checks=(Check("a", True), Check("b", False)))
        assert result.verdict is Verdict.FAILED

    def test_no_checks_fails(self):
        assert not ScenarioResult("s").passed

    def test_errors_fail(self):
        result = ScenarioResult("s", checks=(Check("a", True),)).with_errors("boom")
        assert not result.passed

    def test_with_checks_appends(self):
        result = ScenarioResult("s", checks=(Check("a", True),)).with_checks(Check("b", True))
        assert [c.label for c in result.checks] == ["a", "b"]


class TestRunReport:
    """Tests for the run report."""

    def test_exit_code(self):
        ok = ScenarioResult("ok", checks=(Check("a", True),))
        bad = ScenarioResult("bad", checks=(Check("a", False),))

        assert RunReport((ok,)).exit_code == 0
        assert RunReport((ok, bad)).exit_code == 1
        assert RunReport((ok, bad)).failed_count == 1

    def test_to_json(self):
        report = RunReport((ScenarioResult("ok", checks=(Check("a", True),)),))
        data = json.loads(report.to_json())

        assert data["passed"] is True
        assert data["total"] == 1
        assert data["results"][0]["verdict"] == "PASSED"
