"""
Policy catalogue for the module under test.

Directive stacks follow the module's documented system-auth layout:

    auth     required        libpam_authramp.so preauth
    auth     sufficient      pam_unix.so nullok
    auth     [default=die]   libpam_authramp.so authfail
    account  required        libpam_authramp.so
"""

from __future__ import annotations

from authramp_harness.core.settings import HarnessSettings
from authramp_harness.core.types import Control, Directive, Phase, PolicyConfiguration

UNIX_MODULE = "pam_unix.so"


def preauth(settings: HarnessSettings) -> Directive:
    return Directive(Phase.AUTH, Control.required(), settings.module_path, ("preauth",))


def authfail(settings: HarnessSettings) -> Directive:
    return Directive(Phase.AUTH, Control.die_on_failure(), settings.module_path, ("authfail",))


def account(settings: HarnessSettings) -> Directive:
    return Directive(Phase.ACCOUNT, Control.required(), settings.module_path)


def valid_auth_policy(settings: HarnessSettings) -> PolicyConfiguration:
    """No lockout directive; credentials decided by pam_unix alone."""
    return PolicyConfiguration(
        name=settings.service_name,
        directives=(
            preauth(settings),
            Directive(Phase.AUTH, Control.required(), UNIX_MODULE, ("nullok",)),
            account(settings),
        ),
    )


def lockout_policy(settings: HarnessSettings) -> PolicyConfiguration:
    """Full stack: preauth bounce, unix check, lockout on failure."""
    return PolicyConfiguration(
        name=settings.service_name,
        directives=(
            preauth(settings),
            Directive(Phase.AUTH, Control.sufficient(), UNIX_MODULE, ("nullok",)),
            authfail(settings),
            account(settings),
        ),
    )
