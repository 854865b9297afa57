"""
AuthRamp Harness Settings

Fixed paths and test credentials for one harness process.

One HarnessSettings instance is built at startup and passed explicitly
to every component, so nothing relies on process-wide globals.
"""

from __future__ import annotations

import configparser
import os
import sys
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional, Union

import attrs
from attrs import field, validators

from authramp_harness.core.exceptions import PathTooLongError

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

DEFAULT_SERVICE_DIR = "/etc/pam.d"
DEFAULT_SERVICE_NAME = "test-authramp"
DEFAULT_TALLY_DIR = "/var/run/authramp"
DEFAULT_MODULE_PATH = "libpam_authramp.so"
DEFAULT_MODULE_CONFIG = "/etc/security/authramp.conf"

# Fixed path buffer size for service file paths
DEFAULT_MAX_PATH_LENGTH = 128


class Backend(Enum):
    """Authentication service backend selection."""

    LIBPAM = "libpam"          # System Linux-PAM through python-pam
    SIMULATED = "simulated"    # In-process stack emulator


def _to_backend(value: Union[str, Backend]) -> Backend:
    return value if isinstance(value, Backend) else Backend(str(value).lower())


@attrs.define(frozen=True)
class HarnessSettings:
    """
    Harness configuration.

    Attributes:
        service_dir: Directory the PAM library loads service files from
        service_name: Service (configuration) name used by the scenarios
        tally_dir: Directory the module under test keeps tally files in
        module_path: Module reference written into the directives
        module_config: Configuration file the module under test reads
        user_name: Test user identity
        user_password: Correct password for the test user
        invalid_password: Password used for failing attempts
        free_tries: Failures the module tolerates before locking
        max_path_length: Upper bound on any fixture path
        backend: Authentication service backend
    """

    service_dir: Path = field(default=Path(DEFAULT_SERVICE_DIR), converter=Path)
    service_name: str = field(default=DEFAULT_SERVICE_NAME)
    tally_dir: Path = field(default=Path(DEFAULT_TALLY_DIR), converter=Path)
    module_path: str = DEFAULT_MODULE_PATH
    module_config: Path = field(default=Path(DEFAULT_MODULE_CONFIG), converter=Path)
    user_name: str = field(default="user", validator=validators.min_len(1))
    user_password: str = field(default="", repr=False)
    invalid_password: str = field(default="INVALID", repr=False)
    free_tries: int = field(default=6, converter=int, validator=validators.ge(0))
    max_path_length: int = field(default=DEFAULT_MAX_PATH_LENGTH, validator=validators.gt(0))
    backend: Backend = field(default=Backend.LIBPAM, converter=_to_backend)

    @service_name.validator
    def _check_service_name(self, attribute: attrs.Attribute, value: str) -> None:
        if not value or "/" in value or value in (".", ".."):
            raise ValueError(f"Invalid service name: {value!r}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> HarnessSettings:
        """
        Build settings from environment variables.

        TEST_USER_NAME / TEST_USER_PWD carry the test account; the
        AUTHRAMP_* variables relocate paths and pick the backend.
        Keyword overrides win over the environment.
        """
        env = os.environ if environ is None else environ
        mapping = {
            "service_dir": "AUTHRAMP_SERVICE_DIR",
            "service_name": "AUTHRAMP_SERVICE_NAME",
            "tally_dir": "AUTHRAMP_TALLY_DIR",
            "module_path": "AUTHRAMP_MODULE_PATH",
            "module_config": "AUTHRAMP_MODULE_CONFIG",
            "user_name": "TEST_USER_NAME",
            "user_password": "TEST_USER_PWD",
            "free_tries": "AUTHRAMP_FREE_TRIES",
            "backend": "AUTHRAMP_BACKEND",
        }
        kwargs = {name: env[var] for name, var in mapping.items() if env.get(var)}
        kwargs.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**kwargs)

    @classmethod
    def for_directory(cls, root: Union[str, Path], **overrides) -> HarnessSettings:
        """Root the service, tally and module config paths under a scratch directory."""
        root = Path(root)
        kwargs = {
            "service_dir": root / "pam.d",
            "tally_dir": root / "authramp",
            "module_config": root / "authramp.conf",
            "backend": Backend.SIMULATED,
        }
        kwargs.update(overrides)
        return cls(**kwargs)

    def service_path(self, name: Optional[str] = None) -> Path:
        """
        Path of the service file for ``name`` (default: the suite's service).

        Raises:
            PathTooLongError: The path does not fit the fixed budget
        """
        path = self.service_dir / (name or self.service_name)
        if len(str(path)) > self.max_path_length:
            raise PathTooLongError(str(path), self.max_path_length)
        return path

    def tally_path(self, user: Optional[str] = None) -> Path:
        return self.tally_dir / (user or self.user_name)

    def aligned_with_module(self) -> HarnessSettings:
        """
        Take tally_dir and free_tries from the module's own config file.

        Scenarios then look for tallies where the module writes them and
        expect the lock at the module's threshold. Without a config file
        the settings come back unchanged.
        """
        module = ModuleSettings.from_harness(self)
        return attrs.evolve(self, tally_dir=module.tally_dir, free_tries=module.free_tries)


@attrs.define(frozen=True)
class ModuleSettings:
    """
    Settings of the module under test (``[Configuration]`` in authramp.conf).

    The simulated backend runs on these; under libpam they tell the
    harness where the real module keeps tallies and when it locks.
    """

    tally_dir: Path = field(default=Path(DEFAULT_TALLY_DIR), converter=Path)
    free_tries: int = field(default=6, validator=validators.ge(0))
    base_delay_seconds: int = field(default=30, validator=validators.ge(0))
    ramp_multiplier: int = field(default=50, validator=validators.ge(0))
    even_deny_root: bool = False

    @classmethod
    def load(cls, path: Union[str, Path, None] = None, **defaults) -> ModuleSettings:
        """
        Load authramp.conf.

        The file is TOML with a ``[Configuration]`` table. Files that are
        not TOML are read as the older INI layout with a ``[Settings]``
        section. A missing file or section, or a value of the wrong
        type, falls back to the defaults, as the module itself does.
        """
        base = cls(**defaults)
        try:
            text = Path(path or DEFAULT_MODULE_CONFIG).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return base

        try:
            table = tomllib.loads(text).get("Configuration")
        except tomllib.TOMLDecodeError:
            return cls._load_legacy(text, base)
        if not isinstance(table, dict):
            return base

        def _typed(key: str, kind: type, fallback):
            value = table.get(key)
            if isinstance(value, bool) and kind is not bool:
                return fallback
            return value if isinstance(value, kind) else fallback

        ramp = _typed("ramp_multiplier", float, None)
        return attrs.evolve(
            base,
            tally_dir=_typed("tally_dir", str, str(base.tally_dir)),
            free_tries=_typed("free_tries", int, base.free_tries),
            base_delay_seconds=_typed("base_delay_seconds", int, base.base_delay_seconds),
            # Read as a float only; an integer value keeps the default
            ramp_multiplier=int(ramp) if ramp is not None else base.ramp_multiplier,
            even_deny_root=_typed("even_deny_root", bool, base.even_deny_root),
        )

    @classmethod
    def _load_legacy(cls, text: str, base: ModuleSettings) -> ModuleSettings:
        parser = configparser.ConfigParser(interpolation=None)
        try:
            parser.read_string(text)
        except configparser.Error:
            return base
        if not parser.has_section("Settings"):
            return base

        section = parser["Settings"]

        def _int(*keys: str, fallback: int) -> int:
            for key in keys:
                if key in section:
                    try:
                        return section.getint(key)
                    except ValueError:
                        return fallback
            return fallback

        return attrs.evolve(
            base,
            tally_dir=section.get("tally_dir", str(base.tally_dir)),
            free_tries=_int("free_tries", fallback=base.free_tries),
            base_delay_seconds=_int("base_delay_seconds", "base_delay", fallback=base.base_delay_seconds),
            ramp_multiplier=_int("ramp_multiplier", fallback=base.ramp_multiplier),
        )

    @classmethod
    def from_harness(cls, settings: HarnessSettings) -> ModuleSettings:
        """Module settings as configured on disk, defaulting to the harness values."""
        return cls.load(settings.module_config, tally_dir=settings.tally_dir, free_tries=settings.free_tries)
