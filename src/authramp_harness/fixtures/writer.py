"""
AuthRamp Harness Fixture Writer

Materializes PAM service files so the authentication service loads them.

A configuration name maps to exactly one file at a time: writing under
the same name truncates the previous content. Files are written
byte-for-byte; no newline translation or trailing newline is added.
"""

from __future__ import annotations

import errno
from pathlib import Path
from typing import Any

import attrs
import structlog
from returns.result import Failure, Result, Success

from authramp_harness.core.exceptions import ConfigIOError, PathTooLongError
from authramp_harness.core.settings import HarnessSettings
from authramp_harness.core.types import PolicyConfiguration

logger = structlog.get_logger()


@attrs.define
class FixtureWriter:
    """
    Writes and removes service configurations under the service directory.

    Example:
        writer = FixtureWriter(settings)
        result = writer.write_policy(policy)
        if isinstance(result, Failure):
            print(result.failure().message)
    """

    settings: HarnessSettings
    _logger: Any = attrs.Factory(lambda: structlog.get_logger())

    def path_for(self, name: str) -> Result[Path, ConfigIOError]:
        """Resolve the service file path, enforcing the path budget."""
        try:
            return Success(self.settings.service_path(name))
        except PathTooLongError as e:
            self._logger.error("fixture_path_too_long", name=name, limit=e.limit)
            return Failure(e)

    def write_configuration(self, name: str, content: str) -> Result[Path, ConfigIOError]:
        """
        Create or truncate the service file for ``name``.

        Returns:
            Success(path) once the exact content is on disk
            Failure(ConfigIOError) if content is empty, the path is too
            long, or the directory is not writable
        """
        if not content:
            return Failure(ConfigIOError(f"Refusing to write empty configuration {name!r}"))

        path_result = self.path_for(name)
        if isinstance(path_result, Failure):
            return path_result
        path = path_result.unwrap()

        try:
            path.write_bytes(content.encode("utf-8"))
        except OSError as e:
            self._logger.error("fixture_write_failed", path=str(path), error=str(e))
            return Failure(
                ConfigIOError(f"Error writing {path}: {e.strerror or e}", path=str(path), code=e.errno)
            )

        self._logger.info("fixture_written", path=str(path), size=len(content))
        return Success(path)

    def write_policy(self, policy: PolicyConfiguration) -> Result[Path, ConfigIOError]:
        """Render and write a policy under its own name."""
        return self.write_configuration(policy.name, policy.render())

    def remove_configuration(self, name: str) -> Result[Path, ConfigIOError]:
        """
        Delete the service file for ``name``.

        An absent file is reported as Failure(ConfigIOError) with
        ``missing=True``; callers treat that as already removed.
        """
        path_result = self.path_for(name)
        if isinstance(path_result, Failure):
            return path_result
        path = path_result.unwrap()

        try:
            path.unlink()
        except FileNotFoundError:
            self._logger.info("fixture_already_absent", path=str(path))
            return Failure(
                ConfigIOError(f"No configuration at {path}", path=str(path), missing=True, code=errno.ENOENT)
            )
        except OSError as e:
            self._logger.error("fixture_remove_failed", path=str(path), error=str(e))
            return Failure(
                ConfigIOError(f"Error removing {path}: {e.strerror or e}", path=str(path), code=e.errno)
            )

        self._logger.info("fixture_removed", path=str(path))
        return Success(path)

    def read_configuration(self, name: str) -> Result[str, ConfigIOError]:
        """Read back the exact content of a service file."""
        path_result = self.path_for(name)
        if isinstance(path_result, Failure):
            return path_result
        path = path_result.unwrap()

        try:
            return Success(path.read_bytes().decode("utf-8"))
        except FileNotFoundError:
            return Failure(ConfigIOError(f"No configuration at {path}", path=str(path), missing=True))
        except (OSError, UnicodeDecodeError) as e:
            return Failure(ConfigIOError(f"Error reading {path}: {e}", path=str(path)))

    def exists(self, name: str) -> bool:
        path_result = self.path_for(name)
        return isinstance(path_result, Success) and path_result.unwrap().exists()
