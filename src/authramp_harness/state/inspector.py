"""
AuthRamp Harness State Inspector

Observes and resets the tally directory of the module under test.

The harness never creates tally files. It checks their existence,
enumerates them, reads them, and deletes them between scenarios.

Clearing is a best-effort sweep: every entry is attempted, failures are
collected and reported together, and nothing is rolled back.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, List, Tuple

import attrs
import structlog
from returns.result import Failure, Result, Success

from authramp_harness.core.exceptions import StateIOError
from authramp_harness.core.settings import HarnessSettings
from authramp_harness.core.types import TallyRecord
from authramp_harness.state.tally import read_tally_file

logger = structlog.get_logger()


@attrs.define
class StateInspector:
    """
    Tally directory inspector.

    Example:
        inspector = StateInspector(settings)
        assert not inspector.tally_exists("user")
        result = inspector.clear_tally_directory()
    """

    settings: HarnessSettings
    _logger: Any = attrs.Factory(lambda: structlog.get_logger())

    @property
    def tally_dir(self) -> Path:
        return self.settings.tally_dir

    def tally_path(self, user: str) -> Path:
        """Path of the tally file for ``user`` (file name is the identity)."""
        return self.tally_dir / user

    def tally_exists(self, user: str) -> bool:
        """True iff a tally file for ``user`` exists."""
        return self.tally_path(user).is_file()

    def list_tallies(self) -> List[str]:
        """Sorted identities with a tally file; empty if the directory is absent."""
        try:
            with os.scandir(self.tally_dir) as entries:
                return sorted(e.name for e in entries if e.is_file(follow_symlinks=False))
        except FileNotFoundError:
            return []

    def read_tally(self, user: str) -> Result[TallyRecord, StateIOError]:
        return read_tally_file(self.tally_path(user), user=user)

    def clear_tally_directory(self) -> Result[int, StateIOError]:
        """
        Unlink every regular file in the tally directory.

        A missing directory is a no-op. Every entry is attempted even
        after a failure; non-files are reported rather than recursed.

        Returns:
            Success(number_of_removed_files)
            Failure(StateIOError) listing each entry that could not be removed
        """
        try:
            entries = list(os.scandir(self.tally_dir))
        except FileNotFoundError:
            self._logger.debug("tally_dir_absent", path=str(self.tally_dir))
            return Success(0)
        except OSError as e:
            self._logger.error("tally_dir_unreadable", path=str(self.tally_dir), error=str(e))
            return Failure(
                StateIOError(
                    f"Error reading tally directory {self.tally_dir}: {e.strerror or e}",
                    failures=((str(self.tally_dir), str(e)),),
                    code=e.errno,
                )
            )

        removed = 0
        failures: List[Tuple[str, str]] = []
        # scandir never yields "." or ".."
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                failures.append((entry.name, "not a regular file"))
                continue
            try:
                os.unlink(entry.path)
                removed += 1
            except FileNotFoundError:
                # Gone between listing and unlink
                continue
            except OSError as e:
                failures.append((entry.name, e.strerror or str(e)))

        if failures:
            names = ", ".join(name for name, _ in failures)
            self._logger.error(
                "tally_clear_incomplete",
                path=str(self.tally_dir),
                removed=removed,
                failed=names,
            )
            return Failure(
                StateIOError(
                    f"Could not clear {len(failures)} tally entr{'y' if len(failures) == 1 else 'ies'}: {names}",
                    failures=tuple(failures),
                )
            )

        self._logger.info("tally_cleared", path=str(self.tally_dir), removed=removed)
        return Success(removed)

    def reset_user(self, user: str) -> Result[bool, StateIOError]:
        """
        Delete one user's tally.

        Returns:
            Success(True) if a tally was removed
            Success(False) if the user had no tally
            Failure(StateIOError) on any other I/O error
        """
        path = self.tally_path(user)
        try:
            path.unlink()
        except FileNotFoundError:
            self._logger.info("tally_not_found", user=user)
            return Success(False)
        except OSError as e:
            self._logger.error("tally_reset_failed", user=user, error=str(e))
            return Failure(
                StateIOError(f"Error resetting tally for {user}: {e.strerror or e}", failures=((user, str(e)),))
            )
        self._logger.info("tally_reset", user=user)
        return Success(True)
