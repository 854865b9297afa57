"""
Tally file reader.

The module under test keeps one TOML file per user:

    [Fails]
    count = 3
    instant = "2024-01-01 10:00:00.123456789 UTC"
    unlock_instant = "2024-01-01 10:00:30.123456789 UTC"

Older module releases wrote the same keys as INI with bare values
(``count=3``); files that are not valid TOML are read that way.
Instants are chrono ``DateTime<Utc>`` strings; RFC 3339 is accepted too.
"""

from __future__ import annotations

import configparser
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from returns.result import Failure, Result, Success

from authramp_harness.core.exceptions import StateIOError
from authramp_harness.core.types import TallyRecord

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

FAILS_SECTION = "Fails"

_FRACTION = re.compile(r"\.(\d{6})\d+")


def parse_instant(value: Union[str, datetime]) -> datetime:
    """Parse a tally timestamp into an aware UTC datetime."""
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if text.endswith(" UTC"):
            text = text[: -len(" UTC")]
        elif text.endswith("Z"):
            text = text[:-1]
        text = _FRACTION.sub(r".\1", text)
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_instant(value: datetime) -> str:
    """Format an instant the way the module writes it."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f UTC")


def render_tally(count: int, instant: Optional[datetime] = None, unlock: Optional[datetime] = None) -> str:
    """Render a tally file in the module's TOML layout."""
    lines = [f"[{FAILS_SECTION}]", f"count = {count}"]
    if instant is not None:
        lines.append(f'instant = "{format_instant(instant)}"')
    if unlock is not None:
        lines.append(f'unlock_instant = "{format_instant(unlock)}"')
    return "\n".join(lines) + "\n"


def _load_sections(text: str) -> Mapping[str, Mapping[str, Any]]:
    """TOML first, legacy INI for anything TOML rejects."""
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError:
        parser = configparser.ConfigParser(interpolation=None)
        parser.read_string(text)
        return {name: dict(parser[name]) for name in parser.sections()}


def read_tally_file(path: Path, user: Optional[str] = None) -> Result[TallyRecord, StateIOError]:
    """
    Parse one tally file.

    Returns:
        Success(TallyRecord)
        Failure(StateIOError) if the file is missing, unreadable or lacks
        a ``[Fails]`` section
    """
    try:
        sections = _load_sections(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return Failure(StateIOError(f"No tally file at {path}", failures=((str(path), "missing"),)))
    except (OSError, configparser.Error, UnicodeDecodeError) as e:
        return Failure(StateIOError(f"Error reading tally file {path}: {e}", failures=((str(path), str(e)),)))

    section = sections.get(FAILS_SECTION)
    if not isinstance(section, Mapping):
        return Failure(
            StateIOError(
                f"Tally file {path} has no [{FAILS_SECTION}] section",
                failures=((str(path), "no section"),),
            )
        )

    try:
        count = section.get("count", 0)
        if isinstance(count, bool) or not isinstance(count, (int, str)):
            raise ValueError(f"count is not an integer: {count!r}")
        instant = section.get("instant")
        unlock = section.get("unlock_instant")
        return Success(
            TallyRecord(
                user=user or path.name,
                path=path,
                failures_count=int(count),
                failure_instant=parse_instant(instant) if instant else None,
                unlock_instant=parse_instant(unlock) if unlock else None,
            )
        )
    except (TypeError, ValueError) as e:
        return Failure(StateIOError(f"Malformed tally file {path}: {e}", failures=((str(path), str(e)),)))
