"""
Pytest configuration and shared fixtures for AuthRamp Harness tests.
"""

from pathlib import Path

import pytest
import structlog

from authramp_harness.core.settings import HarnessSettings
from authramp_harness.fixtures.writer import FixtureWriter
from authramp_harness.pam.conversation import FixedConversation
from authramp_harness.pam.driver import AuthenticationDriver
from authramp_harness.pam.simulated import SimulatedPamService
from authramp_harness.scenarios.runner import ScenarioRunner
from authramp_harness.state.inspector import StateInspector


TEST_USER = "user"
TEST_PASSWORD = "TestP@ssw0rd123!"


# =============================================================================
# SETTINGS FIXTURES
# =============================================================================


@pytest.fixture
def settings(tmp_path: Path) -> HarnessSettings:
    """Settings rooted in a scratch directory, simulated backend."""
    harness_settings = HarnessSettings.for_directory(
        tmp_path,
        user_name=TEST_USER,
        user_password=TEST_PASSWORD,
        max_path_length=4096,
    )
    harness_settings.service_dir.mkdir(parents=True)
    return harness_settings


@pytest.fixture
def service_file(settings: HarnessSettings) -> Path:
    """Path of the suite's service file."""
    return settings.service_dir / settings.service_name


# =============================================================================
# COMPONENT FIXTURES
# =============================================================================


@pytest.fixture
def writer(settings: HarnessSettings) -> FixtureWriter:
    return FixtureWriter(settings)


@pytest.fixture
def inspector(settings: HarnessSettings) -> StateInspector:
    return StateInspector(settings)


@pytest.fixture
def sim_service(settings: HarnessSettings) -> SimulatedPamService:
    """Simulated PAM stack knowing only the test user."""
    return SimulatedPamService(settings=settings)


@pytest.fixture
def driver(sim_service: SimulatedPamService) -> AuthenticationDriver:
    return AuthenticationDriver(sim_service)


@pytest.fixture
def runner(settings: HarnessSettings, sim_service: SimulatedPamService) -> ScenarioRunner:
    return ScenarioRunner(settings=settings, service=sim_service)


@pytest.fixture
def good_conversation() -> FixedConversation:
    return FixedConversation(user=TEST_USER, password=TEST_PASSWORD)


@pytest.fixture
def bad_conversation() -> FixedConversation:
    return FixedConversation(user=TEST_USER, password="INVALID")


# =============================================================================
# HELPER FIXTURES
# =============================================================================


@pytest.fixture
def make_tally(settings: HarnessSettings):
    """Factory writing a tally file the way the module does."""

    def _make(user: str, count: int, unlock: str = "") -> Path:
        return _write_tally(settings.tally_dir, user, count, unlock)

    return _make


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration done by CLI tests."""
    yield
    structlog.reset_defaults()


def _write_tally(directory: Path, user: str, count: int, unlock: str = "") -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    lines = ["[Fails]", f"count = {count}", 'instant = "2023-01-01 00:00:00.000000000 UTC"']
    if unlock:
        lines.append(f'unlock_instant = "{unlock}"')
    path = directory / user
    path.write_text("\n".join(lines) + "\n")
    return path


# =============================================================================
# PYTEST MARKERS
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests requiring the system PAM stack and root"
    )
