"""
Unit tests for the state inspector and tally reader.
"""

from datetime import datetime, timezone

from returns.result import Failure, Success

from authramp_harness.core.exceptions import StateIOError
from authramp_harness.state.tally import format_instant, parse_instant, read_tally_file, render_tally


class TestTallyFile:
    """Tests for tally file parsing."""

    def test_parse_chrono_instant(self):
        parsed = parse_instant("2024-01-01 10:00:30.123456789 UTC")
        assert parsed == datetime(2024, 1, 1, 10, 0, 30, 123456, tzinfo=timezone.utc)

    def test_parse_rfc3339_instant(self):
        parsed = parse_instant("2024-01-01T10:00:30Z")
        assert parsed == datetime(2024, 1, 1, 10, 0, 30, tzinfo=timezone.utc)

    def test_format_instant(self):
        instant = datetime(2024, 1, 1, 10, 0, 30, 5, tzinfo=timezone.utc)
        assert format_instant(instant) == "2024-01-01 10:00:30.000005 UTC"
        assert parse_instant(format_instant(instant)) == instant

    def test_read(self, settings, make_tally):
        path = make_tally("user", 3, unlock="2024-01-01 10:00:30.000000000 UTC")
        record = read_tally_file(path).unwrap()

        assert record.user == "user"
        assert record.failures_count == 3
        assert record.failure_instant == datetime(2023, 1, 1, tzinfo=timezone.utc)
        assert record.unlock_instant == datetime(2024, 1, 1, 10, 0, 30, tzinfo=timezone.utc)

    def test_read_quoted_instants(self, tmp_path):
        path = tmp_path / "user"
        path.write_text(
            "[Fails]\n"
            "count = 2\n"
            'instant = "2024-01-01 10:00:00.123456789 UTC"\n'
            'unlock_instant = "2024-01-01 10:00:30.123456789 UTC"\n'
        )
        record = read_tally_file(path).unwrap()

        assert record.failures_count == 2
        assert record.failure_instant == datetime(2024, 1, 1, 10, 0, 0, 123456, tzinfo=timezone.utc)
        assert record.unlock_instant == datetime(2024, 1, 1, 10, 0, 30, 123456, tzinfo=timezone.utc)

    def test_read_created_on_preauth(self, tmp_path):
        path = tmp_path / "user"
        path.write_text('[Fails]\ncount = 0\ninstant = "2024-01-01 10:00:00.123456789 UTC"\n')
        record = read_tally_file(path).unwrap()

        assert record.failures_count == 0
        assert record.failure_instant == datetime(2024, 1, 1, 10, 0, 0, 123456, tzinfo=timezone.utc)
        assert record.unlock_instant is None

    def test_read_reset_after_success(self, tmp_path):
        path = tmp_path / "user"
        path.write_text("[Fails]\ncount = 0\n")
        record = read_tally_file(path).unwrap()

        assert record.failures_count == 0
        assert record.failure_instant is None

    def test_read_toml_datetime(self, tmp_path):
        path = tmp_path / "user"
        path.write_text("[Fails]\ncount = 1\ninstant = 2024-01-01T10:00:00Z\n")

        assert read_tally_file(path).unwrap().failure_instant == datetime(2024, 1, 1, 10, tzinfo=timezone.utc)

    def test_read_legacy_ini(self, tmp_path):
        path = tmp_path / "user"
        path.write_text(
            "[Fails]\n"
            "count=3\n"
            "instant=2024-01-01 10:00:00.123456789 UTC\n"
            "unlock_instant=2024-01-01 10:00:30.123456789 UTC\n"
        )
        record = read_tally_file(path).unwrap()

        assert record.failures_count == 3
        assert record.unlock_instant == datetime(2024, 1, 1, 10, 0, 30, 123456, tzinfo=timezone.utc)

    def test_render_matches_module_layout(self):
        instant = datetime(2024, 1, 1, 10, 0, 0, 123456, tzinfo=timezone.utc)

        assert render_tally(0) == "[Fails]\ncount = 0\n"
        assert render_tally(2, instant, instant) == (
            "[Fails]\n"
            "count = 2\n"
            'instant = "2024-01-01 10:00:00.123456 UTC"\n'
            'unlock_instant = "2024-01-01 10:00:00.123456 UTC"\n'
        )

    def test_rendered_file_reads_back(self, tmp_path):
        instant = datetime(2024, 1, 1, 10, 0, 0, 123456, tzinfo=timezone.utc)
        path = tmp_path / "user"
        path.write_text(render_tally(7, instant, instant))
        record = read_tally_file(path).unwrap()

        assert (record.failures_count, record.failure_instant, record.unlock_instant) == (7, instant, instant)

    def test_boolean_count_rejected(self, tmp_path):
        path = tmp_path / "user"
        path.write_text("[Fails]\ncount = true\n")

        assert isinstance(read_tally_file(path), Failure)

    def test_missing_section(self, tmp_path):
        path = tmp_path / "user"
        path.write_text("[Other]\ncount=1\n")

        result = read_tally_file(path)
        assert isinstance(result, Failure)
        assert isinstance(result.failure(), StateIOError)

    def test_malformed_count(self, tmp_path):
        path = tmp_path / "user"
        path.write_text("[Fails]\ncount=many\n")

        assert isinstance(read_tally_file(path), Failure)

    def test_missing_file(self, tmp_path):
        assert isinstance(read_tally_file(tmp_path / "user"), Failure)


class TestTallyQueries:
    """Tests for existence checks and listing."""

    def test_tally_exists(self, inspector, make_tally):
        assert not inspector.tally_exists("user")
        make_tally("user", 1)
        assert inspector.tally_exists("user")
        assert not inspector.tally_exists("other")

    def test_directory_is_not_a_tally(self, settings, inspector):
        (settings.tally_dir / "user").mkdir(parents=True)
        assert not inspector.tally_exists("user")

    def test_list_tallies(self, settings, inspector, make_tally):
        assert inspector.list_tallies() == []
        make_tally("zed", 1)
        make_tally("amy", 2)
        (settings.tally_dir / "subdir").mkdir()

        assert inspector.list_tallies() == ["amy", "zed"]

    def test_read_tally(self, inspector, make_tally):
        make_tally("user", 4)
        assert inspector.read_tally("user").unwrap().failures_count == 4


class TestClearTallyDirectory:
    """Tests for the best-effort sweep."""

    def test_missing_directory_is_noop(self, settings, inspector):
        assert not settings.tally_dir.exists()
        assert inspector.clear_tally_directory() == Success(0)

    def test_empty_directory(self, settings, inspector):
        settings.tally_dir.mkdir()
        assert inspector.clear_tally_directory() == Success(0)

    def test_removes_all_files(self, settings, inspector, make_tally):
        for user in ("a", "b", "c"):
            make_tally(user, 1)

        assert inspector.clear_tally_directory() == Success(3)
        assert list(settings.tally_dir.iterdir()) == []
        assert settings.tally_dir.is_dir()

    def test_partial_failure_keeps_going(self, settings, inspector, make_tally):
        make_tally("a", 1)
        (settings.tally_dir / "b-dir").mkdir()
        make_tally("c", 1)

        result = inspector.clear_tally_directory()

        assert isinstance(result, Failure)
        error = result.failure()
        assert [name for name, _ in error.failures] == ["b-dir"]
        assert "b-dir" in error.message
        # Files on either side of the failing entry are gone
        assert sorted(p.name for p in settings.tally_dir.iterdir()) == ["b-dir"]

    def test_idempotent(self, inspector, make_tally):
        make_tally("user", 1)
        inspector.clear_tally_directory()

        assert inspector.clear_tally_directory() == Success(0)


class TestResetUser:
    """Tests for resetting one user's tally."""

    def test_reset_existing(self, inspector, make_tally):
        make_tally("user", 5)
        make_tally("other", 1)

        assert inspector.reset_user("user") == Success(True)
        assert not inspector.tally_exists("user")
        assert inspector.tally_exists("other")

    def test_reset_absent(self, inspector):
        assert inspector.reset_user("user") == Success(False)
