"""Unit tests for ResultLocator."""
import os
from datetime import datetime
from compute_relay.worker.result_locator import ResultLocator, parse_timestamp


class TestResultLocator:
    """Test newest-result discovery."""

    def test_missing_directory_returns_none(self, tmp_path):
        """Test a job with no output directory has no result."""
        locator = ResultLocator(str(tmp_path))

        assert locator.locate("abc.json") is None

    def test_empty_directory_returns_none(self, tmp_path):
        """Test an empty output directory has no result."""
        (tmp_path / "abc").mkdir()
        locator = ResultLocator(str(tmp_path))

        assert locator.locate("abc.json") is None

    def test_result_dir_uses_input_stem(self, tmp_path):
        """Test the output directory is named after the input stem."""
        locator = ResultLocator(str(tmp_path))

        assert locator.result_dir("abc.csv") == tmp_path / "abc"

    def test_picks_newest_timestamp_not_lexical_order(self, tmp_path):
        """Test selection goes by embedded timestamp."""
        directory = tmp_path / "abc"
        directory.mkdir()
        (directory / "result_20240102_090000.json").write_text("{}")
        (directory / "result_20231231_235959.json").write_text("{}")
        (directory / "result_20240102_100000.json").write_text("{}")
        locator = ResultLocator(str(tmp_path))

        assert locator.locate("abc.json").name == "result_20240102_100000.json"

    def test_prefers_files_matching_convention(self, tmp_path):
        """Test stray files are ignored when convention files exist."""
        directory = tmp_path / "abc"
        directory.mkdir()
        (directory / "result_20240101_000000.json").write_text("{}")
        (directory / "debug_20250101_000000.log").write_text("noise")
        locator = ResultLocator(str(tmp_path), extensions=(".json",))

        assert locator.locate("abc.json").name == "result_20240101_000000.json"

    def test_falls_back_to_modification_time(self, tmp_path):
        """Test files without timestamps are ranked by mtime."""
        directory = tmp_path / "abc"
        directory.mkdir()
        older = directory / "output_a.json"
        newer = directory / "output_b.json"
        older.write_text("{}")
        newer.write_text("{}")
        os.utime(older, (1_000_000, 1_000_000))
        os.utime(newer, (2_000_000, 2_000_000))
        locator = ResultLocator(str(tmp_path))

        assert locator.locate("abc.json") == newer


class TestParseTimestamp:
    """Test timestamp extraction from file names."""

    def test_parses_embedded_stamp(self):
        assert parse_timestamp("result_20240315_143000.json") == datetime(2024, 3, 15, 14, 30)

    def test_returns_none_without_stamp(self):
        assert parse_timestamp("result.json") is None

    def test_skips_invalid_date(self):
        """Test an impossible date is not treated as a timestamp."""
        assert parse_timestamp("result_20241399_999999.json") is None
