"""Tests for the command-line entry point."""

import argparse
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import patch

import pytest

from uptimecron import _parse_scheduled_time, main
from uptimecron.models import LogEntry, StatusReport
from uptimecron.monitor import TickResult
from uptimecron.store import SqliteStore, save_log_entry


def _write_config(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(
        "websites:\n"
        "  - https://example.com\n"
        "store:\n"
        f"  path: {tmp_path / 'state.db'}\n"
    )
    return path


class TestParseScheduledTime:
    """Tests for --scheduled-time parsing."""

    def test_aware_value_kept(self) -> None:
        assert _parse_scheduled_time("2024-05-18T07:04:05+00:00") == datetime(2024, 5, 18, 7, 4, 5, tzinfo=UTC)

    def test_naive_value_is_utc(self) -> None:
        assert _parse_scheduled_time("2024-05-18T07:04:05").tzinfo is UTC

    def test_invalid_value(self) -> None:
        with pytest.raises(argparse.ArgumentTypeError):
            _parse_scheduled_time("yesterday")


class TestMain:
    """Tests for main()."""

    def test_missing_config_exits_1(self, tmp_path: Path) -> None:
        argv = ["uptimecron", "run", "-c", str(tmp_path / "missing.yaml")]
        with patch("sys.argv", argv), pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 1

    def test_run_executes_one_tick(self, tmp_path: Path) -> None:
        config_path = _write_config(tmp_path)
        scheduled = datetime(2024, 5, 18, 7, 4, 5, tzinfo=UTC)
        argv = ["uptimecron", "run", "-c", str(config_path), "--scheduled-time", scheduled.isoformat()]

        with patch("sys.argv", argv), patch("uptimecron.monitor.Monitor") as mock_monitor:
            mock_monitor.return_value.run_tick.return_value = TickResult(
                scheduled_at=scheduled,
                outcomes=(),
                report=StatusReport(lines=()),
                has_down=False,
            )
            main()

        mock_monitor.return_value.run_tick.assert_called_once_with(scheduled)
        assert (tmp_path / "state.db").exists()

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("sys.argv", ["uptimecron", "--version"]), pytest.raises(SystemExit):
            main()
        assert "uptimecron 0.1.0" in capsys.readouterr().out


class TestLogsCommand:
    """Tests for the logs subcommand."""

    def _seed(self, tmp_path: Path) -> None:
        store = SqliteStore(str(tmp_path / "state.db"))
        try:
            # Text order of these keys differs from time order.
            save_log_entry(store, LogEntry("https://b.example.com", 503, "05/18/2024, 01:00:00 PM"))
            save_log_entry(store, LogEntry("https://a.example.com", 404, "05/18/2024, 11:00:00 AM"))
            save_log_entry(store, LogEntry("https://a.example.com", 500, "05/18/2024, 11:00:00 AM", attempt=2))
        finally:
            store.close()

    def test_prints_entries_in_time_order(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        config_path = _write_config(tmp_path)
        self._seed(tmp_path)

        with patch("sys.argv", ["uptimecron", "logs", "-c", str(config_path)]):
            main()

        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == 3
        assert lines[-1] == "[05/18/2024, 01:00:00 PM] https://b.example.com is down. Status code: 503"
        assert all("11:00:00 AM" in line for line in lines[:2])

    def test_limit(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        config_path = _write_config(tmp_path)
        self._seed(tmp_path)

        with patch("sys.argv", ["uptimecron", "logs", "-c", str(config_path), "--limit", "1"]):
            main()

        assert capsys.readouterr().out.splitlines() == [
            "[05/18/2024, 01:00:00 PM] https://b.example.com is down. Status code: 503"
        ]

    def test_empty_store(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        config_path = _write_config(tmp_path)
        SqliteStore(str(tmp_path / "state.db")).close()

        with patch("sys.argv", ["uptimecron", "logs", "-c", str(config_path)]):
            main()

        assert "No down observations recorded." in capsys.readouterr().out

    def test_missing_store_exits_1(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        config_path = _write_config(tmp_path)

        with patch("sys.argv", ["uptimecron", "logs", "-c", str(config_path)]), pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        assert "State store not found" in capsys.readouterr().out
