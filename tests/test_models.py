"""Tests for data models and report rendering."""

import json

import pytest

from uptimecron.models import Attempt, LogEntry, ProbeOutcome, ProbeStatus, StatusReport, format_outcome

TS = "05/18/2024, 03:04:05 PM"


def _outcome(endpoint: str, *attempts: Attempt) -> ProbeOutcome:
    last = attempts[-1]
    return ProbeOutcome(
        endpoint=endpoint,
        status=last.status,
        attempts=len(attempts),
        timestamp=last.timestamp,
        status_code=last.status_code,
        error_message=last.error_message,
        history=attempts,
    )


class TestProbeStatus:
    """Tests for status code classification."""

    @pytest.mark.parametrize("code", [200, 201, 204, 299])
    def test_2xx_is_up(self, code: int) -> None:
        assert ProbeStatus.from_status_code(code) is ProbeStatus.UP

    @pytest.mark.parametrize("code", [404, 503])
    def test_critical_codes(self, code: int) -> None:
        assert ProbeStatus.from_status_code(code) is ProbeStatus.CRITICAL_DOWN

    @pytest.mark.parametrize("code", [301, 400, 401, 403, 500, 502, 504])
    def test_other_codes_are_soft_errors(self, code: int) -> None:
        assert ProbeStatus.from_status_code(code) is ProbeStatus.SOFT_ERROR


class TestProbeOutcome:
    """Tests for ProbeOutcome properties."""

    def test_is_down_for_critical_and_transport(self) -> None:
        critical = _outcome("https://a", Attempt(ProbeStatus.CRITICAL_DOWN, TS, 404))
        transport = _outcome("https://a", Attempt(ProbeStatus.TRANSPORT_ERROR, TS, error_message="refused"))
        soft = _outcome("https://a", Attempt(ProbeStatus.SOFT_ERROR, TS, 500))
        up = _outcome("https://a", Attempt(ProbeStatus.UP, TS, 200))

        assert critical.is_down and transport.is_down
        assert not soft.is_down
        assert not up.is_down and up.is_up


class TestLogEntry:
    """Tests for LogEntry serialization."""

    def test_key_combines_timestamp_and_website(self) -> None:
        entry = LogEntry(website="https://example.com", status_code=503, timestamp=TS)
        assert entry.key == f"log:{TS}:https://example.com:1"

    def test_key_distinguishes_attempts(self) -> None:
        first = LogEntry(website="https://example.com", status_code=503, timestamp=TS, attempt=1)
        second = LogEntry(website="https://example.com", status_code=503, timestamp=TS, attempt=2)
        assert first.key != second.key

    def test_attempt_not_serialized(self) -> None:
        entry = LogEntry(website="https://example.com", status_code=503, timestamp=TS, attempt=3)
        assert "attempt" not in json.loads(entry.to_json())

    def test_json_shape(self) -> None:
        entry = LogEntry(website="https://example.com", status_code=503, timestamp=TS)
        assert json.loads(entry.to_json()) == {
            "website": "https://example.com",
            "status": "down",
            "statusCode": 503,
            "timestamp": TS,
        }

    def test_from_json(self) -> None:
        entry = LogEntry(website="https://example.com", status_code=404, timestamp=TS)
        assert LogEntry.from_json(entry.to_json()) == entry


class TestFormatOutcome:
    """Tests for per-endpoint report lines."""

    def test_single_success(self) -> None:
        outcome = _outcome("https://a", Attempt(ProbeStatus.UP, TS, 200))
        assert format_outcome(outcome) == [f"[{TS}] https://a is up"]

    def test_retries_suffix_on_last_line(self) -> None:
        outcome = _outcome(
            "https://a",
            Attempt(ProbeStatus.CRITICAL_DOWN, TS, 503),
            Attempt(ProbeStatus.SOFT_ERROR, TS, 500),
            Attempt(ProbeStatus.UP, TS, 200),
        )
        assert format_outcome(outcome) == [
            f"[{TS}] https://a is down. Status code: 503",
            f"[{TS}] https://a returned an error. Status code: 500",
            f"[{TS}] https://a is up (retries: 3)",
        ]

    def test_transport_error_adds_error_line(self) -> None:
        outcome = _outcome("https://a", Attempt(ProbeStatus.TRANSPORT_ERROR, TS, error_message="refused"))
        assert format_outcome(outcome) == [
            f"[{TS}] Error checking https://a uptime: refused",
            f"[{TS}] https://a error: refused",
        ]


class TestStatusReport:
    """Tests for StatusReport assembly."""

    def test_preserves_outcome_order(self) -> None:
        outcomes = [
            _outcome("https://b", Attempt(ProbeStatus.UP, TS, 200)),
            _outcome("https://a", Attempt(ProbeStatus.CRITICAL_DOWN, TS, 404)),
        ]
        report = StatusReport.from_outcomes(outcomes)
        assert report.text == (f"[{TS}] https://b is up\n[{TS}] https://a is down. Status code: 404")
        assert str(report) == report.text

    def test_empty_report(self) -> None:
        assert StatusReport.from_outcomes([]).text == ""

    def test_report_is_immutable(self) -> None:
        report = StatusReport(lines=("a",))
        with pytest.raises(AttributeError):
            report.lines = ("b",)  # type: ignore[misc]
