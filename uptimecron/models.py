"""Data models for probe outcomes, log entries and the per-tick report."""

import json
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

# Statuses that trigger the immediate website-down alert.
CRITICAL_STATUS_CODES = frozenset({404, 503})


class ProbeStatus(Enum):
    """Classification of a single probe attempt."""

    UP = "up"
    CRITICAL_DOWN = "critical_down"  # HTTP 404 or 503
    SOFT_ERROR = "soft_error"  # any other non-2xx HTTP status
    TRANSPORT_ERROR = "transport_error"  # no HTTP response at all

    @classmethod
    def from_status_code(cls, status_code: int) -> "ProbeStatus":
        if 200 <= status_code < 300:
            return cls.UP
        if status_code in CRITICAL_STATUS_CODES:
            return cls.CRITICAL_DOWN
        return cls.SOFT_ERROR


@dataclass(frozen=True)
class Attempt:
    """One HTTP attempt made while probing an endpoint.

    Attributes:
        status: Classification of this attempt.
        timestamp: Formatted instant the attempt completed.
        status_code: HTTP status code, or None on transport failure.
        error_message: Transport failure diagnostic, None otherwise.
    """

    status: ProbeStatus
    timestamp: str
    status_code: int | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of probing one endpoint during one tick.

    Attributes:
        endpoint: URL that was probed.
        status: Classification of the last attempt.
        attempts: Number of attempts actually performed (1..max_retries).
        timestamp: Formatted instant of the last attempt.
        status_code: HTTP status of the last attempt, None on transport failure.
        error_message: Transport failure diagnostic of the last attempt.
        history: Every attempt in order; len(history) == attempts.
    """

    endpoint: str
    status: ProbeStatus
    attempts: int
    timestamp: str
    status_code: int | None = None
    error_message: str | None = None
    history: tuple[Attempt, ...] = ()

    @property
    def is_up(self) -> bool:
        return self.status is ProbeStatus.UP

    @property
    def is_down(self) -> bool:
        """True for the states that fire the emergency alert."""
        return self.status in (ProbeStatus.CRITICAL_DOWN, ProbeStatus.TRANSPORT_ERROR)


@dataclass(frozen=True)
class LogEntry:
    """Down observation persisted to the state store.

    The attempt number only disambiguates the key: retries of one endpoint
    can land within the same second of timestamp resolution.
    """

    website: str
    status_code: int
    timestamp: str
    status: str = "down"
    attempt: int = 1

    @property
    def key(self) -> str:
        return f"log:{self.timestamp}:{self.website}:{self.attempt}"

    def to_json(self) -> str:
        return json.dumps(
            {
                "website": self.website,
                "status": self.status,
                "statusCode": self.status_code,
                "timestamp": self.timestamp,
            }
        )

    @classmethod
    def from_json(cls, value: str) -> "LogEntry":
        data = json.loads(value)
        return cls(
            website=data["website"],
            status_code=int(data["statusCode"]),
            timestamp=data["timestamp"],
            status=data.get("status", "down"),
        )


def _attempt_line(endpoint: str, attempt: Attempt) -> str:
    if attempt.status is ProbeStatus.UP:
        return f"[{attempt.timestamp}] {endpoint} is up"
    if attempt.status is ProbeStatus.CRITICAL_DOWN:
        return f"[{attempt.timestamp}] {endpoint} is down. Status code: {attempt.status_code}"
    if attempt.status is ProbeStatus.SOFT_ERROR:
        return f"[{attempt.timestamp}] {endpoint} returned an error. Status code: {attempt.status_code}"
    return f"[{attempt.timestamp}] Error checking {endpoint} uptime: {attempt.error_message}"


def format_outcome(outcome: ProbeOutcome) -> list[str]:
    """Render the report lines for one endpoint.

    One line per attempt; the last line carries a retry count when more than
    one attempt was needed, and a trailing error line follows a final
    transport failure.
    """
    lines = [_attempt_line(outcome.endpoint, attempt) for attempt in outcome.history]
    if lines and outcome.attempts > 1:
        lines[-1] += f" (retries: {outcome.attempts})"
    if outcome.status is ProbeStatus.TRANSPORT_ERROR and outcome.error_message:
        lines.append(f"[{outcome.timestamp}] {outcome.endpoint} error: {outcome.error_message}")
    return lines


@dataclass(frozen=True)
class StatusReport:
    """Human-readable summary of one tick, in configured endpoint order."""

    lines: tuple[str, ...] = ()

    @classmethod
    def from_outcomes(cls, outcomes: Iterable[ProbeOutcome]) -> "StatusReport":
        lines: list[str] = []
        for outcome in outcomes:
            lines.extend(format_outcome(outcome))
        return cls(lines=tuple(lines))

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def __str__(self) -> str:
        return self.text
