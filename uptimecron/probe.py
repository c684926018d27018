"""Bounded-retry HTTP probing of a single endpoint."""

import http.client
import logging
import time
import urllib.error
import urllib.request
from collections.abc import Callable
from dataclasses import dataclass

from .clock import Clock, SystemClock, format_timestamp
from .config import DEFAULT_TIMEZONE, RetryConfig
from .models import Attempt, LogEntry, ProbeOutcome, ProbeStatus
from .store import StateStore, StoreError, save_log_entry

logger = logging.getLogger(__name__)

_opener = urllib.request.build_opener()


class TransportError(Exception):
    """Raised when a request gets no HTTP response (DNS, refused, reset...)."""

    pass


@dataclass(frozen=True)
class HttpResponse:
    """Status of an HTTP response."""

    status: int

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


Fetch = Callable[[str], HttpResponse]
CriticalDownCallback = Callable[[str, int, str], None]


def http_get(url: str) -> HttpResponse:
    """Issue a plain GET and return its status.

    Non-2xx responses are returned, not raised. No custom timeout is set, so
    the transport default applies.

    Raises:
        TransportError: If no HTTP response was received.
    """
    request = urllib.request.Request(url, method="GET")
    try:
        with _opener.open(request) as response:
            return HttpResponse(status=response.status)
    except urllib.error.HTTPError as e:
        return HttpResponse(status=e.code)
    except urllib.error.URLError as e:
        reason = str(e.reason) if e.reason else "Connection failed"
        raise TransportError(reason) from e
    except http.client.HTTPException as e:
        # Malformed status line or headers; no usable HTTP response.
        raise TransportError(f"{type(e).__name__}: {e}") from e
    except (OSError, ValueError) as e:
        raise TransportError(f"{type(e).__name__}: {e}") from e


def retry_delay_ms(base_delay_ms: int, exponent: float, attempt_index: int) -> float:
    """Wait before the attempt following zero-based attempt_index."""
    return base_delay_ms * exponent**attempt_index


def probe(
    endpoint: str,
    retry: RetryConfig,
    *,
    fetch: Fetch = http_get,
    sleep: Callable[[float], None] = time.sleep,
    clock: Clock | None = None,
    timezone: str = DEFAULT_TIMEZONE,
    store: StateStore | None = None,
    on_critical_down: CriticalDownCallback | None = None,
) -> ProbeOutcome:
    """Probe an endpoint up to retry.max_retries times.

    Stops at the first 2xx. Every attempt that gets a non-2xx HTTP status is
    persisted as a LogEntry; a 404/503 additionally calls on_critical_down with
    (endpoint, status_code, timestamp). Transport failures persist nothing.
    Store and callback failures are logged and never raised.

    Args:
        endpoint: URL to probe.
        retry: Attempt count and backoff policy.
        fetch: HTTP GET primitive.
        sleep: Blocking wait in seconds, applied only between attempts.
        clock: Source of attempt timestamps.
        timezone: Timezone used to format timestamps.
        store: Where log entries are written, or None to skip persistence.
        on_critical_down: Immediate alert hook for 404/503 attempts.

    Returns:
        ProbeOutcome describing the last attempt and the full attempt history.
    """
    clock = clock or SystemClock()
    history: list[Attempt] = []

    for attempt_index in range(retry.max_retries):
        try:
            response = fetch(endpoint)
        except TransportError as e:
            timestamp = format_timestamp(clock.now(), timezone)
            logger.warning("[%s] Error checking %s uptime: %s", timestamp, endpoint, e)
            history.append(
                Attempt(
                    status=ProbeStatus.TRANSPORT_ERROR,
                    timestamp=timestamp,
                    error_message=str(e),
                )
            )
        else:
            timestamp = format_timestamp(clock.now(), timezone)
            status = ProbeStatus.from_status_code(response.status)
            history.append(Attempt(status=status, timestamp=timestamp, status_code=response.status))

            if status is ProbeStatus.UP:
                logger.info("[%s] %s is up", timestamp, endpoint)
                break

            _record_down(
                store,
                LogEntry(
                    website=endpoint,
                    status_code=response.status,
                    timestamp=timestamp,
                    attempt=attempt_index + 1,
                ),
            )

            if status is ProbeStatus.CRITICAL_DOWN:
                logger.warning("[%s] %s is down. Status code: %d", timestamp, endpoint, response.status)
                if on_critical_down is not None:
                    try:
                        on_critical_down(endpoint, response.status, timestamp)
                    except Exception as e:
                        logger.error("Website down alert failed for %s: %s", endpoint, e)
            else:
                logger.warning("[%s] %s returned an error. Status code: %d", timestamp, endpoint, response.status)

        if attempt_index < retry.max_retries - 1:
            delay = retry_delay_ms(retry.base_delay_ms, retry.exponent, attempt_index)
            logger.debug("Retrying %s in %dms", endpoint, delay)
            sleep(delay / 1000)

    last = history[-1]
    return ProbeOutcome(
        endpoint=endpoint,
        status=last.status,
        attempts=len(history),
        timestamp=last.timestamp,
        status_code=last.status_code,
        error_message=last.error_message,
        history=tuple(history),
    )


def _record_down(store: StateStore | None, entry: LogEntry) -> None:
    if store is None:
        return
    try:
        save_log_entry(store, entry)
    except StoreError as e:
        logger.error("Failed to store log entry for %s: %s", entry.website, e)
