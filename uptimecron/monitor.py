"""Tick orchestration: concurrent probes, report assembly and debounced dispatch."""

import logging
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime

from .clock import Clock, SystemClock, format_timestamp, to_epoch_ms
from .config import Config
from .models import Attempt, ProbeOutcome, ProbeStatus, StatusReport
from .notifier import Notifier
from .probe import Fetch, http_get, probe
from .store import LAST_CHAT_REPORT_KEY, LAST_EMAIL_SENT_KEY, StateStore, get_timer, set_timer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TickResult:
    """What happened during one tick.

    Attributes:
        scheduled_at: Nominal instant the tick was scheduled for.
        outcomes: One outcome per configured website, in configured order.
        report: Status report built from the outcomes.
        has_down: Whether any website ended critical-down or unreachable.
        email_sent: Whether the email digest was delivered.
        chat_sent: Whether the chat digest was delivered.
        emergency_sent: Whether any part of the emergency alert was delivered.
    """

    scheduled_at: datetime
    outcomes: tuple[ProbeOutcome, ...]
    report: StatusReport
    has_down: bool
    email_sent: bool = False
    chat_sent: bool = False
    emergency_sent: bool = False


class Monitor:
    """Runs one check-and-notify tick per call.

    Holds no state between ticks; debounce timers live in the state store so
    they survive across short-lived processes.

    Example:
        monitor = Monitor(config, store, notifier)
        monitor.run_tick(scheduled_at)
    """

    def __init__(
        self,
        config: Config,
        store: StateStore,
        notifier: Notifier,
        clock: Clock | None = None,
        fetch: Fetch = http_get,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the monitor.

        Args:
            config: Application configuration.
            store: Durable store for timers and log entries.
            notifier: Notification dispatchers.
            clock: Source of "now" for attempt timestamps and debounce checks.
            fetch: HTTP GET primitive used by probes.
            sleep: Blocking wait used for retry backoff.
        """
        self._config = config
        self._store = store
        self._notifier = notifier
        self._clock = clock or SystemClock()
        self._fetch = fetch
        self._sleep = sleep

    def run_tick(self, scheduled_at: datetime) -> TickResult:
        """Probe every website, then send whichever notifications are due.

        Never raises: probe, store and dispatcher failures are logged.
        """
        logger.info(
            "Tick %s: checking %d websites",
            format_timestamp(scheduled_at, self._config.timezone),
            len(self._config.websites),
        )

        outcomes = self._probe_all()
        report = StatusReport.from_outcomes(outcomes)
        has_down = any(outcome.is_down for outcome in outcomes)

        now_ms = to_epoch_ms(self._clock.now())

        email_sent = False
        if self._notifier.email_enabled:
            email_sent = self._maybe_send_digest(
                LAST_EMAIL_SENT_KEY,
                self._config.intervals.email_ms,
                now_ms,
                lambda: self._notifier.send_digest_email(report, scheduled_at),
            )

        chat_sent = False
        if self._notifier.chat_enabled:
            chat_sent = self._maybe_send_digest(
                LAST_CHAT_REPORT_KEY,
                self._config.intervals.chat_ms,
                now_ms,
                lambda: self._notifier.send_chat_digest(report, scheduled_at),
            )

        emergency_sent = False
        if has_down or self._config.test_mode:
            if self._config.test_mode and not has_down:
                logger.info("Test mode: forcing emergency alert")
            emergency_sent = self._dispatch(
                "emergency alert",
                lambda: self._notifier.send_emergency_alert(report, scheduled_at),
            )

        return TickResult(
            scheduled_at=scheduled_at,
            outcomes=tuple(outcomes),
            report=report,
            has_down=has_down,
            email_sent=email_sent,
            chat_sent=chat_sent,
            emergency_sent=emergency_sent,
        )

    def _probe_all(self) -> list[ProbeOutcome]:
        """Probe all websites concurrently and return outcomes in configured order."""
        websites = self._config.websites
        with ThreadPoolExecutor(max_workers=len(websites), thread_name_prefix="probe") as executor:
            futures = [executor.submit(self._probe_one, website) for website in websites]

            outcomes: list[ProbeOutcome] = []
            for website, future in zip(websites, futures):
                try:
                    outcomes.append(future.result())
                except Exception as e:
                    logger.error("Failed to check %s: %s", website, e)
                    outcomes.append(self._failed_outcome(website, e))
        return outcomes

    def _probe_one(self, website: str) -> ProbeOutcome:
        return probe(
            website,
            self._config.retry,
            fetch=self._fetch,
            sleep=self._sleep,
            clock=self._clock,
            timezone=self._config.timezone,
            store=self._store,
            on_critical_down=self._notifier.send_down_email if self._notifier.email_enabled else None,
        )

    def _failed_outcome(self, website: str, error: Exception) -> ProbeOutcome:
        timestamp = format_timestamp(self._clock.now(), self._config.timezone)
        message = f"{type(error).__name__}: {error}"
        return ProbeOutcome(
            endpoint=website,
            status=ProbeStatus.TRANSPORT_ERROR,
            attempts=1,
            timestamp=timestamp,
            error_message=message,
            history=(Attempt(status=ProbeStatus.TRANSPORT_ERROR, timestamp=timestamp, error_message=message),),
        )

    def _maybe_send_digest(
        self,
        timer_key: str,
        interval_ms: int,
        now_ms: int,
        send: Callable[[], bool],
    ) -> bool:
        """Send a digest if its debounce window has elapsed, then advance the timer.

        The read, decision, send and write happen back to back. Two overlapping
        ticks can still both pass the check; there is no lock.
        """
        try:
            last_sent_ms = get_timer(self._store, timer_key)
        except Exception as e:
            logger.error("Failed to read %s, skipping digest: %s", timer_key, e)
            return False

        if now_ms - last_sent_ms < interval_ms:
            logger.debug(
                "%s: %dms left in debounce window",
                timer_key,
                interval_ms - (now_ms - last_sent_ms),
            )
            return False

        if not self._dispatch(timer_key, send):
            return False

        try:
            set_timer(self._store, timer_key, now_ms)
        except Exception as e:
            logger.error("Failed to write %s: %s", timer_key, e)
        return True

    def _dispatch(self, label: str, send: Callable[[], bool]) -> bool:
        try:
            return bool(send())
        except Exception as e:
            logger.error("Dispatcher for %s failed: %s", label, e)
            return False
