"""uptimecron - scheduled website uptime checks with email and chat notifications."""

import argparse
import logging
import sys
from datetime import UTC, datetime

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


def _parse_scheduled_time(value: str) -> datetime:
    """Parse an ISO 8601 instant for --scheduled-time; naive values are UTC."""
    try:
        instant = datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid ISO 8601 timestamp: {value!r}")
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return instant


def _cmd_run(args: argparse.Namespace) -> None:
    """Execute the run command - perform one check-and-notify tick."""
    _setup_logging(args.verbose)

    logger.info("uptimecron %s starting...", __version__)

    # Import here to allow logging setup first
    from .config import ConfigError, load_config
    from .monitor import Monitor
    from .notifier import Notifier
    from .store import SqliteStore, StoreError

    # 1. Load configuration
    try:
        config = load_config(args.config)
        logger.info("Configuration loaded from %s", args.config)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)

    # 2. Open state store
    try:
        store = SqliteStore(config.store.path)
        logger.info("State store opened at %s", config.store.path)
    except StoreError as e:
        logger.error("State store error: %s", e)
        sys.exit(1)

    # 3. Build dispatchers
    notifier = Notifier(config.email, config.chat, timezone=config.timezone)
    if not notifier.email_enabled:
        logger.info("Email notifications disabled")
    if not notifier.chat_enabled:
        logger.info("Chat notifications disabled")

    # 4. Run exactly one tick
    scheduled_at = args.scheduled_time or datetime.now(UTC)
    try:
        result = Monitor(config, store, notifier).run_tick(scheduled_at)
    finally:
        store.close()

    up = sum(1 for outcome in result.outcomes if outcome.is_up)
    logger.info(
        "Tick complete: %d/%d up (email: %s, chat: %s, emergency: %s)",
        up,
        len(result.outcomes),
        "sent" if result.email_sent else "skipped",
        "sent" if result.chat_sent else "skipped",
        "sent" if result.emergency_sent else "skipped",
    )


def _cmd_logs(args: argparse.Namespace) -> None:
    """Execute the logs command - print recorded down observations."""
    from pathlib import Path

    from .clock import TIMESTAMP_FORMAT
    from .config import ConfigError, load_config
    from .models import LogEntry
    from .store import SqliteStore, StoreError

    # 1. Load configuration
    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}")
        sys.exit(1)

    # 2. Validate store exists
    if not Path(config.store.path).exists():
        print(f"Error: State store not found at {config.store.path}")
        sys.exit(1)

    # 3. Read entries
    try:
        store = SqliteStore(config.store.path)
        try:
            entries = [LogEntry.from_json(store.get(key)) for key in store.keys("log:")]
        finally:
            store.close()
    except StoreError as e:
        print(f"Error: {e}")
        sys.exit(1)

    # Keys sort as text, which is not chronological for MM/DD/YYYY hh AM/PM.
    entries.sort(key=lambda entry: datetime.strptime(entry.timestamp, TIMESTAMP_FORMAT))
    if args.limit is not None:
        entries = entries[-args.limit:] if args.limit > 0 else []

    if not entries:
        print("No down observations recorded.")
        return

    for entry in entries:
        print(f"[{entry.timestamp}] {entry.website} is down. Status code: {entry.status_code}")


def main() -> None:
    """Main entry point for the uptimecron package."""
    parser = argparse.ArgumentParser(
        description="uptimecron - scheduled website uptime monitor (run one tick per invocation)"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"uptimecron {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser(
        "run",
        help="Check all websites once and send due notifications (default)",
    )
    run_parser.add_argument(
        "-c", "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )
    run_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )
    run_parser.add_argument(
        "--scheduled-time",
        type=_parse_scheduled_time,
        default=None,
        help="Nominal ISO 8601 instant of this tick (default: now)",
    )
    run_parser.set_defaults(func=_cmd_run)

    # Logs subcommand
    logs_parser = subparsers.add_parser(
        "logs",
        help="Print recorded down observations from the state store",
    )
    logs_parser.add_argument(
        "-c", "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )
    logs_parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Only print the most recent N observations",
    )
    logs_parser.set_defaults(func=_cmd_logs)

    args = parser.parse_args()

    # Default to 'run' if no command specified
    if args.command is None:
        args.config = "config.yaml"
        args.verbose = False
        args.scheduled_time = None
        args.func = _cmd_run

    args.func(args)
