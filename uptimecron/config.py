"""Configuration loader with type-safe dataclasses."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml


class ConfigError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


DEFAULT_TIMEZONE = "Asia/Manila"
DEFAULT_CHAT_API_BASE = "https://discord.com/api/v10"


@dataclass(frozen=True)
class IntervalsConfig:
    """Debounce windows for the digest notifications."""

    email_seconds: int = 60 * 60
    chat_seconds: int = 5 * 60

    def __post_init__(self) -> None:
        if self.email_seconds < 0:
            raise ConfigError(f"Email interval must be non-negative (got {self.email_seconds})")
        if self.chat_seconds < 0:
            raise ConfigError(f"Chat interval must be non-negative (got {self.chat_seconds})")

    @property
    def email_ms(self) -> int:
        return self.email_seconds * 1000

    @property
    def chat_ms(self) -> int:
        return self.chat_seconds * 1000


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy applied to every probe.

    The wait between attempt i and i+1 is base_delay_ms * exponent**i.
    """

    max_retries: int = 3
    base_delay_ms: int = 5000
    exponent: float = 2

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ConfigError(f"max_retries must be at least 1 (got {self.max_retries})")
        if self.base_delay_ms < 0:
            raise ConfigError(f"base_delay_ms must be non-negative (got {self.base_delay_ms})")
        if self.exponent < 1:
            raise ConfigError(f"exponent must be at least 1 (got {self.exponent})")


def _get_default_store_path() -> str:
    """Get the default state store path using XDG-compliant directory."""
    home = Path.home()
    return str(home / ".local" / "share" / "uptimecron" / "state.db")


DEFAULT_STORE_PATH = _get_default_store_path()


@dataclass(frozen=True)
class StoreConfig:
    """Configuration for the SQLite key-value store."""

    path: str = DEFAULT_STORE_PATH

    def __post_init__(self) -> None:
        if not self.path:
            raise ConfigError("Store path cannot be empty")


@dataclass(frozen=True)
class SmtpConfig:
    """SMTP relay used to deliver email."""

    host: str = "localhost"
    port: int = 25
    use_tls: bool = False
    username: str | None = None
    password: str | None = None

    def __post_init__(self) -> None:
        if not self.host:
            raise ConfigError("SMTP host cannot be empty")
        if self.port < 1 or self.port > 65535:
            raise ConfigError(f"SMTP port must be between 1 and 65535, got {self.port}")


@dataclass(frozen=True)
class EmailConfig:
    """Sender and recipient identities for email notifications."""

    sender_addr: str
    recipient_addr: str
    sender_name: str = "Website Uptime Monitor"
    subject_prefix: str = "[Uptime Monitor]"
    smtp: SmtpConfig = field(default_factory=SmtpConfig)

    def __post_init__(self) -> None:
        if not self.sender_addr or "@" not in self.sender_addr:
            raise ConfigError(f"Invalid email sender address: '{self.sender_addr}'")
        if not self.recipient_addr or "@" not in self.recipient_addr:
            raise ConfigError(f"Invalid email recipient address: '{self.recipient_addr}'")


@dataclass(frozen=True)
class ChatConfig:
    """Chat webhook and bot credentials.

    The direct-message alert is sent only when both bot_token and user_id are set.
    """

    webhook_url: str
    bot_token: str | None = None
    user_id: str | None = None
    api_base: str = DEFAULT_CHAT_API_BASE

    def __post_init__(self) -> None:
        if not self.webhook_url:
            raise ConfigError("Chat webhook URL cannot be empty")
        if not self.webhook_url.startswith(("http://", "https://")):
            raise ConfigError(f"Chat webhook URL must start with http:// or https://, got '{self.webhook_url}'")
        if not self.api_base.startswith(("http://", "https://")):
            raise ConfigError(f"Chat API base must start with http:// or https://, got '{self.api_base}'")

    @property
    def direct_message_enabled(self) -> bool:
        return bool(self.bot_token and self.user_id)


@dataclass(frozen=True)
class Config:
    """Main configuration container, built once at startup."""

    websites: list[str]
    timezone: str = DEFAULT_TIMEZONE
    test_mode: bool = False
    intervals: IntervalsConfig = field(default_factory=IntervalsConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    email: EmailConfig | None = None
    chat: ChatConfig | None = None

    def __post_init__(self) -> None:
        if not self.websites:
            raise ConfigError("At least one website must be configured")
        for url in self.websites:
            if not url.startswith(("http://", "https://")):
                raise ConfigError(f"Website must start with http:// or https://, got '{url}'")
        duplicates = {url for url in self.websites if self.websites.count(url) > 1}
        if duplicates:
            raise ConfigError(f"Duplicate websites found: {duplicates}")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ConfigError(f"Unknown timezone: '{self.timezone}'")


_TRUE_STRINGS = ("true", "1", "yes", "on")
_FALSE_STRINGS = ("false", "0", "no", "off", "")


def _parse_bool(value: object, field_name: str) -> bool:
    """Parse a boolean field, accepting quoted YAML strings like "false"."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ConfigError(f"'{field_name}' must be a boolean, got {value!r}")


def _parse_intervals_config(data: dict | None) -> IntervalsConfig:
    """Parse intervals configuration section."""
    if data is None:
        return IntervalsConfig()
    if not isinstance(data, dict):
        raise ConfigError("'intervals' section must be a dictionary")

    return IntervalsConfig(
        email_seconds=int(data.get("email_seconds", 60 * 60)),
        chat_seconds=int(data.get("chat_seconds", 5 * 60)),
    )


def _parse_retry_config(data: dict | None) -> RetryConfig:
    """Parse retry configuration section."""
    if data is None:
        return RetryConfig()
    if not isinstance(data, dict):
        raise ConfigError("'retry' section must be a dictionary")

    return RetryConfig(
        max_retries=int(data.get("max_retries", 3)),
        base_delay_ms=int(data.get("base_delay_ms", 5000)),
        exponent=float(data.get("exponent", 2)),
    )


def _parse_store_config(data: dict | None) -> StoreConfig:
    """Parse store configuration section."""
    if data is None:
        return StoreConfig()
    if not isinstance(data, dict):
        raise ConfigError("'store' section must be a dictionary")

    return StoreConfig(path=os.path.expanduser(str(data.get("path", DEFAULT_STORE_PATH))))


def _parse_smtp_config(data: dict | None) -> SmtpConfig:
    """Parse the email.smtp sub-section."""
    if data is None:
        return SmtpConfig()
    if not isinstance(data, dict):
        raise ConfigError("'email.smtp' section must be a dictionary")

    username = data.get("username")
    password = data.get("password")

    return SmtpConfig(
        host=str(data.get("host", "localhost")),
        port=int(data.get("port", 25)),
        use_tls=_parse_bool(data.get("use_tls", False), "email.smtp.use_tls"),
        username=str(username) if username is not None else None,
        password=str(password) if password is not None else None,
    )


def _parse_email_config(data: dict | None) -> EmailConfig | None:
    """Parse email configuration section. A missing section disables email."""
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ConfigError("'email' section must be a dictionary")

    sender_addr = data.get("sender_addr")
    recipient_addr = data.get("recipient_addr")

    if sender_addr is None:
        raise ConfigError("Email section is missing 'sender_addr' field")
    if recipient_addr is None:
        raise ConfigError("Email section is missing 'recipient_addr' field")

    return EmailConfig(
        sender_addr=str(sender_addr),
        recipient_addr=str(recipient_addr),
        sender_name=str(data.get("sender_name", "Website Uptime Monitor")),
        subject_prefix=str(data.get("subject_prefix", "[Uptime Monitor]")),
        smtp=_parse_smtp_config(data.get("smtp")),
    )


def _parse_chat_config(data: dict | None) -> ChatConfig | None:
    """Parse chat configuration section. A missing section disables chat."""
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ConfigError("'chat' section must be a dictionary")

    webhook_url = data.get("webhook_url")
    if webhook_url is None:
        raise ConfigError("Chat section is missing 'webhook_url' field")

    bot_token = data.get("bot_token")
    user_id = data.get("user_id")

    return ChatConfig(
        webhook_url=str(webhook_url),
        bot_token=str(bot_token) if bot_token is not None else None,
        user_id=str(user_id) if user_id is not None else None,
        api_base=str(data.get("api_base", DEFAULT_CHAT_API_BASE)).rstrip("/"),
    )


def _apply_env_overrides(config_data: dict) -> dict:
    """Apply environment variable overrides to configuration.

    Supported overrides:
    - UPTIMECRON_STORE_PATH: Override store.path
    - UPTIMECRON_TEST_MODE: Override test_mode (true/false)
    - UPTIMECRON_CHAT_WEBHOOK_URL: Override chat.webhook_url
    - UPTIMECRON_CHAT_BOT_TOKEN: Override chat.bot_token
    - UPTIMECRON_CHAT_USER_ID: Override chat.user_id
    - UPTIMECRON_SMTP_PASSWORD: Override email.smtp.password
    """
    store_path = os.environ.get("UPTIMECRON_STORE_PATH")
    if store_path is not None:
        config_data.setdefault("store", {})["path"] = store_path

    test_mode = os.environ.get("UPTIMECRON_TEST_MODE")
    if test_mode is not None:
        config_data["test_mode"] = test_mode.strip().lower() in _TRUE_STRINGS

    chat_overrides = {
        "webhook_url": os.environ.get("UPTIMECRON_CHAT_WEBHOOK_URL"),
        "bot_token": os.environ.get("UPTIMECRON_CHAT_BOT_TOKEN"),
        "user_id": os.environ.get("UPTIMECRON_CHAT_USER_ID"),
    }
    for key, value in chat_overrides.items():
        if value is not None:
            if not isinstance(config_data.get("chat"), dict):
                config_data["chat"] = {}
            config_data["chat"][key] = value

    smtp_password = os.environ.get("UPTIMECRON_SMTP_PASSWORD")
    if smtp_password is not None and isinstance(config_data.get("email"), dict):
        if not isinstance(config_data["email"].get("smtp"), dict):
            config_data["email"]["smtp"] = {}
        config_data["email"]["smtp"]["password"] = smtp_password

    return config_data


def load_config(config_path: str) -> Config:
    """Load and validate configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Validated Config object.

    Raises:
        ConfigError: If the file cannot be read or configuration is invalid.
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML configuration: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read configuration file: {e}")

    if data is None:
        raise ConfigError("Configuration file is empty")

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a YAML dictionary")

    data = _apply_env_overrides(data)

    websites_data = data.get("websites")
    if websites_data is None:
        raise ConfigError("Configuration must contain a 'websites' section")
    if not isinstance(websites_data, list):
        raise ConfigError("'websites' must be a list")

    try:
        return Config(
            websites=[str(url) for url in websites_data],
            timezone=str(data.get("timezone", DEFAULT_TIMEZONE)),
            test_mode=_parse_bool(data.get("test_mode", False), "test_mode"),
            intervals=_parse_intervals_config(data.get("intervals")),
            retry=_parse_retry_config(data.get("retry")),
            store=_parse_store_config(data.get("store")),
            email=_parse_email_config(data.get("email")),
            chat=_parse_chat_config(data.get("chat")),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration value: {e}")
