"""Email and chat notification dispatchers.

Every public Notifier method is best effort: a failed delivery is logged and
reported through the boolean return value, never raised and never retried.
"""

import logging
import smtplib
from dataclasses import dataclass
from datetime import datetime
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Protocol

import requests

from .clock import format_timestamp
from .config import DEFAULT_TIMEZONE, ChatConfig, EmailConfig, SmtpConfig
from .models import StatusReport

logger = logging.getLogger(__name__)

# Discord rejects message content longer than this.
CHAT_MAX_MESSAGE_LEN = 2000

REQUEST_TIMEOUT_SECONDS = 10


class DispatchError(Exception):
    """Raised by a transport when a notification could not be delivered."""

    pass


@dataclass(frozen=True)
class OutgoingEmail:
    """A plain-text email ready for delivery."""

    sender_name: str
    sender_addr: str
    recipient_addr: str
    subject: str
    body_text: str


class EmailTransport(Protocol):
    def send(self, email: OutgoingEmail) -> None: ...


class SmtpTransport:
    """Deliver email through an SMTP relay."""

    def __init__(self, config: SmtpConfig) -> None:
        self._config = config

    def send(self, email: OutgoingEmail) -> None:
        """Send one message.

        Raises:
            DispatchError: If the relay refuses the message or cannot be reached.
        """
        msg = MIMEText(email.body_text, "plain", "utf-8")
        msg["Subject"] = email.subject
        msg["From"] = formataddr((email.sender_name, email.sender_addr))
        msg["To"] = email.recipient_addr

        try:
            with smtplib.SMTP(self._config.host, self._config.port, timeout=30) as server:
                if self._config.use_tls:
                    server.starttls()
                if self._config.username and self._config.password:
                    server.login(self._config.username, self._config.password)
                server.sendmail(email.sender_addr, [email.recipient_addr], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            raise DispatchError(f"SMTP delivery failed: {e}") from e


def split_message(text: str, max_len: int = CHAT_MAX_MESSAGE_LEN) -> list[str]:
    """Pack report lines into messages of at most max_len characters.

    Lines are kept whole and unmodified where possible; a single line longer
    than max_len is cut into max_len slices.
    """
    if len(text) <= max_len:
        return [text]

    parts: list[str] = []
    current: list[str] = []
    size = 0
    for line in text.split("\n"):
        while len(line) > max_len:
            if current:
                parts.append("\n".join(current))
                current, size = [], 0
            parts.append(line[:max_len])
            line = line[max_len:]

        added = len(line) + (1 if current else 0)
        if current and size + added > max_len:
            parts.append("\n".join(current))
            current, size = [], 0
            added = len(line)
        current.append(line)
        size += added

    if current:
        parts.append("\n".join(current))
    return [part for part in parts if part.strip()]


class ChatClient:
    """Thin client for a Discord-compatible webhook and bot REST API."""

    def __init__(self, config: ChatConfig, session: requests.Session | None = None) -> None:
        self._config = config
        self._session = session or requests.Session()

    def post_webhook(self, content: str) -> None:
        """Post content to the configured webhook, splitting long messages.

        Raises:
            DispatchError: If any part is not accepted.
        """
        for part in split_message(content):
            self._post(self._config.webhook_url, {"content": part}, authenticated=False)

    def open_dm_channel(self, user_id: str) -> str:
        """Resolve (or create) the direct-message channel with a user.

        Raises:
            DispatchError: If the channel cannot be opened.
        """
        response = self._post(
            f"{self._config.api_base}/users/@me/channels",
            {"recipient_id": user_id},
            authenticated=True,
        )
        try:
            return str(response.json()["id"])
        except (ValueError, KeyError, TypeError) as e:
            raise DispatchError(f"Unexpected DM channel response: {e}") from e

    def post_channel_message(self, channel_id: str, content: str) -> None:
        """Post content into a channel as the bot, splitting long messages.

        Raises:
            DispatchError: If any part is not accepted.
        """
        for part in split_message(content):
            self._post(
                f"{self._config.api_base}/channels/{channel_id}/messages",
                {"content": part},
                authenticated=True,
            )

    def _post(self, url: str, payload: dict, authenticated: bool) -> requests.Response:
        headers = {}
        if authenticated:
            headers["Authorization"] = f"Bot {self._config.bot_token}"
        try:
            response = self._session.post(url, json=payload, headers=headers, timeout=REQUEST_TIMEOUT_SECONDS)
            response.raise_for_status()
        except requests.RequestException as e:
            msg = str(e)
            if self._config.bot_token:
                msg = msg.replace(self._config.bot_token, "<redacted>")
            raise DispatchError(msg) from e
        return response


class Notifier:
    """Formats and sends the digest, down and emergency notifications."""

    def __init__(
        self,
        email_config: EmailConfig | None = None,
        chat_config: ChatConfig | None = None,
        timezone: str = DEFAULT_TIMEZONE,
        email_transport: EmailTransport | None = None,
        chat_client: ChatClient | None = None,
    ) -> None:
        """Initialize the notifier.

        Args:
            email_config: Email identities, or None to disable email.
            chat_config: Chat webhook and bot settings, or None to disable chat.
            timezone: Timezone used for timestamps in message bodies.
            email_transport: Overrides the SMTP transport built from email_config.
            chat_client: Overrides the client built from chat_config.
        """
        self._email_config = email_config
        self._chat_config = chat_config
        self._timezone = timezone
        self._email_transport = email_transport
        if self._email_transport is None and email_config is not None:
            self._email_transport = SmtpTransport(email_config.smtp)
        self._chat_client = chat_client
        if self._chat_client is None and chat_config is not None:
            self._chat_client = ChatClient(chat_config)

    @property
    def email_enabled(self) -> bool:
        return self._email_config is not None and self._email_transport is not None

    @property
    def chat_enabled(self) -> bool:
        return self._chat_config is not None and self._chat_client is not None

    def send_digest_email(self, report: StatusReport, scheduled_at: datetime) -> bool:
        """Email the full status report."""
        if not self.email_enabled:
            return False
        subject = f"{self._email_config.subject_prefix} Website Uptime Status Report - {self._format(scheduled_at)}"
        body = f"Here is the website uptime status report:\n\n{report.text}"
        if self._send_email(subject, body):
            logger.info("Status report email sent successfully")
            return True
        return False

    def send_down_email(self, endpoint: str, status_code: int, timestamp: str) -> bool:
        """Email an immediate alert for a single endpoint."""
        if not self.email_enabled:
            return False
        subject = f"{self._email_config.subject_prefix} Website Down: {endpoint}"
        body = f"The website {endpoint} is down.\n\nStatus Code: {status_code}\nTimestamp: {timestamp}"
        if self._send_email(subject, body):
            logger.info("Website down email sent successfully for %s", endpoint)
            return True
        return False

    def send_chat_digest(self, report: StatusReport, scheduled_at: datetime) -> bool:
        """Post the full status report to the chat webhook."""
        if not self.chat_enabled:
            return False
        content = f"Website Uptime Status Report - {self._format(scheduled_at)}\n\n{report.text}"
        try:
            self._chat_client.post_webhook(content)
        except DispatchError as e:
            logger.error("Error sending status report to chat: %s", e)
            return False
        logger.info("Status report sent to chat successfully")
        return True

    def send_emergency_alert(self, report: StatusReport, scheduled_at: datetime) -> bool:
        """Post an urgent report to the webhook and as a direct message.

        The two deliveries are independent. Returns True if either succeeded.
        """
        if not self.chat_enabled:
            return False
        content = (
            "Emergency: One or more websites are down!\n\n"
            f"Website Uptime Status Report - {self._format(scheduled_at)}\n\n{report.text}"
        )

        webhook_sent = False
        try:
            self._chat_client.post_webhook(content)
            webhook_sent = True
            logger.info("Emergency message sent to chat channel successfully")
        except DispatchError as e:
            logger.error("Error sending emergency message to chat channel: %s", e)

        return self._send_direct_message(content) or webhook_sent

    def _send_direct_message(self, content: str) -> bool:
        if not self._chat_config.direct_message_enabled:
            logger.debug("Direct message skipped: bot token or user id not configured")
            return False

        try:
            channel_id = self._chat_client.open_dm_channel(self._chat_config.user_id)
        except DispatchError as e:
            logger.error("Error creating DM channel: %s", e)
            return False

        try:
            self._chat_client.post_channel_message(channel_id, content)
        except DispatchError as e:
            logger.error("Error sending emergency message to chat user: %s", e)
            return False

        logger.info("Emergency message sent to chat user successfully")
        return True

    def _send_email(self, subject: str, body: str) -> bool:
        email = OutgoingEmail(
            sender_name=self._email_config.sender_name,
            sender_addr=self._email_config.sender_addr,
            recipient_addr=self._email_config.recipient_addr,
            subject=subject,
            body_text=body,
        )
        try:
            self._email_transport.send(email)
        except DispatchError as e:
            logger.error("Error sending email '%s': %s", subject, e)
            return False
        return True

    def _format(self, instant: datetime) -> str:
        return format_timestamp(instant, self._timezone)
