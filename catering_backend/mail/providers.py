"""Email provider implementations used for invoice delivery."""
from __future__ import annotations

import logging
import smtplib
import time
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from .config import EmailConfig

logger = logging.getLogger(__name__)


class EmailProvider:
    """Base provider for outbound email delivery."""

    name = "base"

    def __init__(self, *, from_email: str) -> None:
        self.from_email = from_email

    def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> None:
        raise NotImplementedError


class DevPrintProvider(EmailProvider):
    """Development provider that logs messages instead of sending them."""

    name = "dev"

    def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> None:  # pragma: no cover - trivial logging
        logger.info(
            "Dev email dispatch",
            extra={
                "email_recipient": to,
                "email_subject": subject,
                "email_sender": self.from_email,
            },
        )


class SMTPProvider(EmailProvider):
    """SMTP-based provider for production use."""

    name = "smtp"

    def __init__(
        self,
        *,
        from_email: str,
        host: str,
        port: int,
        username: Optional[str],
        password: Optional[str],
        use_tls: bool,
        max_attempts: int = 1,
        backoff_seconds: float = 0.0,
    ) -> None:
        super().__init__(from_email=from_email)
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = max(0.0, backoff_seconds)

    def _build_message(self, to: str, subject: str, html_body: str, text_body: str) -> str:
        message = MIMEMultipart("alternative")
        message["From"] = self.from_email
        message["To"] = to
        message["Subject"] = subject
        message.attach(MIMEText(text_body, "plain", "utf-8"))
        message.attach(MIMEText(html_body, "html", "utf-8"))
        return message.as_string()

    def _deliver(self, to: str, payload: str) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=30) as client:
            if self.use_tls:
                client.starttls()
            if self.username and self.password:
                client.login(self.username, self.password)
            client.sendmail(self.from_email, [to], payload)

    def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> None:
        payload = self._build_message(to, subject, html_body, text_body)
        attempt = 1
        while True:
            try:
                self._deliver(to, payload)
                return
            except (smtplib.SMTPException, OSError) as exc:
                if attempt >= self.max_attempts:
                    raise
                delay = self.backoff_seconds * (2 ** (attempt - 1))
                logger.warning(
                    "SMTP delivery failed, retrying",
                    extra={
                        "email_recipient": to,
                        "email_attempt": attempt,
                        "email_retry_delay": delay,
                        "email_error": str(exc),
                    },
                )
                time.sleep(delay)
                attempt += 1


def create_email_provider(config: EmailConfig) -> EmailProvider:
    provider = (config.provider_name or "dev").strip().lower()
    if provider == "smtp":
        return SMTPProvider(
            from_email=config.from_email,
            host=config.smtp_host,
            port=config.smtp_port,
            username=config.smtp_username,
            password=config.smtp_password,
            use_tls=config.smtp_use_tls,
            max_attempts=config.max_attempts,
            backoff_seconds=config.backoff_seconds,
        )
    if provider != "dev":
        logger.warning("Unknown EMAIL_PROVIDER %r, falling back to dev provider", provider)
    return DevPrintProvider(from_email=config.from_email)


__all__ = [
    "EmailProvider",
    "DevPrintProvider",
    "SMTPProvider",
    "create_email_provider",
]
