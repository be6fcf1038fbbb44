from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import parseaddr
from typing import Any

from apicore.config import Config
from apicore.errors import EmailSetupError
from apicore.registry import ServiceRegistry

logger = logging.getLogger("apicore.mail")


@dataclass(frozen=True)
class SmtpSettings:
    host: str
    port: int
    username: str | None = None
    password: str | None = None
    use_tls: bool = False
    timeout_seconds: float = 10.0


@dataclass
class OutgoingMail:
    to: str
    subject: str
    text: str | None = None
    html: str | None = None
    reply_to: str | None = None
    cc: list[str] = field(default_factory=list)


class Mailer:
    """SMTP sender. When disabled, messages are logged and dropped."""

    def __init__(self, settings: SmtpSettings, *, sender: str, enabled: bool = True) -> None:
        self.settings = settings
        self.sender = sender
        self.enabled = enabled
        self.templator: Any | None = None

    def build_message(self, mail: OutgoingMail) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = mail.to
        message["Subject"] = mail.subject
        if mail.reply_to:
            message["Reply-To"] = mail.reply_to
        if mail.cc:
            message["Cc"] = ", ".join(mail.cc)

        message.set_content(mail.text or "")
        if mail.html:
            message.add_alternative(mail.html, subtype="html")
        return message

    def render(self, template: str, context: dict[str, Any]) -> tuple[str, str | None]:
        """Render ``<template>.txt`` and, when present, ``<template>.html``."""
        if self.templator is None:
            raise RuntimeError("mailer has no templator attached")
        text = self.templator.render(f"{template}.txt", context)
        html_name = f"{template}.html"
        html = self.templator.render(html_name, context) if self.templator.has_template(html_name) else None
        return text, html

    def send(self, mail: OutgoingMail) -> bool:
        if not self.enabled:
            logger.info("mail_disabled_skip", extra={"service": mail.subject})
            return False

        message = self.build_message(mail)
        recipients = [mail.to, *mail.cc]
        try:
            with smtplib.SMTP(self.settings.host, self.settings.port, timeout=self.settings.timeout_seconds) as smtp:
                if self.settings.use_tls:
                    smtp.starttls()
                if self.settings.username:
                    smtp.login(self.settings.username, self.settings.password or "")
                smtp.send_message(message, from_addr=self.sender, to_addrs=recipients)
        except (smtplib.SMTPException, OSError):
            logger.exception("mail_send_failed", extra={"service": f"{self.settings.host}:{self.settings.port}"})
            return False

        logger.info("mail_sent", extra={"service": f"{self.settings.host}:{self.settings.port}"})
        return True

    def send_template(self, *, to: str, subject: str, template: str, context: dict[str, Any]) -> bool:
        text, html = self.render(template, context)
        return self.send(OutgoingMail(to=to, subject=subject, text=text, html=html))


def setup_emails(registry: ServiceRegistry, config: Config) -> Mailer:
    _, sender_address = parseaddr(config.MAIL_SENDER or "")
    if "@" not in sender_address:
        raise EmailSetupError(f"MAIL_SENDER is not a valid address: {config.MAIL_SENDER!r}")
    if config.MAIL_ENABLED and not (config.MAIL_SMTP_HOST or "").strip():
        raise EmailSetupError("MAIL_ENABLED=1 requires MAIL_SMTP_HOST to be set.")
    if not 0 < int(config.MAIL_SMTP_PORT) < 65536:
        raise EmailSetupError("MAIL_SMTP_PORT must be between 1 and 65535.")

    mailer = Mailer(
        SmtpSettings(
            host=config.MAIL_SMTP_HOST.strip(),
            port=int(config.MAIL_SMTP_PORT),
            username=config.MAIL_SMTP_USERNAME,
            password=config.MAIL_SMTP_PASSWORD,
            use_tls=config.MAIL_USE_TLS,
        ),
        sender=config.MAIL_SENDER,
        enabled=config.MAIL_ENABLED,
    )
    registry.register(mailer)
    if not mailer.enabled:
        logger.info("Outgoing mail disabled")
    return mailer
