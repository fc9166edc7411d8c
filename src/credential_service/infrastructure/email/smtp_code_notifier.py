"""SMTP adapter delivering password-reset codes by email."""

from __future__ import annotations

import asyncio
import smtplib
from dataclasses import dataclass
from datetime import timedelta
from email.message import EmailMessage
from typing import Protocol

from credential_service.application.ports.code_notifier_port import CodeDeliveryError

RESET_CODE_SUBJECT = "Your Password Reset OTP"


@dataclass(frozen=True)
class SmtpConfig:
    """Connection settings for the outgoing mail relay."""

    host: str
    port: int
    username: str | None
    password: str | None
    sender: str | None = None
    use_ssl: bool = True
    timeout_seconds: float = 15.0

    @property
    def from_address(self) -> str | None:
        return self.sender or self.username


class SmtpTransportPort(Protocol):
    """Transport protocol used by the SMTP code notifier."""

    async def send(self, *, config: SmtpConfig, message: EmailMessage) -> None:
        """Send one message or raise smtplib/OS errors."""


class SmtplibTransport:
    """smtplib-based async transport that sends in a worker thread."""

    async def send(self, *, config: SmtpConfig, message: EmailMessage) -> None:
        await asyncio.to_thread(self._send_sync, config=config, message=message)

    def _send_sync(self, *, config: SmtpConfig, message: EmailMessage) -> None:
        server: smtplib.SMTP
        if config.use_ssl:
            server = smtplib.SMTP_SSL(config.host, config.port, timeout=config.timeout_seconds)
        else:
            server = smtplib.SMTP(config.host, config.port, timeout=config.timeout_seconds)
        with server:
            if not config.use_ssl:
                server.starttls()
            if config.username and config.password:
                server.login(config.username, config.password)
            server.send_message(message)


def build_reset_code_message(
    *,
    sender: str,
    recipient: str,
    code: str,
    expires_in: timedelta,
) -> EmailMessage:
    """Render the reset-code email as plain text with an HTML alternative."""

    minutes = max(1, int(expires_in.total_seconds() // 60))
    message = EmailMessage()
    message["Subject"] = RESET_CODE_SUBJECT
    message["From"] = sender
    message["To"] = recipient
    message.set_content(
        f"Your password reset OTP is: {code}\n\nThis code expires in {minutes} minutes.\n"
    )
    message.add_alternative(
        '<div style="font-family:Arial;padding:16px">'
        '<h2 style="margin:0 0 10px">Password Reset OTP</h2>'
        '<p style="margin:0 0 8px">Your OTP is:</p>'
        '<div style="font-size:28px;font-weight:800;letter-spacing:6px;'
        'background:#f3f4f6;display:inline-block;padding:10px 14px;border-radius:10px">'
        f"{code}</div>"
        f'<p style="margin:14px 0 0;color:#6b7280">This code expires in {minutes} minutes.</p>'
        "</div>",
        subtype="html",
    )
    return message


class SmtpCodeNotifier:
    """Deliver reset codes through an SMTP relay, normalizing failures."""

    def __init__(
        self,
        *,
        config: SmtpConfig,
        transport: SmtpTransportPort | None = None,
    ) -> None:
        self._config = config
        self._transport = transport or SmtplibTransport()

    async def deliver_code(self, *, address: str, code: str, expires_in: timedelta) -> None:
        """Send the code to `address` or raise CodeDeliveryError."""

        sender = self._config.from_address
        if not (self._config.username and self._config.password) or not sender:
            raise CodeDeliveryError("SMTP not configured: set SMTP_USER and SMTP_PASS")

        message = build_reset_code_message(
            sender=sender,
            recipient=address,
            code=code,
            expires_in=expires_in,
        )
        try:
            await self._transport.send(config=self._config, message=message)
        except (smtplib.SMTPException, OSError) as exc:
            raise CodeDeliveryError(f"smtp delivery failure: {exc}") from exc
