"""Outbound email composition and delivery."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from html import escape
from typing import Protocol, runtime_checkable
from urllib.parse import quote

import httpx

from core import settings

logger = logging.getLogger(__name__)

BRAND_NAME = "extasy.asia"
ACCENT_COLOR = "#059669"


class EmailDeliveryError(RuntimeError):
    """Raised when the email provider rejects or cannot accept a message."""


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str
    from_address: str


@runtime_checkable
class EmailSender(Protocol):
    async def send(self, message: EmailMessage) -> None: ...


class ResendEmailSender:
    """Deliver messages through the Resend HTTP API."""

    def __init__(
        self,
        api_key: str,
        *,
        api_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.api_url = api_url or settings.resend_api_url
        self.timeout = timeout if timeout is not None else settings.email_timeout_seconds
        self.transport = transport

    async def send(self, message: EmailMessage) -> None:
        payload = {
            "from": message.from_address,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = await client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.HTTPError as exc:
            raise EmailDeliveryError(f"Email provider unreachable: {exc}") from exc
        if response.status_code >= 400:
            raise EmailDeliveryError(
                f"Email provider returned {response.status_code}: {response.text[:200]}"
            )


class LoggingEmailSender:
    """Development sender that writes messages to the log instead of sending."""

    async def send(self, message: EmailMessage) -> None:
        logger.info(
            "Email delivery disabled; would send %r to %s:\n%s",
            message.subject,
            message.to,
            message.html,
        )


_cached_email_sender: EmailSender | None = None


def get_email_sender() -> EmailSender:
    """Singleton accessor for the configured email sender."""
    global _cached_email_sender
    if _cached_email_sender is None:
        if settings.resend_api_key:
            _cached_email_sender = ResendEmailSender(settings.resend_api_key)
        else:
            _cached_email_sender = LoggingEmailSender()
    return _cached_email_sender


def set_email_sender(sender: EmailSender | None) -> None:
    """Override the cached email sender (primarily for tests)."""
    global _cached_email_sender
    _cached_email_sender = sender


async def send_best_effort(message: EmailMessage) -> bool:
    """Send ``message`` and report success instead of raising."""
    try:
        await get_email_sender().send(message)
    except Exception:
        logger.exception("Failed to send %r to %s", message.subject, message.to)
        return False
    return True


def _layout(body_html: str) -> str:
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\"></head>"
        "<body style=\"margin:0;padding:0;background:#0a0a0a;"
        "font-family:'Inter',-apple-system,'Segoe UI',sans-serif;\">"
        "<div style=\"max-width:600px;margin:0 auto;padding:40px 20px;\">"
        f"<h1 style=\"color:{ACCENT_COLOR};text-align:center;\">{BRAND_NAME}</h1>"
        "<div style=\"color:#e5e5e5;background:rgba(255,255,255,0.05);"
        "border-radius:16px;padding:32px;line-height:1.6;\">"
        f"{body_html}"
        "</div></div></body></html>"
    )


def verification_email(email: str, code: str, username: str) -> EmailMessage:
    minutes = settings.verification_code_expire_minutes
    body = (
        f"<p>Hi {escape(username)},</p>"
        "<p>Use this code to verify your account:</p>"
        f"<p style=\"font-size:36px;font-weight:700;letter-spacing:8px;"
        f"color:{ACCENT_COLOR};text-align:center;\">{escape(code)}</p>"
        f"<p>The code expires in {minutes} minutes.</p>"
    )
    return EmailMessage(
        to=email,
        subject=f"Verify Your {BRAND_NAME} Account",
        html=_layout(body),
        from_address=settings.email_from,
    )


def welcome_email(email: str, username: str, uid: int) -> EmailMessage:
    body = (
        f"<p>Welcome, {escape(username)}!</p>"
        f"<p>Your account is verified. You are user #{uid}.</p>"
        f"<p><a style=\"color:{ACCENT_COLOR};\" href=\"{settings.frontend_url}/dashboard\">"
        "Open your dashboard</a></p>"
    )
    return EmailMessage(
        to=email,
        subject=f"Welcome to {BRAND_NAME}",
        html=_layout(body),
        from_address=settings.email_from,
    )


def password_reset_url(token: str) -> str:
    return f"{settings.frontend_url}/reset-password?token={quote(token)}"


def password_reset_email(email: str, token: str, username: str) -> EmailMessage:
    reset_url = password_reset_url(token)
    minutes = settings.password_reset_expire_minutes
    body = (
        f"<p>Hi {escape(username)},</p>"
        "<p>We received a request to reset your password.</p>"
        f"<p><a style=\"color:{ACCENT_COLOR};\" href=\"{escape(reset_url)}\">"
        "Reset your password</a></p>"
        f"<p>This link expires in {minutes} minutes. If you did not ask for it, "
        "ignore this email.</p>"
    )
    return EmailMessage(
        to=email,
        subject=f"Reset Your {BRAND_NAME} Password",
        html=_layout(body),
        from_address=settings.email_from,
    )


def admin_message_email(
    email: str,
    username: str,
    *,
    subject: str,
    message: str,
    from_name: str | None = None,
) -> EmailMessage:
    sender_name = (from_name or "").strip() or f"{BRAND_NAME} Support"
    body = (
        f"<p>Hi {escape(username)},</p>"
        f"<div style=\"white-space:pre-wrap;\">{escape(message)}</div>"
        "<p style=\"color:#6b7280;font-size:14px;\">"
        f"This email was sent from {BRAND_NAME} support.</p>"
    )
    return EmailMessage(
        to=email,
        subject=subject,
        html=_layout(body),
        from_address=f"{sender_name} <{settings.email_support_from}>",
    )


__all__ = [
    "EmailDeliveryError",
    "EmailMessage",
    "EmailSender",
    "LoggingEmailSender",
    "ResendEmailSender",
    "admin_message_email",
    "get_email_sender",
    "password_reset_email",
    "password_reset_url",
    "send_best_effort",
    "set_email_sender",
    "verification_email",
    "welcome_email",
]
