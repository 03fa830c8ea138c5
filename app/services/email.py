# app/services/email.py
"""
Outbound email through an HTTP relay.

The relay takes ``{"to", "subject", "message"}`` as JSON and answers with
``{"success": bool, "message": ...}``. With no relay configured, messages
are logged and dropped (local dev, tests).
"""
from __future__ import annotations

import html
import logging
import os
from typing import Optional

import httpx

from app.core.errors import UpstreamError

log = logging.getLogger("app.email")

EMAIL_LAMBDA_URL = os.getenv("EMAIL_LAMBDA_URL", "")
EMAIL_TIMEOUT_SECONDS = float(os.getenv("EMAIL_TIMEOUT_SECONDS", "10"))
APP_NAME = os.getenv("APP_NAME", "Accounts")


def send_email(to: str, subject: str, body: str, url: Optional[str] = None) -> None:
    """Deliver one message. Raises UpstreamError(EMAIL_DELIVERY_FAILED) on any failure."""
    url = EMAIL_LAMBDA_URL if url is None else url
    if not url:
        log.info("Email relay not configured; skipping %r to %s", subject, to)
        return

    try:
        response = httpx.post(
            url,
            json={"to": to, "subject": subject, "message": body},
            headers={"Content-Type": "application/json"},
            timeout=EMAIL_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
    except httpx.TimeoutException:
        log.warning("Timeout sending %r to %s", subject, to)
        raise UpstreamError("Email delivery timed out.", code="EMAIL_DELIVERY_FAILED")
    except httpx.HTTPStatusError as e:
        log.warning("Relay answered %s for %r to %s", e.response.status_code, subject, to)
        raise UpstreamError("Email delivery failed.", code="EMAIL_DELIVERY_FAILED")
    except httpx.HTTPError:
        log.exception("Could not reach email relay for %r to %s", subject, to)
        raise UpstreamError("Email delivery failed.", code="EMAIL_DELIVERY_FAILED")

    try:
        payload = response.json()
    except ValueError:
        payload = {}
    if isinstance(payload, dict) and payload.get("success") is False:
        log.warning("Relay rejected %r to %s: %s", subject, to, payload.get("message"))
        raise UpstreamError(payload.get("message") or "Email delivery failed.", code="EMAIL_DELIVERY_FAILED")

    log.info("Email %r sent to %s", subject, to)


# ---------------------------------
# Templates
# ---------------------------------


def _wrap(greeting_name: Optional[str], paragraphs: list[str]) -> str:
    name = html.escape(greeting_name or "there")
    inner = "\n".join(f"<p>{p}</p>" for p in paragraphs)
    return (
        "<!DOCTYPE html><html><head><meta charset=\"UTF-8\"></head>"
        "<body style=\"font-family: Arial, sans-serif; line-height: 1.6; color: #333;\">"
        f"<p>Hi {name},</p>\n{inner}\n<p>Cheers,<br>{html.escape(APP_NAME)}</p>"
        "</body></html>"
    )


def send_validation_code(email: str, first_name: Optional[str], code: str) -> None:
    body = _wrap(
        first_name,
        [
            "Thanks for registering. Use the code below to validate your email.",
            f"<strong style=\"font-size: 28px;\">{html.escape(code)}</strong>",
            "The code expires in 10 minutes.",
        ],
    )
    send_email(email, "Email Validation", body)


def send_welcome(email: str, first_name: Optional[str], password: str) -> None:
    body = _wrap(
        first_name,
        [
            f"Welcome to {html.escape(APP_NAME)}.",
            f"Your generated password is: <strong>{html.escape(password)}</strong>",
            "Please change it after your first sign-in.",
        ],
    )
    send_email(email, f"Welcome to {APP_NAME}", body)


def send_password_reset_code(email: str, first_name: Optional[str], code: str) -> None:
    body = _wrap(
        first_name,
        [
            "We received a request to reset your password. Use the code below.",
            f"<strong style=\"font-size: 28px;\">{html.escape(code)}</strong>",
            "The code expires in 30 minutes. If you did not ask for this, ignore this email.",
        ],
    )
    send_email(email, "Password Reset", body)


def send_invite(email: str, company_name: str, inviter_name: Optional[str], role: str, placeholder: bool) -> None:
    paragraphs = [
        f"{html.escape(inviter_name or 'A teammate')} invited you to join "
        f"<strong>{html.escape(company_name)}</strong> as {html.escape(role)}.",
        "Sign in and open your pending invites to accept or decline.",
    ]
    if placeholder:
        paragraphs.append(
            "An account was prepared for this address. Use \"Forgot password\" "
            "to set your own password before signing in."
        )
    send_email(email, f"You're invited to {company_name}", _wrap(None, paragraphs))
