"""
Email service for account verification, password reset and welcome emails.

Uses the SMTP settings from cms.core.config.settings.
Gracefully fails (logs warning) if SMTP is not configured.
"""

import logging
import smtplib
import threading
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Protocol

from cms.core.config import settings

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def send_verification_email(self, to_email: str, token: str, username: str) -> None: ...

    def send_password_reset_email(self, to_email: str, token: str, username: str) -> None: ...

    def send_welcome_email(self, to_email: str, username: str) -> None: ...


def _send(to_email: str, subject: str, text_body: str, html_body: str) -> bool:
    """
    Deliver one message over SMTP.

    Returns True if sent successfully, False otherwise.
    This is a synchronous function; call it from a background thread.
    """
    if not settings.SMTP_SERVER:
        logger.warning("SMTP not configured — skipping email '%s' to %s", subject, to_email)
        return False

    try:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{settings.APP_NAME} <{settings.EMAIL_FROM}>"
        msg["To"] = to_email

        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        with smtplib.SMTP(settings.SMTP_SERVER, settings.SMTP_PORT) as server:
            server.ehlo()
            if settings.SMTP_USERNAME:
                server.starttls()
                server.ehlo()
                server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            server.sendmail(settings.EMAIL_FROM, to_email, msg.as_string())

        logger.info("Email '%s' sent to %s", subject, to_email)
        return True

    except Exception as e:
        logger.error("Failed to send email '%s' to %s: %s", subject, to_email, e)
        return False


def send_verification_email(to_email: str, token: str, username: str) -> bool:
    verification_url = f"{settings.FRONTEND_URL}/verify-email?token={token}"

    subject = f"{settings.APP_NAME} - Verify your email"

    html_body = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2>Welcome to {settings.APP_NAME}, {username}!</h2>
        <p>Please confirm your email address to activate your account.</p>
        <p><a href="{verification_url}">Verify email</a></p>
        <p style="color: #999; font-size: 12px;">This link is valid for 24 hours.</p>
    </div>
    """

    text_body = f"""
Welcome to {settings.APP_NAME}, {username}!

Please verify your email address:
{verification_url}

This link is valid for 24 hours.
    """.strip()

    return _send(to_email, subject, text_body, html_body)


def send_password_reset_email(to_email: str, token: str, username: str) -> bool:
    """
    Send a password reset email with a time-limited link.
    The link expires in 1 hour and is single-use.
    """
    reset_url = f"{settings.FRONTEND_URL}/reset-password?token={token}"

    subject = f"{settings.APP_NAME} - Reset your password"

    html_body = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2>Password reset</h2>
        <p>Hi {username}, we received a request to reset your password.</p>
        <p><a href="{reset_url}">Reset my password</a></p>
        <p style="color: #999; font-size: 12px;">
            This link is valid for 1 hour. If you didn't request this, you can ignore this email.
        </p>
    </div>
    """

    text_body = f"""
Hi {username},

Reset your password here:
{reset_url}

This link is valid for 1 hour.
    """.strip()

    return _send(to_email, subject, text_body, html_body)


def send_welcome_email(to_email: str, username: str) -> bool:
    login_url = f"{settings.FRONTEND_URL}/login"

    subject = f"Welcome to {settings.APP_NAME}!"

    html_body = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2>Welcome to {settings.APP_NAME}, {username}!</h2>
        <p>Your email address has been verified.</p>
        <p><a href="{login_url}">Log in</a></p>
    </div>
    """

    text_body = f"""
Welcome to {settings.APP_NAME}, {username}!

Your email address has been verified.
Login: {login_url}
    """.strip()

    return _send(to_email, subject, text_body, html_body)


class EmailNotifier:
    """Sends each email in a daemon thread so the API response isn't delayed."""

    def _dispatch(self, target, *args) -> None:
        threading.Thread(target=target, args=args, daemon=True).start()

    def send_verification_email(self, to_email: str, token: str, username: str) -> None:
        self._dispatch(send_verification_email, to_email, token, username)

    def send_password_reset_email(self, to_email: str, token: str, username: str) -> None:
        self._dispatch(send_password_reset_email, to_email, token, username)

    def send_welcome_email(self, to_email: str, username: str) -> None:
        self._dispatch(send_welcome_email, to_email, username)


def get_notifier() -> Notifier:
    return EmailNotifier()
