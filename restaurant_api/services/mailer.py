from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from restaurant_api.core import config

logger = logging.getLogger(__name__)


class MailerNotConfigured(RuntimeError):
    pass


def send_email(*, to: str, subject: str, html: str) -> None:
    if not config.SMTP_HOST:
        raise MailerNotConfigured("SMTP_HOST is not configured")

    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = config.SMTP_FROM or config.SMTP_USER
    message["To"] = to
    message.set_content("This message requires an HTML capable mail client.")
    message.add_alternative(html, subtype="html")

    with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=20) as smtp:
        if config.SMTP_USE_TLS:
            smtp.starttls()
        if config.SMTP_USER:
            smtp.login(config.SMTP_USER, config.SMTP_PASSWORD)
        smtp.send_message(message)
    logger.info("Email sent: subject=%s", subject)


def send_password_reset_otp(*, to: str, otp: str, ttl_minutes: int) -> None:
    send_email(
        to=to,
        subject="Password Reset OTP",
        html=(
            f"<p>Your OTP for password reset is: <strong>{otp}</strong>. "
            f"It expires in {ttl_minutes} minutes.</p>"
        ),
    )
