import logging
import smtplib
import ssl
from email.message import EmailMessage

import requests

from buzzsmile.core.config import settings

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class EmailNotConfigured(RuntimeError):
    pass


class EmailDeliveryError(RuntimeError):
    pass


def _sender() -> str:
    return settings.EMAIL_FROM or settings.EMAIL_USER or "Buzz Smile <no-reply@buzzsmile.com>"


def _smtp_secure() -> bool:
    if settings.EMAIL_SECURE:
        return settings.EMAIL_SECURE.lower() == "true"
    return settings.EMAIL_PORT == 465


def send_via_resend(to: str, subject: str, html: str) -> dict:
    response = requests.post(
        RESEND_API_URL,
        json={"from": _sender(), "to": [to], "subject": subject, "html": html},
        headers={"Authorization": f"Bearer {settings.RESEND_API_KEY}"},
        timeout=10,
    )
    if response.status_code >= 400:
        raise EmailDeliveryError(f"Resend API error {response.status_code}: {response.text[:200]}")
    return {"provider": "resend", "id": response.json().get("id")}


def send_via_smtp(to: str, subject: str, html: str) -> dict:
    message = EmailMessage()
    message["From"] = _sender()
    message["To"] = to
    message["Subject"] = subject
    message.set_content("This message requires an HTML-capable email client.")
    message.add_alternative(html, subtype="html")

    host, port = settings.EMAIL_HOST, settings.EMAIL_PORT
    try:
        if _smtp_secure():
            with smtplib.SMTP_SSL(host, port, context=ssl.create_default_context(), timeout=15) as smtp:
                smtp.login(settings.EMAIL_USER, settings.EMAIL_PASS)
                smtp.send_message(message)
        else:
            with smtplib.SMTP(host, port, timeout=15) as smtp:
                smtp.starttls(context=ssl.create_default_context())
                smtp.login(settings.EMAIL_USER, settings.EMAIL_PASS)
                smtp.send_message(message)
    except (smtplib.SMTPException, OSError) as e:
        raise EmailDeliveryError(f"SMTP delivery failed: {e}") from e
    return {"provider": "smtp", "id": message.get("Message-ID")}


def send_email(to: str, subject: str, html: str) -> dict:
    """
    Send one HTML email.

    Resend is used when RESEND_API_KEY is set, SMTP when EMAIL_USER and
    EMAIL_PASS are set. Raises EmailNotConfigured when neither is.
    """
    if settings.RESEND_API_KEY:
        return send_via_resend(to, subject, html)
    if settings.EMAIL_USER and settings.EMAIL_PASS:
        return send_via_smtp(to, subject, html)
    raise EmailNotConfigured("Email credentials not configured")


def password_reset_html(reset_url: str) -> str:
    return f"""
      <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2 style="color: #4F46E5;">Password Reset Request</h2>
        <p>You requested to reset your password for your Buzz Smile account.</p>
        <p>Click the button below to reset your password:</p>
        <div style="text-align: center; margin: 30px 0;">
          <a href="{reset_url}" style="background-color: #4F46E5; color: white; padding: 12px 24px; text-decoration: none; border-radius: 8px; display: inline-block;">Reset Password</a>
        </div>
        <p>Or copy and paste this link into your browser:</p>
        <p style="word-break: break-all; color: #666;">{reset_url}</p>
        <p><strong>This link will expire in 1 hour.</strong></p>
      </div>
    """


def send_password_reset_email(email: str, reset_token: str) -> dict:
    reset_url = f"{settings.client_base_url}/reset-password?token={reset_token}"
    result = send_email(email, "Password Reset Request - Buzz Smile", password_reset_html(reset_url))
    logger.info("Password reset email sent to %s via %s", email, result["provider"])
    return result
