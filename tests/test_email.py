from unittest import mock

import pytest

from buzzsmile.core.config import settings
from buzzsmile.services import email


def test_unconfigured_email_raises():
    with pytest.raises(email.EmailNotConfigured):
        email.send_email("jane@example.com", "Hi", "<p>Hi</p>")


def test_resend_preferred_over_smtp(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_123")
    monkeypatch.setattr(settings, "EMAIL_USER", "mailer@example.com")
    monkeypatch.setattr(settings, "EMAIL_PASS", "pw")
    response = mock.Mock(status_code=200)
    response.json.return_value = {"id": "email_1"}

    with mock.patch("buzzsmile.services.email.requests.post", return_value=response) as post, \
            mock.patch("buzzsmile.services.email.send_via_smtp") as smtp:
        result = email.send_email("jane@example.com", "Hi", "<p>Hi</p>")

    assert result == {"provider": "resend", "id": "email_1"}
    smtp.assert_not_called()
    assert post.call_args.kwargs["headers"]["Authorization"] == "Bearer re_123"


def test_resend_error_status_raises(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_123")
    response = mock.Mock(status_code=422, text="invalid from")
    with mock.patch("buzzsmile.services.email.requests.post", return_value=response):
        with pytest.raises(email.EmailDeliveryError):
            email.send_email("jane@example.com", "Hi", "<p>Hi</p>")


def test_smtp_used_when_only_credentials_set(monkeypatch):
    monkeypatch.setattr(settings, "EMAIL_USER", "mailer@example.com")
    monkeypatch.setattr(settings, "EMAIL_PASS", "pw")
    with mock.patch("buzzsmile.services.email.send_via_smtp", return_value={"provider": "smtp", "id": "x"}) as smtp:
        result = email.send_email("jane@example.com", "Hi", "<p>Hi</p>")
    assert result["provider"] == "smtp"
    smtp.assert_called_once()


def test_port_465_implies_ssl(monkeypatch):
    monkeypatch.setattr(settings, "EMAIL_SECURE", None)
    monkeypatch.setattr(settings, "EMAIL_PORT", 465)
    assert email._smtp_secure() is True
    monkeypatch.setattr(settings, "EMAIL_SECURE", "false")
    assert email._smtp_secure() is False


def test_password_reset_link_uses_first_client_url(monkeypatch):
    monkeypatch.setattr(settings, "CLIENT_URLS", ["https://app.example.com/", "https://other.example.com"])
    with mock.patch("buzzsmile.services.email.send_email", return_value={"provider": "resend", "id": "1"}) as send:
        email.send_password_reset_email("jane@example.com", "tok")

    to, subject, html = send.call_args.args
    assert to == "jane@example.com"
    assert subject == "Password Reset Request - Buzz Smile"
    assert "https://app.example.com/reset-password?token=tok" in html
