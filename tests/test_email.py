"""Tests for the SMTP email sender."""
import smtplib
from unittest.mock import patch, MagicMock

import pytest

from notifications.email_sender import EmailSender

FULL_CONFIG = {"email": {
    "smtp_host": "smtp.test.com",
    "smtp_port": 587,
    "from_address": "perfwatch@test.com",
    "smtp_username": "user",
    "smtp_password": "pass",
}}


@pytest.fixture
def mock_server():
    with patch("notifications.email_sender.smtplib.SMTP") as mock_smtp_class:
        server = MagicMock()
        mock_smtp_class.return_value.__enter__ = MagicMock(return_value=server)
        mock_smtp_class.return_value.__exit__ = MagicMock(return_value=False)
        yield server


class TestEmailSender:
    def test_not_configured_missing_fields(self):
        sender = EmailSender({"email": {}})
        assert sender.is_configured() is False

    def test_configured_with_all_fields(self):
        assert EmailSender(FULL_CONFIG).is_configured() is True

    def test_env_vars_override_config(self):
        with patch.dict("os.environ", {
            "PERFWATCH_SMTP_USER": "env_user",
            "PERFWATCH_SMTP_PASS": "env_pass",
        }):
            sender = EmailSender({"email": {
                "smtp_username": "config_user",
                "smtp_password": "config_pass",
            }})
            assert sender.username == "env_user"
            assert sender.password == "env_pass"

    def test_config_used_without_env_vars(self):
        with patch.dict("os.environ", {}, clear=True):
            sender = EmailSender({"email": {
                "smtp_username": "config_user",
                "smtp_password": "config_pass",
            }})
            assert sender.username == "config_user"
            assert sender.password == "config_pass"

    def test_send_alert_returns_false_when_not_configured(self):
        sender = EmailSender({"email": {}})
        assert sender.send_alert("ops@test.com", "subject", "body") is False

    def test_send_alert_success(self, mock_server):
        sender = EmailSender(FULL_CONFIG)
        assert sender.send_alert("ops@test.com", "[CRITICAL] High Error Rate", "body") is True
        mock_server.starttls.assert_called_once()
        mock_server.login.assert_called_once_with("user", "pass")
        sent = mock_server.send_message.call_args[0][0]
        assert sent["To"] == "ops@test.com"
        assert sent["Subject"] == "[CRITICAL] High Error Rate"

    def test_auth_failure_returns_false(self, mock_server):
        mock_server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"Bad credentials")
        sender = EmailSender(FULL_CONFIG)
        assert sender.send_alert("ops@test.com", "s", "b") is False

    def test_no_tls_skips_starttls(self, mock_server):
        config = {"email": {**FULL_CONFIG["email"], "use_tls": False}}
        EmailSender(config).send_alert("ops@test.com", "s", "b")
        mock_server.starttls.assert_not_called()

    def test_default_config_values(self):
        sender = EmailSender({})
        assert sender.smtp_port == 587
        assert sender.use_tls is True
        assert sender.from_name == "perfwatch"
