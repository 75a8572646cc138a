"""Notification channels. Each builds its own payload and raises on failure."""
import logging

import requests

from models.enums import ChannelKind
from utils.errors import ConfigurationError, TransportError

logger = logging.getLogger("perfwatch.notifications.channels")

SEVERITY_COLORS = {
    "critical": "danger",
    "warning": "warning",
    "info": "good",
}
DEFAULT_COLOR = "#439FE0"


def severity_color(severity):
    sev = severity.value if hasattr(severity, "value") else str(severity)
    return SEVERITY_COLORS.get(sev, DEFAULT_COLOR)


def format_alert_message(alert, channel):
    """Channel-neutral message body shared by the webhook and Slack payloads."""
    return {
        "id": alert.id,
        "rule_id": alert.rule_id,
        "rule_name": alert.rule_name,
        "severity": alert.severity.value,
        "message": alert.message,
        "timestamp": alert.triggered_at.isoformat(),
        "metrics": alert.snapshot_at_trigger.to_dict() if alert.snapshot_at_trigger is not None else None,
        "channel": channel,
    }


def _post_json(url, payload, timeout, channel):
    try:
        resp = requests.post(url, json=payload, timeout=timeout)
    except requests.RequestException as e:
        raise TransportError(f"{channel} request failed: {e}", channel=channel) from e
    if not resp.ok:
        raise TransportError(
            f"{channel} request failed: HTTP {resp.status_code} {resp.reason}",
            status_code=resp.status_code,
            channel=channel,
        )


class WebhookChannel:
    kind = ChannelKind.WEBHOOK

    def __init__(self, url, timeout=10):
        self.url = url
        self.timeout = timeout

    def build_payload(self, alert):
        return format_alert_message(alert, self.kind.value)

    def send(self, alert):
        if not self.url:
            raise ConfigurationError("Webhook URL not configured", channel=self.kind.value)
        _post_json(self.url, self.build_payload(alert), self.timeout, self.kind.value)


class SlackChannel:
    kind = ChannelKind.SLACK

    def __init__(self, webhook_url, timeout=10):
        self.webhook_url = webhook_url
        self.timeout = timeout

    def build_payload(self, alert):
        sev = alert.severity.value
        return {
            "text": f"[{sev.upper()}] {alert.rule_name}: {alert.message}",
            "attachments": [{
                "color": severity_color(alert.severity),
                "fields": [
                    {"title": "Rule", "value": alert.rule_name, "short": True},
                    {"title": "Severity", "value": sev.upper(), "short": True},
                    {"title": "Time", "value": alert.triggered_at.isoformat(), "short": False},
                ],
            }],
        }

    def send(self, alert):
        if not self.webhook_url:
            raise ConfigurationError("Slack webhook not configured", channel=self.kind.value)
        _post_json(self.webhook_url, self.build_payload(alert), self.timeout, self.kind.value)


class EmailChannel:
    """Email alerts. Sends over SMTP when a configured EmailSender is supplied,
    otherwise logs the message that would have been sent."""

    kind = ChannelKind.EMAIL

    def __init__(self, target, sender=None):
        self.target = target
        self.sender = sender

    def build_payload(self, alert):
        sev = alert.severity.value
        return {
            "to": self.target,
            "subject": f"[{sev.upper()}] perfwatch: {alert.rule_name}",
            "body": (
                f"{alert.rule_name} ({sev})\n"
                f"{alert.message}\n"
                f"Triggered at {alert.triggered_at.isoformat()}\n"
                f"Alert id: {alert.id}"
            ),
        }

    def send(self, alert):
        if not self.target:
            raise ConfigurationError("Email not configured", channel=self.kind.value)
        payload = self.build_payload(alert)
        if self.sender is not None and self.sender.is_configured():
            if not self.sender.send_alert(payload["to"], payload["subject"], payload["body"]):
                raise TransportError("SMTP delivery failed", channel=self.kind.value)
            return
        logger.info(f"Email notification to {payload['to']}: {payload['subject']}")


def build_channels(config):
    """Channel registry keyed by ChannelKind. Destinations are not validated here."""
    from notifications.email_sender import EmailSender

    ccfg = config.get("channels", {})
    timeout = ccfg.get("timeout_seconds", 10)
    return {
        ChannelKind.WEBHOOK: WebhookChannel(ccfg.get("webhook_url"), timeout=timeout),
        ChannelKind.SLACK: SlackChannel(ccfg.get("slack_webhook_url"), timeout=timeout),
        ChannelKind.EMAIL: EmailChannel(ccfg.get("email_target"), sender=EmailSender(config)),
    }
