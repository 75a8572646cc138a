"""Notification channels and dispatch."""
from notifications.channels import WebhookChannel, SlackChannel, EmailChannel, build_channels
from notifications.dispatcher import NotificationDispatcher, NotificationLog
