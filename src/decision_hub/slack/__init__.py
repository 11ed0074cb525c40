"""Slack ingress: webhooks, interactivity, backfill, and review notifications."""

from decision_hub.slack.client import get_slack_client, reset_clients
from decision_hub.slack.notifier import send_confirmation_dm, update_review_message

__all__ = [
    "get_slack_client",
    "reset_clients",
    "send_confirmation_dm",
    "update_review_message",
]
