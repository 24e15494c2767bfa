"""Report failed state validations to a Slack incoming webhook."""

import logging
from urllib.parse import urlparse

import requests

from statewarden.models import TrackedState, ValidationLogEntry

logger = logging.getLogger(__name__)

ALLOWED_SLACK_HOSTS = {"hooks.slack.com", "hooks.slack-gov.com"}


def post_to_slack(report: str, webhook_url: str, timeout: int = 30) -> None:
    """Post a message to a Slack incoming webhook."""
    parsed = urlparse(webhook_url)
    if parsed.scheme != "https":
        raise ValueError("Slack webhook URL must use HTTPS")
    if parsed.hostname not in ALLOWED_SLACK_HOSTS:
        raise ValueError(
            f"Invalid Slack webhook host {parsed.hostname!r}: "
            f"must be one of {sorted(ALLOWED_SLACK_HOSTS)}"
        )
    response = requests.post(
        webhook_url,
        json={"text": report},
        timeout=timeout,
    )
    response.raise_for_status()


def failed_validation_message(state: TrackedState, entry: ValidationLogEntry, panel_url: str) -> str:
    return (
        f"Automatic state validation failed for state at {state.location}. "
        f"See details at {panel_url.rstrip('/')}/logs/{entry.id}."
    )


class FailedValidationNotifier:
    """Log-entry callback posting to Slack when any feature failed.

    Delivery problems are logged and never propagate into the check loop.
    """

    def __init__(self, webhook_url: str, panel_url: str = ""):
        self._webhook_url = webhook_url
        self._panel_url = panel_url

    def __call__(self, state: TrackedState, entry: ValidationLogEntry) -> None:
        if entry.current_result.error_count == 0:
            return
        try:
            post_to_slack(failed_validation_message(state, entry, self._panel_url), self._webhook_url)
        except (requests.RequestException, ValueError) as e:
            logger.error("can't send to slack: %s", e)
