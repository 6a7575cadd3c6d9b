"""Slack and Discord incoming-webhook adapter."""

import logging

import requests

from docket.core.digest import truncate
from docket.core.errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

DISCORD_MAX_CHARS = 1990


class WebhookNotifier:
    """
    Posts digest text to a chat webhook.

    Implements Notifier protocol.
    """

    def __init__(
        self,
        kind: str,
        url: str,
        session: requests.Session | None = None,
        timeout: int = 15,
    ):
        if kind not in ("discord", "slack"):
            raise ConfigurationError(f'Invalid NOTIFIER "{kind}". Use "discord" or "slack".')
        if not url:
            raise ConfigurationError(f"{kind.upper()}_WEBHOOK_URL is not configured")
        self.kind = kind
        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()

    def payload(self, text: str) -> dict:
        if self.kind == "discord":
            return {"content": truncate(text, DISCORD_MAX_CHARS)}
        return {"text": text}

    def post(self, text: str) -> None:
        try:
            resp = self._session.post(self.url, json=self.payload(text), timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamError(f"{self.kind} webhook failed: {e}") from e
        if not resp.ok:
            raise UpstreamError(f"{self.kind} webhook failed ({resp.status_code}): {resp.text}")
        logger.info(f"Posted digest to {self.kind}")
