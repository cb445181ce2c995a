# File: apuntes/features/transcription/data/webhook_adapter.py
import json
import logging
from typing import Any, Optional

import requests

from apuntes.core.config.settings import settings
from ..domain.errors import WebhookError
from ..domain.interfaces import IWebhookSender

logger = logging.getLogger(__name__)


class HttpWebhookSender(IWebhookSender):
    """
    Plain HTTP POST. Dicts go out as JSON, strings as text/plain.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout or settings.WEBHOOK_TIMEOUT_SECONDS

    def send(self, url: str, data: Any) -> Any:
        if not url or not url.startswith("http"):
            raise WebhookError(f"Invalid webhook URL: '{url}'")

        if isinstance(data, str):
            kwargs = {"data": data.encode("utf-8"), "headers": {"Content-Type": "text/plain; charset=utf-8"}}
            preview = data[:100]
        else:
            kwargs = {"json": data}
            preview = json.dumps(data, ensure_ascii=False, default=str)[:100]

        logger.info(f"Posting to webhook {url}: {preview}...")

        try:
            response = requests.post(url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise WebhookError(f"Webhook did not answer within {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise WebhookError(f"Webhook unreachable: {e}") from e

        if not response.ok:
            logger.error(f"Webhook error ({response.status_code}): {response.text[:500]}")
            raise WebhookError(f"Webhook error: {response.status_code}")

        try:
            return response.json()
        except ValueError:
            return response.text
