# File: apuntes/features/transcription/service/forwarder.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from apuntes.core.config.settings import settings
from ..data.webhook_adapter import HttpWebhookSender
from ..domain.interfaces import IWebhookSender
from ..domain.models import TranscriptionOptions

logger = logging.getLogger(__name__)


class WebhookForwarder:
    """
    Hands the finished transcript to the downstream consumer (e.g. a note-taking workflow).
    """

    def __init__(self, sender: Optional[IWebhookSender] = None):
        self.sender = sender or HttpWebhookSender()

    @staticmethod
    def resolve_url(options: TranscriptionOptions) -> str:
        return options.webhook_url or settings.WEBHOOK_URL

    @staticmethod
    def build_payload(transcript: str, options: TranscriptionOptions) -> Dict[str, Any]:
        return {
            "transcript": transcript,
            "subject": options.subject,
            "speakerMode": options.speaker_mode.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def forward(self, transcript: str, options: TranscriptionOptions) -> Any:
        """
        Raises:
            WebhookError: propagated from the sender.
        """
        url = self.resolve_url(options)
        payload = self.build_payload(transcript, options)
        response = self.sender.send(url, payload)
        logger.info(f"Transcript delivered to webhook {url}")
        return response
