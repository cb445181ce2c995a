from abc import ABC, abstractmethod
from typing import Any, Optional

from apuntes.features.audio_segmentation.domain.models import AudioBlob
from .models import ChunkTranscript, SpeakerMode


class ITranscriber(ABC):
    """
    Contract for any speech-to-text backend.
    Allows us to swap the Groq endpoint for another OpenAI-compatible service later.
    """
    @abstractmethod
    def transcribe(self, payload: AudioBlob, subject: Optional[str],
                   speaker_mode: SpeakerMode, language: Optional[str] = None) -> ChunkTranscript:
        """
        Transcribes one chunk with a single request. Never retries.

        Raises:
            EmptyAudioError: Zero-byte payload.
            ApiError: Non-2xx response or network failure.
            TranscriptionTimeoutError: No answer within the request bound.
            MalformedResponseError: Success status without a transcript.
        """
        pass


class IWebhookSender(ABC):
    """
    Contract for handing a finished transcript to the downstream consumer.
    """
    @abstractmethod
    def send(self, url: str, data: Any) -> Any:
        """
        Posts data (dict as JSON, str as plain text) and returns the decoded response.

        Raises:
            WebhookError: Invalid URL, timeout, network failure or non-2xx response.
        """
        pass
