# File: apuntes/features/transcription/data/groq_adapter.py
import logging
import time
from typing import Optional

import requests

from apuntes.core.config.settings import settings
from apuntes.features.audio_segmentation.domain.models import AudioBlob
from ..domain.errors import ApiError, EmptyAudioError, MalformedResponseError, TranscriptionTimeoutError
from ..domain.interfaces import ITranscriber
from ..domain.models import ChunkTranscript, SpeakerMode

logger = logging.getLogger(__name__)


def build_prompt(speaker_mode: SpeakerMode, subject: Optional[str] = None) -> str:
    """
    Whisper-style prompts bias decoding, so they are written in the recording's language.
    """
    if speaker_mode == SpeakerMode.MULTIPLE:
        prompt = "Esta es una grabación con múltiples oradores, intenta distinguir entre las diferentes voces"
        if subject:
            prompt += f" que hablan sobre {subject}"
    else:
        prompt = "Esta es una grabación con un solo orador principal, enfócate en capturar claramente la voz predominante"
        if subject:
            prompt += f" sobre la materia {subject}"
    return prompt + "."


class GroqWhisperAdapter(ITranscriber):
    """
    OpenAI-compatible /audio/transcriptions client (Groq hosted Whisper).
    """

    def __init__(self, api_key: Optional[str] = None, api_url: Optional[str] = None,
                 model: Optional[str] = None, timeout: Optional[float] = None):
        self.api_key = api_key if api_key is not None else settings.GROQ_API_KEY
        self.api_url = api_url or settings.TRANSCRIPTION_API_URL
        self.model = model or settings.TRANSCRIPTION_MODEL
        self.timeout = timeout or settings.TRANSCRIPTION_TIMEOUT_SECONDS

        if not self.api_key:
            logger.warning("GROQ_API_KEY is not set. Transcription requests will be rejected.")

    def transcribe(self, payload: AudioBlob, subject: Optional[str],
                   speaker_mode: SpeakerMode, language: Optional[str] = None) -> ChunkTranscript:
        if payload.is_empty:
            raise EmptyAudioError("The audio chunk is empty")

        language = language or settings.TRANSCRIPTION_LANGUAGE
        filename = f"audio{payload.suffix}"
        data = {
            "model": self.model,
            "response_format": "verbose_json",
            "language": language,
            "prompt": build_prompt(speaker_mode, subject),
        }

        logger.info(f"Sending {filename} ({payload.size} bytes) to {self.model}")
        started = time.time()

        try:
            response = requests.post(
                self.api_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                files={"file": (filename, payload.data, payload.mime_type)},
                data=data,
                timeout=self.timeout
            )
        except requests.exceptions.Timeout as e:
            raise TranscriptionTimeoutError(f"No response from the transcription API within {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise ApiError(f"Network error reaching the transcription API: {e}") from e

        elapsed_ms = int((time.time() - started) * 1000)

        if not response.ok:
            logger.error(f"API error ({response.status_code}) after {elapsed_ms}ms: {response.text[:500]}")
            raise ApiError.from_status(response.status_code, response.text)

        try:
            body = response.json()
        except ValueError as e:
            logger.error(f"Raw response: {response.text[:500]}")
            raise MalformedResponseError("Transcription API returned a non-JSON body") from e

        text = body.get("text") if isinstance(body, dict) else None
        if not isinstance(text, str) or not text.strip():
            logger.error(f"Response without text: {str(body)[:500]}")
            raise MalformedResponseError("Transcription API response has no 'text' field")

        logger.info(f"Transcription completed ({elapsed_ms}ms): {text.strip()[:50]}...")
        return ChunkTranscript(text=text.strip(), language=body.get("language") or language)
