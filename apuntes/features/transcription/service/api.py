from pathlib import Path
from typing import Optional

from apuntes.features.audio_segmentation.domain.models import AudioBlob
from apuntes.features.audio_segmentation.service.api import build_segmenter
from ..data.groq_adapter import GroqWhisperAdapter
from ..data.webhook_adapter import HttpWebhookSender
from ..domain.models import TranscriptionOptions, TranscriptionResult
from .forwarder import WebhookForwarder
from .pipeline import CancellationToken, TranscriptionPipeline
from .progress import ProgressObserver


def build_pipeline(options: Optional[TranscriptionOptions] = None) -> TranscriptionPipeline:
    """
    Wires the production adapters (audio backend per settings, Groq, HTTP webhook).
    """
    options = options or TranscriptionOptions()
    return TranscriptionPipeline(
        segmenter=build_segmenter(optimize_for_voice=options.optimize_for_voice),
        transcriber=GroqWhisperAdapter(),
        forwarder=WebhookForwarder(HttpWebhookSender()),
    )


def transcribe_audio(blob: AudioBlob, options: Optional[TranscriptionOptions] = None,
                     on_progress: Optional[ProgressObserver] = None,
                     cancel_token: Optional[CancellationToken] = None) -> TranscriptionResult:
    """
    Standalone API for transcribing an in-memory recording.
    """
    options = options or TranscriptionOptions()
    observers = [on_progress] if on_progress else []
    return build_pipeline(options).run(blob, options, observers=observers, cancel_token=cancel_token)


def transcribe_file(audio_path: str, **option_overrides) -> TranscriptionResult:
    """
    Standalone API for running transcription directly on a file.
    Useful for testing or CLI tools without the Job system.
    """
    options = TranscriptionOptions.from_dict(option_overrides)
    return transcribe_audio(AudioBlob.from_path(Path(audio_path)), options)
