# File: apuntes/features/transcription/domain/errors.py
from enum import Enum
from typing import Optional


class TranscriptionError(Exception):
    """Base class for everything the transcription pipeline raises."""


class EmptyAudioError(TranscriptionError):
    """Zero-length payload. Never retried."""


class ApiErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    TOO_LARGE = "too_large"
    SERVER_ERROR = "server_error"
    OTHER = "other"


class ApiError(TranscriptionError):
    """
    Non-2xx answer (or no answer at all) from the speech-to-text service.
    status_code is None for network-level failures.
    """

    def __init__(self, message: str, kind: ApiErrorKind = ApiErrorKind.OTHER,
                 status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code
        self.body = body

    @classmethod
    def from_status(cls, status_code: int, body: str = "") -> "ApiError":
        if status_code == 429:
            kind = ApiErrorKind.RATE_LIMITED
        elif status_code == 413:
            kind = ApiErrorKind.TOO_LARGE
        elif status_code >= 500:
            kind = ApiErrorKind.SERVER_ERROR
        else:
            kind = ApiErrorKind.OTHER
        return cls(f"API error: {status_code} - {body[:200]}", kind=kind, status_code=status_code, body=body)

    @property
    def is_client_error(self) -> bool:
        """A request the service will keep rejecting no matter how often it is sent."""
        if self.kind == ApiErrorKind.TOO_LARGE:
            return True
        return (
            self.kind == ApiErrorKind.OTHER
            and self.status_code is not None
            and 400 <= self.status_code < 500
            and self.status_code != 408
        )


class TranscriptionTimeoutError(TranscriptionError, TimeoutError):
    """No response within the per-request bound."""


class MalformedResponseError(TranscriptionError):
    """2xx response without a usable transcript field."""


class NoTranscriptError(TranscriptionError):
    """Every chunk failed: nothing to hand back. The only pipeline-fatal chunk outcome."""


class TranscriptionCancelled(TranscriptionError):
    """The caller's cancellation token was set."""


class WebhookError(Exception):
    """Downstream webhook delivery failed. Never fatal for a run."""
