# File: apuntes/features/transcription/service/retry.py
import logging
import time
from typing import Callable, Optional

from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from apuntes.core.config.settings import settings
from apuntes.features.audio_segmentation.domain.models import AudioChunk
from ..domain.errors import ApiError, EmptyAudioError, TranscriptionCancelled, TranscriptionError
from ..domain.models import ChunkFailed, ChunkOutcome, ChunkSucceeded, ChunkTranscript

logger = logging.getLogger(__name__)

# (chunk, next_attempt, total_attempts, error, delay_seconds)
RetryHook = Callable[[AudioChunk, int, int, BaseException, float], None]


def is_retryable(error: BaseException) -> bool:
    """Transient failures are retried. Requests the service will reject again are not."""
    if isinstance(error, TranscriptionCancelled):
        return False
    if isinstance(error, EmptyAudioError):
        return False
    if isinstance(error, ApiError):
        return not error.is_client_error
    return isinstance(error, TranscriptionError)


class RetryController:
    """
    Runs one chunk's transcription until it succeeds or the policy gives up.
    Always resolves to a ChunkOutcome. Only cancellation escapes.
    """

    def __init__(self, retry_attempts: int = settings.DEFAULT_RETRY_ATTEMPTS,
                 base_delay: float = settings.RETRY_BASE_DELAY,
                 max_delay: float = settings.RETRY_MAX_DELAY,
                 sleep: Optional[Callable[[float], None]] = None,
                 on_retry: Optional[RetryHook] = None):
        if retry_attempts < 0:
            raise ValueError(f"retry_attempts cannot be negative, got {retry_attempts}")
        self.max_attempts = retry_attempts + 1
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.sleep = sleep or time.sleep
        self.on_retry = on_retry

    def run(self, chunk: AudioChunk, attempt_fn: Callable[[], ChunkTranscript]) -> ChunkOutcome:
        attempts = 0

        def attempt() -> ChunkTranscript:
            nonlocal attempts
            attempts += 1
            return attempt_fn()

        def before_sleep(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception()
            delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            logger.warning(
                f"Part {chunk.index + 1} attempt {retry_state.attempt_number}/{self.max_attempts} failed: {error}. "
                f"Retrying in {delay:.1f}s"
            )
            if self.on_retry:
                self.on_retry(chunk, retry_state.attempt_number + 1, self.max_attempts, error, delay)

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay, max=self.max_delay),
            retry=retry_if_exception(is_retryable),
            before_sleep=before_sleep,
            sleep=self.sleep,
            reraise=True,
        )

        try:
            transcript = retrying(attempt)
        except TranscriptionCancelled:
            raise
        except TranscriptionError as e:
            logger.error(f"Part {chunk.index + 1} failed after {attempts} attempt(s): {e}")
            return ChunkFailed(error=str(e), attempts=attempts)
        except Exception as e:
            logger.exception(f"Part {chunk.index + 1} failed with an unexpected error: {e}")
            return ChunkFailed(error=str(e), attempts=attempts)

        return ChunkSucceeded(text=transcript.text, language=transcript.language)
