# File: apuntes/features/transcription/service/pipeline.py
import logging
import threading
import time
from typing import Callable, Iterable, List, Optional

from apuntes.core.shared_types import format_time
from apuntes.features.audio_segmentation.domain.models import AudioBlob, AudioChunk
from apuntes.features.audio_segmentation.service.segmenter import AudioSegmenter
from ..domain.errors import EmptyAudioError, TranscriptionCancelled, WebhookError
from ..domain.interfaces import ITranscriber
from ..domain.models import (
    ChunkArena,
    ChunkFailed,
    PipelineState,
    TranscriptionOptions,
    TranscriptionResult,
)
from .assembler import TranscriptAssembler
from .forwarder import WebhookForwarder
from .progress import ProgressObserver, ProgressReporter
from .retry import RetryController

logger = logging.getLogger(__name__)

# Progress schedule
STARTING = 0
PROBING = 5
SEGMENTED = 10
TRANSCRIBING = 20
TRANSCRIBING_SPAN = 70
FORWARDING = 90
DONE = 100


class CancellationToken:
    """
    Cooperative cancellation. The pipeline checks it at every suspension point.
    Safe to set from another thread.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise TranscriptionCancelled("Transcription cancelled")

    def wait(self, seconds: float) -> None:
        """Sleeps up to `seconds`, waking early (and raising) on cancellation."""
        if self._event.wait(timeout=max(0.0, seconds)):
            raise TranscriptionCancelled("Transcription cancelled")


class PipelineRun:
    """Mutable bookkeeping for one run. Never shared between runs."""

    def __init__(self, options: TranscriptionOptions, reporter: ProgressReporter, token: CancellationToken):
        self.options = options
        self.reporter = reporter
        self.token = token
        self.state = PipelineState.IDLE
        self.warnings: List[str] = []
        self.arena: Optional[ChunkArena] = None

    def transition(self, state: PipelineState) -> None:
        logger.debug(f"Pipeline state: {self.state.value} -> {state.value}")
        self.state = state


class TranscriptionPipeline:
    """
    Orchestrates one recording end to end:
    segment -> transcribe each chunk (with retries) -> assemble -> forward.

    Chunks are processed strictly one after another, so the transcript order is
    the chunk order and the external service sees at most one request at a time.

    An instance serves one run at a time and `state` reflects the latest run.
    Concurrent recordings each get their own pipeline (see `build_pipeline`).
    """

    def __init__(self, segmenter: AudioSegmenter, transcriber: ITranscriber,
                 forwarder: Optional[WebhookForwarder] = None,
                 sleep: Optional[Callable[[float], None]] = None):
        self.segmenter = segmenter
        self.transcriber = transcriber
        self.forwarder = forwarder or WebhookForwarder()
        self._sleep = sleep
        self._run: Optional[PipelineRun] = None

    @property
    def state(self) -> PipelineState:
        return self._run.state if self._run else PipelineState.IDLE

    def run(self, blob: AudioBlob, options: Optional[TranscriptionOptions] = None,
            observers: Iterable[ProgressObserver] = (),
            cancel_token: Optional[CancellationToken] = None) -> TranscriptionResult:
        options = options or TranscriptionOptions()
        token = cancel_token or CancellationToken()
        reporter = ProgressReporter(observers)
        run = PipelineRun(options, reporter, token)
        self._run = run
        started = time.time()

        try:
            return self._execute(run, blob, started)
        except TranscriptionCancelled:
            run.transition(PipelineState.CANCELLED)
            reporter.fail("Transcription cancelled")
            raise
        except Exception as e:
            run.transition(PipelineState.ERRORED)
            reporter.fail(f"Error: {e}")
            logger.error(f"Transcription pipeline failed: {e}")
            raise
        finally:
            if run.arena is not None:
                run.arena.release()

    # --- Stages ---

    def _execute(self, run: PipelineRun, blob: AudioBlob, started: float) -> TranscriptionResult:
        options, reporter, token = run.options, run.reporter, run.token

        reporter.report("Starting transcription...", STARTING)
        if blob.is_empty:
            raise EmptyAudioError("The recording is empty")

        token.raise_if_cancelled()
        run.transition(PipelineState.PROBING)
        reporter.report("Analyzing audio...", PROBING)

        run.transition(PipelineState.SEGMENTING)
        segmentation = self.segmenter.segment(blob, options.max_chunk_duration)
        token.raise_if_cancelled()

        run.warnings.extend(segmentation.warnings)
        arena = ChunkArena(segmentation.chunks)
        run.arena = arena
        if len(arena) > 1:
            reporter.report(f"Audio split into {len(arena)} parts", SEGMENTED)

        run.transition(PipelineState.TRANSCRIBING)
        reporter.report("Transcribing audio...", TRANSCRIBING)
        cancelled = self._transcribe_chunks(run, arena)

        if cancelled and not any(o.text.strip() for o in arena.succeeded):
            raise TranscriptionCancelled("Transcription cancelled before any part was transcribed")

        run.transition(PipelineState.ASSEMBLING)
        assembler = TranscriptAssembler(use_time_markers=options.use_time_markers)
        transcript = assembler.build(arena)

        webhook_response = self._forward(run, transcript, cancelled)

        errors = [self._describe_failure(chunk, outcome) for chunk, outcome in arena.failed]
        result = TranscriptionResult(
            transcript=transcript,
            language=self._language(arena, options),
            webhook_response=webhook_response,
            errors=errors or None,
            warnings=list(run.warnings),
            duration=segmentation.duration_seconds,
            segment_count=len(arena),
            processing_time_ms=int((time.time() - started) * 1000),
            cancelled=cancelled,
        )

        if cancelled:
            run.transition(PipelineState.CANCELLED)
            reporter.report(transcript, reporter.last_progress)
            logger.info(f"Transcription cancelled after {len(arena.succeeded)}/{len(arena)} parts")
        else:
            run.transition(PipelineState.COMPLETED)
            reporter.report(transcript, DONE)
            logger.info(
                f"Transcription completed: {len(arena)} parts, {len(errors)} failed, "
                f"{format_time(result.duration)} of audio in {result.processing_time_ms}ms"
            )
        return result

    def _transcribe_chunks(self, run: PipelineRun, arena: ChunkArena) -> bool:
        """Returns True when the loop stopped on cancellation."""
        options, reporter, token = run.options, run.reporter, run.token
        total = len(arena)
        assembler = TranscriptAssembler(use_time_markers=options.use_time_markers)

        def on_retry(chunk: AudioChunk, attempt: int, attempts: int, error: BaseException, delay: float):
            run.transition(PipelineState.RETRYING)
            reporter.report(
                f"Retrying part {chunk.index + 1} (attempt {attempt}/{attempts}): {error}",
                reporter.last_progress
            )

        controller = RetryController(
            retry_attempts=options.retry_attempts,
            base_delay=options.retry_base_delay,
            sleep=self._sleeper(token),
            on_retry=on_retry,
        )

        try:
            for i in range(total):
                chunk = arena.chunk(i)
                if i > 0 and options.inter_chunk_delay > 0:
                    self._sleeper(token)(options.inter_chunk_delay)
                token.raise_if_cancelled()

                run.transition(PipelineState.TRANSCRIBING)
                reporter.report(
                    f"Transcribing part {i + 1} of {total}...",
                    TRANSCRIBING + TRANSCRIBING_SPAN * i / total
                )
                logger.info(
                    f"Transcribing part {i + 1}/{total} "
                    f"[{format_time(chunk.start_time)}-{format_time(chunk.end_time)}]"
                )

                def attempt(chunk=chunk):
                    token.raise_if_cancelled()
                    return self.transcriber.transcribe(
                        chunk.payload, options.subject, options.speaker_mode, options.language
                    )

                arena.record(i, controller.run(chunk, attempt))
                reporter.report(
                    self._partial(assembler, arena),
                    TRANSCRIBING + TRANSCRIBING_SPAN * (i + 1) / total
                )
        except TranscriptionCancelled:
            logger.warning("Cancellation requested. Skipping remaining parts.")
            return True

        return token.cancelled

    def _forward(self, run: PipelineRun, transcript: str, cancelled: bool):
        url = self.forwarder.resolve_url(run.options)
        if not url:
            logger.debug("No webhook configured. Skipping delivery.")
            return None
        if not transcript:
            return None

        run.transition(PipelineState.FORWARDING)
        if not cancelled:
            run.reporter.report("Sending transcript to webhook...", FORWARDING)

        try:
            return self.forwarder.forward(transcript, run.options)
        except WebhookError as e:
            warning = f"Webhook delivery failed: {e}"
            logger.warning(warning)
            run.warnings.append(warning)
            return None

    # --- Helpers ---

    def _sleeper(self, token: CancellationToken) -> Callable[[float], None]:
        if self._sleep is None:
            return token.wait

        def sleep(seconds: float) -> None:
            self._sleep(seconds)
            token.raise_if_cancelled()

        return sleep

    @staticmethod
    def _partial(assembler: TranscriptAssembler, arena: ChunkArena) -> str:
        if not any(o.text.strip() for o in arena.succeeded):
            return ""
        return assembler.build(arena)

    @staticmethod
    def _language(arena: ChunkArena, options: TranscriptionOptions) -> str:
        for outcome in arena.succeeded:
            if outcome.language:
                return outcome.language
        return options.language

    @staticmethod
    def _describe_failure(chunk: AudioChunk, outcome: ChunkFailed) -> str:
        marker = TranscriptAssembler.format_marker
        return f"Part {chunk.index + 1} [{marker(chunk.start_time)}-{marker(chunk.end_time)}]: {outcome.error}"
