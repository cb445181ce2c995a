# File: apuntes/features/transcription/domain/models.py
import logging
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from apuntes.core.config.settings import settings
from apuntes.features.audio_segmentation.domain.models import AudioBlob, AudioChunk

logger = logging.getLogger(__name__)


class SpeakerMode(str, Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"


class PipelineState(str, Enum):
    IDLE = "idle"
    PROBING = "probing"
    SEGMENTING = "segmenting"
    TRANSCRIBING = "transcribing"
    RETRYING = "retrying"
    ASSEMBLING = "assembling"
    FORWARDING = "forwarding"
    COMPLETED = "completed"
    ERRORED = "errored"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TranscriptionOptions:
    """
    Per-recording configuration. Built once per session and never mutated.
    """
    max_chunk_duration: float = settings.DEFAULT_MAX_CHUNK_DURATION
    speaker_mode: SpeakerMode = SpeakerMode.SINGLE
    subject: Optional[str] = None
    webhook_url: Optional[str] = None
    retry_attempts: int = settings.DEFAULT_RETRY_ATTEMPTS

    use_time_markers: bool = True
    language: str = settings.TRANSCRIPTION_LANGUAGE
    # Mono 16 kHz before slicing: smaller uploads, same accuracy for speech.
    optimize_for_voice: bool = True
    retry_base_delay: float = settings.RETRY_BASE_DELAY
    inter_chunk_delay: float = settings.INTER_CHUNK_DELAY_SECONDS

    def __post_init__(self):
        if self.max_chunk_duration <= 0:
            raise ValueError(f"max_chunk_duration must be positive, got {self.max_chunk_duration}")
        if self.max_chunk_duration > settings.MAX_CHUNK_DURATION_CEILING:
            logger.warning(
                f"max_chunk_duration {self.max_chunk_duration}s exceeds the "
                f"{settings.MAX_CHUNK_DURATION_CEILING}s ceiling. Clamping."
            )
            object.__setattr__(self, "max_chunk_duration", settings.MAX_CHUNK_DURATION_CEILING)

        if not isinstance(self.speaker_mode, SpeakerMode):
            try:
                mode = SpeakerMode(self.speaker_mode)
            except ValueError:
                logger.warning(f"Unknown speaker mode '{self.speaker_mode}'. Using 'single'.")
                mode = SpeakerMode.SINGLE
            object.__setattr__(self, "speaker_mode", mode)

        if self.retry_attempts < 0:
            raise ValueError(f"retry_attempts cannot be negative, got {self.retry_attempts}")

    @classmethod
    def from_dict(cls, params: Dict[str, Any]) -> "TranscriptionOptions":
        known = {f for f in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in params.items() if k in known and v is not None})

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["speaker_mode"] = self.speaker_mode.value
        return data


@dataclass(frozen=True)
class TranscriptionProgress:
    output: str
    progress: int


@dataclass(frozen=True)
class ChunkTranscript:
    """What one speech-to-text call returns."""
    text: str
    language: str


# --- Per-chunk outcomes (tagged union) ---

@dataclass(frozen=True)
class ChunkPending:
    pass


@dataclass(frozen=True)
class ChunkSucceeded:
    text: str
    language: str


@dataclass(frozen=True)
class ChunkFailed:
    error: str
    attempts: int = 1


ChunkOutcome = Union[ChunkPending, ChunkSucceeded, ChunkFailed]


class ChunkArena:
    """
    Chunks and their outcomes, addressed by index.
    Outcomes are replaced, never mutated, so ordering can't drift.
    """

    def __init__(self, chunks: List[AudioChunk]):
        ordered = sorted(chunks, key=lambda c: c.start_time)
        self._chunks: List[AudioChunk] = ordered
        self._outcomes: List[ChunkOutcome] = [ChunkPending() for _ in ordered]

    def __len__(self) -> int:
        return len(self._chunks)

    def __iter__(self) -> Iterator[Tuple[AudioChunk, ChunkOutcome]]:
        return iter(zip(self._chunks, self._outcomes))

    def chunk(self, index: int) -> AudioChunk:
        return self._chunks[index]

    def record(self, index: int, outcome: ChunkOutcome) -> None:
        self._outcomes[index] = outcome

    @property
    def succeeded(self) -> List[ChunkSucceeded]:
        return [o for o in self._outcomes if isinstance(o, ChunkSucceeded)]

    @property
    def failed(self) -> List[Tuple[AudioChunk, ChunkFailed]]:
        return [(c, o) for c, o in zip(self._chunks, self._outcomes) if isinstance(o, ChunkFailed)]

    def release(self) -> None:
        """Drops the audio payloads once the run is over. Timing and outcomes stay readable."""
        self._chunks = [
            AudioChunk(index=c.index, payload=AudioBlob(b"", c.payload.mime_type),
                       start_time=c.start_time, end_time=c.end_time, degraded=c.degraded)
            for c in self._chunks
        ]


@dataclass
class TranscriptionResult:
    transcript: str
    language: str
    webhook_response: Any = None
    errors: Optional[List[str]] = None
    warnings: List[str] = field(default_factory=list)
    duration: float = 0.0
    segment_count: int = 0
    processing_time_ms: int = 0
    cancelled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
