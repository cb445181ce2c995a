# File: apuntes/features/audio_segmentation/domain/models.py
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List

import numpy as np

_SUFFIX_BY_MIME = (
    ("wav", ".wav"),
    ("mp3", ".mp3"),
    ("mpeg", ".mp3"),
    ("ogg", ".ogg"),
    ("webm", ".webm"),
    ("mp4", ".m4a"),
    ("m4a", ".m4a"),
    ("flac", ".flac"),
)

_MIME_BY_SUFFIX = {
    ".wav": "audio/wav",
    ".mp3": "audio/mpeg",
    ".ogg": "audio/ogg",
    ".opus": "audio/ogg",
    ".webm": "audio/webm",
    ".m4a": "audio/mp4",
    ".mp4": "audio/mp4",
    ".flac": "audio/flac",
}


class SegmentationStrategy(str, Enum):
    PCM_SLICE = "pcm_slice"
    EXTERNAL_TOOL = "external_tool"


@dataclass(frozen=True)
class AudioBlob:
    """
    An in-memory audio payload plus the container type it was recorded in.
    """
    data: bytes
    mime_type: str = "audio/wav"

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def is_empty(self) -> bool:
        return len(self.data) == 0

    @property
    def suffix(self) -> str:
        """File extension the speech-to-text API uses to sniff the container."""
        mime = (self.mime_type or "").lower()
        for token, suffix in _SUFFIX_BY_MIME:
            if token in mime:
                return suffix
        return ".wav"

    @classmethod
    def from_path(cls, path: Path) -> "AudioBlob":
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Audio not found: {path}")
        mime_type = _MIME_BY_SUFFIX.get(path.suffix.lower(), "audio/wav")
        return cls(data=path.read_bytes(), mime_type=mime_type)


@dataclass(frozen=True)
class AudioInfo:
    duration_seconds: float
    sample_rate: int = 0
    channels: int = 0


@dataclass(frozen=True)
class DecodedAudio:
    """
    Raw float32 PCM, one row per channel.
    """
    samples: np.ndarray
    sample_rate: int

    @property
    def channels(self) -> int:
        return int(self.samples.shape[0])

    @property
    def frames(self) -> int:
        return int(self.samples.shape[1])

    @property
    def duration_seconds(self) -> float:
        return self.frames / float(self.sample_rate) if self.sample_rate else 0.0


@dataclass(frozen=True)
class AudioChunk:
    """
    A bounded-duration slice of a recording, ready to be sent for transcription.
    `index` is the position in the recording; chunks never overlap.
    """
    index: int
    payload: AudioBlob
    start_time: float
    end_time: float
    # Set when timing could not be measured at all (end_time == start_time == 0).
    degraded: bool = False

    def __post_init__(self):
        if self.start_time < 0:
            raise ValueError(f"Chunk start cannot be negative: {self.start_time}")
        if self.end_time < self.start_time:
            raise ValueError(f"Chunk end ({self.end_time}) is before its start ({self.start_time})")

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass
class SegmentationResult:
    chunks: List[AudioChunk]
    duration_seconds: float
    warnings: List[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return any(chunk.degraded for chunk in self.chunks)
