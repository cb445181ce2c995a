# File: apuntes/features/audio_segmentation/data/soundfile_adapter.py
import io
import logging
from typing import Optional

import librosa
import numpy as np
import soundfile as sf

from ..domain.errors import DecodeError
from ..domain.interfaces import IAudioDecoder, IDurationProber
from ..domain.models import AudioBlob, AudioInfo, DecodedAudio

logger = logging.getLogger(__name__)


def encode_wav(samples: np.ndarray, sample_rate: int) -> AudioBlob:
    """
    Encodes (channels, frames) float PCM as a 16-bit WAV blob.
    """
    wav_bytes_io = io.BytesIO()
    # soundfile expects (frames, channels); out-of-range floats are clipped
    sf.write(wav_bytes_io, np.clip(samples.T, -1.0, 1.0), sample_rate, format="WAV", subtype="PCM_16")
    return AudioBlob(data=wav_bytes_io.getvalue(), mime_type="audio/wav")


def _resample(samples: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    if source_rate == target_rate or samples.shape[1] == 0:
        return samples
    # Band-limited, so downsampled speech does not alias
    return librosa.resample(samples, orig_sr=source_rate, target_sr=target_rate, axis=-1).astype(np.float32)


class SoundFileAdapter(IDurationProber, IAudioDecoder):
    """
    libsndfile-backed prober and decoder. Works in-memory (no temp files)
    but only reads WAV, FLAC and OGG/Vorbis.
    """

    def probe(self, blob: AudioBlob) -> AudioInfo:
        if blob.is_empty:
            raise DecodeError("Cannot probe an empty audio blob")
        try:
            info = sf.info(io.BytesIO(blob.data))
        except (RuntimeError, TypeError, ValueError) as e:
            raise DecodeError(f"Unreadable audio: {e}") from e

        return AudioInfo(
            duration_seconds=float(info.duration),
            sample_rate=int(info.samplerate),
            channels=int(info.channels)
        )

    def decode(self, blob: AudioBlob, sample_rate: Optional[int] = None,
               channels: Optional[int] = None) -> DecodedAudio:
        try:
            data, source_rate = sf.read(io.BytesIO(blob.data), dtype="float32", always_2d=True)
        except (RuntimeError, TypeError, ValueError) as e:
            raise DecodeError(f"Unreadable audio: {e}") from e

        samples = data.T
        if samples.shape[1] == 0:
            raise DecodeError("Audio decoded to zero samples")

        if channels == 1 and samples.shape[0] > 1:
            samples = samples.mean(axis=0, keepdims=True)
        elif channels and channels != samples.shape[0]:
            raise DecodeError(f"Cannot remix {samples.shape[0]} channels to {channels}")

        target_rate = sample_rate or source_rate
        samples = _resample(samples, source_rate, target_rate)
        return DecodedAudio(samples=np.ascontiguousarray(samples, dtype=np.float32), sample_rate=target_rate)
