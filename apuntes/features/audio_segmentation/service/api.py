from pathlib import Path
from typing import Optional

from apuntes.core.config.settings import settings
from ..data.ffmpeg_adapter import FFmpegCopyCutter, FFmpegPcmDecoder, FFprobeAdapter
from ..data.pcm_cutter import PcmSliceCutter
from ..data.soundfile_adapter import SoundFileAdapter
from ..domain.models import AudioBlob, SegmentationResult, SegmentationStrategy
from .segmenter import AudioSegmenter


def build_segmenter(optimize_for_voice: bool = True,
                    backend: Optional[str] = None,
                    strategy: Optional[str] = None) -> AudioSegmenter:
    """
    Wires prober and cutter according to settings.

    Args:
        optimize_for_voice: Decode to mono at VOICE_SAMPLE_RATE before slicing.
        backend: "ffmpeg" or "soundfile". Defaults to settings.AUDIO_BACKEND.
        strategy: "pcm_slice" or "external_tool". Defaults to settings.SEGMENTATION_STRATEGY.
    """
    backend = backend or settings.AUDIO_BACKEND
    strategy = SegmentationStrategy(strategy or settings.SEGMENTATION_STRATEGY)

    if backend == "soundfile":
        prober = decoder = SoundFileAdapter()
    elif backend == "ffmpeg":
        prober = FFprobeAdapter()
        decoder = FFmpegPcmDecoder(prober)
    else:
        raise ValueError(f"Unknown audio backend: '{backend}'. Expected 'ffmpeg' or 'soundfile'")

    if strategy == SegmentationStrategy.EXTERNAL_TOOL:
        cutter = FFmpegCopyCutter()
    elif optimize_for_voice:
        cutter = PcmSliceCutter(decoder, sample_rate=settings.VOICE_SAMPLE_RATE, channels=1)
    else:
        cutter = PcmSliceCutter(decoder)

    return AudioSegmenter(prober, cutter)


def split_audio(audio_path: str, max_chunk_duration: Optional[float] = None) -> SegmentationResult:
    """
    Standalone API: splits an audio file into chunks held in memory.
    """
    segmenter = build_segmenter()
    blob = AudioBlob.from_path(Path(audio_path))
    return segmenter.segment(blob, max_chunk_duration or settings.DEFAULT_MAX_CHUNK_DURATION)


def get_audio_duration(audio_path: str) -> float:
    """
    Standalone API: duration of an audio file in seconds.
    """
    segmenter = build_segmenter()
    return segmenter.prober.probe_duration(AudioBlob.from_path(Path(audio_path)))
