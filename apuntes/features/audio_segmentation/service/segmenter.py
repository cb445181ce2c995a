# File: apuntes/features/audio_segmentation/service/segmenter.py
import logging
import math
from typing import List

from apuntes.core.shared_types import TimeRange, format_time
from ..domain.errors import DecodeError, SegmentationError
from ..domain.interfaces import IChunkCutter, IDurationProber
from ..domain.models import AudioBlob, AudioChunk, SegmentationResult

logger = logging.getLogger(__name__)


def plan_windows(duration: float, max_chunk_duration: float) -> List[TimeRange]:
    """
    Partitions [0, duration) into ceil(duration / max) consecutive windows.
    Every window is max_chunk_duration long except possibly the last one.
    """
    if max_chunk_duration <= 0:
        raise ValueError(f"max_chunk_duration must be positive, got {max_chunk_duration}")
    if duration <= 0:
        return []

    count = int(math.ceil(duration / max_chunk_duration))
    windows = []
    for i in range(count):
        # Multiply instead of accumulating so float error cannot open gaps.
        start = i * max_chunk_duration
        end = min((i + 1) * max_chunk_duration, duration)
        if end <= start:
            break
        windows.append(TimeRange(start_seconds=start, end_seconds=end))
    return windows


class AudioSegmenter:
    """
    Splits a recording into bounded-duration chunks.
    Never aborts on bad audio: if the recording cannot be split it is
    handed back as a single chunk so it can still be transcribed.
    """

    def __init__(self, prober: IDurationProber, cutter: IChunkCutter):
        self.prober = prober
        self.cutter = cutter

    def segment(self, blob: AudioBlob, max_chunk_duration: float) -> SegmentationResult:
        # 1. Measure
        try:
            info = self.prober.probe(blob)
        except DecodeError as e:
            warning = f"Could not measure audio duration ({e}); sending the recording as a single chunk"
            logger.warning(warning)
            return SegmentationResult(
                chunks=[AudioChunk(index=0, payload=blob, start_time=0.0, end_time=0.0, degraded=True)],
                duration_seconds=0.0,
                warnings=[warning]
            )

        duration = info.duration_seconds
        logger.info(f"Audio duration: {duration:.2f}s ({format_time(duration)})")

        # 2. Short enough: keep the original bytes, no re-encode
        if duration <= max_chunk_duration:
            return SegmentationResult(
                chunks=[self._whole(blob, duration)],
                duration_seconds=duration
            )

        # 3. Split
        windows = plan_windows(duration, max_chunk_duration)
        logger.info(f"Splitting {duration:.2f}s of audio into {len(windows)} chunks of at most {max_chunk_duration}s")

        try:
            pieces = self.cutter.cut(blob, windows, info)
        except SegmentationError as e:
            warning = f"Could not split audio ({e}); sending the recording as a single chunk"
            logger.warning(warning)
            return SegmentationResult(
                chunks=[self._whole(blob, duration)],
                duration_seconds=duration,
                warnings=[warning]
            )

        if len(pieces) != len(windows):
            raise SegmentationError(f"Cutter returned {len(pieces)} payloads for {len(windows)} windows")

        chunks = [
            AudioChunk(
                index=idx,
                payload=piece,
                start_time=window.start_seconds,
                end_time=window.end_seconds
            )
            for idx, (window, piece) in enumerate(zip(windows, pieces))
        ]
        logger.info(f"Audio split into {len(chunks)} chunks successfully")
        return SegmentationResult(chunks=chunks, duration_seconds=duration)

    @staticmethod
    def _whole(blob: AudioBlob, duration: float) -> AudioChunk:
        return AudioChunk(index=0, payload=blob, start_time=0.0, end_time=duration)
