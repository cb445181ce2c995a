# File: apuntes/features/audio_segmentation/data/pcm_cutter.py
import logging
import math
from typing import List, Optional

import numpy as np

from apuntes.core.shared_types import TimeRange
from ..domain.errors import SegmentationError
from ..domain.interfaces import IAudioDecoder, IChunkCutter
from ..domain.models import AudioBlob, AudioInfo, DecodedAudio
from .soundfile_adapter import encode_wav

logger = logging.getLogger(__name__)


class PcmSliceCutter(IChunkCutter):
    """
    Decode-and-slice segmentation.
    Decodes the recording once, copies each window's sample range per channel
    into its own buffer and re-encodes it as WAV, whatever the source codec was.
    """

    def __init__(self, decoder: IAudioDecoder, sample_rate: Optional[int] = None,
                 channels: Optional[int] = None):
        self.decoder = decoder
        # Voice optimisation: None keeps the source layout.
        self.sample_rate = sample_rate
        self.channels = channels

    def cut(self, blob: AudioBlob, windows: List[TimeRange], info: AudioInfo) -> List[AudioBlob]:
        decoded = self.decoder.decode(blob, sample_rate=self.sample_rate, channels=self.channels)
        logger.info(
            f"Decoded {decoded.duration_seconds:.2f}s "
            f"({decoded.channels}ch @ {decoded.sample_rate} Hz) into {len(windows)} windows"
        )
        return [encode_wav(self.slice(decoded, window), decoded.sample_rate) for window in windows]

    @staticmethod
    def slice(decoded: DecodedAudio, window: TimeRange) -> np.ndarray:
        """
        Copies [start, end) into a fresh zero-padded (channels, frames) buffer.
        """
        rate = decoded.sample_rate
        source_offset = int(math.floor(window.start_seconds * rate))
        frame_count = int(math.ceil(window.duration * rate))
        if frame_count <= 0:
            raise SegmentationError(f"Window {window} holds no samples at {rate} Hz")

        chunk = np.zeros((decoded.channels, frame_count), dtype=np.float32)
        available = decoded.samples[:, source_offset:source_offset + frame_count]
        chunk[:, :available.shape[1]] = available
        return chunk
