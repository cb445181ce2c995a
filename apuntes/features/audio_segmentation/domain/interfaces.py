from abc import ABC, abstractmethod
from typing import List, Optional

from apuntes.core.shared_types import TimeRange
from .models import AudioBlob, AudioInfo, DecodedAudio


class IDurationProber(ABC):
    """
    Contract for measuring a recording without decoding all of it.
    """
    @abstractmethod
    def probe(self, blob: AudioBlob) -> AudioInfo:
        """
        Reads the container metadata of the given blob.

        Raises:
            DecodeError: If the blob is not playable audio.
        """
        pass

    def probe_duration(self, blob: AudioBlob) -> float:
        return self.probe(blob).duration_seconds


class IAudioDecoder(ABC):
    """
    Contract for turning a compressed blob into raw per-channel samples.
    """
    @abstractmethod
    def decode(self, blob: AudioBlob, sample_rate: Optional[int] = None,
               channels: Optional[int] = None) -> DecodedAudio:
        """
        Decodes the full blob.

        Args:
            blob: Source audio in any supported container.
            sample_rate: Resample to this rate. None keeps the source rate.
            channels: Downmix to this many channels. None keeps the source layout.

        Raises:
            DecodeError: If the blob cannot be decoded.
        """
        pass


class IChunkCutter(ABC):
    """
    Contract for producing one standalone audio payload per time window.
    """
    @abstractmethod
    def cut(self, blob: AudioBlob, windows: List[TimeRange], info: AudioInfo) -> List[AudioBlob]:
        """
        Returns exactly one payload per window, in the same order.

        Raises:
            SegmentationError: If any window cannot be produced.
        """
        pass
