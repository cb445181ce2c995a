# File: apuntes/features/audio_segmentation/data/ffmpeg_adapter.py
import json
import logging
import os
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import numpy as np

from apuntes.core.config.settings import settings
from apuntes.core.shared_types import TimeRange
from ..domain.errors import DecodeError, SegmentationError
from ..domain.interfaces import IAudioDecoder, IChunkCutter, IDurationProber
from ..domain.models import AudioBlob, AudioInfo, DecodedAudio

logger = logging.getLogger(__name__)

# Sample rate used when the container carries no duration and we have to count samples.
_COUNTING_SAMPLE_RATE = 8000


@contextmanager
def materialize(blob: AudioBlob) -> Iterator[Path]:
    """
    Writes the blob to a temporary file for the external tools and always removes it.
    """
    fd, name = tempfile.mkstemp(suffix=blob.suffix, prefix="apuntes_")
    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(blob.data)
        yield path
    finally:
        path.unlink(missing_ok=True)


def _run(cmd: List[str], what: str) -> bytes:
    logger.debug(f"Executing {what}: {' '.join(cmd)}")
    try:
        completed = subprocess.run(
            cmd,
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE
        )
    except FileNotFoundError as e:
        raise DecodeError(f"{what} failed: binary not found ({cmd[0]})") from e
    except subprocess.CalledProcessError as e:
        error_msg = e.stderr.decode(errors="replace").strip() if e.stderr else str(e)
        logger.error(f"{what} failed: {error_msg}")
        raise DecodeError(f"{what} failed: {error_msg}") from e
    return completed.stdout


class FFprobeAdapter(IDurationProber):
    """
    Reads duration, sample rate and channel layout with ffprobe.
    """

    def probe(self, blob: AudioBlob) -> AudioInfo:
        if blob.is_empty:
            raise DecodeError("Cannot probe an empty audio blob")

        with materialize(blob) as path:
            cmd = [
                settings.FFPROBE_BINARY,
                "-v", "error",
                "-select_streams", "a:0",
                "-show_entries", "format=duration:stream=sample_rate,channels,duration",
                "-of", "json",
                str(path)
            ]
            raw = _run(cmd, "ffprobe")

            try:
                meta = json.loads(raw.decode() or "{}")
            except ValueError as e:
                raise DecodeError(f"ffprobe returned unreadable output: {e}") from e

            streams = meta.get("streams") or []
            if not streams:
                raise DecodeError("No audio stream found")
            stream = streams[0]

            duration = self._parse_float(meta.get("format", {}).get("duration"))
            if duration is None:
                duration = self._parse_float(stream.get("duration"))
            if duration is None:
                # MediaRecorder webm files are written without a duration header.
                logger.info("Container has no duration header. Counting samples instead.")
                duration = self._count_duration(path)

        return AudioInfo(
            duration_seconds=duration,
            sample_rate=int(stream.get("sample_rate") or 0),
            channels=int(stream.get("channels") or 0)
        )

    @staticmethod
    def _parse_float(value) -> Optional[float]:
        try:
            parsed = float(value)
        except (TypeError, ValueError):
            return None
        return parsed if parsed > 0 else None

    @staticmethod
    def _count_duration(path: Path) -> float:
        cmd = [
            settings.FFMPEG_BINARY,
            "-v", "error",
            "-i", str(path),
            "-map", "0:a:0",
            "-ac", "1",
            "-ar", str(_COUNTING_SAMPLE_RATE),
            "-f", "s16le",
            "pipe:1"
        ]
        pcm = _run(cmd, "ffmpeg sample count")
        if not pcm:
            raise DecodeError("Audio stream decoded to zero samples")
        return (len(pcm) // 2) / float(_COUNTING_SAMPLE_RATE)


class FFmpegPcmDecoder(IAudioDecoder):
    """
    Decodes any container ffmpeg understands into float32 PCM.
    """

    def __init__(self, prober: Optional[IDurationProber] = None):
        self.prober = prober or FFprobeAdapter()

    def decode(self, blob: AudioBlob, sample_rate: Optional[int] = None,
               channels: Optional[int] = None) -> DecodedAudio:
        if sample_rate is None or channels is None:
            info = self.prober.probe(blob)
            sample_rate = sample_rate or info.sample_rate
            channels = channels or info.channels
        if not sample_rate or not channels:
            raise DecodeError("Could not determine sample rate or channel count")

        with materialize(blob) as path:
            # -f f32le: interleaved little-endian float32 on stdout
            cmd = [
                settings.FFMPEG_BINARY,
                "-v", "error",
                "-i", str(path),
                "-map", "0:a:0",
                "-ac", str(channels),
                "-ar", str(sample_rate),
                "-f", "f32le",
                "-acodec", "pcm_f32le",
                "pipe:1"
            ]
            logger.info(f"Decoding {blob.size} bytes to PCM ({channels}ch @ {sample_rate} Hz)")
            raw = _run(cmd, "ffmpeg decode")

        if not raw:
            raise DecodeError("Audio decoded to zero samples")

        interleaved = np.frombuffer(raw, dtype="<f4")
        usable = (interleaved.size // channels) * channels
        samples = interleaved[:usable].reshape(-1, channels).T.copy()
        return DecodedAudio(samples=samples, sample_rate=sample_rate)


class FFmpegCopyCutter(IChunkCutter):
    """
    External-tool segmentation: ffmpeg stream-copies each window,
    so chunks keep the source codec and container.
    """

    def cut(self, blob: AudioBlob, windows: List[TimeRange], info: AudioInfo) -> List[AudioBlob]:
        pieces: List[AudioBlob] = []

        with materialize(blob) as source, tempfile.TemporaryDirectory(prefix="apuntes_chunks_") as tmp_dir:
            for idx, window in enumerate(windows):
                output_path = Path(tmp_dir) / f"chunk_{idx}{blob.suffix}"
                # -ss before -i: input seeking, fast on long recordings
                # -c copy: no re-encode
                cmd = [
                    settings.FFMPEG_BINARY,
                    "-v", "error",
                    "-y",
                    "-ss", f"{window.start_seconds:.3f}",
                    "-i", str(source),
                    "-t", f"{window.duration:.3f}",
                    "-map", "0:a:0",
                    "-c", "copy",
                    str(output_path)
                ]
                logger.info(f"Executing FFmpeg Cut: {' '.join(cmd)}")

                try:
                    _run(cmd, f"ffmpeg cut {idx}")
                except DecodeError as e:
                    raise SegmentationError(f"Error splitting audio chunk {idx}: {e}") from e

                data = output_path.read_bytes() if output_path.exists() else b""
                if not data:
                    raise SegmentationError(f"Error splitting audio chunk {idx}: empty output")
                pieces.append(AudioBlob(data=data, mime_type=blob.mime_type))

        return pieces
