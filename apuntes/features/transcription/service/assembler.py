# File: apuntes/features/transcription/service/assembler.py
import logging
import re
from typing import List

from ..domain.errors import NoTranscriptError
from ..domain.models import ChunkArena, ChunkFailed, ChunkSucceeded

logger = logging.getLogger(__name__)

_SENTENCE_START = "A-ZÁÉÍÓÚÑÜ¿¡"

_HORIZONTAL_WS = re.compile(r"[ \t]+")
_WS_AROUND_NEWLINE = re.compile(r" *\n *")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_MISSING_SPACE = re.compile(rf"([.!?])(?=[{_SENTENCE_START}])")
_LOWER_AFTER_PERIOD = re.compile(r"(\.\s+)([a-záéíóúñü])")


class TranscriptAssembler:
    """
    Stitches chunk outcomes back into one document, in time order.

    Successful chunks after the first are introduced by a [m:ss] marker
    (or just a blank line when markers are off). Failed chunks leave a
    visible "[m:ss - transcription error]" gap instead of silently vanishing.
    """

    def __init__(self, use_time_markers: bool = True):
        self.use_time_markers = use_time_markers

    @staticmethod
    def format_marker(seconds: float) -> str:
        """125.9 -> '2:05'"""
        total = int(max(0.0, seconds))
        minutes, secs = divmod(total, 60)
        return f"{minutes}:{secs:02d}"

    def _separator(self, start_time: float) -> str:
        if self.use_time_markers:
            return f"\n\n[{self.format_marker(start_time)}]\n"
        return "\n\n"

    def assemble(self, arena: ChunkArena) -> str:
        parts: List[str] = []

        for chunk, outcome in arena:
            if isinstance(outcome, ChunkSucceeded):
                text = outcome.text.strip()
                if not text:
                    continue
                prefix = self._separator(chunk.start_time) if parts else ""
                parts.append(prefix + text)
            elif isinstance(outcome, ChunkFailed):
                prefix = "\n\n" if parts else ""
                parts.append(f"{prefix}[{self.format_marker(chunk.start_time)} - transcription error]\n")
            # Pending: skipped by a cancellation

        if not any(o.text.strip() for o in arena.succeeded):
            raise NoTranscriptError("No part of the recording could be transcribed")

        return "".join(parts)

    @staticmethod
    def normalize(text: str) -> str:
        text = text.replace("\r\n", "\n")
        text = _HORIZONTAL_WS.sub(" ", text)
        text = _WS_AROUND_NEWLINE.sub("\n", text)
        text = _EXCESS_NEWLINES.sub("\n\n", text)
        text = _MISSING_SPACE.sub(r"\1 ", text)
        text = _LOWER_AFTER_PERIOD.sub(lambda m: m.group(1) + m.group(2).upper(), text)
        return text.strip()

    def build(self, arena: ChunkArena) -> str:
        transcript = self.normalize(self.assemble(arena))
        logger.info(f"Assembled transcript: {len(transcript)} chars from {len(arena.succeeded)}/{len(arena)} parts")
        return transcript
