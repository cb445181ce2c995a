# File: apuntes/features/transcription/service/progress.py
import logging
from typing import Callable, Iterable, List

from ..domain.models import TranscriptionProgress

logger = logging.getLogger(__name__)

ProgressObserver = Callable[[TranscriptionProgress], None]


class ProgressReporter:
    """
    Synchronous fan-out of progress events to subscribed callables.
    Nothing is buffered: a late subscriber only sees what comes after it.
    """

    def __init__(self, observers: Iterable[ProgressObserver] = ()):
        self._observers: List[ProgressObserver] = list(observers)
        self._last = 0

    @property
    def last_progress(self) -> int:
        return self._last

    def subscribe(self, observer: ProgressObserver) -> None:
        self._observers.append(observer)

    def report(self, output: str, progress: float) -> None:
        value = max(0, min(100, int(progress)))
        # Monotonic within a run
        value = max(value, self._last)
        self._last = value
        self._emit(TranscriptionProgress(output=output, progress=value))

    def fail(self, message: str) -> None:
        self._emit(TranscriptionProgress(output=message, progress=0))

    def _emit(self, event: TranscriptionProgress) -> None:
        logger.debug(f"Progress {event.progress}%: {event.output[:80]}")
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception as e:
                logger.error(f"Progress observer {observer!r} failed: {e}")
