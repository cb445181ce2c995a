# File: apuntes/features/transcription/service/job_handler.py
import logging
from pathlib import Path
from typing import Optional
from uuid import UUID

from apuntes.core.database.connection import SessionLocal
from apuntes.core.jobs.models import JobModel
from apuntes.core.jobs.types import JobStatus
from apuntes.features.audio_segmentation.domain.models import AudioBlob
from ..domain.errors import TranscriptionCancelled
from ..domain.models import TranscriptionOptions, TranscriptionProgress
from .api import build_pipeline
from .pipeline import CancellationToken, TranscriptionPipeline

logger = logging.getLogger(__name__)


class TranscriptionHandler:
    """
    Worker class responsible for executing TRANSCRIPTION jobs.
    Mirrors pipeline progress into the job row and watches it for cancellation.
    """

    def __init__(self, pipeline: Optional[TranscriptionPipeline] = None):
        self.pipeline = pipeline

    def handle(self, job_id: UUID, params: dict) -> dict:
        logger.info(f"Processing Transcription for Job: {job_id}")

        # 1. Resolve Input
        audio_path = params.get("audio_path")
        if not audio_path:
            raise ValueError(f"Job {job_id} has no 'audio_path' parameter.")

        blob = AudioBlob.from_path(Path(audio_path))
        options = TranscriptionOptions.from_dict(
            {k: v for k, v in params.items() if k != "audio_path"}
        )

        # 2. Execute
        pipeline = self.pipeline or build_pipeline(options)
        token = CancellationToken()

        def on_progress(event: TranscriptionProgress):
            self._record_progress(job_id, event, token)

        try:
            result = pipeline.run(blob, options, observers=[on_progress], cancel_token=token)
        except TranscriptionCancelled:
            logger.info(f"Job {job_id} cancelled before any text was produced.")
            return {"cancelled": True, "transcript": ""}

        logger.info(
            f"Transcription finished. Job: {job_id}, Parts: {result.segment_count}, "
            f"Failed parts: {len(result.errors or [])}"
        )

        # 3. Summarize for result_meta
        return result.to_dict()

    @staticmethod
    def _record_progress(job_id: UUID, event: TranscriptionProgress, token: CancellationToken):
        with SessionLocal() as db:
            job = db.get(JobModel, job_id)
            if not job:
                return
            if job.status == JobStatus.CANCELLED:
                token.cancel()
            job.progress = event.progress
            job.progress_message = event.output[:500]
            db.commit()
