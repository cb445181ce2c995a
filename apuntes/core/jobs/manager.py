# File: apuntes/core/jobs/manager.py

import logging
from uuid import UUID
from datetime import datetime, timezone
from typing import Optional
from apuntes.core.database.connection import SessionLocal
from .models import JobModel
from .types import JobType, JobStatus

logger = logging.getLogger(__name__)

class JobManager:
    """
    The Central Dispatcher.
    It doesn't know *how* to do the job, but it knows *who* can.
    """

    def submit_job(self, job_type: JobType, params: Optional[dict] = None) -> UUID:
        """Create a Job Record in PENDING state."""
        with SessionLocal() as db:
            job = JobModel(job_type=job_type, payload=params or {})
            db.add(job)
            db.commit()
            db.refresh(job)
            logger.info(f"Job Submitted: {job.id} [{job_type}]")
            return job.id

    def get_job(self, job_id: UUID) -> Optional[JobModel]:
        with SessionLocal() as db:
            job = db.get(JobModel, job_id)
            if job:
                db.expunge(job)
            return job

    def cancel_job(self, job_id: UUID) -> bool:
        """
        Flags a job as CANCELLED. A running handler notices the flag at its
        next progress update and stops after the current chunk.
        """
        with SessionLocal() as db:
            job = db.get(JobModel, job_id)
            if not job:
                logger.error(f"Job {job_id} not found.")
                return False
            if job.status not in (JobStatus.PENDING, JobStatus.PROCESSING):
                logger.warning(f"Job {job_id} is already {job.status.value}; nothing to cancel.")
                return False

            was_pending = job.status == JobStatus.PENDING
            job.status = JobStatus.CANCELLED
            if was_pending:
                job.finished_at = datetime.now(timezone.utc)
            db.commit()
            logger.info(f"Job {job_id} cancelled.")
            return True

    def run_job(self, job_id: UUID):
        """
        Executes a specific job by routing it to the appropriate feature handler.
        """
        with SessionLocal() as db:
            job = db.get(JobModel, job_id)
            if not job:
                logger.error(f"Job {job_id} not found.")
                return
            if job.status != JobStatus.PENDING:
                logger.warning(f"Job {job_id} is {job.status.value}; skipping.")
                return

            # Update Status -> PROCESSING
            job.status = JobStatus.PROCESSING
            job.started_at = datetime.now(timezone.utc)
            db.commit()

            try:
                logger.info(f"Starting Job {job_id} ({job.job_type})...")

                # Dynamic Routing to Feature Handlers
                result = self._route_to_feature(job)

                job.result_meta = result
                if result.get("cancelled"):
                    job.status = JobStatus.CANCELLED
                    logger.info(f"Job {job_id} stopped on cancellation.")
                else:
                    job.status = JobStatus.COMPLETED
                    logger.info(f"Job {job_id} Completed successfully.")

            except NotImplementedError as e:
                # Configuration error
                job.status = JobStatus.FAILED
                job.error_message = f"Configuration Error: {str(e)}"
                logger.error(f"Job {job_id} Failed: {e}")

            except Exception as e:
                # Execution error
                job.status = JobStatus.FAILED
                job.error_message = str(e)
                logger.exception(f"Job {job_id} Failed: {e}")

            finally:
                job.finished_at = datetime.now(timezone.utc)
                db.commit()

    def _route_to_feature(self, job: JobModel) -> dict:
        """
        Routes the job to the correct Feature Handler.
        Uses lazy imports to prevent circular dependencies.
        """
        if job.job_type == JobType.TRANSCRIPTION:
            from apuntes.features.transcription.service.job_handler import TranscriptionHandler
            return TranscriptionHandler().handle(job.id, job.payload)

        raise NotImplementedError(f"No handler registered for JobType: {job.job_type}")
