import pytest
from unittest.mock import patch
from apuntes.core.database.connection import SessionLocal
from apuntes.core.jobs.manager import JobManager
from apuntes.core.jobs.types import JobType, JobStatus
from apuntes.core.jobs.models import JobModel
from apuntes.features.audio_segmentation.service.api import build_segmenter
from apuntes.features.transcription.domain.errors import ApiError
from apuntes.features.transcription.domain.interfaces import ITranscriber, IWebhookSender
from apuntes.features.transcription.domain.models import ChunkTranscript
from apuntes.features.transcription.service.forwarder import WebhookForwarder
from apuntes.features.transcription.service.pipeline import TranscriptionPipeline


class ScriptedTranscriber(ITranscriber):
    """Returns canned text per call; an Exception entry is raised instead."""

    def __init__(self, script, on_call=None):
        self.script = list(script)
        self.on_call = on_call
        self.calls = 0

    def transcribe(self, payload, subject, speaker_mode, language=None):
        self.calls += 1
        if self.on_call:
            self.on_call(self.calls)
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return ChunkTranscript(text=item, language="es")


class NullSender(IWebhookSender):
    def send(self, url, data):
        return {"ok": True}


def fake_pipeline(transcriber):
    return TranscriptionPipeline(
        segmenter=build_segmenter(backend="soundfile"),
        transcriber=transcriber,
        forwarder=WebhookForwarder(NullSender()),
        sleep=lambda seconds: None,
    )


@pytest.fixture
def audio_file(tmp_path, make_wav):
    path = tmp_path / "clase.wav"
    path.write_bytes(make_wav(3.0))
    return path


def test_job_submission_flow():
    """
    Verifies that a job can be created and stored in the database.
    """
    manager = JobManager()
    job_id = manager.submit_job(
        job_type=JobType.TRANSCRIPTION,
        params={"audio_path": "/tmp/clase.wav", "speaker_mode": "multiple"}
    )

    assert job_id is not None

    with SessionLocal() as db:
        job = db.get(JobModel, job_id)
        assert job is not None
        assert job.job_type == JobType.TRANSCRIPTION
        assert job.status == JobStatus.PENDING
        assert job.progress == 0
        assert job.payload == {"audio_path": "/tmp/clase.wav", "speaker_mode": "multiple"}


def test_run_job_completes_transcription(audio_file):
    manager = JobManager()
    job_id = manager.submit_job(
        JobType.TRANSCRIPTION,
        {"audio_path": str(audio_file), "max_chunk_duration": 2.0, "inter_chunk_delay": 0}
    )

    transcriber = ScriptedTranscriber(["Primera parte.", "Segunda parte."])
    with patch("apuntes.features.transcription.service.job_handler.build_pipeline",
               return_value=fake_pipeline(transcriber)):
        manager.run_job(job_id)

    job = manager.get_job(job_id)
    assert job.status == JobStatus.COMPLETED
    assert job.progress == 100
    assert job.finished_at is not None
    assert job.result_meta["segment_count"] == 2
    assert job.result_meta["transcript"] == "Primera parte.\n\n[0:02]\nSegunda parte."
    assert job.result_meta["cancelled"] is False
    assert transcriber.calls == 2


def test_run_job_records_failure_when_nothing_transcribes(audio_file):
    manager = JobManager()
    job_id = manager.submit_job(
        JobType.TRANSCRIPTION,
        {"audio_path": str(audio_file), "retry_attempts": 0}
    )

    transcriber = ScriptedTranscriber([ApiError.from_status(400, "bad request")])
    with patch("apuntes.features.transcription.service.job_handler.build_pipeline",
               return_value=fake_pipeline(transcriber)):
        manager.run_job(job_id)

    job = manager.get_job(job_id)
    assert job.status == JobStatus.FAILED
    assert "No part of the recording" in job.error_message
    assert job.progress_message.startswith("Error")


def test_run_job_without_audio_path_fails():
    manager = JobManager()
    job_id = manager.submit_job(JobType.TRANSCRIPTION, {"subject": "Historia"})

    manager.run_job(job_id)

    job = manager.get_job(job_id)
    assert job.status == JobStatus.FAILED
    assert "audio_path" in job.error_message


def test_run_job_routing_failure():
    """
    Verifies that a job type without handler is stored as a configuration error.
    """
    manager = JobManager()
    job_id = manager.submit_job(JobType.TRANSCRIPTION)

    with patch.object(JobManager, "_route_to_feature",
                      side_effect=NotImplementedError("No handler registered")):
        manager.run_job(job_id)

    job = manager.get_job(job_id)
    assert job.status == JobStatus.FAILED
    assert job.error_message.startswith("Configuration Error")


def test_cancel_pending_job_is_never_run():
    manager = JobManager()
    job_id = manager.submit_job(JobType.TRANSCRIPTION, {"audio_path": "/nowhere.wav"})

    assert manager.cancel_job(job_id) is True
    manager.run_job(job_id)

    job = manager.get_job(job_id)
    assert job.status == JobStatus.CANCELLED
    assert job.started_at is None
    # Finished jobs cannot be cancelled again
    assert manager.cancel_job(job_id) is False


def test_cancel_running_job_keeps_partial_transcript(audio_file):
    manager = JobManager()
    job_id = manager.submit_job(
        JobType.TRANSCRIPTION,
        {"audio_path": str(audio_file), "max_chunk_duration": 1.0, "inter_chunk_delay": 0}
    )

    def cancel_during_first_call(call_number):
        if call_number == 1:
            manager.cancel_job(job_id)

    transcriber = ScriptedTranscriber(["Solo la primera.", "Nunca.", "Nunca."],
                                      on_call=cancel_during_first_call)
    with patch("apuntes.features.transcription.service.job_handler.build_pipeline",
               return_value=fake_pipeline(transcriber)):
        manager.run_job(job_id)

    job = manager.get_job(job_id)
    assert job.status == JobStatus.CANCELLED
    assert job.result_meta["cancelled"] is True
    assert job.result_meta["transcript"] == "Solo la primera."
    assert transcriber.calls == 1
