import io
import pytest
import numpy as np
import soundfile as sf
from apuntes.core.shared_types import TimeRange
from apuntes.features.audio_segmentation.data.pcm_cutter import PcmSliceCutter
from apuntes.features.audio_segmentation.data.soundfile_adapter import SoundFileAdapter, encode_wav
from apuntes.features.audio_segmentation.domain.errors import DecodeError, SegmentationError
from apuntes.features.audio_segmentation.domain.interfaces import IChunkCutter
from apuntes.features.audio_segmentation.domain.models import AudioBlob, DecodedAudio
from apuntes.features.audio_segmentation.service.api import build_segmenter, get_audio_duration, split_audio
from apuntes.features.audio_segmentation.service.segmenter import AudioSegmenter, plan_windows


class BrokenCutter(IChunkCutter):
    def cut(self, blob, windows, info):
        raise SegmentationError("decoder exploded")


class ShortCutter(IChunkCutter):
    def cut(self, blob, windows, info):
        return [blob]


def wav_info(blob: AudioBlob):
    return sf.info(io.BytesIO(blob.data))


# --- Window planning ---

def test_plan_windows_covers_recording_without_gaps():
    windows = plan_windows(1000.0, 420.0)

    assert len(windows) == 3
    assert windows[0].start_seconds == 0.0
    assert windows[-1].end_seconds == 1000.0
    for prev, nxt in zip(windows, windows[1:]):
        assert prev.end_seconds == nxt.start_seconds
    assert all(w.duration <= 420.0 + 1e-6 for w in windows)
    assert windows[-1].duration == pytest.approx(160.0)


def test_plan_windows_exact_multiple_has_no_empty_tail():
    windows = plan_windows(840.0, 420.0)
    assert [(w.start_seconds, w.end_seconds) for w in windows] == [(0.0, 420.0), (420.0, 840.0)]


def test_plan_windows_rejects_bad_input():
    assert plan_windows(0.0, 420.0) == []
    with pytest.raises(ValueError):
        plan_windows(10.0, 0)


# --- Segmenter ---

def test_short_audio_is_passed_through_untouched(make_wav):
    blob = AudioBlob(make_wav(2.0))
    result = build_segmenter(backend="soundfile").segment(blob, 420.0)

    assert len(result.chunks) == 1
    chunk = result.chunks[0]
    assert chunk.payload is blob
    assert chunk.start_time == 0.0
    assert chunk.end_time == pytest.approx(2.0)
    assert result.warnings == []
    assert not result.degraded


def test_long_audio_is_split_into_voice_optimized_wavs(make_wav):
    blob = AudioBlob(make_wav(3.5, sample_rate=8000, channels=2))
    result = build_segmenter(backend="soundfile").segment(blob, 1.0)

    assert [c.index for c in result.chunks] == [0, 1, 2, 3]
    assert [(c.start_time, c.end_time) for c in result.chunks] == [
        (0.0, 1.0), (1.0, 2.0), (2.0, 3.0), (3.0, 3.5)
    ]
    for chunk in result.chunks:
        info = wav_info(chunk.payload)
        assert info.samplerate == 16000
        assert info.channels == 1
        assert info.duration == pytest.approx(chunk.duration, abs=1e-3)
        assert chunk.payload.mime_type == "audio/wav"


def test_split_without_voice_optimization_keeps_source_layout(make_wav):
    blob = AudioBlob(make_wav(2.5, sample_rate=8000, channels=2))
    result = build_segmenter(optimize_for_voice=False, backend="soundfile").segment(blob, 1.0)

    assert len(result.chunks) == 3
    info = wav_info(result.chunks[0].payload)
    assert info.samplerate == 8000
    assert info.channels == 2


def test_unreadable_audio_degrades_to_single_chunk():
    blob = AudioBlob(b"definitely not audio", mime_type="audio/webm")
    result = build_segmenter(backend="soundfile").segment(blob, 420.0)

    assert len(result.chunks) == 1
    chunk = result.chunks[0]
    assert chunk.payload is blob
    assert chunk.start_time == chunk.end_time == 0.0
    assert chunk.degraded
    assert result.degraded
    assert len(result.warnings) == 1


def test_cutter_failure_falls_back_to_whole_recording(make_wav):
    blob = AudioBlob(make_wav(3.0))
    segmenter = AudioSegmenter(SoundFileAdapter(), BrokenCutter())

    result = segmenter.segment(blob, 1.0)

    assert len(result.chunks) == 1
    assert result.chunks[0].payload is blob
    assert result.chunks[0].end_time == pytest.approx(3.0)
    assert "decoder exploded" in result.warnings[0]
    assert not result.degraded


def test_cutter_returning_wrong_count_is_an_error(make_wav):
    segmenter = AudioSegmenter(SoundFileAdapter(), ShortCutter())
    with pytest.raises(SegmentationError):
        segmenter.segment(AudioBlob(make_wav(3.0)), 1.0)


# --- Adapters ---

def test_soundfile_adapter_probe_and_decode(make_wav):
    adapter = SoundFileAdapter()
    blob = AudioBlob(make_wav(1.5, sample_rate=8000, channels=2))

    info = adapter.probe(blob)
    assert info.duration_seconds == pytest.approx(1.5)
    assert info.sample_rate == 8000
    assert info.channels == 2

    decoded = adapter.decode(blob, sample_rate=16000, channels=1)
    assert decoded.channels == 1
    assert decoded.sample_rate == 16000
    assert decoded.frames == 24000

    with pytest.raises(DecodeError):
        adapter.probe(AudioBlob(b""))


def test_soundfile_adapter_downsampling_filters_out_of_band_tones(make_wav):
    adapter = SoundFileAdapter()

    speech_band = adapter.decode(AudioBlob(make_wav(1.0, sample_rate=44100, frequency=440.0)), sample_rate=16000)
    # Above the 8 kHz Nyquist limit of the target rate
    out_of_band = adapter.decode(AudioBlob(make_wav(1.0, sample_rate=44100, frequency=12000.0)), sample_rate=16000)

    assert speech_band.frames == 16000
    assert out_of_band.frames == 16000
    assert speech_band.samples.dtype == np.float32

    rms = lambda audio: float(np.sqrt(np.mean(audio.samples ** 2)))
    assert rms(speech_band) == pytest.approx(0.3 / np.sqrt(2), rel=0.05)
    assert rms(out_of_band) < 0.02


def test_pcm_slice_zero_pads_past_the_end():
    samples = np.ones((1, 1500), dtype=np.float32)
    decoded = DecodedAudio(samples=samples, sample_rate=1000)

    piece = PcmSliceCutter.slice(decoded, TimeRange(1.0, 2.0))

    assert piece.shape == (1, 1000)
    assert np.all(piece[:, :500] == 1.0)
    assert np.all(piece[:, 500:] == 0.0)
    # Source buffer is never aliased
    piece[:] = 5.0
    assert np.all(samples == 1.0)


def test_encode_wav_clips_and_writes_pcm16():
    blob = encode_wav(np.full((1, 800), 2.0, dtype=np.float32), 8000)
    data, rate = sf.read(io.BytesIO(blob.data), dtype="float32")

    assert rate == 8000
    assert wav_info(blob).subtype == "PCM_16"
    assert data.max() <= 1.0


def test_blob_helpers(tmp_path, make_wav):
    assert AudioBlob(b"x", "audio/webm;codecs=opus").suffix == ".webm"
    assert AudioBlob(b"x", "audio/mpeg").suffix == ".mp3"
    assert AudioBlob(b"x", "application/octet-stream").suffix == ".wav"

    path = tmp_path / "nota.wav"
    path.write_bytes(make_wav(1.0))
    blob = AudioBlob.from_path(path)
    assert blob.mime_type == "audio/wav"
    assert blob.size == path.stat().st_size

    with pytest.raises(FileNotFoundError):
        AudioBlob.from_path(tmp_path / "missing.mp3")


def test_standalone_api(tmp_path, make_wav, monkeypatch):
    from apuntes.core.config.settings import settings
    monkeypatch.setattr(settings, "AUDIO_BACKEND", "soundfile")

    path = tmp_path / "clase.wav"
    path.write_bytes(make_wav(2.0))

    assert get_audio_duration(str(path)) == pytest.approx(2.0)
    result = split_audio(str(path), max_chunk_duration=0.5)
    assert len(result.chunks) == 4
    assert result.duration_seconds == pytest.approx(2.0)
