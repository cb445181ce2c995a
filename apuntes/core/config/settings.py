# File: apuntes/core/config/settings.py

import os
import shutil


class Settings:
    # --- Database (job tracking) ---
    POSTGRES_USER: str = os.getenv("POSTGRES_USER", "postgres")
    POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "password")
    POSTGRES_SERVER: str = os.getenv("POSTGRES_SERVER", "localhost")
    POSTGRES_PORT: str = os.getenv("POSTGRES_PORT", "5432")
    POSTGRES_DB: str = os.getenv("POSTGRES_DB", "apuntes_db")

    @property
    def DATABASE_URL(self) -> str:
        # Only fallback to SQLite if explicitly requested.
        if os.getenv("USE_SQLITE", "false").lower() == "true":
            return os.getenv("SQLITE_URL", "sqlite:///./test_apuntes.db")

        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # --- External Tools ---
    FFMPEG_BINARY: str = os.getenv("FFMPEG_BINARY_PATH", shutil.which("ffmpeg") or "ffmpeg")
    FFPROBE_BINARY: str = os.getenv("FFPROBE_BINARY_PATH", shutil.which("ffprobe") or "ffprobe")

    # "ffmpeg" handles any container (webm, ogg/opus, mp3, m4a).
    # "soundfile" only reads what libsndfile reads (wav, flac, ogg/vorbis).
    AUDIO_BACKEND: str = os.getenv("AUDIO_BACKEND", "ffmpeg")
    # "pcm_slice" decodes and re-encodes each window as WAV.
    # "external_tool" asks ffmpeg to stream-copy each window in the source format.
    SEGMENTATION_STRATEGY: str = os.getenv("SEGMENTATION_STRATEGY", "pcm_slice")
    VOICE_SAMPLE_RATE: int = int(os.getenv("VOICE_SAMPLE_RATE", "16000"))

    # --- Speech-to-text service ---
    GROQ_API_KEY: str = os.getenv("GROQ_API_KEY", "")
    TRANSCRIPTION_API_URL: str = os.getenv(
        "TRANSCRIPTION_API_URL", "https://api.groq.com/openai/v1/audio/transcriptions"
    )
    TRANSCRIPTION_MODEL: str = os.getenv("TRANSCRIPTION_MODEL", "whisper-large-v3-turbo")
    TRANSCRIPTION_LANGUAGE: str = os.getenv("TRANSCRIPTION_LANGUAGE", "es")
    TRANSCRIPTION_TIMEOUT_SECONDS: float = float(os.getenv("TRANSCRIPTION_TIMEOUT_SECONDS", "75"))

    # --- Chunking & retries ---
    # 7 minutes of mono 16 kHz PCM stays well under the 25 MB upload limit.
    MAX_CHUNK_DURATION_CEILING: float = 420.0
    DEFAULT_MAX_CHUNK_DURATION: float = float(os.getenv("MAX_CHUNK_DURATION", "420"))
    DEFAULT_RETRY_ATTEMPTS: int = int(os.getenv("RETRY_ATTEMPTS", "2"))
    RETRY_BASE_DELAY: float = float(os.getenv("RETRY_BASE_DELAY", "2.0"))
    RETRY_MAX_DELAY: float = float(os.getenv("RETRY_MAX_DELAY", "60.0"))
    INTER_CHUNK_DELAY_SECONDS: float = float(os.getenv("INTER_CHUNK_DELAY_SECONDS", "0.5"))

    # --- Webhook (downstream summarization) ---
    WEBHOOK_URL: str = os.getenv("WEBHOOK_URL", "")
    WEBHOOK_TIMEOUT_SECONDS: float = float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "30"))


settings = Settings()
