# File: tests/conftest.py

import pytest
import io
import os
import sys
import numpy as np
import soundfile as sf
import sqlalchemy
from sqlalchemy import create_engine, text
from sqlalchemy_utils import database_exists, create_database

# 1. Add project root to path
sys.path.append(os.getcwd())

# Tests run against SQLite unless told otherwise (export USE_SQLITE=false for Postgres)
os.environ.setdefault("USE_SQLITE", "true")

# 2. Import Settings
from apuntes.core.config.settings import settings

# 3. Create Test Engine
TEST_ENGINE = create_engine(settings.DATABASE_URL)


@pytest.fixture(scope="session", autouse=True)
def global_setup():
    """
    Runs once per test session.
    Ensures DB exists and tables are created.
    """
    if not database_exists(TEST_ENGINE.url):
        create_database(TEST_ENGINE.url)

    from apuntes.core.database.connection import init_db
    init_db(bind=TEST_ENGINE)

    yield


@pytest.fixture(scope="function", autouse=True)
def clean_db(global_setup):
    """
    Runs before EVERY test.
    Detects DB type and cleans tables appropriately.
    """
    from apuntes.core.database.base import Base

    Base.metadata.create_all(bind=TEST_ENGINE)

    with TEST_ENGINE.connect() as conn:
        trans = conn.begin()

        is_sqlite = "sqlite" in str(TEST_ENGINE.url)

        inspector = sqlalchemy.inspect(TEST_ENGINE)
        table_names = inspector.get_table_names()

        if table_names:
            if is_sqlite:
                conn.execute(text("PRAGMA foreign_keys = OFF;"))
                for table in table_names:
                    conn.execute(text(f'DELETE FROM "{table}";'))
                conn.execute(text("PRAGMA foreign_keys = ON;"))
            else:
                conn.execute(text("SET session_replication_role = 'replica';"))
                for table in table_names:
                    conn.execute(text(f'TRUNCATE TABLE "{table}" CASCADE;'))
                conn.execute(text("SET session_replication_role = 'origin';"))

        trans.commit()

    yield


# --- Audio Fixtures ---

def sine_wav_bytes(duration: float, sample_rate: int = 8000, channels: int = 1, frequency: float = 440.0) -> bytes:
    """Synthetic tone rendered straight to WAV bytes (no ffmpeg needed)."""
    t = np.arange(int(round(duration * sample_rate))) / float(sample_rate)
    tone = 0.3 * np.sin(2 * np.pi * frequency * t)
    data = np.tile(tone[:, None], (1, channels)).astype(np.float32)
    buf = io.BytesIO()
    sf.write(buf, data, sample_rate, format="WAV", subtype="PCM_16")
    return buf.getvalue()


@pytest.fixture
def make_wav():
    return sine_wav_bytes
