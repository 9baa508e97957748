"""Shared test fixtures for the ComfyClaude OS backend tests."""

import os
import tempfile

# Settings are read on import, so the environment must be prepared first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STORAGE_PATH"] = tempfile.mkdtemp(prefix="comfyclaude-storage-")
os.environ["ELEVENLABS_API_KEY"] = ""
os.environ["LOG_LEVEL"] = "INFO"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.deps import get_speech_client
from app.core.elevenlabs import ElevenLabsClient
from app.db.session import Base, get_db
from app.services.storage_service import StorageService, get_storage_service

# A single MPEG frame header followed by silence; long enough to hold an ID3v1 tag window.
FAKE_AUDIO = b"\xff\xfb\x90\x64" + b"\x00" * 412

USER_HEADERS = {"X-User-Id": "user_1"}
OTHER_USER_HEADERS = {"X-User-Id": "user_2"}

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeSpeechClient(ElevenLabsClient):
    """ElevenLabs client whose HTTP layer is replaced by canned answers."""

    def __init__(self, **kwargs):
        kwargs.setdefault("chunk_delay_seconds", 0)
        super().__init__(api_key="test-key", **kwargs)
        self.synthesized = []
        self.error = None
        self.voices = []
        self.subscription = {
            "character_limit": 100000,
            "character_count": 25000,
            "next_character_count_reset_unix": 1767225600,
        }

    def _synthesize(self, voice_id, text, settings):
        self.synthesized.append(text)
        if self.error:
            raise self.error
        return FAKE_AUDIO

    def get_voices(self):
        return self.voices

    def get_subscription_info(self):
        if self.error:
            raise self.error
        return self.subscription


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def storage(tmp_path):
    return StorageService(base_path=str(tmp_path / "storage"))


@pytest.fixture
def speech_client():
    return FakeSpeechClient()


@pytest.fixture
def client(db_session, storage, speech_client):
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage_service] = lambda: storage
    app.dependency_overrides[get_speech_client] = lambda: speech_client
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def long_script():
    paragraph = (
        "Hoy hablamos de **Flux** y de cómo entrenar un LoRA en casa. "
        "Es más fácil de lo que parece, y te lo explico paso a paso. "
    )
    return (
        "[INTRO]\n# Bienvenidos\n" + paragraph * 3 + '\n<break time="1s"/>\n\n'
        "[CONTENIDO]\n- Primero, prepara tus imágenes.\n- Después, lanza el entrenamiento.\n" + paragraph * 10 + "\n\n"
        "[CIERRE]\n" + paragraph * 2
    )
