"""
Shared fixtures: a throwaway SQLite database per test and in-memory fakes
for the Gemini, Groq, ElevenLabs and storage collaborators.
"""

from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import fabricshoot.models  # noqa: F401  (registers tables on Base.metadata)
from fabricshoot.core.database import Base, enable_sqlite_foreign_keys
from fabricshoot.models import BackgroundImage, FabricImage
from fabricshoot.services.gemini_image import ImageSuccess, ReferenceImage
from fabricshoot.services.groq_llm import Captions

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 24
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 24

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


class FakeGemini:
    """Stands in for GeminiImageService."""

    def __init__(self):
        self.has_model = False
        self.labels = None
        self.on_generate = None  # callable(prompt) -> ImageSuccess | None, may raise
        self.prompts = []
        self.loaded = []
        self.human_checks = 0

    async def load_reference_images(self, urls):
        self.loaded.append(list(urls))
        return [ReferenceImage(url=url, data=PNG_BYTES, mime_type="image/png") for url in urls]

    async def detect_human_presence(self, image):
        self.human_checks += 1
        return self.has_model

    async def detect_labels(self, image):
        if isinstance(self.labels, Exception):
            raise self.labels
        return self.labels

    async def generate_image(self, prompt, references):
        self.prompts.append(prompt)
        if self.on_generate is not None:
            return self.on_generate(prompt)
        return ImageSuccess(data=PNG_BYTES, mime_type="image/png")


class FakeCaptioner:
    def __init__(self):
        self.captions = Captions(primary="A graceful floral kurti.", secondary="एक सुंदर फूलों वाली कुर्ती।")
        self.calls = []

    async def generate_captions(self, source_image_url, context_pieces=None, custom_prompt=None):
        self.calls.append({"url": source_image_url, "context": context_pieces, "custom": custom_prompt})
        return self.captions


class FakeStorage:
    def __init__(self):
        self.uploads = []
        self.deleted = []
        self.fail_uploads = False

    async def upload_generated_image(self, user_id, data, suffix="model", content_type="image/png"):
        if self.fail_uploads:
            raise RuntimeError("bucket unavailable")
        url = f"http://localhost:8000/files/generated-images/{user_id}/{len(self.uploads)}-{suffix}.png"
        self.uploads.append(url)
        return url

    async def upload_reel_asset(self, user_id, reel_id, kind, data):
        url = f"http://localhost:8000/files/reel-assets/{user_id}/{reel_id}-{kind}.mp3"
        self.uploads.append(url)
        return url

    async def delete_url(self, url):
        self.deleted.append(url)


class FakeAudio:
    def __init__(self):
        self.spoken = []
        self.music_prompts = []
        self.music_error = None

    async def text_to_speech(self, text):
        self.spoken.append(text)
        return b"ID3-voice"

    async def compose_music(self, prompt, duration_seconds):
        self.music_prompts.append((prompt, duration_seconds))
        if self.music_error is not None:
            raise self.music_error
        return b"ID3-music"


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'fabricshoot-test.db'}",
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def fakes():
    return SimpleNamespace(
        gemini=FakeGemini(),
        captioner=FakeCaptioner(),
        storage=FakeStorage(),
        audio=FakeAudio(),
    )


@pytest.fixture
def fabric(db):
    row = FabricImage(user_id=USER_ID, image_url="https://cdn.example.com/fabric.png", file_name="fabric.png")
    db.add(row)
    db.commit()
    return row


def add_background(db, user_id=USER_ID, url="https://cdn.example.com/bg.png"):
    row = BackgroundImage(user_id=user_id, image_url=url, file_name=url.rsplit("/", 1)[-1])
    db.add(row)
    db.commit()
    return row
