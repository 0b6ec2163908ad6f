import re

import pytest

from conftest import PNG_BYTES
from fabricshoot.core.config import settings
from fabricshoot.services.storage import StorageService, build_object_name


@pytest.fixture
def storage(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "USE_GCS", False)
    monkeypatch.setattr(settings, "USE_LOCAL_STORAGE", True)
    monkeypatch.setattr(settings, "LOCAL_STORAGE_PATH", str(tmp_path / "uploads"))
    monkeypatch.setattr(settings, "API_BASE_URL", "http://api.test")
    return StorageService()


def test_object_names_are_unique_per_upload():
    names = {build_object_name("user-1", "mannequin") for _ in range(50)}
    assert len(names) == 50
    assert all(re.fullmatch(r"user-1/\d+-[0-9a-f]{10}-mannequin\.png", n) for n in names)
    assert build_object_name("u", "model", "image/jpeg").endswith("-model.jpg")


async def test_generated_image_round_trip(storage):
    url = await storage.upload_generated_image("user-1", PNG_BYTES, suffix="model")

    assert url.startswith("http://api.test/files/generated-images/user-1/")
    assert await storage.download_bytes(url) == PNG_BYTES

    await storage.delete_url(url)
    with pytest.raises(FileNotFoundError):
        await storage.download_bytes(url)


async def test_reel_assets_are_keyed_by_reel(storage):
    url = await storage.upload_reel_asset("user-1", "reel-9", "music", b"ID3")
    assert url == "http://api.test/files/reel-assets/user-1/reel-9-music.mp3"


def test_split_public_url(storage):
    assert storage.split_public_url("http://api.test/files/b/a/c.png") == ("b", "a/c.png")
    assert storage.split_public_url("/files/b/c.png") == ("b", "c.png")
    assert storage.split_public_url("https://elsewhere.example.com/b/c.png") is None


async def test_unsupported_url_scheme(storage):
    with pytest.raises(ValueError):
        await storage.download_bytes("ftp://example.com/file.png")
