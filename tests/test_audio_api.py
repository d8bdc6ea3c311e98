import base64

import httpx
import pytest
from fastapi.testclient import TestClient

from newscast.config import settings
from newscast.main import app
from newscast.routers.audio import get_storage_client

FILENAME = "audio_2025_08_23.mp3"
TITLE = base64.b64encode("国際ニュース".encode("utf-8")).decode("ascii")


@pytest.fixture
def storage(monkeypatch):
    """Fake object storage. Returns the list of requests it received."""
    monkeypatch.setattr(settings, "storage_base_url", "https://news.storage.test")
    monkeypatch.setattr(settings, "companion_storage_base_url", "https://explainers.storage.test")
    monkeypatch.setattr(settings, "storage_audio_path", "audio-files")
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if not request.url.path.endswith(FILENAME):
            return httpx.Response(404)
        if request.method == "HEAD":
            return httpx.Response(200, headers={
                "content-type": "audio/mpeg",
                "etag": '"abc"',
                "x-amz-meta-duration": "245.7",
                "x-amz-meta-title": TITLE,
                "x-request-id": "ignored",
            })
        return httpx.Response(200, content=b"ID3data", headers={"content-type": "audio/mpeg"})

    async def client_override():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            yield client

    app.dependency_overrides[get_storage_client] = client_override
    yield seen
    app.dependency_overrides.clear()


@pytest.fixture
def api():
    return TestClient(app)


def test_health(api) -> None:
    assert api.get("/health").json() == {"status": "healthy"}


def test_metadata_reads_object_headers(api, storage) -> None:
    r = api.get("/api/audio/metadata", params={"filename": FILENAME})
    assert r.status_code == 200
    body = r.json()
    assert body["filename"] == FILENAME
    assert body["url"] == f"/api/audio?filename={FILENAME}"
    assert body["duration"] == "4:05"
    assert body["exactDurationSeconds"] == 245.7
    assert body["durationSource"] == "metadata"
    assert body["customMetadata"] == {"duration": "245.7", "title": TITLE}
    assert body["metadata"]["etag"] == '"abc"'
    assert "x-request-id" not in body["metadata"]

    assert str(storage[0].url) == f"https://news.storage.test/audio-files/{FILENAME}"
    assert storage[0].method == "HEAD"


def test_metadata_from_explainer_bucket(api, storage) -> None:
    r = api.get("/api/audio/metadata", params={"filename": FILENAME, "bucket": "description"})
    assert r.status_code == 200
    assert str(storage[0].url) == f"https://explainers.storage.test/audio-files/{FILENAME}"


def test_audio_is_proxied(api, storage) -> None:
    r = api.get("/api/audio", params={"filename": FILENAME})
    assert r.status_code == 200
    assert r.content == b"ID3data"
    assert r.headers["content-type"] == "audio/mpeg"
    assert r.headers["cache-control"] == "public, max-age=3600"


def test_filename_is_required(api, storage) -> None:
    assert api.get("/api/audio").status_code == 400
    assert api.get("/api/audio/metadata").status_code == 400
    assert storage == []


def test_missing_object_is_server_error(api, storage) -> None:
    r = api.get("/api/audio/metadata", params={"filename": "audio_2000_01_01.mp3"})
    assert r.status_code == 500
    assert r.json()["detail"].startswith("Failed to fetch metadata")

    r = api.get("/api/audio", params={"filename": "audio_2000_01_01.mp3"})
    assert r.status_code == 500
    assert r.json()["detail"].startswith("Failed to fetch audio")


def test_unconfigured_storage_is_server_error(api, storage, monkeypatch) -> None:
    monkeypatch.setattr(settings, "storage_base_url", None)
    r = api.get("/api/audio/metadata", params={"filename": FILENAME})
    assert r.status_code == 500
    assert "Storage configuration missing" in r.json()["detail"]
