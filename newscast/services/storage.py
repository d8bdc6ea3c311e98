"""Object storage access for the audio API (HEAD for metadata, GET for bytes)."""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import httpx

from newscast.config import settings
from newscast.errors import StorageError
from newscast.models import AudioMetadata
from newscast.services.media_urls import COMPANION_BUCKET, audio_url, format_clock

logger = logging.getLogger(__name__)

CUSTOM_META_PREFIX = "x-amz-meta-"
PASSTHROUGH_HEADERS = ("content-length", "content-type", "last-modified", "etag")


@dataclass
class StoredAudio:
    content: bytes
    content_type: str


def object_url(filename: str, bucket: Optional[str] = None) -> str:
    """
    URL of `filename` in the news bucket (or the explainer bucket).

    Raises:
        StorageError: the bucket's base URL is not configured.
    """
    if bucket == COMPANION_BUCKET:
        base_url = settings.companion_storage_base_url
        audio_path = "audio-files"
    else:
        base_url = settings.storage_base_url
        audio_path = settings.storage_audio_path or "audio-files"

    if not base_url:
        raise StorageError("Storage configuration missing")

    segments = []
    clean_path = audio_path.strip("/")
    if clean_path:
        segments.append(clean_path)
    segments.append(filename)
    return f"{base_url.rstrip('/')}/{'/'.join(segments)}"


def split_headers(headers: httpx.Headers) -> Tuple[Dict[str, str], Dict[str, str]]:
    """(standard metadata, custom metadata) from an object's response headers."""
    metadata: Dict[str, str] = {}
    custom: Dict[str, str] = {}
    for key, value in headers.items():
        key = key.lower()
        if key.startswith(CUSTOM_META_PREFIX):
            custom[key[len(CUSTOM_META_PREFIX):]] = value
        elif key in PASSTHROUGH_HEADERS:
            metadata[key] = value
    return metadata, custom


def parse_duration(custom: Dict[str, str]) -> Tuple[Optional[str], Optional[float]]:
    """(display M:SS truncated, exact seconds) from the `duration` custom field."""
    raw = custom.get("duration")
    if not raw:
        return None, None
    try:
        exact = float(raw)
    except ValueError:
        return None, None
    if not exact > 0:
        return None, None
    return format_clock(exact), exact


async def head_metadata(client: httpx.AsyncClient, filename: str, bucket: Optional[str] = None) -> AudioMetadata:
    """
    HEAD the stored object and describe it.

    Raises:
        StorageError: missing configuration, transport failure or error status.
    """
    url = object_url(filename, bucket)
    try:
        response = await client.head(url)
    except httpx.HTTPError as e:
        raise StorageError(f"Storage HEAD request failed: {type(e).__name__}: {e}") from e
    if response.is_error:
        raise StorageError(
            f"Storage HEAD request failed: {response.status_code} - {response.reason_phrase}",
            status_code=response.status_code,
        )

    metadata, custom = split_headers(response.headers)
    duration, exact = parse_duration(custom)
    return AudioMetadata(
        filename=filename,
        url=audio_url(filename),
        duration=duration,
        exact_duration_seconds=exact,
        duration_source="metadata" if exact is not None else "not_available",
        metadata=metadata,
        custom_metadata=custom,
    )


async def fetch_audio(client: httpx.AsyncClient, filename: str, bucket: Optional[str] = None) -> StoredAudio:
    """
    Download the whole object.

    Raises:
        StorageError: missing configuration, transport failure or error status.
    """
    url = object_url(filename, bucket)
    try:
        response = await client.get(url, headers={"Cache-Control": "public, max-age=3600"})
    except httpx.HTTPError as e:
        raise StorageError(f"Storage fetch failed: {type(e).__name__}: {e}") from e
    if response.is_error:
        raise StorageError(
            f"Storage fetch failed: {response.status_code} - {response.text[:200]}",
            status_code=response.status_code,
        )
    return StoredAudio(
        content=response.content,
        content_type=response.headers.get("content-type", "audio/mpeg"),
    )
