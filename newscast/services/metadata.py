"""
Per-item metadata lookup (title + duration) through the audio API.

Titles are stored as object metadata and are usually Base64-encoded UTF-8
because object stores only accept ASCII header values. Any failure here
degrades to placeholder values; nothing is surfaced to the listener.
"""

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from typing import Optional

import httpx

from newscast.models import AudioMetadata, PlayableItem
from newscast.services.media_urls import format_clock

logger = logging.getLogger(__name__)

BASE64_PATTERN = re.compile(r"^[A-Za-z0-9+/]+=*$")
FILENAME_DATE_PATTERN = re.compile(r"audio_(\d{4}_\d{2}_\d{2})")

UNKNOWN_DURATION = "Unknown"
DEFAULT_TITLE = "Audio News"


@dataclass
class ResolvedMetadata:
    title: str
    display_duration: str
    exact_duration_seconds: Optional[float] = None
    found: bool = False


class MetadataClient:
    """Thin client for GET /api/audio/metadata."""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def fetch_metadata(self, filename: str, bucket: Optional[str] = None) -> Optional[AudioMetadata]:
        """Metadata for `filename`, or None when the API answers with an error status."""
        params = {"filename": filename}
        if bucket:
            params["bucket"] = bucket
        response = await self.client.get("/api/audio/metadata", params=params)
        if response.is_error:
            logger.debug(f"Metadata for {filename} unavailable: HTTP {response.status_code}")
            return None
        return AudioMetadata.model_validate(response.json())


def decode_title(value: str) -> Optional[str]:
    """
    Decode a stored title.

    Values that look like Base64 are decoded as UTF-8; anything else is
    returned as-is. Returns None when a Base64-looking value does not decode.
    """
    if not BASE64_PATTERN.match(value):
        return value
    try:
        return base64.b64decode(value, validate=True).decode("utf-8") or None
    except (binascii.Error, UnicodeDecodeError):
        return None


def fallback_title(filename: str, group_date: str = "") -> str:
    match = FILENAME_DATE_PATTERN.search(filename or "")
    if match:
        return f"{match.group(1).replace('_', '/')} News"
    if group_date:
        return f"{group_date} News"
    return DEFAULT_TITLE


def display_duration(meta: AudioMetadata) -> Optional[str]:
    exact = meta.exact_duration_seconds
    if exact is not None and exact > 0:
        return format_clock(exact)
    return meta.duration


class MetadataResolver:
    """Resolves titles and durations, never raising."""

    def __init__(self, client: MetadataClient):
        self.client = client

    async def resolve(
        self,
        filename: str,
        group_date: str = "",
        bucket: Optional[str] = None,
        keep_undecodable_title: bool = False,
    ) -> ResolvedMetadata:
        fallback = ResolvedMetadata(
            title=fallback_title(filename, group_date),
            display_duration=UNKNOWN_DURATION,
        )
        if not filename:
            return fallback

        try:
            meta = await self.client.fetch_metadata(filename, bucket)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Metadata lookup failed for {filename}: {type(e).__name__}: {e}")
            return fallback
        if meta is None:
            return fallback

        title = None
        raw_title = meta.custom_metadata.get("title")
        if raw_title:
            title = decode_title(raw_title)
            if title is None:
                logger.warning(f"Could not decode title for {filename}")
                if keep_undecodable_title:
                    title = raw_title

        exact = meta.exact_duration_seconds
        return ResolvedMetadata(
            title=title or fallback.title,
            display_duration=display_duration(meta) or UNKNOWN_DURATION,
            exact_duration_seconds=exact if exact is not None and exact > 0 else None,
            found=True,
        )


def apply_metadata(item: PlayableItem, resolved: ResolvedMetadata) -> PlayableItem:
    return item.model_copy(update={
        "title": resolved.title,
        "display_duration": resolved.display_duration,
        "exact_duration_seconds": resolved.exact_duration_seconds,
    })
