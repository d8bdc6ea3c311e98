"""Audio API: proxies daily audio files and their metadata from object storage."""

import logging
from typing import AsyncIterator, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from newscast.errors import StorageError
from newscast.models import AudioMetadata
from newscast.services import storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/audio", tags=["audio"])

AUDIO_RESPONSE_HEADERS = {
    "Cache-Control": "public, max-age=3600",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, HEAD, OPTIONS",
    "Access-Control-Allow-Headers": "Range, Accept-Encoding",
}


async def get_storage_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(timeout=60.0) as client:
        yield client


def _require_filename(filename: Optional[str]) -> str:
    if not filename:
        raise HTTPException(status_code=400, detail="filename is required")
    return filename


@router.get("")
async def get_audio(
    filename: Optional[str] = None,
    bucket: Optional[str] = None,
    client: httpx.AsyncClient = Depends(get_storage_client),
):
    """
    Stream an audio file from storage.

    - **filename**: object name, e.g. audio_2025_08_23.mp3
    - **bucket**: `description` for explainer audio
    """
    filename = _require_filename(filename)
    try:
        audio = await storage.fetch_audio(client, filename, bucket)
    except StorageError as e:
        logger.error(f"Audio fetch failed for {filename}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch audio: {e}")

    return Response(
        content=audio.content,
        media_type=audio.content_type,
        headers=AUDIO_RESPONSE_HEADERS,
    )


@router.get("/metadata", response_model=AudioMetadata)
async def get_audio_metadata(
    filename: Optional[str] = None,
    bucket: Optional[str] = None,
    client: httpx.AsyncClient = Depends(get_storage_client),
):
    """
    Describe an audio file (duration, title) without downloading it.

    - **filename**: object name
    - **bucket**: `description` for explainer audio
    """
    filename = _require_filename(filename)
    try:
        return await storage.head_metadata(client, filename, bucket)
    except StorageError as e:
        logger.warning(f"Metadata lookup failed for {filename}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch metadata: {e}")
