"""URL and time-format helpers for audio files served through the audio API."""

import math
from typing import Optional
from urllib.parse import parse_qs, quote, urlparse

COMPANION_BUCKET = "description"


def audio_url(filename: str) -> str:
    """API URL for a daily news file, e.g. /api/audio?filename=audio_2025_08_23.mp3"""
    return f"/api/audio?filename={quote(filename, safe='')}"


def companion_audio_url(filename: str) -> str:
    """API URL for an explainer file (served from the companion bucket)."""
    return f"/api/audio?filename={quote(filename, safe='')}&bucket={COMPANION_BUCKET}"


def filename_from_url(url: str) -> str:
    """Extract the `filename` query parameter from an audio API URL ('' if absent)."""
    try:
        values = parse_qs(urlparse(url).query).get("filename")
    except ValueError:
        return ""
    return values[0] if values else ""


def format_clock(seconds: Optional[float]) -> str:
    """Format seconds as M:SS, truncating fractions. Invalid input renders 0:00."""
    if seconds is None or not math.isfinite(seconds) or seconds < 0:
        return "0:00"
    total_seconds = int(seconds)
    minutes = total_seconds // 60
    secs = total_seconds % 60
    return f"{minutes}:{secs:02d}"
