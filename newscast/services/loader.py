"""
Network audio loader.

Resolves a media reference into a `PlayableHandle`. On constrained
(mobile) platforms the whole file is fetched up front and kept for the
session: progressive range streaming stalls too often on poor mobile
networks, so startup latency is traded for continuity. Elsewhere the
device streams the reference directly.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional

import httpx

from newscast.config import settings
from newscast.errors import AudioLoadError, ErrorKind, LoadCancelled
from newscast.services.device import PlayableHandle

logger = logging.getLogger(__name__)


class LoadToken:
    """
    Cancellation handle for one load.

    Whoever starts a load installs a fresh token before the first await;
    every resumption point checks `aborted` and bails out silently.
    """

    def __init__(self, generation: int = 0):
        self.generation = generation
        self.aborted = False

    def abort(self) -> None:
        self.aborted = True

    def __repr__(self) -> str:
        return f"LoadToken(generation={self.generation}, aborted={self.aborted})"


@dataclass(frozen=True)
class PlatformProbe:
    """Client capabilities used to pick a loading strategy."""
    user_agent: str = ""
    viewport_width: Optional[int] = None

    def is_constrained(self) -> bool:
        if re.search(settings.mobile_user_agent_pattern, self.user_agent or "", re.IGNORECASE):
            return True
        return (
            self.viewport_width is not None
            and self.viewport_width <= settings.mobile_viewport_max_px
        )


class HandleCache:
    """media_ref -> prefetched handle. Append-only for the session."""

    def __init__(self) -> None:
        self._entries: Dict[str, PlayableHandle] = {}

    def get(self, media_ref: str) -> Optional[PlayableHandle]:
        return self._entries.get(media_ref)

    def put(self, media_ref: str, handle: PlayableHandle) -> None:
        self._entries.setdefault(media_ref, handle)

    def __contains__(self, media_ref: str) -> bool:
        return media_ref in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class AudioLoader:
    """Turns media references into handles, prefetching on constrained platforms."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        probe: Optional[PlatformProbe] = None,
        cache: Optional[HandleCache] = None,
    ):
        self.client = client
        self.probe = probe or PlatformProbe()
        self.cache = cache if cache is not None else HandleCache()

    async def resolve(self, media_ref: str, token: Optional[LoadToken] = None) -> PlayableHandle:
        """
        Resolve `media_ref`.

        Raises:
            LoadCancelled: `token` was aborted while the fetch was in flight.
            AudioLoadError: NETWORK_FAILURE for transport errors and non-2xx
                answers, DECODE_FAILURE when the body cannot be materialized.
        """
        token = token or LoadToken()

        cached = self.cache.get(media_ref)
        if cached is not None:
            return cached

        if not self.probe.is_constrained():
            return PlayableHandle.streaming(media_ref)

        handle = await self._prefetch(media_ref, token)
        if token.aborted:
            raise LoadCancelled(media_ref)
        self.cache.put(media_ref, handle)
        return handle

    async def _prefetch(self, media_ref: str, token: LoadToken) -> PlayableHandle:
        logger.debug(f"Prefetching {media_ref}")
        try:
            async with self.client.stream("GET", media_ref) as response:
                if token.aborted:
                    raise LoadCancelled(media_ref)
                if response.is_error:
                    raise AudioLoadError(
                        ErrorKind.NETWORK_FAILURE,
                        f"HTTP {response.status_code} for {media_ref}",
                    )
                try:
                    data = await response.aread()
                except httpx.DecodingError as e:
                    raise AudioLoadError(ErrorKind.DECODE_FAILURE, str(e)) from e
                content_type = response.headers.get("content-type", "audio/mpeg")
        except httpx.HTTPError as e:
            raise AudioLoadError(ErrorKind.NETWORK_FAILURE, f"{type(e).__name__}: {e}") from e

        if token.aborted:
            raise LoadCancelled(media_ref)
        if not data:
            raise AudioLoadError(ErrorKind.DECODE_FAILURE, f"Empty body for {media_ref}")

        logger.info(f"Prefetched {media_ref} ({len(data)} bytes)")
        return PlayableHandle.prefetched(media_ref, data, content_type)
