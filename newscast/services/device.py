"""
Playback device contract.

A device is the one thing that actually renders audio. The engine owns a
single device and is the only caller of its mutators; the device reports
back through listeners registered with `add_listener`.
"""

import hashlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class DeviceEvent(str, Enum):
    READY = "ready"                  # enough data buffered to start playing
    TIME_PROGRESSED = "time_progressed"
    METADATA = "metadata"            # duration is now known
    ENDED = "ended"
    ERROR = "error"


@dataclass(frozen=True)
class PlayableHandle:
    """
    What a device can consume.

    Streaming handles point at the remote URL; prefetched handles carry the
    whole file and are addressed by a digest of the media reference.
    """
    source: str
    data: Optional[bytes] = field(default=None, repr=False)
    content_type: str = "audio/mpeg"

    @property
    def is_prefetched(self) -> bool:
        return self.data is not None

    @classmethod
    def streaming(cls, media_ref: str) -> "PlayableHandle":
        return cls(source=media_ref)

    @classmethod
    def prefetched(cls, media_ref: str, data: bytes, content_type: str = "audio/mpeg") -> "PlayableHandle":
        digest = hashlib.sha256(media_ref.encode()).hexdigest()[:16]
        return cls(source=f"blob:{digest}", data=data, content_type=content_type)


Listener = Callable[[DeviceEvent], None]


class PlaybackDevice(ABC):
    """Abstract audio output. Subclasses wire a real backend (or a test double)."""

    def __init__(self) -> None:
        self.handle: Optional[PlayableHandle] = None
        self.current_time: float = 0.0
        self.duration: float = float("nan")
        self.playback_rate: float = 1.0
        self.volume: float = 1.0
        self._listeners: List[Listener] = []

    @property
    def source(self) -> Optional[str]:
        return self.handle.source if self.handle else None

    # ---------- listeners ----------

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, event: DeviceEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Device listener failed on {event.value}")

    # ---------- backend ----------

    @abstractmethod
    def set_source(self, handle: Optional[PlayableHandle]) -> None:
        """Point the device at new media (None clears it)."""

    @abstractmethod
    def load(self) -> None:
        """Start (re)loading the current source; READY or ERROR follows."""

    @abstractmethod
    async def play(self) -> None:
        """Start playback. Raises if the backend refuses to play."""

    @abstractmethod
    def pause(self) -> None:
        ...
