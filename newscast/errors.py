"""Error taxonomy shared by the player and the audio API."""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    ENTITLEMENT_DENIED = "entitlement_denied"
    NETWORK_FAILURE = "network_failure"
    DECODE_FAILURE = "decode_failure"
    PLAYBACK_REJECTED = "playback_rejected"
    METADATA_UNAVAILABLE = "metadata_unavailable"


class AudioLoadError(Exception):
    """A load or play attempt failed with a classified cause."""

    def __init__(self, kind: ErrorKind, detail: Optional[str] = None):
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)


class LoadCancelled(Exception):
    """The load was superseded. Not a failure; callers stay silent."""


class StorageError(Exception):
    """Upstream object storage answered with an error or was unreachable."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
