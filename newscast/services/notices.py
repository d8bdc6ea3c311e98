"""User-facing notices (dismissable toasts) raised by the player."""

import itertools
import logging
import time
from enum import Enum
from typing import Callable, List, Optional, Protocol

from pydantic import BaseModel

from newscast.config import settings

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class Notice(BaseModel):
    id: str
    message: str
    severity: Severity = Severity.INFO
    title: Optional[str] = None
    expires_at: Optional[float] = None


class Notifier(Protocol):
    def notify(self, message: str, severity: Severity, title: Optional[str] = None) -> None:
        ...


class NoticeBoard:
    """
    In-memory notice channel.

    Notices expire `duration` seconds after they are posted (0 keeps them
    until dismissed). Posting never raises and never blocks.
    """

    def __init__(
        self,
        duration: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.duration = settings.notice_duration_sec if duration is None else duration
        self._clock = clock
        self._notices: List[Notice] = []
        self._ids = itertools.count(1)

    def notify(self, message: str, severity: Severity = Severity.INFO, title: Optional[str] = None) -> None:
        now = self._clock()
        self._prune(now)
        expires_at = now + self.duration if self.duration > 0 else None
        notice = Notice(
            id=str(next(self._ids)),
            message=message,
            severity=severity,
            title=title,
            expires_at=expires_at,
        )
        self._notices.append(notice)
        logger.debug(f"Notice {notice.id} [{severity.value}] {title}: {message}")

    def dismiss(self, notice_id: str) -> None:
        self._notices = [n for n in self._notices if n.id != notice_id]

    def active(self) -> List[Notice]:
        """Notices still on screen, oldest first."""
        self._prune(self._clock())
        return list(self._notices)

    def _prune(self, now: float) -> None:
        self._notices = [
            n for n in self._notices
            if n.expires_at is None or n.expires_at > now
        ]
