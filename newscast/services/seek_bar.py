"""Progress bar input: click, drag and keyboard seeking."""

import math
from dataclasses import dataclass
from typing import Optional

from newscast.config import settings
from newscast.services.engine import PlaybackEngine


@dataclass(frozen=True)
class TrackRect:
    """Bounding box of the progress track, in pointer coordinates."""
    left: float
    width: float


def _clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, value))


def _known(duration: float) -> bool:
    return duration is not None and math.isfinite(duration) and duration > 0


class SeekBar:
    """
    Turns pointer and key input into `seek_to` calls.

    While a drag is in progress the bar shows the drag position rather
    than the engine's time, and nothing is sent to the engine until the
    pointer is released.
    """

    def __init__(self, engine: PlaybackEngine, step: Optional[float] = None):
        self.engine = engine
        self.step = settings.seek_step_sec if step is None else step
        self.dragging = False
        self.drag_percent = 0.0
        self._track: Optional[TrackRect] = None

    @property
    def duration(self) -> float:
        return self.engine.state.duration

    @property
    def progress_percent(self) -> float:
        duration = self.duration
        current = self.engine.state.current_time
        if not _known(duration) or current is None or not math.isfinite(current):
            return 0.0
        return _clamp_percent(current / duration * 100)

    @property
    def display_percent(self) -> float:
        return self.drag_percent if self.dragging else self.progress_percent

    def _percent_at(self, x: float, track: TrackRect) -> float:
        if track.width <= 0:
            return 0.0
        return _clamp_percent((x - track.left) / track.width * 100)

    def _seek_percent(self, percent: float) -> None:
        duration = self.duration
        if not _known(duration):
            return
        new_time = percent / 100 * duration
        if not math.isfinite(new_time) or new_time < 0:
            return
        self.engine.seek_to(new_time)

    # ---------- pointer ----------

    def click(self, x: float, track: TrackRect) -> None:
        if self.dragging:
            return
        self._seek_percent(self._percent_at(x, track))

    def begin_drag(self, track: Optional[TrackRect] = None) -> None:
        self.dragging = True
        self.drag_percent = self.progress_percent
        self._track = track

    def drag_to(self, x: float, track: Optional[TrackRect] = None) -> None:
        if not self.dragging:
            return
        track = track or self._track
        if track is None or not _known(self.duration):
            return
        self.drag_percent = self._percent_at(x, track)

    def release(self) -> None:
        if not self.dragging:
            return
        self.dragging = False
        self._track = None
        self._seek_percent(self.drag_percent)

    # ---------- keyboard ----------

    def press_key(self, key: str) -> bool:
        """Handle a key. Returns True when the key is a seek binding."""
        duration = self.duration
        current = self.engine.state.current_time
        if not _known(duration) or current is None or not math.isfinite(current):
            return False

        if key == "ArrowLeft":
            self.engine.seek_to(max(0.0, current - self.step))
        elif key == "ArrowRight":
            self.engine.seek_to(min(duration, current + self.step))
        elif key == "Home":
            self.engine.seek_to(0.0)
        elif key == "End":
            end = duration - 1
            if math.isfinite(end) and end > 0:
                self.engine.seek_to(end)
        else:
            return False
        return True
