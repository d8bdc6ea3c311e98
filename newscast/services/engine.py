"""
Playback engine: the player state machine.

Owns the single playback device and everything that happens to it:
selecting items, loading media, lead-in cues, next/previous, auto-advance
when an item ends, seeking and rate changes.

Concurrency model: one asyncio loop, no threads. Only one load is
authoritative at a time. Every operation that starts a load first cancels
the previous one (and any pending auto-advance) and installs a new
`LoadToken` before its first await; each resumption point checks the token
and quietly gives up if it was superseded.

    IDLE -> [LEAD_IN] -> LOADING -> PLAYING <-> PAUSED -> ENDED | STOPPED
"""

import asyncio
import dataclasses
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Set

from newscast.config import settings
from newscast.errors import AudioLoadError, ErrorKind, LoadCancelled
from newscast.models import CompanionInfo, PlayableItem
from newscast.services.device import DeviceEvent, PlaybackDevice
from newscast.services.entitlement import EntitlementContext, denial_notice, denial_reason
from newscast.services.lead_in import LeadInCue
from newscast.services.loader import AudioLoader, LoadToken
from newscast.services.notices import Notifier, Severity
from newscast.services.playlist import compose, neighbor

logger = logging.getLogger(__name__)

PLAYBACK_RATES = (0.5, 0.75, 1.0, 1.25, 1.5, 2.0)

_FAILURE_NOTICES = {
    ErrorKind.NETWORK_FAILURE: (
        "Loading error",
        "Could not load the audio. Please check your network connection.",
    ),
    ErrorKind.DECODE_FAILURE: (
        "Loading error",
        "The audio file could not be loaded. Please check your network connection.",
    ),
    ErrorKind.PLAYBACK_REJECTED: (
        "Playback error",
        "Playback could not start. Please check your network connection and try again.",
    ),
}


class Phase(str, Enum):
    IDLE = "idle"
    LEAD_IN = "lead_in"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"
    STOPPED = "stopped"


@dataclass
class PlaybackState:
    current_item: Optional[PlayableItem] = None
    is_playing: bool = False
    is_loading: bool = False
    current_time: float = 0.0
    duration: float = 0.0
    playback_rate: float = 1.0
    lead_in_active: bool = False
    lead_in_item_id: Optional[str] = None
    pending_auto_advance_id: Optional[str] = None
    last_error: Optional[ErrorKind] = None


def _positive(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and value > 0


def reconcile_duration(
    external: Optional[float],
    device: Optional[float],
    tolerance: Optional[float] = None,
    default: Optional[float] = None,
) -> float:
    """
    Pick the effective duration of an item.

    The stored (external) value is sub-second precise, the device value may
    be rounded. When both are valid and within `tolerance` of each other the
    external one wins; when they disagree more than that the external value
    is treated as stale. With neither valid, `default` is returned.
    """
    tolerance = settings.duration_tolerance_sec if tolerance is None else tolerance
    default = settings.default_duration_sec if default is None else default

    external_ok = _positive(external)
    device_ok = _positive(device)
    if external_ok and device_ok:
        return external if abs(external - device) < tolerance else device
    if external_ok:
        return external
    if device_ok:
        return device
    return default


ContextProvider = Callable[[], EntitlementContext]


class PlaybackEngine:
    """Drives one `PlaybackDevice` across the composed daily playlist."""

    def __init__(
        self,
        device: PlaybackDevice,
        loader: AudioLoader,
        notifier: Notifier,
        context_provider: Optional[ContextProvider] = None,
        lead_in: Optional[LeadInCue] = None,
        auto_advance_delay: Optional[float] = None,
    ):
        self.device = device
        self.loader = loader
        self.notifier = notifier
        self.lead_in = lead_in
        self.auto_advance_delay = (
            settings.auto_advance_delay_sec if auto_advance_delay is None else auto_advance_delay
        )
        self._context_provider = context_provider or EntitlementContext

        self.state = PlaybackState()
        self.phase = Phase.IDLE

        self._primaries: List[PlayableItem] = []
        self._companions: Dict[str, CompanionInfo] = {}

        self._generation = 0
        self._load_token: Optional[LoadToken] = None
        self._ready: Optional[asyncio.Future] = None
        self._loaded_item_id: Optional[str] = None
        self._auto_advance: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()

        device.add_listener(self.handle_device_event)

    # ---------- playlist sources ----------

    def set_primaries(self, items: Sequence[PlayableItem]) -> None:
        self._primaries = list(items)

    def set_companions(self, companions: Mapping[str, CompanionInfo]) -> None:
        self._companions = dict(companions)

    def update_companion(self, info: CompanionInfo) -> None:
        self._companions[info.parent_id] = info

    def update_primary(self, item: PlayableItem) -> None:
        """Swap in a primary whose metadata resolved after it was listed."""
        self._primaries = [item if p.id == item.id else p for p in self._primaries]
        current = self.state.current_item
        if current is not None and current.id == item.id:
            self.state.current_item = item

    def playlist(self) -> List[PlayableItem]:
        return compose(self._primaries, self._companions)

    def entitlement(self) -> EntitlementContext:
        """Latest session snapshot, with the playlist head filled in."""
        ctx = self._context_provider()
        if ctx.playlist_head_id is None and self._primaries:
            ctx = dataclasses.replace(ctx, playlist_head_id=self._primaries[0].id)
        return ctx

    # ---------- public operations ----------

    async def select_item(self, item: PlayableItem, auto_start: bool = False) -> None:
        """
        Make `item` current. Without `auto_start` no media is fetched; the
        item is only shown (its listed metadata stands in until played).
        """
        self._cancel_pending()
        token = self._new_token()
        await self._select(item, auto_start, token)

    async def transition_to(self, item: PlayableItem) -> None:
        """Switch to `item` with a lead-in cue. Used for clicks and auto-advance."""
        if not self._allowed(item):
            return

        self._cancel_pending()
        token = self._new_token()

        # Silence the current item before the cue so the two never overlap.
        self.device.pause()
        s = self.state
        s.is_playing = False
        s.is_loading = False
        s.current_time = 0.0
        s.pending_auto_advance_id = None

        await self._play_lead_in(item, token)
        if token.aborted:
            return
        await self._select(item, True, token)

    async def play(self) -> None:
        item = self.state.current_item
        if item is None:
            return
        if self.state.is_playing:
            logger.debug("Play ignored: already playing")
            return
        if not self._allowed(item):
            return

        self._cancel_pending()
        token = self._new_token()

        s = self.state
        s.is_loading = True
        s.last_error = None
        s.pending_auto_advance_id = None
        self.phase = Phase.LOADING

        if self.device.source is None or self._loaded_item_id != item.id:
            await self._load_and_play(item, token)
        else:
            await self._start_device(token)

    def pause(self) -> None:
        self._cancel_pending()
        self.device.pause()
        s = self.state
        s.is_playing = False
        s.is_loading = False
        s.pending_auto_advance_id = None
        self.phase = Phase.PAUSED if s.current_item else Phase.IDLE

    def stop(self) -> None:
        self._cancel_pending()
        self.device.pause()
        self.device.current_time = 0.0
        s = self.state
        s.is_playing = False
        s.is_loading = False
        s.current_time = 0.0
        s.pending_auto_advance_id = None
        self.phase = Phase.STOPPED if s.current_item else Phase.IDLE

    def seek_to(self, time: float) -> None:
        """Seek within the current item. Ignored until the duration is known."""
        duration = self.state.duration
        if not _positive(duration):
            return
        if time is None or not math.isfinite(time) or time < 0:
            return

        clamped = max(0.0, min(float(time), duration))
        self._cancel_auto_advance()
        try:
            self.device.current_time = clamped
        except (ValueError, RuntimeError) as e:
            logger.warning(f"Seek to {clamped:.2f}s rejected by device: {e}")
            return
        self.state.current_time = clamped
        self.state.pending_auto_advance_id = None

    def set_playback_rate(self, rate: float) -> None:
        """
        Apply `rate` to the device right away. The player offers
        PLAYBACK_RATES; anything else is left to the device to accept.
        """
        if rate not in PLAYBACK_RATES:
            logger.debug(f"Playback rate {rate} is not one of {PLAYBACK_RATES}")
        try:
            self.device.playback_rate = rate
        except (ValueError, RuntimeError) as e:
            logger.warning(f"Playback rate {rate} rejected by device: {e}")
            return
        self.state.playback_rate = rate

    async def play_next(self) -> None:
        await self._step(1)

    async def play_previous(self) -> None:
        await self._step(-1)

    async def drain(self) -> None:
        """Wait for background transitions (auto-advance) to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        self._cancel_pending()
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self.device.remove_listener(self.handle_device_event)

    def get_state(self) -> dict:
        s = self.state
        return {
            "phase": self.phase.value,
            "current_item_id": s.current_item.id if s.current_item else None,
            "is_playing": s.is_playing,
            "is_loading": s.is_loading,
            "current_time": s.current_time,
            "duration": s.duration,
            "playback_rate": s.playback_rate,
            "lead_in_item_id": s.lead_in_item_id if s.lead_in_active else None,
            "pending_auto_advance_id": s.pending_auto_advance_id,
            "last_error": s.last_error.value if s.last_error else None,
            "playlist": [item.id for item in self.playlist()],
        }

    # ---------- device events ----------

    def handle_device_event(self, event: DeviceEvent) -> None:
        if event == DeviceEvent.READY:
            if self._ready is not None and not self._ready.done():
                self._ready.set_result(None)
        elif event == DeviceEvent.TIME_PROGRESSED:
            self._on_time_progressed()
        elif event == DeviceEvent.METADATA:
            self._on_metadata()
        elif event == DeviceEvent.ENDED:
            self._on_ended()
        elif event == DeviceEvent.ERROR:
            self._on_device_error()

    def _on_time_progressed(self) -> None:
        t = self.device.current_time
        if t is None or not math.isfinite(t) or t < 0:
            return
        duration = self.state.duration
        self.state.current_time = min(t, duration) if _positive(duration) else t

    def _on_metadata(self) -> None:
        item = self.state.current_item
        external = item.exact_duration_seconds if item else None
        duration = reconcile_duration(external, self.device.duration)
        self.state.duration = duration
        self.state.current_time = min(self.state.current_time, duration)

    def _on_ended(self) -> None:
        s = self.state
        s.is_playing = False
        s.is_loading = False
        self.phase = Phase.ENDED

        nxt = neighbor(self.playlist(), s.current_item.id if s.current_item else None, 1)
        if nxt is None:
            s.pending_auto_advance_id = None
            return

        s.pending_auto_advance_id = nxt.id
        loop = asyncio.get_running_loop()
        self._cancel_auto_advance()
        self._auto_advance = loop.call_later(self.auto_advance_delay, self._fire_auto_advance, nxt)
        logger.debug(f"Auto-advance to {nxt.id} in {self.auto_advance_delay}s")

    def _fire_auto_advance(self, item: PlayableItem) -> None:
        self._auto_advance = None
        self.state.pending_auto_advance_id = None
        self._spawn(self.transition_to(item))

    def _on_device_error(self) -> None:
        if self._ready is not None and not self._ready.done():
            self._ready.set_result(ErrorKind.DECODE_FAILURE)
            return
        if self._load_token is not None or self.device.source is None:
            logger.debug("Ignoring device error from superseded media")
            return
        self.state.current_time = 0.0
        self.state.duration = 0.0
        self._fail(ErrorKind.DECODE_FAILURE, "device reported a media error")

    # ---------- internals ----------

    def _allowed(self, item: PlayableItem) -> bool:
        reason = denial_reason(item, self.entitlement())
        if reason is None:
            return True
        title, message = denial_notice(reason)
        logger.info(f"Playback of {item.id} denied: {reason.value}")
        self.notifier.notify(message, Severity.WARNING, title)
        return False

    def _new_token(self) -> LoadToken:
        self._generation += 1
        token = LoadToken(self._generation)
        self._load_token = token
        return token

    def _cancel_auto_advance(self) -> None:
        if self._auto_advance is not None:
            self._auto_advance.cancel()
            self._auto_advance = None

    def _cancel_pending(self) -> None:
        self._cancel_auto_advance()
        if self._load_token is not None:
            logger.debug(f"Cancelling load {self._load_token.generation}")
            self._load_token.abort()
            self._load_token = None
        if self._ready is not None:
            if not self._ready.done():
                self._ready.set_result(None)
            self._ready = None
        if self.state.lead_in_active:
            self.state.lead_in_active = False
            self.state.lead_in_item_id = None

    async def _select(self, item: PlayableItem, auto_start: bool, token: LoadToken) -> None:
        s = self.state
        s.current_item = item
        s.is_playing = False
        s.current_time = 0.0
        s.duration = 0.0
        s.last_error = None
        s.is_loading = auto_start
        s.pending_auto_advance_id = None

        if not auto_start:
            self.device.set_source(None)
            self.device.load()
            self._loaded_item_id = None
            if self._load_token is token:
                self._load_token = None
            self.phase = Phase.IDLE
            return

        await self._load_and_play(item, token)

    async def _play_lead_in(self, item: PlayableItem, token: LoadToken) -> None:
        if self.lead_in is None:
            return
        s = self.state
        s.lead_in_active = True
        s.lead_in_item_id = item.id
        self.phase = Phase.LEAD_IN
        try:
            await self.lead_in.play()
        except Exception as e:
            # The cue is cosmetic; a broken cue must not block the item.
            logger.debug(f"Lead-in failed: {e}")
        finally:
            if not token.aborted:
                s.lead_in_active = False
                s.lead_in_item_id = None

    async def _load_and_play(self, item: PlayableItem, token: LoadToken) -> None:
        s = self.state
        s.is_playing = False
        s.is_loading = True
        self.phase = Phase.LOADING

        try:
            handle = await self.loader.resolve(item.media_ref, token)
        except LoadCancelled:
            logger.debug(f"Load of {item.id} cancelled")
            return
        except AudioLoadError as e:
            if not token.aborted:
                self._fail(e.kind, e.detail)
            return
        except Exception as e:
            if not token.aborted:
                logger.exception(f"Unexpected loader failure for {item.id}")
                self._fail(ErrorKind.NETWORK_FAILURE, str(e))
            return
        if token.aborted:
            logger.debug(f"Discarding stale load of {item.id}")
            return

        ready = asyncio.get_running_loop().create_future()
        self._ready = ready
        self._loaded_item_id = item.id
        self.device.set_source(handle)
        self.device.load()

        outcome = await ready
        if token.aborted:
            return
        self._ready = None
        if outcome is not None:
            self._fail(outcome, f"device could not load {item.id}")
            return

        await self._start_device(token)

    async def _start_device(self, token: LoadToken) -> None:
        try:
            await self.device.play()
        except Exception as e:
            if not token.aborted:
                self._fail(ErrorKind.PLAYBACK_REJECTED, f"{type(e).__name__}: {e}")
            return
        if token.aborted:
            return

        s = self.state
        s.is_loading = False
        s.is_playing = True
        self.phase = Phase.PLAYING
        if self._load_token is token:
            self._load_token = None

    def _fail(self, kind: ErrorKind, detail: Optional[str] = None) -> None:
        s = self.state
        s.is_loading = False
        s.is_playing = False
        s.last_error = kind
        self._load_token = None
        self._ready = None
        self.phase = Phase.PAUSED if s.current_item else Phase.IDLE

        item_id = s.current_item.id if s.current_item else None
        logger.error(f"Playback of {item_id} failed ({kind.value}): {detail}")
        title, message = _FAILURE_NOTICES.get(kind, _FAILURE_NOTICES[ErrorKind.NETWORK_FAILURE])
        self.notifier.notify(message, Severity.ERROR, title)

    async def _step(self, step: int) -> None:
        current = self.state.current_item
        target = neighbor(self.playlist(), current.id if current else None, step)
        if target is None:
            return
        await self.transition_to(target)

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background transition failed: {task.exception()!r}")
