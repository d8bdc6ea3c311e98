"""Test doubles for the player: device, notifier, loader and lead-in cues."""

import asyncio
from typing import Dict, List, Optional, Set, Tuple

from newscast.errors import AudioLoadError, ErrorKind
from newscast.models import ItemKind, Plan, PlayableItem
from newscast.services.device import DeviceEvent, PlayableHandle, PlaybackDevice
from newscast.services.engine import PlaybackEngine
from newscast.services.entitlement import EntitlementContext


def make_item(item_id: str, exact: Optional[float] = None, kind: ItemKind = ItemKind.PRIMARY) -> PlayableItem:
    parent_id = item_id.rsplit("_companion", 1)[0] if kind == ItemKind.COMPANION else None
    return PlayableItem(
        id=item_id,
        group_date="2025/8/23 (Sat)",
        title=f"News {item_id}",
        media_ref=f"/api/audio?filename={item_id}.mp3",
        display_duration="2:00",
        exact_duration_seconds=exact,
        kind=kind,
        parent_id=parent_id,
    )


class FakeDevice(PlaybackDevice):
    """
    Device that becomes ready one loop iteration after load().

    Readiness for a source that has since been replaced is dropped, like a
    real media element aborting the previous fetch.
    """

    def __init__(self, reported_duration: Optional[float] = 120.0):
        super().__init__()
        self.reported_duration = reported_duration
        self.auto_ready = True
        self.fail_sources: Set[str] = set()
        self.reject_play = False
        self.playing = False
        self.sources: List[Optional[str]] = []
        self.load_calls = 0
        self.play_calls = 0
        self.pause_calls = 0

    def set_source(self, handle: Optional[PlayableHandle]) -> None:
        self.handle = handle
        self.playing = False
        self.current_time = 0.0
        self.duration = float("nan")
        self.sources.append(handle.source if handle else None)

    def load(self) -> None:
        self.load_calls += 1
        handle = self.handle
        if handle is None or not self.auto_ready:
            return
        asyncio.get_running_loop().call_soon(self._become_ready, handle)

    def _become_ready(self, handle: PlayableHandle) -> None:
        if self.handle is not handle:
            return
        if handle.source in self.fail_sources:
            self.emit(DeviceEvent.ERROR)
            return
        if self.reported_duration is not None:
            self.duration = self.reported_duration
        self.emit(DeviceEvent.METADATA)
        self.emit(DeviceEvent.READY)

    def ready_now(self) -> None:
        self._become_ready(self.handle)

    async def play(self) -> None:
        self.play_calls += 1
        if self.reject_play:
            raise RuntimeError("NotAllowedError: play() refused")
        self.playing = True

    def pause(self) -> None:
        self.pause_calls += 1
        self.playing = False

    def progress(self, seconds: float) -> None:
        self.current_time = seconds
        self.emit(DeviceEvent.TIME_PROGRESSED)

    def finish(self) -> None:
        self.playing = False
        self.emit(DeviceEvent.ENDED)


class RecordingNotifier:
    def __init__(self) -> None:
        self.notices: List[Tuple[str, str, Optional[str]]] = []

    def notify(self, message, severity, title=None) -> None:
        self.notices.append((message, severity.value, title))

    @property
    def severities(self) -> List[str]:
        return [severity for _, severity, _ in self.notices]


class GatedLoader:
    """
    Loader double. References listed in `gates` block until their event is
    set; references in `failures` raise the given error kind.
    """

    def __init__(self) -> None:
        self.gates: Dict[str, asyncio.Event] = {}
        self.failures: Dict[str, ErrorKind] = {}
        self.calls: List[str] = []
        self.completed_after_abort: List[str] = []

    def gate(self, media_ref: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[media_ref] = event
        return event

    async def resolve(self, media_ref, token=None) -> PlayableHandle:
        self.calls.append(media_ref)
        gate = self.gates.get(media_ref)
        if gate is not None:
            await gate.wait()
        if token is not None and token.aborted:
            self.completed_after_abort.append(media_ref)
        if media_ref in self.failures:
            raise AudioLoadError(self.failures[media_ref], f"failed {media_ref}")
        return PlayableHandle.streaming(media_ref)


class InstantCue:
    def __init__(self) -> None:
        self.plays = 0

    async def play(self) -> None:
        self.plays += 1
        await asyncio.sleep(0)


class BrokenCue:
    async def play(self) -> None:
        raise OSError("click.mp3 missing")


class GatedCue:
    def __init__(self) -> None:
        self.release = asyncio.Event()

    async def play(self) -> None:
        await self.release.wait()


def make_engine(
    device: Optional[FakeDevice] = None,
    loader: Optional[GatedLoader] = None,
    ctx: Optional[EntitlementContext] = None,
    lead_in=None,
    delay: float = 0.01,
):
    device = device or FakeDevice()
    loader = loader or GatedLoader()
    notifier = RecordingNotifier()
    ctx = ctx or EntitlementContext(authenticated=True, plan=Plan.PAID)
    engine = PlaybackEngine(
        device,
        loader,
        notifier,
        context_provider=lambda: ctx,
        lead_in=lead_in,
        auto_advance_delay=delay,
    )
    return engine, device, loader, notifier


async def settle(rounds: int = 10) -> None:
    """Let pending callbacks (ready events, tasks) run."""
    for _ in range(rounds):
        await asyncio.sleep(0)
