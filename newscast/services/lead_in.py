"""Short click played before a new item starts."""

import asyncio
import logging
from typing import Callable, Optional, Protocol

from newscast.config import settings
from newscast.services.device import DeviceEvent, PlayableHandle, PlaybackDevice

logger = logging.getLogger(__name__)


class LeadInCue(Protocol):
    async def play(self) -> None:
        """Play the cue to completion. May raise; callers carry on regardless."""


class DeviceLeadInCue:
    """
    Plays the click on a dedicated device (never the engine's own).

    Completes on `ended`, `error`, a refused play() or after `timeout`
    seconds, whichever comes first.
    """

    def __init__(
        self,
        device_factory: Callable[[], PlaybackDevice],
        source: Optional[str] = None,
        volume: Optional[float] = None,
        timeout: Optional[float] = None,
    ):
        self.device_factory = device_factory
        self.source = source or settings.lead_in_source
        self.volume = settings.lead_in_volume if volume is None else volume
        self.timeout = settings.lead_in_timeout_sec if timeout is None else timeout

    async def play(self) -> None:
        device = self.device_factory()
        device.volume = self.volume
        finished = asyncio.get_running_loop().create_future()

        def on_event(event: DeviceEvent) -> None:
            if event in (DeviceEvent.ENDED, DeviceEvent.ERROR) and not finished.done():
                finished.set_result(event)

        device.add_listener(on_event)
        try:
            device.set_source(PlayableHandle.streaming(self.source))
            try:
                await device.play()
            except Exception as e:
                # Autoplay policies may refuse the click; that is fine.
                logger.debug(f"Lead-in refused: {e}")
                return
            try:
                event = await asyncio.wait_for(finished, timeout=self.timeout)
                if event == DeviceEvent.ERROR:
                    logger.debug("Lead-in reported an error")
            except asyncio.TimeoutError:
                logger.debug("Lead-in timed out")
        finally:
            device.remove_listener(on_event)
            device.pause()
