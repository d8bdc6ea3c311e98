"""Client-side player assembly: catalog + engine + seek bar + notices."""

import logging
from typing import Callable, List, Optional

import httpx

from newscast.config import settings
from newscast.models import PlayableItem
from newscast.services.catalog import daily_items, discover_companions, resolve_items
from newscast.services.device import PlaybackDevice
from newscast.services.engine import PlaybackEngine
from newscast.services.identity import SessionStore
from newscast.services.lead_in import DeviceLeadInCue
from newscast.services.loader import AudioLoader, HandleCache, PlatformProbe
from newscast.services.metadata import MetadataClient, MetadataResolver
from newscast.services.notices import NoticeBoard
from newscast.services.seek_bar import SeekBar

logger = logging.getLogger(__name__)


class NewsPlayer:
    """
    One listening session.

    The device and the lead-in device factory come from the host platform;
    everything else is built here and shares one HTTP client.
    """

    def __init__(
        self,
        device: PlaybackDevice,
        lead_in_device_factory: Optional[Callable[[], PlaybackDevice]] = None,
        probe: Optional[PlatformProbe] = None,
        session: Optional[SessionStore] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.client = client or httpx.AsyncClient(base_url=settings.api_base_url, timeout=60.0)
        self._owns_client = client is None
        self.session = session or SessionStore()
        self.notices = NoticeBoard()
        self.resolver = MetadataResolver(MetadataClient(self.client))
        self.loader = AudioLoader(self.client, probe=probe, cache=HandleCache())
        lead_in = DeviceLeadInCue(lead_in_device_factory) if lead_in_device_factory else None
        self.engine = PlaybackEngine(
            device,
            self.loader,
            self.notices,
            context_provider=self.session.entitlement,
            lead_in=lead_in,
        )
        self.seek_bar = SeekBar(self.engine)

    async def refresh(self) -> List[PlayableItem]:
        """
        Load the week's news. Placeholders are listed first so the head item
        is selectable right away; explainers are attached once found.
        """
        placeholders = daily_items()
        self.engine.set_primaries(placeholders)

        items = await resolve_items(placeholders, self.resolver)
        self.engine.set_primaries(items)
        current = self.engine.state.current_item
        if current is None and items:
            await self.engine.select_item(items[0], auto_start=False)
        elif current is not None:
            for item in items:
                if item.id == current.id:
                    self.engine.update_primary(item)

        # Ids are positional, so a previous day's explainers must not carry over.
        companions = await discover_companions(items, self.resolver)
        self.engine.set_companions(companions)
        logger.info(f"Catalog loaded: {len(items)} items, {len(companions)} explainers")
        return self.engine.playlist()

    async def aclose(self) -> None:
        await self.engine.aclose()
        if self._owns_client:
            await self.client.aclose()
