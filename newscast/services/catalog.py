"""Daily news catalog: the last week of news files and their explainers."""

import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

from newscast.config import settings
from newscast.models import CompanionInfo, PlayableItem
from newscast.services.media_urls import COMPANION_BUCKET, audio_url, companion_audio_url, filename_from_url
from newscast.services.metadata import MetadataResolver, ResolvedMetadata, apply_metadata, fallback_title

logger = logging.getLogger(__name__)

WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
LOADING = "Loading..."


def base_date(now: Optional[datetime] = None) -> date:
    """
    The newest news day. Before the rollover hour (local to the newsroom)
    yesterday's edition is still the latest one.
    """
    tz = ZoneInfo(settings.catalog_timezone)
    local = now.astimezone(tz) if now else datetime.now(tz)
    if local.hour < settings.catalog_rollover_hour:
        local = local - timedelta(days=1)
    return local.date()


def file_date(day: date) -> str:
    return day.strftime("%Y_%m_%d")


def display_date(day: date) -> str:
    return f"{day.year}/{day.month}/{day.day} ({WEEKDAYS[day.weekday()]})"


def daily_items(now: Optional[datetime] = None, days: Optional[int] = None) -> List[PlayableItem]:
    """Placeholder items for the last `days` days, newest first (ids "1".."N")."""
    days = settings.catalog_days if days is None else days
    newest = base_date(now)
    items = []
    for i in range(days):
        day = newest - timedelta(days=i)
        items.append(PlayableItem(
            id=str(i + 1),
            group_date=display_date(day),
            title=LOADING,
            media_ref=audio_url(f"audio_{file_date(day)}.mp3"),
            display_duration=LOADING,
        ))
    return items


async def resolve_items(
    items: Sequence[PlayableItem],
    resolver: MetadataResolver,
) -> List[PlayableItem]:
    """Fill in titles and durations for all items concurrently."""
    results = await asyncio.gather(
        *(resolver.resolve(filename_from_url(item.media_ref), item.group_date) for item in items),
        return_exceptions=True,
    )

    resolved_items = []
    for item, result in zip(items, results):
        if isinstance(result, BaseException):
            logger.warning(f"Metadata for item {item.id} failed: {result!r}")
            result = ResolvedMetadata(
                title=fallback_title("", item.group_date),
                display_duration="Unknown",
            )
        resolved_items.append(apply_metadata(item, result))
    return resolved_items


async def load_catalog(
    resolver: MetadataResolver,
    now: Optional[datetime] = None,
    days: Optional[int] = None,
) -> List[PlayableItem]:
    return await resolve_items(daily_items(now, days), resolver)


async def discover_companion(item: PlayableItem, resolver: MetadataResolver) -> Optional[CompanionInfo]:
    """Explainer for `item`, if one exists in the companion bucket."""
    filename = filename_from_url(item.media_ref)
    if not filename:
        return None
    resolved = await resolver.resolve(
        filename,
        item.group_date,
        bucket=COMPANION_BUCKET,
        keep_undecodable_title=True,
    )
    if not resolved.found:
        return None

    has_title = resolved.title != fallback_title(filename, item.group_date)
    return CompanionInfo(
        parent_id=item.id,
        media_ref=companion_audio_url(filename),
        title=resolved.title if has_title else None,
        display_duration=resolved.display_duration if resolved.exact_duration_seconds else None,
        exact_duration_seconds=resolved.exact_duration_seconds,
    )


async def discover_companions(
    items: Sequence[PlayableItem],
    resolver: MetadataResolver,
) -> Dict[str, CompanionInfo]:
    """parent id -> explainer, for every item that has one."""
    results = await asyncio.gather(
        *(discover_companion(item, resolver) for item in items),
        return_exceptions=True,
    )
    companions = {}
    for item, result in zip(items, results):
        if isinstance(result, BaseException):
            logger.warning(f"Explainer lookup for item {item.id} failed: {result!r}")
            continue
        if result is not None:
            companions[item.id] = result
    return companions
