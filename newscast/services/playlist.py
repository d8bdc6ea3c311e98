"""Playlist composition: daily news followed by their explainers."""

from typing import List, Mapping, Optional, Sequence

from newscast.models import CompanionInfo, ItemKind, PlayableItem

COMPANION_SUFFIX = "_companion"


def companion_id(parent_id: str) -> str:
    return f"{parent_id}{COMPANION_SUFFIX}"


def companion_item(primary: PlayableItem, info: CompanionInfo) -> PlayableItem:
    """Build the playable explainer item that follows `primary`."""
    return PlayableItem(
        id=companion_id(primary.id),
        group_date=primary.group_date,
        title=info.title or f"{primary.title} - Explainer",
        media_ref=info.media_ref,
        display_duration=info.display_duration or primary.display_duration,
        exact_duration_seconds=info.exact_duration_seconds,
        kind=ItemKind.COMPANION,
        parent_id=primary.id,
    )


def compose(
    primaries: Sequence[PlayableItem],
    companions: Mapping[str, CompanionInfo],
) -> List[PlayableItem]:
    """
    Interleave primaries with their companions.

    Primary order is preserved and each companion comes right after its
    primary. The result depends only on the inputs, so recomposing after a
    companion resolves leaves every earlier entry where it was.
    """
    playlist: List[PlayableItem] = []
    for primary in primaries:
        playlist.append(primary)
        info = companions.get(primary.id)
        if info is not None:
            playlist.append(companion_item(primary, info))
    return playlist


def index_of(playlist: Sequence[PlayableItem], item_id: Optional[str]) -> int:
    """Position of `item_id` in the playlist, -1 when absent."""
    if item_id is None:
        return -1
    for i, item in enumerate(playlist):
        if item.id == item_id:
            return i
    return -1


def neighbor(
    playlist: Sequence[PlayableItem],
    item_id: Optional[str],
    step: int,
) -> Optional[PlayableItem]:
    """The item `step` places away from `item_id`. No wraparound."""
    index = index_of(playlist, item_id)
    if index == -1:
        return None
    target = index + step
    if target < 0 or target >= len(playlist):
        return None
    return playlist[target]
