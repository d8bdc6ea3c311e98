"""Entitlement rules: who may play which item."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from newscast.models import Plan, PlayableItem


@dataclass(frozen=True)
class EntitlementContext:
    """Read-only snapshot of the session used for one gating decision."""
    authenticated: bool = False
    plan: Plan = Plan.FREE
    playlist_head_id: Optional[str] = None


class DenialReason(str, Enum):
    COMPANION_REQUIRES_UPGRADE = "companion_requires_upgrade"
    GUEST_REQUIRES_LOGIN = "guest_requires_login"
    # Not produced by denial_reason yet; reserved for plan-gated primaries.
    PLAN_REQUIRES_UPGRADE = "plan_requires_upgrade"


_UPGRADED_PLANS = (Plan.TRIAL, Plan.PAID)

_NOTICES = {
    DenialReason.COMPANION_REQUIRES_UPGRADE: (
        "Premium content",
        "Explainer audio is available on the premium plan.",
    ),
    DenialReason.GUEST_REQUIRES_LOGIN: (
        "Login required",
        "Please log in to listen to this episode.",
    ),
    DenialReason.PLAN_REQUIRES_UPGRADE: (
        "Premium content",
        "This content is available on the premium plan.",
    ),
}


def _plan_of(ctx: EntitlementContext) -> Plan:
    # Anything that is not a known plan counts as free.
    try:
        return Plan(ctx.plan)
    except ValueError:
        return Plan.FREE


def can_play(item: PlayableItem, ctx: EntitlementContext) -> bool:
    """
    Decide whether `item` may be played under `ctx`.

    Companions need a trial or paid plan. Primary items are open to any
    logged-in user; guests only get the head of the playlist.
    """
    return denial_reason(item, ctx) is None


def denial_reason(item: PlayableItem, ctx: EntitlementContext) -> Optional[DenialReason]:
    """Why `item` is not playable, or None when it is."""
    if item.is_companion:
        if _plan_of(ctx) in _UPGRADED_PLANS:
            return None
        return DenialReason.COMPANION_REQUIRES_UPGRADE

    if not ctx.authenticated:
        if ctx.playlist_head_id is not None and item.id == ctx.playlist_head_id:
            return None
        return DenialReason.GUEST_REQUIRES_LOGIN

    return None


def denial_notice(reason: DenialReason) -> Tuple[str, str]:
    """(title, message) of the warning shown for a denial."""
    return _NOTICES.get(reason, _NOTICES[DenialReason.PLAN_REQUIRES_UPGRADE])
