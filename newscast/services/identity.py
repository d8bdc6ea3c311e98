"""
Session snapshot ingestion.

The identity provider hands us raw user attributes (`custom:plan` etc.).
They are mapped onto closed types here so raw plan strings never reach
the player.
"""

import logging
from datetime import date
from typing import Dict, Optional

from pydantic import BaseModel

from newscast.models import Plan
from newscast.services.entitlement import EntitlementContext

logger = logging.getLogger(__name__)

PLAN_ATTRIBUTES = {
    "free": Plan.FREE,
    "vip-trial": Plan.TRIAL,
    "vip": Plan.PAID,
}


def plan_from_attribute(raw: Optional[str]) -> Plan:
    """Map the provider's plan string. Missing or unknown values are FREE."""
    if not raw:
        return Plan.FREE
    plan = PLAN_ATTRIBUTES.get(raw.strip().lower())
    if plan is None:
        logger.warning(f"Unknown plan attribute {raw!r}; treating as free")
        return Plan.FREE
    return plan


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        logger.warning(f"Unparseable date attribute {value!r}")
        return None


class UserInfo(BaseModel):
    """Subset of the signed-in user's attributes the player cares about."""
    email: Optional[str] = None
    plan: Plan = Plan.FREE
    plan_expire_date: Optional[date] = None
    vip_start_from: Optional[date] = None

    @classmethod
    def from_attributes(cls, attributes: Dict[str, str]) -> "UserInfo":
        return cls(
            email=attributes.get("email"),
            plan=plan_from_attribute(attributes.get("custom:plan")),
            plan_expire_date=_parse_date(attributes.get("custom:plan_expire_date")),
            vip_start_from=_parse_date(attributes.get("custom:vip_start_from")),
        )

    def cancellation_blocked(self, today: date) -> bool:
        """
        A trial that converts into a paid plan cannot be cancelled until the
        paid period has started. Both sides are calendar dates.
        """
        if self.vip_start_from is None:
            return False
        return today <= self.vip_start_from


class SessionSnapshot(BaseModel):
    """What the identity collaborator reports whenever the session changes."""
    authenticated: bool = False
    user: Optional[UserInfo] = None

    def entitlement(self, playlist_head_id: Optional[str] = None) -> EntitlementContext:
        plan = self.user.plan if (self.authenticated and self.user) else Plan.FREE
        return EntitlementContext(
            authenticated=self.authenticated,
            plan=plan,
            playlist_head_id=playlist_head_id,
        )


class SessionStore:
    """Holds the latest snapshot; the engine reads it on every decision."""

    def __init__(self, snapshot: Optional[SessionSnapshot] = None):
        self.snapshot = snapshot or SessionSnapshot()

    def update(self, snapshot: SessionSnapshot) -> None:
        self.snapshot = snapshot

    def sign_out(self) -> None:
        self.snapshot = SessionSnapshot()

    def entitlement(self) -> EntitlementContext:
        return self.snapshot.entitlement()
