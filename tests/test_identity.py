from datetime import date

from newscast.models import Plan
from newscast.services.identity import (
    SessionSnapshot,
    SessionStore,
    UserInfo,
    plan_from_attribute,
)


def test_plan_attribute_mapping() -> None:
    assert plan_from_attribute("free") == Plan.FREE
    assert plan_from_attribute("vip-trial") == Plan.TRIAL
    assert plan_from_attribute("VIP") == Plan.PAID
    assert plan_from_attribute(None) == Plan.FREE
    assert plan_from_attribute("gold") == Plan.FREE


def test_user_from_attributes() -> None:
    user = UserInfo.from_attributes({
        "email": "reader@example.com",
        "custom:plan": "vip-trial",
        "custom:plan_expire_date": "2025-09-30T00:00:00Z",
        "custom:vip_start_from": "2025-09-01",
    })
    assert user.email == "reader@example.com"
    assert user.plan == Plan.TRIAL
    assert user.plan_expire_date == date(2025, 9, 30)
    assert user.vip_start_from == date(2025, 9, 1)


def test_bad_dates_are_dropped() -> None:
    user = UserInfo.from_attributes({"custom:vip_start_from": "soon"})
    assert user.vip_start_from is None
    assert user.plan == Plan.FREE


def test_cancellation_blocked_until_paid_period_starts() -> None:
    user = UserInfo(plan=Plan.TRIAL, vip_start_from=date(2025, 9, 1))
    assert user.cancellation_blocked(date(2025, 8, 31))
    assert user.cancellation_blocked(date(2025, 9, 1))
    assert not user.cancellation_blocked(date(2025, 9, 2))
    assert not UserInfo(plan=Plan.PAID).cancellation_blocked(date(2025, 9, 1))


def test_session_store_entitlement() -> None:
    store = SessionStore()
    ctx = store.entitlement()
    assert not ctx.authenticated
    assert ctx.plan == Plan.FREE

    store.update(SessionSnapshot(authenticated=True, user=UserInfo(plan=Plan.PAID)))
    assert store.entitlement().plan == Plan.PAID
    assert store.entitlement().authenticated

    store.sign_out()
    assert store.entitlement().plan == Plan.FREE


def test_guest_snapshot_ignores_stale_user_plan() -> None:
    snapshot = SessionSnapshot(authenticated=False, user=UserInfo(plan=Plan.PAID))
    ctx = snapshot.entitlement("1")
    assert ctx.plan == Plan.FREE
    assert ctx.playlist_head_id == "1"
