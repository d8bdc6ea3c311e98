import asyncio
import base64

import httpx

from fakes import FakeDevice
from newscast.models import Plan
from newscast.player import NewsPlayer
from newscast.services.catalog import base_date, file_date
from newscast.services.identity import SessionSnapshot, SessionStore, UserInfo
from newscast.services.notices import Severity


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _api(explainers):
    def handler(request: httpx.Request) -> httpx.Response:
        filename = request.url.params.get("filename")
        bucket = request.url.params.get("bucket")
        if request.url.path != "/api/audio/metadata":
            return httpx.Response(200, content=b"ID3data")
        if bucket == "description" and filename not in explainers:
            return httpx.Response(404)
        title = "解説" if bucket else f"News {filename}"
        return httpx.Response(200, json={
            "filename": filename,
            "url": f"/api/audio?filename={filename}",
            "exactDurationSeconds": 180.0,
            "customMetadata": {"title": _b64(title)},
        })

    return handler


def _player(session: SessionStore, explainers=None):
    newest = f"audio_{file_date(base_date())}.mp3"
    if explainers is None:
        explainers = {newest}
    client = httpx.AsyncClient(transport=httpx.MockTransport(_api(explainers)), base_url="http://test")
    return NewsPlayer(FakeDevice(reported_duration=179.2), session=session, client=client), client, newest


def test_refresh_builds_playlist_and_selects_head() -> None:
    async def scenario():
        player, client, newest = _player(SessionStore())
        async with client:
            playlist = await player.refresh()
            await player.aclose()
        return player, playlist, newest

    player, playlist, newest = asyncio.run(scenario())
    assert [item.id for item in playlist][:3] == ["1", "1_companion", "2"]
    assert len(playlist) == 8
    assert playlist[0].title == f"News {newest}"
    assert playlist[1].title == "解説"
    assert playlist[1].display_duration == "3:00"

    state = player.engine.state
    assert state.current_item.id == "1"
    assert state.is_playing is False
    assert state.is_loading is False


def test_guest_is_turned_away_from_older_news() -> None:
    async def scenario():
        player, client, _ = _player(SessionStore())
        async with client:
            playlist = await player.refresh()
            await player.engine.transition_to(playlist[2])
            notices = player.notices.active()
            await player.engine.transition_to(playlist[0])
            await player.aclose()
        return player, notices

    player, notices = asyncio.run(scenario())
    assert [n.severity for n in notices] == [Severity.WARNING]
    assert notices[0].title == "Login required"
    assert player.engine.state.current_item.id == "1"
    assert player.engine.state.is_playing is True


def test_paid_member_plays_explainer() -> None:
    session = SessionStore(SessionSnapshot(authenticated=True, user=UserInfo(plan=Plan.PAID)))

    async def scenario():
        player, client, _ = _player(session)
        async with client:
            playlist = await player.refresh()
            await player.engine.transition_to(playlist[1])
            await player.aclose()
        return player

    player = asyncio.run(scenario())
    state = player.engine.state
    assert state.current_item.id == "1_companion"
    assert state.is_playing is True
    assert state.duration == 180.0
    assert player.notices.active() == []


def test_refresh_drops_explainers_that_disappeared() -> None:
    explainers = set()

    async def scenario():
        player, client, newest = _player(SessionStore(), explainers)
        explainers.add(newest)
        async with client:
            first = [item.id for item in await player.refresh()]
            explainers.clear()
            second = [item.id for item in await player.refresh()]
            await player.aclose()
        return first, second

    first, second = asyncio.run(scenario())
    assert "1_companion" in first
    assert "1_companion" not in second
    assert second == ["1", "2", "3", "4", "5", "6", "7"]
