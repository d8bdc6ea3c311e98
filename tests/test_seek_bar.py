import asyncio

from fakes import make_engine, make_item
from newscast.services.seek_bar import SeekBar, TrackRect

TRACK = TrackRect(left=100.0, width=200.0)


def _playing_bar(at: float = 0.0):
    async def scenario():
        engine, device, _, _ = make_engine()
        item = make_item("1")
        engine.set_primaries([item])
        await engine.transition_to(item)
        device.progress(at)
        return engine, device

    engine, device = asyncio.run(scenario())
    return SeekBar(engine, step=10), engine, device


def test_click_seeks_to_fraction_of_duration() -> None:
    bar, engine, device = _playing_bar()
    bar.click(150.0, TRACK)
    assert engine.state.current_time == 30.0
    assert device.current_time == 30.0
    assert bar.progress_percent == 25.0


def test_click_outside_track_is_clamped() -> None:
    bar, engine, _ = _playing_bar()
    bar.click(1000.0, TRACK)
    assert engine.state.current_time == 120.0
    bar.click(0.0, TRACK)
    assert engine.state.current_time == 0.0


def test_drag_previews_and_seeks_on_release() -> None:
    bar, engine, _ = _playing_bar(at=30.0)
    bar.begin_drag(TRACK)
    assert bar.display_percent == 25.0

    bar.drag_to(200.0)
    assert bar.display_percent == 50.0
    assert engine.state.current_time == 30.0

    bar.click(300.0, TRACK)
    assert engine.state.current_time == 30.0

    bar.release()
    assert not bar.dragging
    assert engine.state.current_time == 60.0
    assert bar.display_percent == 50.0


def test_keys_step_and_jump() -> None:
    bar, engine, _ = _playing_bar(at=5.0)
    assert bar.press_key("ArrowLeft")
    assert engine.state.current_time == 0.0

    assert bar.press_key("ArrowRight")
    assert engine.state.current_time == 10.0

    assert bar.press_key("End")
    assert engine.state.current_time == 119.0

    assert bar.press_key("ArrowRight")
    assert engine.state.current_time == 120.0

    assert bar.press_key("Home")
    assert engine.state.current_time == 0.0

    assert not bar.press_key("Space")


def test_input_ignored_while_duration_unknown() -> None:
    async def scenario():
        engine, _, _, _ = make_engine()
        item = make_item("1")
        engine.set_primaries([item])
        await engine.select_item(item)
        return engine

    engine = asyncio.run(scenario())
    bar = SeekBar(engine)
    assert not bar.press_key("ArrowRight")
    bar.click(200.0, TRACK)
    assert engine.state.current_time == 0.0
    assert bar.progress_percent == 0.0


def test_zero_width_track() -> None:
    bar, engine, _ = _playing_bar(at=40.0)
    bar.click(50.0, TrackRect(left=0.0, width=0.0))
    assert engine.state.current_time == 0.0
