import numpy as np
import pytest

from escapetime import (
    BudgetChange,
    FrameScheduler,
    InvalidSettings,
    LiveSession,
    OrbitState,
    OrbitStore,
    Pan,
    PaletteChange,
    Quit,
    RefineState,
    RenderSettings,
    Reset,
    Resize,
    Step,
    TogglePause,
    Viewport,
    Zoom,
    get_palette,
)

VIEWPORT = Viewport(24, 18, -0.75, 0.0, 3.0, 2.25)


@pytest.fixture
def session():
    settings = RenderSettings(max_iterations=40, step_iterations=10, parallel=False, band_rows=4)
    live = LiveSession(VIEWPORT, settings, get_palette("classic"))
    yield live
    live.close()


def _all_fresh(store):
    return all(
        store.get_or_create((row, col)) == OrbitState()
        for row in range(store.y_res)
        for col in range(store.x_res)
    )


def test_starts_idle_then_refines(session):
    assert session.state is RefineState.IDLE
    frame = session.tick()
    assert frame is not None
    assert session.state is RefineState.REFINING
    assert session.budget == 10


def test_converges_at_maximum_budget(session):
    frames = list(session.run_until_converged())
    assert len(frames) == 4
    assert session.state is RefineState.CONVERGED
    assert session.budget == 40
    assert session.tick() is None


def test_converged_frame_matches_still_render(session):
    for _ in session.run_until_converged():
        pass
    settings = RenderSettings(max_iterations=40, parallel=False, band_rows=4)
    with FrameScheduler(settings) as scheduler:
        still = scheduler.render(VIEWPORT, OrbitStore(24, 18), 40, get_palette("classic"))
    assert session.frame.tobytes() == still.tobytes()


def test_converges_early_when_everything_escapes():
    settings = RenderSettings(max_iterations=1000, step_iterations=10, parallel=False)
    live = LiveSession(Viewport.square(10 + 10j, 1.0, 6), settings, get_palette("classic"))
    live.tick()
    assert live.state is RefineState.CONVERGED
    assert live.budget == 10
    live.close()


@pytest.mark.parametrize("event", [Pan(3, -2), Zoom(0.5, 4, 4), Zoom(2.0), Resize(12, 9), Reset()])
def test_viewport_change_invalidates(session, event):
    session.tick()
    session.tick()
    session.handle(event)
    assert session.state is RefineState.IDLE
    assert _all_fresh(session.store)
    session.tick()
    assert session.budget == 10
    assert session.frame.shape == (session.viewport.y_res, session.viewport.x_res, 3)


def test_reset_restores_initial_viewport(session):
    session.handle(Pan(5, 5))
    assert session.viewport != VIEWPORT
    session.handle(Reset())
    assert session.viewport == VIEWPORT


def test_resize_changes_store(session):
    session.handle(Resize(10, 5))
    assert (session.store.x_res, session.store.y_res) == (10, 5)
    assert session.tick().shape == (5, 10, 3)


def test_palette_change_recolors_without_invalidation(session):
    for _ in session.run_until_converged():
        pass
    before = session.frame.copy()
    iterations = session.store.get_or_create((9, 3)).iterations
    session.handle(PaletteChange(get_palette("classic", inside=(1.0, 1.0, 1.0))))
    assert session.state is RefineState.CONVERGED
    frame = session.tick()
    assert frame is not None
    assert not np.array_equal(frame, before)
    assert session.store.get_or_create((9, 3)).iterations == iterations


def test_raising_budget_resumes(session):
    for _ in session.run_until_converged():
        pass
    session.handle(BudgetChange(60))
    assert session.state is RefineState.REFINING
    session.tick()
    assert session.budget == 50


def test_lowering_budget_restarts(session):
    session.tick()
    session.tick()
    session.handle(BudgetChange(15))
    assert session.state is RefineState.IDLE
    assert _all_fresh(session.store)
    list(session.run_until_converged())
    assert session.budget == 15


def test_invalid_budget(session):
    with pytest.raises(InvalidSettings):
        session.handle(BudgetChange(0))


def test_pause_and_step(session):
    session.handle(TogglePause())
    assert session.tick() is None
    assert session.budget == 0
    session.handle(Step())
    assert session.tick() is not None
    assert session.budget == 10
    assert session.tick() is None
    session.handle(TogglePause())
    session.tick()
    assert session.budget == 20


@pytest.mark.parametrize("event", [Pan(12, 0), Zoom(0.5, 4, 4), Resize(12, 9), Reset()])
def test_viewport_change_while_paused_clears_stale_frame(session, event):
    session.tick()
    session.tick()
    assert session.frame.any()
    session.handle(TogglePause())
    session.handle(event)
    frame = session.tick()
    assert frame is not None
    assert frame.shape == (session.viewport.y_res, session.viewport.x_res, 3)
    # nothing iterated yet, so every pixel shows the black inside color
    assert not frame.any()
    assert session.budget == 0
    assert session.state is RefineState.REFINING
    assert session.tick() is None


def test_step_ignored_while_running(session):
    session.handle(Step())
    session.tick()
    session.tick()
    assert session.budget == 20


def test_quit_closes(session):
    session.handle(Quit())
    assert session.closed
    assert session.tick() is None


def test_unknown_event(session):
    with pytest.raises(TypeError):
        session.handle("zoom")
