"""Progressive refinement of an explorable view.

A :class:`LiveSession` is driven by two calls: :meth:`LiveSession.handle`
applies a discrete input event, and :meth:`LiveSession.tick` spends one more
slice of iteration budget. Neither knows anything about windows, so the same
session drives an interactive viewer or a headless recording.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace
from typing import Optional, Union

import numpy as np

from .errors import InvalidSettings
from .palette import Palette
from .scheduler import FrameScheduler, new_frame
from .settings import RenderSettings
from .store import OrbitStore
from .viewport import Viewport

logger = logging.getLogger(__name__)


class RefineState(enum.Enum):
    IDLE = "idle"
    REFINING = "refining"
    CONVERGED = "converged"


@dataclass(frozen=True)
class Pan:
    d_col: float
    d_row: float


@dataclass(frozen=True)
class Zoom:
    factor: float
    row: Optional[float] = None
    col: Optional[float] = None


@dataclass(frozen=True)
class Resize:
    x_res: int
    y_res: int


@dataclass(frozen=True)
class PaletteChange:
    palette: Palette


@dataclass(frozen=True)
class BudgetChange:
    max_iterations: int


@dataclass(frozen=True)
class Reset:
    pass


@dataclass(frozen=True)
class TogglePause:
    pass


@dataclass(frozen=True)
class Step:
    pass


@dataclass(frozen=True)
class Quit:
    pass


Event = Union[Pan, Zoom, Resize, PaletteChange, BudgetChange, Reset, TogglePause, Step, Quit]


class LiveSession:
    """Owns the orbit store, the reused frame buffer and the refinement state."""

    def __init__(
        self,
        viewport: Viewport,
        settings: RenderSettings,
        palette: Palette,
        *,
        scheduler: Optional[FrameScheduler] = None,
        device: Optional[str] = None,
    ) -> None:
        self.initial_viewport = viewport
        self.viewport = viewport
        self.settings = settings
        self.palette = palette
        self.scheduler = scheduler if scheduler is not None else FrameScheduler(settings, device=device)
        self._owns_scheduler = scheduler is None
        self.store = OrbitStore(viewport.x_res, viewport.y_res)
        self.frame = new_frame(viewport)
        self.state = RefineState.IDLE
        self.budget = 0
        self.paused = False
        self.closed = False
        self._step_pending = False
        self._recolor = False

    def close(self) -> None:
        self.closed = True
        if self._owns_scheduler:
            self.scheduler.close()

    def _set_state(self, state: RefineState) -> None:
        if state is not self.state:
            logger.debug("refinement %s -> %s at budget %d", self.state.value, state.value, self.budget)
            self.state = state

    def _set_viewport(self, viewport: Viewport) -> None:
        if (viewport.x_res, viewport.y_res) != (self.viewport.x_res, self.viewport.y_res):
            self.store.resize(viewport.x_res, viewport.y_res)
        else:
            self.store.invalidate_all()
        self.viewport = viewport
        # the old picture no longer matches the viewport, even while paused
        self._recolor = True
        self._set_state(RefineState.IDLE)

    def handle(self, event: Event) -> None:
        """Apply one input event. Viewport changes discard all refinement progress."""

        if isinstance(event, Pan):
            self._set_viewport(self.viewport.pan(event.d_col, event.d_row))
        elif isinstance(event, Zoom):
            self._set_viewport(self.viewport.zoom(event.factor, event.row, event.col))
        elif isinstance(event, Resize):
            self._set_viewport(self.viewport.resize(event.x_res, event.y_res))
        elif isinstance(event, Reset):
            self._set_viewport(self.initial_viewport)
        elif isinstance(event, PaletteChange):
            self.palette = event.palette
            self._recolor = True
        elif isinstance(event, BudgetChange):
            self._change_budget(event.max_iterations)
        elif isinstance(event, TogglePause):
            self.paused = not self.paused
        elif isinstance(event, Step):
            if self.paused:
                self._step_pending = True
        elif isinstance(event, Quit):
            self.close()
        else:
            raise TypeError(f"unknown event {event!r}")

    def _change_budget(self, max_iterations: int) -> None:
        if max_iterations <= 0:
            raise InvalidSettings("max_iterations must be positive")
        self.settings = replace(self.settings, max_iterations=max_iterations)
        self.scheduler.settings = self.settings
        if max_iterations < self.budget:
            self.store.invalidate_all()
            self._set_state(RefineState.IDLE)
        elif self.state is RefineState.CONVERGED and not self.store.all_terminal():
            self._set_state(RefineState.REFINING)
        # normalized palettes depend on the maximum budget
        self._recolor = True

    def tick(self) -> Optional[np.ndarray]:
        """Run at most one refinement pass; return the frame if it changed."""

        if self.closed:
            return None
        if self.paused and not self._step_pending and not self._recolor:
            return None
        run_refinement = not self.paused or self._step_pending
        self._step_pending = False

        if self.state is RefineState.IDLE:
            if self.frame.shape != (self.viewport.y_res, self.viewport.x_res, 3):
                self.frame = new_frame(self.viewport)
            self.budget = 0
            self._recolor = True
            self._set_state(RefineState.REFINING)

        if self.state is RefineState.REFINING and run_refinement:
            increment = min(self.settings.step_iterations, self.settings.max_iterations - self.budget)
            self.scheduler.render(
                self.viewport,
                self.store,
                increment,
                self.palette,
                frame=self.frame,
                only_active=not self._recolor,
            )
            self.budget += increment
            self._recolor = False
            if self.budget >= self.settings.max_iterations or self.store.all_terminal():
                self._set_state(RefineState.CONVERGED)
            return self.frame

        if self._recolor:
            self.scheduler.render(self.viewport, self.store, 0, self.palette, frame=self.frame)
            self._recolor = False
            return self.frame
        return None

    def run_until_converged(self, max_ticks: Optional[int] = None):
        """Yield each refined frame until the session converges."""

        ticks = 0
        while not self.closed and (max_ticks is None or ticks < max_ticks):
            frame = self.tick()
            ticks += 1
            if frame is not None:
                yield frame
            elif self.paused:
                break
            if self.state is RefineState.CONVERGED:
                break
