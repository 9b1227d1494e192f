"""Public API for escape-time fractal rendering."""

from .errors import FractalError, InvalidSettings, InvalidViewport
from .live import (
    BudgetChange,
    LiveSession,
    Pan,
    PaletteChange,
    Quit,
    RefineState,
    Reset,
    Resize,
    Step,
    TogglePause,
    Zoom,
)
from .orbit import Bounded, Escaped, EscapeResult, OrbitState, advance
from .palette import Palette, color_block, color_result, get_palette
from .scheduler import FrameScheduler, render_still
from .settings import RenderSettings
from .store import OrbitBlock, OrbitStore
from .viewport import Viewport, fit_resolution, pixel_to_complex, sample_points

__all__ = [
    "Bounded",
    "BudgetChange",
    "EscapeResult",
    "Escaped",
    "FractalError",
    "FrameScheduler",
    "InvalidSettings",
    "InvalidViewport",
    "LiveSession",
    "OrbitBlock",
    "OrbitState",
    "OrbitStore",
    "Palette",
    "PaletteChange",
    "Pan",
    "Quit",
    "RefineState",
    "RenderSettings",
    "Reset",
    "Resize",
    "Step",
    "TogglePause",
    "Viewport",
    "Zoom",
    "advance",
    "color_block",
    "color_result",
    "fit_resolution",
    "get_palette",
    "pixel_to_complex",
    "render_still",
    "sample_points",
]
