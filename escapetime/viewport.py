"""Viewport description and the pixel to complex-plane mapping."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace

import numpy as np

from .errors import InvalidViewport

# Window size used by ``fit_resolution`` when no limit is given.
DEFAULT_WINDOW = (1344, 864)


@dataclass(frozen=True)
class Viewport:
    """A rectangular region of the complex plane sampled at a pixel resolution."""

    x_res: int
    y_res: int
    x_center: float
    y_center: float
    x_width: float
    y_width: float

    def __post_init__(self) -> None:
        for name in ("x_res", "y_res"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise InvalidViewport(f"{name} must be an integer, got {value!r}")
            if value <= 0:
                raise InvalidViewport(f"{name} must be positive, got {value}")
        for name in ("x_center", "y_center"):
            if not math.isfinite(getattr(self, name)):
                raise InvalidViewport(f"{name} must be finite")
        for name in ("x_width", "y_width"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise InvalidViewport(f"{name} must be positive and finite, got {value}")

    @classmethod
    def from_bounds(cls, x_min: float, x_max: float, y_min: float, y_max: float, x_res: int, y_res: int) -> "Viewport":
        return cls(
            x_res=x_res,
            y_res=y_res,
            x_center=(x_min + x_max) / 2.0,
            y_center=(y_min + y_max) / 2.0,
            x_width=x_max - x_min,
            y_width=y_max - y_min,
        )

    @classmethod
    def square(cls, center: complex, radius: float, res: int) -> "Viewport":
        """Square frame of half-extent ``radius`` around ``center``."""

        return cls(res, res, center.real, center.imag, 2.0 * radius, 2.0 * radius)

    @classmethod
    def default(cls, x_res: int = 1080) -> "Viewport":
        """The familiar full view of the Mandelbrot set, [-2.5, 1] x [-1.25, 1.25]."""

        y_res = max(1, int(round(x_res * 2.5 / 3.5)))
        return cls.from_bounds(-2.5, 1.0, -1.25, 1.25, x_res, y_res)

    @property
    def x_step(self) -> float:
        return self.x_width / self.x_res

    @property
    def y_step(self) -> float:
        return self.y_width / self.y_res

    @property
    def pixel_count(self) -> int:
        return self.x_res * self.y_res

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """``(x_min, x_max, y_min, y_max)`` of the sampled rectangle."""

        half_x = self.x_width / 2.0
        half_y = self.y_width / 2.0
        return (self.x_center - half_x, self.x_center + half_x, self.y_center - half_y, self.y_center + half_y)

    def pan(self, d_col: float, d_row: float) -> "Viewport":
        """Move the view by a pixel offset; positive rows move down the screen."""

        return replace(
            self,
            x_center=self.x_center + d_col * self.x_step,
            y_center=self.y_center - d_row * self.y_step,
        )

    def zoom(self, factor: float, row: float | None = None, col: float | None = None) -> "Viewport":
        """Scale the window by ``factor`` keeping the point under ``(row, col)`` fixed.

        Choose ``factor < 1`` to zoom in. Without an anchor the view zooms
        about its center.
        """

        if not math.isfinite(factor) or factor <= 0:
            raise InvalidViewport(f"zoom factor must be positive and finite, got {factor}")
        if row is None or col is None:
            return replace(self, x_width=self.x_width * factor, y_width=self.y_width * factor)
        anchor = pixel_to_complex(self, row, col)
        x_center = anchor.real + (self.x_center - anchor.real) * factor
        y_center = anchor.imag + (self.y_center - anchor.imag) * factor
        return replace(
            self,
            x_center=x_center,
            y_center=y_center,
            x_width=self.x_width * factor,
            y_width=self.y_width * factor,
        )

    def resize(self, x_res: int, y_res: int) -> "Viewport":
        """Change the resolution while keeping the per-pixel step and the center."""

        x_step, y_step = self.x_step, self.y_step
        return replace(self, x_res=x_res, y_res=y_res, x_width=x_step * x_res, y_width=y_step * y_res)

    def with_aspect(self) -> "Viewport":
        """Maintain ``y_width = x_width * (y_res / x_res)`` to avoid stretching."""

        new_y_width = np.float64(self.x_width) * np.float64(self.y_res) / np.float64(self.x_res)
        return replace(self, y_width=float(new_y_width))


def pixel_to_complex(viewport: Viewport, row: float, col: float) -> complex:
    """Map the center of pixel ``(row, col)`` onto the complex plane.

    Row 0 is the top of the image, so the imaginary axis is inverted with
    respect to the row index.
    """

    re = viewport.x_center + (col + 0.5 - viewport.x_res / 2.0) * viewport.x_step
    im = viewport.y_center - (row + 0.5 - viewport.y_res / 2.0) * viewport.y_step
    return complex(re, im)


def sample_points(viewport: Viewport, start: int, stop: int) -> tuple[np.ndarray, np.ndarray]:
    """Real and imaginary parts of the sample points for flat pixels ``[start, stop)``."""

    index = np.arange(start, stop, dtype=np.int64)
    rows, cols = np.divmod(index, viewport.x_res)
    re = np.float64(viewport.x_center) + (cols + 0.5 - viewport.x_res / 2.0) * np.float64(viewport.x_step)
    im = np.float64(viewport.y_center) - (rows + 0.5 - viewport.y_res / 2.0) * np.float64(viewport.y_step)
    return re.astype(np.float64, copy=False), im.astype(np.float64, copy=False)


def fit_resolution(x_width: float, y_width: float, window: tuple[int, int] = DEFAULT_WINDOW) -> tuple[int, int]:
    """Largest resolution that fits ``window`` and keeps the frame's aspect ratio."""

    max_x, max_y = window
    frame_ratio = x_width / y_width
    window_ratio = max_x / max_y
    if frame_ratio >= window_ratio:
        x, y = max_x, max_x / frame_ratio
    else:
        x, y = max_y * frame_ratio, max_y
    return max(1, int(round(x))), max(1, int(round(y)))
