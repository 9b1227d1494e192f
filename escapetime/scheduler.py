"""Fork-join evaluation of a frame over disjoint row bands."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import numpy as np

from .errors import InvalidViewport
from .kernel import advance_block
from .palette import Palette, color_block
from .settings import RenderSettings
from .store import OrbitStore
from .viewport import Viewport, sample_points

logger = logging.getLogger(__name__)


def new_frame(viewport: Viewport) -> np.ndarray:
    return np.zeros((viewport.y_res, viewport.x_res, 3), dtype=np.uint8)


class FrameScheduler:
    """Evaluate frames band by band, in a thread pool or sequentially.

    Every band owns a disjoint slice of the orbit store and of the frame
    buffer, so bands never observe each other and no locking is needed.
    Both execution modes walk the same bands and produce identical frames.
    """

    def __init__(self, settings: RenderSettings, *, device: Optional[str] = None) -> None:
        self.settings = settings
        self.device = device
        self._executor: Optional[ThreadPoolExecutor] = None
        if settings.worker_count > 1:
            try:
                self._executor = ThreadPoolExecutor(max_workers=settings.worker_count, thread_name_prefix="band")
            except RuntimeError as exc:
                logger.warning("Thread pool unavailable (%s); rendering sequentially", exc)

    @property
    def parallel(self) -> bool:
        return self._executor is not None

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "FrameScheduler":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def bands(self, viewport: Viewport, rows: Optional[range] = None) -> list[tuple[int, int]]:
        """Flat pixel ranges ``[start, stop)`` covering ``rows`` in bands of ``band_rows``."""

        if rows is None:
            rows = range(viewport.y_res)
        if rows.step != 1 or rows.start < 0 or rows.stop > viewport.y_res:
            raise InvalidViewport(f"row range {rows} outside 0..{viewport.y_res}")
        band_rows = self.settings.band_rows
        return [
            (row * viewport.x_res, min(row + band_rows, rows.stop) * viewport.x_res)
            for row in range(rows.start, rows.stop, band_rows)
        ]

    def render(
        self,
        viewport: Viewport,
        store: OrbitStore,
        budget: int,
        palette: Palette,
        *,
        frame: Optional[np.ndarray] = None,
        rows: Optional[range] = None,
        only_active: bool = False,
    ) -> np.ndarray:
        """Advance every pixel by up to ``budget`` iterations and color it into ``frame``.

        With ``only_active`` the pixels that had already escaped keep their
        previous color in ``frame`` and bands made only of such pixels are
        skipped entirely.
        """

        if not isinstance(viewport, Viewport):
            raise InvalidViewport(f"expected a Viewport, got {type(viewport).__name__}")
        if (store.x_res, store.y_res) != (viewport.x_res, viewport.y_res):
            raise InvalidViewport(
                f"store is {store.x_res}x{store.y_res} but viewport is {viewport.x_res}x{viewport.y_res}"
            )
        if frame is None:
            frame = new_frame(viewport)
        elif frame.shape != (viewport.y_res, viewport.x_res, 3) or not frame.flags.c_contiguous:
            raise InvalidViewport(f"frame buffer of shape {frame.shape} does not match the viewport")

        pixels = frame.reshape(-1, 3)
        bound_squared = self.settings.bound_squared
        max_iterations = self.settings.max_iterations

        def run_band(band: tuple[int, int]) -> None:
            start, stop = band
            block = store.block(start, stop)
            pending = None
            if only_active:
                pending = ~block.escaped
                if not pending.any():
                    return
            cr, ci = sample_points(viewport, start, stop)
            advance_block(cr, ci, block, budget, bound_squared, device=self.device)
            colors = color_block(block, palette, max_iterations)
            if pending is None:
                pixels[start:stop] = colors
            else:
                pixels[start:stop][pending] = colors[pending]

        bands = self.bands(viewport, rows)
        began = time.perf_counter()
        if self._executor is not None:
            # list() joins the frame and re-raises the first band failure
            list(self._executor.map(run_band, bands))
        else:
            for band in bands:
                run_band(band)
        logger.debug(
            "rendered %d bands (+%d iterations, %s) in %.3fs",
            len(bands),
            budget,
            "parallel" if self._executor is not None else "sequential",
            time.perf_counter() - began,
        )
        return frame


def render_still(
    viewport: Viewport,
    settings: RenderSettings,
    palette: Palette,
    *,
    device: Optional[str] = None,
) -> np.ndarray:
    """Render one frame at the full iteration budget with a throwaway orbit store."""

    store = OrbitStore(viewport.x_res, viewport.y_res)
    with FrameScheduler(settings, device=device) as scheduler:
        return scheduler.render(viewport, store, settings.max_iterations, palette)
