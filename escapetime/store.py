"""Per-pixel orbit storage for incremental refinement."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from .orbit import OrbitState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrbitBlock:
    """Views over a contiguous run of flat pixel indices ``[start, stop)``."""

    start: int
    stop: int
    zr: np.ndarray
    zi: np.ndarray
    dzr: np.ndarray
    dzi: np.ndarray
    iterations: np.ndarray
    escaped: np.ndarray

    @property
    def size(self) -> int:
        return self.stop - self.start


class OrbitStore:
    """Flat row-major arena holding one orbit per pixel.

    Invalidation is O(1): the store's generation is bumped and every cell
    tagged with an older generation is treated as a fresh zero orbit. Stale
    cells are physically reset the next time they are read.
    """

    def __init__(self, x_res: int, y_res: int) -> None:
        self._generation = 0
        self._allocate(x_res, y_res)

    def _allocate(self, x_res: int, y_res: int) -> None:
        size = x_res * y_res
        self.x_res = x_res
        self.y_res = y_res
        self._zr = np.zeros(size, dtype=np.float64)
        self._zi = np.zeros(size, dtype=np.float64)
        self._dzr = np.zeros(size, dtype=np.float64)
        self._dzi = np.zeros(size, dtype=np.float64)
        self._iterations = np.zeros(size, dtype=np.int64)
        self._escaped = np.zeros(size, dtype=bool)
        self._tags = np.full(size, self._generation, dtype=np.int64)

    @property
    def size(self) -> int:
        return self.x_res * self.y_res

    @property
    def generation(self) -> int:
        return self._generation

    def invalidate_all(self) -> None:
        self._generation += 1
        logger.debug("orbit store invalidated, generation %d", self._generation)

    def resize(self, x_res: int, y_res: int) -> None:
        if (x_res, y_res) == (self.x_res, self.y_res):
            self.invalidate_all()
            return
        self._generation += 1
        self._allocate(x_res, y_res)

    def _index(self, coord: tuple[int, int]) -> int:
        row, col = coord
        if not (0 <= row < self.y_res and 0 <= col < self.x_res):
            raise IndexError(f"pixel {coord} outside {self.x_res}x{self.y_res} store")
        return row * self.x_res + col

    def _refresh(self, start: int, stop: int) -> None:
        stale = self._tags[start:stop] != self._generation
        if not stale.any():
            return
        for array in (self._zr, self._zi, self._dzr, self._dzi):
            array[start:stop][stale] = 0.0
        self._iterations[start:stop][stale] = 0
        self._escaped[start:stop][stale] = False
        self._tags[start:stop][stale] = self._generation

    def get_or_create(self, coord: tuple[int, int]) -> OrbitState:
        """Copy of the orbit at ``coord``; a fresh zero orbit if none is current."""

        idx = self._index(coord)
        self._refresh(idx, idx + 1)
        return OrbitState(
            z=complex(self._zr[idx], self._zi[idx]),
            dz=complex(self._dzr[idx], self._dzi[idx]),
            iterations=int(self._iterations[idx]),
            escaped=bool(self._escaped[idx]),
        )

    def put(self, coord: tuple[int, int], state: OrbitState) -> None:
        idx = self._index(coord)
        self._zr[idx] = state.z.real
        self._zi[idx] = state.z.imag
        self._dzr[idx] = state.dz.real
        self._dzi[idx] = state.dz.imag
        self._iterations[idx] = state.iterations
        self._escaped[idx] = state.escaped
        self._tags[idx] = self._generation

    def block(self, start: int, stop: int) -> OrbitBlock:
        """Views over ``[start, stop)`` with stale cells reset.

        Blocks over disjoint ranges share no memory, so they can be
        advanced concurrently.
        """

        self._refresh(start, stop)
        return OrbitBlock(
            start=start,
            stop=stop,
            zr=self._zr[start:stop],
            zi=self._zi[start:stop],
            dzr=self._dzr[start:stop],
            dzi=self._dzi[start:stop],
            iterations=self._iterations[start:stop],
            escaped=self._escaped[start:stop],
        )

    def is_current(self) -> np.ndarray:
        return self._tags == self._generation

    def escaped_count(self) -> int:
        return int(np.count_nonzero(self._escaped & self.is_current()))

    def all_terminal(self) -> bool:
        return self.escaped_count() == self.size
