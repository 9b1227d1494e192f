"""Render settings shared by batch and live modes."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Optional

from .errors import InvalidSettings


@dataclass(frozen=True)
class RenderSettings:
    """Plain parameters accepted by the engine; parsing belongs to the CLI."""

    max_iterations: int = 2000
    step_iterations: int = 32
    escape_radius: float = 2.0
    parallel: bool = True
    workers: Optional[int] = None
    band_rows: int = 16

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if self.max_iterations <= 0:
            raise InvalidSettings("max_iterations must be positive")
        if self.step_iterations <= 0:
            raise InvalidSettings("step_iterations must be positive")
        if not math.isfinite(self.escape_radius) or self.escape_radius < 2.0:
            raise InvalidSettings("escape_radius must be a finite value >= 2.0")
        if self.workers is not None and self.workers <= 0:
            raise InvalidSettings("workers must be positive")
        if self.band_rows <= 0:
            raise InvalidSettings("band_rows must be positive")

    @property
    def bound_squared(self) -> float:
        return self.escape_radius * self.escape_radius

    @property
    def worker_count(self) -> int:
        if not self.parallel:
            return 1
        return self.workers if self.workers is not None else (os.cpu_count() or 1)
