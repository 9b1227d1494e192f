"""Single-point escape-time evaluation.

This is the reference implementation of the orbit recurrence. The vectorized
kernel in :mod:`escapetime.kernel` performs the same floating point operations
in the same order, so both agree on iteration counts for every sample point.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Union

from .errors import InvalidSettings

DEFAULT_BOUND_SQUARED = 4.0
LOG2 = math.log(2.0)


@dataclass
class OrbitState:
    """Resumable orbit of one pixel: current z, its derivative and the iteration count."""

    z: complex = 0j
    dz: complex = 0j
    iterations: int = 0
    escaped: bool = False

    def reset(self) -> None:
        self.z = 0j
        self.dz = 0j
        self.iterations = 0
        self.escaped = False


@dataclass(frozen=True)
class Escaped:
    iteration_at_escape: float
    smoothed_value: float


@dataclass(frozen=True)
class Bounded:
    iterations_so_far: int


EscapeResult = Union[Escaped, Bounded]


def smoothed_value(iterations: int, z: complex) -> float:
    """Continuous escape value ``n + 1 - log(log|z|) / log 2``."""

    log_abs = 0.5 * math.log(z.real * z.real + z.imag * z.imag)
    return iterations + 1.0 - math.log(log_abs) / LOG2


def result_of(state: OrbitState) -> EscapeResult:
    if state.escaped:
        return Escaped(float(state.iterations), smoothed_value(state.iterations, state.z))
    return Bounded(state.iterations)


def advance(c: complex, state: OrbitState, budget: int, bound_squared: float = DEFAULT_BOUND_SQUARED) -> EscapeResult:
    """Iterate ``z <- z*z + c`` at most ``budget`` more times, updating ``state`` in place.

    Stops as soon as ``|z|^2 >= bound_squared``. An escaped state is terminal:
    further calls leave it untouched and return the same result.
    """

    if bound_squared < DEFAULT_BOUND_SQUARED:
        raise InvalidSettings(f"bound_squared must be at least {DEFAULT_BOUND_SQUARED}, got {bound_squared}")
    if state.escaped or budget <= 0:
        return result_of(state)

    cr, ci = c.real, c.imag
    zr, zi = state.z.real, state.z.imag
    dzr, dzi = state.dz.real, state.dz.imag
    iterations = state.iterations
    escaped = False

    for _ in range(budget):
        new_dzr = 2.0 * (zr * dzr - zi * dzi) + 1.0
        new_dzi = 2.0 * (zr * dzi + zi * dzr)
        new_zr = zr * zr - zi * zi + cr
        new_zi = 2.0 * zr * zi + ci
        zr, zi, dzr, dzi = new_zr, new_zi, new_dzr, new_dzi
        iterations += 1
        if zr * zr + zi * zi >= bound_squared:
            escaped = True
            break

    state.z = complex(zr, zi)
    state.dz = complex(dzr, dzi)
    state.iterations = iterations
    state.escaped = escaped
    return result_of(state)
