"""Color mapping from escape results to RGB pixels."""

from __future__ import annotations

from dataclasses import dataclass, replace

import numpy as np

from .errors import InvalidSettings
from .kernel import smoothed_values
from .orbit import Bounded, EscapeResult

RGB = tuple[float, float, float]

MODES = ("cycle", "normalize", "stripes", "derivative")
SHADINGS = ("flat", "lambert")

# Light used by the lambert shading: direction in the plane and elevation.
LIGHT_ANGLE = np.pi / 4.0
LIGHT_HEIGHT = 1.5

# Gain applied to Re(dz) by the derivative mode.
DERIVATIVE_SCALE = 30.0

# Cycling palette from https://stackoverflow.com/a/16505538
_CLASSIC = (
    (66, 30, 15),
    (25, 7, 26),
    (9, 1, 47),
    (4, 4, 73),
    (0, 7, 100),
    (12, 44, 138),
    (24, 82, 177),
    (57, 125, 209),
    (134, 181, 229),
    (211, 236, 248),
    (241, 233, 191),
    (248, 201, 95),
    (255, 170, 0),
    (204, 128, 0),
    (153, 87, 0),
    (106, 52, 3),
)


def _scale(colors) -> tuple[RGB, ...]:
    return tuple(tuple(channel / 255.0 for channel in color) for color in colors)


@dataclass(frozen=True)
class Palette:
    """Procedural map from a smoothed escape value to a color.

    ``colors`` are control points in [0, 1]; the color for a value t in
    [0, 1] is linearly interpolated between them. In ``cycle`` mode the
    first color is repeated after the last so wrapping around is seamless.
    The same cyclic lookup is used by ``derivative`` mode, which feeds it
    ``DERIVATIVE_SCALE * Re(dz)`` instead of the smoothed value and paints
    bounded orbits too.
    """

    name: str
    colors: tuple[RGB, ...]
    mode: str = "cycle"
    period: float = 16.0
    gamma: float = 1.0
    invert: bool = False
    inside: RGB = (0.0, 0.0, 0.0)
    shading: str = "flat"

    def __post_init__(self) -> None:
        if len(self.colors) < 2:
            raise InvalidSettings("a palette needs at least two colors")
        if self.mode not in MODES:
            raise InvalidSettings(f"unknown palette mode {self.mode!r}; choose from {', '.join(MODES)}")
        if self.shading not in SHADINGS:
            raise InvalidSettings(f"unknown shading {self.shading!r}; choose from {', '.join(SHADINGS)}")
        if not self.period > 0:
            raise InvalidSettings("palette period must be positive")
        if not self.gamma > 0:
            raise InvalidSettings("palette gamma must be positive")

    @classmethod
    def from_colormap(cls, name: str, samples: int = 256, **options) -> "Palette":
        """Build a palette from a matplotlib colormap."""

        from matplotlib import colormaps

        try:
            cmap = colormaps[name]
        except KeyError as exc:
            raise InvalidSettings(f"unknown palette or colormap {name!r}") from exc
        rgba = cmap(np.linspace(0.0, 1.0, samples))
        colors = tuple(tuple(float(channel) for channel in row[:3]) for row in rgba)
        options.setdefault("period", 64.0)
        return cls(name=name, colors=colors, **options)

    def with_options(self, **changes) -> "Palette":
        return replace(self, **changes)

    def sample(self, t: np.ndarray) -> np.ndarray:
        """Interpolate the control colors at positions ``t`` in [0, 1]."""

        colors = np.asarray(self.colors, dtype=np.float64)
        if self.mode in ("cycle", "derivative"):
            colors = np.concatenate((colors, colors[:1]), axis=0)
        positions = np.linspace(0.0, 1.0, len(colors))
        t = np.clip(np.asarray(t, dtype=np.float64), 0.0, 1.0)
        return np.stack([np.interp(t, positions, colors[:, k]) for k in range(3)], axis=-1)

    def position(self, smooth: np.ndarray, max_iterations: int) -> np.ndarray:
        if self.mode in ("cycle", "derivative"):
            t = np.mod(smooth / self.period, 1.0)
        elif self.mode == "stripes":
            t = 0.5 * (1.0 + np.cos(2.0 * np.pi * smooth / self.period))
        else:
            t = np.clip(smooth / float(max_iterations), 0.0, 1.0) ** self.gamma
        return 1.0 - t if self.invert else t

    def map_values(self, smooth: np.ndarray, escaped: np.ndarray, max_iterations: int) -> np.ndarray:
        """Float RGB in [0, 1] for each value; non-escaped entries get the inside color."""

        rgb = self.sample(self.position(np.asarray(smooth, dtype=np.float64), max_iterations))
        inside = np.asarray(self.inside, dtype=np.float64)
        return np.where(np.asarray(escaped, dtype=bool)[:, None], rgb, inside)


def lambert_term(zr: np.ndarray, zi: np.ndarray, dzr: np.ndarray, dzi: np.ndarray) -> np.ndarray:
    """Brightness of a normal-mapped surface lit from ``LIGHT_ANGLE``.

    The surface normal is the direction of z / dz.
    """

    denom = dzr * dzr + dzi * dzi
    safe = np.where(denom > 0.0, denom, 1.0)
    ur = (zr * dzr + zi * dzi) / safe
    ui = (zi * dzr - zr * dzi) / safe
    norm = np.hypot(ur, ui)
    norm = np.where(norm > 0.0, norm, 1.0)
    ur, ui = ur / norm, ui / norm
    t = (ur * np.cos(LIGHT_ANGLE) + ui * np.sin(LIGHT_ANGLE) + LIGHT_HEIGHT) / (1.0 + LIGHT_HEIGHT)
    return np.where(denom > 0.0, np.clip(t, 0.0, 1.0), 1.0)


def to_uint8(rgb: np.ndarray) -> np.ndarray:
    return np.floor(np.clip(rgb, 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)


def color_block(block, palette: Palette, max_iterations: int) -> np.ndarray:
    """Colors of every pixel in an :class:`~escapetime.store.OrbitBlock` as ``uint8 (n, 3)``."""

    if palette.mode == "derivative":
        values = DERIVATIVE_SCALE * block.dzr
        # diverged derivatives fall back to the inside color
        painted = np.isfinite(values)
        values = np.where(painted, values, 0.0)
    else:
        values = smoothed_values(block.iterations, block.zr, block.zi)
        painted = block.escaped
    rgb = palette.map_values(values, painted, max_iterations)
    if palette.shading == "lambert":
        light = lambert_term(block.zr, block.zi, block.dzr, block.dzi)
        rgb = np.where(block.escaped[:, None], rgb * light[:, None], rgb)
    return to_uint8(rgb)


def color_result(result: EscapeResult, palette: Palette, max_iterations: int) -> tuple[int, int, int]:
    """Color of a single escape result (flat shading).

    A result carries no derivative, so ``derivative`` palettes color escaped
    results by their smoothed value like ``cycle`` does.
    """

    if isinstance(result, Bounded):
        rgb = np.asarray([palette.inside], dtype=np.float64)
    else:
        rgb = palette.map_values(np.array([result.smoothed_value]), np.array([True]), max_iterations)
    r, g, b = to_uint8(rgb)[0]
    return int(r), int(g), int(b)


def parse_hex_color(hex_color: str) -> RGB:
    hex_color = hex_color.lstrip('#')
    if len(hex_color) != 6:
        raise InvalidSettings('inside color must be in the form #RRGGBB.')
    try:
        return tuple(int(hex_color[i:i + 2], 16) / 255.0 for i in (0, 2, 4))
    except ValueError as exc:
        raise InvalidSettings('inside color must contain only hexadecimal digits.') from exc


BUILTIN_PALETTES: dict[str, Palette] = {
    "classic": Palette("classic", _scale(_CLASSIC)),
    "stripes": Palette("stripes", ((0.0, 0.0, 0.0), (1.0, 1.0, 1.0)), mode="stripes", period=1.0, inside=(1.0, 1.0, 1.0)),
    "relief": Palette("relief", _scale(_CLASSIC), shading="lambert", inside=tuple(0.8 * v for v in _scale([(205, 92, 92)])[0])),
    "white_relief": Palette("white_relief", ((1.0, 1.0, 1.0), (1.0, 1.0, 1.0)), shading="lambert"),
    "derivative": Palette("derivative", _scale(_CLASSIC), mode="derivative"),
    "grayscale": Palette("grayscale", ((0.0, 0.0, 0.0), (1.0, 1.0, 1.0)), mode="normalize", gamma=0.85),
    "fire": Palette("fire", _scale([(0, 0, 0), (180, 20, 0), (255, 160, 0), (255, 255, 200)]), period=64.0),
}

# Palettes reachable from the number keys in the live viewer, in key order 1..9, 0.
PALETTE_CYCLE = (
    "classic", "stripes", "relief", "white_relief", "derivative",
    "grayscale", "fire", "twilight_shifted", "inferno", "viridis",
)


def get_palette(name: str, **options) -> Palette:
    """Built-in palette by name, falling back to a matplotlib colormap."""

    if name in BUILTIN_PALETTES:
        palette = BUILTIN_PALETTES[name]
        return palette.with_options(**options) if options else palette
    return Palette.from_colormap(name, **options)
