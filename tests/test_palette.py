import numpy as np
import pytest

from escapetime import Bounded, Escaped, InvalidSettings, Palette, color_result, get_palette
from escapetime.palette import BUILTIN_PALETTES, PALETTE_CYCLE, color_block, lambert_term, parse_hex_color
from escapetime.store import OrbitStore


def test_bounded_maps_to_inside_color():
    assert color_result(Bounded(100), get_palette("classic"), 100) == (0, 0, 0)
    red = get_palette("classic", inside=(1.0, 0.0, 0.0))
    assert color_result(Bounded(3), red, 100) == (255, 0, 0)


def test_cycle_hits_control_colors():
    palette = get_palette("classic")
    # smoothed value 0 lands on the first control color
    assert color_result(Escaped(1, 0.0), palette, 100) == (66, 30, 15)
    assert color_result(Escaped(1, 1.0), palette, 100) == (25, 7, 26)


@pytest.mark.parametrize("name", ["classic", "stripes", "grayscale", "fire", "derivative", "twilight_shifted"])
def test_colors_are_continuous_in_smoothed_value(name):
    palette = get_palette(name)
    values = np.linspace(0.0, 80.0, 4001)
    eps = values[1] - values[0]
    rgb = palette.map_values(values, np.ones_like(values, dtype=bool), 100)
    steps = np.abs(np.diff(rgb, axis=0)).max()
    # largest jump between neighbouring values stays proportional to eps
    assert steps <= 20 * eps


def test_no_jump_across_integer_iterations():
    palette = get_palette("classic")
    below = np.array(color_result(Escaped(5, 4.9999), palette, 100))
    above = np.array(color_result(Escaped(5, 5.0001), palette, 100))
    assert np.abs(below - above).max() <= 1


def test_cycle_wraps_seamlessly():
    palette = get_palette("fire")
    end = palette.map_values(np.array([palette.period - 1e-9]), np.array([True]), 100)
    start = palette.map_values(np.array([palette.period]), np.array([True]), 100)
    np.testing.assert_allclose(end, start, atol=1e-6)


def test_normalize_and_invert():
    palette = get_palette("grayscale", gamma=1.0)
    assert color_result(Escaped(1, 100.0), palette, 100) == (255, 255, 255)
    assert color_result(Escaped(1, 0.0), palette, 100) == (0, 0, 0)
    inverted = palette.with_options(invert=True)
    assert color_result(Escaped(1, 100.0), inverted, 100) == (0, 0, 0)


def test_matplotlib_colormap_palette():
    palette = get_palette("viridis")
    assert palette.name == "viridis"
    assert len(palette.colors) == 256


def test_unknown_palette():
    with pytest.raises(InvalidSettings):
        get_palette("not-a-colormap")


@pytest.mark.parametrize("options", [
    {"mode": "spiral"},
    {"shading": "phong"},
    {"period": 0.0},
    {"gamma": -1.0},
])
def test_invalid_palette_options(options):
    with pytest.raises(InvalidSettings):
        get_palette("classic", **options)


def test_palette_cycle_names_resolve():
    for name in PALETTE_CYCLE:
        assert isinstance(get_palette(name), Palette)


def test_lambert_term_range():
    rng = np.random.default_rng(3)
    zr, zi, dzr, dzi = rng.normal(size=(4, 100))
    light = lambert_term(zr, zi, dzr, dzi)
    assert light.min() >= 0.0 and light.max() <= 1.0
    assert lambert_term(np.ones(1), np.ones(1), np.zeros(1), np.zeros(1))[0] == 1.0


def test_parse_hex_color():
    assert parse_hex_color("#ff8000") == pytest.approx((1.0, 128 / 255, 0.0))
    with pytest.raises(InvalidSettings):
        parse_hex_color("#fff")
    with pytest.raises(InvalidSettings):
        parse_hex_color("#gggggg")


def test_builtins_are_frozen():
    with pytest.raises(AttributeError):
        BUILTIN_PALETTES["classic"].period = 3.0


def _block(n):
    return OrbitStore(n, 1).block(0, n)


def test_derivative_mode_colors_by_real_part_of_dz():
    block = _block(4)
    block.dzr[:] = [0.0, 0.5, np.inf, np.nan]
    block.iterations[:] = 7
    colors = color_block(block, get_palette("derivative"), 100)
    # 30 * Re(dz) walks the 16 classic colors; bounded orbits are painted too
    assert tuple(colors[0]) == (66, 30, 15)
    assert tuple(colors[1]) == (106, 52, 3)
    # a diverged derivative gets the inside color
    assert not colors[2:].any()


def test_derivative_result_falls_back_to_smoothed_value():
    palette = get_palette("derivative")
    assert color_result(Escaped(1, 0.0), palette, 100) == (66, 30, 15)
    assert color_result(Bounded(10), palette, 100) == (0, 0, 0)


def test_white_relief_is_lit_white():
    block = _block(3)
    block.escaped[:2] = True
    block.zr[:2] = 3.0
    block.dzr[1] = 1.0
    colors = color_block(block, get_palette("white_relief"), 100)
    # no derivative means no surface normal, so the pixel is fully lit
    assert tuple(colors[0]) == (255, 255, 255)
    r, g, b = colors[1]
    assert r == g == b and 0 < r < 255
    assert tuple(colors[2]) == (0, 0, 0)
