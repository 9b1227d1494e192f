import numpy as np
import pytest

from escapetime.errors import InvalidSettings
from escapetime.kernel import advance_block, smoothed_values
from escapetime.orbit import OrbitState, advance, smoothed_value
from escapetime.store import OrbitStore

POINTS = np.array([0j, 2 + 0j, -1 + 0j, 0.25 + 0.5j, -0.75 + 0.1j, 0.3 - 0.02j, -1.2 + 0.3j, 0.5 + 0.5j, -0.1 + 0.9j])


def _block(points):
    store = OrbitStore(len(points), 1)
    return store, store.block(0, len(points))


def test_kernel_matches_reference_orbit():
    _, block = _block(POINTS)
    advance_block(POINTS.real.copy(), POINTS.imag.copy(), block, 200)

    for i, c in enumerate(POINTS):
        state = OrbitState()
        advance(complex(c), state, 200)
        assert block.iterations[i] == state.iterations
        assert bool(block.escaped[i]) == state.escaped
        assert complex(block.zr[i], block.zi[i]) == pytest.approx(state.z)
        assert complex(block.dzr[i], block.dzi[i]) == pytest.approx(state.dz)


def test_kernel_known_points():
    _, block = _block(POINTS[:2])
    advance_block(POINTS[:2].real.copy(), POINTS[:2].imag.copy(), block, 500)
    assert list(block.iterations) == [500, 1]
    assert list(block.escaped) == [False, True]


@pytest.mark.parametrize("first", [1, 13, 64])
def test_split_budget_equals_single_budget(first):
    cr, ci = POINTS.real.copy(), POINTS.imag.copy()
    _, split = _block(POINTS)
    advance_block(cr, ci, split, first)
    advance_block(cr, ci, split, 150 - first)

    _, whole = _block(POINTS)
    advance_block(cr, ci, whole, 150)

    for name in ("zr", "zi", "dzr", "dzi", "iterations", "escaped"):
        np.testing.assert_array_equal(getattr(split, name), getattr(whole, name))


def test_zero_budget_leaves_block_untouched():
    _, block = _block(POINTS)
    advance_block(POINTS.real.copy(), POINTS.imag.copy(), block, 0)
    assert not block.iterations.any()


def test_custom_bound():
    _, block = _block(POINTS[1:2])
    advance_block(POINTS[1:2].real.copy(), POINTS[1:2].imag.copy(), block, 50, bound_squared=1e6)
    state = OrbitState()
    advance(2 + 0j, state, 50, bound_squared=1e6)
    assert block.iterations[0] == state.iterations > 1


def test_bound_below_radius_two_is_rejected():
    _, block = _block(POINTS)
    with pytest.raises(InvalidSettings):
        advance_block(POINTS.real.copy(), POINTS.imag.copy(), block, 10, bound_squared=1.0)
    assert not block.iterations.any()


def test_smoothed_values_agree_with_scalar():
    _, block = _block(POINTS)
    advance_block(POINTS.real.copy(), POINTS.imag.copy(), block, 100)
    smooth = smoothed_values(block.iterations, block.zr, block.zi)
    for i in np.flatnonzero(block.escaped):
        expected = smoothed_value(int(block.iterations[i]), complex(block.zr[i], block.zi[i]))
        assert smooth[i] == pytest.approx(expected)
