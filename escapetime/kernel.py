"""TensorFlow kernel advancing a block of orbits in lock-step."""

from __future__ import annotations

from typing import Optional

import numpy as np
import tensorflow as tf

from .errors import InvalidSettings
from .orbit import DEFAULT_BOUND_SQUARED

_COMPONENT = tf.TensorSpec(shape=[None], dtype=tf.float64)
_SIGNATURE = [
    _COMPONENT,  # cr
    _COMPONENT,  # ci
    _COMPONENT,  # zr
    _COMPONENT,  # zi
    _COMPONENT,  # dzr
    _COMPONENT,  # dzi
    tf.TensorSpec(shape=[None], dtype=tf.int64),
    tf.TensorSpec(shape=[None], dtype=tf.bool),
    tf.TensorSpec(shape=[], dtype=tf.int64),
    tf.TensorSpec(shape=[], dtype=tf.float64),
]


@tf.function
def _orbit_step(cr, ci, zr, zi, dzr, dzi, ns, escaped, bound_squared):
    """Perform a single iteration for the points that have not escaped."""

    active = tf.logical_not(escaped)
    two = tf.constant(2.0, dtype=tf.float64)
    one = tf.constant(1.0, dtype=tf.float64)

    new_dzr = two * (zr * dzr - zi * dzi) + one
    new_dzi = two * (zr * dzi + zi * dzr)
    new_zr = zr * zr - zi * zi + cr
    new_zi = two * zr * zi + ci

    zr = tf.where(active, new_zr, zr)
    zi = tf.where(active, new_zi, zi)
    dzr = tf.where(active, new_dzr, dzr)
    dzi = tf.where(active, new_dzi, dzi)
    ns = ns + tf.cast(active, tf.int64)

    magnitude = zr * zr + zi * zi
    escaped = tf.logical_or(escaped, tf.logical_and(active, magnitude >= bound_squared))
    return zr, zi, dzr, dzi, ns, escaped


@tf.function(input_signature=_SIGNATURE)
def _orbit_run(cr, ci, zr, zi, dzr, dzi, ns, escaped, budget, bound_squared):
    """Iterate at most ``budget`` times using a TensorFlow while loop."""

    i = tf.constant(0, dtype=tf.int64)

    def cond(i, zr, zi, dzr, dzi, ns, escaped):
        return tf.logical_and(tf.less(i, budget), tf.logical_not(tf.reduce_all(escaped)))

    def body(i, zr, zi, dzr, dzi, ns, escaped):
        zr, zi, dzr, dzi, ns, escaped = _orbit_step(cr, ci, zr, zi, dzr, dzi, ns, escaped, bound_squared)
        return i + 1, zr, zi, dzr, dzi, ns, escaped

    _, zr, zi, dzr, dzi, ns, escaped = tf.while_loop(cond, body, (i, zr, zi, dzr, dzi, ns, escaped))
    return zr, zi, dzr, dzi, ns, escaped


def advance_block(
    cr: np.ndarray,
    ci: np.ndarray,
    block,
    budget: int,
    bound_squared: float = DEFAULT_BOUND_SQUARED,
    *,
    device: Optional[str] = None,
) -> None:
    """Advance every orbit of ``block`` by up to ``budget`` iterations.

    ``block`` is an :class:`~escapetime.store.OrbitBlock`; its arrays are
    overwritten in place with the resumed state.
    """

    if bound_squared < DEFAULT_BOUND_SQUARED:
        raise InvalidSettings(f"bound_squared must be at least {DEFAULT_BOUND_SQUARED}, got {bound_squared}")
    if budget <= 0 or block.size == 0:
        return

    with tf.device(device if device is not None else "/CPU:0"):
        zr, zi, dzr, dzi, ns, escaped = _orbit_run(
            tf.convert_to_tensor(cr, dtype=tf.float64),
            tf.convert_to_tensor(ci, dtype=tf.float64),
            tf.convert_to_tensor(block.zr, dtype=tf.float64),
            tf.convert_to_tensor(block.zi, dtype=tf.float64),
            tf.convert_to_tensor(block.dzr, dtype=tf.float64),
            tf.convert_to_tensor(block.dzi, dtype=tf.float64),
            tf.convert_to_tensor(block.iterations, dtype=tf.int64),
            tf.convert_to_tensor(block.escaped, dtype=tf.bool),
            tf.constant(budget, dtype=tf.int64),
            tf.constant(bound_squared, dtype=tf.float64),
        )

    block.zr[...] = zr.numpy()
    block.zi[...] = zi.numpy()
    block.dzr[...] = dzr.numpy()
    block.dzi[...] = dzi.numpy()
    block.iterations[...] = ns.numpy()
    block.escaped[...] = escaped.numpy()


def smoothed_values(iterations: np.ndarray, zr: np.ndarray, zi: np.ndarray) -> np.ndarray:
    """Vectorized ``n + 1 - log(log|z|) / log 2``; only meaningful where the orbit escaped."""

    magnitude = zr * zr + zi * zi
    eps = 1e-12
    log_abs = 0.5 * np.log(np.maximum(magnitude, 1.0 + eps))
    log_log_abs = np.log(np.maximum(log_abs, eps))
    return iterations.astype(np.float64) + 1.0 - log_log_abs / np.log(2.0)
