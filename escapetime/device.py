"""TensorFlow device selection."""

from __future__ import annotations

import logging

import tensorflow as tf

logger = logging.getLogger(__name__)


def pick_device(prefer_gpu: bool = True) -> str:
    """Return ``/GPU:0`` when a usable GPU is visible, otherwise ``/CPU:0``.

    Memory growth is enabled on every GPU so the renderer does not grab all
    device memory up front. Results are only reproducible bit-for-bit on the
    same device.
    """

    if not prefer_gpu:
        return '/CPU:0'

    gpus = tf.config.list_physical_devices('GPU')
    if not gpus:
        logger.info("No GPU found, using CPU")
        return '/CPU:0'
    try:
        for gpu in gpus:
            tf.config.experimental.set_memory_growth(gpu, True)
    except RuntimeError as e:
        # memory growth must be set before the GPU is initialized
        logger.warning("Could not configure %s: %s", gpus[0].name, e)
        return '/CPU:0'
    logger.info("GPU found, using %s", gpus[0].name)
    return '/GPU:0'
