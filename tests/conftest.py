"""
Shared fixtures: synthetic multi-exposure datasets with known responses.
"""

import logging

import matplotlib
import numpy as np
import pytest

matplotlib.use("Agg")

from RadiometricResponseTool.Dataset import Dataset
from RadiometricResponseTool.LoggingConfig import PACKAGE_LOGGER

EXPOSURES = (10, 20, 40)


def make_dataset(irradiance, exposures, response, num_channels=1):
    """
    Build a dataset by imaging *irradiance* through a forward *response*.

    ``response(x)`` maps exposure ``t * irradiance`` to brightness and is
    clamped to ``[0, 255]``.
    """
    dataset = Dataset()
    for t in exposures:
        brightness = np.clip(np.round(response(t * irradiance)), 0, 255)
        image = brightness.astype(np.uint8)
        if num_channels > 1:
            image = np.stack([image] * num_channels, axis=2)
        dataset.insert(t, image)
    return dataset


@pytest.fixture
def linear_dataset():
    """4x4 scene, brightness ``m * t / 10`` for scene values m."""
    m = np.array([[10, 50, 5, 20],
                  [30, 40, 60, 70],
                  [2, 15, 25, 35],
                  [45, 55, 63, 80]], dtype=np.float64)
    return make_dataset(0.02 * m, EXPOSURES, lambda x: x * 5.0)


@pytest.fixture
def gamma_dataset():
    """Gradient scene imaged through a gamma curve at five exposures."""
    rng = np.random.default_rng(0)
    irradiance = np.linspace(0.05, 1.0, 32 * 32).reshape(32, 32)
    irradiance = irradiance[:, rng.permutation(32)]
    return make_dataset(irradiance, (1, 2, 4, 8, 16),
                        lambda x: 255.0 * np.power(np.minimum(x / 8.0, 1.0), 1 / 2.2))


@pytest.fixture
def color_dataset():
    """Three identical channels of a gradient scene imaged linearly."""
    irradiance = np.linspace(1.0, 12.0, 16 * 16).reshape(16, 16)
    return make_dataset(irradiance, EXPOSURES, lambda x: x / 2.0, num_channels=3)


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo handler changes made by ``setup_logging`` during a test."""
    yield
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
