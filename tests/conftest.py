"""Shared test fixtures."""

import shutil
import tempfile

import numpy as np
import pytest
from PIL import Image

from MapBrew.config import PipelineConfig
from MapBrew.core import PixelBuffer


@pytest.fixture
def tmp_dir():
    d = tempfile.mkdtemp()
    yield d
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def default_config():
    return PipelineConfig()


@pytest.fixture
def random_albedo():
    rng = np.random.default_rng(1234)
    return PixelBuffer(rng.integers(0, 256, size=(24, 32, 3), dtype=np.uint8))


def solid_buffer(width, height, color):
    """Return a PixelBuffer filled with one RGB or RGBA color."""
    arr = np.empty((height, width, len(color)), dtype=np.uint8)
    arr[:, :] = color
    return PixelBuffer(arr, copy=False)


def random_buffer(width=32, height=24, channels=3, seed=0):
    rng = np.random.default_rng(seed)
    return PixelBuffer(
        rng.integers(0, 256, size=(height, width, channels), dtype=np.uint8),
        copy=False,
    )


def save_test_png(path, width=16, height=16, channels=3, seed=0):
    """Write a random 8-bit PNG and return its pixel array."""
    rng = np.random.default_rng(seed)
    arr = rng.integers(0, 256, size=(height, width, channels), dtype=np.uint8)
    Image.fromarray(arr).save(path)
    return arr
