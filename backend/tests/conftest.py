"""
Test configuration and fixtures for ColorFinder tests.
"""
import numpy as np
import pytest

from colorfinder.services.colors.palette import Palette, SAMPLE_PALETTE_RECORDS


@pytest.fixture
def palette():
    """The 10-entry sample palette."""
    return Palette.from_records(SAMPLE_PALETTE_RECORDS)


@pytest.fixture
def make_rgba():
    """
    Build a flattened RGBA byte buffer.
    
    fill is either a single (R, G, B[, A]) tuple or a callable (x, y) -> tuple.
    """
    def _make(width, height, fill):
        img = np.zeros((height, width, 4), dtype=np.uint8)
        img[:, :, 3] = 255
        for y in range(height):
            for x in range(width):
                value = fill(x, y) if callable(fill) else fill
                img[y, x, :len(value)] = value
        return img.reshape(-1).tobytes()
    return _make


@pytest.fixture(autouse=True)
def reset_metrics():
    """Reset metrics before each test."""
    from colorfinder.services.observability import reset_metrics
    reset_metrics()
