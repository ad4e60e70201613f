"""
Distance Metric Module

Scalar dissimilarity between colors in either raw RGB space or CIE L*a*b*
(CIE76). Both variants are selectable at call time; the default comes from
configuration.
"""

from enum import Enum
from typing import Optional, Sequence, Union

import numpy as np

from colorfinder.config import config
from colorfinder.errors import InvalidOptions, InvalidPixel
from .conversions import rgb_to_lab
from .palette import Color, Palette


class DistanceMetric(str, Enum):
    """Supported color distance metrics."""
    RGB = "rgb"  # Euclidean in 0-255 RGB
    LAB = "lab"  # CIE76: Euclidean in L*a*b*
    
    @classmethod
    def parse(cls, value: Union["DistanceMetric", str, None]) -> "DistanceMetric":
        """Resolve an enum member, its string value, or None (configured default)."""
        if value is None:
            value = config.DEFAULT_METRIC
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidOptions(
                f"Unknown distance metric: {value!r}. Supported: {', '.join(m.value for m in cls)}"
            )


ColorLike = Union[Color, Sequence[int], np.ndarray]
MetricLike = Union[DistanceMetric, str, None]


def as_rgb(color: ColorLike) -> np.ndarray:
    """
    Normalize a color-like value to a float (3,) RGB array.
    
    Args:
        color: Color, (R, G, B) sequence, or array; an alpha channel is ignored
        
    Returns:
        Float64 array of shape (3,)
        
    Raises:
        InvalidPixel: If the value is not an RGB(A) triple in [0, 255]
    """
    if isinstance(color, Color):
        return np.array(color.rgb, dtype=np.float64)
    
    try:
        arr = np.asarray(color, dtype=np.float64).reshape(-1)
    except (TypeError, ValueError):
        raise InvalidPixel(f"Not an RGB color: {color!r}")
    
    if arr.shape[0] not in (3, 4):
        raise InvalidPixel(f"Expected 3 or 4 channels, got {arr.shape[0]}")
    
    rgb = arr[:3]
    if not np.all(np.isfinite(rgb)) or np.any(rgb < 0) or np.any(rgb > 255):
        raise InvalidPixel(f"Channel values must be within 0-255: {rgb.tolist()}")
    
    return rgb


def as_rgb_samples(samples: Union[np.ndarray, Sequence[Sequence[int]]]) -> np.ndarray:
    """Normalize an (N, 3|4) collection of pixels to a float (N, 3) array."""
    arr = np.asarray(samples, dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] not in (3, 4):
        raise InvalidPixel(f"Expected an (N, 3) or (N, 4) pixel array, got shape {arr.shape}")
    
    rgb = arr[:, :3]
    if rgb.size and (np.any(rgb < 0) or np.any(rgb > 255) or not np.all(np.isfinite(rgb))):
        raise InvalidPixel("Pixel channel values must be within 0-255")
    
    return rgb


def _project(rgb: np.ndarray, metric: DistanceMetric) -> np.ndarray:
    return rgb_to_lab(rgb) if metric == DistanceMetric.LAB else rgb


def _palette_space(palette: Palette, metric: DistanceMetric) -> np.ndarray:
    return palette.lab_array if metric == DistanceMetric.LAB else palette.rgb_array


def distance(c1: ColorLike, c2: ColorLike, metric: MetricLike = None) -> float:
    """
    Distance between two colors.
    
    Symmetric, non-negative, and zero iff both colors coincide in the
    metric's space.
    
    Args:
        c1: First color
        c2: Second color
        metric: DistanceMetric or its name (default from config)
        
    Returns:
        Euclidean distance in RGB or Lab space
    """
    metric = DistanceMetric.parse(metric)
    a = _project(as_rgb(c1), metric)
    b = _project(as_rgb(c2), metric)
    return float(np.sqrt(np.sum((a - b) ** 2)))


def distances_to_palette(query: ColorLike, palette: Palette, metric: MetricLike = None) -> np.ndarray:
    """Distances from one query color to every palette entry, in palette order."""
    metric = DistanceMetric.parse(metric)
    q = _project(as_rgb(query), metric)
    ref = _palette_space(palette, metric)
    return np.sqrt(np.sum((ref - q) ** 2, axis=1))


def pairwise_distances(samples: np.ndarray,
                       palette: Palette,
                       metric: MetricLike = None,
                       squared: bool = False) -> np.ndarray:
    """
    Distance matrix between sampled pixels and palette entries.
    
    Args:
        samples: (N, 3) RGB array
        palette: Reference palette
        metric: DistanceMetric or its name (default from config)
        squared: Skip the square root when only ordering matters
        
    Returns:
        (N, len(palette)) distance matrix
    """
    metric = DistanceMetric.parse(metric)
    points = _project(as_rgb_samples(samples), metric)
    ref = _palette_space(palette, metric)
    
    # Broadcasting: (N, 1, 3) - (1, P, 3) -> (N, P, 3) -> (N, P)
    d2 = np.sum((points[:, None, :] - ref[None, :, :]) ** 2, axis=2)
    return d2 if squared else np.sqrt(d2)


def nearest_indices(samples: np.ndarray, palette: Palette, metric: MetricLike = None) -> np.ndarray:
    """Index of the nearest palette entry for each sample; ties go to the earlier entry."""
    if len(samples) == 0:
        return np.empty(0, dtype=np.intp)
    # argmin returns the first minimum, matching palette insertion order
    return np.argmin(pairwise_distances(samples, palette, metric, squared=True), axis=1)
