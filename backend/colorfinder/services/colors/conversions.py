"""
Color Conversion Utilities

Hex / RGB helpers and the sRGB -> CIE L*a*b* conversion used by the
perceptual distance metric. Lab conversion is vectorized so palette and
pixel arrays convert in one call.
"""

from typing import Tuple, Union, Sequence

import numpy as np


# sRGB (D65) -> XYZ matrix
SRGB_TO_XYZ = np.array([
    [0.4124, 0.3576, 0.1805],
    [0.2126, 0.7152, 0.0722],
    [0.0193, 0.1192, 0.9505],
])

# D65 reference white
D65_WHITE = np.array([0.95047, 1.0, 1.08883])

_PIVOT_EPSILON = 0.008856
_PIVOT_KAPPA = 7.787


def hex_to_rgb(hex_color: str) -> Tuple[int, int, int]:
    """
    Convert hex color string to RGB tuple.
    
    Args:
        hex_color: Color in format #RRGGBB
        
    Returns:
        Tuple of (R, G, B) integers in [0, 255]
        
    Raises:
        ValueError: If hex_color is not a #RRGGBB string
    """
    if not isinstance(hex_color, str) or not hex_color.startswith('#'):
        raise ValueError(f"Invalid hex color format: {hex_color}")
    
    hex_clean = hex_color[1:]
    if len(hex_clean) != 6:
        raise ValueError(f"Invalid hex color format: {hex_color}")
    
    try:
        return tuple(int(hex_clean[i:i+2], 16) for i in (0, 2, 4))
    except ValueError:
        raise ValueError(f"Invalid hex color format: {hex_color}")


def rgb_to_hex(rgb: Sequence[int]) -> str:
    """Convert an (R, G, B) triple to an upper-case #RRGGBB string."""
    r, g, b = [int(x) for x in rgb]
    return f"#{r:02X}{g:02X}{b:02X}"


def srgb_to_linear(channels: np.ndarray) -> np.ndarray:
    """Undo the sRGB transfer curve on channels normalized to [0, 1]."""
    return np.where(
        channels > 0.04045,
        ((channels + 0.055) / 1.055) ** 2.4,
        channels / 12.92
    )


def _lab_pivot(t: np.ndarray) -> np.ndarray:
    return np.where(
        t > _PIVOT_EPSILON,
        np.cbrt(t),
        _PIVOT_KAPPA * t + 16.0 / 116.0
    )


def rgb_to_xyz(rgb: Union[Sequence[float], np.ndarray]) -> np.ndarray:
    """
    Convert 0-255 sRGB values to CIE XYZ.
    
    Args:
        rgb: Single (R, G, B) triple or (N, 3) array
        
    Returns:
        XYZ values with the same leading shape as the input
    """
    arr = np.asarray(rgb, dtype=np.float64) / 255.0
    linear = srgb_to_linear(arr)
    return linear @ SRGB_TO_XYZ.T


def xyz_to_lab(xyz: np.ndarray) -> np.ndarray:
    """Convert CIE XYZ to L*a*b* relative to the D65 white point."""
    f = _lab_pivot(np.asarray(xyz, dtype=np.float64) / D65_WHITE)
    fx, fy, fz = f[..., 0], f[..., 1], f[..., 2]
    
    L = 116.0 * fy - 16.0
    a = 500.0 * (fx - fy)
    b = 200.0 * (fy - fz)
    
    return np.stack([L, a, b], axis=-1)


def rgb_to_lab(rgb: Union[Sequence[float], np.ndarray]) -> np.ndarray:
    """
    Convert 0-255 sRGB values to CIE L*a*b*.
    
    White (255, 255, 255) maps to roughly (100, 0, 0) and black to (0, 0, 0).
    
    Args:
        rgb: Single (R, G, B) triple or (N, 3) array
        
    Returns:
        Array of [L, a, b] (shape (3,) or (N, 3))
    """
    return xyz_to_lab(rgb_to_xyz(rgb))
