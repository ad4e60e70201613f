"""
Point picker: sample one pixel of a decoded image and rank it against the
palette. Click coordinates on a scaled display are mapped back to intrinsic
image pixels first.
"""

import math
from typing import Iterable, Optional, Tuple, Union

import numpy as np

from colorfinder.errors import InvalidPixel
from .distance import MetricLike
from .extraction import PixelBuffer, pixel_rows
from .matching import RankResult, rank
from .palette import Color, Palette


def to_image_coords(x: float,
                    y: float,
                    display_size: Tuple[float, float],
                    image_size: Tuple[int, int]) -> Tuple[int, int]:
    """
    Map a point on a displayed image to intrinsic pixel coordinates.
    
    Args:
        x: Horizontal offset from the displayed image's left edge
        y: Vertical offset from the displayed image's top edge
        display_size: (width, height) the image is rendered at
        image_size: (width, height) of the decoded image
        
    Returns:
        Floored (x, y) in image pixels. A click on the right or bottom
        display edge maps to the last column or row.
    """
    display_w, display_h = display_size
    image_w, image_h = image_size
    if display_w <= 0 or display_h <= 0:
        raise InvalidPixel(f"Invalid display size: {display_w}×{display_h}")
    
    scale_x = image_w / display_w
    scale_y = image_h / display_h
    return min(math.floor(x * scale_x), image_w - 1), min(math.floor(y * scale_y), image_h - 1)


def pixel_at(pixels: PixelBuffer,
             width: Optional[int],
             height: Optional[int],
             x: int,
             y: int) -> Tuple[int, int, int]:
    """
    Read the RGB value of one pixel.
    
    Args:
        pixels: Flattened RGBA buffer or (H, W, 3|4) array
        width: Image width (may be None for 3-D arrays)
        height: Image height (may be None for 3-D arrays)
        x: Column
        y: Row
        
    Raises:
        InvalidPixel: If (x, y) lies outside the image or the buffer is malformed
    """
    rows = pixel_rows(pixels, width, height)
    if width is None or height is None:
        # 3-D arrays carry their own shape
        height, width = np.asarray(pixels).shape[:2]
    
    if not (0 <= x < width and 0 <= y < height):
        raise InvalidPixel(f"Coordinate ({x}, {y}) outside {width}×{height} image")
    
    r, g, b = rows[y * width + x][:3]
    return int(r), int(g), int(b)


def pick(pixels: PixelBuffer,
         width: Optional[int],
         height: Optional[int],
         x: float,
         y: float,
         palette: Union[Palette, Iterable[Color]],
         k: Optional[int] = None,
         metric: MetricLike = None,
         display_size: Optional[Tuple[float, float]] = None) -> RankResult:
    """
    Rank the palette against the pixel under a point.
    
    When display_size is given, (x, y) are display coordinates and are
    scaled to image pixels; otherwise they must already be integers in
    image space.
    """
    if display_size is not None:
        if width is None or height is None:
            height, width = np.asarray(pixels).shape[:2]
        x, y = to_image_coords(x, y, display_size, (width, height))
    elif x != int(x) or y != int(y):
        raise InvalidPixel(f"Non-integer image coordinate ({x}, {y})")
    
    rgb = pixel_at(pixels, width, height, int(x), int(y))
    return rank(rgb, palette, k=k, metric=metric)
