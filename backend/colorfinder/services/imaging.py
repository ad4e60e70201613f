"""
ColorFinder Imaging Utilities
Decodes uploaded images into the flattened RGBA buffers consumed by the
matching and extraction core.
"""
import io
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import numpy as np
from loguru import logger
from PIL import Image, UnidentifiedImageError

from colorfinder.config import config, Config
from colorfinder.errors import InvalidOptions
from .observability import performance_tracked


ImageSource = Union[str, Path, bytes, bytearray, Image.Image]


@dataclass(frozen=True)
class RgbaImage:
    """Decoded image as a flat uint8 RGBA buffer (row-major, 4 bytes per pixel)."""
    buffer: np.ndarray
    width: int
    height: int
    
    def as_array(self) -> np.ndarray:
        """View the buffer as (height, width, 4)."""
        return self.buffer.reshape(self.height, self.width, 4)


def resize_long_edge(image: Image.Image, max_edge: Optional[int] = None) -> Image.Image:
    """
    Resize image so the longest edge is at most max_edge pixels.
    
    Args:
        image: Input PIL image
        max_edge: Maximum edge size (default from config)
        
    Returns:
        Resized image, or the input unchanged if already small enough
    """
    if max_edge is None:
        max_edge = config.MAX_EDGE
    if not Config.validate_positive(max_edge):
        raise InvalidOptions(f"max_edge must be a positive integer, got {max_edge!r}")
    
    width, height = image.size
    current_max = max(width, height)
    
    if current_max <= max_edge:
        return image
    
    scale = max_edge / current_max
    new_size = (max(1, int(width * scale)), max(1, int(height * scale)))
    logger.debug(f"Downscaling {width}×{height} -> {new_size[0]}×{new_size[1]}")
    
    return image.resize(new_size, Image.Resampling.LANCZOS)


def _open(source: ImageSource) -> Image.Image:
    if isinstance(source, Image.Image):
        return source
    if isinstance(source, (bytes, bytearray)):
        return Image.open(io.BytesIO(source))
    return Image.open(source)


@performance_tracked("image_decoding")
def load_rgba(source: ImageSource, max_edge: Optional[int] = None) -> RgbaImage:
    """
    Decode an image and return its pixels as a flat RGBA buffer.
    
    Args:
        source: File path, encoded bytes, or an already-open PIL image
        max_edge: Longest edge after downscaling (default from config)
        
    Returns:
        RgbaImage with a uint8 buffer of width*height*4 bytes
        
    Raises:
        ValueError: If the data cannot be decoded as an image
        FileNotFoundError: If a path does not exist
    """
    try:
        image = _open(source)
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        if isinstance(e, FileNotFoundError):
            raise
        raise ValueError(f"Failed to decode image: {str(e)}") from e
    
    if image.mode != 'RGBA':
        image = image.convert('RGBA')
    
    image = resize_long_edge(image, max_edge)
    
    width, height = image.size
    buffer = np.asarray(image, dtype=np.uint8).reshape(-1).copy()
    
    logger.info(f"Decoded image {width}×{height} ({buffer.size} bytes RGBA)")
    
    return RgbaImage(buffer=buffer, width=width, height=height)
