"""
Dominant-color extraction for whole images.

Samples a flattened RGBA buffer on a fixed stride, reduces the samples to
a few representative colors and maps them back onto the reference palette.
Three reduction strategies are available:

- strided_dedup: best match per sample, kept only when it is far enough
  (RGB distance) from every match already kept; order of discovery.
- frequency: best-match codes counted over all samples; descending count,
  ties in palette order.
- kmeans: deterministic k-means in raw RGB (first k samples as initial
  centroids, empty clusters keep their previous centroid); final centroids
  mapped to the palette in centroid order.

Every strategy returns palette colors deduplicated by code. Nearest-match
work is vectorized over chunks of samples and merged in sample order, so
chunking never changes the result.
"""

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Tuple, Union

import numpy as np
from loguru import logger

from colorfinder.config import config, Config
from colorfinder.errors import ExtractionCancelled, InvalidOptions, InvalidPixel
from ..observability import ExtractionLogger, performance_monitor, log_memory_usage
from .distance import DistanceMetric, as_rgb_samples, nearest_indices
from .matching import ensure_palette
from .palette import Color, Palette


PixelBuffer = Union[bytes, bytearray, memoryview, np.ndarray]


class ExtractionStrategy(str, Enum):
    """Sampling/reduction strategies for summarizing an image."""
    STRIDED_DEDUP = "strided_dedup"
    FREQUENCY = "frequency"
    KMEANS = "kmeans"
    
    @classmethod
    def parse(cls, value: Union["ExtractionStrategy", str, None]) -> "ExtractionStrategy":
        if value is None:
            value = config.DEFAULT_STRATEGY
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidOptions(
                f"Unknown extraction strategy: {value!r}. Supported: {', '.join(s.value for s in cls)}"
            )


class CancellationToken:
    """Cooperative cancellation flag, checked between chunks and iterations."""
    
    def __init__(self):
        self._event = threading.Event()
    
    def cancel(self) -> None:
        self._event.set()
    
    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
    
    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ExtractionCancelled("Extraction cancelled")


@dataclass
class ExtractOptions:
    """
    Extraction parameters. Defaults come from configuration; invalid values
    raise InvalidOptions at construction, before any pixel is touched.
    """
    strategy: Union[ExtractionStrategy, str, None] = None
    metric: Union[DistanceMetric, str, None] = None
    stride: int = field(default_factory=lambda: config.SAMPLE_STRIDE)
    dedup_threshold: float = field(default_factory=lambda: config.DEDUP_THRESHOLD)
    max_colors: int = field(default_factory=lambda: config.MAX_COLORS)
    top_n: int = field(default_factory=lambda: config.TOP_N)
    clusters: int = field(default_factory=lambda: config.KMEANS_CLUSTERS)
    iterations: int = field(default_factory=lambda: config.KMEANS_ITERATIONS)
    chunk_size: int = field(default_factory=lambda: config.CHUNK_SIZE)
    
    def __post_init__(self):
        self.strategy = ExtractionStrategy.parse(self.strategy)
        self.metric = DistanceMetric.parse(self.metric)
        
        for name in ("stride", "max_colors", "top_n", "clusters", "iterations", "chunk_size"):
            value = getattr(self, name)
            if not Config.validate_positive(value):
                raise InvalidOptions(f"{name} must be a positive integer, got {value!r}")
        
        if isinstance(self.dedup_threshold, bool) or not isinstance(self.dedup_threshold, (int, float)) \
                or not np.isfinite(self.dedup_threshold) or self.dedup_threshold < 0:
            raise InvalidOptions(f"dedup_threshold must be a non-negative number, got {self.dedup_threshold!r}")


@dataclass(frozen=True)
class ExtractionReport:
    """Extracted colors plus diagnostics for one extraction call."""
    colors: Tuple[Color, ...]
    extraction_id: str
    strategy: str
    metric: str
    sample_count: int
    duration_ms: float
    warnings: Tuple[str, ...] = ()
    
    @property
    def codes(self) -> Tuple[str, ...]:
        return tuple(c.code for c in self.colors)


def pixel_rows(pixels: PixelBuffer, width: Optional[int], height: Optional[int]) -> np.ndarray:
    """Reshape a pixel buffer to (width * height, channels) without copying."""
    if isinstance(pixels, (bytes, bytearray, memoryview)):
        pixels = np.frombuffer(pixels, dtype=np.uint8)
    else:
        pixels = np.asarray(pixels)
    
    if pixels.ndim == 3:
        h, w, channels = pixels.shape
        if channels not in (3, 4):
            raise InvalidPixel(f"Expected 3 or 4 channels, got {channels}")
        if (width is not None and width != w) or (height is not None and height != h):
            raise InvalidPixel(f"Image is {w}×{h} but dimensions {width}×{height} were given")
        return pixels.reshape(-1, channels)
    
    if pixels.ndim != 1:
        raise InvalidPixel(f"Unsupported pixel buffer shape: {pixels.shape}")
    if width is None or height is None:
        raise InvalidPixel("width and height are required for a flattened RGBA buffer")
    if not Config.validate_positive(width) or not Config.validate_positive(height):
        raise InvalidPixel(f"Invalid image dimensions: {width}×{height}")
    
    expected = width * height * 4
    if pixels.shape[0] != expected:
        raise InvalidPixel(
            f"RGBA buffer length {pixels.shape[0]} does not match {width}×{height}×4 = {expected}"
        )
    
    return pixels.reshape(-1, 4)


def sample_pixels(pixels: PixelBuffer,
                  width: Optional[int] = None,
                  height: Optional[int] = None,
                  stride: Optional[int] = None) -> np.ndarray:
    """
    Take every stride-th pixel of an image buffer.
    
    Args:
        pixels: Flattened RGBA buffer (bytes or 1-D array of width*height*4)
            or an (H, W, 3|4) array
        width: Image width, required for flattened buffers
        height: Image height, required for flattened buffers
        stride: Pixel stride (default from config; 100 pixels = 400 RGBA bytes)
        
    Returns:
        (N, 3) float RGB array, a copy independent of the caller's buffer.
        Fully transparent pixels are skipped.
        
    Raises:
        InvalidOptions: If stride is not positive
        InvalidPixel: If the buffer does not match its dimensions or holds
            values outside 0-255
    """
    if stride is None:
        stride = config.SAMPLE_STRIDE
    if not Config.validate_positive(stride):
        raise InvalidOptions(f"stride must be a positive integer, got {stride!r}")
    
    rows = pixel_rows(pixels, width, height)[::stride]
    
    if rows.shape[1] == 4:
        rows = rows[rows[:, 3] > 0]
    
    return as_rgb_samples(rows).copy()


def _check(cancel: Optional[CancellationToken]) -> None:
    if cancel is not None:
        cancel.raise_if_cancelled()


def _chunks(samples: np.ndarray, chunk_size: int) -> Iterable[np.ndarray]:
    for start in range(0, len(samples), chunk_size):
        yield samples[start:start + chunk_size]


def _strided_dedup(samples: np.ndarray,
                   palette: Palette,
                   options: ExtractOptions,
                   cancel: Optional[CancellationToken]) -> List[Color]:
    kept: List[Color] = []
    kept_rgb: List[np.ndarray] = []
    
    for chunk in _chunks(samples, options.chunk_size):
        _check(cancel)
        for index in nearest_indices(chunk, palette, options.metric):
            color = palette[int(index)]
            rgb = palette.rgb_array[int(index)]
            
            # Keep only matches far (in RGB) from everything kept so far
            if all(np.sqrt(np.sum((rgb - other) ** 2)) > options.dedup_threshold for other in kept_rgb):
                kept.append(color)
                kept_rgb.append(rgb)
                logger.debug(f"Kept {color.code} ({color.name}), {len(kept)}/{options.max_colors}")
                if len(kept) >= options.max_colors:
                    return kept
    
    return kept


def _frequency(samples: np.ndarray,
               palette: Palette,
               options: ExtractOptions,
               cancel: Optional[CancellationToken]) -> List[Color]:
    counts = np.zeros(len(palette), dtype=np.int64)
    
    for chunk in _chunks(samples, options.chunk_size):
        _check(cancel)
        counts += np.bincount(nearest_indices(chunk, palette, options.metric), minlength=len(palette))
    
    # Descending count, palette order on ties
    ranked = sorted((i for i in range(len(palette)) if counts[i] > 0), key=lambda i: (-counts[i], i))
    
    logger.debug(f"Match counts: {dict((palette[i].code, int(counts[i])) for i in ranked)}")
    
    return [palette[i] for i in ranked[:options.top_n]]


def kmeans(samples: np.ndarray,
           k: int,
           iterations: int,
           cancel: Optional[CancellationToken] = None) -> np.ndarray:
    """
    Deterministic k-means in raw RGB space.
    
    Initial centroids are the first k samples (repeated cyclically when
    fewer than k samples exist). Each iteration assigns every sample to its
    nearest centroid by squared Euclidean distance, lowest index on ties,
    and moves each centroid to the mean of its members. A cluster with no
    members keeps its previous centroid.
    
    Args:
        samples: (N, 3) RGB array, N >= 1
        k: Number of clusters
        iterations: Maximum number of assignment/update rounds
        cancel: Optional cancellation token checked every iteration
        
    Returns:
        (k, 3) float array of centroids; always exactly k rows
        
    Raises:
        InvalidOptions: If k or iterations is not positive
        InvalidPixel: If there are no samples
        ExtractionCancelled: If cancel is set
    """
    if not Config.validate_positive(k):
        raise InvalidOptions(f"clusters must be a positive integer, got {k!r}")
    if not Config.validate_positive(iterations):
        raise InvalidOptions(f"iterations must be a positive integer, got {iterations!r}")
    
    points = as_rgb_samples(samples)
    n = len(points)
    if n == 0:
        raise InvalidPixel("k-means needs at least one sample")
    
    centroids = points[np.arange(k) % n].copy()
    
    for iteration in range(iterations):
        _check(cancel)
        
        # (N, 1, 3) - (1, k, 3) -> (N, k)
        d2 = np.sum((points[:, None, :] - centroids[None, :, :]) ** 2, axis=2)
        labels = np.argmin(d2, axis=1)
        
        counts = np.bincount(labels, minlength=k)
        sums = np.zeros((k, 3), dtype=np.float64)
        np.add.at(sums, labels, points)
        
        updated = centroids.copy()
        populated = counts > 0
        updated[populated] = sums[populated] / counts[populated, None]
        
        if not populated.all():
            logger.debug(f"k-means iteration {iteration}: {int((~populated).sum())} empty clusters kept in place")
        
        if np.array_equal(updated, centroids):
            logger.debug(f"k-means converged after {iteration + 1} iterations")
            break
        centroids = updated
    
    return centroids


def _kmeans_colors(samples: np.ndarray,
                   palette: Palette,
                   options: ExtractOptions,
                   cancel: Optional[CancellationToken]) -> List[Color]:
    centroids = kmeans(samples, options.clusters, options.iterations, cancel)
    
    colors: List[Color] = []
    seen = set()
    for index in nearest_indices(centroids, palette, options.metric):
        color = palette[int(index)]
        if color.code not in seen:
            seen.add(color.code)
            colors.append(color)
    
    return colors


_REDUCERS = {
    ExtractionStrategy.STRIDED_DEDUP: _strided_dedup,
    ExtractionStrategy.FREQUENCY: _frequency,
    ExtractionStrategy.KMEANS: _kmeans_colors,
}


def extract_report(pixels: PixelBuffer,
                   width: Optional[int],
                   height: Optional[int],
                   palette: Union[Palette, Iterable[Color]],
                   options: Optional[ExtractOptions] = None,
                   cancel: Optional[CancellationToken] = None) -> ExtractionReport:
    """
    Extract dominant palette colors and return them with diagnostics.
    
    See extract() for arguments and errors.
    """
    options = options or ExtractOptions()
    palette = ensure_palette(palette)
    _check(cancel)
    
    extraction_logger = ExtractionLogger()
    
    with performance_monitor("dominant_color_extraction", strategy=options.strategy.value) as monitored:
        # Stage 1: strided sampling
        start_time = time.time()
        samples = sample_pixels(pixels, width, height, options.stride)
        sampling_duration = (time.time() - start_time) * 1000
        monitored['sample_count'] = len(samples)

        extraction_id = extraction_logger.start_extraction(
            strategy=options.strategy.value,
            metric=options.metric.value,
            sample_count=len(samples)
        )
        extraction_logger.log_stage("sampling", sampling_duration,
                                    sample_count=len(samples), stride=options.stride)
        log_memory_usage("sampling_complete")
        
        # Stage 2: reduction and palette mapping
        if len(samples) == 0:
            extraction_logger.log_warning("No opaque pixels sampled; returning no colors")
            colors: List[Color] = []
        else:
            start_time = time.time()
            colors = _REDUCERS[options.strategy](samples, palette, options, cancel)
            extraction_logger.log_stage("reduction", (time.time() - start_time) * 1000,
                                        color_count=len(colors))
        
        summary = extraction_logger.finish_extraction(color_count=len(colors))
    
    logger.info(f"Extraction {extraction_id} matched {[c.code for c in colors]}")
    
    return ExtractionReport(
        colors=tuple(colors),
        extraction_id=extraction_id,
        strategy=options.strategy.value,
        metric=options.metric.value,
        sample_count=len(samples),
        duration_ms=summary.total_duration_ms,
        warnings=tuple(summary.warnings)
    )


def extract(pixels: PixelBuffer,
            width: Optional[int],
            height: Optional[int],
            palette: Union[Palette, Iterable[Color]],
            options: Optional[ExtractOptions] = None,
            cancel: Optional[CancellationToken] = None) -> Tuple[Color, ...]:
    """
    Summarize an image as a deduplicated set of palette colors.
    
    Args:
        pixels: Flattened RGBA buffer of width*height*4 bytes, or an
            (H, W, 3|4) array
        width: Image width (may be None for 3-D arrays)
        height: Image height (may be None for 3-D arrays)
        palette: Reference palette
        options: Strategy, metric and tuning (defaults from config)
        cancel: Optional cancellation token
        
    Returns:
        Palette colors with unique codes, in order of discovery
        (strided_dedup), descending frequency (frequency) or centroid order
        (kmeans). Stable for a fixed input.
        
    Raises:
        InvalidOptions: If options are out of range
        InvalidPalette: If the palette is empty
        InvalidPixel: If the buffer does not match its dimensions
        ExtractionCancelled: If cancel is set before completion
    """
    return extract_report(pixels, width, height, palette, options, cancel).colors
