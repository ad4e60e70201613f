"""
Nearest-Match Ranking Module

Ranks the reference palette by distance to a query color and returns the
best match plus the next-best suggestions.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple, Union

import numpy as np
from loguru import logger

from colorfinder.config import config, Config
from colorfinder.errors import InvalidOptions, InvalidPalette
from .distance import ColorLike, MetricLike, DistanceMetric, distances_to_palette
from .palette import Color, Palette


@dataclass(frozen=True)
class Match:
    """A palette color and its distance to a query."""
    color: Color
    distance: float
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.color.code,
            "name": self.color.name,
            "hex": self.color.hex,
            "rgb": list(self.color.rgb),
            "distance": self.distance,
        }


@dataclass(frozen=True)
class RankResult:
    """Best match plus ordered suggestions; best's code never appears in rest."""
    best: Match
    rest: Tuple[Match, ...]
    
    @property
    def matches(self) -> Tuple[Match, ...]:
        return (self.best,) + self.rest
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "best": self.best.to_dict(),
            "suggestions": [m.to_dict() for m in self.rest],
        }


def ensure_palette(palette: Union[Palette, Iterable[Color], None]) -> Palette:
    """Accept a Palette or a plain sequence of Colors; reject empty input."""
    if isinstance(palette, Palette):
        return palette
    if palette is None:
        raise InvalidPalette("No palette provided")
    return Palette(palette)


def rank(query: ColorLike,
         palette: Union[Palette, Iterable[Color]],
         k: Optional[int] = None,
         metric: MetricLike = None) -> RankResult:
    """
    Rank palette colors by distance to a query color.
    
    Distances are sorted ascending with a stable sort, so equal distances
    keep palette insertion order. Suggestions are filtered by code so the
    best entry cannot reappear among them.
    
    Args:
        query: Query color as Color, (R, G, B) tuple or array
        palette: Reference palette
        k: Total matches wanted, best included (default from config)
        metric: DistanceMetric or its name (default from config)
        
    Returns:
        RankResult whose rest has length min(k - 1, len(palette) - 1)
        
    Raises:
        InvalidOptions: If k <= 0 or metric is unknown
        InvalidPalette: If the palette is empty
        InvalidPixel: If the query is not a valid RGB color
    """
    if k is None:
        k = config.SUGGESTION_COUNT
    if not Config.validate_positive(k):
        raise InvalidOptions(f"k must be a positive integer, got {k!r}")
    
    palette = ensure_palette(palette)
    metric = DistanceMetric.parse(metric)
    
    distances = distances_to_palette(query, palette, metric)
    order = np.argsort(distances, kind="stable")
    
    best_index = int(order[0])
    best = Match(color=palette[best_index], distance=float(distances[best_index]))
    
    limit = min(k - 1, len(palette) - 1)
    rest = []
    for i in order[1:]:
        if len(rest) >= limit:
            break
        color = palette[int(i)]
        if color.code == best.color.code:
            continue
        rest.append(Match(color=color, distance=float(distances[i])))
    
    logger.debug(f"Ranked query against {len(palette)} colors ({metric.value}): "
                 f"best={best.color.code} d={best.distance:.2f}, "
                 f"suggestions={[m.color.code for m in rest]}")
    
    return RankResult(best=best, rest=tuple(rest))


def nearest(query: ColorLike,
            palette: Union[Palette, Iterable[Color]],
            metric: MetricLike = None) -> Match:
    """Best palette match for a query color."""
    return rank(query, palette, k=1, metric=metric).best
