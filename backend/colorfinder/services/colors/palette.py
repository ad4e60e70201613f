"""
Reference Palette Module

Immutable, ordered collection of reference colors. Insertion order is the
tie-break order for equal distances. RGB and Lab arrays are computed once
per palette since entries never change after load.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

import numpy as np
from loguru import logger
from pydantic import ValidationError

from colorfinder.config import config
from colorfinder.errors import InvalidPalette
from colorfinder.schemas import PaletteRecord
from .conversions import rgb_to_lab


# Sample reference palette
SAMPLE_PALETTE_RECORDS: List[Dict[str, Any]] = [
    {"code": "001", "name": "Bright White", "hex": "#FFFFFF", "r": 255, "g": 255, "b": 255},
    {"code": "002", "name": "Jet Black", "hex": "#000000", "r": 0, "g": 0, "b": 0},
    {"code": "003", "name": "Scarlet Red", "hex": "#FF2400", "r": 255, "g": 36, "b": 0},
    {"code": "004", "name": "Sky Blue", "hex": "#87CEEB", "r": 135, "g": 206, "b": 235},
    {"code": "005", "name": "Lime Green", "hex": "#32CD32", "r": 50, "g": 205, "b": 50},
    {"code": "006", "name": "Sunshine Yellow", "hex": "#FFFD37", "r": 255, "g": 253, "b": 55},
    {"code": "007", "name": "Royal Purple", "hex": "#7851A9", "r": 120, "g": 81, "b": 169},
    {"code": "008", "name": "Orange Flame", "hex": "#FF6700", "r": 255, "g": 103, "b": 0},
    {"code": "009", "name": "Ocean Teal", "hex": "#008080", "r": 0, "g": 128, "b": 128},
    {"code": "010", "name": "Chocolate Brown", "hex": "#7B3F00", "r": 123, "g": 63, "b": 0},
]


@dataclass(frozen=True)
class Color:
    """A reference color owned by a Palette."""
    code: str
    name: str
    hex: str
    r: int
    g: int
    b: int
    
    @property
    def rgb(self) -> Tuple[int, int, int]:
        return (self.r, self.g, self.b)
    
    @classmethod
    def from_record(cls, record: PaletteRecord) -> "Color":
        return cls(
            code=record.code,
            name=record.name,
            hex=record.hex.upper(),
            r=record.r,
            g=record.g,
            b=record.b
        )


class Palette:
    """
    Ordered, read-only sequence of reference colors.
    
    Invariants: non-empty and codes unique. Shared across calls without
    locking since it is never mutated after construction.
    """
    
    def __init__(self, colors: Iterable[Color]):
        colors = tuple(colors)
        if not colors:
            raise InvalidPalette("Palette must contain at least one color")
        
        index: Dict[str, int] = {}
        for i, color in enumerate(colors):
            if color.code in index:
                raise InvalidPalette(f"Duplicate palette code: {color.code}")
            index[color.code] = i
        
        self._colors = colors
        self._index = index
        
        rgb = np.array([c.rgb for c in colors], dtype=np.float64)
        lab = rgb_to_lab(rgb)
        rgb.setflags(write=False)
        lab.setflags(write=False)
        self._rgb = rgb
        self._lab = lab
        
        logger.debug(f"Palette built with {len(colors)} colors")
    
    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "Palette":
        """
        Validate static palette records and build a Palette.
        
        Args:
            records: Iterable of {code, name, hex, r, g, b} mappings
            
        Returns:
            Palette in record order
            
        Raises:
            InvalidPalette: If any record is malformed, codes repeat, or no records are given
        """
        colors = []
        for position, record in enumerate(records):
            try:
                validated = PaletteRecord.model_validate(record)
            except ValidationError as e:
                raise InvalidPalette(f"Invalid palette record at position {position}: {e}") from e
            colors.append(Color.from_record(validated))
        return cls(colors)
    
    @property
    def colors(self) -> Tuple[Color, ...]:
        return self._colors
    
    @property
    def codes(self) -> Tuple[str, ...]:
        return tuple(c.code for c in self._colors)
    
    @property
    def rgb_array(self) -> np.ndarray:
        """(N, 3) float array of palette RGB values, read-only."""
        return self._rgb
    
    @property
    def lab_array(self) -> np.ndarray:
        """(N, 3) float array of palette Lab values, read-only."""
        return self._lab
    
    def get(self, code: str) -> Optional[Color]:
        i = self._index.get(code)
        return None if i is None else self._colors[i]
    
    def index_of(self, code: str) -> int:
        try:
            return self._index[code]
        except KeyError:
            raise KeyError(f"Unknown palette code: {code}")
    
    def __len__(self) -> int:
        return len(self._colors)
    
    def __iter__(self) -> Iterator[Color]:
        return iter(self._colors)
    
    def __getitem__(self, i: int) -> Color:
        return self._colors[i]
    
    def __contains__(self, item: Union[str, Color]) -> bool:
        code = item.code if isinstance(item, Color) else item
        return code in self._index
    
    def __repr__(self) -> str:
        return f"Palette({len(self._colors)} colors: {', '.join(self.codes)})"


def load_palette(path: Union[str, Path]) -> Palette:
    """
    Load a palette from a JSON file.
    
    The file holds either a list of records or an object with a "colors" list.
    
    Raises:
        InvalidPalette: If the document is not a list of valid records
        OSError: If the file cannot be read
    """
    path = Path(path)
    logger.info(f"Loading palette from {path}")
    
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidPalette(f"Palette file {path} is not valid JSON: {e}") from e
    
    if isinstance(data, dict):
        data = data.get("colors")
    if not isinstance(data, list):
        raise InvalidPalette(f"Palette file {path} must contain a list of color records")
    
    palette = Palette.from_records(data)
    logger.info(f"Loaded palette with {len(palette)} colors")
    return palette


def default_palette() -> Palette:
    """Build the palette named by COLORFINDER_PALETTE_PATH, or the sample palette."""
    if config.PALETTE_PATH:
        return load_palette(config.PALETTE_PATH)
    return Palette.from_records(SAMPLE_PALETTE_RECORDS)
