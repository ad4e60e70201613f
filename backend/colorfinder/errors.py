"""
ColorFinder error taxonomy.

Input errors subclass ValueError so callers validating user input can
catch them alongside other bad-value errors.
"""


class ColorFinderError(Exception):
    """Base class for all ColorFinder errors."""
    pass


class InvalidPalette(ColorFinderError, ValueError):
    """Palette is empty, has duplicate codes, or contains malformed records."""
    pass


class InvalidPixel(ColorFinderError, ValueError):
    """Channel value outside 0-255, coordinate out of bounds, or malformed pixel buffer."""
    pass


class InvalidOptions(ColorFinderError, ValueError):
    """Matching or extraction parameters out of range."""
    pass


class ExtractionCancelled(ColorFinderError, RuntimeError):
    """Extraction was cancelled by the caller before completion."""
    pass
