"""
ColorFinder Configuration
Manages environment variables and defaults for matching and extraction.
"""
import numbers
import os
from typing import Literal, Optional


class Config:
    """Configuration class for ColorFinder services."""
    
    # Logging
    LOG_LEVEL: str = os.environ.get("COLORFINDER_LOG_LEVEL", "INFO")
    
    # Matching defaults
    DEFAULT_METRIC: Literal["rgb", "lab"] = os.environ.get("COLORFINDER_DEFAULT_METRIC", "rgb")
    SUGGESTION_COUNT: int = int(os.environ.get("COLORFINDER_SUGGESTION_COUNT", "4"))  # 1 best + 3 suggestions
    
    # Extraction defaults
    DEFAULT_STRATEGY: Literal["strided_dedup", "frequency", "kmeans"] = os.environ.get(
        "COLORFINDER_DEFAULT_STRATEGY", "strided_dedup"
    )
    SAMPLE_STRIDE: int = int(os.environ.get("COLORFINDER_SAMPLE_STRIDE", "100"))  # pixels, 400 bytes of RGBA
    DEDUP_THRESHOLD: float = float(os.environ.get("COLORFINDER_DEDUP_THRESHOLD", "50"))
    MAX_COLORS: int = int(os.environ.get("COLORFINDER_MAX_COLORS", "6"))
    TOP_N: int = int(os.environ.get("COLORFINDER_TOP_N", "10"))
    KMEANS_CLUSTERS: int = int(os.environ.get("COLORFINDER_KMEANS_CLUSTERS", "5"))
    KMEANS_ITERATIONS: int = int(os.environ.get("COLORFINDER_KMEANS_ITERATIONS", "10"))
    CHUNK_SIZE: int = int(os.environ.get("COLORFINDER_CHUNK_SIZE", "4096"))
    
    # Image decoding
    MAX_EDGE: int = int(os.environ.get("COLORFINDER_MAX_EDGE", "1024"))
    
    # Static palette data (JSON array of {code, name, hex, r, g, b}); sample palette when unset
    PALETTE_PATH: Optional[str] = os.environ.get("COLORFINDER_PALETTE_PATH")
    
    SUPPORTED_METRICS = ["rgb", "lab"]
    SUPPORTED_STRATEGIES = ["strided_dedup", "frequency", "kmeans"]
    
    @classmethod
    def validate_metric(cls, metric: str) -> bool:
        """Validate distance metric name."""
        return metric in cls.SUPPORTED_METRICS
    
    @classmethod
    def validate_strategy(cls, strategy: str) -> bool:
        """Validate extraction strategy name."""
        return strategy in cls.SUPPORTED_STRATEGIES
    
    @classmethod
    def validate_positive(cls, value: int) -> bool:
        """Validate a count, stride or size parameter (numpy integers included)."""
        return isinstance(value, numbers.Integral) and not isinstance(value, bool) and value > 0


# Global config instance
config = Config()
