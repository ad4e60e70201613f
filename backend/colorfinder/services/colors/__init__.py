"""
ColorFinder Colors Module

Provides palette modelling, distance metrics, nearest-match ranking and
dominant-color extraction against a fixed reference palette.
"""

__version__ = "1.0.0"
