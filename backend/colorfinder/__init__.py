"""
ColorFinder

Palette matching and dominant-color extraction for uploaded images.
Ranks a sampled color against a fixed reference palette and summarizes
an image's color content as a small set of palette matches.
"""

__version__ = "1.0.0"
