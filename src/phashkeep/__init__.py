"""Perceptual-hash deduplication and AVIF conversion of image collections."""

__version__ = "0.1.0"
