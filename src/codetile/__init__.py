"""codetile: token-tiling similarity detection and clustering for code submissions."""

__version__ = "0.1.0"
