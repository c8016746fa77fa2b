"""Word document translation with structure-preserving reconstruction."""

__version__ = "0.1.0"
