"""Unified anime metadata index with optional nyaa.si torrent indexing."""

__version__ = "1.0.0"
