"""Masonry support design toolbox."""

__version__ = "0.1.0"
