"""consultbook: scheduling engine for fixed-duration consultation slots."""

__version__ = "0.1.0"
