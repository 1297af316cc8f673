"""Utility helpers."""

from exoscope.utils.caps import downsample_points, downsample_rows

__all__ = [
    "downsample_points",
    "downsample_rows",
]
