"""Size caps for decoded payloads.

Light curves routinely hold tens of thousands of cadences.  Consumers that
only need the shape of a curve (quick-look plots, remote classification
prompts) get a strided subset instead.  Each capping function:
- Keeps every ``ceil(n / max_items)``-th item, starting with the first
- Logs when reduction occurs
- Returns a new list, leaving the input untouched

Example:
    >>> from exoscope.utils.caps import downsample_points
    >>> len(downsample_points(list(range(1000)), max_points=200))
    200
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_POINTS = 200
DEFAULT_MAX_ROWS = 5000


def _stride_list(items: Sequence[T], max_items: int, context: str, cap_name: str) -> list[T]:
    """Internal helper to stride a sequence with logging."""
    if max_items < 1:
        raise ValueError(f"max_items must be positive, got {max_items}")
    if len(items) <= max_items:
        return list(items)

    step = math.ceil(len(items) / max_items)
    reduced = list(items[::step])
    context_str = f" ({context})" if context else ""
    logger.info(
        "Downsampled %s from %d to %d items (step %d)%s",
        cap_name,
        len(items),
        len(reduced),
        step,
        context_str,
    )
    return reduced


def downsample_points(
    items: Sequence[T],
    max_points: int = DEFAULT_MAX_POINTS,
    context: str = "",
) -> list[T]:
    """Reduce light-curve points to at most ``max_points``.

    Args:
        items: Points in time order.
        max_points: Maximum number of points to return. Default: 200.
        context: Additional context for the log message (e.g. object name).

    Returns:
        The points unchanged if already small enough, otherwise every
        ``ceil(n / max_points)``-th point.
    """
    return _stride_list(items, max_points, context, "points")


def downsample_rows(
    items: Sequence[T],
    max_rows: int = DEFAULT_MAX_ROWS,
    context: str = "",
) -> list[T]:
    """Reduce table rows for display output. Default cap: 5000."""
    return _stride_list(items, max_rows, context, "rows")
