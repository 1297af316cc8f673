"""Domain models built on decoded FITS documents."""

from exoscope.domain.lightcurve import LightCurveData, extract_lightcurve
from exoscope.domain.metadata import (
    ObservationSummary,
    card_to_dict,
    format_card,
    iter_raw_cards,
    summarize_observation,
)

__all__ = [
    "LightCurveData",
    "extract_lightcurve",
    "ObservationSummary",
    "summarize_observation",
    "iter_raw_cards",
    "format_card",
    "card_to_dict",
]
