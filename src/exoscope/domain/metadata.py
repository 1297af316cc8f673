"""Observation metadata from decoded FITS headers."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from pydantic import BaseModel, ConfigDict

from exoscope.fits.decoder import FitsDocument
from exoscope.fits.header import BoolValue, HeaderCard, NullValue, StringValue

# Summary field -> header keyword
SUMMARY_KEYS: dict[str, str] = {
    "object": "OBJECT",
    "telescope": "TELESCOP",
    "instrument": "INSTRUME",
    "date_obs": "DATE-OBS",
    "exposure": "EXPOSURE",
    "creator": "CREATOR",
}


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class ObservationSummary(FrozenModel):
    object: str | None = None
    telescope: str | None = None
    instrument: str | None = None
    date_obs: str | None = None
    exposure: float | str | None = None
    creator: str | None = None
    row_count: int = 0
    column_names: tuple[str, ...] = ()


def lookup(doc: FitsDocument, key: str) -> Any:
    """Value of ``key`` from the primary header, falling back to the extension."""
    value = doc.primary_header.get_value(key)
    if value is None:
        value = doc.extension_header.get_value(key)
    return value


def summarize_observation(doc: FitsDocument) -> ObservationSummary:
    fields: dict[str, Any] = {}
    for name, key in SUMMARY_KEYS.items():
        value = lookup(doc, key)
        if value is None or isinstance(value, bool):
            fields[name] = None if value is None else str(value)
        elif name == "exposure":
            fields[name] = value if isinstance(value, int | float) else str(value)
        else:
            fields[name] = str(value)
    return ObservationSummary(
        **fields,
        row_count=doc.row_count,
        column_names=doc.column_names,
    )


def iter_raw_cards(doc: FitsDocument) -> Iterator[HeaderCard]:
    """Primary header cards followed by extension header cards."""
    yield from doc.primary_header
    yield from doc.extension_header


def format_value(card: HeaderCard) -> str:
    value = card.value
    if isinstance(value, NullValue):
        return ""
    if isinstance(value, BoolValue):
        return "T" if value.value else "F"
    if isinstance(value, StringValue):
        return f"'{value.value}'"
    return repr(value.value)


def format_card(card: HeaderCard) -> str:
    """Render a card as ``KEY = value // comment`` for display."""
    text = f"{card.key:<8}"
    if not isinstance(card.value, NullValue):
        text += f" = {format_value(card)}"
    if card.comment:
        text += f" // {card.comment}"
    return text


def card_to_dict(card: HeaderCard) -> dict[str, Any]:
    """JSON-friendly form of a card."""
    return {"key": card.key, "value": card.value.py, "comment": card.comment}
