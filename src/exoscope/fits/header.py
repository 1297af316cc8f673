"""FITS header cards and header units.

A FITS header is a sequence of fixed 80-byte ASCII cards terminated by an
``END`` card and padded to a multiple of 2880 bytes.  This module provides:

- HeaderValue: closed variant of card values (string, number, boolean, null)
- HeaderCard: one decoded key/value/comment triple
- HeaderUnit: the ordered cards of one HDU header plus its byte accounting
- decode_card: decode a single 80-byte card
- read_header_unit: decode consecutive cards until ``END``

Usage:
    from exoscope.fits.header import read_header_unit

    unit = read_header_unit(buffer, 0)
    unit.get_value("TELESCOP")  # 'TESS'
    buffer_offset = unit.padded_bytes
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TypeAlias

from exoscope.config import CARD_SIZE, KEYWORD_WIDTH, VALUE_INDICATOR_LIMIT, padded_length

logger = logging.getLogger(__name__)

_INT_RE = re.compile(r"^[+-]?\d+$")
_FLOAT_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[EeDd][+-]?\d+)?$")


@dataclass(frozen=True)
class StringValue:
    value: str

    @property
    def py(self) -> str:
        return self.value


@dataclass(frozen=True)
class NumberValue:
    value: int | float

    @property
    def py(self) -> int | float:
        return self.value


@dataclass(frozen=True)
class BoolValue:
    value: bool

    @property
    def py(self) -> bool:
        return self.value


@dataclass(frozen=True)
class NullValue:
    @property
    def py(self) -> None:
        return None


HeaderValue: TypeAlias = StringValue | NumberValue | BoolValue | NullValue

NULL = NullValue()


@dataclass(frozen=True)
class HeaderCard:
    """One decoded header card.

    Attributes:
        key: Keyword, at most 8 characters, trimmed.
        value: Typed card value; `NullValue` for commentary cards.
        comment: Text after the ``/`` separator, trimmed.
    """

    key: str
    value: HeaderValue = NULL
    comment: str = ""


@dataclass(frozen=True)
class EndCard:
    """Terminal card of a header unit."""


END_CARD = EndCard()


def parse_value_literal(literal: str) -> HeaderValue:
    """Type a value literal: quoted string, ``T``/``F``, number, or raw text.

    Numbers that overflow to infinity (``1E999``) keep their raw text.
    """
    text = literal.strip()
    if not text:
        return NULL
    if len(text) >= 2 and text.startswith("'") and text.endswith("'"):
        return StringValue(text[1:-1].replace("''", "'").strip())
    if text == "T":
        return BoolValue(True)
    if text == "F":
        return BoolValue(False)
    if _INT_RE.match(text):
        return NumberValue(int(text))
    if _FLOAT_RE.match(text):
        number = float(text.replace("D", "E").replace("d", "e"))
        if math.isfinite(number):
            return NumberValue(number)
    return StringValue(text)


def _split_quoted(rest: str) -> tuple[str, str] | None:
    """Split ``'string' / comment`` honoring doubled quotes inside the string.

    Returns None when no closing quote exists.
    """
    stripped = rest.lstrip()
    if not stripped.startswith("'"):
        return None
    i = 1
    while i < len(stripped):
        if stripped[i] == "'":
            if i + 1 < len(stripped) and stripped[i + 1] == "'":
                i += 2
                continue
            literal = stripped[: i + 1]
            tail = stripped[i + 1 :]
            slash = tail.find("/")
            comment = tail[slash + 1 :].strip() if slash >= 0 else ""
            return literal, comment
        i += 1
    return None


def decode_card(raw: bytes | bytearray | memoryview) -> HeaderCard | EndCard | None:
    """Decode one 80-byte header card.

    Bytes are mapped one-to-one onto code points, so non-ASCII garbage never
    raises.  Short input (the tail of a truncated buffer) is blank padded.

    Returns:
        `END_CARD` for the terminal card, None for blank filler cards,
        otherwise a `HeaderCard`.
    """
    line = bytes(raw[:CARD_SIZE]).decode("latin-1").ljust(CARD_SIZE)
    key = line[:KEYWORD_WIDTH].strip()
    if key == "END":
        return END_CARD
    if not key:
        return None

    eq = line.find("=")
    if eq < 0 or eq >= VALUE_INDICATOR_LIMIT:
        # COMMENT / HISTORY style card
        return HeaderCard(key=key)

    rest = line[eq + 1 :]
    quoted = _split_quoted(rest)
    if quoted is not None:
        literal, comment = quoted
    else:
        slash = rest.find("/")
        if slash >= 0:
            literal, comment = rest[:slash], rest[slash + 1 :].strip()
        else:
            literal, comment = rest, ""
    return HeaderCard(key=key, value=parse_value_literal(literal), comment=comment)


@dataclass(frozen=True)
class HeaderUnit:
    """Ordered header cards of one HDU.

    Attributes:
        cards: Cards in file order; duplicate keys are kept.
        consumed_bytes: Bytes read, including the ``END`` card.
        padded_bytes: ``consumed_bytes`` rounded up to the 2880-byte block.
        terminated: Whether an ``END`` card was found.
    """

    cards: tuple[HeaderCard, ...] = ()
    consumed_bytes: int = 0
    padded_bytes: int = 0
    terminated: bool = False
    _index: dict[str, int] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        index: dict[str, int] = {}
        for i, card in enumerate(self.cards):
            index.setdefault(card.key, i)
        object.__setattr__(self, "_index", index)

    def __len__(self) -> int:
        return len(self.cards)

    def __iter__(self) -> Iterator[HeaderCard]:
        return iter(self.cards)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key in self._index

    def keys(self) -> list[str]:
        return [card.key for card in self.cards]

    def get(self, key: str) -> HeaderCard | None:
        """Return the first card with ``key``, or None."""
        i = self._index.get(key)
        return None if i is None else self.cards[i]

    def get_value(self, key: str, default: object = None) -> object:
        """Return the plain Python value of the first ``key`` card.

        Commentary cards and absent keys give ``default``.
        """
        card = self.get(key)
        if card is None or isinstance(card.value, NullValue):
            return default
        return card.value.py

    def get_int(self, key: str, default: int) -> int:
        """Return a numeric card as int, ``default`` when absent or non-numeric."""
        card = self.get(key)
        if card is None or not isinstance(card.value, NumberValue):
            return default
        value = card.value.value
        if isinstance(value, float) and not math.isfinite(value):
            return default
        return int(value)

    def get_str(self, key: str, default: str = "") -> str:
        """Return a string card, ``default`` when absent or not a string."""
        card = self.get(key)
        if card is None or not isinstance(card.value, StringValue):
            return default
        return card.value.value


def read_header_unit(buffer: bytes | bytearray | memoryview, offset: int) -> HeaderUnit:
    """Decode consecutive cards starting at ``offset`` until ``END``.

    A buffer that ends before ``END`` is not an error: the cards collected so
    far are returned with ``terminated=False`` and a warning is logged.

    Args:
        buffer: Complete FITS byte buffer.
        offset: Byte offset of the first card.

    Returns:
        HeaderUnit whose ``padded_bytes`` is the advance to the next section.
    """
    size = len(buffer)
    cards: list[HeaderCard] = []
    pos = offset
    terminated = False
    while pos < size:
        decoded = decode_card(buffer[pos : pos + CARD_SIZE])
        pos += CARD_SIZE
        if decoded is END_CARD:
            terminated = True
            break
        if isinstance(decoded, HeaderCard):
            cards.append(decoded)

    consumed = max(pos - offset, 0)
    if not terminated and consumed > 0:
        logger.warning(
            "Header unit at offset %d has no END card (%d cards read before end of buffer)",
            offset,
            len(cards),
        )
    return HeaderUnit(
        cards=tuple(cards),
        consumed_bytes=consumed,
        padded_bytes=padded_length(consumed),
        terminated=terminated,
    )
