"""Local error taxonomy for exoscope.

The decoder has a single structural failure ("no binary table"); everything
else degrades locally (missing cells, dropped columns).  Errors carry a small
frozen envelope so applications can translate them into their own formats.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ErrorType(str, Enum):
    NO_TABLE = "NO_TABLE"
    INVALID_INPUT = "INVALID_INPUT"
    TRUNCATED_HEADER = "TRUNCATED_HEADER"
    MISSING_COLUMN = "MISSING_COLUMN"


class ErrorEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    type: ErrorType
    message: str
    context: dict[str, Any] = Field(default_factory=dict)


def make_error(error_type: ErrorType, message: str, **context: Any) -> ErrorEnvelope:
    return ErrorEnvelope(type=error_type, message=message, context=dict(context))


class FitsDecodeError(ValueError):
    """Base error for FITS decoding failures.

    Attributes:
        envelope: Structured error envelope with error details.
    """

    default_type: ErrorType = ErrorType.INVALID_INPUT

    def __init__(self, message: str, error_type: ErrorType | None = None, **context: Any) -> None:
        self.envelope = make_error(error_type or self.default_type, message, **context)
        super().__init__(message)

    @property
    def error_type(self) -> ErrorType:
        """Return the error type from the envelope."""
        return self.envelope.type

    @property
    def message(self) -> str:
        return self.envelope.message

    @property
    def context(self) -> dict[str, Any]:
        """Return the error context from the envelope."""
        return self.envelope.context


class NoBinaryTableError(FitsDecodeError):
    """Raised when the HDU scan ends without locating a BINTABLE extension."""

    default_type = ErrorType.NO_TABLE

    def __init__(
        self,
        message: str = "No BINTABLE extension found in FITS file.",
        *,
        hdus_scanned: int = 0,
        offset: int = 0,
    ) -> None:
        super().__init__(message, hdus_scanned=hdus_scanned, offset=offset)


class LightCurveColumnError(ValueError):
    """Raised when a decoded table lacks the columns a light curve needs."""

    def __init__(self, column: str, available: tuple[str, ...]) -> None:
        self.column = column
        self.available = available
        self.envelope = make_error(
            ErrorType.MISSING_COLUMN,
            f"Column {column!r} not found in table",
            column=column,
            available=list(available),
        )
        super().__init__(f"Column {column!r} not found; available columns: {', '.join(available) or '(none)'}")
