"""
Pipeline exceptions for file ingestion and record validation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from traffic_kpi.models import ValidationResult


class TrafficDataError(Exception):
    """Base exception for traffic ingestion failures."""


class StructuralError(TrafficDataError):
    """Raised when a file is unreadable, unsupported, or holds no usable rows."""


class ParseError(TrafficDataError):
    """Raised by parse_full when validation fails; carries the full result."""

    def __init__(self, message: str, result: ValidationResult | None = None):
        super().__init__(message)
        self.result = result


class InvalidDateFormat(TrafficDataError, ValueError):
    """Raised when a date cell matches none of the recognized formats."""
