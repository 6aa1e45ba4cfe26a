from __future__ import annotations


class ValidationError(ValueError):
    """Raised when a report request carries parameters we cannot serve."""


class AggregationError(RuntimeError):
    """Raised when a precomputed view returns something we cannot merge."""
