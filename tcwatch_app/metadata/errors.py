"""Exceptions raised by the aggregation engine and its provider adapters."""

from typing import Optional


class AggregationError(Exception):
    """Base class for engine errors."""


class InputError(AggregationError, ValueError):
    """Matching parameters are too malformed to attempt any fetch."""


class ProviderError(AggregationError):
    """A provider call failed (network, rate limit, open circuit, bad payload)."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.message = message
        self.status_code = status_code
        super().__init__(f"{provider}: {message}")


class EnrichmentError(AggregationError):
    """Knowledge-base enrichment failed; recorded as a warning."""
