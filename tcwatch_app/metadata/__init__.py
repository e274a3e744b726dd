"""
Content metadata aggregation.

The orchestrator lives in tcwatch_app.metadata.aggregator; import it from
there (it pulls in every provider adapter).
"""

from .errors import AggregationError, EnrichmentError, InputError, ProviderError
from .models import (
    AggregatedContent, AggregationResult, ContentMatchingParams, ContentType, ExternalIdSource,
    MediaKind, ProviderName,
)
