"""
================================================================================
TCWatch v1.0 - Search Package
================================================================================
Batch search support for the aggregator.

Components:
  - deduplicator.py - Drops duplicate aggregation results by id or title key
================================================================================
"""

from .deduplicator import ResultDeduplicator, dedup_key, deduplicate_results

__all__ = ['ResultDeduplicator', 'dedup_key', 'deduplicate_results']
