"""Record merging, deduplication and edition grouping."""

from .editions import EditionGrouper
from .engine import ConfidenceScorer, MergeEngine, MergePolicy, default_confidence

__all__ = [
    "ConfidenceScorer",
    "EditionGrouper",
    "MergeEngine",
    "MergePolicy",
    "default_confidence",
]
