"""
Deduplication module.

Groups extractor output by source document and merges PDF/email records
that describe the same bill.
"""

from .orchestrator import DedupOrchestrator, DedupResult, MergeEvent, deduplicate_bills

__all__ = [
    "DedupOrchestrator",
    "DedupResult",
    "MergeEvent",
    "deduplicate_bills",
]
