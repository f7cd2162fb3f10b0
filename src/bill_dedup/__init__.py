"""
Email/PDF bill reconciliation engine.

Decides which candidate bill records, produced independently by an
email-body extractor and a PDF-attachment extractor, describe the same
real-world bill, and merges them into single higher-confidence records.
A pure, synchronous transformation: no fetching, no persistence.
"""

from .dedup import DedupOrchestrator, DedupResult, deduplicate_bills
from .schemas import BillRecord, FieldMapping, OriginType

__version__ = "0.1.0"

__all__ = [
    "BillRecord",
    "FieldMapping",
    "OriginType",
    "DedupOrchestrator",
    "DedupResult",
    "deduplicate_bills",
]
