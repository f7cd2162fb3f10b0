"""
SSOT (Single Source of Truth) schemas for the deduplication engine.

These canonical schemas are the ONLY models used across all modules.
"""

from .bill_record import (
    KEY_ATTACHMENT_ID,
    KEY_EXTRACTION_CONFIDENCE,
    KEY_ID,
    KEY_MERGED_FROM,
    KEY_ORIGIN_TYPE,
    KEY_SOURCE_DOCUMENT_ID,
    RESERVED_KEYS,
    BillRecord,
    CanonicalBill,
    FieldMapping,
    OriginType,
)

__all__ = [
    "BillRecord",
    "CanonicalBill",
    "FieldMapping",
    "OriginType",
    "RESERVED_KEYS",
    "KEY_ID",
    "KEY_SOURCE_DOCUMENT_ID",
    "KEY_ORIGIN_TYPE",
    "KEY_ATTACHMENT_ID",
    "KEY_EXTRACTION_CONFIDENCE",
    "KEY_MERGED_FROM",
]
