"""
Canonical bill record schema (SSOT).

A BillRecord is one candidate bill produced by an upstream extractor
(email-body parser or PDF-attachment parser). Identity and provenance live
in reserved attributes; everything the extractor found lives in the
``fields`` side-table, keyed by whatever field name the extractor or the
user's schema used (``vendor``, ``issuer_name``, ``total_amount``, ...).

Records are treated as immutable inputs: the engine only ever builds new
records, it never edits one it was given.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

logger = logging.getLogger(__name__)

# Wire keys of the reserved attributes (as produced by the extractors)
KEY_ID = "id"
KEY_SOURCE_DOCUMENT_ID = "sourceDocumentId"
KEY_ORIGIN_TYPE = "originType"
KEY_ATTACHMENT_ID = "attachmentId"
KEY_EXTRACTION_CONFIDENCE = "extractionConfidence"
KEY_MERGED_FROM = "mergedFrom"

# Accepted aliases for the reserved wire keys
_SOURCE_DOCUMENT_ID_KEYS = (KEY_SOURCE_DOCUMENT_ID, "source_document_id", "emailId")
_ORIGIN_TYPE_KEYS = (KEY_ORIGIN_TYPE, "origin_type")
_ATTACHMENT_ID_KEYS = (KEY_ATTACHMENT_ID, "attachment_id")
_EXTRACTION_CONFIDENCE_KEYS = (KEY_EXTRACTION_CONFIDENCE, "extraction_confidence")
_MERGED_FROM_KEYS = (KEY_MERGED_FROM, "merged_from")

# Legacy nested provenance object: {type, messageId, attachmentId}
KEY_SOURCE = "source"

RESERVED_KEYS = frozenset(
    {KEY_ID}
    | set(_SOURCE_DOCUMENT_ID_KEYS)
    | set(_ORIGIN_TYPE_KEYS)
    | set(_ATTACHMENT_ID_KEYS)
    | set(_EXTRACTION_CONFIDENCE_KEYS)
    | set(_MERGED_FROM_KEYS)
)


class OriginType(str, Enum):
    """Which extractor produced a record."""

    EMAIL = "email"
    PDF = "pdf"
    COMBINED = "combined"
    MANUAL = "manual"


@dataclass(frozen=True)
class FieldMapping:
    """
    User-defined field configuration entry.

    ``field_type`` is normally one of the canonical roles. Legacy storage
    also carries value types here ("text", "number", "date"); those are not
    roles and the role is then inferred from ``name``.
    """

    name: str
    field_type: str | None = None
    display_name: str | None = None
    is_enabled: bool = True
    display_order: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FieldMapping:
        """Create from a configuration-storage row."""
        if not data.get("name"):
            raise ValueError("field mapping requires a non-empty name")
        order = data.get("display_order")
        return cls(
            name=str(data["name"]),
            field_type=data.get("field_type") or None,
            display_name=data.get("display_name"),
            is_enabled=bool(data.get("is_enabled", True)),
            display_order=int(order) if order is not None else None,
        )


@dataclass(frozen=True)
class BillRecord:
    """One candidate bill.

    Attributes:
        id: Unique record identifier.
        source_document_id: Originating document (email message) id.
        origin_type: Extractor that produced the record.
        attachment_id: PDF attachment id (pdf and combined records only).
        extraction_confidence: Extractor confidence in [0, 1], if reported.
        fields: Dynamic field values, verbatim.
        merged_from: Ids of the records a combined record was built from.
    """

    id: str
    source_document_id: str | None = None
    origin_type: OriginType = OriginType.EMAIL
    attachment_id: str | None = None
    extraction_confidence: float | None = None
    fields: Mapping[str, Any] = field(default_factory=dict)
    merged_from: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("BillRecord requires a non-empty id")
        if not isinstance(self.origin_type, OriginType):
            object.__setattr__(self, "origin_type", OriginType(self.origin_type))
        # Private copy so a caller mutating its dict cannot change the record
        object.__setattr__(self, "fields", dict(self.fields))

    def get(self, name: str, default: Any = None) -> Any:
        """Get a dynamic field value."""
        return self.fields.get(name, default)

    def __contains__(self, name: object) -> bool:
        return name in self.fields

    @property
    def is_pdf_side(self) -> bool:
        """True for PDF records and for combined records built from one."""
        if self.origin_type == OriginType.PDF:
            return True
        return self.origin_type == OriginType.COMBINED and self.attachment_id is not None

    @property
    def contributor_ids(self) -> tuple[str, ...]:
        """Ids of the original records represented by this record."""
        return self.merged_from or (self.id,)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BillRecord:
        """Create from an extractor's flat dictionary.

        An unrecognised origin is classified like a missing one: PDF when
        the record has an attachment id, email otherwise.

        Raises:
            ValueError: If the record has no id.
        """
        record_id = data.get(KEY_ID)
        if record_id is None or str(record_id) == "":
            raise ValueError("bill record is missing its id")

        raw_source = data.get(KEY_SOURCE)
        source = raw_source if isinstance(raw_source, Mapping) else {}

        document_id = _first(data, _SOURCE_DOCUMENT_ID_KEYS) or source.get("messageId")
        attachment_id = _first(data, _ATTACHMENT_ID_KEYS) or source.get("attachmentId")
        confidence = _first(data, _EXTRACTION_CONFIDENCE_KEYS)

        origin = _parse_origin(_first(data, _ORIGIN_TYPE_KEYS) or source.get("type"))
        if origin is None:
            # Attachment id without a known origin means the PDF parser
            origin = OriginType.PDF if attachment_id not in (None, "") else OriginType.EMAIL
            logger.debug(
                "Record %s has no known origin type; treating as %s", record_id, origin.value
            )

        merged_from = _first(data, _MERGED_FROM_KEYS) or ()
        if isinstance(merged_from, str):
            merged_from = (merged_from,)

        fields = {
            k: v
            for k, v in data.items()
            if k not in RESERVED_KEYS and not (k == KEY_SOURCE and isinstance(v, Mapping))
        }

        return cls(
            id=str(record_id),
            source_document_id=str(document_id) if document_id not in (None, "") else None,
            origin_type=origin,
            attachment_id=str(attachment_id) if attachment_id not in (None, "") else None,
            extraction_confidence=float(confidence) if confidence is not None else None,
            fields=fields,
            merged_from=tuple(str(i) for i in merged_from),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable flat dictionary."""
        result: dict[str, Any] = {
            KEY_ID: self.id,
            KEY_SOURCE_DOCUMENT_ID: self.source_document_id,
            KEY_ORIGIN_TYPE: self.origin_type.value,
        }
        if self.attachment_id is not None:
            result[KEY_ATTACHMENT_ID] = self.attachment_id
        if self.extraction_confidence is not None:
            result[KEY_EXTRACTION_CONFIDENCE] = self.extraction_confidence
        if self.merged_from:
            result[KEY_MERGED_FROM] = list(self.merged_from)
        for name, value in self.fields.items():
            result[name] = _serialize(value)
        return result


@dataclass
class CanonicalBill:
    """Typed view of a record over the seven canonical roles.

    Role attributes hold the best value found for the role; ``extra`` holds
    every field that is not read by any role, so nothing is lost.
    """

    id: str
    origin_type: OriginType
    source_document_id: str | None = None
    vendor: Any = None
    amount: Any = None
    date: Any = None
    due_date: Any = None
    invoice_number: Any = None
    account_number: Any = None
    category: Any = None
    extra: dict[str, Any] = field(default_factory=dict)


def _first(data: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _parse_origin(value: Any) -> OriginType | None:
    if value is None or isinstance(value, OriginType):
        return value
    try:
        return OriginType(str(value).strip().lower())
    except ValueError:
        logger.debug("Unknown origin type %r", value)
        return None


def _serialize(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value
