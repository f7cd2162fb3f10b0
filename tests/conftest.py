"""Test fixtures and utilities."""

from datetime import datetime
from itertools import count

import pytest

from bill_dedup.fields import build_field_type_map
from bill_dedup.schemas import BillRecord, OriginType

# Fixed "now" for date rules
FIXED_NOW = datetime(2024, 11, 20, 10, 30, 0)


def make_pdf(record_id: str, document_id: str | None = "m1", **fields) -> BillRecord:
    """PDF-origin record helper."""
    return BillRecord(
        id=record_id,
        source_document_id=document_id,
        origin_type=OriginType.PDF,
        attachment_id=f"att-{record_id}",
        fields=fields,
    )


def make_email(record_id: str, document_id: str | None = "m1", **fields) -> BillRecord:
    """Email-origin record helper."""
    return BillRecord(
        id=record_id,
        source_document_id=document_id,
        origin_type=OriginType.EMAIL,
        fields=fields,
    )


@pytest.fixture
def fixed_clock():
    """Clock returning FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest.fixture
def id_factory():
    """Deterministic id factory: combined-1, combined-2, ..."""
    counter = count(1)
    return lambda: f"combined-{next(counter)}"


@pytest.fixture
def default_field_map():
    """Field type map built from no mappings (default synonyms)."""
    return build_field_type_map([])


@pytest.fixture
def sample_record_dicts() -> list[dict]:
    """Extractor output for two emails, one with a PDF attachment."""
    return [
        {
            "id": "email-1",
            "sourceDocumentId": "msg-100",
            "originType": "email",
            "vendor": "acme",
            "amount": 100.50,
            "date": "2024-11-02",
            "extractionConfidence": 0.6,
        },
        {
            "id": "pdf-1",
            "sourceDocumentId": "msg-100",
            "originType": "pdf",
            "attachmentId": "att-1",
            "vendor": "Acme Inc",
            "amount": 100.00,
            "date": "2024-11-01",
            "invoice_number": "INV-2024-7",
            "extractionConfidence": 0.8,
        },
        {
            "id": "email-2",
            "sourceDocumentId": "msg-200",
            "originType": "email",
            "vendor": "Globex",
            "amount": 42,
        },
    ]
