"""Tests for the bill record schema."""

from datetime import date
from decimal import Decimal

import pytest

from bill_dedup.schemas import BillRecord, FieldMapping, OriginType


class TestBillRecordFromDict:
    """Tests for BillRecord.from_dict."""

    def test_reserved_keys_are_split_from_fields(self):
        """Reserved wire keys become attributes, the rest become fields."""
        record = BillRecord.from_dict(
            {
                "id": "r1",
                "sourceDocumentId": "m1",
                "originType": "pdf",
                "attachmentId": "a1",
                "extractionConfidence": 0.7,
                "vendor": "Acme",
                "total_amount": 12.5,
            }
        )

        assert record.id == "r1"
        assert record.source_document_id == "m1"
        assert record.origin_type == OriginType.PDF
        assert record.attachment_id == "a1"
        assert record.extraction_confidence == 0.7
        assert dict(record.fields) == {"vendor": "Acme", "total_amount": 12.5}

    def test_missing_id_is_malformed(self):
        """A record without an id is rejected."""
        with pytest.raises(ValueError):
            BillRecord.from_dict({"sourceDocumentId": "m1", "vendor": "Acme"})

    def test_legacy_email_id_and_source(self):
        """Legacy emailId and nested source dict are understood."""
        record = BillRecord.from_dict(
            {"id": "r1", "emailId": "m9", "source": {"type": "combined", "attachmentId": "a2"}}
        )

        assert record.source_document_id == "m9"
        assert record.origin_type == OriginType.COMBINED
        assert record.attachment_id == "a2"
        assert "source" not in record.fields

    def test_attachment_without_origin_means_pdf(self):
        """An attachment id with no explicit origin marks a PDF record."""
        record = BillRecord.from_dict({"id": "r1", "sourceDocumentId": "m1", "attachmentId": "a"})
        assert record.origin_type == OriginType.PDF

    def test_default_origin_is_email(self):
        record = BillRecord.from_dict({"id": "r1", "sourceDocumentId": "m1"})
        assert record.origin_type == OriginType.EMAIL

    def test_unknown_origin_defaults_to_email(self):
        """An unrecognised origin is kept as an email-side record."""
        record = BillRecord.from_dict(
            {"id": "r1", "sourceDocumentId": "m1", "originType": "email_body"}
        )
        assert record.origin_type == OriginType.EMAIL

    def test_unknown_origin_with_attachment_is_pdf(self):
        record = BillRecord.from_dict({"id": "r1", "originType": "fax", "attachmentId": "a1"})
        assert record.origin_type == OriginType.PDF

    def test_origin_is_case_insensitive(self):
        assert BillRecord.from_dict({"id": "r1", "originType": "PDF"}).origin_type == OriginType.PDF

    def test_merged_from_string_is_one_id(self):
        record = BillRecord.from_dict({"id": "c1", "originType": "combined", "mergedFrom": "p1"})
        assert record.merged_from == ("p1",)

    def test_plain_source_field_is_kept(self):
        """Only a nested source object is provenance; a plain string is data."""
        record = BillRecord.from_dict({"id": "r1", "source": "scanner", "vendor": "Acme"})

        assert record.get("source") == "scanner"
        assert record.origin_type == OriginType.EMAIL

    def test_empty_document_id_is_none(self):
        record = BillRecord.from_dict({"id": "r1", "sourceDocumentId": ""})
        assert record.source_document_id is None


class TestBillRecordBehaviour:
    """Tests for record immutability and serialization."""

    def test_fields_are_copied(self):
        """Mutating the caller's dict does not change the record."""
        data = {"vendor": "Acme"}
        record = BillRecord(id="r1", fields=data)
        data["vendor"] = "Changed"

        assert record.get("vendor") == "Acme"

    def test_record_is_frozen(self):
        record = BillRecord(id="r1")
        with pytest.raises(AttributeError):
            record.id = "r2"  # type: ignore[misc]

    def test_empty_id_rejected(self):
        with pytest.raises(ValueError):
            BillRecord(id="")

    def test_to_dict_serializes_dates_and_decimals(self):
        """Dates become ISO strings, Decimals become floats."""
        record = BillRecord(
            id="r1",
            source_document_id="m1",
            origin_type=OriginType.COMBINED,
            fields={"date": date(2024, 1, 15), "amount": Decimal("10.50")},
            merged_from=("a", "b"),
        )

        data = record.to_dict()

        assert data["originType"] == "combined"
        assert data["date"] == "2024-01-15"
        assert data["amount"] == 10.5
        assert data["mergedFrom"] == ["a", "b"]

    def test_to_dict_from_dict_keeps_identity(self):
        record = BillRecord(
            id="r1",
            source_document_id="m1",
            origin_type=OriginType.PDF,
            attachment_id="a1",
            extraction_confidence=0.4,
            fields={"vendor": "Acme"},
        )
        assert BillRecord.from_dict(record.to_dict()) == record

    def test_contributor_ids(self):
        """Original records contribute themselves; combined records their sources."""
        assert BillRecord(id="r1").contributor_ids == ("r1",)
        combined = BillRecord(id="c1", merged_from=("r1", "r2"))
        assert combined.contributor_ids == ("r1", "r2")


class TestFieldMapping:
    """Tests for FieldMapping.from_dict."""

    def test_from_storage_row(self):
        mapping = FieldMapping.from_dict(
            {"name": "issuer_name", "field_type": "vendor", "display_order": "2"}
        )
        assert mapping.name == "issuer_name"
        assert mapping.field_type == "vendor"
        assert mapping.display_order == 2
        assert mapping.is_enabled is True

    def test_missing_name_rejected(self):
        with pytest.raises(ValueError):
            FieldMapping.from_dict({"field_type": "vendor"})
