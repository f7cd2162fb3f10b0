"""Tests for the merge resolver."""

from datetime import date
from decimal import Decimal

import pytest
from conftest import make_email, make_pdf

from bill_dedup.config import MergingConfig
from bill_dedup.fields import build_field_type_map
from bill_dedup.merging import MergeResolver
from bill_dedup.schemas import BillRecord, FieldMapping, OriginType


@pytest.fixture
def resolver(default_field_map, fixed_clock, id_factory) -> MergeResolver:
    """MergeResolver with a fixed clock (2024-11-20) and deterministic ids."""
    return MergeResolver(default_field_map, clock=fixed_clock, id_factory=id_factory)


class TestSelectBestStrings:
    """String selection rules."""

    def test_placeholder_loses(self, resolver: MergeResolver) -> None:
        assert resolver.select_best("vendor", "N/A", "Acme") == "Acme"
        assert resolver.select_best("vendor", "Acme", "Unknown") == "Acme"
        assert resolver.select_best("notes", "  ", "paid") == "paid"

    def test_specific_vendor_beats_generic_term(self, resolver: MergeResolver) -> None:
        assert resolver.select_best("vendor", "Vendor", "Acme") == "Acme"
        assert resolver.select_best("issuer_name", "Acme", "company") == "Acme"

    def test_generic_rule_uses_field_map_role(self, fixed_clock) -> None:
        """A user field typed as vendor gets the generic-term rule."""
        field_map = build_field_type_map([FieldMapping(name="biller", field_type="vendor")])
        mapped = MergeResolver(field_map, clock=fixed_clock)
        unmapped = MergeResolver(build_field_type_map([]), clock=fixed_clock)

        assert mapped.select_best("biller", "company", "Acme") == "Acme"
        # No role: the longer value wins instead
        assert unmapped.select_best("biller", "company", "Acme") == "company"

    def test_clearly_longer_value_wins(self, resolver: MergeResolver) -> None:
        assert resolver.select_best("description", "Elec", "Electricity bill Nov") == (
            "Electricity bill Nov"
        )
        assert resolver.select_best("vendor", "Acme Inc", "acme") == "Acme Inc"

    def test_similar_lengths_prefer_pdf(self, resolver: MergeResolver) -> None:
        assert resolver.select_best("description", "abcd", "abcde") == "abcd"

    def test_length_ratio_boundary(self, resolver: MergeResolver) -> None:
        """Exactly 1.5x is not clearly longer."""
        assert resolver.select_best("description", "abcd", "abcdef") == "abcd"
        assert resolver.select_best("description", "abcd", "abcdefg") == "abcdefg"

    def test_configurable_length_ratio(self, fixed_clock) -> None:
        resolver = MergeResolver(config=MergingConfig(length_ratio=3.0), clock=fixed_clock)
        assert resolver.select_best("description", "abcd", "abcdefg") == "abcd"


class TestSelectBestNumbers:
    """Numeric selection rules."""

    def test_zero_loses(self, resolver: MergeResolver) -> None:
        assert resolver.select_best("amount", 0, 12.5) == 12.5
        assert resolver.select_best("quantity", 3, 0) == 3

    def test_amounts_within_tolerance_prefer_precision(self, resolver: MergeResolver) -> None:
        assert resolver.select_best("amount", 100.0, 100.25) == 100.25
        assert resolver.select_best("total_amount", Decimal("100.25"), 100) == Decimal("100.25")

    def test_precision_tie_prefers_pdf(self, resolver: MergeResolver) -> None:
        assert resolver.select_best("amount", 100.5, 100.4) == 100.5

    def test_disagreeing_amounts_prefer_larger(self, resolver: MergeResolver) -> None:
        """A truncated extraction is the smaller value."""
        assert resolver.select_best("amount", 50, 120) == 120
        assert resolver.select_best("price", 120, 50) == 120

    def test_other_numbers_prefer_pdf(self, resolver: MergeResolver) -> None:
        assert resolver.select_best("quantity", 3, 4) == 3


class TestSelectBestDates:
    """Date selection rules (clock fixed at 2024-11-20)."""

    def test_due_date_prefers_future(self, resolver: MergeResolver) -> None:
        assert resolver.select_best("due_date", "2024-11-10", "2024-12-01") == "2024-12-01"
        assert resolver.select_best("payment_deadline", "2024-12-01", "2024-11-10") == "2024-12-01"

    def test_due_date_both_future_prefers_pdf(self, resolver: MergeResolver) -> None:
        assert resolver.select_best("due_date", "2024-12-05", "2024-12-01") == "2024-12-05"

    def test_today_loses(self, resolver: MergeResolver) -> None:
        """A value equal to today is treated as an extractor default."""
        assert resolver.select_best("date", "2024-11-20", "2024-11-18") == "2024-11-18"
        assert resolver.select_best("date", date(2024, 11, 18), date(2024, 11, 20)) == date(
            2024, 11, 18
        )

    def test_dates_otherwise_prefer_pdf(self, resolver: MergeResolver) -> None:
        assert resolver.select_best("date", "2024-11-01", "2024-11-02") == "2024-11-01"

    def test_unparseable_side_loses(self, resolver: MergeResolver) -> None:
        assert resolver.select_best("date", "garbage", "2024-11-02") == "2024-11-02"
        assert resolver.select_best("invoice_date", "2024-11-02", "tbd") == "2024-11-02"

    def test_both_unparseable_fall_back_to_strings(self, resolver: MergeResolver) -> None:
        assert resolver.select_best("date", "soon", "whenever later") == "whenever later"

    def test_date_object_on_unknown_field(self, resolver: MergeResolver) -> None:
        """A date value triggers the date rule whatever the field name."""
        assert resolver.select_best("notes", date(2024, 11, 20), "2024-11-01") == "2024-11-01"


class TestSelectBestDefaults:
    """Missing sides and mixed types."""

    def test_missing_side_yields_other(self, resolver: MergeResolver) -> None:
        assert resolver.select_best("vendor", None, "Acme") == "Acme"
        assert resolver.select_best("vendor", "Acme", None) == "Acme"
        assert resolver.select_best("vendor", None, None) is None

    def test_mixed_types_prefer_pdf(self, resolver: MergeResolver) -> None:
        assert resolver.select_best("amount", "100.00", 100.5) == "100.00"
        assert resolver.select_best("tags", ["a"], ["b", "c"]) == ["a"]


class TestMerge:
    """Tests for MergeResolver.merge."""

    def test_combined_record_identity(self, resolver: MergeResolver) -> None:
        pdf = BillRecord(
            id="p1",
            source_document_id="m1",
            origin_type=OriginType.PDF,
            attachment_id="att-9",
            extraction_confidence=0.8,
            fields={"vendor": "Acme Inc", "amount": 100},
        )
        email = BillRecord(
            id="e1",
            source_document_id="m1",
            extraction_confidence=0.6,
            fields={"vendor": "acme", "amount": 100.5},
        )

        merged = resolver.merge(pdf, email)

        assert merged.id == "combined-1"
        assert merged.origin_type == OriginType.COMBINED
        assert merged.source_document_id == "m1"
        assert merged.attachment_id == "att-9"
        assert merged.extraction_confidence == 0.8
        assert merged.merged_from == ("p1", "e1")
        assert merged.get("vendor") == "Acme Inc"
        assert merged.get("amount") == 100.5

    def test_fields_from_both_sides_survive(self, resolver: MergeResolver) -> None:
        pdf = make_pdf("p1", vendor="Acme", invoice_number="INV-1")
        email = make_email("e1", vendor="Acme", notes="forwarded")

        merged = resolver.merge(pdf, email)

        assert merged.get("invoice_number") == "INV-1"
        assert merged.get("notes") == "forwarded"
        # Email field order first, then PDF-only fields
        assert list(merged.fields) == ["vendor", "notes", "invoice_number"]

    def test_missing_confidence_counts_as_zero(self, resolver: MergeResolver) -> None:
        merged = resolver.merge(make_pdf("p1"), make_email("e1"))
        assert merged.extraction_confidence == 0.0

    def test_email_document_id_preferred(self, resolver: MergeResolver) -> None:
        merged = resolver.merge(make_pdf("p1", document_id="m-pdf"), make_email("e1", None))
        assert merged.source_document_id == "m-pdf"

    def test_merged_from_flattens_combined_inputs(self, resolver: MergeResolver) -> None:
        email = BillRecord(
            id="c0",
            source_document_id="m1",
            origin_type=OriginType.COMBINED,
            merged_from=("p0", "e0"),
        )

        merged = resolver.merge(make_pdf("p1"), email)

        assert merged.merged_from == ("p1", "p0", "e0")

    def test_inputs_not_mutated(self, resolver: MergeResolver) -> None:
        pdf = make_pdf("p1", vendor="Unknown", amount=10)
        email = make_email("e1", vendor="Acme", amount=12)
        pdf_fields = dict(pdf.fields)
        email_fields = dict(email.fields)

        resolver.merge(pdf, email)

        assert dict(pdf.fields) == pdf_fields
        assert dict(email.fields) == email_fields

    def test_fresh_id_each_merge(self, resolver: MergeResolver) -> None:
        first = resolver.merge(make_pdf("p1"), make_email("e1"))
        second = resolver.merge(make_pdf("p1"), make_email("e1"))
        assert (first.id, second.id) == ("combined-1", "combined-2")

    def test_default_id_factory_is_unique(self) -> None:
        resolver = MergeResolver()
        first = resolver.merge(make_pdf("p1"), make_email("e1"))
        second = resolver.merge(make_pdf("p1"), make_email("e1"))
        assert first.id != second.id
