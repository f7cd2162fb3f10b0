"""Merge resolver: combine a matched PDF/email record pair into one record.

Each field is resolved independently by a "select best" rule that depends
on the value type and on what the field means:

- Strings: skip placeholders, prefer a real vendor over a generic term,
  prefer a clearly longer value, else the PDF value.
- Numbers: skip zeros; for amounts prefer more decimal precision when the
  values agree, the larger magnitude when they do not; else the PDF value.
- Dates: skip unparseable sides; for due dates prefer the future one; avoid
  a value that equals today (a common extractor default); else the PDF value.
- Anything else: the PDF value.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable

from ..config import MergingConfig
from ..fields.resolver import FieldRole, FieldTypeMap, infer_field_role
from ..fields.values import parse_amount, parse_date
from ..schemas.bill_record import BillRecord, OriginType

logger = logging.getLogger(__name__)

_MISSING = object()


def new_record_id() -> str:
    return uuid.uuid4().hex


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _decimal_places(value: int | float | Decimal) -> int:
    exponent = Decimal(str(value)).as_tuple().exponent
    return -exponent if isinstance(exponent, int) and exponent < 0 else 0


class MergeResolver:
    """Builds combined records from matched (pdf, email) pairs.

    Deterministic for a fixed clock and id factory; never mutates inputs.
    """

    def __init__(
        self,
        field_map: FieldTypeMap | None = None,
        config: MergingConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
        id_factory: Callable[[], str] = new_record_id,
    ) -> None:
        """Initialize the merge resolver.

        Args:
            field_map: Role -> field names, used to recognise what a field
                means. Name heuristics apply when None.
            config: Merge heuristics (defaults if None).
            clock: Source of "now" for future/today date checks.
            id_factory: Source of ids for combined records.
        """
        config = config or MergingConfig()
        self.field_map = field_map
        self.length_ratio = config.length_ratio
        self.amount_tolerance = Decimal(str(config.amount_tolerance))
        self.generic_vendor_terms = frozenset(t.lower() for t in config.generic_vendor_terms)
        self.placeholder_values = frozenset(config.placeholder_values)
        self.clock = clock
        self.id_factory = id_factory

    def merge(self, pdf_record: BillRecord, email_record: BillRecord) -> BillRecord:
        """Combine a matched pair into a new ``combined`` record."""
        fields: dict[str, Any] = dict(email_record.fields)
        names = list(email_record.fields) + [
            name for name in pdf_record.fields if name not in email_record.fields
        ]

        for name in names:
            fields[name] = self.select_best(
                name,
                pdf_record.fields.get(name, _MISSING),
                email_record.fields.get(name, _MISSING),
            )

        confidence = max(
            pdf_record.extraction_confidence or 0.0,
            email_record.extraction_confidence or 0.0,
            0.0,
        )

        merged = BillRecord(
            id=self.id_factory(),
            source_document_id=email_record.source_document_id or pdf_record.source_document_id,
            origin_type=OriginType.COMBINED,
            attachment_id=pdf_record.attachment_id,
            extraction_confidence=confidence,
            fields=fields,
            merged_from=pdf_record.contributor_ids + email_record.contributor_ids,
        )
        logger.debug(
            "Merged pdf record %s with email record %s into %s (%d fields)",
            pdf_record.id,
            email_record.id,
            merged.id,
            len(fields),
        )
        return merged

    def select_best(self, field_name: str, pdf_value: Any, email_value: Any) -> Any:
        """Choose the better of two values for one field.

        Either value may be ``_MISSING``/None when only one side has it.
        """
        if pdf_value is _MISSING or pdf_value is None:
            return None if email_value is _MISSING else email_value
        if email_value is _MISSING or email_value is None:
            return pdf_value

        role = self._role_of(field_name)

        if self._is_date_field(role, pdf_value, email_value):
            chosen = self._select_date(role, pdf_value, email_value)
            if chosen is not _MISSING:
                return chosen

        if isinstance(pdf_value, str) and isinstance(email_value, str):
            return self._select_string(field_name, role, pdf_value, email_value)

        if _is_number(pdf_value) and _is_number(email_value):
            return self._select_number(field_name, role, pdf_value, email_value)

        return pdf_value

    def _role_of(self, field_name: str) -> FieldRole | None:
        if self.field_map is not None:
            role = self.field_map.role_of(field_name)
            if role is not None:
                return role
        return infer_field_role(field_name)

    def _is_placeholder(self, value: str) -> bool:
        stripped = value.strip()
        return stripped == "" or stripped in self.placeholder_values

    def _select_string(
        self, field_name: str, role: FieldRole | None, pdf_value: str, email_value: str
    ) -> str:
        if self._is_placeholder(pdf_value):
            return email_value
        if self._is_placeholder(email_value):
            return pdf_value

        lower_name = field_name.lower()
        if role == FieldRole.VENDOR or any(
            k in lower_name for k in ("vendor", "issuer", "company")
        ):
            pdf_generic = pdf_value.strip().lower() in self.generic_vendor_terms
            email_generic = email_value.strip().lower() in self.generic_vendor_terms
            if pdf_generic and not email_generic:
                return email_value
            if email_generic and not pdf_generic:
                return pdf_value

        # A clearly longer value is assumed to be more detailed
        if len(pdf_value) > len(email_value) * self.length_ratio:
            return pdf_value
        if len(email_value) > len(pdf_value) * self.length_ratio:
            return email_value

        return pdf_value

    def _select_number(
        self,
        field_name: str,
        role: FieldRole | None,
        pdf_value: int | float | Decimal,
        email_value: int | float | Decimal,
    ) -> int | float | Decimal:
        if pdf_value == 0:
            return email_value
        if email_value == 0:
            return pdf_value

        lower_name = field_name.lower()
        if role == FieldRole.AMOUNT or any(
            k in lower_name for k in ("amount", "total", "price")
        ):
            pdf_amount = parse_amount(pdf_value)
            email_amount = parse_amount(email_value)
            if pdf_amount is None or email_amount is None:
                return pdf_value if email_amount is None else email_value

            diff = abs(pdf_amount - email_amount) / max(abs(pdf_amount), abs(email_amount))
            if diff <= self.amount_tolerance:
                if _decimal_places(email_value) > _decimal_places(pdf_value):
                    return email_value
                return pdf_value

            # Truncated or partial extraction yields the smaller value
            return pdf_value if abs(pdf_amount) >= abs(email_amount) else email_value

        return pdf_value

    def _is_date_field(self, role: FieldRole | None, pdf_value: Any, email_value: Any) -> bool:
        if isinstance(pdf_value, date) or isinstance(email_value, date):
            return True
        if role in (FieldRole.DATE, FieldRole.DUE_DATE):
            return not (_is_number(pdf_value) or _is_number(email_value))
        return False

    def _select_date(self, role: FieldRole | None, pdf_value: Any, email_value: Any) -> Any:
        """Date rule; returns ``_MISSING`` when neither side is a date."""
        pdf_date = parse_date(pdf_value)
        email_date = parse_date(email_value)

        if pdf_date is None and email_date is None:
            return _MISSING
        if pdf_date is None:
            return email_value
        if email_date is None:
            return pdf_value

        today = self.clock().date()

        if role == FieldRole.DUE_DATE:
            pdf_future = pdf_date > today
            email_future = email_date > today
            if pdf_future and not email_future:
                return pdf_value
            if email_future and not pdf_future:
                return email_value

        # Today's date is a common extractor default, not a real value
        pdf_today = pdf_date == today
        email_today = email_date == today
        if pdf_today and not email_today:
            return email_value
        if email_today and not pdf_today:
            return pdf_value

        return pdf_value
