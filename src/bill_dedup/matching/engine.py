"""Match engine: decide whether a PDF record and an email record are the same bill.

Both records come from the same source document, so the question is never
"could these be related" but "is this the same bill, or a second bill in
the same email". No single signal is trusted on its own:

- Invoice number: exact equality is authoritative and short-circuits.
- Vendor: case-insensitive equality or substring containment.
- Amount: relative tolerance, zeros skipped.
- Date: calendar-day window.

Composite rule: vendor AND amount, or vendor AND date AND an exactly equal
amount. Amount or date alone never produce a match.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from ..config import MatchingConfig
from ..fields.resolver import FieldRole, FieldTypeMap
from ..fields.values import parse_amount, parse_date, values_for_role

if TYPE_CHECKING:
    from ..schemas.bill_record import BillRecord

logger = logging.getLogger(__name__)

RULE_INVOICE_NUMBER = "invoice_number"
RULE_VENDOR_AMOUNT = "vendor_amount"
RULE_VENDOR_DATE_EXACT_AMOUNT = "vendor_date_exact_amount"


@dataclass
class MatchSignal:
    """Outcome of one signal for a record pair.

    ``available`` is False when either side had no usable value; such a
    signal is neither a match nor a mismatch.
    """

    signal: str
    available: bool
    matched: bool
    detail: str


@dataclass
class MatchDecision:
    """Result of comparing a PDF record with an email record."""

    pdf_id: str
    email_id: str
    matched: bool
    rule: str | None = None
    signals: list[MatchSignal] = field(default_factory=list)

    def signal(self, name: str) -> MatchSignal | None:
        for s in self.signals:
            if s.signal == name:
                return s
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "pdf_id": self.pdf_id,
            "email_id": self.email_id,
            "matched": self.matched,
            "rule": self.rule,
            "signals": [
                {
                    "signal": s.signal,
                    "available": s.available,
                    "matched": s.matched,
                    "detail": s.detail,
                }
                for s in self.signals
            ],
        }


class MatchEngine:
    """Multi-signal matcher for records sharing a source document."""

    def __init__(
        self,
        field_map: FieldTypeMap,
        config: MatchingConfig | None = None,
    ) -> None:
        """Initialize the match engine.

        Args:
            field_map: Role -> field names for this run.
            config: Matching thresholds (defaults if None).
        """
        config = config or MatchingConfig()
        self.field_map = field_map
        self.amount_tolerance = Decimal(str(config.amount_tolerance))
        self.date_window_days = config.date_window_days

    def is_match(self, pdf_record: BillRecord, email_record: BillRecord) -> bool:
        """Return True if both records describe the same bill."""
        return self.evaluate(pdf_record, email_record).matched

    def evaluate(self, pdf_record: BillRecord, email_record: BillRecord) -> MatchDecision:
        """Evaluate all signals and the composite rule for a record pair."""
        decision = MatchDecision(pdf_id=pdf_record.id, email_id=email_record.id, matched=False)

        invoice = self._match_invoice_number(
            self._values(pdf_record, FieldRole.INVOICE_NUMBER),
            self._values(email_record, FieldRole.INVOICE_NUMBER),
        )
        decision.signals.append(invoice)
        if invoice.matched:
            decision.matched = True
            decision.rule = RULE_INVOICE_NUMBER
            logger.debug(
                "Records %s / %s match by invoice number (%s)",
                pdf_record.id,
                email_record.id,
                invoice.detail,
            )
            return decision

        vendor = self._match_vendor(
            self._values(pdf_record, FieldRole.VENDOR),
            self._values(email_record, FieldRole.VENDOR),
        )
        pdf_amounts = self._amounts(pdf_record)
        email_amounts = self._amounts(email_record)
        amount = self._match_amount(pdf_amounts, email_amounts)
        exact_amount = self._match_exact_amount(pdf_amounts, email_amounts)
        date = self._match_date(
            self._values(pdf_record, FieldRole.DATE),
            self._values(email_record, FieldRole.DATE),
        )
        decision.signals.extend([vendor, amount, exact_amount, date])

        if vendor.matched and amount.matched:
            decision.matched = True
            decision.rule = RULE_VENDOR_AMOUNT
        elif vendor.matched and date.matched and exact_amount.matched:
            decision.matched = True
            decision.rule = RULE_VENDOR_DATE_EXACT_AMOUNT

        logger.debug(
            "Records %s / %s: vendor=%s amount=%s date=%s -> %s",
            pdf_record.id,
            email_record.id,
            vendor.detail,
            amount.detail,
            date.detail,
            decision.rule or "no match",
        )
        return decision

    def _values(self, record: BillRecord, role: FieldRole) -> list[Any]:
        return values_for_role(record, role, self.field_map)

    def _amounts(self, record: BillRecord) -> list[Decimal]:
        parsed = (parse_amount(v) for v in self._values(record, FieldRole.AMOUNT))
        return [a for a in parsed if a is not None]

    def _match_invoice_number(self, pdf_values: list, email_values: list) -> MatchSignal:
        """Exact, case-sensitive string equality of any pair."""
        if not pdf_values or not email_values:
            return MatchSignal("invoice_number", False, False, "missing")

        for pdf_value in pdf_values:
            for email_value in email_values:
                if str(pdf_value) == str(email_value):
                    return MatchSignal("invoice_number", True, True, f"exact: {pdf_value}")

        return MatchSignal("invoice_number", True, False, "no match")

    def _match_vendor(self, pdf_values: list, email_values: list) -> MatchSignal:
        """Case-insensitive equality or containment of any pair."""
        pdf_names = _normalized_strings(pdf_values)
        email_names = _normalized_strings(email_values)
        if not pdf_names or not email_names:
            return MatchSignal("vendor", False, False, "missing")

        for pdf_name in pdf_names:
            for email_name in email_names:
                if pdf_name == email_name:
                    return MatchSignal("vendor", True, True, "exact")
                # Handles "acme" vs "acme inc"
                if pdf_name in email_name or email_name in pdf_name:
                    return MatchSignal("vendor", True, True, "contains")

        return MatchSignal("vendor", True, False, "no match")

    def _match_amount(self, pdf_amounts: list[Decimal], email_amounts: list[Decimal]) -> MatchSignal:
        """Any non-zero pair within the relative tolerance."""
        if not pdf_amounts or not email_amounts:
            return MatchSignal("amount", False, False, "missing")

        for a in pdf_amounts:
            for b in email_amounts:
                if a == 0 or b == 0:
                    continue
                diff = abs(a - b) / max(abs(a), abs(b))
                if diff <= self.amount_tolerance:
                    return MatchSignal("amount", True, True, f"{a} vs {b} ({diff:.2%})")

        return MatchSignal("amount", True, False, "outside tolerance")

    def _match_exact_amount(
        self, pdf_amounts: list[Decimal], email_amounts: list[Decimal]
    ) -> MatchSignal:
        if not pdf_amounts or not email_amounts:
            return MatchSignal("exact_amount", False, False, "missing")

        for a in pdf_amounts:
            if a in email_amounts:
                return MatchSignal("exact_amount", True, True, f"exact: {a}")

        return MatchSignal("exact_amount", True, False, "no exact pair")

    def _match_date(self, pdf_values: list, email_values: list) -> MatchSignal:
        """Any pair within the calendar-day window (inclusive)."""
        pdf_dates = [d for d in (parse_date(v) for v in pdf_values) if d is not None]
        email_dates = [d for d in (parse_date(v) for v in email_values) if d is not None]
        if not pdf_dates or not email_dates:
            return MatchSignal("date", False, False, "missing")

        for d1 in pdf_dates:
            for d2 in email_dates:
                days = abs((d1 - d2).days)
                if days <= self.date_window_days:
                    return MatchSignal("date", True, True, f"{days} days")

        return MatchSignal("date", True, False, f">{self.date_window_days} days")


def _normalized_strings(values: list) -> list[str]:
    result = []
    for value in values:
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized:
                result.append(normalized)
    return result
