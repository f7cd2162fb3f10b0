"""Deduplication orchestration.

One run is a pure, in-memory transformation:

1. Group records by source document; records without a document id and
   manual records pass straight through.
2. Split each group into PDF-side and email-side records. PDF records and
   combined records carrying an attachment are PDF-side; anything else
   counts as email-side.
3. Single-origin groups are emitted unchanged.
4. Each PDF record, in input order, takes the first not-yet-consumed email
   record that matches; the pair is merged. Unmatched PDF records are
   emitted unchanged.
5. Unconsumed email records are emitted unchanged.

A failure inside one group never aborts the run: that group's records are
emitted unmerged and processing continues.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Sequence

from ..config import DedupConfig
from ..fields.resolver import FieldTypeMap, build_field_type_map
from ..matching.engine import MatchEngine
from ..merging.resolver import MergeResolver, new_record_id
from ..schemas.bill_record import BillRecord, FieldMapping, OriginType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MergeEvent:
    """One merge performed during a run."""

    pdf_id: str
    email_id: str
    combined_id: str
    rule: str | None


@dataclass
class DedupResult:
    """Result of a deduplication run."""

    records: list[BillRecord] = field(default_factory=list)
    input_count: int = 0
    dropped: int = 0
    merges: list[MergeEvent] = field(default_factory=list)
    failed_groups: list[str] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def output_count(self) -> int:
        return len(self.records)

    def summary(self) -> dict[str, Any]:
        return {
            "input_count": self.input_count,
            "output_count": self.output_count,
            "dropped": self.dropped,
            "merged": len(self.merges),
            "failed_groups": list(self.failed_groups),
            "duration_ms": self.duration_ms,
        }


class DedupOrchestrator:
    """Drives grouping, matching and merging for one batch of records.

    Usage:
        orchestrator = DedupOrchestrator(field_mappings, config)
        records = orchestrator.deduplicate(records)
    """

    def __init__(
        self,
        field_mappings: Sequence[FieldMapping] | None = None,
        config: DedupConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
        id_factory: Callable[[], str] = new_record_id,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            field_mappings: Active user field mappings. None means the
                mappings from ``config``.
            config: Engine configuration (defaults if None).
            clock: Source of "now" for the merge date rules.
            id_factory: Source of ids for combined records.
        """
        self.config = config or DedupConfig()
        if field_mappings is None:
            field_mappings = self.config.field_mappings

        self.field_map: FieldTypeMap = build_field_type_map(field_mappings)
        self.match_engine = MatchEngine(self.field_map, self.config.matching)
        self.merge_resolver = MergeResolver(
            self.field_map,
            self.config.merging,
            clock=clock,
            id_factory=id_factory,
        )

    def deduplicate(self, records: Iterable[BillRecord | Mapping[str, Any]]) -> list[BillRecord]:
        """Deduplicate a batch and return the output records."""
        return self.run(records).records

    def run(self, records: Iterable[BillRecord | Mapping[str, Any]]) -> DedupResult:
        """Deduplicate a batch and return records plus run statistics.

        Raw dictionaries are accepted and converted; a malformed one is
        the only kind of input that is ever dropped.
        """
        start_time = time.time()
        result = DedupResult()

        bills: list[BillRecord] = []
        for raw in records:
            result.input_count += 1
            if isinstance(raw, BillRecord):
                bills.append(raw)
                continue
            try:
                bills.append(BillRecord.from_dict(raw))
            except (ValueError, TypeError, AttributeError) as e:
                result.dropped += 1
                logger.warning("Dropping malformed bill record: %s", e)

        groups: dict[str, list[BillRecord]] = {}
        for bill in bills:
            if not bill.source_document_id or bill.origin_type == OriginType.MANUAL:
                result.records.append(bill)
                continue
            groups.setdefault(bill.source_document_id, []).append(bill)

        logger.debug("Grouped %d records into %d documents", len(bills), len(groups))

        for document_id, group in groups.items():
            try:
                output, merges = self._process_group(document_id, group)
            except Exception:
                logger.exception(
                    "Deduplication failed for document %s; emitting %d records unmerged",
                    document_id,
                    len(group),
                )
                result.failed_groups.append(document_id)
                result.records.extend(group)
                continue
            result.records.extend(output)
            result.merges.extend(merges)

        result.duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            "Deduplication completed: %d records in, %d out, %d merged, %d failed groups",
            result.input_count,
            result.output_count,
            len(result.merges),
            len(result.failed_groups),
        )
        return result

    def _process_group(
        self, document_id: str, group: list[BillRecord]
    ) -> tuple[list[BillRecord], list[MergeEvent]]:
        pdf_records = [r for r in group if r.is_pdf_side]
        email_records = [r for r in group if not r.is_pdf_side]

        if not pdf_records or not email_records:
            return list(group), []

        logger.debug(
            "Document %s has %d email-side and %d pdf records",
            document_id,
            len(email_records),
            len(pdf_records),
        )

        output: list[BillRecord] = []
        merges: list[MergeEvent] = []
        consumed: set[int] = set()

        for pdf_record in pdf_records:
            partner_index = None
            decision = None
            for index, email_record in enumerate(email_records):
                if index in consumed:
                    continue
                decision = self.match_engine.evaluate(pdf_record, email_record)
                if decision.matched:
                    partner_index = index
                    break

            if partner_index is None:
                logger.debug("No matching email record for pdf record %s", pdf_record.id)
                output.append(pdf_record)
                continue

            email_record = email_records[partner_index]
            combined = self.merge_resolver.merge(pdf_record, email_record)
            consumed.add(partner_index)
            output.append(combined)
            merges.append(
                MergeEvent(
                    pdf_id=pdf_record.id,
                    email_id=email_record.id,
                    combined_id=combined.id,
                    rule=decision.rule,
                )
            )

        output.extend(r for i, r in enumerate(email_records) if i not in consumed)
        return output, merges


def deduplicate_bills(
    records: Iterable[BillRecord | Mapping[str, Any]],
    field_mappings: Sequence[FieldMapping] | None = None,
    config: DedupConfig | None = None,
) -> list[BillRecord]:
    """Deduplicate one batch of extractor output (one-call entry point)."""
    return DedupOrchestrator(field_mappings, config).deduplicate(records)
