"""
Configuration management (SSOT).

This module defines ALL configuration for the bill deduplication engine.
All config keys are defined here; no other module should invent config keys.

The matching and merging thresholds encode heuristic business judgment
(1% amount tolerance, 7-day date window, 50% "more detailed" length ratio),
so they live here instead of as literals in the engine.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .schemas.bill_record import FieldMapping

logger = logging.getLogger(__name__)


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class MatchingConfig:
    """Match engine settings."""

    # Maximum relative difference |a-b| / max(|a|,|b|) for amounts to match
    amount_tolerance: float = 0.01
    # Maximum calendar days between two dates for them to match (inclusive)
    date_window_days: int = 7


@dataclass
class MergingConfig:
    """Merge resolver settings."""

    # A string this many times longer than the other is "more detailed"
    length_ratio: float = 1.5
    # Amounts within this relative difference are "the same amount"
    amount_tolerance: float = 0.01
    # Vendor values that say nothing about the actual vendor
    generic_vendor_terms: list[str] = field(
        default_factory=lambda: [
            "vendor",
            "company",
            "business",
            "merchant",
            "service provider",
            "unknown",
        ]
    )
    # String values treated as "no value"
    placeholder_values: list[str] = field(default_factory=lambda: ["Unknown", "N/A"])


@dataclass
class DedupConfig:
    """Application configuration (SSOT).

    ``field_mappings`` is the user's schema as read from configuration
    storage; an empty list means "use the default synonyms".
    """

    matching: MatchingConfig = field(default_factory=MatchingConfig)
    merging: MergingConfig = field(default_factory=MergingConfig)
    field_mappings: list[FieldMapping] = field(default_factory=list)

    def validate(self) -> list[str]:
        """Validate configuration consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if not 0 <= self.matching.amount_tolerance < 1:
            errors.append("matching.amount_tolerance must be in [0, 1)")
        if self.matching.date_window_days < 0:
            errors.append("matching.date_window_days must be >= 0")
        if self.merging.length_ratio < 1:
            errors.append("merging.length_ratio must be >= 1")
        if not 0 <= self.merging.amount_tolerance < 1:
            errors.append("merging.amount_tolerance must be in [0, 1)")

        names = [m.name for m in self.field_mappings]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            errors.append(f"duplicate field mapping names: {', '.join(duplicates)}")

        return errors


def _env_override(name: str, current, cast):
    raw = os.environ.get(name, "")
    if not raw:
        return current
    try:
        return cast(raw)
    except ValueError:
        logger.warning("Ignoring invalid value for %s: %r", name, raw)
        return current


def load_config(config_path: Path | None = None) -> DedupConfig:
    """
    Load configuration from YAML file.

    A missing file yields the defaults. Environment variables can override
    config values:
    - BILL_DEDUP_AMOUNT_TOLERANCE (matching.amount_tolerance)
    - BILL_DEDUP_DATE_WINDOW_DAYS (matching.date_window_days)
    - BILL_DEDUP_LENGTH_RATIO (merging.length_ratio)
    """
    if config_path is not None and Path(config_path).exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    # Matching config
    matching_data = data.get("matching", {}) or {}
    matching = MatchingConfig(
        amount_tolerance=_env_override(
            "BILL_DEDUP_AMOUNT_TOLERANCE",
            float(matching_data.get("amount_tolerance", 0.01)),
            float,
        ),
        date_window_days=_env_override(
            "BILL_DEDUP_DATE_WINDOW_DAYS",
            int(matching_data.get("date_window_days", 7)),
            int,
        ),
    )

    # Merging config
    merging_data = data.get("merging", {}) or {}
    defaults = MergingConfig()
    merging = MergingConfig(
        length_ratio=_env_override(
            "BILL_DEDUP_LENGTH_RATIO",
            float(merging_data.get("length_ratio", 1.5)),
            float,
        ),
        amount_tolerance=float(merging_data.get("amount_tolerance", 0.01)),
        generic_vendor_terms=list(
            merging_data.get("generic_vendor_terms", defaults.generic_vendor_terms)
        ),
        placeholder_values=list(
            merging_data.get("placeholder_values", defaults.placeholder_values)
        ),
    )

    # User field mappings
    field_mappings = load_field_mappings_data(data.get("field_mappings") or [])

    return DedupConfig(
        matching=matching,
        merging=merging,
        field_mappings=field_mappings,
    )


def load_field_mappings_data(rows: list) -> list[FieldMapping]:
    """Build FieldMapping objects from storage rows, skipping malformed ones."""
    if not isinstance(rows, list):
        logger.warning("Ignoring field mappings that are not a list: %r", rows)
        return []
    mappings: list[FieldMapping] = []
    for row in rows:
        if isinstance(row, str):
            row = {"name": row}
        if not isinstance(row, dict):
            logger.warning("Skipping malformed field mapping: %r", row)
            continue
        try:
            mappings.append(FieldMapping.from_dict(row))
        except (ValueError, TypeError) as e:
            logger.warning("Skipping malformed field mapping %r: %s", row, e)
    return mappings


def load_field_mappings(path: Path) -> list[FieldMapping]:
    """Load field mappings from a YAML or JSON file (a list of rows).

    Raises:
        OSError: If the file cannot be read.
        yaml.YAMLError: If the file is not valid YAML/JSON.
        ValueError: If the file does not hold a list of rows.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or []
    if isinstance(data, dict):
        data = data.get("field_mappings") or []
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a list of field mappings")
    return load_field_mappings_data(data)


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Bill deduplication engine configuration
#
# Thresholds are heuristics tuned on real email/PDF extractor output.
# Recalibrate here, never in code.

matching:
  amount_tolerance: 0.01        # Amounts within 1% (relative) match
  date_window_days: 7           # Dates within 7 calendar days match

merging:
  length_ratio: 1.5             # A string 50% longer is "more detailed"
  amount_tolerance: 0.01        # Amounts within 1% are the same amount
  generic_vendor_terms:         # Vendor values that name no real vendor
    - vendor
    - company
    - business
    - merchant
    - service provider
    - unknown
  placeholder_values:           # Strings treated as "no value"
    - Unknown
    - N/A

# User field mappings (empty = default synonyms for every role)
# field_type is one of: vendor, amount, date, dueDate, invoiceNumber,
# accountNumber, category. If omitted it is inferred from the name.
field_mappings: []
#  - name: issuer_name
#    field_type: vendor
#  - name: total_amount
#  - name: payment_due_date
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
