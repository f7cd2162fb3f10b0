"""
CLI main entry point.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import yaml

from ..config import (
    ConfigValidationError,
    DedupConfig,
    create_default_config,
    load_config,
    load_field_mappings,
)
from ..dedup import DedupOrchestrator
from ..fields import build_field_type_map
from ..schemas import FieldMapping

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="bill-dedup",
        description="Merge duplicate bills extracted from email bodies and PDF attachments",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # dedupe command
    dedupe_parser = subparsers.add_parser("dedupe", help="Deduplicate a JSON list of bill records")
    dedupe_parser.add_argument(
        "input",
        type=Path,
        help="JSON file containing a list of bill records",
    )
    dedupe_parser.add_argument(
        "--mappings",
        type=Path,
        help="YAML/JSON file with field mappings (overrides config)",
    )
    dedupe_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Write result here instead of stdout",
    )
    dedupe_parser.add_argument(
        "--report",
        action="store_true",
        help="Print a run summary to stderr",
    )

    # field-map command
    field_map_parser = subparsers.add_parser(
        "field-map", help="Show the resolved role -> field names map"
    )
    field_map_parser.add_argument(
        "--mappings",
        type=Path,
        help="YAML/JSON file with field mappings (overrides config)",
    )

    # init-config command
    init_parser = subparsers.add_parser("init-config", help="Write a default config file")
    init_parser.add_argument(
        "path",
        type=Path,
        nargs="?",
        default=Path("config.yaml"),
        help="Where to write the config (default: config.yaml)",
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing file",
    )

    return parser


def _read_mappings(path: Path) -> list[FieldMapping] | None:
    """Load a --mappings file, reporting failures on stderr."""
    try:
        return load_field_mappings(path)
    except (OSError, yaml.YAMLError, ValueError) as e:
        print(f"❌ Failed to read field mappings {path}: {e}", file=sys.stderr)
        return None


def cmd_dedupe(
    config: DedupConfig,
    input_path: Path,
    mappings_path: Path | None = None,
    output_path: Path | None = None,
    report: bool = False,
) -> int:
    """Deduplicate a JSON file of records."""
    try:
        with open(input_path) as f:
            raw_records = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"❌ Failed to read {input_path}: {e}", file=sys.stderr)
        return 1

    if not isinstance(raw_records, list):
        print(f"❌ {input_path} must contain a JSON list of records", file=sys.stderr)
        return 1

    mappings = None
    if mappings_path:
        mappings = _read_mappings(mappings_path)
        if mappings is None:
            return 1

    orchestrator = DedupOrchestrator(mappings, config)
    result = orchestrator.run(raw_records)

    payload = json.dumps([r.to_dict() for r in result.records], indent=2, default=str)
    if output_path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(payload + "\n")
    else:
        print(payload)

    if report:
        summary = result.summary()
        print("\n📊 Deduplication Report", file=sys.stderr)
        print("=" * 40, file=sys.stderr)
        print(f"  Records in:       {summary['input_count']}", file=sys.stderr)
        print(f"  Records out:      {summary['output_count']}", file=sys.stderr)
        print(f"  Merged pairs:     {summary['merged']}", file=sys.stderr)
        print(f"  Dropped:          {summary['dropped']}", file=sys.stderr)
        print(f"  Failed groups:    {len(summary['failed_groups'])}", file=sys.stderr)
        for merge in result.merges:
            print(
                f"   - {merge.pdf_id} + {merge.email_id} -> {merge.combined_id} ({merge.rule})",
                file=sys.stderr,
            )

    return 0


def cmd_field_map(config: DedupConfig, mappings_path: Path | None = None) -> int:
    """Print the resolved field type map."""
    mappings = config.field_mappings
    if mappings_path:
        mappings = _read_mappings(mappings_path)
        if mappings is None:
            return 1

    field_map = build_field_type_map(mappings)
    print(json.dumps(field_map.to_dict(), indent=2))
    return 0


def cmd_init_config(path: Path, force: bool = False) -> int:
    """Write the default config file."""
    if path.exists() and not force:
        print(f"⚠️  {path} already exists (use --force to overwrite)", file=sys.stderr)
        return 1
    create_default_config(path)
    print(f"✓ Wrote default config to {path}")
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    if parsed.command == "init-config":
        return cmd_init_config(parsed.path, parsed.force)

    # Load config
    try:
        config = load_config(parsed.config)
        errors = config.validate()
        if errors:
            raise ConfigValidationError("; ".join(errors))
    except Exception as e:
        print(f"❌ Failed to load config: {e}", file=sys.stderr)
        return 1

    # Route to command
    if parsed.command == "dedupe":
        return cmd_dedupe(
            config,
            parsed.input,
            mappings_path=parsed.mappings,
            output_path=parsed.output,
            report=parsed.report,
        )
    elif parsed.command == "field-map":
        return cmd_field_map(config, parsed.mappings)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
