"""
Command-line interface for the Pipeline Reconciliation system.

Subcommands:
    validate      Compare expected documents with retrieved documents using a field-mapping table
    build         Build records from a fixture file against a schema and print them as JSON
    check-config  Show the configuration summary and pre-flight check the field-mapping table
    round-trip    Insert fixture rows into a store, read them back and reconcile them
"""

import sys
import json
import logging
import argparse

from pathlib import Path
from typing import Any, Dict, List, Optional

from .config.config_manager import get_config_manager
from .config.recon_defaults import ReconDefaults
from .exceptions import FixtureError, ReconError
from .fixtures.row_reader import FixtureRowReader, suffix_identifiers, timestamp_suffix
from .mapping.naming import get_naming_rule, transcode
from .mapping.record_builder import RecordBuilder
from .validation.mapping_table_validator import MappingTableValidator
from .validation.mapping_validator import MappingValidator
from .validation.value_comparator import ValueComparator


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pipeline_recon", description="Pipeline round-trip reconciliation")
    parser.add_argument("--log-level", default=ReconDefaults.LOG_LEVEL,
                        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
                        help=f"Logging level (default: {ReconDefaults.LOG_LEVEL})")
    parser.add_argument("--config-path", help="Base directory for schema and mapping files")
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="Compare expected and retrieved documents")
    validate.add_argument("--expected", required=True, help="Expected documents (.json or .jsonl)")
    validate.add_argument("--actual", required=True, help="Retrieved documents (.json or .jsonl)")
    validate.add_argument("--mappings", help="Field-mapping table (defaults to configuration)")
    validate.add_argument("--tolerance", type=float, help="Numeric tolerance (defaults to configuration)")
    validate.add_argument("--legacy-object-leniency", action="store_true",
                          help="Ignore nested mismatches inside object-valued fields")

    build = subparsers.add_parser("build", help="Build records from a fixture file")
    build.add_argument("--fixture", required=True, help="Fixture file (.csv, .json or .jsonl)")
    build.add_argument("--schema", help="Avro-style schema (defaults to configuration)")
    build.add_argument("--transcode", action="store_true", help="Rename keys into the store naming convention")
    build.add_argument("--source-naming", default=ReconDefaults.SOURCE_NAMING, choices=["camel", "snake"])
    build.add_argument("--target-naming", default=ReconDefaults.TARGET_NAMING, choices=["camel", "snake"])
    build.add_argument("--output", help="Write records to this file instead of stdout")

    subparsers.add_parser("check-config", help="Show configuration and pre-flight check the mapping table")

    round_trip = subparsers.add_parser("round-trip", help="Store fixture rows, read them back and reconcile")
    round_trip.add_argument("--fixture", required=True, help="Fixture file (.csv, .json or .jsonl)")
    round_trip.add_argument("--target", default=ReconDefaults.TARGET_TABLE,
                            help=f"Store table (default: {ReconDefaults.TARGET_TABLE})")
    round_trip.add_argument("--store", default="sqlserver", choices=["sqlserver", "memory"])
    round_trip.add_argument("--id-field", default=ReconDefaults.ID_FIELD, help="Record identifier field")
    round_trip.add_argument("--settle-seconds", type=float, help="Delay between insert and query")
    round_trip.add_argument("--no-suffix", action="store_true", help="Do not suffix identifiers with a timestamp")
    round_trip.add_argument("--cleanup", action="store_true", help="Delete the run's documents afterwards")
    return parser


def _load_documents(path: str) -> List[Dict[str, Any]]:
    full_path = Path(path)
    try:
        with open(full_path, 'r', encoding='utf-8') as file:
            if full_path.suffix.lower() == '.jsonl':
                documents = [json.loads(line) for line in file if line.strip()]
            else:
                documents = json.load(file)
    except OSError as e:
        raise FixtureError(f"Failed to read documents from {full_path}: {e}", path=str(full_path))
    except json.JSONDecodeError as e:
        raise FixtureError(f"Failed to parse documents in {full_path}: {e}", path=str(full_path))
    return [documents] if isinstance(documents, dict) else documents


def _run_validate(args, config_manager, logger) -> int:
    mapping = config_manager.load_field_mappings(args.mappings)
    settings = config_manager.comparison_settings
    comparator = ValueComparator(
        tolerance=args.tolerance if args.tolerance is not None else settings.numeric_tolerance,
        legacy_object_leniency=args.legacy_object_leniency or settings.legacy_object_leniency
    )

    expected = _load_documents(args.expected)
    actual = _load_documents(args.actual)
    if len(expected) != len(actual):
        logger.error(f"Document count should match: expected {len(expected)}, actual {len(actual)}")
        return 1

    validator = MappingValidator(comparator)
    failures = 0
    for index, (source_doc, target_doc) in enumerate(zip(expected, actual)):
        report = validator.validate(source_doc, target_doc, mapping, source_record_id=str(index))
        if not report.passed:
            failures += 1
            print(report.summary)

    print(f"{len(expected) - failures} of {len(expected)} documents matched")
    return 0 if failures == 0 else 1


def _run_build(args, config_manager, logger) -> int:
    schema = config_manager.load_schema(args.schema)
    rows = FixtureRowReader(schema).read(args.fixture)
    documents = [record.to_dict() for record in RecordBuilder().build_all(rows, schema)]
    if args.transcode:
        rule = get_naming_rule(args.source_naming, args.target_naming)
        documents = [transcode(document, rule) for document in documents]

    output = json.dumps(documents, indent=2, default=str)
    if args.output:
        Path(args.output).write_text(output + "\n", encoding="utf-8")
        logger.info(f"Wrote {len(documents)} records to {args.output}")
    else:
        print(output)
    return 0


def _run_check_config(args, config_manager, logger) -> int:
    summary = config_manager.get_configuration_summary()
    print("=== Configuration Summary ===")
    print(json.dumps(summary, indent=2))

    config_manager.validate_configuration()
    schema = config_manager.load_schema()
    mapping = config_manager.load_field_mappings()

    result = MappingTableValidator(mapping, schema).validate_table()
    print(result.format_summary())
    return 0 if result.is_valid else 1


def _run_round_trip(args, config_manager, logger) -> int:
    # pyodbc needs an ODBC driver manager at import time; only round-trip loads it
    from .database.document_store import SqlServerDocumentStore
    from .database.memory_store import InMemoryDocumentStore
    from .processing.round_trip import RoundTripHarness

    schema = config_manager.load_schema()
    mapping = config_manager.load_field_mappings()

    validation = MappingTableValidator(mapping, schema).validate_table()
    if not validation.is_valid:
        print(validation.format_summary())
        return 1

    rows = FixtureRowReader(schema).read(args.fixture)
    if not args.no_suffix:
        rows = suffix_identifiers(rows, config_manager.round_trip_params.id_suffix_fields, timestamp_suffix())

    if args.store == "memory":
        store = InMemoryDocumentStore()
    else:
        store = SqlServerDocumentStore()
        store.ensure_table(args.target)

    settle_seconds = (args.settle_seconds if args.settle_seconds is not None
                      else config_manager.round_trip_params.settle_seconds)
    harness = RoundTripHarness(store, schema, mapping, comparator=config_manager.get_comparator(),
                               id_field=args.id_field, settle_seconds=settle_seconds, cleanup=args.cleanup)
    result = harness.run(rows, target=args.target)
    print(result.generate_summary())
    return 0 if result.passed else 1


_COMMANDS = {
    "validate": _run_validate,
    "build": _run_build,
    "check-config": _run_check_config,
    "round-trip": _run_round_trip,
}


def main(args: Optional[list] = None) -> int:
    """
    Main entry point for the CLI application.

    Args:
        args: Optional command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for mismatches or errors)
    """
    if args is None:
        args = sys.argv[1:]
    parsed = _build_parser().parse_args(args)

    # Set up logging without reconfiguring root if already configured
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, parsed.log_level))
    logger = logging.getLogger(__name__)

    try:
        config_manager = get_config_manager(parsed.config_path)
        return _COMMANDS[parsed.command](parsed, config_manager, logger)
    except ReconError as e:
        logger.error(f"{parsed.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
