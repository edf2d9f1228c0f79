"""
CLI entry point for clash triage.

Parses arguments, wires components, runs triage, prints the dashboard and
writes the annotated export.
"""

import argparse
import sys
from argparse import Namespace
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import TypedDict

from prettytable import PrettyTable

from .classifiers.dummy_classifier import DummyClassifier
from .classifiers.gemini_classifier import DEFAULT_MODEL, GeminiClassifier, resolve_api_key
from .dataset import ClashDataset, TriageStats
from .exceptions import MissingCredentialError
from .exporters.csv_writer import EXPORT_FILENAME, write_export
from .interfaces import Classifier, TriageProgress
from .logging_config import get_logger, setup_logging
from .models import ClashSeverity, ClashStatus, Discipline, EnrichedClash
from .orchestrator import DEFAULT_BATCH_SIZE, DEFAULT_COOLDOWN_SECONDS, RunConfig, TriageOrchestrator, TriageSummary


class CLIArgs(TypedDict):
    """Typed representation of parsed CLI arguments."""
    input: str
    output: str
    no_export: bool
    classifier: str
    api_key: str | None
    model: str
    timeout: float
    batch_size: int
    cooldown: float
    severity: str | None
    show_rows: bool
    debug: bool
    log_level: str
    log_dir: str | None


def parse_args(argv: list[str] | None = None) -> Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Clash Triage - AI-assisted Navisworks clash triage"
    )

    # Required arguments
    _ = parser.add_argument(
        "--input",
        required=True,
        help="Path to the Navisworks clash CSV export"
    )

    # Output
    _ = parser.add_argument(
        "--output",
        default=EXPORT_FILENAME,
        help=f"Path for the annotated export (default: {EXPORT_FILENAME})"
    )
    _ = parser.add_argument(
        "--no-export",
        action="store_true",
        help="Do not write the annotated export"
    )

    # Classifier selection
    _ = parser.add_argument(
        "--classifier",
        choices=["gemini", "dummy"],
        default="gemini",
        help="Classifier to use (default: gemini)"
    )
    _ = parser.add_argument(
        "--api-key",
        default=None,
        help="Gemini API key (default: $GEMINI_API_KEY or $API_KEY)"
    )
    _ = parser.add_argument(
        "--model",
        default=DEFAULT_MODEL,
        help=f"Gemini model name (default: {DEFAULT_MODEL})"
    )
    _ = parser.add_argument(
        "--timeout",
        type=float,
        default=60.0,
        help="Timeout per classification request in seconds (default: 60)"
    )

    # Batching
    _ = parser.add_argument(
        "--batch-size",
        type=int,
        default=DEFAULT_BATCH_SIZE,
        help=f"Clashes per classification request (default: {DEFAULT_BATCH_SIZE})"
    )
    _ = parser.add_argument(
        "--cooldown",
        type=float,
        default=DEFAULT_COOLDOWN_SECONDS,
        help=f"Pause between batches in seconds (default: {DEFAULT_COOLDOWN_SECONDS})"
    )

    # Display
    _ = parser.add_argument(
        "--severity",
        choices=[s.value for s in ClashSeverity],
        default=None,
        help="Only show rows with this severity (implies --show-rows)"
    )
    _ = parser.add_argument(
        "--show-rows",
        action="store_true",
        help="Print the per-clash table"
    )
    _ = parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )
    _ = parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Set logging level (default: INFO)"
    )
    _ = parser.add_argument(
        "--log-dir",
        default=None,
        help="Directory for clash_triage.log (default: current directory)"
    )

    return parser.parse_args(argv)


def args_to_typed(ns: Namespace) -> CLIArgs:
    """Convert argparse Namespace to typed CLIArgs."""
    return CLIArgs(
        input=ns.input,
        output=ns.output,
        no_export=ns.no_export,
        classifier=ns.classifier,
        api_key=ns.api_key,
        model=ns.model,
        timeout=ns.timeout,
        batch_size=ns.batch_size,
        cooldown=ns.cooldown,
        severity=ns.severity,
        show_rows=ns.show_rows,
        debug=ns.debug,
        log_level=ns.log_level,
        log_dir=ns.log_dir,
    )


def validate_config(args: CLIArgs) -> None:
    """Validate configuration parameters."""
    logger = get_logger("validate_config")

    input_path = Path(args["input"])
    if not input_path.is_file():
        logger.error(f"Input file does not exist: {input_path}")
        print(f"Error: input file does not exist: {input_path}")
        sys.exit(1)

    if args["batch_size"] <= 0:
        logger.error(f"batch_size must be positive, got {args['batch_size']}")
        print(f"Error: batch size must be positive, got {args['batch_size']}")
        sys.exit(1)

    if args["cooldown"] < 0 or args["timeout"] <= 0:
        logger.error(f"Invalid timing: cooldown={args['cooldown']}, timeout={args['timeout']}")
        print("Error: cooldown must be non-negative and timeout positive")
        sys.exit(1)


def create_classifier(args: CLIArgs) -> Classifier | None:
    """
    Create the configured classifier.

    Returns:
        The classifier, or None when Gemini has no API key (triage disabled)
    """
    logger = get_logger("create_classifier")

    if args["classifier"] == "dummy":
        logger.info("Dummy classifier created")
        return DummyClassifier(mode="deterministic")

    try:
        return GeminiClassifier(
            resolve_api_key(args["api_key"]),
            model=args["model"],
            timeout=args["timeout"],
        )
    except MissingCredentialError as e:
        logger.warning(f"Triage disabled: {e}")
        return None


def print_stats(stats: TriageStats) -> None:
    """Print the summary dashboard."""
    print(f"Total clashes: {stats.total}")
    print(f"Critical issues: {stats.critical_count} ({stats.critical_percent}% of total)")

    table = PrettyTable()
    table.field_names = ["Severity", "Count"]
    table.align["Count"] = "r"
    for severity, count in stats.by_severity.items():
        if count:
            table.add_row([severity.value, count])
    print(table)

    table = PrettyTable()
    table.field_names = ["Responsibility", "Count"]
    table.align["Count"] = "r"
    for discipline in Discipline:
        table.add_row([discipline.value, stats.by_responsibility[discipline]])
    print(table)

    print("Status: " + ", ".join(f"{status.value}={count}" for status, count in stats.by_status.items()))


def print_rows(clashes: list[EnrichedClash]) -> None:
    """Print the per-clash table."""
    table = PrettyTable()
    table.field_names = ["ID", "Item 1", "Item 2", "Distance", "Status", "Severity", "Responsibility", "Description"]
    table.align["Description"] = "l"
    for clash in clashes:
        table.add_row([
            clash.clash_id,
            clash.item1,
            clash.item2,
            clash.distance,
            clash.status.value,
            clash.ai_severity.value,
            clash.ai_responsibility.value,
            clash.ai_description,
        ])
    print(table)


def run_triage(orchestrator: TriageOrchestrator) -> TriageSummary:
    """
    Run the orchestrator on a worker thread so Ctrl-C can request a
    cooperative cancel instead of killing an in-flight request.
    """
    logger = get_logger("run_triage")
    with ThreadPoolExecutor(max_workers=1) as executor:
        future = executor.submit(orchestrator.run)
        while True:
            try:
                return future.result()
            except KeyboardInterrupt:
                logger.warning("Interrupted; finishing current batch before stopping")
                print("\nStopping after the current batch...")
                orchestrator.cancel()


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    args = args_to_typed(parse_args(argv))

    setup_logging(level=args["log_level"], debug=args["debug"], log_dir=args["log_dir"])
    logger = get_logger("main")

    logger.info("Starting Clash Triage")
    validate_config(args)

    dataset = ClashDataset()
    try:
        count = dataset.load_file(args["input"])
    except UnicodeDecodeError as e:
        logger.error(f"Input file is not UTF-8: {args['input']}: {e}")
        print(f"Error: input file is not UTF-8 encoded: {args['input']}")
        print("Re-export the clash report as UTF-8 CSV and try again.")
        sys.exit(1)

    print("Clash Triage - AI-assisted Navisworks clash triage")
    print("=" * 60)
    print(f"Input: {args['input']}")
    print(f"Loaded {count} clashes")
    print(f"Classifier: {args['classifier']}")
    print(f"Batch size: {args['batch_size']}, cooldown: {args['cooldown']}s")
    print("=" * 60)

    if count == 0:
        logger.info("No clashes parsed from input")
        print("Nothing to triage.")
        return

    classifier = create_classifier(args)
    if classifier is None:
        print("Warning: Missing API Key - triage disabled. Set GEMINI_API_KEY or pass --api-key.")
    else:
        def report(progress: TriageProgress) -> None:
            print(
                f"Progress: {progress['percent']}% "
                f"(batch {progress['batches_completed']}/{progress['batches_total']})"
            )

        orchestrator = TriageOrchestrator(
            dataset=dataset,
            classifier=classifier,
            config=RunConfig(batch_size=args["batch_size"], cooldown_seconds=args["cooldown"]),
            on_progress=report,
        )
        print("Starting AI triage...")
        summary = run_triage(orchestrator)
        print(
            f"Triage {'cancelled' if summary.cancelled else 'complete'}: "
            f"{summary.completed} completed, {summary.failed} failed, "
            f"{summary.selected - summary.dispatched} still pending"
        )

    print()
    print_stats(dataset.stats())

    if args["show_rows"] or args["severity"]:
        severity = ClashSeverity(args["severity"]) if args["severity"] else None
        print_rows(dataset.filter_by_severity(severity))

    if not args["no_export"]:
        path = write_export(dataset.snapshot(), args["output"])
        if path is not None:
            print(f"Exported triage results to {path}")

    failed = dataset.stats().by_status[ClashStatus.FAILED]
    if failed:
        print(f"{failed} clashes failed classification; see the AI Status column.")
    logger.info("Clash Triage finished")


if __name__ == "__main__":
    main()
