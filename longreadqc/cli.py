#!/usr/bin/env python3

"""Command-line entry point for the long-read QC pipeline."""

import argparse
import dataclasses
import logging
import signal
import sys
import threading
from typing import Dict, List, Optional

from longreadqc import __version__
from longreadqc.config import (
    DEFAULT_COMPLEXITY_THRESHOLD,
    DEFAULT_MIN_LENGTH,
    DEFAULT_QUALITY_THRESHOLD,
    DEFAULT_THREADS,
    PROFILES,
    RunConfig,
    format_profiles,
    profile_defaults,
)
from longreadqc.core import discover_samples, run_batch
from longreadqc.exceptions import LongReadQCError
from longreadqc.fastp import FastpEngine, build_fastp_command, check_engine, engine_version, format_command
from longreadqc.summary import format_console_summary, write_summary, write_summary_json

EXIT_OK = 0
EXIT_SAMPLES_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_CANCELLED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="longreadqc",
        description="Quality control and trimming of long reads using fastp",
        epilog="Examples:\n"
               "  longreadqc -i ./raw_reads -o ./processed_reads -t 8 -l 500 -q 10\n"
               "  longreadqc -i ./data -o ./results -a adapters.fasta --no-trim-poly-g\n"
               "  longreadqc -i ./pacbio_reads -o ./processed_pacbio -p pacbio",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-i", "--input-dir", help="Input directory containing FASTQ files")
    parser.add_argument("-o", "--output-dir", help="Output directory for processed files")
    parser.add_argument("-t", "--threads", type=int, default=DEFAULT_THREADS,
                        help=f"Total number of threads (default: {DEFAULT_THREADS})")
    parser.add_argument("-j", "--jobs", type=int, default=1,
                        help="Number of samples processed concurrently; threads are divided "
                             "between them (default: 1)")
    parser.add_argument("-l", "--min-length", type=int, default=DEFAULT_MIN_LENGTH,
                        help=f"Minimum read length after trimming (default: {DEFAULT_MIN_LENGTH})")
    parser.add_argument("-q", "--quality-threshold", type=int, default=DEFAULT_QUALITY_THRESHOLD,
                        help=f"Quality score threshold (default: {DEFAULT_QUALITY_THRESHOLD})")
    parser.add_argument("-a", "--adapter-fasta", help="FASTA file containing adapter sequences")
    parser.add_argument("-g", "--no-trim-poly-g", action="store_true", help="Disable poly-G trimming")
    parser.add_argument("--trim-poly-g", action="store_false", dest="no_trim_poly_g",
                        help="Enable poly-G trimming (overrides profile)")
    parser.add_argument("-x", "--no-trim-poly-x", action="store_true", help="Disable poly-X trimming")
    parser.add_argument("--trim-poly-x", action="store_false", dest="no_trim_poly_x",
                        help="Enable poly-X trimming (overrides profile)")
    parser.add_argument("-c", "--complexity", type=int, default=DEFAULT_COMPLEXITY_THRESHOLD,
                        help=f"Low complexity threshold, 0-100 (default: {DEFAULT_COMPLEXITY_THRESHOLD})")
    parser.add_argument("-r", "--no-report", action="store_true", help="Skip HTML/JSON report generation")
    parser.add_argument("--report", action="store_false", dest="no_report",
                        help="Generate reports (overrides profile)")
    parser.add_argument("-p", "--profile", choices=sorted(PROFILES),
                        help="Apply a parameter preset; explicit options still take precedence")
    parser.add_argument("--list-profiles", action="store_true", help="Show available profiles and exit")
    parser.add_argument("--no-recursive", action="store_true",
                        help="Only scan the top level of the input directory")
    parser.add_argument("--fastp", default="fastp", help="fastp executable (default: fastp on PATH)")
    parser.add_argument("--dry-run", action="store_true", help="Print fastp commands without running them")
    parser.add_argument("--allow-failures", action="store_true",
                        help="Exit with status 0 even if some samples failed")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    parser.add_argument("--log-file", help="Also write the pipeline log to this file")
    parser.add_argument("-v", "--version", action="version",
                        version=f"Long Reads QC Pipeline v{__version__}")
    return parser


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse arguments, applying --profile as defaults beneath explicit options."""
    parser = build_parser()
    preliminary, _ = parser.parse_known_args(argv)
    if preliminary.profile:
        parser.set_defaults(**profile_defaults(preliminary.profile))
    args = parser.parse_args(argv)

    if not args.list_profiles:
        if not args.input_dir:
            parser.error("Input directory is required (-i/--input-dir)")
        if not args.output_dir:
            parser.error("Output directory is required (-o/--output-dir)")
    return args


def setup_logging(log_level: str, log_file: str = None):
    """Setup logging configuration with optional file output."""
    # Clear any existing handlers
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)

    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logger = logging.getLogger()
    logger.setLevel(getattr(logging, log_level))
    logger.addHandler(console_handler)

    # Route MetricsParseWarning and friends through the same handlers
    logging.captureWarnings(True)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w')
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        return log_file

    return None


def _install_signal_handlers(engine: FastpEngine, cancel_event: threading.Event) -> Dict[int, object]:
    """Cancel the batch on SIGINT/SIGTERM. Returns the previous handlers."""
    def _signal_handler(signum, frame):
        if cancel_event.is_set():
            return
        logging.warning(f"Received {signal.Signals(signum).name}, stopping running samples...")
        cancel_event.set()
        threading.Thread(target=engine.terminate_all, daemon=True).start()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, _signal_handler)
    return previous


def dry_run(config: RunConfig) -> None:
    """Print the fastp command for each sample without running anything."""
    for sample in discover_samples(config):
        print(format_command(build_fastp_command(config, sample)))


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_arguments(argv)

    if args.list_profiles:
        print(format_profiles())
        return EXIT_OK

    setup_logging(args.log_level, args.log_file)
    logging.info(f"Starting Long Reads QC Pipeline v{__version__}")
    if args.profile:
        logging.info(f"Using profile: {args.profile}")

    try:
        logging.info("Validating parameters...")
        config = RunConfig.from_args(args).validate()

        if args.dry_run:
            dry_run(config)
            return EXIT_OK

        logging.info("Checking dependencies...")
        fastp = check_engine(config.fastp_path)
        version = engine_version(fastp)
        logging.info(f"Using fastp: {fastp}" + (f" ({version})" if version else ""))
        config = dataclasses.replace(config, fastp_path=fastp)

        samples = discover_samples(config)
    except LongReadQCError as e:
        logging.error(str(e))
        return EXIT_CONFIG_ERROR

    engine = FastpEngine(config.fastp_path)
    cancel_event = threading.Event()
    previous_handlers = _install_signal_handlers(engine, cancel_event)
    try:
        result = run_batch(config, engine=engine, cancel_event=cancel_event, samples=samples)
    except LongReadQCError as e:
        logging.error(str(e))
        return EXIT_CONFIG_ERROR
    finally:
        for signum, handler in previous_handlers.items():
            signal.signal(signum, handler)

    try:
        write_summary(result)
        write_summary_json(result, engine_version=version)
    except OSError as e:
        logging.error(f"Could not write processing summary: {e}")
        return EXIT_CONFIG_ERROR

    for line in format_console_summary(result):
        logging.info(line)

    if result.cancelled:
        logging.warning("Pipeline cancelled before all samples completed")
        return EXIT_CANCELLED
    if result.failed_count:
        logging.warning(f"Pipeline completed with {result.failed_count} failed sample(s)")
        return EXIT_OK if args.allow_failures else EXIT_SAMPLES_FAILED

    logging.info("Pipeline completed successfully!")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
