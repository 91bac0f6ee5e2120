#!/usr/bin/env python3

"""
Batch orchestration: per-sample processing and the batch driver.

Every discovered FASTQ file yields exactly one SampleOutcome. A failing
sample is logged and recorded; it never stops the remaining samples.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import List, Optional

from tqdm import tqdm

from longreadqc.config import RunConfig
from longreadqc.discovery import discover_fastq_files, find_duplicate_samples
from longreadqc.exceptions import ConfigurationError, DiscoveryError, SampleProcessingError
from longreadqc.fastp import FastpEngine, ProcessingEngine, build_fastp_args, parse_fastp_metrics
from longreadqc.models import BatchResult, ReadCounts, Sample, SampleOutcome, SampleStatus


def prepare_output_dirs(config: RunConfig) -> None:
    """Create the output directory tree."""
    for directory in (config.output_dir, config.trimmed_dir, config.reports_dir, config.logs_dir):
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(f"Cannot create output directory {directory}: {e}") from e
    logging.debug(f"Output directory structure ready under {config.output_dir}")


def remove_stale_artifacts(sample: Sample) -> None:
    """Delete a sample's outputs from a previous run so only this run's artifacts remain."""
    for path in sample.artifacts:
        if path.exists():
            path.unlink()


def discover_samples(config: RunConfig) -> List[Sample]:
    """Discover input files and derive one Sample per file.

    Raises:
        NoInputFilesError: No FASTQ files under the input directory
        DiscoveryError: Unreadable directories, or two files reduce to the same sample name
    """
    # Outputs may sit inside the input tree; a re-run must not pick them up as inputs
    output_dirs = [config.output_dir, config.trimmed_dir, config.reports_dir, config.logs_dir]
    paths = discover_fastq_files(config.input_dir, recursive=config.recursive, exclude=output_dirs)

    duplicates = find_duplicate_samples(paths)
    if duplicates:
        details = "; ".join(
            f"{name}: {', '.join(str(p) for p in files)}" for name, files in sorted(duplicates.items())
        )
        raise DiscoveryError(f"Input files map to the same sample name and would overwrite each other: {details}")

    return [Sample.from_path(path, config.output_dir) for path in paths]


def _failure(sample: Sample, error: str, started: float, exit_status: Optional[int] = None) -> SampleOutcome:
    try:
        sample.trimmed_path.unlink(missing_ok=True)
    except OSError as e:
        logging.warning(f"Could not remove partial output {sample.trimmed_path}: {e}")
    return SampleOutcome(
        sample=sample,
        status=SampleStatus.FAILURE,
        exit_status=exit_status,
        error=error,
        elapsed=time.monotonic() - started,
    )


def process_sample(config: RunConfig, sample: Sample, engine: ProcessingEngine) -> SampleOutcome:
    """Run the engine on one sample and classify the result.

    Failures are returned as FAILURE outcomes, never raised, so the caller
    can keep going with the other samples. Partial trimmed output from a
    failed or interrupted run is removed.
    """
    started = time.monotonic()
    logging.info(f"Processing: {sample.source.name}")
    args = build_fastp_args(config, sample)
    try:
        remove_stale_artifacts(sample)
        result = engine.invoke(sample, args)
    except (SampleProcessingError, OSError) as e:
        logging.error(f"Failed to process {sample.name}: {e}")
        return _failure(sample, str(e), started)

    if result.terminated:
        logging.warning(f"Interrupted: {sample.name}")
        return _failure(sample, f"interrupted (exit status {result.exit_status}); see {result.log_path}",
                        started, exit_status=result.exit_status)

    if result.exit_status != 0:
        logging.error(f"Failed to process: {sample.name}")
        logging.error(f"Check log file: {result.log_path}")
        return _failure(sample, f"fastp exited with status {result.exit_status}; see {result.log_path}",
                        started, exit_status=result.exit_status)

    counts = ReadCounts()
    if result.metrics_path is not None:
        counts = parse_fastp_metrics(result.metrics_path)

    logging.info(f"Successfully processed: {sample.name}")
    if counts.reads_before is not None:
        logging.info(f"  Reads before: {counts.reads_before}")
    if counts.reads_after is not None:
        logging.info(f"  Reads after: {counts.reads_after}")

    return SampleOutcome(
        sample=sample,
        status=SampleStatus.SUCCESS,
        counts=counts,
        exit_status=result.exit_status,
        elapsed=time.monotonic() - started,
    )


def _cancelled(sample: Sample) -> SampleOutcome:
    return SampleOutcome(sample=sample, status=SampleStatus.FAILURE, error="not started: batch cancelled")


def run_batch(config: RunConfig,
              engine: Optional[ProcessingEngine] = None,
              cancel_event: Optional[threading.Event] = None,
              samples: Optional[List[Sample]] = None) -> BatchResult:
    """Process every discovered sample and collect the outcomes.

    With config.jobs == 1 samples run one after another; otherwise a thread
    pool runs up to config.jobs fastp processes at once, each with
    config.threads_per_sample threads. Outcomes keep discovery order.

    Args:
        config: Validated run configuration
        engine: Processing engine (default: FastpEngine for config.fastp_path)
        cancel_event: When set, samples not yet started are recorded as failures
        samples: Pre-discovered samples (default: discover from config.input_dir)

    Returns:
        BatchResult with one outcome per sample
    """
    if engine is None:
        engine = FastpEngine(config.fastp_path)
    if cancel_event is None:
        cancel_event = threading.Event()
    if samples is None:
        samples = discover_samples(config)

    prepare_output_dirs(config)
    started = datetime.now()
    logging.info(f"Processing {len(samples)} samples "
                 f"({config.jobs} concurrent, {config.threads_per_sample} threads each)")

    def run_one(sample: Sample) -> SampleOutcome:
        if cancel_event.is_set():
            return _cancelled(sample)
        return process_sample(config, sample, engine)

    outcomes: List[Optional[SampleOutcome]] = [None] * len(samples)

    if config.jobs == 1:
        for i, sample in enumerate(tqdm(samples, desc="Processing samples", unit="sample")):
            outcomes[i] = run_one(sample)
    else:
        with ThreadPoolExecutor(max_workers=config.jobs) as executor:
            futures = {executor.submit(run_one, sample): i for i, sample in enumerate(samples)}
            for future in tqdm(as_completed(futures), total=len(futures),
                               desc="Processing samples", unit="sample"):
                outcomes[futures[future]] = future.result()

    result = BatchResult(
        config=config,
        outcomes=tuple(outcomes),
        started=started,
        finished=datetime.now(),
        cancelled=cancel_event.is_set(),
    )
    logging.debug(f"Batch finished in {result.elapsed:.1f}s: "
                  f"{result.processed_count} processed, {result.failed_count} failed")
    return result
