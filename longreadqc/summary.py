"""Text and JSON summaries of a finished batch."""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from longreadqc import __version__
from longreadqc.models import BatchResult, SampleOutcome


def _format_count(value: Optional[int]) -> str:
    return "NA" if value is None else str(value)


def _format_retention(outcome: SampleOutcome) -> str:
    retention = outcome.retention
    return "NA" if retention is None else f"{retention * 100:.1f}%"


def format_summary(result: BatchResult) -> str:
    """Render the processing summary as plain text."""
    config = result.config
    lines = [
        "Long Reads Quality Control and Trimming Summary",
        f"Date: {result.finished.strftime('%Y-%m-%d %H:%M:%S')}",
        f"Pipeline Version: {__version__}",
        "",
        "Parameters Used:",
        f"- Input Directory: {config.input_dir}",
        f"- Output Directory: {config.output_dir}",
        f"- Threads: {config.threads}",
        f"- Concurrent Samples: {config.jobs}",
        f"- Minimum Length: {config.min_length}",
        f"- Quality Threshold: {config.quality_threshold}",
        f"- Adapter FASTA: {config.adapter_fasta or 'none'}",
        f"- Trim Poly-G: {str(config.trim_poly_g).lower()}",
        f"- Trim Poly-X: {str(config.trim_poly_x).lower()}",
        f"- Complexity Threshold: {config.complexity_threshold}",
        f"- Generate Report: {str(config.generate_report).lower()}",
        "",
        "Files Processed:",
    ]
    for name in sorted(o.sample.trimmed_path.name for o in result.successful):
        lines.append(f"- {name}")

    lines += ["", "Read Counts:",
              f"{'Sample':<30} {'Before':>12} {'After':>12} {'Retained':>9}"]
    for outcome in sorted(result.successful, key=lambda o: o.sample.name):
        lines.append(
            f"{outcome.sample.name:<30} {_format_count(outcome.reads_before):>12} "
            f"{_format_count(outcome.reads_after):>12} {_format_retention(outcome):>9}"
        )

    if result.failed:
        lines += ["", "Failed Samples:"]
        for outcome in sorted(result.failed, key=lambda o: o.sample.name):
            lines.append(f"- {outcome.sample.name}: {outcome.error}")

    lines += [
        "",
        f"Processed: {result.processed_count}",
        f"Failed: {result.failed_count}",
    ]
    if result.cancelled:
        lines.append("Status: cancelled before completion")

    lines += [
        "",
        "Output Structure:",
        "- trimmed/: Processed FASTQ files",
        "- reports/: HTML and JSON reports",
        "- logs/: Processing logs",
        "",
    ]
    return "\n".join(lines)


def write_summary(result: BatchResult, path: Optional[Path] = None) -> Path:
    """Write processing_summary.txt, replacing any previous summary."""
    path = Path(path) if path is not None else result.config.summary_path
    with open(path, 'w') as f:
        f.write(format_summary(result))
    logging.info(f"Summary report generated: {path}")
    return path


def summary_record(result: BatchResult, engine_version: Optional[str] = None) -> Dict:
    """Batch result as a JSON-serializable dictionary."""
    samples: List[Dict] = []
    for outcome in result.outcomes:
        samples.append({
            "sample": outcome.sample.name,
            "input": str(outcome.sample.source),
            "status": outcome.status.value,
            "trimmed": str(outcome.sample.trimmed_path) if outcome.succeeded else None,
            "log": str(outcome.sample.log_path),
            "reads_before": outcome.counts.reads_before,
            "reads_after": outcome.counts.reads_after,
            "bases_before": outcome.counts.bases_before,
            "bases_after": outcome.counts.bases_after,
            "exit_status": outcome.exit_status,
            "error": outcome.error,
            "elapsed_seconds": round(outcome.elapsed, 3),
        })

    return {
        "version": __version__,
        "engine_version": engine_version,
        "started": result.started.isoformat(),
        "finished": result.finished.isoformat(),
        "cancelled": result.cancelled,
        "parameters": result.config.as_dict(),
        "processed": result.processed_count,
        "failed": result.failed_count,
        "samples": samples,
    }


def write_summary_json(result: BatchResult, path: Optional[Path] = None,
                       engine_version: Optional[str] = None) -> Path:
    """Write processing_summary.json, replacing any previous one."""
    path = Path(path) if path is not None else result.config.summary_json_path
    with open(path, 'w') as f:
        json.dump(summary_record(result, engine_version), f, indent=2)
    logging.debug(f"Wrote machine-readable summary to {path}")
    return path


def format_console_summary(result: BatchResult) -> List[str]:
    """Closing lines reported on the console after a batch."""
    lines = [f"Processed files: {result.processed_count}"]
    if result.failed_count:
        lines.append(f"Failed files: {result.failed_count} (see logs in {result.config.logs_dir})")
    lines.append(f"Results available in: {result.config.output_dir}")
    return lines
