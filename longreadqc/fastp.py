#!/usr/bin/env python3

"""
fastp invocation: argument construction, subprocess execution and metrics parsing.

fastp does all read-level work (length, complexity and poly-tail trimming,
optional adapter removal, report rendering). This module only decides which
flags to pass and reads back the totals from its JSON report.
"""

import contextlib
import json
import logging
import os
import shlex
import shutil
import signal
import subprocess
import threading
import time
import warnings
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional, Protocol, Sequence

from longreadqc.config import RunConfig
from longreadqc.exceptions import ConfigurationError, MetricsParseWarning, SampleProcessingError
from longreadqc.models import ReadCounts, Sample

INSTALL_HINT = (
    "Installation instructions:\n"
    "  conda install -c bioconda fastp\n"
    "  or\n"
    "  wget http://opengene.org/fastp/fastp && chmod a+x ./fastp"
)


def find_fastp(executable: str = "fastp") -> Optional[str]:
    """Locate the fastp binary, checking the given path, PATH, then common install locations."""
    if os.sep in executable:
        path = Path(executable).expanduser()
        if path.is_file() and os.access(path, os.X_OK):
            return str(path)
        return None

    in_path = shutil.which(executable)
    if in_path:
        return in_path

    home = Path.home()
    candidates = [
        home / "bin" / executable,
        home / ".local" / "bin" / executable,
        Path("/usr/local/bin") / executable,
    ]
    for candidate in candidates:
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return str(candidate)

    return None


def check_engine(executable: str = "fastp") -> str:
    """Resolve the fastp executable or fail before any sample is processed.

    Raises:
        ConfigurationError: fastp cannot be found or is not executable
    """
    resolved = find_fastp(executable)
    if resolved is None:
        raise ConfigurationError(f"fastp is not installed or not executable: {executable}\n{INSTALL_HINT}")
    return resolved


def engine_version(executable: str) -> Optional[str]:
    """Return the first line of `fastp --version`, or None if it cannot be determined."""
    try:
        result = subprocess.run(
            [executable, "--version"],
            capture_output=True,
            text=True,
            timeout=30,
        )
    except (subprocess.SubprocessError, OSError) as e:
        logging.debug(f"Could not determine fastp version: {e}")
        return None
    # fastp prints its version on stderr
    output = (result.stderr or result.stdout).strip()
    return output.splitlines()[0] if output else None


def build_fastp_args(config: RunConfig, sample: Sample) -> List[str]:
    """Build the ordered fastp argument list for one sample.

    fastp's generic quality filtering and adapter trimming are always
    disabled; adapter trimming is re-enabled only when an adapter FASTA is
    configured. Poly-G has explicit enable/disable flags, poly-X only an
    enable flag, so a disabled poly-X setting contributes nothing.
    """
    args = [
        "-i", str(sample.source),
        "-o", str(sample.trimmed_path),
        "--thread", str(config.threads_per_sample),
        "--qualified_quality_phred", str(config.quality_threshold),
        "--length_required", str(config.min_length),
        "--low_complexity_filter",
        "--complexity_threshold", str(config.complexity_threshold),
        "--disable_adapter_trimming",
        "--disable_quality_filtering",
    ]

    if config.adapter_fasta is not None:
        args += ["--adapter_fasta", str(config.adapter_fasta), "--enable_adapter_trimming"]

    if config.trim_poly_g:
        args.append("--trim_poly_g")
    else:
        args.append("--disable_trim_poly_g")

    if config.trim_poly_x:
        args.append("--trim_poly_x")

    if config.generate_report:
        args += ["--html", str(sample.html_report), "--json", str(sample.json_report)]

    return args


def build_fastp_command(config: RunConfig, sample: Sample) -> List[str]:
    return [config.fastp_path] + build_fastp_args(config, sample)


def format_command(cmd: Sequence[str]) -> str:
    """Render an argument list as a shell-quoted command line for display."""
    return " ".join(shlex.quote(token) for token in cmd)


def metrics_path_from_args(args: Sequence[str]) -> Optional[Path]:
    """Return the --json report path requested in an argument list, if any."""
    for flag, value in zip(args, args[1:]):
        if flag == "--json":
            return Path(value)
    return None


def _get_int(section: Dict, key: str) -> Optional[int]:
    value = section.get(key) if isinstance(section, dict) else None
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def parse_fastp_metrics(json_path: Path) -> ReadCounts:
    """Read before/after totals from a fastp JSON report.

    Looks up summary.before_filtering and summary.after_filtering by name.
    Missing or malformed reports produce empty counts and a MetricsParseWarning;
    they never raise.
    """
    try:
        with open(json_path) as f:
            report = json.load(f)
    except FileNotFoundError:
        warnings.warn(f"fastp metrics not found: {json_path}", MetricsParseWarning)
        return ReadCounts()
    except (OSError, ValueError) as e:
        warnings.warn(f"Could not parse fastp metrics {json_path}: {e}", MetricsParseWarning)
        return ReadCounts()

    summary = report.get("summary") if isinstance(report, dict) else None
    if not isinstance(summary, dict):
        warnings.warn(f"fastp metrics {json_path} has no summary section", MetricsParseWarning)
        return ReadCounts()

    before = summary.get("before_filtering", {})
    after = summary.get("after_filtering", {})
    counts = ReadCounts(
        reads_before=_get_int(before, "total_reads"),
        reads_after=_get_int(after, "total_reads"),
        bases_before=_get_int(before, "total_bases"),
        bases_after=_get_int(after, "total_bases"),
    )
    if counts.reads_before is None or counts.reads_after is None:
        warnings.warn(f"fastp metrics {json_path} lack total_reads before/after filtering",
                      MetricsParseWarning)
    return counts


class EngineResult(NamedTuple):
    """Outcome of one engine process."""
    exit_status: int
    log_path: Path
    metrics_path: Optional[Path] = None
    terminated: bool = False


class ProcessingEngine(Protocol):
    """Interface for the external read-processing engine."""

    def invoke(self, sample: Sample, args: List[str]) -> EngineResult:
        """Run the engine on one sample, writing combined output to sample.log_path."""
        ...

    def terminate_all(self) -> None:
        """Stop every engine process still running."""
        ...


class FastpEngine:
    """Runs fastp as a subprocess per sample.

    Each process gets its own process group so cancellation can stop fastp
    and anything it spawns. Running processes are tracked under a lock because
    samples may be processed from a worker pool.
    """

    def __init__(self, executable: str = "fastp", grace_period: float = 10.0):
        self.executable = executable
        self.grace_period = grace_period
        self._lock = threading.Lock()
        self._running: Dict[int, subprocess.Popen] = {}
        self._terminated: set = set()
        self._closed = False

    def _cancelled_result(self, sample: Sample, args: List[str]) -> EngineResult:
        return EngineResult(
            exit_status=-signal.SIGTERM,
            log_path=sample.log_path,
            metrics_path=metrics_path_from_args(args),
            terminated=True,
        )

    def invoke(self, sample: Sample, args: List[str]) -> EngineResult:
        cmd = [self.executable] + list(args)
        with self._lock:
            if self._closed:
                return self._cancelled_result(sample, args)
        logging.debug(f"{sample.name}: {format_command(cmd)}")

        try:
            sample.log_path.parent.mkdir(parents=True, exist_ok=True)
            log_file = open(sample.log_path, 'w')
        except OSError as e:
            raise SampleProcessingError(f"Could not open log file {sample.log_path}: {e}") from e

        with log_file:
            try:
                process = subprocess.Popen(
                    cmd,
                    stdout=log_file,
                    stderr=subprocess.STDOUT,
                    start_new_session=True,
                )
            except OSError as e:
                raise SampleProcessingError(f"Could not start {self.executable}: {e}") from e

            with self._lock:
                self._running[process.pid] = process
                if self._closed:
                    # terminate_all ran between the check above and Popen
                    self._terminated.add(process.pid)
                    with contextlib.suppress(OSError, ProcessLookupError):
                        os.killpg(process.pid, signal.SIGKILL)
            try:
                exit_status = process.wait()
            finally:
                with self._lock:
                    self._running.pop(process.pid, None)
                    terminated = process.pid in self._terminated
                    self._terminated.discard(process.pid)

        return EngineResult(
            exit_status=exit_status,
            log_path=sample.log_path,
            metrics_path=metrics_path_from_args(args),
            terminated=terminated,
        )

    def terminate_all(self) -> None:
        """Send SIGTERM to every running fastp process group, then SIGKILL after the grace period.

        The engine stays closed afterwards: later invoke() calls start nothing
        and report their sample as terminated.
        """
        with self._lock:
            self._closed = True
            processes = list(self._running.values())
            self._terminated.update(p.pid for p in processes)

        if not processes:
            return
        logging.warning(f"Terminating {len(processes)} running fastp process(es)")

        for process in processes:
            with contextlib.suppress(OSError, ProcessLookupError):
                os.killpg(os.getpgid(process.pid), signal.SIGTERM)

        deadline = time.time() + self.grace_period
        while time.time() < deadline and any(p.poll() is None for p in processes):
            time.sleep(0.1)

        for process in processes:
            if process.poll() is None:
                with contextlib.suppress(OSError, ProcessLookupError):
                    os.killpg(os.getpgid(process.pid), signal.SIGKILL)
