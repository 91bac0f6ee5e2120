"""Data structures shared by the discovery, processing and summary stages."""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import NamedTuple, Optional, Tuple

from longreadqc.config import RunConfig
from longreadqc.discovery import sample_name_from_path


class SampleStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class Sample(NamedTuple):
    """One input FASTQ file and the artifact paths derived from its name."""
    source: Path
    name: str
    trimmed_path: Path
    html_report: Path
    json_report: Path
    log_path: Path

    @classmethod
    def from_path(cls, path: Path, output_dir: Path) -> 'Sample':
        name = sample_name_from_path(path)
        return cls(
            source=Path(path),
            name=name,
            trimmed_path=output_dir / "trimmed" / f"{name}_trimmed.fastq.gz",
            html_report=output_dir / "reports" / f"{name}_fastp_report.html",
            json_report=output_dir / "reports" / f"{name}_fastp_report.json",
            log_path=output_dir / "logs" / f"{name}_fastp.log",
        )

    @property
    def artifacts(self) -> Tuple[Path, ...]:
        return (self.trimmed_path, self.html_report, self.json_report, self.log_path)


class ReadCounts(NamedTuple):
    """Read and base totals reported by fastp before and after filtering."""
    reads_before: Optional[int] = None
    reads_after: Optional[int] = None
    bases_before: Optional[int] = None
    bases_after: Optional[int] = None


class SampleOutcome(NamedTuple):
    """Result of processing one sample."""
    sample: Sample
    status: SampleStatus
    counts: ReadCounts = ReadCounts()
    exit_status: Optional[int] = None
    error: Optional[str] = None
    elapsed: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status is SampleStatus.SUCCESS

    @property
    def reads_before(self) -> Optional[int]:
        return self.counts.reads_before

    @property
    def reads_after(self) -> Optional[int]:
        return self.counts.reads_after

    @property
    def retention(self) -> Optional[float]:
        """Fraction of reads kept, when both counts are known."""
        if not self.counts.reads_before or self.counts.reads_after is None:
            return None
        return self.counts.reads_after / self.counts.reads_before


class BatchResult(NamedTuple):
    """Aggregate of one outcome per discovered sample, in discovery order."""
    config: RunConfig
    outcomes: Tuple[SampleOutcome, ...]
    started: datetime
    finished: datetime
    cancelled: bool = False

    @property
    def processed_count(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    @property
    def failed_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.succeeded)

    @property
    def successful(self) -> Tuple[SampleOutcome, ...]:
        return tuple(o for o in self.outcomes if o.succeeded)

    @property
    def failed(self) -> Tuple[SampleOutcome, ...]:
        return tuple(o for o in self.outcomes if not o.succeeded)

    @property
    def elapsed(self) -> float:
        return (self.finished - self.started).total_seconds()
