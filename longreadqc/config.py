"""Run configuration and named parameter presets."""

import logging
import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, Optional

from Bio import SeqIO

from longreadqc.exceptions import ConfigurationError

DEFAULT_THREADS = 4
DEFAULT_MIN_LENGTH = 1000
DEFAULT_QUALITY_THRESHOLD = 7
DEFAULT_COMPLEXITY_THRESHOLD = 30


# Presets for common platforms and use cases. Keys are argparse destinations,
# so a profile can be applied with parser.set_defaults(**PROFILES[name]).
PROFILES: Dict[str, Dict[str, Any]] = {
    'nanopore': {
        'description': "Oxford Nanopore MinION/GridION with typical quality scores",
        'threads': 8, 'min_length': 1000, 'quality_threshold': 7, 'complexity': 30,
    },
    'promethion': {
        'description': "High-throughput Nanopore with more aggressive filtering",
        'threads': 16, 'min_length': 2000, 'quality_threshold': 8, 'complexity': 35,
    },
    'pacbio': {
        'description': "High-quality PacBio Sequel/HiFi reads with stringent filtering",
        'threads': 12, 'min_length': 500, 'quality_threshold': 12, 'complexity': 40,
        'no_trim_poly_g': True,
    },
    'metagenomics': {
        'description': "Relaxed filtering for diverse microbial communities",
        'threads': 8, 'min_length': 500, 'quality_threshold': 6, 'complexity': 25,
    },
    'transcriptomics': {
        'description': "Long-read RNA sequencing",
        'threads': 6, 'min_length': 200, 'quality_threshold': 8, 'complexity': 30,
    },
    'assembly': {
        'description': "High-quality long reads for de novo assembly",
        'threads': 16, 'min_length': 5000, 'quality_threshold': 10, 'complexity': 45,
    },
    'amplicon': {
        'description': "Targeted amplicon sequencing (combine with --adapter-fasta)",
        'threads': 4, 'min_length': 800, 'quality_threshold': 12, 'complexity': 35,
    },
    'quick': {
        'description': "Fast processing for initial data assessment",
        'threads': 4, 'min_length': 100, 'quality_threshold': 5, 'complexity': 20,
        'no_trim_poly_x': True,
    },
    'stringent': {
        'description': "Maximum filtering for critical applications",
        'threads': 8, 'min_length': 10000, 'quality_threshold': 15, 'complexity': 50,
    },
    'minimal': {
        'description': "Basic length filtering only",
        'threads': 2, 'min_length': 200, 'quality_threshold': 3, 'complexity': 10,
        'no_trim_poly_g': True, 'no_trim_poly_x': True, 'no_report': True,
    },
}


def profile_defaults(name: str) -> Dict[str, Any]:
    """Return the argparse defaults for a named profile."""
    if name not in PROFILES:
        known = ", ".join(sorted(PROFILES))
        raise ConfigurationError(f"Unknown profile '{name}' (available: {known})")
    return {k: v for k, v in PROFILES[name].items() if k != 'description'}


def format_profiles() -> str:
    """Format the available profiles as a human-readable table."""
    lines = [
        f"{'Profile':<16} {'Threads':>7} {'MinLen':>7} {'Q':>3} {'Cplx':>5}  Description",
        "-" * 90,
    ]
    for name in sorted(PROFILES):
        p = PROFILES[name]
        lines.append(
            f"{name:<16} {p['threads']:>7} {p['min_length']:>7} {p['quality_threshold']:>3} "
            f"{p['complexity']:>5}  {p['description']}"
        )
    return "\n".join(lines)


@dataclass(frozen=True)
class RunConfig:
    """Validated parameters for one batch run.

    Attributes:
        input_dir: Directory scanned for FASTQ files
        output_dir: Root of trimmed/, reports/ and logs/
        threads: Total thread budget; each fastp invocation gets threads // jobs
        min_length: Minimum read length after trimming
        quality_threshold: Phred quality passed to fastp as the qualified quality
        complexity_threshold: Low-complexity filter threshold (0-100)
        adapter_fasta: Optional FASTA of adapter sequences; enables adapter trimming
        trim_poly_g: Trim poly-G tails
        trim_poly_x: Trim poly-X tails
        generate_report: Write per-sample HTML and JSON reports
        jobs: Number of samples processed concurrently
        recursive: Scan subdirectories of input_dir
        fastp_path: fastp executable name or path
    """
    input_dir: Path
    output_dir: Path
    threads: int = DEFAULT_THREADS
    min_length: int = DEFAULT_MIN_LENGTH
    quality_threshold: int = DEFAULT_QUALITY_THRESHOLD
    complexity_threshold: int = DEFAULT_COMPLEXITY_THRESHOLD
    adapter_fasta: Optional[Path] = None
    trim_poly_g: bool = True
    trim_poly_x: bool = True
    generate_report: bool = True
    jobs: int = 1
    recursive: bool = True
    fastp_path: str = 'fastp'

    @property
    def threads_per_sample(self) -> int:
        """Threads given to each fastp invocation so that jobs * threads never exceeds the budget."""
        return max(1, self.threads // self.jobs)

    @property
    def trimmed_dir(self) -> Path:
        return self.output_dir / "trimmed"

    @property
    def reports_dir(self) -> Path:
        return self.output_dir / "reports"

    @property
    def logs_dir(self) -> Path:
        return self.output_dir / "logs"

    @property
    def summary_path(self) -> Path:
        return self.output_dir / "processing_summary.txt"

    @property
    def summary_json_path(self) -> Path:
        return self.output_dir / "processing_summary.json"

    def validate(self) -> 'RunConfig':
        """Check parameter ranges and filesystem preconditions.

        Returns self so construction and validation can be chained.

        Raises:
            ConfigurationError: On the first violated constraint
        """
        if self.threads < 1:
            raise ConfigurationError(f"Thread count must be a positive integer, got {self.threads}")
        if self.min_length < 1:
            raise ConfigurationError(f"Minimum length must be a positive integer, got {self.min_length}")
        if self.quality_threshold < 0:
            raise ConfigurationError(f"Quality threshold must be non-negative, got {self.quality_threshold}")
        if not 0 <= self.complexity_threshold <= 100:
            raise ConfigurationError(
                f"Complexity threshold must be between 0 and 100, got {self.complexity_threshold}")
        if self.jobs < 1:
            raise ConfigurationError(f"Concurrent job count must be a positive integer, got {self.jobs}")
        if self.jobs > self.threads:
            raise ConfigurationError(
                f"Concurrent jobs ({self.jobs}) cannot exceed the thread budget ({self.threads})")

        if not self.input_dir.is_dir():
            raise ConfigurationError(f"Input directory does not exist: {self.input_dir}")
        if not os.access(self.input_dir, os.R_OK | os.X_OK):
            raise ConfigurationError(f"Input directory is not readable: {self.input_dir}")

        if self.output_dir.exists():
            if not self.output_dir.is_dir():
                raise ConfigurationError(f"Output path exists and is not a directory: {self.output_dir}")
            if not os.access(self.output_dir, os.W_OK):
                raise ConfigurationError(f"Cannot write to output directory: {self.output_dir}")
        else:
            parent = self.output_dir.resolve().parent
            if not parent.is_dir() or not os.access(parent, os.W_OK):
                raise ConfigurationError(f"Cannot write to output directory parent: {parent}")

        if self.adapter_fasta is not None:
            self._validate_adapter_fasta()

        return self

    def _validate_adapter_fasta(self) -> None:
        if not self.adapter_fasta.is_file():
            raise ConfigurationError(f"Adapter FASTA file not found: {self.adapter_fasta}")
        try:
            n_adapters = sum(1 for _ in SeqIO.parse(str(self.adapter_fasta), "fasta"))
        except (ValueError, UnicodeDecodeError) as e:
            raise ConfigurationError(f"Cannot parse adapter FASTA {self.adapter_fasta}: {e}") from e
        if n_adapters == 0:
            raise ConfigurationError(f"Adapter FASTA contains no sequences: {self.adapter_fasta}")
        logging.debug(f"Loaded {n_adapters} adapter sequences from {self.adapter_fasta}")

    def as_dict(self) -> Dict[str, Any]:
        """Parameters as JSON-serializable values."""
        params = asdict(self)
        for key, value in params.items():
            if isinstance(value, Path):
                params[key] = str(value)
        params['threads_per_sample'] = self.threads_per_sample
        return params

    @classmethod
    def from_args(cls, args) -> 'RunConfig':
        """Create config from parsed command-line arguments."""
        adapter = getattr(args, 'adapter_fasta', None)
        return cls(
            input_dir=Path(args.input_dir),
            output_dir=Path(args.output_dir),
            threads=args.threads,
            min_length=args.min_length,
            quality_threshold=args.quality_threshold,
            complexity_threshold=args.complexity,
            adapter_fasta=Path(adapter) if adapter else None,
            trim_poly_g=not args.no_trim_poly_g,
            trim_poly_x=not args.no_trim_poly_x,
            generate_report=not args.no_report,
            jobs=getattr(args, 'jobs', 1),
            recursive=not getattr(args, 'no_recursive', False),
            fastp_path=getattr(args, 'fastp', None) or 'fastp',
        )
