"""Error types raised by the long-read QC pipeline."""


class LongReadQCError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(LongReadQCError):
    """Invalid run parameters or an unusable environment (fatal)."""


class DiscoveryError(LongReadQCError):
    """Input files could not be enumerated (fatal)."""


class NoInputFilesError(DiscoveryError):
    """The input directory contains no FASTQ files."""


class SampleProcessingError(LongReadQCError):
    """The processing engine could not be run for a single sample."""


class MetricsParseWarning(UserWarning):
    """Engine metrics were missing or malformed; counts are left empty."""
