"""
longreadqc: Batch quality control and trimming of long-read FASTQ files with fastp.

Discovers FASTQ files in an input directory, runs fastp on each sample with
long-read oriented settings, and collects trimmed reads, reports, logs and a
processing summary under one output directory.
"""

__version__ = "1.1.0"

from .cli import main

__all__ = ["main", "__version__"]
