#!/usr/bin/env python3

"""
Input discovery and sample naming.

Input files are recognized by suffix only; file contents are never read here.
Discovery is recursive by default, mirroring a `find` over the input tree.
Pass recursive=False to restrict the scan to the top level of the input
directory.
"""

import logging
import os
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List, Set, Union

from longreadqc.exceptions import DiscoveryError, NoInputFilesError

FASTQ_SUFFIXES = ('.fastq', '.fq', '.fastq.gz', '.fq.gz')
_INNER_EXTENSIONS = ('.fastq', '.fq')


def is_fastq_name(name: str) -> bool:
    """Return True if a file name carries one of the recognized FASTQ suffixes."""
    return name.endswith(FASTQ_SUFFIXES)


def sample_name_from_path(path: Union[str, Path]) -> str:
    """Derive the sample identifier from a FASTQ file path.

    Strips the rightmost extension, then strips a remaining `.fastq`/`.fq`
    if present, so compressed and uncompressed inputs reduce to the same name:

        sample1.fastq.gz  -> sample1
        run1.fq           -> run1
        sample.v2.fastq   -> sample.v2
    """
    base = os.path.basename(str(path))
    stem, _ = os.path.splitext(base)
    for ext in _INNER_EXTENSIONS:
        if stem.endswith(ext):
            return stem[:-len(ext)]
    return stem


def _raise_walk_error(error: OSError) -> None:
    raise DiscoveryError(f"Cannot read directory {error.filename}: {error.strerror}") from error


def _is_excluded(path: Union[str, Path], excluded: Set[Path]) -> bool:
    return Path(path).resolve() in excluded


def _accept(path: Path, found: List[Path]) -> None:
    if not sample_name_from_path(path):
        logging.warning(f"Skipping {path}: file name has no sample name before the FASTQ suffix")
        return
    found.append(path)


def discover_fastq_files(input_dir: Union[str, Path],
                         recursive: bool = True,
                         exclude: Iterable[Union[str, Path]] = ()) -> List[Path]:
    """Find FASTQ files under input_dir.

    Args:
        input_dir: Directory to scan
        recursive: Descend into subdirectories (default) or scan the top level only
        exclude: Directories never scanned, typically the output directory when
            it sits inside the input tree

    Returns:
        Sorted list of matching file paths. Files such as `.fastq` whose
        name is only a suffix are skipped with a warning.

    Raises:
        DiscoveryError: A directory in the tree could not be read
        NoInputFilesError: No matching files were found
    """
    input_dir = Path(input_dir)
    excluded = {Path(d).resolve() for d in exclude}
    found: List[Path] = []

    if recursive:
        for dirpath, dirnames, filenames in os.walk(input_dir, onerror=_raise_walk_error):
            dirnames[:] = sorted(d for d in dirnames if not _is_excluded(os.path.join(dirpath, d), excluded))
            for name in filenames:
                if is_fastq_name(name):
                    _accept(Path(dirpath) / name, found)
    else:
        try:
            entries = list(os.scandir(input_dir))
        except OSError as e:
            raise DiscoveryError(f"Cannot read directory {input_dir}: {e.strerror}") from e
        for entry in entries:
            if entry.is_file() and is_fastq_name(entry.name):
                _accept(Path(entry.path), found)

    if not found:
        raise NoInputFilesError(f"No FASTQ files found in input directory: {input_dir}")

    found.sort()
    logging.debug(f"Discovered {len(found)} FASTQ files under {input_dir}")
    return found


def find_duplicate_samples(paths: Iterable[Path]) -> Dict[str, List[Path]]:
    """Return sample names shared by more than one input file."""
    by_name: Dict[str, List[Path]] = defaultdict(list)
    for path in paths:
        by_name[sample_name_from_path(path)].append(path)
    return {name: files for name, files in by_name.items() if len(files) > 1}
