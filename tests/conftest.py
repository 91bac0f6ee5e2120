"""Shared fixtures: FASTQ inputs, an in-process stub engine and a stub fastp executable."""

import gzip
import json
import logging
import stat
import sys
import threading
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from longreadqc.config import RunConfig
from longreadqc.fastp import EngineResult, metrics_path_from_args
from longreadqc.models import Sample


def write_fastq(path: Path, n_reads: int = 3, length: int = 20) -> Path:
    """Write a small FASTQ file, gzip-compressed when the name ends in .gz."""
    lines = []
    for i in range(n_reads):
        lines += [f"@read{i}", "ACGT" * (length // 4), "+", "I" * (length // 4 * 4)]
    content = "\n".join(lines) + "\n"
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.name.endswith(".gz"):
        with gzip.open(path, "wt") as f:
            f.write(content)
    else:
        path.write_text(content)
    return path


def fastp_report(reads_before: int, reads_after: int,
                 bases_before: Optional[int] = None, bases_after: Optional[int] = None) -> Dict:
    """Minimal fastp JSON report with before/after summary sections."""
    before = {"total_reads": reads_before}
    after = {"total_reads": reads_after}
    if bases_before is not None:
        before["total_bases"] = bases_before
    if bases_after is not None:
        after["total_bases"] = bases_after
    return {"summary": {"fastp_version": "0.23.4", "before_filtering": before, "after_filtering": after}}


class StubEngine:
    """In-process engine: writes the artifacts fastp would write, without a subprocess."""

    def __init__(self, counts: Tuple[int, int] = (1000, 850), fail: Tuple[str, ...] = ()):
        self.counts = counts
        self.fail = set(fail)
        self.calls: List[Tuple[str, List[str]]] = []
        self._lock = threading.Lock()

    def invoke(self, sample: Sample, args: List[str]) -> EngineResult:
        with self._lock:
            self.calls.append((sample.name, list(args)))

        sample.log_path.parent.mkdir(parents=True, exist_ok=True)
        if sample.name in self.fail:
            sample.log_path.write_text("ERROR: stub failure\n")
            return EngineResult(exit_status=1, log_path=sample.log_path,
                                metrics_path=metrics_path_from_args(args))

        sample.log_path.write_text("stub fastp run\n")
        output = Path(args[args.index("-o") + 1])
        output.parent.mkdir(parents=True, exist_ok=True)
        with gzip.open(output, "wt") as f:
            f.write("@r\nACGT\n+\nIIII\n")

        metrics = metrics_path_from_args(args)
        if metrics is not None:
            metrics.parent.mkdir(parents=True, exist_ok=True)
            metrics.write_text(json.dumps(fastp_report(*self.counts)))
        if "--html" in args:
            Path(args[args.index("--html") + 1]).write_text("<html></html>")

        return EngineResult(exit_status=0, log_path=sample.log_path, metrics_path=metrics)

    def terminate_all(self) -> None:
        pass


FAKE_FASTP = '''#!{python}
"""Stand-in for fastp used by the test suite.

Copies the input reads to the output, writes a JSON report when asked,
fails for inputs whose name contains "fail" and sleeps for "slow" inputs.
"""
import gzip
import json
import os
import sys
import time

args = sys.argv[1:]
if "--version" in args:
    sys.stderr.write("fastp 0.23.4\\n")
    sys.exit(0)

def value(flag):
    return args[args.index(flag) + 1] if flag in args else None

src, dst = value("-i"), value("-o")
print("fastp stub: " + " ".join(args))
name = os.path.basename(src)
if "slow" in name:
    time.sleep(60)
if "fail" in name:
    sys.stderr.write("ERROR: cannot process " + src + "\\n")
    sys.exit(1)

opener = gzip.open if src.endswith(".gz") else open
with opener(src, "rt") as f:
    data = f.read()
n_reads = data.count("\\n") // 4
with gzip.open(dst, "wt") as f:
    f.write(data)

report = value("--json")
if report:
    with open(report, "w") as f:
        json.dump({{"summary": {{"before_filtering": {{"total_reads": n_reads, "total_bases": len(data)}},
                                "after_filtering": {{"total_reads": n_reads, "total_bases": len(data)}}}}}}, f)
html = value("--html")
if html:
    with open(html, "w") as f:
        f.write("<html></html>")
'''


@pytest.fixture
def fake_fastp(tmp_path) -> str:
    """Path to an executable stub fastp script."""
    script = tmp_path / "bin" / "fastp"
    script.parent.mkdir()
    script.write_text(FAKE_FASTP.format(python=sys.executable))
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(script)


@pytest.fixture
def input_dir(tmp_path) -> Path:
    directory = tmp_path / "input"
    directory.mkdir()
    return directory


@pytest.fixture
def output_dir(tmp_path) -> Path:
    return tmp_path / "output"


@pytest.fixture
def make_config(input_dir, output_dir):
    """Factory for RunConfig rooted at the temporary input/output directories."""
    def _make(**overrides) -> RunConfig:
        params = dict(input_dir=input_dir, output_dir=output_dir)
        params.update(overrides)
        return RunConfig(**params)
    return _make


@pytest.fixture
def restore_logging():
    """Undo root logger changes made by setup_logging."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    logging.captureWarnings(False)
