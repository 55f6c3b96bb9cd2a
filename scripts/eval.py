#!/usr/bin/env python3
"""Evaluate phrase detection against hand-labelled beat-1 timestamps.

The labels file is JSON mapping audio paths (relative to the labels file)
to lists of times, in seconds, that a dancer would count as "1":

    {"swinginsafari.mp3": [59.1], "doright.mp3": [19.0, 34.5, 42.3]}

For every method, a timestamp passes when the beat nearest to it is counted
as "1" with that method's offset.

Usage:
    uv run python scripts/eval.py labels.json
    uv run python scripts/eval.py labels.json --method combined --verbose
    uv run python scripts/eval.py labels.json --json results.json
"""

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from tqdm import tqdm

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from eightcount.analysis.combiner import select_phrase_offset
from eightcount.analysis.engine import AnalysisEngine
from eightcount.analysis.models import AnalysisMethod, BeatGrid, PhraseOffset
from eightcount.analysis.progress import AnalysisError


@dataclass
class Check:
    file: str
    method: str
    target: float
    beat_time: float
    beat_index: int
    count: int

    @property
    def passed(self) -> bool:
        return self.count == 1


def nearest_beat_count(beats: BeatGrid, offset: int, target: float) -> tuple[int, float, int]:
    """(beat index, beat time, spoken count) of the beat closest to *target*.

    An empty grid gives ``(-1, nan, 0)``, which never counts as "1".
    """
    times = beats.times
    if len(times) == 0:
        return -1, float("nan"), 0
    idx = int(np.argmin(np.abs(times - target)))
    return idx, float(times[idx]), PhraseOffset(offset=offset).count(idx)


def load_labels(path: Path) -> dict[Path, list[float]]:
    data = json.loads(path.read_text(encoding="utf-8"))
    return {(path.parent / name).resolve(): [float(t) for t in times] for name, times in data.items()}


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("labels", type=Path, help="JSON file of expected beat-1 times")
    parser.add_argument("--method", choices=[m.value for m in AnalysisMethod], action="append",
                        help="Method(s) to evaluate (default: all)")
    parser.add_argument("--verbose", action="store_true", help="Per-timestamp details")
    parser.add_argument("--json", type=Path, help="Write per-check results to this file")
    args = parser.parse_args()

    logging.basicConfig(level=logging.WARNING, format="%(name)s %(levelname)s: %(message)s")

    methods = [AnalysisMethod(m) for m in args.method] if args.method else list(AnalysisMethod)
    labels = load_labels(args.labels)
    engine = AnalysisEngine()

    checks: list[Check] = []
    failures: list[str] = []
    for path, targets in tqdm(labels.items(), desc="Analyzing", unit="file"):
        if not path.exists():
            tqdm.write(f"  SKIP: {path.name} - file not found")
            continue
        try:
            result = engine.analyze_file(str(path))
        except AnalysisError as e:
            failures.append(path.name)
            tqdm.write(f"  FAIL: {path.name} - {e}")
            continue

        for method in methods:
            offset = select_phrase_offset(result, method)
            for target in targets:
                idx, beat_time, count = nearest_beat_count(result.beats, offset, target)
                checks.append(Check(path.name, method.value, target, beat_time, idx, count))

    print()
    for method in methods:
        rows = [c for c in checks if c.method == method.value]
        passed = sum(c.passed for c in rows)
        print(f"{method.value:>9}: {passed}/{len(rows)} beat-1 timestamps counted as 1")
        if args.verbose:
            for c in rows:
                mark = "ok " if c.passed else "BAD"
                print(f"    {mark} {c.file} @ {c.target:.2f}s -> beat #{c.beat_index} "
                      f"({c.beat_time:.2f}s) counted {c.count}")

    if args.json:
        args.json.write_text(json.dumps([c.__dict__ for c in checks], indent=2), encoding="utf-8")

    if failures:
        print(f"\n{len(failures)} file(s) failed to analyze")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
