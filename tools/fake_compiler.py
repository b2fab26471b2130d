#!/usr/bin/env python3
"""Stand-in toolchain for integration tests: copies sources to an output dir."""

from __future__ import annotations

import argparse
import shutil
import sys
import time
from pathlib import Path


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fake compiler for buildorch integration tests")
    parser.add_argument("sources", type=Path)
    parser.add_argument("--out", type=Path, required=True)
    parser.add_argument("--sleep", type=float, default=0.0)
    parser.add_argument("--fail-always", action="store_true")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    if args.sleep > 0:
        time.sleep(args.sleep)

    if args.fail_always:
        print("error: forced compile failure", file=sys.stderr, flush=True)
        return 1
    if not args.sources.is_dir():
        print(f"error: no such source dir: {args.sources}", file=sys.stderr, flush=True)
        return 2

    compiled = 0
    for source in sorted(args.sources.rglob("*.py")):
        target = args.out / source.relative_to(args.sources).with_suffix(".out")
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target)
        compiled += 1
    print(f"compiled {compiled} file(s)", flush=True)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
