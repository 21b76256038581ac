#!/usr/bin/env python3
"""
Leftover Sweep for Image Operations

Usage:
    python3 scripts/sweep_temp.py [--temp-dir DIR] [--max-age-minutes N] [--dry-run]

Every call removes its own staged files, but a process killed mid-call
(SIGKILL, power loss) leaves them behind. This script:
1. Lists files and per-call output directories in the temp directory
   carrying the staging prefix.
2. Removes the ones older than --max-age-minutes (default 60), so files that
   belong to calls still running are left alone.
"""
from __future__ import annotations
import sys
import argparse
import shutil
import time
from pathlib import Path

# Fix python path to allow imports from image_ops
SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT))

from image_ops.config import TEMP_DIR, TEMP_PREFIX  # noqa: E402
from image_ops.runner import LocalFileSystem  # noqa: E402


def find_leftovers(temp_dir: Path, max_age_secs: float, now: float | None = None) -> list[Path]:
    now = time.time() if now is None else now
    out = []
    for f in temp_dir.glob(f"{TEMP_PREFIX}*"):
        try:
            if (f.is_file() or f.is_dir()) and now - f.stat().st_mtime >= max_age_secs:
                out.append(f)
        except FileNotFoundError:
            continue  # removed by its owner meanwhile
    return sorted(out)


def sweep(temp_dir: Path, max_age_secs: float, dry_run: bool = False) -> int:
    removed = 0
    for f in find_leftovers(temp_dir, max_age_secs):
        if dry_run:
            print(f"Would remove {f}")
            continue
        try:
            if f.is_dir():
                shutil.rmtree(f)
            else:
                f.unlink()
            print(f"Removed leftover {f}")
            removed += 1
        except OSError as e:
            print(f"WARNING: could not remove {f}: {e}")
    return removed


def main(argv=None):
    parser = argparse.ArgumentParser(description="Remove leftover staged image files.")
    parser.add_argument("--temp-dir", type=Path, default=Path(TEMP_DIR or LocalFileSystem.temp_dir()),
                        help="Directory holding staged files (default: %(default)s)")
    parser.add_argument("--max-age-minutes", type=float, default=60.0)
    parser.add_argument("--dry-run", action="store_true", help="List files without removing them")
    args = parser.parse_args(argv)

    if not args.temp_dir.is_dir():
        print(f"Error: temp directory not found at {args.temp_dir}")
        return 1

    removed = sweep(args.temp_dir, args.max_age_minutes * 60, args.dry_run)
    print(f"Done. {removed} file(s) removed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
