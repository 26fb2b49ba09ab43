#!/usr/bin/env python3
"""
Install (or remove) the hourly cron job that runs one automation tick.
The minute comes from AUTOAPPLY_CRON_MINUTE in .env (default 0).

  python setup_cron.py           install / replace the entry
  python setup_cron.py --print   only print the entry
  python setup_cron.py --remove  drop the entry
"""
from __future__ import annotations

import argparse
import os
import subprocess
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parent
MARKER = "# autoapply-tick"

load_dotenv(ROOT / ".env")


def build_entry(minute: int, root: Path = ROOT, python: Path | None = None) -> str:
    if not 0 <= minute <= 59:
        raise ValueError(f"Cron minute must be 0-59, got {minute}")
    python = python or root / ".venv" / "bin" / "python"
    return f"{minute} * * * * cd {root} && {python} {root / 'run_agent.py'} {MARKER}"


def merge_crontab(existing: str, entry: str | None) -> str:
    """Drop any earlier AutoApply line from *existing* and append *entry*."""
    lines = [ln for ln in existing.splitlines() if ln.strip() and MARKER not in ln]
    if entry:
        lines.append(entry)
    return "\n".join(lines) + "\n" if lines else ""


def _read_crontab() -> str:
    out = subprocess.run(["crontab", "-l"], capture_output=True, text=True, timeout=5)
    return out.stdout if out.returncode == 0 else ""


def _write_crontab(content: str) -> bool:
    proc = subprocess.run(["crontab", "-"], input=content, capture_output=True, text=True, timeout=5)
    return proc.returncode == 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Install the hourly AutoApply cron entry.")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--print", dest="print_only", action="store_true")
    group.add_argument("--remove", action="store_true")
    args = parser.parse_args(argv)

    entry = build_entry(int(os.environ.get("AUTOAPPLY_CRON_MINUTE", "0")))
    if args.print_only:
        print(entry)
        return 0

    python = ROOT / ".venv" / "bin" / "python"
    if not args.remove and not python.exists():
        print("Error: .venv not found. Run: python -m venv .venv && pip install -e .")
        return 1

    try:
        current = _read_crontab()
        new_crontab = merge_crontab(current, None if args.remove else entry)
        if new_crontab == current:
            print("Crontab already up to date. No change.")
            return 0
        if not _write_crontab(new_crontab):
            path = ROOT / "crontab.txt"
            path.write_text(new_crontab, encoding="utf-8")
            print(f"Could not install crontab automatically. Run manually:\n  crontab {path}")
            return 1
    except (FileNotFoundError, subprocess.TimeoutExpired) as exc:
        print(f"crontab unavailable ({exc}). On Windows use Task Scheduler instead.")
        print(f"  Entry: {entry}")
        return 1

    print("Cron entry removed." if args.remove else f"Cron installed: {entry}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
