# SPDX-License-Identifier: MIT OR Apache-2.0
# Copyright (c) 2026 gwz

"""Check tracked Python and Zig sources for the license and copyright header."""

from __future__ import annotations

import re
import subprocess
import sys
from pathlib import Path

SPDX_RE = re.compile(r"SPDX-License-Identifier:\s*MIT OR Apache-2\.0")
COPYRIGHT_RE = re.compile(r"Copyright\s*\(c\)\s*\d{4}(?:-\d{4})?\b")
TARGET_SUFFIXES = {".py", ".zig"}
MAX_SCAN_LINES = 20


def _tracked_files(repo_root: Path) -> list[Path]:
    result = subprocess.run(
        ["git", "ls-files", "-z"],
        cwd=repo_root,
        check=True,
        capture_output=True,
        text=False,
    )
    return [repo_root / raw.decode("utf-8") for raw in result.stdout.split(b"\0") if raw]


def _read_head(path: Path, max_lines: int) -> str:
    with path.open("r", encoding="utf-8", errors="replace") as f:
        return "".join(line for _, line in zip(range(max_lines), f))


def _problems(head: str) -> list[str]:
    problems = []
    if not SPDX_RE.search(head):
        problems.append("license identifier")
    if not COPYRIGHT_RE.search(head):
        problems.append("copyright notice")
    return problems


def main() -> int:
    repo_root = Path(__file__).resolve().parent.parent.parent
    failures: dict[str, list[str]] = {}
    scanned = 0

    for path in _tracked_files(repo_root):
        if not path.is_file() or path.suffix not in TARGET_SUFFIXES:
            continue
        scanned += 1
        problems = _problems(_read_head(path, MAX_SCAN_LINES))
        if problems:
            failures[path.relative_to(repo_root).as_posix()] = problems

    if failures:
        print("Missing header lines in:")
        for name in sorted(failures):
            print(f"  - {name}: {', '.join(failures[name])}")
        print(f"\nChecked {scanned} files. Failing: {len(failures)}.")
        return 1

    print(f"Checked {scanned} files. All carry the license header.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
