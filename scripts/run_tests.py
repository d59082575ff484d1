#!/usr/bin/env python3
"""
Test Runner Script

Runs the Catchment test suite with coverage and JUnit reporting.

Usage:
    python scripts/run_tests.py              # Run all tests
    python scripts/run_tests.py --core       # Only the apportionment core
    python scripts/run_tests.py --quick      # Skip slow tests
    python scripts/run_tests.py -k overlap   # Extra args go to pytest

Author: Catchment Project
License: AGPL-3.0
"""

import json
import re
import subprocess
import sys
from datetime import datetime
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
TEST_DIR = ROOT / "tests"
REPORT_DIR = TEST_DIR / "reports"


def run_tests(args=None) -> int:
    """Run pytest and return its exit code."""
    args = list(args or [])
    REPORT_DIR.mkdir(parents=True, exist_ok=True)

    cmd = [
        sys.executable, "-m", "pytest",
        str(TEST_DIR),
        "-v",
        "--tb=short",
        "--cov=catchment",
        "--cov-report=term-missing",
        f"--cov-report=json:{REPORT_DIR / 'coverage.json'}",
        f"--junitxml={REPORT_DIR / 'junit.xml'}",
        f"--log-file={REPORT_DIR / 'test_results.log'}",
        "--log-file-level=DEBUG",
    ]

    if "--core" in args:
        args.remove("--core")
        cmd.extend(["-m", "core"])
    if "--quick" in args:
        args.remove("--quick")
        cmd.extend(["-m", "not slow"])
    cmd.extend(args)

    print("=" * 70)
    print(f"Catchment Test Suite - {datetime.now().isoformat()}")
    print("=" * 70)
    print(f"Command: {' '.join(cmd)}\n")

    return subprocess.run(cmd, cwd=ROOT).returncode


def print_summary():
    """Print coverage and pass/fail counts from the generated reports."""
    coverage_file = REPORT_DIR / "coverage.json"
    if coverage_file.exists():
        with open(coverage_file) as f:
            total = json.load(f).get("totals", {}).get("percent_covered", 0)
        print(f"\nTotal Coverage: {total:.1f}%")

    junit_file = REPORT_DIR / "junit.xml"
    if junit_file.exists():
        content = junit_file.read_text()
        counts = {}
        for key in ("tests", "failures", "errors", "skipped"):
            match = re.search(rf'{key}="(\d+)"', content)
            counts[key] = int(match.group(1)) if match else 0
        passed = counts["tests"] - counts["failures"] - counts["errors"] - counts["skipped"]
        print("\nTest Results:")
        print(f"  Total:   {counts['tests']}")
        print(f"  Passed:  {passed}")
        print(f"  Failed:  {counts['failures']}")
        print(f"  Errors:  {counts['errors']}")
        print(f"  Skipped: {counts['skipped']}")

    print(f"\nDetailed results in {REPORT_DIR}\n")


if __name__ == "__main__":
    exit_code = run_tests(sys.argv[1:])
    print_summary()
    sys.exit(exit_code)
