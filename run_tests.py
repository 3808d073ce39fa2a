#!/usr/bin/env python3
"""
Test runner for the Dead Links Finder

Runs one or more of the suites below through pytest. With no options the
whole suite runs with coverage of every module.
"""

import argparse
import subprocess
import sys

SOURCE_MODULES = [
    "dead_links_finder",
    "link_checker",
    "link_classifier",
    "link_extractor",
    "link_reporter",
    "link_scheduler",
    "linkcheck_config",
    "request_deadline",
    "soft_404",
]

UNIT_TEST_FILES = [f"test_{name}.py" for name in SOURCE_MODULES
                   if name not in ("dead_links_finder", "request_deadline")]

# Test selections for each suite option
SUITES = {
    "unit": ("Unit tests", UNIT_TEST_FILES),
    "network": ("Network check tests",
                ["test_link_checker.py::TestNetworkChecks", "test_link_checker.py::TestRequestDeadline"]),
    "integration": ("Integration tests", ["test_dead_links_finder.py::TestIntegration"]),
    "cli": ("CLI tests", ["test_dead_links_finder.py::TestMainFunction"]),
}


def run_pytest(args, description):
    cmd = [sys.executable, "-m", "pytest", *args]
    print(f"\n{'='*60}")
    print(f"{description}: {' '.join(cmd)}")
    print(f"{'='*60}")

    returncode = subprocess.run(cmd).returncode
    if returncode != 0:
        print(f"❌ {description} failed with exit code {returncode}")
        return False
    print(f"✅ {description} passed")
    return True


def run_all_tests():
    coverage = [f"--cov={name}" for name in SOURCE_MODULES]
    return run_pytest(["-v", *coverage, "--cov-report=term-missing"], "All tests with coverage")


def main():
    parser = argparse.ArgumentParser(description="Test runner for Dead Links Finder")
    for name, (description, _) in SUITES.items():
        parser.add_argument(f"--{name}", action="store_true", help=f"Run {description.lower()} only")
    parser.add_argument("--test", type=str,
                        help="Run one test (e.g. test_link_checker.py::TestRequestDeadline)")
    args = parser.parse_args()

    selected = [name for name in SUITES if getattr(args, name)]
    if not selected and not args.test:
        sys.exit(0 if run_all_tests() else 1)

    success = True
    for name in selected:
        description, paths = SUITES[name]
        success &= run_pytest([*paths, "-v", "--tb=short"], description)
    if args.test:
        success &= run_pytest([args.test, "-v", "-s"], f"Test {args.test}")

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
