#!/usr/bin/env python3
"""
Test runner script for the agent runtime.

This script provides convenient ways to run the test suite and quality
checks with various configurations and reporting options.
"""

import sys
import subprocess
import argparse


def run_command(cmd, description=""):
    """Run a command and handle errors."""
    print(f"\n{'='*60}")
    if description:
        print(f"Running: {description}")
    print(f"Command: {' '.join(cmd)}")
    print('='*60)

    try:
        subprocess.run(cmd, check=True, capture_output=False)
        print(f"\n{description or 'Command'} completed successfully")
        return True
    except subprocess.CalledProcessError as e:
        print(f"\n{description or 'Command'} failed with exit code {e.returncode}")
        return False
    except FileNotFoundError:
        print(f"\nCommand not found: {cmd[0]}")
        return False


def run_all_tests(verbose=False, coverage=False):
    """Run all tests."""
    cmd = [sys.executable, "-m", "pytest", "tests/"]

    if verbose:
        cmd.append("-v")

    if coverage:
        cmd.extend(["--cov=vibe", "--cov-report=term-missing", "--cov-report=html"])

    return run_command(cmd, "All Tests")


def run_specific_test(test_path, verbose=False):
    """Run a specific test file or test function."""
    cmd = [sys.executable, "-m", "pytest", test_path]

    if verbose:
        cmd.append("-v")

    return run_command(cmd, f"Specific Test: {test_path}")


def run_linting():
    """Run code linting."""
    success = True

    if not run_command([sys.executable, "-m", "black", "--check", "vibe/", "tests/"], "Black Formatting Check"):
        success = False

    if not run_command([sys.executable, "-m", "ruff", "check", "vibe/", "tests/"], "Ruff Linting"):
        success = False

    return success


def run_type_checking():
    """Run type checking."""
    return run_command([sys.executable, "-m", "pyright", "vibe/"], "Type Checking")


def install_dependencies():
    """Install test dependencies."""
    return run_command([sys.executable, "-m", "pip", "install", "-e", ".[dev]"], "Installing Dependencies")


def main():
    """Main function."""
    parser = argparse.ArgumentParser(description="Test runner for the agent runtime")

    parser.add_argument(
        "command",
        choices=["all", "lint", "type-check", "quality", "install", "specific"],
        help="Test command to run"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    parser.add_argument(
        "-c", "--coverage",
        action="store_true",
        help="Run with coverage reporting"
    )

    parser.add_argument(
        "-t", "--test-path",
        help="Specific test path (for 'specific' command)"
    )

    args = parser.parse_args()

    if args.command == "all":
        success = run_all_tests(args.verbose, args.coverage)

    elif args.command == "specific":
        if not args.test_path:
            print("--test-path is required for 'specific' command")
            sys.exit(1)
        success = run_specific_test(args.test_path, args.verbose)

    elif args.command == "lint":
        success = run_linting()

    elif args.command == "type-check":
        success = run_type_checking()

    elif args.command == "quality":
        success = run_linting() and run_type_checking()

    else:
        success = install_dependencies()

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
