#!/usr/bin/env python3
"""Test runner for the reposync test suite."""

import sys
import subprocess
from pathlib import Path


def run_test(test_file: str, description: str) -> bool:
    """Run a single test file and return success status."""
    print(f"\n{'='*60}")
    print(f"Running: {description}")
    print(f"File: {test_file}")
    print('='*60)

    result = subprocess.run([sys.executable, test_file], cwd=Path(__file__).parent)

    success = result.returncode == 0
    print(f"\n{'✅ PASSED' if success else '❌ FAILED'}: {description}")
    return success


def main():
    """Run every reposync test module in turn."""
    print("reposync Test Suite")
    print("="*60)

    tests = [
        ("test_config.py", "Configuration"),
        ("test_status_parser.py", "Porcelain Status Parsing"),
        ("test_references.py", "Branch and Remote Resolution"),
        ("test_change_actions.py", "Stage, Unstage and Discard"),
        ("test_untracked_rescue.py", "Untracked File Rescue"),
        ("test_safe_update.py", "Safe Update State Machine"),
        ("test_repository_manager.py", "Repository Manager"),
        ("test_package.py", "Packages"),
        ("test_error_handler.py", "Error Responses"),
        ("test_repository_integration.py", "Real Git Integration"),
        ("test_server_tools.py", "MCP Tools"),
    ]

    results = []
    for test_file, description in tests:
        if (Path(__file__).parent / test_file).exists():
            success = run_test(test_file, description)
            results.append((test_file, description, success))
        else:
            print(f"⚠️  Test file not found: {test_file}")
            results.append((test_file, description, False))

    # Summary
    print(f"\n{'='*60}")
    print("TEST SUITE SUMMARY")
    print("="*60)

    passed = 0
    for test_file, description, success in results:
        status = "✅ PASS" if success else "❌ FAIL"
        print(f"{status} {description}")
        if success:
            passed += 1

    print(f"\nResults: {passed}/{len(results)} test modules passed")

    if passed == len(results):
        print("\n🎉 ALL TESTS PASSED!")
        return True
    else:
        print(f"\n⚠️  {len(results) - passed} test modules failed")
        return False


if __name__ == "__main__":
    try:
        success = main()
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        print("\n\nTest suite interrupted by user")
        sys.exit(1)
