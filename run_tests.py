#!/usr/bin/env python3
"""
Запуск тестов пакета rbf_surface
"""

import sys
import argparse
import importlib.util
from pathlib import Path

import pytest

project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))


def parse_args():
    """Парсинг аргументов командной строки"""
    parser = argparse.ArgumentParser(description='Run RBF surface reconstruction tests')

    parser.add_argument('-k', '--keyword', type=str, default=None,
                       help='Only run tests matching the expression')
    parser.add_argument('--no_cov', action='store_true',
                       help='Disable coverage report')
    parser.add_argument('--exitfirst', action='store_true',
                       help='Stop on first failure')
    parser.add_argument('--html_report', type=str, default='coverage_report',
                       help='Directory for the HTML coverage report')

    return parser.parse_args()


def build_pytest_args(args) -> list:
    """Аргументы pytest по опциям командной строки"""
    pytest_args = [
        str(project_root / "tests"),
        "-v",
        "--tb=short",
        "--durations=10",
    ]
    if args.exitfirst:
        pytest_args.append("-x")
    if args.keyword:
        pytest_args.extend(["-k", args.keyword])

    # Покрытие считает плагин pytest-cov, а не сам coverage
    if not args.no_cov:
        if importlib.util.find_spec("pytest_cov") is not None:
            pytest_args.extend([
                "--cov=rbf_surface",
                "--cov-report=term-missing",
                f"--cov-report=html:{args.html_report}"
            ])
        else:
            print("pytest-cov not installed, running tests without coverage")

    return pytest_args


def main() -> int:
    args = parse_args()

    print("Running RBF Surface Reconstruction Tests")
    print("=" * 50)

    return pytest.main(build_pytest_args(args))


if __name__ == "__main__":
    sys.exit(main())
