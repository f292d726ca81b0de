"""Test-history statistics for the profile and admin views."""
from typing import Iterable, Optional

from course_tutor.models import TestResult
from course_tutor.timed_test import grade_band


def average_percentage(results: Iterable[TestResult]) -> float:
    """Mean percentage over results with a non-zero max score, one decimal."""
    percentages = [r.percentage() for r in results if r.max_score > 0]
    if not percentages:
        return 0.0
    return round(sum(percentages) / len(percentages), 1)


def best_result(results: Iterable[TestResult]) -> Optional[TestResult]:
    # Highest score ratio; the most recent attempt wins a tie.
    return max(results, key=lambda r: (r.ratio(), r.test_date), default=None)


def last_result(results: Iterable[TestResult]) -> Optional[TestResult]:
    return max(results, key=lambda r: r.test_date, default=None)


def sort_history(results: Iterable[TestResult]) -> list[TestResult]:
    return sorted(results, key=lambda r: r.test_date, reverse=True)


def format_percentage(value: float) -> str:
    return f"{value:.1f}%"


def filter_by_name(results: Iterable[TestResult], fragment: str) -> list[TestResult]:
    fragment = fragment.strip().lower()
    if not fragment:
        return list(results)
    return [r for r in results if fragment in r.full_name.lower()]


def summarize(results: Iterable[TestResult]) -> dict:
    results = list(results)
    best = best_result(results)
    last = last_result(results)
    best_pct = round(best.percentage(), 1) if best else 0.0
    return {
        "total_tests": len(results),
        "average_percentage": average_percentage(results),
        "best_percentage": best_pct,
        "best_grade": grade_band(best_pct) if best else None,
        "last_test_date": last.test_date if last else None,
    }
