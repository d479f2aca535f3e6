from __future__ import annotations

import re
from typing import Iterable, Optional

# Automatically testable WCAG 2.2 success criteria per conformance level.
WCAG_CRITERIA_COUNTS = {"A": 25, "AA": 13, "AAA": 10}
EMAG_TOTAL_RECOMMENDATIONS = 45

PRINCIPLES = {"1": "perceivable", "2": "operable", "3": "understandable", "4": "robust"}
CRITERION_PATTERN = re.compile(r"^(\d)\.")


def _principle(criterion: str) -> Optional[str]:
    match = CRITERION_PATTERN.match(criterion or "")
    return PRINCIPLES.get(match.group(1)) if match else None


def _distinct(violations: Iterable[dict], field: str) -> list[str]:
    seen: dict[str, None] = {}
    for violation in violations or []:
        values = violation.get(field)
        if not isinstance(values, list):
            continue
        for value in values:
            if value:
                seen.setdefault(str(value), None)
    return list(seen)


def calculate_wcag_principle_breakdown(violations: Iterable[dict]) -> dict:
    breakdown = {name: 0 for name in PRINCIPLES.values()}
    for criterion in _distinct(violations, "wcag_criteria"):
        principle = _principle(criterion)
        if principle:
            breakdown[principle] += 1
    return breakdown


def calculate_wcag_conformance(violations: Iterable[dict], wcag_levels: Iterable[str]) -> dict:
    violations = list(violations or [])
    levels = [level.upper() for level in wcag_levels or [] if level and level.upper() in WCAG_CRITERIA_COUNTS]
    breakdown = calculate_wcag_principle_breakdown(violations)

    if not levels:
        return {
            "conformance_percent": 100,
            "affected_criteria": 0,
            "total_criteria": 0,
            "by_principle": breakdown,
        }

    affected = len(_distinct(violations, "wcag_criteria"))
    total = sum(WCAG_CRITERIA_COUNTS[level] for level in dict.fromkeys(levels))
    percent = round(max(0, total - affected) / total * 100) if total else 100

    return {
        "conformance_percent": percent,
        "affected_criteria": affected,
        "total_criteria": total,
        "by_principle": breakdown,
    }


def calculate_emag_conformance(violations: Iterable[dict]) -> dict:
    affected = len(_distinct(violations, "emag_recommendations"))
    remaining = max(0, EMAG_TOTAL_RECOMMENDATIONS - affected)
    return {
        "conformance_percent": round(remaining / EMAG_TOTAL_RECOMMENDATIONS * 100),
        "affected_recommendations": affected,
        "total_recommendations": EMAG_TOTAL_RECOMMENDATIONS,
    }
