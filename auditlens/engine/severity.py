from __future__ import annotations

from typing import Iterable, Optional

from auditlens.engine.errors import AuditDataError, UnknownSeverityError
from auditlens.engine.patterns import count_unique_patterns

SEVERITY_LEVELS = ("critical", "serious", "moderate", "minor")
SEVERITY_ORDER = {level: rank for rank, level in enumerate(SEVERITY_LEVELS)}


def validate_impact(impact: object, rule_id: object = None) -> str:
    """Return the severity tier or raise; a misfiled tier would skew the health score."""
    if isinstance(impact, str) and impact.strip().lower() in SEVERITY_ORDER:
        return impact.strip().lower()
    raise UnknownSeverityError(impact, rule_id)


def impact_rank(impact: object) -> int:
    return SEVERITY_ORDER[validate_impact(impact)]


def empty_summary() -> dict:
    return {level: {"occurrences": 0, "patterns": 0} for level in (*SEVERITY_LEVELS, "total")}


def _with_total(summary: dict) -> dict:
    summary["total"] = {
        "occurrences": sum(summary[level]["occurrences"] for level in SEVERITY_LEVELS),
        "patterns": sum(summary[level]["patterns"] for level in SEVERITY_LEVELS),
    }
    return summary


def calculate_severity_pattern_summary(violations: Iterable[dict], use_xpath: bool = False) -> dict:
    """Occurrences and distinct templates per severity tier.

    Patterns are counted per violation and then summed, so two rules failing on
    the same component contribute two patterns.
    """
    summary = empty_summary()

    for violation in violations or []:
        level = validate_impact(violation.get("impact"), violation.get("rule_id"))
        elements = violation.get("unique_elements") or []
        if not elements:
            continue
        summary[level]["occurrences"] += len(elements)
        summary[level]["patterns"] += count_unique_patterns(elements, use_xpath)

    return _with_total(summary)


def _count(value: object, field: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise AuditDataError(f"summary field {field!r} must be a number, got {value!r}")
    return int(value)


def coerce_summary(raw: Optional[dict]) -> dict:
    """Bring a stored summary into the nested ``{tier: {occurrences, patterns}}`` shape.

    Accepts the nested shape, the legacy flat shape
    (``{"critical": 3, ..., "total": 9, "patterns": {"critical": 1, ...}}``)
    and ``None`` (treated as an empty audit).
    """
    if not raw:
        return empty_summary()

    unknown = set(raw) - set(SEVERITY_LEVELS) - {"total", "patterns"}
    if unknown:
        raise UnknownSeverityError(sorted(unknown)[0])

    summary = empty_summary()
    legacy_patterns = raw.get("patterns") if isinstance(raw.get("patterns"), dict) else {}

    for level in SEVERITY_LEVELS:
        value = raw.get(level)
        if isinstance(value, dict):
            summary[level]["occurrences"] = _count(value.get("occurrences"), f"{level}.occurrences")
            summary[level]["patterns"] = _count(value.get("patterns"), f"{level}.patterns")
        else:
            occurrences = _count(value, level)
            summary[level]["occurrences"] = occurrences
            # Old records without pattern data: every occurrence is its own pattern.
            fallback = legacy_patterns.get(level, occurrences)
            summary[level]["patterns"] = _count(fallback, f"patterns.{level}")

    return _with_total(summary)
