from __future__ import annotations

from typing import Iterable, Literal, Optional

from auditlens.engine.errors import AuditDataError, DuplicateViolationError
from auditlens.engine.scoring import resolve_health_score
from auditlens.engine.severity import SEVERITY_LEVELS, coerce_summary, impact_rank, validate_impact

ChangeType = Literal["new", "fixed", "persistent", "worsened", "improved"]
DeltaKind = Literal["violations", "score", "pages"]

CHANGE_TYPES: tuple[ChangeType, ...] = ("new", "fixed", "persistent", "worsened", "improved")

# Sign convention for every delta: current minus previous.
#   violation tiers, total, broken_pages: positive = regression
#   health_score:                         positive = improvement
#   pages_audited:                        informational only
DELTA_FIELDS = (*SEVERITY_LEVELS, "total", "health_score", "pages_audited", "broken_pages")


def empty_delta() -> dict:
    return {field: 0 for field in DELTA_FIELDS}


def empty_buckets() -> dict:
    return {change: [] for change in CHANGE_TYPES}


def violation_key(violation: dict) -> str:
    return str(violation.get("fingerprint") or violation.get("rule_id") or "")


def violation_occurrences(violation: dict) -> int:
    occurrences = violation.get("occurrences")
    if occurrences is None:
        return len(violation.get("unique_elements") or [])
    return int(occurrences)


def violation_page_count(violation: dict) -> int:
    page_count = violation.get("page_count")
    if page_count is None:
        return len(violation.get("affected_pages") or [])
    return int(page_count)


def _index(violations: Iterable[dict]) -> dict[str, dict]:
    indexed: dict[str, dict] = {}
    for violation in violations or []:
        validate_impact(violation.get("impact"), violation.get("rule_id"))
        key = violation_key(violation)
        if not key:
            raise AuditDataError("violation without rule_id or fingerprint")
        if key in indexed:
            raise DuplicateViolationError(key)
        indexed[key] = violation
    return indexed


def _snapshot(violation: Optional[dict]) -> Optional[dict]:
    if violation is None:
        return None
    return {
        "occurrences": violation_occurrences(violation),
        "page_count": violation_page_count(violation),
        "impact": validate_impact(violation.get("impact")),
    }


def _change_detail(change: ChangeType, current: Optional[dict], previous: Optional[dict]) -> dict:
    source = current if current is not None else previous
    if source is None:
        raise ValueError("at least one of current or previous is required")

    current_data = _snapshot(current)
    previous_data = _snapshot(previous)
    return {
        "type": change,
        "rule_id": source.get("rule_id"),
        "fingerprint": source.get("fingerprint"),
        "impact": validate_impact(source.get("impact")),
        "help": source.get("help"),
        "description": source.get("description"),
        "current": current_data,
        "previous": previous_data,
        "delta": {
            "occurrences": (current_data or {}).get("occurrences", 0) - (previous_data or {}).get("occurrences", 0),
            "page_count": (current_data or {}).get("page_count", 0) - (previous_data or {}).get("page_count", 0),
        },
    }


def _unmatched_by_rule(items: dict[str, dict], others: dict[str, dict]) -> dict[str, list[str]]:
    grouped: dict[str, list[str]] = {}
    for key, violation in items.items():
        if key not in others and violation.get("rule_id"):
            grouped.setdefault(str(violation["rule_id"]), []).append(key)
    return grouped


def _rule_matches(current_map: dict[str, dict], previous_map: dict[str, dict]) -> dict[str, str]:
    """Pair leftovers by rule_id when one side was recorded without a fingerprint.

    Only rules that appear once among the unmatched violations of each audit
    are paired; anything ambiguous stays new/fixed.
    """
    current_left = _unmatched_by_rule(current_map, previous_map)
    previous_left = _unmatched_by_rule(previous_map, current_map)

    pairs: dict[str, str] = {}
    for rule_id, current_keys in current_left.items():
        previous_keys = previous_left.get(rule_id, [])
        if len(current_keys) != 1 or len(previous_keys) != 1:
            continue
        current, previous = current_map[current_keys[0]], previous_map[previous_keys[0]]
        if not current.get("fingerprint") or not previous.get("fingerprint"):
            pairs[current_keys[0]] = previous_keys[0]
    return pairs


def calculate_violation_changes(current_violations: Iterable[dict], previous_violations: Iterable[dict]) -> dict:
    """Place every violation of either audit in exactly one bucket."""
    current_map = _index(current_violations)
    previous_map = _index(previous_violations)
    pairs = _rule_matches(current_map, previous_map)
    buckets = empty_buckets()

    for key, current in current_map.items():
        previous = previous_map.get(key) or previous_map.get(pairs.get(key, ""))
        if previous is None:
            buckets["new"].append(_change_detail("new", current, None))
            continue

        change = violation_occurrences(current) - violation_occurrences(previous)
        if change > 0:
            bucket = "worsened"
        elif change < 0:
            bucket = "improved"
        else:
            bucket = "persistent"
        buckets[bucket].append(_change_detail(bucket, current, previous))

    paired = set(pairs.values())
    for key, previous in previous_map.items():
        if key not in current_map and key not in paired:
            buckets["fixed"].append(_change_detail("fixed", None, previous))

    for change in CHANGE_TYPES:
        buckets[change].sort(key=lambda detail: impact_rank(detail["impact"]))

    return {
        "violations": buckets,
        "counts": {change: len(items) for change, items in buckets.items()},
    }


def calculate_delta(current_audit: dict, previous_audit: dict) -> dict:
    current = coerce_summary(current_audit.get("summary"))
    previous = coerce_summary(previous_audit.get("summary"))

    delta = {
        level: current[level]["occurrences"] - previous[level]["occurrences"]
        for level in (*SEVERITY_LEVELS, "total")
    }
    delta["health_score"] = round(resolve_health_score(current_audit) - resolve_health_score(previous_audit), 1)
    delta["pages_audited"] = (current_audit.get("processed_pages") or 0) - (previous_audit.get("processed_pages") or 0)
    delta["broken_pages"] = (current_audit.get("broken_pages_count") or 0) - (
        previous_audit.get("broken_pages_count") or 0
    )
    return delta


def calculate_comparison(
    current_audit: dict,
    current_violations: Iterable[dict],
    previous_audit: Optional[dict] = None,
    previous_violations: Optional[Iterable[dict]] = None,
) -> dict:
    if previous_audit is None:
        # Still validate the current side so bad input never passes silently.
        _index(current_violations)
        return {
            "delta": empty_delta(),
            "violations": empty_buckets(),
            "counts": {change: 0 for change in CHANGE_TYPES},
        }

    changes = calculate_violation_changes(current_violations, previous_violations or [])
    return {
        "delta": calculate_delta(current_audit, previous_audit),
        "violations": changes["violations"],
        "counts": changes["counts"],
    }


def has_overall_improvement(delta: dict) -> bool:
    return delta["health_score"] > 0 or (delta["total"] < 0 and delta["critical"] <= 0)


def has_overall_regression(delta: dict) -> bool:
    return delta["health_score"] < -5 or delta["critical"] > 0 or delta["total"] > 10


def calculate_trend_direction(delta: dict) -> str:
    if has_overall_improvement(delta):
        return "improving"
    if has_overall_regression(delta):
        return "worsening"
    return "stable"


def format_delta(value: float, kind: DeltaKind) -> str:
    if value == 0:
        return "0"
    prefix = "+" if value > 0 else ""
    suffix = "%" if kind == "score" else ""
    return f"{prefix}{value}{suffix}"


def get_delta_color(value: float, kind: DeltaKind) -> str:
    if value == 0 or kind == "pages":
        return "neutral"
    if kind == "violations":
        return "positive" if value < 0 else "negative"
    return "positive" if value > 0 else "negative"
