from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, Literal, Optional

from auditlens.engine.comparison import calculate_comparison, calculate_trend_direction
from auditlens.engine.conformance import calculate_emag_conformance, calculate_wcag_conformance
from auditlens.engine.insights import (
    calculate_evolution_trends,
    generate_comparison_insights,
    generate_evolution_insights,
    generate_first_audit_insight,
)
from auditlens.engine.patterns import calculate_pattern_stats
from auditlens.engine.scoring import get_guidance_message, get_health_label, resolve_health_score
from auditlens.engine.severity import (
    SEVERITY_LEVELS,
    calculate_severity_pattern_summary,
    coerce_summary,
    validate_impact,
)

logger = logging.getLogger(__name__)

Period = Literal["7d", "30d", "90d", "1y", "all"]

PERIOD_DAYS: dict[str, Optional[int]] = {"7d": 7, "30d": 30, "90d": 90, "1y": 365, "all": None}
DEFAULT_PERIOD = "30d"
DEFAULT_LIMIT = 20
MAX_LIMIT = 50
MAX_AVAILABLE_AUDITS = 20
DEFAULT_WCAG_LEVELS = ("A", "AA")

EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _aware(value: object) -> Optional[datetime]:
    if isinstance(value, datetime):
        stamp = value
    elif value:
        try:
            stamp = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    return stamp if stamp.tzinfo else stamp.replace(tzinfo=timezone.utc)


def _iso(value: object) -> Optional[str]:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value) if value else None


def build_audit_card(audit: dict) -> dict:
    return {
        "id": audit.get("id"),
        "created_at": _iso(audit.get("created_at")),
        "completed_at": _iso(audit.get("completed_at")),
        "health_score": resolve_health_score(audit),
        "summary": coerce_summary(audit.get("summary")),
        "pages_audited": audit.get("processed_pages") or 0,
        "broken_pages_count": audit.get("broken_pages_count") or 0,
    }


def build_comparison_response(
    current_audit: dict,
    current_violations: Iterable[dict],
    previous_audit: Optional[dict] = None,
    previous_violations: Optional[Iterable[dict]] = None,
    available_audits: Iterable[dict] = (),
) -> dict:
    comparison = calculate_comparison(current_audit, current_violations, previous_audit, previous_violations)

    if previous_audit is None:
        insights = [generate_first_audit_insight()]
        trend = "stable"
    else:
        insights = generate_comparison_insights(
            comparison["delta"], comparison["violations"], current_audit.get("summary")
        )
        trend = calculate_trend_direction(comparison["delta"])

    available = [
        {
            "id": audit.get("id"),
            "created_at": _iso(audit.get("created_at")),
            "summary": coerce_summary(audit.get("summary")),
            "health_score": resolve_health_score(audit),
        }
        for audit in available_audits
        if audit.get("id") != current_audit.get("id")
    ]

    return {
        "current": build_audit_card(current_audit),
        "previous": build_audit_card(previous_audit) if previous_audit is not None else None,
        "delta": comparison["delta"],
        "violations": comparison["violations"],
        "counts": comparison["counts"],
        "trend": trend,
        "insights": insights,
        "available_audits": available[:MAX_AVAILABLE_AUDITS],
    }


def build_evolution_response(
    audits: Iterable[dict],
    period: Optional[str] = DEFAULT_PERIOD,
    limit: int = DEFAULT_LIMIT,
    now: Optional[datetime] = None,
) -> dict:
    """Trends and insights for a project's completed audits.

    Audits may arrive in any order; they are windowed by ``period``, capped by
    ``limit`` (newest kept) and handed to the trend engine oldest first.
    """
    if period not in PERIOD_DAYS:
        logger.debug("Unknown evolution period %r, using %s", period, DEFAULT_PERIOD)
        period = DEFAULT_PERIOD
    limit = max(1, min(int(limit), MAX_LIMIT))
    now = _aware(now) or datetime.now(timezone.utc)

    selected = list(audits or [])
    days = PERIOD_DAYS[period]
    if days is not None:
        cutoff = now - timedelta(days=days)
        selected = [audit for audit in selected if (_aware(audit.get("created_at")) or EPOCH) >= cutoff]

    newest_first = sorted(selected, key=lambda audit: _aware(audit.get("created_at")) or EPOCH, reverse=True)
    newest_first = newest_first[:limit]
    chronological = list(reversed(newest_first))

    trends = calculate_evolution_trends(chronological)
    return {
        "period": period,
        "audits": [build_audit_card(audit) for audit in newest_first],
        "trends": trends,
        "insights": generate_evolution_insights(chronological, trends),
    }


def build_audit_overview(
    audit: dict,
    violations: Iterable[dict],
    wcag_levels: Iterable[str] = DEFAULT_WCAG_LEVELS,
    use_xpath: bool = False,
) -> dict:
    violations = list(violations or [])
    card = build_audit_card(audit)

    per_rule = []
    for violation in violations:
        stats = calculate_pattern_stats(violation.get("unique_elements") or [], use_xpath)
        per_rule.append(
            {
                "rule_id": violation.get("rule_id"),
                "impact": validate_impact(violation.get("impact"), violation.get("rule_id")),
                "help": violation.get("help"),
                "wcag_criteria": violation.get("wcag_criteria") or [],
                **stats,
            }
        )
    per_rule.sort(key=lambda item: SEVERITY_LEVELS.index(item["impact"]))

    return {
        "audit": card,
        "label": get_health_label(card["health_score"]),
        "guidance": get_guidance_message(audit.get("summary")),
        "patterns": calculate_severity_pattern_summary(violations, use_xpath),
        "violations": per_rule,
        "wcag": calculate_wcag_conformance(violations, wcag_levels),
        "emag": calculate_emag_conformance(violations),
    }


def recalculate_patterns(audit: dict, violations: Iterable[dict], use_xpath: bool = False) -> dict:
    """Refresh the pattern counts of a stored summary from its violations.

    Stored occurrence counts are kept (they come from the page-level scan);
    only ``patterns`` is recomputed. Re-running on the same input yields the
    same summary.
    """
    computed = calculate_severity_pattern_summary(violations, use_xpath)
    stored = audit.get("summary")
    summary = coerce_summary(stored) if stored else computed

    for level in SEVERITY_LEVELS:
        summary[level] = {
            "occurrences": summary[level]["occurrences"],
            "patterns": computed[level]["patterns"],
        }
    summary["total"] = {
        "occurrences": sum(summary[level]["occurrences"] for level in SEVERITY_LEVELS),
        "patterns": computed["total"]["patterns"],
    }

    logger.info("Recalculated patterns for audit %s: %d total", audit.get("id"), summary["total"]["patterns"])
    return {
        "audit_id": audit.get("id"),
        "summary": summary,
        "patterns": {level: summary[level]["patterns"] for level in (*SEVERITY_LEVELS, "total")},
    }
