from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from auditlens.engine.scoring import resolve_health_score
from auditlens.engine.severity import SEVERITY_LEVELS, coerce_summary

logger = logging.getLogger(__name__)

TREND_NOISE_THRESHOLD = 5.0
TREND_METRICS = ("health_score", *SEVERITY_LEVELS, "total")

MAX_COMPARISON_INSIGHTS = 4
MAX_EVOLUTION_INSIGHTS = 3

SCORE_CHANGE_THRESHOLD = 5
STABLE_CHANGE_LIMIT = 3
MANY_VIOLATIONS = 5
FOCUS_CRITICAL_LIMIT = 5
LARGE_TOTAL_CHANGE = 10
HEALTH_TREND_PERCENT = 10
RECENT_SPIKE = 10

INSIGHT_MESSAGES = {
    "criticalFixed": "{count} violacao(oes) critica(s) corrigida(s) desde a auditoria anterior.",
    "seriousFixed": "{count} violacao(oes) seria(s) corrigida(s) desde a auditoria anterior.",
    "newCritical": "{count} nova(s) violacao(oes) critica(s) detectada(s).",
    "newSerious": "{count} nova(s) violacao(oes) seria(s) detectada(s).",
    "scoreImproved": "O score de saude subiu {percent} pontos.",
    "scoreDecreased": "O score de saude caiu {percent} pontos.",
    "manyFixed": "{count} tipos de violacao deixaram de aparecer.",
    "manyNew": "{count} novos tipos de violacao apareceram.",
    "allTiersImproved": "Nenhuma severidade piorou e ao menos uma melhorou.",
    "focusOn": "Restam {count} ocorrencia(s) critica(s): priorize-as.",
    "greatProgress": "Excelente progresso geral desde a auditoria anterior.",
    "significantRegression": "Regressao significativa: {count} ocorrencias a mais.",
    "noViolations": "Nenhuma violacao automatica encontrada.",
    "stable": "Sem mudancas significativas desde a auditoria anterior.",
    "firstAudit": "Primeira auditoria do projeto: ela sera a base das proximas comparacoes.",
    "consistentImprovement": "O score de saude melhorou {percent}% no periodo.",
    "consistentWorsening": "O score de saude piorou {percent}% no periodo.",
    "criticalTrend.up": "Violacoes criticas aumentaram em {count} no periodo.",
    "criticalTrend.down": "Violacoes criticas diminuiram em {count} no periodo.",
    "recentSpike": "A ultima auditoria trouxe {count} ocorrencias a mais que a anterior.",
    "recentDrop": "A ultima auditoria trouxe {count} ocorrencias a menos que a anterior.",
}


def _insight(kind: str, key: str, **params) -> dict:
    template = INSIGHT_MESSAGES.get(f"{key}.{params.get('direction')}") or INSIGHT_MESSAGES[key]
    return {"type": kind, "key": key, "params": params, "message": template.format(**params)}


def _as_number(value: float) -> float:
    return round(value, 2) if isinstance(value, float) else value


def calculate_trend(
    values: Sequence[float],
    dates: Optional[Sequence[str]] = None,
    threshold: float = TREND_NOISE_THRESHOLD,
    baseline_window: int = 1,
) -> dict:
    """Direction and magnitude of the newest value against the earliest ones.

    ``values`` must be oldest first. The baseline is the mean of the first
    ``baseline_window`` values; a zero baseline has no meaningful percentage and
    is reported as ``stable``.
    """
    dates = list(dates or [])
    points = [{"date": dates[i] if i < len(dates) else "", "value": value} for i, value in enumerate(values)]
    trend = {"direction": "stable", "change_percent": 0.0, "change_absolute": 0, "values": points}
    if len(values) < 2:
        return trend

    window = max(1, min(baseline_window, len(values) - 1))
    baseline = values[0] if window == 1 else sum(values[:window]) / window
    last = values[-1]

    trend["change_absolute"] = _as_number(last - baseline)
    if baseline == 0:
        return trend

    change_percent = round((last - baseline) / abs(baseline) * 100, 2)
    trend["change_percent"] = change_percent
    if change_percent > threshold:
        trend["direction"] = "up"
    elif change_percent < -threshold:
        trend["direction"] = "down"
    return trend


def _timestamp(value: object) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def _date_label(value: object) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value or "")


def _warn_if_unordered(audits: Sequence[dict]) -> None:
    stamps = [_timestamp(audit.get("created_at")) for audit in audits]
    for earlier, later in zip(stamps, stamps[1:]):
        if earlier is None or later is None:
            continue
        try:
            backwards = later < earlier
        except TypeError:
            # naive vs aware timestamps; ordering cannot be checked
            return
        if backwards:
            logger.warning("Evolution series is not oldest-first; trends will be inverted")
            return


def calculate_evolution_trends(chronological_audits: Sequence[dict]) -> dict:
    """Per-metric trends over audits ordered oldest to newest.

    The series is not re-sorted here: callers own the ordering.
    """
    audits = list(chronological_audits or [])
    _warn_if_unordered(audits)

    dates = [_date_label(audit.get("created_at")) for audit in audits]
    summaries = [coerce_summary(audit.get("summary")) for audit in audits]

    series = {"health_score": [resolve_health_score(audit) for audit in audits]}
    for level in (*SEVERITY_LEVELS, "total"):
        series[level] = [summary[level]["occurrences"] for summary in summaries]

    return {metric: calculate_trend(series[metric], dates) for metric in TREND_METRICS}


def generate_first_audit_insight() -> dict:
    return _insight("neutral", "firstAudit")


def generate_comparison_insights(delta: dict, violations: dict, current_summary: Optional[dict]) -> list[dict]:
    if current_summary is None:
        return []

    summary = coerce_summary(current_summary)
    fixed = violations.get("fixed") or []
    new = violations.get("new") or []

    critical_fixed = sum(1 for item in fixed if item.get("impact") == "critical")
    serious_fixed = sum(1 for item in fixed if item.get("impact") == "serious")
    new_critical = sum(1 for item in new if item.get("impact") == "critical")
    new_serious = sum(1 for item in new if item.get("impact") == "serious")

    insights: list[dict] = []
    if critical_fixed:
        insights.append(_insight("positive", "criticalFixed", count=critical_fixed))
    elif serious_fixed:
        insights.append(_insight("positive", "seriousFixed", count=serious_fixed))

    if new_critical:
        insights.append(_insight("negative", "newCritical", count=new_critical))
    elif new_serious:
        insights.append(_insight("negative", "newSerious", count=new_serious))

    if delta["health_score"] >= SCORE_CHANGE_THRESHOLD:
        insights.append(_insight("positive", "scoreImproved", percent=round(delta["health_score"])))
    elif delta["health_score"] <= -SCORE_CHANGE_THRESHOLD:
        insights.append(_insight("negative", "scoreDecreased", percent=abs(round(delta["health_score"]))))

    if len(fixed) >= MANY_VIOLATIONS and not critical_fixed and not serious_fixed:
        insights.append(_insight("positive", "manyFixed", count=len(fixed)))
    if len(new) >= MANY_VIOLATIONS and not new_critical and not new_serious:
        insights.append(_insight("warning", "manyNew", count=len(new)))

    tier_deltas = [delta[level] for level in SEVERITY_LEVELS]
    if all(value <= 0 for value in tier_deltas) and any(value < 0 for value in tier_deltas) and not new_critical:
        insights.append(_insight("positive", "allTiersImproved"))

    critical_remaining = summary["critical"]["occurrences"]
    if 0 < critical_remaining <= FOCUS_CRITICAL_LIMIT and delta["critical"] <= 0:
        insights.append(_insight("warning", "focusOn", count=critical_remaining))

    if delta["total"] <= -LARGE_TOTAL_CHANGE and delta["health_score"] > 0 and not new_critical:
        insights.append(_insight("positive", "greatProgress"))
    if delta["total"] >= LARGE_TOTAL_CHANGE and delta["health_score"] < -SCORE_CHANGE_THRESHOLD:
        insights.append(_insight("negative", "significantRegression", count=delta["total"]))

    if summary["total"]["occurrences"] == 0:
        insights.append(_insight("positive", "noViolations"))

    if (
        not insights
        and abs(delta["total"]) < STABLE_CHANGE_LIMIT
        and abs(delta["health_score"]) < STABLE_CHANGE_LIMIT
    ):
        insights.append(_insight("neutral", "stable"))

    return insights[:MAX_COMPARISON_INSIGHTS]


def generate_evolution_insights(audits: Sequence[dict], trends: dict) -> list[dict]:
    """Insights over an oldest-first series; the two newest audits drive spike detection."""
    if len(audits) < 2:
        return [generate_first_audit_insight()]

    insights: list[dict] = []
    health = trends["health_score"]
    if health["direction"] == "up" and health["change_percent"] >= HEALTH_TREND_PERCENT:
        insights.append(_insight("positive", "consistentImprovement", percent=round(health["change_percent"])))
    elif health["direction"] == "down" and health["change_percent"] <= -HEALTH_TREND_PERCENT:
        insights.append(_insight("negative", "consistentWorsening", percent=abs(round(health["change_percent"]))))

    critical = trends["critical"]
    if critical["direction"] == "up" and critical["change_absolute"] > 0:
        insights.append(_insight("negative", "criticalTrend", count=critical["change_absolute"], direction="up"))
    elif critical["direction"] == "down" and critical["change_absolute"] < 0:
        insights.append(
            _insight("positive", "criticalTrend", count=abs(critical["change_absolute"]), direction="down")
        )

    previous, latest = audits[-2], audits[-1]
    if latest.get("summary") and previous.get("summary"):
        latest_total = coerce_summary(latest["summary"])["total"]["occurrences"]
        previous_total = coerce_summary(previous["summary"])["total"]["occurrences"]
        diff = latest_total - previous_total
        if diff > RECENT_SPIKE:
            insights.append(_insight("warning", "recentSpike", count=diff))
        elif diff < -RECENT_SPIKE:
            insights.append(_insight("positive", "recentDrop", count=abs(diff)))

    return insights[:MAX_EVOLUTION_INSIGHTS]
