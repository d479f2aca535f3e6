from __future__ import annotations

import logging
import math

from auditlens.engine.severity import SEVERITY_LEVELS, coerce_summary

logger = logging.getLogger(__name__)

# Ceiling of the penalty each tier can inflict; a tier approaches it as its
# occurrence count grows. All ceilings plus the reachability penalty add to 100.
TIER_PENALTY = {"critical": 40.0, "serious": 25.0, "moderate": 15.0, "minor": 5.0}
BROKEN_PAGES_PENALTY = 15.0

# Occurrences at which a tier has used ~63% of its ceiling. Shared by every
# tier so the per-occurrence ordering critical > serious > moderate > minor
# holds at any count.
SATURATION = 40.0


def _tier_penalty(level: str, occurrences: int) -> float:
    if occurrences <= 0:
        return 0.0
    return TIER_PENALTY[level] * (1.0 - math.exp(-occurrences / SATURATION))


def _reachability_penalty(processed_pages: int, broken_pages: int) -> float:
    processed_pages = max(0, processed_pages or 0)
    broken_pages = max(0, broken_pages or 0)
    reached = processed_pages + broken_pages
    if reached == 0:
        return 0.0
    return BROKEN_PAGES_PENALTY * broken_pages / reached


def calculate_health_score(audit: dict) -> float:
    summary = coerce_summary(audit.get("summary"))
    penalty = sum(_tier_penalty(level, summary[level]["occurrences"]) for level in SEVERITY_LEVELS)
    penalty += _reachability_penalty(audit.get("processed_pages"), audit.get("broken_pages_count"))

    score = min(100.0, max(0.0, 100.0 - penalty))
    return round(score, 1)


def resolve_health_score(audit: dict) -> float:
    """Stored score when the record has one, otherwise the same formula as new audits."""
    stored = audit.get("health_score")
    if stored is not None:
        return float(stored)
    logger.debug("Backfilling health score for audit %s", audit.get("id"))
    return calculate_health_score(audit)


def get_health_label(score: float) -> str:
    if score >= 90:
        return "Excelente"
    if score >= 70:
        return "Bom"
    if score >= 50:
        return "Regular"
    return "Critico"


def get_guidance_message(summary: dict | None) -> dict:
    summary = coerce_summary(summary)
    counts = {level: summary[level]["occurrences"] for level in SEVERITY_LEVELS}

    if summary["total"]["occurrences"] == 0:
        return {
            "title": "Parabens!",
            "message": "Nenhum problema de acessibilidade detectado.",
            "priority": "success",
        }
    if counts["critical"]:
        return {
            "title": "Prioridade: problemas criticos",
            "message": (
                f"Corrija os {counts['critical']} problemas criticos primeiro. "
                "Eles impedem o acesso de pessoas com deficiencia ao site."
            ),
            "priority": "critical",
        }
    if counts["serious"]:
        return {
            "title": "Prioridade: problemas serios",
            "message": (
                f"Foque nos {counts['serious']} problemas serios. "
                "Eles dificultam significativamente a navegacao."
            ),
            "priority": "serious",
        }
    if counts["moderate"]:
        return {
            "title": "Quase la!",
            "message": f"Corrija os {counts['moderate']} problemas moderados para melhorar a experiencia de todos.",
            "priority": "moderate",
        }
    return {
        "title": "Ultimos ajustes",
        "message": f"Restam apenas {counts['minor']} problemas menores.",
        "priority": "minor",
    }
