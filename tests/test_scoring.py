from __future__ import annotations

from auditlens.engine.scoring import (
    calculate_health_score,
    get_guidance_message,
    get_health_label,
    resolve_health_score,
)


def _audit(critical: int = 0, serious: int = 0, moderate: int = 0, minor: int = 0, **pages) -> dict:
    counts = {"critical": critical, "serious": serious, "moderate": moderate, "minor": minor}
    audit = {
        "id": "audit-1",
        "summary": {level: {"occurrences": count, "patterns": min(count, 1)} for level, count in counts.items()},
        "processed_pages": 10,
        "broken_pages_count": 0,
        "health_score": None,
    }
    audit.update(pages)
    return audit


def test_clean_audit_scores_100():
    assert calculate_health_score(_audit()) == 100.0
    assert calculate_health_score({"summary": None}) == 100.0
    assert calculate_health_score({"summary": None, "processed_pages": 0, "broken_pages_count": 0}) == 100.0


def test_known_value():
    # 40 critical occurrences use 1 - e^-1 of the critical ceiling.
    assert calculate_health_score(_audit(critical=40)) == 74.7


def test_more_violations_never_raise_the_score():
    base = _audit(critical=1, serious=3, moderate=5, minor=8)
    worse = _audit(critical=2, serious=4, moderate=6, minor=9)
    assert calculate_health_score(worse) <= calculate_health_score(base)

    for level in ("critical", "serious", "moderate", "minor"):
        bumped = _audit(**{"critical": 1, "serious": 3, "moderate": 5, "minor": 8, level: 50})
        assert calculate_health_score(bumped) <= calculate_health_score(base)


def test_critical_weighs_more_than_lower_tiers():
    scores = [
        calculate_health_score(_audit(critical=3)),
        calculate_health_score(_audit(serious=3)),
        calculate_health_score(_audit(moderate=3)),
        calculate_health_score(_audit(minor=3)),
    ]
    assert scores == sorted(scores)
    assert len(set(scores)) == 4


def test_penalty_saturates_instead_of_collapsing():
    assert calculate_health_score(_audit(critical=100_000)) == 60.0
    assert calculate_health_score(_audit(critical=10**6, serious=10**6, moderate=10**6, minor=10**6)) == 15.0


def test_broken_pages_lower_the_score():
    healthy = calculate_health_score(_audit(processed_pages=10, broken_pages_count=0))
    some_broken = calculate_health_score(_audit(processed_pages=10, broken_pages_count=5))
    more_broken = calculate_health_score(_audit(processed_pages=10, broken_pages_count=10))
    assert healthy == 100.0
    assert some_broken == 95.0
    assert more_broken <= some_broken


def test_score_is_clamped_to_range():
    worst = _audit(critical=10**6, serious=10**6, moderate=10**6, minor=10**6, processed_pages=0, broken_pages_count=8)
    assert calculate_health_score(worst) == 0.0


def test_score_is_deterministic():
    audit = _audit(critical=3, serious=7, moderate=2, minor=11, broken_pages_count=1)
    assert calculate_health_score(audit) == calculate_health_score(dict(audit))


def test_resolve_prefers_stored_score():
    assert resolve_health_score(_audit(critical=40, health_score=42)) == 42.0
    assert resolve_health_score(_audit(critical=40)) == calculate_health_score(_audit(critical=40))


def test_resolve_accepts_legacy_summary():
    legacy = {"summary": {"critical": 40, "serious": 0, "moderate": 0, "minor": 0, "total": 40}, "health_score": None}
    assert resolve_health_score(legacy) == 74.7


def test_health_labels():
    assert get_health_label(95) == "Excelente"
    assert get_health_label(90) == "Excelente"
    assert get_health_label(75) == "Bom"
    assert get_health_label(50) == "Regular"
    assert get_health_label(12.5) == "Critico"


def test_guidance_targets_worst_tier():
    assert get_guidance_message(None)["priority"] == "success"
    assert get_guidance_message(_audit(critical=2, minor=4)["summary"])["priority"] == "critical"
    assert get_guidance_message(_audit(moderate=1, minor=4)["summary"])["priority"] == "moderate"
    minor_only = get_guidance_message(_audit(minor=4)["summary"])
    assert minor_only["priority"] == "minor"
    assert "4" in minor_only["message"]
