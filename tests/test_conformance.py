from __future__ import annotations

from auditlens.engine.conformance import (
    calculate_emag_conformance,
    calculate_wcag_conformance,
    calculate_wcag_principle_breakdown,
)


def _sample_violations() -> list[dict]:
    return [
        {"rule_id": "image-alt", "wcag_criteria": ["1.1.1", "1.4.3"], "emag_recommendations": ["3.6"]},
        {"rule_id": "link-name", "wcag_criteria": ["1.1.1", "2.4.4"], "emag_recommendations": ["3.5", "3.6"]},
        {"rule_id": "custom", "wcag_criteria": None},
    ]


def test_principle_breakdown_counts_distinct_criteria():
    breakdown = calculate_wcag_principle_breakdown(_sample_violations())
    assert breakdown == {"perceivable": 2, "operable": 1, "understandable": 0, "robust": 0}


def test_wcag_conformance_for_selected_levels():
    result = calculate_wcag_conformance(_sample_violations(), ["a", "AA"])
    assert result["total_criteria"] == 38
    assert result["affected_criteria"] == 3
    assert result["conformance_percent"] == 92


def test_wcag_conformance_without_valid_levels():
    result = calculate_wcag_conformance(_sample_violations(), ["Z"])
    assert result["conformance_percent"] == 100
    assert result["total_criteria"] == 0


def test_emag_conformance():
    result = calculate_emag_conformance(_sample_violations())
    assert result == {"conformance_percent": 96, "affected_recommendations": 2, "total_recommendations": 45}
