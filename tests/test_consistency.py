from __future__ import annotations

from datetime import date

from src.analytics.consistency import (
    build_trends,
    calculate_agent_efficiency,
    evaluate_consistency,
    evaluate_dates,
    summarize_batch,
)
from src.analytics.matching import join
from src.models.performance_events import QualityRating, ReferenceData

REFERENCES = ReferenceData(target_countries={"KSA": "Saudi Arabia", "KWT": "Kuwait", "UAE": "United Arab Emirates"})


def codes(result):
    return [warning.code for warning in result.warnings]


def test_spend_without_deals_is_inconsistent(make_spend):
    result = evaluate_consistency(join([make_spend(1200, target_country_id="KSA")], []), REFERENCES)

    assert "NO_CONVERSIONS" in codes(result)
    assert result.is_consistent is False
    warning = next(item for item in result.warnings if item.code == "NO_CONVERSIONS")
    assert warning.scope_key == "consistency.KSA"
    assert warning.message == "Agent spent $1,200 on campaigns in Saudi Arabia but closed no deals"
    assert "Saudi Arabia" in warning.recommendation


def test_deals_without_spend_warn_but_stay_consistent(make_outcome):
    result = evaluate_consistency(
        join([], [make_outcome(3, 10, quality=QualityRating.EXCELLENT, target_country_id="KWT")]),
        REFERENCES,
    )

    assert codes(result) == ["MISSING_MEDIA_DATA"]
    assert result.is_consistent is True
    assert result.warnings[0].message == "Agent closed 3 deals in Kuwait without recorded media spend"


def test_spend_without_engagement_is_inconsistent(make_spend):
    result = evaluate_consistency(join([make_spend(600)], []), REFERENCES)

    assert "MISSING_ENGAGEMENT_DATA" in codes(result)
    assert result.is_consistent is False
    warning = next(item for item in result.warnings if item.code == "MISSING_ENGAGEMENT_DATA")
    assert warning.scope_key == "consistency.overall"
    assert warning.message == "Media spend of $600 recorded but no WhatsApp engagement tracked"


def test_low_conversion_on_high_spend_flags_low_efficiency_and_high_cpc(make_spend, make_outcome):
    result = evaluate_consistency(join([make_spend(2000)], [make_outcome(2, 100)]), REFERENCES)

    assert codes(result) == ["LOW_EFFICIENCY", "HIGH_CPC"]
    assert result.is_consistent is True
    assert result.warnings[0].message == (
        "Low conversion rate (2.0%) in United Arab Emirates despite high spend ($2,000)"
    )
    assert result.metrics.cost_per_conversion == 1000.0
    assert result.metrics.agent_efficiency == 10.0


def test_suspiciously_cheap_conversions_need_verification(make_spend, make_outcome):
    result = evaluate_consistency(join([make_spend(100)], [make_outcome(10, 20)]), REFERENCES)

    assert codes(result) == ["VERIFICATION_NEEDED"]
    assert result.is_consistent is True
    assert result.warnings[0].message == "Unusually low cost per conversion ($10.00) - please verify data accuracy"


def test_each_warning_carries_one_recommendation(make_spend, make_outcome):
    result = evaluate_consistency(
        join([make_spend(1200, target_country_id="KSA")], [make_outcome(3, 10, target_country_id="KWT")]),
        REFERENCES,
    )

    assert len(result.recommendations) == len(result.warnings)
    assert result.recommendations == [warning.recommendation for warning in result.warnings]


def test_aligned_day_has_no_warnings(make_spend, make_outcome):
    result = evaluate_consistency(join([make_spend(500)], [make_outcome(4, 40)]), REFERENCES)

    assert result.warnings == []
    assert result.is_consistent is True
    assert result.metrics.conversion_rate == 10.0
    assert result.metrics.cost_per_conversion == 125.0


def test_empty_selection_is_consistent():
    result = evaluate_consistency([])

    assert result.is_consistent is True
    assert result.metrics.total_spend == 0
    assert result.metrics.agent_efficiency == 0


def test_agent_efficiency_is_capped_and_zero_without_spend_or_deals():
    assert calculate_agent_efficiency(500, 10, 40) == 100.0
    assert calculate_agent_efficiency(0, 10, 40) == 0.0
    assert calculate_agent_efficiency(500, 0, 40) == 0.0
    assert calculate_agent_efficiency(500, 5, 0) == 45.0


def test_batch_results_are_partitioned_by_date(make_spend, make_outcome):
    groups = join(
        [make_spend(600, report_date=date(2024, 1, 15)), make_spend(500, report_date=date(2024, 1, 16))],
        [make_outcome(4, 40, report_date=date(2024, 1, 16))],
    )

    results = evaluate_dates(groups, [date(2024, 1, 15), date(2024, 1, 16), date(2024, 1, 17)], REFERENCES)
    summary = summarize_batch(results)

    assert [result.is_consistent for result in results] == [False, True, True]
    assert results[2].metrics.total_spend == 0
    assert summary.total_dates == 3
    assert summary.consistent_dates == 2
    assert summary.total_warnings == 2
    assert summary.average_conversion_rate == round(10.0 / 3, 2)


def test_summary_of_no_results_is_empty():
    summary = summarize_batch([])

    assert summary.total_dates == 0
    assert summary.average_conversion_rate == 0.0


def test_trends_score_consistent_days_higher(make_spend, make_outcome):
    groups = join(
        [make_spend(600, report_date=date(2024, 1, 15)), make_spend(500, report_date=date(2024, 1, 16))],
        [make_outcome(4, 40, report_date=date(2024, 1, 16))],
    )
    results = evaluate_dates(groups, [date(2024, 1, 16), date(2024, 1, 15)])

    trends = build_trends("agent-21", "branch-1", results)

    assert trends.dates == [date(2024, 1, 15), date(2024, 1, 16)]
    assert trends.spend_data == [600.0, 500.0]
    assert trends.deals_data == [0, 4]
    assert trends.consistency_scores == [50, 100]
