from __future__ import annotations

import pytest

from src.analytics.matching import join
from src.analytics.metrics import (
    calculate_conversion_rate,
    calculate_cost_per_deal,
    calculate_roi,
    combine_quality_scores,
    compute_metrics,
)
from src.models.performance_events import QualityRating


def test_compute_metrics_for_a_matched_day(make_spend, make_outcome):
    groups = join([make_spend(500)], [make_outcome(10, 40, quality=QualityRating.GOOD)])

    metrics = compute_metrics(groups, average_deal_value=500)

    assert metrics.cost_per_deal == 50.0
    assert metrics.conversion_rate == 25.0
    assert metrics.roi == 900.0
    assert metrics.quality_score == 3.0
    assert metrics.estimated_revenue == 5000.0
    assert metrics.profit_margin == 90.0
    assert metrics.cost_per_deal_applicable is True


def test_compute_metrics_accepts_a_single_group(make_spend, make_outcome):
    group = join([make_spend(500)], [make_outcome(10, 40)])[0]

    assert compute_metrics(group, 500) == compute_metrics([group], 500)


def test_average_deal_value_is_passed_at_call_time(make_spend, make_outcome):
    groups = join([make_spend(500)], [make_outcome(10, 40)])

    assert compute_metrics(groups, 500).roi == 900.0
    assert compute_metrics(groups, 100).roi == 100.0


def test_empty_denominators_yield_zero():
    assert calculate_roi(0, 10, 500) == 0.0
    assert calculate_cost_per_deal(100, 0) == 0.0
    assert calculate_conversion_rate(3, 0) == 0.0


def test_compute_metrics_on_no_groups_is_all_zero():
    metrics = compute_metrics([], 500)

    assert metrics.total_spend == 0
    assert metrics.total_deals == 0
    assert metrics.roi == 0
    assert metrics.quality_score == 0
    assert metrics.cost_per_deal_applicable is False


def test_spend_without_deals_is_a_full_loss(make_spend):
    metrics = compute_metrics(join([make_spend(1200)], []), 500)

    assert metrics.roi == -100.0
    assert metrics.cost_per_deal == 0.0
    assert metrics.cost_per_deal_applicable is False


def test_ratios_come_from_summed_totals_not_averaged_ratios(make_spend, make_outcome):
    groups = join(
        [make_spend(100), make_spend(900, target_country_id="KSA")],
        [make_outcome(1, 2), make_outcome(9, 90, target_country_id="KSA")],
    )

    metrics = compute_metrics(groups, 500)

    assert metrics.conversion_rate == pytest.approx(10 / 92 * 100, abs=0.01)
    assert metrics.cost_per_deal == 100.0


def test_quality_score_weights_each_outcome_group_equally(make_spend, make_outcome):
    groups = join(
        [make_spend(100, target_country_id="OMN")],
        [
            make_outcome(9, 20, quality=QualityRating.BEST_QUALITY),
            make_outcome(1, 20, quality=QualityRating.BELOW_STANDARD, target_country_id="KSA"),
        ],
    )

    assert combine_quality_scores(groups) == 3.0
