from __future__ import annotations

from typing import Iterable, List, Union

from src.models.performance_events import MatchedGroup
from src.schemas.performance_reports import PerformanceMetrics

GroupsInput = Union[MatchedGroup, Iterable[MatchedGroup]]


def calculate_roi(spend: float, deals: float, average_deal_value: float) -> float:
    if spend <= 0:
        return 0.0
    return ((deals * average_deal_value) - spend) / spend * 100


def calculate_cost_per_deal(spend: float, deals: float) -> float:
    if deals <= 0:
        return 0.0
    return spend / deals


def calculate_conversion_rate(deals: float, messages: float) -> float:
    if messages <= 0:
        return 0.0
    return deals / messages * 100


def calculate_profit_margin(spend: float, deals: float, average_deal_value: float) -> float:
    revenue = deals * average_deal_value
    if revenue <= 0:
        return 0.0
    return (revenue - spend) / revenue * 100


def calculate_spend_efficiency(spend: float, deals: float) -> float:
    if spend <= 0:
        return 0.0
    return deals / spend


def combine_quality_scores(groups: Iterable[MatchedGroup]) -> float:
    # Each group with outcome data counts once, regardless of its deal volume.
    scores = [group.average_quality_score for group in groups if group.has_outcome_side]
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def compute_metrics(groups: GroupsInput, average_deal_value: float) -> PerformanceMetrics:
    """Sum the totals first, then derive every ratio from the sums."""
    group_list: List[MatchedGroup] = [groups] if isinstance(groups, MatchedGroup) else list(groups)
    spend = sum(group.total_spend for group in group_list)
    deals = sum(group.total_deals for group in group_list)
    messages = sum(group.total_messages for group in group_list)
    return PerformanceMetrics(
        total_spend=round(spend, 2),
        total_deals=deals,
        total_messages=messages,
        cost_per_deal=round(calculate_cost_per_deal(spend, deals), 2),
        cost_per_deal_applicable=deals > 0,
        roi=round(calculate_roi(spend, deals, average_deal_value), 2),
        conversion_rate=round(calculate_conversion_rate(deals, messages), 2),
        quality_score=round(combine_quality_scores(group_list), 2),
        estimated_revenue=round(deals * average_deal_value, 2),
        profit_margin=round(calculate_profit_margin(spend, deals, average_deal_value), 2),
        spend_efficiency=round(calculate_spend_efficiency(spend, deals), 6),
    )
