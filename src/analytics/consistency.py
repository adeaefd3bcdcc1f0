from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from src.analytics.metrics import calculate_conversion_rate, calculate_cost_per_deal
from src.models.performance_events import MatchedGroup, ReferenceData
from src.schemas.consistency import (
    ConsistencyBatchSummary,
    ConsistencyCheckResult,
    ConsistencyMetrics,
    ConsistencyTrendsResponse,
    ConsistencyWarning,
    DatedConsistencyResult,
    WarningCode,
)

LOW_EFFICIENCY_MIN_SPEND = 1000.0
LOW_EFFICIENCY_MIN_MESSAGES = 50
LOW_EFFICIENCY_MAX_CONVERSION_RATE = 5.0
HIGH_COST_PER_CONVERSION = 500.0
LOW_COST_PER_CONVERSION = 50.0
LOW_COST_MIN_DEALS = 5

CONSISTENT_SCORE = 100
INCONSISTENT_SCORE = 50

OVERALL_SCOPE = "consistency.overall"

# Codes that make a check inconsistent; every other code is advisory.
BLOCKING_CODES = frozenset({"NO_CONVERSIONS", "MISSING_ENGAGEMENT_DATA"})

RECOMMENDATIONS: Dict[str, str] = {
    "NO_CONVERSIONS": "Review campaign effectiveness in {country} - consider adjusting targeting or creative",
    "MISSING_MEDIA_DATA": "Verify if media campaigns were run in {country} or if deals came from organic sources",
    "LOW_EFFICIENCY": "Consider optimizing campaigns in {country} - analyze audience, creative, or landing page",
    "HIGH_CPC": "Review campaign performance and consider optimizing for lower cost per acquisition",
    "VERIFICATION_NEEDED": "Double-check the recorded spend and deal counts for data entry errors",
    "MISSING_ENGAGEMENT_DATA": "Ensure WhatsApp engagement is being properly tracked for all campaigns",
}


def evaluate_consistency(
    groups: Iterable[MatchedGroup],
    references: Optional[ReferenceData] = None,
) -> ConsistencyCheckResult:
    """Run the alignment rules over the groups of one agent, date and branch.

    Country rules run once per target country, aggregate rules once over the
    combined totals. Warnings are returned as data and never raised.
    """
    references = references or ReferenceData()
    group_list = list(groups)
    warnings: List[ConsistencyWarning] = []

    for country_id, (spend, deals, messages) in _country_totals(group_list).items():
        country = references.target_country_label(country_id)
        scope_key = f"consistency.{country_id}"
        if spend > 0 and deals == 0:
            warnings.append(
                _warning(
                    scope_key,
                    "NO_CONVERSIONS",
                    f"Agent spent {_money(spend)} on campaigns in {country} but closed no deals",
                    country,
                )
            )
        if deals > 0 and spend == 0:
            warnings.append(
                _warning(
                    scope_key,
                    "MISSING_MEDIA_DATA",
                    f"Agent closed {deals} deals in {country} without recorded media spend",
                    country,
                )
            )
        conversion_rate = calculate_conversion_rate(deals, messages)
        if (
            spend > LOW_EFFICIENCY_MIN_SPEND
            and messages > LOW_EFFICIENCY_MIN_MESSAGES
            and conversion_rate < LOW_EFFICIENCY_MAX_CONVERSION_RATE
        ):
            warnings.append(
                _warning(
                    scope_key,
                    "LOW_EFFICIENCY",
                    f"Low conversion rate ({conversion_rate:.1f}%) in {country} despite high spend ({_money(spend)})",
                    country,
                )
            )

    total_spend = sum(group.total_spend for group in group_list)
    total_deals = sum(group.total_deals for group in group_list)
    total_messages = sum(group.total_messages for group in group_list)
    cost_per_conversion = calculate_cost_per_deal(total_spend, total_deals)
    if total_deals > 0 and cost_per_conversion > HIGH_COST_PER_CONVERSION:
        warnings.append(
            _warning(
                OVERALL_SCOPE,
                "HIGH_CPC",
                f"High cost per conversion (${cost_per_conversion:.2f}) may indicate inefficient spending",
            )
        )
    if total_deals > LOW_COST_MIN_DEALS and cost_per_conversion < LOW_COST_PER_CONVERSION:
        warnings.append(
            _warning(
                OVERALL_SCOPE,
                "VERIFICATION_NEEDED",
                f"Unusually low cost per conversion (${cost_per_conversion:.2f}) - please verify data accuracy",
            )
        )
    if total_spend > 0 and total_messages == 0:
        warnings.append(
            _warning(
                OVERALL_SCOPE,
                "MISSING_ENGAGEMENT_DATA",
                f"Media spend of {_money(total_spend)} recorded but no WhatsApp engagement tracked",
            )
        )

    return ConsistencyCheckResult(
        is_consistent=not any(warning.code in BLOCKING_CODES for warning in warnings),
        warnings=warnings,
        recommendations=[warning.recommendation for warning in warnings],
        metrics=ConsistencyMetrics(
            total_spend=round(total_spend, 2),
            actual_conversions=total_deals,
            total_messages=total_messages,
            conversion_rate=round(calculate_conversion_rate(total_deals, total_messages), 2),
            cost_per_conversion=round(cost_per_conversion, 2),
            agent_efficiency=round(calculate_agent_efficiency(total_spend, total_deals, total_messages), 2),
        ),
    )


def calculate_agent_efficiency(spend: float, deals: int, messages: int) -> float:
    if spend <= 0 or deals <= 0:
        return 0.0
    cost_score = max(0.0, 100 - (spend / deals) / 10)
    conversion_score = (deals / messages) * 1000 if messages > 0 else 0.0
    return min(100.0, (cost_score + conversion_score) / 2)


def partition_by_date(groups: Iterable[MatchedGroup]) -> Dict[date, List[MatchedGroup]]:
    partitions: Dict[date, List[MatchedGroup]] = defaultdict(list)
    for group in groups:
        partitions[group.report_date].append(group)
    return partitions


def evaluate_dates(
    groups: Iterable[MatchedGroup],
    dates: Sequence[date],
    references: Optional[ReferenceData] = None,
) -> List[DatedConsistencyResult]:
    partitions = partition_by_date(groups)
    results: List[DatedConsistencyResult] = []
    for check_date in dates:
        result = evaluate_consistency(partitions.get(check_date, []), references)
        results.append(DatedConsistencyResult(date=check_date, **result.model_dump()))
    return results


def summarize_batch(results: Sequence[ConsistencyCheckResult]) -> ConsistencyBatchSummary:
    if not results:
        return ConsistencyBatchSummary(
            total_dates=0, consistent_dates=0, total_warnings=0, average_conversion_rate=0.0
        )
    return ConsistencyBatchSummary(
        total_dates=len(results),
        consistent_dates=sum(1 for result in results if result.is_consistent),
        total_warnings=sum(len(result.warnings) for result in results),
        average_conversion_rate=round(
            sum(result.metrics.conversion_rate for result in results) / len(results), 2
        ),
    )


def build_trends(
    agent_id: str,
    branch_id: str,
    results: Sequence[DatedConsistencyResult],
) -> ConsistencyTrendsResponse:
    ordered = sorted(results, key=lambda result: result.date)
    return ConsistencyTrendsResponse(
        agent_id=agent_id,
        branch_id=branch_id,
        dates=[result.date for result in ordered],
        spend_data=[result.metrics.total_spend for result in ordered],
        deals_data=[result.metrics.actual_conversions for result in ordered],
        conversion_rates=[result.metrics.conversion_rate for result in ordered],
        consistency_scores=[
            CONSISTENT_SCORE if result.is_consistent else INCONSISTENT_SCORE for result in ordered
        ],
    )


def _country_totals(groups: Iterable[MatchedGroup]) -> Dict[str, Tuple[float, int, int]]:
    totals: Dict[str, Tuple[float, int, int]] = {}
    for group in groups:
        spend, deals, messages = totals.get(group.target_country_id, (0.0, 0, 0))
        totals[group.target_country_id] = (
            spend + group.total_spend,
            deals + group.total_deals,
            messages + group.total_messages,
        )
    return dict(sorted(totals.items()))


def _warning(scope_key: str, code: WarningCode, message: str, country: str = "") -> ConsistencyWarning:
    return ConsistencyWarning(
        scope_key=scope_key,
        code=code,
        message=message,
        recommendation=RECOMMENDATIONS[code].format(country=country),
    )


def _money(amount: float) -> str:
    if float(amount).is_integer():
        return f"${amount:,.0f}"
    return f"${amount:,.2f}"
