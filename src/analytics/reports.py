from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple, TypeVar

from src.analytics.matching import UNASSIGNED_PLATFORM, join_destinations
from src.analytics.metrics import (
    calculate_conversion_rate,
    calculate_cost_per_deal,
    calculate_roi,
    compute_metrics,
)
from src.models.performance_events import MatchedGroup, OutcomeEvent, ReferenceData, SpendEvent
from src.schemas.performance_reports import (
    AgentPerformanceRow,
    BranchComparisonRow,
    CountryBreakdown,
    CountryInsightRow,
    DestinationAnalysisRow,
    DestinationPreference,
    PlatformAnalysisRow,
    PlatformCountryBreakdown,
    ReportData,
    ReportFilters,
    RoiMatrixRow,
)

MEASURED = "measured"
SPEND_SHARE_ESTIMATE = "spend_share_estimate"
UNASSIGNED_BRANCH = "unassigned"
TOP_DESTINATION_PREFERENCES = 5

K = TypeVar("K", bound=Hashable)


@dataclass(frozen=True)
class ReportContext:
    groups: Tuple[MatchedGroup, ...]
    spend_events: Tuple[SpendEvent, ...]
    outcome_events: Tuple[OutcomeEvent, ...]
    average_deal_value: float
    references: ReferenceData
    filters: Optional[ReportFilters] = None
    roi_matrix_row_limit: int = 20


ReportAssembler = Callable[[ReportContext], ReportData]


def assemble_agent_report(context: ReportContext) -> ReportData:
    adv = context.average_deal_value
    refs = context.references
    rows: List[AgentPerformanceRow] = []
    for agent_id, agent_groups in _group_by(context.groups, lambda group: group.agent_id).items():
        metrics = compute_metrics(agent_groups, adv)
        if not _meets_thresholds(metrics.roi, metrics.conversion_rate, context.filters):
            continue
        breakdown: List[CountryBreakdown] = []
        for country_id, country_groups in _group_by(agent_groups, lambda group: group.target_country_id).items():
            country_metrics = compute_metrics(country_groups, adv)
            breakdown.append(
                CountryBreakdown(
                    target_country_id=country_id,
                    country=refs.target_country_label(country_id),
                    spend=country_metrics.total_spend,
                    deals=country_metrics.total_deals,
                    messages=country_metrics.total_messages,
                    roi=country_metrics.roi,
                    conversion_rate=country_metrics.conversion_rate,
                )
            )
        breakdown.sort(key=lambda item: (-item.roi, -item.spend, item.country))
        branch_id = _first_branch(agent_groups)
        rows.append(
            AgentPerformanceRow(
                agent_id=agent_id,
                agent_name=refs.agent_label(agent_id),
                branch_id=branch_id,
                branch_name=refs.branch_label(branch_id) if branch_id else None,
                metrics=metrics,
                roi_defined=metrics.total_spend > 0,
                country_breakdown=breakdown,
            )
        )
    rows.sort(key=lambda row: (not row.roi_defined, -row.metrics.roi, row.agent_name.lower()))
    return ReportData(
        report_type="agent_roi",
        overview=compute_metrics(context.groups, adv),
        agent_performance=rows,
    )


def assemble_platform_report(context: ReportContext) -> ReportData:
    """Deals are not recorded per platform, so they are split by spend share."""
    adv = context.average_deal_value
    refs = context.references
    spend: Dict[str, float] = defaultdict(float)
    campaigns: Dict[str, int] = defaultdict(int)
    deals: Dict[str, float] = defaultdict(float)
    messages: Dict[str, float] = defaultdict(float)
    country_spend: Dict[str, Dict[str, float]] = defaultdict(lambda: defaultdict(float))
    country_deals: Dict[str, Dict[str, float]] = defaultdict(lambda: defaultdict(float))
    unattributed_deals = 0

    for group in context.groups:
        if not group.has_spend_side:
            unattributed_deals += group.total_deals
            continue
        for platform_id, share in _platform_shares(group):
            platform_spend = group.spend_by_platform.get(platform_id, 0.0)
            spend[platform_id] += platform_spend
            campaigns[platform_id] += group.campaigns_by_platform.get(platform_id, 0)
            deals[platform_id] += group.total_deals * share
            messages[platform_id] += group.total_messages * share
            country_spend[platform_id][group.target_country_id] += platform_spend
            country_deals[platform_id][group.target_country_id] += group.total_deals * share

    rows: List[PlatformAnalysisRow] = []
    for platform_id in spend:
        platform_spend = spend[platform_id]
        platform_deals = deals[platform_id]
        roi = calculate_roi(platform_spend, platform_deals, adv)
        conversion_rate = calculate_conversion_rate(platform_deals, messages[platform_id])
        if not _meets_thresholds(roi, conversion_rate, context.filters):
            continue
        breakdown = [
            PlatformCountryBreakdown(
                target_country_id=country_id,
                country=refs.target_country_label(country_id),
                spend=round(amount, 2),
                estimated_deals=round(country_deals[platform_id][country_id], 2),
                efficiency=round(amount / platform_spend, 4) if platform_spend > 0 else 0.0,
            )
            for country_id, amount in country_spend[platform_id].items()
        ]
        breakdown.sort(key=lambda item: (-item.spend, item.country))
        rows.append(
            PlatformAnalysisRow(
                platform_id=platform_id,
                platform=_platform_label(refs, platform_id),
                total_spend=round(platform_spend, 2),
                campaign_count=campaigns[platform_id],
                estimated_deals=round(platform_deals, 2),
                estimated_messages=round(messages[platform_id], 2),
                cost_per_deal=round(calculate_cost_per_deal(platform_spend, platform_deals), 2),
                roi=round(roi, 2),
                conversion_rate=round(conversion_rate, 2),
                countries_served=len(country_spend[platform_id]),
                attribution=SPEND_SHARE_ESTIMATE,
                country_breakdown=breakdown,
            )
        )
    rows.sort(key=lambda row: (-row.total_spend, row.platform.lower()))
    return ReportData(
        report_type="platform_effectiveness",
        overview=compute_metrics(context.groups, adv),
        platform_analysis=rows,
        unattributed_deals=unattributed_deals,
    )


def assemble_destination_report(context: ReportContext) -> ReportData:
    adv = context.average_deal_value
    refs = context.references
    rows: List[DestinationAnalysisRow] = []
    for destination in join_destinations(context.spend_events, context.outcome_events):
        roi = calculate_roi(destination.total_spend, destination.allocated_deals, adv)
        if not _meets_thresholds(roi, None, context.filters):
            continue
        rows.append(
            DestinationAnalysisRow(
                destination_country_id=destination.destination_country_id,
                destination=refs.destination_label(destination.destination_country_id),
                campaign_spend=round(destination.total_spend, 2),
                campaign_count=destination.campaign_count,
                allocated_deals=destination.allocated_deals,
                cost_per_deal=round(
                    calculate_cost_per_deal(destination.total_spend, destination.allocated_deals), 2
                ),
                roi=round(roi, 2),
                quality_score=round(destination.average_quality_score, 2),
                agent_count=len(destination.agent_ids),
                has_spend_side=destination.has_spend_side,
                has_outcome_side=destination.has_outcome_side,
            )
        )
    rows.sort(key=lambda row: (-row.campaign_spend, -row.allocated_deals, row.destination.lower()))
    return ReportData(
        report_type="destination_analysis",
        overview=compute_metrics(context.groups, adv),
        destination_analysis=rows,
        country_insights=build_country_insights(context),
    )


def build_country_insights(context: ReportContext) -> List[CountryInsightRow]:
    adv = context.average_deal_value
    refs = context.references
    insights: List[CountryInsightRow] = []
    for country_id, country_groups in _group_by(context.groups, lambda group: group.target_country_id).items():
        metrics = compute_metrics(country_groups, adv)
        agent_deals: Dict[str, Tuple[int, float]] = {}
        platform_spend: Dict[str, float] = defaultdict(float)
        destination_deals: Dict[str, int] = defaultdict(int)
        for group in country_groups:
            previous_deals, previous_spend = agent_deals.get(group.agent_id, (0, 0.0))
            agent_deals[group.agent_id] = (
                previous_deals + group.total_deals,
                previous_spend + group.total_spend,
            )
            for platform_id, amount in group.spend_by_platform.items():
                platform_spend[platform_id] += amount
            for destination_id, count in group.deals_by_destination.items():
                destination_deals[destination_id] += count

        top_agent = None
        if agent_deals:
            top_agent_id = min(
                agent_deals,
                key=lambda agent_id: (-agent_deals[agent_id][0], -agent_deals[agent_id][1], agent_id),
            )
            top_agent = refs.agent_label(top_agent_id)
        top_platform = None
        if platform_spend:
            top_platform_id = min(platform_spend, key=lambda platform_id: (-platform_spend[platform_id], platform_id))
            top_platform = _platform_label(refs, top_platform_id)

        allocated_total = sum(destination_deals.values())
        preferences = [
            DestinationPreference(
                destination_country_id=destination_id,
                destination=refs.destination_label(destination_id),
                deals=count,
                percentage=round(count / allocated_total * 100, 2) if allocated_total else 0.0,
            )
            for destination_id, count in destination_deals.items()
        ]
        preferences.sort(key=lambda item: (-item.deals, item.destination.lower()))
        insights.append(
            CountryInsightRow(
                target_country_id=country_id,
                target_country=refs.target_country_label(country_id),
                total_spend=metrics.total_spend,
                total_deals=metrics.total_deals,
                roi=metrics.roi,
                top_agent=top_agent,
                top_platform=top_platform,
                destination_preferences=preferences[:TOP_DESTINATION_PREFERENCES],
            )
        )
    insights.sort(key=lambda row: (-row.total_spend, -row.total_deals, row.target_country.lower()))
    return insights


def assemble_branch_report(context: ReportContext) -> ReportData:
    adv = context.average_deal_value
    refs = context.references
    rows: List[BranchComparisonRow] = []
    by_branch = _group_by(context.groups, lambda group: group.branch_id or UNASSIGNED_BRANCH)
    for branch_id, branch_groups in by_branch.items():
        metrics = compute_metrics(branch_groups, adv)
        if not _meets_thresholds(metrics.roi, metrics.conversion_rate, context.filters):
            continue
        rows.append(
            BranchComparisonRow(
                branch_id=branch_id,
                branch_name=refs.branch_label(branch_id) if branch_id != UNASSIGNED_BRANCH else "Unassigned",
                agent_count=len({group.agent_id for group in branch_groups}),
                campaign_count=sum(group.campaign_count for group in branch_groups),
                metrics=metrics,
            )
        )
    rows.sort(key=lambda row: (-row.metrics.total_spend, row.branch_name.lower()))
    return ReportData(
        report_type="branch_comparison",
        overview=compute_metrics(context.groups, adv),
        branch_comparison=rows,
    )


def assemble_roi_matrix(context: ReportContext) -> ReportData:
    adv = context.average_deal_value
    refs = context.references
    rows: List[RoiMatrixRow] = []
    for group in context.groups:
        for row in _matrix_rows(group, adv, refs):
            if _meets_thresholds(row.roi, row.conversion_rate, context.filters):
                rows.append(row)
    rows.sort(
        key=lambda row: (
            not row.roi_defined,
            -row.roi,
            row.date,
            row.agent.lower(),
            row.country.lower(),
            row.platform.lower(),
        )
    )
    return ReportData(
        report_type="roi_matrix",
        overview=compute_metrics(context.groups, adv),
        roi_matrix=rows[: context.roi_matrix_row_limit],
        roi_matrix_total_rows=len(rows),
    )


REPORT_ASSEMBLERS: Dict[str, ReportAssembler] = {
    "agent_roi": assemble_agent_report,
    "platform_effectiveness": assemble_platform_report,
    "destination_analysis": assemble_destination_report,
    "branch_comparison": assemble_branch_report,
    "roi_matrix": assemble_roi_matrix,
}


def _matrix_rows(group: MatchedGroup, adv: float, refs: ReferenceData) -> List[RoiMatrixRow]:
    agent = refs.agent_label(group.agent_id)
    country = refs.target_country_label(group.target_country_id)
    if not group.has_spend_side:
        return [
            RoiMatrixRow(
                date=group.report_date,
                agent_id=group.agent_id,
                agent=agent,
                target_country_id=group.target_country_id,
                country=country,
                platform_id=None,
                platform="No recorded spend",
                spend=0.0,
                deals=float(group.total_deals),
                messages=float(group.total_messages),
                roi=0.0,
                roi_defined=False,
                conversion_rate=round(calculate_conversion_rate(group.total_deals, group.total_messages), 2),
                quality_score=round(group.average_quality_score, 2),
                attribution=MEASURED,
            )
        ]
    shares = _platform_shares(group)
    attribution = MEASURED if len(shares) == 1 else SPEND_SHARE_ESTIMATE
    rows: List[RoiMatrixRow] = []
    for platform_id, share in shares:
        spend = group.spend_by_platform.get(platform_id, 0.0)
        deals = group.total_deals * share
        messages = group.total_messages * share
        rows.append(
            RoiMatrixRow(
                date=group.report_date,
                agent_id=group.agent_id,
                agent=agent,
                target_country_id=group.target_country_id,
                country=country,
                platform_id=platform_id,
                platform=_platform_label(refs, platform_id),
                spend=round(spend, 2),
                deals=round(deals, 2),
                messages=round(messages, 2),
                roi=round(calculate_roi(spend, deals, adv), 2),
                roi_defined=spend > 0,
                conversion_rate=round(calculate_conversion_rate(deals, messages), 2),
                quality_score=round(group.average_quality_score, 2),
                attribution=attribution,
            )
        )
    return rows


def _platform_shares(group: MatchedGroup) -> List[Tuple[str, float]]:
    platforms = sorted(group.spend_by_platform)
    if group.total_spend > 0:
        return [(platform_id, group.spend_by_platform[platform_id] / group.total_spend) for platform_id in platforms]
    # Zero-amount campaign lines: fall back to campaign counts.
    campaigns = sum(group.campaigns_by_platform.values())
    if campaigns == 0:
        return []
    return [(platform_id, group.campaigns_by_platform.get(platform_id, 0) / campaigns) for platform_id in platforms]


def _platform_label(refs: ReferenceData, platform_id: str) -> str:
    if platform_id == UNASSIGNED_PLATFORM:
        return "Unassigned"
    return refs.platform_label(platform_id)


def _meets_thresholds(roi: float, conversion_rate: Optional[float], filters: Optional[ReportFilters]) -> bool:
    if filters is None:
        return True
    if filters.min_roi is not None and roi < filters.min_roi:
        return False
    if (
        conversion_rate is not None
        and filters.min_conversion_rate is not None
        and conversion_rate < filters.min_conversion_rate
    ):
        return False
    return True


def _first_branch(groups: Sequence[MatchedGroup]) -> Optional[str]:
    branches = sorted({group.branch_id for group in groups if group.branch_id})
    return branches[0] if branches else None


def _group_by(groups: Iterable[MatchedGroup], key: Callable[[MatchedGroup], K]) -> Dict[K, List[MatchedGroup]]:
    grouped: Dict[K, List[MatchedGroup]] = {}
    for group in groups:
        grouped.setdefault(key(group), []).append(group)
    return grouped
