"""Full outer join of spend and outcome events.

Both streams are indexed independently by key in one pass each, then a single
merge pass walks the sorted union of keys. A key present on only one side
still yields a group with the other side zero-filled.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Set

from src.models.performance_events import (
    CompositeKey,
    DestinationGroup,
    MatchedGroup,
    OutcomeEvent,
    SpendEvent,
)


@dataclass
class _SpendSide:
    total_spend: float = 0.0
    campaign_count: int = 0
    branch_ids: Set[str] = field(default_factory=set)
    spend_by_platform: Dict[str, float] = field(default_factory=lambda: defaultdict(float))
    campaigns_by_platform: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    spend_by_destination: Dict[str, float] = field(default_factory=lambda: defaultdict(float))


@dataclass
class _OutcomeSide:
    total_deals: int = 0
    total_messages: int = 0
    quality_scores: List[int] = field(default_factory=list)
    branch_ids: Set[str] = field(default_factory=set)
    deals_by_destination: Dict[str, int] = field(default_factory=lambda: defaultdict(int))


UNASSIGNED_PLATFORM = "unassigned"


def index_spend(events: Iterable[SpendEvent]) -> Dict[CompositeKey, _SpendSide]:
    index: Dict[CompositeKey, _SpendSide] = {}
    for event in events:
        side = index.setdefault(event.key, _SpendSide())
        platform_id = event.platform_id or UNASSIGNED_PLATFORM
        side.total_spend += event.amount
        side.campaign_count += 1
        side.branch_ids.add(event.branch_id)
        side.spend_by_platform[platform_id] += event.amount
        side.campaigns_by_platform[platform_id] += 1
        if event.destination_country_id:
            side.spend_by_destination[event.destination_country_id] += event.amount
    return index


def index_outcomes(events: Iterable[OutcomeEvent]) -> Dict[CompositeKey, _OutcomeSide]:
    index: Dict[CompositeKey, _OutcomeSide] = {}
    for event in events:
        side = index.setdefault(event.key, _OutcomeSide())
        side.total_deals += event.deals_closed
        side.total_messages += event.whatsapp_messages
        side.quality_scores.append(event.quality_score)
        side.branch_ids.add(event.branch_id)
        for allocation in event.destination_allocations:
            side.deals_by_destination[allocation.destination_country_id] += 1
    return index


def join(spend_events: Iterable[SpendEvent], outcome_events: Iterable[OutcomeEvent]) -> List[MatchedGroup]:
    spend_index = index_spend(spend_events)
    outcome_index = index_outcomes(outcome_events)
    return merge_indices(spend_index, outcome_index)


def merge_indices(
    spend_index: Mapping[CompositeKey, _SpendSide],
    outcome_index: Mapping[CompositeKey, _OutcomeSide],
) -> List[MatchedGroup]:
    groups: List[MatchedGroup] = []
    for key in sorted(set(spend_index) | set(outcome_index)):
        spend = spend_index.get(key)
        outcome = outcome_index.get(key)
        branch_ids: Set[str] = set()
        if spend:
            branch_ids |= spend.branch_ids
        if outcome:
            branch_ids |= outcome.branch_ids
        groups.append(
            MatchedGroup(
                key=key,
                branch_id=_primary_branch(branch_ids),
                total_spend=spend.total_spend if spend else 0.0,
                campaign_count=spend.campaign_count if spend else 0,
                total_deals=outcome.total_deals if outcome else 0,
                total_messages=outcome.total_messages if outcome else 0,
                average_quality_score=_mean(outcome.quality_scores) if outcome else 0.0,
                outcome_count=len(outcome.quality_scores) if outcome else 0,
                has_spend_side=spend is not None,
                has_outcome_side=outcome is not None,
                spend_by_platform=dict(spend.spend_by_platform) if spend else {},
                campaigns_by_platform=dict(spend.campaigns_by_platform) if spend else {},
                spend_by_destination=dict(spend.spend_by_destination) if spend else {},
                deals_by_destination=dict(outcome.deals_by_destination) if outcome else {},
            )
        )
    return groups


def join_destinations(
    spend_events: Iterable[SpendEvent], outcome_events: Iterable[OutcomeEvent]
) -> List[DestinationGroup]:
    """Second, narrower join keyed only by destination country.

    Spend is attributed to the campaign's destination; deals are counted from
    the destination allocations recorded on each outcome row.
    """
    spend_totals: Dict[str, float] = defaultdict(float)
    campaign_counts: Dict[str, int] = defaultdict(int)
    agents: Dict[str, Set[str]] = defaultdict(set)
    for event in spend_events:
        if not event.destination_country_id:
            continue
        spend_totals[event.destination_country_id] += event.amount
        campaign_counts[event.destination_country_id] += 1
        agents[event.destination_country_id].add(event.agent_id)

    allocated: Dict[str, int] = defaultdict(int)
    quality: Dict[str, List[int]] = defaultdict(list)
    for event in outcome_events:
        seen: Set[str] = set()
        for allocation in event.destination_allocations:
            destination_id = allocation.destination_country_id
            allocated[destination_id] += 1
            agents[destination_id].add(event.agent_id)
            if destination_id not in seen:
                quality[destination_id].append(event.quality_score)
                seen.add(destination_id)

    groups: List[DestinationGroup] = []
    for destination_id in sorted(set(campaign_counts) | set(allocated)):
        groups.append(
            DestinationGroup(
                destination_country_id=destination_id,
                total_spend=spend_totals.get(destination_id, 0.0),
                campaign_count=campaign_counts.get(destination_id, 0),
                allocated_deals=allocated.get(destination_id, 0),
                average_quality_score=_mean(quality.get(destination_id, [])),
                agent_ids=tuple(sorted(agents[destination_id])),
                has_spend_side=destination_id in campaign_counts,
                has_outcome_side=destination_id in allocated,
            )
        )
    return groups


def _primary_branch(branch_ids: Set[str]) -> Optional[str]:
    # An agent reports under a single branch; pick deterministically otherwise.
    cleaned = sorted(branch_id for branch_id in branch_ids if branch_id)
    return cleaned[0] if cleaned else None


def _mean(values: List[int]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)
