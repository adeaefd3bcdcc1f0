from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import AbstractSet, Any, Iterable, List, Mapping, Optional, Tuple

from src.models.performance_events import (
    DestinationAllocation,
    OutcomeEvent,
    QualityRating,
    SpendEvent,
)
from src.schemas.performance_reports import NumericRange, ReportFilters


@dataclass(frozen=True)
class EventCriteria:
    """Row-level predicates applied while walking the nested report trees."""

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    branch_ids: AbstractSet[str] = frozenset()
    agent_ids: AbstractSet[str] = frozenset()
    target_country_ids: AbstractSet[str] = frozenset()
    destination_country_ids: AbstractSet[str] = frozenset()
    platform_ids: AbstractSet[str] = frozenset()
    quality_ratings: AbstractSet[str] = frozenset()
    spend_range: Optional[NumericRange] = None
    deal_range: Optional[NumericRange] = None

    @classmethod
    def from_filters(cls, filters: Optional[ReportFilters]) -> "EventCriteria":
        if filters is None:
            return cls()
        return cls(
            start_date=filters.date_range.start,
            end_date=filters.date_range.end,
            branch_ids=frozenset(filters.branches),
            agent_ids=frozenset(filters.sales_agents),
            target_country_ids=frozenset(filters.target_countries),
            destination_country_ids=frozenset(filters.destination_countries),
            platform_ids=frozenset(filters.platforms),
            quality_ratings=frozenset(QualityRating(rating).value for rating in filters.quality_ratings),
            spend_range=filters.spend_range,
            deal_range=filters.deal_range,
        )

    @property
    def narrows_spend(self) -> bool:
        return bool(self.platform_ids or self.destination_country_ids) or self.spend_range is not None

    @property
    def narrows_outcomes(self) -> bool:
        return bool(self.quality_ratings) or self.deal_range is not None

    def accepts_report(self, report_date: date, branch_id: str) -> bool:
        if self.start_date and report_date < self.start_date:
            return False
        if self.end_date and report_date > self.end_date:
            return False
        return _allowed(self.branch_ids, branch_id)

    def accepts_agent(self, agent_id: str) -> bool:
        return _allowed(self.agent_ids, agent_id)

    def accepts_target_country(self, country_id: str) -> bool:
        return _allowed(self.target_country_ids, country_id)

    def accepts_destination(self, destination_id: Optional[str]) -> bool:
        return _allowed(self.destination_country_ids, destination_id)

    def accepts_campaign(self, platform_id: Optional[str], destination_id: Optional[str], amount: float) -> bool:
        if not _allowed(self.platform_ids, platform_id):
            return False
        if not self.accepts_destination(destination_id):
            return False
        return self.spend_range is None or self.spend_range.contains(amount)

    def accepts_outcome(self, quality_rating: str, deals_closed: int) -> bool:
        if not _allowed(self.quality_ratings, quality_rating):
            return False
        return self.deal_range is None or self.deal_range.contains(deals_closed)


def flatten_spend_reports(
    reports: Iterable[Mapping[str, Any]],
    criteria: Optional[EventCriteria] = None,
) -> List[SpendEvent]:
    """Walk media_reports -> media_country_data -> media_agent_data -> campaign_details."""
    criteria = criteria or EventCriteria()
    events: List[SpendEvent] = []
    for report in reports:
        report_date = _to_date(report.get("date"))
        branch_id = str(report.get("branch_id") or "")
        if not criteria.accepts_report(report_date, branch_id):
            continue
        for country_row in report.get("media_country_data") or []:
            target_country_id = str(country_row.get("target_country_id") or "")
            if not target_country_id or not criteria.accepts_target_country(target_country_id):
                continue
            for agent_row in country_row.get("media_agent_data") or []:
                agent_id = str(agent_row.get("sales_agent_id") or "")
                if not agent_id or not criteria.accepts_agent(agent_id):
                    continue
                for campaign in agent_row.get("campaign_details") or []:
                    amount = _to_float(campaign.get("amount"))
                    platform_id = _optional_str(campaign.get("platform_id"))
                    destination_id = _optional_str(campaign.get("destination_country_id"))
                    if not criteria.accepts_campaign(platform_id, destination_id, amount):
                        continue
                    events.append(
                        SpendEvent(
                            date=report_date,
                            branch_id=branch_id,
                            agent_id=agent_id,
                            target_country_id=target_country_id,
                            destination_country_id=destination_id,
                            platform_id=platform_id,
                            amount=amount,
                        )
                    )
    return events


def flatten_outcome_reports(
    reports: Iterable[Mapping[str, Any]],
    criteria: Optional[EventCriteria] = None,
) -> List[OutcomeEvent]:
    """Walk sales_reports -> sales_country_data -> deal_destinations."""
    criteria = criteria or EventCriteria()
    events: List[OutcomeEvent] = []
    for report in reports:
        report_date = _to_date(report.get("date"))
        branch_id = str(report.get("branch_id") or "")
        agent_id = str(report.get("sales_agent_id") or "")
        if not agent_id or not criteria.accepts_report(report_date, branch_id):
            continue
        if not criteria.accepts_agent(agent_id):
            continue
        for country_row in report.get("sales_country_data") or []:
            target_country_id = str(country_row.get("target_country_id") or "")
            if not target_country_id or not criteria.accepts_target_country(target_country_id):
                continue
            quality_rating = QualityRating(str(country_row.get("quality_rating")))
            deals_closed = _to_int(country_row.get("deals_closed"))
            if not criteria.accepts_outcome(quality_rating.value, deals_closed):
                continue
            allocations = tuple(
                DestinationAllocation(
                    destination_country_id=str(allocation.get("destination_country_id")),
                    deal_sequence_number=_to_int(allocation.get("deal_number")),
                )
                for allocation in country_row.get("deal_destinations") or []
                if allocation.get("destination_country_id")
                and criteria.accepts_destination(str(allocation.get("destination_country_id")))
            )
            events.append(
                OutcomeEvent(
                    date=report_date,
                    branch_id=branch_id,
                    agent_id=agent_id,
                    target_country_id=target_country_id,
                    deals_closed=deals_closed,
                    whatsapp_messages=_to_int(country_row.get("whatsapp_messages")),
                    quality_rating=quality_rating,
                    destination_allocations=allocations,
                )
            )
    return events


def align_filtered_sides(
    spend_events: List[SpendEvent],
    outcome_events: List[OutcomeEvent],
    criteria: EventCriteria,
) -> Tuple[List[SpendEvent], List[OutcomeEvent]]:
    """Keep counterpart events only for keys that survived a one-sided filter.

    Platform, destination and spend-range filters see campaign lines only;
    quality and deal-range filters see outcome rows only.
    """
    if criteria.narrows_spend:
        spend_keys = {event.key for event in spend_events}
        outcome_events = [event for event in outcome_events if event.key in spend_keys]
    if criteria.narrows_outcomes:
        outcome_keys = {event.key for event in outcome_events}
        spend_events = [event for event in spend_events if event.key in outcome_keys]
    return spend_events, outcome_events


def _allowed(selection: AbstractSet[str], value: Optional[str]) -> bool:
    if not selection:
        return True
    return value is not None and value in selection


def _to_date(value: object) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _to_float(value: object) -> float:
    if value is None:
        return 0.0
    return float(value)


def _to_int(value: object) -> int:
    if value is None:
        return 0
    return int(float(value))


def _optional_str(value: object) -> Optional[str]:
    if value in (None, ""):
        return None
    return str(value)
