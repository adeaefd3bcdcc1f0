from __future__ import annotations

from datetime import date
from typing import List, Optional

from src.analytics.consistency import build_trends, evaluate_consistency, evaluate_dates, summarize_batch
from src.analytics.matching import join
from src.analytics.normalization import EventCriteria, flatten_outcome_reports, flatten_spend_reports
from src.core.errors import BadRequestError, UnresolvableReferenceError
from src.models.performance_events import MatchedGroup
from src.repositories.performance_events_repository import PerformanceEventsRepository
from src.schemas.consistency import (
    ConsistencyBatchRequest,
    ConsistencyBatchResponse,
    ConsistencyCheckFilters,
    ConsistencyCheckResult,
    ConsistencyTrendsResponse,
)
from src.shared.time import date_span, iter_dates, trailing_window


class ConsistencyService:
    def __init__(self, repository: PerformanceEventsRepository, trends_max_days: int = 90) -> None:
        self.repository = repository
        self.trends_max_days = trends_max_days

    def check_alignment(self, filters: ConsistencyCheckFilters) -> ConsistencyCheckResult:
        groups = self._load_groups(filters.agent_id, filters.branch_id, filters.date, filters.date)
        return evaluate_consistency(groups, self.repository.get_reference_data())

    def check_batch(
        self,
        request: ConsistencyBatchRequest,
        today: Optional[date] = None,
    ) -> ConsistencyBatchResponse:
        dates = sorted(set(request.dates or [today or date.today()]))
        start, end = date_span(dates)
        # One read covers the whole span; results are partitioned by date.
        groups = self._load_groups(request.agent_id, request.branch_id, start, end)
        results = evaluate_dates(groups, dates, self.repository.get_reference_data())
        return ConsistencyBatchResponse(
            agent_id=request.agent_id,
            branch_id=request.branch_id,
            results=results,
            summary=summarize_batch(results),
        )

    def get_trends(
        self,
        agent_id: str,
        branch_id: str,
        days: int = 7,
        today: Optional[date] = None,
    ) -> ConsistencyTrendsResponse:
        if days > self.trends_max_days:
            raise BadRequestError(f"days must be at most {self.trends_max_days}")
        start, end = trailing_window(days, today)
        groups = self._load_groups(agent_id, branch_id, start, end)
        results = evaluate_dates(groups, iter_dates(start, end), self.repository.get_reference_data())
        return build_trends(agent_id, branch_id, results)

    def _load_groups(self, agent_id: str, branch_id: str, start: date, end: date) -> List[MatchedGroup]:
        self._ensure_exists("sales_agents", agent_id)
        self._ensure_exists("branches", branch_id)
        criteria = EventCriteria(
            start_date=start,
            end_date=end,
            branch_ids=frozenset({branch_id}),
            agent_ids=frozenset({agent_id}),
        )
        spend_reports = self.repository.list_spend_reports(start, end, [branch_id], [agent_id])
        outcome_reports = self.repository.list_outcome_reports(start, end, [branch_id], [agent_id])
        return join(
            flatten_spend_reports(spend_reports, criteria),
            flatten_outcome_reports(outcome_reports, criteria),
        )

    def _ensure_exists(self, reference_type: str, reference_id: str) -> None:
        missing = self.repository.find_missing_ids(reference_type, [reference_id])
        if missing:
            raise UnresolvableReferenceError(reference_type, missing)
