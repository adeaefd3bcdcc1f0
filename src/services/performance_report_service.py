from __future__ import annotations

import logging
from typing import Dict, List

from src.analytics.matching import join
from src.analytics.normalization import (
    EventCriteria,
    align_filtered_sides,
    flatten_outcome_reports,
    flatten_spend_reports,
)
from src.analytics.reports import REPORT_ASSEMBLERS, ReportContext
from src.core.errors import BadRequestError, ReportGenerationError, UnresolvableReferenceError
from src.repositories.performance_events_repository import PerformanceEventsRepository
from src.schemas.performance_reports import ReportData, ReportFilters, ReportRequest

logger = logging.getLogger(__name__)


class PerformanceReportService:
    def __init__(
        self,
        repository: PerformanceEventsRepository,
        average_deal_value: float,
        roi_matrix_row_limit: int = 20,
    ) -> None:
        self.repository = repository
        self.average_deal_value = average_deal_value
        self.roi_matrix_row_limit = roi_matrix_row_limit

    def generate_report(self, request: ReportRequest) -> ReportData:
        assembler = REPORT_ASSEMBLERS.get(request.report_type)
        if assembler is None:
            raise BadRequestError(f"Unsupported reportType: {request.report_type}")
        filters = request.filters
        self._ensure_references(filters)

        criteria = EventCriteria.from_filters(filters)
        start, end = filters.date_range.start, filters.date_range.end
        spend_reports = self.repository.list_spend_reports(
            start, end, filters.branches, filters.sales_agents, filters.target_countries
        )
        outcome_reports = self.repository.list_outcome_reports(
            start, end, filters.branches, filters.sales_agents, filters.target_countries
        )
        spend_events, outcome_events = align_filtered_sides(
            flatten_spend_reports(spend_reports, criteria),
            flatten_outcome_reports(outcome_reports, criteria),
            criteria,
        )
        groups = join(spend_events, outcome_events)
        logger.info(
            "Assembling %s report: %d spend events, %d outcome events, %d groups",
            request.report_type,
            len(spend_events),
            len(outcome_events),
            len(groups),
        )

        context = ReportContext(
            groups=tuple(groups),
            spend_events=tuple(spend_events),
            outcome_events=tuple(outcome_events),
            average_deal_value=self.average_deal_value,
            references=self.repository.get_reference_data(),
            filters=filters,
            roi_matrix_row_limit=self.roi_matrix_row_limit,
        )
        try:
            return assembler(context)
        except Exception as exc:
            logger.exception("Report assembly failed for %s", request.report_type)
            raise ReportGenerationError(request.report_type) from exc

    def _ensure_references(self, filters: ReportFilters) -> None:
        requested: Dict[str, List[str]] = {
            "branches": filters.branches,
            "sales_agents": filters.sales_agents,
            "target_countries": filters.target_countries,
            "destination_countries": filters.destination_countries,
            "platforms": filters.platforms,
        }
        for reference_type, ids in requested.items():
            if not ids:
                continue
            missing = self.repository.find_missing_ids(reference_type, ids)
            if missing:
                raise UnresolvableReferenceError(reference_type, missing)
