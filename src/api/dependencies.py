from __future__ import annotations

from functools import lru_cache

from src.core.config import get_settings
from src.repositories.performance_events_repository import PerformanceEventsRepository
from src.services.consistency_service import ConsistencyService
from src.services.performance_report_service import PerformanceReportService


@lru_cache
def get_performance_events_repository() -> PerformanceEventsRepository:
    return PerformanceEventsRepository()


def get_performance_report_service() -> PerformanceReportService:
    settings = get_settings()
    return PerformanceReportService(
        repository=get_performance_events_repository(),
        average_deal_value=settings.average_deal_value,
        roi_matrix_row_limit=settings.roi_matrix_row_limit,
    )


def get_consistency_service() -> ConsistencyService:
    settings = get_settings()
    return ConsistencyService(
        repository=get_performance_events_repository(),
        trends_max_days=settings.consistency_trends_max_days,
    )
