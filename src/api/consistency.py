from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_consistency_service
from src.schemas.consistency import (
    ConsistencyBatchRequest,
    ConsistencyBatchResponse,
    ConsistencyCheckFilters,
    ConsistencyCheckResult,
    ConsistencyTrendsResponse,
)
from src.services.consistency_service import ConsistencyService
from src.shared.response import ResponseEnvelope, build_meta
from src.shared.time import format_window

router = APIRouter(prefix="/consistency", tags=["consistency"])

EVENT_SOURCES = "media_reports,sales_reports"


def get_consistency_check_filters(
    agent_id: str = Query(..., alias="agentId", min_length=1),
    branch_id: str = Query(..., alias="branchId", min_length=1),
    check_date: date = Query(..., alias="date"),
) -> ConsistencyCheckFilters:
    return ConsistencyCheckFilters(
        agent_id=agent_id,
        branch_id=branch_id,
        date=check_date,
    )


@router.get("/check")
def consistency_check(
    filters: ConsistencyCheckFilters = Depends(get_consistency_check_filters),
    service: ConsistencyService = Depends(get_consistency_service),
) -> ResponseEnvelope[ConsistencyCheckResult]:
    data = service.check_alignment(filters)
    return ResponseEnvelope(
        data=data,
        meta=build_meta(source=EVENT_SOURCES, time_window=format_window(filters.date, filters.date)),
    )


@router.post("/check")
def consistency_check_batch(
    request: ConsistencyBatchRequest,
    service: ConsistencyService = Depends(get_consistency_service),
) -> ResponseEnvelope[ConsistencyBatchResponse]:
    data = service.check_batch(request)
    dates = [result.date for result in data.results]
    time_window = format_window(min(dates), max(dates)) if dates else "today"
    return ResponseEnvelope(data=data, meta=build_meta(source=EVENT_SOURCES, time_window=time_window))


@router.get("/trends")
def consistency_trends(
    agent_id: str = Query(..., alias="agentId", min_length=1),
    branch_id: str = Query(..., alias="branchId", min_length=1),
    days: int = Query(default=7, ge=1),
    service: ConsistencyService = Depends(get_consistency_service),
) -> ResponseEnvelope[ConsistencyTrendsResponse]:
    data = service.get_trends(agent_id, branch_id, days)
    time_window = format_window(data.dates[0], data.dates[-1]) if data.dates else f"last_{days}_days"
    return ResponseEnvelope(data=data, meta=build_meta(source=EVENT_SOURCES, time_window=time_window))
