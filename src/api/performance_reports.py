from __future__ import annotations

from fastapi import APIRouter, Depends

from src.api.dependencies import get_performance_report_service
from src.schemas.performance_reports import ReportData, ReportRequest
from src.services.performance_report_service import PerformanceReportService
from src.shared.response import ResponseEnvelope, build_meta
from src.shared.time import format_window

router = APIRouter(prefix="/analytics", tags=["analytics"])

EVENT_SOURCES = "media_reports,sales_reports"


@router.post("/reports")
def generate_performance_report(
    request: ReportRequest,
    service: PerformanceReportService = Depends(get_performance_report_service),
) -> ResponseEnvelope[ReportData]:
    data = service.generate_report(request)
    date_range = request.filters.date_range
    return ResponseEnvelope(
        data=data,
        meta=build_meta(
            source=EVENT_SOURCES,
            time_window=format_window(date_range.start, date_range.end),
            average_deal_value=service.average_deal_value,
        ),
    )
