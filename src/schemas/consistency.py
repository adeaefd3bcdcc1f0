from __future__ import annotations

import datetime as dt
from typing import List, Literal, Optional

from pydantic import ConfigDict, Field

from src.shared.base import BaseSchema

WarningCode = Literal[
    "NO_CONVERSIONS",
    "MISSING_MEDIA_DATA",
    "LOW_EFFICIENCY",
    "HIGH_CPC",
    "VERIFICATION_NEEDED",
    "MISSING_ENGAGEMENT_DATA",
]


class ConsistencyWarning(BaseSchema):
    scope_key: str
    code: WarningCode
    message: str
    recommendation: str


class ConsistencyMetrics(BaseSchema):
    total_spend: float
    actual_conversions: int
    total_messages: int
    conversion_rate: float
    cost_per_conversion: float
    agent_efficiency: float


class ConsistencyCheckResult(BaseSchema):
    is_consistent: bool
    warnings: List[ConsistencyWarning]
    recommendations: List[str]
    metrics: ConsistencyMetrics


class ConsistencyCheckFilters(BaseSchema):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    agent_id: str = Field(min_length=1)
    branch_id: str = Field(min_length=1)
    date: dt.date


class ConsistencyBatchRequest(BaseSchema):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    agent_id: str = Field(min_length=1)
    branch_id: str = Field(min_length=1)
    dates: Optional[List[dt.date]] = Field(default=None, max_length=366)


class DatedConsistencyResult(ConsistencyCheckResult):
    date: dt.date


class ConsistencyBatchSummary(BaseSchema):
    total_dates: int
    consistent_dates: int
    total_warnings: int
    average_conversion_rate: float


class ConsistencyBatchResponse(BaseSchema):
    agent_id: str
    branch_id: str
    results: List[DatedConsistencyResult]
    summary: ConsistencyBatchSummary


class ConsistencyTrendsResponse(BaseSchema):
    agent_id: str
    branch_id: str
    dates: List[dt.date]
    spend_data: List[float]
    deals_data: List[int]
    conversion_rates: List[float]
    consistency_scores: List[int]
