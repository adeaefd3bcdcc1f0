from __future__ import annotations

from datetime import date
from typing import List, Literal, Optional

from pydantic import ConfigDict, Field, model_validator

from src.models.performance_events import QualityRating
from src.shared.base import BaseSchema

ReportType = Literal[
    "agent_roi",
    "platform_effectiveness",
    "destination_analysis",
    "branch_comparison",
    "roi_matrix",
]

REPORT_TYPES: tuple[str, ...] = (
    "agent_roi",
    "platform_effectiveness",
    "destination_analysis",
    "branch_comparison",
    "roi_matrix",
)


class DateRange(BaseSchema):
    start: date
    end: date

    @model_validator(mode="after")
    def _check_order(self) -> "DateRange":
        if self.end < self.start:
            raise ValueError("dateRange.end must not be before dateRange.start")
        return self


class NumericRange(BaseSchema):
    min: Optional[float] = Field(default=None, ge=0)
    max: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "NumericRange":
        if self.min is not None and self.max is not None and self.max < self.min:
            raise ValueError("max must not be below min")
        return self

    def contains(self, value: float) -> bool:
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True


class ReportFilters(BaseSchema):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    date_range: DateRange
    branches: List[str] = Field(default_factory=list)
    destination_countries: List[str] = Field(default_factory=list)
    target_countries: List[str] = Field(default_factory=list)
    sales_agents: List[str] = Field(default_factory=list)
    platforms: List[str] = Field(default_factory=list)
    quality_ratings: List[QualityRating] = Field(default_factory=list)
    spend_range: Optional[NumericRange] = None
    deal_range: Optional[NumericRange] = None
    min_roi: Optional[float] = Field(default=None, alias="minROI")
    min_conversion_rate: Optional[float] = Field(default=None, ge=0)


class ReportRequest(BaseSchema):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    report_type: ReportType
    filters: ReportFilters
    aggregation: str = Field(default="daily", pattern="^(daily|weekly|monthly)$")
    visualization: str = Field(default="both", pattern="^(both|charts|tables)$")

    @model_validator(mode="after")
    def _check_report_filters(self) -> "ReportRequest":
        # Destination rows carry no message counts.
        if self.report_type == "destination_analysis" and self.filters.min_conversion_rate is not None:
            raise ValueError("filters.minConversionRate is not supported for destination_analysis reports")
        return self


class PerformanceMetrics(BaseSchema):
    total_spend: float
    total_deals: int
    total_messages: int
    cost_per_deal: float
    cost_per_deal_applicable: bool
    roi: float
    conversion_rate: float
    quality_score: float
    estimated_revenue: float
    profit_margin: float
    spend_efficiency: float


class CountryBreakdown(BaseSchema):
    target_country_id: str
    country: str
    spend: float
    deals: int
    messages: int
    roi: float
    conversion_rate: float


class AgentPerformanceRow(BaseSchema):
    agent_id: str
    agent_name: str
    branch_id: Optional[str] = None
    branch_name: Optional[str] = None
    metrics: PerformanceMetrics
    roi_defined: bool
    country_breakdown: List[CountryBreakdown]


class PlatformCountryBreakdown(BaseSchema):
    target_country_id: str
    country: str
    spend: float
    estimated_deals: float
    efficiency: float


class PlatformAnalysisRow(BaseSchema):
    platform_id: str
    platform: str
    total_spend: float
    campaign_count: int
    estimated_deals: float
    estimated_messages: float
    cost_per_deal: float
    roi: float
    conversion_rate: float
    countries_served: int
    attribution: str
    country_breakdown: List[PlatformCountryBreakdown]


class DestinationPreference(BaseSchema):
    destination_country_id: str
    destination: str
    deals: int
    percentage: float


class CountryInsightRow(BaseSchema):
    target_country_id: str
    target_country: str
    total_spend: float
    total_deals: int
    roi: float
    top_agent: Optional[str] = None
    top_platform: Optional[str] = None
    destination_preferences: List[DestinationPreference]


class DestinationAnalysisRow(BaseSchema):
    destination_country_id: str
    destination: str
    campaign_spend: float
    campaign_count: int
    allocated_deals: int
    cost_per_deal: float
    roi: float
    quality_score: float
    agent_count: int
    has_spend_side: bool
    has_outcome_side: bool


class BranchComparisonRow(BaseSchema):
    branch_id: str
    branch_name: str
    agent_count: int
    campaign_count: int
    metrics: PerformanceMetrics


class RoiMatrixRow(BaseSchema):
    date: date
    agent_id: str
    agent: str
    target_country_id: str
    country: str
    platform_id: Optional[str] = None
    platform: str
    spend: float
    deals: float
    messages: float
    roi: float
    roi_defined: bool
    conversion_rate: float
    quality_score: float
    attribution: str


class ReportData(BaseSchema):
    report_type: ReportType
    overview: PerformanceMetrics
    agent_performance: List[AgentPerformanceRow] = Field(default_factory=list)
    platform_analysis: List[PlatformAnalysisRow] = Field(default_factory=list)
    unattributed_deals: int = 0
    country_insights: List[CountryInsightRow] = Field(default_factory=list)
    destination_analysis: List[DestinationAnalysisRow] = Field(default_factory=list)
    branch_comparison: List[BranchComparisonRow] = Field(default_factory=list)
    roi_matrix: List[RoiMatrixRow] = Field(default_factory=list)
    roi_matrix_total_rows: int = 0
