from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Dict, NamedTuple, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class QualityRating(str, Enum):
    BELOW_STANDARD = "below_standard"
    STANDARD = "standard"
    GOOD = "good"
    EXCELLENT = "excellent"
    BEST_QUALITY = "best_quality"


QUALITY_SCORES: Dict[QualityRating, int] = {
    QualityRating.BELOW_STANDARD: 1,
    QualityRating.STANDARD: 2,
    QualityRating.GOOD: 3,
    QualityRating.EXCELLENT: 4,
    QualityRating.BEST_QUALITY: 5,
}


class CompositeKey(NamedTuple):
    report_date: date
    agent_id: str
    target_country_id: str


class DestinationAllocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    destination_country_id: str
    deal_sequence_number: int = Field(ge=0)


class SpendEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: date
    branch_id: str
    agent_id: str
    target_country_id: str
    destination_country_id: Optional[str] = None
    platform_id: Optional[str] = None
    amount: float = Field(ge=0)

    @property
    def key(self) -> CompositeKey:
        return CompositeKey(self.date, self.agent_id, self.target_country_id)


class OutcomeEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: date
    branch_id: str
    agent_id: str
    target_country_id: str
    deals_closed: int = Field(ge=0)
    whatsapp_messages: int = Field(ge=0)
    quality_rating: QualityRating
    destination_allocations: Tuple[DestinationAllocation, ...] = ()

    @property
    def key(self) -> CompositeKey:
        return CompositeKey(self.date, self.agent_id, self.target_country_id)

    @property
    def quality_score(self) -> int:
        return QUALITY_SCORES[self.quality_rating]


class MatchedGroup(BaseModel):
    """One composite key after the outer join; either side may be empty."""

    model_config = ConfigDict(frozen=True)

    key: CompositeKey
    branch_id: Optional[str] = None
    total_spend: float = 0.0
    campaign_count: int = 0
    total_deals: int = 0
    total_messages: int = 0
    average_quality_score: float = 0.0
    outcome_count: int = 0
    has_spend_side: bool = False
    has_outcome_side: bool = False
    spend_by_platform: Dict[str, float] = Field(default_factory=dict)
    campaigns_by_platform: Dict[str, int] = Field(default_factory=dict)
    spend_by_destination: Dict[str, float] = Field(default_factory=dict)
    deals_by_destination: Dict[str, int] = Field(default_factory=dict)

    @property
    def agent_id(self) -> str:
        return self.key.agent_id

    @property
    def target_country_id(self) -> str:
        return self.key.target_country_id

    @property
    def report_date(self) -> date:
        return self.key.report_date


class DestinationGroup(BaseModel):
    """Spend and allocated deals for one destination country."""

    model_config = ConfigDict(frozen=True)

    destination_country_id: str
    total_spend: float = 0.0
    campaign_count: int = 0
    allocated_deals: int = 0
    average_quality_score: float = 0.0
    agent_ids: Tuple[str, ...] = ()
    has_spend_side: bool = False
    has_outcome_side: bool = False


class ReferenceData(BaseModel):
    """Master-data display labels keyed by id."""

    model_config = ConfigDict(frozen=True)

    branches: Dict[str, str] = Field(default_factory=dict)
    agents: Dict[str, str] = Field(default_factory=dict)
    target_countries: Dict[str, str] = Field(default_factory=dict)
    destination_countries: Dict[str, str] = Field(default_factory=dict)
    platforms: Dict[str, str] = Field(default_factory=dict)

    def branch_label(self, branch_id: Optional[str]) -> str:
        return self._label(self.branches, branch_id, "Unknown branch")

    def agent_label(self, agent_id: Optional[str]) -> str:
        return self._label(self.agents, agent_id, "Unknown agent")

    def target_country_label(self, country_id: Optional[str]) -> str:
        return self._label(self.target_countries, country_id, "Unknown country")

    def destination_label(self, destination_id: Optional[str]) -> str:
        return self._label(self.destination_countries, destination_id, "Unknown destination")

    def platform_label(self, platform_id: Optional[str]) -> str:
        return self._label(self.platforms, platform_id, "Unknown platform")

    @staticmethod
    def _label(labels: Dict[str, str], key: Optional[str], fallback: str) -> str:
        if not key:
            return fallback
        return labels.get(key) or key
