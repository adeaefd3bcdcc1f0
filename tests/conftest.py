from __future__ import annotations

import os

os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")

from datetime import date
from typing import Callable, Optional, Sequence

import pytest
from fastapi.testclient import TestClient

from src.main import create_app
from src.models.performance_events import DestinationAllocation, OutcomeEvent, QualityRating, SpendEvent

REPORT_DATE = date(2024, 1, 15)


@pytest.fixture()
def client() -> TestClient:
    return TestClient(create_app())


@pytest.fixture()
def make_spend() -> Callable[..., SpendEvent]:
    def _make(
        amount: float,
        agent_id: str = "agent-21",
        target_country_id: str = "UAE",
        report_date: date = REPORT_DATE,
        branch_id: str = "branch-1",
        platform_id: Optional[str] = "facebook",
        destination_country_id: Optional[str] = "georgia",
    ) -> SpendEvent:
        return SpendEvent(
            date=report_date,
            branch_id=branch_id,
            agent_id=agent_id,
            target_country_id=target_country_id,
            destination_country_id=destination_country_id,
            platform_id=platform_id,
            amount=amount,
        )

    return _make


@pytest.fixture()
def make_outcome() -> Callable[..., OutcomeEvent]:
    def _make(
        deals: int,
        messages: int,
        quality: QualityRating = QualityRating.GOOD,
        agent_id: str = "agent-21",
        target_country_id: str = "UAE",
        report_date: date = REPORT_DATE,
        branch_id: str = "branch-1",
        destinations: Sequence[str] = (),
    ) -> OutcomeEvent:
        return OutcomeEvent(
            date=report_date,
            branch_id=branch_id,
            agent_id=agent_id,
            target_country_id=target_country_id,
            deals_closed=deals,
            whatsapp_messages=messages,
            quality_rating=quality,
            destination_allocations=tuple(
                DestinationAllocation(destination_country_id=destination, deal_sequence_number=index + 1)
                for index, destination in enumerate(destinations)
            ),
        )

    return _make
