from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List

from src.repositories.performance_events_repository import MAX_QUERY_ROWS, PerformanceEventsRepository


class StubSupabaseClient:
    def __init__(self, row_count: int) -> None:
        self.row_count = row_count
        self.calls: List[Dict[str, Any]] = []

    def select(self, **kwargs: Any) -> List[Dict[str, Any]]:
        self.calls.append(kwargs)
        return [{"date": "2024-01-15", "branch_id": "branch-1"} for _ in range(self.row_count)]


def build_repository(row_count: int) -> PerformanceEventsRepository:
    repository = PerformanceEventsRepository()
    repository.client = StubSupabaseClient(row_count)
    return repository


def test_report_reads_warn_when_the_row_limit_is_reached(caplog):
    repository = build_repository(MAX_QUERY_ROWS)

    with caplog.at_level(logging.WARNING, logger="src.repositories.performance_events_repository"):
        rows = repository.list_spend_reports(date(2024, 1, 1), date(2024, 12, 31))

    assert len(rows) == MAX_QUERY_ROWS
    assert "media_reports read hit the 5000 row limit" in caplog.text


def test_report_reads_below_the_limit_do_not_warn(caplog):
    repository = build_repository(3)

    with caplog.at_level(logging.WARNING, logger="src.repositories.performance_events_repository"):
        repository.list_outcome_reports(date(2024, 1, 1), date(2024, 1, 31), agent_ids=["agent-21"])

    assert caplog.text == ""
    call = repository.client.calls[0]
    assert call["table"] == "sales_reports"
    assert ("sales_agent_id", 'in.("agent-21")') in call["filters"]
    assert call["limit"] == MAX_QUERY_ROWS
