from __future__ import annotations

from datetime import date

from src.analytics.normalization import (
    EventCriteria,
    align_filtered_sides,
    flatten_outcome_reports,
    flatten_spend_reports,
)
from src.models.performance_events import QualityRating
from src.schemas.performance_reports import ReportFilters

SPEND_REPORTS = [
    {
        "id": "media-1",
        "date": "2024-01-15",
        "branch_id": "branch-1",
        "media_country_data": [
            {
                "target_country_id": "UAE",
                "media_agent_data": [
                    {
                        "sales_agent_id": "agent-21",
                        "campaign_details": [
                            {"campaign_number": 1, "amount": "300.00", "platform_id": "facebook", "destination_country_id": "georgia"},
                            {"campaign_number": 2, "amount": 200, "platform_id": "google", "destination_country_id": "turkey"},
                        ],
                    },
                    {"sales_agent_id": "agent-7", "campaign_details": []},
                ],
            },
            {
                "target_country_id": "KSA",
                "media_agent_data": [
                    {
                        "sales_agent_id": "agent-7",
                        "campaign_details": [
                            {"campaign_number": 1, "amount": 1200, "platform_id": "facebook", "destination_country_id": "georgia"},
                        ],
                    }
                ],
            },
        ],
    },
    {
        "id": "media-2",
        "date": "2024-02-01",
        "branch_id": "branch-2",
        "media_country_data": [],
    },
]

OUTCOME_REPORTS = [
    {
        "id": "sales-1",
        "date": "2024-01-15",
        "branch_id": "branch-1",
        "sales_agent_id": "agent-21",
        "sales_country_data": [
            {
                "target_country_id": "UAE",
                "deals_closed": 2,
                "whatsapp_messages": 40,
                "quality_rating": "good",
                "deal_destinations": [
                    {"deal_number": 1, "destination_country_id": "georgia"},
                    {"deal_number": 2, "destination_country_id": "turkey"},
                ],
            },
            {
                "target_country_id": "KWT",
                "deals_closed": 0,
                "whatsapp_messages": 5,
                "quality_rating": "below_standard",
                "deal_destinations": None,
            },
        ],
    }
]


def test_flatten_spend_reports_emits_one_event_per_campaign_line():
    events = flatten_spend_reports(SPEND_REPORTS)

    assert len(events) == 3
    first = events[0]
    assert first.date == date(2024, 1, 15)
    assert first.branch_id == "branch-1"
    assert first.agent_id == "agent-21"
    assert first.target_country_id == "UAE"
    assert first.platform_id == "facebook"
    assert first.amount == 300.0
    assert sum(event.amount for event in events) == 1700.0


def test_flatten_outcome_reports_keeps_destination_allocations():
    events = flatten_outcome_reports(OUTCOME_REPORTS)

    assert [event.target_country_id for event in events] == ["UAE", "KWT"]
    uae = events[0]
    assert uae.deals_closed == 2
    assert uae.quality_rating == QualityRating.GOOD
    assert [item.destination_country_id for item in uae.destination_allocations] == ["georgia", "turkey"]
    assert events[1].destination_allocations == ()


def test_criteria_prunes_campaign_lines_by_platform_and_spend_range():
    filters = ReportFilters.model_validate(
        {
            "dateRange": {"start": "2024-01-01", "end": "2024-01-31"},
            "platforms": ["facebook"],
            "spendRange": {"min": 500},
        }
    )

    events = flatten_spend_reports(SPEND_REPORTS, EventCriteria.from_filters(filters))

    assert [(event.agent_id, event.amount) for event in events] == [("agent-7", 1200.0)]


def test_criteria_applies_date_range_and_agents_to_both_streams():
    filters = ReportFilters.model_validate(
        {
            "dateRange": {"start": "2024-01-15", "end": "2024-01-15"},
            "salesAgents": ["agent-21"],
        }
    )
    criteria = EventCriteria.from_filters(filters)

    spend = flatten_spend_reports(SPEND_REPORTS, criteria)
    outcomes = flatten_outcome_reports(OUTCOME_REPORTS, criteria)

    assert {event.agent_id for event in spend} == {"agent-21"}
    assert len(outcomes) == 2


def test_criteria_filters_outcome_rows_by_quality_and_deal_range():
    filters = ReportFilters.model_validate(
        {
            "dateRange": {"start": "2024-01-01", "end": "2024-01-31"},
            "qualityRatings": ["good", "excellent"],
            "dealRange": {"min": 1},
        }
    )

    outcomes = flatten_outcome_reports(OUTCOME_REPORTS, EventCriteria.from_filters(filters))

    assert [event.target_country_id for event in outcomes] == ["UAE"]


def test_destination_filter_prunes_allocations_but_keeps_the_row():
    criteria = EventCriteria(destination_country_ids=frozenset({"georgia"}))

    outcomes = flatten_outcome_reports(OUTCOME_REPORTS, criteria)
    spend = flatten_spend_reports(SPEND_REPORTS, criteria)

    assert outcomes[0].deals_closed == 2
    assert [item.destination_country_id for item in outcomes[0].destination_allocations] == ["georgia"]
    assert {event.destination_country_id for event in spend} == {"georgia"}


def test_align_filtered_sides_keeps_only_keys_present_on_the_filtered_side(make_spend, make_outcome):
    spend = [make_spend(100, target_country_id="KSA")]
    outcomes = [make_outcome(10, 50, target_country_id="UAE"), make_outcome(1, 4, target_country_id="KSA")]

    aligned_spend, aligned_outcomes = align_filtered_sides(
        spend, outcomes, EventCriteria(platform_ids=frozenset({"facebook"}))
    )

    assert aligned_spend == spend
    assert [event.target_country_id for event in aligned_outcomes] == ["KSA"]


def test_align_filtered_sides_trims_spend_after_outcome_filters(make_spend, make_outcome):
    spend = [make_spend(1000, target_country_id="UAE"), make_spend(100, target_country_id="KSA")]
    outcomes = [make_outcome(1, 4, quality=QualityRating.EXCELLENT, target_country_id="KSA")]

    aligned_spend, _ = align_filtered_sides(
        spend, outcomes, EventCriteria(quality_ratings=frozenset({"excellent"}))
    )

    assert [event.target_country_id for event in aligned_spend] == ["KSA"]


def test_align_filtered_sides_is_a_no_op_without_one_sided_filters(make_spend, make_outcome):
    spend = [make_spend(100, target_country_id="KSA")]
    outcomes = [make_outcome(10, 50, target_country_id="UAE")]

    assert align_filtered_sides(spend, outcomes, EventCriteria(agent_ids=frozenset({"agent-21"}))) == (
        spend,
        outcomes,
    )
