from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from src.core.supabase import SupabaseClient
from src.models.performance_events import ReferenceData

logger = logging.getLogger(__name__)

MAX_QUERY_ROWS = 5000

SPEND_REPORT_SELECT = (
    "id,date,branch_id,"
    "media_country_data(target_country_id,"
    "media_agent_data(sales_agent_id,"
    "campaign_details(campaign_number,amount,platform_id,destination_country_id)))"
)
OUTCOME_REPORT_SELECT = (
    "id,date,branch_id,sales_agent_id,"
    "sales_country_data(target_country_id,deals_closed,whatsapp_messages,quality_rating,"
    "deal_destinations(deal_number,destination_country_id))"
)

REFERENCE_TABLES: Dict[str, str] = {
    "branches": "branches",
    "sales_agents": "sales_agents",
    "target_countries": "target_countries",
    "destination_countries": "destination_countries",
    "platforms": "advertising_platforms",
}


class PerformanceEventsRepository:
    def __init__(self) -> None:
        self.client = SupabaseClient()

    def list_spend_reports(
        self,
        start_date: date,
        end_date: date,
        branch_ids: Sequence[str] = (),
        agent_ids: Sequence[str] = (),
        target_country_ids: Sequence[str] = (),
    ) -> List[Dict[str, Any]]:
        filters = self._build_report_filters(start_date, end_date, branch_ids)
        country_filter = self._build_in_filter(target_country_ids)
        if country_filter:
            filters.append(("media_country_data.target_country_id", country_filter))
        agent_filter = self._build_in_filter(agent_ids)
        if agent_filter:
            filters.append(("media_country_data.media_agent_data.sales_agent_id", agent_filter))
        return self._select_reports("media_reports", SPEND_REPORT_SELECT, filters)

    def list_outcome_reports(
        self,
        start_date: date,
        end_date: date,
        branch_ids: Sequence[str] = (),
        agent_ids: Sequence[str] = (),
        target_country_ids: Sequence[str] = (),
    ) -> List[Dict[str, Any]]:
        filters = self._build_report_filters(start_date, end_date, branch_ids)
        agent_filter = self._build_in_filter(agent_ids)
        if agent_filter:
            filters.append(("sales_agent_id", agent_filter))
        country_filter = self._build_in_filter(target_country_ids)
        if country_filter:
            filters.append(("sales_country_data.target_country_id", country_filter))
        return self._select_reports("sales_reports", OUTCOME_REPORT_SELECT, filters)

    def get_reference_data(self) -> ReferenceData:
        branches = self.client.select(table="branches", select="id,name,code", limit=MAX_QUERY_ROWS)
        agents = self.client.select(table="sales_agents", select="id,agent_number,name", limit=MAX_QUERY_ROWS)
        target_countries = self.client.select(table="target_countries", select="id,name", limit=MAX_QUERY_ROWS)
        destinations = self.client.select(table="destination_countries", select="id,name", limit=MAX_QUERY_ROWS)
        platforms = self.client.select(table="advertising_platforms", select="id,name", limit=MAX_QUERY_ROWS)
        return ReferenceData(
            branches=self._labels(branches),
            agents={str(row["id"]): self._agent_label(row) for row in agents if row.get("id")},
            target_countries=self._labels(target_countries),
            destination_countries=self._labels(destinations),
            platforms=self._labels(platforms),
        )

    def find_missing_ids(self, reference_type: str, ids: Iterable[str]) -> List[str]:
        """Return the requested ids that have no row in the reference table."""
        requested = sorted({value for value in ids if value})
        in_filter = self._build_in_filter(requested)
        if not in_filter:
            return []
        rows = self.client.select(
            table=REFERENCE_TABLES[reference_type],
            select="id",
            filters=[("id", in_filter)],
            limit=len(requested),
        )
        found = {str(row.get("id")) for row in rows}
        return [value for value in requested if value not in found]

    def _select_reports(
        self, table: str, select: str, filters: List[Tuple[str, str]]
    ) -> List[Dict[str, Any]]:
        rows = self.client.select(table=table, select=select, filters=filters, limit=MAX_QUERY_ROWS, order="date.asc")
        if len(rows) >= MAX_QUERY_ROWS:
            logger.warning("%s read hit the %d row limit; later reports were not loaded", table, MAX_QUERY_ROWS)
        return rows

    @staticmethod
    def _build_report_filters(
        start_date: date, end_date: date, branch_ids: Sequence[str]
    ) -> List[Tuple[str, str]]:
        filters: List[Tuple[str, str]] = [
            ("date", f"gte.{start_date.isoformat()}"),
            ("date", f"lte.{end_date.isoformat()}"),
        ]
        branch_filter = PerformanceEventsRepository._build_in_filter(branch_ids)
        if branch_filter:
            filters.append(("branch_id", branch_filter))
        return filters

    @staticmethod
    def _build_in_filter(values: Iterable[str]) -> Optional[str]:
        sanitized_values = [value.strip() for value in values if value and value.strip()]
        if not sanitized_values:
            return None
        escaped_values = ['"' + value.replace('"', '\\"') + '"' for value in sanitized_values]
        return f"in.({','.join(escaped_values)})"

    @staticmethod
    def _labels(rows: List[Dict[str, Any]]) -> Dict[str, str]:
        return {str(row["id"]): str(row.get("name") or row["id"]) for row in rows if row.get("id")}

    @staticmethod
    def _agent_label(row: Dict[str, Any]) -> str:
        agent_number = row.get("agent_number")
        name = row.get("name")
        if agent_number and name:
            return f"{name} ({agent_number})"
        return str(name or agent_number or row["id"])
