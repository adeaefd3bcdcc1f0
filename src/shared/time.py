from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, List, Tuple

from src.core.errors import BadRequestError


def iter_dates(start: date, end: date) -> List[date]:
    if end < start:
        raise BadRequestError("End date must not be before start date")
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def trailing_window(days: int, today: date | None = None) -> Tuple[date, date]:
    if days < 1:
        raise BadRequestError("Window must cover at least one day")
    end = today or date.today()
    return end - timedelta(days=days - 1), end


def date_span(values: Iterable[date]) -> Tuple[date, date]:
    ordered = sorted(values)
    if not ordered:
        raise BadRequestError("At least one date is required")
    return ordered[0], ordered[-1]


def format_window(start: date, end: date) -> str:
    return f"{start.isoformat()}..{end.isoformat()}"
