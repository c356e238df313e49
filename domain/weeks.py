"""Week menu dates. Weeks start on Monday (day 0) and end on Sunday (day 6)."""

import datetime as dt
import re
from typing import Any, Iterable

from domain.servings import InvalidArgument


WEEK_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

DAY_NAMES = ("Maandag", "Dinsdag", "Woensdag", "Donderdag", "Vrijdag", "Zaterdag", "Zondag")
SHORT_DAY_NAMES = ("Ma", "Di", "Wo", "Do", "Vr", "Za", "Zo")


def parse_week_date(text: Any) -> dt.date:
    if not isinstance(text, str) or not WEEK_DATE_RE.match(text):
        raise InvalidArgument("Invalid date format. Use YYYY-MM-DD")
    try:
        return dt.date.fromisoformat(text)
    except ValueError as e:
        raise InvalidArgument(f"Invalid date: {text}") from e


def valid_day_of_week(day: Any) -> bool:
    return isinstance(day, int) and not isinstance(day, bool) and 0 <= day <= 6


def week_monday(date: dt.date) -> dt.date:
    return date - dt.timedelta(days=date.weekday())


def week_number(date: dt.date) -> int:
    return date.isocalendar()[1]


def day_name(day: int, short: bool = False) -> str:
    names = SHORT_DAY_NAMES if short else DAY_NAMES
    return names[day] if 0 <= day <= 6 else ""


def group_items_by_day(items: Iterable[dict[str, Any]]) -> dict[int | str, list[dict[str, Any]]]:
    grouped: dict[int | str, list[dict[str, Any]]] = {day: [] for day in range(7)}
    grouped["unassigned"] = []
    for item in items:
        day = item.get("day_of_week")
        if day is None:
            grouped["unassigned"].append(item)
        elif valid_day_of_week(day):
            grouped[day].append(item)
    for bucket in grouped.values():
        bucket.sort(key=lambda item: item.get("order_index") or 0)
    return grouped


def week_info(date: dt.date) -> dict[str, Any]:
    """Monday, ISO week number and the labelled days of the week holding `date`."""
    monday = week_monday(date)
    return {
        "monday": monday.isoformat(),
        "week_number": week_number(monday),
        "days": [
            {
                "day_of_week": day,
                "name": day_name(day),
                "short_name": day_name(day, short=True),
                "date": (monday + dt.timedelta(days=day)).isoformat(),
            }
            for day in range(7)
        ],
    }
