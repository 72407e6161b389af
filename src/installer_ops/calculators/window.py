"""Calendar window computation for the timeline."""

from __future__ import annotations

import calendar
from datetime import date, timedelta

from installer_ops.calculators.types import DisplayWindow, ViewMode

# Nominative month names; locale formatters produce the genitive form.
MONTH_NAMES = (
    "Leden",
    "Únor",
    "Březen",
    "Duben",
    "Květen",
    "Červen",
    "Červenec",
    "Srpen",
    "Září",
    "Říjen",
    "Listopad",
    "Prosinec",
)


def month_name(month: int) -> str:
    """Return the nominative Czech name for a 1-based month number."""
    return MONTH_NAMES[month - 1]


def week_bounds(anchor: date) -> tuple[date, date]:
    """Monday and Sunday of the ISO week containing ``anchor``."""
    monday = anchor - timedelta(days=anchor.weekday())
    return monday, monday + timedelta(days=6)


def month_bounds(anchor: date) -> tuple[date, date]:
    """First and last calendar day of ``anchor``'s month."""
    last_day = calendar.monthrange(anchor.year, anchor.month)[1]
    return anchor.replace(day=1), anchor.replace(day=last_day)


def format_header_title(anchor: date, view_mode: ViewMode) -> str:
    """Build the window heading.

    Week: ``Týden 42 (Říjen), 2026`` or ``Týden 5 (Leden / Únor), 2026`` when the
    week spans two months. The week number and year come from the Monday.
    Month: ``Říjen 2026``.
    """
    if view_mode == ViewMode.WEEK:
        start, end = week_bounds(anchor)
        week_number = start.isocalendar()[1]
        if start.month == end.month:
            months = month_name(start.month)
        else:
            months = f"{month_name(start.month)} / {month_name(end.month)}"
        return f"Týden {week_number} ({months}), {start.year}"
    return f"{month_name(anchor.month)} {anchor.year}"


def compute_window(anchor: date, view_mode: ViewMode) -> DisplayWindow:
    """Return the displayed window for an anchor date."""
    if view_mode == ViewMode.WEEK:
        start, end = week_bounds(anchor)
    else:
        start, end = month_bounds(anchor)
    return DisplayWindow(
        start=start,
        end=end,
        title=format_header_title(anchor, view_mode),
        view_mode=view_mode,
    )


def add_months(anchor: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month's length."""
    month_index = anchor.month - 1 + months
    year = anchor.year + month_index // 12
    month = month_index % 12 + 1
    day = min(anchor.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def shift_anchor(anchor: date, view_mode: ViewMode, steps: int = 1) -> date:
    """Move the anchor by ``steps`` weeks or months (negative goes back)."""
    if view_mode == ViewMode.WEEK:
        return anchor + timedelta(weeks=steps)
    return add_months(anchor, steps)
