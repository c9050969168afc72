"""Derive weekly totals, streaks and per-user dashboard data from activity logs.

Everything here is a pure function of a fetched snapshot of ActivityRecord
rows: nothing is cached and no input record is mutated. "Local" means the
configured viewer timezone; callers may pass another ``tz`` explicitly.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable
from zoneinfo import ZoneInfo

from .config import TZ_NAME
from .models import (
    CATEGORIES, ActivityRecord, UserWeeklySummary, WeeklyTotals, round_half_up,
)

TZ = ZoneInfo(TZ_NAME)


class UnknownCategoryError(ValueError):
    """An activity record carries a category outside CATEGORIES."""


def _check_category(rec: ActivityRecord):
    if rec.category not in CATEGORIES:
        raise UnknownCategoryError(
            f"activity {rec.id!r} has unknown category {rec.category!r}"
        )


def _minutes(rec: ActivityRecord) -> int | float:
    m = rec.minutes
    if isinstance(m, bool) or not isinstance(m, (int, float)):
        return 0
    return m


def _local(instant: datetime, tz: ZoneInfo) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=tz)
    return instant.astimezone(tz)


def _local_date(today: datetime | date | None, tz: ZoneInfo) -> date:
    if today is None:
        return datetime.now(tz).date()
    if isinstance(today, datetime):
        return _local(today, tz).date()
    return today


def day_key(instant: datetime, tz: ZoneInfo | None = None) -> str:
    """``YYYY-MM-DD`` of the local calendar day containing ``instant``."""
    return _local(instant, tz or TZ).date().isoformat()


def start_of_week(now: datetime | None = None, tz: ZoneInfo | None = None) -> datetime:
    """Local midnight of the Monday on or before ``now``.

    Days are indexed Sunday=0 .. Saturday=6 and Sunday is moved back six
    days, so it closes the week that began the previous Monday.
    """
    tz = tz or TZ
    local = _local(now, tz) if now is not None else datetime.now(tz)
    dow = (local.weekday() + 1) % 7
    offset = -6 if dow == 0 else 1 - dow
    monday = local.date() + timedelta(days=offset)
    return datetime.combine(monday, time(), tzinfo=tz)


def weekly_window(records: Iterable[ActivityRecord], week_start: datetime) -> list[ActivityRecord]:
    """Records at or after ``week_start``; no upper bound."""
    return [r for r in records if r.occurred_at >= week_start]


def weekly_totals(records: Iterable[ActivityRecord], week_start: datetime) -> WeeklyTotals:
    sums = dict.fromkeys(CATEGORIES, 0)
    for rec in records:
        if rec.occurred_at < week_start:
            continue
        _check_category(rec)
        sums[rec.category] += _minutes(rec)
    return WeeklyTotals(**_rounded(sums))


def _rounded(sums: dict) -> dict:
    # Round only finished totals; all stays the sum of the shown parts
    totals = {cat: round_half_up(sums[cat]) for cat in CATEGORIES}
    totals["all"] = sum(totals.values())
    return totals


def _walk_streak(active_days: set[str], cursor: date) -> int:
    # Nothing logged yet today still shows yesterday's run
    if cursor.isoformat() not in active_days:
        cursor -= timedelta(days=1)
    count = 0
    while cursor.isoformat() in active_days:
        count += 1
        cursor -= timedelta(days=1)
    return count


def streak(records: Iterable[ActivityRecord], today: datetime | date | None = None,
           tz: ZoneInfo | None = None) -> int:
    """Consecutive active days ending today, or yesterday if today is empty.

    Every record counts regardless of category or owner, so filter to one
    user first. The walk stops at the first gap, which includes the edge
    of whatever look-back window the records were fetched with.
    """
    tz = tz or TZ
    days = {day_key(rec.occurred_at, tz) for rec in records}
    if not days:
        return 0
    return _walk_streak(days, _local_date(today, tz))


def by_user(weekly_records: Iterable[ActivityRecord]) -> list[UserWeeklySummary]:
    """Per-owner category totals, in order of each owner's first record."""
    owners: dict[str, ActivityRecord] = {}
    sums: dict[str, dict] = {}
    for rec in weekly_records:
        _check_category(rec)
        if rec.user_id not in sums:
            owners[rec.user_id] = rec
            sums[rec.user_id] = dict.fromkeys(CATEGORIES, 0)
        sums[rec.user_id][rec.category] += _minutes(rec)
    return [
        UserWeeklySummary(
            user_id=uid,
            display_name=owners[uid].display_name,
            username=owners[uid].username,
            **_rounded(s),
        )
        for uid, s in sums.items()
    ]


def streak_by_user(records: Iterable[ActivityRecord], today: datetime | date | None = None,
                   tz: ZoneInfo | None = None) -> dict[str, int]:
    """Streak per owner over the full (not week-limited) record set."""
    tz = tz or TZ
    cursor = _local_date(today, tz)
    active_days = defaultdict(set)
    for rec in records:
        active_days[rec.user_id].add(day_key(rec.occurred_at, tz))
    return {uid: _walk_streak(days, cursor) for uid, days in active_days.items()}


@dataclass(frozen=True)
class ChartScale:
    max: int

    def percent_of(self, value) -> int:
        # Half-up rounding, so 12.5% draws as 13
        return round_half_up(value / self.max * 100)


def scale(summaries: Iterable[UserWeeklySummary]) -> ChartScale:
    peak = max((max(s.study, s.skill, s.exercise) for s in summaries), default=0)
    return ChartScale(max=max(peak, 1))


def bar_percentages(summaries: list[UserWeeklySummary], chart: ChartScale) -> dict[str, dict[str, int]]:
    """category -> user_id -> bar width percent."""
    return {
        cat: {s.user_id: chart.percent_of(getattr(s, cat)) for s in summaries}
        for cat in CATEGORIES
    }


def build_dashboard_data(records: list[ActivityRecord], now: datetime | None = None,
                         tz: ZoneInfo | None = None) -> dict:
    """Everything the shared activity dashboard renders, from one snapshot."""
    tz = tz or TZ
    now = now or datetime.now(tz)
    week_start = start_of_week(now, tz)
    users = by_user(weekly_window(records, week_start))
    chart = scale(users)
    return {
        "week_start": week_start,
        "users": users,
        "streaks": streak_by_user(records, now, tz),
        "chart": chart,
        "bars": bar_percentages(users, chart),
    }


def build_profile_stats(records: list[ActivityRecord], now: datetime | None = None,
                        tz: ZoneInfo | None = None) -> dict:
    """Weekly totals and streak for one user's pre-filtered records."""
    tz = tz or TZ
    now = now or datetime.now(tz)
    week_start = start_of_week(now, tz)
    return {
        "week_start": week_start,
        "totals": weekly_totals(records, week_start),
        "streak": streak(records, now, tz),
    }
