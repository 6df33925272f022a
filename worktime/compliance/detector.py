"""
Violation detector: pure functions over time entries, a rule set and a window.

Nothing here touches the database. Every check returns a list of
DetectedViolation; an empty list means the entries are compliant.
"""

from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable, Iterator

from .types import (
    DetectedViolation,
    DetectionWindow,
    RuleConfig,
    TimeEntryRecord,
    ViolationSeverity,
    ViolationType,
)


def _fmt_hours(minutes: float) -> str:
    hours = round(minutes / 60, 1)
    if hours == int(hours):
        return f"{int(hours)} Stunden"
    return f"{hours:.1f} Stunden"


def _in_window(moment: datetime, window: DetectionWindow) -> bool:
    return window.start <= moment < window.end


def iter_calendar_weeks(window: DetectionWindow, tz: tzinfo) -> Iterator[tuple[datetime, datetime]]:
    """
    Yields (week_start, week_end) in UTC for every Monday-based calendar week
    (local to tz) that intersects the window.
    """
    local_day: date = window.start.astimezone(tz).date()
    monday = local_day - timedelta(days=local_day.weekday())
    while True:
        week_start = datetime.combine(monday, time(0), tzinfo=tz).astimezone(timezone.utc)
        if week_start >= window.end:
            return
        next_monday = monday + timedelta(days=7)
        week_end = datetime.combine(next_monday, time(0), tzinfo=tz).astimezone(timezone.utc)
        yield week_start, week_end
        monday = next_monday


# ── Daily rest ────────────────────────────────────────────────────────────────

def check_daily_rest(
    entries: list[TimeEntryRecord],
    rules: RuleConfig,
    window: DetectionWindow,
) -> list[DetectedViolation]:
    """Gap between a clock-out and the following clock-in of the same user."""
    violations: list[DetectedViolation] = []

    for prior, current in zip(entries, entries[1:]):
        if not prior.is_closed or not _in_window(current.clock_in, window):
            continue

        gap_minutes = (current.clock_in - prior.clock_out).total_seconds() / 60
        if gap_minutes >= rules.daily_rest_period_minutes:
            continue

        # Überlappende oder direkt anschließende Einträge sind immer ein Fehler
        severity = ViolationSeverity.ERROR if gap_minutes <= 0 else ViolationSeverity.WARNING
        violations.append(DetectedViolation(
            user_id=prior.user_id,
            violation_type=ViolationType.REST_PERIOD_VIOLATION,
            severity=severity,
            period_start=prior.clock_out,
            period_end=current.clock_in,
            expected=f"Mind. {_fmt_hours(rules.daily_rest_period_minutes)} Ruhezeit",
            actual=f"{_fmt_hours(gap_minutes)} Ruhezeit",
            affected_entries=[prior.id, current.id],
        ))

    return violations


# ── Shift duration ────────────────────────────────────────────────────────────

def check_shift_duration(
    entries: list[TimeEntryRecord],
    rules: RuleConfig,
    window: DetectionWindow,
) -> list[DetectedViolation]:
    violations: list[DetectedViolation] = []

    for entry in entries:
        if not entry.is_closed or not _in_window(entry.clock_in, window):
            continue

        duration = entry.duration_minutes
        if duration <= rules.max_daily_working_time_minutes:
            continue

        if duration <= rules.max_daily_working_time_with_compensation_minutes:
            severity = ViolationSeverity.WARNING
            expected = f"Max. {_fmt_hours(rules.max_daily_working_time_minutes)} (ohne Ausgleich)"
        else:
            severity = ViolationSeverity.ERROR
            expected = f"Max. {_fmt_hours(rules.max_daily_working_time_with_compensation_minutes)}"

        violations.append(DetectedViolation(
            user_id=entry.user_id,
            violation_type=ViolationType.SHIFT_DURATION_VIOLATION,
            severity=severity,
            period_start=entry.clock_in,
            period_end=entry.clock_out,
            expected=expected,
            actual=_fmt_hours(duration),
            affected_entries=[entry.id],
        ))

    return violations


# ── Breaks ────────────────────────────────────────────────────────────────────

def required_break_minutes(duration_minutes: float, rules: RuleConfig) -> tuple[int, int]:
    """
    Returns (required break minutes, tier) for a shift duration.
    Tier 0 means no break is required. The second tier replaces the first.
    """
    if rules.has_second_break_tier and duration_minutes > rules.break_required_after_minutes_2:
        return rules.break_duration_minutes_2, 2
    if duration_minutes > rules.break_required_after_minutes:
        return rules.break_duration_minutes, 1
    return 0, 0


def check_breaks(
    entries: list[TimeEntryRecord],
    rules: RuleConfig,
    window: DetectionWindow,
) -> list[DetectedViolation]:
    violations: list[DetectedViolation] = []

    for entry in entries:
        if not entry.is_closed or not _in_window(entry.clock_in, window):
            continue

        required, tier = required_break_minutes(entry.duration_minutes, rules)
        recorded = entry.break_minutes or 0
        if tier == 0 or recorded >= required:
            continue

        after = rules.break_required_after_minutes_2 if tier == 2 else rules.break_required_after_minutes
        violations.append(DetectedViolation(
            user_id=entry.user_id,
            violation_type=ViolationType.BREAK_MISSING,
            severity=ViolationSeverity.ERROR if tier == 2 else ViolationSeverity.WARNING,
            period_start=entry.clock_in,
            period_end=entry.clock_out,
            expected=f"{required} Minuten Pause bei mehr als {_fmt_hours(after)} Arbeitszeit",
            actual=f"{recorded} Minuten Pause erfasst" if recorded else "Keine Pause erfasst",
            affected_entries=[entry.id],
        ))

    return violations


# ── Weekly rest ───────────────────────────────────────────────────────────────

def _busy_intervals(
    entries: Iterable[TimeEntryRecord], start: datetime, end: datetime
) -> list[tuple[datetime, datetime]]:
    """Merged working intervals of closed entries, clipped to [start, end)."""
    clipped = []
    for entry in entries:
        if not entry.is_closed or entry.clock_out <= start or entry.clock_in >= end:
            continue
        clipped.append((max(entry.clock_in, start), min(entry.clock_out, end)))

    merged: list[tuple[datetime, datetime]] = []
    for begin, finish in sorted(clipped):
        if merged and begin <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], finish))
        else:
            merged.append((begin, finish))
    return merged


def longest_rest_minutes(
    entries: Iterable[TimeEntryRecord], start: datetime, end: datetime
) -> float:
    """Longest off-duty interval inside [start, end), bounded by the edges."""
    cursor = start
    longest = timedelta(0)
    for begin, finish in _busy_intervals(entries, start, end):
        longest = max(longest, begin - cursor)
        cursor = finish
    longest = max(longest, end - cursor)
    return longest.total_seconds() / 60


def check_weekly_rest(
    entries: list[TimeEntryRecord],
    rules: RuleConfig,
    window: DetectionWindow,
    tz: tzinfo,
) -> list[DetectedViolation]:
    """
    One violation per calendar week without a long enough rest.
    Every week intersecting the window is judged as a whole; the caller
    loads the entries of the complete week, not only those in the window.
    The rest after the last clock-out runs to the week end, so a week that
    is still in progress is never flagged early.
    """
    violations: list[DetectedViolation] = []

    for week_start, week_end in iter_calendar_weeks(window, tz):
        week_entries = [
            e for e in entries
            if e.is_closed and e.clock_in < week_end and e.clock_out > week_start
        ]
        if not week_entries:
            continue

        longest = longest_rest_minutes(week_entries, week_start, week_end)
        if longest >= rules.weekly_rest_period_minutes:
            continue

        violations.append(DetectedViolation(
            user_id=week_entries[0].user_id,
            violation_type=ViolationType.WEEKLY_REST_VIOLATION,
            severity=ViolationSeverity.ERROR,
            period_start=week_start,
            period_end=week_end,
            expected=f"Mind. {_fmt_hours(rules.weekly_rest_period_minutes)} zusammenhängende Ruhezeit pro Woche",
            actual=f"Längste Ruhezeit {_fmt_hours(longest)}",
            affected_entries=[e.id for e in week_entries],
        ))

    return violations


# ── Weekly working time ──────────────────────────────────────────────────────

def check_weekly_working_time(
    entries: list[TimeEntryRecord],
    rules: RuleConfig,
    window: DetectionWindow,
    tz: tzinfo,
) -> list[DetectedViolation]:
    """Sum of closed entry durations per calendar week; entries count for the week of their clock-in."""
    violations: list[DetectedViolation] = []

    for week_start, week_end in iter_calendar_weeks(window, tz):
        week_entries = [
            e for e in entries
            if e.is_closed and week_start <= e.clock_in < week_end
        ]
        total = sum(e.duration_minutes for e in week_entries)
        if total <= rules.max_weekly_working_time_minutes:
            continue

        violations.append(DetectedViolation(
            user_id=week_entries[0].user_id,
            violation_type=ViolationType.MAX_WORKING_TIME_EXCEEDED,
            severity=ViolationSeverity.ERROR,
            period_start=week_start,
            period_end=week_end,
            expected=f"Max. {_fmt_hours(rules.max_weekly_working_time_minutes)} pro Woche",
            actual=_fmt_hours(total),
            affected_entries=[e.id for e in week_entries],
        ))

    return violations


# ── Entry point ───────────────────────────────────────────────────────────────

def group_by_user(entries: Iterable[TimeEntryRecord]) -> dict[str, list[TimeEntryRecord]]:
    """Groups entries per user, each list sorted by clock-in (canonical order)."""
    grouped: dict[str, list[TimeEntryRecord]] = defaultdict(list)
    for entry in entries:
        grouped[entry.user_id].append(entry)
    for user_entries in grouped.values():
        user_entries.sort(key=lambda e: (e.clock_in, e.id))
    return dict(grouped)


def detect(
    entries: Iterable[TimeEntryRecord],
    rules: RuleConfig,
    window: DetectionWindow,
    tz: tzinfo = timezone.utc,
) -> list[DetectedViolation]:
    """
    Run every check for every user in the entries.

    Args:
        entries: Time entries, any order, any number of users. Entries before
            the window only serve as the prior entry for the rest check.
        rules: Active rule configuration
        window: Evaluated interval; per-entry checks use the clock-in
        tz: Timezone that defines calendar weeks

    Returns:
        Violations ordered by user, then by check
    """
    violations: list[DetectedViolation] = []

    for user_id, user_entries in sorted(group_by_user(entries).items()):
        violations.extend(check_daily_rest(user_entries, rules, window))
        violations.extend(check_shift_duration(user_entries, rules, window))
        violations.extend(check_breaks(user_entries, rules, window))
        violations.extend(check_weekly_rest(user_entries, rules, window, tz))
        violations.extend(check_weekly_working_time(user_entries, rules, window, tz))

    return violations
