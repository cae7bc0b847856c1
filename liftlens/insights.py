"""Weekly summaries: period totals with deltas, training streaks, and the PR timeline."""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import datetime, time, timedelta
from typing import Iterable

from .models import (
    DeltaResult,
    PeriodStats,
    PrInsights,
    RecentPr,
    StreakInfo,
    WeeklyComparison,
    WorkoutSet,
)
from .volume import week_start

PR_DROUGHT_DAYS = 14
PR_FREQUENCY_DAYS = 30
RECENT_PR_LIMIT = 5
HOT_STREAK_WEEKS = 4
WARM_STREAK_WEEKS = 2


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def period_stats(sets: Iterable[WorkoutSet], start: datetime, end: datetime) -> PeriodStats:
    """
    Totals for sets with start <= start_time <= end. Workouts are distinct session start
    times; warm-ups count toward workouts only. PRs read each set's is_pr flag, so pass
    the output of personal_records().
    """
    sessions: set[datetime] = set()
    volume = 0.0
    n_sets = 0
    prs = 0
    for s in sets:
        if not (start <= s.start_time <= end):
            continue
        sessions.add(s.start_time)
        if s.is_warmup:
            continue
        volume += s.volume_kg
        n_sets += 1
        if s.is_pr:
            prs += 1
    workouts = len(sessions)
    return PeriodStats(
        start=start,
        end=end,
        total_volume=volume,
        total_sets=n_sets,
        total_workouts=workouts,
        total_prs=prs,
        avg_sets_per_workout=_round_half_up(n_sets / workouts) if workouts else 0,
        avg_volume_per_workout=float(_round_half_up(volume / workouts)) if workouts else 0.0,
    )


def compute_delta(current: float, previous: float) -> DeltaResult:
    diff = round(current - previous, 2)
    if previous > 0:
        pct = _round_half_up(diff / previous * 100)
    else:
        pct = 100 if current > 0 else 0
    direction = "up" if diff > 0 else "down" if diff < 0 else "same"
    return DeltaResult(
        current=round(current, 2),
        previous=round(previous, 2),
        delta=diff,
        delta_percent=pct,
        direction=direction,
    )


def _week_start_at(when: datetime) -> datetime:
    return datetime.combine(week_start(when.date()), time.min)


def week_over_week(sets: Iterable[WorkoutSet], now: datetime) -> WeeklyComparison:
    """This week (Monday 00:00 through now) against the whole previous Monday to Sunday."""
    items = list(sets)
    this_start = _week_start_at(now)
    this_week = period_stats(items, this_start, now)
    last_week = period_stats(items, this_start - timedelta(weeks=1), this_start - timedelta(microseconds=1))
    return WeeklyComparison(
        this_week=this_week,
        last_week=last_week,
        volume=compute_delta(this_week.total_volume, last_week.total_volume),
        sets=compute_delta(this_week.total_sets, last_week.total_sets),
        workouts=compute_delta(this_week.total_workouts, last_week.total_workouts),
        prs=compute_delta(this_week.total_prs, last_week.total_prs),
    )


def streak_info(sets: Iterable[WorkoutSet], now: datetime) -> StreakInfo:
    """
    Consistency in Monday-based weeks. The current streak counts back from this week, or
    from last week when nothing is logged yet this week; a gap of one empty week ends it.
    Workout counts here are distinct training days.
    """
    days = {s.start_time.date() for s in sets}
    if not days:
        return StreakInfo()
    weeks = {week_start(d) for d in days}
    this_week = week_start(now.date())
    last_week = this_week - timedelta(weeks=1)

    longest = run = 0
    previous = None
    for w in sorted(weeks):
        run = run + 1 if previous is not None and w - previous == timedelta(weeks=1) else 1
        longest = max(longest, run)
        previous = w

    on_streak = this_week in weeks or last_week in weeks
    current = 0
    if on_streak:
        check = this_week if this_week in weeks else last_week
        while check in weeks:
            current += 1
            check -= timedelta(weeks=1)

    total_weeks = max(1, (this_week - week_start(min(days))).days // 7 + 1)
    if current >= HOT_STREAK_WEEKS:
        streak_type = "hot"
    elif current >= WARM_STREAK_WEEKS:
        streak_type = "warm"
    else:
        streak_type = "cold"
    return StreakInfo(
        current_streak=current,
        longest_streak=longest,
        is_on_streak=on_streak,
        streak_type=streak_type,
        workouts_this_week=sum(1 for d in days if this_week <= d <= now.date()),
        avg_workouts_per_week=round(len(days) / total_weeks, 1),
        total_weeks_tracked=total_weeks,
        weeks_with_workouts=len(weeks),
        consistency_score=min(100, _round_half_up(len(weeks) / total_weeks * 100)),
    )


def pr_insights(sets: Iterable[WorkoutSet], now: datetime) -> PrInsights:
    """Latest PRs with the best weight logged before each, days since the last PR, and PR rate."""
    items = list(sets)
    prs = sorted((s for s in items if s.is_pr), key=lambda s: (s.start_time, s.set_index), reverse=True)
    if not prs:
        return PrInsights()

    history: dict[str, list[WorkoutSet]] = defaultdict(list)
    for s in items:
        if s.weight_kg > 0 and not s.is_warmup:
            history[s.exercise_title].append(s)

    recent: list[RecentPr] = []
    for pr in prs[:RECENT_PR_LIMIT]:
        mark = (pr.start_time, pr.set_index)
        best = max(
            (h.weight_kg for h in history[pr.exercise_title] if (h.start_time, h.set_index) < mark),
            default=0.0,
        )
        recent.append(RecentPr(
            date=pr.start_time,
            exercise=pr.exercise_title,
            weight=round(pr.weight_kg, 2),
            reps=pr.reps,
            previous_best=round(best, 2),
            improvement=round(pr.weight_kg - best, 2),
        ))

    last = prs[0]
    days_since = (now - last.start_time).days
    cutoff = now - timedelta(days=PR_FREQUENCY_DAYS)
    in_window = sum(1 for p in prs if p.start_time >= cutoff)
    return PrInsights(
        days_since_last_pr=days_since,
        last_pr_date=last.start_time,
        last_pr_exercise=last.exercise_title,
        pr_drought=days_since > PR_DROUGHT_DAYS,
        recent_prs=recent,
        pr_frequency=round(in_window / 4, 1),  # 30 days read as four weeks
        total_prs=len(prs),
    )
