"""Deterministic metrics over canonical sets: e1rm, PRs, daily summaries, per-exercise stats."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Any, Iterable

from .models import (
    DailySummary,
    ExerciseHistoryEntry,
    ExerciseStats,
    PrPoint,
    WorkoutSet,
)
from .volume import bucket_for

MAX_SESSION_MINUTES = 1440


def e1rm_epley(weight: float, reps: int) -> float:
    if reps <= 0 or weight <= 0:
        return 0.0
    if reps == 1:
        return weight
    return weight * (1 + reps / 30.0)


def e1rm_brzycki(weight: float, reps: int) -> float:
    if reps <= 0 or weight <= 0:
        return 0.0
    if reps == 1:
        return weight
    if reps >= 37:
        return e1rm_epley(weight, reps)  # formula diverges at 37 reps
    return weight * (36.0 / (37.0 - reps))


def e1rm(weight: float, reps: int, formula: str = "epley") -> float:
    if formula == "brzycki":
        return round(e1rm_brzycki(weight, reps), 2)
    return round(e1rm_epley(weight, reps), 2)


def sort_chronological(sets: Iterable[WorkoutSet]) -> list[WorkoutSet]:
    """Oldest first by start time then set index; input order breaks remaining ties."""
    return sorted(sets, key=lambda s: (s.start_time, s.set_index))


def personal_records(sets: Iterable[WorkoutSet]) -> list[WorkoutSet]:
    """
    Flag weight PRs: walking each exercise oldest to newest, a working set is a PR when its
    weight is above zero and strictly above every earlier set. Returns copies of all sets,
    most recent first.
    """
    best: dict[str, float] = {}
    flagged: list[WorkoutSet] = []
    for s in sort_chronological(sets):
        is_pr = False
        if not s.is_warmup:
            previous = best.get(s.exercise_title, 0.0)
            if s.weight_kg > 0 and s.weight_kg > previous:
                is_pr = True
                best[s.exercise_title] = s.weight_kg
        flagged.append(s if s.is_pr == is_pr else s.model_copy(update={"is_pr": is_pr}))
    flagged.reverse()
    return flagged


def _session_minutes(s: WorkoutSet) -> float:
    if s.end_time is None:
        return 0.0
    minutes = (s.end_time - s.start_time).total_seconds() / 60.0
    return minutes if 0 < minutes < MAX_SESSION_MINUTES else 0.0


def daily_summaries(sets: Iterable[WorkoutSet]) -> list[DailySummary]:
    """One row per training day (oldest first); warm-ups count toward duration only."""
    days: dict[Any, dict[str, Any]] = {}
    for s in sets:
        day = s.start_time.date()
        acc = days.get(day)
        if acc is None:
            acc = days[day] = {
                "title": s.title or "Workout",
                "volume": 0.0,
                "sets": 0,
                "reps": 0,
                "sessions": set(),
                "minutes": 0.0,
            }
        session_key = (s.title, s.start_time)
        if session_key not in acc["sessions"]:
            acc["sessions"].add(session_key)
            acc["minutes"] += _session_minutes(s)
        if s.is_warmup:
            continue
        acc["volume"] += s.volume_kg
        acc["sets"] += 1
        acc["reps"] += s.reps

    out = [
        DailySummary(
            date=day,
            total_volume=acc["volume"],
            workout_title=acc["title"],
            sets=acc["sets"],
            avg_reps=round(acc["reps"] / acc["sets"]),
            duration_minutes=acc["minutes"],
            density=round(acc["volume"] / acc["minutes"]) if acc["minutes"] > 0 else 0.0,
        )
        for day, acc in days.items()
        if acc["sets"] > 0
    ]
    out.sort(key=lambda d: d.date)
    return out


def exercise_stats(sets: Iterable[WorkoutSet]) -> list[ExerciseStats]:
    """
    Per-exercise totals and set history (warm-ups excluded), busiest exercise first.
    PR counts read each set's is_pr flag, so pass the output of personal_records().
    """
    grouped: dict[str, ExerciseStats] = {}
    for s in sets:
        if s.is_warmup:
            continue
        stats = grouped.get(s.exercise_title)
        if stats is None:
            stats = grouped[s.exercise_title] = ExerciseStats(name=s.exercise_title)
        stats.total_sets += 1
        stats.total_volume += s.volume_kg
        stats.max_weight = max(stats.max_weight, s.weight_kg)
        if s.is_pr:
            stats.pr_count += 1
        stats.history.append(ExerciseHistoryEntry(
            date=s.start_time,
            weight=s.weight_kg,
            reps=s.reps,
            one_rep_max=e1rm(s.weight_kg, s.reps),
            volume=s.volume_kg,
            is_pr=s.is_pr,
        ))
    for stats in grouped.values():
        stats.history.sort(key=lambda h: h.date, reverse=True)
    return sorted(grouped.values(), key=lambda st: st.total_sets, reverse=True)


def prs_over_time(sets: Iterable[WorkoutSet], period: str = "monthly") -> list[PrPoint]:
    """Count of flagged PR sets per calendar period, oldest first."""
    counts: dict[str, int] = defaultdict(int)
    meta: dict[str, tuple[Any, str]] = {}
    for s in sets:
        if not s.is_pr or s.is_warmup:
            continue
        key, start, label = bucket_for(s.start_time, period)
        counts[key] += 1
        meta[key] = (start, label)
    return [
        PrPoint(key=key, label=meta[key][1], count=counts[key])
        for key in sorted(counts, key=lambda k: meta[k][0])
    ]


def effective_now(sets: Iterable[WorkoutSet], default: datetime | None = None) -> datetime | None:
    """Latest set time in the data; analytics are anchored here rather than the wall clock."""
    latest = max((s.start_time for s in sets), default=None)
    return latest if latest is not None else default
