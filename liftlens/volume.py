"""Muscle volume in set-equivalents: per muscle id, per exercise, and per calendar period."""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Iterable

from .models import (
    CompositionSlice,
    ExerciseContribution,
    ExerciseMuscleData,
    MuscleComposition,
    MuscleVolumeEntry,
    TimeBucket,
    VolumeSeries,
    WeeklyMuscleVolume,
    WorkoutSet,
)
from .muscles import (
    ALL_MUSCLE_IDS,
    CARDIO,
    FULL_BODY,
    FULL_BODY_COARSE_GROUPS,
    MUSCLE_NAMES,
    MuscleLookup,
    full_body_muscle_ids,
    muscle_group_of,
    muscle_ids_for,
    propagate_group_volume,
)

PRIMARY_SETS = 1.0
SECONDARY_SETS = 0.5
PERIODS = ("daily", "weekly", "monthly", "yearly")


def _is_sentinel(muscle: str, sentinel: str) -> bool:
    return (muscle or "").strip().lower() == sentinel.lower()


def _contributions(exercise: ExerciseMuscleData) -> list[tuple[str, float, bool]]:
    """(muscle_id, set-equivalents, is_primary) credited by one set of this exercise."""
    primary = exercise.primary_muscle
    if _is_sentinel(primary, CARDIO):
        return []
    if _is_sentinel(primary, FULL_BODY):
        return [(mid, PRIMARY_SETS, True) for mid in full_body_muscle_ids()]
    out = [(mid, PRIMARY_SETS, True) for mid in muscle_ids_for(primary)]
    for secondary in exercise.secondary_muscles:
        if _is_sentinel(secondary, CARDIO) or _is_sentinel(secondary, FULL_BODY):
            continue
        out.extend((mid, SECONDARY_SETS, False) for mid in muscle_ids_for(secondary))
    return out


def exercise_volumes(exercise: ExerciseMuscleData) -> dict[str, float]:
    """
    Relative load of one exercise per muscle id: primary 1.0, secondary 0.5 (never
    lowering a primary), Full Body 1.0 everywhere it targets, Cardio nothing.
    Group propagation is applied last.
    """
    volumes: dict[str, float] = {}
    for mid, weight, is_primary in _contributions(exercise):
        if is_primary:
            volumes[mid] = max(volumes.get(mid, 0.0), weight)
        else:
            volumes.setdefault(mid, weight)
    return propagate_group_volume(volumes)


def _accumulate(sets: Iterable[WorkoutSet], lookup: MuscleLookup) -> dict[str, float]:
    totals: dict[str, float] = defaultdict(float)
    for s in sets:
        exercise = lookup.get(s.exercise_title)
        if exercise is None:
            continue
        for mid, weight, _ in _contributions(exercise):
            totals[mid] += weight
    return dict(totals)


def calculate_muscle_volume(sets: Iterable[WorkoutSet], lookup: MuscleLookup) -> dict[str, MuscleVolumeEntry]:
    """Set-equivalents per muscle id with a per-exercise breakdown. Every tracked id is present."""
    totals: dict[str, float] = {mid: 0.0 for mid in ALL_MUSCLE_IDS}
    breakdown: dict[str, dict[str, list[float]]] = {mid: {} for mid in ALL_MUSCLE_IDS}
    for s in sets:
        exercise = lookup.get(s.exercise_title)
        if exercise is None:
            continue
        for mid, weight, is_primary in _contributions(exercise):
            if mid not in totals:
                totals[mid] = 0.0
                breakdown[mid] = {}
            totals[mid] += weight
            # [sets, primary_sets, secondary_sets]
            acc = breakdown[mid].setdefault(s.exercise_title, [0.0, 0.0, 0.0])
            acc[0] += weight
            acc[1 if is_primary else 2] += 1

    propagated = propagate_group_volume(totals)
    for mid, value in propagated.items():
        if value > totals[mid] and not breakdown[mid]:
            # Raised by propagation: show the contributing member's exercises.
            source = next(
                (m for m, v in totals.items() if v == value and breakdown.get(m) and _same_group(m, mid)),
                None,
            )
            if source is not None:
                breakdown[mid] = {k: list(v) for k, v in breakdown[source].items()}

    return {
        mid: MuscleVolumeEntry(
            muscle_id=mid,
            muscle=MUSCLE_NAMES.get(mid, mid),
            sets=value,
            exercises={
                name: ExerciseContribution(sets=acc[0], primary_sets=acc[1], secondary_sets=acc[2])
                for name, acc in breakdown[mid].items()
            },
        )
        for mid, value in propagated.items()
    }


def _same_group(a: str, b: str) -> bool:
    return MUSCLE_NAMES.get(a) is not None and MUSCLE_NAMES.get(a) == MUSCLE_NAMES.get(b)


# --- Calendar buckets ---


def week_start(d: date) -> date:
    """Monday of the week containing d."""
    return d - timedelta(days=d.weekday())


def bucket_for(when: datetime | date, period: str) -> tuple[str, date, str]:
    """(key, bucket start, label) for the calendar period containing `when`."""
    d = when.date() if isinstance(when, datetime) else when
    if period == "daily":
        return d.isoformat(), d, f"{d:%b} {d.day}"
    if period == "monthly":
        start = d.replace(day=1)
        return f"{start:%Y-%m}", start, f"{start:%b %Y}"
    if period == "yearly":
        start = date(d.year, 1, 1)
        return f"{start:%Y}", start, f"{start:%Y}"
    if period == "weekly":
        start = week_start(d)
        return start.isoformat(), start, f"Wk of {start:%b} {start.day}"
    raise ValueError(f"unknown period: {period}")


def _grouped_volumes(sets: Iterable[WorkoutSet], lookup: MuscleLookup) -> dict[str, float]:
    totals: dict[str, float] = defaultdict(float)
    for s in sets:
        exercise = lookup.get(s.exercise_title)
        if exercise is None:
            continue
        primary = muscle_group_of(exercise.primary_muscle)
        if primary == "Cardio":
            continue
        if primary == "Full Body":
            for group in FULL_BODY_COARSE_GROUPS:
                totals[group] += PRIMARY_SETS
            continue
        totals[primary] += PRIMARY_SETS
        for secondary in exercise.secondary_muscles:
            group = muscle_group_of(secondary)
            if group in ("Cardio", "Full Body"):
                continue
            totals[group] += SECONDARY_SETS
    return dict(totals)


def _named_volumes(sets: Iterable[WorkoutSet], lookup: MuscleLookup) -> dict[str, float]:
    """Per display muscle: accumulate on ids, propagate, then read each muscle's peak id."""
    propagated = propagate_group_volume(_accumulate(sets, lookup))
    named: dict[str, float] = {}
    for mid, value in propagated.items():
        if value <= 0:
            continue
        name = MUSCLE_NAMES.get(mid, mid)
        named[name] = max(named.get(name, 0.0), value)
    return named


def aggregate(
    sets: Iterable[WorkoutSet],
    lookup: MuscleLookup,
    period: str = "weekly",
    grouped: bool = False,
) -> VolumeSeries:
    """
    Bucket sets by calendar period and total set-equivalents per muscle in each bucket.
    With grouped=True the columns are coarse groups (Chest, Back, Legs, ...).
    Buckets ascend by date; every bucket carries every muscle key (zero-filled, 1 decimal).
    """
    if period not in PERIODS:
        raise ValueError(f"unknown period: {period}")
    by_bucket: dict[str, list[WorkoutSet]] = defaultdict(list)
    meta: dict[str, tuple[date, str]] = {}
    for s in sets:
        key, start, label = bucket_for(s.start_time, period)
        by_bucket[key].append(s)
        meta[key] = (start, label)

    per_bucket: dict[str, dict[str, float]] = {}
    totals: dict[str, float] = defaultdict(float)
    for key, bucket_sets in by_bucket.items():
        volumes = _grouped_volumes(bucket_sets, lookup) if grouped else _named_volumes(bucket_sets, lookup)
        per_bucket[key] = volumes
        for muscle, value in volumes.items():
            totals[muscle] += value

    muscle_keys = sorted((m for m, v in totals.items() if v > 0), key=lambda m: (-totals[m], m))
    series = [
        TimeBucket(
            key=key,
            start=meta[key][0],
            label=meta[key][1],
            volumes={m: round(per_bucket[key].get(m, 0.0), 1) for m in muscle_keys},
        )
        for key in sorted(per_bucket, key=lambda k: meta[k][0])
    ]
    return VolumeSeries(period=period, series=series, muscle_keys=muscle_keys)


def weekly_muscle_volume(
    sets: list[WorkoutSet],
    lookup: MuscleLookup,
    weeks_back: int = 12,
    now: datetime | None = None,
) -> list[WeeklyMuscleVolume]:
    """Per-muscle volume for each of the last `weeks_back` Monday-start weeks up to `now` (default: latest set)."""
    if not sets and now is None:
        return []
    effective_now = now or max(s.start_time for s in sets)
    last_week = week_start(effective_now.date())
    out: list[WeeklyMuscleVolume] = []
    for i in range(max(1, weeks_back) - 1, -1, -1):
        start = last_week - timedelta(weeks=i)
        end = start + timedelta(days=6)
        week_sets = [s for s in sets if start <= s.start_time.date() <= end]
        muscles = calculate_muscle_volume(week_sets, lookup)
        out.append(WeeklyMuscleVolume(
            week_start=start,
            week_end=end,
            label=f"{start:%b} {start.day}",
            muscles=muscles,
            total_sets=sum(e.sets for e in muscles.values()),
        ))
    return out


def latest_muscle_composition(
    sets: Iterable[WorkoutSet],
    lookup: MuscleLookup,
    period: str = "weekly",
) -> MuscleComposition:
    """Raw lookup-table muscle names for the most recent period (primary 1.0, secondary 0.5; Full Body skipped)."""
    buckets: dict[str, tuple[date, str, dict[str, float]]] = {}
    for s in sets:
        exercise = lookup.get(s.exercise_title)
        if exercise is None:
            continue
        primary = exercise.primary_muscle.strip()
        if not primary or _is_sentinel(primary, CARDIO) or _is_sentinel(primary, FULL_BODY):
            continue
        key, start, label = bucket_for(s.start_time, period)
        counts = buckets.setdefault(key, (start, label, defaultdict(float)))[2]
        counts[primary] += PRIMARY_SETS
        for secondary in exercise.secondary_muscles:
            if _is_sentinel(secondary, CARDIO) or _is_sentinel(secondary, FULL_BODY):
                continue
            counts[secondary] += SECONDARY_SETS
    if not buckets:
        return MuscleComposition()
    _, label, counts = max(buckets.values(), key=lambda b: b[0])
    slices = sorted(
        (CompositionSlice(muscle=m, sets=round(v, 1)) for m, v in counts.items()),
        key=lambda c: (-c.sets, c.muscle),
    )
    return MuscleComposition(label=label, slices=slices)
