"""Per-exercise progress classification: baseline, plateau, overload, regression, or steady."""

from __future__ import annotations

import math
from datetime import datetime, time, timedelta
from typing import Iterable, Optional

from pydantic import BaseModel

from .ema import ema_values
from .metrics import e1rm, sort_chronological
from .models import (
    Confidence,
    ExerciseSessionEntry,
    PlateauBand,
    TrendResult,
    WorkoutSet,
)
from .phrasing import STATUS_LABELS, phrase

_ZERO_LOAD_KG = 0.0001
_EPOCH = datetime(1970, 1, 1)


class TrendSettings(BaseModel):
    """Thresholds for trend classification."""

    min_sessions_for_trend: int = 4
    recent_window: int = 4
    wide_window: int = 6
    bodyweight_share: float = 0.75
    weight_static_epsilon_kg: float = 0.5
    rep_static_epsilon: int = 1
    min_signal_reps: int = 2
    trend_pct_threshold: float = 1.0
    trend_min_abs_1rm_kg: float = 0.25
    trend_min_abs_reps: float = 1.0
    ema_half_life_days: float = 21.0
    activity_window_days: int = 60
    high_confidence_sessions: int = 10
    medium_confidence_sessions: int = 6
    high_confidence_recent_sessions: int = 3


def summarize_sessions(history: Iterable[WorkoutSet]) -> list[ExerciseSessionEntry]:
    """
    Collapse one exercise's working sets to one entry per calendar day, most recent first.
    The best set is the highest e1RM; on a tie the later set wins.
    """
    days: dict = {}
    for s in sort_chronological(history):
        if s.is_warmup:
            continue
        day = s.start_time.date()
        one_rm = e1rm(s.weight_kg, s.reps)
        entry = days.get(day)
        if entry is None:
            days[day] = {
                "weight": s.weight_kg,
                "reps": s.reps,
                "one_rep_max": one_rm,
                "volume": 0.0,
                "sets": 0,
                "total_reps": 0,
                "max_reps": 0,
            }
            entry = days[day]
        elif one_rm >= entry["one_rep_max"]:
            entry.update(weight=s.weight_kg, reps=s.reps, one_rep_max=one_rm)
        entry["volume"] += s.volume_kg
        entry["sets"] += 1
        entry["total_reps"] += s.reps
        entry["max_reps"] = max(entry["max_reps"], s.reps)

    return [
        ExerciseSessionEntry(date=datetime.combine(day, time.min), **entry)
        for day, entry in sorted(days.items(), key=lambda kv: kv[0], reverse=True)
    ]


def is_inactive(sessions: list[ExerciseSessionEntry], now: datetime, window_days: int = 60) -> bool:
    if not sessions:
        return False
    latest = max(s.date for s in sessions)
    return now - latest > timedelta(days=window_days)


def is_bodyweight_like(sessions: list[ExerciseSessionEntry], settings: TrendSettings) -> bool:
    """Reps carry the signal when most of the recent sessions have no external load."""
    recent = sessions[: settings.recent_window]
    if not recent:
        return False
    zero = sum(1 for s in recent if s.weight <= _ZERO_LOAD_KG)
    return zero >= math.ceil(len(recent) * settings.bodyweight_share)


def _confidence(
    sessions: list[ExerciseSessionEntry],
    window: int,
    now: datetime,
    inactive: bool,
    settings: TrendSettings,
) -> Confidence:
    n = len(sessions)
    if n < settings.min_sessions_for_trend or inactive:
        return "low"
    cutoff = now - timedelta(days=settings.activity_window_days)
    recent_count = sum(1 for s in sessions if s.date >= cutoff)
    if (
        n >= settings.high_confidence_sessions
        and window >= settings.wide_window
        and recent_count >= settings.high_confidence_recent_sessions
    ):
        return "high"
    if n >= settings.medium_confidence_sessions:
        return "medium"
    return "low"


def _result(status: str, **kwargs) -> TrendResult:
    return TrendResult(status=status, label=STATUS_LABELS[status], **kwargs)


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def classify(
    sessions: list[ExerciseSessionEntry],
    exercise: str = "",
    now: Optional[datetime] = None,
    settings: Optional[TrendSettings] = None,
) -> TrendResult:
    """Classify one exercise from its per-day session summaries (any order)."""
    settings = settings or TrendSettings()
    sessions = sorted(sessions, key=lambda s: s.date, reverse=True)
    n = len(sessions)
    if n == 0:
        return _result("new", exercise=exercise, evidence=["No sessions logged yet."])

    latest = sessions[0].date
    now = now or latest
    inactive = is_inactive(sessions, now, settings.activity_window_days)
    bodyweight = is_bodyweight_like(sessions, settings)
    recent = sessions[: settings.recent_window]
    base = {
        "exercise": exercise,
        "is_bodyweight_like": bodyweight,
        "sessions": n,
        "last_session": latest,
        "inactive": inactive,
    }

    if bodyweight:
        has_signal = max(s.max_reps for s in recent) >= settings.min_signal_reps
    else:
        has_signal = max(s.weight for s in recent) > _ZERO_LOAD_KG
    if not has_signal:
        message = (
            "Most recent sessions look bodyweight-like (weight ~0)."
            if bodyweight
            else "Most recent sessions have near-zero load."
        )
        return _finish(_result("new", evidence=[message], **base), now)

    if n < settings.min_sessions_for_trend:
        label = "session" if n == 1 else "sessions"
        evidence = [f"Only {n} {label} logged (need {settings.min_sessions_for_trend}+)."]
        return _finish(_result("new", evidence=evidence, **base), now)

    rep_values = [s.max_reps if bodyweight else s.reps for s in recent]
    first_weight = recent[0].weight
    weight_static = all(abs(s.weight - first_weight) < settings.weight_static_epsilon_kg for s in recent)
    rep_range = max(rep_values) - min(rep_values)
    if weight_static and rep_range <= settings.rep_static_epsilon:
        plateau = PlateauBand(weight=first_weight, min_reps=min(rep_values), max_reps=max(rep_values))
        if bodyweight:
            evidence = f"Top reps stayed within ~{rep_range} rep(s)."
        else:
            evidence = (
                f"Top weight stayed within ~{settings.weight_static_epsilon_kg:g}kg "
                f"and reps within ~{settings.rep_static_epsilon} rep(s)."
            )
        window = min(n, settings.recent_window)
        return _finish(
            _result(
                "stagnant",
                evidence=[evidence],
                plateau=plateau,
                confidence=_confidence(sessions, window, now, inactive, settings),
                **base,
            ),
            now,
        )

    chronological = list(reversed(sessions))
    signal = [float(s.max_reps) if bodyweight else s.one_rep_max for s in chronological]
    smoothed = ema_values(signal, [s.date for s in chronological], settings.ema_half_life_days)
    smoothed.reverse()
    window = settings.wide_window if n >= settings.wide_window else settings.recent_window
    windowed = [v for v in smoothed[:window] if v is not None]
    half = len(windowed) // 2
    current = _mean(windowed[:half])
    previous = _mean(windowed[half:])
    confidence = _confidence(sessions, window, now, inactive, settings)
    if current <= 0 or previous <= 0:
        return _finish(_result("new", evidence=["Not enough signal to compare."], **base), now)

    diff = current - previous
    diff_pct = diff / previous * 100.0
    min_abs = settings.trend_min_abs_reps if bodyweight else settings.trend_min_abs_1rm_kg
    metric = "Reps" if bodyweight else "Strength"
    evidence = [f"{metric}: {diff_pct:+.1f}%"]
    if diff_pct >= settings.trend_pct_threshold and diff >= min_abs:
        status = "overload"
    elif diff_pct <= -settings.trend_pct_threshold and -diff >= min_abs:
        status = "regression"
    else:
        status = "neutral"
    return _finish(
        _result(status, evidence=evidence, diff_pct=round(diff_pct, 2), confidence=confidence, **base),
        now,
    )


def _finish(result: TrendResult, now: datetime) -> TrendResult:
    if result.inactive and result.last_session is not None:
        days = (now - result.last_session).days
        evidence = result.evidence + [f"Last session {days} days ago; trend paused."]
        return result.model_copy(update={"confidence": "low", "evidence": evidence})
    return result


def with_phrasing(result: TrendResult, unit: str = "kg") -> TrendResult:
    """Attach title/description/subtext. Inactive results stay blank so callers can hide them."""
    if result.inactive:
        return result.model_copy(update={"title": "", "description": "", "subtext": ""})
    latest_key = ""
    if result.last_session is not None:
        # naive wall-clock times, so measure from a naive epoch to stay machine-independent
        latest_key = str(int((result.last_session - _EPOCH).total_seconds() * 1000))
    title, description, subtext = phrase(result, latest_key, unit)
    return result.model_copy(update={"title": title, "description": description, "subtext": subtext})


def analyze_exercise(
    sets: Iterable[WorkoutSet],
    exercise: str,
    now: Optional[datetime] = None,
    settings: Optional[TrendSettings] = None,
    unit: str = "kg",
) -> TrendResult:
    """Summarize, classify, and phrase one exercise's sets."""
    history = [s for s in sets if s.exercise_title == exercise]
    return with_phrasing(classify(summarize_sessions(history), exercise, now, settings), unit)
