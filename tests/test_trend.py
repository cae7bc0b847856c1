"""Trend classification: session collapse, statuses, confidence, inactivity, wording."""

from datetime import datetime, timedelta

from liftlens.models import WorkoutSet
from liftlens.phrasing import _TITLES, fnv1a_32, pick_deterministic
from liftlens.trend import analyze_exercise, classify, summarize_sessions

START = datetime(2025, 1, 6, 18, 0)


def _weekly(exercise: str, weights: list[float], reps: list[int]) -> list[WorkoutSet]:
    """One working set per week, oldest first."""
    return [
        WorkoutSet(exercise_title=exercise, start_time=START + timedelta(weeks=i), weight_kg=w, reps=r, set_index=1)
        for i, (w, r) in enumerate(zip(weights, reps))
    ]


def _classify(sets: list[WorkoutSet], **kwargs):
    return classify(summarize_sessions(sets), exercise=sets[0].exercise_title, **kwargs)


def test_summarize_sessions_best_set_and_totals() -> None:
    day = datetime(2025, 1, 6, 18, 0)
    sets = [
        WorkoutSet(exercise_title="Squat", start_time=day, weight_kg=60, reps=10, set_index=0, set_type="warmup"),
        WorkoutSet(exercise_title="Squat", start_time=day, weight_kg=90, reps=10, set_index=1),
        WorkoutSet(exercise_title="Squat", start_time=day, weight_kg=120, reps=1, set_index=2),
        WorkoutSet(exercise_title="Squat", start_time=day, weight_kg=100, reps=5, set_index=3),
        WorkoutSet(exercise_title="Squat", start_time=day - timedelta(days=3), weight_kg=80, reps=5, set_index=1),
    ]
    latest, earlier = summarize_sessions(sets)
    assert latest.date == datetime(2025, 1, 6)
    # 90x10 and 120x1 tie on e1RM; the later set wins
    assert latest.weight == 120
    assert latest.reps == 1
    assert latest.sets == 3
    assert latest.total_reps == 16
    assert latest.max_reps == 10
    assert latest.volume == 900 + 120 + 500
    assert earlier.date == datetime(2025, 1, 3)


def test_two_identical_sessions_are_new() -> None:
    result = _classify(_weekly("Bench", [80, 80], [5, 5]))
    assert result.status == "new"
    assert result.label == "baseline"
    assert result.confidence == "low"
    assert result.evidence == ["Only 2 sessions logged (need 4+)."]


def test_empty_history_is_new() -> None:
    result = classify([], exercise="Bench")
    assert result.status == "new"
    assert result.sessions == 0


def test_flat_load_and_reps_is_stagnant() -> None:
    result = _classify(_weekly("Bench", [100, 100, 100, 100], [5, 5, 6, 5]))
    assert result.status == "stagnant"
    assert result.label == "plateauing"
    assert result.plateau is not None
    assert result.plateau.weight == 100
    assert (result.plateau.min_reps, result.plateau.max_reps) == (5, 6)
    assert not result.is_bodyweight_like
    assert result.evidence == ["Top weight stayed within ~0.5kg and reps within ~1 rep(s)."]


def test_rising_strength_is_overload() -> None:
    weights = [100 + 2.5 * i for i in range(8)]
    result = _classify(_weekly("Bench", weights, [5] * 8))
    assert result.status == "overload"
    assert result.label == "gaining"
    assert result.diff_pct is not None and result.diff_pct > 1.0
    assert result.evidence[0].startswith("Strength: +")
    assert result.confidence == "medium"


def test_falling_strength_is_regression() -> None:
    weights = [117.5 - 2.5 * i for i in range(8)]
    result = _classify(_weekly("Bench", weights, [5] * 8))
    assert result.status == "regression"
    assert result.label == "losing"
    assert result.diff_pct < -1.0
    assert result.evidence[0].startswith("Strength: -")


def test_oscillating_load_is_neutral_with_high_confidence() -> None:
    weights = [100.0 if i % 2 == 0 else 102.5 for i in range(10)]
    result = _classify(_weekly("Bench", weights, [5] * 10))
    assert result.status == "neutral"
    assert result.label == "maintaining"
    assert result.confidence == "high"


def test_bodyweight_reps_drive_the_trend() -> None:
    result = _classify(_weekly("Pull Up", [0] * 6, [5, 6, 7, 8, 9, 10]))
    assert result.is_bodyweight_like
    assert result.status == "overload"
    assert result.evidence[0].startswith("Reps: +")


def test_bodyweight_without_rep_signal_is_new() -> None:
    result = _classify(_weekly("Plank", [0] * 5, [1] * 5))
    assert result.status == "new"
    assert result.evidence == ["Most recent sessions look bodyweight-like (weight ~0)."]


def test_inactive_exercise_is_flagged_and_unworded() -> None:
    sets = _weekly("Bench", [100, 100, 100, 100], [5, 5, 5, 5])
    now = sets[-1].start_time + timedelta(days=90)
    result = analyze_exercise(sets, "Bench", now=now)
    assert result.inactive
    assert result.confidence == "low"
    assert result.title == ""
    assert result.description == ""
    assert "days ago" in result.evidence[-1]


def test_half_kilo_swing_is_not_a_plateau() -> None:
    swinging = _classify(_weekly("Bench", [80, 80.5, 80, 80.5], [5] * 4))
    assert swinging.status != "stagnant"
    assert swinging.plateau is None
    close = _classify(_weekly("Bench", [80, 80.4, 80, 80.4], [5] * 4))
    assert close.status == "stagnant"


def test_bodyweight_plateau_reports_actual_rep_range() -> None:
    flat = _classify(_weekly("Dip", [0] * 4, [8, 8, 8, 8]))
    assert flat.status == "stagnant"
    assert flat.evidence == ["Top reps stayed within ~0 rep(s)."]
    wobble = _classify(_weekly("Dip", [0] * 4, [8, 9, 8, 9]))
    assert wobble.evidence == ["Top reps stayed within ~1 rep(s)."]


def test_wording_is_deterministic_and_status_specific() -> None:
    sets = _weekly("Bench", [100, 100, 100, 100], [5, 5, 6, 5])
    first = analyze_exercise(sets, "Bench")
    second = analyze_exercise(list(reversed(sets)), "Bench")
    assert (first.title, first.description, first.subtext) == (second.title, second.description, second.subtext)
    assert first.title in _TITLES["stagnant"]
    assert "100kg" in first.description


def test_wording_uses_display_unit() -> None:
    sets = _weekly("Bench", [100, 100, 100, 100], [5, 5, 6, 5])
    result = analyze_exercise(sets, "Bench", unit="lbs")
    assert "220.5lbs" in result.description


def test_fnv1a_reference_values() -> None:
    assert fnv1a_32("") == 0x811C9DC5
    assert fnv1a_32("a") == 0xE40C292C
    options = ["x", "y", "z"]
    assert pick_deterministic("seed", options) == pick_deterministic("seed", options)
    assert pick_deterministic("a", options) == options[0xE40C292C % 3]
