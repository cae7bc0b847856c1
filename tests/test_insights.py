"""Weekly summaries: period totals, deltas, streaks, PR timeline."""

from datetime import datetime, timedelta

from liftlens.insights import compute_delta, period_stats, pr_insights, streak_info, week_over_week
from liftlens.models import WorkoutSet


def _set(
    when: datetime,
    weight: float,
    reps: int,
    exercise: str = "Bench Press (Barbell)",
    is_pr: bool = False,
    set_index: int = 1,
    set_type: str = "normal",
) -> WorkoutSet:
    return WorkoutSet(
        exercise_title=exercise,
        start_time=when,
        weight_kg=weight,
        reps=reps,
        is_pr=is_pr,
        set_index=set_index,
        set_type=set_type,
    )


def test_period_stats_totals() -> None:
    """Warm-ups add a workout but no volume; both bounds are inclusive."""
    sets = [
        _set(datetime(2025, 1, 6, 10, 0), 100, 5, is_pr=True),
        _set(datetime(2025, 1, 6, 10, 0), 110, 3, set_index=2),
        _set(datetime(2025, 1, 8, 9, 0), 40, 10, set_type="warmup"),
        _set(datetime(2025, 1, 9, 9, 0), 100, 5),
    ]
    stats = period_stats(sets, datetime(2025, 1, 6, 10, 0), datetime(2025, 1, 8, 9, 0))
    assert stats.total_volume == 500 + 330
    assert stats.total_sets == 2
    assert stats.total_workouts == 2
    assert stats.total_prs == 1
    assert stats.avg_sets_per_workout == 1
    assert stats.avg_volume_per_workout == 415.0

    empty = period_stats(sets, datetime(2025, 2, 1), datetime(2025, 2, 7))
    assert empty.total_workouts == 0
    assert empty.avg_sets_per_workout == 0


def test_compute_delta() -> None:
    up = compute_delta(150, 100)
    assert (up.delta, up.delta_percent, up.direction) == (50, 50, "up")
    down = compute_delta(1, 3)
    assert (down.delta, down.delta_percent, down.direction) == (-2, -67, "down")
    assert compute_delta(5, 0).delta_percent == 100
    flat = compute_delta(0, 0)
    assert (flat.delta_percent, flat.direction) == (0, "same")
    assert compute_delta(10.005, 10).current == round(10.005, 2)


def test_week_over_week_uses_full_previous_week() -> None:
    """Last week runs Monday 00:00 through Sunday 23:59; this week stops at now."""
    now = datetime(2025, 1, 15, 12, 0)  # Wednesday
    sets = [
        _set(datetime(2025, 1, 6, 10, 0), 90, 5, is_pr=True),
        _set(datetime(2025, 1, 12, 23, 0), 100, 5, is_pr=True),  # Sunday night
        _set(datetime(2025, 1, 13, 9, 0), 50, 5, set_index=0, set_type="warmup"),
        _set(datetime(2025, 1, 13, 9, 0), 100, 3),
        _set(datetime(2025, 1, 15, 13, 0), 120, 1, is_pr=True),  # after now
    ]
    cmp = week_over_week(sets, now)
    assert cmp.this_week.start == datetime(2025, 1, 13)
    assert cmp.this_week.total_volume == 300
    assert cmp.this_week.total_workouts == 1
    assert cmp.last_week.total_volume == 950
    assert cmp.last_week.total_workouts == 2
    assert cmp.last_week.avg_volume_per_workout == 475.0
    assert (cmp.volume.delta, cmp.volume.delta_percent, cmp.volume.direction) == (-650, -68, "down")
    assert (cmp.workouts.delta, cmp.workouts.delta_percent) == (-1, -50)
    assert (cmp.prs.current, cmp.prs.previous, cmp.prs.delta_percent) == (0, 2, -100)


def test_streak_counts_back_from_last_week() -> None:
    days = [
        datetime(2025, 1, 6, 18, 0),
        datetime(2025, 1, 13, 18, 0),
        # week of Jan 20 skipped
        datetime(2025, 1, 27, 18, 0),
        datetime(2025, 2, 3, 18, 0),
        datetime(2025, 2, 4, 18, 0),
        datetime(2025, 2, 10, 18, 0),
    ]
    sets = [_set(d, 100, 5) for d in days]

    info = streak_info(sets, now=datetime(2025, 2, 19, 12, 0))  # nothing logged that week yet
    assert info.is_on_streak
    assert info.current_streak == 3
    assert info.longest_streak == 3
    assert info.streak_type == "warm"
    assert info.workouts_this_week == 0
    assert info.total_weeks_tracked == 7
    assert info.weeks_with_workouts == 5
    assert info.consistency_score == 71
    assert info.avg_workouts_per_week == 0.9

    lapsed = streak_info(sets, now=datetime(2025, 3, 3, 12, 0))
    assert not lapsed.is_on_streak
    assert lapsed.current_streak == 0
    assert lapsed.streak_type == "cold"
    assert lapsed.longest_streak == 3


def test_streak_empty_and_hot() -> None:
    assert streak_info([], now=datetime(2025, 1, 1)).streak_type == "cold"
    weekly = [_set(datetime(2025, 1, 6, 18, 0) + timedelta(weeks=i), 100, 5) for i in range(4)]
    info = streak_info(weekly, now=weekly[-1].start_time)
    assert info.current_streak == 4
    assert info.streak_type == "hot"
    assert info.workouts_this_week == 1
    assert info.consistency_score == 100


def test_pr_insights_previous_best_and_rate() -> None:
    """Previous best ignores warm-ups and counts earlier sets from the same session."""
    sets = [
        _set(datetime(2025, 1, 6, 18, 0), 80, 5, is_pr=True, set_index=1),
        _set(datetime(2025, 1, 6, 18, 0), 82.5, 3, is_pr=True, set_index=2),
        _set(datetime(2025, 1, 8, 18, 0), 100, 5, exercise="Squat (Barbell)", is_pr=True),
        _set(datetime(2025, 1, 20, 18, 0), 100, 1, set_index=0, set_type="warmup"),
        _set(datetime(2025, 1, 20, 18, 0), 85, 3, is_pr=True, set_index=1),
    ]
    insights = pr_insights(sets, now=datetime(2025, 2, 1, 12, 0))
    assert insights.total_prs == 4
    assert insights.last_pr_date == datetime(2025, 1, 20, 18, 0)
    assert insights.last_pr_exercise == "Bench Press (Barbell)"
    assert insights.days_since_last_pr == 11
    assert not insights.pr_drought
    assert insights.pr_frequency == 1.0

    latest, squat, same_session, first = insights.recent_prs
    assert (latest.weight, latest.previous_best, latest.improvement) == (85, 82.5, 2.5)
    assert squat.exercise == "Squat (Barbell)"
    assert (squat.previous_best, squat.improvement) == (0, 100)
    assert (same_session.previous_best, same_session.improvement) == (80, 2.5)
    assert (first.previous_best, first.improvement) == (0, 80)

    later = pr_insights(sets, now=datetime(2025, 3, 1))
    assert later.pr_drought
    assert later.pr_frequency == 0.0


def test_pr_insights_without_prs() -> None:
    insights = pr_insights([_set(datetime(2025, 1, 6), 80, 5)], now=datetime(2025, 1, 7))
    assert insights.days_since_last_pr == -1
    assert insights.last_pr_date is None
    assert insights.pr_drought
    assert insights.recent_prs == []
