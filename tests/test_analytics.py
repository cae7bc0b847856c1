"""AnalyticsSession: cached entry points over loaded sets, bundled muscle table."""

from datetime import date, datetime, timedelta

from liftlens.analytics import AnalyticsSession
from liftlens.cache import ComputationCache
from liftlens.models import WorkoutSet
from liftlens.muscles import MuscleLookup

CSV = """exercise,date,weight,reps,set type
Bench Press (Barbell),2025-01-06 18:00,80,5,
Bench Press (Barbell),2025-01-06 18:00,40,10,warmup
Squat (Barbell),2025-01-08 18:00,100,5,
Bench Press (Barbell),2025-01-13 18:00,82.5,5,
Bench Press (Barbell),2025-01-20 18:00,85,5,
Bench Press (Barbell),2025-01-27 18:00,87.5,5,
Squat (Barbell),2025-01-29 18:00,95,5,
"""


def _session() -> AnalyticsSession:
    session = AnalyticsSession()
    out = session.load_csv(CSV, "kg")
    assert out.status == "ok", out.error
    return session


def test_load_and_filter() -> None:
    session = _session()
    assert len(session.sets) == 7
    january_second_week = session.filter_sets(date(2025, 1, 13), date(2025, 1, 19))
    assert [s.weight_kg for s in january_second_week] == [82.5]
    assert len(session.filter_sets(start=date(2025, 1, 27))) == 2


def test_muscle_volume_uses_cache() -> None:
    session = _session()
    first = session.muscle_volume("weekly")
    second = session.muscle_volume("weekly")
    assert first is second
    assert session.cache.stats()["hits"] >= 1
    assert "Chest" in first.muscle_keys
    assert "Quadriceps" in first.muscle_keys
    week_one = first.series[0]
    assert week_one.key == "2025-01-06"
    # warm-up sets count toward muscle volume
    assert week_one.volumes["Chest"] == 2.0


def test_reloading_clears_cache() -> None:
    session = _session()
    session.muscle_volume("weekly")
    assert len(session.cache) > 0
    session.load_csv(CSV, "kg")
    assert len(session.cache) == 0


def test_muscle_totals_in_range() -> None:
    session = _session()
    totals = session.muscle_totals(date(2025, 1, 8), date(2025, 1, 8))
    assert totals["rectus-femoris"].sets == 1.0
    assert totals["upper-pectoralis"].sets == 0.0


def test_prs_judged_against_full_history() -> None:
    session = _session()
    late = session.personal_records(start=date(2025, 1, 29))
    (squat,) = late
    # 95 is below the earlier 100, so not a PR even though it is the only squat in range
    assert squat.is_pr is False
    bench_prs = [s for s in session.personal_records() if s.exercise_title.startswith("Bench") and s.is_pr]
    assert len(bench_prs) == 4


def test_exercise_trends_one_per_exercise() -> None:
    session = _session()
    trends = session.exercise_trends()
    assert [t.exercise for t in trends] == ["Bench Press (Barbell)", "Squat (Barbell)"]
    bench, squat = trends
    assert bench.sessions == 4
    assert squat.status == "new"
    assert session.exercise_trends() is trends


def test_trend_for_respects_now_and_unit() -> None:
    session = _session()
    result = session.trend_for("Bench Press (Barbell)", now=datetime(2025, 6, 1))
    assert result.inactive
    active = session.trend_for("Bench Press (Barbell)", unit="lbs")
    assert not active.inactive
    assert active.title


def test_summaries_and_stats() -> None:
    session = _session()
    days = session.daily_summaries()
    assert [d.date for d in days][0] == date(2025, 1, 6)
    assert days[0].sets == 1
    stats = session.exercise_stats()
    assert stats[0].name == "Bench Press (Barbell)"
    assert stats[0].pr_count == 4
    points = session.prs_over_time("monthly")
    assert points[0].key == "2025-01"


def test_injected_cache_is_used() -> None:
    cache = ComputationCache(max_entries=5)
    session = AnalyticsSession(cache=cache)
    session.load_csv(CSV)
    session.daily_summaries()
    assert cache.stats()["misses"] == 1


def test_empty_injected_lookup_and_cache_are_kept() -> None:
    lookup = MuscleLookup([])
    cache = ComputationCache()
    session = AnalyticsSession(lookup=lookup, cache=cache)
    assert session.lookup is lookup
    assert session.cache is cache
    session.load_csv(CSV)
    totals = session.muscle_totals()
    assert all(entry.sets == 0.0 for entry in totals.values())


def test_trends_default_now_is_latest_set_in_dataset() -> None:
    """A lift dropped months before the newest set in the data reads as inactive."""
    bench = [
        WorkoutSet(
            exercise_title="Bench Press (Barbell)",
            start_time=datetime(2025, 1, 6, 18, 0) + timedelta(weeks=i),
            weight_kg=80,
            reps=5,
            set_index=1,
        )
        for i in range(5)
    ]
    squat = [
        WorkoutSet(
            exercise_title="Squat (Barbell)",
            start_time=datetime(2025, 6, 2, 18, 0) + timedelta(weeks=i),
            weight_kg=100 + 2.5 * i,
            reps=5,
            set_index=1,
        )
        for i in range(6)
    ]
    session = AnalyticsSession()
    session.load_sets(bench + squat)

    trends = {t.exercise: t for t in session.exercise_trends()}
    stale = trends["Bench Press (Barbell)"]
    assert stale.inactive
    assert stale.confidence == "low"
    assert stale.title == ""
    assert not trends["Squat (Barbell)"].inactive
    assert session.trend_for("Bench Press (Barbell)").inactive
    assert not session.trend_for("Bench Press (Barbell)", now=datetime(2025, 2, 10)).inactive


def test_load_remote_replaces_sets() -> None:
    session = _session()
    session.muscle_volume("weekly")
    out = session.load_remote({
        "sets": [
            {"exercise_title": "Squat (Barbell)", "start_time": "2025-03-03T10:00:00Z", "weight_kg": 120, "reps": 3},
        ]
    })
    assert out.status == "ok"
    assert len(session.sets) == 1
    assert len(session.cache) == 0
    assert session.personal_records()[0].is_pr

    bad = session.load_remote({"sets": "nope"})
    assert bad.status == "error"
    assert len(session.sets) == 1


def test_weekly_summaries_anchor_on_latest_set() -> None:
    """Latest set is Wed Jan 29, so this week starts Mon Jan 27."""
    session = _session()
    cmp = session.week_over_week()
    assert cmp.this_week.start == datetime(2025, 1, 27)
    assert cmp.this_week.total_volume == 87.5 * 5 + 95 * 5
    assert cmp.this_week.total_prs == 1
    assert cmp.last_week.total_volume == 85 * 5
    assert (cmp.sets.current, cmp.sets.previous, cmp.sets.direction) == (2, 1, "up")
    assert cmp.volume.delta_percent == 115
    assert session.week_over_week() is cmp

    streak = session.streak_info()
    assert streak.current_streak == 4
    assert streak.streak_type == "hot"
    assert streak.workouts_this_week == 2

    prs = session.pr_insights()
    assert prs.total_prs == 5
    assert prs.days_since_last_pr == 2
    assert prs.recent_prs[0].previous_best == 85

    january = session.period_stats(datetime(2025, 1, 1), datetime(2025, 1, 31, 23, 59))
    assert january.total_workouts == 6
    assert january.total_sets == 6
