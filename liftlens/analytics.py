"""AnalyticsSession: one loaded set list, one lookup table, one cache; cached entry points for callers."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime
from typing import Optional

from .cache import ComputationCache, filtered_cache_key, fingerprint_sets
from .ingest import map_remote_sets, normalize
from .insights import period_stats, pr_insights, streak_info, week_over_week
from .metrics import daily_summaries, effective_now, exercise_stats, personal_records, prs_over_time
from .models import (
    DailySummary,
    ExerciseStats,
    MuscleComposition,
    MuscleVolumeEntry,
    NormalizeOptions,
    NormalizeOutput,
    PeriodStats,
    PrInsights,
    PrPoint,
    StreakInfo,
    TrendResult,
    VolumeSeries,
    WeeklyComparison,
    WeeklyMuscleVolume,
    WorkoutSet,
)
from .muscles import MuscleLookup
from .normalize import normalize_unit
from .trend import TrendSettings, analyze_exercise
from .volume import aggregate, calculate_muscle_volume, latest_muscle_composition, weekly_muscle_volume

logger = logging.getLogger(__name__)


def _range_label(start: Optional[date], end: Optional[date]) -> str:
    if start is None and end is None:
        return "all"
    return f"{start.isoformat() if start else ''}..{end.isoformat() if end else ''}"


class AnalyticsSession:
    """
    Holds the caller's canonical sets (kg) and serves derived structures through a
    ComputationCache. Loading new data clears the cache.
    """

    def __init__(
        self,
        lookup: Optional[MuscleLookup] = None,
        cache: Optional[ComputationCache] = None,
        settings: Optional[TrendSettings] = None,
        max_workers: int = 4,
    ):
        self.lookup = lookup if lookup is not None else MuscleLookup.default()
        self.cache = cache if cache is not None else ComputationCache()
        self.settings = settings or TrendSettings()
        self.max_workers = max(1, max_workers)
        self.unit = "kg"
        self._sets: list[WorkoutSet] = []

    @property
    def sets(self) -> list[WorkoutSet]:
        return list(self._sets)

    # --- loading ---

    def load_sets(self, sets: list[WorkoutSet], unit: str = "kg") -> None:
        self._sets = list(sets)
        self.unit = normalize_unit(unit)
        self.cache.clear()
        logger.debug("session loaded %d sets", len(self._sets))

    def load_csv(self, text: str, unit: str = "kg", platform: Optional[str] = None) -> NormalizeOutput:
        """Normalize CSV text and, when it parses, replace the loaded sets."""
        out = normalize(text, NormalizeOptions(unit=normalize_unit(unit), platform=platform))
        if out.status == "ok":
            self.load_sets(out.sets, unit)
        return out

    def load_remote(self, payload: dict, unit: str = "kg") -> NormalizeOutput:
        out = map_remote_sets(payload)
        if out.status == "ok":
            self.load_sets(out.sets, unit)
        return out

    def filter_sets(self, start: Optional[date] = None, end: Optional[date] = None) -> list[WorkoutSet]:
        """Sets whose calendar day falls in [start, end]; open bounds when None."""
        return [
            s for s in self._sets
            if (start is None or s.start_time.date() >= start)
            and (end is None or s.start_time.date() <= end)
        ]

    # --- volume ---

    def muscle_volume(
        self,
        period: str = "weekly",
        start: Optional[date] = None,
        end: Optional[date] = None,
        grouped: bool = False,
    ) -> VolumeSeries:
        sets = self.filter_sets(start, end)
        key = filtered_cache_key(f"muscle_volume.{period}", range=_range_label(start, end))
        fp = fingerprint_sets(sets, grouped=grouped)
        return self.cache.get_or_compute(key, fp, lambda: aggregate(sets, self.lookup, period, grouped))

    def muscle_totals(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> dict[str, MuscleVolumeEntry]:
        sets = self.filter_sets(start, end)
        key = filtered_cache_key("muscle_totals", range=_range_label(start, end))
        return self.cache.get_or_compute(
            key, fingerprint_sets(sets), lambda: calculate_muscle_volume(sets, self.lookup)
        )

    def weekly_muscle_volume(self, weeks_back: int = 12, now: Optional[datetime] = None) -> list[WeeklyMuscleVolume]:
        sets = self._sets
        key = filtered_cache_key("weekly_muscle_volume", weeks=weeks_back)
        fp = fingerprint_sets(sets, now=now.isoformat() if now else None)
        return self.cache.get_or_compute(key, fp, lambda: weekly_muscle_volume(sets, self.lookup, weeks_back, now))

    def muscle_composition(self, period: str = "weekly") -> MuscleComposition:
        sets = self._sets
        return self.cache.get_or_compute(
            f"muscle_composition.{period}",
            fingerprint_sets(sets),
            lambda: latest_muscle_composition(sets, self.lookup, period),
        )

    # --- records & summaries ---

    def personal_records(self, start: Optional[date] = None, end: Optional[date] = None) -> list[WorkoutSet]:
        """PR flags judged against the full history, then clipped to the range."""
        all_sets = self._sets
        flagged = self.cache.get_or_compute(
            "personal_records", fingerprint_sets(all_sets), lambda: personal_records(all_sets)
        )
        if start is None and end is None:
            return flagged
        return [
            s for s in flagged
            if (start is None or s.start_time.date() >= start)
            and (end is None or s.start_time.date() <= end)
        ]

    def daily_summaries(self, start: Optional[date] = None, end: Optional[date] = None) -> list[DailySummary]:
        sets = self.filter_sets(start, end)
        key = filtered_cache_key("daily_summaries", range=_range_label(start, end))
        return self.cache.get_or_compute(key, fingerprint_sets(sets), lambda: daily_summaries(sets))

    def exercise_stats(self, start: Optional[date] = None, end: Optional[date] = None) -> list[ExerciseStats]:
        flagged = self.personal_records(start, end)
        key = filtered_cache_key("exercise_stats", range=_range_label(start, end))
        return self.cache.get_or_compute(key, fingerprint_sets(flagged), lambda: exercise_stats(flagged))

    def prs_over_time(self, period: str = "monthly") -> list[PrPoint]:
        flagged = self.personal_records()
        return self.cache.get_or_compute(
            f"prs_over_time.{period}", fingerprint_sets(flagged), lambda: prs_over_time(flagged, period)
        )

    # --- trends ---

    def trend_for(self, exercise: str, now: Optional[datetime] = None, unit: Optional[str] = None) -> TrendResult:
        """Trend card for one exercise; `unit` sets the weights quoted in the wording."""
        sets = self._sets
        now = now or effective_now(sets)
        unit = normalize_unit(unit, self.unit)
        fp = fingerprint_sets(sets, now=now.isoformat() if now else None, unit=unit)
        return self.cache.get_or_compute(
            f"trend:{exercise}",
            fp,
            lambda: analyze_exercise(sets, exercise, now, self.settings, unit),
        )

    def exercise_trends(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        now: Optional[datetime] = None,
        unit: Optional[str] = None,
    ) -> list[TrendResult]:
        """Classify every exercise in range, most sessions first. Inactive results are kept but flagged."""
        sets = self.filter_sets(start, end)
        # one anchor for every exercise, taken from the whole dataset
        now = now or effective_now(self._sets)
        unit = normalize_unit(unit, self.unit)
        key = filtered_cache_key("exercise_trends", range=_range_label(start, end))
        fp = fingerprint_sets(sets, now=now.isoformat() if now else None, unit=unit)
        return self.cache.get_or_compute(key, fp, lambda: self._classify_all(sets, now, unit))

    def _classify_all(self, sets: list[WorkoutSet], now: Optional[datetime], unit: str) -> list[TrendResult]:
        names = sorted({s.exercise_title for s in sets})
        if not names:
            return []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(names))) as pool:
            results = list(pool.map(
                lambda name: analyze_exercise(sets, name, now, self.settings, unit),
                names,
            ))
        results.sort(key=lambda r: (-r.sessions, r.exercise))
        logger.info("classified %d exercises", len(results))
        return results

    # --- weekly summaries ---

    def _anchor(self, now: Optional[datetime]) -> datetime:
        """Explicit now, else the latest loaded set; the wall clock only when nothing is loaded."""
        if now is not None:
            return now
        return effective_now(self._sets, default=datetime.now())

    def period_stats(self, start: datetime, end: datetime) -> PeriodStats:
        flagged = self.personal_records()
        key = filtered_cache_key("period_stats", range=f"{start.isoformat()}..{end.isoformat()}")
        return self.cache.get_or_compute(key, fingerprint_sets(flagged), lambda: period_stats(flagged, start, end))

    def week_over_week(self, now: Optional[datetime] = None) -> WeeklyComparison:
        now = self._anchor(now)
        flagged = self.personal_records()
        fp = fingerprint_sets(flagged, now=now.isoformat())
        return self.cache.get_or_compute("week_over_week", fp, lambda: week_over_week(flagged, now))

    def streak_info(self, now: Optional[datetime] = None) -> StreakInfo:
        now = self._anchor(now)
        sets = self._sets
        fp = fingerprint_sets(sets, now=now.isoformat())
        return self.cache.get_or_compute("streak_info", fp, lambda: streak_info(sets, now))

    def pr_insights(self, now: Optional[datetime] = None) -> PrInsights:
        now = self._anchor(now)
        flagged = self.personal_records()
        fp = fingerprint_sets(flagged, now=now.isoformat())
        return self.cache.get_or_compute("pr_insights", fp, lambda: pr_insights(flagged, now))
