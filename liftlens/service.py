"""Dataset-level operations behind the tool server: import, then query through an AnalyticsSession."""

from __future__ import annotations

import logging
import threading
from datetime import date, datetime
from typing import Any, Callable, Optional

from .analytics import AnalyticsSession
from .cache import DEFAULT_TTL_MS, ComputationCache
from .models import (
    DatasetQuery,
    DatasetQueryOutput,
    ExerciseTrendsInput,
    ImportCsvInput,
    ImportCsvOutput,
    IssueRecord,
    MuscleVolumeInput,
    PersonalRecordsInput,
    PrInsights,
    WeeklyComparison,
    WeeklySummaryInput,
)
from .muscles import MuscleLookup
from .normalize import convert_volume, convert_weight, normalize_unit, parse_iso_datetime
from .storage import Storage, generate_id

logger = logging.getLogger(__name__)


class QueryError(Exception):
    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    def to_issue(self, location: str) -> IssueRecord:
        return IssueRecord(severity="blocking", type=self.kind, location=location, message=self.message)


def _parse_day(value: Optional[str], field: str) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        raise QueryError("invalid_query", f"{field} must be YYYY-MM-DD, got {value!r}") from None


def _parse_now(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    now = parse_iso_datetime(value)
    if now is None:
        raise QueryError("invalid_query", f"now must be an ISO datetime, got {value!r}")
    return now


def _comparison_in(comparison: WeeklyComparison, unit: str) -> WeeklyComparison:
    def stats_in(stats):
        return stats.model_copy(update={
            "total_volume": convert_volume(stats.total_volume, unit),
            "avg_volume_per_workout": convert_volume(stats.avg_volume_per_workout, unit),
        })

    volume = comparison.volume
    return comparison.model_copy(update={
        "this_week": stats_in(comparison.this_week),
        "last_week": stats_in(comparison.last_week),
        "volume": volume.model_copy(update={
            "current": convert_volume(volume.current, unit),
            "previous": convert_volume(volume.previous, unit),
            "delta": convert_volume(volume.delta, unit),
        }),
    })


def _pr_insights_in(insights: PrInsights, unit: str) -> PrInsights:
    recent = [
        pr.model_copy(update={
            "weight": convert_weight(pr.weight, unit),
            "previous_best": convert_weight(pr.previous_best, unit),
            "improvement": convert_weight(pr.improvement, unit),
        })
        for pr in insights.recent_prs
    ]
    return insights.model_copy(update={"recent_prs": recent})


class DatasetService:
    """Owns the storage handle and one AnalyticsSession per dataset (rebuilt from raw CSV on demand)."""

    def __init__(
        self,
        storage: Storage,
        lookup: Optional[MuscleLookup] = None,
        cache_ttl_ms: int = DEFAULT_TTL_MS,
    ):
        self.storage = storage
        self.lookup = lookup
        self.cache_ttl_ms = cache_ttl_ms
        self._sessions: dict[str, AnalyticsSession] = {}
        self._lock = threading.Lock()

    def _new_session(self) -> AnalyticsSession:
        return AnalyticsSession(
            lookup=self.lookup if self.lookup is not None else MuscleLookup.default(),
            cache=ComputationCache(default_ttl_ms=self.cache_ttl_ms),
        )

    def session(self, dataset_id: str) -> Optional[AnalyticsSession]:
        with self._lock:
            cached = self._sessions.get(dataset_id)
        if cached is not None:
            return cached
        row = self.storage.get_dataset(dataset_id)
        if row is None:
            return None
        session = self._new_session()
        out = session.load_csv(row["raw_csv"], row["unit"], row["platform"])
        if out.status != "ok":
            logger.warning("stored dataset %s no longer parses: %s", dataset_id, out.error)
            return None
        with self._lock:
            self._sessions[dataset_id] = session
        return session

    # --- import ---

    def import_csv(self, inp: ImportCsvInput) -> ImportCsvOutput:
        """Normalize, and on success persist raw CSV + metadata + warnings under a dataset id."""
        session = self._new_session()
        out = session.load_csv(inp.content, inp.unit, inp.platform)
        if out.status == "error":
            return ImportCsvOutput(
                status="error",
                platform=out.platform,
                summary=out.summary,
                warnings=out.warnings,
                error=out.error,
            )

        dataset_id = inp.dataset_id or generate_id("ds")
        times = [s.start_time for s in out.sets]
        self.storage.store_dataset(
            dataset_id,
            inp.content,
            inp.unit,
            out.platform,
            out.summary.row_count,
            first_ts=min(times) if times else None,
            last_ts=max(times) if times else None,
        )
        self.storage.store_issues(dataset_id, out.warnings)
        with self._lock:
            self._sessions[dataset_id] = session
        logger.info("imported dataset %s (%s, %d sets)", dataset_id, out.platform, len(out.sets))
        return ImportCsvOutput(
            status="ok",
            dataset_id=dataset_id,
            platform=out.platform,
            summary=out.summary,
            warnings=out.warnings,
        )

    # --- queries ---

    def _run(self, query: DatasetQuery, fn: Callable[[AnalyticsSession, Optional[date], Optional[date], str], Any]) -> DatasetQueryOutput:
        session = self.session(query.dataset_id)
        if session is None:
            issue = IssueRecord(
                severity="blocking",
                type="not_found",
                location=f"dataset:{query.dataset_id}",
                message="dataset not found",
            )
            return DatasetQueryOutput(status="error", dataset_id=query.dataset_id, error=issue)
        unit = normalize_unit(query.display_unit, session.unit)
        try:
            start = _parse_day(query.start, "start")
            end = _parse_day(query.end, "end")
            result = fn(session, start, end, unit)
        except QueryError as e:
            return DatasetQueryOutput(
                status="error", dataset_id=query.dataset_id, unit=unit, error=e.to_issue("query")
            )
        return DatasetQueryOutput(status="ok", dataset_id=query.dataset_id, unit=unit, result=result)

    def muscle_volume(self, inp: MuscleVolumeInput) -> DatasetQueryOutput:
        def fn(session: AnalyticsSession, start, end, unit):
            series = session.muscle_volume(inp.period, start, end, inp.grouped)
            return {
                "series": series,
                "composition": session.muscle_composition(inp.period),
            }
        return self._run(inp, fn)

    def exercise_trends(self, inp: ExerciseTrendsInput) -> DatasetQueryOutput:
        def fn(session: AnalyticsSession, start, end, unit):
            now = _parse_now(inp.now)
            if inp.exercise:
                return [session.trend_for(inp.exercise, now, unit)]
            return session.exercise_trends(start, end, now, unit)
        return self._run(inp, fn)

    def personal_records(self, inp: PersonalRecordsInput) -> DatasetQueryOutput:
        def fn(session: AnalyticsSession, start, end, unit):
            records = [
                {
                    "exercise": s.exercise_title,
                    "date": s.start_time,
                    "weight": convert_weight(s.weight_kg, unit),
                    "reps": s.reps,
                }
                for s in session.personal_records(start, end)
                if s.is_pr
            ]
            return {"records": records, "over_time": session.prs_over_time(inp.period)}
        return self._run(inp, fn)

    def daily_summaries(self, inp: DatasetQuery) -> DatasetQueryOutput:
        def fn(session: AnalyticsSession, start, end, unit):
            return [
                d.model_copy(update={
                    "total_volume": convert_volume(d.total_volume, unit),
                    "density": convert_volume(d.density, unit),
                })
                for d in session.daily_summaries(start, end)
            ]
        return self._run(inp, fn)

    def weekly_summary(self, inp: WeeklySummaryInput) -> DatasetQueryOutput:
        """Week-over-week deltas, streaks, and PR timeline as of `now`; start/end do not apply."""
        def fn(session: AnalyticsSession, start, end, unit):
            now = _parse_now(inp.now)
            return {
                "comparison": _comparison_in(session.week_over_week(now), unit),
                "streak": session.streak_info(now),
                "prs": _pr_insights_in(session.pr_insights(now), unit),
            }
        return self._run(inp, fn)

    # --- resources ---

    def dataset_summary(self, dataset_id: str) -> Optional[dict]:
        row = self.storage.get_dataset(dataset_id)
        if row is None:
            return None
        row.pop("raw_csv", None)
        session = self.session(dataset_id)
        if session is not None:
            stats = session.exercise_stats()
            row["exercises"] = [
                {
                    "name": st.name,
                    "total_sets": st.total_sets,
                    "total_volume": convert_volume(st.total_volume, row["unit"]),
                    "max_weight": convert_weight(st.max_weight, row["unit"]),
                    "pr_count": st.pr_count,
                }
                for st in stats
            ]
        return row

    def dataset_warnings(self, dataset_id: str) -> list[dict]:
        return self.storage.get_issues(dataset_id)
