"""Pydantic models for liftlens: canonical set schema, derived analytics, tool inputs/outputs."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

WeightUnit = Literal["kg", "lbs"]
Platform = Literal["hevy", "strong", "lyfta", "generic", "remote"]
Period = Literal["daily", "weekly", "monthly", "yearly"]
TrendStatus = Literal["new", "stagnant", "overload", "regression", "neutral"]
Confidence = Literal["low", "medium", "high"]


# --- Canonical set schema ---


class WorkoutSet(BaseModel):
    """One performed set. Weight is always stored in kilograms."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    start_time: datetime
    end_time: Optional[datetime] = None
    description: str = ""
    exercise_title: str
    superset_id: str = ""
    exercise_notes: str = ""
    set_index: int = 0
    set_type: str = "normal"
    weight_kg: float = Field(default=0.0, ge=0)
    reps: int = Field(default=0, ge=0)
    distance_km: float = Field(default=0.0, ge=0)
    duration_seconds: int = Field(default=0, ge=0)
    rpe: Optional[float] = None
    is_pr: bool = False

    @property
    def is_warmup(self) -> bool:
        return self.set_type == "warmup"

    @property
    def volume_kg(self) -> float:
        return self.weight_kg * self.reps


# --- Normalizer input/output ---


class NormalizeOptions(BaseModel):
    unit: WeightUnit = "kg"  # unit of bare weight columns
    platform: Optional[Platform] = None  # force a layout instead of detecting it


class IssueRecord(BaseModel):
    severity: Literal["warning", "blocking"]
    type: str  # malformed_input | row_skipped | date_format_mismatch | low_mapping_confidence
    location: str
    message: str
    raw_excerpt: Optional[str] = None


class NormalizeSummary(BaseModel):
    row_count: int = 0
    sets_detected: int = 0
    rows_skipped: int = 0
    exercises_detected: int = 0
    field_mappings: dict[str, str] = Field(default_factory=dict)  # semantic field -> header


class NormalizeOutput(BaseModel):
    status: Literal["ok", "error"]
    platform: Optional[Platform] = None
    sets: list[WorkoutSet] = Field(default_factory=list)
    warnings: list[IssueRecord] = Field(default_factory=list)
    error: Optional[IssueRecord] = None
    summary: NormalizeSummary = Field(default_factory=NormalizeSummary)

    @model_validator(mode="after")
    def _check_error_status(self) -> "NormalizeOutput":
        if self.status == "error":
            if self.error is None:
                raise ValueError("error required when status is error")
            if self.sets:
                raise ValueError("sets must be empty when status is error")
        return self


class RemoteSet(BaseModel):
    """Flat set shape returned by upstream sync services (Hevy/Lyfta backends)."""

    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    start_time: Optional[str | float | int] = None
    end_time: Optional[str | float | int] = None
    description: Optional[str] = None
    exercise_title: Optional[str] = None
    superset_id: Optional[str | int] = None
    exercise_notes: Optional[str] = None
    set_index: Optional[int] = None
    set_type: Optional[str] = None
    weight_kg: Optional[float] = None
    reps: Optional[float] = None
    distance_km: Optional[float] = None
    duration_seconds: Optional[float] = None
    rpe: Optional[float] = None


class RemoteSetsPayload(BaseModel):
    sets: list[RemoteSet] = Field(default_factory=list)
    meta: Optional[dict] = None


# --- Muscle lookup & volume ---


class ExerciseMuscleData(BaseModel):
    name: str
    equipment: str = ""
    primary_muscle: str
    secondary_muscles: list[str] = Field(default_factory=list)


class ExerciseContribution(BaseModel):
    sets: float = 0.0
    primary_sets: float = 0.0
    secondary_sets: float = 0.0


class MuscleVolumeEntry(BaseModel):
    muscle_id: str
    muscle: str  # display name
    sets: float = 0.0
    exercises: dict[str, ExerciseContribution] = Field(default_factory=dict)


class TimeBucket(BaseModel):
    key: str  # 2025-01-06 / 2025-01 / 2025
    start: date
    label: str
    volumes: dict[str, float] = Field(default_factory=dict)


class VolumeSeries(BaseModel):
    period: Period
    series: list[TimeBucket] = Field(default_factory=list)
    muscle_keys: list[str] = Field(default_factory=list)


class WeeklyMuscleVolume(BaseModel):
    week_start: date  # Monday
    week_end: date  # Sunday
    label: str
    muscles: dict[str, MuscleVolumeEntry] = Field(default_factory=dict)
    total_sets: float = 0.0


class CompositionSlice(BaseModel):
    muscle: str
    sets: float


class MuscleComposition(BaseModel):
    label: str = ""
    slices: list[CompositionSlice] = Field(default_factory=list)  # largest first


# --- Trend analysis ---


class ExerciseSessionEntry(BaseModel):
    """One calendar day of an exercise, collapsed to its best set."""

    date: datetime
    weight: float
    reps: int
    one_rep_max: float
    volume: float
    sets: int
    total_reps: int
    max_reps: int


class PlateauBand(BaseModel):
    weight: float
    min_reps: int
    max_reps: int


class TrendResult(BaseModel):
    exercise: str = ""
    status: TrendStatus
    label: str
    confidence: Confidence = "low"
    evidence: list[str] = Field(default_factory=list)
    is_bodyweight_like: bool = False
    diff_pct: Optional[float] = None
    plateau: Optional[PlateauBand] = None
    sessions: int = 0
    last_session: Optional[datetime] = None
    inactive: bool = False
    title: str = ""
    description: str = ""
    subtext: str = ""


# --- Summary metrics ---


class DailySummary(BaseModel):
    date: date
    total_volume: float = 0.0
    workout_title: str = ""
    sets: int = 0
    avg_reps: float = 0.0
    duration_minutes: float = 0.0
    density: float = 0.0  # volume per minute; 0 when no usable duration


class ExerciseHistoryEntry(BaseModel):
    date: datetime
    weight: float
    reps: int
    one_rep_max: float
    volume: float
    is_pr: bool = False


class ExerciseStats(BaseModel):
    name: str
    total_sets: int = 0
    total_volume: float = 0.0
    max_weight: float = 0.0
    pr_count: int = 0
    history: list[ExerciseHistoryEntry] = Field(default_factory=list)  # most recent first


class PrPoint(BaseModel):
    key: str
    label: str
    count: int = 0


# --- Period summaries ---


class PeriodStats(BaseModel):
    start: datetime
    end: datetime
    total_volume: float = 0.0
    total_sets: int = 0
    total_workouts: int = 0
    total_prs: int = 0
    avg_sets_per_workout: int = 0
    avg_volume_per_workout: float = 0.0


class DeltaResult(BaseModel):
    current: float
    previous: float
    delta: float
    delta_percent: int  # 100 when previous is 0 and current is not
    direction: Literal["up", "down", "same"]


class WeeklyComparison(BaseModel):
    this_week: PeriodStats
    last_week: PeriodStats
    volume: DeltaResult
    sets: DeltaResult
    workouts: DeltaResult
    prs: DeltaResult


class StreakInfo(BaseModel):
    current_streak: int = 0  # consecutive training weeks ending this week or last
    longest_streak: int = 0
    is_on_streak: bool = False
    streak_type: Literal["hot", "warm", "cold"] = "cold"
    workouts_this_week: int = 0
    avg_workouts_per_week: float = 0.0
    total_weeks_tracked: int = 0
    weeks_with_workouts: int = 0
    consistency_score: int = 0  # 0-100


class RecentPr(BaseModel):
    date: datetime
    exercise: str
    weight: float
    reps: int
    previous_best: float
    improvement: float


class PrInsights(BaseModel):
    days_since_last_pr: int = -1  # -1 when there are no PRs
    last_pr_date: Optional[datetime] = None
    last_pr_exercise: Optional[str] = None
    pr_drought: bool = True
    recent_prs: list[RecentPr] = Field(default_factory=list)
    pr_frequency: float = 0.0  # PRs per week over the last 30 days
    total_prs: int = 0


# --- Tool inputs/outputs ---


class ImportCsvInput(BaseModel):
    dataset_id: Optional[str] = None  # replaces an existing dataset when given
    content: str
    unit: WeightUnit = "kg"
    platform: Optional[Platform] = None


class ImportCsvOutput(BaseModel):
    status: Literal["ok", "error"]
    dataset_id: Optional[str] = None  # null when nothing was stored
    platform: Optional[Platform] = None
    summary: NormalizeSummary
    warnings: list[IssueRecord] = Field(default_factory=list)
    error: Optional[IssueRecord] = None


class DatasetQuery(BaseModel):
    dataset_id: str
    start: Optional[str] = None  # YYYY-MM-DD, inclusive
    end: Optional[str] = None  # YYYY-MM-DD, inclusive
    display_unit: Optional[WeightUnit] = None  # defaults to the dataset's unit


class MuscleVolumeInput(DatasetQuery):
    period: Period = "weekly"
    grouped: bool = False


class ExerciseTrendsInput(DatasetQuery):
    exercise: Optional[str] = None  # all exercises when omitted
    now: Optional[str] = None  # ISO datetime; defaults to the latest set in the dataset


class PersonalRecordsInput(DatasetQuery):
    period: Period = "monthly"  # bucket size for PR counts over time


class WeeklySummaryInput(DatasetQuery):
    now: Optional[str] = None  # ISO datetime; defaults to the latest set in the dataset


class DatasetQueryOutput(BaseModel):
    status: Literal["ok", "error"]
    dataset_id: str
    unit: WeightUnit = "kg"  # unit of every weight/volume in result
    result: Any = None
    error: Optional[IssueRecord] = None
