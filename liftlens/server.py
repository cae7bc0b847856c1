"""MCP server: liftlens.import_csv, analytics tools, and read-only dataset resources."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from fastmcp import FastMCP

from .cache import DEFAULT_TTL_MS
from .models import (
    DatasetQuery,
    ExerciseTrendsInput,
    ImportCsvInput,
    MuscleVolumeInput,
    PersonalRecordsInput,
    WeeklySummaryInput,
)
from .muscles import MuscleLookup
from .service import DatasetService
from .storage import Storage

# Default DB next to the package (or use LIFTLENS_DB_PATH)
_db_path = os.environ.get("LIFTLENS_DB_PATH", str(Path(__file__).parent.parent / "liftlens.db"))
_cache_ttl_ms = int(os.environ.get("LIFTLENS_CACHE_TTL_MS", str(DEFAULT_TTL_MS)))
_muscle_csv = os.environ.get("LIFTLENS_MUSCLE_CSV")

_storage = Storage(_db_path)
_service = DatasetService(
    _storage,
    lookup=MuscleLookup.from_path(_muscle_csv) if _muscle_csv else None,
    cache_ttl_ms=_cache_ttl_ms,
)

mcp = FastMCP(name="liftlens")


@mcp.tool(name="liftlens.import_csv")
def liftlens_import_csv(payload: dict) -> dict:
    """
    Import a workout CSV export (Hevy, Strong, Lyfta, or a generic layout).
    `unit` is the unit of bare weight columns (kg or lbs); `platform` forces a layout.
    Returns the dataset_id, detected platform, a summary, and row-level warnings.
    Pass an existing dataset_id to replace that dataset.
    """
    inp = ImportCsvInput.model_validate(payload)
    return _service.import_csv(inp).model_dump(mode="json")


@mcp.tool(name="liftlens.muscle_volume")
def liftlens_muscle_volume(payload: dict) -> dict:
    """
    Sets per muscle (primary 1.0, secondary 0.5) bucketed by `period`
    (daily, weekly, monthly, yearly). `grouped=true` totals coarse groups instead.
    Optional `start`/`end` (YYYY-MM-DD) limit the range.
    """
    inp = MuscleVolumeInput.model_validate(payload)
    return _service.muscle_volume(inp).model_dump(mode="json")


@mcp.tool(name="liftlens.exercise_trends")
def liftlens_exercise_trends(payload: dict) -> dict:
    """
    Progress status per exercise: baseline, plateauing, gaining, losing, or maintaining,
    with confidence, evidence, and wording. Give `exercise` for one lift only.
    Exercises untrained for 60+ days come back with inactive=true and blank wording.
    """
    inp = ExerciseTrendsInput.model_validate(payload)
    return _service.exercise_trends(inp).model_dump(mode="json")


@mcp.tool(name="liftlens.personal_records")
def liftlens_personal_records(payload: dict) -> dict:
    """Weight PR sets in range (judged against the whole history) and PR counts per `period`."""
    inp = PersonalRecordsInput.model_validate(payload)
    return _service.personal_records(inp).model_dump(mode="json")


@mcp.tool(name="liftlens.daily_summaries")
def liftlens_daily_summaries(payload: dict) -> dict:
    """One row per training day: volume, sets, average reps, duration, and density."""
    inp = DatasetQuery.model_validate(payload)
    return _service.daily_summaries(inp).model_dump(mode="json")


@mcp.tool(name="liftlens.weekly_summary")
def liftlens_weekly_summary(payload: dict) -> dict:
    """
    This week against last week (volume, sets, workouts, PRs with deltas), weekly training
    streaks, and recent PRs with the previous best. `now` (ISO) defaults to the latest set.
    """
    inp = WeeklySummaryInput.model_validate(payload)
    return _service.weekly_summary(inp).model_dump(mode="json")


@mcp.resource("dataset://{dataset_id}/summary", mime_type="application/json")
def resource_dataset_summary(dataset_id: str) -> str:
    """Read-only: dataset metadata and per-exercise totals."""
    summary = _service.dataset_summary(dataset_id)
    if summary is None:
        return json.dumps({"error": "dataset not found", "dataset_id": dataset_id})
    return json.dumps(summary, indent=2, default=str)


@mcp.resource("dataset://{dataset_id}/warnings", mime_type="application/json")
def resource_dataset_warnings(dataset_id: str) -> str:
    """Read-only: warnings recorded when the dataset was imported."""
    return json.dumps(_service.dataset_warnings(dataset_id), indent=2)


def run() -> None:
    """Run the MCP server with stdio transport (default)."""
    logging.basicConfig(level=os.environ.get("LIFTLENS_LOG_LEVEL", "WARNING").upper())
    mcp.run()
