"""Record normalizer: detect the export layout, map rows onto WorkoutSet. Stateless, no I/O."""

from __future__ import annotations

import csv
import io
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from pydantic import ValidationError

from .models import (
    IssueRecord,
    NormalizeOptions,
    NormalizeOutput,
    NormalizeSummary,
    RemoteSetsPayload,
    WorkoutSet,
)
from .normalize import (
    GENERIC_DATE_FORMATS,
    HEVY_DATE_FORMATS,
    LYFTA_DATE_FORMATS,
    STRONG_DATE_FORMATS,
    canonical_header,
    distance_to_km,
    guess_delimiter,
    header_unit_hint,
    normalize_set_type,
    normalize_unit,
    parse_datetime,
    parse_duration,
    parse_epoch_seconds,
    parse_number,
    rir_to_rpe,
    to_kg,
)

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("exercise", "start_time", "weight", "reps")
DEFAULT_WORKOUT_TITLE = "Workout"
_EXCERPT_LEN = 200


class NormalizeError(Exception):
    """Whole-input failure; converted to NormalizeOutput.error at the normalize() boundary."""

    def __init__(self, kind: str, message: str, location: str = "csv", raw_excerpt: str | None = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.location = location
        self.raw_excerpt = raw_excerpt

    def to_issue(self) -> IssueRecord:
        return IssueRecord(
            severity="blocking",
            type=self.kind,
            location=self.location,
            message=self.message,
            raw_excerpt=self.raw_excerpt,
        )


class _RowSkipped(Exception):
    def __init__(self, reason: str, date_failure: bool = False):
        super().__init__(reason)
        self.reason = reason
        self.date_failure = date_failure


@dataclass(frozen=True)
class ColumnLayout:
    """Resolved header mapping for one file: semantic field -> original header."""

    platform: str
    columns: dict[str, str]
    unit_hints: dict[str, str] = field(default_factory=dict)
    date_formats: tuple[str, ...] = GENERIC_DATE_FORMATS
    inferred: frozenset[str] = frozenset()  # fields matched by substring only

    def has(self, semantic: str) -> bool:
        return semantic in self.columns


# --- Known exporter layouts (canonical header -> semantic field) ---

HEVY_COLUMNS: dict[str, str] = {
    "title": "workout_title",
    "start_time": "start_time",
    "end_time": "end_time",
    "description": "workout_notes",
    "exercise_title": "exercise",
    "superset_id": "superset_id",
    "exercise_notes": "notes",
    "set_index": "set_index",
    "set_type": "set_type",
    "weight_kg": "weight",
    "weight_lbs": "weight",
    "reps": "reps",
    "distance_km": "distance",
    "distance_miles": "distance",
    "duration_seconds": "duration",
    "rpe": "rpe",
}

STRONG_COLUMNS: dict[str, str] = {
    "date": "start_time",
    "workout_name": "workout_title",
    "duration": "workout_duration",
    "workout_duration": "workout_duration",
    "exercise_name": "exercise",
    "set_order": "set_index",
    "weight": "weight",
    "weight_unit": "weight_unit",
    "reps": "reps",
    "distance": "distance",
    "distance_unit": "distance_unit",
    "seconds": "duration",
    "notes": "notes",
    "workout_notes": "workout_notes",
    "rpe": "rpe",
}

LYFTA_COLUMNS: dict[str, str] = {
    "title": "workout_title",
    "date": "start_time",
    "workout_perform_date": "start_time",
    "exercise": "exercise",
    "excercise_name": "exercise",
    "exercise_name": "exercise",
    "weight": "weight",
    "reps": "reps",
    "set_type": "set_type",
    "duration": "workout_duration",
    "workout_duration": "workout_duration",
    "distance": "distance",
}

_STRONG_SIGNATURE = {"date", "workout_name", "exercise_name", "set_order"}
_HEVY_SIGNATURE = {"exercise_title", "start_time"}

# Generic fallback: semantic field -> header synonyms, compared with all non-alphanumerics removed.
# Dict order is match priority; each header is claimed by at most one field.
SEMANTIC_SYNONYMS: dict[str, tuple[str, ...]] = {
    "exercise": (
        "exercise", "exercise name", "exercise title", "movement", "lift", "activity",
        "exercisename", "exercisetitle", "excercise name",
    ),
    "start_time": (
        "date", "time", "datetime", "timestamp", "when", "start", "start time", "start date",
        "started", "started at", "performed", "performed at", "logged at", "created at",
        "workout date", "session date", "log date",
    ),
    "weight": (
        "weight", "load", "resistance", "mass", "weight kg", "weight kgs", "weight lb", "weight lbs",
        "weight pounds", "kg", "kgs", "lb", "lbs", "pounds", "kilograms", "weight in kg", "weight in lbs",
    ),
    "reps": ("reps", "rep", "repetitions", "rep count", "reps count", "count", "number of reps"),
    "set_index": ("set", "set index", "set number", "set order", "set no", "set num", "set #"),
    "set_type": ("set type", "type", "kind", "set kind", "set category"),
    "rpe": ("rpe", "effort", "rate of perceived exertion", "intensity"),
    "rir": ("rir", "reps in reserve", "reps in tank"),
    "duration": ("duration", "duration seconds", "seconds", "secs", "elapsed", "elapsed time", "time seconds"),
    "workout_duration": ("workout duration", "session duration", "workout length", "total time"),
    "end_time": ("end", "end time", "end date", "ended at", "finished", "finished at", "completed at"),
    "distance": ("distance", "distance km", "distance miles", "distance m", "km", "miles", "meters"),
    "weight_unit": ("unit", "units", "weight unit", "weight units", "load unit"),
    "distance_unit": ("distance unit", "distance units"),
    "workout_title": ("workout", "workout name", "workout title", "routine", "routine name", "session", "session name", "title"),
    "notes": ("notes", "note", "exercise notes", "set notes", "comment", "comments"),
    "workout_notes": ("workout notes", "session notes", "description"),
    "superset_id": ("superset", "superset id", "superset group", "group"),
}

# Substring fallbacks for required fields when no synonym matched.
_CONTAINS_FALLBACK: dict[str, str] = {
    "exercise": "exercise",
    "start_time": "date",
    "weight": "weight",
    "reps": "rep",
}


def _squash(header: str) -> str:
    return re.sub(r"[^a-z0-9#]", "", (header or "").lower())


def _table_layout(platform: str, headers: list[str], table: dict[str, str], date_formats: tuple[str, ...]) -> ColumnLayout:
    columns: dict[str, str] = {}
    hints: dict[str, str] = {}
    for h in headers:
        semantic = table.get(canonical_header(h))
        if semantic and semantic not in columns:
            columns[semantic] = h
            hint = header_unit_hint(h)
            if hint:
                hints[semantic] = hint
    return ColumnLayout(platform=platform, columns=columns, unit_hints=hints, date_formats=date_formats)


def _generic_layout(headers: list[str]) -> ColumnLayout:
    squashed = {h: _squash(h) for h in headers}
    claimed: set[str] = set()
    columns: dict[str, str] = {}
    hints: dict[str, str] = {}
    inferred: set[str] = set()
    for semantic, synonyms in SEMANTIC_SYNONYMS.items():
        targets = {_squash(s) for s in synonyms}
        for h in headers:
            if h in claimed:
                continue
            if squashed[h] in targets:
                columns[semantic] = h
                claimed.add(h)
                break
    for semantic, needle in _CONTAINS_FALLBACK.items():
        if semantic in columns:
            continue
        h = next((h for h in headers if h not in claimed and needle in h.lower()), None)
        if h is not None:
            columns[semantic] = h
            claimed.add(h)
            inferred.add(semantic)
    for semantic, h in columns.items():
        hint = header_unit_hint(h)
        if hint:
            hints[semantic] = hint
    return ColumnLayout(
        platform="generic",
        columns=columns,
        unit_hints=hints,
        date_formats=GENERIC_DATE_FORMATS,
        inferred=frozenset(inferred),
    )


def detect_platform(headers: list[str]) -> str:
    """Identify the exporter from header names alone."""
    canon = {canonical_header(h) for h in headers}
    if _HEVY_SIGNATURE <= canon:
        return "hevy"
    if _STRONG_SIGNATURE <= canon:
        return "strong"
    if "excercise_name" in canon or "workout_perform_date" in canon:
        return "lyfta"
    if {"title", "date", "exercise", "weight", "reps"} <= canon:
        return "lyfta"
    return "generic"


def resolve_layout(headers: list[str], platform: str | None = None) -> ColumnLayout:
    """Build the ColumnLayout for these headers. Raises NormalizeError when required fields are missing."""
    headers = [h for h in headers if h is not None]
    if not any((h or "").strip() for h in headers):
        raise NormalizeError("malformed_input", "No header row found.")
    platform = platform or detect_platform(headers)
    if platform == "hevy":
        layout = _table_layout("hevy", headers, HEVY_COLUMNS, HEVY_DATE_FORMATS)
    elif platform == "strong":
        layout = _table_layout("strong", headers, STRONG_COLUMNS, STRONG_DATE_FORMATS)
    elif platform == "lyfta":
        layout = _table_layout("lyfta", headers, LYFTA_COLUMNS, LYFTA_DATE_FORMATS)
    else:
        layout = _generic_layout(headers)
    missing = [f for f in REQUIRED_FIELDS if not layout.has(f)]
    if missing:
        raise NormalizeError(
            "malformed_input",
            f"Required columns missing ({', '.join(missing)}); found: {', '.join(headers)}.",
            location="header",
            raw_excerpt=",".join(headers)[:_EXCERPT_LEN],
        )
    return layout


# --- Row normalization ---


def _cell(row: dict[str, Any], layout: ColumnLayout, semantic: str) -> str:
    header = layout.columns.get(semantic)
    if header is None:
        return ""
    value = row.get(header)
    return "" if value is None else str(value).strip()


def _numeric_cell(row: dict[str, Any], layout: ColumnLayout, semantic: str, label: str) -> float | None:
    """Blank -> None; non-numeric text -> row skipped."""
    raw = _cell(row, layout, semantic)
    if not raw:
        return None
    n = parse_number(raw)
    if n is None:
        raise _RowSkipped(f"non-numeric {label} {raw!r}")
    return n


def _normalize_row(row: dict[str, Any], layout: ColumnLayout, options: NormalizeOptions) -> dict[str, Any]:
    """Map one raw row to WorkoutSet fields (as a dict). Raises _RowSkipped."""
    exercise = _cell(row, layout, "exercise")
    if not exercise:
        raise _RowSkipped("blank exercise name")

    raw_date = _cell(row, layout, "start_time")
    start = parse_datetime(raw_date, layout.date_formats)
    if start is None:
        raise _RowSkipped(f"unparseable date {raw_date!r}", date_failure=True)

    weight = _numeric_cell(row, layout, "weight", "weight") or 0.0
    reps = _numeric_cell(row, layout, "reps", "reps") or 0.0

    unit = normalize_unit(
        _cell(row, layout, "weight_unit") or layout.unit_hints.get("weight"),
        options.unit,
    )
    weight_kg = to_kg(max(0.0, weight), unit)

    distance = parse_number(_cell(row, layout, "distance")) or 0.0
    distance_unit = _cell(row, layout, "distance_unit") or layout.unit_hints.get("distance") or "km"
    distance_km = distance_to_km(max(0.0, distance), distance_unit)

    end: datetime | None = None
    raw_end = _cell(row, layout, "end_time")
    if raw_end:
        end = parse_datetime(raw_end, layout.date_formats)
    if end is None:
        workout_seconds = parse_duration(_cell(row, layout, "workout_duration"))
        if workout_seconds > 0:
            end = start + timedelta(seconds=workout_seconds)

    set_type = normalize_set_type(_cell(row, layout, "set_type"))
    raw_index = _cell(row, layout, "set_index")
    index_num = parse_number(raw_index)
    if index_num is None:
        set_index = 0
        if raw_index:
            # Strong marks special sets in the order column (W, D, F)
            set_type = normalize_set_type(raw_index)
    else:
        set_index = max(0, int(index_num))

    rpe: float | None = None
    raw_rpe = parse_number(_cell(row, layout, "rpe"))
    if raw_rpe is not None and raw_rpe > 0:
        rpe = raw_rpe
    else:
        rir = parse_number(_cell(row, layout, "rir"))
        if rir is not None:
            rpe = rir_to_rpe(rir)

    return {
        "title": _cell(row, layout, "workout_title"),
        "start_time": start,
        "end_time": end,
        "description": _cell(row, layout, "workout_notes"),
        "exercise_title": exercise,
        "superset_id": _cell(row, layout, "superset_id"),
        "exercise_notes": _cell(row, layout, "notes"),
        "set_index": set_index,
        "set_type": set_type,
        "weight_kg": weight_kg,
        "reps": max(0, int(round(reps))),
        "distance_km": distance_km,
        "duration_seconds": max(0, parse_duration(_cell(row, layout, "duration"))),
        "rpe": rpe,
    }


# --- Post-processing ---


def infer_workout_titles(records: list[dict[str, Any]]) -> None:
    """Fill blank/default titles per calendar day: 'A + B' for up to 3 exercises, else a count."""
    by_day: dict[Any, list[dict[str, Any]]] = {}
    for r in records:
        if not r["title"] or r["title"] == DEFAULT_WORKOUT_TITLE:
            by_day.setdefault(r["start_time"].date(), []).append(r)
    for day_records in by_day.values():
        exercises = list(dict.fromkeys(r["exercise_title"] for r in day_records))
        if len(exercises) <= 3:
            title = " + ".join(exercises)
        else:
            title = f"Workout ({len(exercises)} exercises)"
        for r in day_records:
            r["title"] = title


def assign_set_indices(records: list[dict[str, Any]]) -> None:
    """Number sets 1..n per exercise within each (title, start_time) session, in input order."""
    counters: dict[tuple[str, datetime, str], int] = {}
    for r in records:
        key = (r["title"], r["start_time"], r["exercise_title"])
        counters[key] = counters.get(key, 0) + 1
        r["set_index"] = counters[key]


def sort_sets(sets: list[WorkoutSet]) -> list[WorkoutSet]:
    """Most recent session first; within a session exercises keep file order, sets by index."""
    first_seen: dict[tuple[datetime, str], int] = {}
    for i, s in enumerate(sets):
        first_seen.setdefault((s.start_time, s.exercise_title), i)
    ordered = sorted(sets, key=lambda s: (first_seen[(s.start_time, s.exercise_title)], s.set_index))
    return sorted(ordered, key=lambda s: s.start_time, reverse=True)


def _build_sets(records: list[dict[str, Any]], warnings: list[IssueRecord]) -> list[WorkoutSet]:
    out: list[WorkoutSet] = []
    for i, r in enumerate(records):
        try:
            out.append(WorkoutSet(**r))
        except ValidationError as e:
            warnings.append(IssueRecord(
                severity="warning",
                type="row_skipped",
                location=f"set {i + 1}",
                message=f"Set rejected: {e.errors()[0].get('msg', 'invalid value')}.",
                raw_excerpt=r.get("exercise_title"),
            ))
    return out


def _read_rows(
    reader: csv.DictReader,
    layout: ColumnLayout,
    options: NormalizeOptions,
    warnings: list[IssueRecord],
) -> tuple[list[dict[str, Any]], int, int]:
    """Normalize every non-blank row. Returns (records, rows seen, rows whose date failed)."""
    records: list[dict[str, Any]] = []
    row_count = 0
    date_failures = 0
    for i, row in enumerate(reader, start=1):
        if not any((v or "").strip() for v in row.values() if isinstance(v, str)):
            continue
        row_count += 1
        try:
            records.append(_normalize_row(row, layout, options))
        except _RowSkipped as e:
            if e.date_failure:
                date_failures += 1
            logger.debug("row %d skipped: %s", i, e.reason)
            excerpt = ",".join(str(v) for v in row.values() if v is not None)
            warnings.append(IssueRecord(
                severity="warning",
                type="row_skipped",
                location=f"row {i}",
                message=f"Row skipped: {e.reason}.",
                raw_excerpt=excerpt[:_EXCERPT_LEN],
            ))
    return records, row_count, date_failures


def _error_output(err: NormalizeError, platform: str | None, summary: NormalizeSummary) -> NormalizeOutput:
    logger.warning("normalization failed (%s): %s", err.kind, err.message)
    return NormalizeOutput(status="error", platform=platform, error=err.to_issue(), summary=summary)


def normalize(raw_text: str, options: NormalizeOptions | None = None) -> NormalizeOutput:
    """
    Normalize an exported CSV (Hevy, Strong, Lyfta, or any layout the synonym table can map)
    into canonical sets. Never raises for bad input: whole-file problems come back as
    status=error with one blocking IssueRecord, bad rows as row_skipped warnings.
    """
    options = options or NormalizeOptions()
    text = (raw_text or "").lstrip("﻿")
    if not text.strip():
        return _error_output(NormalizeError("malformed_input", "Input is empty."), None, NormalizeSummary())

    reader = csv.DictReader(io.StringIO(text.strip()), delimiter=guess_delimiter(text.strip()))
    try:
        layout = resolve_layout(list(reader.fieldnames or []), options.platform)
    except csv.Error as e:
        err = NormalizeError("malformed_input", f"CSV header could not be read: {e}.", location="header")
        return _error_output(err, options.platform, NormalizeSummary())
    except NormalizeError as e:
        return _error_output(e, options.platform, NormalizeSummary())

    warnings: list[IssueRecord] = []
    for semantic in sorted(layout.inferred):
        warnings.append(IssueRecord(
            severity="warning",
            type="low_mapping_confidence",
            location="header",
            message=f"Column '{layout.columns[semantic]}' was guessed as {semantic}; check the result.",
        ))

    try:
        records, row_count, date_failures = _read_rows(reader, layout, options, warnings)
    except csv.Error as e:
        err = NormalizeError(
            "malformed_input",
            f"CSV could not be read: {e}.",
            location=f"line {reader.line_num}",
        )
        return _error_output(err, layout.platform, NormalizeSummary(field_mappings=dict(layout.columns)))

    summary = NormalizeSummary(
        row_count=row_count,
        rows_skipped=row_count - len(records),
        field_mappings=dict(layout.columns),
    )
    if row_count and date_failures * 2 > row_count:
        return _error_output(
            NormalizeError(
                "date_format_mismatch",
                f"Dates could not be read in {date_failures} of {row_count} rows. "
                "Export with English month names or ISO dates (YYYY-MM-DD HH:MM), "
                "or switch the app language to English before exporting.",
                location=layout.columns["start_time"],
            ),
            layout.platform,
            summary,
        )

    infer_workout_titles(records)
    if not layout.has("set_index"):
        assign_set_indices(records)

    sets = sort_sets(_build_sets(records, warnings))
    summary.sets_detected = len(sets)
    summary.rows_skipped = row_count - len(sets)
    summary.exercises_detected = len({s.exercise_title for s in sets})
    logger.info(
        "normalized %d sets from %d rows (%s layout, %d skipped)",
        len(sets), row_count, layout.platform, summary.rows_skipped,
    )
    return NormalizeOutput(
        status="ok",
        platform=layout.platform,
        sets=sets,
        warnings=warnings,
        summary=summary,
    )


# --- Remote sync payloads ---


def _remote_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # Milliseconds when the value is too large to be seconds
        return parse_epoch_seconds(value / 1000 if value > 1e11 else value)
    return parse_datetime(value, HEVY_DATE_FORMATS + GENERIC_DATE_FORMATS)


def map_remote_sets(payload: RemoteSetsPayload | dict) -> NormalizeOutput:
    """
    Map a `{sets, meta?}` response from an upstream sync service onto canonical sets.
    Weights are already kilograms; times may be ISO-8601, epoch seconds, or Hevy display format.
    """
    try:
        data = payload if isinstance(payload, RemoteSetsPayload) else RemoteSetsPayload.model_validate(payload)
    except ValidationError as e:
        err = NormalizeError("malformed_input", f"Remote payload is not a sets response: {e.errors()[0].get('msg')}.", location="sets")
        return _error_output(err, "remote", NormalizeSummary())

    warnings: list[IssueRecord] = []
    records: list[dict[str, Any]] = []
    needs_index: list[dict[str, Any]] = []
    for i, s in enumerate(data.sets, start=1):
        exercise = (s.exercise_title or "").strip()
        start = _remote_datetime(s.start_time)
        if not exercise or start is None:
            reason = "blank exercise name" if not exercise else f"unparseable start_time {s.start_time!r}"
            warnings.append(IssueRecord(
                severity="warning",
                type="row_skipped",
                location=f"sets[{i - 1}]",
                message=f"Set skipped: {reason}.",
            ))
            continue
        record = {
            "title": (s.title or "").strip(),
            "start_time": start,
            "end_time": _remote_datetime(s.end_time),
            "description": s.description or "",
            "exercise_title": exercise,
            "superset_id": "" if s.superset_id is None else str(s.superset_id),
            "exercise_notes": s.exercise_notes or "",
            "set_index": max(0, s.set_index or 0),
            "set_type": normalize_set_type(s.set_type),
            "weight_kg": max(0.0, s.weight_kg or 0.0),
            "reps": max(0, int(round(s.reps or 0))),
            "distance_km": max(0.0, s.distance_km or 0.0),
            "duration_seconds": max(0, int(round(s.duration_seconds or 0))),
            "rpe": s.rpe if s.rpe else None,
        }
        records.append(record)
        if s.set_index is None:
            needs_index.append(record)

    infer_workout_titles(records)
    if needs_index:
        assign_set_indices(needs_index)
    sets = sort_sets(_build_sets(records, warnings))
    summary = NormalizeSummary(
        row_count=len(data.sets),
        sets_detected=len(sets),
        rows_skipped=len(data.sets) - len(sets),
        exercises_detected=len({s.exercise_title for s in sets}),
    )
    logger.info("mapped %d remote sets (%d skipped)", len(sets), summary.rows_skipped)
    return NormalizeOutput(status="ok", platform="remote", sets=sets, warnings=warnings, summary=summary)
