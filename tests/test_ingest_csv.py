"""CSV normalization: exporter layouts, unit conversion, row/file-level failures, remote payloads."""

from datetime import datetime

import pytest

from liftlens.ingest import detect_platform, map_remote_sets, normalize
from liftlens.models import NormalizeOptions

HEVY_CSV = """"title","start_time","end_time","description","exercise_title","superset_id","exercise_notes","set_index","set_type","weight_kg","reps","distance_km","duration_seconds","rpe"
"Push Day","5 Jan 2025, 18:30","5 Jan 2025, 19:30","","Bench Press (Barbell)","","","0","warmup","40","10","","",""
"Push Day","5 Jan 2025, 18:30","5 Jan 2025, 19:30","","Bench Press (Barbell)","","","1","normal","80","5","","","8"
"Push Day","5 Jan 2025, 18:30","5 Jan 2025, 19:30","","Triceps Pushdown","","","0","normal","25","12","","",""
"Legs","3 Jan 2025, 10:00","3 Jan 2025, 11:00","","Squat (Barbell)","","","0","normal","100","5","","",""
"""

STRONG_CSV = """Date,Workout Name,Duration,Exercise Name,Set Order,Weight,Reps,Distance,Seconds,Notes,Workout Notes,RPE
2025-01-06 07:00:00,Morning,1h 5m,Deadlift (Barbell),1,225,5,0,0,,,
2025-01-06 07:00:00,Morning,1h 5m,Deadlift (Barbell),W,135,5,0,0,,,
"""

LYFTA_CSV = """Title,Date,Exercise,Weight,Reps
Upper,2025-02-01 09:00:00,Pull Up,0,8
Upper,2025-02-01 09:00:00,Pull Up,0,7
"""


def test_hevy_layout_detected_and_sorted() -> None:
    """Hevy export: platform detected, most recent session first, exercises in file order."""
    out = normalize(HEVY_CSV)
    assert out.status == "ok", out.error
    assert out.platform == "hevy"
    assert out.summary.row_count == 4
    assert out.summary.sets_detected == 4
    assert out.summary.exercises_detected == 3
    names = [s.exercise_title for s in out.sets]
    assert names == ["Bench Press (Barbell)", "Bench Press (Barbell)", "Triceps Pushdown", "Squat (Barbell)"]
    first = out.sets[0]
    assert first.start_time == datetime(2025, 1, 5, 18, 30)
    assert first.end_time == datetime(2025, 1, 5, 19, 30)
    assert first.is_warmup
    assert out.sets[1].rpe == 8.0
    assert out.sets[1].weight_kg == 80.0
    assert out.sets[0].rpe is None


def test_strong_lbs_converted_and_order_letters() -> None:
    """Strong export in lbs: weights stored in kg, 'W' in Set Order marks a warm-up, end from duration."""
    out = normalize(STRONG_CSV, NormalizeOptions(unit="lbs"))
    assert out.status == "ok", out.error
    assert out.platform == "strong"
    warmup, working = out.sets
    assert warmup.is_warmup
    assert warmup.set_index == 0
    assert working.set_index == 1
    assert working.weight_kg == pytest.approx(225 * 0.45359237)
    assert working.end_time == datetime(2025, 1, 6, 8, 5)
    assert working.title == "Morning"


def test_lyfta_layout_and_inferred_indices() -> None:
    out = normalize(LYFTA_CSV)
    assert out.status == "ok", out.error
    assert out.platform == "lyfta"
    assert [s.set_index for s in out.sets] == [1, 2]
    assert all(s.weight_kg == 0.0 for s in out.sets)
    assert out.sets[0].title == "Upper"


def test_generic_layout_eu_numbers_and_day_first_dates() -> None:
    """Unknown headers map through synonyms; semicolon delimiter, decimal commas, unit from header."""
    csv_text = "Exercise;Date;Weight (kg);Repetitions\nBench Press (Barbell);06/01/2025;82,5;5\n"
    out = normalize(csv_text, NormalizeOptions(unit="lbs"))
    assert out.status == "ok", out.error
    assert out.platform == "generic"
    s = out.sets[0]
    assert s.start_time == datetime(2025, 1, 6)
    assert s.weight_kg == 82.5  # header says kg, overriding the lbs default
    assert s.reps == 5
    assert s.title == "Bench Press (Barbell)"


def test_missing_reps_column_is_malformed_input() -> None:
    out = normalize("exercise,date,weight\nSquat,2025-01-01,100\n")
    assert out.status == "error"
    assert out.error is not None
    assert out.error.type == "malformed_input"
    assert out.error.severity == "blocking"
    assert "reps" in out.error.message
    assert out.sets == []


def test_oversized_cell_is_malformed_input() -> None:
    """A cell past the csv module's field limit comes back as an error, not an exception."""
    huge = "x" * 200_000
    out = normalize(f'exercise,date,weight,reps\nSquat,2025-01-01,100,5\n"{huge}",2025-01-02,100,5\n')
    assert out.status == "error"
    assert out.error.type == "malformed_input"
    assert out.error.severity == "blocking"
    assert out.platform == "generic"
    assert out.sets == []


def test_empty_input_is_malformed_input() -> None:
    out = normalize("   \n")
    assert out.status == "error"
    assert out.error.type == "malformed_input"


def test_mostly_unreadable_dates_fail_whole_file() -> None:
    csv_text = (
        "exercise,date,weight,reps\n"
        "Squat,01 janv. 2025,100,5\n"
        "Squat,02 janv. 2025,100,5\n"
        "Squat,2025-01-03,100,5\n"
    )
    out = normalize(csv_text)
    assert out.status == "error"
    assert out.error.type == "date_format_mismatch"
    assert out.platform == "generic"


def test_bad_row_skipped_with_warning() -> None:
    """Non-numeric reps skip the row; blank weight counts as zero."""
    csv_text = (
        "exercise,date,weight,reps\n"
        "Squat,2025-01-03,100,5\n"
        "Squat,2025-01-03,100,lots\n"
        "Push Up,2025-01-03,,20\n"
    )
    out = normalize(csv_text)
    assert out.status == "ok"
    assert out.summary.rows_skipped == 1
    skipped = [w for w in out.warnings if w.type == "row_skipped"]
    assert len(skipped) == 1
    assert skipped[0].location == "row 2"
    push_up = next(s for s in out.sets if s.exercise_title == "Push Up")
    assert push_up.weight_kg == 0.0
    assert push_up.reps == 20


def test_detect_platform_from_headers() -> None:
    assert detect_platform(["Date", "Workout Name", "Exercise Name", "Set Order", "Weight", "Reps"]) == "strong"
    assert detect_platform(["title", "start_time", "exercise_title", "weight_kg", "reps"]) == "hevy"
    assert detect_platform(["excercise_name", "workout_perform_date", "weight", "reps"]) == "lyfta"
    assert detect_platform(["lift", "when", "load", "count"]) == "generic"


def test_remote_sets_mapping() -> None:
    """ISO and epoch (seconds or ms) times; sets without an exercise are skipped."""
    payload = {
        "sets": [
            {"exercise_title": "Squat (Barbell)", "start_time": "2025-01-05T10:00:00Z", "weight_kg": 100, "reps": 5},
            {"exercise_title": "Squat (Barbell)", "start_time": 1736071200, "weight_kg": 105, "reps": 3},
            {"exercise_title": "Squat (Barbell)", "start_time": 1736071200000, "weight_kg": 110, "reps": 1},
            {"exercise_title": "", "start_time": "2025-01-05T10:00:00Z"},
        ],
        "meta": {"page": 1},
    }
    out = map_remote_sets(payload)
    assert out.status == "ok"
    assert out.platform == "remote"
    assert len(out.sets) == 3
    assert all(s.start_time == datetime(2025, 1, 5, 10, 0) for s in out.sets)
    assert [s.set_index for s in out.sets] == [1, 2, 3]
    assert [s.weight_kg for s in out.sets] == [100, 105, 110]
    assert len(out.warnings) == 1
    assert out.warnings[0].location == "sets[3]"


def test_remote_payload_wrong_shape() -> None:
    out = map_remote_sets({"sets": "nope"})
    assert out.status == "error"
    assert out.error.type == "malformed_input"
