"""Exercise -> muscle lookup table and body-map muscle tables (ids, groups, propagation)."""

from __future__ import annotations

import csv
import io
import logging
from pathlib import Path
from typing import Iterable, Mapping, Optional

from .models import ExerciseMuscleData

logger = logging.getLogger(__name__)

_DATA_DIR = Path(__file__).resolve().parent / "data"
DEFAULT_LOOKUP_CSV = _DATA_DIR / "exercise_muscles.csv"

FULL_BODY = "Full Body"
CARDIO = "Cardio"

# Muscle names used in the lookup table -> body-map muscle ids.
MUSCLE_IDS: dict[str, tuple[str, ...]] = {
    "Abdominals": ("lower-abdominals", "upper-abdominals"),
    "Abductors": ("gluteus-medius",),
    "Adductors": ("inner-thigh",),
    "Biceps": ("long-head-bicep", "short-head-bicep"),
    "Calves": ("gastrocnemius", "soleus", "tibialis"),
    "Chest": ("mid-lower-pectoralis", "upper-pectoralis"),
    "Forearms": ("wrist-extensors", "wrist-flexors"),
    "Glutes": ("gluteus-maximus", "gluteus-medius"),
    "Hamstrings": ("medial-hamstrings", "lateral-hamstrings"),
    "Lats": ("lats",),
    "Lower Back": ("lowerback",),
    "Neck": ("neck",),
    "Quadriceps": ("outer-quadricep", "rectus-femoris", "inner-quadricep"),
    "Shoulders": ("anterior-deltoid", "lateral-deltoid", "posterior-deltoid"),
    "Traps": ("upper-trapezius", "lower-trapezius", "traps-middle"),
    "Triceps": ("medial-head-triceps", "long-head-triceps", "lateral-head-triceps"),
    "Upper Back": ("lats", "upper-trapezius", "lower-trapezius", "traps-middle", "posterior-deltoid"),
    "Obliques": ("obliques",),
}

# Anatomical groups whose members share volume after accumulation.
MUSCLE_GROUPS: dict[str, tuple[str, ...]] = {
    "Shoulders": ("anterior-deltoid", "lateral-deltoid", "posterior-deltoid"),
    "Traps": ("upper-trapezius", "lower-trapezius", "traps-middle"),
    "Biceps": ("long-head-bicep", "short-head-bicep"),
    "Triceps": ("medial-head-triceps", "long-head-triceps", "lateral-head-triceps"),
    "Chest": ("mid-lower-pectoralis", "upper-pectoralis"),
    "Quadriceps": ("outer-quadricep", "rectus-femoris", "inner-quadricep"),
    "Hamstrings": ("medial-hamstrings", "lateral-hamstrings"),
    "Glutes": ("gluteus-maximus", "gluteus-medius"),
    "Calves": ("gastrocnemius", "soleus", "tibialis"),
    "Abdominals": ("lower-abdominals", "upper-abdominals"),
    "Forearms": ("wrist-extensors", "wrist-flexors"),
}

# Display name per muscle id.
MUSCLE_NAMES: dict[str, str] = {
    **{mid: group for group, ids in MUSCLE_GROUPS.items() for mid in ids},
    "lats": "Lats",
    "lowerback": "Lower Back",
    "obliques": "Obliques",
    "neck": "Neck",
    "inner-thigh": "Adductors",
}

ALL_MUSCLE_IDS: tuple[str, ...] = tuple(MUSCLE_NAMES)

FULL_BODY_TARGETS: tuple[str, ...] = (
    "Chest", "Shoulders", "Triceps", "Biceps", "Forearms", "Lats", "Upper Back", "Lower Back",
    "Traps", "Abdominals", "Obliques", "Quadriceps", "Hamstrings", "Glutes", "Calves",
)


def full_body_muscle_ids() -> tuple[str, ...]:
    """Every muscle id covered by the full-body target set, each once."""
    ids: dict[str, None] = {}
    for name in FULL_BODY_TARGETS:
        for mid in MUSCLE_IDS.get(name, ()):
            ids[mid] = None
    return tuple(ids)


def muscle_ids_for(name: str) -> tuple[str, ...]:
    return MUSCLE_IDS.get((name or "").strip(), ())


def propagate_group_volume(
    volumes: Mapping[str, float],
    groups: Mapping[str, Iterable[str]] = MUSCLE_GROUPS,
) -> dict[str, float]:
    """
    Return a copy where every member of a group reads at least the group's maximum.
    Groups with no volume are left alone; ids outside any group are singletons.
    """
    out = dict(volumes)
    for members in groups.values():
        members = tuple(members)
        group_max = max((out.get(m, 0.0) for m in members), default=0.0)
        if group_max <= 0:
            continue
        for m in members:
            if out.get(m, 0.0) < group_max:
                out[m] = group_max
    return out


# --- Coarse groups (Chest/Back/Legs/...) for grouped charts ---

COARSE_GROUP_PATTERNS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Chest", ("chest", "pec")),
    ("Back", ("lat", "upper back", "back", "lower back")),
    ("Shoulders", ("shoulder", "delto")),
    ("Arms", ("bicep", "tricep", "forearm", "arms")),
    ("Legs", ("quad", "hamstring", "glute", "calv", "thigh", "hip", "adductor", "abductor")),
    ("Core", ("abdom", "core", "waist", "oblique")),
    ("Cardio", ("cardio",)),
    ("Full Body", ("full body", "full-body")),
)

FULL_BODY_COARSE_GROUPS: tuple[str, ...] = ("Chest", "Back", "Legs", "Shoulders", "Arms", "Core")


def muscle_group_of(name: str | None) -> str:
    """Coarse group for a lookup-table muscle name; unknown names map to 'Other'."""
    key = (name or "").strip().lower()
    if not key or key == "none":
        return "Other"
    for group, patterns in COARSE_GROUP_PATTERNS:
        if any(p in key for p in patterns):
            return group
    return "Other"


# --- Lookup table ---


def _split_secondary(raw: str | None) -> list[str]:
    if not raw:
        return []
    out = []
    for part in raw.split(","):
        m = part.strip()
        if m and m.lower() != "none":
            out.append(m)
    return out


class MuscleLookup:
    """Read-only exercise -> muscle table; exact, case-insensitive name lookup."""

    def __init__(self, entries: Iterable[ExerciseMuscleData]):
        self._by_name: dict[str, ExerciseMuscleData] = {}
        for e in entries:
            self._by_name.setdefault(e.name.strip().lower(), e)

    @classmethod
    def from_csv_text(cls, text: str) -> "MuscleLookup":
        """Parse a table with columns name, equipment, primary_muscle, secondary_muscle."""
        reader = csv.DictReader(io.StringIO((text or "").lstrip("﻿")))
        if not reader.fieldnames:
            raise ValueError("muscle lookup CSV has no header row")
        col_map = {f.strip().lower(): f for f in reader.fieldnames if f}
        name_col = col_map.get("name")
        primary_col = col_map.get("primary_muscle")
        if not name_col or not primary_col:
            raise ValueError("muscle lookup CSV needs name and primary_muscle columns")
        equipment_col = col_map.get("equipment")
        secondary_col = col_map.get("secondary_muscle") or col_map.get("secondary_muscles")
        entries = []
        for row in reader:
            name = (row.get(name_col) or "").strip()
            primary = (row.get(primary_col) or "").strip()
            if not name or not primary:
                continue
            entries.append(ExerciseMuscleData(
                name=name,
                equipment=(row.get(equipment_col) or "").strip() if equipment_col else "",
                primary_muscle=primary,
                secondary_muscles=_split_secondary(row.get(secondary_col) if secondary_col else None),
            ))
        logger.debug("loaded %d exercises into muscle lookup", len(entries))
        return cls(entries)

    @classmethod
    def from_path(cls, path: str | Path) -> "MuscleLookup":
        with open(path, encoding="utf-8") as f:
            return cls.from_csv_text(f.read())

    @classmethod
    def default(cls) -> "MuscleLookup":
        """The table bundled with the package (loaded once per process)."""
        global _default_lookup
        if _default_lookup is None:
            _default_lookup = cls.from_path(DEFAULT_LOOKUP_CSV)
        return _default_lookup

    def get(self, exercise_name: str | None) -> Optional[ExerciseMuscleData]:
        if not exercise_name:
            return None
        return self._by_name.get(exercise_name.strip().lower())

    def __len__(self) -> int:
        return len(self._by_name)


_default_lookup: MuscleLookup | None = None
