"""Normalization helpers: units, flexible numbers/dates/durations, set types, header cleanup."""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Any, Iterable

LBS_TO_KG = 0.45359237
KG_TO_LBS = 2.20462
MILES_TO_KM = 1.609344
METERS_TO_KM = 0.001
FEET_TO_KM = 0.0003048

MIN_YEAR = 1970
MAX_YEAR = 2100

# Hevy export / display format, e.g. "5 Jan 2025, 18:30"
HEVY_DATE_FORMATS = ("%d %b %Y, %H:%M", "%d %b %Y %H:%M")

STRONG_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %I:%M %p",
)

LYFTA_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    *HEVY_DATE_FORMATS,
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%b %d, %Y",
)

# Order matters: day-first before month-first for ambiguous dd/mm vs mm/dd.
GENERIC_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S",
    *HEVY_DATE_FORMATS,
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%d-%m-%Y %H:%M:%S",
    "%d-%m-%Y",
    "%d.%m.%Y %H:%M:%S",
    "%d.%m.%Y",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%m/%d/%Y %I:%M %p",
    "%m/%d/%Y %I:%M:%S %p",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d",
    "%b %d, %Y %H:%M",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b %Y",
)


# --- Units ---


def normalize_unit(unit: str | None, default: str = "kg") -> str:
    u = (unit or "").strip().lower()
    if u in ("lb", "lbs", "pound", "pounds"):
        return "lbs"
    if u in ("kg", "kgs", "kilo", "kilogram", "kilograms"):
        return "kg"
    return default


def to_kg(value: float, unit: str) -> float:
    """Convert a weight in `unit` to kilograms."""
    if normalize_unit(unit) == "lbs":
        return value * LBS_TO_KG
    return value


def to_lbs(weight_kg: float) -> float:
    return weight_kg * KG_TO_LBS


def convert_weight(weight_kg: float, unit: str) -> float:
    """Display conversion: kg unchanged, lbs rounded to one decimal."""
    if normalize_unit(unit) == "lbs":
        return round(weight_kg * KG_TO_LBS, 1)
    return weight_kg


def convert_volume(volume_kg: float, unit: str) -> float:
    if normalize_unit(unit) == "lbs":
        return float(round(volume_kg * KG_TO_LBS))
    return volume_kg


def distance_to_km(value: float, unit: str | None) -> float:
    u = (unit or "km").strip().lower()
    if u in ("mi", "mile", "miles"):
        return value * MILES_TO_KM
    if u in ("m", "meter", "meters", "metre", "metres"):
        return value * METERS_TO_KM
    if u in ("ft", "feet", "foot"):
        return value * FEET_TO_KM
    return value


# --- Headers ---


def canonical_header(header: str) -> str:
    """Lowercase, strip BOM, collapse non-alphanumerics to single underscores."""
    s = (header or "").strip().lstrip("﻿").lower()
    s = re.sub(r"[^a-z0-9_]", "_", s)
    s = re.sub(r"_+", "_", s)
    return s.strip("_")


def header_unit_hint(header: str) -> str | None:
    """Unit implied by a header name, e.g. weight_lbs -> lbs, distance (km) -> km."""
    h = (header or "").lower().strip()
    if re.search(r"(?:^|[_\s(])kgs?\)?$", h):
        return "kg"
    if re.search(r"(?:^|[_\s(])lbs?\)?$", h) or "pounds" in h:
        return "lbs"
    if re.search(r"(?:^|[_\s(])km\)?$", h) or re.search(r"kilomet(?:er|re)s?", h):
        return "km"
    if re.search(r"(?:^|[_\s(])mi\)?$", h) or re.search(r"miles?", h):
        return "miles"
    if re.search(r"(?:^|[_\s(])m\)?$", h) or re.search(r"met(?:er|re)s?", h):
        return "meters"
    return None


def guess_delimiter(content: str) -> str:
    first_line = content.splitlines()[0] if content else ""
    commas = first_line.count(",")
    semicolons = first_line.count(";")
    tabs = first_line.count("\t")
    if tabs > commas and tabs > semicolons:
        return "\t"
    if semicolons > commas:
        return ";"
    return ","


# --- Numbers ---

_NUMBER_SUFFIX = re.compile(r"\s*(kg|kgs|lb|lbs|km|mi|m|sec|s|min|reps?)$", re.IGNORECASE)
_EU_DECIMAL = re.compile(r"^-?\d{1,3}(\.\d{3})*,\d+$")
_US_DECIMAL = re.compile(r"^-?\d{1,3}(,\d{3})*\.\d+$")
_US_THOUSANDS = re.compile(r"^-?\d{1,3}(,\d{3})+$")


def parse_number(value: Any) -> float | None:
    """
    Parse a number written in US (1,234.5 or 1,234) or EU (1.234,5 / 82,5) style.
    Unit suffixes (kg, lbs, reps, ...) are ignored. Returns None when not numeric.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    s = str(value if value is not None else "").strip()
    if not s or s.lower() in ("null", "none", "undefined", "-", "nan"):
        return None
    s = _NUMBER_SUFFIX.sub("", s).strip()
    if _US_THOUSANDS.match(s) or _US_DECIMAL.match(s):
        s = s.replace(",", "")
    elif _EU_DECIMAL.match(s):
        s = s.replace(".", "").replace(",", ".")
    elif "," in s and "." not in s:
        s = s.replace(",", ".", 1)
    try:
        n = float(s)
    except ValueError:
        return None
    return n if math.isfinite(n) else None


# --- Dates & durations ---


def _year_ok(d: datetime) -> bool:
    return MIN_YEAR < d.year < MAX_YEAR


def parse_iso_datetime(value: str) -> datetime | None:
    """ISO-8601 with optional offset. Offsets are dropped; the wall-clock time is kept."""
    s = (value or "").strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        d = datetime.fromisoformat(s)
    except ValueError:
        return None
    if d.tzinfo is not None:
        d = d.replace(tzinfo=None)
    return d if _year_ok(d) else None


def parse_datetime(value: Any, formats: Iterable[str] = GENERIC_DATE_FORMATS) -> datetime | None:
    """Return a naive datetime for the first matching format (ISO as fallback), or None."""
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    s = str(value if value is not None else "").strip()
    if not s:
        return None
    for fmt in formats:
        try:
            d = datetime.strptime(s, fmt)
        except ValueError:
            continue
        if _year_ok(d):
            return d
    return parse_iso_datetime(s)


def parse_epoch_seconds(value: float) -> datetime | None:
    try:
        d = datetime.fromtimestamp(float(value), tz=timezone.utc).replace(tzinfo=None)
    except (OverflowError, OSError, ValueError):
        return None
    return d if _year_ok(d) else None


def parse_duration(value: Any) -> int:
    """Seconds from 3600, '01:06:25', '45:10', or '1h 30m 15s'. Unparseable -> 0."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(round(value)) if math.isfinite(value) else 0
    s = str(value if value is not None else "").strip()
    if not s:
        return 0
    if re.match(r"^-?\d+(\.\d+)?$", s):
        return int(round(float(s)))
    if re.match(r"^\d{1,2}:\d{2}(:\d{2})?$", s):
        parts = [int(p) for p in s.split(":")]
        if len(parts) == 2:
            return parts[0] * 60 + parts[1]
        return parts[0] * 3600 + parts[1] * 60 + parts[2]
    total = 0.0
    hours = re.search(r"(\d+(?:\.\d+)?)\s*(?:h|hr|hrs|hour)", s, re.IGNORECASE)
    mins = re.search(r"(\d+(?:\.\d+)?)\s*(?:m|min|mins|minute)", s, re.IGNORECASE)
    secs = re.search(r"(\d+(?:\.\d+)?)\s*(?:s|sec|secs|second)", s, re.IGNORECASE)
    if hours:
        total += float(hours.group(1)) * 3600
    if mins:
        total += float(mins.group(1)) * 60
    if secs:
        total += float(secs.group(1))
    return int(round(total))


# --- Set type / effort ---


def normalize_set_type(value: Any) -> str:
    """Map exporter set-type labels onto the canonical vocabulary (default 'normal')."""
    raw = str(value if value is not None else "").strip().lower()
    if raw == "w":
        return "warmup"
    s = re.sub(r"[^a-z]", "", raw)
    if not s or s in ("normalset", "normal", "working", "work", "regular", "standard"):
        return "normal"
    if "warm" in s:
        return "warmup"
    if "drop" in s or s == "d":
        return "dropset"
    if "fail" in s or s == "f":
        return "failure"
    if "amrap" in s:
        return "amrap"
    if "rest" in s and "pause" in s:
        return "restpause"
    if "myo" in s:
        return "myoreps"
    if "cluster" in s:
        return "cluster"
    if "giant" in s:
        return "giantset"
    if "super" in s:
        return "superset"
    if "backoff" in s or ("back" in s and "off" in s):
        return "backoff"
    return "normal"


def rir_to_rpe(rir: float) -> float:
    """Reps-in-reserve to RPE, clamped to 1..10."""
    return max(1.0, min(10.0, 10.0 - rir))
