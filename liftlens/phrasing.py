"""Deterministic wording for exercise trend cards."""

from __future__ import annotations

from typing import Sequence, TypeVar

from .models import TrendResult
from .normalize import LBS_TO_KG, convert_weight, normalize_unit

T = TypeVar("T")

_FNV_OFFSET = 0x811C9DC5
_FNV_PRIME = 0x01000193

STATUS_LABELS = {
    "new": "baseline",
    "stagnant": "plateauing",
    "overload": "gaining",
    "regression": "losing",
    "neutral": "maintaining",
}

# Per status: titles, then (bodyweight-like, loaded) pairs for descriptions and subtexts.
_TITLES: dict[str, tuple[str, ...]] = {
    "new": ("Building baseline", "Learning your pattern", "Collecting reps & load"),
    "stagnant": ("Plateauing", "Holding steady", "Stalled (for now)"),
    "overload": ("Gaining", "Momentum", "Progressing"),
    "regression": ("Losing", "Downtrend", "Fatigue showing"),
    "neutral": ("Maintaining", "Stable", "Holding pattern"),
}

_DESCRIPTIONS: dict[str, tuple[tuple[str, str], ...]] = {
    "new": (
        ("Log a few more sessions and we'll summarize your trend.",) * 2,
        ("A few more exposures and we can confidently call your trend.",) * 2,
        ("Keep logging this lift; trend insights unlock after a few sessions.",) * 2,
    ),
    "stagnant": (
        (
            "You've been circling {min_reps}-{max_reps} reps for a few sessions.",
            "Your top set has hovered at {weight}{unit} for {min_reps}-{max_reps} reps.",
        ),
        (
            "Recent sessions repeat the same rep ceiling: {min_reps}-{max_reps}.",
            "Recent sessions repeat: {weight}{unit} x {min_reps}-{max_reps}.",
        ),
        (
            "Progress is flat; reps are consistently {min_reps}-{max_reps}.",
            "Progress is flat; load and reps are consistently {weight}{unit} x {min_reps}-{max_reps}.",
        ),
    ),
    "overload": (
        ("Nice. Your reps are trending up.", "Nice. Your estimated strength is trending up."),
        ("Reps are moving in the right direction.", "Strength trend is positive; keep steering it."),
        ("You're building capacity; your rep ceiling is rising.", "You're building strength; your top end is climbing."),
    ),
    "regression": (
        (
            "Reps are trending down (often fatigue, stress, or form changes).",
            "Strength is trending down (often fatigue, stress, or form changes).",
        ),
        ("Performance is slipping a bit; don't panic, adjust variables.",) * 2,
        ("Short-term dips are common; recover and rebuild the trend.",) * 2,
    ),
    "neutral": (
        (
            "Performance is stable. Keep building reps with good control.",
            "Strength is stable. Keep consistency and small progressions.",
        ),
        (
            "Reps are steady, a good place to tighten technique and add volume.",
            "Strength is steady, a good place to tighten technique and add volume.",
        ),
        ("Not a setback, just steady. Pick one lever to progress next.",) * 2,
    ),
}

_SUBTEXTS: dict[str, tuple[tuple[str, str], ...]] = {
    "new": (
        ("Aim for similar setup and rep range for 2-3 sessions.",) * 2,
        ("Consistency beats randomness here; keep variables steady.",) * 2,
        ("Use a repeatable rep target so the signal is clean.",) * 2,
    ),
    "stagnant": (
        (
            "Next session: add 1 rep on your first working set, then match the rest.",
            "Next session: try {next_weight}{unit} for a small single-step overload.",
        ),
        (
            "Try adding one extra set (same reps) to force adaptation.",
            "If jumps feel big, repeat the same weight and chase +1 rep instead.",
        ),
        (
            "Keep reps the same, slow the tempo, and aim for cleaner reps.",
            "Keep weight the same, add a rep or two across sets, then increase load.",
        ),
    ),
    "overload": (
        ("Keep one rep in reserve and add reps week-to-week.", "Keep jumps small and repeatable (microload works)."),
        ("If reps feel easy, add load or add a set.", "If bar speed is good, consider a small load bump."),
        ("Stay consistent with setup so the signal stays clean.", "Repeat the same setup and tempo to keep progress comparable."),
    ),
    "regression": (
        ("Consider a deload or a lighter week, then rebuild.",) * 2,
        ("If effort is high but output is low, take an easier week and rebuild.",) * 2,
        ("Short-term dips happen; prioritize sleep, food, and consistent technique.",) * 2,
    ),
    "neutral": (
        (
            "Try progressing reps, tempo, or adding external load.",
            "Try a small rep increase, then a small load increase.",
        ),
        ("Choose one: add a rep, add a set, or add a tiny load jump.",) * 2,
        ("If this feels easy, slightly increase effort (closer to failure) for a week.",) * 2,
    ),
}


def fnv1a_32(text: str) -> int:
    """32-bit FNV-1a over the string's code points."""
    h = _FNV_OFFSET
    for ch in text:
        h ^= ord(ch)
        h = (h * _FNV_PRIME) & 0xFFFFFFFF
    return h


def pick_deterministic(seed: str, options: Sequence[T]) -> T:
    if not options:
        raise ValueError("pick_deterministic requires at least one option")
    return options[fnv1a_32(seed) % len(options)]


def weight_increment_kg(unit: str) -> float:
    """Smallest usual plate jump: 2.5 kg, or 5 lbs expressed in kg."""
    return 5 * LBS_TO_KG if normalize_unit(unit) == "lbs" else 2.5


def _fmt(value: float) -> str:
    return f"{value:g}"


def phrase(result: TrendResult, latest_key: str, unit: str = "kg") -> tuple[str, str, str]:
    """(title, description, subtext) for a classified exercise; same inputs, same words."""
    status = result.status
    seed = f"{result.exercise}|{status}|{latest_key}"
    plateau = result.plateau
    w = plateau.weight if plateau else 0.0
    unit = normalize_unit(unit)
    fields = {
        "min_reps": plateau.min_reps if plateau else 0,
        "max_reps": plateau.max_reps if plateau else 0,
        "weight": _fmt(convert_weight(w, unit)),
        "next_weight": _fmt(convert_weight(w + weight_increment_kg(unit), unit)),
        "unit": unit,
    }
    variant = 0 if result.is_bodyweight_like else 1
    title = pick_deterministic(f"{seed}|title", _TITLES[status])
    description = pick_deterministic(f"{seed}|desc", _DESCRIPTIONS[status])[variant].format(**fields)
    subtext = pick_deterministic(f"{seed}|sub", _SUBTEXTS[status])[variant].format(**fields)
    return title, description, subtext
