#!/usr/bin/env python3
"""
Run a workout CSV export through liftlens and print what the dashboard tools would return.
(no MCP server needed). Usage: python scripts/analyze_export.py export.csv [kg|lbs]
"""
from __future__ import annotations

import sys
from pathlib import Path

# Project root = parent of scripts/
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from liftlens.analytics import AnalyticsSession
from liftlens.normalize import convert_volume, convert_weight


def main() -> None:
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    path = Path(sys.argv[1])
    unit = sys.argv[2] if len(sys.argv) > 2 else "kg"
    if not path.exists():
        print(f"Not a file: {path}")
        sys.exit(1)

    session = AnalyticsSession()
    out = session.load_csv(path.read_text(encoding="utf-8", errors="replace"), unit)
    print(f"Status: {out.status}  Platform: {out.platform}")
    print(f"Rows: {out.summary.row_count}  Sets: {out.summary.sets_detected}  Skipped: {out.summary.rows_skipped}")
    for w in out.warnings[:10]:
        print(f"  [{w.type}] {w.location}: {w.message}")
    if out.status == "error":
        print(f"Error: [{out.error.type}] {out.error.message}")
        sys.exit(2)

    print(f"\n{'='*60}\nLAST 7 DAYS TRAINED\n{'='*60}")
    for d in session.daily_summaries()[-7:]:
        print(
            f"{d.date}  {d.workout_title[:30]:<30}  sets={d.sets:<3} "
            f"volume={convert_volume(d.total_volume, unit):.0f}{unit}  {d.duration_minutes:.0f}min"
        )

    print(f"\n{'='*60}\nTHIS WEEK VS LAST WEEK\n{'='*60}")
    cmp = session.week_over_week()
    for name in ("volume", "sets", "workouts", "prs"):
        d = getattr(cmp, name)
        print(f"  {name:<9} {d.current:>10g} vs {d.previous:<10g} {d.direction} {d.delta_percent:+d}%")
    streak = session.streak_info()
    print(f"  streak: {streak.current_streak} week(s) ({streak.streak_type}), consistency {streak.consistency_score}%")
    prs = session.pr_insights()
    if prs.last_pr_exercise:
        print(f"  last PR: {prs.last_pr_exercise}, {prs.days_since_last_pr} day(s) before the latest set")

    print(f"\n{'='*60}\nMUSCLE VOLUME (latest week)\n{'='*60}")
    series = session.muscle_volume("weekly")
    if series.series:
        latest = series.series[-1]
        print(latest.label)
        for muscle in series.muscle_keys:
            if latest.volumes[muscle] > 0:
                print(f"  {muscle:<14} {latest.volumes[muscle]:.1f} sets")

    print(f"\n{'='*60}\nTRENDS\n{'='*60}")
    for t in session.exercise_trends(unit=unit):
        if t.inactive:
            continue
        print(f"{t.exercise[:32]:<32}  {t.label:<12} ({t.confidence})  {'; '.join(t.evidence)}")
        print(f"    {t.title}: {t.description}")

    print(f"\n{'='*60}\nTOP EXERCISES\n{'='*60}")
    for st in session.exercise_stats()[:10]:
        print(
            f"{st.name[:32]:<32}  sets={st.total_sets:<4} max={convert_weight(st.max_weight, unit)}{unit}  PRs={st.pr_count}"
        )


if __name__ == "__main__":
    main()
