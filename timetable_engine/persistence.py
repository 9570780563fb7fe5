"""
Exportación del resultado. Es de mejor esfuerzo: un fallo al escribir se
registra y nunca invalida un horario ya calculado.
"""
import json
import logging
from pathlib import Path
from typing import Dict, Optional, Sequence
import pandas as pd

from .model import Course, Teacher, ScheduleResult
from .domains import TimeGrid

logger = logging.getLogger(__name__)


def schedule_to_dataframe(
    result: ScheduleResult,
    courses: Sequence[Course],
    grid: TimeGrid,
    teachers: Optional[Sequence[Teacher]] = None,
) -> pd.DataFrame:
    by_id: Dict[str, Course] = {c.course_id: c for c in courses}
    # Sin docente conocido se muestra el id
    names: Dict[str, str] = {t.teacher_id: t.name for t in (teachers or [])}
    rows = []
    for g in result.assignments:
        course = by_id.get(g.course_id)
        rows.append(
            {
                "course_id": g.course_id,
                "subject": course.subject if course else "",
                "teacher_id": course.teacher_id if course else "",
                "teacher_name": names.get(course.teacher_id, course.teacher_id) if course else "",
                "group_id": course.group_id if course else "",
                "room": g.room,
                "slot": g.slot,
                "day_idx": grid.day_of(g.slot),
                "day": grid.day_name(grid.day_of(g.slot)),
                "period": grid.period_label(grid.period_of(g.slot)),
            }
        )
    return pd.DataFrame(rows)


def runs_to_dataframe(result: ScheduleResult) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "run": r.run,
                "fitness": r.fitness,
                "hard_violations": r.hard_violations,
                "soft_score": r.soft_score,
                "seconds": round(r.seconds, 3),
                "clean": r.clean,
            }
            for r in result.runs
        ]
    )


def export_result(
    result: ScheduleResult,
    courses: Sequence[Course],
    grid: TimeGrid,
    out_dir: str,
    teachers: Optional[Sequence[Teacher]] = None,
) -> bool:
    out = Path(out_dir)
    try:
        out.mkdir(parents=True, exist_ok=True)
        (out / "schedule.json").write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")
        schedule_to_dataframe(result, courses, grid, teachers).to_csv(out / "schedule.csv", index=False)
        if result.runs:
            runs_to_dataframe(result).to_csv(out / "runs.csv", index=False)
    except OSError as exc:
        logger.warning("No se pudo guardar el horario en %s: %s", out, exc)
        return False
    return True
