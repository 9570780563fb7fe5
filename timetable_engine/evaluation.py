# timetable_engine/evaluation.py
from dataclasses import dataclass
from typing import DefaultDict, Dict, List, Mapping, Set, Tuple
from collections import defaultdict
import numpy as np

from .model import Schedule, Course, Room
from .config import OptimizerConfig


@dataclass
class EvaluationResult:
    hard_violations: int
    soft_score: float
    fitness: float
    conflict_indices: List[int]


def evaluate(
    schedule: Schedule,
    rooms: Mapping[str, Room],
    courses: Mapping[str, Course],
    cfg: OptimizerConfig,
) -> EvaluationResult:
    """
    Puntúa un candidato en una sola pasada.

    Duras (una penalización por asignación, aunque falle varias):
      capacidad < tamaño del grupo, choque de docente, de aula y de grupo.
      El choque se cuenta en la asignación que llega después; ambas
      participantes quedan en ``conflict_indices``.
    Blandas, por (grupo, día): huecos entre la primera y la última sesión
    y sobrecarga de más de ``max_daily_sessions`` sesiones.
    """
    first_teacher: Dict[Tuple[str, int], int] = {}
    first_room: Dict[Tuple[str, int], int] = {}
    first_group: Dict[Tuple[str, int], int] = {}
    conflicts: Set[int] = set()
    hard = 0

    # Ocupación [día][periodo] por grupo
    group_occ: DefaultDict[str, np.ndarray] = defaultdict(
        lambda: np.zeros((cfg.n_days, cfg.periods_per_day), dtype=int)
    )

    for idx, gene in enumerate(schedule.assignments):
        course = courses[gene.course_id]
        room = rooms.get(gene.room)
        slot = gene.slot
        violated = room is None or room.capacity < course.group_size

        for seen, key in (
            (first_teacher, (course.teacher_id, slot)),
            (first_room, (gene.room, slot)),
            (first_group, (course.group_id, slot)),
        ):
            other = seen.setdefault(key, idx)
            if other != idx:
                violated = True
                conflicts.add(other)

        if violated:
            hard += 1
            conflicts.add(idx)

        day, period = divmod(slot, cfg.periods_per_day)
        if 0 <= day < cfg.n_days:
            group_occ[course.group_id][day, period] += 1

    soft = 0.0
    for occ in group_occ.values():
        for row in occ:
            count = int(row.sum())
            if count == 0:
                continue
            if count > 1:
                used = np.flatnonzero(row)
                holes = max(0, int(used[-1] - used[0]) - (count - 1))
                soft += holes * cfg.gap_weight
            if count > cfg.max_daily_sessions:
                soft += cfg.balance_weight

    fitness = hard * cfg.hard_weight + soft
    conflict_indices = sorted(conflicts)

    schedule.hard_count = hard
    schedule.soft_score = soft
    schedule.fitness = fitness
    schedule.conflicts = conflict_indices

    return EvaluationResult(
        hard_violations=hard,
        soft_score=soft,
        fitness=fitness,
        conflict_indices=conflict_indices,
    )
